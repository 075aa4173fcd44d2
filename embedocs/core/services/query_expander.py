"""Query expander - deterministic rule-based query rewriting."""

import json
import logging
import re
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

DEFAULT_SYNONYMS: dict[str, list[str]] = {
    "insert": ["insertOne", "insertMany", "create"],
    "query": ["find", "filter", "search"],
    "find": ["query", "findOne"],
    "update": ["updateOne", "updateMany", "modify"],
    "delete": ["deleteOne", "deleteMany", "remove"],
    "remove": ["delete", "deleteMany"],
    "aggregate": ["aggregation", "pipeline"],
    "aggregation": ["aggregate", "pipeline"],
    "join": ["$lookup", "lookup"],
    "index": ["indexes", "createIndex"],
    "indexes": ["index", "indexing"],
    "performance": ["optimization", "explain"],
    "replica": ["replica set", "replication"],
    "shard": ["sharding", "shard key"],
    "transaction": ["transactions", "session"],
    "schema": ["data model", "validation"],
    "connection": ["connection string", "connect"],
    "connect": ["connection", "connection string"],
    "error": ["exception", "failure"],
    "embedding": ["embeddings", "vector"],
    "vector": ["vector search", "embedding"],
    "rerank": ["reranking", "reranker"],
}

DEFAULT_ABBREVIATIONS: dict[str, str] = {
    "crud": "create read update delete",
    "ttl": "time to live index",
    "wc": "write concern",
    "rc": "read concern",
    "rp": "read preference",
    "rs": "replica set",
    "agg": "aggregation",
    "idx": "index",
    "doc": "document",
    "docs": "documents",
    "col": "collection",
    "db": "database",
    "auth": "authentication",
    "config": "configuration",
}

# Checked in order; the first matching intent wins.
INTENT_PATTERNS: list[tuple[str, re.Pattern]] = [
    ("tutorial", re.compile(r"\b(how|tutorial|example|guide|getting started)\b")),
    ("troubleshooting", re.compile(r"\b(error|errors|fail\w*|not work\w*|exception|troubleshoot\w*|issue)\b")),
    ("performance", re.compile(r"\b(slow|performance|optimi[sz]\w*|latency|fast\w*)\b")),
    ("aggregation", re.compile(r"\b(aggregat\w*|pipeline|group by)\b|\$\w+")),
    ("driver", re.compile(r"\b(node(js)?|python|pymongo|java|golang|driver)\b")),
]

INTENT_VARIANTS: dict[str, list[str]] = {
    "tutorial": ["{q} tutorial", "{q} example"],
    "troubleshooting": ["{q} troubleshooting", "{q} error"],
    "performance": ["{q} performance", "optimize {q}"],
    "aggregation": ["{q} aggregation pipeline", "aggregate {q}"],
    "driver": ["{q} driver", "{q} connection"],
}

VERSION_PATTERN = re.compile(r"\bv?\d+\.\d+\b", re.I)

VERSION_VARIANTS = ["{q} compatibility", "{q} changes", "{q} migration"]

SUGGESTION_HINTS: list[tuple[re.Pattern, str]] = [
    (re.compile(r"\bsearch\b"), 'Try "find" for basic queries or "$search" for full-text search'),
    (re.compile(r"\bjoin\b"), 'Try "$lookup" for joining collections'),
    (re.compile(r"\bgroup by\b"), 'Try "$group" in an aggregation pipeline'),
    (re.compile(r"\bwhere\b"), 'Try "$match" or "find" with query filters'),
    (re.compile(r"\bselect\b"), 'Try "$project" or field projection'),
]

GENERIC_HINTS = [
    "Use product terminology (e.g. \"find\" instead of \"select\")",
    "Use fewer, more specific keywords",
    "Name the product or driver you are using",
]


class QueryExpander:
    """Expand a query into related query strings.

    Output order: original, abbreviation expansions, synonym substitutions,
    intent variants. Duplicates are dropped and the list is capped.
    """

    def __init__(
        self,
        synonyms: Optional[dict[str, list[str]]] = None,
        abbreviations: Optional[dict[str, str]] = None,
        max_variants: int = 6,
        synonyms_per_term: int = 2,
        synonyms_path: Optional[str] = None,
    ):
        """Initialize expander.

        Args:
            synonyms: Term -> synonyms. Defaults to the built-in table.
            abbreviations: Abbreviation -> expansion.
            max_variants: Maximum number of returned queries, original included.
            synonyms_per_term: Maximum substitutions generated per term.
            synonyms_path: Optional JSON file extending the tables.
        """
        if max_variants < 1:
            raise ValueError("max_variants must be at least 1")

        self._synonyms = {k.lower(): v for k, v in (synonyms or DEFAULT_SYNONYMS).items()}
        self._abbreviations = {
            k.lower(): v for k, v in (abbreviations or DEFAULT_ABBREVIATIONS).items()
        }
        self._max_variants = max_variants
        self._synonyms_per_term = synonyms_per_term

        if synonyms_path:
            config = self._load_config(synonyms_path)
            for term, values in config.get("synonyms", {}).items():
                self._synonyms[term.lower()] = list(values)
            for abbr, full in config.get("abbreviations", {}).items():
                self._abbreviations[abbr.lower()] = full

    def _load_config(self, path: str) -> dict:
        """Load extra synonyms from JSON."""
        config_file = Path(path)
        if not config_file.exists():
            logger.debug(f"Synonyms file {path} not found, using built-in tables")
            return {}

        with open(config_file, "r", encoding="utf-8") as f:
            config = json.load(f)
            logger.info(f"Synonyms loaded from {path}")
            return config

    def detect_intent(self, query: str) -> Optional[str]:
        """Coarse intent of the query, or None."""
        text = query.lower()
        for intent, pattern in INTENT_PATTERNS:
            if pattern.search(text):
                return intent
        return None

    def expand(self, query: str) -> list[str]:
        """Expand query into related queries.

        Args:
            query: User query.

        Returns:
            Queries, original first, at most max_variants long.
        """
        query = query.strip()
        if not query:
            return []

        expanded: list[str] = []
        seen: set[str] = set()

        def add(candidate: str) -> None:
            candidate = " ".join(candidate.split())
            key = candidate.lower()
            if candidate and key not in seen:
                seen.add(key)
                expanded.append(candidate)

        add(query)

        for abbr, full in self._abbreviations.items():
            pattern = re.compile(rf"(?<![\w$]){re.escape(abbr)}(?!\w)", re.I)
            if pattern.search(query):
                add(pattern.sub(lambda _: full, query))

        for token in self._tokenize(query):
            for synonym in self._synonyms.get(token, [])[: self._synonyms_per_term]:
                pattern = re.compile(rf"(?<![\w$]){re.escape(token)}(?!\w)", re.I)
                add(pattern.sub(lambda _: synonym, query, count=1))

        intent = self.detect_intent(query)
        if intent:
            for template in INTENT_VARIANTS[intent]:
                add(template.format(q=query))

        if VERSION_PATTERN.search(query):
            for template in VERSION_VARIANTS:
                add(template.format(q=query))

        result = expanded[: self._max_variants]
        if len(result) > 1:
            logger.debug(f"Expanded '{query[:50]}' into {len(result)} queries")
        return result

    def generate_suggestions(self, query: str) -> list[str]:
        """Rephrasing hints for a query that found nothing.

        Args:
            query: User query.

        Returns:
            Terminology hints followed by alternative phrasings.
        """
        text = query.lower()
        hints = [hint for pattern, hint in SUGGESTION_HINTS if pattern.search(text)]
        if not hints:
            hints = list(GENERIC_HINTS)

        alternatives = [f'Try "{q}"' for q in self.expand(query)[1:]]
        return hints + alternatives

    @staticmethod
    def _tokenize(query: str) -> list[str]:
        tokens = []
        for token in re.findall(r"[\w$]+", query.lower()):
            if token not in tokens:
                tokens.append(token)
        return tokens
