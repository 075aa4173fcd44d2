"""Content quality scoring from path, title and content heuristics."""
import logging
import re

from ..models.document import ContentType, Document, QualityScore

logger = logging.getLogger(__name__)

_TECHNICAL_PATH = re.compile(
    r"/(reference|api|operators?|methods?|commands?|aggregation|query|crud)/", re.I
)
_TECHNICAL_CONTENT = [
    re.compile(r"\b\w+\.\w+\.\w+\("),
    re.compile(r"\$[a-zA-Z]\w*"),
    re.compile(r"\b(find|aggregate|insertOne|updateOne|deleteOne)\("),
]
_TECHNICAL_TITLE = re.compile(r"\b(method|operator|function|command)s?\b", re.I)

_EXAMPLE_PATH = re.compile(r"/(examples?|tutorials?|samples?)/", re.I)
_EXAMPLE_TITLE = re.compile(r"\b(example|tutorial|sample|walkthrough)s?\b", re.I)

_CONCEPTUAL = [
    re.compile(r"/(concepts?|fundamentals?|introduction|overview|guides?)/", re.I),
    re.compile(r"\b(what is|how to|understanding|concepts?)\b", re.I),
]

_META = [
    re.compile(r"readme|contributing|license|changelog|authors", re.I),
    re.compile(r"pull.request|issue.template|code.of.conduct", re.I),
]

_HIGH_PRIORITY_PATH = re.compile(
    r"/(tutorials?|reference|examples?|crud|aggregation|query|operators?)/", re.I
)

_METHOD_CALL = re.compile(r"\b\w+\.\w+\(")
_METHOD_DOC = re.compile(r"\b(parameters?|returns?|examples?)\b", re.I)
_CODE = re.compile(r"```|~~~|\.\. code-block::|^ {4,}\S", re.M)
_QUERY_EXAMPLE = re.compile(r"\b(find|aggregate|match|group|sort|limit)\b")
_MARKUP = re.compile(r"[<>{}\[\]()]")


class ContentQualityScorer:
    """Classify documents and assign a search boost.

    Technical reference material ranks above conceptual prose, which ranks
    above repository meta files (readme, changelog, license).
    """

    def score(self, document: Document) -> QualityScore:
        """Score a document.

        Args:
            document: Document to classify.

        Returns:
            QualityScore with score clamped to [0, 1].
        """
        path = "/" + document.metadata.path.lstrip("/")
        title = document.metadata.title
        content = document.content

        score = 0.5
        boost = 1.0
        reasons: list[str] = []
        content_type = ContentType.CONCEPTUAL

        if self._is_meta(path, title):
            score -= 0.3
            boost = 0.3
            content_type = ContentType.META
            reasons.append("Meta documentation")
        elif self._is_example(path, title):
            score += 0.3
            boost = 1.4
            content_type = ContentType.EXAMPLE
            reasons.append("Example or tutorial")
            if self._has_code(content):
                score += 0.2
                boost = 1.6
                reasons.append("Contains code examples")
        elif self._is_technical(path, title, content):
            score += 0.4
            boost = 1.5
            content_type = ContentType.TECHNICAL
            reasons.append("Technical documentation")

            if self._has_method_docs(content):
                score += 0.2
                boost = 1.8
                reasons.append("Contains method documentation")
            if self._has_code(content):
                score += 0.2
                boost = max(boost, 1.6)
                reasons.append("Contains code examples")
            if self._has_query_examples(content):
                score += 0.3
                boost = 2.0
                reasons.append("Contains query examples")
        elif self._is_conceptual(path, title, content):
            score += 0.2
            boost = 1.2
            reasons.append("Conceptual documentation")

        if _HIGH_PRIORITY_PATH.search(path):
            score += 0.2
            boost *= 1.3
            reasons.append("High-priority path")

        if self._is_low_value(content):
            score -= 0.2
            boost *= 0.7
            reasons.append("Low-value content")

        return QualityScore(
            score=max(0.0, min(1.0, score)),
            content_type=content_type,
            boost_factor=boost,
            reasons=reasons,
        )

    def _is_technical(self, path: str, title: str, content: str) -> bool:
        if _TECHNICAL_PATH.search(path) or _TECHNICAL_TITLE.search(title):
            return True
        return any(p.search(content) for p in _TECHNICAL_CONTENT)

    def _is_example(self, path: str, title: str) -> bool:
        return bool(_EXAMPLE_PATH.search(path) or _EXAMPLE_TITLE.search(title))

    def _is_conceptual(self, path: str, title: str, content: str) -> bool:
        return any(
            p.search(path) or p.search(title) or p.search(content[:2000])
            for p in _CONCEPTUAL
        )

    def _is_meta(self, path: str, title: str) -> bool:
        filename = path.rsplit("/", 1)[-1]
        return any(p.search(filename) or p.search(title) for p in _META)

    def _has_code(self, content: str) -> bool:
        return bool(_CODE.search(content))

    def _has_method_docs(self, content: str) -> bool:
        return bool(_METHOD_CALL.search(content) and _METHOD_DOC.search(content))

    def _has_query_examples(self, content: str) -> bool:
        return bool(_QUERY_EXAMPLE.search(content)) and self._has_code(content)

    def _is_low_value(self, content: str) -> bool:
        if len(content) < 200:
            return True

        markup_ratio = len(_MARKUP.findall(content)) / len(content)
        whitespace_ratio = sum(1 for c in content if c.isspace()) / len(content)
        return markup_ratio > 0.3 or whitespace_ratio > 0.8
