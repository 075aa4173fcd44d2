"""Fuzzy BM25 scoring shared by the vector store adapters."""
import re
from typing import Iterable

from rank_bm25 import BM25Plus

_TOKEN = re.compile(r"[a-z0-9_$]+")


def tokenize(text: str) -> list[str]:
    return _TOKEN.findall(text.lower())


def within_edits(a: str, b: str, max_edits: int) -> bool:
    """Levenshtein distance between a and b is at most max_edits."""
    if abs(len(a) - len(b)) > max_edits:
        return False
    if a == b:
        return True

    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, 1):
        current = [i]
        for j, cb in enumerate(b, 1):
            current.append(
                min(
                    previous[j] + 1,
                    current[j - 1] + 1,
                    previous[j - 1] + (ca != cb),
                )
            )
        if min(current) > max_edits:
            return False
        previous = current
    return previous[-1] <= max_edits


def allowed_edits(term: str, max_edits: int) -> int:
    """Short terms get fewer edits: 0 up to 2 chars, 1 up to 5 chars."""
    if len(term) <= 2:
        return 0
    if len(term) <= 5:
        return min(max_edits, 1)
    return max_edits


def expand_terms(
    query_terms: Iterable[str],
    vocabulary: set[str],
    max_edits: int = 2,
    prefix_length: int = 3,
) -> list[str]:
    """Vocabulary terms matching any query term exactly or fuzzily.

    A fuzzy match must share the first prefix_length characters.
    """
    matched: list[str] = []
    seen: set[str] = set()

    for term in query_terms:
        edits = allowed_edits(term, max_edits)
        prefix = term[:prefix_length]
        for candidate in sorted(vocabulary):
            if candidate in seen:
                continue
            if candidate == term or (
                edits
                and candidate.startswith(prefix)
                and within_edits(term, candidate, edits)
            ):
                seen.add(candidate)
                matched.append(candidate)

    return matched


def score_texts(
    query: str,
    texts: list[str],
    max_edits: int = 2,
    prefix_length: int = 3,
) -> list[float]:
    """BM25 score of each text; 0.0 for texts without a matching term."""
    corpus = [tokenize(text) for text in texts]
    vocabulary = {token for tokens in corpus for token in tokens}
    if not vocabulary:
        return [0.0] * len(texts)

    terms = expand_terms(tokenize(query), vocabulary, max_edits, prefix_length)
    if not terms:
        return [0.0] * len(texts)

    # BM25Plus keeps IDF positive on tiny corpora, unlike BM25Okapi.
    scores = BM25Plus(corpus).get_scores(terms)
    term_set = set(terms)
    return [
        float(score) if term_set.intersection(tokens) else 0.0
        for score, tokens in zip(scores, corpus)
    ]
