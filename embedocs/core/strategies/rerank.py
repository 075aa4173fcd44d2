"""Blending of reranker scores with pre-rerank scores."""
import dataclasses
import logging
from typing import Optional

from ..models.search import ScoredChunk

logger = logging.getLogger(__name__)


def blend_rerank_scores(
    candidates: list[ScoredChunk],
    rerank_scores: dict[int, float],
    head_size: int,
    rerank_weight: float = 0.7,
) -> list[ScoredChunk]:
    """Combine reranker relevance with the original ranking signal.

    The head (first head_size candidates) is rescored as
    ``rerank_weight * rerank + (1 - rerank_weight) * pre / max_pre`` and
    re-sorted. A head candidate the reranker did not score keeps only its
    normalized pre-score. The tail follows unchanged.

    Args:
        candidates: Candidates as sent to the reranker, best first.
        rerank_scores: Candidate index -> reranker relevance.
        head_size: Number of candidates sent to the reranker.
        rerank_weight: Weight of the reranker signal.

    Returns:
        New list of new ScoredChunk objects; inputs are not mutated.
    """
    head = candidates[:head_size]
    tail = candidates[head_size:]
    if not head:
        return list(candidates)

    max_pre = max(c.score for c in head)
    original_weight = 1.0 - rerank_weight

    rescored = []
    for index, candidate in enumerate(head):
        normalized = candidate.score / max_pre if max_pre > 0 else 0.0
        relevance: Optional[float] = rerank_scores.get(index)
        if relevance is None:
            score = normalized
        else:
            score = rerank_weight * relevance + original_weight * normalized
        rescored.append(
            dataclasses.replace(candidate, score=score, rerank_score=relevance)
        )

    rescored.sort(key=lambda c: c.score, reverse=True)
    return rescored + list(tail)
