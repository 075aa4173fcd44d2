"""Reciprocal Rank Fusion of the vector and keyword channels."""
import dataclasses
import logging
from typing import Optional, Sequence

from ..models.search import Provenance, ScoredChunk
from .scoring import ScoringStrategy

logger = logging.getLogger(__name__)


def merge_query_variants(runs: Sequence[list[ScoredChunk]]) -> list[ScoredChunk]:
    """Merge one channel's results for several query variants.

    Each record keeps the best (lowest) rank it reached in any variant.
    Ties go to the earlier variant, so the original query wins over its
    expansions.

    Args:
        runs: Ranked lists, original query first.

    Returns:
        Single ranked list without duplicates.
    """
    best: dict[str, tuple[int, int, ScoredChunk]] = {}

    for variant_index, run in enumerate(runs):
        for rank, candidate in enumerate(run):
            current = best.get(candidate.record_id)
            if current is None or (rank, variant_index) < current[:2]:
                best[candidate.record_id] = (rank, variant_index, candidate)

    ordered = sorted(best.values(), key=lambda entry: entry[:2])
    return [candidate for _, _, candidate in ordered]


class ReciprocalRankFusion:
    """Fuse two ranked lists by rank, not raw score.

    score = w_vector / (k + rank_vector) + w_keyword / (k + rank_keyword)

    Ranks are 1-based; a channel that missed a candidate contributes 0.
    Candidates found by both channels are multiplied by ``both_boost``.
    """

    def __init__(
        self,
        k: int = 60,
        vector_weight: float = 0.6,
        keyword_weight: float = 0.4,
        both_boost: float = 1.2,
        strategies: Optional[list[ScoringStrategy]] = None,
    ):
        """Initialize fusion.

        Args:
            k: RRF constant.
            vector_weight: Weight of the vector channel.
            keyword_weight: Weight of the keyword channel.
            both_boost: Multiplier for consensus hits.
            strategies: Post-fusion score adjustments applied before sorting.
        """
        if k <= 0:
            raise ValueError(f"RRF k must be positive, got {k}")
        self.k = k
        self.vector_weight = vector_weight
        self.keyword_weight = keyword_weight
        self.both_boost = both_boost
        self._strategies = strategies or []

    def fuse(
        self,
        vector_ranked: list[ScoredChunk],
        keyword_ranked: list[ScoredChunk],
        query: str = "",
    ) -> list[ScoredChunk]:
        """Fuse the channels into one ranked list.

        Args:
            vector_ranked: Vector channel results, best first.
            keyword_ranked: Keyword channel results, best first.
            query: Query text passed to post-fusion strategies.

        Returns:
            New ScoredChunk objects sorted by fused score. Equal scores keep
            first-seen order (vector channel first).
        """
        scores: dict[str, float] = {}
        vector_hits: dict[str, ScoredChunk] = {}
        keyword_hits: dict[str, ScoredChunk] = {}
        order: list[str] = []

        for channel, weight, hits in (
            (vector_ranked, self.vector_weight, vector_hits),
            (keyword_ranked, self.keyword_weight, keyword_hits),
        ):
            for rank, candidate in enumerate(channel, start=1):
                record_id = candidate.record_id
                if record_id in hits:
                    continue
                hits[record_id] = candidate
                if record_id not in scores:
                    scores[record_id] = 0.0
                    order.append(record_id)
                scores[record_id] += weight / (self.k + rank)

        fused: list[ScoredChunk] = []
        for record_id in order:
            vector_hit = vector_hits.get(record_id)
            keyword_hit = keyword_hits.get(record_id)
            score = scores[record_id]

            if vector_hit and keyword_hit:
                score *= self.both_boost
                provenance = Provenance.BOTH
            elif vector_hit:
                provenance = Provenance.VECTOR
            else:
                provenance = Provenance.KEYWORD

            base = vector_hit or keyword_hit
            fused.append(
                dataclasses.replace(
                    base,
                    score=score,
                    provenance=provenance,
                    vector_score=vector_hit.vector_score if vector_hit else None,
                    keyword_score=keyword_hit.keyword_score if keyword_hit else None,
                )
            )

        for strategy in self._strategies:
            fused = strategy.apply(query, fused)

        fused.sort(key=lambda c: c.score, reverse=True)

        logger.debug(
            f"RRF: {len(vector_ranked)} vector + {len(keyword_ranked)} keyword "
            f"-> {len(fused)} fused"
        )
        return fused
