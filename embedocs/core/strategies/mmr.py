"""Maximum Marginal Relevance selection."""
import dataclasses
import logging
from typing import Optional

import numpy as np

from ..models.search import ScoredChunk

logger = logging.getLogger(__name__)


def _normalize_rows(matrix: np.ndarray) -> np.ndarray:
    norms = np.linalg.norm(matrix, axis=1, keepdims=True)
    norms[norms == 0] = 1.0
    return matrix / norms


class MMRSelector:
    """Greedy diverse top-k selection.

    mmr(c) = lambda * relevance(c) - (1 - lambda) * max_sim(c, selected)
    """

    def select(
        self,
        candidates: list[ScoredChunk],
        query_vector: Optional[list[float]],
        k: int,
        fetch_k: Optional[int] = None,
        lambda_mult: float = 0.7,
    ) -> list[ScoredChunk]:
        """Select up to k candidates balancing relevance and redundancy.

        Args:
            candidates: Pool ranked by relevance, each carrying an embedding.
            query_vector: Query embedding, used when a candidate has no
                vector_score.
            k: Number of results.
            fetch_k: Pool size considered; defaults to the whole pool.
            lambda_mult: Relevance/diversity trade-off in [0, 1].

        Returns:
            Selected candidates in selection order, embeddings stripped.
        """
        if not 0.0 <= lambda_mult <= 1.0:
            raise ValueError(f"lambda_mult must be in [0, 1], got {lambda_mult}")
        if not candidates or k <= 0:
            return []

        pool = candidates[:fetch_k] if fetch_k else list(candidates)
        pool = [c for c in pool if c.embedding is not None]
        if not pool:
            return []

        vectors = _normalize_rows(np.asarray([c.embedding for c in pool], dtype=float))
        relevance = self._relevance(pool, vectors, query_vector)
        similarity = vectors @ vectors.T

        first = int(np.argmax(relevance))
        selected = [first]
        remaining = [i for i in range(len(pool)) if i != first]
        max_sim = similarity[first].copy()

        while remaining and len(selected) < k:
            best_index = remaining[0]
            best_score = -np.inf
            for i in remaining:
                mmr = lambda_mult * relevance[i] - (1 - lambda_mult) * max_sim[i]
                if mmr > best_score:
                    best_score = mmr
                    best_index = i

            selected.append(best_index)
            remaining.remove(best_index)
            max_sim = np.maximum(max_sim, similarity[best_index])

        logger.debug(
            f"MMR: selected {len(selected)} of {len(pool)} (lambda={lambda_mult})"
        )
        return [dataclasses.replace(pool[i], embedding=None) for i in selected]

    @staticmethod
    def _relevance(
        pool: list[ScoredChunk],
        vectors: np.ndarray,
        query_vector: Optional[list[float]],
    ) -> np.ndarray:
        if all(c.vector_score is not None for c in pool):
            return np.asarray([c.vector_score for c in pool], dtype=float)
        if query_vector is None:
            return np.asarray([c.score for c in pool], dtype=float)

        query = np.asarray(query_vector, dtype=float)
        norm = np.linalg.norm(query)
        if norm > 0:
            query = query / norm
        cosine = vectors @ query
        return np.asarray(
            [
                c.vector_score if c.vector_score is not None else cosine[i]
                for i, c in enumerate(pool)
            ],
            dtype=float,
        )
