import asyncio
import logging
from functools import cached_property
from typing import Optional

import numpy as np
from sentence_transformers import CrossEncoder

from embedocs.core.models.search import ScoredChunk
from embedocs.core.strategies.rerank import blend_rerank_scores

logger = logging.getLogger(__name__)


class CrossEncoderReranker:
    """Reranker using local CrossEncoder models."""

    def __init__(
        self,
        model_name: str = "BAAI/bge-reranker-v2-m3",
        top_k: int = 20,
        rerank_weight: float = 0.7,
        max_chars: int = 1000,
    ):
        """Initialize reranker.

        Args:
            model_name: HuggingFace model name.
            top_k: Default number of candidates reranked.
            rerank_weight: Weight of the reranker score in the blend.
            max_chars: Per-document character budget.
        """
        self._model_name = model_name
        self._top_k = top_k
        self._rerank_weight = rerank_weight
        self._max_chars = max_chars

    @cached_property
    def model(self) -> CrossEncoder:
        logger.info(f"Loading reranker: {self._model_name}")
        return CrossEncoder(self._model_name)

    async def rerank(
        self,
        query: str,
        candidates: list[ScoredChunk],
        top_k: Optional[int] = None,
    ) -> list[ScoredChunk]:
        """Rerank the head of the candidate list; input is returned on failure."""
        if not candidates:
            return candidates

        head_size = min(top_k or self._top_k, len(candidates))
        pairs = [[query, c.content[: self._max_chars]] for c in candidates[:head_size]]

        try:
            raw = await asyncio.to_thread(self.model.predict, pairs)
        except (RuntimeError, ValueError, OSError) as e:
            logger.warning(f"Local rerank failed, keeping fused order: {e}")
            return candidates

        # Logits to [0, 1] so they blend with normalized pre-scores.
        probabilities = 1.0 / (1.0 + np.exp(-np.asarray(raw, dtype=float)))
        scores = {i: float(p) for i, p in enumerate(probabilities)}

        return blend_rerank_scores(
            candidates, scores, head_size, rerank_weight=self._rerank_weight
        )
