"""Reranker protocol for dependency injection."""
from typing import Optional, Protocol, runtime_checkable

from ..models.search import ScoredChunk


@runtime_checkable
class RerankerProtocol(Protocol):
    """Protocol for reranking service."""

    async def rerank(
        self,
        query: str,
        candidates: list[ScoredChunk],
        top_k: Optional[int] = None,
    ) -> list[ScoredChunk]:
        """Rerank candidates by query relevance.

        Implementations never raise: on failure the input list is returned
        unchanged.

        Args:
            query: User query.
            candidates: Fused candidates, best first.
            top_k: Number of leading candidates to send to the reranker.

        Returns:
            Reranked head followed by the untouched tail.
        """
        ...
