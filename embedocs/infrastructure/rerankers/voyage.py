import asyncio
import logging
from typing import Any, Optional

import httpx

from embedocs.core.exceptions import ProviderResponseError, RerankError
from embedocs.core.models.search import ScoredChunk
from embedocs.core.retry import RetryPolicy
from embedocs.core.strategies.rerank import blend_rerank_scores

logger = logging.getLogger(__name__)


class VoyageReranker:
    """Cross-encoder reranking through a Voyage-compatible HTTP API.

    Never raises: any failure returns the input ranking unchanged.
    """

    def __init__(
        self,
        api_key: str,
        model: str = "rerank-2.5",
        base_url: str = "https://api.voyageai.com/v1",
        top_k: int = 20,
        rerank_weight: float = 0.7,
        max_chars: int = 1000,
        timeout: float = 10.0,
        retry_policy: Optional[RetryPolicy] = None,
        semaphore: Optional[asyncio.Semaphore] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """Initialize reranker.

        Args:
            api_key: Provider API key.
            model: Reranker model name.
            base_url: API base URL.
            top_k: Default number of candidates sent.
            rerank_weight: Weight of the reranker score in the blend.
            max_chars: Per-document character budget.
            timeout: Request timeout in seconds.
            retry_policy: Retry policy for transient failures.
            semaphore: Limiter shared by every outbound provider call.
            client: HTTP client; created lazily when omitted.
        """
        self._api_key = api_key
        self._model = model
        self._base_url = base_url.rstrip("/")
        self._top_k = top_k
        self._rerank_weight = rerank_weight
        self._max_chars = max_chars
        self._timeout = timeout
        self._retry = retry_policy or RetryPolicy(max_retries=1)
        self._semaphore = semaphore or asyncio.Semaphore(4)
        self._client = client

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()

    async def rerank(
        self,
        query: str,
        candidates: list[ScoredChunk],
        top_k: Optional[int] = None,
    ) -> list[ScoredChunk]:
        """Rerank the head of the candidate list.

        Args:
            query: User query.
            candidates: Candidates, best first.
            top_k: Number of leading candidates to rerank.

        Returns:
            Blended and re-sorted head followed by the tail, or the input
            list on failure.
        """
        if not candidates:
            return candidates

        head_size = min(top_k or self._top_k, len(candidates))
        documents = [c.content[: self._max_chars] for c in candidates[:head_size]]

        try:
            data = await self._retry.call(
                self._post,
                {
                    "query": query,
                    "documents": documents,
                    "model": self._model,
                    "top_k": head_size,
                },
            )
            scores = self._parse(data, head_size)
        except (
            httpx.HTTPError,
            ProviderResponseError,
            RerankError,
            asyncio.TimeoutError,
            ValueError,
        ) as e:
            logger.warning(f"Rerank failed, keeping fused order: {e}")
            return candidates

        reranked = blend_rerank_scores(
            candidates, scores, head_size, rerank_weight=self._rerank_weight
        )

        if logger.isEnabledFor(logging.DEBUG):
            top_scores = ", ".join(f"{r.score:.2f}" for r in reranked[:3])
            logger.debug(f"Reranker top-3 scores: [{top_scores}]")

        return reranked

    async def _post(self, payload: dict[str, Any]) -> dict[str, Any]:
        async with self._semaphore:
            response = await self.client.post(
                f"{self._base_url}/rerank",
                json=payload,
                headers={"Authorization": f"Bearer {self._api_key}"},
            )
        response.raise_for_status()
        return response.json()

    @staticmethod
    def _parse(data: Any, head_size: int) -> dict[int, float]:
        items = data.get("data") if isinstance(data, dict) else None
        if not isinstance(items, list):
            raise ProviderResponseError("Rerank response has no data list")

        scores: dict[int, float] = {}
        for item in items:
            if not isinstance(item, dict):
                raise ProviderResponseError("Malformed rerank item")
            index = item.get("index")
            score = item.get("relevance_score", item.get("relevanceScore"))
            if not isinstance(index, int) or not 0 <= index < head_size:
                raise ProviderResponseError(f"Rerank index out of range: {index}")
            if not isinstance(score, (int, float)):
                raise ProviderResponseError(f"Rerank score missing for index {index}")
            scores[index] = float(score)
        return scores
