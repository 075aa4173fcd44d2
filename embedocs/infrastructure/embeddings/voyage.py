import asyncio
import logging
from typing import Any, Optional

import httpx
import numpy as np

from embedocs.core.exceptions import (
    EmbeddingError,
    OversizedInputError,
    ProviderResponseError,
)
from embedocs.core.models.document import EmbeddingResult
from embedocs.core.protocols.tokenizer import TokenizerProtocol
from embedocs.core.retry import RetryPolicy

logger = logging.getLogger(__name__)


def normalize(vector: list[float]) -> list[float]:
    """L2-normalize a vector; zero vectors are returned as is."""
    array = np.asarray(vector, dtype=float)
    norm = np.linalg.norm(array)
    if norm == 0:
        return array.tolist()
    return (array / norm).tolist()


class VoyageEmbedder:
    """Embedding client for Voyage-compatible HTTP APIs.

    Documents are always sent with input_type "document" and queries with
    "query"; callers cannot mix the two spaces.
    """

    def __init__(
        self,
        api_key: str,
        model: str = "voyage-3",
        base_url: str = "https://api.voyageai.com/v1",
        dimensions: Optional[int] = 1024,
        batch_size: int = 32,
        max_tokens: int = 8000,
        timeout: float = 30.0,
        retry_policy: Optional[RetryPolicy] = None,
        semaphore: Optional[asyncio.Semaphore] = None,
        tokenizer: Optional[TokenizerProtocol] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """Initialize embedder.

        Args:
            api_key: Provider API key.
            model: Embedding model name.
            base_url: API base URL.
            dimensions: Requested output dimension, None for model default.
            batch_size: Maximum texts per request.
            max_tokens: Provider hard limit per input.
            timeout: Request timeout in seconds.
            retry_policy: Retry policy for transient failures.
            semaphore: Limiter shared by every outbound provider call.
            tokenizer: Token counter used to reject oversized inputs.
            client: HTTP client; created lazily when omitted.
        """
        self._api_key = api_key
        self._model = model
        self._base_url = base_url.rstrip("/")
        self._dimensions = dimensions
        self._batch_size = batch_size
        self._max_tokens = max_tokens
        self._timeout = timeout
        self._retry = retry_policy or RetryPolicy()
        self._semaphore = semaphore or asyncio.Semaphore(4)
        self._tokenizer = tokenizer
        self._client = client

    @property
    def model_name(self) -> str:
        return self._model

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()

    async def embed_documents(self, texts: list[str]) -> list[EmbeddingResult]:
        """Embed chunk texts for indexing."""
        return await self._embed(texts, "document")

    async def embed_query(self, text: str) -> EmbeddingResult:
        """Embed a search query."""
        results = await self._embed([text], "query")
        return results[0]

    async def _embed(self, texts: list[str], input_type: str) -> list[EmbeddingResult]:
        if not texts:
            return []
        self._check_sizes(texts)

        batches = [
            texts[i : i + self._batch_size]
            for i in range(0, len(texts), self._batch_size)
        ]
        outcomes = await asyncio.gather(
            *(self._embed_batch(batch, input_type) for batch in batches)
        )
        return [result for batch in outcomes for result in batch]

    def _check_sizes(self, texts: list[str]) -> None:
        if self._tokenizer is None:
            return
        for index, text in enumerate(texts):
            tokens = self._tokenizer.count(text)
            if tokens > self._max_tokens:
                raise OversizedInputError(index, tokens, self._max_tokens)

    async def _embed_batch(self, texts: list[str], input_type: str) -> list[EmbeddingResult]:
        payload: dict[str, Any] = {
            "input": texts,
            "model": self._model,
            "input_type": input_type,
        }
        if self._dimensions:
            payload["output_dimension"] = self._dimensions

        try:
            data = await self._retry.call(self._post, payload)
            vectors = self._parse(data, len(texts))
        except (httpx.HTTPError, ProviderResponseError, asyncio.TimeoutError, ValueError) as e:
            logger.error(f"Embedding request failed ({len(texts)} {input_type} texts): {e}")
            raise EmbeddingError(
                f"Embedding failed: {e}",
                {"model": self._model, "input_type": input_type, "batch": len(texts)},
            ) from e

        return [
            EmbeddingResult(
                embedding=normalize(vector),
                dimensions=len(vector),
                model=self._model,
            )
            for vector in vectors
        ]

    async def _post(self, payload: dict[str, Any]) -> dict[str, Any]:
        async with self._semaphore:
            response = await self.client.post(
                f"{self._base_url}/embeddings",
                json=payload,
                headers={"Authorization": f"Bearer {self._api_key}"},
            )
        response.raise_for_status()
        return response.json()

    @staticmethod
    def _parse(data: Any, expected: int) -> list[list[float]]:
        items = data.get("data") if isinstance(data, dict) else None
        if not isinstance(items, list) or len(items) != expected:
            raise ProviderResponseError(
                "Unexpected embedding response",
                {"expected": expected, "received": len(items) if isinstance(items, list) else None},
            )

        if all(isinstance(item, dict) and "index" in item for item in items):
            items = sorted(items, key=lambda item: item["index"])

        vectors = []
        for item in items:
            embedding = item.get("embedding") if isinstance(item, dict) else None
            if not isinstance(embedding, list) or not embedding:
                raise ProviderResponseError("Embedding missing from response item")
            if not all(isinstance(v, (int, float)) and not isinstance(v, bool) for v in embedding):
                raise ProviderResponseError("Embedding contains non-numeric values")
            vectors.append([float(v) for v in embedding])
        return vectors
