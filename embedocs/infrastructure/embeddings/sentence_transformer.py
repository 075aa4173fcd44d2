import asyncio
import logging
from functools import cached_property

import numpy as np
from sentence_transformers import SentenceTransformer

from embedocs.core.exceptions import EmbeddingError
from embedocs.core.models.document import EmbeddingResult

logger = logging.getLogger(__name__)


class SentenceTransformerEmbedder:
    """Local embedder for e5-style models.

    e5 models are asymmetric through text prefixes: documents are embedded
    as "passage: ..." and queries as "query: ...".
    """

    DOCUMENT_PREFIX = "passage: "
    QUERY_PREFIX = "query: "

    def __init__(
        self,
        model_name: str = "intfloat/multilingual-e5-base",
        batch_size: int = 32,
    ):
        self._model_name = model_name
        self._batch_size = batch_size

    @property
    def model_name(self) -> str:
        return self._model_name

    @cached_property
    def model(self) -> SentenceTransformer:
        logger.info(f"Loading embedding model: {self._model_name}")
        return SentenceTransformer(self._model_name)

    def warmup(self) -> None:
        _ = self.model
        logger.info("Embedding model warmed up")

    async def embed_documents(self, texts: list[str]) -> list[EmbeddingResult]:
        if not texts:
            return []
        return await self._embed([f"{self.DOCUMENT_PREFIX}{t}" for t in texts])

    async def embed_query(self, text: str) -> EmbeddingResult:
        results = await self._embed([f"{self.QUERY_PREFIX}{text}"])
        return results[0]

    async def _embed(self, texts: list[str]) -> list[EmbeddingResult]:
        try:
            vectors = await asyncio.to_thread(self._encode, texts)
        except (RuntimeError, ValueError, OSError) as e:
            raise EmbeddingError(f"Local embedding failed: {e}") from e

        return [
            EmbeddingResult(
                embedding=vector.tolist(),
                dimensions=int(vector.shape[0]),
                model=self._model_name,
            )
            for vector in vectors
        ]

    def _encode(self, texts: list[str]) -> np.ndarray:
        return self.model.encode(
            texts,
            batch_size=self._batch_size,
            convert_to_numpy=True,
            normalize_embeddings=True,
        )
