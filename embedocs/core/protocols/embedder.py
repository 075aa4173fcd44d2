"""Embedder protocol for dependency injection."""
from typing import Protocol, runtime_checkable

from ..models.document import EmbeddingResult


@runtime_checkable
class EmbedderProtocol(Protocol):
    """Protocol for embedding service.

    Document and query embeddings live in different spaces, so callers pick
    the space by method and never pass an input type themselves.
    """

    @property
    def model_name(self) -> str:
        """Embedding model identifier stored alongside indexed records."""
        ...

    async def embed_documents(self, texts: list[str]) -> list[EmbeddingResult]:
        """Embed texts for indexing.

        Args:
            texts: Chunk texts, each within the provider's token limit.

        Returns:
            One L2-normalized result per text, in input order.
        """
        ...

    async def embed_query(self, text: str) -> EmbeddingResult:
        """Embed a search query.

        Args:
            text: Query text.

        Returns:
            L2-normalized query embedding.
        """
        ...
