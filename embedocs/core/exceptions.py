"""
Exception hierarchy for embedocs.

Every error carries a message plus an optional details dict so that callers
at the tool boundary can log context and still print a readable message.
"""

from typing import Any


class EmbedocsError(Exception):
    """Base exception for all embedocs errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Initialize base exception.

        Args:
            message: Human-readable error message.
            details: Optional context for debugging.
        """
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class EmbeddingError(EmbedocsError):
    """Embedding provider call failed after retries or with a fatal error."""


class OversizedInputError(EmbeddingError):
    """Text exceeds the embedding provider's hard token limit.

    Raised before any request is made; chunks must be split upstream.
    """

    def __init__(self, index: int, token_count: int, limit: int) -> None:
        super().__init__(
            f"Input {index} has {token_count} tokens, provider limit is {limit}",
            details={"index": index, "token_count": token_count, "limit": limit},
        )


class ProviderResponseError(EmbedocsError):
    """Provider answered with a payload we cannot interpret."""


class RerankError(EmbedocsError):
    """Reranker call failed."""


class VectorStoreError(EmbedocsError):
    """Index query or write failed."""


class SearchError(EmbedocsError):
    """Every retrieval channel failed for a query."""
