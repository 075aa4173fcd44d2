"""Tokenizer protocol for dependency injection."""
from typing import Protocol, runtime_checkable


@runtime_checkable
class TokenizerProtocol(Protocol):
    """Protocol for token counting."""

    def count(self, text: str) -> int:
        """Number of tokens in text."""
        ...
