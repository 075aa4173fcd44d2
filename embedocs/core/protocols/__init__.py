"""Protocol interfaces for dependency injection."""
from .embedder import EmbedderProtocol
from .vector_store import MetadataFilter, VectorStoreProtocol
from .reranker import RerankerProtocol
from .tokenizer import TokenizerProtocol

__all__ = [
    "EmbedderProtocol",
    "MetadataFilter",
    "VectorStoreProtocol",
    "RerankerProtocol",
    "TokenizerProtocol",
]
