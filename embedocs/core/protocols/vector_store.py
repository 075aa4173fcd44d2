"""Vector store protocol for dependency injection."""
from typing import Any, Optional, Protocol, Sequence, runtime_checkable

from ..models.document import Chunk, IndexedRecord
from ..models.search import IndexStats, ScoredChunk

# Equality per key; a list or tuple value means "any of".
MetadataFilter = dict[str, Any]


@runtime_checkable
class VectorStoreProtocol(Protocol):
    """Protocol for the vector + text index."""

    async def upsert(self, records: list[IndexedRecord]) -> int:
        """Insert or replace records keyed by their id.

        Args:
            records: Records to write.

        Returns:
            Number of records written.
        """
        ...

    async def vector_search(
        self,
        query_vector: list[float],
        limit: int = 20,
        num_candidates: int = 150,
        filter: Optional[MetadataFilter] = None,
        include_embeddings: bool = False,
    ) -> list[ScoredChunk]:
        """Approximate nearest-neighbor search.

        Args:
            query_vector: Normalized query embedding.
            limit: Number of results to return.
            num_candidates: ANN candidate pool size.
            filter: Optional metadata filter.
            include_embeddings: Attach stored vectors to results.

        Returns:
            Results ranked by similarity, best first.
        """
        ...

    async def text_search(
        self,
        query: str,
        limit: int = 20,
        paths: Sequence[str] = ("content", "title"),
        max_edits: int = 2,
        prefix_length: int = 3,
        filter: Optional[MetadataFilter] = None,
    ) -> list[ScoredChunk]:
        """Token/fuzzy text search.

        Args:
            query: Query string.
            limit: Number of results to return.
            paths: Fields to search.
            max_edits: Fuzzy edit distance.
            prefix_length: Leading characters that must match exactly.
            filter: Optional metadata filter.

        Returns:
            Results ranked by text relevance, best first.
        """
        ...

    async def delete_documents(self, document_ids: list[str]) -> int:
        """Delete every record of the given documents."""
        ...

    async def document_chunks(self, document_id: str) -> list[Chunk]:
        """Every chunk of one document, ordered by chunk index."""
        ...

    async def document_hashes(self) -> dict[str, str]:
        """Map of indexed document id to its content hash."""
        ...

    async def stats(self) -> IndexStats:
        """Index statistics."""
        ...
