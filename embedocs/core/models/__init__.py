"""Domain models."""
from .document import (
    Chunk,
    ChunkMetadata,
    ContentType,
    Document,
    DocumentMetadata,
    EmbeddingResult,
    IndexedRecord,
    QualityScore,
)
from .ingest import IngestEvent, IngestStage, RefreshMode, RefreshResult
from .search import (
    ChunkMatch,
    DocumentContext,
    IndexStats,
    Provenance,
    ScoredChunk,
    SearchResponse,
    SearchResult,
)

__all__ = [
    "Chunk",
    "ChunkMetadata",
    "ContentType",
    "Document",
    "DocumentMetadata",
    "EmbeddingResult",
    "IndexedRecord",
    "QualityScore",
    "IngestEvent",
    "IngestStage",
    "RefreshMode",
    "RefreshResult",
    "ChunkMatch",
    "DocumentContext",
    "IndexStats",
    "Provenance",
    "ScoredChunk",
    "SearchResponse",
    "SearchResult",
]
