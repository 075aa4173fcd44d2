"""Search domain models."""
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from .document import ChunkMetadata, DocumentMetadata


class Provenance(str, Enum):
    """Which retrieval channel produced a hit."""
    VECTOR = "vector"
    KEYWORD = "keyword"
    BOTH = "both"

    def merge(self, other: "Provenance") -> "Provenance":
        return self if self is other else Provenance.BOTH


@dataclass
class ScoredChunk:
    """Chunk-level candidate flowing through fusion, MMR and reranking."""
    record_id: str
    content: str
    metadata: ChunkMetadata
    score: float
    provenance: Provenance
    vector_score: Optional[float] = None
    keyword_score: Optional[float] = None
    rerank_score: Optional[float] = None
    embedding: Optional[list[float]] = None

    @property
    def document_id(self) -> str:
        return self.metadata.document_id


@dataclass
class ChunkMatch:
    """Representative excerpt of a matched document."""
    content: str
    score: float
    chunk_index: int
    section_title: str = ""


@dataclass
class SearchResult:
    """Document-level search result."""
    document_id: str
    chunks: list[ChunkMatch]
    metadata: Optional[DocumentMetadata]
    max_score: float
    provenance: Provenance

    @property
    def title(self) -> str:
        if self.metadata and self.metadata.title:
            return self.metadata.title
        return self.document_id


@dataclass
class SearchResponse:
    """Search response for the presentation layer."""
    query: str
    results: list[SearchResult]
    expanded_queries: list[str] = field(default_factory=list)
    suggestions: list[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.results


@dataclass
class IndexStats:
    """Index statistics."""
    document_count: int
    record_count: int
    product_breakdown: dict[str, int]
    configured_model: str = ""
    embedding_models: list[str] = field(default_factory=list)


@dataclass
class DocumentContext:
    """Whole document rebuilt from its indexed chunks."""
    document_id: str
    content: str
    chunk_count: int
    metadata: Optional[DocumentMetadata] = None
    overlap_removed: bool = False

    @property
    def title(self) -> str:
        if self.metadata and self.metadata.title:
            return self.metadata.title
        return self.document_id
