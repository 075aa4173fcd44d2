"""Document domain models."""
import hashlib
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

DOCUMENT_KEYS = ("path", "product", "title", "url", "version", "language")
RECORD_KEYS = ("document_hash", "embedding_model", "indexed_at")


def content_hash(text: str, length: int = 16) -> str:
    """Stable hex digest of text."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()[:length]


def make_record_id(document_id: str, chunk_hash: str) -> str:
    """Stable record key derived from source id and chunk text hash."""
    return hashlib.sha256(f"{document_id}\x00{chunk_hash}".encode("utf-8")).hexdigest()[:32]


class ContentType(str, Enum):
    """Content-quality classification."""
    TECHNICAL = "technical"
    CONCEPTUAL = "conceptual"
    META = "meta"
    EXAMPLE = "example"


@dataclass(frozen=True)
class DocumentMetadata:
    """Source metadata of a fetched document."""
    path: str
    product: str
    title: str
    url: str = ""
    version: Optional[str] = None
    language: Optional[str] = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        data = {key: getattr(self, key) for key in DOCUMENT_KEYS}
        data.update(self.extra)
        return {k: v for k, v in data.items() if v is not None}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DocumentMetadata":
        return cls(
            path=str(data.get("path", "")),
            product=str(data.get("product", "")),
            title=str(data.get("title", "")),
            url=str(data.get("url", "")),
            version=data.get("version"),
            language=data.get("language"),
        )


@dataclass(frozen=True)
class Document:
    """Raw text plus source metadata. Consumed once by the chunker."""
    id: str
    content: str
    metadata: DocumentMetadata

    @property
    def content_hash(self) -> str:
        return content_hash(self.content, length=64)


@dataclass
class QualityScore:
    """Output of the content quality scorer."""
    score: float
    content_type: ContentType
    boost_factor: float
    reasons: list[str] = field(default_factory=list)


@dataclass
class ChunkMetadata:
    """Per-chunk metadata; required fields are typed, the rest go to extra."""
    document_id: str
    chunk_index: int
    token_count: int
    has_code: bool
    content_type: ContentType
    content_hash: str
    section_title: str = ""
    section_level: int = 0
    quality_score: float = 0.5
    boost_factor: float = 1.0
    document: Optional[DocumentMetadata] = None
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def product(self) -> str:
        return self.document.product if self.document else ""

    @property
    def title(self) -> str:
        return self.document.title if self.document else ""

    def to_dict(self) -> dict[str, Any]:
        """Flatten to scalar key/values for storage."""
        data: dict[str, Any] = dict(self.extra)
        if self.document:
            data.update(self.document.to_dict())
        data.update(
            {
                "document_id": self.document_id,
                "chunk_index": self.chunk_index,
                "token_count": self.token_count,
                "has_code": self.has_code,
                "content_type": self.content_type.value,
                "content_hash": self.content_hash,
                "section_title": self.section_title,
                "section_level": self.section_level,
                "quality_score": self.quality_score,
                "boost_factor": self.boost_factor,
            }
        )
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ChunkMetadata":
        known = set(DOCUMENT_KEYS) | set(RECORD_KEYS) | {
            "document_id",
            "chunk_index",
            "token_count",
            "has_code",
            "content_type",
            "content_hash",
            "section_title",
            "section_level",
            "quality_score",
            "boost_factor",
        }
        document = None
        if any(key in data for key in DOCUMENT_KEYS):
            document = DocumentMetadata.from_dict(data)

        return cls(
            document_id=str(data.get("document_id", "")),
            chunk_index=int(data.get("chunk_index", 0)),
            token_count=int(data.get("token_count", 0)),
            has_code=bool(data.get("has_code", False)),
            content_type=ContentType(data.get("content_type", ContentType.CONCEPTUAL.value)),
            content_hash=str(data.get("content_hash", "")),
            section_title=str(data.get("section_title", "")),
            section_level=int(data.get("section_level", 0)),
            quality_score=float(data.get("quality_score", 0.5)),
            boost_factor=float(data.get("boost_factor", 1.0)),
            document=document,
            extra={k: v for k, v in data.items() if k not in known},
        )


@dataclass
class Chunk:
    """Retrieval unit: bounded text plus derived metadata."""
    content: str
    metadata: ChunkMetadata

    @property
    def record_id(self) -> str:
        return make_record_id(self.metadata.document_id, self.metadata.content_hash)


@dataclass
class EmbeddingResult:
    """L2-normalized embedding vector."""
    embedding: list[float]
    dimensions: int
    model: str


@dataclass
class IndexedRecord:
    """Persisted chunk: content, vector and metadata keyed by a stable id."""
    id: str
    content: str
    embedding: list[float]
    metadata: ChunkMetadata
    embedding_model: str
    document_hash: str
    indexed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def from_chunk(
        cls,
        chunk: Chunk,
        embedding: EmbeddingResult,
        document_hash: str,
    ) -> "IndexedRecord":
        return cls(
            id=chunk.record_id,
            content=chunk.content,
            embedding=embedding.embedding,
            metadata=chunk.metadata,
            embedding_model=embedding.model,
            document_hash=document_hash,
        )

    def flat_metadata(self) -> dict[str, Any]:
        data = self.metadata.to_dict()
        data["document_hash"] = self.document_hash
        data["embedding_model"] = self.embedding_model
        data["indexed_at"] = self.indexed_at.isoformat()
        return data
