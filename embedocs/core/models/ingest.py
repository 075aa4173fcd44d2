"""Ingest domain models."""
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class RefreshMode(str, Enum):
    INCREMENTAL = "incremental"
    FULL = "full"


class IngestStage(str, Enum):
    """Stages reported on the ingest event stream."""
    SCAN = "scan"
    CHUNK = "chunk"
    EMBED = "embed"
    DELETE = "delete"
    ERROR = "error"
    DONE = "done"


@dataclass
class RefreshResult:
    """Outcome of an index refresh."""
    documents_checked: int = 0
    new_documents: int = 0
    documents_updated: int = 0
    deleted_documents: int = 0
    chunks_indexed: int = 0
    errors: list[dict] = field(default_factory=list)


@dataclass
class IngestEvent:
    """Progress event emitted by the ingest service."""
    stage: IngestStage
    processed: int = 0
    total: int = 0
    document_id: Optional[str] = None
    message: str = ""
    result: Optional[RefreshResult] = None
