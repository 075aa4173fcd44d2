"""Core business services."""
from .chunker import Chunker, ChunkOptions
from .query_expander import QueryExpander
from .result_assembler import ResultAssembler
from .search_service import SearchService
from .ingest_service import IngestService

__all__ = [
    "Chunker",
    "ChunkOptions",
    "QueryExpander",
    "ResultAssembler",
    "SearchService",
    "IngestService",
]
