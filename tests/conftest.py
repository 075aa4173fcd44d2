"""
Shared test fixtures.

Provides: whitespace tokenizer, deterministic embedder, in-memory index,
sample documents and chunk factories.
"""

import hashlib
from typing import Optional

import numpy as np
import pytest

from embedocs.core.exceptions import EmbeddingError
from embedocs.core.models.document import (
    ChunkMetadata,
    ContentType,
    Document,
    DocumentMetadata,
    EmbeddingResult,
)
from embedocs.core.models.search import Provenance, ScoredChunk
from embedocs.infrastructure.vector_stores.memory_store import MemoryVectorStore


class WordTokenizer:
    """Counts whitespace-separated words."""

    def count(self, text: str) -> int:
        return len(text.split())


class FakeEmbedder:
    """Deterministic bag-of-words embedder.

    Each word hashes to a bucket, so texts sharing words get similar
    vectors. Calls are recorded per input type.
    """

    def __init__(self, dimensions: int = 256, fail_queries: bool = False):
        self.dimensions = dimensions
        self.fail_queries = fail_queries
        self.document_calls: list[list[str]] = []
        self.query_calls: list[str] = []

    @property
    def model_name(self) -> str:
        return "fake-embedder"

    def vector(self, text: str) -> list[float]:
        vector = np.zeros(self.dimensions)
        for word in text.lower().split():
            word = word.strip(".,!?:;()`#\"'")
            if not word:
                continue
            bucket = int(hashlib.md5(word.encode()).hexdigest(), 16) % self.dimensions
            vector[bucket] += 1.0
        norm = np.linalg.norm(vector)
        if norm > 0:
            vector = vector / norm
        return vector.tolist()

    async def embed_documents(self, texts: list[str]) -> list[EmbeddingResult]:
        self.document_calls.append(list(texts))
        return [
            EmbeddingResult(self.vector(t), self.dimensions, self.model_name)
            for t in texts
        ]

    async def embed_query(self, text: str) -> EmbeddingResult:
        self.query_calls.append(text)
        if self.fail_queries:
            raise EmbeddingError("query embedding unavailable")
        return EmbeddingResult(self.vector(text), self.dimensions, self.model_name)


def make_chunk(
    record_id: str,
    score: float = 1.0,
    document_id: Optional[str] = None,
    content: Optional[str] = None,
    provenance: Provenance = Provenance.VECTOR,
    content_type: ContentType = ContentType.CONCEPTUAL,
    product: str = "docs",
    chunk_index: int = 0,
    embedding: Optional[list[float]] = None,
    vector_score: Optional[float] = None,
) -> ScoredChunk:
    """Build a ScoredChunk for ranking tests."""
    document_id = document_id or f"doc-{record_id}"
    return ScoredChunk(
        record_id=record_id,
        content=content or f"content of {record_id}",
        metadata=ChunkMetadata(
            document_id=document_id,
            chunk_index=chunk_index,
            token_count=3,
            has_code=False,
            content_type=content_type,
            content_hash=record_id,
            document=DocumentMetadata(
                path=f"{document_id}.md", product=product, title=f"Title {document_id}"
            ),
        ),
        score=score,
        provenance=provenance,
        vector_score=vector_score,
        embedding=embedding,
    )


def make_document(
    doc_id: str, content: str, product: str = "docs", title: str = ""
) -> Document:
    return Document(
        id=doc_id,
        content=content,
        metadata=DocumentMetadata(
            path=doc_id, product=product, title=title or doc_id, url=f"https://docs.example.com/{doc_id}"
        ),
    )


@pytest.fixture
def tokenizer() -> WordTokenizer:
    """Provide whitespace tokenizer."""
    return WordTokenizer()


@pytest.fixture
def embedder() -> FakeEmbedder:
    """Provide deterministic fake embedder."""
    return FakeEmbedder()


@pytest.fixture
def memory_store() -> MemoryVectorStore:
    """Provide empty in-memory index."""
    return MemoryVectorStore()


@pytest.fixture
def sample_documents() -> list[Document]:
    """Provide a small documentation corpus."""
    return [
        make_document(
            "crud/insert.md",
            "# Insert Documents\n\n"
            "Use insertOne to add a single document to a collection. "
            "Use insertMany to add several documents in one call. "
            "The driver returns the generated identifiers.\n\n"
            "```javascript\ndb.users.insertOne({ name: 'Ada' })\n```\n",
            product="crud",
            title="Insert Documents",
        ),
        make_document(
            "aggregation/group.md",
            "# Group Stage\n\n"
            "The group stage combines documents by a key. "
            "Accumulators such as sum and avg compute values per group. "
            "Use it inside an aggregation pipeline.\n",
            product="aggregation",
            title="Group Stage",
        ),
        make_document(
            "indexes/ttl.md",
            "# TTL Indexes\n\n"
            "A time to live index removes documents after a period of time. "
            "Create the index on a date field. "
            "Expired documents are deleted by a background task.\n",
            product="indexes",
            title="TTL Indexes",
        ),
        make_document(
            "README.md",
            "# Contributing\n\n"
            "Read the contributing guide before opening a pull request. "
            "All changes need a review from the documentation team. "
            "Insert your name in the authors file.\n",
            title="Contributing",
        ),
    ]
