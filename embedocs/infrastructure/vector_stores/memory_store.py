import logging
from collections import Counter
from typing import Optional, Sequence

import numpy as np

from embedocs.core.models.document import Chunk, IndexedRecord
from embedocs.core.models.search import IndexStats, Provenance, ScoredChunk
from embedocs.core.protocols.vector_store import MetadataFilter

from .filters import matches_filter
from .text_scoring import score_texts

logger = logging.getLogger(__name__)


class MemoryVectorStore:
    """In-process vector + text index.

    Exact cosine search over all records and fuzzy BM25 text search. Used
    for local runs and tests.
    """

    def __init__(self):
        self._records: dict[str, IndexedRecord] = {}

    def __len__(self) -> int:
        return len(self._records)

    async def upsert(self, records: list[IndexedRecord]) -> int:
        for record in records:
            self._records[record.id] = record
        logger.debug(f"Upserted {len(records)} records ({len(self._records)} total)")
        return len(records)

    async def vector_search(
        self,
        query_vector: list[float],
        limit: int = 20,
        num_candidates: int = 150,
        filter: Optional[MetadataFilter] = None,
        include_embeddings: bool = False,
    ) -> list[ScoredChunk]:
        records = self._filtered(filter)
        if not records or limit <= 0:
            return []

        matrix = np.asarray([r.embedding for r in records], dtype=float)
        norms = np.linalg.norm(matrix, axis=1)
        norms[norms == 0] = 1.0
        query = np.asarray(query_vector, dtype=float)
        query_norm = np.linalg.norm(query)
        if query_norm > 0:
            query = query / query_norm

        similarities = (matrix @ query) / norms
        order = np.argsort(-similarities, kind="stable")[:limit]

        return [
            ScoredChunk(
                record_id=records[i].id,
                content=records[i].content,
                metadata=records[i].metadata,
                score=float(similarities[i]),
                provenance=Provenance.VECTOR,
                vector_score=float(similarities[i]),
                embedding=list(records[i].embedding) if include_embeddings else None,
            )
            for i in order
        ]

    async def text_search(
        self,
        query: str,
        limit: int = 20,
        paths: Sequence[str] = ("content", "title"),
        max_edits: int = 2,
        prefix_length: int = 3,
        filter: Optional[MetadataFilter] = None,
    ) -> list[ScoredChunk]:
        records = self._filtered(filter)
        if not records or not query.strip() or limit <= 0:
            return []

        texts = [self._searchable_text(r, paths) for r in records]
        scores = score_texts(query, texts, max_edits, prefix_length)

        ranked = sorted(
            (i for i, score in enumerate(scores) if score > 0),
            key=lambda i: scores[i],
            reverse=True,
        )[:limit]

        return [
            ScoredChunk(
                record_id=records[i].id,
                content=records[i].content,
                metadata=records[i].metadata,
                score=scores[i],
                provenance=Provenance.KEYWORD,
                keyword_score=scores[i],
            )
            for i in ranked
        ]

    async def delete_documents(self, document_ids: list[str]) -> int:
        targets = set(document_ids)
        doomed = [
            record_id
            for record_id, record in self._records.items()
            if record.metadata.document_id in targets
        ]
        for record_id in doomed:
            del self._records[record_id]
        return len(doomed)

    async def document_chunks(self, document_id: str) -> list[Chunk]:
        records = [
            r for r in self._records.values() if r.metadata.document_id == document_id
        ]
        records.sort(key=lambda r: r.metadata.chunk_index)
        return [Chunk(content=r.content, metadata=r.metadata) for r in records]

    async def document_hashes(self) -> dict[str, str]:
        return {
            record.metadata.document_id: record.document_hash
            for record in self._records.values()
        }

    async def stats(self) -> IndexStats:
        products: dict[str, str] = {}
        models: list[str] = []
        for record in self._records.values():
            products[record.metadata.document_id] = record.metadata.product
            if record.embedding_model not in models:
                models.append(record.embedding_model)

        return IndexStats(
            document_count=len(products),
            record_count=len(self._records),
            product_breakdown=dict(Counter(products.values())),
            embedding_models=models,
        )

    def _filtered(self, filter: Optional[MetadataFilter]) -> list[IndexedRecord]:
        if not filter:
            return list(self._records.values())
        return [r for r in self._records.values() if matches_filter(r.flat_metadata(), filter)]

    @staticmethod
    def _searchable_text(record: IndexedRecord, paths: Sequence[str]) -> str:
        parts = []
        flat = None
        for path in paths:
            if path == "content":
                parts.append(record.content)
            elif path == "title":
                parts.append(record.metadata.title)
            elif path == "section_title":
                parts.append(record.metadata.section_title)
            else:
                flat = flat or record.flat_metadata()
                parts.append(str(flat.get(path, "")))
        return "\n".join(p for p in parts if p)
