"""Result assembler - groups chunk hits into document results."""

import logging
from typing import TypeVar

from ..models.search import ChunkMatch, ScoredChunk, SearchResult

logger = logging.getLogger(__name__)

T = TypeVar("T")

CHUNKS_PER_DOCUMENT = 3


def reorder_lost_in_middle(items: list[T]) -> list[T]:
    """Reorder a best-first list so the strongest items sit at both ends.

    [d1, d2, d3, d4, d5] -> [d1, d3, d4, d5, d2]
    """
    if len(items) < 3:
        return list(items)
    return [items[0]] + items[2:] + [items[1]]


class ResultAssembler:
    """Group chunk candidates by document and order the documents."""

    def __init__(self, chunks_per_document: int = CHUNKS_PER_DOCUMENT):
        self._chunks_per_document = chunks_per_document

    def assemble(
        self,
        candidates: list[ScoredChunk],
        limit: int,
        reorder: bool = True,
        rank_by_score: bool = True,
    ) -> list[SearchResult]:
        """Build document-level results.

        Documents are ranked by their best chunk, truncated to limit and
        then reordered for lost-in-the-middle.

        Args:
            candidates: Fused or reranked chunk candidates.
            limit: Maximum number of documents.
            reorder: Apply the lost-in-the-middle ordering.
            rank_by_score: Sort documents by best chunk score. When False,
                documents keep the order of their first candidate.

        Returns:
            One SearchResult per document.
        """
        if limit <= 0 or not candidates:
            return []

        groups: dict[str, list[ScoredChunk]] = {}
        for candidate in candidates:
            groups.setdefault(candidate.document_id, []).append(candidate)

        results = [self._build_result(doc_id, hits) for doc_id, hits in groups.items()]
        if rank_by_score:
            results.sort(key=lambda r: r.max_score, reverse=True)
        results = results[:limit]

        if reorder:
            results = reorder_lost_in_middle(results)

        logger.debug(
            f"Assembled {len(results)} documents from {len(candidates)} chunks"
        )
        return results

    def _build_result(self, document_id: str, hits: list[ScoredChunk]) -> SearchResult:
        ranked = sorted(hits, key=lambda c: c.score, reverse=True)

        provenance = ranked[0].provenance
        for hit in ranked[1:]:
            provenance = provenance.merge(hit.provenance)

        document = next((h.metadata.document for h in ranked if h.metadata.document), None)

        return SearchResult(
            document_id=document_id,
            chunks=[
                ChunkMatch(
                    content=hit.content,
                    score=hit.score,
                    chunk_index=hit.metadata.chunk_index,
                    section_title=hit.metadata.section_title,
                )
                for hit in ranked[: self._chunks_per_document]
            ],
            metadata=document,
            max_score=ranked[0].score,
            provenance=provenance,
        )
