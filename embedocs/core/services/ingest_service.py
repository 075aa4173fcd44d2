"""Ingest service - document indexing with incremental refresh."""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import AsyncIterator, Optional

from ..exceptions import EmbeddingError, VectorStoreError
from ..models.document import Chunk, Document, EmbeddingResult, IndexedRecord
from ..models.ingest import IngestEvent, IngestStage, RefreshMode, RefreshResult
from ..protocols.embedder import EmbedderProtocol
from ..protocols.vector_store import VectorStoreProtocol
from ..strategies.quality import ContentQualityScorer
from .chunker import Chunker, ChunkOptions

logger = logging.getLogger(__name__)


@dataclass
class _PendingChunk:
    chunk: Chunk
    document_hash: str


class IngestService:
    """Service for indexing documents into the vector store."""

    def __init__(
        self,
        embedder: EmbedderProtocol,
        vector_store: VectorStoreProtocol,
        chunker: Chunker,
        scorer: Optional[ContentQualityScorer] = None,
        docs_path: str = "./docs",
        docs_base_url: str = "",
        default_product: str = "docs",
        batch_size: int = 32,
        embedding_dimensions: int = 1024,
        chunk_options: Optional[ChunkOptions] = None,
    ):
        """Initialize ingest service.

        Args:
            embedder: Embedding service.
            vector_store: Vector store.
            chunker: Document chunker.
            scorer: Content quality scorer.
            docs_path: Path to documents folder.
            docs_base_url: URL prefix for document links.
            default_product: Product tag for top-level files.
            batch_size: Chunks per embedding request and upsert.
            embedding_dimensions: Vector size used for zero-vector fallback.
            chunk_options: Chunk size overrides.
        """
        self._embedder = embedder
        self._vector_store = vector_store
        self._chunker = chunker
        self._scorer = scorer or ContentQualityScorer()
        self._docs_path = Path(docs_path)
        self._docs_base_url = docs_base_url
        self._default_product = default_product
        self._batch_size = batch_size
        self._embedding_dimensions = embedding_dimensions
        self._chunk_options = chunk_options

        self._loader: Optional["CompositeLoader"] = None

    @property
    def loader(self):
        """Lazy load document loader."""
        if self._loader is None:
            from embedocs.infrastructure.document_loaders import CompositeLoader

            self._loader = CompositeLoader(
                default_product=self._default_product, base_url=self._docs_base_url
            )
        return self._loader

    def load_documents(self) -> list[Document]:
        """Load every supported document under the docs path."""
        return list(self.loader.load_directory(self._docs_path))

    def chunk_document(self, document: Document) -> list[Chunk]:
        """Score and chunk one document."""
        quality = self._scorer.score(document)
        return self._chunker.chunk(document, self._chunk_options, quality)

    async def refresh(
        self,
        mode: RefreshMode = RefreshMode.INCREMENTAL,
        documents: Optional[list[Document]] = None,
        allow_zero_vectors: bool = False,
    ) -> AsyncIterator[IngestEvent]:
        """Refresh the index and stream progress events.

        New documents are indexed, changed documents are replaced and
        vanished documents are deleted. FULL mode reindexes everything.

        Args:
            mode: Incremental or full refresh.
            documents: Documents to index instead of the docs path.
            allow_zero_vectors: Index zero vectors for failed embedding
                batches instead of skipping them.

        Yields:
            Progress events; the last one is DONE and carries the result.
        """
        result = RefreshResult()

        if documents is None:
            documents = self.load_documents()
        current = {doc.id: doc for doc in documents}
        result.documents_checked = len(current)

        try:
            indexed = await self._vector_store.document_hashes()
        except VectorStoreError as e:
            logger.error(f"Cannot read index state: {e}")
            result.errors.append({"stage": IngestStage.SCAN.value, "error": str(e)})
            yield IngestEvent(IngestStage.ERROR, message=str(e))
            yield IngestEvent(IngestStage.DONE, message="Refresh aborted", result=result)
            return

        if mode is RefreshMode.FULL:
            to_index = list(current.values())
            to_delete = list(indexed)
            result.new_documents = sum(1 for doc_id in current if doc_id not in indexed)
            result.documents_updated = len(current) - result.new_documents
        else:
            new_docs = [doc for doc_id, doc in current.items() if doc_id not in indexed]
            changed = [
                doc
                for doc_id, doc in current.items()
                if doc_id in indexed and indexed[doc_id] != doc.content_hash
            ]
            to_index = new_docs + changed
            to_delete = [doc.id for doc in changed]
            result.new_documents = len(new_docs)
            result.documents_updated = len(changed)

        vanished = [doc_id for doc_id in indexed if doc_id not in current]
        to_delete = list(dict.fromkeys(to_delete + vanished))
        result.deleted_documents = len(vanished)

        yield IngestEvent(
            IngestStage.SCAN,
            processed=len(to_index),
            total=len(current),
            message=(
                f"{result.new_documents} new, {result.documents_updated} changed, "
                f"{len(vanished)} removed"
            ),
        )

        if to_delete:
            try:
                await self._vector_store.delete_documents(to_delete)
                yield IngestEvent(
                    IngestStage.DELETE,
                    processed=len(to_delete),
                    total=len(to_delete),
                )
            except VectorStoreError as e:
                logger.error(f"Delete failed: {e}")
                result.errors.append({"stage": IngestStage.DELETE.value, "error": str(e)})
                yield IngestEvent(IngestStage.ERROR, message=str(e))

        pending: list[_PendingChunk] = []
        for i, document in enumerate(to_index, 1):
            chunks = self.chunk_document(document)
            pending.extend(_PendingChunk(c, document.content_hash) for c in chunks)
            yield IngestEvent(
                IngestStage.CHUNK,
                processed=i,
                total=len(to_index),
                document_id=document.id,
                message=f"{len(chunks)} chunks",
            )

        failed_documents: set[str] = set()
        for start in range(0, len(pending), self._batch_size):
            batch = pending[start : start + self._batch_size]
            batch_documents = {p.chunk.metadata.document_id for p in batch}

            try:
                embeddings = await self._embedder.embed_documents(
                    [p.chunk.content for p in batch]
                )
            except EmbeddingError as e:
                if not allow_zero_vectors:
                    logger.warning(
                        f"Skipping batch of {len(batch)} chunks after embedding failure: {e}"
                    )
                    failed_documents |= batch_documents
                    result.errors.append(
                        {
                            "stage": IngestStage.EMBED.value,
                            "documents": sorted(batch_documents),
                            "error": str(e),
                        }
                    )
                    yield IngestEvent(IngestStage.ERROR, message=str(e))
                    continue

                logger.warning(
                    f"Indexing {len(batch)} chunks with zero vectors after embedding failure: {e}"
                )
                embeddings = [self._zero_vector() for _ in batch]

            records = [
                IndexedRecord.from_chunk(p.chunk, embedding, p.document_hash)
                for p, embedding in zip(batch, embeddings)
            ]

            try:
                await self._vector_store.upsert(records)
            except VectorStoreError as e:
                logger.error(f"Upsert failed: {e}")
                failed_documents |= batch_documents
                result.errors.append(
                    {
                        "stage": IngestStage.EMBED.value,
                        "documents": sorted(batch_documents),
                        "error": str(e),
                    }
                )
                yield IngestEvent(IngestStage.ERROR, message=str(e))
                continue

            result.chunks_indexed += len(records)
            yield IngestEvent(
                IngestStage.EMBED,
                processed=min(start + len(batch), len(pending)),
                total=len(pending),
            )

        if failed_documents:
            # Partially indexed documents would look unchanged to the next refresh.
            try:
                await self._vector_store.delete_documents(sorted(failed_documents))
            except VectorStoreError as e:
                logger.error(f"Cleanup of failed documents failed: {e}")
                result.errors.append({"stage": IngestStage.DELETE.value, "error": str(e)})

        logger.info(
            f"Refresh complete: {result.chunks_indexed} chunks, "
            f"{result.new_documents} new, {result.documents_updated} updated, "
            f"{result.deleted_documents} deleted, {len(result.errors)} errors"
        )
        yield IngestEvent(
            IngestStage.DONE,
            processed=result.chunks_indexed,
            total=len(pending),
            result=result,
        )

    async def run(
        self,
        mode: RefreshMode = RefreshMode.INCREMENTAL,
        documents: Optional[list[Document]] = None,
        allow_zero_vectors: bool = False,
    ) -> RefreshResult:
        """Refresh the index without progress reporting.

        Returns:
            Refresh summary.
        """
        result = RefreshResult()
        async for event in self.refresh(mode, documents, allow_zero_vectors):
            if event.result is not None:
                result = event.result
        return result

    def _zero_vector(self) -> EmbeddingResult:
        return EmbeddingResult(
            embedding=[0.0] * self._embedding_dimensions,
            dimensions=self._embedding_dimensions,
            model=self._embedder.model_name,
        )
