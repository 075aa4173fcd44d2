"""Search service - hybrid retrieval, MMR and similarity search."""

import asyncio
import dataclasses
import logging
from typing import Awaitable, Callable, Optional

from ..exceptions import EmbedocsError, SearchError
from ..models.search import DocumentContext, IndexStats, ScoredChunk, SearchResponse
from ..protocols.embedder import EmbedderProtocol
from ..protocols.reranker import RerankerProtocol
from ..protocols.vector_store import MetadataFilter, VectorStoreProtocol
from ..strategies.fusion import ReciprocalRankFusion, merge_query_variants
from ..strategies.mmr import MMRSelector
from .chunker import strip_overlap
from .query_expander import QueryExpander
from .result_assembler import ResultAssembler

logger = logging.getLogger(__name__)


class SearchService:
    """Hybrid vector + keyword search with fusion and reranking."""

    def __init__(
        self,
        embedder: EmbedderProtocol,
        vector_store: VectorStoreProtocol,
        fusion: Optional[ReciprocalRankFusion] = None,
        expander: Optional[QueryExpander] = None,
        assembler: Optional[ResultAssembler] = None,
        reranker: Optional[RerankerProtocol] = None,
        mmr: Optional[MMRSelector] = None,
        limit: int = 5,
        channel_limit: int = 20,
        num_candidates: int = 150,
        keyword_variants: int = 3,
        max_edits: int = 2,
        prefix_length: int = 3,
        rerank_top_k: int = 20,
        mmr_limit: Optional[int] = None,
        mmr_fetch_k: int = 20,
        mmr_lambda: float = 0.7,
    ):
        """Initialize search service.

        Args:
            embedder: Embedding service.
            vector_store: Vector + text index.
            fusion: RRF fusion of the two channels.
            expander: Query expander.
            assembler: Document-level result assembler.
            reranker: Optional reranking service.
            mmr: MMR selector.
            limit: Default number of documents returned.
            channel_limit: Results fetched per channel and query variant.
            num_candidates: ANN candidate pool size.
            keyword_variants: Query variants sent to the keyword channel.
            max_edits: Fuzzy edit distance for keyword search.
            prefix_length: Exact prefix length for fuzzy matching.
            rerank_top_k: Candidates sent to the reranker.
            mmr_limit: Default number of MMR selections.
            mmr_fetch_k: Default MMR candidate pool.
            mmr_lambda: Default MMR relevance/diversity trade-off.
        """
        self._embedder = embedder
        self._vector_store = vector_store
        self._fusion = fusion or ReciprocalRankFusion()
        self._expander = expander or QueryExpander()
        self._assembler = assembler or ResultAssembler()
        self._reranker = reranker
        self._mmr = mmr or MMRSelector()
        self._limit = limit
        self._channel_limit = channel_limit
        self._num_candidates = num_candidates
        self._keyword_variants = keyword_variants
        self._max_edits = max_edits
        self._prefix_length = prefix_length
        self._rerank_top_k = rerank_top_k
        self._mmr_limit = mmr_limit or limit
        self._mmr_fetch_k = mmr_fetch_k
        self._mmr_lambda = mmr_lambda

    async def hybrid_search(
        self,
        query: str,
        limit: Optional[int] = None,
        filter: Optional[MetadataFilter] = None,
    ) -> SearchResponse:
        """Search with both channels, fuse, rerank and assemble.

        Args:
            query: Search query.
            limit: Override number of documents.
            filter: Optional metadata filter.

        Returns:
            Search response. Empty results carry suggestions.

        Raises:
            SearchError: Both channels failed.
        """
        query = query.strip()
        if not query:
            raise ValueError("Query must not be empty")
        limit = limit or self._limit

        queries = self._expander.expand(query)

        vector_hits, keyword_hits = await asyncio.gather(
            self._channel("vector", queries, lambda q: self._vector_query(q, filter)),
            self._channel(
                "keyword",
                queries[: self._keyword_variants],
                lambda q: self._keyword_query(q, filter),
            ),
        )

        if vector_hits is None and keyword_hits is None:
            raise SearchError("All retrieval channels failed", {"query": query})

        fused = self._fusion.fuse(vector_hits or [], keyword_hits or [], query)

        if self._reranker and fused:
            fused = await self._reranker.rerank(query, fused, top_k=self._rerank_top_k)

        results = self._assembler.assemble(fused, limit)

        logger.info(
            f"Hybrid search: {len(results)}/{limit} docs for '{query[:50]}' "
            f"({len(vector_hits or [])} vector, {len(keyword_hits or [])} keyword)"
        )

        return SearchResponse(
            query=query,
            results=results,
            expanded_queries=queries,
            suggestions=self._suggestions(query, results),
        )

    async def mmr_search(
        self,
        query: str,
        limit: Optional[int] = None,
        fetch_k: Optional[int] = None,
        lambda_mult: Optional[float] = None,
        filter: Optional[MetadataFilter] = None,
    ) -> SearchResponse:
        """Diverse vector search with Maximum Marginal Relevance.

        Not reranked: MMR relevance is the raw vector similarity.

        Args:
            query: Search query.
            limit: Number of documents returned.
            fetch_k: Candidate pool size.
            lambda_mult: Relevance/diversity trade-off in [0, 1].
            filter: Optional metadata filter.

        Returns:
            Search response in selection order.
        """
        query = query.strip()
        if not query:
            raise ValueError("Query must not be empty")
        limit = limit or self._mmr_limit
        fetch_k = max(fetch_k or self._mmr_fetch_k, limit)
        lambda_mult = self._mmr_lambda if lambda_mult is None else lambda_mult

        query_embedding = await self._embedder.embed_query(query)
        candidates = await self._vector_store.vector_search(
            query_embedding.embedding,
            limit=fetch_k,
            num_candidates=max(self._num_candidates, fetch_k),
            filter=filter,
            include_embeddings=True,
        )

        # Rank the whole pool, then keep the prefix covering `limit` documents.
        ranked = self._mmr.select(
            candidates,
            query_embedding.embedding,
            k=fetch_k,
            fetch_k=fetch_k,
            lambda_mult=lambda_mult,
        )
        selected = _first_documents(ranked, limit)
        results = self._assembler.assemble(
            selected, limit, reorder=False, rank_by_score=False
        )

        logger.info(
            f"MMR search: {len(selected)} chunks from {len(candidates)} candidates "
            f"(lambda={lambda_mult}) for '{query[:50]}'"
        )

        return SearchResponse(
            query=query,
            results=results,
            expanded_queries=[query],
            suggestions=self._suggestions(query, results),
        )

    async def find_similar(
        self,
        content: str,
        limit: Optional[int] = None,
        filter: Optional[MetadataFilter] = None,
    ) -> SearchResponse:
        """Find documents similar to a piece of text.

        Args:
            content: Reference text, embedded as a query.
            limit: Number of documents.
            filter: Optional metadata filter.

        Returns:
            Documents in plain score order.
        """
        content = content.strip()
        if not content:
            raise ValueError("Content must not be empty")
        limit = limit or self._limit

        query_embedding = await self._embedder.embed_query(content)
        candidates = await self._vector_store.vector_search(
            query_embedding.embedding,
            limit=max(self._channel_limit, limit),
            num_candidates=self._num_candidates,
            filter=filter,
        )
        results = self._assembler.assemble(candidates, limit, reorder=False)

        return SearchResponse(query=content[:100], results=results)

    async def fetch_full_context(
        self, document_id: str, remove_overlap: bool = True
    ) -> Optional[DocumentContext]:
        """Rebuild a whole document from its indexed chunks.

        Args:
            document_id: Document id (relative path).
            remove_overlap: Drop text repeated between adjacent chunks.

        Returns:
            The document, or None when nothing is indexed under the id.
        """
        document_id = document_id.strip()
        if not document_id:
            raise ValueError("Document id must not be empty")

        chunks = await self._vector_store.document_chunks(document_id)
        if not chunks:
            return None

        parts = [chunks[0].content]
        for previous, chunk in zip(chunks, chunks[1:]):
            text = chunk.content
            if remove_overlap:
                text = strip_overlap(previous.content, text)
            if text:
                parts.append(text)

        metadata = next((c.metadata.document for c in chunks if c.metadata.document), None)
        logger.info(f"Rebuilt {document_id} from {len(chunks)} chunks")

        return DocumentContext(
            document_id=document_id,
            content="\n\n".join(parts),
            chunk_count=len(chunks),
            metadata=metadata,
            overlap_removed=remove_overlap,
        )

    async def get_stats(self) -> IndexStats:
        """Index statistics with the configured embedding model."""
        stats = await self._vector_store.stats()
        return dataclasses.replace(stats, configured_model=self._embedder.model_name)

    async def _channel(
        self,
        name: str,
        queries: list[str],
        run: Callable[[str], Awaitable[list[ScoredChunk]]],
    ) -> Optional[list[ScoredChunk]]:
        """Run one channel for every query variant.

        Returns None when every variant failed, so the caller can tell an
        empty channel from a broken one.
        """
        outcomes = await asyncio.gather(
            *(run(q) for q in queries), return_exceptions=True
        )

        runs: list[list[ScoredChunk]] = []
        for variant, outcome in zip(queries, outcomes):
            if isinstance(outcome, EmbedocsError):
                logger.warning(f"{name} search failed for '{variant[:50]}': {outcome}")
                continue
            if isinstance(outcome, BaseException):
                raise outcome
            runs.append(outcome)

        if not runs:
            return None
        return merge_query_variants(runs)

    async def _vector_query(
        self, query: str, filter: Optional[MetadataFilter]
    ) -> list[ScoredChunk]:
        query_embedding = await self._embedder.embed_query(query)
        return await self._vector_store.vector_search(
            query_embedding.embedding,
            limit=self._channel_limit,
            num_candidates=self._num_candidates,
            filter=filter,
        )

    async def _keyword_query(
        self, query: str, filter: Optional[MetadataFilter]
    ) -> list[ScoredChunk]:
        return await self._vector_store.text_search(
            query,
            limit=self._channel_limit,
            max_edits=self._max_edits,
            prefix_length=self._prefix_length,
            filter=filter,
        )

    def _suggestions(self, query: str, results: list) -> list[str]:
        if results:
            return []
        return self._expander.generate_suggestions(query)


def _first_documents(ranked: list[ScoredChunk], limit: int) -> list[ScoredChunk]:
    """Shortest prefix of `ranked` that spans `limit` distinct documents."""
    seen: set[str] = set()
    prefix: list[ScoredChunk] = []
    for chunk in ranked:
        if chunk.document_id not in seen:
            if len(seen) == limit:
                break
            seen.add(chunk.document_id)
        prefix.append(chunk)
    return prefix
