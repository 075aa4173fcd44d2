import logging
from collections import Counter
from typing import Any, Optional, Sequence

import httpx

from embedocs.core.exceptions import VectorStoreError
from embedocs.core.models.document import Chunk, ChunkMetadata, IndexedRecord
from embedocs.core.models.search import IndexStats, Provenance, ScoredChunk
from embedocs.core.protocols.vector_store import MetadataFilter
from embedocs.core.retry import RetryPolicy

from .text_scoring import score_texts, tokenize

logger = logging.getLogger(__name__)

PAGE_SIZE = 1000


def to_where(filter: Optional[MetadataFilter]) -> Optional[dict[str, Any]]:
    """Translate an equality/in filter into a Chroma where clause."""
    if not filter:
        return None

    clauses = []
    for key, value in filter.items():
        if isinstance(value, (list, tuple, set)):
            clauses.append({key: {"$in": list(value)}})
        else:
            clauses.append({key: {"$eq": value}})

    return clauses[0] if len(clauses) == 1 else {"$and": clauses}


def flatten_metadata(metadata: dict[str, Any]) -> dict[str, Any]:
    """Chroma accepts scalar metadata values only."""
    flat: dict[str, Any] = {}
    for key, value in metadata.items():
        if value is None:
            continue
        if isinstance(value, (str, int, float, bool)):
            flat[key] = value
        else:
            flat[key] = str(value)
    return flat


class ChromaVectorStore:
    """Vector store using the ChromaDB HTTP API."""

    def __init__(
        self,
        host: str = "localhost",
        port: int = 8001,
        collection_name: str = "embedocs",
        tenant: str = "default_tenant",
        database: str = "default_database",
        timeout: float = 15.0,
        text_pool_size: int = 500,
        retry_policy: Optional[RetryPolicy] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """Initialize ChromaDB client.

        Args:
            host: ChromaDB host.
            port: ChromaDB port.
            collection_name: Collection name.
            tenant: Tenant name.
            database: Database name.
            timeout: Request timeout in seconds.
            text_pool_size: Records prefiltered for keyword scoring.
            retry_policy: Retry policy for transient failures.
            client: HTTP client; created lazily when omitted.
        """
        self._base_url = f"http://{host}:{port}/api/v2"
        self._tenant = tenant
        self._database = database
        self._collection_name = collection_name
        self._collection_id: Optional[str] = None
        self._timeout = timeout
        self._text_pool_size = text_pool_size
        self._retry = retry_policy or RetryPolicy(max_retries=2, base_delay=0.5)
        self._client = client

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()

    @property
    def _collections_url(self) -> str:
        return f"{self._base_url}/tenants/{self._tenant}/databases/{self._database}/collections"

    async def _request(self, method: str, url: str, **kwargs: Any) -> Any:
        async def send() -> Any:
            response = await self.client.request(method, url, **kwargs)
            response.raise_for_status()
            return response.json()

        try:
            return await self._retry.call(send)
        except (httpx.HTTPError, ValueError) as e:
            raise VectorStoreError(
                f"Chroma request failed: {e}", {"method": method, "url": url}
            ) from e

    async def _ensure_collection(self) -> str:
        """Get or create collection, return ID."""
        if self._collection_id:
            return self._collection_id

        collections = await self._request("GET", self._collections_url)
        for col in collections:
            if col["name"] == self._collection_name:
                self._collection_id = col["id"]
                return self._collection_id

        created = await self._request(
            "POST",
            self._collections_url,
            json={"name": self._collection_name, "metadata": {"hnsw:space": "cosine"}},
        )
        self._collection_id = created["id"]
        logger.info(f"Created collection: {self._collection_name}")
        return self._collection_id

    async def _collection_url(self, action: str) -> str:
        col_id = await self._ensure_collection()
        return f"{self._collections_url}/{col_id}/{action}"

    async def upsert(self, records: list[IndexedRecord]) -> int:
        """Upsert records keyed by their stable id."""
        if not records:
            return 0

        await self._request(
            "POST",
            await self._collection_url("upsert"),
            json={
                "ids": [r.id for r in records],
                "embeddings": [r.embedding for r in records],
                "documents": [r.content for r in records],
                "metadatas": [flatten_metadata(r.flat_metadata()) for r in records],
            },
        )
        return len(records)

    async def vector_search(
        self,
        query_vector: list[float],
        limit: int = 20,
        num_candidates: int = 150,
        filter: Optional[MetadataFilter] = None,
        include_embeddings: bool = False,
    ) -> list[ScoredChunk]:
        """Search by embedding.

        Chroma sizes its HNSW search internally, so num_candidates is unused.
        """
        include = ["documents", "metadatas", "distances"]
        if include_embeddings:
            include.append("embeddings")

        payload: dict[str, Any] = {
            "query_embeddings": [query_vector],
            "n_results": limit,
            "include": include,
        }
        where = to_where(filter)
        if where:
            payload["where"] = where

        data = await self._request("POST", await self._collection_url("query"), json=payload)

        if not data.get("ids") or not data["ids"][0]:
            return []

        embeddings = (data.get("embeddings") or [None])[0]
        results = []
        for i, record_id in enumerate(data["ids"][0]):
            similarity = 1.0 - float(data["distances"][0][i])
            results.append(
                ScoredChunk(
                    record_id=record_id,
                    content=data["documents"][0][i] or "",
                    metadata=ChunkMetadata.from_dict(data["metadatas"][0][i] or {}),
                    score=similarity,
                    provenance=Provenance.VECTOR,
                    vector_score=similarity,
                    embedding=list(embeddings[i]) if include_embeddings and embeddings else None,
                )
            )

        return results

    async def text_search(
        self,
        query: str,
        limit: int = 20,
        paths: Sequence[str] = ("content", "title"),
        max_edits: int = 2,
        prefix_length: int = 3,
        filter: Optional[MetadataFilter] = None,
    ) -> list[ScoredChunk]:
        """Keyword search: $contains prefilter, then fuzzy BM25 over the pool.

        Fuzzy matching only sees records that contain at least one query
        term literally.
        """
        terms = [t for t in dict.fromkeys(tokenize(query)) if len(t) > 1]
        if not terms:
            return []

        variants = []
        for term in terms:
            for variant in dict.fromkeys((term, term.capitalize(), term.upper())):
                variants.append({"$contains": variant})

        payload: dict[str, Any] = {
            "where_document": variants[0] if len(variants) == 1 else {"$or": variants},
            "include": ["documents", "metadatas"],
            "limit": self._text_pool_size,
        }
        where = to_where(filter)
        if where:
            payload["where"] = where

        data = await self._request("POST", await self._collection_url("get"), json=payload)

        ids = data.get("ids") or []
        if not ids:
            return []

        documents = data.get("documents") or [""] * len(ids)
        metadatas = [ChunkMetadata.from_dict(m or {}) for m in data.get("metadatas") or [{}] * len(ids)]

        texts = []
        for content, metadata in zip(documents, metadatas):
            parts = [content or ""] if "content" in paths else []
            if "title" in paths and metadata.title:
                parts.append(metadata.title)
            texts.append("\n".join(parts))

        scores = score_texts(query, texts, max_edits, prefix_length)
        ranked = sorted(
            (i for i, score in enumerate(scores) if score > 0),
            key=lambda i: scores[i],
            reverse=True,
        )[:limit]

        return [
            ScoredChunk(
                record_id=ids[i],
                content=documents[i] or "",
                metadata=metadatas[i],
                score=scores[i],
                provenance=Provenance.KEYWORD,
                keyword_score=scores[i],
            )
            for i in ranked
        ]

    async def delete_documents(self, document_ids: list[str]) -> int:
        """Delete every record of the given documents."""
        if not document_ids:
            return 0

        await self._request(
            "POST",
            await self._collection_url("delete"),
            json={"where": {"document_id": {"$in": list(document_ids)}}},
        )
        logger.info(f"Deleted records of {len(document_ids)} documents")
        return len(document_ids)

    async def document_chunks(self, document_id: str) -> list[Chunk]:
        """Fetch every chunk of a document, ordered by chunk index."""
        url = await self._collection_url("get")
        chunks: list[Chunk] = []
        offset = 0
        while True:
            data = await self._request(
                "POST",
                url,
                json={
                    "where": {"document_id": {"$eq": document_id}},
                    "include": ["documents", "metadatas"],
                    "limit": PAGE_SIZE,
                    "offset": offset,
                },
            )
            ids = data.get("ids") or []
            documents = data.get("documents") or [""] * len(ids)
            metadatas = data.get("metadatas") or [{}] * len(ids)
            for content, metadata in zip(documents, metadatas):
                chunks.append(
                    Chunk(content=content or "", metadata=ChunkMetadata.from_dict(metadata or {}))
                )
            if len(ids) < PAGE_SIZE:
                break
            offset += PAGE_SIZE

        chunks.sort(key=lambda c: c.metadata.chunk_index)
        return chunks

    async def document_hashes(self) -> dict[str, str]:
        hashes: dict[str, str] = {}
        async for metadata in self._iter_metadatas():
            document_id = metadata.get("document_id")
            if document_id:
                hashes[document_id] = str(metadata.get("document_hash", ""))
        return hashes

    async def stats(self) -> IndexStats:
        products: dict[str, str] = {}
        models: list[str] = []
        records = 0

        async for metadata in self._iter_metadatas():
            records += 1
            document_id = metadata.get("document_id")
            if document_id:
                products[document_id] = str(metadata.get("product", ""))
            model = metadata.get("embedding_model")
            if model and model not in models:
                models.append(model)

        return IndexStats(
            document_count=len(products),
            record_count=records,
            product_breakdown=dict(Counter(products.values())),
            embedding_models=models,
        )

    async def _iter_metadatas(self):
        url = await self._collection_url("get")
        offset = 0
        while True:
            data = await self._request(
                "POST",
                url,
                json={"include": ["metadatas"], "limit": PAGE_SIZE, "offset": offset},
            )
            metadatas = data.get("metadatas") or []
            for metadata in metadatas:
                yield metadata or {}
            if len(metadatas) < PAGE_SIZE:
                break
            offset += PAGE_SIZE
