"""
Test suite for the Chroma HTTP vector store.

Chroma is replaced by httpx.MockTransport; requests are recorded so the
payloads sent to each endpoint can be asserted.
"""

import json

import httpx
import pytest

from embedocs.core.exceptions import VectorStoreError
from embedocs.core.models.document import IndexedRecord
from embedocs.core.models.search import Provenance
from embedocs.core.retry import RetryPolicy
from embedocs.infrastructure.vector_stores import chroma_store
from embedocs.infrastructure.vector_stores.chroma_store import ChromaVectorStore

from conftest import make_chunk

COLLECTIONS = "/api/v2/tenants/default_tenant/databases/default_database/collections"


class FakeChroma:
    """Minimal Chroma v2 endpoint with canned responses per action."""

    def __init__(self, existing: bool = True, responses=None, status: int = 200):
        self.existing = existing
        self.responses = responses or {}
        self.status = status
        self.calls: list[tuple[str, str, dict]] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content) if request.content else {}
        path = request.url.path
        self.calls.append((request.method, path, body))

        if self.status != 200:
            return httpx.Response(self.status, json={"error": "unavailable"})

        if path == COLLECTIONS and request.method == "GET":
            if self.existing:
                return httpx.Response(200, json=[{"name": "embedocs", "id": "col-1"}])
            return httpx.Response(200, json=[{"name": "other", "id": "col-9"}])
        if path == COLLECTIONS and request.method == "POST":
            return httpx.Response(200, json={"name": body["name"], "id": "col-new"})

        action = path.rsplit("/", 1)[-1]
        response = self.responses.get(action, {})
        if isinstance(response, list):
            response = response.pop(0)
        return httpx.Response(200, json=response)

    def actions(self) -> list[str]:
        return [path.rsplit("/", 1)[-1] for _, path, _ in self.calls]

    def payload(self, action: str) -> dict:
        return next(body for _, path, body in self.calls if path.endswith(f"/{action}"))


def build_store(fake: FakeChroma) -> ChromaVectorStore:
    return ChromaVectorStore(
        client=httpx.AsyncClient(transport=httpx.MockTransport(fake)),
        retry_policy=RetryPolicy(max_retries=0, base_delay=0),
    )


def metadata(document_id: str, chunk_index: int = 0, **extra) -> dict:
    data = {
        "document_id": document_id,
        "chunk_index": chunk_index,
        "token_count": 5,
        "has_code": False,
        "content_type": "technical",
        "content_hash": f"{document_id}-{chunk_index}",
        "path": document_id,
        "product": "server",
        "title": f"Title {document_id}",
    }
    data.update(extra)
    return data


class TestCollection:
    """Test suite for collection get-or-create."""

    @pytest.mark.asyncio
    async def test_missing_collection_should_be_created_once(self) -> None:
        # Arrange
        fake = FakeChroma(existing=False)
        store = build_store(fake)
        chunk = make_chunk("r1", document_id="crud/insert.md")
        record = IndexedRecord(
            id="r1",
            content="Insert a document.",
            embedding=[0.1, 0.2],
            metadata=chunk.metadata,
            embedding_model="voyage-3",
            document_hash="h1",
        )

        # Act
        written = await store.upsert([record])
        await store.upsert([record])

        # Assert
        assert written == 1
        assert fake.actions() == ["collections", "collections", "upsert", "upsert"]
        create = fake.calls[1][2]
        assert create == {"name": "embedocs", "metadata": {"hnsw:space": "cosine"}}
        assert fake.calls[2][1] == f"{COLLECTIONS}/col-new/upsert"
        upsert = fake.payload("upsert")
        assert upsert["ids"] == ["r1"]
        assert upsert["embeddings"] == [[0.1, 0.2]]
        assert upsert["metadatas"][0]["document_id"] == "crud/insert.md"
        assert upsert["metadatas"][0]["document_hash"] == "h1"

    @pytest.mark.asyncio
    async def test_empty_upsert_should_skip_requests(self) -> None:
        fake = FakeChroma()

        assert await build_store(fake).upsert([]) == 0
        assert fake.calls == []


class TestVectorSearch:
    """Test suite for ChromaVectorStore.vector_search."""

    @pytest.mark.asyncio
    async def test_distances_should_become_similarities(self) -> None:
        # Arrange
        fake = FakeChroma(
            responses={
                "query": {
                    "ids": [["r1", "r2"]],
                    "documents": [["First.", "Second."]],
                    "metadatas": [[metadata("a.md"), metadata("b.md", 2)]],
                    "distances": [[0.1, 0.4]],
                    "embeddings": [[[1.0, 0.0], [0.0, 1.0]]],
                }
            }
        )
        store = build_store(fake)

        # Act
        results = await store.vector_search(
            [1.0, 0.0], limit=2, filter={"product": "server"}, include_embeddings=True
        )

        # Assert
        assert [r.record_id for r in results] == ["r1", "r2"]
        assert [r.score for r in results] == pytest.approx([0.9, 0.6])
        assert results[0].vector_score == pytest.approx(0.9)
        assert results[0].provenance is Provenance.VECTOR
        assert results[1].embedding == [0.0, 1.0]
        assert results[1].metadata.chunk_index == 2
        assert results[1].metadata.title == "Title b.md"
        payload = fake.payload("query")
        assert payload["n_results"] == 2
        assert payload["where"] == {"product": {"$eq": "server"}}
        assert "embeddings" in payload["include"]

    @pytest.mark.asyncio
    async def test_no_hits_should_return_empty_list(self) -> None:
        fake = FakeChroma(responses={"query": {"ids": [[]]}})

        assert await build_store(fake).vector_search([1.0, 0.0]) == []

    @pytest.mark.asyncio
    async def test_embeddings_should_be_omitted_by_default(self) -> None:
        fake = FakeChroma(
            responses={
                "query": {
                    "ids": [["r1"]],
                    "documents": [["First."]],
                    "metadatas": [[metadata("a.md")]],
                    "distances": [[0.2]],
                }
            }
        )

        results = await build_store(fake).vector_search([1.0, 0.0])

        assert results[0].embedding is None
        assert "embeddings" not in fake.payload("query")["include"]


class TestTextSearch:
    """Test suite for ChromaVectorStore.text_search."""

    @pytest.mark.asyncio
    async def test_contains_pool_should_be_rescored_with_bm25(self) -> None:
        # Arrange
        fake = FakeChroma(
            responses={
                "get": {
                    "ids": ["r1", "r2", "r3"],
                    "documents": [
                        "Create an index to speed up queries.",
                        "A TTL index expires documents. The index runs in the background.",
                        "Unrelated text about drivers.",
                    ],
                    "metadatas": [metadata("a.md"), metadata("ttl.md"), metadata("d.md")],
                }
            }
        )
        store = build_store(fake)

        # Act
        results = await store.text_search("ttl index", limit=5, filter={"product": ["server"]})

        # Assert
        assert [r.record_id for r in results] == ["r2", "r1"]
        assert all(r.provenance is Provenance.KEYWORD for r in results)
        assert results[0].keyword_score == results[0].score
        payload = fake.payload("get")
        assert {"$contains": "ttl"} in payload["where_document"]["$or"]
        assert {"$contains": "Index"} in payload["where_document"]["$or"]
        assert payload["where"] == {"product": {"$in": ["server"]}}
        assert payload["limit"] == 500

    @pytest.mark.asyncio
    async def test_single_character_query_should_skip_request(self) -> None:
        fake = FakeChroma()

        assert await build_store(fake).text_search("a") == []
        assert fake.calls == []


class TestReads:
    """Test suite for paginated metadata reads and document fetches."""

    @pytest.mark.asyncio
    async def test_stats_should_page_through_metadata(self, monkeypatch) -> None:
        # Arrange
        monkeypatch.setattr(chroma_store, "PAGE_SIZE", 2)
        fake = FakeChroma(
            responses={
                "get": [
                    {"metadatas": [
                        metadata("a.md", embedding_model="voyage-3"),
                        metadata("a.md", 1, embedding_model="voyage-3"),
                    ]},
                    {"metadatas": [
                        metadata("b.md", product="drivers", embedding_model="voyage-2"),
                    ]},
                ]
            }
        )
        store = build_store(fake)

        # Act
        stats = await store.stats()

        # Assert
        offsets = [body["offset"] for _, path, body in fake.calls if path.endswith("/get")]
        assert offsets == [0, 2]
        assert stats.record_count == 3
        assert stats.document_count == 2
        assert stats.product_breakdown == {"server": 1, "drivers": 1}
        assert stats.embedding_models == ["voyage-3", "voyage-2"]

    @pytest.mark.asyncio
    async def test_document_chunks_should_be_ordered_by_index(self) -> None:
        fake = FakeChroma(
            responses={
                "get": {
                    "ids": ["r2", "r0", "r1"],
                    "documents": ["third", "first", "second"],
                    "metadatas": [metadata("a.md", 2), metadata("a.md", 0), metadata("a.md", 1)],
                }
            }
        )

        chunks = await build_store(fake).document_chunks("a.md")

        assert [c.content for c in chunks] == ["first", "second", "third"]
        assert fake.payload("get")["where"] == {"document_id": {"$eq": "a.md"}}

    @pytest.mark.asyncio
    async def test_delete_should_filter_by_document_id(self) -> None:
        fake = FakeChroma()

        deleted = await build_store(fake).delete_documents(["a.md", "b.md"])

        assert deleted == 2
        assert fake.payload("delete") == {"where": {"document_id": {"$in": ["a.md", "b.md"]}}}


class TestErrors:
    """Test suite for error wrapping."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [400, 500])
    async def test_http_errors_should_raise_vector_store_error(self, status) -> None:
        store = build_store(FakeChroma(status=status))

        with pytest.raises(VectorStoreError):
            await store.vector_search([1.0, 0.0])

    @pytest.mark.asyncio
    async def test_invalid_json_should_raise_vector_store_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=b"not json")

        store = ChromaVectorStore(
            client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
            retry_policy=RetryPolicy(max_retries=0, base_delay=0),
        )

        with pytest.raises(VectorStoreError):
            await store.stats()
