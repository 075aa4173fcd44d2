import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, TypeVar

from .config.settings import Settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class Container:
    _factories: dict[type, Callable[[], Any]] = field(default_factory=dict)
    _singletons: dict[type, Any] = field(default_factory=dict)
    _singleton_flags: set[type] = field(default_factory=set)

    def register(
        self, interface: type[T], factory: Callable[[], T], singleton: bool = False
    ) -> None:
        """Register factory for interface.

        Args:
            interface: Interface type.
            factory: Factory function.
            singleton: Whether to cache instance.
        """
        self._factories[interface] = factory
        self._singletons.pop(interface, None)
        if singleton:
            self._singleton_flags.add(interface)
        else:
            self._singleton_flags.discard(interface)

    def resolve(self, interface: type[T]) -> T:
        if interface in self._singletons:
            return self._singletons[interface]

        if interface not in self._factories:
            raise KeyError(f"No factory registered for {interface}")

        instance = self._factories[interface]()

        if interface in self._singleton_flags:
            self._singletons[interface] = instance

        return instance

    def reset(self) -> None:
        """Reset singletons (for testing)."""
        self._singletons.clear()

    async def aclose(self) -> None:
        """Close HTTP clients held by resolved singletons."""
        for instance in list(self._singletons.values()):
            close = getattr(instance, "aclose", None)
            if close is not None:
                await close()
        self.reset()


container = Container()


def configure_container(settings: Settings, target: Optional[Container] = None) -> Container:
    """Configure container with all dependencies.

    Providers are chosen by ``settings.embedding_provider``,
    ``settings.reranker_provider`` and ``settings.vector_store``. Local
    model adapters are imported only when selected.

    Args:
        settings: Application settings.
        target: Container to fill; defaults to the module container.

    Returns:
        Configured container.
    """
    from .core.protocols.embedder import EmbedderProtocol
    from .core.protocols.reranker import RerankerProtocol
    from .core.protocols.tokenizer import TokenizerProtocol
    from .core.protocols.vector_store import VectorStoreProtocol
    from .core.retry import RetryPolicy
    from .core.services.chunker import Chunker
    from .core.services.ingest_service import IngestService
    from .core.services.query_expander import QueryExpander
    from .core.services.result_assembler import ResultAssembler
    from .core.services.search_service import SearchService
    from .core.strategies.fusion import ReciprocalRankFusion
    from .core.strategies.mmr import MMRSelector
    from .core.strategies.scoring import ContentTypeBoostStrategy, ProductBoostStrategy
    from .infrastructure.tokenizers.tiktoken_tokenizer import TiktokenTokenizer

    c = target if target is not None else container

    def retry_policy() -> RetryPolicy:
        return RetryPolicy(
            max_retries=settings.embedding_max_retries,
            base_delay=settings.retry_base_delay,
        )

    # One limiter for every outbound provider call in the process.
    c.register(
        asyncio.Semaphore,
        lambda: asyncio.Semaphore(settings.max_concurrent_requests),
        singleton=True,
    )

    c.register(
        TokenizerProtocol,
        lambda: TiktokenTokenizer(settings.tokenizer_encoding),
        singleton=True,
    )

    def build_embedder() -> EmbedderProtocol:
        if settings.embedding_provider == "local":
            from .infrastructure.embeddings.sentence_transformer import (
                SentenceTransformerEmbedder,
            )

            return SentenceTransformerEmbedder(
                settings.local_embedding_model, batch_size=settings.embedding_batch_size
            )

        from .infrastructure.embeddings.voyage import VoyageEmbedder

        return VoyageEmbedder(
            api_key=settings.voyage_api_key,
            model=settings.embedding_model,
            base_url=settings.voyage_base_url,
            dimensions=settings.embedding_dimensions,
            batch_size=settings.embedding_batch_size,
            max_tokens=settings.embedding_max_tokens,
            timeout=settings.embedding_timeout,
            retry_policy=retry_policy(),
            semaphore=c.resolve(asyncio.Semaphore),
            tokenizer=c.resolve(TokenizerProtocol),
        )

    c.register(EmbedderProtocol, build_embedder, singleton=True)

    def build_reranker() -> Optional[RerankerProtocol]:
        if settings.reranker_provider == "none":
            return None
        if settings.reranker_provider == "local":
            from .infrastructure.rerankers.cross_encoder import CrossEncoderReranker

            return CrossEncoderReranker(
                settings.local_reranker_model,
                top_k=settings.rerank_top_k,
                rerank_weight=settings.rerank_weight,
                max_chars=settings.rerank_max_chars,
            )

        from .infrastructure.rerankers.voyage import VoyageReranker

        return VoyageReranker(
            api_key=settings.voyage_api_key,
            model=settings.reranker_model,
            base_url=settings.voyage_base_url,
            top_k=settings.rerank_top_k,
            rerank_weight=settings.rerank_weight,
            max_chars=settings.rerank_max_chars,
            timeout=settings.rerank_timeout,
            retry_policy=RetryPolicy(max_retries=1, base_delay=settings.retry_base_delay),
            semaphore=c.resolve(asyncio.Semaphore),
        )

    c.register(RerankerProtocol, build_reranker, singleton=True)

    def build_vector_store() -> VectorStoreProtocol:
        if settings.vector_store == "memory":
            from .infrastructure.vector_stores.memory_store import MemoryVectorStore

            return MemoryVectorStore()

        from .infrastructure.vector_stores.chroma_store import ChromaVectorStore

        return ChromaVectorStore(
            host=settings.chroma_host,
            port=settings.chroma_port,
            collection_name=settings.chroma_collection,
            timeout=settings.index_timeout,
        )

    c.register(VectorStoreProtocol, build_vector_store, singleton=True)

    c.register(
        ReciprocalRankFusion,
        lambda: ReciprocalRankFusion(
            k=settings.rrf_k,
            vector_weight=settings.vector_weight,
            keyword_weight=settings.keyword_weight,
            both_boost=settings.both_boost,
            strategies=[
                ContentTypeBoostStrategy(settings.content_type_boosts),
                ProductBoostStrategy(settings.product_boosts),
            ],
        ),
        singleton=True,
    )

    c.register(
        QueryExpander,
        lambda: QueryExpander(
            max_variants=settings.max_query_variants,
            synonyms_path=settings.synonyms_path,
        ),
        singleton=True,
    )

    c.register(ResultAssembler, ResultAssembler, singleton=True)
    c.register(MMRSelector, MMRSelector, singleton=True)

    c.register(
        Chunker,
        lambda: Chunker(
            tokenizer=c.resolve(TokenizerProtocol),
            hard_limit=settings.embedding_max_tokens,
        ),
        singleton=True,
    )

    c.register(
        SearchService,
        lambda: SearchService(
            embedder=c.resolve(EmbedderProtocol),
            vector_store=c.resolve(VectorStoreProtocol),
            fusion=c.resolve(ReciprocalRankFusion),
            expander=c.resolve(QueryExpander),
            assembler=c.resolve(ResultAssembler),
            reranker=c.resolve(RerankerProtocol),
            mmr=c.resolve(MMRSelector),
            limit=settings.search_limit,
            channel_limit=settings.channel_limit,
            num_candidates=settings.num_candidates,
            keyword_variants=settings.keyword_query_variants,
            max_edits=settings.keyword_max_edits,
            prefix_length=settings.keyword_prefix_length,
            rerank_top_k=settings.rerank_top_k,
            mmr_limit=settings.mmr_limit,
            mmr_fetch_k=settings.mmr_fetch_k,
            mmr_lambda=settings.mmr_lambda,
        ),
        singleton=True,
    )

    c.register(
        IngestService,
        lambda: IngestService(
            embedder=c.resolve(EmbedderProtocol),
            vector_store=c.resolve(VectorStoreProtocol),
            chunker=c.resolve(Chunker),
            docs_path=settings.docs_path,
            docs_base_url=settings.docs_base_url,
            default_product=settings.default_product,
            batch_size=settings.index_batch_size,
            embedding_dimensions=settings.embedding_dimensions,
        ),
        singleton=True,
    )

    logger.info(
        f"Container configured (embedder={settings.embedding_provider}, "
        f"reranker={settings.reranker_provider}, store={settings.vector_store})"
    )
    return c
