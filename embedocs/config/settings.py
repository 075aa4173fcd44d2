
from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):

    # Embeddings
    embedding_provider: str = "voyage"  # "voyage" | "local"
    voyage_api_key: str = ""
    voyage_base_url: str = "https://api.voyageai.com/v1"
    embedding_model: str = "voyage-3"
    embedding_dimensions: int = 1024
    embedding_batch_size: int = 32
    embedding_max_tokens: int = 8000
    embedding_timeout: float = 30.0
    embedding_max_retries: int = 3
    retry_base_delay: float = 1.0
    max_concurrent_requests: int = 4
    local_embedding_model: str = "intfloat/multilingual-e5-base"

    # Reranking
    reranker_provider: str = "voyage"  # "voyage" | "local" | "none"
    reranker_model: str = "rerank-2.5"
    local_reranker_model: str = "BAAI/bge-reranker-v2-m3"
    rerank_timeout: float = 10.0
    rerank_top_k: int = 20
    rerank_weight: float = 0.7
    rerank_max_chars: int = 1000

    # Index
    vector_store: str = "chroma"  # "chroma" | "memory"
    chroma_host: str = "localhost"
    chroma_port: int = 8001
    chroma_collection: str = "embedocs"
    index_timeout: float = 15.0
    num_candidates: int = 150
    channel_limit: int = 20
    keyword_max_edits: int = 2
    keyword_prefix_length: int = 3

    # Fusion
    rrf_k: int = 60
    vector_weight: float = 0.6
    keyword_weight: float = 0.4
    both_boost: float = 1.2
    content_type_boosts: dict[str, float] = Field(default_factory=lambda: {"meta": 0.3})
    product_boosts: dict[str, float] = Field(default_factory=dict)

    # Query expansion
    max_query_variants: int = 6
    keyword_query_variants: int = 3
    synonyms_path: str = "query_synonyms.json"

    # Search
    search_limit: int = 5
    mmr_limit: int = 5
    mmr_fetch_k: int = 20
    mmr_lambda: float = 0.7

    # Ingest
    docs_path: str = "./docs"
    docs_base_url: str = ""
    default_product: str = "docs"
    index_batch_size: int = 32
    tokenizer_encoding: str = "cl100k_base"

    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        extra = "ignore"


settings = Settings()
