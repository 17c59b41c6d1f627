from typing import List, Literal

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Remote model access (OpenAI-compatible endpoints)
    openai_api_key: SecretStr = SecretStr("")
    llm_base_url: str = "https://api.openai.com/v1/chat/completions"
    embedding_base_url: str = "https://api.openai.com/v1/embeddings"

    # Embeddings
    embedding_backend: Literal["openai", "sentence-transformers"] = "openai"
    embedding_model: str = "text-embedding-3-small"
    local_embedding_model: str = "sentence-transformers/all-MiniLM-L6-v2"
    embedding_timeout: float = 60.0

    # Generation, tried in order until one succeeds
    generation_models: List[str] = Field(
        default_factory=lambda: ["gpt-4o-mini", "gpt-4o", "gpt-3.5-turbo"]
    )
    classifier_model: str = "gpt-4o-mini"
    llm_timeout: float = 30.0

    # Vector store artifacts
    vector_index_path: str = "data/vector_store/faiss_index.bin"
    vector_meta_path: str = "data/vector_store/documents.json"
    knowledge_base_path: str = "data/yoga_knowledge.json"

    # Pipeline
    search_top_k: int = Field(default=5, ge=1)
    review_confidence_threshold: float = Field(default=0.6, ge=0.0, le=1.0)
    max_query_length: int = Field(default=500, ge=1)

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore"
    )

settings = Settings()
