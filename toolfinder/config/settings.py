"""
Settings - Application configuration using Pydantic Settings.

Loads from environment variables and .env files.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    # Paths
    data_dir: Path = Path("data")
    db_path: Path = Path("data/toolfinder.db")

    # Query embeddings (must match the model used to materialize entity embeddings)
    embedding_model: str = "all-MiniLM-L6-v2"
    embedding_dimension: int = 384
    embedding_timeout_seconds: float = 8.0
    embedding_cache_size: int = 256

    # LLM provider: "gemini" (needs an OAuth access token) or "ollama" (local)
    llm_provider: str = "ollama"
    gemini_model: str = "gemini-2.0-flash"
    gemini_access_token: str | None = None
    gemini_temperature: float = 0.3
    ollama_url: str = "http://localhost:11434"
    ollama_model: str = "llama3.2"
    llm_timeout_seconds: float = 10.0
    llm_max_retries: int = 2

    # Search
    search_default_per_page: int = 10
    search_max_per_page: int = 50
    search_max_page: int = 10_000
    search_buffer_multiplier: int = 10
    search_max_buffer: int = 200
    search_lexical_weight: float = 0.6
    search_semantic_weight: float = 0.4
    search_max_cosine_distance: float = 0.8
    search_semantic_overfetch: int = 2
    search_category_timeout_seconds: float = 15.0
    search_suggestion_min_length: int = 3
    search_suggestion_per_page: int = 5

    # RAG enhancement
    rag_top_k: int = 5
    rag_concurrency: int = 4

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_debug: bool = False
    api_rate_limit_rpm: int = 120

    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
