"""
API Dependencies - Dependency injection for FastAPI routes.

Provides singleton instances of the store, embedder and search services.
"""

from __future__ import annotations

import logging
from functools import lru_cache

from toolfinder.adapters import CatalogRepository, LLMService, SentenceTransformerEmbedder
from toolfinder.config import get_settings
from toolfinder.domains.enhancement import RagEnhancer, ResultEnhancer
from toolfinder.domains.search import GlobalSearchService, SearchConfig, build_adapters

logger = logging.getLogger(__name__)


@lru_cache
def get_repository() -> CatalogRepository:
    """Get catalog repository singleton."""
    settings = get_settings()
    return CatalogRepository(settings.db_path)


@lru_cache
def get_embedder() -> SentenceTransformerEmbedder:
    """Get query embedder singleton (model loads on first query)."""
    settings = get_settings()
    return SentenceTransformerEmbedder(
        settings.embedding_model,
        timeout_seconds=settings.embedding_timeout_seconds,
        cache_size=settings.embedding_cache_size,
    )


@lru_cache
def get_llm() -> LLMService:
    """Get LLM service singleton."""
    return LLMService(settings=get_settings())


@lru_cache
def get_search_service() -> GlobalSearchService:
    """Get global search orchestrator singleton."""
    config = SearchConfig.from_settings(get_settings())
    adapters = build_adapters(get_repository(), get_embedder(), config)
    return GlobalSearchService(adapters, config)


@lru_cache
def get_enhancer() -> ResultEnhancer:
    """Get RAG enhancer singleton."""
    settings = get_settings()
    return RagEnhancer(
        get_llm(),
        top_k=settings.rag_top_k,
        concurrency=settings.rag_concurrency,
    )


async def init_services() -> None:
    """
    Initialize services on startup.

    This should be called from the FastAPI lifespan handler.
    """
    repo = get_repository()
    await repo.initialize()

    counts = await repo.counts()
    logger.info(
        "Catalog: %d tools (%d embedded), %d submissions (%d embedded)",
        counts.get("tools", 0),
        counts.get("tools_embedded", 0),
        counts.get("submissions", 0),
        counts.get("submissions_embedded", 0),
    )


async def cleanup_services() -> None:
    """Cleanup services on shutdown."""
    repo = get_repository()
    await repo.close()
