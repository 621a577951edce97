"""
FastAPI Main Application - Search API entry point.

Run with: uvicorn toolfinder.interfaces.api.main:app --reload
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from toolfinder import __version__
from toolfinder.config import get_settings

from .deps import cleanup_services, init_services
from .middleware import ErrorHandlerMiddleware, RateLimitMiddleware, RequestContextMiddleware
from .routes import health, search

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    settings = get_settings()
    logger.info("Starting Toolfinder API...")
    logger.info("  Database: %s", settings.db_path)
    logger.info("  Embedding model: %s", settings.embedding_model)
    logger.info("  LLM provider: %s", settings.llm_provider)

    await init_services()
    logger.info("  Services initialized")

    yield

    logger.info("Shutting down Toolfinder API...")
    await cleanup_services()


def create_app() -> FastAPI:
    """Create FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Toolfinder API",
        description="Hybrid lexical + semantic search with RAG enhancement",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Last added runs outermost
    app.add_middleware(RateLimitMiddleware, requests_per_minute=settings.api_rate_limit_rpm)
    app.add_middleware(ErrorHandlerMiddleware)
    app.add_middleware(RequestContextMiddleware)

    allowed_origins = [
        "http://localhost:3000",
        "http://localhost:8000",
        "http://127.0.0.1:3000",
        "http://127.0.0.1:8000",
    ]
    if settings.api_debug:
        allowed_origins.append("http://localhost:5173")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-Request-ID"],
    )

    app.include_router(health.router, tags=["Health"])
    app.include_router(search.router, prefix="/api/search", tags=["Search"])

    return app


app = create_app()
