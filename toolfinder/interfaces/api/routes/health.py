"""
Health Routes - System health and status endpoints.
"""

from typing import Any

from fastapi import APIRouter

from toolfinder import __version__

router = APIRouter()


@router.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy", "service": "toolfinder"}


@router.get("/api")
async def api_info() -> dict[str, Any]:
    """API info endpoint."""
    return {
        "name": "Toolfinder API",
        "version": __version__,
        "description": "Hybrid lexical + semantic search over tools, submissions, tags, users and lists",
        "docs": "/docs",
    }
