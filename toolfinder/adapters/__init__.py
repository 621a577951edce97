"""
Adapters - External service integrations.

All storage, model and API calls are wrapped here to isolate domains from third-party changes.
"""

from .embeddings import SentenceTransformerEmbedder
from .llm import LLMResponse, LLMService, get_llm_service
from .sqlite import CatalogRepository

__all__ = [
    "CatalogRepository",
    "SentenceTransformerEmbedder",
    "LLMService",
    "get_llm_service",
    "LLMResponse",
]
