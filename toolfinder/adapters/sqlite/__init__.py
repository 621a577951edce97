"""
SQLite Adapter - Catalog entity store.
"""

from .repository import EMBEDDED_KINDS, CatalogRepository, fts_query, like_pattern
from .trigram import trigram_similarity

__all__ = ["CatalogRepository", "EMBEDDED_KINDS", "fts_query", "like_pattern", "trigram_similarity"]
