"""
Embeddings Adapter - Query vectors for semantic search.
"""

from .encoder import SentenceTransformerEmbedder

__all__ = ["SentenceTransformerEmbedder"]
