"""
Enhancement Domain - Retrieval-augmented summaries for search results.
"""

from .contracts import CompletionClient, ResultEnhancer
from .models import EnhancedResult
from .rag import RagEnhancer, build_context, extract_json_object, parse_enhancement

__all__ = [
    "CompletionClient",
    "ResultEnhancer",
    "EnhancedResult",
    "RagEnhancer",
    "build_context",
    "extract_json_object",
    "parse_enhancement",
]
