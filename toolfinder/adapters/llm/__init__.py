"""
LLM Adapter - Unified interface for language model access.

Supports:
- Gemini REST with an OAuth access token
- Ollama for local/fallback (no auth needed)

Usage:
    from toolfinder.adapters.llm import get_llm_service

    llm = get_llm_service()
    text = await llm.complete("Why is this result relevant?")
"""

from .service import LLMResponse, LLMService, get_llm_service

__all__ = ["LLMService", "get_llm_service", "LLMResponse"]
