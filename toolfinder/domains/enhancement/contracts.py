"""
Enhancement Contracts - Interfaces for the enhancement domain.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any, Protocol, runtime_checkable

from .models import EnhancedResult


@runtime_checkable
class CompletionClient(Protocol):
    """Contract for generative text backends."""

    async def complete(self, prompt: str) -> str:
        """
        Generate a completion.

        Args:
            prompt: Full prompt text

        Returns:
            Raw model output. Raises LLMError on failure.
        """
        ...


@runtime_checkable
class ResultEnhancer(Protocol):
    """Contract for best-effort result enhancement."""

    async def enhance(
        self,
        query: str,
        entities: Sequence[Any],
        top_k: int | None = None,
        enhance_all: bool = False,
    ) -> list[EnhancedResult]:
        """
        Attach summaries and relevance explanations to ranked entities.

        Args:
            query: Original search query
            entities: Ranked entities, best first
            top_k: Entities used as shared context (and enhanced, unless enhance_all)
            enhance_all: Enhance every entity, not just the top-K

        Returns:
            One EnhancedResult per input entity, in input order
        """
        ...
