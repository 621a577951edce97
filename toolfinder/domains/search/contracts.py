"""
Search Contracts - Interfaces for search domain.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any, Protocol, runtime_checkable

import numpy as np

from toolfinder.domains.catalog import (
    Submission,
    SubmissionScope,
    Tag,
    Tool,
    ToolList,
    ToolScope,
    User,
)

from .models import Category, CategoryRequest, PagedResult

# (query, scope, limit) -> [(entity, relevance)], higher relevance is better
LexicalFetch = Callable[[str, Any, int], Awaitable[list[tuple[Any, float]]]]

# (query_vector, scope, limit, max_distance) -> [(entity, cosine_distance)]
NearestFetch = Callable[[np.ndarray, Any, int, float], Awaitable[list[tuple[Any, float]]]]


@runtime_checkable
class QueryEmbedder(Protocol):
    """Contract for query embedding backends."""

    async def embed(self, text: str) -> np.ndarray:
        """Embed one query. Raises EmbeddingError on failure or timeout."""
        ...


@runtime_checkable
class CatalogStore(Protocol):
    """Query capabilities of the entity store."""

    async def keyword_tools(
        self, query: str, scope: ToolScope, limit: int
    ) -> list[tuple[Tool, float]]:
        """Substring match on tool name, description or tag name."""
        ...

    async def fulltext_submissions(
        self, query: str, scope: SubmissionScope, limit: int
    ) -> list[tuple[Submission, float]]:
        """Full-text plus trigram match, best first."""
        ...

    async def nearest_tools(
        self, vector: np.ndarray, scope: ToolScope, limit: int, max_distance: float
    ) -> list[tuple[Tool, float]]:
        """Tools by ascending cosine distance, strictly below max_distance."""
        ...

    async def nearest_submissions(
        self,
        vector: np.ndarray,
        scope: SubmissionScope,
        limit: int,
        max_distance: float,
    ) -> list[tuple[Submission, float]]:
        """Submissions by ascending cosine distance, strictly below max_distance."""
        ...

    async def search_tags(
        self, query: str, limit: int, offset: int
    ) -> tuple[list[Tag], int]:
        """One page of matching tags and the total match count."""
        ...

    async def search_users(
        self, query: str, limit: int, offset: int
    ) -> tuple[list[User], int]:
        """One page of matching active users and the total match count."""
        ...

    async def search_lists(
        self, query: str, limit: int, offset: int
    ) -> tuple[list[ToolList], int]:
        """One page of matching public lists and the total match count."""
        ...


@runtime_checkable
class CategoryAdapter(Protocol):
    """Contract for per-category search."""

    category: Category

    async def search(self, request: CategoryRequest) -> PagedResult:
        """Search one category. Never raises; failures yield an empty page."""
        ...
