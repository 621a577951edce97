"""
Category Adapters - One search strategy per Category.

Fused categories (tools, submissions) fetch a bounded buffer from their
providers, fuse it and slice the requested page out of memory. Simple
categories (tags, users, lists) page directly in the store.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from typing import Any

from toolfinder.config import attempt
from toolfinder.domains.catalog import SubmissionScope, SubmissionType, ToolScope

from .contracts import CatalogStore, QueryEmbedder
from .fusion import FusionEngine
from .models import Candidate, Category, CategoryRequest, PagedResult, SearchConfig
from .providers import LexicalSearchProvider, SemanticSearchProvider

logger = logging.getLogger(__name__)

__all__ = [
    "BaseCategoryAdapter",
    "FusedCategoryAdapter",
    "ListsAdapter",
    "PagedCategoryAdapter",
    "SubmissionsAdapter",
    "TagsAdapter",
    "ToolsAdapter",
    "UsersAdapter",
    "build_adapters",
]


class BaseCategoryAdapter(ABC):
    """
    Error-isolated search for one category.

    Subclasses implement ``_search``; any exception it raises is logged and
    replaced by an empty page that keeps the requested page and per_page.
    """

    category: Category

    async def search(self, request: CategoryRequest) -> PagedResult:
        outcome = await attempt(self._search, request, label=f"{self.category.value} search")
        return outcome.unwrap_or(PagedResult.empty(request.page, request.per_page))

    @abstractmethod
    async def _search(self, request: CategoryRequest) -> PagedResult:
        """Category-specific search. May raise."""


async def _no_candidates() -> list[Candidate]:
    return []


class FusedCategoryAdapter(BaseCategoryAdapter):
    """Lexical + semantic providers merged by the fusion engine."""

    def __init__(
        self,
        lexical: LexicalSearchProvider,
        semantic: SemanticSearchProvider | None,
        scope: Any,
        config: SearchConfig,
    ) -> None:
        self._lexical = lexical
        self._semantic = semantic
        self._scope = scope
        self._config = config
        self._fusion = FusionEngine(config.fusion)

    def _uses_lexical(self, request: CategoryRequest) -> bool:
        return True

    def _semantic_for(self, request: CategoryRequest) -> SemanticSearchProvider | None:
        return self._semantic if request.use_semantic else None

    def _scope_for(self, request: CategoryRequest) -> Any:
        return self._scope

    async def _search(self, request: CategoryRequest) -> PagedResult:
        candidate_limit = request.buffer_limit * self._config.semantic_overfetch
        scope = self._scope_for(request)
        provider = self._semantic_for(request)

        lexical_call = (
            self._lexical.search(request.text, scope, candidate_limit)
            if self._uses_lexical(request)
            else _no_candidates()
        )
        semantic_call = (
            provider.search(request.text, scope, request.buffer_limit)
            if provider is not None
            else _no_candidates()
        )
        lexical, semantic = await asyncio.gather(lexical_call, semantic_call)

        fused = self._fusion.combine(lexical, semantic)[: request.buffer_limit]
        logger.debug(
            "%s: %d fused (lexical=%d, semantic=%d)",
            self.category.value,
            len(fused),
            len(lexical),
            len(semantic),
        )
        return PagedResult.from_buffer(
            [r.entity for r in fused], request.page, request.per_page
        )


class ToolsAdapter(FusedCategoryAdapter):
    """
    Public tools. Substring lexical match is always on; semantic is optional.

    Example:
        >>> adapter = ToolsAdapter(repo, embedder, SearchConfig())
        >>> page = await adapter.search(CategoryRequest(text="react"))
    """

    category = Category.TOOLS

    def __init__(
        self,
        store: CatalogStore,
        embedder: QueryEmbedder | None,
        config: SearchConfig,
    ) -> None:
        semantic = None
        if embedder is not None:
            semantic = SemanticSearchProvider(
                "tools",
                embedder,
                store.nearest_tools,
                max_distance=config.max_cosine_distance,
                overfetch=config.semantic_overfetch,
            )
        super().__init__(
            LexicalSearchProvider("tools", store.keyword_tools),
            semantic,
            ToolScope(),
            config,
        )


class SubmissionsAdapter(FusedCategoryAdapter):
    """
    Completed submissions, full-text + trigram and embedding search.

    The type filter given here is the default; a request carrying its own
    ``submission_type`` overrides it.
    """

    category = Category.SUBMISSIONS

    def __init__(
        self,
        store: CatalogStore,
        embedder: QueryEmbedder | None,
        config: SearchConfig,
        submission_type: SubmissionType | None = None,
    ) -> None:
        semantic = None
        if embedder is not None:
            semantic = SemanticSearchProvider(
                "submissions",
                embedder,
                store.nearest_submissions,
                max_distance=config.max_cosine_distance,
                overfetch=config.semantic_overfetch,
            )
        super().__init__(
            LexicalSearchProvider("submissions", store.fulltext_submissions),
            semantic,
            SubmissionScope(submission_type=submission_type),
            config,
        )

    def _uses_lexical(self, request: CategoryRequest) -> bool:
        return request.use_fulltext

    def _scope_for(self, request: CategoryRequest) -> SubmissionScope:
        if request.submission_type is None:
            return self._scope
        return SubmissionScope(submission_type=request.submission_type)


PageFetch = Callable[[str, int, int], Awaitable[tuple[list[Any], int]]]


class PagedCategoryAdapter(BaseCategoryAdapter):
    """Plain substring match paged by the store; no fusion."""

    def __init__(self, fetch: PageFetch) -> None:
        self._fetch = fetch

    async def _search(self, request: CategoryRequest) -> PagedResult:
        items, total = await self._fetch(request.text, request.per_page, request.offset)
        return PagedResult(
            items=list(items),
            total_count=total,
            page=request.page,
            per_page=request.per_page,
        )


class TagsAdapter(PagedCategoryAdapter):
    category = Category.TAGS

    def __init__(self, store: CatalogStore) -> None:
        super().__init__(store.search_tags)


class UsersAdapter(PagedCategoryAdapter):
    category = Category.USERS

    def __init__(self, store: CatalogStore) -> None:
        super().__init__(store.search_users)


class ListsAdapter(PagedCategoryAdapter):
    category = Category.LISTS

    def __init__(self, store: CatalogStore) -> None:
        super().__init__(store.search_lists)


def build_adapters(
    store: CatalogStore,
    embedder: QueryEmbedder | None,
    config: SearchConfig | None = None,
    submission_type: SubmissionType | None = None,
) -> dict[Category, BaseCategoryAdapter]:
    """
    Build the Category -> adapter lookup table.

    Args:
        store: Entity store
        embedder: Query embedder, or None to disable semantic search
        config: Engine constants
        submission_type: Optional filter for the submissions category
    """
    config = config or SearchConfig()
    return {
        Category.TOOLS: ToolsAdapter(store, embedder, config),
        Category.SUBMISSIONS: SubmissionsAdapter(store, embedder, config, submission_type),
        Category.TAGS: TagsAdapter(store),
        Category.USERS: UsersAdapter(store),
        Category.LISTS: ListsAdapter(store),
    }
