"""
Global Search - Fan-out across categories with independent pagination.

Each selected category runs concurrently under its own timeout. A slow or
failing category yields an empty page; the others are unaffected.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Mapping
from typing import Any

from toolfinder.config import attempt
from toolfinder.domains.catalog import SubmissionType

from .contracts import CategoryAdapter
from .models import Category, CategoryRequest, PagedResult, SearchConfig, SearchQuery

logger = logging.getLogger(__name__)

__all__ = ["GlobalSearchService"]


class GlobalSearchService:
    """
    Multi-category search orchestrator.

    Example:
        >>> service = GlobalSearchService(build_adapters(repo, embedder))
        >>> results = await service.search("react", pages={"tools_page": 2})
        >>> results[Category.TOOLS].total_count
    """

    def __init__(
        self,
        adapters: Mapping[Category, CategoryAdapter],
        config: SearchConfig | None = None,
    ) -> None:
        """
        Initialize orchestrator.

        Args:
            adapters: Lookup table with one adapter per category
            config: Engine constants
        """
        self._adapters = dict(adapters)
        self._config = config or SearchConfig()

    @property
    def config(self) -> SearchConfig:
        return self._config

    async def search(
        self,
        query: str | None,
        categories: Iterable[str | Category] | None = None,
        pages: Mapping[str, Any] | None = None,
        per_page: int | None = None,
        use_semantic: bool = True,
        use_fulltext: bool = True,
        submission_type: SubmissionType | str | None = None,
    ) -> dict[Category, PagedResult]:
        """
        Search every selected category.

        Args:
            query: Raw query text
            categories: Requested category names; empty or unknown means all
            pages: Page numbers keyed like ``tools_page`` (or by category name)
            per_page: Page size shared by all categories
            use_semantic: Enable embedding search for fused categories
            use_fulltext: Enable full-text search for submissions
            submission_type: Restrict submissions to one type (None = any)

        Returns:
            Category -> PagedResult for each selected category, in enum order.
            A blank query or an internal failure yields every category empty.
        """
        try:
            search_query = SearchQuery.build(
                query,
                categories=categories,
                pages=pages,
                per_page=per_page,
                use_semantic=use_semantic,
                use_fulltext=use_fulltext,
                submission_type=submission_type,
                config=self._config,
            )
            if search_query.is_blank:
                return self._empty_results(search_query)
            return await self._run(search_query)
        except Exception as e:
            logger.exception("Global search failed: %s", e)
            return self._fallback_results(pages, per_page)

    async def _run(self, query: SearchQuery) -> dict[Category, PagedResult]:
        requests = [self._request_for(query, category) for category in query.categories]
        pages = await asyncio.gather(
            *(self._search_category(c, r) for c, r in zip(query.categories, requests))
        )
        results = dict(zip(query.categories, pages))

        logger.info(
            "Global search: query='%s' -> %s",
            query.text[:50],
            ", ".join(f"{c.value}={r.total_count}" for c, r in results.items()),
        )
        return results

    def _request_for(self, query: SearchQuery, category: Category) -> CategoryRequest:
        return CategoryRequest(
            text=query.text,
            page=query.page_for(category),
            per_page=query.per_page,
            buffer_limit=self._config.buffer_limit(query.per_page),
            use_semantic=query.use_semantic,
            use_fulltext=query.use_fulltext,
            submission_type=query.submission_type,
        )

    async def _search_category(
        self, category: Category, request: CategoryRequest
    ) -> PagedResult:
        empty = PagedResult.empty(request.page, request.per_page)
        adapter = self._adapters.get(category)
        if adapter is None:
            logger.warning("No adapter registered for %s", category.value)
            return empty

        timeout = self._config.category_timeout_seconds
        try:
            outcome = await asyncio.wait_for(
                attempt(adapter.search, request, label=f"{category.value} category"),
                timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("%s search timed out after %ss", category.value, timeout)
            return empty
        return outcome.unwrap_or(empty)

    def _empty_results(self, query: SearchQuery) -> dict[Category, PagedResult]:
        return {
            category: PagedResult.empty(query.page_for(category), query.per_page)
            for category in Category
        }

    def _fallback_results(self, pages: Any, per_page: Any) -> dict[Category, PagedResult]:
        """Every category empty, keeping whatever pagination input still parses."""
        resolved = self._config.resolve_pages(pages if isinstance(pages, Mapping) else None)
        size = self._config.fallback_per_page(per_page)
        return {category: PagedResult.empty(resolved[category], size) for category in Category}
