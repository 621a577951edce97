"""
Search Routes - Multi-category search, suggestions and RAG enhancement.

Every category is paginated independently through its own ``<category>_page``
query parameter. Category failures come back as empty pages, never as errors.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from toolfinder.config import Settings, get_settings
from toolfinder.domains.catalog import SubmissionType
from toolfinder.domains.enhancement import EnhancedResult, ResultEnhancer
from toolfinder.domains.search import Category, GlobalSearchService, PagedResult
from toolfinder.interfaces.api.deps import get_enhancer, get_search_service

router = APIRouter()


class PageResponse(BaseModel):
    """One category's page of results."""

    items: list[Any]
    total_count: int
    page: int
    per_page: int
    has_more: bool

    @classmethod
    def from_result(cls, result: PagedResult) -> PageResponse:
        return cls(
            items=result.items,
            total_count=result.total_count,
            page=result.page,
            per_page=result.per_page,
            has_more=result.has_more,
        )


class EnhancedItem(BaseModel):
    """A submission with its generated summary and relevance explanation."""

    entity_id: int | None
    entity: Any
    summary: str | None = None
    relevance_explanation: str | None = None

    @classmethod
    def from_result(cls, result: EnhancedResult) -> EnhancedItem:
        return cls(
            entity_id=result.entity_id,
            entity=result.entity,
            summary=result.summary,
            relevance_explanation=result.relevance_explanation,
        )


class SearchResponse(BaseModel):
    """Search response keyed by category name."""

    query: str
    results: dict[str, PageResponse] = Field(default_factory=dict)
    enhanced: list[EnhancedItem] | None = None


def _response(
    query: str,
    results: dict[Category, PagedResult],
    enhanced: list[EnhancedResult] | None = None,
) -> SearchResponse:
    return SearchResponse(
        query=query,
        results={c.value: PageResponse.from_result(r) for c, r in results.items()},
        enhanced=[EnhancedItem.from_result(e) for e in enhanced] if enhanced is not None else None,
    )


@router.get("", response_model=SearchResponse)
async def search(
    query: str = Query(default="", description="Search query"),
    categories: list[str] | None = Query(default=None, description="Categories to search"),
    per_page: int | None = Query(default=None, description="Page size, clamped to 1-50"),
    tools_page: str | None = None,
    submissions_page: str | None = None,
    tags_page: str | None = None,
    users_page: str | None = None,
    lists_page: str | None = None,
    semantic: bool = Query(default=True, description="Use embedding search"),
    fulltext: bool = Query(default=True, description="Use full-text search for submissions"),
    submission_type: SubmissionType | None = Query(
        default=None, description="Restrict submissions to one type"
    ),
    enhance: bool = Query(default=False, description="Add AI summaries for submissions"),
    service: GlobalSearchService = Depends(get_search_service),
    enhancer: ResultEnhancer = Depends(get_enhancer),
):
    """
    Search tools, submissions, tags, users and lists.

    - **query**: Search text; blank returns empty pages
    - **categories**: Repeatable; unknown names are ignored, none means all
    - **per_page**: Shared page size (1-50)
    - **<category>_page**: Page number for that category only
    - **submission_type**: Only submissions of this type (video, article, ...)
    - **enhance**: Generate summaries for the returned submissions page
    """
    pages = {
        Category.TOOLS.page_param: tools_page,
        Category.SUBMISSIONS.page_param: submissions_page,
        Category.TAGS.page_param: tags_page,
        Category.USERS.page_param: users_page,
        Category.LISTS.page_param: lists_page,
    }

    results = await service.search(
        query,
        categories=categories,
        pages=pages,
        per_page=service.config.clamp_per_page(per_page),
        use_semantic=semantic,
        use_fulltext=fulltext,
        submission_type=submission_type,
    )

    enhanced = None
    submissions = results.get(Category.SUBMISSIONS)
    if enhance and submissions is not None:
        enhanced = await enhancer.enhance(query, submissions.items)

    return _response(query.strip(), results, enhanced)


@router.get("/suggestions", response_model=SearchResponse)
async def suggestions(
    query: str = Query(default="", description="Partial query typed so far"),
    categories: list[str] | None = Query(default=None),
    service: GlobalSearchService = Depends(get_search_service),
    settings: Settings = Depends(get_settings),
):
    """
    Type-ahead suggestions: first page of each category, a few items each.

    Queries shorter than the minimum length return empty pages without searching.
    """
    text = query.strip()
    per_page = settings.search_suggestion_per_page

    if len(text) < settings.search_suggestion_min_length:
        empty = {c: PagedResult.empty(1, per_page) for c in Category}
        return _response(text, empty)

    results = await service.search(
        text,
        categories=categories,
        per_page=per_page,
        use_semantic=True,
        use_fulltext=True,
    )
    return _response(text, results)
