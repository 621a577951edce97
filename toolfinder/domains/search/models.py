"""
Search Models - Data types for search domain.

Everything here is request-scoped: built fresh per search call, never persisted.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from enum import Enum
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, Field

from toolfinder.domains.catalog import SubmissionType

if TYPE_CHECKING:
    from toolfinder.config import Settings


class Category(str, Enum):
    """Searchable entity types. Closed set; adding one is a code change."""

    TOOLS = "tools"
    SUBMISSIONS = "submissions"
    TAGS = "tags"
    USERS = "users"
    LISTS = "lists"

    @property
    def page_param(self) -> str:
        """Caller-side pagination key, e.g. ``tools_page``."""
        return f"{self.value}_page"

    @classmethod
    def select(cls, requested: Iterable[str | Category] | None) -> list[Category]:
        """
        Intersect requested names with the supported set.

        Unknown names are dropped silently; an empty intersection selects
        every category. Order follows the enum, not the request.
        """
        wanted: set[str] = set()
        for name in requested or ():
            wanted.add(name.value if isinstance(name, Category) else str(name).strip().lower())
        selected = [c for c in cls if c.value in wanted]
        return selected or list(cls)


class FusionConfig(BaseModel):
    """Weights for merging lexical and semantic candidates."""

    lexical_weight: float = Field(default=0.6, ge=0.0, le=1.0)
    semantic_weight: float = Field(default=0.4, ge=0.0, le=1.0)
    rank_smoothing: float = Field(default=0.1, gt=0.0)

    model_config = {"frozen": True}


class SearchConfig(BaseModel):
    """Engine constants, fixed at construction time."""

    default_per_page: int = Field(default=10, ge=1)
    max_per_page: int = Field(default=50, ge=1)
    max_page: int = Field(default=10_000, ge=1)
    buffer_multiplier: int = Field(default=10, ge=1)
    max_buffer: int = Field(default=200, ge=1)
    max_cosine_distance: float = Field(default=0.8, gt=0.0, le=2.0)
    semantic_overfetch: int = Field(default=2, ge=1)
    category_timeout_seconds: float | None = 15.0
    fusion: FusionConfig = Field(default_factory=FusionConfig)

    model_config = {"frozen": True}

    @classmethod
    def from_settings(cls, settings: Settings) -> SearchConfig:
        return cls(
            default_per_page=settings.search_default_per_page,
            max_per_page=settings.search_max_per_page,
            max_page=settings.search_max_page,
            buffer_multiplier=settings.search_buffer_multiplier,
            max_buffer=settings.search_max_buffer,
            max_cosine_distance=settings.search_max_cosine_distance,
            semantic_overfetch=settings.search_semantic_overfetch,
            category_timeout_seconds=settings.search_category_timeout_seconds,
            fusion=FusionConfig(
                lexical_weight=settings.search_lexical_weight,
                semantic_weight=settings.search_semantic_weight,
            ),
        )

    def buffer_limit(self, per_page: int) -> int:
        """Size of the fused buffer that gets paginated in memory."""
        return min(per_page * self.buffer_multiplier, self.max_buffer)

    def clamp_per_page(self, per_page: int | None) -> int:
        if per_page is None:
            return self.default_per_page
        return max(1, min(int(per_page), self.max_per_page))

    def parse_page(self, value: Any) -> int:
        """Parse a caller-supplied page; blanks and garbage mean page 1."""
        if value is None or value == "":
            return 1
        try:
            page = int(value)
        except (TypeError, ValueError):
            return 1
        return max(1, min(page, self.max_page))

    def resolve_pages(self, pages: Mapping[str, Any] | None) -> dict[Category, int]:
        """Page per category from ``tools_page`` style keys or category names."""
        raw = dict(pages or {})
        resolved: dict[Category, int] = {}
        for category in Category:
            value = raw.get(category.page_param)
            if value is None:
                value = raw.get(category.value)
            if value is None:
                value = raw.get(category)
            resolved[category] = self.parse_page(value)
        return resolved

    def fallback_per_page(self, per_page: Any) -> int:
        """Page size for error responses; unparseable input means the default."""
        try:
            return self.clamp_per_page(per_page)
        except (TypeError, ValueError):
            return self.default_per_page


class SearchQuery(BaseModel):
    """Normalized search request."""

    text: str
    categories: tuple[Category, ...]
    per_page: int = Field(ge=1)
    pages: dict[Category, int] = Field(default_factory=dict)
    use_semantic: bool = True
    use_fulltext: bool = True
    submission_type: SubmissionType | None = None

    model_config = {"frozen": True}

    @classmethod
    def build(
        cls,
        text: str | None,
        categories: Iterable[str | Category] | None = None,
        pages: Mapping[str, Any] | None = None,
        per_page: int | None = None,
        use_semantic: bool = True,
        use_fulltext: bool = True,
        submission_type: SubmissionType | str | None = None,
        config: SearchConfig | None = None,
    ) -> SearchQuery:
        """
        Build a query from raw caller input.

        Args:
            text: Query text (trimmed)
            categories: Requested category names; unknown names are dropped
            pages: Page numbers keyed by ``tools_page`` style keys or category names
            per_page: Page size, clamped to the configured range
            submission_type: Restrict submissions to one type (None = any)
            config: Engine constants (defaults if None)
        """
        config = config or SearchConfig()
        return cls(
            text=(text or "").strip(),
            categories=tuple(Category.select(categories)),
            per_page=config.clamp_per_page(per_page),
            pages=config.resolve_pages(pages),
            use_semantic=use_semantic,
            use_fulltext=use_fulltext,
            submission_type=SubmissionType(submission_type) if submission_type else None,
        )

    @property
    def is_blank(self) -> bool:
        return not self.text

    def page_for(self, category: Category) -> int:
        return self.pages.get(category, 1)


class CategoryRequest(BaseModel):
    """Parameters one category adapter needs, passed by value."""

    text: str
    page: int = Field(default=1, ge=1)
    per_page: int = Field(default=10, ge=1)
    buffer_limit: int = Field(default=100, ge=1)
    use_semantic: bool = True
    use_fulltext: bool = True
    submission_type: SubmissionType | None = None

    model_config = {"frozen": True}

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.per_page


class Candidate(BaseModel):
    """
    One entity returned by a provider.

    ``lexical_rank`` is lower-is-better (0 = best lexical match in its list);
    ``semantic_distance`` is cosine distance (0 = identical direction).
    """

    entity_id: int
    entity: Any
    lexical_rank: float | None = None
    semantic_distance: float | None = None


class FusedResult(BaseModel):
    """One unique entity after merging provider candidates."""

    entity_id: int
    entity: Any
    combined_score: float = 0.0
    lexical_score: float = 0.0
    semantic_score: float = 0.0


class PagedResult(BaseModel):
    """One page of a category's results."""

    items: list[Any] = Field(default_factory=list)
    total_count: int = Field(default=0, ge=0)
    page: int = Field(default=1, ge=1)
    per_page: int = Field(default=10, ge=1)

    @property
    def has_more(self) -> bool:
        return self.total_count > self.page * self.per_page

    @classmethod
    def empty(cls, page: int = 1, per_page: int = 10) -> PagedResult:
        return cls(items=[], total_count=0, page=page, per_page=per_page)

    @classmethod
    def from_buffer(cls, buffer: Sequence[Any], page: int, per_page: int) -> PagedResult:
        """Slice an in-memory buffer; total_count is the whole buffer length."""
        offset = (page - 1) * per_page
        return cls(
            items=list(buffer[offset : offset + per_page]),
            total_count=len(buffer),
            page=page,
            per_page=per_page,
        )
