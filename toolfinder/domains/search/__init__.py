"""
Search Domain - Hybrid multi-category search.

This domain handles:
- Lexical search (substring, FTS5 + trigram)
- Semantic search (embedding nearest-neighbor)
- Weighted score fusion
- Per-category adapters and global fan-out with independent pagination
"""

from .categories import (
    BaseCategoryAdapter,
    FusedCategoryAdapter,
    ListsAdapter,
    PagedCategoryAdapter,
    SubmissionsAdapter,
    TagsAdapter,
    ToolsAdapter,
    UsersAdapter,
    build_adapters,
)
from .contracts import CatalogStore, CategoryAdapter, QueryEmbedder
from .fusion import FusionEngine
from .global_search import GlobalSearchService
from .models import (
    Candidate,
    Category,
    CategoryRequest,
    FusedResult,
    FusionConfig,
    PagedResult,
    SearchConfig,
    SearchQuery,
)
from .providers import LexicalSearchProvider, SemanticSearchProvider

__all__ = [
    "CatalogStore",
    "CategoryAdapter",
    "QueryEmbedder",
    "Category",
    "Candidate",
    "CategoryRequest",
    "FusedResult",
    "FusionConfig",
    "PagedResult",
    "SearchConfig",
    "SearchQuery",
    "FusionEngine",
    "LexicalSearchProvider",
    "SemanticSearchProvider",
    "BaseCategoryAdapter",
    "FusedCategoryAdapter",
    "PagedCategoryAdapter",
    "ToolsAdapter",
    "SubmissionsAdapter",
    "TagsAdapter",
    "UsersAdapter",
    "ListsAdapter",
    "build_adapters",
    "GlobalSearchService",
]
