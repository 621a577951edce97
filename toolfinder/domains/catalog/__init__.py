"""
Catalog Domain - Entity shapes the search engine reads.

Owned and written by the wider application; search treats them as read-only.
"""

from .models import (
    CatalogEntity,
    Submission,
    SubmissionScope,
    SubmissionStatus,
    SubmissionType,
    Tag,
    TagType,
    Tool,
    ToolList,
    ToolScope,
    User,
    UserStatus,
    Visibility,
)

__all__ = [
    "CatalogEntity",
    "Submission",
    "SubmissionScope",
    "SubmissionStatus",
    "SubmissionType",
    "Tag",
    "TagType",
    "Tool",
    "ToolList",
    "ToolScope",
    "User",
    "UserStatus",
    "Visibility",
]
