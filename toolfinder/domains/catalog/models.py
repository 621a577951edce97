"""
Catalog Models - Read-only views of the searchable entities.

The catalog itself (accounts, moderation, submission processing) is owned
elsewhere; search only reads these shapes from the entity store.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class Visibility(str, Enum):
    """Visibility of tools and lists."""

    PUBLIC = "public"
    UNLISTED = "unlisted"
    PRIVATE = "private"


class SubmissionStatus(str, Enum):
    """Processing pipeline state of a submission."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    REJECTED = "rejected"


class SubmissionType(str, Enum):
    """Kinds of content users can submit."""

    ARTICLE = "article"
    GUIDE = "guide"
    DOCUMENTATION = "documentation"
    GITHUB_REPO = "github_repo"
    SOCIAL_POST = "social_post"
    CODE_SNIPPET = "code_snippet"
    WEBSITE = "website"
    VIDEO = "video"
    PODCAST = "podcast"
    POST = "post"
    OTHER = "other"


class TagType(str, Enum):
    """Tag categories."""

    CATEGORY = "category"
    LANGUAGE = "language"
    FRAMEWORK = "framework"
    LIBRARY = "library"
    VERSION = "version"
    PLATFORM = "platform"
    OTHER = "other"


class UserStatus(str, Enum):
    """Account state. Deleted accounts never appear in search."""

    ACTIVE = "active"
    DELETED = "deleted"


class User(BaseModel):
    """Platform user."""

    id: int
    username: str
    user_bio: str | None = None
    user_status: UserStatus = UserStatus.ACTIVE
    created_at: datetime

    def context_fields(self) -> list[tuple[str, str]]:
        fields = [("Title", self.username), ("Type", "user")]
        if self.user_bio:
            fields.append(("Description", self.user_bio))
        return fields


class Tag(BaseModel):
    """Tag attached to tools and submissions."""

    id: int
    tag_name: str
    tag_description: str | None = None
    tag_type: TagType = TagType.CATEGORY
    parent_id: int | None = None
    created_at: datetime

    def context_fields(self) -> list[tuple[str, str]]:
        fields = [("Title", self.tag_name), ("Type", f"tag ({self.tag_type.value})")]
        if self.tag_description:
            fields.append(("Description", self.tag_description))
        return fields


class Tool(BaseModel):
    """Developer tool listed in the directory."""

    id: int
    user_id: int
    tool_name: str
    tool_description: str | None = None
    tool_url: str | None = None
    author_note: str | None = None
    visibility: Visibility = Visibility.PUBLIC
    tags: list[str] = Field(default_factory=list)
    created_at: datetime

    def context_fields(self) -> list[tuple[str, str]]:
        fields = [("Title", self.tool_name)]
        if self.tool_description:
            fields.append(("Description", self.tool_description))
        fields.append(("Type", "tool"))
        if self.tool_url:
            fields.append(("URL", self.tool_url))
        if self.tags:
            fields.append(("Tags", ", ".join(self.tags)))
        return fields

    def embedding_text(self) -> str:
        """Text the embedding job encodes for this tool."""
        parts = [p for p in (self.tool_name, self.tool_description) if p]
        if self.tags:
            parts.append(f"Tags: {', '.join(self.tags)}")
        return "\n".join(parts).strip()


class Submission(BaseModel):
    """User-submitted article, repo, video or other resource."""

    id: int
    user_id: int
    username: str | None = None
    submission_type: SubmissionType = SubmissionType.ARTICLE
    status: SubmissionStatus = SubmissionStatus.PENDING
    submission_url: str | None = None
    submission_name: str | None = None
    submission_description: str | None = None
    author_note: str | None = None
    tags: list[str] = Field(default_factory=list)
    tools: list[str] = Field(default_factory=list)
    created_at: datetime

    def context_fields(self) -> list[tuple[str, str]]:
        fields: list[tuple[str, str]] = []
        if self.submission_name:
            fields.append(("Title", self.submission_name))
        if self.submission_description:
            fields.append(("Description", self.submission_description))
        fields.append(("Type", self.submission_type.value))
        if self.submission_url:
            fields.append(("URL", self.submission_url))
        if self.tags:
            fields.append(("Tags", ", ".join(self.tags)))
        if self.tools:
            fields.append(("Tools", ", ".join(self.tools)))
        return fields

    def embedding_text(self) -> str:
        """Text the embedding job encodes for this submission."""
        parts = [p for p in (self.submission_name, self.submission_description) if p]
        if self.tags:
            parts.append(f"Tags: {', '.join(self.tags)}")
        return "\n".join(parts).strip()


class ToolList(BaseModel):
    """User-curated list of tools."""

    id: int
    user_id: int
    username: str | None = None
    list_name: str
    visibility: Visibility = Visibility.PUBLIC
    tool_names: list[str] = Field(default_factory=list)
    created_at: datetime

    def context_fields(self) -> list[tuple[str, str]]:
        fields = [("Title", self.list_name), ("Type", "list")]
        if self.tool_names:
            fields.append(("Tools", ", ".join(self.tool_names)))
        return fields


class ToolScope(BaseModel):
    """Filters applied to every tool query."""

    visibility: Visibility = Visibility.PUBLIC

    model_config = {"frozen": True}


class SubmissionScope(BaseModel):
    """Filters applied to every submission query."""

    status: SubmissionStatus = SubmissionStatus.COMPLETED
    submission_type: SubmissionType | None = None

    model_config = {"frozen": True}


CatalogEntity = Tool | Submission | Tag | User | ToolList
