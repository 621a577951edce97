"""
Enhancement Models - Data types for RAG enhancement.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel


class EnhancedResult(BaseModel):
    """A ranked entity with optional generated summary and relevance explanation."""

    entity: Any
    entity_id: int | None = None
    summary: str | None = None
    relevance_explanation: str | None = None

    @property
    def enhanced(self) -> bool:
        return self.summary is not None or self.relevance_explanation is not None

    @classmethod
    def plain(cls, entity: Any) -> EnhancedResult:
        """Unenhanced wrapper: entity kept, generated fields null."""
        return cls(entity=entity, entity_id=getattr(entity, "id", None))
