"""
Configuration - Application settings and error taxonomy.
"""

from .errors import (
    EmbeddingError,
    EnhancementError,
    ErrorCode,
    LLMError,
    Outcome,
    StorageError,
    ToolfinderError,
    ValidationError,
    attempt,
)
from .settings import Settings, get_settings

__all__ = [
    # Settings
    "Settings",
    "get_settings",
    # Errors
    "ErrorCode",
    "ToolfinderError",
    "EmbeddingError",
    "EnhancementError",
    "LLMError",
    "StorageError",
    "ValidationError",
    # Fail-open helpers
    "Outcome",
    "attempt",
]
