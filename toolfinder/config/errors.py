"""
Error Taxonomy - Consistent error codes across the application.

Usage:
    from toolfinder.config.errors import ErrorCode, ToolfinderError

    raise ToolfinderError(ErrorCode.VALIDATION_ERROR, "Unknown entity kind")

Search is fail-open: providers, category adapters and the enhancement layer
run their work through `attempt()` and collapse failures with
`Outcome.unwrap_or()` instead of scattering try/except blocks.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ErrorCode(str, Enum):
    """Standardized error codes for machine-readable error responses."""

    # Embedding errors
    EMBEDDING_FAILED = "EMBEDDING_FAILED"
    EMBEDDING_TIMEOUT = "EMBEDDING_TIMEOUT"

    # Enhancement errors
    ENHANCEMENT_INVALID_RESPONSE = "ENHANCEMENT_INVALID_RESPONSE"

    # LLM/Model errors
    LLM_UNAVAILABLE = "LLM_UNAVAILABLE"
    LLM_RATE_LIMITED = "LLM_RATE_LIMITED"
    LLM_INVALID_RESPONSE = "LLM_INVALID_RESPONSE"
    LLM_AUTH_FAILED = "LLM_AUTH_FAILED"

    # Storage errors
    STORAGE_CONNECTION_FAILED = "STORAGE_CONNECTION_FAILED"

    # Security errors
    SECURITY_RATE_LIMITED = "SECURITY_RATE_LIMITED"

    # General errors
    INTERNAL_ERROR = "INTERNAL_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"


class ToolfinderError(Exception):
    """Base exception with error code support."""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(f"[{code.value}] {message}")

    def to_dict(self) -> dict[str, Any]:
        """Convert to API-friendly dictionary."""
        return {
            "code": self.code.value,
            "message": self.message,
            "details": self.details,
        }


# Domain-specific exceptions for cleaner imports
class EmbeddingError(ToolfinderError):
    """Query embedding generation errors."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        code: ErrorCode = ErrorCode.EMBEDDING_FAILED,
    ) -> None:
        super().__init__(code, message, details)


class EnhancementError(ToolfinderError):
    """RAG enhancement errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(ErrorCode.ENHANCEMENT_INVALID_RESPONSE, message, details)


class LLMError(ToolfinderError):
    """LLM/model errors."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        code: ErrorCode = ErrorCode.LLM_UNAVAILABLE,
    ) -> None:
        super().__init__(code, message, details)


class StorageError(ToolfinderError):
    """Storage/database errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(ErrorCode.STORAGE_CONNECTION_FAILED, message, details)


class ValidationError(ToolfinderError):
    """Invalid caller input."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(ErrorCode.VALIDATION_ERROR, message, details)


@dataclass(frozen=True)
class Outcome(Generic[T]):
    """Result of a fallible call: either a value or the error that replaced it."""

    value: T | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap_or(self, default: T) -> T:
        """Return the value, or `default` when the call failed."""
        if self.error is not None or self.value is None:
            return default
        return self.value


async def attempt(
    fn: Callable[..., Awaitable[T]],
    *args: Any,
    label: str,
    **kwargs: Any,
) -> Outcome[T]:
    """
    Await `fn(*args, **kwargs)` and capture any exception as an Outcome.

    Cancellation is not an Exception and propagates to the caller.

    Args:
        fn: Coroutine function to run
        label: Name used in the log line when the call fails

    Returns:
        Outcome holding either the value or the error
    """
    try:
        return Outcome(value=await fn(*args, **kwargs))
    except Exception as e:
        logger.error("%s failed: %s", label, e)
        return Outcome(error=e)
