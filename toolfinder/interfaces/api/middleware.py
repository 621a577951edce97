"""
API Middleware - Request context, error mapping and rate limiting.

Every error body has the same shape::

    {"error": {"code": ..., "message": ..., "details": {...}}, "request_id": ...}
"""

from __future__ import annotations

import logging
import math
import time
import uuid
from collections.abc import Awaitable, Callable

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from toolfinder.config.errors import ErrorCode, ToolfinderError

logger = logging.getLogger(__name__)

__all__ = [
    "ErrorHandlerMiddleware",
    "RateLimitMiddleware",
    "RequestContextMiddleware",
    "WindowCounter",
    "error_response",
    "error_status",
]

CallNext = Callable[[Request], Awaitable[Response]]

EXEMPT_PATHS = frozenset({"/health"})

_STATUS_BY_CODE = {
    ErrorCode.VALIDATION_ERROR: 400,
    ErrorCode.LLM_AUTH_FAILED: 401,
    ErrorCode.SECURITY_RATE_LIMITED: 429,
    ErrorCode.LLM_RATE_LIMITED: 429,
    ErrorCode.LLM_UNAVAILABLE: 503,
    ErrorCode.STORAGE_CONNECTION_FAILED: 503,
    ErrorCode.EMBEDDING_TIMEOUT: 504,
}


def error_status(code: ErrorCode) -> int:
    """HTTP status for an error code; anything unmapped is a 500."""
    return _STATUS_BY_CODE.get(code, 500)


def error_response(
    request: Request,
    error: ToolfinderError,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    """Build the standard JSON error body for ``error``."""
    return JSONResponse(
        status_code=error_status(error.code),
        content={"error": error.to_dict(), "request_id": _request_id(request)},
        headers=headers,
    )


class RequestContextMiddleware(BaseHTTPMiddleware):
    """
    Tag each request with an ID and log how long it took.

    A caller-supplied ``X-Request-ID`` is reused so traces line up across
    services. Both the ID and the latency are echoed as response headers.
    """

    async def dispatch(self, request: Request, call_next: CallNext) -> Response:
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
        request.state.request_id = request_id
        started = time.perf_counter()

        response = await call_next(request)

        elapsed_ms = (time.perf_counter() - started) * 1000
        response.headers["X-Request-ID"] = request_id
        response.headers["X-Response-Time-Ms"] = f"{elapsed_ms:.1f}"
        logger.info(
            "[%s] %s %s -> %d (%.1fms)",
            request_id,
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms,
        )
        return response


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """Turn escaped exceptions into error bodies."""

    async def dispatch(self, request: Request, call_next: CallNext) -> Response:
        try:
            return await call_next(request)
        except ToolfinderError as e:
            logger.error("[%s] %s: %s %s", _request_id(request), e.code.value, e.message, e.details)
            return error_response(request, e)
        except Exception as e:
            logger.exception("[%s] Unhandled error: %s", _request_id(request), e)
            return error_response(
                request, ToolfinderError(ErrorCode.INTERNAL_ERROR, "Internal server error")
            )


class WindowCounter:
    """
    Fixed-window hit counter keyed by client.

    Only the current window is tracked: the first hit after the window rolls
    over drops every count from the previous one, so the table never holds
    more keys than there were clients within a single window.

    Example:
        >>> counter = WindowCounter(limit=2)
        >>> counter.hit("10.0.0.1"), counter.hit("10.0.0.1"), counter.hit("10.0.0.1")
        (1, 0, None)
    """

    def __init__(
        self,
        limit: int,
        window_seconds: int = 60,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.limit = limit
        self.window_seconds = window_seconds
        self._clock = clock
        self._window: int | None = None
        self._counts: dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._counts)

    def hit(self, key: str) -> int | None:
        """Count one request; returns the remaining allowance, or None when over the limit."""
        window = int(self._clock() // self.window_seconds)
        if window != self._window:
            self._window = window
            self._counts.clear()

        used = self._counts.get(key, 0)
        if used >= self.limit:
            return None
        self._counts[key] = used + 1
        return self.limit - used - 1

    def retry_after(self) -> int:
        """Whole seconds until the current window closes."""
        return max(1, math.ceil(self.window_seconds - self._clock() % self.window_seconds))


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Per client IP request limit; health checks are never counted."""

    def __init__(
        self,
        app: ASGIApp,
        requests_per_minute: int = 120,
        clock: Callable[[], float] = time.time,
    ) -> None:
        super().__init__(app)
        self.counter = WindowCounter(requests_per_minute, 60, clock)

    async def dispatch(self, request: Request, call_next: CallNext) -> Response:
        if request.url.path in EXEMPT_PATHS:
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        remaining = self.counter.hit(client_ip)
        if remaining is None:
            retry_after = self.counter.retry_after()
            logger.warning("[%s] Rate limit exceeded for %s", _request_id(request), client_ip)
            limited = ToolfinderError(
                ErrorCode.SECURITY_RATE_LIMITED,
                f"Too many requests. Retry in {retry_after}s.",
                {"retry_after": retry_after},
            )
            return error_response(request, limited, headers={"Retry-After": str(retry_after)})

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(self.counter.limit)
        response.headers["X-RateLimit-Remaining"] = str(remaining)
        return response


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", "unknown")
