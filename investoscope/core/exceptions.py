"""Error taxonomy for sync jobs and the FastAPI handlers that render it."""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from .logging import get_logger


logger = get_logger("errors")

RATE_LIMIT_MARKERS = ("rate limit", "429", "too many requests", "quota exceeded")


class AppException(Exception):
    """Base error carrying an HTTP status, a stable code and optional context."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_code: str = "INTERNAL_ERROR"
    message: str = "An unexpected error occurred"

    def __init__(
        self,
        message: str | None = None,
        error_code: str | None = None,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message or type(self).message
        self.error_code = error_code or type(self).error_code
        self.status_code = status_code or type(self).status_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {
            "error": self.error_code,
            "message": self.message,
            "status": self.status_code,
        }
        if self.details:
            body["details"] = self.details
        return body


class NotFoundError(AppException):
    status_code = status.HTTP_404_NOT_FOUND
    error_code = "NOT_FOUND"
    message = "Resource not found"


class AuthenticationError(AppException):
    """Missing or invalid job credential."""

    status_code = status.HTTP_401_UNAUTHORIZED
    error_code = "UNAUTHORIZED"
    message = "Unauthorized"

    def to_dict(self) -> dict[str, Any]:
        # Job callers expect the trigger envelope
        return {"ok": False, "error": self.message}


class RateLimitError(AppException):
    """A vendor throttled us."""

    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    error_code = "RATE_LIMITED"
    message = "Vendor rate limit reached. Please try again later."


class VendorUnavailableError(AppException):
    """A required vendor feed could not be obtained after retries and fallbacks.

    ``vendor`` and ``http_status`` are copied into ``details`` so they reach
    the job response and the sync log.
    """

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    error_code = "VENDOR_UNAVAILABLE"
    message = "Vendor feed unavailable"

    def __init__(
        self,
        message: str | None = None,
        vendor: str | None = None,
        http_status: int | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.vendor = vendor
        self.http_status = http_status
        merged = dict(details or {})
        if vendor:
            merged.setdefault("vendor", vendor)
        if http_status is not None:
            merged.setdefault("http_status", http_status)
        super().__init__(message=message, details=merged)


class JobAlreadyRunningError(AppException):
    """Another execution of the same job holds the lock."""

    status_code = status.HTTP_409_CONFLICT
    error_code = "JOB_ALREADY_RUNNING"
    message = "Job is already running"


class JobError(AppException):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_code = "JOB_ERROR"
    message = "Job execution failed"


def is_rate_limit_error(exc: BaseException) -> bool:
    """Whether an error should be surfaced to callers as a rate limit (HTTP 429)."""
    if isinstance(exc, RateLimitError):
        return True
    if getattr(exc, "http_status", None) == 429:
        return True
    response = getattr(exc, "response", None)
    if getattr(response, "status_code", None) == 429:
        return True
    text = str(exc).lower()
    return any(marker in text for marker in RATE_LIMIT_MARKERS)


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", "unknown")


def register_exception_handlers(app: FastAPI) -> None:
    """Render AppException subclasses and turn anything else into a 500."""

    @app.exception_handler(AppException)
    async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content=exc.to_dict(),
            headers={"X-Request-ID": _request_id(request)},
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception(
            f"Unhandled exception on {request.method} {request.url.path}",
            extra={"extra_fields": {"request_id": _request_id(request), "path": request.url.path}},
        )

        from .config import settings

        message = str(exc) if settings.debug else "An unexpected error occurred"
        if request.url.path.startswith("/jobs/"):
            content: dict[str, Any] = {"ok": False, "error": message}
        else:
            content = {"error": "INTERNAL_ERROR", "message": message, "status": 500}

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=content,
            headers={"X-Request-ID": _request_id(request)},
        )
