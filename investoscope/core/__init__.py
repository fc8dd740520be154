"""Core infrastructure: settings, logging, exceptions."""

from .config import settings
from .exceptions import (
    AppException,
    AuthenticationError,
    JobAlreadyRunningError,
    JobError,
    NotFoundError,
    RateLimitError,
    VendorUnavailableError,
    is_rate_limit_error,
)


__all__ = [
    "AppException",
    "AuthenticationError",
    "JobAlreadyRunningError",
    "JobError",
    "NotFoundError",
    "RateLimitError",
    "VendorUnavailableError",
    "is_rate_limit_error",
    "settings",
]
