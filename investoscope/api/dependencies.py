"""API dependencies for job and admin authentication."""

from __future__ import annotations

import hmac

from fastapi import Header

from investoscope.core.config import settings
from investoscope.core.exceptions import AuthenticationError


async def require_cron_key(x_cron_key: str | None = Header(default=None)) -> None:
    """
    Reject the request unless ``X-CRON-KEY`` matches the configured secret.

    An unset secret rejects everything, so a misconfigured deployment can
    never run jobs anonymously.
    """
    secret = settings.cron_secret
    if not secret or not x_cron_key:
        raise AuthenticationError()
    if not hmac.compare_digest(x_cron_key.encode(), secret.encode()):
        raise AuthenticationError()
