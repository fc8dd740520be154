"""Logging setup: JSON or text output, request/job correlation and secret redaction."""

from __future__ import annotations

import json
import logging
import re
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from .config import settings


request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
job_id_var: ContextVar[Optional[str]] = ContextVar("job_id", default=None)


def _correlation() -> Dict[str, str]:
    ids: Dict[str, str] = {}
    request_id = request_id_var.get()
    if request_id:
        ids["request_id"] = request_id
    job_id = job_id_var.get()
    if job_id:
        ids["job_id"] = job_id
    return ids


class StructuredFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **_correlation(),
        }
        entry.update(getattr(record, "extra_fields", None) or {})

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        if settings.debug:
            entry["location"] = f"{record.pathname}:{record.lineno} in {record.funcName}"

        return json.dumps(entry, default=str)


class TextFormatter(logging.Formatter):
    """Readable single-line output for local runs."""

    def format(self, record: logging.LogRecord) -> str:
        ids = _correlation()
        tags = "".join(f"[{value[:12]}] " for value in ids.values())
        stamp = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")
        line = f"{stamp} {record.levelname:8} {tags}{record.name}: {record.getMessage()}"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


class SensitiveDataFilter(logging.Filter):
    """Mask vendor API keys, the cron secret and similar values in messages.

    Vendor URLs carry keys as query parameters (``apikey=...``), so values stop
    at ``&`` as well as at whitespace and delimiters.
    """

    SENSITIVE_KEYS = (
        "apikey",
        "api_key",
        "token",
        "secret",
        "authorization",
        "x-cron-key",
        "cron_secret",
        "password",
    )

    def __init__(self) -> None:
        super().__init__()
        self._patterns = [
            re.compile(rf"""(["']?{re.escape(key)}["']?\s*[=:]\s*)[^\s,&}}\]]+""", re.IGNORECASE)
            for key in self.SENSITIVE_KEYS
        ]

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        lowered = message.lower()
        if not any(key in lowered for key in self.SENSITIVE_KEYS):
            return True

        for pattern in self._patterns:
            message = pattern.sub(r"\1[REDACTED]", message)
        record.msg = message
        record.args = None
        return True


def setup_logging() -> None:
    """Install a single stdout handler on the root logger."""
    level = getattr(logging, settings.log_level)
    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    for existing in root_logger.handlers[:]:
        root_logger.removeHandler(existing)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(StructuredFormatter() if settings.log_format == "json" else TextFormatter())
    handler.addFilter(SensitiveDataFilter())
    root_logger.addHandler(handler)

    # Vendor clients log every request URL at INFO
    for noisy in ("uvicorn.access", "httpx", "yfinance", "apprise", "celery.redirected"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get a logger with the investoscope prefix."""
    return logging.getLogger(f"investoscope.{name}")
