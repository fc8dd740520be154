"""Job alerts and price-alert emails.

``send_job_alert`` is the pipeline's alerting sink. It fans one event out to
every configured channel (Slack webhook, email) and never raises: delivery
failures are logged and dropped so a broken channel cannot fail a sync.
"""

from __future__ import annotations

import asyncio
import html
import json
from typing import Any
from urllib.parse import quote

import apprise

from investoscope.core.config import settings
from investoscope.core.logging import get_logger

from .sender import email_url, send_via_apprise


logger = get_logger("notifications.alerts")

WARNING = "warning"
ERROR = "error"

ALERT_SUBJECT = "[InvestoScope] Sync Alert"


def decorate_message(job_id: str, status: str, message: str) -> str:
    icon = "❌" if status == ERROR else "⚠️"
    return f"{icon} {job_id}: {message}"


def _slack_body(message: str, meta: dict[str, Any] | None) -> str:
    if not meta:
        return message
    return f"{message}\n```{json.dumps(meta, indent=2, default=str)}```"


def _email_body(message: str, meta: dict[str, Any] | None) -> str:
    meta_block = (
        f"<pre style=\"background:#020617;padding:16px;border-radius:8px;color:#e2e8f0;\">"
        f"{html.escape(json.dumps(meta, indent=2, default=str))}</pre>"
        if meta
        else ""
    )
    return (
        "<div style=\"font-family: Arial, sans-serif; padding: 24px; background: #0f172a; color: #e2e8f0;\">"
        "<h2 style=\"color:#38bdf8;\">Automated Job Alert</h2>"
        f"<p style=\"font-size: 15px; line-height: 1.6;\">{html.escape(message)}</p>"
        f"{meta_block}"
        "<p style=\"font-size: 12px; color:#94a3b8; margin-top: 24px;\">"
        "This email was generated automatically. Configure ALERT_EMAIL_TO to disable.</p>"
        "</div>"
    )


async def _deliver(channel: str, url: str, title: str, body: str, priority: str, body_format: str) -> None:
    success, error = await send_via_apprise(url, title, body, priority, body_format)
    if not success:
        logger.warning(
            f"Job alert via {channel} failed: {error}",
            extra={"extra_fields": {"channel": channel}},
        )


async def send_job_alert(
    job_id: str,
    status: str,
    message: str,
    meta: dict[str, Any] | None = None,
) -> None:
    """Notify operators about a job warning or error. Never raises."""
    decorated = decorate_message(job_id, status, message)
    priority = "critical" if status == ERROR else "high"
    deliveries = []

    if settings.alert_slack_webhook_url:
        deliveries.append(
            _deliver(
                "slack",
                settings.alert_slack_webhook_url,
                ALERT_SUBJECT,
                _slack_body(decorated, meta),
                priority,
                apprise.NotifyFormat.MARKDOWN,
            )
        )

    for recipient in settings.alert_email_recipients:
        url = email_url(recipient)
        if url:
            deliveries.append(
                _deliver("email", url, ALERT_SUBJECT, _email_body(decorated, meta), priority, apprise.NotifyFormat.HTML)
            )

    logger.info(
        f"Job alert: {decorated}",
        extra={"extra_fields": {"job_id": job_id, "alert_status": status, "channels": len(deliveries)}},
    )
    if not deliveries:
        return

    results = await asyncio.gather(*deliveries, return_exceptions=True)
    for result in results:
        if isinstance(result, Exception):
            logger.warning(f"Job alert delivery raised: {result}")


def _format_inr(value: float) -> str:
    return f"₹{value:,.2f}"


def build_price_alert_email(
    *,
    name: str | None,
    option_name: str,
    symbol: str | None,
    target: float,
    direction: str,
    latest_price: float,
    option_id: int,
) -> tuple[str, str]:
    """Subject and HTML body of a triggered price alert."""
    greeting = f"Hi {html.escape(name.split()[0])}," if name and name.strip() else "Hi there,"
    label = html.escape(option_name) + (f" ({html.escape(symbol)})" if symbol else "")
    link = f"{settings.public_base_url.rstrip('/')}/dashboard/option/{quote(str(option_id))}"
    subject = f"Price alert triggered for {option_name}"
    body = (
        "<div style=\"font-family: 'Helvetica Neue', Arial, sans-serif; background: #0f172a; padding: 32px; color: #f1f5f9;\">"
        "<h1 style=\"margin: 0 0 16px; font-size: 24px;\">Price alert triggered</h1>"
        f"<p>{greeting}</p>"
        f"<p><strong>{label}</strong> just moved {direction} your alert level of "
        f"<strong>{_format_inr(target)}</strong>.</p>"
        f"<p>Latest traded price: <strong>{_format_inr(latest_price)}</strong></p>"
        "<p style=\"color: #cbd5f5;\">This alert has been paused. Create a new one from the "
        "option page if you want to continue tracking it.</p>"
        f"<a href=\"{link}\">View option</a>"
        "</div>"
    )
    return subject, body


async def send_price_alert_email(
    to: str,
    *,
    name: str | None,
    option_name: str,
    symbol: str | None,
    target: float,
    direction: str,
    latest_price: float,
    option_id: int,
) -> bool:
    """Email a user that their price alert fired. Returns False when not delivered."""
    url = email_url(to)
    if url is None:
        logger.debug("Email not configured; price alert email skipped")
        return False

    subject, body = build_price_alert_email(
        name=name,
        option_name=option_name,
        symbol=symbol,
        target=target,
        direction=direction,
        latest_price=latest_price,
        option_id=option_id,
    )
    success, error = await send_via_apprise(url, subject, body, "high", apprise.NotifyFormat.HTML)
    if not success:
        logger.warning(f"Price alert email failed: {error}", extra={"extra_fields": {"option_id": option_id}})
    return success
