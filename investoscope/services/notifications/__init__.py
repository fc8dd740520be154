"""Outbound notifications: job alerts and price-alert emails via Apprise."""

from .alerts import send_job_alert, send_price_alert_email
from .sender import send_via_apprise


__all__ = ["send_job_alert", "send_price_alert_email", "send_via_apprise"]
