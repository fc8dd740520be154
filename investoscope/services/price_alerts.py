"""One-shot price alert evaluation, run inline by the price sync."""

from __future__ import annotations

import math
from datetime import UTC, datetime

from investoscope.core.logging import get_logger
from investoscope.repositories import price_alerts_orm as alerts_repo
from investoscope.services.notifications import alerts as notify


logger = get_logger("services.price_alerts")

ABOVE = "above"
BELOW = "below"


def alert_condition_met(direction: str, target_price: float, latest_price: float) -> bool:
    if direction == ABOVE:
        return latest_price >= target_price
    if direction == BELOW:
        return latest_price <= target_price
    return False


async def check_price_alerts(
    option_id: int,
    option_name: str,
    symbol: str | None,
    latest_price: float | None,
) -> list[int]:
    """
    Fire and deactivate every active alert on ``option_id`` that ``latest_price`` satisfies.

    Emails are best-effort. Triggered alerts are deactivated whether or not
    the email went out, so an alert never fires twice.

    Returns:
        Ids of the alerts that fired.
    """
    if latest_price is None or not math.isfinite(latest_price):
        return []

    triggered: list[int] = []
    for alert in await alerts_repo.get_active_alerts(option_id):
        if not alert_condition_met(alert.direction, float(alert.target_price), latest_price):
            continue
        triggered.append(alert.id)

        user = alert.user
        if user is None or not user.email:
            continue
        try:
            await notify.send_price_alert_email(
                user.email,
                name=user.name,
                option_name=option_name,
                symbol=symbol,
                target=float(alert.target_price),
                direction=alert.direction,
                latest_price=latest_price,
                option_id=option_id,
            )
        except Exception as e:
            logger.warning(
                f"Price alert email failed for alert {alert.id}: {e}",
                extra={"extra_fields": {"alert_id": alert.id, "option_id": option_id}},
            )

    if triggered:
        await alerts_repo.deactivate_alerts(triggered, datetime.now(UTC))
        logger.info(
            f"Triggered {len(triggered)} price alert(s) for {symbol or option_id}",
            extra={"extra_fields": {"option_id": option_id, "alert_ids": triggered}},
        )
    return triggered
