"""Change detection for price and NAV series.

A sync pass fetches a series for every symbol, but most of the time nothing
new has happened since the last pass. Three checks keep those passes from
writing:

- ``hash_series`` fingerprints the trailing points of a series. An unchanged
  fingerprint means nothing is written for that symbol.
- ``prices_differ`` compares two prices with a relative tolerance so vendor
  rounding noise does not count as a price move.
- ``plan_series_write`` works out which points are new and whether the last
  stored point was restated by the vendor (same date, different close).
"""

from __future__ import annotations

import hashlib
import math
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import date

from investoscope.core.config import settings
from investoscope.services.series import PricePoint


def hash_series(points: Sequence[PricePoint], tail: int | None = None) -> str:
    """SHA-256 over the last ``tail`` (date, close) pairs of an ascending series."""
    size = tail if tail is not None else settings.hash_tail_length
    digest = hashlib.sha256()
    for point in points[-size:]:
        digest.update(f"{point.date.isoformat()}-{point.close}".encode())
    return digest.hexdigest()


def prices_differ(new: float, old: float, epsilon: float | None = None) -> bool:
    """True when ``new`` moved away from ``old`` by more than the relative tolerance.

    The denominator is floored at 1 so tiny prices do not amplify noise.
    """
    eps = settings.price_epsilon if epsilon is None else epsilon
    return abs(new - old) / max(abs(old), 1.0) > eps


def should_update_price(
    latest: float | None,
    stored: float | None,
    epsilon: float | None = None,
) -> bool:
    """Whether ``latest`` should replace the stored unit price."""
    if latest is None or not math.isfinite(latest):
        return False
    if stored is None:
        return True
    return prices_differ(latest, float(stored), epsilon)


@dataclass
class SeriesWritePlan:
    """Rows a sync pass must write for one symbol."""

    new_points: list[PricePoint] = field(default_factory=list)
    correction: PricePoint | None = None

    @property
    def writes(self) -> int:
        return len(self.new_points) + (1 if self.correction else 0)


def plan_series_write(
    points: Sequence[PricePoint],
    last_date: date | None,
    last_close: float | None,
    epsilon: float | None = None,
) -> SeriesWritePlan:
    """Split a fetched series into appends and an optional same-date correction.

    Points after ``last_date`` are appended. When there are none and the
    newest fetched point falls on ``last_date`` with a close beyond tolerance,
    that stored row is rewritten in place.
    """
    if last_date is None:
        return SeriesWritePlan(new_points=list(points))

    new_points = [p for p in points if p.date > last_date]
    if new_points:
        return SeriesWritePlan(new_points=new_points)

    latest = points[-1] if points else None
    if (
        latest is not None
        and latest.date == last_date
        and last_close is not None
        and math.isfinite(latest.close)
        and prices_differ(latest.close, float(last_close), epsilon)
    ):
        return SeriesWritePlan(correction=latest)

    return SeriesWritePlan()
