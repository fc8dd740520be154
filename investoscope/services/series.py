"""Price series value types shared by vendors, repositories and jobs."""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date


@dataclass(frozen=True, slots=True)
class PricePoint:
    """One daily close (or NAV) observation."""

    date: date
    close: float


@dataclass(frozen=True, slots=True)
class PriceSeries:
    """Ascending series plus the vendor that produced it."""

    points: list[PricePoint]
    source: str

    def __bool__(self) -> bool:
        return bool(self.points)

    @property
    def latest(self) -> PricePoint | None:
        return self.points[-1] if self.points else None


def normalize_points(points: list[PricePoint]) -> list[PricePoint]:
    """Drop non-finite closes, keep the last value per date, sort ascending."""
    by_date: dict[date, float] = {}
    for point in points:
        if point.close is None or not math.isfinite(point.close):
            continue
        by_date[point.date] = float(point.close)
    return [PricePoint(day, close) for day, close in sorted(by_date.items())]
