"""Tests for series fingerprints, price tolerance and write planning."""

from __future__ import annotations

import math
from datetime import date, timedelta

from investoscope.services.change_detection import (
    hash_series,
    plan_series_write,
    prices_differ,
    should_update_price,
)
from investoscope.services.series import PricePoint, normalize_points


def _series(closes: list[float], start: date = date(2026, 10, 1)) -> list[PricePoint]:
    return [PricePoint(start + timedelta(days=i), close) for i, close in enumerate(closes)]


class TestHashSeries:
    def test_same_series_same_hash(self):
        points = _series([100.0, 101.0, 102.0])
        assert hash_series(points) == hash_series(list(points))

    def test_changed_last_close_changes_hash(self):
        before = _series([100.0, 101.0, 102.0])
        after = _series([100.0, 101.0, 102.5])
        assert hash_series(before) != hash_series(after)

    def test_only_tail_is_fingerprinted(self):
        """Restating a point outside the tail does not change the hash."""
        points = _series([float(i) for i in range(10)])
        restated = [PricePoint(points[0].date, 999.0), *points[1:]]
        assert hash_series(points, tail=5) == hash_series(restated, tail=5)

    def test_tail_length_comes_from_settings(self, monkeypatch):
        from investoscope.core.config import settings

        points = _series([float(i) for i in range(10)])
        restated = [*points[:6], PricePoint(points[6].date, 999.0), *points[7:]]
        monkeypatch.setattr(settings, "hash_tail_length", 3)
        assert hash_series(points) == hash_series(restated)
        monkeypatch.setattr(settings, "hash_tail_length", 5)
        assert hash_series(points) != hash_series(restated)


class TestPriceTolerance:
    def test_within_tolerance(self):
        assert not prices_differ(100.04, 100.0)

    def test_beyond_tolerance(self):
        assert prices_differ(100.1, 100.0)

    def test_small_prices_use_floored_denominator(self):
        # 0.0004 / max(0.5, 1) stays under the default 0.0005
        assert not prices_differ(0.5004, 0.5)

    def test_should_update_when_nothing_stored(self):
        assert should_update_price(42.0, None)

    def test_should_not_update_with_missing_or_nan_latest(self):
        assert not should_update_price(None, 10.0)
        assert not should_update_price(math.nan, 10.0)
        assert not should_update_price(math.inf, None)

    def test_should_update_only_on_real_move(self):
        assert not should_update_price(250.1, 250.0)
        assert should_update_price(251.0, 250.0)


class TestPlanSeriesWrite:
    def test_everything_is_new_without_stored_rows(self):
        points = _series([1.0, 2.0, 3.0])
        plan = plan_series_write(points, None, None)
        assert plan.new_points == points
        assert plan.correction is None
        assert plan.writes == 3

    def test_appends_points_after_last_date(self):
        points = _series([1.0, 2.0, 3.0])
        plan = plan_series_write(points, points[0].date, 1.0)
        assert [p.close for p in plan.new_points] == [2.0, 3.0]
        assert plan.correction is None

    def test_same_date_restatement_is_a_correction(self):
        points = _series([1.0, 2.0, 3.0])
        plan = plan_series_write(points, points[-1].date, 2.5)
        assert plan.new_points == []
        assert plan.correction == points[-1]
        assert plan.writes == 1

    def test_same_date_within_tolerance_writes_nothing(self):
        points = _series([100.0, 200.0])
        plan = plan_series_write(points, points[-1].date, 200.01)
        assert plan.writes == 0

    def test_empty_series_writes_nothing(self):
        assert plan_series_write([], date(2026, 10, 1), 10.0).writes == 0


def test_normalize_points_sorts_dedupes_and_drops_non_finite():
    day = date(2026, 10, 5)
    points = [
        PricePoint(day, 3.0),
        PricePoint(day - timedelta(days=1), math.nan),
        PricePoint(day - timedelta(days=2), 1.0),
        PricePoint(day, 4.0),
    ]
    assert normalize_points(points) == [
        PricePoint(day - timedelta(days=2), 1.0),
        PricePoint(day, 4.0),
    ]
