"""Tests for the job progress tracker."""

from __future__ import annotations

from investoscope.services.progress import (
    COMPLETED,
    ERROR,
    RUNNING,
    InMemoryProgressStore,
    ProgressTracker,
)


def _tracker() -> ProgressTracker:
    return ProgressTracker(InMemoryProgressStore())


async def test_unknown_job_reads_as_not_started():
    progress = await _tracker().get("sync-prices")
    assert progress.status == RUNNING
    assert progress.current == "Not started"
    assert progress.total == 0


async def test_updates_merge_partial_snapshots():
    tracker = _tracker()
    await tracker.start("sync-prices")
    await tracker.update("sync-prices", total=120, processed=0)
    await tracker.update("sync-prices", processed=40, current="Updated 40")

    progress = await tracker.get("sync-prices")
    assert (progress.total, progress.processed, progress.current) == (120, 40, "Updated 40")
    assert progress.status == RUNNING


async def test_terminal_state_ignores_late_writes():
    tracker = _tracker()
    await tracker.start("sync-catalogue")
    await tracker.complete("sync-catalogue", "Stocks +1")

    assert await tracker.update("sync-catalogue", processed=5) is None
    assert await tracker.fail("sync-catalogue", "late") is None

    progress = await tracker.get("sync-catalogue")
    assert progress.status == COMPLETED
    assert progress.current == "Stocks +1"
    assert progress.error is None


async def test_fail_records_error():
    tracker = _tracker()
    await tracker.start("sync-mf-nav")
    await tracker.fail("sync-mf-nav", "AMFI master fetch failed: 503")

    progress = await tracker.get("sync-mf-nav")
    assert progress.status == ERROR
    assert progress.error == "AMFI master fetch failed: 503"
    assert progress.to_dict()["current"] == "Error: AMFI master fetch failed: 503"


async def test_start_resets_a_finished_entry():
    tracker = _tracker()
    await tracker.start("sync-prices")
    await tracker.update("sync-prices", total=10, processed=10)
    await tracker.fail("sync-prices", "boom")

    await tracker.start("sync-prices")

    progress = await tracker.get("sync-prices")
    assert progress.status == RUNNING
    assert progress.processed == 0
    assert "error" not in progress.to_dict()
