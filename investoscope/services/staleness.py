"""Deactivate catalogue records that dropped out of a vendor universe.

A truncated vendor response looks exactly like half the market delisting.
So records are deactivated only when the symbols seen in this run cover at
least ``stale_coverage_ratio`` of the records that were active beforehand.
"""

from __future__ import annotations

from collections.abc import Collection, Sequence
from dataclasses import dataclass, field

from investoscope.core.config import settings
from investoscope.core.logging import get_logger
from investoscope.repositories import catalogue_orm as catalogue_repo


logger = get_logger("services.staleness")


@dataclass
class SweepResult:
    existing: int
    seen: int
    guard_passed: bool
    deactivated_ids: list[int] = field(default_factory=list)

    @property
    def deactivated(self) -> int:
        return len(self.deactivated_ids)


def coverage_guard(seen: int, existing: int, ratio: float | None = None) -> bool:
    """True when the seen set is non-empty and large enough to trust."""
    floor = settings.stale_coverage_ratio if ratio is None else ratio
    return seen > 0 and seen >= existing * floor


def select_stale(
    existing: Sequence[tuple[int, str]],
    seen: Collection[str],
    ratio: float | None = None,
) -> list[int] | None:
    """Ids of previously active records missing from ``seen``, or None if the guard fails."""
    if not coverage_guard(len(seen), len(existing), ratio):
        return None
    return [option_id for option_id, symbol in existing if symbol and symbol not in seen]


async def sweep_stale(
    universe: str,
    existing: Sequence[tuple[int, str]],
    seen: Collection[str],
) -> SweepResult:
    """Deactivate stale records of one universe (``existing`` is the pre-ingest snapshot)."""
    stale = select_stale(existing, seen)
    if stale is None:
        logger.warning(
            f"Skipping {universe} staleness sweep: saw {len(seen)} of {len(existing)} active symbols",
            extra={"extra_fields": {"universe": universe, "seen": len(seen), "existing": len(existing)}},
        )
        return SweepResult(existing=len(existing), seen=len(seen), guard_passed=False)

    if stale:
        await catalogue_repo.deactivate_options(stale)
        logger.info(
            f"Deactivated {len(stale)} stale {universe} records",
            extra={"extra_fields": {"universe": universe, "deactivated": len(stale)}},
        )
    return SweepResult(
        existing=len(existing),
        seen=len(seen),
        guard_passed=True,
        deactivated_ids=stale,
    )
