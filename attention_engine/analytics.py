# =============================================================================
# attention_engine/analytics.py
#
# Statistics Aggregator — turns the smoothed status stream into session
# counters and a distraction high-water mark.
#
#   total_checks       += 1   on FOCUSED or DISTRACTED
#   distracted_checks  += 1   on DISTRACTED
#   NO_FACE / ERROR           leave every counter untouched
#
#   current_pct = round(100 · distracted / total)   (0 when total = 0)
#   peak_pct    = max(peak_pct, current_pct), stamped with the wall clock
#                 at the moment it rises
#
#   focused_checks = total − distracted  (derived, never stored)
#
# Invariants: counters and peak are non-decreasing, distracted ≤ total.
# =============================================================================

import math
from typing import Optional

from attention_engine.data_structures import AggregateStats, FrameStatus
from core.logger import get_logger

log = get_logger(__name__)


def distracted_pct(distracted: int, total: int) -> int:
    """Integer percentage, rounding halves up."""
    if total <= 0:
        return 0
    return int(math.floor(100.0 * distracted / total + 0.5))


class StatisticsAggregator:
    """
    Accumulates per-session attention counters.

    Usage:
        agg = StatisticsAggregator()
        stats = agg.update(FrameStatus.DISTRACTED, now_ms)   # AggregateStats
    """

    def __init__(self, prior: Optional[AggregateStats] = None):
        self.total_checks = 0
        self.distracted_checks = 0
        self.peak_distracted_pct = 0
        self.peak_distracted_at = 0
        if prior is not None:
            self.seed(prior)

    # ── Public API ────────────────────────────────────────────────────────────

    def seed(self, prior: AggregateStats) -> None:
        """Re-inject persisted counters (e.g. resuming an earlier session)."""
        if prior.total_checks < 0 or not 0 <= prior.distracted_checks <= prior.total_checks:
            raise ValueError(
                f"inconsistent prior stats: {prior.distracted_checks}/{prior.total_checks}"
            )
        self.total_checks = prior.total_checks
        self.distracted_checks = prior.distracted_checks
        self.peak_distracted_pct = max(0, min(100, prior.peak_distracted_pct))
        self.peak_distracted_at = prior.peak_distracted_at
        log.debug(f"Aggregator seeded: {self.distracted_checks}/{self.total_checks} "
                  f"(peak {self.peak_distracted_pct}%)")

    def update(self, status: FrameStatus, now_ms: int) -> AggregateStats:
        """
        Fold one smoothed status into the counters.

        Args:
            status: smoothed status for this frame
            now_ms: wall-clock epoch millis, used to stamp a new peak

        Returns:
            Snapshot after the update
        """
        if status.is_attention:
            self.total_checks += 1
            if status == FrameStatus.DISTRACTED:
                self.distracted_checks += 1

        current = self.current_distracted_pct
        if current > self.peak_distracted_pct:
            self.peak_distracted_pct = current
            self.peak_distracted_at = int(now_ms)

        return self.snapshot()

    def snapshot(self) -> AggregateStats:
        return AggregateStats(
            total_checks=self.total_checks,
            distracted_checks=self.distracted_checks,
            current_distracted_pct=self.current_distracted_pct,
            peak_distracted_pct=self.peak_distracted_pct,
            peak_distracted_at=self.peak_distracted_at,
        )

    # ── Derived values ────────────────────────────────────────────────────────

    @property
    def current_distracted_pct(self) -> int:
        return distracted_pct(self.distracted_checks, self.total_checks)

    @property
    def focused_checks(self) -> int:
        return self.total_checks - self.distracted_checks
