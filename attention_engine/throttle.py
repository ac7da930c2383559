# =============================================================================
# attention_engine/throttle.py
#
# Emission Throttle — decouples frame cadence from report cadence.
# A report may go out only if more than `interval_ms` has passed since the
# last one. The first frame of a session always opens the gate.
# =============================================================================

from typing import Optional

from config import EMIT_INTERVAL_MS


class EmissionThrottle:
    """
    Usage:
        throttle = EmissionThrottle(200)
        if throttle.permit(timestamp_ms):
            send(report)
    """

    def __init__(self, interval_ms: float = EMIT_INTERVAL_MS):
        if interval_ms < 0:
            raise ValueError("interval_ms must be >= 0")
        self.interval_ms = float(interval_ms)
        self.last_emit_ms: Optional[float] = None

    def ready(self, timestamp_ms: float) -> bool:
        """True if a report at `timestamp_ms` would be permitted (no state change)."""
        if self.last_emit_ms is None:
            return True
        return timestamp_ms - self.last_emit_ms > self.interval_ms

    def permit(self, timestamp_ms: float) -> bool:
        """Check the gate and, if open, record `timestamp_ms` as the last emission."""
        if not self.ready(timestamp_ms):
            return False
        self.last_emit_ms = float(timestamp_ms)
        return True

    def reset(self) -> None:
        self.last_emit_ms = None
