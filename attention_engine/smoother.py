# =============================================================================
# attention_engine/smoother.py
#
# Status Smoother — suppresses NO_FACE flicker.
#
# Problem without smoothing:
#   A single detector miss (motion blur, a hand passing the face) flips the
#   reported status to NO FACE for one frame, then straight back.
#
# Solution — consecutive-miss counter:
#   NO_FACE is only trusted after `threshold` consecutive misses. Until then
#   the last confident status (FOCUSED / DISTRACTED) is repeated.
#
#   FOCUSED ─┐                       ┌─ 1..K−1 misses → last known status
#            ├── NO_FACE (miss k) ───┤
#   DISTRACTED┘                      └─ k ≥ K        → NO_FACE
#
#   ERROR passes straight through and leaves the counter and memory alone.
# =============================================================================

from typing import Optional

from config import NO_FACE_THRESHOLD
from attention_engine.data_structures import FrameStatus
from core.logger import get_logger

log = get_logger(__name__)


class StatusSmoother:
    """
    Stateful filter from raw FrameStatus to smoothed status.

    Usage:
        smoother = StatusSmoother()
        status = smoother.update(FrameStatus.NO_FACE)
    """

    def __init__(self, threshold: int = NO_FACE_THRESHOLD):
        if threshold < 1:
            raise ValueError("threshold must be >= 1")
        self.threshold = threshold
        self.consecutive_no_face: int = 0
        self.last_known: Optional[FrameStatus] = None

    def update(self, status: FrameStatus) -> FrameStatus:
        """Feed one raw status, return the smoothed status."""
        if status == FrameStatus.NO_FACE:
            self.consecutive_no_face += 1
            if self.consecutive_no_face < self.threshold and self.last_known is not None:
                return self.last_known
            if self.consecutive_no_face == self.threshold:
                log.debug(f"Face absent for {self.threshold} consecutive frames.")
            return FrameStatus.NO_FACE

        if status.is_attention:
            self.consecutive_no_face = 0
            self.last_known = status
            return status

        # ERROR: transient fault, not attention evidence
        return status

    def reset(self) -> None:
        self.consecutive_no_face = 0
        self.last_known = None
