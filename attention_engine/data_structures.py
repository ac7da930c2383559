# =============================================================================
# attention_engine/data_structures.py
# Shared dataclasses and enums that flow between every stage of the
# attention pipeline. Value objects are frozen: once built they never change.
# =============================================================================

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Sequence

import numpy as np


# ── Status alphabets ──────────────────────────────────────────────────────────

class FrameStatus(str, Enum):
    """Per-frame attention status. Values are the wire names."""
    FOCUSED    = "FOCUSED"
    DISTRACTED = "DISTRACTED"
    NO_FACE    = "NO FACE"
    ERROR      = "ERROR"

    @property
    def is_attention(self) -> bool:
        """True for the two statuses that say something about attention."""
        return self in (FrameStatus.FOCUSED, FrameStatus.DISTRACTED)


class GazeLabel(str, Enum):
    CENTER = "CENTER"
    LEFT   = "LEFT"
    RIGHT  = "RIGHT"
    UP     = "UP"
    DOWN   = "DOWN"


class EngineState(str, Enum):
    """Lifecycle of the engine driver."""
    UNINITIALIZED = "UNINITIALIZED"
    READY         = "READY"
    RUNNING       = "RUNNING"
    STOPPED       = "STOPPED"


# ── Landmarks ─────────────────────────────────────────────────────────────────

@dataclass(frozen=True, eq=False)
class LandmarkSet:
    """
    Normalized (0–1) 2-D face landmarks for a single frame.

    `points` is an (N, 2) float array indexed by MediaPipe landmark id.
    The array is made read-only on construction.
    """
    points: np.ndarray

    def __post_init__(self):
        pts = np.array(self.points, dtype=np.float64)
        if pts.ndim != 2 or pts.shape[1] < 2:
            raise ValueError(f"landmarks must be an (N, 2) array, got shape {pts.shape}")
        pts = pts[:, :2].copy()
        pts.flags.writeable = False
        object.__setattr__(self, "points", pts)

    @classmethod
    def from_points(cls, points: Sequence[Sequence[float]]) -> "LandmarkSet":
        """Build from any sequence of (x, y) or (x, y, z) tuples."""
        return cls(np.asarray(points, dtype=np.float64))

    def __len__(self) -> int:
        return int(self.points.shape[0])

    def has(self, indices: Sequence[int]) -> bool:
        """True if every index in `indices` is present."""
        return all(0 <= i < len(self) for i in indices)

    def to_pixels(self, width: int, height: int) -> np.ndarray:
        """Scale normalized coordinates to pixel space."""
        return self.points * np.array([width, height], dtype=np.float64)


# ── Geometry ──────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class GazeReading:
    """Gaze ratios averaged over both eyes plus the thresholded label."""
    # (iris_x − outer_x) / (inner_x − outer_x); ~0.5 when centered
    horizontal_ratio: float
    # (iris_y − eye_center_y) / frame_height; negative = up
    vertical_ratio: float
    gaze_label: GazeLabel

    def to_dict(self) -> dict:
        return {
            "gaze": self.gaze_label.value,
            "horizontalRatio": self.horizontal_ratio,
            "verticalRatio": self.vertical_ratio,
        }


@dataclass(frozen=True)
class HeadPosture:
    """Head orientation in degrees (display telemetry)."""
    yaw: float
    pitch: float

    def to_dict(self) -> dict:
        return {"yaw": self.yaw, "pitch": self.pitch}


@dataclass(frozen=True)
class Classification:
    """Classifier output: the status plus whatever geometry was available."""
    status: FrameStatus
    gaze: Optional[GazeReading] = None
    posture: Optional[HeadPosture] = None


# ── Statistics ────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class AggregateStats:
    """
    Snapshot of the session counters.
    focused_checks is derived, never stored.
    """
    total_checks: int = 0
    distracted_checks: int = 0
    current_distracted_pct: int = 0
    peak_distracted_pct: int = 0
    # Epoch millis of the last peak increase (0 = never)
    peak_distracted_at: int = 0

    @property
    def focused_checks(self) -> int:
        return self.total_checks - self.distracted_checks

    @property
    def focused_pct(self) -> int:
        # Complement of the rounded distracted share, so the pair sums to 100
        if self.total_checks <= 0:
            return 0
        return 100 - self.current_distracted_pct

    def to_dict(self) -> dict:
        return {
            "totalChecks": self.total_checks,
            "distractedChecks": self.distracted_checks,
            "focusedChecks": self.focused_checks,
            "currentDistractedPct": self.current_distracted_pct,
            "focusedPct": self.focused_pct,
            "peakDistractedPct": self.peak_distracted_pct,
            "peakDistractedAt": self.peak_distracted_at,
        }


# ── Outputs ───────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Report:
    """Throttled snapshot handed to the telemetry sink."""
    subject_id: str
    display_name: str
    status: FrameStatus
    stats: AggregateStats
    # Epoch millis
    emitted_at: int

    def to_record(self) -> dict:
        """Telemetry sink wire record."""
        return {
            "participantId": self.subject_id,
            "name": self.display_name,
            "status": self.status.value,
            "totalChecks": self.stats.total_checks,
            "distractedChecks": self.stats.distracted_checks,
            "peakDistractionPct": self.stats.peak_distracted_pct,
            "peakDistractionTime": self.stats.peak_distracted_at,
        }


@dataclass(frozen=True)
class FrameUpdate:
    """
    Per-frame (unthrottled) result for the presentation layer.
    `raw_status` is the classifier output, `status` the smoothed one.
    """
    raw_status: FrameStatus
    status: FrameStatus
    stats: AggregateStats
    timestamp: float
    gaze: Optional[GazeReading] = None
    posture: Optional[HeadPosture] = None
    report: Optional[Report] = field(default=None, compare=False)

    def to_payload(self) -> dict:
        return {
            "status": self.status.value,
            "rawStatus": self.raw_status.value,
            "gaze": self.gaze.to_dict() if self.gaze else None,
            "headPosture": self.posture.to_dict() if self.posture else None,
            "stats": self.stats.to_dict(),
            "timestamp": self.timestamp,
        }

