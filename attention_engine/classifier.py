# =============================================================================
# attention_engine/classifier.py
#
# Frame Classifier — maps one provider result to exactly one FrameStatus.
#
#   no landmarks                      → NO_FACE
#   degenerate geometry / any fault   → ERROR
#   gaze CENTER                       → FOCUSED
#   any other gaze label              → DISTRACTED
#
# Optional posture gate: when enabled, a CENTER gaze with |yaw| or |pitch|
# beyond its limit is DISTRACTED. Off by default; posture is display only.
#
# classify_frame() is total: it never raises.
# =============================================================================

from typing import Optional

from config import (
    POSTURE_GATE_ENABLED, YAW_DISTRACT_THRESH, PITCH_DISTRACT_THRESH,
)
from attention_engine.data_structures import (
    Classification, FrameStatus, GazeLabel, HeadPosture, LandmarkSet,
)
from attention_engine.exceptions import GeometryDegenerate
from attention_engine.geometry import extract_gaze, estimate_posture
from core.logger import get_logger

log = get_logger(__name__)


def _posture_is_off_axis(
    posture: Optional[HeadPosture],
    yaw_limit: float,
    pitch_limit: float,
) -> bool:
    if posture is None:
        return False
    return abs(posture.yaw) > yaw_limit or abs(posture.pitch) > pitch_limit


def classify_frame(
    landmarks: Optional[LandmarkSet],
    frame_w: int,
    frame_h: int,
    with_posture: bool = True,
    posture_gate: bool = POSTURE_GATE_ENABLED,
    yaw_limit: float = YAW_DISTRACT_THRESH,
    pitch_limit: float = PITCH_DISTRACT_THRESH,
) -> Classification:
    """
    Classify one frame.

    Args:
        landmarks:    provider result, None when no face was found
        frame_w:      frame width in pixels
        frame_h:      frame height in pixels
        with_posture: also estimate head posture for display
        posture_gate: let posture demote a CENTER gaze to DISTRACTED
        yaw_limit:    gate limit in degrees
        pitch_limit:  gate limit in degrees

    Returns:
        Classification(status, gaze, posture)
    """
    if landmarks is None:
        return Classification(FrameStatus.NO_FACE)

    try:
        gaze = extract_gaze(landmarks, frame_w, frame_h)
        posture = None
        if with_posture or posture_gate:
            posture = estimate_posture(landmarks, frame_w, frame_h)
    except GeometryDegenerate as e:
        log.debug(f"Degenerate geometry: {e}")
        return Classification(FrameStatus.ERROR)
    except Exception as e:
        log.error(f"Unexpected geometry fault: {e}", exc_info=True)
        return Classification(FrameStatus.ERROR)

    focused = gaze.gaze_label == GazeLabel.CENTER
    if focused and posture_gate:
        focused = not _posture_is_off_axis(posture, yaw_limit, pitch_limit)

    status = FrameStatus.FOCUSED if focused else FrameStatus.DISTRACTED
    return Classification(status, gaze=gaze, posture=posture)
