# =============================================================================
# attention_engine/geometry.py
#
# Geometry Extractor — pure functions from a LandmarkSet + frame size to
# gaze ratios, a gaze label and (optionally) head posture.
#
# Implements:
#   • Iris center as the mean of the 5 iris landmarks per eye
#   • Horizontal gaze ratio (iris position along the eye-corner span)
#   • Vertical gaze ratio (iris offset from the corner midpoint / frame height)
#   • Fixed-threshold gaze label
#   • Head yaw/pitch via Perspective-n-Point (solvePnP)
#
# No state is kept here; the engine calls these once per frame.
# =============================================================================

from typing import Optional, Sequence, Tuple

import cv2
import numpy as np

from config import (
    LEFT_EYE_CORNERS, RIGHT_EYE_CORNERS,
    LEFT_IRIS_IDX, RIGHT_IRIS_IDX,
    MIN_EYE_SPAN_PX,
    GAZE_RIGHT_MAX_H, GAZE_LEFT_MIN_H, GAZE_UP_MAX_V, GAZE_DOWN_MIN_V,
    FACE_MODEL_LANDMARK_IDS, FACE_3D_MODEL_POINTS,
)
from attention_engine.data_structures import (
    LandmarkSet, GazeReading, GazeLabel, HeadPosture,
)
from attention_engine.exceptions import GeometryDegenerate

_GAZE_INDICES = (
    tuple(LEFT_EYE_CORNERS) + tuple(RIGHT_EYE_CORNERS)
    + tuple(LEFT_IRIS_IDX) + tuple(RIGHT_IRIS_IDX)
)


# ── Gaze ──────────────────────────────────────────────────────────────────────
#
#                      iris_x − outer_x
#  horizontal  =  ───────────────────────      (per eye, then averaged)
#                     inner_x − outer_x
#
#                 iris_y − (outer_y + inner_y) / 2
#  vertical    =  ───────────────────────────────   (averaged over eyes)
#                            frame_h

def classify_gaze(horizontal_ratio: float, vertical_ratio: float) -> GazeLabel:
    """
    Map gaze ratios to a label. Horizontal thresholds are checked first.

    Examples:
        (0.30,  0.000) → RIGHT      (0.80,  0.000) → LEFT
        (0.50, -0.010) → UP         (0.50,  0.010) → DOWN
        (0.50, -0.001) → CENTER
    """
    if horizontal_ratio < GAZE_RIGHT_MAX_H:
        return GazeLabel.RIGHT
    if horizontal_ratio > GAZE_LEFT_MIN_H:
        return GazeLabel.LEFT
    if vertical_ratio < GAZE_UP_MAX_V:
        return GazeLabel.UP
    if vertical_ratio > GAZE_DOWN_MIN_V:
        return GazeLabel.DOWN
    return GazeLabel.CENTER


def _iris_center(lm_px: np.ndarray, iris_idx: Sequence[int]) -> np.ndarray:
    return np.mean(lm_px[list(iris_idx)], axis=0)


def _eye_ratios(
    lm_px: np.ndarray,
    corners: Sequence[int],
    iris_idx: Sequence[int],
) -> Tuple[float, float]:
    """
    Horizontal ratio and raw vertical pixel offset for one eye.

    Raises:
        GeometryDegenerate: if the corner span is ~0.
    """
    outer = lm_px[corners[0]]
    inner = lm_px[corners[1]]
    iris = _iris_center(lm_px, iris_idx)

    span = inner[0] - outer[0]
    if abs(span) < MIN_EYE_SPAN_PX:
        raise GeometryDegenerate(
            f"eye corners {corners[0]}/{corners[1]} coincide (span={span:.2e}px)"
        )

    horizontal = (iris[0] - outer[0]) / span
    center_y = (outer[1] + inner[1]) / 2.0
    return float(horizontal), float(iris[1] - center_y)


def extract_gaze(landmarks: LandmarkSet, frame_w: int, frame_h: int) -> GazeReading:
    """
    Compute the gaze reading for one frame.

    Args:
        landmarks: normalized landmark set (iris refinement required)
        frame_w:   frame width in pixels
        frame_h:   frame height in pixels

    Returns:
        GazeReading with both-eye averaged ratios and the thresholded label

    Raises:
        GeometryDegenerate: missing iris/corner landmarks, non-finite
            coordinates, a non-positive frame size or a collapsed eye span.
    """
    if frame_w <= 0 or frame_h <= 0:
        raise GeometryDegenerate(f"invalid frame size {frame_w}x{frame_h}")
    if not landmarks.has(_GAZE_INDICES):
        raise GeometryDegenerate(
            f"landmark set has {len(landmarks)} points; iris landmarks missing"
        )

    lm_px = landmarks.to_pixels(frame_w, frame_h)
    if not np.all(np.isfinite(lm_px[list(_GAZE_INDICES)])):
        raise GeometryDegenerate("non-finite eye landmark coordinates")

    lh, lv = _eye_ratios(lm_px, LEFT_EYE_CORNERS, LEFT_IRIS_IDX)
    rh, rv = _eye_ratios(lm_px, RIGHT_EYE_CORNERS, RIGHT_IRIS_IDX)

    horizontal = (lh + rh) / 2.0
    vertical = (lv + rv) / 2.0 / frame_h

    return GazeReading(
        horizontal_ratio=horizontal,
        vertical_ratio=vertical,
        gaze_label=classify_gaze(horizontal, vertical),
    )


# ── Head Posture via PnP ──────────────────────────────────────────────────────

def _build_camera_matrix(frame_w: int, frame_h: int) -> np.ndarray:
    """
    Approximate camera intrinsic matrix assuming no distortion.
    focal_length ≈ frame width (standard approximation for webcam).
    """
    focal = frame_w
    cx, cy = frame_w / 2.0, frame_h / 2.0
    return np.array([
        [focal, 0,     cx],
        [0,     focal, cy],
        [0,     0,     1 ],
    ], dtype=np.float64)


_DIST_COEFFS = np.zeros((4, 1), dtype=np.float64)   # assume no lens distortion
_MODEL_3D    = np.array(FACE_3D_MODEL_POINTS, dtype=np.float64)


# The face model is y-up / z-toward-camera, the camera frame is y-down /
# z-into-scene. A frontal head therefore solves to this 180° turn about X;
# undoing it leaves the head's own rotation, expressed in model axes.
_CAMERA_FLIP = np.diag([1.0, -1.0, -1.0])


def _rvec_to_yaw_pitch(rvec: np.ndarray) -> Tuple[float, float]:
    """
    Convert an OpenCV rotation vector to head (yaw, pitch) in degrees.

    yaw   = rotation about the model's vertical axis (turning left/right)
    pitch = rotation about the model's horizontal axis (nodding up/down)
    Both are 0 for a head facing the camera. Roll is not reported.
    """
    R_cam, _ = cv2.Rodrigues(rvec)
    R = _CAMERA_FLIP @ R_cam

    sy = np.sqrt(R[0, 0] ** 2 + R[1, 0] ** 2)
    if sy >= 1e-6:
        pitch = float(np.degrees(np.arctan2(R[2, 1], R[2, 2])))
    else:
        pitch = float(np.degrees(np.arctan2(-R[1, 2], R[1, 1])))
    yaw = float(np.degrees(np.arctan2(-R[2, 0], sy)))
    return yaw, pitch


def estimate_posture(
    landmarks: LandmarkSet,
    frame_w: int,
    frame_h: int,
) -> Optional[HeadPosture]:
    """
    Estimate head yaw/pitch from the 6-point face model.

    Returns:
        HeadPosture, or None when the landmark subset is unavailable
        or solvePnP does not converge.
    """
    if not landmarks.has(FACE_MODEL_LANDMARK_IDS) or frame_w <= 0 or frame_h <= 0:
        return None

    image_points = landmarks.to_pixels(frame_w, frame_h)[list(FACE_MODEL_LANDMARK_IDS)]
    if not np.all(np.isfinite(image_points)):
        return None

    try:
        success, rvec, _tvec = cv2.solvePnP(
            _MODEL_3D,
            np.ascontiguousarray(image_points, dtype=np.float64),
            _build_camera_matrix(frame_w, frame_h),
            _DIST_COEFFS,
            flags=cv2.SOLVEPNP_ITERATIVE,
        )
    except cv2.error:
        return None
    if not success:
        return None

    yaw, pitch = _rvec_to_yaw_pitch(rvec)
    if not (np.isfinite(yaw) and np.isfinite(pitch)):
        return None
    return HeadPosture(yaw=yaw, pitch=pitch)
