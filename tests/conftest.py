import sys
import os

# Add project root to sys.path so tests can import from all modules
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import cv2
import numpy as np
import pytest
from hypothesis import settings

from attention_engine.data_structures import LandmarkSet
from config import FACE_3D_MODEL_POINTS, FACE_MODEL_LANDMARK_IDS

# CI profile: more examples for thorough testing
settings.register_profile("ci", max_examples=200)
# Dev profile: fewer examples for faster iteration
settings.register_profile("dev", max_examples=100)
# Default to dev profile
settings.load_profile("dev")

FRAME_W, FRAME_H = 640, 480

# Normalized eye layout used by the synthetic faces: (outer_x, inner_x, y)
_LEFT_EYE  = (0.30, 0.40, 0.40)
_RIGHT_EYE = (0.60, 0.70, 0.40)


def build_face(h_ratio: float = 0.56, v_offset: float = -0.002, count: int = 478) -> LandmarkSet:
    """
    Synthetic frontal face whose irises sit at `h_ratio` along each eye
    span and `v_offset` (normalized, i.e. already divided by frame height)
    below the corner midline. extract_gaze() returns exactly these ratios.
    """
    pts = np.full((count, 2), 0.5)

    # Rough frontal layout for the PnP points
    pts[1]   = (0.50, 0.50)   # nose tip
    pts[152] = (0.50, 0.75)   # chin
    pts[287] = (0.60, 0.62)   # mouth corner
    pts[57]  = (0.40, 0.62)   # mouth corner

    for (outer_i, inner_i), iris, (ox, ix, y) in (
        ((33, 133), range(468, 473), _LEFT_EYE),
        ((362, 263), range(473, 478), _RIGHT_EYE),
    ):
        pts[outer_i] = (ox, y)
        pts[inner_i] = (ix, y)
        cx = ox + h_ratio * (ix - ox)
        cy = y + v_offset
        if count > max(iris):
            # Symmetric ring around the iris center
            for j, (dx, dy) in zip(iris, ((0, 0), (0.005, 0), (-0.005, 0), (0, 0.005), (0, -0.005))):
                pts[j] = (cx + dx, cy + dy)
    return LandmarkSet(pts)


def _rot_x(deg: float) -> np.ndarray:
    a = np.radians(deg)
    return np.array([[1, 0, 0], [0, np.cos(a), -np.sin(a)], [0, np.sin(a), np.cos(a)]])


def _rot_y(deg: float) -> np.ndarray:
    b = np.radians(deg)
    return np.array([[np.cos(b), 0, np.sin(b)], [0, 1, 0], [-np.sin(b), 0, np.cos(b)]])


def project_face(yaw: float = 0.0, pitch: float = 0.0, distance: float = 600.0) -> LandmarkSet:
    """
    build_face() with the six PnP landmarks replaced by the 3-D face model
    rendered through a pinhole camera at a known head yaw / pitch (degrees).
    """
    head = _rot_y(yaw) @ _rot_x(pitch)
    # Model axes are y-up / z-toward-camera; camera axes are y-down / z-forward
    r_cam = np.diag([1.0, -1.0, -1.0]) @ head
    rvec, _ = cv2.Rodrigues(r_cam)
    tvec = np.array([[0.0], [0.0], [distance]])
    camera = np.array([[FRAME_W, 0, FRAME_W / 2], [0, FRAME_W, FRAME_H / 2], [0, 0, 1]], dtype=np.float64)
    projected, _ = cv2.projectPoints(
        np.array(FACE_3D_MODEL_POINTS, dtype=np.float64), rvec, tvec, camera, np.zeros((4, 1)),
    )

    pts = np.array(build_face().points)
    for idx, (px, py) in zip(FACE_MODEL_LANDMARK_IDS, projected.reshape(-1, 2)):
        pts[idx] = (px / FRAME_W, py / FRAME_H)
    return LandmarkSet(pts)


@pytest.fixture
def face():
    return build_face


@pytest.fixture
def frame():
    return np.zeros((FRAME_H, FRAME_W, 3), dtype=np.uint8)
