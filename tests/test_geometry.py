"""Geometry extractor unit tests: gaze ratios, gaze labels, head posture."""

import numpy as np
import pytest
from hypothesis import given, strategies as st

from attention_engine.data_structures import GazeLabel, LandmarkSet
from attention_engine.exceptions import GeometryDegenerate
from attention_engine.geometry import classify_gaze, estimate_posture, extract_gaze
from conftest import FRAME_H, FRAME_W, build_face, project_face


# --- classify_gaze ---

class TestClassifyGaze:
    @pytest.mark.parametrize("h, v, expected", [
        (0.30,  0.000,  GazeLabel.RIGHT),
        (0.80,  0.000,  GazeLabel.LEFT),
        (0.50, -0.010,  GazeLabel.UP),
        (0.50,  0.010,  GazeLabel.DOWN),
        (0.50, -0.001,  GazeLabel.CENTER),
    ])
    def test_reference_examples(self, h, v, expected):
        assert classify_gaze(h, v) == expected

    def test_horizontal_dominates_vertical(self):
        assert classify_gaze(0.30, -0.5) == GazeLabel.RIGHT
        assert classify_gaze(0.90, 0.5) == GazeLabel.LEFT

    def test_boundaries_are_strict(self):
        # Exactly on a threshold is not beyond it
        assert classify_gaze(0.42, -0.001) == GazeLabel.CENTER
        assert classify_gaze(0.70, -0.001) == GazeLabel.CENTER
        assert classify_gaze(0.50, -0.0075) == GazeLabel.CENTER
        assert classify_gaze(0.50, 0.0) == GazeLabel.CENTER

    @given(
        h=st.floats(min_value=-2.0, max_value=3.0, allow_nan=False),
        v=st.floats(min_value=-1.0, max_value=1.0, allow_nan=False),
    )
    def test_deterministic(self, h, v):
        assert classify_gaze(h, v) == classify_gaze(h, v)


# --- extract_gaze ---

class TestExtractGaze:
    def test_ratios_follow_iris_position(self):
        reading = extract_gaze(build_face(0.56, -0.002), FRAME_W, FRAME_H)
        assert reading.horizontal_ratio == pytest.approx(0.56)
        assert reading.vertical_ratio == pytest.approx(-0.002)
        assert reading.gaze_label == GazeLabel.CENTER

    @pytest.mark.parametrize("h, v, expected", [
        (0.25, -0.002, GazeLabel.RIGHT),
        (0.85, -0.002, GazeLabel.LEFT),
        (0.56, -0.020, GazeLabel.UP),
        (0.56,  0.015, GazeLabel.DOWN),
    ])
    def test_label_from_synthetic_face(self, h, v, expected):
        assert extract_gaze(build_face(h, v), FRAME_W, FRAME_H).gaze_label == expected

    def test_vertical_ratio_scales_with_frame_height(self):
        reading = extract_gaze(build_face(0.5, 0.01), 1280, 720)
        assert reading.vertical_ratio == pytest.approx(0.01)

    def test_collapsed_eye_span_raises(self):
        pts = np.array(build_face().points)
        pts[133] = pts[33]
        with pytest.raises(GeometryDegenerate):
            extract_gaze(LandmarkSet(pts), FRAME_W, FRAME_H)

    def test_missing_iris_landmarks_raise(self):
        with pytest.raises(GeometryDegenerate):
            extract_gaze(build_face(count=468), FRAME_W, FRAME_H)

    def test_non_finite_coordinates_raise(self):
        pts = np.array(build_face().points)
        pts[470] = (np.nan, 0.4)
        with pytest.raises(GeometryDegenerate):
            extract_gaze(LandmarkSet(pts), FRAME_W, FRAME_H)

    @pytest.mark.parametrize("w, h", [(0, 480), (640, 0), (-1, -1)])
    def test_bad_frame_size_raises(self, w, h):
        with pytest.raises(GeometryDegenerate):
            extract_gaze(build_face(), w, h)

    def test_to_dict_uses_wire_keys(self):
        d = extract_gaze(build_face(), FRAME_W, FRAME_H).to_dict()
        assert set(d) == {"gaze", "horizontalRatio", "verticalRatio"}
        assert d["gaze"] == "CENTER"


# --- estimate_posture ---

class TestEstimatePosture:
    def test_frontal_head_reads_zero(self):
        posture = estimate_posture(project_face(0.0, 0.0), FRAME_W, FRAME_H)
        assert posture is not None
        assert posture.yaw == pytest.approx(0.0, abs=1.0)
        assert posture.pitch == pytest.approx(0.0, abs=1.0)

    @pytest.mark.parametrize("yaw", [-30.0, 15.0, 30.0])
    def test_head_turn_is_yaw(self, yaw):
        posture = estimate_posture(project_face(yaw=yaw), FRAME_W, FRAME_H)
        assert posture is not None
        assert posture.yaw == pytest.approx(yaw, abs=1.0)
        assert posture.pitch == pytest.approx(0.0, abs=1.0)

    @pytest.mark.parametrize("pitch", [-20.0, 25.0])
    def test_head_nod_is_pitch(self, pitch):
        posture = estimate_posture(project_face(pitch=pitch), FRAME_W, FRAME_H)
        assert posture is not None
        assert posture.pitch == pytest.approx(pitch, abs=1.0)
        assert posture.yaw == pytest.approx(0.0, abs=1.0)

    def test_combined_turn_and_nod(self):
        posture = estimate_posture(project_face(yaw=20.0, pitch=-10.0), FRAME_W, FRAME_H)
        assert posture.yaw == pytest.approx(20.0, abs=1.0)
        assert posture.pitch == pytest.approx(-10.0, abs=1.0)

    def test_too_few_landmarks_returns_none(self):
        small = LandmarkSet(np.full((100, 2), 0.5))
        assert estimate_posture(small, FRAME_W, FRAME_H) is None

    def test_bad_frame_size_returns_none(self):
        assert estimate_posture(build_face(), 0, 0) is None

    def test_non_finite_points_return_none(self):
        pts = np.array(project_face().points)
        pts[152] = (np.inf, 0.7)
        assert estimate_posture(LandmarkSet(pts), FRAME_W, FRAME_H) is None


# --- LandmarkSet ---

class TestLandmarkSet:
    def test_points_are_read_only(self):
        lm = build_face()
        with pytest.raises(ValueError):
            lm.points[0, 0] = 1.0

    def test_rejects_bad_shape(self):
        with pytest.raises(ValueError):
            LandmarkSet(np.zeros(10))

    def test_z_coordinate_dropped(self):
        lm = LandmarkSet.from_points([(0.1, 0.2, 0.3), (0.4, 0.5, 0.6)])
        assert lm.points.shape == (2, 2)
        assert len(lm) == 2
        assert lm.has([0, 1]) and not lm.has([2])
