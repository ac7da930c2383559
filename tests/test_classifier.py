"""Frame classifier unit tests."""

from unittest.mock import patch

import numpy as np

from attention_engine.classifier import classify_frame
from attention_engine.data_structures import FrameStatus, GazeLabel, HeadPosture, LandmarkSet
from conftest import FRAME_H, FRAME_W, build_face


class TestClassifyFrame:
    def test_no_landmarks_is_no_face(self):
        result = classify_frame(None, FRAME_W, FRAME_H)
        assert result.status == FrameStatus.NO_FACE
        assert result.gaze is None

    def test_center_gaze_is_focused(self):
        result = classify_frame(build_face(0.56, -0.002), FRAME_W, FRAME_H, with_posture=False)
        assert result.status == FrameStatus.FOCUSED
        assert result.gaze.gaze_label == GazeLabel.CENTER
        assert result.posture is None

    def test_off_center_gaze_is_distracted(self):
        for h, v in ((0.2, 0.0), (0.9, 0.0), (0.56, -0.05), (0.56, 0.02)):
            result = classify_frame(build_face(h, v), FRAME_W, FRAME_H, with_posture=False)
            assert result.status == FrameStatus.DISTRACTED

    def test_degenerate_geometry_is_error(self):
        pts = np.array(build_face().points)
        pts[263] = pts[362]
        result = classify_frame(LandmarkSet(pts), FRAME_W, FRAME_H)
        assert result.status == FrameStatus.ERROR

    def test_missing_iris_is_error(self):
        result = classify_frame(build_face(count=468), FRAME_W, FRAME_H)
        assert result.status == FrameStatus.ERROR

    def test_unexpected_fault_is_error(self):
        with patch("attention_engine.classifier.extract_gaze", side_effect=ZeroDivisionError):
            result = classify_frame(build_face(), FRAME_W, FRAME_H)
        assert result.status == FrameStatus.ERROR


class TestPostureGate:
    def _classify(self, posture, gate):
        with patch("attention_engine.classifier.estimate_posture", return_value=posture):
            return classify_frame(
                build_face(0.56, -0.002), FRAME_W, FRAME_H,
                with_posture=True, posture_gate=gate,
                yaw_limit=20, pitch_limit=15,
            )

    def test_gate_off_ignores_posture(self):
        result = self._classify(HeadPosture(yaw=45.0, pitch=0.0), gate=False)
        assert result.status == FrameStatus.FOCUSED
        assert result.posture.yaw == 45.0

    def test_gate_on_demotes_turned_head(self):
        assert self._classify(HeadPosture(yaw=-25.0, pitch=0.0), gate=True).status == FrameStatus.DISTRACTED
        assert self._classify(HeadPosture(yaw=0.0, pitch=16.0), gate=True).status == FrameStatus.DISTRACTED

    def test_gate_on_keeps_frontal_head(self):
        assert self._classify(HeadPosture(yaw=5.0, pitch=-3.0), gate=True).status == FrameStatus.FOCUSED

    def test_gate_on_without_posture_keeps_gaze_decision(self):
        assert self._classify(None, gate=True).status == FrameStatus.FOCUSED
