"""
detection/face_detector.py — MediaPipe Face Mesh Landmark Provider
Finds the subject's face and returns the refined 478-point mesh
(468 face points + 10 iris points) as a LandmarkSet.
"""

from typing import Optional

import cv2
import numpy as np
import mediapipe as mp

import config
from attention_engine.data_structures import LandmarkSet
from attention_engine.exceptions import ProviderInitFailure
from core.logger import get_logger

log = get_logger(__name__)


class FaceMeshProvider:
    """
    Wraps MediaPipe Face Mesh behind the engine's provider interface.

    Usage:
        provider = FaceMeshProvider()
        provider.setup()                                   # may raise ProviderInitFailure
        landmarks = provider.detect(bgr_frame, w, h, ts)   # LandmarkSet | None
        provider.release()
    """

    def __init__(
        self,
        max_faces: int = config.MP_MAX_FACES,
        refine_landmarks: bool = config.MP_REFINE_LANDMARKS,
        min_detection_confidence: float = config.MP_MIN_DETECTION_CONF,
        min_tracking_confidence: float = config.MP_MIN_TRACKING_CONF,
        input_is_bgr: bool = True,
    ):
        """
        Args:
            max_faces:                  Max number of faces to detect.
            refine_landmarks:           Enable iris landmarks (required for gaze).
            min_detection_confidence:   Minimum detection confidence.
            min_tracking_confidence:    Minimum tracking confidence.
            input_is_bgr:               Convert frames BGR → RGB before inference.
        """
        self.max_faces = max_faces
        self.refine_landmarks = refine_landmarks
        self.min_detection_confidence = min_detection_confidence
        self.min_tracking_confidence = min_tracking_confidence
        self.input_is_bgr = input_is_bgr
        self.face_mesh = None

    # ──────────────────────────────────────────────────────────────────────────
    # Lifecycle
    # ──────────────────────────────────────────────────────────────────────────

    def setup(self) -> None:
        """
        Build the Face Mesh graph.

        Raises:
            ProviderInitFailure: if MediaPipe cannot be initialized.
        """
        if self.face_mesh is not None:
            return
        try:
            self.face_mesh = mp.solutions.face_mesh.FaceMesh(
                max_num_faces=self.max_faces,
                refine_landmarks=self.refine_landmarks,
                min_detection_confidence=self.min_detection_confidence,
                min_tracking_confidence=self.min_tracking_confidence,
            )
        except Exception as exc:
            raise ProviderInitFailure(f"MediaPipe Face Mesh setup failed: {exc}") from exc
        log.info(f"FaceMeshProvider ready (refine_landmarks={self.refine_landmarks}).")

    def release(self) -> None:
        """Clean up MediaPipe resources."""
        if self.face_mesh is not None:
            self.face_mesh.close()
            self.face_mesh = None
            log.info("FaceMeshProvider released.")

    # ──────────────────────────────────────────────────────────────────────────
    # Core detection
    # ──────────────────────────────────────────────────────────────────────────

    def detect(
        self,
        frame: np.ndarray,
        width: int,
        height: int,
        timestamp: float,
    ) -> Optional[LandmarkSet]:
        """
        Run face mesh detection on one frame.

        Args:
            frame:     H × W × 3 image (BGR unless input_is_bgr=False).
            width:     Frame width in pixels (unused; landmarks are normalized).
            height:    Frame height in pixels.
            timestamp: Frame timestamp in ms (unused by the streaming graph).

        Returns:
            LandmarkSet of the first face, or None if no face was found.
        """
        if self.face_mesh is None:
            raise RuntimeError("FaceMeshProvider.setup() has not been called")

        rgb = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB) if self.input_is_bgr else frame.copy()
        rgb.flags.writeable = False
        results = self.face_mesh.process(rgb)

        if not results.multi_face_landmarks:
            return None

        # Use the first detected face only
        face_landmarks = results.multi_face_landmarks[0]
        return LandmarkSet.from_points(
            [(lm.x, lm.y) for lm in face_landmarks.landmark]
        )

    def __enter__(self):
        self.setup()
        return self

    def __exit__(self, *_):
        self.release()
