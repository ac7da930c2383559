"""
camera/capture.py — Media Source
Wraps OpenCV VideoCapture and stamps every frame with a monotonic
millisecond timestamp for the engine's throttle.
"""

import time
from typing import Callable, Iterator, Optional, Tuple

import cv2
import numpy as np

import config
from core.logger import get_logger

log = get_logger(__name__)


def _monotonic_ms() -> float:
    return time.perf_counter() * 1000.0


class CameraCapture:
    """
    Frame source for the attention engine.

    Usage:
        with CameraCapture() as cam:
            for frame, ts in cam.frames():
                engine.process_frame(frame, ts)
    """

    def __init__(
        self,
        camera_index: int = config.CAMERA_INDEX,
        width: int = config.CAMERA_WIDTH,
        height: int = config.CAMERA_HEIGHT,
        fps: int = config.CAMERA_FPS,
        mirror: bool = True,
        clock: Callable[[], float] = _monotonic_ms,
    ):
        """
        Args:
            camera_index: OS camera device index (0 = default webcam), or a video path.
            width:  Capture width in pixels.
            height: Capture height in pixels.
            fps:    Target capture frame rate.
            mirror: Flip frames horizontally (selfie view).
            clock:  Millisecond clock used to stamp frames.
        """
        self.camera_index = camera_index
        self.width = width
        self.height = height
        self.fps = fps
        self.mirror = mirror
        self._clock = clock
        self._cap: Optional[cv2.VideoCapture] = None
        self._connected = False

    # ──────────────────────────────────────────────────────────────────────────
    # Lifecycle
    # ──────────────────────────────────────────────────────────────────────────

    def open(self) -> bool:
        """
        Open the camera device.

        Returns:
            True if the camera was opened successfully, False otherwise.
        """
        self._cap = cv2.VideoCapture(self.camera_index)
        if not self._cap.isOpened():
            log.error(f"Cannot open camera {self.camera_index!r}.")
            return False

        self._cap.set(cv2.CAP_PROP_FRAME_WIDTH, self.width)
        self._cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self.height)
        self._cap.set(cv2.CAP_PROP_FPS, self.fps)

        self._connected = True
        actual_w = int(self._cap.get(cv2.CAP_PROP_FRAME_WIDTH))
        actual_h = int(self._cap.get(cv2.CAP_PROP_FRAME_HEIGHT))
        log.info(f"Opened camera {self.camera_index!r} at {actual_w}x{actual_h}.")
        return True

    def release(self) -> None:
        """Release the camera resource."""
        if self._cap is not None:
            self._cap.release()
            self._cap = None
            self._connected = False
            log.info("Camera released.")

    @property
    def is_open(self) -> bool:
        """True if the camera is currently open."""
        return self._connected and self._cap is not None and self._cap.isOpened()

    # ──────────────────────────────────────────────────────────────────────────
    # Frame acquisition
    # ──────────────────────────────────────────────────────────────────────────

    def read_frame(self) -> Tuple[bool, Optional[np.ndarray], float]:
        """
        Read the next frame.

        Returns:
            (success, frame_bgr, timestamp_ms); frame is None on failure.
        """
        if not self.is_open:
            log.warning("Camera not open. Call open() first.")
            return False, None, self._clock()

        ret, frame = self._cap.read()
        ts = self._clock()
        if not ret or frame is None:
            log.warning("Failed to read frame. Camera may be disconnected.")
            self._connected = False
            return False, None, ts

        if self.mirror:
            frame = cv2.flip(frame, 1)
        return True, frame, ts

    def frames(self) -> Iterator[Tuple[np.ndarray, float]]:
        """Yield (frame, timestamp_ms) until the source stops delivering."""
        while True:
            ok, frame, ts = self.read_frame()
            if not ok:
                return
            yield frame, ts

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, *_):
        self.release()
