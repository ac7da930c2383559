"""
main.py — Attention Monitor Entry Point
Hosts the attention engine: wires the webcam, the landmark provider, the
telemetry sink and the dashboard bridge, then runs the frame loop.

macOS NOTE: OBJC_DISABLE_INITIALIZE_FORK_SAFETY=YES must be set BEFORE any
C-extension (cv2, mediapipe) is imported, otherwise macOS raises:
  libc++abi: terminating due to uncaught exception … mutex lock failed
This is set programmatically here so the user doesn't need a shell export.

Pipeline per frame:
  1. CameraCapture.read_frame()        → BGR frame + monotonic ms timestamp
  2. AttentionEngine.process_frame()   → landmarks, gaze, status, stats
  3. HttpTelemetrySink                 ← throttled reports (background thread)
  4. PresentationServer                ← every frame + every report
  5. cv2.imshow()                      → annotated camera feed (--show)

Usage:
  python main.py --subject p-17 --name "Ada" --meeting m-42
  python main.py --no-server            # no dashboard bridge
  python main.py --show                 # annotated preview window
  python main.py --debug                # verbose output
"""

# ── macOS fix: must happen before ANY C-extension import ─────────────────────
import os
os.environ.setdefault("OBJC_DISABLE_INITIALIZE_FORK_SAFETY", "YES")
# ─────────────────────────────────────────────────────────────────────────────

import sys
import time
import argparse
import logging
from typing import Optional

import cv2
import numpy as np

# ── Project-root imports ──────────────────────────────────────────────────────
ROOT = os.path.dirname(os.path.abspath(__file__))
sys.path.insert(0, ROOT)

import config
from attention_engine.data_structures import FrameStatus, FrameUpdate
from attention_engine.engine_core import AttentionEngine
from camera.capture           import CameraCapture
from core.logger              import get_logger, set_console_level
from core.thread_manager      import ThreadManager
from detection.face_detector  import FaceMeshProvider
from server.websocket_server  import PresentationServer
from telemetry.http_sink      import HttpTelemetrySink

log = get_logger("main")

_STATUS_COLORS = {
    FrameStatus.FOCUSED:    (0, 200, 0),
    FrameStatus.DISTRACTED: (0, 140, 255),
    FrameStatus.NO_FACE:    (160, 160, 160),
    FrameStatus.ERROR:      (0, 0, 255),
}


# ──────────────────────────────────────────────────────────────────────────────
# Argument parsing
# ──────────────────────────────────────────────────────────────────────────────

def parse_args(argv=None):
    p = argparse.ArgumentParser(description="Attention Monitor — webcam attention signal")
    p.add_argument("--camera",    type=int, default=config.CAMERA_INDEX,
                   help=f"Camera device index (default: {config.CAMERA_INDEX}).")
    p.add_argument("--subject",   default="local",
                   help="Participant id used in telemetry reports.")
    p.add_argument("--name",      default="",
                   help="Display name used in telemetry reports.")
    p.add_argument("--base-url",  default=config.TELEMETRY_BASE_URL,
                   help="Telemetry backend base URL.")
    p.add_argument("--meeting",   default=config.TELEMETRY_MEETING_ID,
                   help="Meeting id the reports belong to.")
    p.add_argument("--no-server", action="store_true",
                   help="Disable the dashboard WebSocket bridge.")
    p.add_argument("--show",      action="store_true",
                   help="Show the annotated camera feed ('q' to quit).")
    p.add_argument("--debug",     action="store_true",
                   help="Enable verbose debug output.")
    return p.parse_args(argv)


# ──────────────────────────────────────────────────────────────────────────────
# Overlay
# ──────────────────────────────────────────────────────────────────────────────

def draw_overlay(frame: np.ndarray, update: Optional[FrameUpdate], fps: float) -> np.ndarray:
    """Draw status, gaze and counters in the top-left corner of `frame`."""
    if update is None:
        return frame
    color = _STATUS_COLORS.get(update.status, (255, 255, 255))
    lines = [f"{update.status.value}  ({fps:.0f} fps)"]
    if update.gaze is not None:
        lines.append(
            f"gaze {update.gaze.gaze_label.value}  "
            f"h={update.gaze.horizontal_ratio:.2f} v={update.gaze.vertical_ratio:+.4f}"
        )
    if update.posture is not None:
        lines.append(f"yaw {update.posture.yaw:+.1f}  pitch {update.posture.pitch:+.1f}")
    stats = update.stats
    lines.append(
        f"{stats.distracted_checks}/{stats.total_checks} distracted  "
        f"now {stats.current_distracted_pct}%  peak {stats.peak_distracted_pct}%"
    )
    for i, text in enumerate(lines):
        cv2.putText(frame, text, (10, 24 + i * 22),
                    cv2.FONT_HERSHEY_SIMPLEX, 0.55, color, 1, cv2.LINE_AA)
    return frame


# ──────────────────────────────────────────────────────────────────────────────
# Main pipeline class
# ──────────────────────────────────────────────────────────────────────────────

class AttentionPipeline:
    """
    Encapsulates the real-time attention pipeline.
    Call run() to start; press 'q' in the preview window (or Ctrl+C) to stop.
    """

    def __init__(self, args):
        self.args = args
        self._running = False
        self._frame_count = 0
        self._fps = 0.0
        self._last_fps_time = time.time()
        self._fps_count = 0
        self.session = None

        if args.debug:
            set_console_level(logging.DEBUG)

    # ──────────────────────────────────────────────────────────────────────────
    # Bootstrap
    # ──────────────────────────────────────────────────────────────────────────

    def _init_modules(self) -> bool:
        """Initialise all sub-modules. Returns False if camera or provider fails."""
        log.info("Initialising modules …")

        self.camera = CameraCapture(camera_index=self.args.camera)
        self.sink = HttpTelemetrySink(base_url=self.args.base_url, meeting_id=self.args.meeting)
        self.server = None if self.args.no_server else PresentationServer()
        self.engine = AttentionEngine(
            FaceMeshProvider(),
            sink=self.sink,
            presenter=self.server,
        )

        self.threads = ThreadManager()
        self.threads.register("TelemetrySink", self.sink.start, self.sink.close)
        if self.server is not None:
            self.threads.register("PresentationServer",
                                  self.server.start_background, self.server.stop)
        self.threads.register("Camera", self._open_camera, self.camera.release)
        self.threads.register("Engine", self._init_engine, self.engine.release)

        try:
            self.threads.start_all()
        except RuntimeError as exc:
            log.error(f"FATAL: {exc}")
            return False

        self.session = self.engine.start_session(
            self.args.subject,
            self.args.name,
            on_stop=self.sink.remove,
        )
        log.info("All modules ready.  Press 'q' in the preview window or Ctrl+C to quit.")
        return True

    def _open_camera(self) -> None:
        if not self.camera.open():
            raise RuntimeError("Cannot open camera.")

    def _init_engine(self) -> None:
        if not self.engine.initialize():
            raise RuntimeError(f"Landmark provider unavailable: {self.engine.init_error}")

    # ──────────────────────────────────────────────────────────────────────────
    # FPS tracking
    # ──────────────────────────────────────────────────────────────────────────

    def _update_fps(self) -> None:
        self._fps_count += 1
        now = time.time()
        if now - self._last_fps_time >= 1.0:
            self._fps = self._fps_count / (now - self._last_fps_time)
            self._fps_count = 0
            self._last_fps_time = now

    # ──────────────────────────────────────────────────────────────────────────
    # Main loop
    # ──────────────────────────────────────────────────────────────────────────

    def run(self) -> None:
        """Start and run the real-time loop until 'q', Ctrl+C or camera loss."""
        if not self._init_modules():
            self.threads.stop_all()
            return

        self._running = True
        log.info("Pipeline running …")

        try:
            while self._running:
                ok, frame_bgr, ts = self.camera.read_frame()
                if not ok:
                    log.error("Camera read failed. Stopping.")
                    break

                update = self.engine.process_frame(frame_bgr, ts)
                self._update_fps()
                self._frame_count += 1

                if self.args.show:
                    display = draw_overlay(frame_bgr.copy(), update, self._fps)
                    cv2.imshow(config.MAIN_WINDOW_NAME, display)
                    if cv2.waitKey(1) & 0xFF == ord("q"):
                        log.info("'q' pressed — shutting down.")
                        break

                if update is not None and self._frame_count % 30 == 0:
                    log.debug(
                        f"Frame {self._frame_count} | {update.status.value} | "
                        f"{update.stats.distracted_checks}/{update.stats.total_checks} | "
                        f"{self._fps:.1f} fps"
                    )
        except KeyboardInterrupt:
            log.info("Interrupted — shutting down.")
        finally:
            self._shutdown()

    def _shutdown(self) -> None:
        """Release all resources cleanly."""
        self._running = False
        if self.session is not None:
            self.session.stop()
        self.threads.stop_all()
        if self.args.show:
            cv2.destroyAllWindows()
        log.info(f"Shutdown complete. {self._frame_count} frames processed.")


# ──────────────────────────────────────────────────────────────────────────────
# Entry point
# ──────────────────────────────────────────────────────────────────────────────

def main(argv=None) -> None:
    args = parse_args(argv)
    AttentionPipeline(args).run()


if __name__ == "__main__":
    main()
