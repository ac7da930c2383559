"""
server/websocket_server.py — Flask-SocketIO Presentation Bridge
Pushes the per-frame attention status and the throttled reports to any
connected dashboard over WebSocket.

Run standalone: python -m server.websocket_server
Or use PresentationServer.start_background() from main.py.
"""

import threading
import time
from typing import Optional

from flask import Flask, jsonify
from flask_socketio import SocketIO
from flask_cors import CORS

import config
from core.logger import get_logger

log = get_logger(__name__)


class PresentationServer:
    """
    Lightweight Flask-SocketIO server that bridges the attention engine
    to a browser dashboard.

    Usage:
        server = PresentationServer()
        server.start_background()            # non-blocking
        server.emit_frame(payload)           # every frame
        server.emit_report(record)           # on throttled reports
        server.stop()
    """

    def __init__(
        self,
        host: str = config.SERVER_HOST,
        port: int = config.SERVER_PORT,
        cors_origins: str = config.SERVER_CORS_ALLOWED_ORIGINS,
    ):
        self.host = host
        self.port = port
        self._running = False
        self._thread: Optional[threading.Thread] = None

        # ── Flask + SocketIO setup ─────────────────────────────────────────
        self.app = Flask(__name__, static_folder=None)
        CORS(self.app, origins=cors_origins)

        self.socketio = SocketIO(
            self.app,
            cors_allowed_origins=cors_origins,
            async_mode="threading",
            logger=False,
            engineio_logger=False,
        )

        self._lock = threading.Lock()
        self._client_count: int = 0
        self._latest_frame: Optional[dict] = None
        self._latest_report: Optional[dict] = None

        self._register_routes()
        self._register_events()

    # ──────────────────────────────────────────────────────────────────────────
    # Flask routes
    # ──────────────────────────────────────────────────────────────────────────

    def _register_routes(self) -> None:
        @self.app.route("/health")
        def health():
            return jsonify({
                "status": "ok",
                "clients": self._client_count,
                "server": "Attention Presentation Bridge",
                "port": self.port,
            })

        @self.app.route("/status")
        def status():
            with self._lock:
                return jsonify({
                    "frame": self._latest_frame,
                    "report": self._latest_report,
                })

    # ──────────────────────────────────────────────────────────────────────────
    # SocketIO events
    # ──────────────────────────────────────────────────────────────────────────

    def _register_events(self) -> None:
        @self.socketio.on("connect")
        def on_connect():
            self._client_count += 1
            log.info(f"Dashboard connected. Clients: {self._client_count}")

        @self.socketio.on("disconnect")
        def on_disconnect(*_):
            self._client_count = max(0, self._client_count - 1)
            log.info(f"Dashboard disconnected. Clients: {self._client_count}")

        @self.socketio.on("ping_attention")
        def on_ping(data=None):
            self.socketio.emit("pong_attention", {"status": "alive"})

    # ──────────────────────────────────────────────────────────────────────────
    # Data emission
    # ──────────────────────────────────────────────────────────────────────────

    def emit_frame(self, payload: dict) -> None:
        """
        Broadcast the latest per-frame payload.

        Expected keys (FrameUpdate.to_payload()):
            status, rawStatus, gaze, headPosture, stats, timestamp
        """
        with self._lock:
            self._latest_frame = payload
        self._emit(config.EMIT_FRAME_EVENT, payload)

    def emit_report(self, record: dict) -> None:
        """Broadcast a throttled telemetry record (Report.to_record())."""
        with self._lock:
            self._latest_report = record
        self._emit(config.EMIT_REPORT_EVENT, record)

    def _emit(self, event: str, data: dict) -> None:
        if not self._running:
            return
        try:
            self.socketio.emit(event, data)
        except Exception as exc:
            log.debug(f"Emit error on {event}: {exc}")

    # ──────────────────────────────────────────────────────────────────────────
    # Lifecycle
    # ──────────────────────────────────────────────────────────────────────────

    def start_background(self) -> None:
        """
        Start the SocketIO server in a background daemon thread.
        Returns immediately; call emit_frame() from the main loop.
        """
        if self._running:
            log.info("Presentation bridge already running.")
            return

        self._running = True
        self._thread = threading.Thread(
            target=self._run_server,
            daemon=True,
            name="attention-ws-server",
        )
        self._thread.start()
        log.info(
            f"Presentation bridge at http://{self.host}:{self.port}  "
            f"(health: http://localhost:{self.port}/health)"
        )

    def _run_server(self) -> None:
        """Internal: run Flask-SocketIO (blocking, called in daemon thread)."""
        self.socketio.run(
            self.app,
            host=self.host,
            port=self.port,
            use_reloader=False,
            log_output=False,
            allow_unsafe_werkzeug=True,
        )

    def stop(self) -> None:
        """Stop broadcasting (best-effort for the daemon thread)."""
        self._running = False
        log.info("Presentation bridge stopped.")

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def client_count(self) -> int:
        return self._client_count


# ──────────────────────────────────────────────────────────────────────────────
# Smoke test — run standalone with a ticking fake stream
# ──────────────────────────────────────────────────────────────────────────────
if __name__ == "__main__":
    import math

    server = PresentationServer()
    server.start_background()

    log.info("Streaming fake attention data every 200 ms… press Ctrl+C to stop.")
    tick = 0
    total = distracted = 0
    try:
        while True:
            h = 0.56 + math.sin(tick * 0.2) * 0.2
            label = "RIGHT" if h < 0.42 else "LEFT" if h > 0.70 else "CENTER"
            status = "FOCUSED" if label == "CENTER" else "DISTRACTED"
            total += 1
            distracted += status == "DISTRACTED"
            server.emit_frame({
                "status": status,
                "rawStatus": status,
                "gaze": {"gaze": label, "horizontalRatio": round(h, 3), "verticalRatio": -0.002},
                "headPosture": {"yaw": round(math.sin(tick * 0.1) * 12, 1), "pitch": 2.0},
                "stats": {"totalChecks": total, "distractedChecks": distracted},
                "timestamp": tick * 200,
            })
            tick += 1
            time.sleep(0.2)
    except KeyboardInterrupt:
        server.stop()
