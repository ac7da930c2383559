# =============================================================================
# config.py — Central Configuration for the Attention Monitor
# All tunable parameters live here. Never hardcode values in modules.
#
# Deploy-time values (log dir, debug, telemetry target, bridge port) come
# from RuntimeSettings and can be overridden with ATTN_-prefixed
# environment variables, e.g. ATTN_SERVER_PORT=6060.
# =============================================================================

import os

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

BASE_DIR = os.path.dirname(os.path.abspath(__file__))


class RuntimeSettings(BaseSettings):
    """Values that differ per deployment. Everything else is a constant below."""

    model_config = SettingsConfigDict(env_prefix="ATTN_", validate_assignment=True)

    logs_dir: str = Field(default_factory=lambda: os.path.join(BASE_DIR, "logs"))
    debug_mode: bool = False
    telemetry_base_url: str = "http://localhost:3000"
    telemetry_meeting_id: str = "local"
    server_port: int = 5050

    @field_validator("server_port")
    def _validate_port(cls, v: int) -> int:
        if not 0 < v < 65536:
            raise ValueError("server_port must be in 1..65535")
        return v

    @field_validator("telemetry_base_url")
    def _validate_base_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError("telemetry_base_url must be an http(s) URL")
        return v.rstrip("/")


def load_settings() -> RuntimeSettings:
    """Read RuntimeSettings from the environment (ATTN_ prefix)."""
    return RuntimeSettings()


SETTINGS = load_settings()

# ── Paths ─────────────────────────────────────────────────────────────────────
LOGS_DIR    = SETTINGS.logs_dir
os.makedirs(LOGS_DIR, exist_ok=True)

DEBUG_MODE          = SETTINGS.debug_mode

# ── Camera ────────────────────────────────────────────────────────────────────
CAMERA_INDEX        = 0          # Webcam device index
CAMERA_WIDTH        = 640
CAMERA_HEIGHT       = 480
CAMERA_FPS          = 30
MAIN_WINDOW_NAME    = "Attention Monitor"

# ── MediaPipe Face Mesh ───────────────────────────────────────────────────────
MP_MAX_FACES            = 1
MP_REFINE_LANDMARKS     = True     # Enables iris landmarks (468–477)
MP_MIN_DETECTION_CONF   = 0.5
MP_MIN_TRACKING_CONF    = 0.5
MESH_POINT_COUNT        = 478      # 468 mesh + 10 iris

# ── Eye / Iris landmark indices ───────────────────────────────────────────────
# (outer corner, inner corner) per eye
LEFT_EYE_CORNERS        = (33, 133)
RIGHT_EYE_CORNERS       = (362, 263)

LEFT_IRIS_IDX           = (468, 469, 470, 471, 472)
RIGHT_IRIS_IDX          = (473, 474, 475, 476, 477)

# Corner spans shorter than this (pixels) are treated as degenerate
MIN_EYE_SPAN_PX         = 1e-6

# ── Gaze thresholds ───────────────────────────────────────────────────────────
# Evaluated in this order; horizontal dominates vertical.
GAZE_RIGHT_MAX_H        = 0.42     # h <  this → RIGHT
GAZE_LEFT_MIN_H         = 0.70     # h >  this → LEFT
GAZE_UP_MAX_V           = -0.0075  # v <  this → UP
GAZE_DOWN_MIN_V         = 0.0      # v >  this → DOWN

# ── Head posture (display only unless the posture gate is enabled) ────────────
# Indices: Nose tip, Chin, Left eye corner, Right eye corner, Left mouth, Right mouth
FACE_MODEL_LANDMARK_IDS = (1, 152, 263, 33, 287, 57)

# Approximate 3D coordinates of the above landmarks in mm (canonical face model)
FACE_3D_MODEL_POINTS = [
    [ 0.0,    0.0,    0.0  ],   # Nose tip
    [ 0.0,  -63.6,  -12.5 ],   # Chin
    [-43.3,   32.7,  -26.0],   # Left eye corner (from camera perspective)
    [ 43.3,   32.7,  -26.0],   # Right eye corner
    [-28.9,  -28.9,  -24.1],   # Left mouth corner
    [ 28.9,  -28.9,  -24.1],   # Right mouth corner
]

POSTURE_GATE_ENABLED    = False
YAW_DISTRACT_THRESH     = 20.0    # degrees, only used by the posture gate
PITCH_DISTRACT_THRESH   = 15.0

# ── Kalman Filter (posture display smoothing) ─────────────────────────────────
KALMAN_PROCESS_NOISE    = 1e-3
KALMAN_MEASUREMENT_NOISE = 1e-1
POSTURE_SMOOTHING       = True

# ── Smoothing / Aggregation / Emission ────────────────────────────────────────
# Consecutive NO FACE frames needed before NO FACE is trusted (~1.6s at 200ms)
NO_FACE_THRESHOLD       = 8
EMIT_INTERVAL_MS        = 200
# False: smooth + count every frame.  True: only frames admitted by the throttle.
COUNT_ON_EMIT           = False

# ── Telemetry sink (HTTP) ─────────────────────────────────────────────────────
TELEMETRY_BASE_URL      = SETTINGS.telemetry_base_url
TELEMETRY_MEETING_ID    = SETTINGS.telemetry_meeting_id
TELEMETRY_TIMEOUT_S     = 2.0
TELEMETRY_QUEUE_SIZE    = 64

# ── Presentation bridge (Flask-SocketIO) ──────────────────────────────────────
SERVER_HOST                 = "0.0.0.0"
SERVER_PORT                 = SETTINGS.server_port
SERVER_CORS_ALLOWED_ORIGINS = "*"
EMIT_FRAME_EVENT            = "attention_frame"
EMIT_REPORT_EVENT           = "attention_report"
