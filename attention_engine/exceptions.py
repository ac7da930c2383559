# =============================================================================
# attention_engine/exceptions.py
#
# Error taxonomy of the attention engine.
#
#   AttentionEngineError
#     ├── GeometryDegenerate   – landmark geometry unusable for one frame
#     ├── ProviderInitFailure  – landmark provider could not be set up
#     ├── TransportFailure     – telemetry sink rejected / unreachable
#     └── EngineStateError     – lifecycle call made in the wrong state
#
# "No landmarks" is not an error: the provider returns None for it.
# =============================================================================


class AttentionEngineError(Exception):
    """Base class for every error raised by the attention engine."""


class GeometryDegenerate(AttentionEngineError):
    """Raised when landmark geometry cannot produce a gaze reading."""


class ProviderInitFailure(AttentionEngineError):
    """Raised when the landmark provider fails to initialize."""


class TransportFailure(AttentionEngineError):
    """Raised when a telemetry record could not be delivered."""

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.status_code = status_code


class EngineStateError(AttentionEngineError):
    """Raised when a lifecycle operation is invalid for the current engine state."""
