# =============================================================================
# attention_engine/engine_core.py
#
# AttentionEngine — orchestrator and single public interface of the engine.
#
# Lifecycle:
#
#   UNINITIALIZED ──initialize()──→ READY ──start_session()──→ RUNNING
#         ↑ (setup failed:                                        │
#            stays here)            STOPPED ←──session.stop()─────┘
#                                      └──start_session()──→ RUNNING (fresh state)
#
# Call flow per frame (process_frame):
#   1. LandmarkProvider.detect(frame)     → LandmarkSet | None
#   2. classify_frame(...)                → Classification (status, gaze, posture)
#   3. StatusSmoother.update(...)         → smoothed status
#   4. StatisticsAggregator.update(...)   → AggregateStats
#   5. EmissionThrottle.permit(...)       → Report to sink, only if open
#   6. Presenter.emit_frame(...)          → every frame, unthrottled
#
# Concurrency:
#   - One frame in flight at a time; a frame arriving while another is being
#     processed is dropped, not queued.
#   - All per-session state is mutated under the session lock, and stop()
#     takes the same lock, so nothing is counted or emitted after stop.
#   - Teardown callbacks run exactly once per session.
# =============================================================================

import threading
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from config import (
    CAMERA_WIDTH, CAMERA_HEIGHT,
    NO_FACE_THRESHOLD, EMIT_INTERVAL_MS, COUNT_ON_EMIT,
    POSTURE_GATE_ENABLED, POSTURE_SMOOTHING,
)
from attention_engine.analytics import StatisticsAggregator
from attention_engine.classifier import classify_frame
from attention_engine.data_structures import (
    AggregateStats, Classification, EngineState, FrameStatus, FrameUpdate, Report,
)
from attention_engine.exceptions import EngineStateError, ProviderInitFailure
from attention_engine.kalman_filter import PostureKalmanFilter
from attention_engine.smoother import StatusSmoother
from attention_engine.throttle import EmissionThrottle
from core.logger import get_logger

log = get_logger(__name__)


def _epoch_ms() -> int:
    return int(time.time() * 1000)


# ── Per-subject state set ─────────────────────────────────────────────────────

@dataclass
class SessionState:
    """Everything one tracking session owns. Never shared across subjects."""
    subject_id: str
    display_name: str
    smoother: StatusSmoother
    aggregator: StatisticsAggregator
    throttle: EmissionThrottle
    posture_filter: Optional[PostureKalmanFilter] = None
    on_stop: List[Callable[[str], None]] = field(default_factory=list)
    last_timestamp: Optional[float] = None
    last_status: Optional[FrameStatus] = None
    reports_sent: int = 0
    stopped: bool = False
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)


class TrackingSession:
    """
    Handle returned by AttentionEngine.start_session().

    stop() is idempotent and safe to call from several threads.
    Also usable as a context manager.
    """

    def __init__(self, engine: "AttentionEngine", state: SessionState):
        self._engine = engine
        self._state = state

    @property
    def subject_id(self) -> str:
        return self._state.subject_id

    @property
    def stopped(self) -> bool:
        return self._state.stopped

    @property
    def stats(self) -> AggregateStats:
        with self._state.lock:
            return self._state.aggregator.snapshot()

    @property
    def reports_sent(self) -> int:
        return self._state.reports_sent

    def add_stop_callback(self, callback: Callable[[str], None]) -> None:
        """Register a cleanup callback, called once with the subject id on stop."""
        with self._state.lock:
            if self._state.stopped:
                raise EngineStateError("session already stopped")
            self._state.on_stop.append(callback)

    def stop(self) -> bool:
        """Stop tracking. Returns True only for the call that actually stopped it."""
        return self._engine._end_session(self._state)

    def __enter__(self):
        return self

    def __exit__(self, *_):
        self.stop()


# ── Engine ────────────────────────────────────────────────────────────────────

class AttentionEngine:
    """
    Drives the attention pipeline for one subject at a time.

    Usage:
        engine = AttentionEngine(provider, sink=sink, presenter=bridge)
        if engine.initialize():
            session = engine.start_session("p-1", "Ada")

            # Per frame:
            update = engine.process_frame(frame, timestamp_ms)  # FrameUpdate | None

            session.stop()
        engine.release()

    `provider` needs setup(), detect(frame, width, height, timestamp) and
    release(). `sink` needs submit(report). `presenter` needs
    emit_frame(payload) and emit_report(record). Sink and presenter are
    optional and their failures never reach the caller.
    """

    def __init__(
        self,
        provider,
        sink=None,
        presenter=None,
        frame_width: int = CAMERA_WIDTH,
        frame_height: int = CAMERA_HEIGHT,
        no_face_threshold: int = NO_FACE_THRESHOLD,
        emit_interval_ms: float = EMIT_INTERVAL_MS,
        count_on_emit: bool = COUNT_ON_EMIT,
        with_posture: bool = True,
        posture_smoothing: bool = POSTURE_SMOOTHING,
        posture_gate: bool = POSTURE_GATE_ENABLED,
        wall_clock: Callable[[], int] = _epoch_ms,
    ):
        self._provider = provider
        self._sink = sink
        self._presenter = presenter

        self.frame_width = frame_width
        self.frame_height = frame_height
        self.no_face_threshold = no_face_threshold
        self.emit_interval_ms = emit_interval_ms
        self.count_on_emit = count_on_emit
        self.with_posture = with_posture
        self.posture_smoothing = posture_smoothing
        self.posture_gate = posture_gate
        self._wall_clock = wall_clock

        self._state = EngineState.UNINITIALIZED
        self._lifecycle_lock = threading.RLock()
        self._frame_guard = threading.Lock()
        self._session: Optional[SessionState] = None
        self._released = False

        self.init_error: Optional[Exception] = None
        self._last_update: Optional[FrameUpdate] = None
        self._frames_processed = 0
        self._frames_dropped = 0

    # ── Lifecycle ─────────────────────────────────────────────────────────────

    def initialize(self) -> bool:
        """
        Set up the landmark provider. On failure the engine stays
        UNINITIALIZED, the error is logged once and kept in `init_error`.
        Nothing retries automatically.
        """
        with self._lifecycle_lock:
            if self._state != EngineState.UNINITIALIZED:
                return True
            try:
                self._provider.setup()
            except ProviderInitFailure as e:
                self.init_error = e
                log.error(f"Landmark provider failed to initialize: {e}")
                return False
            except Exception as e:
                self.init_error = ProviderInitFailure(str(e))
                log.error(f"Landmark provider failed to initialize: {e}", exc_info=True)
                return False

            self.init_error = None
            self._state = EngineState.READY
            log.info("AttentionEngine ready.")
            return True

    def start_session(
        self,
        subject_id: str,
        display_name: str = "",
        prior_stats: Optional[AggregateStats] = None,
        on_stop: Optional[Callable[[str], None]] = None,
    ) -> TrackingSession:
        """
        Begin tracking a subject with a fresh state set.

        Args:
            subject_id:   participant id used in reports
            display_name: human-readable name used in reports
            prior_stats:  persisted counters to resume from (optional)
            on_stop:      cleanup callback, called once with subject_id

        Raises:
            EngineStateError: not initialized, or a session is already running
        """
        with self._lifecycle_lock:
            if self._state == EngineState.UNINITIALIZED:
                raise EngineStateError("engine not initialized")
            if self._state == EngineState.RUNNING:
                raise EngineStateError(
                    f"session for {self._session.subject_id!r} still running"
                )
            if self._released:
                raise EngineStateError("engine released")

            state = SessionState(
                subject_id=subject_id,
                display_name=display_name,
                smoother=StatusSmoother(self.no_face_threshold),
                aggregator=StatisticsAggregator(prior_stats),
                throttle=EmissionThrottle(self.emit_interval_ms),
                posture_filter=PostureKalmanFilter() if self.posture_smoothing else None,
            )
            if on_stop is not None:
                state.on_stop.append(on_stop)

            self._session = state
            self._last_update = None
            self._state = EngineState.RUNNING
            log.info(f"Tracking session started for {subject_id!r}.")
            return TrackingSession(self, state)

    def stop_session(self) -> bool:
        """Stop the current session, if any. Idempotent."""
        with self._lifecycle_lock:
            state = self._session
        if state is None:
            return False
        return self._end_session(state)

    def _end_session(self, state: SessionState) -> bool:
        with state.lock:
            if state.stopped:
                return False
            state.stopped = True
            callbacks = list(state.on_stop)
            state.on_stop.clear()
            final = state.aggregator.snapshot()

        with self._lifecycle_lock:
            if self._session is state:
                self._session = None
                self._state = EngineState.STOPPED

        log.info(
            f"Tracking session for {state.subject_id!r} stopped "
            f"({final.distracted_checks}/{final.total_checks} distracted, "
            f"peak {final.peak_distracted_pct}%, {state.reports_sent} reports)."
        )

        for callback in callbacks:
            try:
                callback(state.subject_id)
            except Exception as e:
                log.error(f"Session stop callback failed: {e}", exc_info=True)
        return True

    def release(self) -> None:
        """Stop any running session and release the provider. Idempotent."""
        self.stop_session()
        with self._lifecycle_lock:
            if self._released:
                return
            self._released = True
            was_initialized = self._state != EngineState.UNINITIALIZED
        if was_initialized:
            try:
                self._provider.release()
            except Exception as e:
                log.error(f"Landmark provider release failed: {e}", exc_info=True)
        log.info("AttentionEngine released.")

    # ── Main Update ───────────────────────────────────────────────────────────

    def process_frame(
        self,
        frame,
        timestamp_ms: float,
        width: Optional[int] = None,
        height: Optional[int] = None,
    ) -> Optional[FrameUpdate]:
        """
        Run the full pipeline on one frame.

        Args:
            frame:        image handed to the landmark provider
            timestamp_ms: monotonic frame timestamp (drives the throttle)
            width/height: frame size; taken from frame.shape when omitted

        Returns:
            FrameUpdate, or None when the frame was dropped (no session,
            a frame already in flight, or a timestamp older than the last one).
        """
        if not self._frame_guard.acquire(blocking=False):
            self._frames_dropped += 1
            return None
        try:
            state = self._session
            if state is None or state.stopped:
                return None
            if state.last_timestamp is not None and timestamp_ms < state.last_timestamp:
                self._frames_dropped += 1
                log.debug(f"Dropping out-of-order frame at {timestamp_ms}")
                return None

            w, h = self._frame_size(frame, width, height)
            result = self._classify(frame, w, h, timestamp_ms)

            with state.lock:
                if state.stopped:
                    return None
                update = self._advance(state, result, timestamp_ms)

            self._frames_processed += 1
            self._last_update = update
            self._present(update)
            return update
        finally:
            self._frame_guard.release()

    # ── Pipeline stages ───────────────────────────────────────────────────────

    def _frame_size(self, frame, width, height):
        shape = getattr(frame, "shape", None)
        if width is None:
            width = int(shape[1]) if shape is not None and len(shape) >= 2 else self.frame_width
        if height is None:
            height = int(shape[0]) if shape is not None and len(shape) >= 2 else self.frame_height
        return width, height

    def _classify(self, frame, width: int, height: int, timestamp_ms: float) -> Classification:
        try:
            landmarks = self._provider.detect(frame, width, height, timestamp_ms)
        except Exception as e:
            log.error(f"Landmark provider fault: {e}", exc_info=True)
            return Classification(FrameStatus.ERROR)
        return classify_frame(
            landmarks, width, height,
            with_posture=self.with_posture,
            posture_gate=self.posture_gate,
        )

    def _advance(
        self,
        state: SessionState,
        result: Classification,
        timestamp_ms: float,
    ) -> FrameUpdate:
        """Smoother → aggregator → throttle. Caller holds state.lock."""
        state.last_timestamp = timestamp_ms
        now_ms = self._wall_clock()

        if self.count_on_emit:
            admitted = state.throttle.permit(timestamp_ms)
            if admitted:
                state.last_status = state.smoother.update(result.status)
                state.aggregator.update(state.last_status, now_ms)
            status = state.last_status or result.status
        else:
            status = state.smoother.update(result.status)
            state.aggregator.update(status, now_ms)
            state.last_status = status
            admitted = state.throttle.permit(timestamp_ms)

        stats = state.aggregator.snapshot()

        posture = result.posture
        if posture is not None and state.posture_filter is not None:
            posture = state.posture_filter.update(posture)

        report = None
        if admitted:
            report = Report(
                subject_id=state.subject_id,
                display_name=state.display_name,
                status=status,
                stats=stats,
                emitted_at=now_ms,
            )
            self._dispatch(report)
            state.reports_sent += 1

        return FrameUpdate(
            raw_status=result.status,
            status=status,
            stats=stats,
            timestamp=timestamp_ms,
            gaze=result.gaze,
            posture=posture,
            report=report,
        )

    def _dispatch(self, report: Report) -> None:
        """Fire-and-forget hand-off to the sink. Must not block."""
        if self._sink is None:
            return
        try:
            self._sink.submit(report)
        except Exception as e:
            log.warning(f"Telemetry sink rejected report: {e}")

    def _present(self, update: FrameUpdate) -> None:
        if self._presenter is None:
            return
        try:
            self._presenter.emit_frame(update.to_payload())
            if update.report is not None:
                self._presenter.emit_report(update.report.to_record())
        except Exception as e:
            log.warning(f"Presenter rejected update: {e}")

    # ── Utility ───────────────────────────────────────────────────────────────

    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def session(self) -> Optional[SessionState]:
        return self._session

    @property
    def last_update(self) -> Optional[FrameUpdate]:
        """Most recent FrameUpdate of the current (or last) session."""
        return self._last_update

    @property
    def stats(self) -> AggregateStats:
        """Counters of the running session; zeros when none is running."""
        state = self._session
        if state is None:
            return AggregateStats()
        with state.lock:
            return state.aggregator.snapshot()

    @property
    def frames_processed(self) -> int:
        return self._frames_processed

    @property
    def frames_dropped(self) -> int:
        return self._frames_dropped
