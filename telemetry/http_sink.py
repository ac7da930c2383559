# =============================================================================
# telemetry/http_sink.py
#
# HttpTelemetrySink — fire-and-forget delivery of attention reports.
#
# Architecture:
#   Engine (per frame):  submit(report) → bounded queue      (never blocks)
#   Worker thread:       queue → POST /api/meeting/<id>/distraction
#                        remove(pid) → DELETE ...?participantId=<pid>
#
#   A full queue drops the new item. Every transport error is turned into a
#   TransportFailure and logged inside the worker; nothing propagates back
#   to the engine, whose local statistics stay the source of truth.
# =============================================================================

import queue
import threading
from typing import Optional, Tuple

import requests

from config import (
    TELEMETRY_BASE_URL, TELEMETRY_MEETING_ID,
    TELEMETRY_TIMEOUT_S, TELEMETRY_QUEUE_SIZE,
)
from attention_engine.data_structures import Report
from attention_engine.exceptions import TransportFailure
from core.logger import get_logger

log = get_logger(__name__)

_POST   = "POST"
_DELETE = "DELETE"
_STOP   = object()


class HttpTelemetrySink:
    """
    Usage:
        sink = HttpTelemetrySink("https://app.example", meeting_id="m-42")
        sink.start()
        sink.submit(report)          # from the engine, non-blocking
        sink.remove("participant-1") # on session end
        sink.close()                 # drains the queue, joins the worker
    """

    def __init__(
        self,
        base_url: str = TELEMETRY_BASE_URL,
        meeting_id: str = TELEMETRY_MEETING_ID,
        timeout: float = TELEMETRY_TIMEOUT_S,
        queue_size: int = TELEMETRY_QUEUE_SIZE,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.meeting_id = meeting_id
        self.timeout = timeout
        self._http = session or requests.Session()
        self._queue: "queue.Queue" = queue.Queue(maxsize=queue_size)

        self._lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None
        self._closed = False

        self.sent = 0
        self.failed = 0
        self.dropped = 0

    # ── Public API ────────────────────────────────────────────────────────────

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/api/meeting/{self.meeting_id}/distraction"

    def start(self) -> None:
        """Start the background delivery thread. Safe to call more than once."""
        with self._lock:
            if self._thread is not None or self._closed:
                return
            self._thread = threading.Thread(
                target=self._worker_loop,
                name="TelemetrySink-BG",
                daemon=True,
            )
            self._thread.start()
        log.info(f"Telemetry sink started → {self.endpoint}")

    def submit(self, report: Report) -> bool:
        """Queue a report for POSTing. Returns False if it was dropped."""
        return self._enqueue((_POST, report.to_record()))

    def remove(self, participant_id: str) -> bool:
        """Queue a removal signal so the backend drops the participant's row."""
        return self._enqueue((_DELETE, participant_id))

    def close(self, timeout: float = 5.0) -> None:
        """Deliver what is queued, then stop the worker. Idempotent."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            thread = self._thread
        if thread is not None:
            try:
                self._queue.put(_STOP, timeout=timeout)
            except queue.Full:
                log.warning(f"Telemetry queue still full after {timeout}s, "
                            f"abandoning {self._queue.qsize()} queued item(s)")
            else:
                thread.join(timeout=timeout)
        self._http.close()
        log.info(f"Telemetry sink closed (sent={self.sent}, "
                 f"failed={self.failed}, dropped={self.dropped}).")

    # ── Internals ─────────────────────────────────────────────────────────────

    def _enqueue(self, item: Tuple[str, object]) -> bool:
        if self._closed:
            self.dropped += 1
            return False
        try:
            self._queue.put_nowait(item)
        except queue.Full:
            self.dropped += 1
            log.debug(f"Telemetry queue full, dropping {item[0]}")
            return False
        return True

    def _worker_loop(self) -> None:
        while True:
            item = self._queue.get()
            if item is _STOP:
                break
            method, payload = item
            try:
                self._send(method, payload)
                self.sent += 1
            except TransportFailure as e:
                self.failed += 1
                log.warning(f"Telemetry {method} failed: {e}")
            except Exception as e:
                self.failed += 1
                log.error(f"Unexpected telemetry fault on {method}: {e}", exc_info=True)

    def _send(self, method: str, payload) -> None:
        """
        Perform one HTTP call.

        Raises:
            TransportFailure: on connection errors, timeouts or non-2xx replies.
        """
        try:
            if method == _POST:
                resp = self._http.post(self.endpoint, json=payload, timeout=self.timeout)
            else:
                resp = self._http.delete(
                    self.endpoint,
                    params={"participantId": payload},
                    timeout=self.timeout,
                )
        except requests.RequestException as e:
            raise TransportFailure(str(e)) from e

        if not resp.ok:
            raise TransportFailure(
                f"{method} {self.endpoint} → HTTP {resp.status_code}",
                status_code=resp.status_code,
            )
