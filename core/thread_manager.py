# =============================================================================
# core/thread_manager.py
#
# ThreadManager — lifecycle registry for the host application's components
# (telemetry worker, presentation bridge, camera, engine).
#
# Components register a start and a stop callable. start_all() starts them
# in registration order; if one fails, the ones already started are stopped
# again before the error is re-raised. stop_all() stops started components
# in reverse order (LIFO), runs only once, and never raises.
# =============================================================================

import threading
import time
from typing import Callable, List, Optional, Tuple

from core.logger import get_logger

log = get_logger(__name__)


class ThreadManager:
    """
    Usage:
        tm = ThreadManager()
        tm.register("TelemetrySink", sink.start,  sink.close)
        tm.register("Engine",        None,        engine.release)
        tm.start_all()
        # ... main loop ...
        tm.stop_all()
    """

    def __init__(self):
        self._components: List[Tuple[str, Optional[Callable], Optional[Callable]]] = []
        self._started: List[str] = []
        self._lock = threading.Lock()
        self._stopped = False

    def register(
        self,
        name:     str,
        start_fn: Optional[Callable] = None,
        stop_fn:  Optional[Callable] = None,
    ) -> None:
        """
        Register a component.

        Args:
            name:     Human-readable component name (for logging)
            start_fn: Callable to start the component (or None)
            stop_fn:  Callable to stop/cleanup the component (or None)
        """
        self._components.append((name, start_fn, stop_fn))
        log.debug(f"Registered component: {name}")

    def start_all(self) -> None:
        """Start components in registration order; roll back on failure."""
        t0 = time.perf_counter()
        for name, start_fn, _ in self._components:
            if start_fn is None:
                self._started.append(name)
                continue
            try:
                start_fn()
            except Exception as e:
                log.error(f"{name} failed to start: {e}", exc_info=True)
                self.stop_all()
                raise
            self._started.append(name)
            log.debug(f"{name} started")

        elapsed = (time.perf_counter() - t0) * 1000
        log.info(f"{len(self._started)} components ready in {elapsed:.0f}ms")

    def stop_all(self) -> None:
        """
        Stop every started component in reverse order. Runs once;
        later calls are no-ops. Errors are logged, never re-raised.
        """
        with self._lock:
            if self._stopped:
                return
            self._stopped = True

        started = set(self._started)
        for name, _, stop_fn in reversed(self._components):
            if stop_fn is None or name not in started:
                continue
            try:
                stop_fn()
                log.debug(f"{name} stopped")
            except Exception as e:
                log.error(f"{name} shutdown error: {e}", exc_info=True)
        log.info("All components stopped.")

    @property
    def started(self) -> List[str]:
        return list(self._started)
