"""
Bounded concurrency for analyses.

Each analysis can hold a worker for minutes while AI collaborators answer;
the gate caps how many run at once. Callers over the cap wait up to
queue_timeout seconds for a slot, then get refused.
"""
import logging
import threading
from contextlib import contextmanager

from django.conf import settings

logger = logging.getLogger(__name__)


class GateTimeout(Exception):
    """No analysis slot became free in time."""


class AnalysisGate:

    def __init__(self, max_concurrent: int = 15, queue_timeout: float = 300.0):
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        self.max_concurrent = max_concurrent
        self.queue_timeout = queue_timeout
        self._slots = threading.BoundedSemaphore(max_concurrent)
        self._lock = threading.Lock()
        self._processing = 0
        self._queued = 0

    def acquire(self, timeout: float = None) -> bool:
        with self._lock:
            self._queued += 1
        try:
            acquired = self._slots.acquire(timeout=self.queue_timeout if timeout is None else timeout)
        finally:
            with self._lock:
                self._queued -= 1
        if acquired:
            with self._lock:
                self._processing += 1
        return acquired

    def release(self):
        with self._lock:
            self._processing -= 1
        self._slots.release()

    @contextmanager
    def slot(self, timeout: float = None):
        """Hold a slot for the duration of the block; raises GateTimeout."""
        if not self.acquire(timeout):
            logger.warning("Analysis gate full (%d running), request refused", self.max_concurrent)
            raise GateTimeout("Too many simultaneous analyses, try again later")
        try:
            yield
        finally:
            self.release()

    def stats(self) -> dict:
        with self._lock:
            return {
                'processing': self._processing,
                'queued': self._queued,
                'available': max(0, self.max_concurrent - self._processing),
            }


_gate = None
_gate_lock = threading.Lock()


def get_gate() -> AnalysisGate:
    """The service's gate, sized from settings on first use."""
    global _gate
    with _gate_lock:
        if _gate is None:
            _gate = AnalysisGate(
                max_concurrent=getattr(settings, 'ANALYSIS_MAX_CONCURRENT', 15),
                queue_timeout=getattr(settings, 'ANALYSIS_QUEUE_TIMEOUT', 300.0),
            )
        return _gate
