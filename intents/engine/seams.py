"""
Boundary to optional external collaborators (refinement, curation).

Collaborators return a SeamResult instead of raising. call_seam() adds a
timeout guard and turns anything unexpected into a failed SeamResult, so the
caller always decides the fallback value itself.
"""
import enum
import logging
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout
from dataclasses import dataclass
from typing import Any, Callable, Generic, Optional, TypeVar

from .constants import SEAM_TIMEOUT
from .models import SeamStatus

logger = logging.getLogger(__name__)

T = TypeVar('T')


class ErrorKind(str, enum.Enum):
    UNAVAILABLE = 'unavailable'   # collaborator not configured
    TIMEOUT = 'timeout'
    TRANSPORT = 'transport'       # network / provider error
    MALFORMED = 'malformed'       # response is not parseable
    SCHEMA = 'schema'             # parseable but wrong shape


@dataclass(frozen=True)
class SeamResult(Generic[T]):
    ok: bool
    value: Optional[T] = None
    error_kind: Optional[ErrorKind] = None
    detail: Optional[str] = None

    @classmethod
    def success(cls, value: T) -> 'SeamResult[T]':
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error_kind: ErrorKind, detail: str = '') -> 'SeamResult[T]':
        return cls(ok=False, error_kind=error_kind, detail=detail)

    def to_status(self) -> SeamStatus:
        if self.ok:
            return SeamStatus(status='applied')
        kind = self.error_kind.value if self.error_kind else None
        return SeamStatus(status='failed', error_kind=kind, detail=self.detail or None)


def call_seam(name: str, fn: Callable[..., Any], *args, timeout: float = SEAM_TIMEOUT, **kwargs) -> SeamResult:
    """
    Run collaborator fn on a worker thread and wait at most timeout seconds.

    The worker is abandoned (not joined) on timeout; its eventual result is
    discarded.
    """
    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"seam-{name}")
    try:
        future = executor.submit(fn, *args, **kwargs)
        try:
            result = future.result(timeout=timeout)
        except FutureTimeout:
            logger.warning("%s timed out after %.0fs, using fallback", name, timeout)
            return SeamResult.failure(ErrorKind.TIMEOUT, f"No response within {timeout:.0f}s")
        except Exception as exc:
            logger.warning("%s failed, using fallback: %s", name, exc)
            return SeamResult.failure(ErrorKind.TRANSPORT, str(exc))
    finally:
        executor.shutdown(wait=False)

    if not isinstance(result, SeamResult):
        logger.warning("%s returned %s instead of SeamResult", name, type(result).__name__)
        return SeamResult.failure(ErrorKind.MALFORMED, f"Unexpected return type {type(result).__name__}")

    if not result.ok:
        logger.warning(
            "%s reported %s: %s", name,
            result.error_kind.value if result.error_kind else 'failure', result.detail,
        )
    return result
