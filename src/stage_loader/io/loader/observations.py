"""
Load observations (import attempts, commits, rollbacks, durations).

Observations are advisory: a sink failing or being absent never changes the
outcome of a load. :class:`InMemoryObservations` is the default sink; callers
wanting an external metrics backend pass any object with the same two methods.
"""

import threading
import time
from contextlib import contextmanager
from typing import Dict, Iterator, List, Protocol

from stage_loader.utils.logging import get_logger

logger = get_logger(__name__)

IMPORTS = "imports"
COMMITS = "commits"
ROLLBACKS = "rollbacks"
IMPORT_DURATION = "import_duration"


class ObservationSink(Protocol):
    def mark(self, name: str) -> None: ...

    def record_duration(self, name: str, duration_ms: float) -> None: ...


class InMemoryObservations:
    """Thread-safe counters and timers, also emitted as log events."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._counts: Dict[str, int] = {}
        self._durations: Dict[str, List[float]] = {}

    def mark(self, name: str) -> None:
        with self._lock:
            self._counts[name] = self._counts.get(name, 0) + 1
        logger.debug("observation.marked", observation=name)

    def record_duration(self, name: str, duration_ms: float) -> None:
        with self._lock:
            self._durations.setdefault(name, []).append(duration_ms)
        logger.debug("observation.timed", observation=name, duration_ms=duration_ms)

    def count(self, name: str) -> int:
        with self._lock:
            return self._counts.get(name, 0)

    def durations(self, name: str) -> List[float]:
        with self._lock:
            return list(self._durations.get(name, []))

    def snapshot(self) -> Dict[str, int]:
        with self._lock:
            return dict(self._counts)


@contextmanager
def timed(sink: ObservationSink, name: str) -> Iterator[None]:
    """Record the wall time of the block, whether it succeeds or raises."""
    start = time.perf_counter()
    try:
        yield
    finally:
        sink.record_duration(name, (time.perf_counter() - start) * 1000)


_default_observations = InMemoryObservations()


def default_observations() -> InMemoryObservations:
    return _default_observations
