"""Request/response timing correlation."""

from __future__ import annotations

import time
from typing import Callable, Dict, Optional

__all__ = ["PerformanceCorrelator"]


class PerformanceCorrelator:
    """Map request identity tokens to high-resolution start timestamps.

    One correlator belongs to one client family and is discarded with it.
    Entries for requests that never see a response stay until :meth:`clear`
    or until the owning client goes away. No locking: all access happens on
    the event loop between suspension points.
    """

    def __init__(self, clock: Callable[[], float] = time.perf_counter) -> None:
        self._clock = clock
        self._starts: Dict[str, float] = {}

    def record_start(self, request_id: str) -> None:
        self._starts[request_id] = self._clock()

    def consume_elapsed(self, request_id: str) -> Optional[float]:
        """Pop the start time for ``request_id`` and return elapsed milliseconds.

        Returns ``None`` when no start was recorded or it was already consumed.
        """
        start = self._starts.pop(request_id, None)
        if start is None:
            return None
        return max(0.0, (self._clock() - start) * 1000.0)

    @property
    def pending(self) -> int:
        return len(self._starts)

    def clear(self) -> None:
        self._starts.clear()
