from __future__ import annotations

import threading
import time
from typing import Callable, Mapping


class DispatchPacer:
    """Fixed minimum spacing between dispatches to the same source.

    Slots are reserved under a lock and slept outside it, so units of one
    source leave in order while other sources are never delayed.
    """

    def __init__(
        self,
        interval_by_source: Mapping[str, float],
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep_fn: Callable[[float], None] = time.sleep,
    ) -> None:
        self.interval_by_source = dict(interval_by_source)
        self._clock = clock
        self._sleep = sleep_fn
        self._lock = threading.Lock()
        self._next_slot: dict[str, float] = {}

    def reserve(self, source_id: str) -> float:
        interval = self.interval_by_source.get(source_id, 0.0)
        with self._lock:
            now = self._clock()
            slot = max(now, self._next_slot.get(source_id, now))
            self._next_slot[source_id] = slot + interval
        return slot

    def acquire(self, source_id: str) -> float:
        """Block until this source's next slot. Returns seconds waited."""
        slot = self.reserve(source_id)
        delay = slot - self._clock()
        if delay > 0:
            self._sleep(delay)
            return delay
        return 0.0
