"""Readable, time-ordered ids for markets and outcomes.

An id looks like ``MKT-<n>`` where ``n`` packs three parts, high to low:

    milliseconds since 2026-01-01 UTC | worker number (8 bits) | counter (14 bits)

Ids from one factory sort by creation time. Replicas must run with distinct
``ID_WORKER`` values.
"""

import threading
import time

from config.settings import settings

_EPOCH_MS = 1_767_225_600_000  # 2026-01-01T00:00:00Z
_WORKER_BITS = 8
_COUNTER_BITS = 14
_COUNTER_LIMIT = 1 << _COUNTER_BITS


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


class PrefixedIdFactory:
    """Hands out ``<prefix>-<n>`` ids; ``n`` strictly increases per factory."""

    def __init__(self, prefix: str, worker: int = 0) -> None:
        if not 0 <= worker < (1 << _WORKER_BITS):
            raise ValueError(f"worker must fit in {_WORKER_BITS} bits, got {worker}")
        self.prefix = prefix
        self._worker = worker
        self._guard = threading.Lock()
        self._stamp = 0
        self._counter = 0

    def _advance(self) -> tuple[int, int]:
        now = _now_ms()
        if now > self._stamp:
            self._stamp, self._counter = now, 0
        elif self._counter + 1 < _COUNTER_LIMIT:
            self._counter += 1
        else:
            # counter exhausted; wait for the clock to pass the last stamp
            while now <= self._stamp:
                now = _now_ms()
            self._stamp, self._counter = now, 0
        return self._stamp, self._counter

    def next_number(self) -> int:
        with self._guard:
            stamp, counter = self._advance()
        elapsed = stamp - _EPOCH_MS
        return (
            (elapsed << (_WORKER_BITS + _COUNTER_BITS))
            | (self._worker << _COUNTER_BITS)
            | counter
        )

    def __call__(self) -> str:
        return f"{self.prefix}-{self.next_number()}"


new_market_id = PrefixedIdFactory("MKT", settings.ID_WORKER)
new_outcome_id = PrefixedIdFactory("OUT", settings.ID_WORKER)
