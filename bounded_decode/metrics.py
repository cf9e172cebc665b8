"""Lightweight in-process metrics for the decoder.

Records counters and timings for probe/decode calls without any external
dependency, so it can be inspected from tests and host applications. Only
the most recent samples of each timing are kept; count/total/max cover the
whole lifetime.

Usage:
    from bounded_decode.metrics import metrics
    metrics.inc("decoder.probe")
    with metrics.timed("decoder.decode_duration"):
        ...
    snapshot = metrics.snapshot()
"""

from __future__ import annotations

import time
from collections import defaultdict, deque
from contextlib import contextmanager
from dataclasses import dataclass
from threading import RLock
from typing import Any

RECENT_SAMPLES = 256


@dataclass
class _TimingStats:
    count: int = 0
    total: float = 0.0
    max: float = 0.0

    def add(self, elapsed: float) -> None:
        self.count += 1
        self.total += elapsed
        self.max = max(self.max, elapsed)


class _Metrics:
    def __init__(self, recent_samples: int = RECENT_SAMPLES) -> None:
        self._counters: dict[str, int] = defaultdict(int)
        self._recent: dict[str, deque[float]] = defaultdict(lambda: deque(maxlen=recent_samples))
        self._stats: dict[str, _TimingStats] = defaultdict(_TimingStats)
        self._lock = RLock()

    def inc(self, key: str, amount: int = 1) -> None:
        with self._lock:
            self._counters[key] += int(amount)

    def record(self, key: str, elapsed: float) -> None:
        with self._lock:
            self._recent[key].append(elapsed)
            self._stats[key].add(elapsed)

    def timed(self, key: str):
        @contextmanager
        def _ctx():
            start = time.perf_counter()
            try:
                yield
            finally:
                self.record(key, time.perf_counter() - start)

        return _ctx()

    def snapshot(self) -> dict[str, Any]:
        with self._lock:
            return {
                "counters": dict(self._counters),
                "timings": {k: list(v) for k, v in self._recent.items()},
                "timing_stats": {
                    k: {"count": s.count, "total": s.total, "max": s.max} for k, s in self._stats.items()
                },
            }

    def reset(self) -> None:
        with self._lock:
            self._counters.clear()
            self._recent.clear()
            self._stats.clear()


metrics = _Metrics()
