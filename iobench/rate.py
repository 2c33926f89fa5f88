from __future__ import annotations

import collections
import threading
import time
from typing import Callable


class RateEstimator:
    """Rolling byte counter that turns recent samples into a rate.

    One thread records samples while another queries the rate; samples older
    than the queried window are dropped during the query.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._samples: collections.deque[tuple[float, int]] = collections.deque()
        self._lock = threading.Lock()
        self._total = 0

    def add_sample(self, size: int) -> None:
        now = self._clock()
        with self._lock:
            self._samples.append((now, size))
            self._total += size

    def rate_over_window(self, window_seconds: float = 1.0) -> float:
        if window_seconds <= 0:
            raise ValueError("window_seconds must be > 0")
        cutoff = self._clock() - window_seconds
        with self._lock:
            while self._samples and self._samples[0][0] < cutoff:
                self._samples.popleft()
            in_window = sum(size for _, size in self._samples)
        return in_window / window_seconds

    @property
    def total(self) -> int:
        with self._lock:
            return self._total
