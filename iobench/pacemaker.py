from __future__ import annotations

import enum
import logging
import threading
import time
from typing import Callable

LOGGER = logging.getLogger("iobench.pacemaker")

NS_PER_SECOND = 1_000_000_000


class Stage(enum.Enum):
    RUNNING = "running"
    PAUSED = "paused"


class Pacemaker:
    """A query-able clock that ticks ``target_fps`` times per second.

    ``is_due()`` returns True at most once per beat interval. A negative target
    makes every call due, a zero target disables the clock.

    With ``accumulate_unfetched=True`` beats that were not polled in time are
    banked: after a one second gap a 10 fps clock answers True to the next ten
    calls however quickly they arrive. By default such beats expire and the
    clock resynchronises to the beat grid, so a late poll yields one beat only.
    """

    def __init__(
        self,
        target_fps: float = 30.0,
        accumulate_unfetched: bool = False,
        clock: Callable[[], int] = time.monotonic_ns,
    ) -> None:
        self._clock = clock
        self._accumulate_unfetched = accumulate_unfetched
        self._stage = Stage.RUNNING
        self._lock = threading.Lock()
        self._last_beat = clock()
        self._target_fps = 0.0
        self._ns_per_beat = 0
        self.set_target_fps(target_fps)

    def is_due(self) -> bool:
        if self._stage is Stage.PAUSED:
            return False
        if self._target_fps == 0:
            return False
        if self._target_fps < 0:
            return True

        with self._lock:
            now = self._clock()
            difference = now - self._last_beat
            if difference < self._ns_per_beat:
                return False
            if self._accumulate_unfetched:
                self._last_beat += self._ns_per_beat
            else:
                skipped = difference // self._ns_per_beat
                if skipped > 1:
                    LOGGER.debug("Skipping %d unfetched beats of %dns", skipped - 1, self._ns_per_beat)
                self._last_beat += skipped * self._ns_per_beat
            return True

    __call__ = is_due

    def pause(self) -> None:
        self._stage = Stage.PAUSED

    def resume(self) -> None:
        self._stage = Stage.RUNNING

    def reset(self) -> None:
        with self._lock:
            self._last_beat = self._clock()

    def set_target_fps(self, target_fps: float) -> None:
        with self._lock:
            self._target_fps = float(target_fps)
            if self._target_fps > 0:
                self._ns_per_beat = max(int(NS_PER_SECOND / self._target_fps), 1)

    @property
    def target_fps(self) -> float:
        return self._target_fps

    @property
    def paused(self) -> bool:
        return self._stage is Stage.PAUSED
