from __future__ import annotations

import enum
import logging
import os
import threading
import time
from typing import Callable, Sequence

from .config import DEFAULT_WRITE_SIZE, FileSet, WorkMode
from .rate import RateEstimator

LOGGER = logging.getLogger("iobench.worker")

THROUGHPUT_WINDOW_S = 1.0


class WorkerStatus(enum.IntEnum):
    INIT = 0
    RUNNING = 1
    STOPPING = 2
    FINISHED = 3


class Worker:
    """Performs timed I/O over its own slice of the shared file set.

    The worker thread is the only writer of ``progress`` and of the rate
    estimator; the controller reads both while the worker runs. ``status`` is
    the one field both sides write, and it only ever moves forward.
    """

    def __init__(
        self,
        indices: Sequence[int],
        file_set: FileSet,
        mode: WorkMode = WorkMode.READ,
        write_size: int = DEFAULT_WRITE_SIZE,
        name: str | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.indices: tuple[int, ...] = tuple(indices)
        self.file_set = file_set
        self.mode = mode
        self.name = name or "iobench-worker"
        self.rate = RateEstimator(clock=clock)

        self._write_size = write_size
        self._status = WorkerStatus.INIT
        self._status_lock = threading.Lock()
        self._thread: threading.Thread | None = None
        self._done = 0
        self._errors = 0

    @property
    def status(self) -> WorkerStatus:
        return self._status

    @property
    def progress(self) -> int:
        return self._done

    @property
    def errors(self) -> int:
        return self._errors

    @property
    def bytes_transferred(self) -> int:
        return self.rate.total

    def start(self) -> None:
        if self._status is WorkerStatus.RUNNING:
            return
        if not self._advance(WorkerStatus.INIT, WorkerStatus.RUNNING):
            raise RuntimeError(f"{self.name} cannot be restarted (status={self._status.name})")
        thread = threading.Thread(target=self._run, name=self.name, daemon=True)
        self._thread = thread
        thread.start()

    def stop(self, timeout: float | None = None) -> None:
        """Ask the worker to stop after its current file and wait for it."""

        self._advance(WorkerStatus.RUNNING, WorkerStatus.STOPPING)
        if self._thread is not None:
            self._thread.join(timeout=timeout)

    def is_done(self) -> bool:
        return self._status is WorkerStatus.FINISHED

    def throughput(self) -> float:
        return self.rate.rate_over_window(THROUGHPUT_WINDOW_S)

    def _advance(self, expected: WorkerStatus, new: WorkerStatus) -> bool:
        with self._status_lock:
            if self._status is not expected:
                return False
            self._status = new
            return True

    def _finish(self) -> None:
        with self._status_lock:
            self._status = WorkerStatus.FINISHED

    def _run(self) -> None:
        payload = os.urandom(self._write_size) if self.mode is WorkMode.WRITE else b""
        try:
            for index in self.indices:
                if self._status is not WorkerStatus.RUNNING:
                    LOGGER.debug("%s stopping after %d of %d files", self.name, self._done, len(self.indices))
                    break
                transferred, ok = self._process(index, payload)
                if not ok:
                    self._errors += 1
                if transferred:
                    self.rate.add_sample(transferred)
                self._done += 1
        except Exception:  # noqa: BLE001
            LOGGER.exception("%s failed unexpectedly", self.name)
        finally:
            self._finish()

    def _process(self, index: int, payload: bytes) -> tuple[int, bool]:
        """Handle one file index.

        Returns the byte count to feed into the rate estimator (bytes read, or
        bytes written in write-only mode) and whether every step succeeded.
        """

        if self.mode.reads:
            content = self._read(index)
            if content is None:
                return 0, False
            if self.mode is WorkMode.READWRITE:
                return len(content), self._write(index, content)
            return len(content), True

        if not self._write(index, payload):
            return 0, False
        return len(payload), True

    def _read(self, index: int) -> bytes | None:
        path = self.file_set.input_path(index)
        if path is None:
            LOGGER.warning("%s: no input file for index %d", self.name, index)
            return None
        try:
            with open(path, "rb") as handle:
                return handle.read()
        except OSError as exc:
            LOGGER.warning("Bad file: %s (%s)", path, exc)
            return None

    def _write(self, index: int, content: bytes) -> bool:
        path = self.file_set.output_path(index)
        if path is None:
            LOGGER.warning("%s: no output file for index %d", self.name, index)
            return False
        try:
            with open(path, "wb") as handle:
                handle.write(content)
        except OSError as exc:
            LOGGER.warning("Could not write %s (%s)", path, exc)
            return False
        return True
