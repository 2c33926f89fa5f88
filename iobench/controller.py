from __future__ import annotations

import logging
import random
import sys
import time
from typing import Callable, Sequence, TextIO

from .collector import BenchmarkSummary, ReportRow, SummaryStatistics
from .config import BenchmarkConfig, FileSet, SplitStrategy
from .monitors import CpuMonitor, DiskMonitor
from .pacemaker import Pacemaker
from .worker import Worker

LOGGER = logging.getLogger("iobench.controller")

MIB = 1024 * 1024
CPU_BOUND_THRESHOLD = 0.9
CACHE_SUSPICION_FACTOR = 1.1
IDLE_SLEEP_S = 0.01

_HLINE = "-" * 80
_WARNING_PREFIX = "     !!! "


def partition_indices(
    indices: Sequence[int],
    num_workers: int,
    strategy: SplitStrategy,
    rng: random.Random | None = None,
) -> list[tuple[int, ...]]:
    """Distribute ``indices`` among ``num_workers`` according to ``strategy``.

    ``SEPARATE`` hands out contiguous, disjoint slices whose sizes differ by at
    most one; together they cover ``indices`` exactly. ``OVERLAP`` gives every
    worker the full set in its own random order, ``SAME`` gives every worker the
    full set in the original order.
    """

    if num_workers < 1:
        raise ValueError(f"num_workers must be >= 1, got {num_workers}")
    indices = tuple(indices)

    if strategy is SplitStrategy.SEPARATE:
        base, extra = divmod(len(indices), num_workers)
        slices = []
        start = 0
        for worker_idx in range(num_workers):
            end = start + base + (1 if worker_idx < extra else 0)
            slices.append(indices[start:end])
            start = end
        return slices

    if strategy is SplitStrategy.OVERLAP:
        rng = rng or random.Random()
        slices = []
        for _ in range(num_workers):
            local = list(indices)
            rng.shuffle(local)
            slices.append(tuple(local))
        return slices

    if strategy is SplitStrategy.SAME:
        return [indices for _ in range(num_workers)]

    raise ValueError(f"Unhandled workload split: {strategy!r}")


def build_assignments(
    file_set: FileSet, config: BenchmarkConfig, rng: random.Random | None = None
) -> list[tuple[int, ...]]:
    rng = rng or random.Random()
    indices = file_set.indices()
    if config.randomize:
        rng.shuffle(indices)
    return partition_indices(indices, config.jobs, config.split, rng)


class BenchmarkController:
    """Runs the worker pool and prints periodic throughput reports."""

    def __init__(
        self,
        file_set: FileSet,
        config: BenchmarkConfig,
        *,
        cpu_monitor: CpuMonitor | None = None,
        disk_monitor: DiskMonitor | None = None,
        pacemaker: Pacemaker | None = None,
        rng: random.Random | None = None,
        out: TextIO | None = None,
        report_logger: logging.Logger | None = None,
        clock: Callable[[], float] = time.monotonic,
        idle_sleep: float = IDLE_SLEEP_S,
    ) -> None:
        self._file_set = file_set
        self._config = config
        self._cpu_monitor = cpu_monitor or CpuMonitor()
        self._disk_monitor = disk_monitor or DiskMonitor()
        self._pacemaker = pacemaker or Pacemaker(config.report_fps)
        self._out = out or sys.stdout
        self._report_logger = report_logger
        self._clock = clock
        self._idle_sleep = idle_sleep

        self.assignments = build_assignments(file_set, config, rng)
        self._workers = [
            Worker(
                indices,
                file_set,
                mode=config.mode,
                write_size=config.write_size,
                name=f"iobench-worker-{idx}",
                clock=clock,
            )
            for idx, indices in enumerate(self.assignments)
        ]
        self._history = SummaryStatistics()
        self._rows: list[ReportRow] = []
        self._last_disk_update = 0.0

    @property
    def workers(self) -> list[Worker]:
        return list(self._workers)

    @property
    def total_assigned(self) -> int:
        return sum(len(indices) for indices in self.assignments)

    def all_workers_finished(self) -> bool:
        return all(worker.is_done() for worker in self._workers)

    def run(self) -> BenchmarkSummary:
        LOGGER.info(
            "Spawning %d worker thread(s): split=%s mode=%s files=%d",
            len(self._workers),
            self._config.split.value,
            self._config.mode.value,
            self._file_set.size,
        )
        self._disk_monitor.update()
        self._cpu_monitor.total_cpu_usage()
        started_at = self._clock()
        self._last_disk_update = started_at
        self._pacemaker.reset()

        interrupted = False
        self._print_header()
        try:
            for worker in self._workers:
                worker.start()
            while not self.all_workers_finished():
                if self._pacemaker.is_due():
                    self._report(self._clock() - started_at)
                else:
                    time.sleep(self._idle_sleep)
        except KeyboardInterrupt:
            interrupted = True
            LOGGER.warning("Interrupted; waiting for workers to finish their current file")
        finally:
            for worker in self._workers:
                worker.stop()

        summary = BenchmarkSummary(
            history=self._history,
            rows=list(self._rows),
            elapsed_s=self._clock() - started_at,
            completed=sum(worker.progress for worker in self._workers),
            assigned=self.total_assigned,
            errors=sum(worker.errors for worker in self._workers),
            bytes_transferred=sum(worker.bytes_transferred for worker in self._workers),
            interrupted=interrupted,
        )
        self._print_summary(summary)
        return summary

    def _report(self, elapsed_s: float) -> ReportRow:
        num_workers = len(self._workers)
        done = sum(worker.progress for worker in self._workers)
        throughput = sum(worker.throughput() for worker in self._workers)
        active_workers = sum(1 for worker in self._workers if not worker.is_done()) or 1

        cpu_usage: float | None = self._cpu_monitor.total_cpu_usage()
        if cpu_usage < 0:
            # counter wrapped; drop this sample
            cpu_usage = None

        fastest_disk_rate = self._fastest_disk_rate()
        assigned = self.total_assigned
        progress_pct = 100.0 * done / assigned if assigned else 100.0

        row = ReportRow(
            elapsed_s=elapsed_s,
            progress_pct=progress_pct,
            throughput=throughput,
            throughput_per_worker=throughput / num_workers,
            cpu_usage=cpu_usage,
            cpu_usage_per_worker=None if cpu_usage is None else cpu_usage / num_workers,
            fastest_disk_rate=fastest_disk_rate,
            cpu_bound=cpu_usage is not None and cpu_usage >= CPU_BOUND_THRESHOLD * active_workers,
            cache_suspect=(
                fastest_disk_rate is not None
                and throughput > CACHE_SUSPICION_FACTOR * fastest_disk_rate
            ),
        )
        self._history.add_sample(throughput)
        self._rows.append(row)
        self._print_row(row)
        return row

    def _fastest_disk_rate(self) -> float | None:
        self._disk_monitor.update()
        now = self._clock()
        interval = now - self._last_disk_update
        self._last_disk_update = now
        if not self._disk_monitor.available or interval <= 0:
            return None
        return self._disk_monitor.fastest_disk_read() / interval

    def _emit(self, line: str, warning: bool = False) -> None:
        print(line, file=self._out, flush=True)
        if self._report_logger is not None:
            if warning:
                self._report_logger.warning(line.strip())
            else:
                self._report_logger.info(line)

    def _print_header(self) -> None:
        self._emit(_HLINE)
        self._emit("Progress\tthroughput\tthroughput\tCPU usage\tCPU usage")
        self._emit("\t\t(total)\t\t(per worker)\t(total)\t\t(per worker)")
        self._emit(_HLINE)

    def _print_row(self, row: ReportRow) -> None:
        self._emit(
            f"{row.progress_pct:7.2f}%\t"
            f"{row.throughput / MIB:7.1f} MB/s\t"
            f"{row.throughput_per_worker / MIB:7.1f} MB/s\t"
            f"{_format_percent(row.cpu_usage)}\t"
            f"{_format_percent(row.cpu_usage_per_worker)}"
        )
        if row.cpu_bound:
            self._emit(_WARNING_PREFIX + "(benchmark might be CPU-constrained; use more workers!)", warning=True)
        if row.cache_suspect:
            self._emit(
                _WARNING_PREFIX
                + f"(actual disk is much slower ({row.fastest_disk_rate / MIB:.1f} MB/s); data may be cached!)",
                warning=True,
            )

    def _print_summary(self, summary: BenchmarkSummary) -> None:
        self._emit(_HLINE)
        self._emit(
            f"Processed {summary.completed} of {summary.assigned} file operations "
            f"({summary.errors} skipped) in {summary.elapsed_s:.2f}s"
        )
        self._emit(f"Robust average throughput: {_format_rate(summary.robust_average)}")
        self._emit(f"Robust minimum throughput: {_format_rate(summary.robust_min)}")
        self._emit(f"Overall throughput: {_format_rate(summary.overall_throughput)}")


def _format_percent(value: float | None) -> str:
    if value is None:
        return f"{'n/a':>8}"
    return f"{value * 100:7.1f}%"


def _format_rate(value: float | None) -> str:
    if value is None:
        return "n/a (no samples)"
    return f"{value / MIB:.1f} MB/s"
