"""Host-side monitors used to judge whether benchmark numbers can be trusted.

The disk monitor reads cumulative sectors-read counters from ``/proc/diskstats``
and yields the bytes read by the busiest physical disk between two updates. The
CPU monitor measures how busy this process kept the CPU between two queries.

Both are stateful in the same way: each query is measured against the previous
one and then becomes the baseline for the next. The pure functions
``advance_disks`` and ``sample_cpu_usage`` spell that contract out; the monitor
classes only keep the baseline between calls.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, replace
from functools import partial
from pathlib import Path
from typing import Callable, Iterable, NamedTuple

import psutil

LOGGER = logging.getLogger("iobench.monitors")

DEFAULT_DISKSTATS_PATH = Path("/proc/diskstats")
DEFAULT_SYSFS_BLOCK_PATH = Path("/sys/block")
CPU_USAGE_UNAVAILABLE = -1.0

# /proc/diskstats: major minor name reads_completed reads_merged sectors_read ...
_NAME_FIELD = 2
_SECTORS_READ_FIELD = 5


@dataclass(frozen=True)
class Disk:
    name: str
    bytes_per_sector: int
    current_sectors_read: int
    last_sectors_read: int

    @property
    def bytes_read(self) -> int:
        return self.bytes_per_sector * max(self.current_sectors_read - self.last_sectors_read, 0)


class CpuTimes(NamedTuple):
    elapsed: float
    user: float
    system: float


def parse_diskstats(content: str) -> dict[str, int]:
    """Map device name to cumulative sectors read, skipping loopback devices."""

    readings: dict[str, int] = {}
    for line in content.splitlines():
        fields = line.split()
        if len(fields) <= _SECTORS_READ_FIELD:
            continue
        name = fields[_NAME_FIELD]
        if name.startswith("loop"):
            continue
        try:
            readings[name] = int(fields[_SECTORS_READ_FIELD])
        except ValueError:
            LOGGER.debug("Ignoring malformed diskstats line: %r", line)
    return readings


def advance_disks(disks: Iterable[Disk], readings: dict[str, int]) -> tuple[Disk, ...]:
    """Shift ``current`` to ``last`` for every disk found in ``readings``.

    Disks missing from ``readings`` are returned unchanged.
    """

    advanced = []
    for disk in disks:
        if disk.name in readings:
            disk = replace(
                disk,
                last_sectors_read=disk.current_sectors_read,
                current_sectors_read=readings[disk.name],
            )
        advanced.append(disk)
    return tuple(advanced)


def sample_cpu_usage(baseline: CpuTimes, current: CpuTimes) -> tuple[float, CpuTimes]:
    """Return the busy fraction between two samples and the next baseline.

    A non-monotonic clock or busy counter yields ``CPU_USAGE_UNAVAILABLE`` for
    this sample; the returned baseline is ``current`` either way.
    """

    if (
        current.elapsed <= baseline.elapsed
        or current.system < baseline.system
        or current.user < baseline.user
    ):
        return CPU_USAGE_UNAVAILABLE, current
    busy = (current.system - baseline.system) + (current.user - baseline.user)
    return busy / (current.elapsed - baseline.elapsed), current


class DiskMonitor:
    def __init__(
        self,
        diskstats_path: str | Path = DEFAULT_DISKSTATS_PATH,
        sysfs_block_path: str | Path = DEFAULT_SYSFS_BLOCK_PATH,
    ) -> None:
        self._diskstats_path = Path(diskstats_path)
        self._sysfs_block_path = Path(sysfs_block_path)
        self._disks: tuple[Disk, ...] = ()
        self._available = False
        self._init()

    @property
    def available(self) -> bool:
        return self._available

    @property
    def disks(self) -> tuple[Disk, ...]:
        return self._disks

    def update(self) -> None:
        if not self._available:
            return
        try:
            readings = parse_diskstats(self._diskstats_path.read_text())
        except OSError as exc:
            LOGGER.debug("Could not re-read %s: %s", self._diskstats_path, exc)
            self._disks = tuple(
                replace(disk, current_sectors_read=0, last_sectors_read=0) for disk in self._disks
            )
            return
        self._disks = advance_disks(self._disks, readings)

    def fastest_disk_read(self) -> int:
        """Bytes read by the busiest disk between the last two updates."""

        return max((disk.bytes_read for disk in self._disks), default=0)

    def _init(self) -> None:
        try:
            readings = parse_diskstats(self._diskstats_path.read_text())
        except OSError as exc:
            LOGGER.warning("No disk I/O information available (%s); cache detection disabled", exc)
            return

        disks = []
        for name, sectors_read in readings.items():
            # Only whole disks have a queue/ directory; partitions do not.
            sector_size_path = self._sysfs_block_path / name / "queue" / "hw_sector_size"
            try:
                bytes_per_sector = int(sector_size_path.read_text().strip())
            except (OSError, ValueError):
                continue
            disks.append(Disk(name, bytes_per_sector, sectors_read, sectors_read))

        if not disks:
            LOGGER.warning("No physical disks found in %s; cache detection disabled", self._diskstats_path)
            return
        self._disks = tuple(disks)
        self._available = True
        LOGGER.debug("Monitoring disks: %s", ", ".join(disk.name for disk in disks))


def _process_times(process: psutil.Process) -> CpuTimes:
    sample = process.cpu_times()
    return CpuTimes(elapsed=time.monotonic(), user=sample.user, system=sample.system)


class CpuMonitor:
    def __init__(
        self,
        read_times: Callable[[], CpuTimes] | None = None,
        cpu_count: int | None = None,
    ) -> None:
        if read_times is None:
            read_times = partial(_process_times, psutil.Process())
        self._read_times = read_times
        self._baseline = read_times()
        self._cpu_count = cpu_count or psutil.cpu_count() or 1

    @property
    def cpu_count(self) -> int:
        return self._cpu_count

    def total_cpu_usage(self) -> float:
        """Busy fraction since the previous call (1.0 == one fully used core)."""

        usage, self._baseline = sample_cpu_usage(self._baseline, self._read_times())
        return usage
