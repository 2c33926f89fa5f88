from __future__ import annotations

import enum
import re
from dataclasses import dataclass
from typing import Sequence

DEFAULT_WRITE_SIZE = 10 * 1024 * 1024
DEFAULT_REPORT_FPS = 1.0

_SIZE_PATTERN = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*([KMGT]?)(?:I?B)?\s*$", re.IGNORECASE)
_SIZE_UNITS = {"": 1, "K": 1024, "M": 1024**2, "G": 1024**3, "T": 1024**4}


class BenchmarkConfigError(Exception):
    """Raised when the benchmark cannot start because of invalid configuration."""


class SplitStrategy(enum.Enum):
    """How the file index space is distributed among workers."""

    SEPARATE = "separate"
    OVERLAP = "overlap"
    SAME = "same"


class WorkMode(enum.Enum):
    READ = "read"
    WRITE = "write"
    READWRITE = "readwrite"

    @property
    def reads(self) -> bool:
        return self in (WorkMode.READ, WorkMode.READWRITE)

    @property
    def writes(self) -> bool:
        return self in (WorkMode.WRITE, WorkMode.READWRITE)


@dataclass(frozen=True)
class FileSet:
    """Read-only input/output path lists shared by all workers."""

    infiles: tuple[str, ...] = ()
    outfiles: tuple[str, ...] = ()

    @classmethod
    def from_lists(
        cls, infiles: Sequence[str] | None = None, outfiles: Sequence[str] | None = None
    ) -> "FileSet":
        return cls(infiles=tuple(infiles or ()), outfiles=tuple(outfiles or ()))

    @property
    def size(self) -> int:
        return max(len(self.infiles), len(self.outfiles))

    def indices(self) -> list[int]:
        return list(range(self.size))

    def input_path(self, index: int) -> str | None:
        if 0 <= index < len(self.infiles):
            return self.infiles[index]
        return None

    def output_path(self, index: int) -> str | None:
        if 0 <= index < len(self.outfiles):
            return self.outfiles[index]
        return None


@dataclass(frozen=True)
class BenchmarkConfig:
    """Resolved settings for a single benchmark run."""

    jobs: int = 1
    split: SplitStrategy = SplitStrategy.SEPARATE
    mode: WorkMode = WorkMode.READ
    randomize: bool = False
    write_size: int = DEFAULT_WRITE_SIZE
    report_fps: float = DEFAULT_REPORT_FPS

    def __post_init__(self) -> None:
        if not isinstance(self.split, SplitStrategy):
            object.__setattr__(self, "split", _coerce(SplitStrategy, self.split, "workload split"))
        if not isinstance(self.mode, WorkMode):
            object.__setattr__(self, "mode", _coerce(WorkMode, self.mode, "mode"))
        if self.jobs < 1:
            raise BenchmarkConfigError(f"need at least one worker, got jobs={self.jobs}")
        if self.write_size <= 0:
            raise BenchmarkConfigError(f"write size must be > 0, got {self.write_size}")
        if self.report_fps == 0:
            raise BenchmarkConfigError("report rate must be non-zero")

    def check_file_set(self, file_set: FileSet) -> None:
        """Ensure the lists the selected mode needs were actually supplied."""

        if self.mode.reads and not file_set.infiles:
            raise BenchmarkConfigError(f"--mode={self.mode.value} needs a list of input files")
        if self.mode.writes and not file_set.outfiles:
            raise BenchmarkConfigError(f"--mode={self.mode.value} needs a list of output files")


def parse_size(text: str | int) -> int:
    """Parse sizes such as ``4096``, ``50K``, ``10M`` or ``2GiB`` into bytes."""

    if isinstance(text, int):
        value = text
    else:
        match = _SIZE_PATTERN.match(text)
        if not match:
            raise BenchmarkConfigError(f"unrecognised size: {text!r}")
        number, unit = match.groups()
        value = int(float(number) * _SIZE_UNITS[unit.upper()])
    if value < 0:
        raise BenchmarkConfigError(f"size must be >= 0, got {text!r}")
    return value


def _coerce(enum_cls, value, label: str):
    try:
        return enum_cls(value)
    except ValueError as exc:
        choices = ", ".join(member.value for member in enum_cls)
        raise BenchmarkConfigError(f"unrecognised {label} {value!r} (choose from {choices})") from exc
