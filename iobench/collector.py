from __future__ import annotations

import dataclasses
import logging
import math
from dataclasses import dataclass, field

import pandas as pd

LOGGER = logging.getLogger("iobench.collector")

ROBUST_TRIM_FRACTION = 0.05
RELIABLE_SAMPLE_COUNT = 100
ROBUST_MIN_SKIPPED = 2

REPORT_COLUMNS = [
    "elapsed_s",
    "progress_pct",
    "throughput",
    "throughput_per_worker",
    "cpu_usage",
    "cpu_usage_per_worker",
    "fastest_disk_rate",
    "cpu_bound",
    "cache_suspect",
]


class InsufficientSamplesError(ValueError):
    """Raised when a statistic needs more samples than were collected."""


class SummaryStatistics:
    """Append-only history of throughput samples with outlier-resistant summaries."""

    def __init__(self) -> None:
        self._samples: list[float] = []

    def add_sample(self, value: float) -> None:
        self._samples.append(float(value))

    def __len__(self) -> int:
        return len(self._samples)

    @property
    def samples(self) -> tuple[float, ...]:
        return tuple(self._samples)

    @property
    def is_reliable(self) -> bool:
        return len(self._samples) >= RELIABLE_SAMPLE_COUNT

    def to_series(self) -> pd.Series:
        return pd.Series(self._samples, dtype="float64", name="throughput")

    def average(self) -> float:
        self._require(1, "average")
        return float(self.to_series().mean())

    def robust_average(self) -> float:
        """Mean of the middle 90% of samples by rank.

        Startup/shutdown transients and bursts sit at the extremes, so the lowest
        and highest 5% are dropped before averaging.
        """

        self._require(1, "robust average")
        if not self.is_reliable:
            LOGGER.warning(
                "Only %d throughput samples collected; robust average needs %d to be meaningful",
                len(self._samples),
                RELIABLE_SAMPLE_COUNT,
            )
        ranked = self.to_series().sort_values(ignore_index=True)
        trim = math.floor(len(ranked) * ROBUST_TRIM_FRACTION)
        kept = ranked.iloc[trim : len(ranked) - trim]
        return float(kept.mean())

    def min(self) -> float:
        self._require(1, "minimum")
        return float(self.to_series().min())

    def robust_min(self) -> float:
        """Minimum over all samples except the first two (process warm-up)."""

        self._require(ROBUST_MIN_SKIPPED + 1, "robust minimum")
        return float(self.to_series().iloc[ROBUST_MIN_SKIPPED:].min())

    def _require(self, count: int, what: str) -> None:
        if len(self._samples) < count:
            raise InsufficientSamplesError(
                f"{what} needs at least {count} sample(s), have {len(self._samples)}"
            )


@dataclass(frozen=True)
class ReportRow:
    elapsed_s: float
    progress_pct: float
    throughput: float
    throughput_per_worker: float
    cpu_usage: float | None
    cpu_usage_per_worker: float | None
    fastest_disk_rate: float | None
    cpu_bound: bool = False
    cache_suspect: bool = False


@dataclass
class BenchmarkSummary:
    """Everything the controller learned during one run."""

    history: SummaryStatistics
    rows: list[ReportRow] = field(default_factory=list)
    elapsed_s: float = 0.0
    completed: int = 0
    assigned: int = 0
    errors: int = 0
    bytes_transferred: int = 0
    interrupted: bool = False

    @property
    def robust_average(self) -> float | None:
        try:
            return self.history.robust_average()
        except InsufficientSamplesError:
            return None

    @property
    def robust_min(self) -> float | None:
        try:
            return self.history.robust_min()
        except InsufficientSamplesError as exc:
            LOGGER.warning("%s; falling back to the plain minimum", exc)
        try:
            return self.history.min()
        except InsufficientSamplesError:
            return None

    @property
    def overall_throughput(self) -> float:
        if self.elapsed_s <= 0:
            return 0.0
        return self.bytes_transferred / self.elapsed_s

    def build_dataframe(self) -> pd.DataFrame:
        if not self.rows:
            return pd.DataFrame(columns=REPORT_COLUMNS)
        return pd.DataFrame([dataclasses.asdict(row) for row in self.rows], columns=REPORT_COLUMNS)
