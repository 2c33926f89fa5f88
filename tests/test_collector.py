import logging

import pytest

from iobench.collector import (
    REPORT_COLUMNS,
    BenchmarkSummary,
    InsufficientSamplesError,
    ReportRow,
    SummaryStatistics,
)


def _stats(values):
    stats = SummaryStatistics()
    for value in values:
        stats.add_sample(value)
    return stats


def test_average():
    assert _stats([1, 2, 3, 4]).average() == pytest.approx(2.5)


def test_robust_average_drops_outer_five_percent():
    stats = _stats(range(1, 101))
    expected = sum(range(6, 96)) / 90
    assert stats.robust_average() == pytest.approx(expected)
    assert stats.is_reliable


def test_robust_average_ignores_bursts():
    values = [100.0] * 100
    values[3] = 1_000_000.0
    values[70] = 0.0
    assert _stats(values).robust_average() == pytest.approx(100.0)


def test_robust_average_warns_on_short_history(caplog):
    stats = _stats([10, 20, 30])
    with caplog.at_level(logging.WARNING, logger="iobench.collector"):
        assert stats.robust_average() == pytest.approx(20)
    assert not stats.is_reliable
    assert "Only 3 throughput samples" in caplog.text


def test_min_and_robust_min():
    stats = _stats([5, 1, 1, 3, 4])
    assert stats.min() == 1
    assert stats.robust_min() == 1


def test_robust_min_skips_warmup_samples():
    stats = _stats([0.5, 0.1, 3, 4, 5])
    assert stats.min() == pytest.approx(0.1)
    assert stats.robust_min() == 3


def test_robust_min_needs_three_samples():
    with pytest.raises(InsufficientSamplesError):
        _stats([1, 2]).robust_min()


@pytest.mark.parametrize("method", ["average", "robust_average", "min"])
def test_empty_history_raises(method):
    with pytest.raises(InsufficientSamplesError):
        getattr(SummaryStatistics(), method)()


def test_samples_keep_chronological_order():
    stats = _stats([3, 1, 2])
    stats.robust_average()
    assert stats.samples == (3.0, 1.0, 2.0)
    assert list(stats.to_series()) == [3.0, 1.0, 2.0]


def test_summary_falls_back_to_plain_minimum():
    summary = BenchmarkSummary(history=_stats([4, 2]))
    assert summary.robust_min == 2
    assert summary.robust_average == pytest.approx(3)


def test_summary_without_samples():
    summary = BenchmarkSummary(history=SummaryStatistics())
    assert summary.robust_min is None
    assert summary.robust_average is None
    assert summary.overall_throughput == 0.0


def test_build_dataframe():
    summary = BenchmarkSummary(history=SummaryStatistics())
    assert list(summary.build_dataframe().columns) == REPORT_COLUMNS
    assert summary.build_dataframe().empty

    summary.rows.append(ReportRow(1.0, 50.0, 2048.0, 1024.0, 0.5, 0.25, None, cache_suspect=True))
    frame = summary.build_dataframe()
    assert len(frame) == 1
    assert frame.loc[0, "throughput"] == 2048.0
    assert bool(frame.loc[0, "cache_suspect"]) is True
