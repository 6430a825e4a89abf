import pytest

from mdfeed.latency_tracker import LatencyStats, LatencyTracker


def test_empty_tracker_gives_zero_stats():
    tracker = LatencyTracker(16)
    assert tracker.stats() == LatencyStats()


def test_constant_samples():
    tracker = LatencyTracker(16)
    for _ in range(10):
        tracker.record(42)
    stats = tracker.stats()
    assert stats.sample_count == 10
    assert (stats.min, stats.max, stats.mean) == (42, 42, 42)
    assert (stats.p50, stats.p95, stats.p99, stats.p999) == (42, 42, 42, 42)


def test_three_samples():
    tracker = LatencyTracker(8)
    for value in (30, 10, 20):
        tracker.record(value)
    stats = tracker.stats()
    assert stats.min == 10
    assert stats.max == 30
    assert stats.mean == 20
    assert stats.p50 == 20
    assert stats.p95 == 30
    assert stats.sample_count == 3


def test_percentiles_are_ordered():
    tracker = LatencyTracker(1024)
    for value in range(1, 501):
        tracker.record(value * 7 % 997)
    stats = tracker.stats()
    assert stats.min <= stats.p50 <= stats.p95 <= stats.p99 <= stats.p999 <= stats.max
    assert stats.sample_count == 500


def test_capacity_rounds_up_to_power_of_two_and_wraps():
    tracker = LatencyTracker(3)
    for value in range(1, 7):
        tracker.record(value)
    stats = tracker.stats()
    assert stats.sample_count == 4
    assert stats.min == 3
    assert stats.max == 6


def test_reset_clears_samples(tmp_path):
    tracker = LatencyTracker(8)
    tracker.record(100)
    tracker.reset()
    assert tracker.stats().sample_count == 0
    out = tmp_path / "hist.csv"
    tracker.export_to_csv(out)
    assert out.read_text().splitlines() == ["Bucket,Count"]


def test_export_histogram(tmp_path):
    tracker = LatencyTracker(8)
    tracker.record(0)
    tracker.record(5000)
    tracker.record(10_000_000)
    out = tmp_path / "hist.csv"
    tracker.export_to_csv(out)
    assert out.read_text().splitlines() == ["Bucket,Count", "0,2", "999,1"]


def test_export_to_missing_directory_raises(tmp_path):
    tracker = LatencyTracker(8)
    with pytest.raises(OSError):
        tracker.export_to_csv(tmp_path / "missing" / "hist.csv")


def test_negative_latency_rejected():
    tracker = LatencyTracker(8)
    with pytest.raises(ValueError):
        tracker.record(-1)
    assert tracker.stats().sample_count == 0