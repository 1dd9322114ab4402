"""Tests for metrics collector."""

import time

from draftwise.core.metrics import _Metrics, _percentile


def test_percentile_empty_list():
    """Test percentile with empty list."""
    assert _percentile([], 0.5) == 0


def test_percentile_single_value():
    """Test percentile with single value."""
    assert _percentile([100], 0.5) == 100


def test_percentile_multiple_values():
    """Test percentile calculation."""
    values = [10, 20, 30, 40, 50, 60, 70, 80, 90, 100]
    assert _percentile(values, 0.50) in [50, 60]  # Rough p50 calculation acceptable
    assert _percentile(values, 0.95) in [90, 100]


def test_metrics_counters():
    """Test request and error counters."""
    m = _Metrics()
    m.increment_requests()
    m.increment_requests()
    m.increment_errors()
    assert m.total_requests == 2
    assert m.total_errors == 1


def test_latency_window_is_bounded():
    """Test that only the most recent samples are kept."""
    m = _Metrics(max_samples=3)
    for ms in (1, 2, 3, 4, 5):
        m.record_latency(ms)
    assert list(m._latencies) == [3, 4, 5]


def test_cache_hit_rate():
    """Test hit/miss accounting."""
    m = _Metrics()
    assert m.snapshot()["cache_hit_rate"] == 0.0
    m.record_cache(True)
    m.record_cache(True)
    m.record_cache(False)
    snapshot = m.snapshot()
    assert snapshot["cache_hits"] == 2
    assert snapshot["cache_misses"] == 1
    assert snapshot["cache_hit_rate"] == 0.667


def test_measure_records_custom_metric():
    """Test the timing context manager stores milliseconds."""
    m = _Metrics()
    with m.measure("email_generation_ms"):
        time.sleep(0.01)
    assert m.get_custom_metric("email_generation_ms") >= 5
    assert m.get_custom_metric("missing") is None


def test_measure_records_even_on_error():
    """Test that a failing block is still timed."""
    m = _Metrics()
    try:
        with m.measure("failing_ms"):
            raise ValueError("boom")
    except ValueError:
        pass
    assert m.get_custom_metric("failing_ms") is not None


def test_metrics_snapshot():
    """Test metrics snapshot format."""
    m = _Metrics()
    m.increment_requests()
    m.record_latency(100)
    m.record_latency(200)
    m.record_fallback()
    m.set_custom_metric("slide_generation_ms", 12.5)

    snapshot = m.snapshot()
    for key in ("total_requests", "total_errors", "p50_ms", "p95_ms", "provider_fallbacks"):
        assert key in snapshot
    assert snapshot["provider_fallbacks"] == 1
    assert snapshot["custom"] == {"slide_generation_ms": 12.5}
