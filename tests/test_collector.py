"""Tests for MetricsCollector and the metric sources."""
import math
import pytest
from datetime import timedelta
from unittest.mock import MagicMock

from conftest import BASE_VALUES, FlakySource, T0
from models.errors import AdapterError, SnapshotUnavailable
from monitor.collector import MetricsCollector, SENTINEL_VALUE
from monitor.sources import HTTPMetricSource, RequestStats, StaticMetricSource


class TestCollect:
    def test_snapshot_has_every_field(self, collector):
        snap = collector.collect()
        assert snap.timestamp == T0
        assert snap.cpu_usage == 40.0
        assert snap.error_rate_pct == 0.5
        assert snap.get("databaseConnections") == 8.0

    def test_latest_snapshot_before_first_tick(self, collector):
        assert collector.latest_or_none() is None
        with pytest.raises(SnapshotUnavailable):
            collector.latest_snapshot()

    def test_failed_field_uses_last_known_value(self, collector, source, clock):
        collector.collect()
        source.failing.add("cpu_usage")
        clock.advance(seconds=10)
        snap = collector.collect()
        assert snap.cpu_usage == 40.0
        assert snap.memory_usage == 50.0
        assert collector.field_failures["cpu_usage"] == 1
        assert "cpu_usage" in collector.last_error

    def test_failed_field_without_history_uses_sentinel(self, clock):
        col = MetricsCollector(FlakySource(BASE_VALUES, failing={"response_time_ms"}), clock=clock)
        snap = col.collect()
        assert snap.response_time_ms == SENTINEL_VALUE
        assert snap.cpu_usage == 40.0

    @pytest.mark.parametrize("bad", [float("nan"), float("inf"), -1.0, "n/a", None])
    def test_invalid_readings_are_rejected(self, clock, bad):
        values = dict(BASE_VALUES, memory_usage=bad)
        col = MetricsCollector(StaticMetricSource(values), clock=clock)
        snap = col.collect()
        assert snap.memory_usage == SENTINEL_VALUE
        assert not math.isnan(snap.memory_usage)

    def test_source_that_raises_unexpectedly_does_not_stop_tick(self, clock):
        source = MagicMock()
        source.read_metric.side_effect = RuntimeError("boom")
        col = MetricsCollector(source, clock=clock)
        snap = col.collect()
        assert snap.cpu_usage == SENTINEL_VALUE
        assert len(col) == 1

    def test_subscribers_receive_snapshot(self, collector):
        received = []
        collector.subscribe(received.append)
        collector.subscribe(MagicMock(side_effect=ValueError("bad subscriber")))
        snap = collector.collect()
        assert received == [snap]


class TestHistory:
    def test_capacity_bounds_history(self, source, clock):
        col = MetricsCollector(source, capacity=5, clock=clock)
        for _ in range(8):
            col.collect()
            clock.advance(seconds=10)
        assert len(col) == 5
        assert col.capacity == 5

    def test_history_is_oldest_first_and_cut_off(self, collector, clock):
        for _ in range(30):
            collector.collect()
            clock.advance(seconds=10)
        now = clock()
        recent = collector.history(timedelta(minutes=1), now=now)
        assert [s.timestamp for s in recent] == sorted(s.timestamp for s in recent)
        assert all(s.timestamp >= now - timedelta(minutes=1) for s in recent)
        assert len(recent) == 6

    def test_history_accepts_seconds(self, collector, clock):
        collector.collect()
        clock.advance(seconds=100)
        assert collector.history(60) == []
        assert len(collector.history(120)) == 1

    def test_recent_errors_respects_window(self, collector, source, clock):
        source.failing.add("uptime_seconds")
        collector.collect()
        assert collector.recent_errors(timedelta(minutes=5))
        clock.advance(minutes=6)
        assert collector.recent_errors(timedelta(minutes=5)) == []


class TestSources:
    def test_static_source_resolves_aliases(self):
        src = StaticMetricSource({"cpuUsage": 12})
        assert src.read_metric("cpu_usage") == 12
        with pytest.raises(AdapterError):
            src.read_metric("memory_usage")

    def test_static_source_rejects_unknown_name(self):
        with pytest.raises(KeyError):
            StaticMetricSource({"diskUsage": 1})

    def test_request_stats_window(self):
        now = [1000.0]
        stats = RequestStats(window_seconds=60, clock=lambda: now[0])
        stats.record_request(100)
        stats.record_request(300, error=True)
        summary = stats.summary()
        assert summary["avg_ms"] == 200.0
        assert summary["per_min"] == 2.0
        assert summary["error_pct"] == 50.0
        now[0] += 61
        assert stats.summary() == {"avg_ms": 0.0, "per_min": 0.0, "error_pct": 0.0}

    def test_http_source_fetches_once_per_tick(self):
        client = MagicMock()
        client.get.return_value = {"cpuUsage": 55, "memoryUsage": 60, "unrelated": 1}
        src = HTTPMetricSource("http://svc/metrics", client=client, max_age=60)
        assert src.read_metric("cpu_usage") == 55
        assert src.read_metric("memoryUsage") == 60
        assert client.get.call_count == 1
        with pytest.raises(AdapterError):
            src.read_metric("error_rate_pct")

    def test_http_source_rejects_non_object_payload(self):
        client = MagicMock()
        client.get.return_value = ["not", "a", "dict"]
        src = HTTPMetricSource("http://svc/metrics", client=client)
        with pytest.raises(AdapterError):
            src.read_metric("cpu_usage")
