"""Tests for maintenance tasks and their scheduler."""
import pytest
from unittest.mock import MagicMock

from maintenance.scheduler import MaintenanceScheduler
from maintenance.tasks import (
    CacheSweepTask, ConnectionPoolTuningTask, IndexMaintenanceTask, MemoryCheckTask, SlowQueryReportTask,
)
from utils.cache import TTLCache


class TestCacheSweep:
    def test_purges_expired_entries(self):
        now = [100.0]
        cache = TTLCache(default_ttl=10, clock=lambda: now[0])
        cache.set("a", 1)
        cache.set("b", 2, ttl=60)
        now[0] += 30
        assert CacheSweepTask(cache)() == 1
        assert len(cache) == 1
        assert cache.get("b") == 2


class TestPoolTuning:
    def test_sizes_pool_to_peak_plus_headroom(self, collector, source, clock):
        for conns in (8, 16, 12):
            source.set("db_connections", conns)
            collector.collect()
            clock.advance(seconds=10)
        pool = MagicMock(size=5)
        assert ConnectionPoolTuningTask(pool, collector)() == 20
        pool.resize.assert_called_once_with(20)

    def test_target_clamped(self, collector):
        task = ConnectionPoolTuningTask(MagicMock(size=5), collector, min_size=2, max_size=50)
        assert task.target_size(0) == 2
        assert task.target_size(1000) == 50

    def test_no_resize_when_unchanged(self, collector, source):
        source.set("db_connections", 8)
        collector.collect()
        pool = MagicMock(size=10)
        ConnectionPoolTuningTask(pool, collector)()
        pool.resize.assert_not_called()

    def test_no_samples(self, collector):
        pool = MagicMock(size=7)
        assert ConnectionPoolTuningTask(pool, collector)() == 7


class TestSlowQueries:
    def test_reports_slowest_first(self):
        stats = MagicMock()
        stats.query_timings.return_value = [("SELECT 1", 10), ("SELECT big", 900), ("SELECT mid", 600)]
        slow = SlowQueryReportTask(stats, threshold_ms=500)()
        assert [q for q, _ in slow] == ["SELECT big", "SELECT mid"]


class TestOtherTasks:
    def test_memory_check_returns_rss(self):
        assert MemoryCheckTask(limit_mb=1e9)() > 0

    def test_index_maintenance_calls_analyze(self):
        db = MagicMock()
        IndexMaintenanceTask(db)()
        db.analyze.assert_called_once()


class TestMaintenanceScheduler:
    def test_register_and_run_now(self):
        sched = MaintenanceScheduler()
        task = MagicMock()
        sched.register("sweep", task, 300)
        assert "sweep" in sched
        sched.run_now("sweep")
        task.assert_called_once()
        assert sched.tasks()[0]["name"] == "maintenance:sweep"

    def test_duplicate_rejected(self):
        sched = MaintenanceScheduler()
        sched.register("sweep", MagicMock(), 300)
        with pytest.raises(ValueError):
            sched.register("sweep", MagicMock(), 300)

    def test_failing_task_is_contained(self):
        sched = MaintenanceScheduler()
        sched.register("broken", MagicMock(side_effect=RuntimeError("disk")), 300)
        sched.run_now("broken")
        assert sched.tasks()[0]["last_error"] == "disk"

    def test_task_registered_after_start_runs(self):
        import threading
        sched = MaintenanceScheduler()
        sched.start()
        ran = threading.Event()
        try:
            sched.register("late", ran.set, 60, run_immediately=True)
            assert ran.wait(3)
            assert sched.tasks()[0]["running"] is True
        finally:
            sched.stop(timeout=2)
        assert sched.tasks()[0]["running"] is False

    def test_task_registered_before_start_waits(self):
        sched = MaintenanceScheduler()
        sched.register("early", MagicMock(), 60)
        assert sched.tasks()[0]["running"] is False
