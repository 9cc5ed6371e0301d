"""Maintenance tasks. Each is a callable run by the MaintenanceScheduler.

The collaborators (cache, connection pool, query statistics, database) are
supplied by the host; the tasks only decide what to do with them.
"""
import logging
import math
from datetime import timedelta

import psutil

logger = logging.getLogger("opsmonitor.maintenance.tasks")


class CacheSweepTask:
    """Drops expired entries from a TTLCache."""

    def __init__(self, cache):
        self.cache = cache

    def __call__(self):
        purged = self.cache.purge_expired()
        stats = self.cache.stats()
        logger.info(f"Cache sweep: {purged} expired, {stats['size']} live, hit rate {stats['hit_rate']:.0%}")
        return purged


class ConnectionPoolTuningTask:
    """Sizes a connection pool to the recent peak of db_connections plus headroom.

    Pool contract: a `size` attribute and `resize(n)`.
    """

    def __init__(self, pool, collector, window_minutes=15, headroom=1.25, min_size=2, max_size=50):
        self.pool = pool
        self.collector = collector
        self.window = timedelta(minutes=window_minutes)
        self.headroom = headroom
        self.min_size = min_size
        self.max_size = max_size

    def target_size(self, peak):
        return max(self.min_size, min(self.max_size, math.ceil(peak * self.headroom)))

    def __call__(self):
        samples = self.collector.history(self.window)
        if not samples:
            logger.debug("Pool tuning: no samples yet")
            return self.pool.size
        peak = max(s.db_connections for s in samples)
        target = self.target_size(peak)
        if target != self.pool.size:
            logger.info(f"Resizing connection pool {self.pool.size} -> {target} (peak {peak:.0f})")
            self.pool.resize(target)
        return target


class SlowQueryReportTask:
    """Logs queries whose mean time exceeds the threshold.

    Query-stats contract: `query_timings()` yielding (query_text, mean_ms).
    """

    def __init__(self, query_stats, threshold_ms=500.0, limit=10):
        self.query_stats = query_stats
        self.threshold_ms = threshold_ms
        self.limit = limit

    def __call__(self):
        slow = [(q, ms) for q, ms in self.query_stats.query_timings() if ms > self.threshold_ms]
        slow.sort(key=lambda pair: pair[1], reverse=True)
        slow = slow[:self.limit]
        for query, ms in slow:
            logger.warning(f"Slow query ({ms:.0f}ms): {query[:80]}")
        if not slow:
            logger.info("Slow query report: none above threshold")
        return slow


class MemoryCheckTask:
    """Warns when this process's resident memory exceeds a limit."""

    def __init__(self, limit_mb=500.0):
        self.limit_mb = limit_mb
        self._process = psutil.Process()

    def __call__(self):
        rss_mb = self._process.memory_info().rss / 1024 / 1024
        if rss_mb > self.limit_mb:
            logger.warning(f"High memory usage: {rss_mb:.1f}MB (limit {self.limit_mb:.0f}MB)")
        else:
            logger.debug(f"Memory usage: {rss_mb:.1f}MB")
        return rss_mb


class IndexMaintenanceTask:
    """Refreshes table statistics / indexes through the database's `analyze()`."""

    def __init__(self, db):
        self.db = db

    def __call__(self):
        logger.info("Updating database table statistics")
        return self.db.analyze()
