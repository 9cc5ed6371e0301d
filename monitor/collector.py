"""MetricsCollector - samples the metric source into a bounded snapshot history."""
import logging
import math
import threading
from collections import deque
from datetime import datetime, timedelta, timezone

from models.enums import MetricName
from models.errors import AdapterError, SnapshotUnavailable
from models.metrics import MetricSnapshot
from utils.timeout import SOURCE_POOL, call_with_timeout

logger = logging.getLogger("opsmonitor.collector")

SENTINEL_VALUE = 0.0


def _utcnow():
    return datetime.now(timezone.utc)


class MetricsCollector:
    """Single writer of the snapshot history; any number of readers.

    One hour of 10-second samples (360) is kept by default. Readers either
    poll `latest_or_none()` on their own ticks or `subscribe()` for a push.
    """

    def __init__(self, source, interval_seconds=10, capacity=360, read_timeout=5.0, clock=None):
        self.source = source
        self.interval = interval_seconds
        self.read_timeout = read_timeout
        self._clock = clock or _utcnow
        self._history = deque(maxlen=capacity)
        self._lock = threading.Lock()
        self._last_known = {}
        self._subscribers = []
        self.field_failures = {}
        self.last_error = None
        self.last_error_at = None

    @property
    def capacity(self):
        return self._history.maxlen

    def subscribe(self, callback):
        """Register callback(snapshot), invoked after each collection tick."""
        self._subscribers.append(callback)

    def _read_field(self, metric, now):
        try:
            raw = call_with_timeout(self.source.read_metric, metric.value,
                                    timeout=self.read_timeout, name=f"read_metric({metric.value})",
                                    pool=SOURCE_POOL)
            value = float(raw)
            if math.isnan(value) or math.isinf(value) or value < 0:
                raise ValueError(f"invalid reading {raw!r}")
        except (AdapterError, TypeError, ValueError) as e:
            self.field_failures[metric.value] = self.field_failures.get(metric.value, 0) + 1
            self.last_error = f"{metric.value}: {e}"
            self.last_error_at = now
            fallback = self._last_known.get(metric, SENTINEL_VALUE)
            logger.warning(f"Metric {metric.value} unavailable ({e}); using {fallback}")
            return fallback
        self._last_known[metric] = value
        return value

    def collect(self):
        """Run one collection tick and return the new snapshot. Never raises."""
        now = self._clock()
        values = {}
        for metric in MetricName:
            try:
                values[metric.value] = self._read_field(metric, now)
            except Exception as e:
                logger.exception(f"Unexpected error reading {metric.value}")
                self.last_error = f"{metric.value}: {e}"
                self.last_error_at = now
                values[metric.value] = self._last_known.get(metric, SENTINEL_VALUE)

        snapshot = MetricSnapshot(timestamp=now, **values)
        with self._lock:
            self._history.append(snapshot)

        logger.debug(
            f"Collected: cpu {snapshot.cpu_usage:.1f}% | mem {snapshot.memory_usage:.1f}% | "
            f"rt {snapshot.response_time_ms:.0f}ms | err {snapshot.error_rate_pct:.2f}%"
        )
        self._publish(snapshot)
        return snapshot

    def _publish(self, snapshot):
        for cb in list(self._subscribers):
            try:
                cb(snapshot)
            except Exception as e:
                logger.warning(f"Snapshot subscriber error: {e}")

    def latest_snapshot(self):
        """Most recent snapshot; raises SnapshotUnavailable before the first tick."""
        snapshot = self.latest_or_none()
        if snapshot is None:
            raise SnapshotUnavailable("No metrics collected yet")
        return snapshot

    def latest_or_none(self):
        with self._lock:
            return self._history[-1] if self._history else None

    def history(self, duration, now=None):
        """Snapshots with timestamp >= now - duration, oldest first."""
        if not isinstance(duration, timedelta):
            duration = timedelta(seconds=duration)
        cutoff = (now or self._clock()) - duration
        with self._lock:
            return [s for s in self._history if s.timestamp >= cutoff]

    def __len__(self):
        with self._lock:
            return len(self._history)

    def recent_errors(self, window, now=None):
        """Last collection error if it happened within `window`, else an empty list."""
        now = now or self._clock()
        if self.last_error and self.last_error_at and now - self.last_error_at <= window:
            return [f"collector: {self.last_error}"]
        return []
