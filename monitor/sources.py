"""Metric source adapters: local host via psutil, remote JSON endpoint, static values."""
import logging
import threading
import time
from collections import deque

import psutil

from models.enums import MetricName
from models.errors import AdapterError
from utils.http_client import HTTPClient

logger = logging.getLogger("opsmonitor.sources")

# postgres, mysql, mongodb, redis, mssql
DEFAULT_DB_PORTS = (5432, 3306, 27017, 6379, 1433)


class RequestStats:
    """Sliding one-minute window of request durations and outcomes.

    The host application calls `record_request` from its request handlers;
    the host metric source derives latency, throughput and error rate from it.
    """

    def __init__(self, window_seconds=60, clock=time.monotonic):
        self.window = window_seconds
        self._clock = clock
        self._samples = deque()
        self._lock = threading.Lock()

    def record_request(self, duration_ms, error=False):
        with self._lock:
            self._samples.append((self._clock(), float(duration_ms), bool(error)))

    def _prune(self):
        cutoff = self._clock() - self.window
        while self._samples and self._samples[0][0] < cutoff:
            self._samples.popleft()

    def summary(self):
        with self._lock:
            self._prune()
            count = len(self._samples)
            if count == 0:
                return {"avg_ms": 0.0, "per_min": 0.0, "error_pct": 0.0}
            total_ms = sum(s[1] for s in self._samples)
            errors = sum(1 for s in self._samples if s[2])
            return {
                "avg_ms": total_ms / count,
                "per_min": count * 60.0 / self.window,
                "error_pct": errors * 100.0 / count,
            }


class HostMetricSource:
    """Reads resource metrics of the local host and this process.

    Database connections default to this process's open connections to
    well-known database ports; pass `db_connections` to count them another way.
    """

    def __init__(self, request_stats=None, db_connections=None, db_ports=DEFAULT_DB_PORTS):
        self.request_stats = request_stats or RequestStats()
        self.db_ports = set(db_ports)
        self._db_connections = db_connections or self._count_db_connections
        self._process = psutil.Process()
        self._started = self._process.create_time()
        psutil.cpu_percent(interval=None)  # prime the cpu counter

    def _connections(self):
        list_conns = getattr(self._process, "net_connections", None) or self._process.connections
        return list_conns(kind="inet")

    def _count_db_connections(self):
        return sum(1 for c in self._connections() if c.raddr and c.raddr.port in self.db_ports)

    def read_metric(self, name):
        metric = MetricName.resolve(name)
        if metric is MetricName.CPU_USAGE:
            return psutil.cpu_percent(interval=None)
        if metric is MetricName.MEMORY_USAGE:
            return psutil.virtual_memory().percent
        if metric is MetricName.ACTIVE_CONNECTIONS:
            return len(self._connections())
        if metric is MetricName.DB_CONNECTIONS:
            return self._db_connections()
        if metric is MetricName.UPTIME:
            return time.time() - self._started

        stats = self.request_stats.summary()
        if metric is MetricName.RESPONSE_TIME:
            return stats["avg_ms"]
        if metric is MetricName.THROUGHPUT:
            return stats["per_min"]
        if metric is MetricName.ERROR_RATE:
            return stats["error_pct"]
        raise AdapterError(f"Unknown metric: {name}", adapter="host")


class HTTPMetricSource:
    """Reads metric values from a JSON document served by the monitored service.

    The document is fetched once and reused for `max_age` seconds so one
    collection tick costs a single request rather than one per field.
    """

    def __init__(self, url, timeout=5, max_age=2.0, client=None):
        self.url = url
        self.client = client or HTTPClient(url, timeout=timeout, max_retries=0)
        self.max_age = max_age
        self._doc = None
        self._fetched_at = 0.0
        self._lock = threading.Lock()

    def _document(self):
        with self._lock:
            if self._doc is None or time.monotonic() - self._fetched_at > self.max_age:
                doc = self.client.get()
                if not isinstance(doc, dict):
                    raise AdapterError(f"Unexpected payload from {self.url}", adapter="http")
                self._doc = {}
                for key, val in doc.items():
                    metric = MetricName.resolve(key)
                    if metric is not None:
                        self._doc[metric] = val
                self._fetched_at = time.monotonic()
            return self._doc

    def read_metric(self, name):
        metric = MetricName.resolve(name)
        doc = self._document()
        if metric not in doc:
            raise AdapterError(f"{name} missing from {self.url}", adapter="http")
        return doc[metric]


class StaticMetricSource:
    """Returns fixed values; values may be updated between ticks."""

    def __init__(self, values=None):
        self.values = {}
        for key, val in (values or {}).items():
            self.set(key, val)

    def set(self, name, value):
        metric = MetricName.resolve(name)
        if metric is None:
            raise KeyError(name)
        self.values[metric] = value

    def read_metric(self, name):
        metric = MetricName.resolve(name)
        if metric not in self.values:
            raise AdapterError(f"No static value for {name}", adapter="static")
        return self.values[metric]
