"""Shared test fixtures."""
import os
import sys
import threading
import pytest
from datetime import datetime, timedelta, timezone

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from models.errors import AdapterError
from models.metrics import MetricSnapshot
from monitor.collector import MetricsCollector
from monitor.sources import StaticMetricSource

T0 = datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Manually advanced UTC clock."""
    def __init__(self, start=T0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds=0, minutes=0):
        self.now = self.now + timedelta(seconds=seconds, minutes=minutes)
        return self.now


class FlakySource(StaticMetricSource):
    """Static source that raises for the metric names listed in `failing`."""
    def __init__(self, values=None, failing=()):
        super().__init__(values)
        self.failing = set(failing)

    def read_metric(self, name):
        if name in self.failing:
            raise AdapterError(f"{name} unavailable")
        return super().read_metric(name)


class RecordingChannel:
    """Notification channel that records every send; recipients in `failing` raise."""
    def __init__(self, failing=()):
        self.sent = []
        self.failing = set(failing)
        self._lock = threading.Lock()

    def send(self, recipient, alert):
        if recipient in self.failing:
            raise ConnectionError(f"cannot reach {recipient}")
        with self._lock:
            self.sent.append((recipient, alert))
        return True


class FakeScaler:
    """Scaling adapter keeping an in-memory count; `fail` makes directives raise."""
    def __init__(self, instances=2, fail=False):
        self.instances = instances
        self.fail = fail
        self.calls = []

    def get_instance_count(self):
        return self.instances

    def scale_up(self, rule):
        self.calls.append(("up", rule.id))
        if self.fail:
            raise RuntimeError("orchestrator unavailable")
        self.instances += 1
        return True

    def scale_down(self, rule):
        self.calls.append(("down", rule.id))
        if self.fail:
            raise RuntimeError("orchestrator unavailable")
        self.instances -= 1
        return True


BASE_VALUES = {
    "cpu_usage": 40.0,
    "memory_usage": 50.0,
    "response_time_ms": 250.0,
    "throughput_per_min": 300.0,
    "active_connections": 60.0,
    "db_connections": 8.0,
    "error_rate_pct": 0.5,
    "uptime_seconds": 3600.0,
}


def make_snapshot(timestamp=None, **overrides):
    values = dict(BASE_VALUES)
    values.update(overrides)
    return MetricSnapshot(timestamp=timestamp or T0, **values)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def source():
    return FlakySource(BASE_VALUES)


@pytest.fixture
def collector(source, clock):
    return MetricsCollector(source, interval_seconds=10, capacity=360, read_timeout=2, clock=clock)


@pytest.fixture
def channel():
    return RecordingChannel()


@pytest.fixture
def scaler():
    return FakeScaler(instances=2)
