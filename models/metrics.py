"""Dataclasses for metric snapshots and the derived system health view."""
from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from typing import Optional

from models.enums import MetricName, HealthStatus


@dataclass(frozen=True)
class MetricSnapshot:
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    cpu_usage: float = 0.0            # percent
    memory_usage: float = 0.0         # percent
    response_time_ms: float = 0.0
    throughput_per_min: float = 0.0
    active_connections: float = 0.0
    db_connections: float = 0.0
    error_rate_pct: float = 0.0
    uptime_seconds: float = 0.0

    def get(self, metric_name) -> Optional[float]:
        """Value of a metric by snake_case or camelCase name; None if unknown."""
        metric = MetricName.resolve(metric_name)
        if metric is None:
            return None
        return getattr(self, metric.value)

    def to_dict(self):
        d = {"timestamp": self.timestamp.isoformat()}
        for f in fields(self):
            if f.name != "timestamp":
                d[f.name] = getattr(self, f.name)
        return d

    @classmethod
    def from_dict(cls, d):
        """Build a snapshot from a flat dict (API payload or test fixture)."""
        ts = d.get("timestamp")
        if isinstance(ts, str):
            ts = datetime.fromisoformat(ts)
        elif ts is None:
            ts = datetime.now(timezone.utc)
        values = {}
        for key, val in d.items():
            metric = MetricName.resolve(key)
            if metric is not None:
                values[metric.value] = float(val)
        return cls(timestamp=ts, **values)


@dataclass(frozen=True)
class SystemHealth:
    status: HealthStatus = HealthStatus.UNKNOWN
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    snapshot: Optional[MetricSnapshot] = None
    active_alerts: list = field(default_factory=list)
    suppressed_alerts: list = field(default_factory=list)
    instances: Optional[int] = None
    adapter_errors: list = field(default_factory=list)
    uptime_seconds: float = 0.0
    version: str = ""

    def to_dict(self):
        return {
            "status": self.status.value,
            "timestamp": self.timestamp.isoformat(),
            "metrics": self.snapshot.to_dict() if self.snapshot else None,
            "active_alerts": list(self.active_alerts),
            "suppressed_alerts": list(self.suppressed_alerts),
            "instances": self.instances,
            "adapter_errors": list(self.adapter_errors),
            "uptime_seconds": round(self.uptime_seconds, 1),
            "version": self.version,
        }
