"""Enums for metric names, rule operators, severity, and health status."""
from enum import Enum


class MetricName(str, Enum):
    CPU_USAGE = "cpu_usage"
    MEMORY_USAGE = "memory_usage"
    RESPONSE_TIME = "response_time_ms"
    THROUGHPUT = "throughput_per_min"
    ACTIVE_CONNECTIONS = "active_connections"
    DB_CONNECTIONS = "db_connections"
    ERROR_RATE = "error_rate_pct"
    UPTIME = "uptime_seconds"

    @classmethod
    def resolve(cls, name):
        """Map a snake_case or camelCase metric name to a MetricName, or None."""
        if isinstance(name, cls):
            return name
        if name is None:
            return None
        key = str(name).strip()
        try:
            return cls(key)
        except ValueError:
            return METRIC_ALIASES.get(key)


# Names as they appear in rule files and the health API of the old service
METRIC_ALIASES = {
    "cpuUsage": MetricName.CPU_USAGE,
    "memoryUsage": MetricName.MEMORY_USAGE,
    "responseTime": MetricName.RESPONSE_TIME,
    "responseTimeMs": MetricName.RESPONSE_TIME,
    "throughput": MetricName.THROUGHPUT,
    "throughputPerMin": MetricName.THROUGHPUT,
    "activeConnections": MetricName.ACTIVE_CONNECTIONS,
    "databaseConnections": MetricName.DB_CONNECTIONS,
    "dbConnections": MetricName.DB_CONNECTIONS,
    "errorRate": MetricName.ERROR_RATE,
    "errorRatePct": MetricName.ERROR_RATE,
    "uptime": MetricName.UPTIME,
    "uptimeSeconds": MetricName.UPTIME,
}


class Operator(str, Enum):
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    EQUALS = "equals"


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class EscalationAction(str, Enum):
    EMAIL = "email"
    SMS = "sms"
    WEBHOOK = "webhook"
    AUTO_SCALE = "auto_scale"


class ScaleDirection(str, Enum):
    UP = "up"
    DOWN = "down"


class RuleState(str, Enum):
    IDLE = "idle"
    COOLDOWN = "cooldown"


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    WARNING = "warning"
    CRITICAL = "critical"
    DEGRADED = "degraded"
    UNKNOWN = "unknown"
