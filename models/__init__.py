"""Data models."""
from models.enums import MetricName, Operator, Severity, EscalationAction, ScaleDirection, RuleState, HealthStatus
from models.errors import MonitorError, ConfigurationError, AdapterError, AdapterTimeout, SnapshotUnavailable
from models.metrics import MetricSnapshot, SystemHealth
from models.alerts import AlertRule, EscalationLevel, EscalationPolicy, AlertRecord
from models.scaling import ScalingRule, ScalingEvent
from models.cooldown import CooldownTracker
