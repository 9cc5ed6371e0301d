"""Dataclasses for alert rules, escalation policies, and dispatch records."""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from models.enums import MetricName, Operator, Severity, EscalationAction
from models.errors import ConfigurationError


@dataclass
class EscalationLevel:
    delay_minutes: float = 5.0
    recipients: list = field(default_factory=list)
    action: EscalationAction = EscalationAction.EMAIL


@dataclass
class EscalationPolicy:
    levels: list = field(default_factory=list)
    max_retries: int = 3


@dataclass
class AlertRule:
    metric: str = ""
    threshold: float = 0.0
    operator: Operator = Operator.GREATER_THAN
    severity: Severity = Severity.MEDIUM
    cooldown_minutes: float = 15.0
    recipients: list = field(default_factory=list)
    escalation: Optional[EscalationPolicy] = None
    name: str = ""

    @property
    def key(self):
        """Cooldown identity: the (metric, threshold) pair."""
        metric = MetricName.resolve(self.metric)
        return (metric.value if metric else self.metric, float(self.threshold))

    @property
    def label(self):
        return self.name or f"{self.metric} {self.operator.value} {self.threshold:g}"

    def validate(self):
        if MetricName.resolve(self.metric) is None:
            raise ConfigurationError(f"Alert rule references unknown metric: {self.metric!r}")
        if not isinstance(self.operator, Operator):
            raise ConfigurationError(f"Invalid operator for {self.metric}: {self.operator!r}")
        if not isinstance(self.severity, Severity):
            raise ConfigurationError(f"Invalid severity for {self.metric}: {self.severity!r}")
        if self.cooldown_minutes < 0:
            raise ConfigurationError(f"Negative cooldown for {self.metric}: {self.cooldown_minutes}")
        if self.escalation is not None:
            if not self.escalation.levels:
                raise ConfigurationError(f"Escalation for {self.metric} has no levels")
            if self.escalation.max_retries < 1:
                raise ConfigurationError(f"Escalation maxRetries must be >= 1 for {self.metric}")
            for level in self.escalation.levels:
                if level.delay_minutes < 0:
                    raise ConfigurationError(f"Negative escalation delay for {self.metric}")


@dataclass(frozen=True)
class AlertRecord:
    rule_key: tuple = ()
    rule_name: str = ""
    metric: str = ""
    metric_value: float = 0.0
    threshold: float = 0.0
    operator: str = ""
    severity: str = Severity.MEDIUM.value
    recipients: tuple = ()
    triggered_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    escalation_level: Optional[int] = None
    action: Optional[str] = None

    @property
    def message(self):
        prefix = "ESCALATION" if self.escalation_level is not None else "ALERT"
        return (f"{prefix} [{self.severity}] {self.rule_name}: "
                f"{self.metric} = {self.metric_value:.2f} ({self.operator} {self.threshold:g})")

    def to_dict(self):
        return {
            "rule": self.rule_name,
            "metric": self.metric,
            "value": self.metric_value,
            "threshold": self.threshold,
            "operator": self.operator,
            "severity": self.severity,
            "recipients": list(self.recipients),
            "triggered_at": self.triggered_at.isoformat(),
            "escalation_level": self.escalation_level,
            "action": self.action,
        }
