"""Dataclasses for autoscaling rules and the decisions taken on them."""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from models.enums import MetricName, ScaleDirection
from models.errors import ConfigurationError


@dataclass
class ScalingRule:
    id: str = ""
    name: str = ""
    metric: str = ""
    scale_up_threshold: float = 70.0
    scale_down_threshold: float = 30.0
    min_instances: int = 1
    max_instances: int = 10
    cooldown_minutes: float = 5.0
    enabled: bool = True

    def validate(self):
        """Reject rules that could oscillate or escape their bounds."""
        if not self.id:
            raise ConfigurationError("Scaling rule requires an id")
        if MetricName.resolve(self.metric) is None:
            raise ConfigurationError(f"Scaling rule {self.id} references unknown metric: {self.metric!r}")
        if self.scale_down_threshold >= self.scale_up_threshold:
            raise ConfigurationError(
                f"Scaling rule {self.id}: scale_down_threshold ({self.scale_down_threshold}) "
                f"must be below scale_up_threshold ({self.scale_up_threshold})"
            )
        if self.min_instances < 0:
            raise ConfigurationError(f"Scaling rule {self.id}: min_instances must be >= 0")
        if self.min_instances > self.max_instances:
            raise ConfigurationError(
                f"Scaling rule {self.id}: min_instances ({self.min_instances}) "
                f"exceeds max_instances ({self.max_instances})"
            )
        if self.cooldown_minutes < 0:
            raise ConfigurationError(f"Scaling rule {self.id}: negative cooldown")


@dataclass(frozen=True)
class ScalingEvent:
    rule_id: str = ""
    direction: ScaleDirection = ScaleDirection.UP
    metric_value: float = 0.0
    instances_before: int = 0
    target_instances: int = 0
    success: bool = False
    error: Optional[str] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self):
        return {
            "rule_id": self.rule_id,
            "direction": self.direction.value,
            "metric_value": self.metric_value,
            "instances_before": self.instances_before,
            "target_instances": self.target_instances,
            "success": self.success,
            "error": self.error,
            "timestamp": self.timestamp.isoformat(),
        }
