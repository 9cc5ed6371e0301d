"""Contracts for the external collaborators the monitoring core depends on."""
from typing import Protocol, runtime_checkable


@runtime_checkable
class MetricSource(Protocol):
    def read_metric(self, name: str) -> float: ...


@runtime_checkable
class NotificationChannel(Protocol):
    def send(self, recipient: str, alert) -> bool: ...


@runtime_checkable
class ScalingAdapter(Protocol):
    def scale_up(self, rule) -> bool: ...

    def scale_down(self, rule) -> bool: ...

    def get_instance_count(self) -> int: ...
