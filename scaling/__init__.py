"""Autoscaling module."""
from scaling.engine import AutoscalingEngine
from scaling.adapters import InMemoryScaler, WebhookScaler
