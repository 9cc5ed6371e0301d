"""Scaling adapters: a local dry-run counter and an HTTP orchestrator hook."""
import logging
import threading

from models.errors import AdapterError
from utils.http_client import HTTPClient

logger = logging.getLogger("opsmonitor.scaling.adapters")


class InMemoryScaler:
    """Tracks an instance count locally; nothing is provisioned.

    Useful for dry runs and for hosts that only want the decisions logged.
    """

    def __init__(self, initial_instances=1):
        self._count = int(initial_instances)
        self._lock = threading.Lock()
        self.calls = []

    def get_instance_count(self):
        with self._lock:
            return self._count

    def scale_up(self, rule):
        with self._lock:
            self._count += 1
            self.calls.append(("up", rule.id))
            logger.info(f"[dry-run] scale up via {rule.id}: now {self._count} instances")
        return True

    def scale_down(self, rule):
        with self._lock:
            if self._count <= 0:
                return False
            self._count -= 1
            self.calls.append(("down", rule.id))
            logger.info(f"[dry-run] scale down via {rule.id}: now {self._count} instances")
        return True


class WebhookScaler:
    """Delegates scaling to an orchestrator exposing a small HTTP API.

    POST {base_url}/scale with {"rule_id", "direction", "step"} and
    GET {base_url}/instances returning {"count": n}.
    """

    def __init__(self, base_url, timeout=10, client=None):
        self.client = client or HTTPClient(base_url, timeout=timeout, max_retries=1)

    def get_instance_count(self):
        data = self.client.get("instances")
        try:
            return int(data["count"])
        except (TypeError, KeyError, ValueError):
            raise AdapterError(f"Malformed instance count payload: {data!r}", adapter="webhook-scaler")

    def _scale(self, rule, direction):
        self.client.post("scale", {"rule_id": rule.id, "direction": direction, "step": 1})
        return True

    def scale_up(self, rule):
        return self._scale(rule, "up")

    def scale_down(self, rule):
        return self._scale(rule, "down")
