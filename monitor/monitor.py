"""MonitoringSystem - owns the collector, evaluator, autoscaler and maintenance loops."""
import logging
import threading
import time
from datetime import datetime, timedelta, timezone

from __version__ import __version__
from alerts.escalation import EscalationScheduler
from alerts.evaluator import AlertEvaluator
from maintenance.scheduler import MaintenanceScheduler
from maintenance.tasks import (
    CacheSweepTask, ConnectionPoolTuningTask, IndexMaintenanceTask, MemoryCheckTask, SlowQueryReportTask,
)
from models.enums import HealthStatus
from models.errors import AdapterError, ConfigurationError
from models.metrics import SystemHealth
from monitor.adapters import MetricSource, NotificationChannel, ScalingAdapter
from monitor.collector import MetricsCollector
from monitor.scheduler import LoopRunner
from monitor.sources import RequestStats
from scaling.engine import AutoscalingEngine
from utils.cache import TTLCache

logger = logging.getLogger("opsmonitor.monitor")

# (metric attribute, critical above, warning above)
HEALTH_THRESHOLDS = [
    ("cpu_usage", 90, 70),
    ("memory_usage", 90, 70),
    ("error_rate_pct", 10, 5),
]


class MonitoringSystem:
    """One instance per process, constructed at startup and passed to whoever needs it.

    Every loop shares a single stop event; `stop()` sets it and joins them.
    """

    def __init__(self, config, source, channel, scaler, clock=None, request_stats=None):
        for adapter, contract in ((source, MetricSource), (channel, NotificationChannel), (scaler, ScalingAdapter)):
            if not isinstance(adapter, contract):
                raise ConfigurationError(f"{type(adapter).__name__} does not implement {contract.__name__}")

        self.config = config
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self.stop_event = threading.Event()
        self.started_at = time.time()
        self.cache = TTLCache()
        # Fed by the web layer; the host metric source reads it
        self.request_stats = request_stats or getattr(source, "request_stats", None) or RequestStats()

        col_cfg = config.get("collector", {})
        alert_cfg = config.get("alerts", {})
        scale_cfg = config.get("scaling", {})

        self.collector = MetricsCollector(
            source,
            interval_seconds=col_cfg.get("interval_seconds", 10),
            capacity=col_cfg.get("history_capacity", 360),
            read_timeout=col_cfg.get("read_timeout_seconds", 5),
            clock=self._clock,
        )
        self.escalations = EscalationScheduler(
            channel, send_timeout=alert_cfg.get("send_timeout_seconds", 10), clock=self._clock,
        )
        self.evaluator = AlertEvaluator(
            self.collector, channel,
            interval_seconds=alert_cfg.get("interval_seconds", 30),
            send_timeout=alert_cfg.get("send_timeout_seconds", 10),
            clock=self._clock,
            escalations=self.escalations,
        )
        self.autoscaler = AutoscalingEngine(
            self.collector, scaler,
            interval_seconds=scale_cfg.get("interval_seconds", 60),
            call_timeout=scale_cfg.get("call_timeout_seconds", 30),
            clock=self._clock,
        )
        self.maintenance = MaintenanceScheduler(self.stop_event)
        self._runners = [
            LoopRunner("collector", self.collector.interval, self.collector.collect, self.stop_event),
            LoopRunner("alerts", self.evaluator.interval, self.evaluator.evaluate, self.stop_event),
            LoopRunner("escalations", alert_cfg.get("escalation_check_seconds", 5),
                       self.escalations.run_due, self.stop_event, run_immediately=False),
            LoopRunner("autoscaler", self.autoscaler.interval, self.autoscaler.evaluate, self.stop_event),
        ]
        self._register_default_maintenance()

    # ── Rules ───────────────────────────────────────────

    def add_alert(self, rule):
        self.evaluator.add_rule(rule)

    def add_scaling_rule(self, rule):
        self.autoscaler.add_rule(rule)

    def load_rules(self, rules_manager):
        for rule in rules_manager.get_alert_rules():
            self.add_alert(rule)
        for rule in rules_manager.get_scaling_rules():
            self.add_scaling_rule(rule)

    # ── Maintenance ─────────────────────────────────────

    def _task_cfg(self, name):
        return self.config.get("maintenance", {}).get(name, {})

    def _register_default_maintenance(self):
        sweep = self._task_cfg("cache_sweep")
        if sweep.get("enabled", True):
            self.maintenance.register("cache_sweep", CacheSweepTask(self.cache),
                                      sweep.get("interval_seconds", 300))
        mem = self._task_cfg("memory_check")
        if mem.get("enabled", True):
            self.maintenance.register("memory_check", MemoryCheckTask(mem.get("limit_mb", 500)),
                                      mem.get("interval_seconds", 600))

    def attach_database(self, pool=None, query_stats=None, db=None):
        """Register the database maintenance tasks for whichever collaborators the host has."""
        if pool is not None:
            cfg = self._task_cfg("pool_tuning")
            self.maintenance.register("pool_tuning", ConnectionPoolTuningTask(pool, self.collector),
                                      cfg.get("interval_seconds", 900))
        if query_stats is not None:
            cfg = self._task_cfg("slow_queries")
            task = SlowQueryReportTask(query_stats, threshold_ms=cfg.get("threshold_ms", 500))
            self.maintenance.register("slow_queries", task, cfg.get("interval_seconds", 3600))
        if db is not None:
            cfg = self._task_cfg("index_maintenance")
            self.maintenance.register("index_maintenance", IndexMaintenanceTask(db),
                                      cfg.get("interval_seconds", 86400))

    # ── Lifecycle ───────────────────────────────────────

    @property
    def is_running(self):
        return any(r.is_running for r in self._runners)

    def start(self):
        if self.is_running:
            return
        self.stop_event.clear()
        for runner in self._runners:
            runner.start()
        self.maintenance.start()
        logger.info("Production monitoring system started")

    def stop(self, timeout=5):
        self.stop_event.set()
        for runner in self._runners:
            runner.stop(timeout=timeout)
        self.maintenance.stop(timeout=timeout)
        self.escalations.clear()
        logger.info("Production monitoring system stopped")

    def loops(self):
        return [r.status() for r in self._runners] + self.maintenance.tasks()

    # ── Health ──────────────────────────────────────────

    def _status_for(self, snapshot):
        status = HealthStatus.HEALTHY
        for attr, critical, warning in HEALTH_THRESHOLDS:
            value = getattr(snapshot, attr)
            if value > critical:
                return HealthStatus.CRITICAL
            if value > warning:
                status = HealthStatus.WARNING
        return status

    def get_system_health(self, now=None):
        """Read-only view of the latest snapshot, alert state and instance count."""
        now = now or self._clock()
        snapshot = self.collector.latest_or_none()
        window = timedelta(seconds=self.config.get("health", {}).get("error_window_seconds", 300))

        errors = (self.collector.recent_errors(window, now)
                  + self.evaluator.recent_errors(window, now)
                  + self.autoscaler.recent_errors(window, now))

        instances = None
        try:
            instances = self.autoscaler.instance_count()
        except AdapterError as e:
            errors.append(f"instances: {e}")

        if snapshot is None:
            status = HealthStatus.UNKNOWN
        else:
            status = self._status_for(snapshot)
            if status is HealthStatus.HEALTHY and errors:
                status = HealthStatus.DEGRADED

        active = [self._rule_summary(r) for r in self.evaluator.active_rules(now)]
        suppressed = []
        for rule, remaining in self.evaluator.suppressed_rules(now):
            entry = self._rule_summary(rule)
            entry["cooldown_remaining_seconds"] = round(remaining, 1)
            suppressed.append(entry)

        return SystemHealth(
            status=status,
            timestamp=now,
            snapshot=snapshot,
            active_alerts=active,
            suppressed_alerts=suppressed,
            instances=instances,
            adapter_errors=errors,
            uptime_seconds=time.time() - self.started_at,
            version=__version__,
        )

    @staticmethod
    def _rule_summary(rule):
        return {
            "name": rule.label,
            "metric": rule.key[0],
            "operator": rule.operator.value,
            "threshold": rule.threshold,
            "severity": rule.severity.value,
        }
