"""Tests for MonitoringSystem wiring and the system health view."""
import pytest
from datetime import timedelta

from conftest import BASE_VALUES, FakeScaler, FlakySource, RecordingChannel, make_snapshot
from config import load_config
from models.alerts import AlertRule
from models.enums import HealthStatus, Severity
from models.scaling import ScalingRule
from monitor.monitor import MonitoringSystem


@pytest.fixture
def config():
    return load_config()


@pytest.fixture
def system(config, clock):
    return MonitoringSystem(config, FlakySource(BASE_VALUES), RecordingChannel(), FakeScaler(3), clock=clock)


class TestStatus:
    def test_unknown_before_first_sample(self, system):
        report = system.get_system_health()
        assert report.status is HealthStatus.UNKNOWN
        assert report.snapshot is None
        assert report.to_dict()["metrics"] is None

    def test_healthy(self, system):
        system.collector.collect()
        report = system.get_system_health()
        assert report.status is HealthStatus.HEALTHY
        assert report.instances == 3
        assert report.to_dict()["metrics"]["cpu_usage"] == 40.0

    @pytest.mark.parametrize("overrides,expected", [
        ({"cpu_usage": 75}, HealthStatus.WARNING),
        ({"memory_usage": 71}, HealthStatus.WARNING),
        ({"error_rate_pct": 6}, HealthStatus.WARNING),
        ({"cpu_usage": 91}, HealthStatus.CRITICAL),
        ({"memory_usage": 95, "cpu_usage": 75}, HealthStatus.CRITICAL),
        ({"error_rate_pct": 12}, HealthStatus.CRITICAL),
        ({"cpu_usage": 70, "memory_usage": 70, "error_rate_pct": 5}, HealthStatus.HEALTHY),
    ])
    def test_thresholds(self, system, overrides, expected):
        assert system._status_for(make_snapshot(**overrides)) is expected

    def test_degraded_after_adapter_error(self, system, clock):
        system.collector.source.failing.add("db_connections")
        system.collector.collect()
        report = system.get_system_health()
        assert report.status is HealthStatus.DEGRADED
        assert any("db_connections" in e for e in report.adapter_errors)

        system.collector.source.failing.clear()
        clock.advance(minutes=6)
        system.collector.collect()
        assert system.get_system_health().status is HealthStatus.HEALTHY

    def test_critical_wins_over_degraded(self, system):
        system.collector.source.failing.add("uptime_seconds")
        system.collector.source.set("cpu_usage", 97)
        system.collector.collect()
        assert system.get_system_health().status is HealthStatus.CRITICAL

    def test_instance_count_failure_reported(self, system):
        system.autoscaler.scaler.get_instance_count = lambda: 1 / 0
        system.collector.collect()
        report = system.get_system_health()
        assert report.instances is None
        assert report.status is HealthStatus.DEGRADED


class TestAlertViews:
    def test_active_and_suppressed_lists(self, system, clock):
        system.add_alert(AlertRule(metric="cpuUsage", threshold=80, severity=Severity.HIGH,
                                   cooldown_minutes=15, recipients=["admin@example.com"]))
        system.add_alert(AlertRule(metric="errorRate", threshold=5, severity=Severity.CRITICAL,
                                   cooldown_minutes=5, recipients=["ops@example.com"]))
        system.collector.source.set("cpu_usage", 88)
        system.collector.collect()
        system.evaluator.evaluate()

        report = system.get_system_health(now=clock.advance(minutes=1)).to_dict()
        assert [a["metric"] for a in report["active_alerts"]] == ["error_rate_pct"]
        assert report["suppressed_alerts"][0]["metric"] == "cpu_usage"
        assert report["suppressed_alerts"][0]["cooldown_remaining_seconds"] == 840.0


class TestLifecycle:
    def test_default_maintenance_registered(self, system):
        assert "cache_sweep" in system.maintenance
        assert "memory_check" in system.maintenance

    def test_attach_database(self, system):
        system.attach_database(pool=object(), query_stats=object(), db=object())
        for name in ("pool_tuning", "slow_queries", "index_maintenance"):
            assert name in system.maintenance

    def test_load_rules(self, system):
        from alerts.rules_manager import RulesManager
        system.load_rules(RulesManager())
        assert len(system.evaluator.rules) == 4
        assert len(system.autoscaler.rules) == 3

    def test_add_scaling_rule(self, system):
        system.add_scaling_rule(ScalingRule(id="r1", metric="memoryUsage",
                                            scale_up_threshold=80, scale_down_threshold=20))
        assert [r.id for r in system.autoscaler.rules] == ["r1"]

    def test_start_and_stop(self, system):
        system.start()
        try:
            assert system.is_running
            assert {loop["name"] for loop in system.loops()} >= {"collector", "alerts", "escalations", "autoscaler"}
        finally:
            system.stop(timeout=2)
        assert not system.is_running
        assert system.stop_event.is_set()

    def test_rejects_adapter_missing_contract(self, config):
        from models.errors import ConfigurationError

        class NoCount:
            def scale_up(self, rule):
                return True

            def scale_down(self, rule):
                return True

        with pytest.raises(ConfigurationError, match="ScalingAdapter"):
            MonitoringSystem(config, FlakySource(BASE_VALUES), RecordingChannel(), NoCount())

    def test_attach_database_after_start_runs_tasks(self, system):
        from unittest.mock import MagicMock
        system.start()
        try:
            system.attach_database(db=MagicMock())
            status = {t["name"]: t for t in system.maintenance.tasks()}
            assert status["maintenance:index_maintenance"]["running"] is True
        finally:
            system.stop(timeout=2)
