"""Tests for configuration loading and validation."""
import pytest

from config import load_config, _deep_merge
from models.errors import ConfigurationError


class TestLoadConfig:
    def test_defaults(self):
        config = load_config()
        assert config["collector"]["interval_seconds"] == 10
        assert config["collector"]["history_capacity"] == 360
        assert config["alerts"]["interval_seconds"] == 30
        assert config["scaling"]["interval_seconds"] == 60
        assert config["health"]["error_window_seconds"] == 300

    def test_override_file_merges(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("collector:\n  interval_seconds: 5\nscaling:\n  adapter: memory\n")
        config = load_config(str(path))
        assert config["collector"]["interval_seconds"] == 5
        assert config["collector"]["history_capacity"] == 360

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError):
            load_config(str(tmp_path / "nope.yaml"))

    def test_bad_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("collector: [unclosed\n")
        with pytest.raises(ConfigurationError):
            load_config(str(path))

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("OPS_MONITOR_ALERT_INTERVAL", "15")
        monkeypatch.setenv("OPS_MONITOR_LOG_LEVEL", "DEBUG")
        config = load_config()
        assert config["alerts"]["interval_seconds"] == 15
        assert config["logging"]["level"] == "DEBUG"


class TestValidation:
    @pytest.mark.parametrize("body", [
        "collector:\n  interval_seconds: 0\n",
        "alerts:\n  send_timeout_seconds: -1\n",
        "collector:\n  history_capacity: 0\n",
        "metrics:\n  source: carrier-pigeon\n",
        "metrics:\n  source: http\n",
        "scaling:\n  adapter: webhook\n",
        "maintenance:\n  cache_sweep:\n    interval_seconds: 0\n",
        "notifications: null\n",
    ])
    def test_invalid(self, tmp_path, body):
        path = tmp_path / "config.yaml"
        path.write_text(body)
        with pytest.raises(ConfigurationError):
            load_config(str(path))

    def test_http_source_with_url(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("metrics:\n  source: http\n  url: http://svc/metrics\n")
        assert load_config(str(path))["metrics"]["url"] == "http://svc/metrics"


def test_deep_merge_does_not_mutate_base():
    base = {"a": {"b": 1, "c": 2}}
    merged = _deep_merge(base, {"a": {"b": 9}})
    assert merged == {"a": {"b": 9, "c": 2}}
    assert base["a"]["b"] == 1
