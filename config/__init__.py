"""Configuration management."""
import os
import yaml
from pathlib import Path

from models.errors import ConfigurationError

_config = None
_DEFAULT_CONFIG = Path(__file__).parent / "default_config.yaml"

# Environment overrides: variable -> path into the config tree
ENV_MAP = {
    "OPS_MONITOR_COLLECT_INTERVAL": ("collector", "interval_seconds"),
    "OPS_MONITOR_ALERT_INTERVAL": ("alerts", "interval_seconds"),
    "OPS_MONITOR_SCALING_INTERVAL": ("scaling", "interval_seconds"),
    "OPS_MONITOR_RULES_PATH": ("alerts", "rules_path"),
    "OPS_MONITOR_METRICS_SOURCE": ("metrics", "source"),
    "OPS_MONITOR_METRICS_URL": ("metrics", "url"),
    "OPS_MONITOR_SCALER": ("scaling", "adapter"),
    "OPS_MONITOR_SCALER_URL": ("scaling", "webhook_url"),
    "OPS_MONITOR_LOG_LEVEL": ("logging", "level"),
    "OPS_MONITOR_WEB_PORT": ("web", "port"),
}


def load_config(path=None):
    """Load config from YAML, merging defaults with optional overrides."""
    global _config

    with open(_DEFAULT_CONFIG) as f:
        config = yaml.safe_load(f)

    if path:
        if not Path(path).exists():
            raise ConfigurationError(f"Config file not found: {path}")
        with open(path) as f:
            try:
                overrides = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigurationError(f"Cannot parse {path}: {e}")
        config = _deep_merge(config, overrides)

    for env_key, config_path in ENV_MAP.items():
        val = os.environ.get(env_key)
        if val:
            d = config
            for k in config_path[:-1]:
                d = d.setdefault(k, {})
            try:
                d[config_path[-1]] = int(val)
            except ValueError:
                d[config_path[-1]] = val

    _validate_config(config)
    _config = config
    return config


def get_config():
    """Return cached config, loading defaults if needed."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def _deep_merge(base, override):
    """Recursively merge override into base dict."""
    result = base.copy()
    for key, val in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(val, dict):
            result[key] = _deep_merge(result[key], val)
        else:
            result[key] = val
    return result


def _positive(config, section, key):
    try:
        value = float(config[section][key])
    except (KeyError, TypeError, ValueError):
        raise ConfigurationError(f"{section}.{key} must be a number")
    if value <= 0:
        raise ConfigurationError(f"{section}.{key} must be > 0 (got {value:g})")


def _validate_config(config):
    required_sections = ["collector", "metrics", "alerts", "scaling", "maintenance", "notifications"]
    for section in required_sections:
        if not isinstance(config.get(section), dict):
            raise ConfigurationError(f"Missing required config section: {section}")

    for section, key in [
        ("collector", "interval_seconds"),
        ("collector", "read_timeout_seconds"),
        ("alerts", "interval_seconds"),
        ("alerts", "escalation_check_seconds"),
        ("alerts", "send_timeout_seconds"),
        ("scaling", "interval_seconds"),
        ("scaling", "call_timeout_seconds"),
    ]:
        _positive(config, section, key)

    if int(config["collector"].get("history_capacity", 0)) < 1:
        raise ConfigurationError("collector.history_capacity must be >= 1")

    for name, task in config["maintenance"].items():
        if isinstance(task, dict) and "interval_seconds" in task:
            _positive(config["maintenance"], name, "interval_seconds")

    if config["metrics"].get("source") not in ("host", "http", "static"):
        raise ConfigurationError("metrics.source must be host, http or static")
    if config["metrics"]["source"] == "http" and not config["metrics"].get("url"):
        raise ConfigurationError("metrics.url is required when metrics.source is http")
    if config["scaling"].get("adapter") not in ("memory", "webhook"):
        raise ConfigurationError("scaling.adapter must be memory or webhook")
    if config["scaling"]["adapter"] == "webhook" and not config["scaling"].get("webhook_url"):
        raise ConfigurationError("scaling.webhook_url is required when scaling.adapter is webhook")
