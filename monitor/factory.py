"""Wire a MonitoringSystem from config: metric source, channels, scaler, rules."""
import logging
import sys

from alerts.channels import ChannelRouter, ConsoleChannel, EmailChannel, FileChannel, LogChannel, WebhookChannel
from alerts.rules_manager import RulesManager
from monitor.monitor import MonitoringSystem
from monitor.sources import HostMetricSource, HTTPMetricSource, RequestStats, StaticMetricSource
from scaling.adapters import InMemoryScaler, WebhookScaler

logger = logging.getLogger("opsmonitor.factory")


class FanoutChannel:
    """Deliver to a primary channel and mirror the record to audit channels (file, console)."""

    def __init__(self, primary, mirrors=None):
        self.primary = primary
        self.mirrors = mirrors or []

    def send(self, recipient, alert):
        for mirror in self.mirrors:
            try:
                mirror.send(recipient, alert)
            except Exception as e:
                logger.warning(f"Mirror channel error: {e}")
        return self.primary.send(recipient, alert)


def build_source(config, request_stats=None):
    m_cfg = config.get("metrics", {})
    kind = m_cfg.get("source", "host")
    if kind == "http":
        return HTTPMetricSource(m_cfg["url"], timeout=config["collector"].get("read_timeout_seconds", 5))
    if kind == "static":
        return StaticMetricSource(m_cfg.get("static_values") or {})
    return HostMetricSource(request_stats=request_stats)


def build_channel(config):
    n_cfg = config.get("notifications", {})
    email = EmailChannel(config) if n_cfg.get("email", {}).get("enabled") else None
    webhook = WebhookChannel(url=n_cfg.get("webhook_url") or None)
    router = ChannelRouter(default=LogChannel(), email=email, webhook=webhook)

    mirrors = []
    if n_cfg.get("file_path"):
        mirrors.append(FileChannel(n_cfg["file_path"]))
    if n_cfg.get("console") and sys.stderr.isatty():
        mirrors.append(ConsoleChannel())
    return FanoutChannel(router, mirrors) if mirrors else router


def build_scaler(config):
    s_cfg = config.get("scaling", {})
    if s_cfg.get("adapter") == "webhook":
        return WebhookScaler(s_cfg["webhook_url"], timeout=s_cfg.get("call_timeout_seconds", 30))
    return InMemoryScaler(initial_instances=s_cfg.get("initial_instances", 1))


def build_system(config, rules_path=None, source=None, channel=None, scaler=None):
    """Construct the process-wide MonitoringSystem with its startup rules loaded."""
    request_stats = getattr(source, "request_stats", None) or RequestStats()
    system = MonitoringSystem(
        config,
        source=source or build_source(config, request_stats),
        channel=channel or build_channel(config),
        scaler=scaler or build_scaler(config),
        request_stats=request_stats,
    )
    path = rules_path or config.get("alerts", {}).get("rules_path") or None
    system.load_rules(RulesManager(path))
    return system
