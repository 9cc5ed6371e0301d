"""Notification channels that deliver alert records to a single recipient."""
import json
import logging
import threading

from rich.markup import escape

from utils.http_client import HTTPClient

logger = logging.getLogger("opsmonitor.alerts.channels")


def _severity(alert):
    return alert.severity.value if hasattr(alert.severity, "value") else str(alert.severity)


class LogChannel:
    """Write alerts to the log. Always succeeds; the default when nothing else is set up."""

    def send(self, recipient, alert):
        level = logging.ERROR if _severity(alert) == "critical" else logging.WARNING
        logger.log(level, f"-> {recipient}: {alert.message}")
        return True


class ConsoleChannel:
    """Print alerts to terminal with rich formatting."""

    SEVERITY_STYLES = {
        "critical": "bold white on red",
        "high": "bold red",
        "medium": "bold yellow",
        "low": "bold blue",
    }

    def __init__(self, console=None):
        from rich.console import Console
        self.console = console or Console(stderr=True)

    def send(self, recipient, alert):
        style = self.SEVERITY_STYLES.get(_severity(alert), "")
        self.console.print(f"[{style}]{escape(alert.message)}[/] -> {escape(recipient)}", highlight=False)
        return True


class FileChannel:
    """Append alerts to a JSON lines log file."""

    def __init__(self, log_path="data/alerts.jsonl"):
        self.log_path = log_path
        self._lock = threading.Lock()

    def send(self, recipient, alert):
        entry = alert.to_dict()
        entry["recipient"] = recipient
        with self._lock:
            with open(self.log_path, "a") as f:
                f.write(json.dumps(entry) + "\n")
        return True


class WebhookChannel:
    """POST alerts as JSON. The recipient is the target URL unless a fixed URL is configured."""

    def __init__(self, url=None, timeout=5, client=None):
        self.url = url
        self.client = client or HTTPClient(url or "", timeout=timeout, max_retries=1)

    def send(self, recipient, alert):
        target = self.url or recipient
        payload = alert.to_dict()
        payload["recipient"] = recipient
        payload["text"] = alert.message
        self.client.post(target, payload)
        return True


class EmailChannel:
    """SMTP delivery, one message per recipient address."""

    def __init__(self, config: dict, sender=None):
        if sender is None:
            from notifications.email_sender import EmailSender
            sender = EmailSender(config)
        self.sender = sender

    def send(self, recipient, alert):
        address = recipient[len("mailto:"):] if recipient.startswith("mailto:") else recipient
        return self.sender.send_alert(address, alert)


class ChannelRouter:
    """Pick a channel from the recipient's form.

    `http(s)://...` goes to the webhook channel, `sms:...` to the sms
    channel, anything with an `@` to email; everything else, or a form
    without a configured channel, falls back to the default channel.
    """

    def __init__(self, default=None, email=None, webhook=None, sms=None):
        self.default = default or LogChannel()
        self.email = email
        self.webhook = webhook
        self.sms = sms

    def channel_for(self, recipient):
        if recipient.startswith(("http://", "https://")) and self.webhook:
            return self.webhook
        if recipient.startswith("sms:") and self.sms:
            return self.sms
        if "@" in recipient and self.email:
            return self.email
        return self.default

    def send(self, recipient, alert):
        return self.channel_for(recipient).send(recipient, alert)
