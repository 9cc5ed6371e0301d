"""
SMTP email sender for alert and escalation notices.

Handles:
  - SMTP connection with STARTTLS or implicit TLS (port 465)
  - Unauthenticated relays (no username configured)
  - MIME multipart construction (plaintext + HTML)
  - Credential management (env vars > config file)

No external dependencies beyond Python stdlib (email, smtplib, ssl).
"""
import os
import ssl
import smtplib
import logging
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr, formatdate

logger = logging.getLogger("opsmonitor.notifications.email_sender")

# Implicit TLS; every other port uses STARTTLS when use_tls is set
SMTPS_PORT = 465

_SEVERITY_COLORS = {
    "critical": "#FF1744",
    "high": "#FF9100",
    "medium": "#FFC107",
    "low": "#2979FF",
}


class EmailSender:
    """
    SMTP email sender.

    Credential resolution order:
      1. Environment variables: OPS_MONITOR_SMTP_USER, OPS_MONITOR_SMTP_PASS
      2. Config file: notifications.email.smtp_username / smtp_password
    """

    def __init__(self, config: dict):
        email_config = config.get("notifications", {}).get("email", {})
        self.smtp_host = email_config.get("smtp_host", "")
        self.smtp_port = email_config.get("smtp_port", 587)
        self.use_tls = email_config.get("use_tls", True)
        self.timeout = email_config.get("timeout_seconds", 10)
        self.from_address = email_config.get("from_address", "")
        self.from_name = email_config.get("from_name", "Ops Monitor")

        self.username = os.environ.get(
            "OPS_MONITOR_SMTP_USER",
            email_config.get("smtp_username", ""),
        )
        self.password = os.environ.get(
            "OPS_MONITOR_SMTP_PASS",
            email_config.get("smtp_password", ""),
        )

    def is_configured(self) -> bool:
        """A host and sender are required; credentials only if the relay wants them."""
        if not (self.smtp_host and self.from_address):
            return False
        return bool(self.password) if self.username else True

    def build_message(self, to_address: str, alert) -> MIMEMultipart:
        severity = str(alert.severity)
        color = _SEVERITY_COLORS.get(severity, "#FFC107")
        kind = "Escalation" if alert.escalation_level is not None else "Alert"

        html = f"""
        <div style="font-family: system-ui, sans-serif; max-width: 500px; margin: 0 auto; padding: 20px;">
            <div style="padding: 16px; border-left: 4px solid {color};">
                <h3 style="margin-top: 0; color: {color};">{severity.upper()} {kind}: {alert.rule_name}</h3>
                <p>{alert.message}</p>
                <p style="color: #888;">Triggered at {alert.triggered_at.isoformat()}</p>
            </div>
        </div>
        """

        msg = MIMEMultipart("alternative")
        msg["From"] = formataddr((self.from_name, self.from_address))
        msg["To"] = to_address
        msg["Subject"] = f"[{severity.upper()}] {kind}: {alert.rule_name}"
        msg["Date"] = formatdate(localtime=True)
        msg.attach(MIMEText(alert.message, "plain"))
        msg.attach(MIMEText(html, "html", "utf-8"))
        return msg

    def send_alert(self, to_address: str, alert) -> bool:
        """Send one alert email; returns False if SMTP is not configured or refuses."""
        if not self.is_configured():
            logger.warning("Email not configured - skipping alert send")
            return False
        return self._send(self.build_message(to_address, alert))

    def _connect(self):
        context = ssl.create_default_context()
        if self.smtp_port == SMTPS_PORT:
            return smtplib.SMTP_SSL(self.smtp_host, self.smtp_port, timeout=self.timeout, context=context)
        server = smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=self.timeout)
        if self.use_tls:
            server.starttls(context=context)
        return server

    def _send(self, msg: MIMEMultipart) -> bool:
        try:
            with self._connect() as server:
                if self.username:
                    server.login(self.username, self.password)
                server.send_message(msg)
            logger.info(f"Email sent to {msg['To']}: {msg['Subject']}")
            return True
        except smtplib.SMTPAuthenticationError:
            logger.error("SMTP authentication failed. Check username/password.")
            return False
        except smtplib.SMTPRecipientsRefused:
            logger.error(f"Recipient refused: {msg['To']}")
            return False
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Email send failed: {e}")
            return False
