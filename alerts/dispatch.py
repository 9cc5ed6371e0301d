"""Per-recipient delivery with failure isolation."""
import logging

from models.errors import AdapterError
from utils.timeout import NOTIFY_POOL, call_with_timeout

logger = logging.getLogger("opsmonitor.alerts.dispatch")


def deliver(channel, recipients, record, timeout=10.0):
    """Send `record` to every recipient; returns (delivered, failed) recipient lists.

    A failure for one recipient (exception, timeout or a False return) is
    logged and never stops delivery to the rest.
    """
    delivered, failed = [], []
    for recipient in recipients:
        try:
            ok = call_with_timeout(channel.send, recipient, record,
                                   timeout=timeout, name=f"notify({recipient})", pool=NOTIFY_POOL)
        except AdapterError as e:
            logger.warning(f"Delivery to {recipient} failed: {e}")
            failed.append(recipient)
            continue
        if ok is False:
            logger.warning(f"Delivery to {recipient} rejected by channel")
            failed.append(recipient)
        else:
            delivered.append(recipient)
    return delivered, failed
