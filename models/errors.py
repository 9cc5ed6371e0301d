"""Exception hierarchy for the monitoring core."""


class MonitorError(Exception):
    """Base class for all errors raised by the monitoring core."""


class ConfigurationError(MonitorError):
    """An alert rule, scaling rule, or config value failed validation."""


class AdapterError(MonitorError):
    """An external collaborator (metric source, channel, scaler) failed."""

    def __init__(self, message, adapter=None, cause=None):
        super().__init__(message)
        self.adapter = adapter
        self.cause = cause


class AdapterTimeout(AdapterError):
    """An external call did not return within its time budget."""


class SnapshotUnavailable(MonitorError):
    """No metric snapshot has been collected yet."""
