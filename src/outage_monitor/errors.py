"""
Exception hierarchy for the outage monitoring system.

Every error raised on purpose by this package derives from OutageMonitorError,
so callers can tell expected failures apart from programming errors.
"""


class OutageMonitorError(Exception):
    """Base class for all errors raised by the outage monitor."""


class ResolutionError(OutageMonitorError):
    """A hostname could not be resolved and no cached address exists."""

    def __init__(self, hostname: str, reason: str) -> None:
        super().__init__(f"Could not resolve {hostname}: {reason}")
        self.hostname = hostname


class UnexpectedStatusError(OutageMonitorError):
    """A fetch returned a non-success HTTP status."""

    def __init__(self, status: int) -> None:
        super().__init__(f"HTTP {status}")
        self.status = status


class NotificationError(OutageMonitorError):
    """A notification could not be delivered to any recipient."""


class StateStoreError(OutageMonitorError):
    """The persistent state could not be written to disk."""
