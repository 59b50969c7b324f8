"""
Domain models for the outage monitoring system.

This module defines the core data structures used throughout the application,
including monitored targets, fetch and check results, notification bookkeeping
records and the per-target runtime state driven by the monitor state machine.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Dict, NamedTuple, Optional, Tuple

# A zero-argument callable returning the current timezone-aware UTC time.
Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """
    Returns the current time as a timezone-aware UTC datetime.

    Returns:
        datetime: The current UTC time.
    """
    return datetime.now(timezone.utc)


class AlertType(str, Enum):
    """
    Alert families understood by the notification gate.

    FOUND alerts announce a newly detected condition and are subject to cooldown,
    global hourly and per-target daily limits. ERROR alerts cover both the
    "unreachable" and the "recovered" notifications and only obey a per-target
    daily cap.
    """

    FOUND = "found"
    ERROR = "error"


class EventKind(str, Enum):
    """Kinds of state-change events kept in the recent events buffer."""

    FOUND = "found"
    NOT_FOUND = "not_found"


class NotificationKind(str, Enum):
    """Kinds of notifications recorded for display."""

    MATCH = "match"
    ERROR = "error"
    RECOVERY = "recovery"


class FoundState(str, Enum):
    """Content state of a target as last observed by its monitor."""

    UNKNOWN = "unknown"
    FOUND = "found"
    NOT_FOUND = "not_found"


class Target(NamedTuple):
    """
    Represents a single resource to monitor with its search criteria.

    Attributes:
        id: The URL of the monitored page. It also identifies the target in
            persisted state.
        name: Optional human-friendly name.
        terms: Ordered search terms handed to the content matcher.
        layout: Page layout the matcher should expect. Empty means it is
            detected from the URL.
    """

    id: str
    name: str
    terms: Tuple[str, ...]
    layout: str = ""

    @property
    def display_name(self) -> str:
        """The friendly name, or the URL when no name is configured."""
        return self.name or self.id


class FetchResult(NamedTuple):
    """
    The raw outcome of fetching a single target.

    Attributes:
        target: The Target that was fetched.
        error: Any exception that occurred during the fetch, or None if successful.
        start_time: The start time from time.time() in seconds.
        end_time: The end time from time.time() in seconds.
        status_code: The HTTP status code received, or None if an error occurred.
        body: The decoded response body for successful fetches.
    """

    target: Target
    error: Optional[Exception]
    start_time: float
    end_time: float
    status_code: Optional[int]
    body: Optional[str]


class MatchResult(NamedTuple):
    """Classification of a payload by a content matcher."""

    found: bool
    fields: Dict[str, str]


class CheckResult(NamedTuple):
    """
    The outcome of one poll cycle, consumed immediately by the state machine.

    Attributes:
        target_id: Identifier of the polled target.
        observed_at: When the poll completed.
        found: Whether the condition of interest is present.
        fields: Free-form fields extracted by the matcher (date, time, address).
        latency: Response time in seconds.
        error: The fetch error, or None if the target was reachable.
    """

    target_id: str
    observed_at: datetime
    found: bool
    fields: Dict[str, str]
    latency: float
    error: Optional[Exception]


class Event(NamedTuple):
    """A state-change event for the recent activity view."""

    timestamp: datetime
    kind: EventKind
    target_id: str
    message: str


class LogEntry(NamedTuple):
    """A single line of the in-memory activity log."""

    timestamp: datetime
    message: str


class MatchRecord(NamedTuple):
    """
    Dedup bookkeeping for one specific real-world incident.

    Attributes:
        first_seen: When the fingerprint was first notified.
        last_notified: When the fingerprint was last recorded.
        count: How many times the fingerprint has been recorded.
        target_id: The target the incident was observed on.
        fields: The extracted fields the fingerprint was computed from.
    """

    first_seen: datetime
    last_notified: datetime
    count: int
    target_id: str
    fields: Dict[str, str]


class NotificationRecord(NamedTuple):
    """A sent notification, kept for display."""

    timestamp: datetime
    recipients: Tuple[str, ...]
    target_id: str
    target_name: str
    kind: NotificationKind
    subject: str


class ResolveResult(NamedTuple):
    """
    The answer of the resolution cache.

    Attributes:
        address: The resolved (or stale fallback) address.
        changed: Whether a live resolution produced a different address.
        error: The resolution error when a stale address was returned.
    """

    address: str
    changed: bool
    error: Optional[Exception]


@dataclass
class TargetRuntimeState:
    """
    Mutable per-target state, owned exclusively by the target's monitor loop.

    Attributes:
        found_state: Last observed content state.
        unreachable: Whether the last fetch failed.
        down_since: When the target became unreachable.
        last_checked_at: When the last poll finished.
        last_fingerprint: Fingerprint of the last "found" observation.
    """

    found_state: FoundState = FoundState.UNKNOWN
    unreachable: bool = False
    down_since: Optional[datetime] = None
    last_checked_at: Optional[datetime] = None
    last_fingerprint: Optional[str] = None
