"""
Crash-safe persistent state for notification bookkeeping.

The store keeps every piece of information needed to avoid duplicate or excessive
notifications across restarts: per-target notification timestamps, the last alert
time per (target, alert type), the dedup fingerprints of already notified
incidents and a short history of sent notifications for display.

The state is a single JSON document. Saves write a temporary file in the same
directory and atomically rename it over the previous one, so a crash mid-write
never corrupts the last good file. A file that cannot be parsed is moved aside
and the service starts with an empty history instead of failing.
"""

import hashlib
import json
import logging
import os
import tempfile
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, List, Mapping, Optional

from outage_monitor.domain import (
    AlertType,
    Clock,
    MatchRecord,
    NotificationKind,
    NotificationRecord,
    utc_now,
)
from outage_monitor.errors import StateStoreError

# Module logger
logger = logging.getLogger(__name__)

NOTIFICATION_WINDOW = timedelta(hours=24)
MATCH_RETENTION = timedelta(days=7)
MAX_RECENT_NOTIFICATIONS = 100

# Extracted fields that identify one specific incident.
FINGERPRINT_FIELDS = ("date", "time", "address")

CORRUPTED_SUFFIX_FORMAT = "%Y%m%d-%H%M%S"


def generate_fingerprint(target_id: str, fields: Mapping[str, str]) -> str:
    """
    Computes the dedup fingerprint of an incident.

    The fingerprint is a pure function of the target and the extracted fields,
    so two polls that extract identical fields collapse to the same record.

    Args:
        target_id: The target the incident was observed on.
        fields: Fields extracted by the content matcher.

    Returns:
        str: A hex encoded SHA-256 digest.
    """
    parts = [target_id] + [fields.get(name, "") for name in FINGERPRINT_FIELDS]
    return hashlib.sha256("|".join(parts).encode("utf-8")).hexdigest()


def _alert_key(target_id: str, alert_type: AlertType) -> str:
    return f"{target_id}|{AlertType(alert_type).value}"


def _parse_time(value: str) -> datetime:
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        raise ValueError(f"Timestamp without timezone: {value}")
    return parsed


@dataclass
class PersistedState:
    """
    The aggregate persisted by the store.

    Attributes:
        match_notifications: Per-target timestamps of "found" notifications.
        error_notifications: Per-target timestamps of error and recovery notifications.
        last_alert_times: Last alert time keyed by "target|alert_type".
        seen_matches: Dedup records keyed by fingerprint.
        recent_notifications: The most recent sent notifications, oldest first.
        last_saved: When the state was last written to disk.
    """

    match_notifications: Dict[str, List[datetime]] = field(default_factory=dict)
    error_notifications: Dict[str, List[datetime]] = field(default_factory=dict)
    last_alert_times: Dict[str, datetime] = field(default_factory=dict)
    seen_matches: Dict[str, MatchRecord] = field(default_factory=dict)
    recent_notifications: List[NotificationRecord] = field(default_factory=list)
    last_saved: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        """
        Converts the state into a JSON-serializable dictionary.
        """
        return {
            "match_notifications": {
                target: [t.isoformat() for t in times]
                for target, times in self.match_notifications.items()
            },
            "error_notifications": {
                target: [t.isoformat() for t in times]
                for target, times in self.error_notifications.items()
            },
            "last_alert_times": {key: t.isoformat() for key, t in self.last_alert_times.items()},
            "seen_matches": {
                fingerprint: {
                    "first_seen": record.first_seen.isoformat(),
                    "last_notified": record.last_notified.isoformat(),
                    "count": record.count,
                    "target_id": record.target_id,
                    "fields": dict(record.fields),
                }
                for fingerprint, record in self.seen_matches.items()
            },
            "recent_notifications": [
                {
                    "timestamp": n.timestamp.isoformat(),
                    "recipients": list(n.recipients),
                    "target_id": n.target_id,
                    "target_name": n.target_name,
                    "kind": n.kind.value,
                    "subject": n.subject,
                }
                for n in self.recent_notifications
            ],
            "last_saved": self.last_saved.isoformat() if self.last_saved else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PersistedState":
        """
        Rebuilds a state from its dictionary form.

        Raises:
            ValueError, KeyError, TypeError: If the document is malformed.
        """
        if not isinstance(data, dict):
            raise TypeError("State document must be a JSON object.")

        last_saved = data.get("last_saved")
        return cls(
            match_notifications={
                target: [_parse_time(t) for t in times]
                for target, times in data.get("match_notifications", {}).items()
            },
            error_notifications={
                target: [_parse_time(t) for t in times]
                for target, times in data.get("error_notifications", {}).items()
            },
            last_alert_times={
                key: _parse_time(t) for key, t in data.get("last_alert_times", {}).items()
            },
            seen_matches={
                fingerprint: MatchRecord(
                    first_seen=_parse_time(record["first_seen"]),
                    last_notified=_parse_time(record["last_notified"]),
                    count=int(record["count"]),
                    target_id=record["target_id"],
                    fields={str(k): str(v) for k, v in record.get("fields", {}).items()},
                )
                for fingerprint, record in data.get("seen_matches", {}).items()
            },
            recent_notifications=[
                NotificationRecord(
                    timestamp=_parse_time(n["timestamp"]),
                    recipients=tuple(n["recipients"]),
                    target_id=n["target_id"],
                    target_name=n.get("target_name", ""),
                    kind=NotificationKind(n["kind"]),
                    subject=n["subject"],
                )
                for n in data.get("recent_notifications", [])
            ],
            last_saved=_parse_time(last_saved) if last_saved else None,
        )


class StateStore:
    """
    Owns the PersistedState and every access to it.

    A single lock guards the aggregate. save() is designed to run in a worker
    thread; a second lock serializes concurrent saves so an older snapshot never
    replaces a newer file.
    """

    def __init__(
        self, path: str, state: Optional[PersistedState] = None, clock: Clock = utc_now
    ) -> None:
        """
        Initializes a store around an existing state.

        Args:
            path: Location of the JSON state file. An empty path disables saving.
            state: The initial state. Defaults to an empty state.
            clock: Source of the current time.
        """
        self._path: str = path
        self._state: PersistedState = state if state is not None else PersistedState()
        self._clock: Clock = clock
        self._lock = threading.Lock()
        self._save_lock = threading.Lock()

    @property
    def path(self) -> str:
        return self._path

    @classmethod
    def load(cls, path: str, clock: Clock = utc_now) -> "StateStore":
        """
        Loads the state file, never failing fatally.

        A missing file yields an empty state. A file that cannot be read or
        parsed is renamed to `<path>.corrupted.<timestamp>` and an empty state
        is used instead.

        Args:
            path: Location of the JSON state file.
            clock: Source of the current time.

        Returns:
            StateStore: A store holding the loaded (and cleaned up) state.
        """
        if not path:
            logger.warning("No state file path configured, starting with fresh state")
            return cls(path, clock=clock)

        if not os.path.exists(path):
            logger.info(f"State file not found at {path}, starting with fresh state")
            return cls(path, clock=clock)

        try:
            with open(path, encoding="utf-8") as f:
                state = PersistedState.from_dict(json.load(f))
        except (OSError, ValueError, KeyError, TypeError, AttributeError) as e:
            logger.warning(
                f"Failed to load state file {path} (possibly corrupted): {e}. "
                "Starting with fresh state."
            )
            cls._backup_corrupted(path, clock)
            return cls(path, clock=clock)

        store = cls(path, state=state, clock=clock)
        store.cleanup()
        logger.info(
            f"State loaded from {path} ({len(state.seen_matches)} seen matches, "
            f"{len(state.match_notifications)} targets tracked)"
        )
        return store

    @staticmethod
    def _backup_corrupted(path: str, clock: Clock) -> None:
        backup_path = f"{path}.corrupted.{clock().strftime(CORRUPTED_SUFFIX_FORMAT)}"
        try:
            os.replace(path, backup_path)
            logger.info(f"Corrupted state file backed up to: {backup_path}")
        except OSError as e:
            logger.error(f"Could not back up corrupted state file {path}: {e}")

    def save(self) -> None:
        """
        Atomically writes the full state to disk after running retention cleanup.

        Raises:
            StateStoreError: If the state could not be written. The previous file
                is left untouched.
        """
        if not self._path:
            raise StateStoreError("No state file path configured.")

        with self._save_lock:
            with self._lock:
                self._cleanup_unlocked(self._clock())
                self._state.last_saved = self._clock()
                payload = json.dumps(self._state.to_dict(), indent=2, ensure_ascii=False)

            directory = os.path.dirname(os.path.abspath(self._path))
            temp_path: Optional[str] = None
            try:
                os.makedirs(directory, exist_ok=True)
                fd, temp_path = tempfile.mkstemp(
                    dir=directory, prefix=f".{os.path.basename(self._path)}.", suffix=".tmp"
                )
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(payload)
                    f.flush()
                    os.fsync(f.fileno())
                os.replace(temp_path, self._path)
            except OSError as e:
                if temp_path is not None and os.path.exists(temp_path):
                    os.remove(temp_path)
                raise StateStoreError(f"Failed to save state to {self._path}: {e}") from e

    def cleanup(self) -> None:
        """
        Drops notification timestamps and last-alert entries older than 24h and
        dedup records not notified for 7 days.
        """
        with self._lock:
            self._cleanup_unlocked(self._clock())

    def _cleanup_unlocked(self, now: datetime) -> None:
        day_ago = now - NOTIFICATION_WINDOW
        week_ago = now - MATCH_RETENTION

        for family in (self._state.match_notifications, self._state.error_notifications):
            for target in list(family):
                valid = [t for t in family[target] if t > day_ago]
                if valid:
                    family[target] = valid
                else:
                    del family[target]

        self._state.last_alert_times = {
            key: t for key, t in self._state.last_alert_times.items() if t >= day_ago
        }
        self._state.seen_matches = {
            fingerprint: record
            for fingerprint, record in self._state.seen_matches.items()
            if record.last_notified >= week_ago
        }

    def is_match_seen(self, fingerprint: str, max_age: timedelta) -> bool:
        """
        Tells whether an incident was already notified within `max_age`.
        """
        with self._lock:
            record = self._state.seen_matches.get(fingerprint)
            if record is None:
                return False
            return self._clock() - record.last_notified <= max_age

    def record_match(self, fingerprint: str, target_id: str, fields: Mapping[str, str]) -> None:
        """
        Records that an incident has been notified, refreshing an existing record.
        """
        now = self._clock()
        with self._lock:
            record = self._state.seen_matches.get(fingerprint)
            if record is not None:
                self._state.seen_matches[fingerprint] = record._replace(
                    last_notified=now, count=record.count + 1
                )
            else:
                self._state.seen_matches[fingerprint] = MatchRecord(
                    first_seen=now,
                    last_notified=now,
                    count=1,
                    target_id=target_id,
                    fields=dict(fields),
                )

    def match_record(self, fingerprint: str) -> Optional[MatchRecord]:
        with self._lock:
            return self._state.seen_matches.get(fingerprint)

    def _family(self, alert_type: AlertType) -> Dict[str, List[datetime]]:
        if AlertType(alert_type) is AlertType.FOUND:
            return self._state.match_notifications
        return self._state.error_notifications

    def notification_count(self, target_id: str, alert_type: AlertType) -> int:
        """
        Counts a target's notifications of one family in the rolling 24h window,
        pruning older timestamps.
        """
        day_ago = self._clock() - NOTIFICATION_WINDOW
        with self._lock:
            family = self._family(alert_type)
            times = family.get(target_id)
            if not times:
                return 0
            valid = [t for t in times if t > day_ago]
            if valid:
                family[target_id] = valid
            else:
                del family[target_id]
            return len(valid)

    def notification_times(self, alert_type: AlertType, since: datetime) -> List[datetime]:
        """
        Returns the timestamps of all targets' notifications of one family after
        `since`, sorted ascending.
        """
        with self._lock:
            family = self._family(alert_type)
            return sorted(t for times in family.values() for t in times if t > since)

    def record_notification(
        self, target_id: str, alert_type: AlertType, at: Optional[datetime] = None
    ) -> None:
        with self._lock:
            self._family(alert_type).setdefault(target_id, []).append(at or self._clock())

    def last_alert_time(self, target_id: str, alert_type: AlertType) -> Optional[datetime]:
        with self._lock:
            return self._state.last_alert_times.get(_alert_key(target_id, alert_type))

    def record_alert_time(
        self, target_id: str, alert_type: AlertType, at: Optional[datetime] = None
    ) -> None:
        with self._lock:
            self._state.last_alert_times[_alert_key(target_id, alert_type)] = at or self._clock()

    def record_sent(self, notification: NotificationRecord) -> None:
        """
        Appends a sent notification to the display history, keeping the last 100.
        """
        with self._lock:
            recent = self._state.recent_notifications
            recent.append(notification)
            if len(recent) > MAX_RECENT_NOTIFICATIONS:
                del recent[: len(recent) - MAX_RECENT_NOTIFICATIONS]

    def recent_notifications(self, limit: int = MAX_RECENT_NOTIFICATIONS) -> List[NotificationRecord]:
        """
        Returns up to `limit` sent notifications, most recent first.
        """
        with self._lock:
            if limit <= 0:
                return []
            return list(reversed(self._state.recent_notifications[-limit:]))

    def stats(self) -> Dict[str, Any]:
        """
        Returns summary statistics about the current state.
        """
        with self._lock:
            last_saved = self._state.last_saved
            return {
                "seen_matches_count": len(self._state.seen_matches),
                "targets_tracked": len(self._state.match_notifications),
                "total_notifications_24h": sum(
                    len(times) for times in self._state.match_notifications.values()
                ),
                "total_error_notifications_24h": sum(
                    len(times) for times in self._state.error_notifications.values()
                ),
                "last_saved": last_saved.isoformat() if last_saved else None,
            }
