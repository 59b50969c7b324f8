"""
Cooldown and rate-limit decisions for outgoing notifications.

The gate answers "may this target send this kind of alert now?" and records
alerts once they have been delivered. It is independent of the fingerprint
dedup done by the state store: a "found" notification has to pass both.
"""

import logging
import threading
from datetime import datetime, timedelta
from typing import List

from outage_monitor.domain import AlertType, Clock, utc_now
from outage_monitor.state.state_store import StateStore

# Module logger
logger = logging.getLogger(__name__)

GLOBAL_WINDOW = timedelta(hours=1)


class NotificationGate:
    """
    Applies the cooldown, global hourly and per-target daily limits.

    Per-target lists and last-alert times live in the StateStore so they survive
    restarts. The global hourly list is kept here behind its own lock and is
    seeded from the persisted "found" timestamps of the last hour.
    """

    def __init__(
        self,
        store: StateStore,
        cooldown: timedelta,
        hourly_cap: int,
        per_target_daily_cap: int,
        error_daily_cap: int = 3,
        clock: Clock = utc_now,
    ) -> None:
        """
        Initializes the gate.

        Args:
            store: State store holding the per-target bookkeeping.
            cooldown: Minimum delay between two alerts of the same (target, type).
            hourly_cap: Maximum number of "found" alerts across all targets per rolling hour.
            per_target_daily_cap: Maximum "found" alerts per target per rolling 24h.
            error_daily_cap: Maximum error/recovery alerts per target per rolling 24h.
            clock: Source of the current time.

        Raises:
            ValueError: If a cap is not positive or the cooldown is negative.
        """
        if cooldown < timedelta(0):
            raise ValueError("cooldown cannot be negative.")
        for name, value in (
            ("hourly_cap", hourly_cap),
            ("per_target_daily_cap", per_target_daily_cap),
            ("error_daily_cap", error_daily_cap),
        ):
            if value < 1:
                raise ValueError(f"{name} must be at least 1.")

        self._store: StateStore = store
        self._cooldown: timedelta = cooldown
        self._hourly_cap: int = hourly_cap
        self._per_target_daily_cap: int = per_target_daily_cap
        self._error_daily_cap: int = error_daily_cap
        self._clock: Clock = clock
        self._lock = threading.Lock()
        self._global_times = store.notification_times(AlertType.FOUND, clock() - GLOBAL_WINDOW)

    def _global_count(self) -> int:
        hour_ago = self._clock() - GLOBAL_WINDOW
        with self._lock:
            self._global_times = [t for t in self._global_times if t > hour_ago]
            return len(self._global_times)

    def can_notify(self, target_id: str, alert_type: AlertType) -> bool:
        """
        Decides whether an alert may be sent now. This is a pure query: calling it
        repeatedly without record() never changes its answer.

        Args:
            target_id: The target the alert is about.
            alert_type: FOUND or ERROR.

        Returns:
            bool: True if the alert is allowed.
        """
        alert_type = AlertType(alert_type)

        if alert_type is AlertType.ERROR:
            sent = self._store.notification_count(target_id, AlertType.ERROR)
            if sent >= self._error_daily_cap:
                logger.warning(
                    f"Daily error notification limit reached for {target_id} "
                    f"({sent}/{self._error_daily_cap})"
                )
                return False
            return True

        last_alert = self._store.last_alert_time(target_id, alert_type)
        if last_alert is not None and self._clock() - last_alert < self._cooldown:
            logger.info(f"Alert cooldown active for {target_id} ({alert_type.value})")
            return False

        if self._global_count() >= self._hourly_cap:
            logger.warning(f"Global notification rate limit reached ({self._hourly_cap}/hour)")
            return False

        sent = self._store.notification_count(target_id, AlertType.FOUND)
        if sent >= self._per_target_daily_cap:
            logger.warning(
                f"Daily notification limit reached for {target_id} "
                f"({sent}/{self._per_target_daily_cap})"
            )
            return False

        return True

    def record(self, target_id: str, alert_type: AlertType) -> None:
        """
        Records a delivered alert against every limit it counts towards.
        """
        alert_type = AlertType(alert_type)
        now = self._clock()
        if alert_type is AlertType.FOUND:
            with self._lock:
                self._global_times.append(now)
        self._store.record_notification(target_id, alert_type, now)
        self._store.record_alert_time(target_id, alert_type, now)

    def global_times(self) -> List[datetime]:
        """Returns a copy of the global hourly list, for status reporting."""
        with self._lock:
            return list(self._global_times)
