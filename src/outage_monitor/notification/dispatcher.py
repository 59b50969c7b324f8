"""
Notification dispatch for the target monitors.

The dispatcher joins the fingerprint dedup of the state store, the cooldown and
rate limits of the notification gate, message formatting and the notifier. State
is only mutated after a successful delivery: a failed send leaves everything as
it was, so the next natural transition can try again.
"""

import asyncio
import logging
from datetime import timedelta
from typing import Optional, Sequence, Tuple

from outage_monitor.buffers.log_sink import AsyncLogSink
from outage_monitor.contracts import Notifier
from outage_monitor.domain import (
    AlertType,
    CheckResult,
    Clock,
    NotificationKind,
    NotificationRecord,
    Target,
    utc_now,
)
from outage_monitor.notification.gate import NotificationGate
from outage_monitor.notification.messages import (
    build_error_message,
    build_match_message,
    build_recovery_message,
    build_user_agent_failure_message,
)
from outage_monitor.state.state_store import StateStore, generate_fingerprint

# Module logger
logger = logging.getLogger(__name__)

DEFAULT_DEDUP_MAX_AGE = timedelta(days=7)


class NotificationDispatcher:
    """
    Decides whether a detected transition warrants a notification and sends it.
    """

    def __init__(
        self,
        notifier: Notifier,
        gate: NotificationGate,
        store: StateStore,
        recipients: Sequence[str],
        error_recipients: Sequence[str] = (),
        dedup_max_age: timedelta = DEFAULT_DEDUP_MAX_AGE,
        time_offset_hours: int = 0,
        log_sink: Optional[AsyncLogSink] = None,
        clock: Clock = utc_now,
    ) -> None:
        """
        Initializes the dispatcher.

        Args:
            notifier: Transport used to deliver messages.
            gate: Cooldown and rate-limit decisions.
            store: Persistent state holding the dedup fingerprints.
            recipients: Recipients of "found" notifications.
            error_recipients: Recipients of error and recovery notifications.
                When empty, those notifications are not sent.
            dedup_max_age: How long a notified incident suppresses new notifications.
            time_offset_hours: Offset applied to timestamps shown in messages.
            log_sink: Optional activity log receiving delivery outcomes.
            clock: Source of the current time.
        """
        self._notifier: Notifier = notifier
        self._gate: NotificationGate = gate
        self._store: StateStore = store
        self._recipients: Tuple[str, ...] = tuple(recipients)
        self._error_recipients: Tuple[str, ...] = tuple(error_recipients)
        self._dedup_max_age: timedelta = dedup_max_age
        self._time_offset_hours: int = time_offset_hours
        self._log_sink: Optional[AsyncLogSink] = log_sink
        self._clock: Clock = clock
        self._send_lock = asyncio.Lock()

    def _activity(self, message: str) -> None:
        if self._log_sink is not None:
            self._log_sink.add(message)

    async def _deliver(
        self, target: Target, recipients: Tuple[str, ...], subject: str, body: str
    ) -> bool:
        try:
            await self._notifier.send(recipients, subject, body)
        except Exception as e:
            logger.error(f"Failed to send notification for {target.display_name}: {e}")
            self._activity(f"Failed to send notification for {target.display_name}: {e}")
            return False
        return True

    def _record_sent(
        self,
        target: Target,
        recipients: Tuple[str, ...],
        kind: NotificationKind,
        subject: str,
    ) -> None:
        self._store.record_sent(
            NotificationRecord(
                timestamp=self._clock(),
                recipients=recipients,
                target_id=target.id,
                target_name=target.name,
                kind=kind,
                subject=subject,
            )
        )

    async def notify_match(self, target: Target, result: CheckResult) -> bool:
        """
        Notifies about a found condition unless the incident was already notified
        or the gate denies it.

        The dedup check, the gate check, the send and the recording all happen
        under the send lock, so concurrent monitors cannot all pass the same limit
        before any of them records.

        Args:
            target: The target the condition was found on.
            result: The check result carrying the extracted fields.

        Returns:
            bool: True if a notification was delivered.
        """
        if not self._recipients:
            logger.warning(f"No recipients configured, not notifying about {target.display_name}")
            return False

        fingerprint = generate_fingerprint(target.id, result.fields)
        async with self._send_lock:
            if self._store.is_match_seen(fingerprint, self._dedup_max_age):
                logger.info(
                    f"Skipping duplicate notification for {target.display_name} - "
                    f"already notified about this incident (hash: {fingerprint[:8]}...)"
                )
                self._activity(
                    "Skipping duplicate notification - already notified about this incident"
                )
                return False

            if not self._gate.can_notify(target.id, AlertType.FOUND):
                return False

            subject, body = build_match_message(target, result.fields)
            if not await self._deliver(target, self._recipients, subject, body):
                return False

            self._store.record_match(fingerprint, target.id, result.fields)
            self._gate.record(target.id, AlertType.FOUND)
            self._record_sent(target, self._recipients, NotificationKind.MATCH, subject)

        logger.info(f"Notification sent to {len(self._recipients)} recipients for {target.display_name}")
        return True

    async def _notify_error_family(
        self, target: Target, kind: NotificationKind, subject: str, body: str
    ) -> bool:
        async with self._send_lock:
            if not self._gate.can_notify(target.id, AlertType.ERROR):
                return False
            if not await self._deliver(target, self._error_recipients, subject, body):
                return False
            self._gate.record(target.id, AlertType.ERROR)
            self._record_sent(target, self._error_recipients, kind, subject)
        return True

    async def notify_error(self, target: Target, error: BaseException) -> bool:
        """
        Notifies the error recipients that a target became unreachable.

        Returns:
            bool: True if a notification was delivered.
        """
        if not self._error_recipients:
            logger.debug(f"No error recipients, error notification skipped for {target.display_name}")
            return False

        subject, body = build_error_message(
            target, error, self._clock(), self._time_offset_hours
        )
        if not await self._notify_error_family(target, NotificationKind.ERROR, subject, body):
            return False
        logger.info(f"Error notification sent for {target.display_name}")
        return True

    async def notify_recovery(self, target: Target, downtime: timedelta) -> bool:
        """
        Notifies the error recipients that an unreachable target recovered.

        Returns:
            bool: True if a notification was delivered.
        """
        if not self._error_recipients:
            logger.debug(f"No error recipients, recovery notification skipped for {target.display_name}")
            return False

        subject, body = build_recovery_message(
            target, downtime, self._clock(), self._time_offset_hours
        )
        if not await self._notify_error_family(target, NotificationKind.RECOVERY, subject, body):
            return False
        logger.info(f"Recovery notification sent for {target.display_name}")
        return True

    async def notify_user_agent_failure(
        self, error_message: str, source_url: str, fallback_agent: str
    ) -> bool:
        """
        Tells the error recipients that the User-Agent list could not be downloaded.

        This happens at most once per run, at startup, so the gate is not consulted.

        Returns:
            bool: True if a notification was delivered.
        """
        if not self._error_recipients:
            return False

        subject, body = build_user_agent_failure_message(
            error_message, source_url, fallback_agent, self._clock(), self._time_offset_hours
        )
        try:
            await self._notifier.send(self._error_recipients, subject, body)
        except Exception as e:
            logger.error(f"Failed to send User-Agent fetch failure notification: {e}")
            return False
        logger.info(f"User-Agent fetch failure notification sent to {len(self._error_recipients)} recipients")
        return True
