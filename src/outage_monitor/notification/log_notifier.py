"""
A notifier that only writes notifications to the application log.

Used when no e-mail provider is configured, so the monitor can run unattended
in development without sending anything.
"""

import logging
from typing import Sequence

from outage_monitor.contracts import Notifier
from outage_monitor.errors import NotificationError

# Module logger
logger = logging.getLogger(__name__)


class LogNotifier(Notifier):
    """A Notifier that logs each message instead of delivering it."""

    async def send(self, recipients: Sequence[str], subject: str, body: str) -> None:
        if not recipients:
            raise NotificationError("No recipients to send the notification to")
        logger.info(f"Notification for {', '.join(recipients)}: {subject}\n{body}")
