"""
E-mail notifier using the Brevo transactional e-mail API.

Each recipient gets its own request so one rejected address does not prevent
delivery to the others.
"""

import asyncio
import logging
from typing import Any, Dict, Sequence

import aiohttp

from outage_monitor.contracts import Notifier
from outage_monitor.errors import NotificationError

# Module logger
logger = logging.getLogger(__name__)

BREVO_API_URL = "https://api.brevo.com/v3/smtp/email"


class BrevoNotifier(Notifier):
    """
    A Notifier sending plain-text e-mails through Brevo over a shared aiohttp session.
    """

    def __init__(
        self,
        session: aiohttp.ClientSession,
        api_key: str,
        sender_email: str,
        sender_name: str,
        timeout: float = 30,
        api_url: str = BREVO_API_URL,
    ) -> None:
        """
        Initializes the notifier.

        Args:
            session: An active aiohttp.ClientSession to be used for requests.
            api_key: The Brevo API key.
            sender_email: Address the e-mails are sent from.
            sender_name: Display name of the sender.
            timeout: Total timeout of a single API request, in seconds.
            api_url: The Brevo endpoint, overridable for tests.
        """
        self._session: aiohttp.ClientSession = session
        self._api_key: str = api_key
        self._sender_email: str = sender_email
        self._sender_name: str = sender_name
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._api_url: str = api_url

    def _payload(self, recipient: str, subject: str, body: str) -> Dict[str, Any]:
        return {
            "sender": {"name": self._sender_name, "email": self._sender_email},
            "to": [{"email": recipient}],
            "subject": subject,
            "textContent": body,
        }

    async def _send_one(self, recipient: str, subject: str, body: str) -> None:
        headers = {
            "accept": "application/json",
            "api-key": self._api_key,
            "content-type": "application/json",
        }
        async with self._session.post(
            self._api_url,
            json=self._payload(recipient, subject, body),
            headers=headers,
            timeout=self._timeout,
        ) as response:
            if response.status >= 300:
                detail = await response.text()
                raise NotificationError(
                    f"Brevo API error (status {response.status}): {detail}"
                )

    async def send(self, recipients: Sequence[str], subject: str, body: str) -> None:
        """
        Sends the message to every recipient.

        Raises:
            NotificationError: If there are no recipients or no delivery succeeded.
        """
        if not recipients:
            raise NotificationError("No recipients to send the notification to")

        delivered = 0
        for recipient in recipients:
            try:
                await self._send_one(recipient, subject, body)
            except (aiohttp.ClientError, NotificationError, asyncio.TimeoutError) as e:
                logger.error(f"Failed to send e-mail to {recipient}: {e}")
                continue
            delivered += 1
            logger.info(f"E-mail sent to {recipient}")

        if delivered == 0:
            raise NotificationError(f"Failed to deliver '{subject}' to any recipient")
