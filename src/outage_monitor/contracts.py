"""
Core interfaces for the outage monitoring system.

This module defines the abstract base classes for the collaborators the core
depends on. The scheduler, state machine and notification gate only ever talk
to these contracts, so fetching, content matching and delivery can be swapped
without touching them.
"""

import abc
from typing import Sequence

from .domain import FetchResult, MatchResult, Target


class TargetFetcher(abc.ABC):
    """
    Abstract interface for a component that performs the check for a single target.

    Its responsibility is to encapsulate the network I/O for a given Target
    and return a structured result.
    """

    @abc.abstractmethod
    async def fetch(self, target: Target) -> FetchResult:
        """
        Fetches the given target.

        Args:
            target: The Target object to fetch.

        Returns:
            FetchResult: An object containing the outcome of the fetch, including
                status code, timing information, the body and any error encountered.

        Raises:
            Exception: Implementations should handle network errors internally and
                include them in the FetchResult rather than raising them.
        """
        pass


class ContentMatcher(abc.ABC):
    """
    Abstract interface for the policy that decides whether a payload exhibits
    the condition of interest.

    Implementations must be deterministic: the same payload and criteria always
    produce the same result, and the extracted fields must stay stable for a
    given real-world incident because they feed the dedup fingerprint.
    """

    @abc.abstractmethod
    def match(self, payload: str, criteria: Sequence[str]) -> MatchResult:
        """
        Classifies a payload against the target's search criteria.

        Args:
            payload: The fetched document.
            criteria: The ordered search terms of the target.

        Returns:
            MatchResult: The match flag and the extracted fields.
        """
        pass


class Notifier(abc.ABC):
    """
    Abstract interface for a notification transport.
    """

    @abc.abstractmethod
    async def send(self, recipients: Sequence[str], subject: str, body: str) -> None:
        """
        Delivers a message to a set of recipients.

        Args:
            recipients: Addresses the message is meant for.
            subject: Message subject.
            body: Plain-text message body.

        Raises:
            NotificationError: If the message could not be delivered to anyone.
                The caller treats this as "not sent" and mutates no state.
        """
        pass
