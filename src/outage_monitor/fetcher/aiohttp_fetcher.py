"""
HTTP fetcher implementation using the aiohttp library.

This module provides an implementation of the TargetFetcher interface that uses
the aiohttp library to download the monitored pages. It handles timing and
error handling; deciding what the page says is left to the content matcher.
"""

import logging
import time
from typing import Dict, Optional

import aiohttp

from outage_monitor.contracts import TargetFetcher
from outage_monitor.domain import FetchResult, Target
from outage_monitor.errors import UnexpectedStatusError
from outage_monitor.fetcher.user_agents import DEFAULT_USER_AGENT, UserAgentPool

# Module logger
logger = logging.getLogger(__name__)


class AiohttpFetcher(TargetFetcher):
    """
    A concrete implementation of TargetFetcher using the aiohttp library.

    Every request goes through the shared ClientSession. Any status outside
    2xx is reported as an UnexpectedStatusError in the result, so the monitor
    treats it as the target being unreachable. The body is decoded leniently:
    a page that answered 2xx is reachable even when it contains bytes outside
    its declared charset.
    """

    def __init__(
        self,
        session: aiohttp.ClientSession,
        max_timeout: float,
        user_agent: str = DEFAULT_USER_AGENT,
        user_agents: Optional[UserAgentPool] = None,
    ) -> None:
        """
        Initializes the fetcher with a shared aiohttp ClientSession.

        Args:
            session: An active aiohttp.ClientSession to be used for requests.
            max_timeout: Total timeout of a single fetch, in seconds.
            user_agent: The User-Agent header sent when no pool is given.
            user_agents: Pool rotating the User-Agent header per request.
        """
        self._session: aiohttp.ClientSession = session
        self._timeout = aiohttp.ClientTimeout(total=max_timeout)
        self._user_agent: str = user_agent
        self._user_agents: Optional[UserAgentPool] = user_agents

    def _headers(self) -> Dict[str, str]:
        if self._user_agents is not None:
            return {"User-Agent": self._user_agents.next()}
        return {"User-Agent": self._user_agent}

    async def fetch(self, target: Target) -> FetchResult:
        """
        Downloads the target's page.

        Args:
            target: The Target to fetch.

        Returns:
            FetchResult: The status code, timing information and the decoded body,
                or the error encountered.
        """
        logger.debug(f"Starting fetch for target: {target.id}")
        error: Optional[Exception] = None
        status_code: Optional[int] = None
        body: Optional[str] = None
        start_time: float = time.time()

        try:
            async with self._session.get(
                target.id, timeout=self._timeout, headers=self._headers()
            ) as response:
                status_code = response.status
                if not 200 <= status_code < 300:
                    raise UnexpectedStatusError(status_code)
                body = await response.text(errors="replace")

        except Exception as e:
            error = e
            logger.warning(f"Error fetching {target.id}: {e!r}")

        end_time: float = time.time()
        if error is None:
            logger.debug(
                f"Successfully fetched {target.id} in {(end_time - start_time):.3f}s with status {status_code}"
            )

        return FetchResult(
            target=target,
            error=error,
            start_time=start_time,
            end_time=end_time,
            status_code=status_code,
            body=body,
        )
