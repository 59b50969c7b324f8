"""
Rotating pool of User-Agent strings.

At startup the pool downloads a public list of the most used User-Agent strings
(ordered by popularity), keeps a small mix of Chrome, Firefox and Safari agents
and hands out a random one of the most popular half for each request. When the
download fails the fixed fallback agent is used for the whole run.
"""

import asyncio
import json
import logging
import random
import threading
from typing import Awaitable, Callable, List, Optional, Sequence

import aiohttp

# Module logger
logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36"
)
USER_AGENT_SOURCE_URL = (
    "https://raw.githubusercontent.com/microlinkhq/top-user-agents/master/src/index.json"
)
DEFAULT_POOL_SIZE = 6
FETCH_TIMEOUT_SECONDS = 10

# How many agents of each family the pool prefers.
CHROME_SLOTS = 3
FIREFOX_SLOTS = 2
SAFARI_SLOTS = 1


def select_user_agents(agents: Sequence[str], count: int, rng: random.Random) -> List[str]:
    """
    Picks a diverse set of agents: up to three Chrome, two Firefox and one
    Safari, then fills the remaining slots with other agents, and shuffles.

    Args:
        agents: Candidate agents, most popular first.
        count: Size of the pool.
        rng: Random source used for the final shuffle.

    Returns:
        List[str]: The selected agents. All candidates when there are at most `count`.
    """
    if len(agents) <= count:
        return list(agents)

    chrome: List[str] = []
    firefox: List[str] = []
    safari: List[str] = []
    others: List[str] = []
    for agent in agents:
        lowered = agent.lower()
        if "chrome" in lowered and "edg" not in lowered:
            chrome.append(agent)
        elif "firefox" in lowered:
            firefox.append(agent)
        elif "safari" in lowered and "chrome" not in lowered:
            safari.append(agent)
        else:
            others.append(agent)

    selected = chrome[:CHROME_SLOTS] + firefox[:FIREFOX_SLOTS] + safari[:SAFARI_SLOTS]
    for agent in others:
        if len(selected) >= count:
            break
        selected.append(agent)

    rng.shuffle(selected)
    return selected


class UserAgentPool:
    """
    Hands out User-Agent strings for outgoing requests.

    The pool starts with the fallback agent only; refresh() replaces it with
    the downloaded selection. Safe to use from several tasks.
    """

    def __init__(
        self,
        pool_size: int = DEFAULT_POOL_SIZE,
        fallback: str = DEFAULT_USER_AGENT,
        source_url: str = USER_AGENT_SOURCE_URL,
        rng: Optional[random.Random] = None,
    ) -> None:
        """
        Args:
            pool_size: Number of agents kept after a successful download.
            fallback: Agent used until (or unless) a download succeeds.
            source_url: JSON array of agents, most popular first. Empty disables downloading.
            rng: Random source, injectable for tests.
        """
        self._pool_size: int = pool_size if pool_size >= 1 else DEFAULT_POOL_SIZE
        self._fallback: str = fallback
        self._source_url: str = source_url
        self._rng: random.Random = rng or random.Random()
        self._agents: List[str] = [fallback]
        self._lock = threading.Lock()

    @property
    def fallback(self) -> str:
        return self._fallback

    @property
    def source_url(self) -> str:
        return self._source_url

    @property
    def agents(self) -> List[str]:
        with self._lock:
            return list(self._agents)

    def next(self) -> str:
        """
        Returns a random agent from the most popular half of the pool.
        """
        with self._lock:
            if not self._agents:
                return self._fallback
            top_half = len(self._agents) // 2 or len(self._agents)
            return self._agents[self._rng.randrange(top_half)]

    async def refresh(
        self,
        session: aiohttp.ClientSession,
        on_failure: Optional[Callable[[str], Awaitable[None]]] = None,
    ) -> bool:
        """
        Downloads the agent list and rebuilds the pool.

        Args:
            session: The HTTP session used for the download.
            on_failure: Awaited with a description of the problem when the
                download fails, e.g. to warn the operator.

        Returns:
            bool: True if the pool was rebuilt, False if the fallback stays in use.
        """
        if not self._source_url:
            logger.info("No User-Agent source configured, using the fallback agent.")
            return False

        logger.info(f"Fetching recent User-Agent strings from {self._source_url}")
        try:
            agents = await self._download(session)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            message = f"Failed to fetch User-Agent strings: {e}"
            logger.warning(f"{message}. Using the fallback agent.")
            if on_failure is not None:
                await on_failure(message)
            return False

        selected = select_user_agents(agents, self._pool_size, self._rng)
        with self._lock:
            self._agents = selected
        logger.info(f"User-Agent pool ready with {len(selected)} agents (from {len(agents)})")
        return True

    async def _download(self, session: aiohttp.ClientSession) -> List[str]:
        async with session.get(
            self._source_url, timeout=aiohttp.ClientTimeout(total=FETCH_TIMEOUT_SECONDS)
        ) as response:
            if response.status != 200:
                raise ValueError(f"HTTP {response.status}")
            raw = await response.text()

        agents = json.loads(raw)
        if not isinstance(agents, list) or not all(isinstance(agent, str) for agent in agents):
            raise ValueError("expected a JSON array of strings")
        if not agents:
            raise ValueError("no User-Agent strings found in response")
        return agents
