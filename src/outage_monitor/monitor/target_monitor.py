"""
Per-target polling loop and condition state machine.

Each TargetMonitor owns the runtime state of exactly one target. It waits for
its staggered start, then polls on a fixed period until the shared shutdown
event is set. Every poll resolves the hostname, fetches the page, classifies it
and drives the found / not-found / unreachable / recovered transitions, asking
the dispatcher to notify where a transition calls for it.
"""

import asyncio
import dataclasses
import logging
from datetime import timedelta
from typing import Callable
from urllib.parse import urlparse

from outage_monitor.buffers.log_sink import AsyncLogSink
from outage_monitor.buffers.ring_buffer import RingBuffer
from outage_monitor.cache.resolution_cache import ResolutionCache
from outage_monitor.contracts import ContentMatcher, TargetFetcher
from outage_monitor.domain import (
    CheckResult,
    Clock,
    Event,
    EventKind,
    FoundState,
    Target,
    TargetRuntimeState,
    utc_now,
)
from outage_monitor.errors import ResolutionError
from outage_monitor.notification.dispatcher import NotificationDispatcher
from outage_monitor.state.state_store import generate_fingerprint

# Module logger
logger = logging.getLogger(__name__)


def stagger_delay(poll_interval: timedelta, target_count: int, index: int) -> timedelta:
    """
    Computes the start offset of a target so polls spread evenly over one interval.

    Args:
        poll_interval: The polling period shared by all targets.
        target_count: Number of configured targets.
        index: Position of the target, in [0, target_count).

    Returns:
        timedelta: The delay before the first poll, in [0, poll_interval).
    """
    if target_count < 1:
        return timedelta(0)
    return (poll_interval / target_count) * index


class TargetMonitor:
    """
    Independent polling loop for one target.
    """

    def __init__(
        self,
        target: Target,
        index: int,
        target_count: int,
        poll_interval: timedelta,
        fetcher: TargetFetcher,
        matcher: ContentMatcher,
        dispatcher: NotificationDispatcher,
        cache: ResolutionCache,
        events: RingBuffer[Event],
        log_sink: AsyncLogSink,
        shutdown: asyncio.Event,
        request_save: Callable[[], None],
        clock: Clock = utc_now,
    ) -> None:
        """
        Initializes the monitor.

        Args:
            target: The target to poll.
            index: Position of the target among all targets, used for staggering.
            target_count: Number of configured targets.
            poll_interval: Period between two polls.
            fetcher: Performs the HTTP request.
            matcher: Classifies the fetched page.
            dispatcher: Sends notifications for transitions.
            cache: Resolution cache consulted before each fetch.
            events: Shared buffer of state-change events.
            log_sink: Shared operator activity log.
            shutdown: Set when the process is shutting down.
            request_save: Asks for an immediate fire-and-forget state save.
            clock: Source of the current time.

        Raises:
            ValueError: If the poll interval is not positive.
        """
        if poll_interval <= timedelta(0):
            raise ValueError("poll_interval must be positive.")
        self._target: Target = target
        self._poll_interval: timedelta = poll_interval
        self._stagger: timedelta = stagger_delay(poll_interval, target_count, index)
        self._fetcher: TargetFetcher = fetcher
        self._matcher: ContentMatcher = matcher
        self._dispatcher: NotificationDispatcher = dispatcher
        self._cache: ResolutionCache = cache
        self._events: RingBuffer[Event] = events
        self._log_sink: AsyncLogSink = log_sink
        self._shutdown: asyncio.Event = shutdown
        self._request_save: Callable[[], None] = request_save
        self._clock: Clock = clock
        self._state = TargetRuntimeState()

    @property
    def target(self) -> Target:
        return self._target

    @property
    def stagger(self) -> timedelta:
        return self._stagger

    @property
    def state(self) -> TargetRuntimeState:
        """A copy of the runtime state, safe to hand out for status reporting."""
        return dataclasses.replace(self._state)

    async def _wait_for_shutdown(self, delay: float) -> bool:
        """
        Sleeps for up to `delay` seconds, waking early on shutdown.

        Returns:
            bool: True if shutdown was requested.
        """
        if self._shutdown.is_set():
            return True
        try:
            await asyncio.wait_for(self._shutdown.wait(), timeout=max(0.0, delay))
        except asyncio.TimeoutError:
            return False
        return True

    async def run(self) -> None:
        """
        Runs the loop: staggered start, one poll, then one poll per tick until shutdown.
        Ticks missed while a poll was running are dropped.
        """
        name = self._target.display_name
        logger.info(f"Monitor starting for '{name}' (stagger: {self._stagger})")

        if await self._wait_for_shutdown(self._stagger.total_seconds()):
            return

        loop = asyncio.get_running_loop()
        interval = self._poll_interval.total_seconds()
        next_tick = loop.time() + interval
        await self.poll_once()

        while True:
            now = loop.time()
            while next_tick <= now:
                next_tick += interval
            if await self._wait_for_shutdown(next_tick - now):
                break
            await self.poll_once()

        logger.info(f"Stopping monitor for '{name}'")

    async def poll_once(self) -> None:
        """
        Runs one poll cycle. Unexpected errors are logged and never end the loop.
        """
        try:
            result = await self.check()
            await self.handle_result(result)
        except Exception as e:
            logger.exception(f"Poll failed for target {self._target.id} with error: {e}")
        finally:
            self._state.last_checked_at = self._clock()

    async def _resolve(self) -> None:
        hostname = urlparse(self._target.id).hostname
        if not hostname:
            return
        try:
            resolved = await self._cache.resolve(hostname)
        except ResolutionError as e:
            logger.warning(f"DNS resolution warning for {hostname}: {e} (will try HTTP anyway)")
            return
        if resolved.error is not None:
            logger.warning(
                f"DNS resolution warning for {hostname}: {resolved.error} (will try HTTP anyway)"
            )
        if resolved.changed:
            self._log_sink.add(f"DNS address changed for {self._target.display_name}")

    async def check(self) -> CheckResult:
        """
        Resolves, fetches and classifies the target.

        Returns:
            CheckResult: The observation, with the fetch error if the target was unreachable.
        """
        await self._resolve()
        fetched = await self._fetcher.fetch(self._target)
        latency = fetched.end_time - fetched.start_time

        if fetched.error is not None:
            return CheckResult(
                target_id=self._target.id,
                observed_at=self._clock(),
                found=False,
                fields={},
                latency=latency,
                error=fetched.error,
            )

        matched = self._matcher.match(fetched.body or "", self._target.terms)
        return CheckResult(
            target_id=self._target.id,
            observed_at=self._clock(),
            found=matched.found,
            fields=dict(matched.fields),
            latency=latency,
            error=None,
        )

    async def handle_result(self, result: CheckResult) -> None:
        """
        Applies one observation to the state machine.

        Args:
            result: The observation to apply.
        """
        target = self._target
        state = self._state
        now = result.observed_at

        if result.error is not None:
            logger.warning(f"Error checking {target.id}: {result.error}")
            self._log_sink.add(f"Error checking {target.id}: {result.error}")
            if not state.unreachable:
                state.unreachable = True
                state.down_since = now
                logger.warning(f"{target.display_name} is now unreachable")
                if await self._dispatcher.notify_error(target, result.error):
                    self._request_save()
            return

        if state.unreachable:
            downtime = now - (state.down_since or now)
            state.unreachable = False
            state.down_since = None
            logger.info(f"{target.display_name} is reachable again after {downtime}")
            self._log_sink.add(f"Connection restored for {target.display_name}")
            if await self._dispatcher.notify_recovery(target, downtime):
                self._request_save()

        previous: FoundState = state.found_state

        if result.found:
            fingerprint = generate_fingerprint(target.id, result.fields)
            if previous is FoundState.FOUND and fingerprint == state.last_fingerprint:
                logger.info(f"Still found on {target.id}: {list(target.terms)}")
                return

            state.found_state = FoundState.FOUND
            state.last_fingerprint = fingerprint
            if previous is FoundState.FOUND:
                logger.warning(f"FOUND: new incident on {target.id}: {result.fields}")
            else:
                logger.warning(f"FOUND: Terms found on {target.id}: {list(target.terms)}")
            self._log_sink.add(f"FOUND: Terms found on {target.id}: {', '.join(target.terms)}")
            self._events.add(
                Event(
                    timestamp=now,
                    kind=EventKind.FOUND,
                    target_id=target.id,
                    message=f"Search terms found: {', '.join(target.terms)}",
                )
            )
            if await self._dispatcher.notify_match(target, result):
                self._request_save()
            return

        state.found_state = FoundState.NOT_FOUND
        if previous is FoundState.FOUND:
            state.last_fingerprint = None
            logger.info(f"Terms no longer found on {target.id}")
            self._log_sink.add(f"Terms no longer found on {target.id}")
            self._events.add(
                Event(
                    timestamp=now,
                    kind=EventKind.NOT_FOUND,
                    target_id=target.id,
                    message="Search terms no longer found",
                )
            )
            self._request_save()
        else:
            logger.debug(f"No terms found on {target.id}")
