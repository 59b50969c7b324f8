"""
Supervisor of the outage monitoring process.

This module provides the MonitorSupervisor class, which owns the target monitors
and the shared components, runs the periodic maintenance (state persistence and
resolution cache cleanup), performs the graceful shutdown sequence and answers
status queries.
"""

import asyncio
import logging
from asyncio import Task
from datetime import timedelta
from typing import Any, Awaitable, Callable, Dict, List, Sequence, Set, Union

from .buffers.log_sink import AsyncLogSink
from .buffers.ring_buffer import RingBuffer
from .cache.resolution_cache import ResolutionCache
from .domain import Clock, Event, LogEntry, NotificationRecord, utc_now
from .errors import StateStoreError
from .monitor.target_monitor import TargetMonitor
from .notification.gate import NotificationGate
from .state.state_store import StateStore

# Module logger
logger = logging.getLogger(__name__)

DEFAULT_SHUTDOWN_GRACE = timedelta(seconds=2)
DEFAULT_STATE_SAVE_INTERVAL = timedelta(minutes=5)
DEFAULT_CACHE_CLEANUP_INTERVAL = timedelta(minutes=10)


class MonitorSupervisor:
    """
    Starts one TargetMonitor task per target plus two maintenance loops, and
    stops them all on shutdown.

    The monitors are created by the caller through `monitor_factory`, which gets
    the supervisor's shutdown event and save callback, so every monitor shares
    the same lifecycle.
    """

    def __init__(
        self,
        store: StateStore,
        gate: NotificationGate,
        cache: ResolutionCache,
        events: RingBuffer[Event],
        log_sink: AsyncLogSink,
        monitor_factory: Callable[[asyncio.Event, Callable[[], None]], Sequence[TargetMonitor]],
        state_save_interval: timedelta = DEFAULT_STATE_SAVE_INTERVAL,
        cache_cleanup_interval: timedelta = DEFAULT_CACHE_CLEANUP_INTERVAL,
        shutdown_grace: timedelta = DEFAULT_SHUTDOWN_GRACE,
        clock: Clock = utc_now,
    ) -> None:
        """
        Initializes a new MonitorSupervisor instance.

        Args:
            store: The persistent state store.
            gate: The notification gate, reported in status().
            cache: The resolution cache, swept periodically.
            events: The shared state-change event buffer.
            log_sink: The shared activity log.
            monitor_factory: Builds the target monitors from the shutdown event
                and the save callback.
            state_save_interval: Period of the state persistence loop.
            cache_cleanup_interval: Period of the cache cleanup loop.
            shutdown_grace: How long stop() waits for in-flight polls.
            clock: Source of the current time.
        """
        self._store: StateStore = store
        self._gate: NotificationGate = gate
        self._cache: ResolutionCache = cache
        self._events: RingBuffer[Event] = events
        self._log_sink: AsyncLogSink = log_sink
        self._state_save_interval: timedelta = state_save_interval
        self._cache_cleanup_interval: timedelta = cache_cleanup_interval
        self._shutdown_grace: timedelta = shutdown_grace
        self._clock: Clock = clock
        self._shutdown = asyncio.Event()
        self._monitors: List[TargetMonitor] = list(monitor_factory(self._shutdown, self.request_save))
        self._monitor_tasks: List[Task] = []
        self._maintenance_tasks: List[Task] = []
        self._pending_saves: Set[Task] = set()

    @property
    def monitors(self) -> List[TargetMonitor]:
        return list(self._monitors)

    @property
    def shutdown_event(self) -> asyncio.Event:
        return self._shutdown

    def _save(self) -> None:
        try:
            self._store.save()
        except StateStoreError as e:
            logger.warning(f"Failed to save state: {e}")
        else:
            logger.info(f"State saved to {self._store.path}")

    def request_save(self) -> None:
        """
        Schedules a state save in a worker thread without waiting for it.
        """
        if not self._store.path:
            return
        task = asyncio.create_task(asyncio.to_thread(self._save), name="state-save")
        self._pending_saves.add(task)
        task.add_done_callback(self._pending_saves.discard)

    async def _periodic(
        self,
        interval: timedelta,
        action: Callable[[], Union[Awaitable[Any], Any]],
        name: str,
    ) -> None:
        """
        Runs `action` every `interval` until shutdown.
        """
        periodic_logger = logging.getLogger(f"{__name__}.{name}")
        while not self._shutdown.is_set():
            try:
                await asyncio.wait_for(self._shutdown.wait(), timeout=interval.total_seconds())
                break
            except asyncio.TimeoutError:
                pass
            try:
                outcome = action()
                if asyncio.iscoroutine(outcome):
                    await outcome
            except Exception as e:
                periodic_logger.exception(f"Maintenance step failed: {e}")
        periodic_logger.info("Shutting down.")

    async def _save_state(self) -> None:
        await asyncio.to_thread(self._save)

    def _cleanup_cache(self) -> None:
        removed = self._cache.cleanup_expired()
        if removed:
            self._log_sink.add(f"Cleaned up {removed} expired DNS cache entries")

    async def start(self) -> None:
        """
        Starts the log sink, every target monitor and the maintenance loops, and
        runs until all monitor loops have ended.
        """
        logger.info(f"Starting outage monitor for {len(self._monitors)} targets.")
        self._log_sink.start()
        self._log_sink.add(f"Monitor started for {len(self._monitors)} targets")

        self._monitor_tasks = [
            asyncio.create_task(monitor.run(), name=f"monitor-{index}")
            for index, monitor in enumerate(self._monitors)
        ]
        self._maintenance_tasks = []
        if self._store.path:
            self._maintenance_tasks.append(
                asyncio.create_task(
                    self._periodic(self._state_save_interval, self._save_state, "StateSaver"),
                    name="state-saver",
                )
            )
        self._maintenance_tasks.append(
            asyncio.create_task(
                self._periodic(self._cache_cleanup_interval, self._cleanup_cache, "CacheCleaner"),
                name="cache-cleaner",
            )
        )

        results = await asyncio.gather(*self._monitor_tasks, return_exceptions=True)
        for monitor, result in zip(self._monitors, results):
            if isinstance(result, Exception):
                logger.error(f"Monitor for {monitor.target.id} ended with error: {result!r}")

    async def stop(self) -> None:
        """
        Gracefully stops the supervisor.

        1. Raise the shutdown signal
        2. Wait up to the grace period for in-flight polls, then cancel the rest
        3. Wait for pending saves and perform a final save
        4. Stop the log sink
        """
        logger.info("Initiating graceful shutdown...")
        self._shutdown.set()

        all_tasks = self._monitor_tasks + self._maintenance_tasks
        if all_tasks:
            _, pending = await asyncio.wait(all_tasks, timeout=self._shutdown_grace.total_seconds())
            if pending:
                logger.warning(f"Cancelling {len(pending)} tasks still running after the grace period")
                for task in pending:
                    task.cancel()
                await asyncio.gather(*pending, return_exceptions=True)

        if self._pending_saves:
            await asyncio.gather(*list(self._pending_saves), return_exceptions=True)

        if self._store.path:
            logger.info("Saving final state...")
            self._save()

        await self._log_sink.stop()
        logger.info("Shutdown complete")

    def status(self) -> Dict[str, Any]:
        """
        Returns a snapshot of the runtime state for display.
        """
        targets = []
        for monitor in self._monitors:
            state = monitor.state
            targets.append(
                {
                    "id": monitor.target.id,
                    "name": monitor.target.display_name,
                    "terms": list(monitor.target.terms),
                    "found_state": state.found_state.value,
                    "unreachable": state.unreachable,
                    "down_since": state.down_since.isoformat() if state.down_since else None,
                    "last_checked_at": (
                        state.last_checked_at.isoformat() if state.last_checked_at else None
                    ),
                }
            )
        return {
            "targets": targets,
            "state": self._store.stats(),
            "notifications_last_hour": len(self._gate.global_times()),
            "dns_cache": self._cache.info(),
            "dropped_log_lines": self._log_sink.dropped,
        }

    def recent_events(self, within: timedelta = timedelta(hours=24)) -> List[Event]:
        """
        Returns the buffered events that happened within the given window, newest first.
        """
        cutoff = self._clock() - within
        events = [event for event in self._events.get_all() if event.timestamp > cutoff]
        events.reverse()
        return events

    def recent_logs(self) -> List[LogEntry]:
        return self._log_sink.get_logs()

    def recent_notifications(self, limit: int = 20) -> List[NotificationRecord]:
        return self._store.recent_notifications(limit)
