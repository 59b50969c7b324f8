"""
Non-blocking in-memory activity log.

Monitor loops report operator-facing activity (found, recovered, DNS changes,
delivery failures) through this sink. Adding an entry never blocks the caller:
under overload entries are dropped instead of applying backpressure on the
polling hot path.
"""

import asyncio
import logging
import threading
from asyncio import Task
from typing import List, Optional

from outage_monitor.domain import Clock, LogEntry, utc_now

# Module logger
logger = logging.getLogger(__name__)


class AsyncLogSink:
    """
    Bounded queue drained by a background task into a capped line buffer.
    """

    def __init__(self, max_lines: int, queue_size: int = 1000, clock: Clock = utc_now) -> None:
        """
        Initializes the sink. The drain task is started by start().

        Args:
            max_lines: Number of most recent entries kept in memory.
            queue_size: Capacity of the intake queue before entries are dropped.
            clock: Source of timestamps for new entries.
        """
        if max_lines < 1:
            raise ValueError("max_lines must be a positive integer.")
        if queue_size < 1:
            raise ValueError("queue_size must be a positive integer.")

        self._max_lines: int = max_lines
        self._queue_size: int = queue_size
        self._queue: Optional["asyncio.Queue[LogEntry]"] = None
        self._buffer: List[LogEntry] = []
        self._lock = threading.Lock()
        self._clock: Clock = clock
        self._drain_task: Optional[Task] = None
        self._dropped: int = 0

    @property
    def dropped(self) -> int:
        """Number of entries dropped because the queue was full."""
        return self._dropped

    def start(self) -> None:
        """
        Starts the background drain task. Must be called from a running event loop.
        """
        if self._drain_task is not None and not self._drain_task.done():
            return
        if self._queue is None:
            self._queue = asyncio.Queue(maxsize=self._queue_size)
        self._drain_task = asyncio.create_task(self._drain(), name="log-sink-drain")

    def add(self, message: str) -> bool:
        """
        Enqueues a log line without blocking.

        Args:
            message: The text to record.

        Returns:
            bool: False when the entry was dropped.
        """
        if self._queue is None:
            self._queue = asyncio.Queue(maxsize=self._queue_size)
        try:
            self._queue.put_nowait(LogEntry(timestamp=self._clock(), message=message))
            return True
        except asyncio.QueueFull:
            self._dropped += 1
            return False

    async def _drain(self) -> None:
        """
        Moves queued entries into the buffer, trimming the oldest lines.
        """
        queue = self._queue
        if queue is None:
            raise RuntimeError("The log sink queue must exist before draining.")
        while True:
            try:
                entry = await queue.get()
                with self._lock:
                    self._buffer.append(entry)
                    if len(self._buffer) > self._max_lines:
                        del self._buffer[: len(self._buffer) - self._max_lines]
                queue.task_done()
            except asyncio.CancelledError:
                logger.debug("Log sink drain task stopping.")
                break

    def get_logs(self) -> List[LogEntry]:
        """
        Returns a snapshot copy of the buffered entries, oldest first.
        """
        with self._lock:
            return list(self._buffer)

    async def stop(self) -> None:
        """
        Halts the drain task. Entries still in the queue are discarded.
        """
        if self._drain_task is None:
            return
        self._drain_task.cancel()
        await asyncio.gather(self._drain_task, return_exceptions=True)
        self._drain_task = None
