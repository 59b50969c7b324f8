"""
Fixed-capacity circular buffer.

Used to keep the most recent state-change events for the activity views. When
the buffer is full every insert overwrites the oldest slot, so it is an
approximate recency window rather than a durable log.
"""

import threading
from typing import Generic, List, Optional, TypeVar

T = TypeVar("T")


class RingBuffer(Generic[T]):
    """
    A thread-safe FIFO-overwrite buffer of at most `capacity` items.
    """

    def __init__(self, capacity: int) -> None:
        """
        Initializes an empty buffer.

        Args:
            capacity: Maximum number of items kept.

        Raises:
            ValueError: If capacity is not a positive integer.
        """
        if not isinstance(capacity, int) or capacity < 1:
            raise ValueError("capacity must be a positive integer.")

        self._capacity: int = capacity
        self._items: List[Optional[T]] = [None] * capacity
        self._head: int = 0
        self._count: int = 0
        self._lock = threading.Lock()

    @property
    def capacity(self) -> int:
        return self._capacity

    def __len__(self) -> int:
        with self._lock:
            return self._count

    def add(self, item: T) -> None:
        """
        Appends an item, overwriting the oldest one when the buffer is full.

        Args:
            item: The item to store.
        """
        with self._lock:
            if self._count < self._capacity:
                self._items[(self._head + self._count) % self._capacity] = item
                self._count += 1
            else:
                self._items[self._head] = item
                self._head = (self._head + 1) % self._capacity

    def get_all(self) -> List[T]:
        """
        Returns the stored items ordered from oldest to newest.

        Returns:
            List[T]: A new list with at most `capacity` items.
        """
        with self._lock:
            return [
                self._items[(self._head + i) % self._capacity]  # type: ignore[misc]
                for i in range(self._count)
            ]
