"""
Unit tests for the RingBuffer class.

The tests follow the Arrange-Act-Assert (AAA) pattern.
"""

import threading

import pytest

from outage_monitor.buffers.ring_buffer import RingBuffer


@pytest.mark.parametrize("capacity", [0, -1])
def test_init_should_reject_non_positive_capacity(capacity: int) -> None:
    """
    Tests that a buffer cannot be created without room for at least one item.
    """
    # Act & Assert
    with pytest.raises(ValueError):
        RingBuffer(capacity)


def test_get_all_should_return_items_oldest_first_before_wrapping() -> None:
    """
    Tests that a partially filled buffer returns its items in insertion order.
    """
    # Arrange
    buffer: RingBuffer[int] = RingBuffer(5)

    # Act
    for i in range(3):
        buffer.add(i)

    # Assert
    assert buffer.get_all() == [0, 1, 2]
    assert len(buffer) == 3


def test_add_should_overwrite_oldest_item_when_full() -> None:
    """
    Tests that once full, every insert drops the oldest item.
    """
    # Arrange
    buffer: RingBuffer[int] = RingBuffer(3)

    # Act
    for i in range(7):
        buffer.add(i)

    # Assert
    assert buffer.get_all() == [4, 5, 6]
    assert len(buffer) == buffer.capacity == 3


def test_get_all_should_return_a_copy() -> None:
    """
    Tests that mutating the returned list does not affect the buffer.
    """
    # Arrange
    buffer: RingBuffer[str] = RingBuffer(2)
    buffer.add("a")

    # Act
    snapshot = buffer.get_all()
    snapshot.append("b")

    # Assert
    assert buffer.get_all() == ["a"]


def test_add_should_be_safe_from_multiple_threads() -> None:
    """
    Tests that concurrent writers never lose the size invariant.
    """
    # Arrange
    buffer: RingBuffer[int] = RingBuffer(50)

    def writer(offset: int) -> None:
        for i in range(200):
            buffer.add(offset + i)

    threads = [threading.Thread(target=writer, args=(n * 1000,)) for n in range(4)]

    # Act
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    # Assert
    assert len(buffer) == 50
    assert len(buffer.get_all()) == 50
