"""
Shared fixtures for the outage monitor tests.
"""

from datetime import datetime, timedelta, timezone

import pytest

from outage_monitor.domain import Target


class FakeClock:
    """
    A manually advanced clock, usable wherever a Clock callable is expected.
    """

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now = self.now + delta


@pytest.fixture
def clock() -> FakeClock:
    """
    Creates a fake clock set to a fixed UTC instant.

    Returns:
        FakeClock: The clock.
    """
    return FakeClock(datetime(2025, 10, 31, 8, 0, tzinfo=timezone.utc))


@pytest.fixture
def sample_target() -> Target:
    """
    Creates a sample Target object for testing.

    Returns:
        Target: A target with two search terms.
    """
    return Target(
        id="https://outages.example.com/planned",
        name="Power",
        terms=("Земун", "Батајница"),
    )
