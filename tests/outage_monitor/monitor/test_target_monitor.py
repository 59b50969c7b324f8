"""
Unit tests for the TargetMonitor class.

The fetcher, matcher, notifier and resolution cache are mocks of their contracts;
the dispatcher, gate and state store are real in-memory instances, so the tests
exercise the whole path from an observation to a notification decision.

The tests follow the Arrange-Act-Assert (AAA) pattern.
"""

import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest
from aiohttp.abc import AbstractResolver

from outage_monitor.buffers.log_sink import AsyncLogSink
from outage_monitor.buffers.ring_buffer import RingBuffer
from outage_monitor.cache.resolution_cache import ResolutionCache
from outage_monitor.contracts import ContentMatcher, Notifier, TargetFetcher
from outage_monitor.domain import (
    EventKind,
    FetchResult,
    FoundState,
    MatchResult,
    ResolveResult,
)
from outage_monitor.errors import ResolutionError
from outage_monitor.monitor.target_monitor import TargetMonitor, stagger_delay
from outage_monitor.notification.dispatcher import NotificationDispatcher
from outage_monitor.notification.gate import NotificationGate
from outage_monitor.state.state_store import StateStore

FIELDS = {"date": "31.10.2025", "time": "08:00 - 16:00", "address": "Main street 1"}


class Harness:
    """
    Wires a TargetMonitor to mocked collaborators.
    """

    def __init__(self, target, clock, poll_interval=timedelta(minutes=5)) -> None:
        self.clock = clock
        self.target = target
        self.fetcher = AsyncMock(spec=TargetFetcher)
        self.matcher = MagicMock(spec=ContentMatcher)
        self.notifier = AsyncMock(spec=Notifier)
        self.cache = AsyncMock(spec=ResolutionCache)
        self.cache.resolve.return_value = ResolveResult("93.184.216.34", False, None)
        self.log_sink = MagicMock(spec=AsyncLogSink)
        self.events = RingBuffer(10)
        self.store = StateStore("", clock=clock)
        self.gate = NotificationGate(
            self.store,
            cooldown=timedelta(minutes=60),
            hourly_cap=10,
            per_target_daily_cap=5,
            error_daily_cap=3,
            clock=clock,
        )
        self.dispatcher = NotificationDispatcher(
            notifier=self.notifier,
            gate=self.gate,
            store=self.store,
            recipients=["a@example.com"],
            error_recipients=["ops@example.com"],
            clock=clock,
        )
        self.shutdown = asyncio.Event()
        self.request_save = MagicMock()
        self.monitor = TargetMonitor(
            target=target,
            index=0,
            target_count=1,
            poll_interval=poll_interval,
            fetcher=self.fetcher,
            matcher=self.matcher,
            dispatcher=self.dispatcher,
            cache=self.cache,
            events=self.events,
            log_sink=self.log_sink,
            shutdown=self.shutdown,
            request_save=self.request_save,
            clock=clock,
        )

    def page(self, found: bool, fields=None) -> None:
        self.fetcher.fetch.return_value = FetchResult(
            target=self.target,
            error=None,
            start_time=0.0,
            end_time=0.2,
            status_code=200,
            body="<html></html>",
        )
        self.matcher.match.return_value = MatchResult(
            found=found, fields=dict(fields if fields is not None else FIELDS) if found else {}
        )

    def unreachable(self, error: Exception) -> None:
        self.fetcher.fetch.return_value = FetchResult(
            target=self.target,
            error=error,
            start_time=0.0,
            end_time=1.0,
            status_code=None,
            body=None,
        )

    def subjects(self):
        return [call.args[1] for call in self.notifier.send.await_args_list]


@pytest.fixture
def harness(sample_target, clock) -> Harness:
    return Harness(sample_target, clock)


def test_stagger_delay_should_spread_targets_over_one_interval() -> None:
    """
    Tests that staggers are distinct and lie in [0, poll_interval).
    """
    # Arrange
    interval = timedelta(seconds=300)

    # Act
    delays = [stagger_delay(interval, 7, index) for index in range(7)]

    # Assert
    assert len(set(delays)) == 7
    assert delays[0] == timedelta(0)
    assert all(timedelta(0) <= delay < interval for delay in delays)


def test_init_should_reject_non_positive_poll_interval(sample_target, clock) -> None:
    """
    Tests that a zero poll interval is refused.
    """
    # Act & Assert
    with pytest.raises(ValueError):
        Harness(sample_target, clock, poll_interval=timedelta(0))


@pytest.mark.asyncio
async def test_repeated_identical_sightings_should_notify_once(harness) -> None:
    """
    Tests that five polls seeing the same incident produce one notification and one event.
    """
    # Arrange
    harness.page(found=True)

    # Act
    for _ in range(5):
        await harness.monitor.poll_once()
        harness.clock.advance(timedelta(minutes=5))

    # Assert
    assert harness.notifier.send.await_count == 1
    assert [event.kind for event in harness.events.get_all()] == [EventKind.FOUND]
    assert harness.monitor.state.found_state is FoundState.FOUND
    harness.request_save.assert_called_once()


@pytest.mark.asyncio
async def test_down_then_recover_should_send_one_error_and_one_recovery(harness) -> None:
    """
    Tests the unreachable/recovered transitions and the downtime they report.
    """
    # Arrange
    harness.unreachable(OSError("connection refused"))

    # Act
    await harness.monitor.poll_once()
    down_since = harness.monitor.state.down_since
    for _ in range(3):
        harness.clock.advance(timedelta(minutes=5))
        await harness.monitor.poll_once()
    harness.clock.advance(timedelta(minutes=5))
    harness.page(found=False)
    await harness.monitor.poll_once()

    # Assert
    assert harness.notifier.send.await_count == 2
    error_call, recovery_call = harness.notifier.send.await_args_list
    assert error_call.args[1].startswith("Connection error")
    assert recovery_call.args[1].startswith("Connection restored")
    assert "Downtime Duration: 20m 0s" in recovery_call.args[2]
    assert down_since is not None
    state = harness.monitor.state
    assert state.unreachable is False
    assert state.down_since is None
    assert harness.request_save.call_count == 2


@pytest.mark.asyncio
async def test_new_fingerprint_while_found_should_be_a_new_incident(harness) -> None:
    """
    Tests that different extracted fields while already found raise a new event and notification.
    """
    # Arrange
    harness.page(found=True)
    await harness.monitor.poll_once()
    harness.clock.advance(timedelta(hours=2))
    harness.page(found=True, fields=dict(FIELDS, date="01.11.2025"))

    # Act
    await harness.monitor.poll_once()

    # Assert
    assert harness.notifier.send.await_count == 2
    assert "01.11.2025" in harness.subjects()[1]
    assert [event.kind for event in harness.events.get_all()] == [EventKind.FOUND, EventKind.FOUND]


@pytest.mark.asyncio
async def test_found_again_after_clearing_should_not_renotify_same_incident(harness) -> None:
    """
    Tests that dedup suppresses a reappearing incident even though the state machine fires.
    """
    # Arrange
    harness.page(found=True)
    await harness.monitor.poll_once()
    harness.clock.advance(timedelta(hours=2))
    harness.page(found=False)
    await harness.monitor.poll_once()
    harness.clock.advance(timedelta(hours=2))
    harness.page(found=True)

    # Act
    await harness.monitor.poll_once()

    # Assert
    assert harness.notifier.send.await_count == 1
    assert [event.kind for event in harness.events.get_all()] == [
        EventKind.FOUND,
        EventKind.NOT_FOUND,
        EventKind.FOUND,
    ]


@pytest.mark.asyncio
async def test_cleared_condition_should_record_event_and_save_without_notifying(harness) -> None:
    """
    Tests the Found to NotFound transition.
    """
    # Arrange
    harness.page(found=True)
    await harness.monitor.poll_once()
    harness.request_save.reset_mock()
    harness.page(found=False)

    # Act
    await harness.monitor.poll_once()

    # Assert
    assert harness.monitor.state.found_state is FoundState.NOT_FOUND
    assert harness.events.get_all()[-1].kind is EventKind.NOT_FOUND
    assert harness.notifier.send.await_count == 1
    harness.request_save.assert_called_once()


@pytest.mark.asyncio
async def test_failed_notification_should_not_request_a_save(harness) -> None:
    """
    Tests that nothing is persisted when the notifier fails.
    """
    # Arrange
    harness.notifier.send.side_effect = RuntimeError("provider down")
    harness.page(found=True)

    # Act
    await harness.monitor.poll_once()

    # Assert
    harness.request_save.assert_not_called()
    assert harness.monitor.state.found_state is FoundState.FOUND


@pytest.mark.asyncio
async def test_poll_once_should_isolate_unexpected_errors(harness) -> None:
    """
    Tests that an exception inside a poll is logged and the poll completes.
    """
    # Arrange
    harness.page(found=True)
    harness.matcher.match.side_effect = RuntimeError("parser crashed")

    # Act
    await harness.monitor.poll_once()

    # Assert
    assert harness.monitor.state.last_checked_at == harness.clock()
    assert harness.monitor.state.found_state is FoundState.UNKNOWN


@pytest.mark.asyncio
async def test_check_should_fetch_even_when_resolution_fails(harness) -> None:
    """
    Tests that a resolution failure is logged and the fetch still happens.
    """
    # Arrange
    harness.cache.resolve.side_effect = ResolutionError("outages.example.com", "no such host")
    harness.page(found=False)

    # Act
    result = await harness.monitor.check()

    # Assert
    harness.cache.resolve.assert_awaited_once_with("outages.example.com")
    harness.fetcher.fetch.assert_awaited_once()
    assert result.error is None
    assert result.latency == pytest.approx(0.2)


@pytest.mark.asyncio
async def test_check_should_fetch_when_the_host_name_cannot_be_encoded(harness, clock) -> None:
    """
    Tests that a host name rejected by the IDNA codec does not skip the fetch.
    """
    # Arrange
    resolver = AsyncMock(spec=AbstractResolver)
    resolver.resolve.side_effect = UnicodeError(
        "encoding with 'idna' codec failed (label empty or too long)"
    )
    harness.monitor._cache = ResolutionCache(resolver=resolver, clock=clock)
    harness.page(found=False)

    # Act
    result = await harness.monitor.check()

    # Assert
    harness.fetcher.fetch.assert_awaited_once()
    assert result.error is None


@pytest.mark.asyncio
async def test_check_should_log_address_changes_to_the_sink(harness) -> None:
    """
    Tests that an address change reported by the cache reaches the activity log.
    """
    # Arrange
    harness.cache.resolve.return_value = ResolveResult("93.184.216.35", True, None)
    harness.page(found=False)

    # Act
    await harness.monitor.check()

    # Assert
    harness.log_sink.add.assert_called_once()
    assert "DNS address changed" in harness.log_sink.add.call_args.args[0]


@pytest.mark.asyncio
async def test_run_should_not_poll_when_shutdown_is_already_set(harness) -> None:
    """
    Tests that a monitor started after shutdown exits without polling.
    """
    # Arrange
    harness.shutdown.set()

    # Act
    await harness.monitor.run()

    # Assert
    harness.fetcher.fetch.assert_not_awaited()


@pytest.mark.asyncio
async def test_run_should_poll_periodically_until_shutdown(sample_target, clock) -> None:
    """
    Tests that the loop polls on every tick and ends promptly once shutdown is set.
    """
    # Arrange
    harness = Harness(sample_target, clock, poll_interval=timedelta(milliseconds=20))
    harness.page(found=False)
    task = asyncio.create_task(harness.monitor.run())

    # Act
    await asyncio.sleep(0.11)
    harness.shutdown.set()
    await asyncio.wait_for(task, timeout=1)

    # Assert
    assert harness.fetcher.fetch.await_count >= 3
