"""
Unit tests for the MonitorSupervisor class.

This module contains tests ensuring that the supervisor starts the monitors and
maintenance loops, persists state, and shuts everything down gracefully.

The tests follow the Arrange-Act-Assert (AAA) pattern and use mocks for the
target monitors.
"""

import asyncio
import json
from datetime import timedelta
from unittest.mock import MagicMock, PropertyMock

import pytest

from outage_monitor.buffers.log_sink import AsyncLogSink
from outage_monitor.buffers.ring_buffer import RingBuffer
from outage_monitor.cache.resolution_cache import ResolutionCache
from outage_monitor.domain import AlertType, Event, EventKind, TargetRuntimeState
from outage_monitor.monitor.target_monitor import TargetMonitor
from outage_monitor.notification.gate import NotificationGate
from outage_monitor.state.state_store import StateStore
from outage_monitor.supervisor import MonitorSupervisor


def _monitor_until_shutdown(target, shutdown: asyncio.Event) -> MagicMock:
    monitor = MagicMock(spec=TargetMonitor)
    type(monitor).target = PropertyMock(return_value=target)
    type(monitor).state = PropertyMock(return_value=TargetRuntimeState())

    async def run() -> None:
        await shutdown.wait()

    monitor.run.side_effect = run
    return monitor


def _supervisor(store, clock, factory, **overrides) -> MonitorSupervisor:
    gate = NotificationGate(
        store,
        cooldown=timedelta(minutes=60),
        hourly_cap=10,
        per_target_daily_cap=5,
        clock=clock,
    )
    options = dict(
        state_save_interval=timedelta(minutes=5),
        cache_cleanup_interval=timedelta(minutes=10),
        shutdown_grace=timedelta(seconds=0.2),
        events=RingBuffer(10),
    )
    options.update(overrides)
    return MonitorSupervisor(
        store=store,
        gate=gate,
        cache=ResolutionCache(clock=clock),
        log_sink=AsyncLogSink(max_lines=10, clock=clock),
        monitor_factory=factory,
        clock=clock,
        **options,
    )


@pytest.mark.asyncio
async def test_start_and_stop_should_run_monitors_and_save_final_state(
    tmp_path, clock, sample_target
) -> None:
    """
    Tests that every monitor is started and stop() ends them and writes the state file.
    """
    # Arrange
    path = tmp_path / "state.json"
    store = StateStore(str(path), clock=clock)
    store.record_notification(sample_target.id, AlertType.FOUND)
    monitors = []

    def factory(shutdown, request_save):
        monitors.extend(_monitor_until_shutdown(sample_target, shutdown) for _ in range(2))
        return monitors

    supervisor = _supervisor(store, clock, factory)

    # Act
    running = asyncio.create_task(supervisor.start())
    await asyncio.sleep(0.05)
    await supervisor.stop()
    await asyncio.wait_for(running, timeout=1)

    # Assert
    assert all(monitor.run.await_count == 1 for monitor in monitors)
    saved = json.loads(path.read_text(encoding="utf-8"))
    assert sample_target.id in saved["match_notifications"]


@pytest.mark.asyncio
async def test_stop_should_cancel_monitors_exceeding_the_grace_period(clock, sample_target) -> None:
    """
    Tests that a poll ignoring shutdown is cancelled after the grace period.
    """
    # Arrange
    cancelled = asyncio.Event()

    async def stuck() -> None:
        try:
            await asyncio.sleep(60)
        except asyncio.CancelledError:
            cancelled.set()
            raise

    def factory(shutdown, request_save):
        monitor = _monitor_until_shutdown(sample_target, shutdown)
        monitor.run.side_effect = stuck
        return [monitor]

    supervisor = _supervisor(StateStore("", clock=clock), clock, factory)
    running = asyncio.create_task(supervisor.start())
    await asyncio.sleep(0.05)

    # Act
    await asyncio.wait_for(supervisor.stop(), timeout=2)
    await asyncio.wait_for(running, timeout=1)

    # Assert
    assert cancelled.is_set()


@pytest.mark.asyncio
async def test_request_save_should_write_state_in_the_background(tmp_path, clock) -> None:
    """
    Tests that a requested save lands on disk without the caller awaiting it.
    """
    # Arrange
    path = tmp_path / "state.json"
    supervisor = _supervisor(StateStore(str(path), clock=clock), clock, lambda s, r: [])

    # Act
    supervisor.request_save()
    for _ in range(100):
        if path.exists():
            break
        await asyncio.sleep(0.01)

    # Assert
    assert path.exists()


@pytest.mark.asyncio
async def test_periodic_maintenance_should_save_state(tmp_path, clock, sample_target) -> None:
    """
    Tests that the state saver loop writes the state file on its period.
    """
    # Arrange
    path = tmp_path / "state.json"

    def factory(shutdown, request_save):
        return [_monitor_until_shutdown(sample_target, shutdown)]

    supervisor = _supervisor(
        StateStore(str(path), clock=clock),
        clock,
        factory,
        state_save_interval=timedelta(milliseconds=20),
    )
    running = asyncio.create_task(supervisor.start())

    # Act
    for _ in range(100):
        if path.exists():
            break
        await asyncio.sleep(0.01)
    exists_before_stop = path.exists()
    await supervisor.stop()
    await asyncio.wait_for(running, timeout=1)

    # Assert
    assert exists_before_stop is True


@pytest.mark.asyncio
async def test_status_and_recent_views(clock, sample_target) -> None:
    """
    Tests the reporting helpers of the supervisor.
    """
    # Arrange
    store = StateStore("", clock=clock)

    def factory(shutdown, request_save):
        return [_monitor_until_shutdown(sample_target, shutdown)]

    events: RingBuffer[Event] = RingBuffer(10)
    supervisor = _supervisor(store, clock, factory, events=events)
    events.add(Event(clock() - timedelta(hours=30), EventKind.FOUND, sample_target.id, "old"))
    events.add(Event(clock() - timedelta(hours=2), EventKind.FOUND, sample_target.id, "a"))
    events.add(Event(clock() - timedelta(hours=1), EventKind.NOT_FOUND, sample_target.id, "b"))

    # Act
    status = supervisor.status()
    recent = supervisor.recent_events()

    # Assert
    assert status["targets"][0]["id"] == sample_target.id
    assert status["targets"][0]["found_state"] == "unknown"
    assert status["state"]["seen_matches_count"] == 0
    assert status["dns_cache"]["total_entries"] == 0
    assert [event.message for event in recent] == ["b", "a"]
    assert supervisor.recent_notifications() == []
    assert supervisor.recent_logs() == []
