"""
Main entry point for the outage monitoring application.

This module initializes and runs the outage monitoring system. It sets up logging,
loads and validates the configuration, creates the HTTP session and the shared
components, runs the supervisor and handles graceful shutdown when the
application is terminated.
"""

import asyncio
import logging
import signal
import sys
from datetime import timedelta
from typing import Callable, List, Optional

import aiohttp

from outage_monitor.buffers.log_sink import AsyncLogSink
from outage_monitor.buffers.ring_buffer import RingBuffer
from outage_monitor.cache.resolution_cache import ResolutionCache
from outage_monitor.config import MonitoringContext, get_context
from outage_monitor.config.http_config import get_http_session
from outage_monitor.config.logging_config import configure_logging
from outage_monitor.config.targets import TargetsConfig, load_targets_file, validate_configuration
from outage_monitor.contracts import Notifier
from outage_monitor.domain import Event
from outage_monitor.fetcher.aiohttp_fetcher import AiohttpFetcher
from outage_monitor.fetcher.user_agents import UserAgentPool
from outage_monitor.matcher.selection import matcher_for
from outage_monitor.matcher.terms_matcher import TermsMatcher
from outage_monitor.monitor.target_monitor import TargetMonitor
from outage_monitor.notification.brevo_notifier import BrevoNotifier
from outage_monitor.notification.dispatcher import NotificationDispatcher
from outage_monitor.notification.gate import NotificationGate
from outage_monitor.notification.log_notifier import LogNotifier
from outage_monitor.state.state_store import StateStore
from outage_monitor.supervisor import MonitorSupervisor


def build_notifier(context: MonitoringContext, session: aiohttp.ClientSession) -> Notifier:
    """
    Returns the Brevo notifier when an API key is configured, the logging notifier otherwise.
    """
    if context.brevo_api_key:
        return BrevoNotifier(
            session=session,
            api_key=context.brevo_api_key,
            sender_email=context.sender_email,
            sender_name=context.sender_name,
        )
    logging.getLogger(__name__).warning("No Brevo API key configured, notifications are only logged.")
    return LogNotifier()


async def main(context: MonitoringContext, targets_config: TargetsConfig) -> None:
    """
    Set up and run the outage monitoring application.

    This function initializes all components of the monitoring system:
    1. Creates an HTTP session shared by the fetcher and the notifier
    2. Loads the persistent state
    3. Creates the gate, cache, buffers, dispatcher, fetcher and matcher
    4. Initializes and starts the supervisor
    5. Handles graceful shutdown when the application is terminated

    Args:
        context: Configuration context containing all application settings.
        targets_config: The targets and recipients to monitor for.
    """
    logger: logging.Logger = logging.getLogger(__name__)
    logger.info("Starting application...")

    # Initialize HTTP session for making requests
    http_session: aiohttp.ClientSession = get_http_session(context)
    logger.info("configured: http_session")

    store = StateStore.load(context.state_file)
    gate = NotificationGate(
        store,
        cooldown=timedelta(minutes=context.cooldown_minutes),
        hourly_cap=context.hourly_cap,
        per_target_daily_cap=context.per_target_daily_cap,
        error_daily_cap=context.error_daily_cap,
    )
    cache = ResolutionCache(ttl=timedelta(minutes=context.dns_ttl_minutes))
    events: RingBuffer[Event] = RingBuffer(context.event_buffer_size)
    log_sink = AsyncLogSink(max_lines=context.log_lines)

    dispatcher = NotificationDispatcher(
        notifier=build_notifier(context, http_session),
        gate=gate,
        store=store,
        recipients=targets_config.recipients,
        error_recipients=targets_config.error_recipients,
        dedup_max_age=timedelta(days=context.dedup_max_age_days),
        time_offset_hours=context.time_offset_hours,
        log_sink=log_sink,
    )

    user_agents: Optional[UserAgentPool] = None
    user_agent_refresh: Optional[asyncio.Task] = None
    if context.user_agent_rotation:
        user_agents = UserAgentPool(
            pool_size=context.user_agent_pool_size,
            fallback=context.user_agent,
            source_url=context.user_agent_source_url,
        )

        async def warn_operator(message: str) -> None:
            await dispatcher.notify_user_agent_failure(
                message, context.user_agent_source_url, context.user_agent
            )

        # Runs in the background; fetches use the fallback agent until it completes
        user_agent_refresh = asyncio.create_task(
            user_agents.refresh(http_session, on_failure=warn_operator), name="user-agent-refresh"
        )
    else:
        logger.info("User-Agent rotation disabled, using a static User-Agent")

    fetcher = AiohttpFetcher(
        session=http_session,
        max_timeout=context.max_timeout,
        user_agent=context.user_agent,
        user_agents=user_agents,
    )
    table_matcher = TermsMatcher()
    targets = targets_config.targets

    def build_monitors(
        shutdown: asyncio.Event, request_save: Callable[[], None]
    ) -> List[TargetMonitor]:
        return [
            TargetMonitor(
                target=target,
                index=index,
                target_count=len(targets),
                poll_interval=timedelta(seconds=context.poll_interval),
                fetcher=fetcher,
                matcher=matcher_for(target, table_matcher),
                dispatcher=dispatcher,
                cache=cache,
                events=events,
                log_sink=log_sink,
                shutdown=shutdown,
                request_save=request_save,
            )
            for index, target in enumerate(targets)
        ]

    supervisor = MonitorSupervisor(
        store=store,
        gate=gate,
        cache=cache,
        events=events,
        log_sink=log_sink,
        monitor_factory=build_monitors,
        state_save_interval=timedelta(seconds=context.state_save_interval),
        cache_cleanup_interval=timedelta(seconds=context.cache_cleanup_interval),
        shutdown_grace=timedelta(seconds=context.shutdown_grace),
    )

    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGTERM, supervisor.shutdown_event.set)
    except NotImplementedError:
        logger.debug("Signal handlers are not supported on this platform.")

    try:
        logger.info(f"Supervisor initialized. Monitoring {len(targets)} targets...")
        await supervisor.start()

    except asyncio.CancelledError:
        logger.info("Application shutdown requested.")
    finally:
        # Ensure all resources are properly closed during shutdown
        logger.info("Shutting down resources...")
        await supervisor.stop()
        if user_agent_refresh is not None and not user_agent_refresh.done():
            user_agent_refresh.cancel()
            await asyncio.gather(user_agent_refresh, return_exceptions=True)
        await cache.close()
        await http_session.close()
        logger.info("Shutdown complete.")


def run() -> None:
    """
    Console script entry point.
    """
    try:
        # Parse command-line arguments and environment variables
        outage_monitor_context: MonitoringContext = get_context()

        # Configure logging based on the context
        configure_logging(outage_monitor_context)

        targets_config = load_targets_file(outage_monitor_context.targets_file)
        validate_configuration(outage_monitor_context, targets_config)
    except (RuntimeError, ValueError) as e:
        logging.error(f"{e}")
        sys.exit(1)

    try:
        # Run the main application
        asyncio.run(main(outage_monitor_context, targets_config))
    except KeyboardInterrupt:
        logging.info("Shutdown initiated by user (Ctrl+C).")


if __name__ == "__main__":
    run()
