"""
HTTP client configuration module for the outage monitoring system.

This module creates the aiohttp client session shared by the fetcher and the
e-mail notifier.
"""

import logging

import aiohttp

from outage_monitor.config import MonitoringContext

# Module logger
logger = logging.getLogger(__name__)


def get_http_session(context: MonitoringContext) -> aiohttp.ClientSession:
    """
    Create an HTTP client session based on the provided configuration.

    Using a shared session is recommended for performance reasons. Must be
    called from a running event loop.

    Args:
        context: Configuration context containing HTTP client settings.

    Returns:
        aiohttp.ClientSession: A session whose requests carry the configured
            User-Agent and time out after the configured maximum.
    """
    logger.debug(f"Creating HTTP session (timeout {context.max_timeout}s)")
    return aiohttp.ClientSession(
        headers={"User-Agent": context.user_agent},
        timeout=aiohttp.ClientTimeout(total=context.max_timeout),
    )
