"""
Configuration module for the outage monitoring system.

This module provides functionality to parse command-line arguments and environment
variables to create a configuration context for the monitoring system. It defines
default values and help text for all configurable parameters.
"""

import argparse
import os
from typing import Any, Optional, Sequence
from uuid import uuid4

from outage_monitor.config.constants import (
    DEFAULT_BREVO_API_KEY,
    DEFAULT_CACHE_CLEANUP_INTERVAL,
    DEFAULT_COOLDOWN_MINUTES,
    DEFAULT_DEDUP_MAX_AGE_DAYS,
    DEFAULT_DNS_TTL_MINUTES,
    DEFAULT_ERROR_DAILY_CAP,
    DEFAULT_EVENT_BUFFER_SIZE,
    DEFAULT_HOURLY_CAP,
    DEFAULT_INSTANCE_ID_PREFIX,
    DEFAULT_LOG_LINES,
    DEFAULT_LOGGING_CONFIG_FILE,
    DEFAULT_LOGGING_TYPE,
    DEFAULT_MAX_TIMEOUT,
    DEFAULT_PER_TARGET_DAILY_CAP,
    DEFAULT_POLL_INTERVAL,
    DEFAULT_SENDER_EMAIL,
    DEFAULT_SENDER_NAME,
    DEFAULT_SHUTDOWN_GRACE,
    DEFAULT_STATE_FILE,
    DEFAULT_STATE_SAVE_INTERVAL,
    DEFAULT_TARGETS_FILE,
    DEFAULT_TIME_OFFSET_HOURS,
    DEFAULT_USER_AGENT,
    DEFAULT_USER_AGENT_POOL_SIZE,
    DEFAULT_USER_AGENT_ROTATION,
    DEFAULT_USER_AGENT_SOURCE_URL,
)
from outage_monitor.config.monitoring_context import MonitoringContext

ENV_PREFIX = "OUTAGE_MONITOR_"


def _env(name: str, default: Any) -> Any:
    """
    Reads an OUTAGE_MONITOR_* environment variable, falling back to a default.
    """
    value = os.getenv(f"{ENV_PREFIX}{name}")
    return default if value is None else value


def get_context(argv: Optional[Sequence[str]] = None) -> MonitoringContext:
    """
    Parse command-line arguments and environment variables to create a configuration context.

    For each option, the command-line argument wins, then the OUTAGE_MONITOR_*
    environment variable, and finally the default from constants.py.

    Args:
        argv: Arguments to parse. Defaults to sys.argv.

    Returns:
        MonitoringContext: A configuration context object containing all parsed settings.
    """
    parser = argparse.ArgumentParser(
        description="Polls web pages for announced outages and notifies recipients."
    )

    parser.add_argument(
        "-iid",
        "--instance-id",
        type=str,
        default=_env("INSTANCE_ID", f"{DEFAULT_INSTANCE_ID_PREFIX}{uuid4()}"),
        help="Identifier of this monitor instance, added to every log record.\n"
        f"Read from {ENV_PREFIX}INSTANCE_ID if absent, "
        f"defaults to {DEFAULT_INSTANCE_ID_PREFIX}-uuid4().",
    )

    parser.add_argument(
        "-lt",
        "--logging-type",
        type=str,
        default=_env("LOGGING_TYPE", DEFAULT_LOGGING_TYPE),
        help="Specifies the logging configuration type to use.\n"
        "Allowed values: dev, prod, custom (case insensitive).\n"
        "For 'dev' and 'prod', system will use built-in configurations.\n"
        "For 'custom', the --logging-config-file argument is required.",
    )

    parser.add_argument(
        "-lcf",
        "--logging-config-file",
        type=str,
        default=_env("LOGGING_CONFIG_FILE", DEFAULT_LOGGING_CONFIG_FILE),
        help="Path to custom logging configuration file.\n"
        "Required when --logging-type is set to 'custom'.",
    )

    parser.add_argument(
        "-tf",
        "--targets-file",
        type=str,
        default=_env("TARGETS_FILE", DEFAULT_TARGETS_FILE),
        help="JSON file listing the targets and the notification recipients.\n"
        f"Read from {ENV_PREFIX}TARGETS_FILE if absent, defaults to {DEFAULT_TARGETS_FILE}.",
    )

    parser.add_argument(
        "-sf",
        "--state-file",
        type=str,
        default=_env("STATE_FILE", DEFAULT_STATE_FILE),
        help="Path of the persistent state file. An empty value disables persistence.\n"
        f"Read from {ENV_PREFIX}STATE_FILE if absent, defaults to {DEFAULT_STATE_FILE}.",
    )

    parser.add_argument(
        "-pi",
        "--poll-interval",
        type=int,
        default=int(_env("POLL_INTERVAL", DEFAULT_POLL_INTERVAL)),
        help=f"Seconds between two polls of a target (default {DEFAULT_POLL_INTERVAL}).",
    )

    parser.add_argument(
        "-mt",
        "--max-timeout",
        type=int,
        default=int(_env("MAX_TIMEOUT", DEFAULT_MAX_TIMEOUT)),
        help="Specifies the maximum timeout duration in seconds for HTTP requests.\n"
        f"Read from {ENV_PREFIX}MAX_TIMEOUT if absent, defaults to {DEFAULT_MAX_TIMEOUT}.",
    )

    parser.add_argument(
        "--cooldown-minutes",
        type=int,
        default=int(_env("COOLDOWN_MINUTES", DEFAULT_COOLDOWN_MINUTES)),
        help=f"Minutes between two alerts for the same target (default {DEFAULT_COOLDOWN_MINUTES}).",
    )

    parser.add_argument(
        "--hourly-cap",
        type=int,
        default=int(_env("HOURLY_CAP", DEFAULT_HOURLY_CAP)),
        help=f"Maximum notifications per hour across all targets (default {DEFAULT_HOURLY_CAP}).",
    )

    parser.add_argument(
        "--per-target-daily-cap",
        type=int,
        default=int(_env("PER_TARGET_DAILY_CAP", DEFAULT_PER_TARGET_DAILY_CAP)),
        help=f"Maximum notifications per target per day (default {DEFAULT_PER_TARGET_DAILY_CAP}).",
    )

    parser.add_argument(
        "--error-daily-cap",
        type=int,
        default=int(_env("ERROR_DAILY_CAP", DEFAULT_ERROR_DAILY_CAP)),
        help="Maximum error and recovery notifications per target per day "
        f"(default {DEFAULT_ERROR_DAILY_CAP}).",
    )

    parser.add_argument(
        "--dedup-max-age-days",
        type=int,
        default=int(_env("DEDUP_MAX_AGE_DAYS", DEFAULT_DEDUP_MAX_AGE_DAYS)),
        help="Days during which an already notified incident is not notified again "
        f"(default {DEFAULT_DEDUP_MAX_AGE_DAYS}).",
    )

    parser.add_argument(
        "--event-buffer-size",
        type=int,
        default=int(_env("EVENT_BUFFER_SIZE", DEFAULT_EVENT_BUFFER_SIZE)),
        help=f"Number of recent state-change events kept (default {DEFAULT_EVENT_BUFFER_SIZE}).",
    )

    parser.add_argument(
        "--log-lines",
        type=int,
        default=int(_env("LOG_LINES", DEFAULT_LOG_LINES)),
        help=f"Number of activity log lines kept in memory (default {DEFAULT_LOG_LINES}).",
    )

    parser.add_argument(
        "--dns-ttl-minutes",
        type=int,
        default=int(_env("DNS_TTL_MINUTES", DEFAULT_DNS_TTL_MINUTES)),
        help=f"Lifetime of a cached DNS resolution (default {DEFAULT_DNS_TTL_MINUTES}).",
    )

    parser.add_argument(
        "--state-save-interval",
        type=int,
        default=int(_env("STATE_SAVE_INTERVAL", DEFAULT_STATE_SAVE_INTERVAL)),
        help=f"Seconds between two periodic state saves (default {DEFAULT_STATE_SAVE_INTERVAL}).",
    )

    parser.add_argument(
        "--cache-cleanup-interval",
        type=int,
        default=int(_env("CACHE_CLEANUP_INTERVAL", DEFAULT_CACHE_CLEANUP_INTERVAL)),
        help="Seconds between two DNS cache cleanups "
        f"(default {DEFAULT_CACHE_CLEANUP_INTERVAL}).",
    )

    parser.add_argument(
        "--shutdown-grace",
        type=float,
        default=float(_env("SHUTDOWN_GRACE", DEFAULT_SHUTDOWN_GRACE)),
        help=f"Seconds to wait for in-flight polls on shutdown (default {DEFAULT_SHUTDOWN_GRACE}).",
    )

    parser.add_argument(
        "--time-offset-hours",
        type=int,
        default=int(_env("TIME_OFFSET_HOURS", DEFAULT_TIME_OFFSET_HOURS)),
        help="Offset from UTC of the times shown in notifications "
        f"(default {DEFAULT_TIME_OFFSET_HOURS}).",
    )

    parser.add_argument(
        "--brevo-api-key",
        type=str,
        default=_env("BREVO_API_KEY", DEFAULT_BREVO_API_KEY),
        help="Brevo API key. Without it notifications are only written to the log.",
    )

    parser.add_argument(
        "--sender-email",
        type=str,
        default=_env("SENDER_EMAIL", DEFAULT_SENDER_EMAIL),
        help="Sender address of the notification e-mails.",
    )

    parser.add_argument(
        "--sender-name",
        type=str,
        default=_env("SENDER_NAME", DEFAULT_SENDER_NAME),
        help=f"Sender name of the notification e-mails (default '{DEFAULT_SENDER_NAME}').",
    )

    parser.add_argument(
        "--user-agent",
        type=str,
        default=_env("USER_AGENT", DEFAULT_USER_AGENT),
        help="Fallback User-Agent header, used alone when rotation is disabled.",
    )

    parser.add_argument(
        "--user-agent-rotation",
        type=str,
        default=_env("USER_AGENT_ROTATION", DEFAULT_USER_AGENT_ROTATION),
        help="Rotate the User-Agent header through a pool of popular agents (true/false).\n"
        f"Read from {ENV_PREFIX}USER_AGENT_ROTATION if absent, defaults to {DEFAULT_USER_AGENT_ROTATION}.",
    )

    parser.add_argument(
        "--user-agent-pool-size",
        type=int,
        default=int(_env("USER_AGENT_POOL_SIZE", DEFAULT_USER_AGENT_POOL_SIZE)),
        help=f"Number of agents in the rotation pool (default {DEFAULT_USER_AGENT_POOL_SIZE}).",
    )

    parser.add_argument(
        "--user-agent-source-url",
        type=str,
        default=_env("USER_AGENT_SOURCE_URL", DEFAULT_USER_AGENT_SOURCE_URL),
        help="JSON array of popular User-Agent strings, most used first, fetched at startup.",
    )

    # Parse the command-line arguments
    args: Any = parser.parse_args(argv)

    # Parse the user_agent_rotation parameter
    user_agent_rotation = args.user_agent_rotation.lower() == "true"

    # Create and return a MonitoringContext with the parsed settings
    return MonitoringContext(
        instance_id=args.instance_id,
        logging_type=args.logging_type,
        logging_config_file=args.logging_config_file,
        targets_file=args.targets_file,
        state_file=args.state_file,
        poll_interval=args.poll_interval,
        max_timeout=args.max_timeout,
        cooldown_minutes=args.cooldown_minutes,
        hourly_cap=args.hourly_cap,
        per_target_daily_cap=args.per_target_daily_cap,
        error_daily_cap=args.error_daily_cap,
        dedup_max_age_days=args.dedup_max_age_days,
        event_buffer_size=args.event_buffer_size,
        log_lines=args.log_lines,
        dns_ttl_minutes=args.dns_ttl_minutes,
        state_save_interval=args.state_save_interval,
        cache_cleanup_interval=args.cache_cleanup_interval,
        shutdown_grace=args.shutdown_grace,
        time_offset_hours=args.time_offset_hours,
        brevo_api_key=args.brevo_api_key,
        sender_email=args.sender_email,
        sender_name=args.sender_name,
        user_agent=args.user_agent,
        user_agent_rotation=user_agent_rotation,
        user_agent_pool_size=args.user_agent_pool_size,
        user_agent_source_url=args.user_agent_source_url,
    )
