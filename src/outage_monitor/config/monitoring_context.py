"""
Configuration context for the outage monitoring system.

This module defines a data structure that holds all configuration parameters
for the monitoring system. It serves as a central point for passing configuration
throughout the application.
"""

from typing import NamedTuple


class MonitoringContext(NamedTuple):
    """
    A data structure containing all configuration parameters for the monitoring system.

    This class is immutable and is created by parsing command-line arguments
    and environment variables.

    Attributes:
        instance_id: Unique identifier for this monitor instance, injected in logs.
        logging_type: Type of logging configuration to use (dev, prod, or custom).
        logging_config_file: Path to custom logging configuration file (if logging_type is 'custom').
        targets_file: Path to the JSON file listing targets and recipients.
        state_file: Path to the persistent state file. Empty disables persistence.
        poll_interval: Seconds between two polls of the same target.
        max_timeout: Timeout in seconds of a single HTTP request.
        cooldown_minutes: Minimum minutes between two "found" alerts of a target.
        hourly_cap: Maximum "found" notifications across all targets per hour.
        per_target_daily_cap: Maximum "found" notifications per target per 24h.
        error_daily_cap: Maximum error/recovery notifications per target per 24h.
        dedup_max_age_days: Days during which a notified incident is not notified again.
        event_buffer_size: Capacity of the recent events buffer.
        log_lines: Capacity of the in-memory activity log.
        dns_ttl_minutes: Lifetime of a resolution cache entry.
        state_save_interval: Seconds between two periodic state saves.
        cache_cleanup_interval: Seconds between two resolution cache sweeps.
        shutdown_grace: Seconds to wait for in-flight polls on shutdown.
        time_offset_hours: Offset from UTC of the times shown in notifications.
        brevo_api_key: Brevo API key. Empty means notifications are only logged.
        sender_email: Sender address of the e-mails.
        sender_name: Sender display name of the e-mails.
        user_agent: Fallback User-Agent header, used alone when rotation is disabled.
        user_agent_rotation: Whether fetches rotate through a pool of popular User-Agents.
        user_agent_pool_size: Number of User-Agents kept in the rotation pool.
        user_agent_source_url: JSON list of popular User-Agents downloaded at startup.
    """

    instance_id: str
    logging_type: str
    logging_config_file: str
    targets_file: str
    state_file: str
    poll_interval: int
    max_timeout: int
    cooldown_minutes: int
    hourly_cap: int
    per_target_daily_cap: int
    error_daily_cap: int
    dedup_max_age_days: int
    event_buffer_size: int
    log_lines: int
    dns_ttl_minutes: int
    state_save_interval: int
    cache_cleanup_interval: int
    shutdown_grace: float
    time_offset_hours: int
    brevo_api_key: str
    sender_email: str
    sender_name: str
    user_agent: str
    user_agent_rotation: bool
    user_agent_pool_size: int
    user_agent_source_url: str
