"""
Targets file loading and startup validation.

The targets file is a JSON document:

    {
        "targets": [
            {"url": "https://...", "name": "Power", "search_terms": ["Земун", "Батајница"]},
            {"url": "https://...", "search_terms": ["Батајница"], "layout": "malfunctions"}
        ],
        "recipients": ["someone@example.com"],
        "error_recipients": ["ops@example.com"]
    }

The optional "layout" is one of table, notices, planned-works or malfunctions;
without it the layout is recognized from the URL.
"""

import json
import logging
from typing import Any, Dict, List, NamedTuple, Tuple

from outage_monitor.config.constants import (
    MAX_DAILY_CAP,
    MAX_DNS_TTL_MINUTES,
    MAX_HOURLY_CAP,
    MAX_MAX_TIMEOUT,
    MAX_TIME_OFFSET_HOURS,
    MAX_USER_AGENT_POOL_SIZE,
    MIN_MAX_TIMEOUT,
    MIN_POLL_INTERVAL,
    MIN_TIME_OFFSET_HOURS,
)
from outage_monitor.config.monitoring_context import MonitoringContext
from outage_monitor.domain import Target
from outage_monitor.matcher.selection import LAYOUTS

# Module logger
logger = logging.getLogger(__name__)


class TargetsConfig(NamedTuple):
    """
    The content of the targets file.

    Attributes:
        targets: The targets to monitor, in file order.
        recipients: Recipients of "found" notifications.
        error_recipients: Recipients of error and recovery notifications.
    """

    targets: Tuple[Target, ...]
    recipients: Tuple[str, ...]
    error_recipients: Tuple[str, ...]


def _string_list(value: Any, field: str) -> Tuple[str, ...]:
    if value is None:
        return ()
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ValueError(f"'{field}' must be a list of strings.")
    return tuple(value)


def parse_targets(data: Dict[str, Any]) -> TargetsConfig:
    """
    Builds a TargetsConfig from the decoded JSON document.

    Raises:
        ValueError: If the document does not have the expected shape.
    """
    if not isinstance(data, dict):
        raise ValueError("The targets file must contain a JSON object.")

    raw_targets = data.get("targets") or []
    if not isinstance(raw_targets, list):
        raise ValueError("'targets' must be a list.")

    targets: List[Target] = []
    for i, raw in enumerate(raw_targets):
        if not isinstance(raw, dict):
            raise ValueError(f"targets[{i}] must be an object.")
        targets.append(
            Target(
                id=str(raw.get("url") or "").strip(),
                name=str(raw.get("name") or "").strip(),
                terms=_string_list(raw.get("search_terms"), f"targets[{i}].search_terms"),
                layout=str(raw.get("layout") or "").strip().lower(),
            )
        )

    return TargetsConfig(
        targets=tuple(targets),
        recipients=_string_list(data.get("recipients"), "recipients"),
        error_recipients=_string_list(data.get("error_recipients"), "error_recipients"),
    )


def load_targets_file(path: str) -> TargetsConfig:
    """
    Reads and parses the targets file.

    Args:
        path: Location of the JSON targets file.

    Returns:
        TargetsConfig: The targets and recipients.

    Raises:
        RuntimeError: If the file is missing or is not valid JSON.
        ValueError: If the document does not have the expected shape.
    """
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError as err:
        raise RuntimeError(f"Targets file not found: {path}") from err
    except json.JSONDecodeError as err:
        raise RuntimeError(f"Invalid JSON format in targets file: {path}") from err

    config = parse_targets(data)
    logger.info(f"Loaded {len(config.targets)} targets from {path}")
    return config


def _is_email(address: str) -> bool:
    local, _, domain = address.partition("@")
    return bool(local) and bool(domain)


def validate_configuration(context: MonitoringContext, config: TargetsConfig) -> None:
    """
    Checks the whole configuration and reports every problem at once.

    Args:
        context: The parsed command-line/environment settings.
        config: The content of the targets file.

    Raises:
        ValueError: If anything is invalid, listing all the problems found.
    """
    errors: List[str] = []

    if context.poll_interval <= 0:
        errors.append("poll_interval must be greater than 0")
    elif context.poll_interval < MIN_POLL_INTERVAL:
        errors.append(f"poll_interval should be at least {MIN_POLL_INTERVAL} seconds")
    if not MIN_MAX_TIMEOUT <= context.max_timeout <= MAX_MAX_TIMEOUT:
        errors.append(f"max_timeout must be between {MIN_MAX_TIMEOUT} and {MAX_MAX_TIMEOUT} seconds")
    if context.cooldown_minutes < 0:
        errors.append("cooldown_minutes cannot be negative")
    if not 1 <= context.hourly_cap <= MAX_HOURLY_CAP:
        errors.append(f"hourly_cap must be between 1 and {MAX_HOURLY_CAP}")
    if not 1 <= context.per_target_daily_cap <= MAX_DAILY_CAP:
        errors.append(f"per_target_daily_cap must be between 1 and {MAX_DAILY_CAP}")
    if not 1 <= context.error_daily_cap <= MAX_DAILY_CAP:
        errors.append(f"error_daily_cap must be between 1 and {MAX_DAILY_CAP}")
    if context.dedup_max_age_days < 1:
        errors.append("dedup_max_age_days must be at least 1")
    if context.event_buffer_size < 1:
        errors.append("event_buffer_size must be at least 1")
    if context.log_lines < 1:
        errors.append("log_lines must be at least 1")
    if not 1 <= context.dns_ttl_minutes <= MAX_DNS_TTL_MINUTES:
        errors.append(f"dns_ttl_minutes must be between 1 and {MAX_DNS_TTL_MINUTES}")
    if context.state_save_interval <= 0:
        errors.append("state_save_interval must be greater than 0")
    if context.cache_cleanup_interval <= 0:
        errors.append("cache_cleanup_interval must be greater than 0")
    if context.shutdown_grace < 0:
        errors.append("shutdown_grace cannot be negative")
    if not MIN_TIME_OFFSET_HOURS <= context.time_offset_hours <= MAX_TIME_OFFSET_HOURS:
        errors.append(
            f"time_offset_hours must be between {MIN_TIME_OFFSET_HOURS} and +{MAX_TIME_OFFSET_HOURS}"
        )
    if not 1 <= context.user_agent_pool_size <= MAX_USER_AGENT_POOL_SIZE:
        errors.append(f"user_agent_pool_size must be between 1 and {MAX_USER_AGENT_POOL_SIZE}")

    if context.brevo_api_key and not _is_email(context.sender_email):
        errors.append("sender_email must be a valid email address when a Brevo API key is set")

    if not config.recipients:
        errors.append("at least one recipient email must be configured")
    for i, recipient in enumerate(config.recipients):
        if not _is_email(recipient):
            errors.append(f"recipients[{i}] must be a valid email address")
    for i, recipient in enumerate(config.error_recipients):
        if not _is_email(recipient):
            errors.append(f"error_recipients[{i}] must be a valid email address")

    if not config.targets:
        errors.append("at least one target must be configured")
    seen = set()
    for i, target in enumerate(config.targets):
        if not target.id:
            errors.append(f"targets[{i}].url cannot be empty")
        elif not target.id.startswith(("http://", "https://")):
            errors.append(f"targets[{i}].url must start with http:// or https://")
        if target.id in seen:
            errors.append(f"duplicate URL found: {target.id}")
        seen.add(target.id)
        if target.layout and target.layout not in LAYOUTS:
            errors.append(f"targets[{i}].layout must be one of: {', '.join(LAYOUTS)}")
        if not target.terms:
            errors.append(f"targets[{i}] must have at least one search term")
        for j, term in enumerate(target.terms):
            if not term.strip():
                errors.append(f"targets[{i}].search_terms[{j}] cannot be empty")

    if errors:
        raise ValueError("Configuration validation failed:\n  - " + "\n  - ".join(errors))
