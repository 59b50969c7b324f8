"""
Subjects and bodies of the notifications sent by the monitor.
"""

from datetime import datetime, timedelta
from typing import Mapping, Tuple

from outage_monitor.domain import Target

LOCAL_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"


def format_duration(duration: timedelta) -> str:
    """
    Formats a duration as e.g. "1d 2h 3m 4s", dropping leading zero units.
    """
    total = max(0, int(duration.total_seconds()))
    days, rest = divmod(total, 86400)
    hours, rest = divmod(rest, 3600)
    minutes, seconds = divmod(rest, 60)

    if days > 0:
        return f"{days}d {hours}h {minutes}m {seconds}s"
    if hours > 0:
        return f"{hours}h {minutes}m {seconds}s"
    if minutes > 0:
        return f"{minutes}m {seconds}s"
    return f"{seconds}s"


def format_local_time(moment: datetime, offset_hours: int = 0) -> str:
    """
    Formats a UTC timestamp shifted by the configured local offset.
    """
    return (moment + timedelta(hours=offset_hours)).strftime(LOCAL_TIME_FORMAT)


def format_addresses(addresses: str) -> str:
    """
    Puts every ";"-separated address entry on its own line.
    """
    entries = [entry.strip().rstrip(",") for entry in addresses.split(";")]
    return "\n".join(entry for entry in entries if entry)


def build_match_message(target: Target, fields: Mapping[str, str]) -> Tuple[str, str]:
    """
    Builds the notification announcing a newly found condition.

    Returns:
        Tuple[str, str]: The subject and the body.
    """
    date = fields.get("date", "")
    time_range = fields.get("time", "")
    address = fields.get("address", "")

    subject = f"Condition found on {target.display_name}"
    if date:
        subject = f"{subject} - {date}"

    lines = [f"Search terms found on {target.display_name}: {', '.join(target.terms)}", ""]
    if date:
        lines.append(f"Date: {date}")
    if time_range:
        lines.append(f"Time: {time_range}")
    if address:
        lines.extend(["", "Locations:", format_addresses(address)])
    lines.extend(["", f"Source: {target.id}"])
    return subject, "\n".join(lines)


def build_error_message(
    target: Target, error: BaseException, now: datetime, offset_hours: int = 0
) -> Tuple[str, str]:
    """
    Builds the notification sent when a target becomes unreachable.
    """
    subject = f"Connection error: {target.display_name}"
    body = (
        "Connection Error Detected\n\n"
        f"Name: {target.display_name}\n"
        f"URL: {target.id}\n\n"
        f"Error Details:\n{error}\n\n"
        f"Timestamp: {format_local_time(now, offset_hours)}\n\n"
        "This URL is currently unreachable. You will receive a recovery notification "
        "when the connection is restored."
    )
    return subject, body


def build_recovery_message(
    target: Target, downtime: timedelta, now: datetime, offset_hours: int = 0
) -> Tuple[str, str]:
    """
    Builds the notification sent when an unreachable target answers again.
    """
    subject = f"Connection restored: {target.display_name}"
    body = (
        "Connection Restored\n\n"
        f"Name: {target.display_name}\n"
        f"URL: {target.id}\n\n"
        f"Downtime Duration: {format_duration(downtime)}\n"
        f"Restored At: {format_local_time(now, offset_hours)}\n\n"
        "The URL is now reachable again and monitoring has resumed."
    )
    return subject, body


def build_user_agent_failure_message(
    error_message: str,
    source_url: str,
    fallback_agent: str,
    now: datetime,
    offset_hours: int = 0,
) -> Tuple[str, str]:
    """
    Builds the operator notice sent when the User-Agent list could not be downloaded.
    """
    subject = "User-Agent fetch failed"
    body = (
        "User-Agent Fetch Failure\n\n"
        "The monitor could not download the list of popular User-Agent strings "
        "and is using the fallback User-Agent.\n\n"
        f"Error Details:\n{error_message}\n\n"
        f"Source:\n{source_url}\n\n"
        f"Fallback User-Agent:\n{fallback_agent}\n\n"
        "Monitoring continues normally. The download is retried on the next restart.\n\n"
        f"Timestamp: {format_local_time(now, offset_hours)}"
    )
    return subject, body
