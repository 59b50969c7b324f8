"""
Choice of the content matcher for each target.

A target may name its page layout in the targets file. Otherwise the layout is
recognized from the URL: pages of the Belgrade water utility (bvk.rs) are free
text notices, everything else uses the table layout of the power outage pages.
"""

from typing import Optional
from urllib.parse import urlparse

from outage_monitor.contracts import ContentMatcher
from outage_monitor.domain import Target
from outage_monitor.matcher.notice_matcher import (
    SECTION_MALFUNCTIONS,
    SECTION_PLANNED_WORKS,
    NoticeMatcher,
)
from outage_monitor.matcher.terms_matcher import TermsMatcher

LAYOUT_TABLE = "table"
LAYOUT_NOTICES = "notices"
LAYOUT_PLANNED_WORKS = SECTION_PLANNED_WORKS
LAYOUT_MALFUNCTIONS = SECTION_MALFUNCTIONS
LAYOUTS = (LAYOUT_TABLE, LAYOUT_NOTICES, LAYOUT_PLANNED_WORKS, LAYOUT_MALFUNCTIONS)

NOTICE_HOST = "bvk.rs"


def detect_layout(url: str) -> str:
    """
    Recognizes the page layout from a target URL.
    """
    hostname = urlparse(url).hostname or ""
    if hostname != NOTICE_HOST and not hostname.endswith(f".{NOTICE_HOST}"):
        return LAYOUT_TABLE
    if "planirani-radovi" in url:
        return LAYOUT_PLANNED_WORKS
    if "kvarovi" in url:
        return LAYOUT_MALFUNCTIONS
    return LAYOUT_NOTICES


def matcher_for(target: Target, table_matcher: Optional[TermsMatcher] = None) -> ContentMatcher:
    """
    Returns the matcher for a target's layout.

    Args:
        target: The target to match pages of.
        table_matcher: Shared matcher for the table layout. A new one is created when absent.

    Raises:
        ValueError: If the target names an unknown layout.
    """
    layout = target.layout or detect_layout(target.id)
    if layout == LAYOUT_TABLE:
        return table_matcher or TermsMatcher()
    if layout == LAYOUT_NOTICES:
        return NoticeMatcher()
    if layout in (LAYOUT_PLANNED_WORKS, LAYOUT_MALFUNCTIONS):
        return NoticeMatcher(section=layout)
    raise ValueError(f"Unknown page layout '{layout}' for {target.id}")
