"""
Content matcher for outage notices published as free text.

Water utility pages do not use the table layout of the power outage pages.
Planned works are paragraphs such as "у времену од 08.00 до 16.00 сати ...
у насељима Батајница и Бусије", and malfunctions list the affected streets per
municipality under "Без воде су потрошачи", followed by the water tanker
schedule. The page matches with the same term rules as the table layout; only
the field extraction differs.
"""

import logging
import re
from typing import Dict, List, Optional, Sequence

from bs4 import BeautifulSoup, Comment

from outage_monitor.contracts import ContentMatcher
from outage_monitor.domain import MatchResult
from outage_monitor.matcher.terms_matcher import contains_term, matches_terms

# Module logger
logger = logging.getLogger(__name__)

SECTION_PLANNED_WORKS = "planned-works"
SECTION_MALFUNCTIONS = "malfunctions"

DATE_MARKER = "године"
YEAR_PATTERN = re.compile(r"\.20\d{2}")
# Lines around a term mention searched for the date.
DATE_WINDOW = 3

PLANNED_TIME_MARKERS = ("времену од", "сати")
MALFUNCTION_TIME_MARKERS = ("До", ":")

MALFUNCTION_SECTION_START = "Без воде су потрошачи"
MALFUNCTION_SECTION_END = "аутоцистерни"


def text_lines(soup: BeautifulSoup) -> List[str]:
    """
    Returns the non-empty text nodes of a document, stripped, in document order.
    """
    return [
        string.strip()
        for string in soup.find_all(string=True)
        if not isinstance(string, Comment) and string.strip()
    ]


def filter_addresses(line: str, term: str) -> str:
    """
    Keeps only the comma-separated entries of a line that mention a term.

    A leading "Municipality:" prefix is kept. A line without commas is kept
    whole when it mentions the term.

    Returns:
        str: The filtered line, or "" when nothing mentions the term.
    """
    if "," not in line:
        return line if contains_term(line, term) else ""

    prefix, separator, rest = line.partition(":")
    if not separator:
        rest = line
    kept = [entry.strip() for entry in rest.split(",") if contains_term(entry, term)]
    if not kept:
        return ""
    joined = ", ".join(kept)
    return f"{prefix.strip()}: {joined}" if separator else joined


class NoticeMatcher(ContentMatcher):
    """
    A ContentMatcher for free-text notice pages.

    The section decides where the time and addresses are read from: planned
    works take the whole lines mentioning the terms, malfunctions only the
    lines of the "without water" section. Without a section only the date is
    extracted.
    """

    def __init__(self, section: Optional[str] = None) -> None:
        if section not in (None, SECTION_PLANNED_WORKS, SECTION_MALFUNCTIONS):
            raise ValueError(f"Unknown notice section: {section}")
        self._section: Optional[str] = section

    @property
    def section(self) -> Optional[str]:
        return self._section

    def match(self, payload: str, criteria: Sequence[str]) -> MatchResult:
        soup = BeautifulSoup(payload, "html.parser")
        if not matches_terms(soup.get_text(" "), criteria):
            return MatchResult(found=False, fields={})

        lines = text_lines(soup)
        fields: Dict[str, str] = {
            "date": self._extract_date(lines, criteria),
            "time": self._extract_time(lines),
            "address": self._extract_address(lines, criteria),
        }
        logger.debug(f"Matched terms {list(criteria)} in notice: {fields}")
        return MatchResult(found=True, fields=fields)

    @staticmethod
    def _extract_date(lines: List[str], criteria: Sequence[str]) -> str:
        for i, line in enumerate(lines):
            if not any(contains_term(line, term) for term in criteria):
                continue
            for candidate in lines[max(0, i - DATE_WINDOW) : i + DATE_WINDOW + 1]:
                if DATE_MARKER in candidate or YEAR_PATTERN.search(candidate):
                    return candidate
        return ""

    def _extract_time(self, lines: List[str]) -> str:
        if self._section == SECTION_PLANNED_WORKS:
            markers = PLANNED_TIME_MARKERS
        elif self._section == SECTION_MALFUNCTIONS:
            markers = MALFUNCTION_TIME_MARKERS
        else:
            return ""
        return next((line for line in lines if all(marker in line for marker in markers)), "")

    def _extract_address(self, lines: List[str], criteria: Sequence[str]) -> str:
        if self._section == SECTION_PLANNED_WORKS:
            candidates = lines
        elif self._section == SECTION_MALFUNCTIONS:
            candidates = self._malfunction_section(lines)
        else:
            return ""

        addresses: List[str] = []
        for line in candidates:
            if self._section == SECTION_MALFUNCTIONS and len(criteria) == 2:
                # Only the streets of the specific settlement are relevant
                entry = filter_addresses(line, criteria[1])
            elif any(contains_term(line, term) for term in criteria):
                entry = line
            else:
                entry = ""
            if entry and entry not in addresses:
                addresses.append(entry)
        return "; ".join(addresses)

    @staticmethod
    def _malfunction_section(lines: List[str]) -> List[str]:
        section: List[str] = []
        inside = False
        for line in lines:
            if MALFUNCTION_SECTION_START in line:
                inside = True
                continue
            if inside and MALFUNCTION_SECTION_END in line:
                break
            if inside:
                section.append(line)
        return section
