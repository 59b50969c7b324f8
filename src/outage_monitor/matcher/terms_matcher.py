"""
Search-term content matcher for outage announcement pages.

A page matches when it mentions the target's search terms in any script. With
exactly two terms the first is read as a broad area (a municipality) and the
second as a specific one (a settlement): the broad term alone is not enough,
the specific term is. With one or three or more terms, all of them must appear.

When a page matches, the date, time range and address of the announcement are
extracted from the table row mentioning the terms. Those fields identify the
real-world incident and feed the dedup fingerprint.
"""

import logging
import re
from typing import Dict, List, Optional, Sequence

from bs4 import BeautifulSoup

from outage_monitor.contracts import ContentMatcher
from outage_monitor.domain import MatchResult
from outage_monitor.matcher.transliteration import search_variants

# Module logger
logger = logging.getLogger(__name__)

DEFAULT_DATE_LABEL = "Планирана искључења за датум:"

TIME_RANGE_PATTERN = re.compile(r"\d{1,2}:\d{2}\s*[-–]\s*\d{1,2}:\d{2}")
DATE_PATTERN = re.compile(r"\d{1,2}\.\d{1,2}\.(?:\s*/\s*\d{1,2}\.\d{1,2}\.)?\s*\d{4}\.?")

# Column of the address in the announcement tables.
ADDRESS_COLUMN = 2


def contains_term(text: str, term: str) -> bool:
    """
    Checks whether any script variant of a term occurs in a text, ignoring case.
    """
    lowered = text.lower()
    return any(variant.lower() in lowered for variant in search_variants(term))


def matches_terms(text: str, terms: Sequence[str]) -> bool:
    """
    Applies the broad/specific rule for two terms and the all-terms rule otherwise.

    Args:
        text: The text to search.
        terms: The ordered search terms.

    Returns:
        bool: True if the text matches.
    """
    if not terms:
        return False
    if len(terms) == 2:
        return contains_term(text, terms[1])
    return all(contains_term(text, term) for term in terms)


def is_time_range(text: str) -> bool:
    """Checks for a time range such as "08:00 - 16:00"."""
    return bool(TIME_RANGE_PATTERN.search(text.strip()))


class TermsMatcher(ContentMatcher):
    """
    A ContentMatcher driven by the target's search terms.
    """

    def __init__(self, date_label: Optional[str] = DEFAULT_DATE_LABEL) -> None:
        """
        Args:
            date_label: Text preceding the announcement date on the page. When it
                is absent, the first date-looking text is used instead.
        """
        self._date_label: Optional[str] = date_label

    def match(self, payload: str, criteria: Sequence[str]) -> MatchResult:
        soup = BeautifulSoup(payload, "html.parser")
        text = soup.get_text(" ")

        if not matches_terms(text, criteria):
            return MatchResult(found=False, fields={})

        fields: Dict[str, str] = {"date": self._extract_date(soup, text)}
        fields.update(self._extract_row_fields(soup, criteria))
        logger.debug(f"Matched terms {list(criteria)}: {fields}")
        return MatchResult(found=True, fields=fields)

    def _extract_date(self, soup: BeautifulSoup, text: str) -> str:
        if self._date_label:
            for string in soup.find_all(string=True):
                stripped = string.strip()
                if self._date_label in stripped:
                    return stripped.split(self._date_label, 1)[1].strip()

        found = DATE_PATTERN.search(text)
        return found.group(0).strip() if found else ""

    @staticmethod
    def _row_cells(row) -> List[str]:
        return [cell.get_text(strip=True) for cell in row.find_all(["td", "th"])]

    def _extract_row_fields(self, soup: BeautifulSoup, criteria: Sequence[str]) -> Dict[str, str]:
        """
        Returns the time range and address of the first table row mentioning the terms.
        """
        for table in soup.find_all("table"):
            for row in table.find_all("tr"):
                cells = self._row_cells(row)
                if len(cells) <= ADDRESS_COLUMN:
                    continue
                if not matches_terms(" ".join(cells), criteria):
                    continue
                time_range = next((cell for cell in cells if is_time_range(cell)), "")
                return {"time": time_range, "address": cells[ADDRESS_COLUMN]}
        return {"time": "", "address": ""}
