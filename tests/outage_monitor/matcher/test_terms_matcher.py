"""
Unit tests for the TermsMatcher class and its matching rules.

The tests follow the Arrange-Act-Assert (AAA) pattern.
"""

import pytest

from outage_monitor.matcher.terms_matcher import (
    TermsMatcher,
    contains_term,
    is_time_range,
    matches_terms,
)

PAGE = """
<html><body>
  <p>Планирана искључења за датум: 31.10.2025.</p>
  <table>
    <tr><th>Општина</th><th>Време</th><th>Улице</th></tr>
    <tr><td>Нови Београд</td><td>09:00 - 12:00</td><td>Булевар 1</td></tr>
    <tr><td>Земун</td><td>08:00 - 16:00</td><td>Насеље Батајница: Главна 5, Пазовачки пут 2;</td></tr>
  </table>
</body></html>
"""


def test_contains_term_should_match_across_scripts_and_case() -> None:
    """
    Tests that a Latin term is found in Cyrillic text regardless of case.
    """
    # Act & Assert
    assert contains_term("НАСЕЉЕ БАТАЈНИЦА", "batajnica") is True
    assert contains_term("Naselje Batajnica", "Батајница") is True
    assert contains_term("Сурчин", "Batajnica") is False


@pytest.mark.parametrize(
    "text, expected",
    [
        ("Земун и Батајница", True),
        ("Батајница", True),
        ("Земун", False),
        ("Сурчин", False),
    ],
)
def test_matches_terms_should_apply_broad_specific_rule_for_two_terms(text, expected) -> None:
    """
    Tests that with two terms only the specific (second) term decides.
    """
    # Act & Assert
    assert matches_terms(text, ["Земун", "Батајница"]) is expected


def test_matches_terms_should_require_all_terms_otherwise() -> None:
    """
    Tests that one or three terms all have to be present.
    """
    # Act & Assert
    assert matches_terms("Земун Батајница Угриновци", ["Земун", "Батајница", "Угриновци"]) is True
    assert matches_terms("Земун Батајница", ["Земун", "Батајница", "Угриновци"]) is False
    assert matches_terms("Земун", ["Zemun"]) is True
    assert matches_terms("Земун", []) is False


def test_is_time_range_should_not_mistake_house_numbers_for_times() -> None:
    """
    Tests the time range detection.
    """
    # Act & Assert
    assert is_time_range("08:00 - 16:00") is True
    assert is_time_range("9:30–14:00") is True
    assert is_time_range("УЛИЦА: 2-14А") is False


def test_match_should_extract_date_time_and_address_from_the_matching_row() -> None:
    """
    Tests that a matching page yields the fields of the row mentioning the terms.
    """
    # Arrange
    matcher = TermsMatcher()

    # Act
    result = matcher.match(PAGE, ["Земун", "Batajnica"])

    # Assert
    assert result.found is True
    assert result.fields == {
        "date": "31.10.2025.",
        "time": "08:00 - 16:00",
        "address": "Насеље Батајница: Главна 5, Пазовачки пут 2;",
    }


def test_match_should_not_match_on_the_broad_term_alone() -> None:
    """
    Tests that a page only mentioning the municipality is not a match.
    """
    # Arrange
    matcher = TermsMatcher()

    # Act
    result = matcher.match(PAGE, ["Земун", "Угриновци"])

    # Assert
    assert result.found is False
    assert result.fields == {}


def test_match_should_fall_back_to_a_date_pattern_without_the_label() -> None:
    """
    Tests that the first date-looking text is used when the label is missing.
    """
    # Arrange
    matcher = TermsMatcher(date_label=None)
    page = "<div>Радови 01.11.2025. у насељу Батајница</div>"

    # Act
    result = matcher.match(page, ["Batajnica"])

    # Assert
    assert result.found is True
    assert result.fields == {"date": "01.11.2025.", "time": "", "address": ""}


def test_match_should_be_deterministic() -> None:
    """
    Tests that the same payload and criteria always give the same result.
    """
    # Arrange
    matcher = TermsMatcher()

    # Act & Assert
    assert matcher.match(PAGE, ["Батајница"]) == matcher.match(PAGE, ["Батајница"])
