"""
Unit tests for the NoticeMatcher class and its address filtering.

The tests follow the Arrange-Act-Assert (AAA) pattern.
"""

import pytest

from outage_monitor.matcher.notice_matcher import (
    SECTION_MALFUNCTIONS,
    SECTION_PLANNED_WORKS,
    NoticeMatcher,
    filter_addresses,
)

TERMS = ("Земун", "Батајница")

PLANNED_WORKS_PAGE = """
<html><body>
  <h2>Планирани радови</h2>
  <p>Среда, 31. октобар 2025. године</p>
  <p>Због радова на мрежи у времену од 08.00 до 16.00 сати</p>
  <p>без воде ће бити потрошачи у насељима Батајница и Бусије.</p>
  <!-- Батајница -->
  <p>Чукарица: Баново брдо</p>
</body></html>
"""

MALFUNCTIONS_PAGE = """
<html><body>
  <p>Кварови на мрежи 31.10.2025.</p>
  <p>До 14:00 часова</p>
  <p>Без воде су потрошачи</p>
  <p>Земун: Батајница Главна 5, Угриновачка 10, Батајнички друм 3</p>
  <p>Нови Београд: Булевар 1</p>
  <p>Распоред аутоцистерни: Батајница, Пазовачки пут</p>
</body></html>
"""


def test_match_should_extract_planned_works_fields() -> None:
    """
    Tests that a planned works notice yields its date, time and the paragraph naming the settlement.
    """
    # Arrange
    matcher = NoticeMatcher(section=SECTION_PLANNED_WORKS)

    # Act
    result = matcher.match(PLANNED_WORKS_PAGE, TERMS)

    # Assert
    assert result.found is True
    assert result.fields == {
        "date": "Среда, 31. октобар 2025. године",
        "time": "Због радова на мрежи у времену од 08.00 до 16.00 сати",
        "address": "без воде ће бити потрошачи у насељима Батајница и Бусије.",
    }


def test_match_should_keep_only_the_settlement_streets_of_the_malfunction_section() -> None:
    """
    Tests that malfunction addresses come from the "without water" section only and are
    narrowed to the entries naming the specific settlement.
    """
    # Arrange
    matcher = NoticeMatcher(section=SECTION_MALFUNCTIONS)

    # Act
    result = matcher.match(MALFUNCTIONS_PAGE, TERMS)

    # Assert
    assert result.found is True
    assert result.fields == {
        "date": "Кварови на мрежи 31.10.2025.",
        "time": "До 14:00 часова",
        "address": "Земун: Батајница Главна 5",
    }


def test_match_should_accept_terms_in_latin_script() -> None:
    """
    Tests that Latin search terms find a Cyrillic notice.
    """
    # Arrange
    matcher = NoticeMatcher(section=SECTION_PLANNED_WORKS)

    # Act
    result = matcher.match(PLANNED_WORKS_PAGE, ("Zemun", "Batajnica"))

    # Assert
    assert result.found is True
    assert "Батајница" in result.fields["address"]


def test_match_should_report_not_found_without_the_term() -> None:
    """
    Tests that a notice without the specific term does not match.
    """
    # Arrange
    matcher = NoticeMatcher(section=SECTION_MALFUNCTIONS)

    # Act
    result = matcher.match(MALFUNCTIONS_PAGE, ("Земун", "Сурчин"))

    # Assert
    assert result.found is False
    assert result.fields == {}


def test_match_without_section_should_extract_only_the_date() -> None:
    """
    Tests that a generic notice page reports the date and leaves time and address empty.
    """
    # Arrange
    matcher = NoticeMatcher()

    # Act
    result = matcher.match(PLANNED_WORKS_PAGE, TERMS)

    # Assert
    assert result.found is True
    assert result.fields == {"date": "Среда, 31. октобар 2025. године", "time": "", "address": ""}


def test_init_should_reject_unknown_section() -> None:
    """
    Tests that only the known notice sections are accepted.
    """
    # Act & Assert
    with pytest.raises(ValueError, match="Unknown notice section"):
        NoticeMatcher(section="timetable")


@pytest.mark.parametrize(
    "line, expected",
    [
        ("Земун: Батајница Главна 5, Угриновачка 10", "Земун: Батајница Главна 5"),
        ("Главна 5, Батајница 2, батајница 7", "Батајница 2, батајница 7"),
        ("Насеље Батајница", "Насеље Батајница"),
        ("Нови Београд: Булевар 1, Гандијева 3", ""),
        ("Нови Београд", ""),
    ],
)
def test_filter_addresses_should_keep_entries_naming_the_term(line: str, expected: str) -> None:
    """
    Tests that only comma-separated entries mentioning the term survive, with the prefix kept.
    """
    # Act & Assert
    assert filter_addresses(line, "Батајница") == expected
