import pytest

from contract_intake.agents.date_normalizer import add_duration, normalize_date, normalize_date_phrase


@pytest.mark.parametrize("raw, expected", [
    ("2024-01-15", "2024-01-15"),
    ("2024/1/5", "2024-01-05"),
    ("01/02/2024", "2024-01-02"),
    ("1-2-2024", "2024-01-02"),
    ("01/02/99", "1999-01-02"),
    ("01/02/49", "2049-01-02"),
    ("12/31/50", "1950-12-31"),
    (" 03/04/2025 ", "2025-03-04"),
])
def test_normalize_valid_dates(raw, expected):
    assert normalize_date(raw) == expected


@pytest.mark.parametrize("raw", [
    "13/40/2024",
    "00/10/2024",
    "10/00/2024",
    "2024-13-01",
    "01/02/202",
    "01/02/20245",
    "001/02/2024",
    "2024-01",
    "2024-01-01-01",
    "Jan/02/2024",
    "01.02.2024",
    "",
    "   ",
    None,
])
def test_normalize_invalid_dates(raw):
    assert normalize_date(raw) is None


def test_normalize_checks_ranges_not_calendar():
    # Days up to 31 are accepted for every month
    assert normalize_date("02/30/2024") == "2024-02-30"


@pytest.mark.parametrize("raw, expected", [
    ("January 1, 2025", "2025-01-01"),
    ("Jan. 15 2024", "2024-01-15"),
    ("Sept 9, 2023", "2023-09-09"),
    ("1st January 2025", "2025-01-01"),
    ("21st day of March, 2024", "2024-03-21"),
    ("12/31/2025", "2025-12-31"),
])
def test_normalize_date_phrases(raw, expected):
    assert normalize_date_phrase(raw) == expected


def test_normalize_date_phrase_rejects_bad_day():
    assert normalize_date_phrase("January 32, 2025") is None


def test_add_duration_months_and_years():
    assert add_duration("2024-01-01", 12, "months") == "2025-01-01"
    assert add_duration("2024-03-15", 2, "year") == "2026-03-15"
    assert add_duration("2024-01-01", 30, "days") == "2024-01-31"
    assert add_duration("2024-01-01", 2, "weeks") == "2024-01-15"


def test_add_duration_clamps_month_end():
    assert add_duration("2024-01-31", 1, "month") == "2024-02-29"


def test_add_duration_requires_calendar_date():
    assert add_duration("2024-02-30", 1, "month") is None
    assert add_duration("2024-01-01", 1, "fortnight") is None


@pytest.mark.parametrize("raw, expected", [
    ("0001-01-01", None),
    ("2101-01-01", None),
    ("1899-12-31", None),
    ("1900-01-01", "1900-01-01"),
    ("2100-12-31", "2100-12-31"),
])
def test_normalize_date_year_bounds(raw, expected):
    assert normalize_date(raw) == expected


def test_normalize_date_phrase_year_bounds():
    assert normalize_date_phrase("January 1, 2150") is None
