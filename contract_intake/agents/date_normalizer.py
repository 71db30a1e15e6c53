"""Date normalization for extracted contract dates.

Numeric dates with a 4-digit first component are read as YYYY-MM-DD, all
other numeric dates as MM-DD-YYYY (US convention). Two-digit years below 50
become 20xx, the rest 19xx, and years outside 1900-2100 are rejected. Both
rules are heuristics without locale awareness, so DD/MM documents are
misread or rejected.
"""

import re
import logging
from datetime import date
from typing import Optional

from dateutil.relativedelta import relativedelta

logger = logging.getLogger(__name__)

TWO_DIGIT_YEAR_PIVOT = 50
MIN_YEAR = 1900
MAX_YEAR = 2100

_SEPARATOR = re.compile(r"[/-]")
_NUMBER = re.compile(r"^[0-9]+$")

MONTHS = {
    "january": 1, "jan": 1,
    "february": 2, "feb": 2,
    "march": 3, "mar": 3,
    "april": 4, "apr": 4,
    "may": 5,
    "june": 6, "jun": 6,
    "july": 7, "jul": 7,
    "august": 8, "aug": 8,
    "september": 9, "sept": 9, "sep": 9,
    "october": 10, "oct": 10,
    "november": 11, "nov": 11,
    "december": 12, "dec": 12,
}

_MONTH_NAME = (
    r"(?:January|February|March|April|May|June|July|August|September|October|November|December"
    r"|Jan|Feb|Mar|Apr|Jun|Jul|Aug|Sept|Sep|Oct|Nov|Dec)\.?"
)
_ORDINAL = r"(?:st|nd|rd|th)?"

NUMERIC_DATE = r"(?<![0-9/-])(?:[0-9]{4}[/-][0-9]{1,2}[/-][0-9]{1,2}|[0-9]{1,2}[/-][0-9]{1,2}[/-][0-9]{2,4})(?![0-9])"
WRITTEN_DATE_MDY = rf"{_MONTH_NAME}\s+[0-9]{{1,2}}{_ORDINAL},?\s+[0-9]{{4}}"
WRITTEN_DATE_DMY = rf"[0-9]{{1,2}}{_ORDINAL}\s+(?:day\s+of\s+)?{_MONTH_NAME},?\s+[0-9]{{4}}"

# Regex fragment matching any date token the extractors understand
DATE_TOKEN = rf"(?:{NUMERIC_DATE}|{WRITTEN_DATE_MDY}|{WRITTEN_DATE_DMY})"

_WRITTEN_MDY = re.compile(
    rf"^(?P<month>{_MONTH_NAME})\s+(?P<day>[0-9]{{1,2}}){_ORDINAL},?\s+(?P<year>[0-9]{{4}})$",
    re.IGNORECASE,
)
_WRITTEN_DMY = re.compile(
    rf"^(?P<day>[0-9]{{1,2}}){_ORDINAL}\s+(?:day\s+of\s+)?(?P<month>{_MONTH_NAME}),?\s+(?P<year>[0-9]{{4}})$",
    re.IGNORECASE,
)


def normalize_date(raw: str) -> Optional[str]:
    """Normalize a numeric date string to YYYY-MM-DD.

    Args:
        raw: Date with three numeric parts separated by "/" or "-"

    Returns:
        The canonical date string, or None when the input cannot be read
    """
    if not isinstance(raw, str):
        return None

    parts = _SEPARATOR.split(raw.strip())
    if len(parts) != 3 or not all(_NUMBER.match(part) for part in parts):
        return None

    if len(parts[0]) == 4:
        year, month, day = parts
    else:
        month, day, year = parts

    if len(month) > 2 or len(day) > 2:
        return None

    if len(year) == 2:
        year = f"20{year}" if int(year) < TWO_DIGIT_YEAR_PIVOT else f"19{year}"
    elif len(year) != 4:
        return None

    if not (MIN_YEAR <= int(year) <= MAX_YEAR):
        return None

    month_num = int(month)
    day_num = int(day)
    if not (1 <= month_num <= 12 and 1 <= day_num <= 31):
        return None

    return f"{year}-{month_num:02d}-{day_num:02d}"


def normalize_date_phrase(raw: str) -> Optional[str]:
    """Normalize a numeric or written date ("January 1, 2025") to YYYY-MM-DD."""
    if not isinstance(raw, str):
        return None

    text = " ".join(raw.split())
    for pattern in (_WRITTEN_MDY, _WRITTEN_DMY):
        match = pattern.match(text)
        if match:
            month = MONTHS.get(match.group("month").rstrip(".").lower())
            if month is None:
                return None
            return normalize_date(f"{month}/{match.group('day')}/{match.group('year')}")

    return normalize_date(text)


def add_duration(iso_date: str, amount: int, unit: str) -> Optional[str]:
    """Add a contract term to a YYYY-MM-DD date using calendar arithmetic.

    Month and year steps clamp to the last day of the target month, so
    2024-01-31 plus one month is 2024-02-29.
    """
    try:
        start = date.fromisoformat(iso_date)
    except (TypeError, ValueError):
        logger.debug(f"Cannot add duration to non-calendar date {iso_date!r}")
        return None

    unit = unit.lower().rstrip("s")
    if unit == "day":
        delta = relativedelta(days=amount)
    elif unit == "week":
        delta = relativedelta(weeks=amount)
    elif unit == "month":
        delta = relativedelta(months=amount)
    elif unit == "year":
        delta = relativedelta(years=amount)
    else:
        return None

    try:
        return (start + delta).isoformat()
    except (OverflowError, ValueError):
        return None
