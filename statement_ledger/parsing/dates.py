"""Date token detection and ISO normalization."""

import re
from datetime import date
from typing import NamedTuple, Optional

MONTHS = {
    "jan": 1,
    "feb": 2,
    "mar": 3,
    "apr": 4,
    "may": 5,
    "jun": 6,
    "jul": 7,
    "aug": 8,
    "sep": 9,
    "oct": 10,
    "nov": 11,
    "dec": 12,
}

_MONTH_ALTERNATION = "|".join(MONTHS)

DATE_TOKEN_RE = re.compile(
    r"\b("
    r"\d{2}[/\-.]\d{2}[/\-.]\d{2,4}"
    r"|\d{4}[/\-.]\d{2}[/\-.]\d{2}"
    rf"|\d{{2}}\s?(?:{_MONTH_ALTERNATION})(?:\s?\d{{2,4}}(?![.,]\d))?"
    r")\b",
    re.IGNORECASE,
)

_MONTH_NAME_RE = re.compile(r"^(\d{1,2})\s*([a-z]{3})\s*(\d+)?$", re.IGNORECASE)
_NUMERIC_SEPARATORS_RE = re.compile(r"[/\-.]")

YEAR_ASSUMED_WARNING = "Year missing or unclear; assumed current year."


class NormalizedDate(NamedTuple):
    date: str
    guessed: bool


def find_date_token(line: str) -> Optional["re.Match[str]"]:
    """Return the first date-token match in ``line``, if any."""
    return DATE_TOKEN_RE.search(line)


def _to_iso(year: int, month: int, day: int) -> Optional[str]:
    try:
        return date(year, month, day).isoformat()
    except ValueError:
        return None


def normalize_date(raw: str, current_year: Optional[int] = None) -> Optional[NormalizedDate]:
    """Normalize a date token to ``YYYY-MM-DD``.

    Numeric tokens that start with a 4-digit group are read year-first, other
    numeric tokens day-first. ``DD Mon[ YY[YY]]`` tokens assume the current
    year when none is given and clamp implausible future years, flagging
    both cases as guessed.

    Args:
        raw: Token as matched by ``DATE_TOKEN_RE``.
        current_year: Reference year; defaults to today's year.

    Returns:
        NormalizedDate, or None when the token is not a recognizable date
        or names a day that does not exist.
    """
    trimmed = " ".join((raw or "").split())
    if not trimmed:
        return None
    if current_year is None:
        current_year = date.today().year

    month_match = _MONTH_NAME_RE.match(trimmed)
    if month_match:
        day = int(month_match.group(1))
        month = MONTHS.get(month_match.group(2).lower())
        if month is None:
            return None

        year_token = month_match.group(3)
        guessed = False
        if not year_token:
            year = current_year
            guessed = True
        else:
            year = int(year_token)
            if year < 100:
                year += 2000
            elif year < 1000:
                year = 2000 + year % 100
                guessed = True

        if year > current_year + 1:
            year = current_year
            guessed = True

        iso = _to_iso(year, month, day)
        return NormalizedDate(iso, guessed) if iso else None

    parts = _NUMERIC_SEPARATORS_RE.split(trimmed)
    if len(parts) != 3 or not all(part.isdigit() for part in parts):
        return None

    if len(parts[0]) == 4:
        year, month, day = parts
    else:
        day, month, year = parts
        if len(year) == 2:
            year = f"20{year}"

    iso = _to_iso(int(year), int(month), int(day))
    return NormalizedDate(iso, False) if iso else None
