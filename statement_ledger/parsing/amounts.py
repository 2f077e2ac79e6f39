"""Monetary token detection and normalization."""

import re
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import List, Optional, Tuple

_CENTS = Decimal("0.01")
_ZERO = Decimal("0")

# A monetary token always carries two fraction digits; thousands groups may be
# separated by a comma or a single space. Parentheses mark accounting negatives.
AMOUNT_TOKEN_RE = re.compile(
    r"\(?-?\d{1,3}(?:[ ,]\d{3})*[.,]\d{2}\)?|\(?-?\d+[.,]\d{2}\)?"
)

_SUFFIX_RE = re.compile(r"(CR|DR)$", re.IGNORECASE)
# A leading currency symbol or ISO 4217 code, e.g. "R 1,234.56" or "USD-5.00"
_CURRENCY_PREFIX_RE = re.compile(r"^(?:[A-Z]{3}|R|[$€£¥])(?=[\d(+\-])")
_NUMERIC_RE = re.compile(r"[\d.,()+\-]+")
_WHITESPACE_RE = re.compile(r"\s+")


def parse_amount(value: Optional[str]) -> str:
    """Parse a raw amount into a signed decimal string with two fraction digits.

    Handles ``1,234.56`` and ``1.234,56`` separator conventions, a comma-only
    decimal (``1234,56``), wrapping parentheses as a negative sign and a
    trailing ``CR``/``DR`` marker. A leading currency symbol or code is
    dropped; any other text makes the token unparseable.

    Args:
        value: Raw token, e.g. a CSV cell or an OCR-derived amount.

    Returns:
        Normalized string such as ``"-50.00"``, or an empty string when the
        token does not parse as a finite number.
    """
    if not value:
        return ""

    cleaned = _WHITESPACE_RE.sub("", str(value))
    cleaned = _SUFFIX_RE.sub("", cleaned)
    cleaned = _CURRENCY_PREFIX_RE.sub("", cleaned)
    if not _NUMERIC_RE.fullmatch(cleaned):
        return ""

    negative = cleaned.startswith("(") and cleaned.endswith(")")
    cleaned = cleaned.replace("(", "").replace(")", "")
    if not cleaned:
        return ""

    has_comma = "," in cleaned
    has_dot = "." in cleaned

    if has_comma and has_dot:
        # Whichever separator comes last is the decimal point
        if cleaned.rfind(",") > cleaned.rfind("."):
            cleaned = cleaned.replace(".", "").replace(",", ".")
        else:
            cleaned = cleaned.replace(",", "")
    elif has_comma:
        head, _, tail = cleaned.rpartition(",")
        cleaned = f"{head.replace(',', '')}.{tail}"
    elif cleaned.count(".") > 1:
        head, _, tail = cleaned.rpartition(".")
        cleaned = f"{head.replace('.', '')}.{tail}"

    try:
        number = Decimal(cleaned)
    except (InvalidOperation, ValueError):
        return ""

    if not number.is_finite():
        return ""

    if negative:
        number = -abs(number)
    number = number.quantize(_CENTS, rounding=ROUND_HALF_UP)
    if number == _ZERO:
        number = abs(number)
    return str(number)


def to_decimal(amount: str) -> Decimal:
    """Convert a normalized amount string (possibly empty) to a Decimal."""
    return Decimal(amount) if amount else _ZERO


def extract_amount_tokens(text: str) -> List[str]:
    """Return every monetary substring of ``text`` in order of appearance."""
    return AMOUNT_TOKEN_RE.findall(text or "")


def strip_amount_tokens(text: str) -> str:
    """Remove monetary substrings and collapse the remaining whitespace."""
    return _WHITESPACE_RE.sub(" ", AMOUNT_TOKEN_RE.sub("", text or "")).strip()


def resolve_sides(debit: str, credit: str) -> Tuple[str, str]:
    """Enforce a single non-negative side for a debit/credit pair.

    A negative debit becomes a positive credit and vice versa. Both sides are
    netted into one signed movement, so zero values come back empty.
    """
    net = to_decimal(credit) - to_decimal(debit)
    if net > _ZERO:
        return "", str(net)
    if net < _ZERO:
        return str(-net), ""
    return "", ""
