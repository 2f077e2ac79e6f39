"""Bank-specific OCR glyph corrections."""

import re
from dataclasses import dataclass
from typing import Dict, List, Optional

_SPLIT_DIGITS_RE = re.compile(r"(\d)[\r\n]+(?=\d)")


@dataclass(frozen=True)
class AdjacentDigitRule:
    """Replace ``glyph`` with ``digit`` only where it touches a digit."""

    glyph: str
    digit: str

    def apply(self, text: str) -> str:
        glyph = re.escape(self.glyph)
        text = re.sub(rf"{glyph}(?=\d)", self.digit, text)
        return re.sub(rf"(?<=\d){glyph}", self.digit, text)


OCR_CORRECTION_PROFILES: Dict[str, List[AdjacentDigitRule]] = {
    "absa": [
        AdjacentDigitRule("O", "0"),
        AdjacentDigitRule("I", "1"),
        AdjacentDigitRule("S", "5"),
    ],
}


def register_profile(bank_key: str, rules: List[AdjacentDigitRule]) -> None:
    """Add or replace the correction profile for a bank-name key."""
    OCR_CORRECTION_PROFILES[bank_key.lower()] = list(rules)


def find_profile(bank_name: Optional[str]) -> List[AdjacentDigitRule]:
    """Return the rules of the first profile whose key occurs in ``bank_name``."""
    if not bank_name:
        return []
    lowered = bank_name.lower()
    for key, rules in OCR_CORRECTION_PROFILES.items():
        if key in lowered:
            return rules
    return []


def correct_ocr_text(text: str, bank_name: Optional[str] = None) -> str:
    """Repair common OCR damage before the text is split into lines.

    Digit runs broken across a line break are rejoined for every bank; glyph
    substitutions only run when ``bank_name`` matches a registered profile.
    """
    output = _SPLIT_DIGITS_RE.sub(r"\1", text or "")
    for rule in find_profile(bank_name):
        output = rule.apply(output)
    return output
