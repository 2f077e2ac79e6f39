"""Data model shared by every conversion path."""

from dataclasses import dataclass, field, replace
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, List, Optional

UNIVERSAL_HEADERS = [
    "date",
    "description",
    "reference",
    "debit",
    "credit",
    "balance",
    "currency",
]

QA_METHODS = ("text", "ocr", "csv")

_CENTS = Decimal("0.01")


def round_total(value: Decimal) -> Decimal:
    """Round a running total to 2 decimal places."""
    return Decimal(value).quantize(_CENTS, rounding=ROUND_HALF_UP)


@dataclass
class Transaction:
    """One row of the universal ledger.

    Amounts are non-negative decimal strings with two fraction digits, or empty.
    At most one of ``debit``/``credit`` is populated.
    """

    date: str
    description: str
    reference: str = ""
    debit: str = ""
    credit: str = ""
    balance: str = ""
    currency: str = "ZAR"

    def append_description(self, text: str) -> None:
        self.description = f"{self.description} {text}".strip()

    def to_row(self) -> Dict[str, str]:
        return {header: getattr(self, header) for header in UNIVERSAL_HEADERS}


@dataclass
class QaReport:
    """Extraction confidence and totals for a single conversion."""

    method: str
    transactions: int = 0
    debit_total: Decimal = Decimal("0")
    credit_total: Decimal = Decimal("0")
    balance_count: int = 0
    page_count: Optional[int] = None
    total_lines: Optional[int] = None
    matched_lines: Optional[int] = None
    unmatched_lines: Optional[int] = None
    sample_unmatched: Optional[List[str]] = None
    reconciliation_note: Optional[str] = None

    def __post_init__(self) -> None:
        if self.method not in QA_METHODS:
            raise ValueError(f"Unknown QA method: {self.method}")

    @classmethod
    def empty(cls, method: str, page_count: Optional[int] = None) -> "QaReport":
        """Zeroed report used as the seed of a fold."""
        return cls(
            method=method,
            page_count=page_count,
            total_lines=0,
            matched_lines=0,
            unmatched_lines=0,
            sample_unmatched=[],
        )

    def merge(self, other: "QaReport", sample_limit: int = 6) -> "QaReport":
        """Sum two reports. The method and page count of ``self`` are kept."""
        samples = list(self.sample_unmatched or [])
        if len(samples) < sample_limit and other.sample_unmatched:
            samples.extend(other.sample_unmatched)
        return replace(
            self,
            transactions=self.transactions + other.transactions,
            debit_total=self.debit_total + other.debit_total,
            credit_total=self.credit_total + other.credit_total,
            balance_count=self.balance_count + other.balance_count,
            total_lines=(self.total_lines or 0) + (other.total_lines or 0),
            matched_lines=(self.matched_lines or 0) + (other.matched_lines or 0),
            unmatched_lines=(self.unmatched_lines or 0) + (other.unmatched_lines or 0),
            sample_unmatched=samples[:sample_limit],
        )

    def unmatched_ratio(self) -> Optional[float]:
        if not self.total_lines or self.unmatched_lines is None:
            return None
        return self.unmatched_lines / max(self.total_lines, 1)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize using the camelCase keys of the wire format."""
        data: Dict[str, Any] = {
            "method": self.method,
            "transactions": self.transactions,
            "debitTotal": float(round_total(self.debit_total)),
            "creditTotal": float(round_total(self.credit_total)),
            "balanceCount": self.balance_count,
        }
        optional = {
            "pageCount": self.page_count,
            "totalLines": self.total_lines,
            "matchedLines": self.matched_lines,
            "unmatchedLines": self.unmatched_lines,
            "sampleUnmatched": self.sample_unmatched,
            "reconciliationNote": self.reconciliation_note,
        }
        data.update({key: value for key, value in optional.items() if value is not None})
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "QaReport":
        def _decimal(value: Any) -> Decimal:
            return Decimal(str(value if value is not None else 0))

        return cls(
            method=data["method"],
            transactions=int(data.get("transactions", 0)),
            debit_total=_decimal(data.get("debitTotal")),
            credit_total=_decimal(data.get("creditTotal")),
            balance_count=int(data.get("balanceCount", 0)),
            page_count=data.get("pageCount"),
            total_lines=data.get("totalLines"),
            matched_lines=data.get("matchedLines"),
            unmatched_lines=data.get("unmatchedLines"),
            sample_unmatched=data.get("sampleUnmatched"),
            reconciliation_note=data.get("reconciliationNote"),
        )


@dataclass
class ExtractionResult:
    """Output of the extraction engine or the CSV normalizer."""

    transactions: List[Transaction]
    warnings: List[str]
    qa_report: QaReport


@dataclass
class ConversionResult:
    """Final output of a conversion, handed to the caller."""

    csv: str
    transactions: int
    page_count: int
    warnings: List[str]
    qa_report: QaReport
    preview_path: Optional[str] = None
    rows: List[Transaction] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "csv": self.csv,
            "transactions": self.transactions,
            "pageCount": self.page_count,
            "warnings": list(self.warnings),
            "qaReport": self.qa_report.to_dict(),
            "previewPath": self.preview_path,
        }
