"""Mapping of arbitrary bank CSV exports onto the universal ledger."""

from decimal import Decimal
from io import StringIO
from typing import Dict, List, Optional

import pandas as pd

from statement_ledger.config.settings import DEFAULT_CURRENCY
from statement_ledger.conversion.models import (
    ConversionResult,
    ExtractionResult,
    QaReport,
    Transaction,
    round_total,
)
from statement_ledger.conversion.writer import transactions_to_csv
from statement_ledger.parsing.amounts import parse_amount, resolve_sides, to_decimal
from statement_ledger.parsing.dates import YEAR_ASSUMED_WARNING, find_date_token, normalize_date
from statement_ledger.utils.exceptions import ValidationError
from statement_ledger.utils.logger import get_logger

HEADER_ALIASES: Dict[str, List[str]] = {
    "date": ["date", "transaction date", "posting date", "value date"],
    "description": ["description", "details", "narrative", "transaction description"],
    "reference": ["reference", "ref", "statement ref", "cheque"],
    "debit": ["debit", "withdrawal", "paid out", "outflow"],
    "credit": ["credit", "deposit", "paid in", "inflow"],
    "amount": ["amount", "transaction amount"],
    "balance": ["balance", "running balance"],
    "currency": ["currency", "ccy"],
}

NO_ROWS_WARNING = "No rows found in CSV."
INCOMPLETE_MAPPING_WARNING = "Some standard columns were missing; mapping may be incomplete."


def normalize_header(header: str) -> str:
    return str(header).lower().strip()


def map_headers(headers: List[str]) -> Dict[str, Optional[str]]:
    """Resolve each universal field to the first source header that aliases it."""
    mapping: Dict[str, Optional[str]] = {key: None for key in HEADER_ALIASES}
    for header in headers:
        normalized = normalize_header(header)
        for key, aliases in HEADER_ALIASES.items():
            if mapping[key] is None and normalized in aliases:
                mapping[key] = header
    return mapping


class CsvNormalizer:
    """Converts a tabular bank export into universal transactions."""

    def __init__(self, currency: str = DEFAULT_CURRENCY) -> None:
        self.logger = get_logger(__name__)
        self.currency = currency

    def read_frame(self, csv_text: str) -> pd.DataFrame:
        """Parse CSV text into a string-typed frame.

        Raises:
            ValidationError: If the text is not parseable as delimited data.
        """
        if not csv_text or not csv_text.strip():
            return pd.DataFrame()
        try:
            return pd.read_csv(
                StringIO(csv_text),
                dtype=str,
                index_col=False,
                keep_default_na=False,
                skip_blank_lines=True,
            )
        except pd.errors.EmptyDataError:
            return pd.DataFrame()
        except pd.errors.ParserError as e:
            raise ValidationError(f"Unable to parse CSV: {str(e)}")

    def normalize_date_cell(self, value: str, warnings: List[str]) -> str:
        """Return an ISO date for recognizable cells, else the trimmed raw value."""
        value = value.strip()
        match = find_date_token(value)
        if not match:
            return value
        normalized = normalize_date(match.group(1))
        if normalized is None:
            return value
        if normalized.guessed:
            warnings.append(YEAR_ASSUMED_WARNING)
        return normalized.date

    def normalize(self, csv_text: str) -> ExtractionResult:
        """Map CSV rows onto the universal schema.

        Args:
            csv_text: Raw delimited text with a header row.

        Returns:
            ExtractionResult with a ``csv`` method QA report.
        """
        warnings: List[str] = []
        frame = self.read_frame(csv_text)

        if frame.empty:
            self.logger.warning("CSV input contained no data rows")
            return ExtractionResult(
                transactions=[],
                warnings=[NO_ROWS_WARNING],
                qa_report=QaReport(method="csv"),
            )

        headers = [str(column) for column in frame.columns]
        header_map = map_headers(headers)
        if not header_map["date"] or not header_map["description"]:
            warnings.append(INCOMPLETE_MAPPING_WARNING)
            self.logger.warning(f"Incomplete header mapping for columns: {headers}")

        def cell(record: Dict[str, str], key: str) -> str:
            column = header_map[key]
            return str(record.get(column, "")).strip() if column else ""

        transactions: List[Transaction] = []
        debit_total = Decimal("0")
        credit_total = Decimal("0")
        balance_count = 0

        for record in frame.to_dict(orient="records"):
            debit = parse_amount(cell(record, "debit"))
            credit = parse_amount(cell(record, "credit"))
            amount = parse_amount(cell(record, "amount"))
            balance = parse_amount(cell(record, "balance")).lstrip("-")

            if not debit and not credit and amount:
                if amount.startswith("-"):
                    debit = amount[1:]
                else:
                    credit = amount
            debit, credit = resolve_sides(debit, credit)

            if header_map["description"]:
                description = cell(record, "description")
            else:
                description = str(record.get(headers[0], "")).strip()

            transaction = Transaction(
                date=self.normalize_date_cell(cell(record, "date"), warnings),
                description=description,
                reference=cell(record, "reference"),
                debit=debit,
                credit=credit,
                balance=balance,
                currency=cell(record, "currency") or self.currency,
            )

            debit_total += to_decimal(debit)
            credit_total += to_decimal(credit)
            if balance:
                balance_count += 1
            transactions.append(transaction)

        qa_report = QaReport(
            method="csv",
            transactions=len(transactions),
            debit_total=round_total(debit_total),
            credit_total=round_total(credit_total),
            balance_count=balance_count,
        )
        self.logger.info(f"Normalized {len(transactions)} CSV rows")
        return ExtractionResult(transactions=transactions, warnings=warnings, qa_report=qa_report)


def convert_csv_to_universal(csv_text: str, currency: str = DEFAULT_CURRENCY) -> ConversionResult:
    """Normalize a bank CSV export and serialize it as a universal ledger."""
    extraction = CsvNormalizer(currency).normalize(csv_text)
    csv = transactions_to_csv(extraction.transactions) if extraction.transactions else ""
    return ConversionResult(
        csv=csv,
        transactions=len(extraction.transactions),
        page_count=0,
        warnings=extraction.warnings,
        qa_report=extraction.qa_report,
        preview_path=None,
        rows=extraction.transactions,
    )
