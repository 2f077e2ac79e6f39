"""Ledger serialization: universal CSV and an Excel workbook with the QA report."""

import os
from datetime import datetime
from decimal import Decimal
from io import StringIO
from typing import List, Optional

import pandas as pd
from openpyxl import Workbook
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter

from statement_ledger.conversion.models import UNIVERSAL_HEADERS, ConversionResult, Transaction
from statement_ledger.utils.logger import get_logger
from statement_ledger.utils.validators import validate_directory_path

AMOUNT_COLUMNS = ("debit", "credit", "balance")


class LedgerWriteError(Exception):
    """Raised when a ledger file cannot be written."""
    pass


def transactions_to_dataframe(transactions: List[Transaction]) -> pd.DataFrame:
    """Build a string-typed frame in universal column order."""
    return pd.DataFrame(
        [transaction.to_row() for transaction in transactions],
        columns=UNIVERSAL_HEADERS,
        dtype=str,
    )


def transactions_to_csv(transactions: List[Transaction]) -> str:
    """Serialize transactions to the universal CSV layout.

    Every cell is written as a string, so the same rows always produce the
    same bytes.
    """
    return transactions_to_dataframe(transactions).to_csv(index=False, lineterminator="\n")


def csv_to_dataframe(csv_text: str) -> pd.DataFrame:
    """Read a universal CSV back into a string-typed frame."""
    if not csv_text.strip():
        return pd.DataFrame(columns=UNIVERSAL_HEADERS, dtype=str)
    return pd.read_csv(StringIO(csv_text), dtype=str, keep_default_na=False)


class ExcelLedgerWriter:
    """Writes a conversion result to an ``.xlsx`` workbook."""

    def __init__(self) -> None:
        self.logger = get_logger(__name__)

        self.header_font = Font(bold=True, color="FFFFFF")
        self.header_fill = PatternFill(start_color="366092", end_color="366092", fill_type="solid")
        self.header_alignment = Alignment(horizontal="center", vertical="center")
        self.amount_format = '#,##0.00'

    def generate_filename(self, base_name: str, timestamp: bool = True) -> str:
        """Generate an output filename, optionally timestamped."""
        parts = [base_name]
        if timestamp:
            parts.append(datetime.now().strftime("%Y%m%d_%H%M%S"))
        return f"{'_'.join(parts)}.xlsx"

    def _style_header(self, worksheet, column_count: int) -> None:
        for col_num in range(1, column_count + 1):
            cell = worksheet.cell(row=1, column=col_num)
            cell.font = self.header_font
            cell.fill = self.header_fill
            cell.alignment = self.header_alignment

    def _autosize(self, worksheet) -> None:
        for col_idx in range(1, worksheet.max_column + 1):
            max_length = 0
            for row_idx in range(1, worksheet.max_row + 1):
                value = worksheet.cell(row=row_idx, column=col_idx).value
                if value is not None:
                    max_length = max(max_length, len(str(value)))
            worksheet.column_dimensions[get_column_letter(col_idx)].width = min(max_length + 2, 60)

    def create_transactions_sheet(self, workbook: Workbook, frame: pd.DataFrame) -> None:
        """Create the ledger sheet; amount cells are written as numbers."""
        worksheet = workbook.create_sheet(title="Transactions")
        worksheet.append(UNIVERSAL_HEADERS)
        self._style_header(worksheet, len(UNIVERSAL_HEADERS))

        for record in frame.to_dict(orient="records"):
            row = []
            for header in UNIVERSAL_HEADERS:
                value = record.get(header, "")
                if not value:
                    value = None
                elif header in AMOUNT_COLUMNS:
                    value = float(Decimal(value))
                row.append(value)
            worksheet.append(row)

        for header in AMOUNT_COLUMNS:
            column_letter = get_column_letter(UNIVERSAL_HEADERS.index(header) + 1)
            for cell in worksheet[column_letter][1:]:
                if isinstance(cell.value, float):
                    cell.number_format = self.amount_format

        self._autosize(worksheet)
        self.logger.info(f"Created transactions sheet with {len(frame)} rows")

    def create_qa_sheet(self, workbook: Workbook, result: ConversionResult) -> None:
        """Create the QA sheet: report fields, then one row per warning."""
        worksheet = workbook.create_sheet(title="QA Report")
        worksheet.append(["Field", "Value"])
        self._style_header(worksheet, 2)

        for key, value in result.qa_report.to_dict().items():
            if isinstance(value, list):
                value = "\n".join(value)
            worksheet.append([key, value])

        worksheet.append(["warnings", len(result.warnings)])
        for warning in result.warnings:
            worksheet.append(["warning", warning])

        self._autosize(worksheet)

    def write(
        self,
        result: ConversionResult,
        output_dir: str,
        filename: Optional[str] = None
    ) -> str:
        """Write the workbook and return its path.

        Raises:
            LedgerWriteError: If the workbook cannot be saved.
        """
        validate_directory_path(output_dir)
        if filename is None:
            filename = self.generate_filename("ledger")
        if not filename.endswith(".xlsx"):
            filename = f"{filename}.xlsx"
        full_path = os.path.join(output_dir, filename)

        if result.rows:
            frame = transactions_to_dataframe(result.rows)
        else:
            frame = csv_to_dataframe(result.csv)

        workbook = Workbook()
        workbook.remove(workbook.active)
        self.create_transactions_sheet(workbook, frame)
        self.create_qa_sheet(workbook, result)

        try:
            workbook.save(full_path)
        except OSError as e:
            raise LedgerWriteError(f"Failed to save workbook {full_path}: {str(e)}")

        self.logger.info(f"Excel ledger created: {full_path}")
        return full_path
