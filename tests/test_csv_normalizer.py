"""Tests for bank CSV export normalization."""

from decimal import Decimal

import pytest

from statement_ledger.parsing.csv_normalizer import (
    INCOMPLETE_MAPPING_WARNING,
    NO_ROWS_WARNING,
    CsvNormalizer,
    convert_csv_to_universal,
    map_headers,
)
from statement_ledger.parsing.dates import YEAR_ASSUMED_WARNING
from statement_ledger.utils.exceptions import ValidationError


class TestHeaderMapping:
    """Test cases for header alias resolution."""

    def test_aliases_are_trimmed_and_case_insensitive(self):
        mapping = map_headers([" Posting Date ", "NARRATIVE", "Paid Out", "Paid In", "Running Balance"])

        assert mapping["date"] == " Posting Date "
        assert mapping["description"] == "NARRATIVE"
        assert mapping["debit"] == "Paid Out"
        assert mapping["credit"] == "Paid In"
        assert mapping["balance"] == "Running Balance"
        assert mapping["amount"] is None

    def test_first_matching_header_wins(self):
        mapping = map_headers(["Date", "Value Date", "Description"])
        assert mapping["date"] == "Date"


class TestCsvNormalizer:
    """Test cases for row normalization."""

    def test_amount_column_sign_decides_side(self, sample_csv_text):
        result = CsvNormalizer().normalize(sample_csv_text)

        salary, groceries, refund = result.transactions
        assert (salary.debit, salary.credit, salary.balance) == ("", "5000.00", "5000.00")
        assert (groceries.debit, groceries.credit) == ("150.00", "")
        assert (refund.debit, refund.credit) == ("", "25.50")
        assert salary.reference == "PAY01"
        assert salary.date == "2024-01-15"
        assert result.warnings == []

    def test_qa_report(self, sample_csv_text):
        qa_report = CsvNormalizer().normalize(sample_csv_text).qa_report

        assert qa_report.method == "csv"
        assert qa_report.transactions == 3
        assert qa_report.debit_total == Decimal("150.00")
        assert qa_report.credit_total == Decimal("5025.50")
        assert qa_report.balance_count == 3
        assert qa_report.total_lines is None

    def test_debit_credit_columns_are_sign_corrected(self):
        text = (
            "Date,Description,Withdrawal,Deposit,Balance\n"
            "15/01/2024,Fee,10.00,,90.00\n"
            "16/01/2024,Reversal,-5.00,,95.00\n"
            "17/01/2024,Nothing,0.00,0.00,95.00\n"
        )
        fee, reversal, nothing = CsvNormalizer().normalize(text).transactions

        assert (fee.date, fee.debit, fee.credit) == ("2024-01-15", "10.00", "")
        assert (reversal.debit, reversal.credit) == ("", "5.00")
        assert (nothing.debit, nothing.credit) == ("", "")

    def test_unrecognized_dates_are_kept_verbatim(self):
        text = "Date,Description,Amount\n31/02/2024,Bad date,1.00\nPending,Hold,2.00\n"
        first, second = CsvNormalizer().normalize(text).transactions

        assert first.date == "31/02/2024"
        assert second.date == "Pending"

    def test_year_less_dates_are_flagged(self):
        result = CsvNormalizer().normalize("Date,Description,Amount\n15 Jan,Coffee,-3.50\n")

        assert result.transactions[0].date.endswith("-01-15")
        assert result.warnings == [YEAR_ASSUMED_WARNING]

    def test_missing_headers_fall_back_to_first_column(self):
        result = CsvNormalizer().normalize("Posted,Memo,Amount\n2024-01-01,Coffee,-3.50\n")

        assert result.warnings == [INCOMPLETE_MAPPING_WARNING]
        transaction = result.transactions[0]
        assert transaction.description == "2024-01-01"
        assert transaction.date == ""
        assert transaction.debit == "3.50"

    def test_trailing_comma_rows_keep_their_columns(self):
        """Data rows ending in a delimiter the header lacks stay aligned."""
        text = (
            "Date,Description,Amount,Balance\n"
            "15/01/2024,Coffee,-5.00,95.00,\n"
            "16/01/2024,Salary,1000.00,1095.00,\n"
        )
        result = CsvNormalizer().normalize(text)

        coffee, salary = result.transactions
        assert (coffee.date, coffee.description) == ("2024-01-15", "Coffee")
        assert (coffee.debit, coffee.credit, coffee.balance) == ("5.00", "", "95.00")
        assert (salary.debit, salary.credit, salary.balance) == ("", "1000.00", "1095.00")
        assert result.qa_report.credit_total == Decimal("1000.00")
        assert result.warnings == []

    def test_text_in_amount_cells_is_not_booked(self):
        text = "Date,Description,Debit,Credit\n2024-01-01,Coffee,Ref 5,12 Jan\n"
        transaction = CsvNormalizer().normalize(text).transactions[0]

        assert (transaction.debit, transaction.credit) == ("", "")

    def test_currency_column_overrides_default(self):
        text = "Date,Description,Amount,Currency\n2024-01-01,Coffee,-3.50,USD\n2024-01-02,Tea,-2.00,\n"
        first, second = CsvNormalizer(currency="ZAR").normalize(text).transactions

        assert first.currency == "USD"
        assert second.currency == "ZAR"

    @pytest.mark.parametrize("text", ["", "   \n", "Date,Description,Amount\n"])
    def test_no_rows(self, text):
        result = CsvNormalizer().normalize(text)

        assert result.transactions == []
        assert result.warnings == [NO_ROWS_WARNING]
        assert result.qa_report.method == "csv"
        assert result.qa_report.transactions == 0

    def test_malformed_csv_raises(self):
        with pytest.raises(ValidationError):
            CsvNormalizer().normalize("a,b\n1,2\n3,4,5,6\n")


class TestConvertCsvToUniversal:
    """Test cases for the universal CSV output."""

    def test_universal_layout(self, sample_csv_text):
        result = convert_csv_to_universal(sample_csv_text)

        assert result.csv == (
            "date,description,reference,debit,credit,balance,currency\n"
            "2024-01-15,Salary,PAY01,,5000.00,5000.00,ZAR\n"
            "2024-01-16,Groceries,,150.00,,4850.00,ZAR\n"
            "2024-01-17,Refund,R-9,,25.50,4875.50,ZAR\n"
        )
        assert result.transactions == 3
        assert result.page_count == 0
        assert result.preview_path is None
        assert len(result.rows) == 3

    def test_output_is_byte_identical_across_runs(self, sample_csv_text):
        first = convert_csv_to_universal(sample_csv_text)
        second = convert_csv_to_universal(sample_csv_text)
        assert first.csv.encode("utf-8") == second.csv.encode("utf-8")

    def test_empty_input_has_no_csv(self):
        result = convert_csv_to_universal("")

        assert result.csv == ""
        assert result.transactions == 0
        assert result.warnings == [NO_ROWS_WARNING]
