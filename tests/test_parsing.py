"""Tests for amount, date and OCR-correction parsing."""

import pytest

from statement_ledger.parsing.amounts import (
    extract_amount_tokens,
    parse_amount,
    resolve_sides,
    strip_amount_tokens,
    to_decimal,
)
from statement_ledger.parsing.dates import NormalizedDate, find_date_token, normalize_date
from statement_ledger.parsing.ocr_corrections import (
    OCR_CORRECTION_PROFILES,
    AdjacentDigitRule,
    correct_ocr_text,
    find_profile,
    register_profile,
)


class TestParseAmount:
    """Test cases for amount normalization."""

    @pytest.mark.parametrize("raw, expected", [
        ("1,234.56", "1234.56"),
        ("1.234,56", "1234.56"),
        ("1234,56", "1234.56"),
        ("1 234.56", "1234.56"),
        ("R 1,234.56", "1234.56"),
        ("-50", "-50.00"),
        ("0.005", "0.01"),
        ("12.345.678,90", "12345678.90"),
    ])
    def test_separator_conventions(self, raw, expected):
        assert parse_amount(raw) == expected

    def test_parentheses_mean_negative(self):
        assert parse_amount("(50.00)") == "-50.00"

    def test_trailing_cr_dr_suffix_is_dropped(self):
        assert parse_amount("150.00CR") == "150.00"
        assert parse_amount("150.00 dr") == "150.00"

    @pytest.mark.parametrize("raw", ["", None, "abc", "--", "()", "1.2.3,x,", "Ref 5", "12 Jan", "5 EUR"])
    def test_unparseable_returns_empty(self, raw):
        assert parse_amount(raw) == ""

    @pytest.mark.parametrize("raw, expected", [
        ("USD -5.00", "-5.00"),
        ("$1,200.00", "1200.00"),
        ("€ 9,99", "9.99"),
    ])
    def test_leading_currency_is_dropped(self, raw, expected):
        assert parse_amount(raw) == expected

    def test_negative_zero_is_normalized(self):
        assert parse_amount("-0.00") == "0.00"

    def test_to_decimal_treats_empty_as_zero(self):
        assert to_decimal("") == 0
        assert str(to_decimal("12.50")) == "12.50"


class TestAmountTokens:
    """Test cases for monetary token detection."""

    def test_extract_tokens_in_order(self):
        tokens = extract_amount_tokens("Grocery Store 150.00 0.00 1,500.00")
        assert tokens == ["150.00", "0.00", "1,500.00"]

    def test_extract_parenthesized_token(self):
        assert extract_amount_tokens("Fee (25.00) 975.00") == ["(25.00)", "975.00"]

    def test_integers_are_not_tokens(self):
        assert extract_amount_tokens("Invoice 4471 paid") == []

    def test_strip_tokens_collapses_whitespace(self):
        assert strip_amount_tokens("  Grocery   Store 150.00  500.00 ") == "Grocery Store"


class TestResolveSides:
    """Test cases for debit/credit sign resolution."""

    def test_negative_debit_becomes_credit(self):
        assert resolve_sides("-20.00", "") == ("", "20.00")

    def test_negative_credit_becomes_debit(self):
        assert resolve_sides("", "-20.00") == ("20.00", "")

    def test_zero_sides_are_emptied(self):
        assert resolve_sides("0.00", "0.00") == ("", "")
        assert resolve_sides("150.00", "0.00") == ("150.00", "")

    def test_both_sides_are_netted(self):
        assert resolve_sides("30.00", "100.00") == ("", "70.00")
        assert resolve_sides("100.00", "30.00") == ("70.00", "")


class TestNormalizeDate:
    """Test cases for date normalization."""

    def test_month_name_with_two_digit_year(self):
        assert normalize_date("15 Jan 24", current_year=2024) == NormalizedDate("2024-01-15", False)

    def test_month_name_without_year_is_guessed(self):
        assert normalize_date("15 Jan", current_year=2024) == NormalizedDate("2024-01-15", True)

    def test_month_name_without_space(self):
        assert normalize_date("03mar2023", current_year=2024) == NormalizedDate("2023-03-03", False)

    def test_year_first_numeric(self):
        assert normalize_date("2024/01/15") == NormalizedDate("2024-01-15", False)

    @pytest.mark.parametrize("raw", ["15/01/24", "15-01-2024", "15.01.24"])
    def test_day_first_numeric(self, raw):
        assert normalize_date(raw) == NormalizedDate("2024-01-15", False)

    def test_three_digit_year_is_guessed(self):
        assert normalize_date("15 Jan 202", current_year=2024) == NormalizedDate("2002-01-15", True)

    def test_future_year_is_clamped(self):
        assert normalize_date("15 Jan 2031", current_year=2024) == NormalizedDate("2024-01-15", True)

    def test_next_year_is_allowed(self):
        assert normalize_date("15 Jan 2025", current_year=2024) == NormalizedDate("2025-01-15", False)

    def test_unrecognized_tokens(self):
        assert normalize_date("") is None
        assert normalize_date("yesterday") is None

    @pytest.mark.parametrize("raw", ["45/13/24", "31/02/24", "2024-02-30", "31 Apr 2024"])
    def test_impossible_days_are_rejected(self, raw):
        assert normalize_date(raw, current_year=2024) is None

    def test_leap_day(self):
        assert normalize_date("29/02/24") == NormalizedDate("2024-02-29", False)


class TestFindDateToken:
    """Test cases for date token detection."""

    def test_finds_first_token(self):
        match = find_date_token("Posted 15/01/24 Grocery 150.00")
        assert match.group(1) == "15/01/24"

    def test_month_abbreviation_case_insensitive(self):
        assert find_date_token("02 FEB 2024 Salary").group(1) == "02 FEB 2024"

    def test_full_month_word_is_not_a_token(self):
        assert find_date_token("15 January statement period") is None

    def test_amounts_are_not_dates(self):
        assert find_date_token("Balance 1500.00") is None

    @pytest.mark.parametrize("line", ["15 Jan 150.00 2000.00", "15 Jan 1500.00 2000.00 Fee", "15 Jan 12,50"])
    def test_amount_after_year_less_date_is_not_a_year(self, line):
        assert find_date_token(line).group(1) == "15 Jan"

    def test_year_before_amount_is_kept(self):
        assert find_date_token("15 Jan 2024 150.00").group(1) == "15 Jan 2024"


class TestOcrCorrections:
    """Test cases for bank OCR correction profiles."""

    def test_split_digit_runs_are_rejoined_for_every_bank(self):
        assert correct_ocr_text("Balance 12\n34.00") == "Balance 1234.00"

    def test_absa_profile_replaces_glyphs_next_to_digits(self):
        text = "O1/O2/24 Fee 1O.00 I5.00 S0.00"
        assert correct_ocr_text(text, "ABSA Bank") == "01/02/24 Fee 10.00 15.00 50.00"

    def test_glyphs_away_from_digits_are_kept(self):
        assert correct_ocr_text("SOCIAL CLUB 10.00", "absa") == "SOCIAL CLUB 10.00"

    def test_no_profile_leaves_glyphs(self):
        assert correct_ocr_text("1O.OO", "Other Bank") == "1O.OO"

    def test_register_profile(self):
        register_profile("Nedbank", [AdjacentDigitRule("B", "8")])
        try:
            assert find_profile("NEDBANK LTD") == [AdjacentDigitRule("B", "8")]
            assert correct_ocr_text("1B.00", "Nedbank") == "18.00"
        finally:
            OCR_CORRECTION_PROFILES.pop("nedbank", None)

    def test_find_profile_without_bank(self):
        assert find_profile(None) == []
