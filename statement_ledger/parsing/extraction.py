"""Line-based transaction extraction from statement text."""

import re
from decimal import Decimal
from typing import List, Optional, Tuple

from statement_ledger.config.settings import DEFAULT_CURRENCY, SAMPLE_UNMATCHED_LIMIT
from statement_ledger.conversion.models import (
    ExtractionResult,
    QaReport,
    Transaction,
    round_total,
)
from statement_ledger.parsing.amounts import (
    extract_amount_tokens,
    parse_amount,
    resolve_sides,
    strip_amount_tokens,
    to_decimal,
)
from statement_ledger.parsing.dates import (
    YEAR_ASSUMED_WARNING,
    NormalizedDate,
    find_date_token,
    normalize_date,
)
from statement_ledger.parsing.ocr_corrections import correct_ocr_text
from statement_ledger.utils.logger import get_logger

PAGE_HEADER_RE = re.compile(r"^page\s+\d+", re.IGNORECASE)
STATEMENT_RE = re.compile(r"statement", re.IGNORECASE)
CREDIT_HINT_RE = re.compile(r"(?<![a-z])cr(?:edit)?\b", re.IGNORECASE)
LINE_SPLIT_RE = re.compile(r"\r?\n")

NO_TRANSACTIONS_WARNING = "No transactions detected; check OCR quality or provide a clearer scan."
MIN_CONTINUATION_LENGTH = 3
LOOKAHEAD_LINES = 2


def is_boilerplate(line: str) -> bool:
    """Page headers and lines mentioning the statement itself carry no rows."""
    return bool(PAGE_HEADER_RE.match(line) or STATEMENT_RE.search(line))


class TransactionExtractor:
    """Turns a block of statement text into ledger transactions.

    The extractor scans line by line. A line holding a date token opens a new
    transaction, the monetary tokens after the date become debit, credit and
    balance, and undated lines that follow are folded into the description.
    """

    def __init__(
        self,
        currency: str = DEFAULT_CURRENCY,
        sample_limit: int = SAMPLE_UNMATCHED_LIMIT
    ) -> None:
        """Initialize the extractor.

        Args:
            currency: Currency code stamped on every transaction.
            sample_limit: Number of unmatched lines kept for diagnostics.
        """
        self.logger = get_logger(__name__)
        self.currency = currency
        self.sample_limit = sample_limit

    def split_lines(self, text: str) -> List[str]:
        """Split text into trimmed, non-empty lines."""
        return [line.strip() for line in LINE_SPLIT_RE.split(text or "") if line.strip()]

    def interpret_amounts(self, tokens: List[str], source: str) -> Tuple[str, str, str]:
        """Map monetary tokens to ``(debit, credit, balance)``.

        Three or more tokens: the last three are debit, credit and balance.
        Two tokens: the first is a lone amount whose side comes from its sign
        or a credit marker in the line; no balance is recorded. One token: it
        is the balance.
        """
        debit = credit = balance = ""

        if len(tokens) >= 3:
            debit, credit, balance = (parse_amount(token) for token in tokens[-3:])
        elif len(tokens) == 2:
            amount = parse_amount(tokens[-2])
            if amount.startswith("-"):
                debit = amount[1:]
            elif CREDIT_HINT_RE.search(source):
                credit = amount
            else:
                debit = amount
        elif len(tokens) == 1:
            balance = parse_amount(tokens[0])

        debit, credit = resolve_sides(debit, credit)
        return debit, credit, balance.lstrip("-")

    def _lookahead(self, lines: List[str], index: int) -> List[str]:
        following = []
        for offset in range(1, LOOKAHEAD_LINES + 1):
            position = index + offset
            if position >= len(lines):
                break
            candidate = lines[position]
            if find_date_token(candidate) or is_boilerplate(candidate):
                break
            following.append(candidate)
        return following

    def extract(
        self,
        text: str,
        method: str = "text",
        bank_name: Optional[str] = None,
        current_year: Optional[int] = None
    ) -> ExtractionResult:
        """Extract transactions and QA counters from a block of text.

        Args:
            text: Direct-extraction or OCR text.
            method: ``"text"`` or ``"ocr"``; OCR text is corrected first.
            bank_name: Optional bank name selecting an OCR correction profile.
            current_year: Reference year for dates without a year.

        Returns:
            ExtractionResult with transactions, warnings and a QA report.
        """
        warnings: List[str] = []
        transactions: List[Transaction] = []
        unmatched_samples: List[str] = []

        if method == "ocr":
            text = correct_ocr_text(text, bank_name)
        lines = self.split_lines(text)

        current: Optional[Transaction] = None
        matched_lines = 0
        debit_total = Decimal("0")
        credit_total = Decimal("0")
        balance_count = 0
        skip_until = -1

        for index, line in enumerate(lines):
            if index <= skip_until or is_boilerplate(line):
                continue

            match = find_date_token(line)
            normalized: Optional[NormalizedDate] = (
                normalize_date(match.group(1), current_year) if match else None
            )

            if normalized is not None:
                matched_lines += 1
                if normalized.guessed:
                    warnings.append(YEAR_ASSUMED_WARNING)

                after_date = line[match.end():].strip()
                tokens = extract_amount_tokens(after_date)
                source = after_date

                if not tokens:
                    following = self._lookahead(lines, index)
                    if following:
                        combined = f"{after_date} {' '.join(following)}".strip()
                        lookahead_tokens = extract_amount_tokens(combined)
                        if lookahead_tokens:
                            tokens = lookahead_tokens
                            source = combined
                            skip_until = index + len(following)

                debit, credit, balance = self.interpret_amounts(tokens, source)
                current = Transaction(
                    date=normalized.date,
                    description=strip_amount_tokens(source) or "Transaction",
                    debit=debit,
                    credit=credit,
                    balance=balance,
                    currency=self.currency,
                )

                debit_total += to_decimal(debit)
                credit_total += to_decimal(credit)
                if balance:
                    balance_count += 1

                transactions.append(current)
                self.logger.debug(f"Line {index + 1}: {len(tokens)} amount tokens -> {current}")
            elif current is not None:
                if len(line) >= MIN_CONTINUATION_LENGTH:
                    current.append_description(line)
            elif len(unmatched_samples) < self.sample_limit:
                unmatched_samples.append(line)

        if not transactions:
            warnings.append(NO_TRANSACTIONS_WARNING)

        qa_report = QaReport(
            method=method,
            transactions=len(transactions),
            debit_total=round_total(debit_total),
            credit_total=round_total(credit_total),
            balance_count=balance_count,
            total_lines=len(lines),
            matched_lines=matched_lines,
            unmatched_lines=max(len(lines) - matched_lines, 0),
            sample_unmatched=unmatched_samples,
        )

        self.logger.info(
            f"Extracted {len(transactions)} transactions from {len(lines)} lines ({method})"
        )
        return ExtractionResult(transactions=transactions, warnings=warnings, qa_report=qa_report)


def extract_transactions_from_text(
    text: str,
    method: str = "text",
    bank_name: Optional[str] = None,
    current_year: Optional[int] = None
) -> ExtractionResult:
    """Module-level shortcut for a default ``TransactionExtractor``."""
    return TransactionExtractor().extract(text, method, bank_name, current_year)
