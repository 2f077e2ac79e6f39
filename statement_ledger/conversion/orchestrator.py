"""Top-level conversion pipeline: direct text first, OCR when the yield is low."""

import mimetypes
import os
import uuid
from functools import reduce
from typing import List, Optional

from statement_ledger.config.settings import Settings
from statement_ledger.conversion.models import ConversionResult, QaReport, Transaction, round_total
from statement_ledger.conversion.remote import RemoteConversionClient, ServiceConversion
from statement_ledger.conversion.writer import transactions_to_csv
from statement_ledger.parsing.csv_normalizer import convert_csv_to_universal
from statement_ledger.parsing.extraction import TransactionExtractor
from statement_ledger.pdf_processor.extractor import DocumentTextExtractor
from statement_ledger.pdf_processor.ocr import OcrPageProcessor
from statement_ledger.utils.logger import get_logger
from statement_ledger.utils.validators import validate_max_pages

LOW_TEXT_YIELD_WARNING = "Low transaction count from text extraction; OCR fallback used."

HIGH_UNMATCHED_WARNING = "High unmatched line ratio; OCR may be unreliable."
HIGH_UNMATCHED_NOTE = HIGH_UNMATCHED_WARNING
HIGH_AVERAGE_WARNING = "Average transaction amount is unusually high; please review OCR."
HIGH_AVERAGE_NOTE = "Average transaction amount unusually high; review OCR."
ZERO_TOTALS_WARNING = "Totals are zero; statement may need manual review."
ZERO_TOTALS_NOTE = ZERO_TOTALS_WARNING


class ConversionOrchestrator:
    """Converts a statement PDF or CSV export into a universal ledger."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        text_extractor: Optional[DocumentTextExtractor] = None,
        ocr_processor: Optional[OcrPageProcessor] = None,
        remote_client: Optional[RemoteConversionClient] = None,
        extractor: Optional[TransactionExtractor] = None
    ) -> None:
        self.settings = settings or Settings.from_env()
        self.extractor = extractor or TransactionExtractor(currency=self.settings.default_currency)
        self.text_extractor = text_extractor or DocumentTextExtractor(self.settings.max_tool_output_bytes)
        self.ocr_processor = ocr_processor or OcrPageProcessor(self.settings, extractor=self.extractor)
        self.remote_client = remote_client or RemoteConversionClient(self.settings)
        self.logger = get_logger(__name__)

    def convert(
        self,
        pdf_path: str,
        max_pages: Optional[int] = None,
        bank_name: Optional[str] = None,
        upload_id: Optional[str] = None
    ) -> ConversionResult:
        """Convert a statement PDF.

        Args:
            pdf_path: Path to the PDF file.
            max_pages: Optional cap on the number of pages OCR'd.
            bank_name: Optional bank name selecting an OCR correction profile.
            upload_id: Optional identifier used to name the preview image.

        Returns:
            ConversionResult for the document.

        Raises:
            FatalDocumentError: If the page count cannot be read.
            ToolInvocationError: If direct text extraction or the remote
                service fails.
            ValidationError: If ``max_pages`` or a remote payload is invalid.
        """
        validate_max_pages(max_pages)

        if self.remote_client.is_configured():
            return self.convert_remote(pdf_path, bank_name, upload_id)

        page_count = self.text_extractor.page_count(pdf_path)
        page_limit = min(page_count, max_pages) if max_pages else page_count

        warnings: List[str] = []
        transactions: List[Transaction] = []
        preview_path: Optional[str] = None

        direct_text = self.text_extractor.extract_text(pdf_path)
        direct = self.extractor.extract(direct_text, "text", bank_name)

        if len(direct.transactions) >= self.settings.text_accept_threshold:
            self.logger.info(f"Accepted direct text extraction with {len(direct.transactions)} transactions")
            transactions.extend(direct.transactions)
            warnings.extend(direct.warnings)
            qa_report = direct.qa_report
        else:
            if direct.transactions:
                warnings.append(LOW_TEXT_YIELD_WARNING)
            self.logger.info(
                f"Direct text yielded {len(direct.transactions)} transactions; "
                f"falling back to OCR over {page_limit} pages"
            )

            run = self.ocr_processor.process(pdf_path, page_limit, bank_name, upload_id)
            preview_path = run.preview_path

            page_reports = []
            for page in run.pages:
                warnings.extend(page.warnings)
                if page.succeeded:
                    transactions.extend(page.extraction.transactions)
                    page_reports.append(page.extraction.qa_report)

            qa_report = reduce(QaReport.merge, page_reports, QaReport.empty("ocr"))

        qa_report.page_count = page_count
        qa_report.transactions = len(transactions)
        qa_report.debit_total = round_total(qa_report.debit_total)
        qa_report.credit_total = round_total(qa_report.credit_total)
        warnings.extend(self.flag_qa(qa_report))

        return ConversionResult(
            csv=transactions_to_csv(transactions),
            transactions=len(transactions),
            page_count=page_count,
            warnings=warnings,
            qa_report=qa_report,
            preview_path=preview_path,
            rows=transactions,
        )

    def flag_qa(self, qa_report: QaReport) -> List[str]:
        """Run the reconciliation checks in order.

        Each check that fires adds a warning and overwrites the report's
        reconciliation note, so the last one to fire wins.
        """
        warnings: List[str] = []

        ratio = qa_report.unmatched_ratio()
        if ratio is not None and ratio > self.settings.unmatched_ratio_threshold:
            warnings.append(HIGH_UNMATCHED_WARNING)
            qa_report.reconciliation_note = HIGH_UNMATCHED_NOTE

        if qa_report.transactions > 0:
            count = max(qa_report.transactions, 1)
            average_debit = float(qa_report.debit_total) / count
            average_credit = float(qa_report.credit_total) / count
            limit = self.settings.anomalous_average_amount
            if average_debit > limit or average_credit > limit:
                warnings.append(HIGH_AVERAGE_WARNING)
                qa_report.reconciliation_note = HIGH_AVERAGE_NOTE

            if not qa_report.debit_total and not qa_report.credit_total:
                warnings.append(ZERO_TOTALS_WARNING)
                qa_report.reconciliation_note = ZERO_TOTALS_NOTE

        for warning in warnings:
            self.logger.warning(warning)
        return warnings

    def convert_remote(
        self,
        pdf_path: str,
        bank_name: Optional[str] = None,
        upload_id: Optional[str] = None
    ) -> ConversionResult:
        """Delegate the conversion to the configured peer service."""
        upload_id = upload_id or uuid.uuid4().hex
        with open(pdf_path, "rb") as file:
            file_bytes = file.read()

        service = self.remote_client.convert(os.path.basename(pdf_path), file_bytes, upload_id, bank_name)
        preview_path = self.store_remote_preview(service, upload_id)

        return ConversionResult(
            csv=service.csv,
            transactions=service.transactions,
            page_count=service.page_count,
            warnings=list(service.warnings),
            qa_report=service.qa_report.to_qa_report(),
            preview_path=preview_path,
        )

    def store_remote_preview(self, service: ServiceConversion, upload_id: str) -> Optional[str]:
        if service.preview is None:
            return None
        extension = mimetypes.guess_extension(service.preview.mime) or ".png"
        os.makedirs(self.settings.previews_dir, exist_ok=True)
        preview_path = os.path.join(self.settings.previews_dir, f"{upload_id}-{uuid.uuid4().hex}{extension}")
        with open(preview_path, "wb") as file:
            file.write(service.preview.data)
        return preview_path

    def convert_csv(self, csv_text: str) -> ConversionResult:
        """Normalize a bank CSV export into the universal ledger."""
        result = convert_csv_to_universal(csv_text, self.settings.default_currency)
        self.logger.info(f"Converted CSV export with {result.transactions} transactions")
        return result


def convert(
    pdf_path: str,
    max_pages: Optional[int] = None,
    bank_name: Optional[str] = None,
    upload_id: Optional[str] = None
) -> ConversionResult:
    """Convert a PDF with settings read from the environment."""
    return ConversionOrchestrator().convert(pdf_path, max_pages, bank_name, upload_id)


def convert_csv(csv_text: str) -> ConversionResult:
    """Convert a CSV export with settings read from the environment."""
    return ConversionOrchestrator().convert_csv(csv_text)
