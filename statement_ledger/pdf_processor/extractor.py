"""Direct text-layer extraction and page counting for statement PDFs."""

from typing import List, Optional

import pdfplumber
from PyPDF2 import PdfReader

from statement_ledger.config.settings import MAX_TOOL_OUTPUT_BYTES
from statement_ledger.utils.exceptions import FatalDocumentError, ToolInvocationError
from statement_ledger.utils.logger import get_logger


class DocumentTextExtractor:
    """Reads page counts and the embedded text layer of a PDF."""

    def __init__(self, max_output_bytes: int = MAX_TOOL_OUTPUT_BYTES) -> None:
        """Initialize the extractor.

        Args:
            max_output_bytes: Ceiling on the size of the extracted text.
        """
        self.logger = get_logger(__name__)
        self.max_output_bytes = max_output_bytes

    def page_count(self, pdf_path: str) -> int:
        """Return the number of pages in the document.

        Raises:
            FatalDocumentError: If the page count cannot be determined.
        """
        try:
            with open(pdf_path, 'rb') as file:
                reader = PdfReader(file)
                count = len(reader.pages)
        except Exception as e:
            raise FatalDocumentError(f"Unable to read PDF page count: {str(e)}")

        if not count:
            raise FatalDocumentError("Unable to read PDF page count.")

        self.logger.info(f"Document {pdf_path} has {count} pages")
        return count

    def extract_text(self, pdf_path: str, max_pages: Optional[int] = None) -> str:
        """Extract the text layer of every page, preserving the visual layout.

        Args:
            pdf_path: Path to the PDF file.
            max_pages: Optional limit on the number of leading pages read.

        Returns:
            Page texts joined by newlines. Pages without a text layer
            contribute nothing.

        Raises:
            ToolInvocationError: If the document cannot be read or the text
                exceeds the output ceiling.
        """
        page_texts: List[str] = []
        size = 0

        try:
            with pdfplumber.open(pdf_path) as pdf:
                pages = pdf.pages if max_pages is None else pdf.pages[:max_pages]
                for page_num, page in enumerate(pages, 1):
                    page_text = page.extract_text(layout=True) or ""
                    if not page_text.strip():
                        self.logger.debug(f"No text layer on page {page_num}")
                        continue
                    size += len(page_text.encode("utf-8"))
                    if size > self.max_output_bytes:
                        raise ToolInvocationError(
                            "pdfplumber",
                            f"extracted text exceeds {self.max_output_bytes} bytes"
                        )
                    page_texts.append(page_text)
        except ToolInvocationError:
            raise
        except Exception as e:
            raise ToolInvocationError("pdfplumber", f"failed to extract text: {str(e)}", e)

        self.logger.info(f"Extracted text layer from {len(page_texts)} pages")
        return "\n".join(page_texts)
