"""Page rendering and OCR for statements without a usable text layer."""

import os
import shutil
import tempfile
import uuid
from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Tuple

import pytesseract
from pdf2image import convert_from_path

from statement_ledger.config.settings import Settings
from statement_ledger.conversion.models import ExtractionResult
from statement_ledger.parsing.extraction import TransactionExtractor
from statement_ledger.utils.exceptions import PageExtractionError, ToolInvocationError
from statement_ledger.utils.logger import get_logger
from statement_ledger.utils.validators import validate_page_range


class PageRenderer:
    """Renders PDF page ranges to grayscale PNG files with poppler."""

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self.logger = get_logger(__name__)

    def render(self, pdf_path: str, first_page: int, last_page: int, output_dir: str) -> List[str]:
        """Render ``first_page``..``last_page`` (1-based, inclusive) in one call.

        Returns:
            Image paths in page order.

        Raises:
            ToolInvocationError: If poppler fails or times out.
            ValidationError: If the page range is malformed.
        """
        validate_page_range(first_page, last_page)
        try:
            paths = convert_from_path(
                pdf_path,
                dpi=self.settings.ocr_dpi,
                first_page=first_page,
                last_page=last_page,
                output_folder=output_dir,
                fmt="png",
                grayscale=True,
                paths_only=True,
                timeout=self.settings.tool_timeout_seconds,
                poppler_path=self.settings.poppler_path,
            )
        except Exception as e:
            raise ToolInvocationError("pdftoppm", f"failed to render pages {first_page}-{last_page}: {str(e)}", e)

        self.logger.debug(f"Rendered pages {first_page}-{last_page} into {len(paths)} images")
        return list(paths)


class OcrEngine:
    """Runs tesseract over a single rendered page image."""

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        if settings.tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = settings.tesseract_cmd

    def image_to_text(self, image_path: str) -> str:
        """OCR one image.

        Raises:
            ToolInvocationError: If tesseract fails, times out or returns
                more text than the output ceiling allows.
        """
        try:
            text = pytesseract.image_to_string(
                image_path,
                lang=self.settings.ocr_language,
                config=self.settings.get_tesseract_config(),
                timeout=self.settings.tool_timeout_seconds,
            )
        except Exception as e:
            raise ToolInvocationError("tesseract", str(e), e)

        if len(text.encode("utf-8")) > self.settings.max_tool_output_bytes:
            raise ToolInvocationError(
                "tesseract",
                f"output exceeds {self.settings.max_tool_output_bytes} bytes"
            )
        return text


@dataclass
class PageResult:
    """Outcome of one OCR'd page; ``extraction`` is None when the page failed."""

    page: int
    extraction: Optional[ExtractionResult]
    warnings: List[str] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.extraction is not None


@dataclass
class OcrRun:
    pages: List[PageResult]
    preview_path: Optional[str] = None


class OcrPageProcessor:
    """Renders pages in fixed-size batches and OCRs them one at a time.

    A failing page is recorded as a page-scoped warning and never aborts the
    document. Every rendered image is removed once its page is done; the first
    image that renders is copied to the previews directory beforehand.
    """

    def __init__(
        self,
        settings: Settings,
        renderer: Optional[PageRenderer] = None,
        engine: Optional[OcrEngine] = None,
        extractor: Optional[TransactionExtractor] = None
    ) -> None:
        self.settings = settings
        self.renderer = renderer or PageRenderer(settings)
        self.engine = engine or OcrEngine(settings)
        self.extractor = extractor or TransactionExtractor(currency=settings.default_currency)
        self.logger = get_logger(__name__)

    def batches(self, page_limit: int) -> Iterator[Tuple[int, int]]:
        """Yield inclusive ``(first, last)`` page ranges of at most one batch each."""
        batch_size = max(1, self.settings.ocr_batch_size)
        for first in range(1, page_limit + 1, batch_size):
            yield first, min(first + batch_size - 1, page_limit)

    def retain_preview(self, image_path: str, upload_id: Optional[str] = None) -> str:
        """Copy a rendered page into the previews directory and return the copy."""
        os.makedirs(self.settings.previews_dir, exist_ok=True)
        name = f"{upload_id or 'preview'}-{uuid.uuid4().hex}.png"
        preview_path = os.path.join(self.settings.previews_dir, name)
        shutil.copyfile(image_path, preview_path)
        return preview_path

    def _failed(self, error: PageExtractionError) -> PageResult:
        self.logger.warning(error.to_warning())
        return PageResult(page=error.page, extraction=None, warnings=[error.to_warning()])

    def process(
        self,
        pdf_path: str,
        page_limit: int,
        bank_name: Optional[str] = None,
        upload_id: Optional[str] = None
    ) -> OcrRun:
        """OCR pages ``1..page_limit`` of ``pdf_path``.

        Args:
            pdf_path: Path to the PDF file.
            page_limit: Number of leading pages to process.
            bank_name: Optional bank name selecting an OCR correction profile.
            upload_id: Optional identifier used to name the preview image.

        Returns:
            OcrRun with one PageResult per page and the preview path, if any.
        """
        results: List[PageResult] = []
        preview_path: Optional[str] = None
        os.makedirs(self.settings.temp_dir, exist_ok=True)

        for first, last in self.batches(page_limit):
            with tempfile.TemporaryDirectory(prefix="render-", dir=self.settings.temp_dir) as work_dir:
                try:
                    images = self.renderer.render(pdf_path, first, last, work_dir)
                except ToolInvocationError as e:
                    for page in range(first, last + 1):
                        results.append(self._failed(PageExtractionError(page, str(e))))
                    continue

                for offset, page in enumerate(range(first, last + 1)):
                    image_path = images[offset] if offset < len(images) else None
                    try:
                        if image_path is None:
                            raise PageExtractionError(page, "page image was not rendered")

                        if preview_path is None:
                            preview_path = self.retain_preview(image_path, upload_id)

                        text = self.engine.image_to_text(image_path)
                        extraction = self.extractor.extract(text, "ocr", bank_name)
                        results.append(PageResult(
                            page=page,
                            extraction=extraction,
                            warnings=[f"Page {page}: {warning}" for warning in extraction.warnings],
                        ))
                    except PageExtractionError as e:
                        results.append(self._failed(e))
                    except (ToolInvocationError, OSError) as e:
                        results.append(self._failed(PageExtractionError(page, str(e))))
                    finally:
                        if image_path is not None:
                            try:
                                os.remove(image_path)
                            except OSError as e:
                                self.logger.warning(f"Could not remove {image_path}: {str(e)}")

        succeeded = sum(1 for result in results if result.succeeded)
        self.logger.info(f"OCR processed {succeeded}/{page_limit} pages of {pdf_path}")
        return OcrRun(pages=results, preview_path=preview_path)
