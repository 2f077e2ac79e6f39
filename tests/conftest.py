"""Pytest configuration and fixtures for the statement ledger converter."""

import os
import shutil
import tempfile
from pathlib import Path
from typing import Dict, List, Optional
from unittest.mock import patch

import pytest

from statement_ledger.config.settings import Settings
from statement_ledger.utils.exceptions import ToolInvocationError

DESCRIPTIONS = [
    "Card purchase grocer",
    "Fuel station",
    "Airtime top up",
    "Pharmacy",
    "Coffee shop",
    "Bookstore",
    "Hardware store",
    "Restaurant",
    "Parking",
    "Insurance premium",
    "Electricity prepaid",
    "Cinema tickets",
]


def build_statement_text(count: int, header: bool = True) -> str:
    """Text-layer statement with ``count`` three-amount transaction lines."""
    lines = []
    if header:
        lines.extend(["ACME BANK", "Account holder: J Smith"])
    for index in range(count):
        description = DESCRIPTIONS[index % len(DESCRIPTIONS)]
        lines.append(f"{index + 1:02d}/01/24 {description} 100.00 0.00 2000.00")
    return "\n".join(lines)


class FakeTextExtractor:
    """Stands in for ``DocumentTextExtractor``."""

    def __init__(
        self,
        text: str = "",
        pages: int = 1,
        page_error: Optional[Exception] = None,
        text_error: Optional[Exception] = None
    ) -> None:
        self.text = text
        self.pages = pages
        self.page_error = page_error
        self.text_error = text_error
        self.extract_calls = 0

    def page_count(self, pdf_path: str) -> int:
        if self.page_error is not None:
            raise self.page_error
        return self.pages

    def extract_text(self, pdf_path: str, max_pages: Optional[int] = None) -> str:
        self.extract_calls += 1
        if self.text_error is not None:
            raise self.text_error
        return self.text


class FakeRenderer:
    """Writes one placeholder PNG per page instead of calling poppler."""

    def __init__(self, fail_batches: Optional[List[int]] = None, skip_pages: Optional[List[int]] = None) -> None:
        self.calls = []
        self.fail_batches = fail_batches or []
        self.skip_pages = skip_pages or []
        self.rendered: List[str] = []

    def render(self, pdf_path: str, first_page: int, last_page: int, output_dir: str) -> List[str]:
        self.calls.append((first_page, last_page))
        if first_page in self.fail_batches:
            raise ToolInvocationError("pdftoppm", f"failed to render pages {first_page}-{last_page}")
        paths = []
        for page in range(first_page, last_page + 1):
            if page in self.skip_pages:
                continue
            path = os.path.join(output_dir, f"page-{page:04d}.png")
            with open(path, "wb") as f:
                f.write(b"\x89PNG page %d" % page)
            paths.append(path)
            self.rendered.append(path)
        return paths


class FakeOcrEngine:
    """Returns canned OCR text keyed by the page number in the image name."""

    def __init__(self, texts: Dict[int, str], failing_pages: Optional[List[int]] = None) -> None:
        self.texts = texts
        self.failing_pages = failing_pages or []
        self.seen: List[str] = []

    def image_to_text(self, image_path: str) -> str:
        self.seen.append(image_path)
        page = int(Path(image_path).stem.split("-")[-1])
        if page in self.failing_pages:
            raise ToolInvocationError("tesseract", "Tesseract process timeout")
        return self.texts.get(page, "")


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    temp_path = tempfile.mkdtemp()
    yield Path(temp_path)
    shutil.rmtree(temp_path)


@pytest.fixture
def sample_settings(temp_dir):
    """Settings whose directories all live under ``temp_dir``."""
    storage = temp_dir / "storage"
    settings = Settings(
        storage_dir=str(storage),
        converted_dir=str(storage / "converted"),
        previews_dir=str(storage / "previews"),
        temp_dir=str(storage / "tmp"),
        logs_dir=str(temp_dir / "logs"),
        conversion_service_url=None,
        conversion_service_token=None,
    )
    settings.create_directories()
    return settings


@pytest.fixture
def sample_pdf_file(temp_dir):
    """Create a sample PDF file for testing."""
    pdf_file = temp_dir / "statement.pdf"
    pdf_file.write_bytes(b"%PDF-1.4\n1 0 obj\n<<\n/Type /Catalog\n/Pages 2 0 R\n>>\nendobj\n")
    return str(pdf_file)


@pytest.fixture
def sample_csv_text():
    """A bank export using alias headers and a signed amount column."""
    return (
        "Transaction Date,Details,Ref,Amount,Running Balance\n"
        "2024-01-15,Salary,PAY01,\"5,000.00\",\"5,000.00\"\n"
        "2024-01-16,Groceries,,-150.00,\"4,850.00\"\n"
        "2024-01-17,Refund,R-9,25.50,\"4,875.50\"\n"
    )


@pytest.fixture
def sample_csv_file(temp_dir, sample_csv_text):
    csv_file = temp_dir / "export.csv"
    csv_file.write_text(sample_csv_text, encoding="utf-8")
    return str(csv_file)


@pytest.fixture
def scanned_page_texts():
    """OCR output for a three-page scanned statement."""
    return {
        1: "Page 1 of 3 - ACME Bank\n01/02/24 Salary 0.00 5000.00 5000.00\nEmployer payroll\n02/02/24 Rent 3000.00 0.00 2000.00\nLandlord",
        2: "Page 2 of 3 - ACME Bank\n05/02/24 Groceries 450.00 0.00 1550.00\nSupermarket",
        3: "Page 3 of 3 - ACME Bank\n09/02/24 Transfer in 0.00 250.00 1800.00\nSavings",
    }


@pytest.fixture
def sample_environment():
    """Create sample environment variables for testing."""
    env_vars = {
        "OCR_DPI": "200",
        "OCR_BATCH_SIZE": "5",
        "DEFAULT_CURRENCY": "USD",
        "LOG_LEVEL": "DEBUG",
        "CONVERSION_SERVICE_URL": "https://convert.example.com/",
        "CONVERSION_SERVICE_TOKEN": "secret-token",
        "MAX_RETRIES": "2",
    }
    with patch.dict(os.environ, env_vars):
        yield env_vars
