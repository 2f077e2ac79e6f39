"""Configuration settings for the statement conversion pipeline."""

import os
import json
from typing import Dict, Any, Optional
from dataclasses import dataclass

# File Paths
BASE_DIR = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
STORAGE_DIR = os.getenv("STORAGE_DIR", os.path.join(BASE_DIR, "storage"))
CONVERTED_DIR = os.getenv("CONVERTED_DIR", os.path.join(STORAGE_DIR, "converted"))
PREVIEWS_DIR = os.getenv("PREVIEWS_DIR", os.path.join(STORAGE_DIR, "previews"))
TEMP_DIR = os.getenv("TEMP_DIR", os.path.join(STORAGE_DIR, "tmp"))
LOGS_DIR = os.getenv("LOGS_DIR", os.path.join(BASE_DIR, "logs"))

# Input limits
SUPPORTED_PDF_FORMATS = [".pdf"]
SUPPORTED_CSV_FORMATS = [".csv", ".txt"]
MAX_FILE_SIZE_MB = int(os.getenv("MAX_FILE_SIZE_MB", "50"))

# OCR Configuration
OCR_DPI = int(os.getenv("OCR_DPI", "300"))
OCR_BATCH_SIZE = int(os.getenv("OCR_BATCH_SIZE", "10"))
OCR_LANGUAGE = os.getenv("OCR_LANGUAGE", "eng")
OCR_PSM = int(os.getenv("OCR_PSM", "6"))
TESSERACT_CMD = os.getenv("TESSERACT_CMD")
POPPLER_PATH = os.getenv("POPPLER_PATH")

# External tool limits
TOOL_TIMEOUT_SECONDS = int(os.getenv("TOOL_TIMEOUT_SECONDS", "120"))
MAX_TOOL_OUTPUT_BYTES = int(os.getenv("MAX_TOOL_OUTPUT_BYTES", str(10 * 1024 * 1024)))

# Extraction heuristics
TEXT_ACCEPT_THRESHOLD = int(os.getenv("TEXT_ACCEPT_THRESHOLD", "5"))
UNMATCHED_RATIO_THRESHOLD = float(os.getenv("UNMATCHED_RATIO_THRESHOLD", "0.45"))
ANOMALOUS_AVERAGE_AMOUNT = float(os.getenv("ANOMALOUS_AVERAGE_AMOUNT", "1000000"))
SAMPLE_UNMATCHED_LIMIT = 6

# Currency Configuration
DEFAULT_CURRENCY = os.getenv("DEFAULT_CURRENCY", "ZAR")

# Remote conversion service
CONVERSION_SERVICE_URL = os.getenv("CONVERSION_SERVICE_URL")
CONVERSION_SERVICE_TOKEN = os.getenv("CONVERSION_SERVICE_TOKEN")
REMOTE_TIMEOUT_SECONDS = int(os.getenv("REMOTE_TIMEOUT_SECONDS", "300"))

# Celery Configuration
CELERY_BROKER_URL = os.getenv("CELERY_BROKER_URL", "redis://localhost:6379/0")
CELERY_RESULT_BACKEND = os.getenv("CELERY_RESULT_BACKEND", "redis://localhost:6379/0")
CELERY_TASK_SERIALIZER = "json"
CELERY_RESULT_SERIALIZER = "json"
CELERY_ACCEPT_CONTENT = ["json"]
CELERY_TIMEZONE = "UTC"
MAX_RETRIES = int(os.getenv("MAX_RETRIES", "3"))
RETRY_DELAY_SECONDS = int(os.getenv("RETRY_DELAY_SECONDS", "60"))

# Logging Configuration
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _optional_env(name: str) -> Optional[str]:
    value = os.getenv(name)
    if value is None or not value.strip():
        return None
    return value.strip()


@dataclass
class Settings:
    """Configuration settings class."""

    # OCR
    ocr_dpi: int = 300
    ocr_batch_size: int = 10
    ocr_language: str = "eng"
    ocr_psm: int = 6
    tesseract_cmd: Optional[str] = None
    poppler_path: Optional[str] = None

    # External tools
    tool_timeout_seconds: int = 120
    max_tool_output_bytes: int = 10 * 1024 * 1024

    # Heuristics
    text_accept_threshold: int = 5
    unmatched_ratio_threshold: float = 0.45
    anomalous_average_amount: float = 1000000.0
    default_currency: str = "ZAR"

    # Remote service
    conversion_service_url: Optional[str] = None
    conversion_service_token: Optional[str] = None
    remote_timeout_seconds: int = 300

    # File System
    base_dir: str = BASE_DIR
    storage_dir: str = STORAGE_DIR
    converted_dir: str = CONVERTED_DIR
    previews_dir: str = PREVIEWS_DIR
    temp_dir: str = TEMP_DIR
    logs_dir: str = LOGS_DIR
    max_file_size_mb: int = 50

    # Logging
    log_level: str = "INFO"
    log_format: str = LOG_FORMAT

    # Celery Configuration
    celery_broker_url: str = CELERY_BROKER_URL
    celery_result_backend: str = CELERY_RESULT_BACKEND
    max_retries: int = 3
    retry_delay_seconds: int = 60

    @classmethod
    def from_env(cls) -> "Settings":
        """Create Settings from environment variables."""
        return cls(
            ocr_dpi=int(os.getenv("OCR_DPI", "300")),
            ocr_batch_size=int(os.getenv("OCR_BATCH_SIZE", "10")),
            ocr_language=os.getenv("OCR_LANGUAGE", "eng"),
            ocr_psm=int(os.getenv("OCR_PSM", "6")),
            tesseract_cmd=_optional_env("TESSERACT_CMD"),
            poppler_path=_optional_env("POPPLER_PATH"),
            tool_timeout_seconds=int(os.getenv("TOOL_TIMEOUT_SECONDS", "120")),
            max_tool_output_bytes=int(os.getenv("MAX_TOOL_OUTPUT_BYTES", str(10 * 1024 * 1024))),
            text_accept_threshold=int(os.getenv("TEXT_ACCEPT_THRESHOLD", "5")),
            unmatched_ratio_threshold=float(os.getenv("UNMATCHED_RATIO_THRESHOLD", "0.45")),
            anomalous_average_amount=float(os.getenv("ANOMALOUS_AVERAGE_AMOUNT", "1000000")),
            default_currency=os.getenv("DEFAULT_CURRENCY", "ZAR"),
            conversion_service_url=_optional_env("CONVERSION_SERVICE_URL"),
            conversion_service_token=_optional_env("CONVERSION_SERVICE_TOKEN"),
            remote_timeout_seconds=int(os.getenv("REMOTE_TIMEOUT_SECONDS", "300")),
            base_dir=os.getenv("BASE_DIR", BASE_DIR),
            storage_dir=os.getenv("STORAGE_DIR", STORAGE_DIR),
            converted_dir=os.getenv("CONVERTED_DIR", CONVERTED_DIR),
            previews_dir=os.getenv("PREVIEWS_DIR", PREVIEWS_DIR),
            temp_dir=os.getenv("TEMP_DIR", TEMP_DIR),
            logs_dir=os.getenv("LOGS_DIR", LOGS_DIR),
            max_file_size_mb=int(os.getenv("MAX_FILE_SIZE_MB", "50")),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            celery_broker_url=os.getenv("CELERY_BROKER_URL", "redis://localhost:6379/0"),
            celery_result_backend=os.getenv("CELERY_RESULT_BACKEND", "redis://localhost:6379/0"),
            max_retries=int(os.getenv("MAX_RETRIES", "3")),
            retry_delay_seconds=int(os.getenv("RETRY_DELAY_SECONDS", "60")),
        )

    def validate(self) -> bool:
        """Validate settings."""
        return (
            self.ocr_dpi > 0 and
            self.ocr_batch_size > 0 and
            self.tool_timeout_seconds > 0 and
            self.max_tool_output_bytes > 0 and
            self.text_accept_threshold > 0 and
            0 < self.unmatched_ratio_threshold <= 1 and
            self.anomalous_average_amount > 0 and
            len(self.default_currency) > 0 and
            self.max_file_size_mb > 0
        )

    def get_log_level(self) -> str:
        """Get log level as string."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if self.log_level.upper() in valid_levels:
            return self.log_level.upper()
        return "INFO"

    def get_tesseract_config(self) -> str:
        """Build the tesseract command-line config string."""
        return f"--psm {self.ocr_psm}"

    def is_remote_enabled(self) -> bool:
        """Check whether conversions are delegated to a remote service."""
        return bool(self.conversion_service_url)

    def create_directories(self) -> None:
        """Create necessary directories."""
        directories = [
            self.storage_dir,
            self.converted_dir,
            self.previews_dir,
            self.temp_dir,
            self.logs_dir,
        ]
        for directory in directories:
            os.makedirs(directory, exist_ok=True)

    def update(self, data: Dict[str, Any]) -> None:
        """Update settings from dictionary."""
        for key, value in data.items():
            if hasattr(self, key):
                setattr(self, key, value)


def ensure_directories() -> None:
    """Ensure all required directories exist."""
    directories = [STORAGE_DIR, CONVERTED_DIR, PREVIEWS_DIR, TEMP_DIR, LOGS_DIR]
    for directory in directories:
        os.makedirs(directory, exist_ok=True)


def load_config_from_file(file_path: str) -> Dict[str, Any]:
    """Load configuration from file."""
    with open(file_path, 'r') as f:
        return json.load(f)


def load_settings(config_file: Optional[str] = None) -> Settings:
    """Build Settings from the environment, overlaid with an optional JSON file.

    Raises:
        ValueError: If the resulting settings are out of range.
    """
    settings = Settings.from_env()
    if config_file:
        settings.update(load_config_from_file(config_file))
    if not settings.validate():
        raise ValueError("Invalid settings: check numeric limits and the default currency")
    return settings
