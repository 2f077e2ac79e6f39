"""Client for a peer conversion service that converts PDFs on our behalf."""

import base64
import binascii
from typing import Any, Dict, List, Literal, Optional

import requests
from pydantic import BaseModel, ConfigDict, Field, ValidationError as PydanticValidationError, field_validator

from statement_ledger.config.settings import Settings
from statement_ledger.conversion.models import QaReport
from statement_ledger.utils.exceptions import ToolInvocationError, ValidationError
from statement_ledger.utils.logger import get_logger

DEFAULT_PREVIEW_MIME = "image/png"


class ServiceQaReport(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    method: Literal["text", "ocr", "csv"]
    transactions: int = 0
    debit_total: float = Field(0.0, alias="debitTotal")
    credit_total: float = Field(0.0, alias="creditTotal")
    balance_count: int = Field(0, alias="balanceCount")
    page_count: Optional[int] = Field(None, alias="pageCount")
    total_lines: Optional[int] = Field(None, alias="totalLines")
    matched_lines: Optional[int] = Field(None, alias="matchedLines")
    unmatched_lines: Optional[int] = Field(None, alias="unmatchedLines")
    sample_unmatched: Optional[List[str]] = Field(None, alias="sampleUnmatched")
    reconciliation_note: Optional[str] = Field(None, alias="reconciliationNote")

    @field_validator("method", mode="before")
    @classmethod
    def rename_legacy_method(cls, value: Any) -> Any:
        # older service builds tag direct extraction with the tool name
        return "text" if value == "pdftotext" else value

    def to_qa_report(self) -> QaReport:
        return QaReport.from_dict(self.model_dump(by_alias=True))


class ServicePayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    csv: str
    qa_report: ServiceQaReport = Field(alias="qaReport")
    warnings: List[Any] = Field(default_factory=list)
    transactions: Optional[int] = None
    page_count: Optional[int] = Field(None, alias="pageCount")
    preview_base64: Optional[str] = Field(None, alias="previewBase64")
    preview_mime: Optional[str] = Field(None, alias="previewMime")

    @field_validator("warnings", mode="before")
    @classmethod
    def keep_string_warnings(cls, value: Any) -> List[str]:
        if not isinstance(value, list):
            return []
        return [item for item in value if isinstance(item, str)]


class ServicePreview(BaseModel):
    data: bytes
    mime: str = DEFAULT_PREVIEW_MIME


class ServiceConversion(BaseModel):
    """Validated result of a remote conversion."""

    csv: str
    warnings: List[str]
    qa_report: ServiceQaReport
    transactions: int
    page_count: int
    preview: Optional[ServicePreview] = None


def parse_service_payload(payload: Dict[str, Any]) -> ServiceConversion:
    """Validate a service response body.

    ``transactions`` and ``pageCount`` fall back to the QA report when absent.

    Raises:
        ValidationError: If the payload does not match the service schema.
    """
    try:
        parsed = ServicePayload.model_validate(payload)
    except PydanticValidationError as e:
        raise ValidationError(f"Conversion service payload is invalid: {str(e)}")

    preview = None
    if parsed.preview_base64 is not None:
        try:
            data = base64.b64decode(parsed.preview_base64, validate=True)
        except (binascii.Error, ValueError) as e:
            raise ValidationError(f"Conversion service preview is not valid base64: {str(e)}")
        preview = ServicePreview(data=data, mime=parsed.preview_mime or DEFAULT_PREVIEW_MIME)

    transactions = parsed.transactions
    if transactions is None:
        transactions = parsed.qa_report.transactions
    page_count = parsed.page_count
    if page_count is None:
        page_count = parsed.qa_report.page_count or 0

    return ServiceConversion(
        csv=parsed.csv,
        warnings=parsed.warnings,
        qa_report=parsed.qa_report,
        transactions=transactions,
        page_count=page_count,
        preview=preview,
    )


class RemoteConversionClient:
    """Posts PDFs to ``<CONVERSION_SERVICE_URL>/convert-pdf``."""

    def __init__(self, settings: Settings, session: Optional[requests.Session] = None) -> None:
        self.settings = settings
        self.session = session or requests.Session()
        self.logger = get_logger(__name__)

    @property
    def base_url(self) -> Optional[str]:
        url = (self.settings.conversion_service_url or "").strip()
        if not url:
            return None
        return url[:-1] if url.endswith("/") else url

    def is_configured(self) -> bool:
        return self.base_url is not None

    def _headers(self) -> Dict[str, str]:
        token = self.settings.conversion_service_token
        return {"Authorization": f"Bearer {token}"} if token else {}

    def convert(
        self,
        file_name: str,
        file_bytes: bytes,
        upload_id: str,
        bank_name: Optional[str] = None
    ) -> Optional[ServiceConversion]:
        """Delegate one conversion to the service.

        Returns:
            The validated conversion, or None when no service is configured.

        Raises:
            ToolInvocationError: If the request fails or the service answers
                with a non-2xx status.
            ValidationError: If the response body is malformed.
        """
        base_url = self.base_url
        if base_url is None:
            return None

        data = {"uploadId": upload_id}
        if bank_name:
            data["bankName"] = bank_name

        self.logger.info(f"Delegating conversion of {file_name} to {base_url}")
        try:
            response = self.session.post(
                f"{base_url}/convert-pdf",
                files={"file": (file_name, file_bytes, "application/pdf")},
                data=data,
                headers=self._headers(),
                timeout=self.settings.remote_timeout_seconds,
            )
        except requests.RequestException as e:
            raise ToolInvocationError("conversion-service", f"request failed: {str(e)}", e)

        if not response.ok:
            raise ToolInvocationError(
                "conversion-service",
                f"Conversion service failed: {response.status_code} {response.reason}"
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise ValidationError(f"Conversion service returned non-JSON body: {str(e)}")
        if not isinstance(payload, dict):
            raise ValidationError("Conversion service payload is not an object.")

        return parse_service_payload(payload)
