"""Exception hierarchy for the conversion pipeline."""

from typing import Optional


class ConversionError(Exception):
    """Base class for all conversion errors."""
    pass


class FatalDocumentError(ConversionError):
    """The document cannot be processed at all (e.g. unreadable page count)."""
    pass


class PageExtractionError(ConversionError):
    """A single page failed to render or OCR. Recovered as a warning."""

    def __init__(self, page: int, message: str) -> None:
        super().__init__(message)
        self.page = page

    def to_warning(self) -> str:
        return f"Page {self.page}: OCR failed. {self.args[0]}"


class ToolInvocationError(ConversionError):
    """An external tool exited abnormally, timed out or overflowed its output ceiling."""

    def __init__(self, tool: str, message: str, cause: Optional[Exception] = None) -> None:
        super().__init__(f"{tool}: {message}")
        self.tool = tool
        self.cause = cause


class ValidationError(ConversionError):
    """Input or remote payload failed validation."""
    pass
