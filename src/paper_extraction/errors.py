"""
Error Taxonomy
==============

Closed set of failures the pipeline distinguishes. Every exception carries
its ErrorKind, the diagnostic ErrorCategory it is logged under, a structured
``details`` mapping and a sanitized ``user_message``.
"""

from enum import Enum
from typing import Any

from paper_extraction.diagnostics.models import ErrorCategory
from paper_extraction.diagnostics.sanitize import sanitize_message


class ErrorKind(Enum):
    """Kinds of failure surfaced by the pipeline."""

    UNSUPPORTED_FORMAT = "unsupported_format"
    FILE_VALIDATION_FAILED = "file_validation_failed"
    PDF_LOAD_FAILED = "pdf_load_failed"
    PDF_PAGE_EXTRACTION_WARNING = "pdf_page_extraction_warning"  # non-terminal
    OCR_FAILED = "ocr_failed"
    DOCX_EXTRACTION_FAILED = "docx_extraction_failed"
    LATEX_EXTRACTION_FAILED = "latex_extraction_failed"
    PLAIN_TEXT_READ_FAILED = "plain_text_read_failed"
    ANALYSIS_UNAVAILABLE = "analysis_unavailable"  # non-terminal
    UNEXPECTED_ERROR = "unexpected_error"


class PdfLoadFailure(Enum):
    """Sub-kinds of a PDF load failure."""

    INVALID_HEADER = "invalid_header"
    ENCRYPTED = "encrypted"
    PASSWORD_PROTECTED = "password_protected"
    CORRUPT_XREF = "corrupt_xref"
    OTHER = "other"


_PDF_USER_MESSAGES = {
    PdfLoadFailure.INVALID_HEADER: "The PDF file appears to be corrupted (Missing PDF header)",
    PdfLoadFailure.ENCRYPTED: "The PDF file is encrypted and cannot be processed",
    PdfLoadFailure.PASSWORD_PROTECTED: "The PDF file is password protected",
    PdfLoadFailure.CORRUPT_XREF: "The PDF structure is invalid or corrupted",
}


class DocumentProcessingError(Exception):
    """Base class for all classified pipeline failures."""

    kind: ErrorKind = ErrorKind.UNEXPECTED_ERROR
    category: ErrorCategory = ErrorCategory.DOCUMENT_EXTRACTION
    retryable: bool = False

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    @property
    def user_message(self) -> str:
        return sanitize_message(self.message)

    def summary(self) -> dict[str, Any]:
        """Short structured description, safe to return to the caller."""
        return {"kind": self.kind.value, "message": sanitize_message(self.message)}


class UnsupportedFormatError(DocumentProcessingError):
    kind = ErrorKind.UNSUPPORTED_FORMAT

    def __init__(self, extension: str, details: dict[str, Any] | None = None):
        self.extension = extension
        label = extension.lstrip(".") or "unknown"
        super().__init__(f"Unsupported file format: {label}", details)


class FileValidationError(DocumentProcessingError):
    kind = ErrorKind.FILE_VALIDATION_FAILED
    category = ErrorCategory.FILE_VALIDATION


class PdfLoadError(DocumentProcessingError):
    """Terminal for the PDF extractor; the orchestrator may still fall back to OCR."""

    kind = ErrorKind.PDF_LOAD_FAILED
    category = ErrorCategory.PDF_PROCESSING
    retryable = True

    def __init__(
        self,
        failure: PdfLoadFailure,
        message: str,
        details: dict[str, Any] | None = None,
    ):
        self.failure = failure
        super().__init__(message, details)

    @property
    def user_message(self) -> str:
        phrase = _PDF_USER_MESSAGES.get(self.failure)
        if phrase:
            return phrase
        return f"PDF processing error: {sanitize_message(self.message)}"

    def summary(self) -> dict[str, Any]:
        data = super().summary()
        data["failure"] = self.failure.value
        return data


class OcrFailedError(DocumentProcessingError):
    kind = ErrorKind.OCR_FAILED
    category = ErrorCategory.PDF_PROCESSING

    @property
    def user_message(self) -> str:
        return "Text recognition (OCR) could not recover any text from the document"


class DocxExtractionError(DocumentProcessingError):
    kind = ErrorKind.DOCX_EXTRACTION_FAILED

    @property
    def user_message(self) -> str:
        return f"Failed to process DOCX file: {sanitize_message(self.message)}"


class LatexExtractionError(DocumentProcessingError):
    kind = ErrorKind.LATEX_EXTRACTION_FAILED

    @property
    def user_message(self) -> str:
        return f"Failed to process LaTeX file: {sanitize_message(self.message)}"


class PlainTextReadError(DocumentProcessingError):
    kind = ErrorKind.PLAIN_TEXT_READ_FAILED

    @property
    def user_message(self) -> str:
        return f"Failed to read text file: {sanitize_message(self.message)}"


class AnalysisUnavailableError(DocumentProcessingError):
    """Content analysis did not complete; never fatal for an attempt."""

    kind = ErrorKind.ANALYSIS_UNAVAILABLE
    category = ErrorCategory.API_ERROR
    retryable = True

    @property
    def user_message(self) -> str:
        return "Content analysis was unavailable; using extracted text only"


class UnexpectedProcessingError(DocumentProcessingError):
    kind = ErrorKind.UNEXPECTED_ERROR

    @property
    def user_message(self) -> str:
        return "Document processing failed due to an unexpected error"
