"""
Data Models for Paper Extraction
================================

Shared data models for the document ingestion pipeline.
"""

import os
import re
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


def utc_now() -> datetime:
    """Timezone-aware current time."""
    return datetime.now(timezone.utc)


def file_extension(filename: str | None) -> str:
    """
    Lower-cased suffix after the last dot of the base name, including the dot.

    A bare ".pdf" counts as a PDF upload; a name without a dot (or ending in
    one) has no extension. Both slash styles separate directories.
    """
    name = re.split(r"[\\/]", filename or "")[-1]
    _, dot, suffix = name.rpartition(".")
    if not dot or not suffix:
        return ""
    return "." + suffix.lower()


class ExtractionMethod(Enum):
    """Method used to produce the text of a result."""

    PRIMARY = "primary"  # Native parser for the format
    ALTERNATIVE = "alternative"  # Native parser, reading-order mode
    OCR = "ocr"  # Rasterize + optical character recognition
    NONE = "none"  # Nothing was extracted


class Outcome(Enum):
    """Overall outcome of an extraction attempt."""

    SUCCESS = "success"
    PARTIAL = "partial"  # Text recovered, enrichment incomplete
    FAILED = "failed"


class ExtractionCancelled(Exception):
    """Raised when the caller abandons an attempt through its CancellationToken."""


class CancellationToken:
    """
    Cooperative cancellation flag shared between the caller and the pipeline.

    Checked at every suspension point (stage boundaries, each PDF page,
    before OCR and before content analysis). Safe to set from any thread.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise ExtractionCancelled("Extraction was cancelled by the caller")


@dataclass(frozen=True)
class RetryOptions:
    """
    Caller-adjustable options for (re-)processing a document.

    Attributes:
        use_alternative_method: Use reading-order PDF extraction and the
            alternative OCR engine when one is configured.
        ignore_encryption: Continue when a PDF's encryption forbids text
            copying but no password is needed to open it.
        skip_metadata: Do not probe document metadata.
    """

    use_alternative_method: bool = False
    ignore_encryption: bool = False
    skip_metadata: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "RetryOptions":
        """Build options from a loosely-typed mapping (camelCase or snake_case keys)."""
        if not data:
            return cls()
        aliases = {
            "useAlternativeMethod": "use_alternative_method",
            "ignoreEncryption": "ignore_encryption",
            "skipMetadata": "skip_metadata",
        }
        values = {}
        for key, value in data.items():
            name = aliases.get(key, key)
            if name in cls.__dataclass_fields__:
                values[name] = bool(value)
        return cls(**values)

    def to_dict(self) -> dict[str, bool]:
        return {
            "use_alternative_method": self.use_alternative_method,
            "ignore_encryption": self.ignore_encryption,
            "skip_metadata": self.skip_metadata,
        }


@dataclass(frozen=True)
class SourceDocument:
    """Immutable upload handed to the pipeline."""

    data: bytes
    filename: str
    mime_type: str = ""
    size: int = -1

    def __post_init__(self):
        if self.size < 0:
            object.__setattr__(self, "size", len(self.data))

    @property
    def extension(self) -> str:
        """Lower-cased extension including the dot, or "" when absent."""
        return file_extension(self.filename)


@dataclass
class ExtractionAttempt:
    """One run of the pipeline against a SourceDocument."""

    document_id: str | None = None
    project_id: str | None = None
    user_id: str | None = None
    retry_count: int = 0
    options: RetryOptions = field(default_factory=RetryOptions)
    attempt_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    started_at: datetime = field(default_factory=utc_now)
    finished_at: datetime | None = None

    @property
    def finalized(self) -> bool:
        return self.finished_at is not None

    def finalize(self) -> None:
        if self.finished_at is not None:
            raise RuntimeError(f"Attempt {self.attempt_id} is already finalized")
        self.finished_at = utc_now()

    def to_dict(self) -> dict[str, Any]:
        return {
            "attempt_id": self.attempt_id,
            "document_id": self.document_id,
            "project_id": self.project_id,
            "retry_count": self.retry_count,
            "options": self.options.to_dict(),
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
        }


@dataclass
class Figure:
    """Reference to a figure detected in the document."""

    page_number: int
    description: str
    reference: str | None = None


@dataclass
class Table:
    """Reference to a table detected in the document."""

    page_number: int
    description: str
    reference: str | None = None


@dataclass
class ProcessingDetails:
    """Diagnostic trail attached to every result."""

    start_time: datetime = field(default_factory=utc_now)
    end_time: datetime | None = None
    extraction_method: ExtractionMethod = ExtractionMethod.NONE
    page_count: int | None = None
    pdf_version: str | None = None
    used_fallback_method: bool = False
    fallback_method: str | None = None
    primary_method_error: str | None = None
    ocr_confidence: float | None = None
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat() if self.end_time else None,
            "extraction_method": self.extraction_method.value,
            "page_count": self.page_count,
            "used_fallback_method": self.used_fallback_method,
            "warnings": list(self.warnings),
        }
        if self.pdf_version:
            data["pdf_version"] = self.pdf_version
        if self.used_fallback_method:
            data["fallback_method"] = self.fallback_method
            data["primary_method_error"] = self.primary_method_error
            data["ocr_confidence"] = self.ocr_confidence
        return data


@dataclass(frozen=True)
class ExtractionResult:
    """Final, immutable output of an extraction attempt."""

    outcome: Outcome
    text: str
    processing_details: ProcessingDetails
    attempt: ExtractionAttempt
    summary: str = ""
    metadata: dict[str, str] = field(default_factory=dict)
    figures: list[Figure] = field(default_factory=list)
    tables: list[Table] = field(default_factory=list)
    error: str | None = None
    error_details: dict[str, Any] | None = None
    error_kind: str | None = None

    def __post_init__(self):
        if self.outcome == Outcome.FAILED and self.text:
            raise ValueError("A failed result cannot carry extracted text")
        if self.outcome == Outcome.PARTIAL and not self.text:
            raise ValueError("A partial result must carry extracted text")

    @property
    def success(self) -> bool:
        return self.outcome != Outcome.FAILED

    @property
    def can_retry(self) -> bool:
        """Whether the caller should offer a retry with adjusted options."""
        return self.outcome != Outcome.SUCCESS

    @property
    def word_count(self) -> int:
        return len(self.text.split())

    def to_dict(self) -> dict[str, Any]:
        """Serialize into the shape returned to the upload-handling caller."""
        data: dict[str, Any] = {
            "success": self.success,
            "outcome": self.outcome.value,
            "text": self.text,
            "summary": self.summary,
            "metadata": dict(self.metadata),
            "figures": [
                {"page_number": f.page_number, "description": f.description}
                for f in self.figures
            ],
            "tables": [
                {"page_number": t.page_number, "description": t.description}
                for t in self.tables
            ],
            "processing_details": self.processing_details.to_dict(),
            "can_retry": self.can_retry,
            "attempt": self.attempt.to_dict(),
        }
        if self.error is not None:
            data["error"] = self.error
        if self.error_details is not None:
            data["error_details"] = self.error_details
        return data


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class PipelineConfig:
    """Configuration for DocumentPipeline."""

    ocr_timeout_seconds: float = 60.0
    analysis_timeout_seconds: float = 120.0
    fallback_on_empty_text: bool = True
    detect_structures: bool = True
    max_analysis_chars: int = 32000
    validate_uploads: bool = True
    ocr_dpi: int = 300

    @classmethod
    def from_env(cls) -> "PipelineConfig":
        """Read overrides from PAPER_* environment variables."""
        defaults = cls()
        return cls(
            ocr_timeout_seconds=float(
                os.getenv("PAPER_OCR_TIMEOUT", defaults.ocr_timeout_seconds)
            ),
            analysis_timeout_seconds=float(
                os.getenv("PAPER_ANALYSIS_TIMEOUT", defaults.analysis_timeout_seconds)
            ),
            fallback_on_empty_text=_env_bool(
                "PAPER_FALLBACK_ON_EMPTY_TEXT", defaults.fallback_on_empty_text
            ),
            detect_structures=_env_bool(
                "PAPER_DETECT_STRUCTURES", defaults.detect_structures
            ),
            max_analysis_chars=int(
                os.getenv("PAPER_MAX_ANALYSIS_CHARS", defaults.max_analysis_chars)
            ),
            validate_uploads=_env_bool(
                "PAPER_VALIDATE_UPLOADS", defaults.validate_uploads
            ),
            ocr_dpi=int(os.getenv("PAPER_OCR_DPI", defaults.ocr_dpi)),
        )
