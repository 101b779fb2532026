"""
Upload Validation
=================

Size limits, declared-type consistency and magic-number checks applied
before extraction. Only an oversize upload is terminal; type and signature
mismatches are reported as warnings so that, for example, a PDF with a
damaged header still reaches the PDF extractor and its OCR fallback.
"""

import re
from dataclasses import dataclass, field

from paper_extraction.detector import FormatKind, mime_matches
from paper_extraction.errors import FileValidationError
from paper_extraction.models import SourceDocument

MB = 1024 * 1024

FILE_SIZE_LIMITS: dict[FormatKind, int] = {
    FormatKind.PDF: 50 * MB,
    FormatKind.DOCX: 25 * MB,
    FormatKind.LATEX: 10 * MB,
    FormatKind.PLAIN_TEXT: 10 * MB,
}

FILE_SIGNATURES: dict[FormatKind, tuple[bytes, ...]] = {
    FormatKind.PDF: (b"%PDF",),
    FormatKind.DOCX: (b"PK\x03\x04",),
}


@dataclass
class ValidationReport:
    """Non-terminal findings from upload validation."""

    warnings: list[str] = field(default_factory=list)

    @property
    def clean(self) -> bool:
        return not self.warnings


def validate_upload(document: SourceDocument, kind: FormatKind) -> ValidationReport:
    """
    Validate an upload for the detected format.

    Raises:
        FileValidationError: The upload exceeds the size limit for its format
    """
    limit = FILE_SIZE_LIMITS[kind]
    size = max(document.size, len(document.data))
    if size > limit:
        raise FileValidationError(
            f"File size exceeds the limit of {limit // MB}MB",
            details={"size": size, "limit": limit, "format": kind.value},
        )

    report = ValidationReport()

    if document.mime_type and not mime_matches(kind, document.mime_type):
        report.warnings.append(
            f"Declared content type {document.mime_type!r} does not match "
            f"the {kind.value} extension"
        )

    signatures = FILE_SIGNATURES.get(kind)
    if signatures and not document.data.startswith(signatures):
        report.warnings.append(
            f"File content does not start with a valid {kind.value.upper()} signature"
        )

    return report


_UNSAFE_CHARS = re.compile(r"[^\w\s.-]")


def sanitize_filename(filename: str) -> str:
    """Strip directory components and unsafe characters from an uploaded filename."""
    name = re.sub(r"^.*[\\/]", "", filename or "")
    name = _UNSAFE_CHARS.sub("_", name)
    name = re.sub(r"\s+", "_", name)[:255]
    return name or "unnamed_file"
