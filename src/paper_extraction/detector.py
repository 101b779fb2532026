"""
Format Detector
===============

Routes an upload to the extractor for its format.

Detection is by filename extension (case-insensitive) against a fixed
allow-list. File contents are never sniffed here; the declared MIME type is
only compared against the known types for the detected format so the caller
can record a warning on mismatch.

Usage:
    from paper_extraction.detector import FormatDetector, FormatKind

    detector = FormatDetector()
    kind = detector.detect("paper.PDF", "application/pdf")
    assert kind is FormatKind.PDF
"""

import logging
from enum import Enum

from paper_extraction.errors import UnsupportedFormatError
from paper_extraction.models import file_extension

logger = logging.getLogger(__name__)


class FormatKind(Enum):
    """Document formats the pipeline can extract."""

    PDF = "pdf"
    DOCX = "docx"
    LATEX = "latex"
    PLAIN_TEXT = "plain_text"


EXTENSIONS: dict[str, FormatKind] = {
    ".pdf": FormatKind.PDF,
    ".docx": FormatKind.DOCX,
    ".tex": FormatKind.LATEX,
    ".txt": FormatKind.PLAIN_TEXT,
}

MIME_TYPES: dict[FormatKind, tuple[str, ...]] = {
    FormatKind.PDF: ("application/pdf",),
    FormatKind.DOCX: (
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        "application/vnd.ms-word.document.macroEnabled.12",
    ),
    FormatKind.LATEX: ("application/x-tex", "text/x-tex", "application/x-latex"),
    FormatKind.PLAIN_TEXT: ("text/plain",),
}


class FormatDetector:
    """Extension-based format detection over a fixed allow-list."""

    def __init__(self, extensions: dict[str, FormatKind] | None = None):
        self.extensions = dict(extensions or EXTENSIONS)

    def detect(self, filename: str | None, mime_type: str | None = None) -> FormatKind:
        """
        Determine the format of an upload.

        Args:
            filename: Declared filename
            mime_type: Declared MIME type (informational only)

        Returns:
            FormatKind for the extension

        Raises:
            UnsupportedFormatError: Unknown or missing extension
        """
        extension = file_extension(filename)

        kind = self.extensions.get(extension)
        if kind is None:
            logger.info("Unsupported extension %r for %r", extension, filename)
            raise UnsupportedFormatError(
                extension,
                details={"file_name": filename, "mime_type": mime_type},
            )
        return kind

    def supported_extensions(self) -> list[str]:
        return sorted(self.extensions)


def mime_matches(kind: FormatKind, mime_type: str | None) -> bool:
    """True when the declared MIME type is a known type for ``kind``."""
    if not mime_type:
        return False
    base = mime_type.split(";", 1)[0].strip().lower()
    return base in MIME_TYPES[kind]
