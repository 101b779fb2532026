"""
PDF Extractor
=============

Primary PDF text extraction using PyMuPDF.

Load failures are classified into PdfLoadFailure sub-kinds and raised as
PdfLoadError (terminal for this extractor; the orchestrator decides whether
to fall back to OCR). Everything after a successful load is best-effort:

- metadata probing failures become warnings
- each page is extracted independently; a failing page (an exception, a
  dangling content reference or a MuPDF warning) adds a warning and the
  remaining pages are still processed, in order
- an empty document adds a "no text" warning instead of failing
- the figure/table caption pass never fails the extraction

Usage:
    extractor = PdfExtractor()
    extraction = extractor.extract(pdf_bytes, RetryOptions(skip_metadata=True))
    print(extraction.page_count, extraction.warnings)
"""

import logging
import re

import fitz  # PyMuPDF

from paper_extraction.errors import PdfLoadError, PdfLoadFailure
from paper_extraction.models import (
    CancellationToken,
    ExtractionMethod,
    Figure,
    RetryOptions,
    Table,
)

from .base import BaseExtractor, FormatExtraction

logger = logging.getLogger(__name__)

HEADER_SEARCH_BYTES = 1024
NO_TEXT_WARNING = "No text content extracted from PDF"

_FIGURE_RE = re.compile(r"\b(?:Figure|Fig\.)\s*(\d+)")
_TABLE_RE = re.compile(r"\bTable\s*(\d+)")
_INDIRECT_REF_RE = re.compile(r"(\d+)\s+\d+\s+R")

# Substrings of loader messages, checked in order.
_LOAD_FAILURE_MARKERS = (
    ("password", PdfLoadFailure.PASSWORD_PROTECTED),
    ("encrypt", PdfLoadFailure.ENCRYPTED),
    ("crypt", PdfLoadFailure.ENCRYPTED),
    ("xref", PdfLoadFailure.CORRUPT_XREF),
    ("header", PdfLoadFailure.INVALID_HEADER),
)


def classify_load_error(exc: BaseException) -> PdfLoadError:
    """Map a loader exception onto a PdfLoadError sub-kind by its message."""
    text = str(exc)
    lowered = text.lower()
    for marker, failure in _LOAD_FAILURE_MARKERS:
        if marker in lowered:
            break
    else:
        failure = PdfLoadFailure.OTHER

    messages = {
        PdfLoadFailure.PASSWORD_PROTECTED: "Password-protected PDF cannot be processed",
        PdfLoadFailure.ENCRYPTED: "Cannot process encrypted PDF",
        PdfLoadFailure.CORRUPT_XREF: "PDF structure is invalid or corrupted (XRef)",
        PdfLoadFailure.INVALID_HEADER: "Invalid PDF format: Missing PDF header",
    }
    message = messages.get(failure, f"Failed to load PDF: {text or type(exc).__name__}")
    return PdfLoadError(
        failure,
        message,
        details={"original_error": text, "error_type": type(exc).__name__},
    )


class PdfExtractor(BaseExtractor):
    """
    Page-isolated PDF text extractor.

    Attributes:
        detect_structures: Run the figure/table caption pass
    """

    def __init__(self, detect_structures: bool = True):
        super().__init__(name="PyMuPDF")
        self.detect_structures = detect_structures

    def extract(
        self,
        data: bytes,
        options: RetryOptions | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> FormatExtraction:
        """
        Extract text, metadata and figure/table references from a PDF.

        Args:
            data: Raw PDF bytes
            options: ignore_encryption, skip_metadata and
                use_alternative_method are honoured
            cancel_token: Checked before every page

        Returns:
            FormatExtraction (method PRIMARY or ALTERNATIVE)

        Raises:
            PdfLoadError: The document could not be opened
            ExtractionCancelled: The caller cancelled mid-document
        """
        options = options or RetryOptions()
        warnings: list[str] = []

        doc = self._open(data)
        try:
            self._check_access(doc, options, warnings)

            pdf_version = None
            metadata: dict[str, str] = {}
            if not options.skip_metadata:
                pdf_version, metadata = self._read_metadata(doc, warnings)

            page_count = doc.page_count
            page_texts = self._extract_pages(
                doc,
                alternative=options.use_alternative_method,
                warnings=warnings,
                cancel_token=cancel_token,
            )

            text = "\n\n".join(text for _, text in page_texts)
            if not text.strip():
                warnings.append(NO_TEXT_WARNING)

            figures: list[Figure] = []
            tables: list[Table] = []
            if self.detect_structures:
                try:
                    figures, tables = self._detect_structures(page_texts)
                except Exception as e:
                    warnings.append(f"Figure/table detection failed: {e}")

            logger.info(
                "PDF extracted: pages=%d, chars=%d, warnings=%d",
                page_count,
                len(text),
                len(warnings),
            )

            return FormatExtraction(
                text=text,
                metadata=metadata,
                figures=figures,
                tables=tables,
                method=(
                    ExtractionMethod.ALTERNATIVE
                    if options.use_alternative_method
                    else ExtractionMethod.PRIMARY
                ),
                page_count=page_count,
                pdf_version=pdf_version,
                warnings=warnings,
            )
        finally:
            doc.close()

    def _open(self, data: bytes) -> fitz.Document:
        """Open the buffer, classifying any load failure."""
        if b"%PDF-" not in data[:HEADER_SEARCH_BYTES]:
            raise PdfLoadError(
                PdfLoadFailure.INVALID_HEADER,
                "Invalid PDF format: Missing PDF header",
                details={"size": len(data)},
            )

        try:
            return fitz.open(stream=data, filetype="pdf")
        except Exception as e:
            logger.warning("PDF load failed: %s", e)
            raise classify_load_error(e) from e

    def _check_access(
        self,
        doc: fitz.Document,
        options: RetryOptions,
        warnings: list[str],
    ) -> None:
        """Reject documents whose encryption prevents text extraction."""
        if doc.needs_pass:
            raise PdfLoadError(
                PdfLoadFailure.PASSWORD_PROTECTED,
                "Password-protected PDF cannot be processed",
            )

        if getattr(doc, "is_repaired", False):
            warnings.append("PDF cross-reference table was damaged and has been repaired")

        encryption = (doc.metadata or {}).get("encryption")
        if not encryption:
            return

        copy_allowed = bool(doc.permissions & fitz.PDF_PERM_COPY)
        if copy_allowed:
            return
        if options.ignore_encryption:
            warnings.append(
                f"Encryption restrictions ignored ({encryption}); text copying is not permitted"
            )
            return

        raise PdfLoadError(
            PdfLoadFailure.ENCRYPTED,
            "Cannot process encrypted PDF",
            details={"encryption": encryption},
        )

    def _read_metadata(
        self,
        doc: fitz.Document,
        warnings: list[str],
    ) -> tuple[str | None, dict[str, str]]:
        """Best-effort read of the format version and info dictionary."""
        try:
            raw = doc.metadata or {}
        except Exception as e:
            warnings.append(f"Metadata extraction failed: {e}")
            return None, {}

        version = raw.get("format") or None
        metadata = {
            key: str(value)
            for key, value in raw.items()
            if value and key not in ("format", "encryption")
        }
        return version, metadata

    def _extract_pages(
        self,
        doc: fitz.Document,
        alternative: bool,
        warnings: list[str],
        cancel_token: CancellationToken | None = None,
    ) -> list[tuple[int, str]]:
        """
        Extract every page independently.

        MuPDF reports most content-stream damage on its own warning channel
        instead of raising, so a page also counts as failed when it has a
        dangling content reference or MuPDF warned while reading it.

        Returns:
            List of (page_number, text) for pages that produced text, in order
        """
        results: list[tuple[int, str]] = []

        for index in range(doc.page_count):
            if cancel_token is not None:
                cancel_token.raise_if_cancelled()

            page_number = index + 1  # 1-indexed
            fitz.TOOLS.mupdf_warnings(reset=True)
            try:
                page = doc.load_page(index)
                problem = _missing_contents(doc, page)
                if problem is None:
                    text = self._extract_page_text(page, page_number, alternative)
                    problem = _mupdf_warning_summary()
            except Exception as e:
                problem = str(e) or type(e).__name__

            if problem:
                logger.warning("Page %d extraction failed: %s", page_number, problem)
                warnings.append(f"Failed to extract text from page {page_number}: {problem}")
                continue

            text = text.strip()
            if text:
                results.append((page_number, text))

        return results

    def _extract_page_text(
        self,
        page: fitz.Page,
        page_number: int,
        alternative: bool = False,
    ) -> str:
        """
        Extract the text of a single page.

        The alternative mode reassembles text blocks in reading order, which
        copes better with multi-column layouts and odd content streams.
        """
        if not alternative:
            return page.get_text("text")

        blocks = page.get_text("blocks", sort=True)
        return "\n".join(
            block[4].strip()
            for block in blocks
            if block[6] == 0 and block[4].strip()  # text blocks only
        )

    def _detect_structures(
        self,
        page_texts: list[tuple[int, str]],
    ) -> tuple[list[Figure], list[Table]]:
        """Flag figure and table captions page by page."""
        figures: list[Figure] = []
        tables: list[Table] = []

        for page_number, text in page_texts:
            for label, description in _find_references(text, _FIGURE_RE, "Figure"):
                figures.append(
                    Figure(page_number=page_number, description=description, reference=label)
                )
            for label, description in _find_references(text, _TABLE_RE, "Table"):
                tables.append(
                    Table(page_number=page_number, description=description, reference=label)
                )

        return figures, tables


def _find_references(
    text: str,
    pattern: re.Pattern[str],
    noun: str,
) -> list[tuple[str, str]]:
    """
    Find numbered references on one page.

    A line that starts with the reference is treated as its caption and used
    as the description; otherwise a generic description is produced.
    """
    found: dict[str, str] = {}

    for match in pattern.finditer(text):
        label = f"{noun} {match.group(1)}"
        line_start = text.rfind("\n", 0, match.start()) + 1
        line_end = text.find("\n", match.end())
        line = text[line_start : line_end if line_end != -1 else len(text)].strip()

        if line.startswith(match.group(0)):
            found[label] = line[:200]
        elif label not in found:
            found[label] = f"{label} referenced in text"

    return list(found.items())


def _missing_contents(doc: fitz.Document, page: fitz.Page) -> str | None:
    """Describe a /Contents reference that points at no object, if any."""
    kind, value = doc.xref_get_key(page.xref, "Contents")
    if kind not in ("xref", "array"):
        return None
    for match in _INDIRECT_REF_RE.finditer(value):
        xref = int(match.group(1))
        if xref >= doc.xref_length() or doc.xref_object(xref).strip() == "null":
            return f"content stream {match.group(0)} is missing"
    return None


def _mupdf_warning_summary() -> str | None:
    """Warnings MuPDF collected since the last reset, on one line."""
    messages = [
        line.strip()
        for line in fitz.TOOLS.mupdf_warnings(reset=True).splitlines()
        if line.strip()
    ]
    return "; ".join(messages) or None
