"""
OCR Fallback Extractor
======================

Last-resort text recovery for PDFs the primary extractor could not read.

The first page is rendered with PyMuPDF and handed to an OCR engine. There
is no further fallback: an unusable document, an unavailable engine or an
empty recognition result all raise OcrFailedError.

Usage:
    fallback = OcrFallbackExtractor(TesseractBackend())
    ocr = fallback.extract(pdf_bytes, FormatKind.PDF)
    print(ocr.text, ocr.confidence)
"""

import logging
from dataclasses import dataclass

import fitz  # PyMuPDF
from PIL import Image

from paper_extraction.backends.base import BaseOCRBackend
from paper_extraction.detector import FormatKind
from paper_extraction.errors import OcrFailedError
from paper_extraction.models import CancellationToken, ExtractionMethod, RetryOptions

logger = logging.getLogger(__name__)


@dataclass
class OcrExtraction:
    """Text recovered by the fallback path."""

    text: str
    confidence: float
    engine: str
    method: ExtractionMethod = ExtractionMethod.OCR


class OcrFallbackExtractor:
    """
    Rasterize + OCR fallback for PDFs.

    Attributes:
        backend: Default OCR engine
        alternative_backend: Engine used when the caller asks for the
            alternative method (falls back to ``backend`` when unset or
            unavailable)
        dpi: Render resolution
    """

    def __init__(
        self,
        backend: BaseOCRBackend,
        alternative_backend: BaseOCRBackend | None = None,
        dpi: int = 300,
    ):
        self.backend = backend
        self.alternative_backend = alternative_backend
        self.dpi = dpi

    def select_backend(self, options: RetryOptions) -> BaseOCRBackend:
        if (
            options.use_alternative_method
            and self.alternative_backend is not None
            and self.alternative_backend.is_available()
        ):
            return self.alternative_backend
        return self.backend

    def extract(
        self,
        data: bytes,
        kind: FormatKind = FormatKind.PDF,
        options: RetryOptions | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> OcrExtraction:
        """
        Recover text from the first page of a PDF.

        Raises:
            OcrFailedError: No text could be recovered
            ExtractionCancelled: The caller cancelled before recognition
        """
        options = options or RetryOptions()
        if kind is not FormatKind.PDF:
            raise OcrFailedError(
                f"OCR fallback does not support {kind.value} documents",
                details={"format": kind.value},
            )

        backend = self.select_backend(options)
        if not backend.is_available():
            raise OcrFailedError(
                f"OCR engine {backend.name} is not available",
                details={"engine": backend.name},
            )

        image = self.render_first_page(data)

        if cancel_token is not None:
            cancel_token.raise_if_cancelled()

        try:
            result = backend.recognize(image)
        except Exception as e:
            logger.warning("OCR engine %s failed: %s", backend.name, e)
            raise OcrFailedError(
                f"OCR engine {backend.name} failed: {e}",
                details={"engine": backend.name, "error_type": type(e).__name__},
            ) from e

        text = (result.text or "").strip()
        if not text:
            raise OcrFailedError(
                "OCR produced no text",
                details={"engine": backend.name, "confidence": result.confidence},
            )

        logger.info(
            "OCR fallback recovered text: engine=%s, chars=%d, confidence=%.2f",
            backend.name,
            len(text),
            result.confidence,
        )
        return OcrExtraction(text=text, confidence=result.confidence, engine=backend.name)

    def render_first_page(self, data: bytes) -> Image.Image:
        """Render page 1 to an RGB PIL image."""
        try:
            doc = fitz.open(stream=data, filetype="pdf")
        except Exception as e:
            raise OcrFailedError(
                f"Document could not be opened for rendering: {e}",
                details={"error_type": type(e).__name__},
            ) from e

        try:
            if doc.needs_pass:
                raise OcrFailedError("Password-protected PDF cannot be rendered")
            if doc.page_count == 0:
                raise OcrFailedError("PDF has no pages to render")

            page = doc.load_page(0)
            zoom = self.dpi / 72  # PDF default is 72 DPI
            pix = page.get_pixmap(matrix=fitz.Matrix(zoom, zoom), alpha=False)
            return Image.frombytes("RGB", [pix.width, pix.height], pix.samples)
        except OcrFailedError:
            raise
        except Exception as e:
            raise OcrFailedError(
                f"Page rendering failed: {e}",
                details={"error_type": type(e).__name__},
            ) from e
        finally:
            doc.close()
