"""
Tesseract OCR Backend
=====================

Local OCR using Tesseract. Free and offline; the default fallback engine.
"""

import logging
import os
import time
from typing import Any, List, Optional

import pytesseract

from .base import BaseOCRBackend, OCRResult

logger = logging.getLogger(__name__)


class TesseractBackend(BaseOCRBackend):
    """
    OCR engine using a local Tesseract installation.

    Environment variables:
        TESSERACT_PATH: Path to tesseract binary (default: tesseract on PATH)
        TESSERACT_LANG: Languages to use (default: eng)
    """

    def __init__(
        self,
        tesseract_path: Optional[str] = None,
        lang: Optional[str] = None,
    ):
        """
        Initialize Tesseract backend.

        Args:
            tesseract_path: Path to tesseract binary
            lang: OCR languages (e.g., "eng+deu")
        """
        super().__init__(name="Tesseract")

        self.tesseract_path = tesseract_path or os.getenv("TESSERACT_PATH", "tesseract")
        self.lang = lang or os.getenv("TESSERACT_LANG", "eng")

        pytesseract.pytesseract.tesseract_cmd = self.tesseract_path

    def is_available(self) -> bool:
        """Check if Tesseract is installed and accessible."""
        try:
            pytesseract.get_tesseract_version()
            return True
        except Exception:
            return False

    def recognize(self, image: Any, **kwargs) -> OCRResult:
        """
        Recognize text in a page image using Tesseract.

        Args:
            image: PIL image of the rendered page
            **kwargs: Additional options (lang, config)

        Returns:
            OCRResult with recognized text
        """
        if not self.is_available():
            raise RuntimeError("Tesseract is not available")

        start_time = time.time()
        lang = kwargs.get("lang", self.lang)
        config = kwargs.get("config", "")

        text = pytesseract.image_to_string(image, lang=lang, config=config)

        # Mean word confidence; -1 marks non-word boxes
        try:
            data = pytesseract.image_to_data(
                image, lang=lang, output_type=pytesseract.Output.DICT
            )
            confidences = [float(c) for c in data["conf"] if float(c) >= 0]
            confidence = sum(confidences) / len(confidences) / 100 if confidences else 0.5
        except Exception as e:
            logger.debug("Tesseract confidence unavailable: %s", e)
            confidence = 0.5

        processing_time = (time.time() - start_time) * 1000

        return OCRResult(
            text=text.strip(),
            confidence=confidence,
            engine=self.name,
            metadata={
                "lang": lang,
                "processing_time_ms": processing_time,
            },
        )

    def get_available_languages(self) -> List[str]:
        """Get list of installed Tesseract languages."""
        try:
            return pytesseract.get_languages()
        except Exception:
            return []
