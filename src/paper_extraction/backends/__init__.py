"""OCR engines for the fallback extractor."""

from .base import BaseOCRBackend, OCRResult
from .gemini import GeminiBackend, GeminiRetryableError
from .tesseract import TesseractBackend

__all__ = [
    "BaseOCRBackend",
    "OCRResult",
    "TesseractBackend",
    "GeminiBackend",
    "GeminiRetryableError",
]
