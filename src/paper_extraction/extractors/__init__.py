"""Per-format primary extractors."""

from .base import BaseExtractor, FormatExtraction, decode_text
from .docx import DocxExtractor
from .latex import LatexExtractor, strip_latex
from .pdf import PdfExtractor, classify_load_error
from .text import PlainTextExtractor

__all__ = [
    "BaseExtractor",
    "FormatExtraction",
    "decode_text",
    "PdfExtractor",
    "DocxExtractor",
    "LatexExtractor",
    "PlainTextExtractor",
    "classify_load_error",
    "strip_latex",
]
