"""
DOCX Extractor
==============

Raw text extraction from Office Open XML documents using python-docx.
"""

import io
import logging

import docx

from paper_extraction.errors import DocxExtractionError
from paper_extraction.models import CancellationToken, RetryOptions

from .base import BaseExtractor, FormatExtraction

logger = logging.getLogger(__name__)

_CORE_PROPERTIES = ("title", "author", "subject", "keywords", "created", "modified")


class DocxExtractor(BaseExtractor):
    """Extracts paragraph and table text from .docx files."""

    def __init__(self):
        super().__init__(name="python-docx")

    def extract(
        self,
        data: bytes,
        options: RetryOptions | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> FormatExtraction:
        options = options or RetryOptions()
        try:
            document = docx.Document(io.BytesIO(data))
        except Exception as e:
            raise DocxExtractionError(
                f"Could not open DOCX document: {e}",
                details={"error_type": type(e).__name__},
            ) from e

        try:
            parts = [p.text for p in document.paragraphs if p.text.strip()]
            for table in document.tables:
                for row in table.rows:
                    cells = [cell.text.strip() for cell in row.cells if cell.text.strip()]
                    if cells:
                        parts.append("\t".join(cells))
        except Exception as e:
            raise DocxExtractionError(
                f"Could not read DOCX content: {e}",
                details={"error_type": type(e).__name__},
            ) from e

        warnings: list[str] = []
        metadata: dict[str, str] = {}
        if not options.skip_metadata:
            try:
                metadata = self._read_core_properties(document)
            except Exception as e:
                warnings.append(f"Metadata extraction failed: {e}")
        metadata["table_count"] = str(len(document.tables))

        text = "\n".join(parts)
        logger.info("DOCX extracted: paragraphs=%d, chars=%d", len(parts), len(text))

        return FormatExtraction(text=text, metadata=metadata, warnings=warnings)

    def _read_core_properties(self, document) -> dict[str, str]:
        props = document.core_properties
        metadata = {}
        for name in _CORE_PROPERTIES:
            value = getattr(props, name, None)
            if value:
                metadata[name] = value.isoformat() if hasattr(value, "isoformat") else str(value)
        return metadata
