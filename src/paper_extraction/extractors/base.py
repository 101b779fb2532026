"""
Base Extractor
==============

Abstract base class for per-format primary extractors.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from paper_extraction.models import (
    CancellationToken,
    ExtractionMethod,
    Figure,
    RetryOptions,
    Table,
)


@dataclass
class FormatExtraction:
    """Normalized output of a primary extractor."""

    text: str
    metadata: dict[str, str] = field(default_factory=dict)
    figures: list[Figure] = field(default_factory=list)
    tables: list[Table] = field(default_factory=list)
    method: ExtractionMethod = ExtractionMethod.PRIMARY
    page_count: int | None = None
    pdf_version: str | None = None
    warnings: list[str] = field(default_factory=list)

    @property
    def has_text(self) -> bool:
        return bool(self.text.strip())


class BaseExtractor(ABC):
    """
    Abstract base class for format extractors.

    Extractors are synchronous and stateless: they take the raw upload bytes
    and either return a FormatExtraction or raise a DocumentProcessingError
    subclass. The orchestrator runs them off the event loop.
    """

    def __init__(self, name: str = "BaseExtractor"):
        self.name = name

    @abstractmethod
    def extract(
        self,
        data: bytes,
        options: RetryOptions | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> FormatExtraction:
        """
        Extract normalized text from raw bytes.

        Args:
            data: Raw file content
            options: Caller-supplied processing options
            cancel_token: Checked between units of work

        Returns:
            FormatExtraction with text, metadata and warnings
        """
        pass

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name='{self.name}')"


def decode_text(data: bytes) -> tuple[str, str]:
    """
    Decode a text upload.

    Tries UTF-8 (BOM-aware), UTF-16 when a BOM says so, then cp1252.
    Binary content (NUL bytes outside UTF-16) is rejected.

    Returns:
        Tuple of (text, encoding)

    Raises:
        UnicodeDecodeError: No candidate encoding applies
    """
    if data.startswith((b"\xff\xfe", b"\xfe\xff")):
        return data.decode("utf-16"), "utf-16"

    if b"\x00" in data:
        position = data.index(b"\x00")
        raise UnicodeDecodeError(
            "utf-8", data, position, position + 1, "binary content (NUL byte)"
        )

    try:
        return data.decode("utf-8-sig"), "utf-8"
    except UnicodeDecodeError:
        return data.decode("cp1252"), "cp1252"
