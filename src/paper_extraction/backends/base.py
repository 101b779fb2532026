"""
Base OCR Backend
================

Abstract base class for OCR engines used by the fallback extractor.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict


@dataclass
class OCRResult:
    """Result from recognizing a single rendered page."""
    text: str
    confidence: float = 1.0
    engine: str = ""
    word_count: int = 0
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        """Calculate word count if not provided."""
        if self.word_count == 0 and self.text:
            self.word_count = len(self.text.split())


class BaseOCRBackend(ABC):
    """
    Abstract base class for OCR engines.

    All engines must implement:
    - recognize(): Recognize text in a rendered page image
    - is_available(): Check if the engine is installed/configured

    Engines raise RuntimeError when called while unavailable.
    """

    def __init__(self, name: str = "BaseOCR"):
        """
        Initialize backend.

        Args:
            name: Human-readable name for the engine
        """
        self.name = name

    @abstractmethod
    def recognize(self, image: Any, **kwargs) -> OCRResult:
        """
        Recognize text in a page image.

        Args:
            image: PIL.Image.Image of the rendered page
            **kwargs: Engine-specific options

        Returns:
            OCRResult with recognized text and confidence (0.0-1.0)
        """
        pass

    @abstractmethod
    def is_available(self) -> bool:
        """
        Check if this engine is available and configured.

        Returns:
            True if the engine can be used, False otherwise
        """
        pass

    def __repr__(self) -> str:
        available = "available" if self.is_available() else "unavailable"
        return f"{self.__class__.__name__}(name='{self.name}', {available})"
