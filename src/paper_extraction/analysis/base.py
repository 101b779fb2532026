"""
Base Analysis Adapter
=====================

Black-box summarization service: text in, summary out.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass
class AnalysisResult:
    """Outcome of a summarization call."""
    success: bool
    summary: str = ""
    error: str | None = None


class BaseAnalysisAdapter(ABC):
    """
    Abstract base class for content analysis services.

    summarize() reports API failures through AnalysisResult.success instead
    of raising; callers must still be prepared for exceptions.
    """

    def __init__(self, name: str = "BaseAnalysis", max_chars: int = 32000):
        self.name = name
        self.max_chars = max_chars

    @abstractmethod
    def summarize(self, text: str) -> AnalysisResult:
        """
        Summarize extracted paper text.

        Args:
            text: Normalized document text

        Returns:
            AnalysisResult
        """
        pass

    @abstractmethod
    def is_available(self) -> bool:
        pass

    def truncate(self, text: str) -> str:
        """Clip input to max_chars."""
        if self.max_chars and len(text) > self.max_chars:
            return text[: self.max_chars]
        return text

    def __repr__(self) -> str:
        available = "available" if self.is_available() else "unavailable"
        return f"{self.__class__.__name__}(name='{self.name}', {available})"
