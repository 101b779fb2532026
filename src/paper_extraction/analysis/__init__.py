"""Content analysis (summarization) adapters."""

from .base import AnalysisResult, BaseAnalysisAdapter
from .gemini import GeminiAnalysisAdapter
from .langdock import LangdockAnalysisAdapter

__all__ = [
    "AnalysisResult",
    "BaseAnalysisAdapter",
    "GeminiAnalysisAdapter",
    "LangdockAnalysisAdapter",
]
