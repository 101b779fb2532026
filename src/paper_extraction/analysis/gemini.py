"""
Gemini Analysis Adapter
=======================

Paper summarization using the Google Gemini API.
"""

import logging
import os
from typing import Any

from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from paper_extraction.backends.gemini import GeminiRetryableError, is_rate_limited

from .base import AnalysisResult, BaseAnalysisAdapter

logger = logging.getLogger(__name__)


class GeminiAnalysisAdapter(BaseAnalysisAdapter):
    """
    Summarizes paper text with a Gemini model.

    Environment variables:
        GEMINI_API_KEY: API key for Google Gemini
        GEMINI_ANALYSIS_MODEL: Model to use (default: gemini-2.5-flash)
    """

    DEFAULT_MODEL = "gemini-2.5-flash"

    SUMMARY_PROMPT = """Summarize the following research paper for a reader who has not read it.

Cover the research question, the method, the main results and the limitations
in at most 250 words. Return only the summary.

Paper:
"""

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        max_chars: int = 32000,
        temperature: float = 0.2,
        timeout: int = 120,
    ):
        super().__init__(name="Gemini", max_chars=max_chars)

        self.api_key = api_key or os.getenv("GEMINI_API_KEY")
        self.model = model or os.getenv("GEMINI_ANALYSIS_MODEL", self.DEFAULT_MODEL)
        self.temperature = temperature
        self.timeout = timeout
        self._client: Any = None

    def _get_client(self) -> Any:
        """Lazy-initialize the genai client."""
        if self._client is None:
            from google import genai

            self._client = genai.Client(api_key=self.api_key)
        return self._client

    def is_available(self) -> bool:
        return bool(self.api_key)

    def summarize(self, text: str) -> AnalysisResult:
        if not self.is_available():
            return AnalysisResult(success=False, error="Gemini API key not configured")

        try:
            response = self._call_api(self.SUMMARY_PROMPT + self.truncate(text))
        except Exception as e:
            logger.warning("Gemini analysis failed: %s", e)
            return AnalysisResult(success=False, error=str(e))

        summary = (response.text or "").strip()
        if not summary:
            return AnalysisResult(success=False, error="Empty summary returned")

        logger.info("Gemini analysis completed: model=%s, chars=%d", self.model, len(summary))
        return AnalysisResult(success=True, summary=summary)

    @retry(
        retry=retry_if_exception_type(GeminiRetryableError),
        stop=stop_after_attempt(5),
        wait=wait_exponential(multiplier=2, min=5, max=60),
        before_sleep=lambda retry_state: logger.warning(
            "Gemini API rate limited, retrying in %.0fs (attempt %d/5)",
            retry_state.next_action.sleep,  # type: ignore[union-attr]
            retry_state.attempt_number,
        ),
        reraise=True,
    )
    def _call_api(self, prompt: str) -> Any:
        from google.genai import errors as genai_errors
        from google.genai import types

        client = self._get_client()
        try:
            return client.models.generate_content(
                model=self.model,
                contents=prompt,
                config=types.GenerateContentConfig(
                    temperature=self.temperature,
                    http_options=types.HttpOptions(timeout=self.timeout * 1000),
                ),
            )
        except genai_errors.ClientError as exc:
            if is_rate_limited(exc):
                raise GeminiRetryableError(str(exc)) from exc
            raise
