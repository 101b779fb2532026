"""
Gemini OCR Backend
==================

LLM-based OCR using Google Gemini API with native multimodal support.
Used as the alternative fallback engine. Accepts PIL Images directly.
"""

import logging
import os
import time
from typing import Any

from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from .base import BaseOCRBackend, OCRResult

logger = logging.getLogger(__name__)


class GeminiRetryableError(RuntimeError):
    """Raised for Gemini API errors that are worth retrying (429, RESOURCE_EXHAUSTED)."""


def is_rate_limited(exc: BaseException) -> bool:
    return "429" in str(exc) or "RESOURCE_EXHAUSTED" in str(exc)


class GeminiBackend(BaseOCRBackend):
    """
    OCR engine using Google Gemini vision-capable models.

    Environment variables:
        GEMINI_API_KEY: API key for Google Gemini
        GEMINI_OCR_MODEL: Model to use (default: gemini-2.5-flash)
    """

    DEFAULT_MODEL = "gemini-2.5-flash"

    OCR_PROMPT = """Extract all text from this page of a research paper.

Rules:
- Return ONLY the extracted text, no explanations
- Keep the original structure (paragraphs, lists, headings)
- For tables: separate columns with | and rows with line breaks
- Write formulas inline as plain text
- Mark illegible passages with [illegible]

Text:"""

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        temperature: float = 0.0,
        timeout: int = 120,
    ):
        """
        Initialize Gemini backend.

        Args:
            api_key: Gemini API key (or GEMINI_API_KEY env var)
            model: Model to use (or GEMINI_OCR_MODEL env var)
            temperature: Model temperature (0.0 for deterministic)
            timeout: Request timeout in seconds
        """
        super().__init__(name="Gemini")

        self.api_key = api_key or os.getenv("GEMINI_API_KEY")
        self.model = model or os.getenv("GEMINI_OCR_MODEL", self.DEFAULT_MODEL)
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
        """Check if Gemini API is configured."""
        return bool(self.api_key)

    def recognize(self, image: Any, **kwargs: Any) -> OCRResult:
        """
        Recognize text in a page image using Gemini.

        Args:
            image: PIL image of the rendered page
            **kwargs: Additional options (model, prompt)

        Returns:
            OCRResult with recognized text
        """
        if not self.is_available():
            raise RuntimeError("Gemini API key not configured")

        start_time = time.time()
        prompt = kwargs.get("prompt", self.OCR_PROMPT)
        model = kwargs.get("model") or self.model

        response = self._call_api(model, image, prompt)

        text = (response.text or "").strip()
        processing_time = (time.time() - start_time) * 1000

        logger.info(
            "Gemini OCR completed: model=%s, words=%d, time=%.0fms",
            model,
            len(text.split()),
            processing_time,
        )

        return OCRResult(
            text=text,
            confidence=0.92,
            engine=self.name,
            metadata={
                "model": model,
                "processing_time_ms": processing_time,
            },
        )

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
    def _call_api(self, model: str, image: Any, prompt: str) -> Any:
        """Call Gemini API with retry logic for rate limits."""
        from google.genai import errors as genai_errors
        from google.genai import types

        client = self._get_client()
        try:
            return client.models.generate_content(
                model=model,
                contents=[image, prompt],
                config=types.GenerateContentConfig(
                    temperature=self.temperature,
                    http_options=types.HttpOptions(timeout=self.timeout * 1000),
                ),
            )
        except genai_errors.ClientError as exc:
            if is_rate_limited(exc):
                raise GeminiRetryableError(str(exc)) from exc
            raise  # Non-retryable client error
