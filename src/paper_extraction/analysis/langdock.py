"""
Langdock Analysis Adapter
=========================

Paper summarization through the Langdock assistant API (Claude, GPT-4o).
"""

import logging
import os
from typing import Any, Dict, Optional

import requests

from .base import AnalysisResult, BaseAnalysisAdapter

logger = logging.getLogger(__name__)


class LangdockAnalysisAdapter(BaseAnalysisAdapter):
    """
    Summarizes paper text with a Langdock-hosted model.

    Environment variables:
        LANGDOCK_API_KEY: API key for Langdock
        LANGDOCK_ASSISTANT_URL: Chat completions endpoint
        LANGDOCK_ANALYSIS_MODEL: Model to use (default: claude-sonnet-4-5)
    """

    DEFAULT_ASSISTANT_URL = "https://api.langdock.com/assistant/v1/chat/completions"
    DEFAULT_MODEL = "claude-sonnet-4-5@20250929"

    INSTRUCTIONS = (
        "You summarize research papers. Cover the research question, the method, "
        "the main results and the limitations in at most 250 words."
    )

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        assistant_url: Optional[str] = None,
        max_chars: int = 32000,
        temperature: float = 0.2,
        timeout: int = 120,
    ):
        """
        Initialize Langdock adapter.

        Args:
            api_key: Langdock API key (or LANGDOCK_API_KEY env var)
            model: Model to use (or LANGDOCK_ANALYSIS_MODEL env var)
            assistant_url: Chat completions endpoint URL
            max_chars: Input is clipped to this many characters
            temperature: Model temperature
            timeout: Request timeout in seconds
        """
        super().__init__(name="Langdock", max_chars=max_chars)

        self.api_key = api_key or os.getenv("LANGDOCK_API_KEY")
        self.model = model or os.getenv("LANGDOCK_ANALYSIS_MODEL", self.DEFAULT_MODEL)
        self.assistant_url = assistant_url or os.getenv(
            "LANGDOCK_ASSISTANT_URL", self.DEFAULT_ASSISTANT_URL
        )
        self.temperature = temperature
        self.timeout = timeout

    def is_available(self) -> bool:
        """Check if Langdock API is configured."""
        return bool(self.api_key)

    def summarize(self, text: str) -> AnalysisResult:
        if not self.is_available():
            return AnalysisResult(success=False, error="Langdock API key not configured")

        payload = {
            "assistant": {
                "name": "Paper-Summarizer",
                "model": self.model,
                "temperature": self.temperature,
                "instructions": self.INSTRUCTIONS,
            },
            "messages": [
                {"role": "user", "content": self.truncate(text)},
            ],
        }
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

        try:
            response = requests.post(
                self.assistant_url,
                headers=headers,
                json=payload,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.warning("Langdock analysis request failed: %s", e)
            return AnalysisResult(success=False, error=str(e))

        if response.status_code != 200:
            return AnalysisResult(
                success=False,
                error=f"Analysis failed: {response.status_code} - {response.text[:200]}",
            )

        try:
            summary = self._extract_text_from_response(response.json())
        except ValueError as e:
            return AnalysisResult(success=False, error=str(e))

        logger.info("Langdock analysis completed: model=%s, chars=%d", self.model, len(summary))
        return AnalysisResult(success=True, summary=summary)

    def _extract_text_from_response(self, response: Dict[str, Any]) -> str:
        """Extract text content from Langdock API response."""
        if "result" not in response:
            raise ValueError("No 'result' in response")

        # Last assistant message carrying text
        for message in reversed(response["result"]):
            if message.get("role") == "assistant":
                content = message.get("content", [])

                if isinstance(content, str):
                    return content.strip()
                elif isinstance(content, list):
                    for item in content:
                        if isinstance(item, dict) and item.get("type") == "text":
                            return item.get("text", "").strip()
                        elif isinstance(item, str):
                            return item.strip()

        raise ValueError("No text content found in response")
