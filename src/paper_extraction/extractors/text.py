"""Plain-text extractor: decode and pass through."""

from paper_extraction.errors import PlainTextReadError
from paper_extraction.models import CancellationToken, RetryOptions

from .base import BaseExtractor, FormatExtraction, decode_text


class PlainTextExtractor(BaseExtractor):
    def __init__(self):
        super().__init__(name="plain-text")

    def extract(
        self,
        data: bytes,
        options: RetryOptions | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> FormatExtraction:
        try:
            text, encoding = decode_text(data)
        except UnicodeDecodeError as e:
            raise PlainTextReadError(
                f"Unreadable byte stream: {e.reason}",
                details={"position": e.start},
            ) from e

        text = text.replace("\r\n", "\n")
        return FormatExtraction(
            text=text,
            metadata={"encoding": encoding, "line_count": str(len(text.splitlines()))},
        )
