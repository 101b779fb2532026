"""
LaTeX Extractor
===============

Heuristic markup stripper for LaTeX sources.

This is not a LaTeX parser: a fixed sequence of regular-expression
removals is applied to the decoded source. Malformed or deeply nested
constructs (nested braces, custom macros, verbatim blocks) may leak
fragments into the output. A real tokenizer can replace strip_latex() without
changing the extractor contract.
"""

import logging
import re

from paper_extraction.errors import LatexExtractionError
from paper_extraction.models import CancellationToken, RetryOptions

from .base import BaseExtractor, FormatExtraction, decode_text

logger = logging.getLogger(__name__)

_TITLE_RE = re.compile(r"\\title\{([^{}]*)\}")
_AUTHOR_RE = re.compile(r"\\author\{([^{}]*)\}")

# Commands whose argument is prose worth keeping.
_UNWRAP_COMMANDS = (
    "title|author|date|chapter|section|subsection|subsubsection|paragraph|"
    "textbf|textit|emph|underline|texttt|caption"
)

# Applied in order.
_STRIP_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"(?<!\\)%.*$", re.MULTILINE), ""),  # comments
    (re.compile(r"\\documentclass(\[[^\]]*\])?\{[^}]*\}"), ""),
    (re.compile(r"\\usepackage(\[[^\]]*\])?\{[^}]*\}"), ""),
    (re.compile(r"\\begin\{document\}"), ""),
    (re.compile(r"\\end\{document\}"), ""),
    (re.compile(r"\\\[.*?\\\]", re.DOTALL), ""),  # display math \[ \]
    (re.compile(r"\$\$.*?\$\$", re.DOTALL), ""),  # display math $$ $$
    (re.compile(r"\\\(.*?\\\)", re.DOTALL), ""),  # inline math \( \)
    (re.compile(r"(?<!\\)\$[^$]*(?<!\\)\$"), ""),  # inline math $ $
    (re.compile(r"\\(?:" + _UNWRAP_COMMANDS + r")\*?\{([^{}]*)\}"), r"\1"),
    (re.compile(r"\{[^{}]*\}"), ""),  # remaining brace groups
    (re.compile(r"\\[A-Za-z@]+\*?(\[[^\]]*\])?"), ""),  # command tokens
    (re.compile(r"\\([%$&#_{}])"), r"\1"),  # escaped specials
    (re.compile(r"~"), " "),
    (re.compile(r"&"), " and "),
    (re.compile(r"[{}]"), ""),
    (re.compile(r"[ \t]+"), " "),
    (re.compile(r"\n\s*\n\s*(\n\s*)+"), "\n\n"),
]


def strip_latex(source: str) -> str:
    """Best-effort removal of LaTeX markup."""
    text = source
    for pattern, replacement in _STRIP_PATTERNS:
        text = pattern.sub(replacement, text)
    return "\n".join(line.strip() for line in text.strip().splitlines())


class LatexExtractor(BaseExtractor):
    """Decodes .tex sources and strips markup."""

    def __init__(self):
        super().__init__(name="latex-strip")

    def extract(
        self,
        data: bytes,
        options: RetryOptions | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> FormatExtraction:
        options = options or RetryOptions()
        try:
            source, encoding = decode_text(data)
        except UnicodeDecodeError as e:
            raise LatexExtractionError(
                f"LaTeX source is not readable text: {e.reason}",
                details={"position": e.start},
            ) from e

        metadata: dict[str, str] = {"encoding": encoding}
        if not options.skip_metadata:
            for key, pattern in (("title", _TITLE_RE), ("author", _AUTHOR_RE)):
                match = pattern.search(source)
                if match and match.group(1).strip():
                    metadata[key] = match.group(1).strip()

        try:
            text = strip_latex(source)
        except re.error as e:
            raise LatexExtractionError(f"LaTeX stripping failed: {e}") from e

        warnings = []
        if not text:
            warnings.append("No text content left after removing LaTeX markup")

        logger.info("LaTeX extracted: chars=%d", len(text))
        return FormatExtraction(text=text, metadata=metadata, warnings=warnings)
