"""
Message Sanitization
====================

Redacts sensitive fragments before a message reaches a user-facing surface.

Every replacement token is itself stable under the same rules, so
``sanitize_message(sanitize_message(x)) == sanitize_message(x)``.
"""

import re
from datetime import datetime, timezone
from typing import Any

PATH_PLACEHOLDER = "[PATH]"
IP_PLACEHOLDER = "[IP]"
EMAIL_PLACEHOLDER = "[EMAIL]"
SECRET_PLACEHOLDER = "[REDACTED]"

_SECRET_RE = re.compile(r"(password|token|key)=[\"']?[^\"'&\s]+[\"']?", re.IGNORECASE)
_EMAIL_RE = re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b")
_IP_RE = re.compile(r"\b(?:\d{1,3}\.){3}\d{1,3}\b")
_WINDOWS_PATH_RE = re.compile(r"\b[A-Za-z]:\\[\w\\.-]*")
_POSIX_PATH_RE = re.compile(r"/[\w/.-]+")

# Known failure fragments and their user-facing phrasing, checked in order.
_PDF_PHRASES = (
    ("Missing PDF header", "The PDF file appears to be corrupted (Missing PDF header)"),
    ("Missing EOF marker", "The PDF file is incomplete or corrupted (Missing EOF marker)"),
    ("Password", "The PDF file is password protected"),
    ("Encrypted", "The PDF file is encrypted and cannot be processed"),
    ("XRef", "The PDF structure is invalid or corrupted"),
    ("Font", "There was an issue with fonts in the PDF"),
)


def sanitize_message(message: str) -> str:
    """Replace secrets, e-mails, IP addresses and file-system paths with placeholders."""
    if not message:
        return message
    result = _SECRET_RE.sub(lambda m: f"{m.group(1)}={SECRET_PLACEHOLDER}", message)
    result = _EMAIL_RE.sub(EMAIL_PLACEHOLDER, result)
    result = _IP_RE.sub(IP_PLACEHOLDER, result)
    result = _WINDOWS_PATH_RE.sub(PATH_PLACEHOLDER, result)
    result = _POSIX_PATH_RE.sub(PATH_PLACEHOLDER, result)
    return result


def format_user_error_message(error: Any, default_message: str = "An error occurred") -> str:
    """
    Produce a short, sanitized message for display to the uploader.

    Pipeline errors carry their own ``user_message``; other exceptions are
    matched against known PDF failure phrases before falling back to their
    sanitized text.
    """
    if error is None:
        return default_message

    if isinstance(error, str):
        return sanitize_message(error) or default_message

    user_message = getattr(error, "user_message", None)
    if isinstance(user_message, str) and user_message:
        return sanitize_message(user_message)

    if isinstance(error, Exception):
        text = str(error)
        if "PDF" in text:
            for fragment, phrase in _PDF_PHRASES:
                if fragment in text:
                    return phrase
            return f"PDF processing error: {sanitize_message(text)}"
        return sanitize_message(text) or default_message

    return default_message


def create_error_response(error: Any, status: int = 500) -> dict[str, Any]:
    """Standard error payload for a caller surface."""
    return {
        "error": format_user_error_message(error),
        "status": status,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
