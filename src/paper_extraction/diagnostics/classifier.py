"""
Error Classifier
================

Maps low-level failures onto the closed category/severity set and builds
ErrorLogEntry records from exceptions.
"""

import traceback
from typing import Any

import requests

from .models import ErrorCategory, ErrorLogEntry, ErrorSeverity


def classify_exception(exc: BaseException) -> tuple[ErrorCategory, ErrorSeverity]:
    """
    Classify an exception.

    Pipeline errors declare their own category. Network and SDK failures are
    API errors, file-system failures are storage errors, anything else is a
    document extraction error.
    """
    category = getattr(exc, "category", None)
    if isinstance(category, ErrorCategory):
        return category, ErrorSeverity.ERROR

    if isinstance(exc, (requests.RequestException, TimeoutError)):
        return ErrorCategory.API_ERROR, ErrorSeverity.ERROR

    module = type(exc).__module__ or ""
    if module.startswith(("google.genai", "google.api_core")):
        return ErrorCategory.API_ERROR, ErrorSeverity.ERROR

    if isinstance(exc, (PermissionError, FileNotFoundError, IsADirectoryError)):
        return ErrorCategory.STORAGE, ErrorSeverity.ERROR

    if isinstance(exc, MemoryError):
        return ErrorCategory.GENERAL, ErrorSeverity.CRITICAL

    return ErrorCategory.DOCUMENT_EXTRACTION, ErrorSeverity.ERROR


def format_stack(exc: BaseException) -> str | None:
    """Formatted traceback, or None when the exception was never raised."""
    if exc.__traceback__ is None:
        return None
    return "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))


def entry_from_exception(
    exc: BaseException,
    message: str,
    severity: ErrorSeverity | None = None,
    category: ErrorCategory | None = None,
    details: dict[str, Any] | None = None,
    **correlation: Any,
) -> ErrorLogEntry:
    """
    Build an ErrorLogEntry for ``exc``.

    Args:
        exc: The failure being recorded
        message: Operational message
        severity: Override for the classified severity
        category: Override for the classified category
        details: Structured payload; the exception summary is merged in
        **correlation: document_id, project_id, user_id, request_id,
            file_name, file_type, file_size

    Returns:
        ErrorLogEntry
    """
    classified_category, classified_severity = classify_exception(exc)
    payload: dict[str, Any] = {
        "error_type": type(exc).__name__,
        "error": str(exc),
    }
    summary = getattr(exc, "summary", None)
    if callable(summary):
        payload.update(summary())
    exc_details = getattr(exc, "details", None)
    if isinstance(exc_details, dict) and exc_details:
        payload["error_details"] = exc_details
    if details:
        payload.update(details)

    return ErrorLogEntry(
        category=category or classified_category,
        severity=severity or classified_severity,
        message=message,
        details=payload,
        stack=format_stack(exc),
        **correlation,
    )
