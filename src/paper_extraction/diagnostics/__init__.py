"""
Diagnostics
===========

Error classification, structured diagnostic logging and message sanitization.

Usage:
    from paper_extraction.diagnostics import (
        DiagnosticLogger, JsonlFileSink, WebhookAlertSink,
    )

    diagnostics = DiagnosticLogger(
        monitoring=WebhookAlertSink(url="https://alerts.example.com/hook"),
        storage=JsonlFileSink("logs/diagnostics.jsonl"),
    )
    diagnostics.document_logs("doc-123")
"""

from .classifier import classify_exception, entry_from_exception
from .logger import DiagnosticLogger
from .models import ErrorCategory, ErrorLogEntry, ErrorSeverity, generate_request_id
from .sanitize import create_error_response, format_user_error_message, sanitize_message
from .sinks import (
    ConsoleSink,
    DiagnosticSink,
    JsonlFileSink,
    MemorySink,
    QueryableSink,
    WebhookAlertSink,
)

__all__ = [
    "ConsoleSink",
    "DiagnosticLogger",
    "DiagnosticSink",
    "ErrorCategory",
    "ErrorLogEntry",
    "ErrorSeverity",
    "JsonlFileSink",
    "MemorySink",
    "QueryableSink",
    "WebhookAlertSink",
    "classify_exception",
    "create_error_response",
    "entry_from_exception",
    "format_user_error_message",
    "generate_request_id",
    "sanitize_message",
]
