"""
Diagnostic Log Models
=====================

Categories, severities and the append-only ErrorLogEntry record.
"""

import json
import random
import string
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class ErrorSeverity(Enum):
    """Severity of a diagnostic entry, ordered from least to most severe."""

    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {
    ErrorSeverity.INFO: 0,
    ErrorSeverity.WARNING: 1,
    ErrorSeverity.ERROR: 2,
    ErrorSeverity.CRITICAL: 3,
}


class ErrorCategory(Enum):
    """Closed set of failure categories."""

    PDF_PROCESSING = "pdf_processing"
    DOCUMENT_UPLOAD = "document_upload"
    DOCUMENT_EXTRACTION = "document_extraction"
    FILE_VALIDATION = "file_validation"
    STORAGE = "storage"
    API_ERROR = "api_error"
    DATABASE = "database"
    RATE_LIMIT = "rate_limit"
    SECURITY = "security"
    GENERAL = "general"


def generate_request_id() -> str:
    """Generate a correlation id of the form req_<epoch ms>_<7 chars>."""
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=7))
    return f"req_{int(time.time() * 1000)}_{suffix}"


def _json_safe(value: Any) -> Any:
    """Best-effort conversion of arbitrary detail payloads to JSON types."""
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {str(k): _json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [_json_safe(v) for v in value]
    if isinstance(value, BaseException):
        return {"type": type(value).__name__, "message": str(value)}
    return str(value)


@dataclass(frozen=True)
class ErrorLogEntry:
    """One failure or notable event recorded by the pipeline."""

    category: ErrorCategory
    severity: ErrorSeverity
    message: str
    details: dict[str, Any] | None = None
    stack: str | None = None
    user_id: str | None = None
    document_id: str | None = None
    project_id: str | None = None
    request_id: str | None = None
    file_name: str | None = None
    file_type: str | None = None
    file_size: int | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        return {
            "category": self.category.value,
            "severity": self.severity.value,
            "message": self.message,
            "details": _json_safe(self.details),
            "stack": self.stack,
            "user_id": self.user_id,
            "document_id": self.document_id,
            "project_id": self.project_id,
            "request_id": self.request_id,
            "file_name": self.file_name,
            "file_type": self.file_type,
            "file_size": self.file_size,
            "timestamp": self.timestamp.isoformat(),
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ErrorLogEntry":
        return cls(
            category=ErrorCategory(data["category"]),
            severity=ErrorSeverity(data["severity"]),
            message=data["message"],
            details=data.get("details"),
            stack=data.get("stack"),
            user_id=data.get("user_id"),
            document_id=data.get("document_id"),
            project_id=data.get("project_id"),
            request_id=data.get("request_id"),
            file_name=data.get("file_name"),
            file_type=data.get("file_type"),
            file_size=data.get("file_size"),
            timestamp=datetime.fromisoformat(data["timestamp"]),
        )
