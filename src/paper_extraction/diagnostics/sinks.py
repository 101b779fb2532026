"""
Diagnostic Sinks
================

Independent destinations for ErrorLogEntry records.

Available Sinks:
- ConsoleSink: Operational log stream (standard logging)
- WebhookAlertSink: Monitoring / alerting endpoint (HTTP POST), ERROR and above
- JsonlFileSink: Durable append-only JSON-lines store, queryable
- MemorySink: In-process store with the same query surface
"""

import json
import logging
import os
import threading
from abc import ABC, abstractmethod
from pathlib import Path

import requests

from .models import ErrorLogEntry, ErrorSeverity

logger = logging.getLogger("paper_extraction.diagnostics")


class DiagnosticSink(ABC):
    """
    Abstract destination for diagnostic entries.

    Sinks may raise from append(); the DiagnosticLogger isolates failures so
    one sink's outage never blocks another's write.
    """

    min_severity: ErrorSeverity = ErrorSeverity.INFO

    def __init__(self, name: str = "sink"):
        self.name = name

    def accepts(self, entry: ErrorLogEntry) -> bool:
        return entry.severity.rank >= self.min_severity.rank

    @abstractmethod
    def append(self, entry: ErrorLogEntry) -> None:
        """Write one entry."""

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name='{self.name}')"


class QueryableSink(DiagnosticSink):
    """A sink that can read back entries by correlation id."""

    @abstractmethod
    def query(
        self,
        document_id: str | None = None,
        project_id: str | None = None,
    ) -> list[ErrorLogEntry]:
        """Return matching entries, newest first."""


class ConsoleSink(DiagnosticSink):
    """Writes entries to the standard logging stream."""

    _LEVELS = {
        ErrorSeverity.INFO: logging.INFO,
        ErrorSeverity.WARNING: logging.WARNING,
        ErrorSeverity.ERROR: logging.ERROR,
        ErrorSeverity.CRITICAL: logging.CRITICAL,
    }

    def __init__(self, target: logging.Logger | None = None):
        super().__init__(name="console")
        self.target = target or logger

    def append(self, entry: ErrorLogEntry) -> None:
        self.target.log(
            self._LEVELS[entry.severity],
            "[%s][%s][%s][%s] %s",
            entry.timestamp.isoformat(),
            entry.request_id,
            entry.severity.value.upper(),
            entry.category.value,
            entry.message,
            extra={
                "document_id": entry.document_id,
                "project_id": entry.project_id,
                "file_name": entry.file_name,
            },
        )
        if entry.stack:
            self.target.debug("Stack for %s:\n%s", entry.request_id, entry.stack)


class WebhookAlertSink(DiagnosticSink):
    """
    Forwards ERROR and CRITICAL entries to a monitoring webhook.

    Environment variables:
        ALERT_WEBHOOK_URL: Endpoint receiving a JSON payload per entry
    """

    min_severity = ErrorSeverity.ERROR

    def __init__(self, url: str | None = None, timeout: int = 10):
        super().__init__(name="monitoring")
        self.url = url or os.getenv("ALERT_WEBHOOK_URL")
        self.timeout = timeout

    def is_available(self) -> bool:
        return bool(self.url)

    def append(self, entry: ErrorLogEntry) -> None:
        if not self.url:
            raise RuntimeError("Alert webhook URL not configured")

        payload = {
            "tags": {
                "category": entry.category.value,
                "severity": entry.severity.value,
            },
            "message": entry.message,
            "extra": entry.to_dict(),
        }
        response = requests.post(self.url, json=payload, timeout=self.timeout)
        response.raise_for_status()


class JsonlFileSink(QueryableSink):
    """
    Durable append-only store: one JSON object per line.

    Each entry is written with a single write() on a file opened in append
    mode, under a process-wide lock, so concurrent writers never interleave
    partial lines.

    Environment variables:
        DIAGNOSTICS_LOG_PATH: Default file location
    """

    _lock = threading.Lock()

    def __init__(self, path: Path | str | None = None):
        super().__init__(name="storage")
        self.path = Path(path or os.getenv("DIAGNOSTICS_LOG_PATH", "diagnostics.jsonl"))

    def append(self, entry: ErrorLogEntry) -> None:
        line = entry.to_json() + "\n"
        with self._lock:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "a", encoding="utf-8") as fh:
                fh.write(line)

    def query(
        self,
        document_id: str | None = None,
        project_id: str | None = None,
    ) -> list[ErrorLogEntry]:
        if not self.path.exists():
            return []

        entries: list[ErrorLogEntry] = []
        with open(self.path, encoding="utf-8") as fh:
            for line_number, line in enumerate(fh, start=1):
                if not line.strip():
                    continue
                try:
                    entry = ErrorLogEntry.from_dict(json.loads(line))
                except (ValueError, KeyError) as e:
                    logger.warning(
                        "Skipping unreadable diagnostic line %d in %s: %s",
                        line_number,
                        self.path,
                        e,
                    )
                    continue
                if _matches(entry, document_id, project_id):
                    entries.append(entry)

        entries.sort(key=lambda e: e.timestamp, reverse=True)
        return entries


class MemorySink(QueryableSink):
    """Keeps entries in memory; useful for tests and short-lived workers."""

    def __init__(self, min_severity: ErrorSeverity = ErrorSeverity.INFO):
        super().__init__(name="memory")
        self.min_severity = min_severity
        self._entries: list[ErrorLogEntry] = []
        self._lock = threading.Lock()

    @property
    def entries(self) -> list[ErrorLogEntry]:
        with self._lock:
            return list(self._entries)

    def append(self, entry: ErrorLogEntry) -> None:
        with self._lock:
            self._entries.append(entry)

    def query(
        self,
        document_id: str | None = None,
        project_id: str | None = None,
    ) -> list[ErrorLogEntry]:
        matched = [e for e in self.entries if _matches(e, document_id, project_id)]
        matched.sort(key=lambda e: e.timestamp, reverse=True)
        return matched


def _matches(
    entry: ErrorLogEntry,
    document_id: str | None,
    project_id: str | None,
) -> bool:
    if document_id is not None and entry.document_id != document_id:
        return False
    if project_id is not None and entry.project_id != project_id:
        return False
    return True
