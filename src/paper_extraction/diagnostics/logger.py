"""
Diagnostic Logger
=================

Fan-out logger writing each ErrorLogEntry, in order, to the operational
stream, the monitoring sink (ERROR/CRITICAL only) and durable storage.

log() never raises: a failing sink is reported on the operational stream
and the remaining sinks still receive the entry.
"""

import asyncio
import dataclasses
import logging

from .models import ErrorLogEntry, generate_request_id
from .sinks import ConsoleSink, DiagnosticSink, QueryableSink

logger = logging.getLogger(__name__)


class DiagnosticLogger:
    """Best-effort fan-out over independent diagnostic sinks."""

    def __init__(
        self,
        console: DiagnosticSink | None = None,
        monitoring: DiagnosticSink | None = None,
        storage: DiagnosticSink | None = None,
    ):
        """
        Initialize the logger.

        Args:
            console: Operational stream sink (default: ConsoleSink)
            monitoring: Alerting sink, receives ERROR and CRITICAL entries
            storage: Durable store, queried by document_logs()/project_logs()
        """
        self.console = console or ConsoleSink()
        self.monitoring = monitoring
        self.storage = storage

    @property
    def sinks(self) -> list[DiagnosticSink]:
        return [s for s in (self.console, self.monitoring, self.storage) if s is not None]

    def log(self, entry: ErrorLogEntry) -> ErrorLogEntry:
        """
        Write an entry to every sink that accepts it.

        Returns:
            The entry as written (with a generated request_id if it had none)
        """
        try:
            if not entry.request_id:
                entry = dataclasses.replace(entry, request_id=generate_request_id())
        except Exception as e:
            logger.error("Failed to prepare diagnostic entry: %s", e)

        for sink in self.sinks:
            try:
                if sink.accepts(entry):
                    sink.append(entry)
            except Exception as e:
                logger.error("Failed to write diagnostic entry to %s sink: %s", sink.name, e)
                logger.error("Original entry: %s", entry.message)

        return entry

    async def log_async(self, entry: ErrorLogEntry) -> ErrorLogEntry:
        """log() without blocking the event loop on slow sinks."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.log, entry)

    def document_logs(self, document_id: str) -> list[ErrorLogEntry]:
        """Entries recorded for a document, newest first."""
        return self._query(document_id=document_id)

    def project_logs(self, project_id: str) -> list[ErrorLogEntry]:
        """Entries recorded for a project, newest first."""
        return self._query(project_id=project_id)

    def _query(self, **filters: str) -> list[ErrorLogEntry]:
        if not isinstance(self.storage, QueryableSink):
            return []
        try:
            return self.storage.query(**filters)
        except Exception as e:
            logger.error("Failed to retrieve diagnostic entries (%s): %s", filters, e)
            return []
