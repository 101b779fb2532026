"""
Document Pipeline
=================

Orchestrates one extraction attempt:

    DETECTING -> EXTRACTING_PRIMARY -> [EXTRACTING_FALLBACK] -> ANALYZING -> FINALIZED

- an unsupported format finalizes as failed without reaching an extractor
- a PDF load failure, or a PDF that loads but yields no text, goes to the
  OCR fallback; any other extraction failure is fatal for the attempt
- a failing fallback is fatal and logged as CRITICAL with both errors
- content analysis never fails the attempt; without a summary the result
  is partial

Extractors, OCR engines and the analysis service are blocking and run in
the default executor. OCR and analysis calls are bounded by timeouts.

Usage:
    pipeline = build_default_pipeline()
    result = asyncio.run(pipeline.process_document(data, "paper.pdf", "application/pdf"))
    if result.can_retry:
        retry = asyncio.run(pipeline.process_document(
            data, "paper.pdf", "application/pdf",
            options=RetryOptions(use_alternative_method=True),
            retry_count=1,
        ))
"""

import asyncio
import functools
import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

from paper_extraction.analysis.base import AnalysisResult, BaseAnalysisAdapter
from paper_extraction.analysis.gemini import GeminiAnalysisAdapter
from paper_extraction.analysis.langdock import LangdockAnalysisAdapter
from paper_extraction.backends.gemini import GeminiBackend
from paper_extraction.backends.tesseract import TesseractBackend
from paper_extraction.detector import FormatDetector, FormatKind
from paper_extraction.diagnostics import (
    DiagnosticLogger,
    ErrorCategory,
    ErrorLogEntry,
    ErrorSeverity,
    JsonlFileSink,
    WebhookAlertSink,
    entry_from_exception,
    generate_request_id,
)
from paper_extraction.errors import (
    AnalysisUnavailableError,
    DocumentProcessingError,
    ErrorKind,
    FileValidationError,
    OcrFailedError,
    PdfLoadError,
    UnexpectedProcessingError,
    UnsupportedFormatError,
)
from paper_extraction.extractors import (
    BaseExtractor,
    DocxExtractor,
    FormatExtraction,
    LatexExtractor,
    PdfExtractor,
    PlainTextExtractor,
)
from paper_extraction.fallback import OcrExtraction, OcrFallbackExtractor
from paper_extraction.models import (
    CancellationToken,
    ExtractionAttempt,
    ExtractionCancelled,
    ExtractionResult,
    Outcome,
    PipelineConfig,
    ProcessingDetails,
    RetryOptions,
    SourceDocument,
    utc_now,
)
from paper_extraction.validation import sanitize_filename, validate_upload

logger = logging.getLogger(__name__)

FALLBACK_ALSO_FAILED = "Fallback text recognition also failed."
NO_TEXT_MESSAGE = "No text could be extracted from the PDF"


class PipelineState(Enum):
    DETECTING = "detecting"
    EXTRACTING_PRIMARY = "extracting_primary"
    EXTRACTING_FALLBACK = "extracting_fallback"
    ANALYZING = "analyzing"
    FINALIZED = "finalized"


@dataclass
class _Run:
    """Mutable state of a single attempt; never shared between attempts."""

    document: SourceDocument
    attempt: ExtractionAttempt
    cancel_token: CancellationToken
    request_id: str = field(default_factory=generate_request_id)
    details: ProcessingDetails = field(default_factory=ProcessingDetails)
    state: PipelineState = PipelineState.DETECTING
    kind: FormatKind | None = None

    def correlation(self) -> dict[str, Any]:
        return {
            "user_id": self.attempt.user_id,
            "document_id": self.attempt.document_id,
            "project_id": self.attempt.project_id,
            "request_id": self.request_id,
            "file_name": sanitize_filename(self.document.filename),
            "file_type": self.document.extension or None,
            "file_size": self.document.size,
        }


def default_extractors(config: PipelineConfig | None = None) -> dict[FormatKind, BaseExtractor]:
    config = config or PipelineConfig()
    return {
        FormatKind.PDF: PdfExtractor(detect_structures=config.detect_structures),
        FormatKind.DOCX: DocxExtractor(),
        FormatKind.LATEX: LatexExtractor(),
        FormatKind.PLAIN_TEXT: PlainTextExtractor(),
    }


class DocumentPipeline:
    """Per-document orchestrator with OCR fallback and partial-success semantics."""

    def __init__(
        self,
        extractors: dict[FormatKind, BaseExtractor] | None = None,
        fallback: OcrFallbackExtractor | None = None,
        analysis: BaseAnalysisAdapter | None = None,
        diagnostics: DiagnosticLogger | None = None,
        config: PipelineConfig | None = None,
        detector: FormatDetector | None = None,
    ):
        """
        Initialize the pipeline.

        Args:
            extractors: Primary extractor per FormatKind; must cover every kind
            fallback: OCR fallback for PDFs (None disables the fallback path)
            analysis: Summarization service (None yields partial results)
            diagnostics: Diagnostic fan-out logger (default: console only)
            config: Pipeline configuration
            detector: Format detector

        Raises:
            ValueError: A FormatKind has no extractor
        """
        self.config = config or PipelineConfig()
        self.extractors = extractors if extractors is not None else default_extractors(self.config)
        missing = [kind.value for kind in FormatKind if kind not in self.extractors]
        if missing:
            raise ValueError(f"No extractor registered for: {', '.join(missing)}")

        self.fallback = fallback
        self.analysis = analysis
        self.diagnostics = diagnostics or DiagnosticLogger()
        self.detector = detector or FormatDetector()

    async def process_document(
        self,
        data: bytes,
        filename: str,
        mime_type: str | None = None,
        *,
        user_id: str | None = None,
        document_id: str | None = None,
        project_id: str | None = None,
        options: RetryOptions | None = None,
        retry_count: int = 0,
        cancel_token: CancellationToken | None = None,
    ) -> ExtractionResult:
        """
        Run one extraction attempt.

        Each call is a fresh attempt; retries are driven by the caller with
        adjusted options and an incremented retry_count.

        Returns:
            ExtractionResult (success, partial or failed)

        Raises:
            ExtractionCancelled: cancel_token was triggered
        """
        options = options or RetryOptions()
        attempt = ExtractionAttempt(
            document_id=document_id,
            project_id=project_id,
            user_id=user_id,
            retry_count=retry_count,
            options=options,
        )
        run = _Run(
            document=SourceDocument(data=data, filename=filename or "", mime_type=mime_type or ""),
            attempt=attempt,
            cancel_token=cancel_token or CancellationToken(),
            details=ProcessingDetails(start_time=attempt.started_at),
        )

        logger.info(
            "Processing %s (%d bytes, attempt=%s, retry=%d)",
            run.document.filename,
            run.document.size,
            attempt.attempt_id,
            retry_count,
        )

        try:
            return await self._process(run)
        except ExtractionCancelled:
            await self._log_event(
                run,
                ErrorCategory.DOCUMENT_EXTRACTION,
                ErrorSeverity.INFO,
                "Document processing cancelled",
                {"state": run.state.value},
            )
            raise
        except Exception as e:
            logger.exception("Unexpected error while processing %s", run.document.filename)
            await self._log_exception(run, e, "Unexpected error during document processing")
            error = UnexpectedProcessingError(
                str(e), details={"error_type": type(e).__name__, "state": run.state.value}
            )
            return await self._finalize_failed(run, error)

    # =========================================================================
    # Stages
    # =========================================================================

    async def _process(self, run: _Run) -> ExtractionResult:
        run.cancel_token.raise_if_cancelled()

        try:
            run.kind = self.detector.detect(run.document.filename, run.document.mime_type)
        except UnsupportedFormatError as e:
            await self._log_exception(run, e, "Unsupported file format")
            return await self._finalize_failed(run, e)

        if self.config.validate_uploads:
            try:
                report = validate_upload(run.document, run.kind)
            except FileValidationError as e:
                await self._log_exception(run, e, "File validation failed")
                return await self._finalize_failed(run, e)
            run.details.warnings.extend(report.warnings)

        run.state = PipelineState.EXTRACTING_PRIMARY
        run.cancel_token.raise_if_cancelled()

        extractor = self.extractors[run.kind]
        try:
            extraction = await self._in_executor(
                extractor.extract,
                run.document.data,
                run.attempt.options,
                run.cancel_token,
            )
        except PdfLoadError as e:
            await self._log_exception(run, e, "PDF loading failed")
            return await self._extract_fallback(run, e)
        except DocumentProcessingError as e:
            await self._log_exception(run, e, f"{run.kind.value} extraction failed")
            return await self._finalize_failed(run, e)

        self._apply_extraction(run, extraction)
        if extraction.warnings:
            await self._log_event(
                run,
                self._category_for(run.kind),
                ErrorSeverity.WARNING,
                "Document extracted with warnings",
                {
                    "kind": ErrorKind.PDF_PAGE_EXTRACTION_WARNING.value
                    if run.kind is FormatKind.PDF
                    else run.kind.value,
                    "warnings": list(extraction.warnings),
                },
            )

        if (
            run.kind is FormatKind.PDF
            and not extraction.has_text
            and self.config.fallback_on_empty_text
            and self.fallback is not None
        ):
            return await self._extract_fallback(run, None, extraction)

        return await self._analyze(run, extraction.text, extraction)

    async def _extract_fallback(
        self,
        run: _Run,
        primary_error: PdfLoadError | None,
        extraction: FormatExtraction | None = None,
    ) -> ExtractionResult:
        """
        Recover text with OCR after the primary PDF extractor failed.

        Args:
            primary_error: The load failure, or None when the PDF loaded
                but produced no text
            extraction: The empty primary extraction, if any
        """
        run.state = PipelineState.EXTRACTING_FALLBACK
        primary_summary = (
            primary_error.summary()
            if primary_error is not None
            else {"kind": "empty_text", "message": NO_TEXT_MESSAGE}
        )
        run.details.primary_method_error = primary_summary["message"]

        await self._log_event(
            run,
            ErrorCategory.PDF_PROCESSING,
            ErrorSeverity.WARNING,
            "Primary extraction failed, attempting OCR fallback",
            {"primary_error": primary_summary, "retry_count": run.attempt.retry_count},
        )

        try:
            run.cancel_token.raise_if_cancelled()
            ocr = await self._run_ocr(run)
        except OcrFailedError as e:
            await self._log_exception(
                run,
                e,
                "All extraction methods failed",
                severity=ErrorSeverity.CRITICAL,
                details={"primary_error": primary_summary, "fallback_error": e.summary()},
            )
            lead = primary_error.user_message if primary_error is not None else NO_TEXT_MESSAGE
            return await self._finalize_failed(
                run,
                primary_error or e,
                message=f"{lead}. {FALLBACK_ALSO_FAILED}",
                error_details={"primary_error": primary_summary, "fallback_error": e.summary()},
            )

        run.details.used_fallback_method = True
        run.details.fallback_method = ocr.engine
        run.details.ocr_confidence = ocr.confidence
        run.details.extraction_method = ocr.method

        logger.info(
            "OCR fallback succeeded for %s: engine=%s, chars=%d",
            run.document.filename,
            ocr.engine,
            len(ocr.text),
        )
        return await self._analyze(run, ocr.text, extraction)

    async def _run_ocr(self, run: _Run) -> OcrExtraction:
        if self.fallback is None:
            raise OcrFailedError("No OCR fallback is configured")

        try:
            return await asyncio.wait_for(
                self._in_executor(
                    self.fallback.extract,
                    run.document.data,
                    run.kind,
                    run.attempt.options,
                    run.cancel_token,
                ),
                timeout=self.config.ocr_timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            raise OcrFailedError(
                f"OCR timed out after {self.config.ocr_timeout_seconds:.0f}s",
                details={"timeout_seconds": self.config.ocr_timeout_seconds},
            ) from e

    async def _analyze(
        self,
        run: _Run,
        text: str,
        extraction: FormatExtraction | None,
    ) -> ExtractionResult:
        run.state = PipelineState.ANALYZING

        if not text.strip():
            # Nothing to summarize; the warnings already describe why
            return await self._finalize(run, Outcome.SUCCESS, "", extraction)

        run.cancel_token.raise_if_cancelled()

        try:
            analysis = await self._run_analysis(text)
        except AnalysisUnavailableError as e:
            await self._log_exception(
                run, e, "Content analysis unavailable", severity=ErrorSeverity.WARNING
            )
            return await self._finalize(
                run,
                Outcome.PARTIAL,
                text,
                extraction,
                error=e.user_message,
                error_details=e.summary(),
                error_kind=e.kind.value,
            )

        return await self._finalize(run, Outcome.SUCCESS, text, extraction, summary=analysis.summary)

    async def _run_analysis(self, text: str) -> AnalysisResult:
        """Summarize text; any failure becomes AnalysisUnavailableError."""
        if self.analysis is None or not self.analysis.is_available():
            raise AnalysisUnavailableError("No content analysis service is configured")

        try:
            result = await asyncio.wait_for(
                self._in_executor(self.analysis.summarize, text),
                timeout=self.config.analysis_timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            raise AnalysisUnavailableError(
                f"Content analysis timed out after {self.config.analysis_timeout_seconds:.0f}s"
            ) from e
        except Exception as e:
            raise AnalysisUnavailableError(
                f"Content analysis failed: {e}",
                details={"error_type": type(e).__name__},
            ) from e

        if not result.success:
            raise AnalysisUnavailableError(
                f"Content analysis failed: {result.error or 'unknown error'}"
            )
        return result

    # =========================================================================
    # Finalization
    # =========================================================================

    def _apply_extraction(self, run: _Run, extraction: FormatExtraction) -> None:
        run.details.extraction_method = extraction.method
        run.details.page_count = extraction.page_count
        run.details.pdf_version = extraction.pdf_version
        run.details.warnings.extend(extraction.warnings)

    async def _finalize(
        self,
        run: _Run,
        outcome: Outcome,
        text: str,
        extraction: FormatExtraction | None,
        summary: str = "",
        error: str | None = None,
        error_details: dict[str, Any] | None = None,
        error_kind: str | None = None,
    ) -> ExtractionResult:
        run.state = PipelineState.FINALIZED
        run.details.end_time = utc_now()
        run.attempt.finalize()

        result = ExtractionResult(
            outcome=outcome,
            text=text,
            summary=summary,
            metadata=dict(extraction.metadata) if extraction else {},
            figures=list(extraction.figures) if extraction else [],
            tables=list(extraction.tables) if extraction else [],
            processing_details=run.details,
            attempt=run.attempt,
            error=error,
            error_details=error_details,
            error_kind=error_kind,
        )

        await self._log_event(
            run,
            ErrorCategory.DOCUMENT_EXTRACTION,
            ErrorSeverity.INFO,
            f"Document processing finished: {outcome.value}",
            {
                "outcome": outcome.value,
                "text_length": len(text),
                "word_count": result.word_count,
                "figure_count": len(result.figures),
                "table_count": len(result.tables),
                "processing_details": run.details.to_dict(),
            },
        )
        logger.info(
            "Finished %s: outcome=%s, method=%s, chars=%d, warnings=%d",
            run.document.filename,
            outcome.value,
            run.details.extraction_method.value,
            len(text),
            len(run.details.warnings),
        )
        return result

    async def _finalize_failed(
        self,
        run: _Run,
        error: DocumentProcessingError,
        message: str | None = None,
        error_details: dict[str, Any] | None = None,
    ) -> ExtractionResult:
        return await self._finalize(
            run,
            Outcome.FAILED,
            "",
            None,
            error=message or error.user_message,
            error_details=error_details or error.summary(),
            error_kind=error.kind.value,
        )

    # =========================================================================
    # Helpers
    # =========================================================================

    async def _in_executor(self, func: Callable[..., Any], *args: Any) -> Any:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, functools.partial(func, *args))

    async def _log_event(
        self,
        run: _Run,
        category: ErrorCategory,
        severity: ErrorSeverity,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        entry = ErrorLogEntry(
            category=category,
            severity=severity,
            message=message,
            details=details,
            **run.correlation(),
        )
        await self.diagnostics.log_async(entry)

    async def _log_exception(
        self,
        run: _Run,
        exc: BaseException,
        message: str,
        severity: ErrorSeverity | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        entry = entry_from_exception(
            exc,
            message,
            severity=severity,
            details=details,
            **run.correlation(),
        )
        await self.diagnostics.log_async(entry)

    @staticmethod
    def _category_for(kind: FormatKind) -> ErrorCategory:
        if kind is FormatKind.PDF:
            return ErrorCategory.PDF_PROCESSING
        return ErrorCategory.DOCUMENT_EXTRACTION


def build_default_pipeline(
    config: PipelineConfig | None = None,
    diagnostics: DiagnosticLogger | None = None,
) -> DocumentPipeline:
    """
    Compose a pipeline from the environment.

    Engine and service availability is resolved here, once:
    Tesseract is the default OCR engine (Gemini when Tesseract is missing),
    Gemini is the alternative engine, and Gemini or Langdock provide
    content analysis when their API keys are set.
    """
    config = config or PipelineConfig.from_env()

    tesseract = TesseractBackend()
    gemini = GeminiBackend()
    if tesseract.is_available() or not gemini.is_available():
        ocr_backend = tesseract
    else:
        ocr_backend = gemini
    fallback = OcrFallbackExtractor(
        ocr_backend,
        alternative_backend=gemini if gemini.is_available() else None,
        dpi=config.ocr_dpi,
    )

    analysis: BaseAnalysisAdapter | None = None
    for candidate in (
        GeminiAnalysisAdapter(max_chars=config.max_analysis_chars),
        LangdockAnalysisAdapter(max_chars=config.max_analysis_chars),
    ):
        if candidate.is_available():
            analysis = candidate
            break

    if diagnostics is None:
        diagnostics = DiagnosticLogger(
            monitoring=WebhookAlertSink() if os.getenv("ALERT_WEBHOOK_URL") else None,
            storage=JsonlFileSink(),
        )

    logger.info(
        "Pipeline composed: ocr=%s, alternative_ocr=%s, analysis=%s",
        ocr_backend.name,
        fallback.alternative_backend.name if fallback.alternative_backend else None,
        analysis.name if analysis else None,
    )

    return DocumentPipeline(
        fallback=fallback,
        analysis=analysis,
        diagnostics=diagnostics,
        config=config,
    )
