"""
Paper Extraction
================

Ingestion pipeline turning uploaded research papers into normalized text.

Features:
- Format detection for PDF, DOCX, LaTeX and plain text
- Page-isolated PDF extraction with OCR fallback (Tesseract, Gemini)
- Partial-success semantics when content analysis is unavailable
- Caller-driven retries with RetryOptions
- Structured, queryable failure diagnostics with sanitized user messages

Basic Usage:
    import asyncio
    from paper_extraction import build_default_pipeline

    pipeline = build_default_pipeline()
    with open("paper.pdf", "rb") as f:
        result = asyncio.run(
            pipeline.process_document(f.read(), "paper.pdf", "application/pdf")
        )
    print(result.outcome, result.processing_details.warnings)

Advanced Usage:
    from paper_extraction import DocumentPipeline, OcrFallbackExtractor, RetryOptions
    from paper_extraction.backends import GeminiBackend, TesseractBackend
    from paper_extraction.diagnostics import DiagnosticLogger, JsonlFileSink

    pipeline = DocumentPipeline(
        fallback=OcrFallbackExtractor(TesseractBackend(), alternative_backend=GeminiBackend()),
        diagnostics=DiagnosticLogger(storage=JsonlFileSink("diagnostics.jsonl")),
    )
    retry = asyncio.run(pipeline.process_document(
        data, "paper.pdf", options=RetryOptions(ignore_encryption=True), retry_count=1,
    ))
"""

__version__ = "0.1.0"

from .detector import FormatDetector, FormatKind
from .errors import DocumentProcessingError, ErrorKind, PdfLoadFailure
from .fallback import OcrExtraction, OcrFallbackExtractor
from .models import (
    CancellationToken,
    ExtractionAttempt,
    ExtractionCancelled,
    ExtractionMethod,
    ExtractionResult,
    Figure,
    Outcome,
    PipelineConfig,
    ProcessingDetails,
    RetryOptions,
    SourceDocument,
    Table,
)
from .pipeline import DocumentPipeline, PipelineState, build_default_pipeline

__all__ = [
    # Version
    "__version__",
    # Detection
    "FormatDetector",
    "FormatKind",
    # Orchestration
    "DocumentPipeline",
    "PipelineState",
    "PipelineConfig",
    "build_default_pipeline",
    "OcrFallbackExtractor",
    "OcrExtraction",
    # Models
    "CancellationToken",
    "ExtractionAttempt",
    "ExtractionCancelled",
    "ExtractionMethod",
    "ExtractionResult",
    "Figure",
    "Outcome",
    "ProcessingDetails",
    "RetryOptions",
    "SourceDocument",
    "Table",
    # Errors
    "DocumentProcessingError",
    "ErrorKind",
    "PdfLoadFailure",
]
