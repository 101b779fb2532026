"""
Unit Tests for DocumentPipeline

Test Coverage:
- Extractor table exhaustiveness
- Format coverage and unsupported formats
- Page fault isolation and empty-text fallback
- PDF load failure -> OCR fallback -> success / terminal failure
- Analysis downgrade to partial
- Timeouts, cancellation and unexpected errors
- Diagnostic entries and attempt bookkeeping
"""

import asyncio
import json

import pytest

from conftest import MockAnalysisAdapter, MockOCRBackend
from paper_extraction.detector import FormatKind
from paper_extraction.diagnostics import ErrorCategory, ErrorSeverity
from paper_extraction.extractors import PdfExtractor, PlainTextExtractor
from paper_extraction.models import (
    CancellationToken,
    ExtractionCancelled,
    ExtractionMethod,
    Outcome,
    PipelineConfig,
    RetryOptions,
)
from paper_extraction.pipeline import DocumentPipeline, default_extractors


def run(pipeline: DocumentPipeline, data: bytes, filename: str, mime_type: str = "", **kwargs):
    return asyncio.run(pipeline.process_document(data, filename, mime_type, **kwargs))


@pytest.fixture
def flaky_page_two(monkeypatch):
    original = PdfExtractor._extract_page_text

    def _extract(self, page, page_number, alternative=False):
        if page_number == 2:
            raise RuntimeError("malformed content stream")
        return original(self, page, page_number, alternative)

    monkeypatch.setattr(PdfExtractor, "_extract_page_text", _extract)


# =============================================================================
# Test: Construction
# =============================================================================

@pytest.mark.unit
class TestPipelineConstruction:
    """Tests for DocumentPipeline composition."""

    def test_default_extractors_cover_all_formats(self):
        assert set(default_extractors()) == set(FormatKind)

    def test_missing_extractor_rejected(self):
        extractors = default_extractors()
        del extractors[FormatKind.LATEX]
        with pytest.raises(ValueError, match="latex"):
            DocumentPipeline(extractors=extractors)


# =============================================================================
# Test: Format Coverage
# =============================================================================

@pytest.mark.unit
class TestFormatCoverage:
    """Every supported format produces text."""

    def test_pdf(self, make_pipeline, text_pdf):
        result = run(make_pipeline(), text_pdf, "paper.pdf", "application/pdf")

        assert result.outcome is Outcome.SUCCESS
        assert "Deep Learning for Paper Ingestion" in result.text
        assert result.summary == "A concise summary."
        assert result.processing_details.page_count == 1
        assert result.processing_details.extraction_method is ExtractionMethod.PRIMARY
        assert [f.reference for f in result.figures] == ["Figure 1"]

    def test_docx(self, make_pipeline, docx_bytes):
        result = run(make_pipeline(), docx_bytes, "paper.docx")
        assert result.success and "Abstract of the DOCX paper." in result.text

    def test_latex(self, make_pipeline, latex_bytes):
        result = run(make_pipeline(), latex_bytes, "paper.tex", "application/x-tex")
        assert result.success and "sparse attention" in result.text

    def test_plain_text(self, make_pipeline):
        result = run(make_pipeline(), b"Plain notes about the paper.", "notes.txt", "text/plain")
        assert result.outcome is Outcome.SUCCESS
        assert result.text == "Plain notes about the paper."
        assert result.processing_details.warnings == []


# =============================================================================
# Test: Unsupported Format / Validation
# =============================================================================

@pytest.mark.unit
class TestRejectedUploads:
    """Uploads that never reach an extractor."""

    def test_unsupported_format(self, make_pipeline, memory_sink, monkeypatch):
        calls = []
        monkeypatch.setattr(
            PlainTextExtractor, "extract", lambda self, *a, **k: calls.append(a)
        )

        result = run(make_pipeline(), b"slides", "deck.pptx", document_id="doc-1")

        assert result.outcome is Outcome.FAILED
        assert result.error_kind == "unsupported_format"
        assert result.error == "Unsupported file format: pptx"
        assert result.can_retry is True
        assert calls == []
        errors = [e for e in memory_sink.entries if e.severity is ErrorSeverity.ERROR]
        assert errors[0].message == "Unsupported file format"
        assert errors[0].document_id == "doc-1"

    def test_oversize_upload(self, make_pipeline):
        data = b"a" * (10 * 1024 * 1024 + 1)
        result = run(make_pipeline(), data, "huge.txt")

        assert result.outcome is Outcome.FAILED
        assert result.error_kind == "file_validation_failed"

    def test_mime_mismatch_is_a_warning(self, make_pipeline):
        result = run(make_pipeline(), b"hello", "notes.txt", "application/pdf")

        assert result.outcome is Outcome.SUCCESS
        assert len(result.processing_details.warnings) == 1

    def test_validation_can_be_disabled(self, make_pipeline):
        pipeline = make_pipeline(config=PipelineConfig(validate_uploads=False))
        result = run(pipeline, b"hello", "notes.txt", "application/pdf")
        assert result.processing_details.warnings == []


# =============================================================================
# Test: PDF Paths
# =============================================================================

@pytest.mark.unit
class TestPdfPaths:
    """Primary, fallback and failure paths for PDFs."""

    def test_page_fault_isolation(self, make_pipeline, sample_pdf, flaky_page_two, mock_ocr):
        result = run(make_pipeline(), sample_pdf, "sample.pdf", "application/pdf")

        assert result.success is True
        assert result.outcome is Outcome.SUCCESS
        assert "Page one introduction" in result.text
        assert "Page three conclusion" in result.text
        assert result.processing_details.warnings == [
            "Failed to extract text from page 2: malformed content stream"
        ]
        assert result.processing_details.used_fallback_method is False
        assert mock_ocr.recognize_calls == []

    def test_damaged_page_isolation(self, make_pipeline, damaged_sample_pdf, mock_ocr):
        result = run(make_pipeline(), damaged_sample_pdf("missing"), "sample.pdf", "application/pdf")

        assert result.outcome is Outcome.SUCCESS
        assert "Page one introduction" in result.text
        assert "Page three conclusion" in result.text
        warnings = result.processing_details.warnings
        assert len(warnings) == 1
        assert warnings[0].startswith("Failed to extract text from page 2: ")
        assert result.processing_details.used_fallback_method is False

    def test_copy_restricted_pdf_falls_back(
        self, make_pipeline, copy_restricted_pdf, memory_sink
    ):
        result = run(make_pipeline(), copy_restricted_pdf, "restricted.pdf", "application/pdf")

        assert result.outcome is Outcome.SUCCESS
        assert result.text == "Recognized page text"
        assert result.processing_details.used_fallback_method is True
        assert result.processing_details.primary_method_error == "Cannot process encrypted PDF"
        primary = next(e for e in memory_sink.entries if e.message == "PDF loading failed")
        assert primary.details["failure"] == "encrypted"

    def test_copy_restricted_pdf_ignore_encryption(
        self, make_pipeline, copy_restricted_pdf, mock_ocr
    ):
        result = run(
            make_pipeline(),
            copy_restricted_pdf,
            "restricted.pdf",
            options=RetryOptions(ignore_encryption=True),
        )

        assert result.outcome is Outcome.SUCCESS
        assert "Restricted findings" in result.text
        assert mock_ocr.recognize_calls == []
        assert any("Encryption restrictions ignored" in w for w in result.processing_details.warnings)

    def test_empty_text_triggers_fallback(self, make_pipeline, blank_pdf, mock_ocr):
        result = run(make_pipeline(), blank_pdf, "scan.pdf", "application/pdf")

        assert len(mock_ocr.recognize_calls) == 1
        assert result.outcome is Outcome.SUCCESS
        assert result.text == "Recognized page text"
        details = result.processing_details
        assert details.used_fallback_method is True
        assert details.fallback_method == "MockOCR"
        assert details.extraction_method is ExtractionMethod.OCR
        assert details.ocr_confidence == 0.88
        assert details.page_count == 1
        assert "No text content extracted from PDF" in details.warnings

    def test_empty_text_without_fallback_rule(self, make_pipeline, blank_pdf, mock_ocr):
        pipeline = make_pipeline(config=PipelineConfig(fallback_on_empty_text=False))
        result = run(pipeline, blank_pdf, "scan.pdf")

        assert mock_ocr.recognize_calls == []
        assert result.outcome is Outcome.SUCCESS
        assert result.text == ""
        assert result.summary == ""

    def test_load_failure_falls_back(self, make_pipeline, encrypted_pdf, monkeypatch, mock_ocr):
        """A terminal load failure is recovered by OCR when OCR succeeds."""
        from paper_extraction import fallback as fallback_module
        from PIL import Image

        monkeypatch.setattr(
            fallback_module.OcrFallbackExtractor,
            "render_first_page",
            lambda self, data: Image.new("RGB", (10, 10), "white"),
        )

        result = run(make_pipeline(), encrypted_pdf, "locked.pdf", "application/pdf")

        assert result.outcome is Outcome.SUCCESS
        assert result.text == "Recognized page text"
        assert result.processing_details.used_fallback_method is True
        assert result.processing_details.primary_method_error == (
            "Password-protected PDF cannot be processed"
        )

    def test_encrypted_pdf_fallback_fails(self, make_pipeline, encrypted_pdf, memory_sink, mock_ocr):
        result = run(make_pipeline(), encrypted_pdf, "encrypted.pdf", "application/pdf",
                     document_id="doc-7")

        assert result.success is False
        assert result.text == ""
        assert "password protected" in result.error
        assert "Fallback text recognition also failed" in result.error
        assert "Traceback" not in result.error
        assert result.error_kind == "pdf_load_failed"
        assert result.can_retry is True

        severities = [e.severity for e in memory_sink.entries]
        assert ErrorSeverity.ERROR in severities
        assert ErrorSeverity.WARNING in severities
        critical = [e for e in memory_sink.entries if e.severity is ErrorSeverity.CRITICAL]
        assert len(critical) == 1
        assert critical[0].details["primary_error"]["failure"] == "password_protected"
        assert critical[0].details["fallback_error"]["kind"] == "ocr_failed"

    def test_fallback_entry_references_primary_error(self, make_pipeline, encrypted_pdf, memory_sink):
        run(make_pipeline(), encrypted_pdf, "encrypted.pdf")

        primary = next(e for e in memory_sink.entries if e.message == "PDF loading failed")
        transition = next(
            e for e in memory_sink.entries
            if e.message == "Primary extraction failed, attempting OCR fallback"
        )
        assert transition.request_id == primary.request_id
        assert transition.details["primary_error"]["message"] == primary.details["message"]
        assert transition.category is ErrorCategory.PDF_PROCESSING

    def test_no_fallback_configured(self, make_pipeline, encrypted_pdf, memory_sink):
        result = run(make_pipeline(with_fallback=False), encrypted_pdf, "encrypted.pdf")

        assert result.outcome is Outcome.FAILED
        critical = [e for e in memory_sink.entries if e.severity is ErrorSeverity.CRITICAL]
        assert critical[0].details["fallback_error"]["message"] == "No OCR fallback is configured"

    def test_ocr_timeout(self, make_pipeline, blank_pdf):
        slow = MockOCRBackend(name="SlowOCR", delay=0.5)
        pipeline = make_pipeline(ocr=slow, config=PipelineConfig(ocr_timeout_seconds=0.05))

        result = run(pipeline, blank_pdf, "scan.pdf")

        assert result.outcome is Outcome.FAILED
        assert result.error_details["fallback_error"]["message"].startswith("OCR timed out")

    def test_alternative_method_retry(self, make_pipeline, blank_pdf, mock_ocr):
        alternative = MockOCRBackend(name="AltOCR", return_text="alternative text")
        pipeline = make_pipeline(alternative_ocr=alternative)

        result = run(
            pipeline,
            blank_pdf,
            "scan.pdf",
            options=RetryOptions(use_alternative_method=True),
            retry_count=1,
        )

        assert result.text == "alternative text"
        assert result.processing_details.fallback_method == "AltOCR"
        assert result.attempt.retry_count == 1
        assert result.attempt.options.use_alternative_method is True

    def test_non_pdf_failure_has_no_fallback(self, make_pipeline, mock_ocr):
        result = run(make_pipeline(), b"PK\x03\x04 broken", "paper.docx")

        assert result.outcome is Outcome.FAILED
        assert result.error_kind == "docx_extraction_failed"
        assert mock_ocr.recognize_calls == []


# =============================================================================
# Test: Analysis
# =============================================================================

@pytest.mark.unit
class TestAnalysisStage:
    """Analysis failures downgrade to partial, never fail."""

    @pytest.mark.parametrize(
        "adapter",
        [
            MockAnalysisAdapter(should_raise=True),
            MockAnalysisAdapter(success=False),
            MockAnalysisAdapter(available=False),
            None,
        ],
    )
    def test_analysis_failure_is_partial(self, make_pipeline, text_pdf, memory_sink, adapter):
        result = run(make_pipeline(analysis=adapter), text_pdf, "paper.pdf")

        assert result.success is True
        assert result.outcome is Outcome.PARTIAL
        assert "Deep Learning for Paper Ingestion" in result.text
        assert result.summary == ""
        assert result.error == "Content analysis was unavailable; using extracted text only"
        assert result.can_retry is True
        warnings = [e for e in memory_sink.entries if e.severity is ErrorSeverity.WARNING]
        assert any(e.message == "Content analysis unavailable" for e in warnings)
        assert not any(e.severity is ErrorSeverity.ERROR for e in memory_sink.entries)

    def test_analysis_timeout_is_partial(self, make_pipeline, text_pdf):
        pipeline = make_pipeline(
            analysis=MockAnalysisAdapter(delay=0.5),
            config=PipelineConfig(analysis_timeout_seconds=0.05),
        )
        result = run(pipeline, text_pdf, "paper.pdf")

        assert result.outcome is Outcome.PARTIAL
        assert "timed out" in result.error_details["message"]

    def test_analysis_receives_extracted_text(self, make_pipeline, mock_analysis):
        run(make_pipeline(), b"Full paper text.", "paper.txt")
        assert mock_analysis.summarize_calls == ["Full paper text."]


# =============================================================================
# Test: Cancellation / Unexpected Errors / Bookkeeping
# =============================================================================

@pytest.mark.unit
class TestLifecycle:
    """Attempt lifecycle and diagnostics."""

    def test_cancelled_before_start(self, make_pipeline, text_pdf, memory_sink, mock_analysis):
        token = CancellationToken()
        token.cancel()

        with pytest.raises(ExtractionCancelled):
            run(make_pipeline(), text_pdf, "paper.pdf", cancel_token=token)

        assert mock_analysis.summarize_calls == []
        assert memory_sink.entries[-1].message == "Document processing cancelled"
        assert memory_sink.entries[-1].severity is ErrorSeverity.INFO

    def test_unexpected_error(self, make_pipeline, monkeypatch, memory_sink):
        def _explode(self, *args, **kwargs):
            raise KeyError("internal /srv/secret/path")

        monkeypatch.setattr(PlainTextExtractor, "extract", _explode)
        result = run(make_pipeline(), b"text", "notes.txt")

        assert result.outcome is Outcome.FAILED
        assert result.error_kind == "unexpected_error"
        assert result.error == "Document processing failed due to an unexpected error"
        assert any(e.stack and "KeyError" in e.stack for e in memory_sink.entries)

        serialized = json.dumps(result.to_dict())
        assert "/srv/secret" not in serialized
        assert result.error_details["message"] == "'internal [PATH]'"

    def test_attempt_finalized_and_fresh_per_call(self, make_pipeline):
        pipeline = make_pipeline()
        first = run(pipeline, b"text", "a.txt", document_id="doc-1")
        second = run(pipeline, b"text", "a.txt", document_id="doc-1", retry_count=1)

        assert first.attempt.finalized and second.attempt.finalized
        assert first.attempt.attempt_id != second.attempt.attempt_id
        assert first.processing_details.end_time is not None

    def test_summary_entry_logged(self, make_pipeline, memory_sink, text_pdf):
        run(make_pipeline(), text_pdf, "paper.pdf", document_id="doc-3", project_id="p-1")

        summary = memory_sink.query(document_id="doc-3")[0]
        assert summary.severity is ErrorSeverity.INFO
        assert summary.message == "Document processing finished: success"
        assert summary.details["figure_count"] == 1
        assert summary.project_id == "p-1"
        assert summary.file_type == ".pdf"

    def test_result_serializes(self, make_pipeline, text_pdf):
        data = run(make_pipeline(), text_pdf, "paper.pdf").to_dict()

        assert data["success"] is True
        assert data["can_retry"] is False
        assert data["processing_details"]["extraction_method"] == "primary"
        assert data["attempt"]["finished_at"] is not None
