"""
Test Configuration and Fixtures for paper-extraction

This module provides shared fixtures, markers, mock collaborators and
document builders for all tests.
"""

import io
import tempfile
import time
from pathlib import Path
from typing import Any, Generator

import pytest

from paper_extraction.analysis.base import AnalysisResult, BaseAnalysisAdapter
from paper_extraction.backends.base import BaseOCRBackend, OCRResult
from paper_extraction.diagnostics import DiagnosticLogger, MemorySink
from paper_extraction.fallback import OcrFallbackExtractor
from paper_extraction.models import PipelineConfig
from paper_extraction.pipeline import DocumentPipeline


# =============================================================================
# Pytest Configuration
# =============================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests (fast, no external deps)")
    config.addinivalue_line("markers", "integration: Integration tests (full pipeline)")
    config.addinivalue_line("markers", "slow: Slow tests (skip with -m 'not slow')")


# =============================================================================
# Path Fixtures
# =============================================================================

@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Provide a temporary directory that is cleaned up after the test."""
    with tempfile.TemporaryDirectory(prefix="paper_extraction_test_") as tmpdir:
        yield Path(tmpdir)


# =============================================================================
# Document Builders
# =============================================================================

@pytest.fixture
def make_pdf():
    """Factory fixture building PDF bytes, one list of lines per page."""
    import fitz

    def _make(pages: list[list[str]] | None = None, **save_kwargs: Any) -> bytes:
        if pages is None:
            pages = [["Sample text content"]]
        doc = fitz.open()
        for lines in pages:
            page = doc.new_page()
            y_pos = 72
            for line in lines:
                page.insert_text((72, y_pos), line, fontsize=12)
                y_pos += 20
        doc.set_metadata({"title": "Test Paper", "author": "Test Author"})
        data = doc.tobytes(**save_kwargs)
        doc.close()
        return data

    return _make


@pytest.fixture
def text_pdf(make_pdf) -> bytes:
    """Single-page PDF with a figure caption and a table reference."""
    return make_pdf([[
        "Deep Learning for Paper Ingestion",
        "We evaluate the method on three corpora.",
        "Figure 1: Architecture overview",
        "Results are summarized in Table 2.",
    ]])


@pytest.fixture
def sample_pdf(make_pdf) -> bytes:
    """Three-page paper; page 2 is made to fail in the tests that need it."""
    return make_pdf([
        ["Page one introduction", "Motivation for the study"],
        ["Page two methods", "Experimental setup"],
        ["Page three conclusion", "Future work"],
    ])


@pytest.fixture
def damaged_sample_pdf(sample_pdf):
    """Factory fixture: sample_pdf with page 2 broken for real.

    "missing" points the page at a content object that does not exist,
    "garbage" replaces its content stream with unparseable operators.
    """
    import fitz

    def _damage(how: str = "missing") -> bytes:
        doc = fitz.open(stream=sample_pdf, filetype="pdf")
        page = doc[1]
        if how == "missing":
            doc.xref_set_key(page.xref, "Contents", "999 0 R")
        else:
            for xref in page.get_contents():
                doc.update_stream(xref, b"BT (garbage) Tj ] } ET")
        data = doc.tobytes()
        doc.close()
        return data

    return _damage


@pytest.fixture
def blank_pdf(make_pdf) -> bytes:
    """PDF with one empty page (no extractable text)."""
    return make_pdf([[]])


@pytest.fixture
def encrypted_pdf(make_pdf) -> bytes:
    """PDF that needs a user password to open."""
    import fitz

    return make_pdf(
        [["Confidential results"]],
        encryption=fitz.PDF_ENCRYPT_AES_256,
        owner_pw="owner-secret",
        user_pw="user-secret",
    )


@pytest.fixture
def copy_restricted_pdf(make_pdf) -> bytes:
    """PDF that opens without a password but forbids text copying."""
    import fitz

    return make_pdf(
        [["Restricted findings"]],
        encryption=fitz.PDF_ENCRYPT_AES_128,
        owner_pw="owner-secret",
        permissions=fitz.PDF_PERM_PRINT,
    )


@pytest.fixture
def docx_bytes() -> bytes:
    """Minimal DOCX with two paragraphs and a table."""
    import docx

    document = docx.Document()
    document.core_properties.title = "A DOCX Paper"
    document.core_properties.author = "Jane Researcher"
    document.add_paragraph("Abstract of the DOCX paper.")
    document.add_paragraph("Body paragraph with findings.")
    table = document.add_table(rows=2, cols=2)
    table.cell(0, 0).text = "Metric"
    table.cell(0, 1).text = "Value"
    table.cell(1, 0).text = "Accuracy"
    table.cell(1, 1).text = "0.93"

    buffer = io.BytesIO()
    document.save(buffer)
    return buffer.getvalue()


@pytest.fixture
def latex_bytes() -> bytes:
    """Minimal LaTeX article."""
    return (
        b"\\documentclass[11pt]{article}\n"
        b"\\usepackage{amsmath}\n"
        b"\\title{Sparse Attention Revisited}\n"
        b"\\author{A. Author}\n"
        b"\\begin{document}\n"
        b"\\maketitle\n"
        b"\\section{Introduction}\n"
        b"We study \\emph{sparse} attention. % reviewer note\n"
        b"The loss is $L = \\sum_i x_i$ and R\\&D matters.\n"
        b"\\[ E = mc^2 \\]\n"
        b"Results~follow.\n"
        b"\\end{document}\n"
    )


# =============================================================================
# Mock Collaborators
# =============================================================================

class MockOCRBackend(BaseOCRBackend):
    """Mock OCR engine for testing."""

    def __init__(
        self,
        name: str = "MockOCR",
        available: bool = True,
        return_text: str = "Recognized page text",
        confidence: float = 0.88,
        should_fail: bool = False,
        delay: float = 0.0,
    ):
        super().__init__(name)
        self._available = available
        self._return_text = return_text
        self._confidence = confidence
        self._should_fail = should_fail
        self._delay = delay
        self.recognize_calls = []  # Track calls for verification

    def is_available(self) -> bool:
        return self._available

    def recognize(self, image, **kwargs) -> OCRResult:
        self.recognize_calls.append(image.size)
        if self._delay:
            time.sleep(self._delay)
        if self._should_fail:
            raise RuntimeError("Mock OCR failure")
        return OCRResult(text=self._return_text, confidence=self._confidence, engine=self.name)


class MockAnalysisAdapter(BaseAnalysisAdapter):
    """Mock summarization service for testing."""

    def __init__(
        self,
        available: bool = True,
        summary: str = "A concise summary.",
        success: bool = True,
        should_raise: bool = False,
        delay: float = 0.0,
    ):
        super().__init__(name="MockAnalysis")
        self._available = available
        self._summary = summary
        self._success = success
        self._should_raise = should_raise
        self._delay = delay
        self.summarize_calls = []

    def is_available(self) -> bool:
        return self._available

    def summarize(self, text: str) -> AnalysisResult:
        self.summarize_calls.append(text)
        if self._delay:
            time.sleep(self._delay)
        if self._should_raise:
            raise ConnectionError("analysis service unreachable")
        if not self._success:
            return AnalysisResult(success=False, error="model overloaded")
        return AnalysisResult(success=True, summary=self._summary)


@pytest.fixture
def mock_ocr() -> MockOCRBackend:
    return MockOCRBackend()


@pytest.fixture
def failing_ocr() -> MockOCRBackend:
    return MockOCRBackend(name="FailingOCR", should_fail=True)


@pytest.fixture
def mock_analysis() -> MockAnalysisAdapter:
    return MockAnalysisAdapter()


@pytest.fixture
def memory_sink() -> MemorySink:
    return MemorySink()


@pytest.fixture
def diagnostics(memory_sink) -> DiagnosticLogger:
    """DiagnosticLogger whose durable storage is an in-memory sink."""
    return DiagnosticLogger(storage=memory_sink)


@pytest.fixture
def make_pipeline(diagnostics, mock_ocr, mock_analysis):
    """Factory fixture for DocumentPipeline with mock collaborators."""

    def _make(
        ocr: BaseOCRBackend | None = None,
        analysis: BaseAnalysisAdapter | None = mock_analysis,
        config: PipelineConfig | None = None,
        with_fallback: bool = True,
        alternative_ocr: BaseOCRBackend | None = None,
    ) -> DocumentPipeline:
        fallback = None
        if with_fallback:
            fallback = OcrFallbackExtractor(
                ocr or mock_ocr,
                alternative_backend=alternative_ocr,
                dpi=72,
            )
        return DocumentPipeline(
            fallback=fallback,
            analysis=analysis,
            diagnostics=diagnostics,
            config=config or PipelineConfig(),
        )

    return _make


# =============================================================================
# Helper Functions
# =============================================================================

def contains_all_phrases(text: str, phrases: list) -> bool:
    """Check if text contains all given phrases (case-insensitive)."""
    text_lower = text.lower()
    return all(phrase.lower() in text_lower for phrase in phrases)
