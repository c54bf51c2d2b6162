"""Pytest configuration and fixtures."""

import os
import tempfile
from pathlib import Path
from typing import Generator

# Settings are read once at import time, so point them at throwaway
# locations before the application is imported.
_TEST_ROOT = Path(tempfile.mkdtemp(prefix="docintel-tests-"))
os.environ["DATABASE_URL"] = f"sqlite:///{_TEST_ROOT / 'test.db'}"
os.environ["UPLOAD_DIR"] = str(_TEST_ROOT / "uploads")
os.environ["RECOVER_ON_STARTUP"] = "false"
os.environ["AI_PROVIDER"] = "openai"
os.environ["OPENAI_API_KEY"] = ""

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402

from app.docintel import models_db  # noqa: E402, F401
from app.docintel.database import Base, SessionLocal, engine  # noqa: E402
from app.docintel.main import app  # noqa: E402
from app.docintel.models import DocumentInsights  # noqa: E402
from app.docintel.services.ai import AIService, AIServiceError, set_ai_service  # noqa: E402


def build_pdf(*pages: str) -> bytes:
    """
    Build a small text PDF with one page per argument.

    Lines of each page are separated by newlines. An empty string gives a
    page without any text.
    """
    page_count = len(pages)
    objects: list[bytes] = [
        b"<< /Type /Catalog /Pages 2 0 R >>",
        (
            "<< /Type /Pages /Kids ["
            + " ".join(f"{4 + 2 * i} 0 R" for i in range(page_count))
            + f"] /Count {page_count} >>"
        ).encode(),
        b"<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica >>",
    ]

    for i, text in enumerate(pages):
        ops = ["BT", "/F1 12 Tf", "14 TL", "72 720 Td"]
        for line in text.split("\n") if text else []:
            escaped = line.replace("\\", "\\\\").replace("(", "\\(").replace(")", "\\)")
            ops.append(f"({escaped}) Tj T*")
        ops.append("ET")
        stream = "\n".join(ops).encode("latin-1")

        objects.append(
            (
                "<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792] "
                f"/Resources << /Font << /F1 3 0 R >> >> /Contents {5 + 2 * i} 0 R >>"
            ).encode()
        )
        objects.append(
            f"<< /Length {len(stream)} >>\nstream\n".encode() + stream + b"\nendstream"
        )

    out = bytearray(b"%PDF-1.4\n")
    offsets = []
    for number, body in enumerate(objects, start=1):
        offsets.append(len(out))
        out += f"{number} 0 obj\n".encode() + body + b"\nendobj\n"

    xref_position = len(out)
    out += f"xref\n0 {len(objects) + 1}\n".encode()
    out += b"0000000000 65535 f \n"
    for offset in offsets:
        out += f"{offset:010d} 00000 n \n".encode()
    out += (
        f"trailer\n<< /Size {len(objects) + 1} /Root 1 0 R >>\n"
        f"startxref\n{xref_position}\n%%EOF\n"
    ).encode()
    return bytes(out)


SAMPLE_PAGE_ONE = "\n".join(
    [
        "Quarterly Project Report for the Budget Committee.",
        "The project budget was approved after a long review of the timeline.",
        "Contact the project office at office@acme-example.com or 555-123-4567.",
    ]
)

SAMPLE_PAGE_TWO = "\n".join(
    [
        "Name | Role | City",
        "Alice | Engineer | Paris",
        "Bruno | Manager | Rome",
        "The budget timeline will be revisited next quarter by the committee.",
    ]
)


class FakeAIService:
    """Stand-in for AIService that records calls and never touches the network."""

    def __init__(
        self,
        enabled: bool = True,
        summary: str = "An AI generated summary of the document.",
        keywords: list[str] | None = None,
        insights: DocumentInsights | None = None,
        chat_answer: str = "The budget was approved.",
        transcription: str = "",
        fail: bool = False,
    ):
        self.enabled = enabled
        self.summary = summary
        self.keywords = keywords if keywords is not None else ["Budget Review", "project"]
        self.insights = insights
        self.chat_answer = chat_answer
        self.transcription = transcription
        self.fail = fail
        self.chat_calls: list[dict] = []

    def _check(self) -> None:
        if self.fail:
            raise AIServiceError("LLM unavailable")

    async def generate_summary(self, text: str) -> str:
        self._check()
        return self.summary

    async def extract_keywords(self, text: str) -> list[str]:
        self._check()
        return list(self.keywords)

    async def analyze_structured_data(self, text: str) -> DocumentInsights | None:
        self._check()
        return self.insights

    async def generate_chat_response(self, document_text, question, history) -> str:
        self.chat_calls.append(
            {"document_text": document_text, "question": question, "history": history}
        )
        self._check()
        return self.chat_answer

    async def transcribe_page(self, image) -> str:
        self._check()
        return self.transcription


@pytest.fixture(autouse=True)
def fresh_database() -> Generator[None, None, None]:
    """Create all tables for a test and drop them afterwards."""
    Base.metadata.create_all(bind=engine)
    set_ai_service(AIService(provider="openai", api_key="", model="gpt-4o"))
    yield
    set_ai_service(None)
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client() -> Generator[TestClient, None, None]:
    """Create a test client for the FastAPI application."""
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """A database session for arranging and inspecting rows."""
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make_pdf():
    """Factory building text PDFs: make_pdf("page one", "page two")."""
    return build_pdf


@pytest.fixture
def sample_pdf_bytes() -> bytes:
    """A two-page PDF with prose, contact details and a pipe table."""
    return build_pdf(SAMPLE_PAGE_ONE, SAMPLE_PAGE_TWO)


@pytest.fixture
def invalid_file_bytes() -> bytes:
    """Create invalid (non-PDF) file bytes for testing."""
    return b"This is not a PDF file"


@pytest.fixture
def fake_ai() -> FakeAIService:
    return FakeAIService()


@pytest.fixture
def make_fake_ai():
    """Factory for fake AI services with custom answers or failures."""
    return FakeAIService
