import asyncio

import fitz
import pytest

from app.database import DocumentStore
from app.models import IMPORTS, ImportRecord, ImportStatus
from app.services.aggregator import ContentAggregator
from app.services.extractor import ContentExtractor
from app.services.pipeline import CourseGenerationPipeline
from app.services.synthesizer import CourseSynthesizer
from app.services.writer import CourseWriter


# ------------------------------------------------------------------
# Builders
# ------------------------------------------------------------------


def make_pdf(text: str) -> bytes:
    doc = fitz.open()
    page = doc.new_page()
    page.insert_text((72, 72), text)
    data = doc.tobytes()
    doc.close()
    return data


def make_quiz(n: int) -> dict:
    choices = [f"Answer {n}.{i}" for i in range(4)]
    return {"question": f"Question {n}?", "choices": choices, "correct_answer": choices[1]}


def make_course_payload(categories: int = 3, title: str = "General New Hire Onboarding") -> dict:
    return {
        "course_title": title,
        "categories": [
            {
                "category_title": f"Category {c}",
                "quizzes": [make_quiz(c * 10 + q) for q in range(5)],
            }
            for c in range(categories)
        ],
    }


async def add_import(
    store: DocumentStore,
    record_id: str,
    *,
    mime_type: str = "application/pdf",
    file_name: str | None = None,
    status: str = ImportStatus.PENDING_AI.value,
    user_id: str = "user-1",
    timestamp: str = "2025-01-01T00:00:00+00:00",
    source: str = "google_drive",
) -> ImportRecord:
    record = ImportRecord(
        id=record_id,
        file_id=record_id,
        file_name=file_name or f"{record_id}.pdf",
        mime_type=mime_type,
        owner_user_id=user_id,
        access_token="stale-token",
        status=status,
        timestamp=timestamp,
        source=source,
    )
    await store.set(IMPORTS, record_id, record.to_doc())
    return record


# ------------------------------------------------------------------
# Fakes for the external services
# ------------------------------------------------------------------


class FakeDrive:
    """Stands in for DriveClient; records which tokens were used."""

    def __init__(self, files: dict | None = None, exports: dict | None = None) -> None:
        self.files = files or {}
        self.exports = exports or {}
        self.tokens: list[str] = []
        self.downloads: list[str] = []

    def factory(self, access_token: str) -> "FakeDrive":
        self.tokens.append(access_token)
        return self

    def download(self, file_id: str) -> bytes:
        self.downloads.append(file_id)
        if file_id not in self.files:
            raise RuntimeError(f"File not found: {file_id}")
        return self.files[file_id]

    def export_text(self, file_id: str) -> bytes:
        if file_id not in self.exports:
            raise RuntimeError(f"Export not available: {file_id}")
        return self.exports[file_id]


class FakeNotion:
    def __init__(self, pages: dict | None = None) -> None:
        self.pages = pages or {}

    async def page_text(self, page_id: str) -> str:
        return self.pages[page_id]


class FakeRefresher:
    def __init__(self, token: str | None = "fresh-token") -> None:
        self.token = token
        self.calls: list[tuple[str, str]] = []

    async def refresh(self, user_id: str, refresh_token: str) -> str | None:
        self.calls.append((user_id, refresh_token))
        return self.token


class FakeGroq:
    def __init__(self, payload=None, error: Exception | None = None) -> None:
        self.payload = payload
        self.error = error
        self.calls: list[dict] = []

    async def chat_json(self, messages, response_schema, **kwargs):
        self.calls.append({"messages": messages, "schema": response_schema, **kwargs})
        if self.error is not None:
            raise self.error
        return self.payload


# ------------------------------------------------------------------
# Fixtures
# ------------------------------------------------------------------


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "test.db")


@pytest.fixture
async def store(db_path):
    store = DocumentStore(db_path)
    await store.init()
    return store


@pytest.fixture
def sync_store(db_path):
    """Store for synchronous TestClient tests."""
    store = DocumentStore(db_path)
    asyncio.run(store.init())
    return store


@pytest.fixture
def drive():
    return FakeDrive()


@pytest.fixture
def refresher():
    return FakeRefresher()


@pytest.fixture
def groq():
    return FakeGroq(payload=make_course_payload())


def build_test_pipeline(store, drive, refresher, groq, notion=None) -> CourseGenerationPipeline:
    extractor = ContentExtractor(drive_factory=drive.factory, notion=notion)
    aggregator = ContentAggregator(store, extractor, refresher)
    return CourseGenerationPipeline(
        aggregator, CourseSynthesizer(groq, temperature=0.2), CourseWriter(store)
    )
