"""
Root conftest.py — Shared fixtures for ALL tests (unit + integration)

Fixture hierarchy (all function-scoped):
  test_settings       : Settings pointing uploads/artifacts at tmp_path
  content_store       : InMemoryContentStore (dict-backed ContentStore fake)
  artifact_store      : InMemoryArtifactStore (dict-backed ArtifactStore fake)
  metrics             : fresh PipelineMetrics
  make_backends       : factory → PipelineBackends built from AsyncMock backends
  make_pipeline       : factory → ProcessingPipeline over the fakes above
  make_item           : factory → persisted pending ContentItem
  write_upload        : factory → transient upload file on disk
  container / async_client : FastAPI app wired to the fakes (no DB, no OpenAI)

Environment strategy:
  - No test talks to PostgreSQL, S3 or OpenAI.
  - The SQLAlchemy store is exercised against in-memory SQLite (aiosqlite).
  - Pipeline backends are AsyncMocks; their behaviour is set per test.

How to run:
  pytest                              # all tests
  pytest -m unit                      # unit tests only (fast, no I/O)
  pytest -m integration               # API tests through httpx ASGITransport
  pytest backend/tests/unit/test_pipeline.py
"""

from __future__ import annotations

import itertools
import os
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, AsyncGenerator, Iterable
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# ─────────────────────────────────────────────────────────────────────────────
# Patch settings BEFORE any app imports so modules read test config
# ─────────────────────────────────────────────────────────────────────────────

os.environ.setdefault("DATABASE_URL",     "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("OPENAI_API_KEY",   "sk-test-key")
os.environ.setdefault("ARTIFACT_BACKEND", "local")
os.environ.setdefault("APP_ENV",          "development")
os.environ.setdefault("DEBUG",            "false")

from app.core.config import Settings                                   # noqa: E402
from app.generation.base import (                                      # noqa: E402
    QuizGenerator,
    QuizResult,
    SpeechSynthesizer,
    Summarizer,
)
from app.observability.metrics import PipelineMetrics                  # noqa: E402
from app.processing.base import (                                      # noqa: E402
    DocumentTextExtractor,
    ImageTextExtractor,
    VideoTextExtractor,
)
from app.processing.video import UnavailableVideoExtractor             # noqa: E402
from app.schemas.content import (                                      # noqa: E402
    ContentItem,
    ContentType,
    NewContentItem,
    ProcessingOptions,
    ProcessingStatus,
    QuizItem,
)
from app.services.backends import PipelineBackends                     # noqa: E402
from app.services.pipeline import ProcessingPipeline                   # noqa: E402
from app.storage.base import ArtifactStore, ContentStore, check_mutable  # noqa: E402


# ─────────────────────────────────────────────────────────────────────────────
# In-memory store fakes
# ─────────────────────────────────────────────────────────────────────────────

class InMemoryContentStore(ContentStore):
    """Dict-backed ContentStore with the same contract as the SQL store."""

    def __init__(self) -> None:
        self.items: dict[str, ContentItem] = {}
        self._seq = itertools.count()
        self._order: dict[str, int] = {}

    async def create(self, item: NewContentItem) -> ContentItem:
        now = datetime.now(timezone.utc)
        record = ContentItem(
            id=str(uuid.uuid4()),
            owner_id=item.owner_id,
            title=item.title,
            content_type=item.content_type,
            source_file_name=item.source_file_name,
            source_url=item.source_url,
            status=ProcessingStatus.PENDING,
            processing_options=item.processing_options,
            created_at=now,
            updated_at=now,
        )
        self.items[record.id] = record
        self._order[record.id] = next(self._seq)
        return record

    async def get(self, content_id: str) -> ContentItem | None:
        return self.items.get(content_id)

    async def update(self, content_id: str, **changes: Any) -> ContentItem | None:
        check_mutable(changes)
        current = self.items.get(content_id)
        if current is None:
            return None
        updated = current.model_copy(
            update={**changes, "updated_at": datetime.now(timezone.utc)}
        )
        self.items[content_id] = updated
        return updated

    async def list_by_owner(self, owner_id: str) -> list[ContentItem]:
        owned = [i for i in self.items.values() if i.owner_id == owner_id]
        return sorted(owned, key=lambda i: self._order[i.id], reverse=True)

    async def delete(self, content_id: str) -> bool:
        self._order.pop(content_id, None)
        return self.items.pop(content_id, None) is not None

    async def list_stale(
        self,
        statuses: Iterable[ProcessingStatus],
        updated_before: datetime,
    ) -> list[ContentItem]:
        wanted = set(statuses)
        return [
            i for i in self.items.values()
            if i.status in wanted and i.updated_at < updated_before
        ]


class InMemoryArtifactStore(ArtifactStore):

    def __init__(self) -> None:
        self.objects: dict[str, tuple[bytes, str]] = {}

    async def save(self, key: str, data: bytes, content_type: str) -> str:
        self.objects[key] = (data, content_type)
        return key

    async def read(self, key: str) -> bytes:
        if key not in self.objects:
            raise FileNotFoundError(key)
        return self.objects[key][0]

    async def exists(self, key: str) -> bool:
        return key in self.objects

    async def delete(self, key: str) -> bool:
        return self.objects.pop(key, None) is not None


# ─────────────────────────────────────────────────────────────────────────────
# Settings, stores, metrics
# ─────────────────────────────────────────────────────────────────────────────

@pytest.fixture
def test_settings(tmp_path: Path) -> Settings:
    return Settings(
        _env_file=None,
        database_url="sqlite+aiosqlite:///:memory:",
        upload_dir=str(tmp_path / "uploads"),
        artifact_dir=str(tmp_path / "artifacts"),
        artifact_backend="local",
        openai_api_key="sk-test-key",
        default_owner_id="test-owner",
        max_upload_bytes=1024 * 1024,
    )


@pytest.fixture
def content_store() -> InMemoryContentStore:
    return InMemoryContentStore()


@pytest.fixture
def artifact_store() -> InMemoryArtifactStore:
    return InMemoryArtifactStore()


@pytest.fixture
def metrics() -> PipelineMetrics:
    return PipelineMetrics()


# ─────────────────────────────────────────────────────────────────────────────
# Backend mocks
# ─────────────────────────────────────────────────────────────────────────────

SAMPLE_QUIZ = QuizResult(
    questions=(
        QuizItem(
            question_text="What does the document greet?",
            option_texts=["The world", "The moon", "Nobody"],
            correct_option_index=0,
        ),
    ),
)


def _async(value: Any) -> AsyncMock:
    """AsyncMock that raises `value` if it is an exception, else returns it."""
    if isinstance(value, BaseException):
        return AsyncMock(side_effect=value)
    return AsyncMock(return_value=value)


def _mock_backend(spec: type, method: str, value: Any) -> MagicMock:
    backend = MagicMock(spec=spec)
    setattr(backend, method, _async(value))
    return backend


@pytest.fixture
def make_backends():
    """
    Factory fixture: PipelineBackends whose every call is an AsyncMock.

    Usage:
        backends = make_backends()                                   # all succeed
        backends = make_backends(summary=GenerationError("Failed to generate summary: boom"))
        backends = make_backends(pdf_text="   ")                     # blank extraction
    """
    def _build(
        pdf_text:   Any = "Hello world.",
        docx_text:  Any = "Paragraph one.\nParagraph two.",
        image_text: Any = "A diagram of the water cycle.",
        video:      VideoTextExtractor | None = None,
        summary:    Any = "A short summary of the content.",
        audio:      Any = b"ID3-fake-mp3-bytes",
        quiz:       Any = SAMPLE_QUIZ,
    ) -> PipelineBackends:
        pdf = _mock_backend(DocumentTextExtractor, "extract", pdf_text)
        pdf.format_name = "pdf"
        docx = _mock_backend(DocumentTextExtractor, "extract", docx_text)
        docx.format_name = "docx"
        return PipelineBackends(
            documents={".pdf": pdf, ".docx": docx},
            image=_mock_backend(ImageTextExtractor, "extract", image_text),
            video=video or UnavailableVideoExtractor(),
            summarizer=_mock_backend(Summarizer, "summarize", summary),
            speech=_mock_backend(SpeechSynthesizer, "synthesize", audio),
            quiz=_mock_backend(QuizGenerator, "generate", quiz),
        )
    return _build


@pytest.fixture
def make_pipeline(make_backends, content_store, artifact_store, metrics):
    def _build(backends: PipelineBackends | None = None, **backend_overrides) -> ProcessingPipeline:
        return ProcessingPipeline(
            backends or make_backends(**backend_overrides),
            content_store,
            artifact_store,
            metrics,
        )
    return _build


# ─────────────────────────────────────────────────────────────────────────────
# Content items and uploads
# ─────────────────────────────────────────────────────────────────────────────

@pytest.fixture
def make_item(content_store):
    """
    Factory fixture: persist a pending item in the in-memory store.

    Usage:
        item = await make_item("lesson.pdf", generate_audio=False)
        item = await make_item(url="https://videos.example.com/v/1", content_type=ContentType.VIDEO)
    """
    async def _build(
        file_name:    str | None = "lesson.pdf",
        *,
        url:          str | None = None,
        content_type: ContentType = ContentType.DOCUMENT,
        owner_id:     str = "test-owner",
        **options:    Any,
    ) -> ContentItem:
        if content_type is ContentType.VIDEO:
            file_name = None
        return await content_store.create(
            NewContentItem(
                owner_id=owner_id,
                title=file_name or url or "untitled",
                content_type=content_type,
                source_file_name=file_name,
                source_url=url,
                processing_options=ProcessingOptions(**options),
            )
        )
    return _build


@pytest.fixture
def write_upload(tmp_path: Path):
    """Factory fixture: write bytes to a transient upload file, return its path."""
    def _write(data: bytes = b"%PDF-1.4 test", name: str | None = None) -> str:
        upload_dir = tmp_path / "uploads"
        upload_dir.mkdir(parents=True, exist_ok=True)
        path = upload_dir / (name or f"{uuid.uuid4().hex}.bin")
        path.write_bytes(data)
        return str(path)
    return _write


# ─────────────────────────────────────────────────────────────────────────────
# FastAPI app wired to the fakes
# ─────────────────────────────────────────────────────────────────────────────

@pytest.fixture
def container(test_settings, content_store, artifact_store, make_backends):
    from app.core.dependencies import assemble_container
    return assemble_container(test_settings, content_store, artifact_store, make_backends())


@pytest_asyncio.fixture
async def async_client(container) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP test client over a fresh app instance.

    httpx >= 0.28 removed the 'app=' shortcut; use ASGITransport explicitly.
    """
    from app.main import create_app

    app = create_app(container)
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    await container.runner.drain(timeout=5)
