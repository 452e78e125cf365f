"""
VoiceGrade Backend - Test Configuration (conftest.py)
=======================================================

What:  Shared pytest fixtures for the whole suite.
How:   Environment is pointed at throwaway locations BEFORE voicegrade is
       imported, since settings and the engine are created at import time.

Fixture Hierarchy:
    Function-scoped:
    ├── mock_db_session: AsyncMock session (no database)
    ├── db_engine / db_session: in-memory sqlite with all tables created
    ├── temp_storage: per-test storage directory
    ├── sample_audio_bytes: 4KB of fake webm
    ├── fake_provider: builds an OpenAIService on an httpx.MockTransport
    ├── app: fresh FastAPI app on the sqlite engine
    └── test_client: httpx AsyncClient over ASGITransport
"""

import os
import tempfile

# ══════════════════════════════════════════════════════════════════════════
# Environment Setup
# ══════════════════════════════════════════════════════════════════════════

os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["OPENAI_API_KEY"] = "test-key-not-real"
os.environ["OPENAI_BASE_URL"] = "https://upstream.test/v1"
os.environ["STORAGE_ROOT"] = tempfile.mkdtemp(prefix="voicegrade_test_")
os.environ["LOG_LEVEL"] = "WARNING"

from typing import Callable, List, Optional  # noqa: E402
from unittest.mock import AsyncMock, MagicMock  # noqa: E402

import httpx  # noqa: E402
import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from voicegrade.database import Base, get_db_session  # noqa: E402
from voicegrade.models import AudioBlob, Transcription, UploadTarget  # noqa: E402,F401
from voicegrade.services.openai_service import OpenAIService  # noqa: E402


UPSTREAM_BASE = "https://upstream.test/v1"


# ══════════════════════════════════════════════════════════════════════════
# Database Fixtures
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def mock_db_session():
    """
    AsyncMock standing in for AsyncSession.

    Usage:
        mock_db_session.execute.return_value.scalar_one_or_none.return_value = row
    """
    session = AsyncMock()
    session.execute = AsyncMock()
    session.flush = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.close = AsyncMock()
    session.add = MagicMock()
    return session


@pytest_asyncio.fixture
async def db_engine():
    """In-memory sqlite shared by every connection of one test (StaticPool)."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(db_engine):
    factory = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        yield session


# ══════════════════════════════════════════════════════════════════════════
# Storage & Audio Fixtures
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def temp_storage(tmp_path):
    storage_dir = tmp_path / "storage"
    storage_dir.mkdir()
    return str(storage_dir)


@pytest.fixture
def sample_audio_bytes():
    """EBML magic followed by padding; comfortably above MIN_AUDIO_BYTES."""
    return b"\x1a\x45\xdf\xa3" + b"\x00" * 4092


# ══════════════════════════════════════════════════════════════════════════
# Upstream Provider Fixtures
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def fake_provider() -> Callable[..., OpenAIService]:
    """
    Factory for an OpenAIService whose HTTP calls hit canned replies.

    Usage:
        provider = fake_provider(transcript="Hi", grading_content='{"score": 9}')
        provider.requests  → list of httpx.Request seen by the transport
    """

    def build(
        transcript: str = "The cat is happy",
        grading_content: Optional[str] = '{"score": 9, "feedback": "Clear and correct.", "issues": []}',
        transcription_status: int = 200,
        grading_status: int = 200,
        models_status: int = 200,
    ) -> OpenAIService:
        requests: List[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            path = request.url.path
            if path.endswith("/audio/transcriptions"):
                if transcription_status >= 300:
                    return httpx.Response(transcription_status, text="transcription upstream failure")
                return httpx.Response(200, json={"text": transcript})
            if path.endswith("/chat/completions"):
                if grading_status >= 300:
                    return httpx.Response(grading_status, text="grading upstream failure")
                return httpx.Response(
                    200,
                    json={"choices": [{"message": {"role": "assistant", "content": grading_content}}]},
                )
            if path.endswith("/models"):
                return httpx.Response(models_status, json={"data": []})
            return httpx.Response(404)

        provider = OpenAIService(
            api_key="test-key-not-real",
            base_url=UPSTREAM_BASE,
            transport=httpx.MockTransport(handler),
        )
        provider.requests = requests
        return provider

    return build


# ══════════════════════════════════════════════════════════════════════════
# App & API Client Fixtures
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def app(db_engine):
    """
    A fresh FastAPI app whose sessions come from the test's sqlite engine.

    Each app gets its own rate limiter state. Sessions commit and roll back
    like get_db_session does.
    """
    from voicegrade.main import create_app

    factory = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)

    async def override_db_session():
        async with factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    application = create_app()
    application.dependency_overrides[get_db_session] = override_db_session
    return application


@pytest_asyncio.fixture
async def test_client(app):
    """httpx AsyncClient talking to the app over ASGITransport."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
