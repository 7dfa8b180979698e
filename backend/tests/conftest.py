"""Pytest configuration and fixtures for Lykr tests.

Provides reusable fixtures for the database, authentication, wizard
snapshot storage and the external speech/voice-agent services.
"""

import asyncio
import os

# Must be set before lykr.config is imported
os.environ.setdefault("WIZARD_STORAGE_BACKEND", "memory")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("RESEND_API_KEY", "")
os.environ.setdefault("ELEVENLABS_API_KEY", "")
os.environ.setdefault("ELEVENLABS_AGENT_ID", "agent_test")

from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from lykr.auth.jwt import create_access_token
from lykr.auth.password import hash_password
from lykr.config import settings
from lykr.database import Base, get_db
from lykr.i18n import get_translator_for
from lykr.main import app
from lykr.models.user import User
from lykr.services.transcription import TranscriptionError, TranscriptionResult, get_transcriber
from lykr.services.voice_agent import get_voice_agent_client
from lykr.wizard.persistence import MemorySnapshotStorage, get_snapshot_storage

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"
TEST_PASSWORD = "Password123"


# ── Test Database Setup ──────────────────────────────────────────

@pytest_asyncio.fixture
async def test_engine():
    """In-memory SQLite shared by every connection of one test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(test_engine) -> AsyncGenerator[AsyncSession, None]:
    session_factory = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session


# ── Fakes for external services ──────────────────────────────────

class FakeTranscriber:
    """Records every call; returns `text` or raises when `fail` is set.

    `delay` holds each call open for that many seconds.
    """

    def __init__(self, text: str = "We help clinics book patients faster."):
        self.text = text
        self.fail = False
        self.delay = 0.0
        self.calls: list[tuple[bytes, str, str]] = []

    async def transcribe(self, audio: bytes, filename: str, content_type: str) -> TranscriptionResult:
        self.calls.append((audio, filename, content_type))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise TranscriptionError()
        return TranscriptionResult(
            text=self.text,
            segments=[{"id": 0, "start": 0.0, "end": 1.5, "text": self.text}],
            language="english",
            duration_in_seconds=1.5,
        )


class FakeVoiceClient:
    def __init__(self, configured: bool = True):
        self._configured = configured
        self.requested: list[str] = []

    @property
    def configured(self) -> bool:
        return self._configured

    async def get_signed_url(self, agent_id: str) -> str:
        self.requested.append(agent_id)
        return f"wss://api.elevenlabs.io/v1/convai/conversation?agent_id={agent_id}&token=signed"


@pytest.fixture
def snapshot_storage() -> MemorySnapshotStorage:
    return MemorySnapshotStorage()


@pytest.fixture
def fake_transcriber() -> FakeTranscriber:
    return FakeTranscriber()


@pytest.fixture
def fake_voice_client() -> FakeVoiceClient:
    return FakeVoiceClient()


@pytest.fixture
def override_services(snapshot_storage, fake_transcriber, fake_voice_client):
    """Swap storage and external clients for in-process fakes."""
    app.dependency_overrides[get_snapshot_storage] = lambda: snapshot_storage
    app.dependency_overrides[get_transcriber] = lambda: fake_transcriber
    app.dependency_overrides[get_voice_agent_client] = lambda: fake_voice_client
    yield
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def client(db_session, override_services) -> AsyncGenerator[AsyncClient, None]:
    """Test client with overridden database dependency, English messages."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        cookies={settings.locale_cookie_name: "en"},
    ) as client:
        yield client

    app.dependency_overrides.clear()


# ── Test Data Fixtures ───────────────────────────────────────────

@pytest.fixture
def t_en():
    return get_translator_for("en")


@pytest.fixture
def test_password() -> str:
    return TEST_PASSWORD


@pytest_asyncio.fixture
async def test_user(db_session: AsyncSession) -> User:
    user = User(
        name="Test User",
        email="test@example.com",
        hashed_password=hash_password(TEST_PASSWORD),
    )
    db_session.add(user)
    await db_session.flush()
    await db_session.refresh(user)
    return user


@pytest.fixture
def test_token(test_user: User) -> str:
    return create_access_token(user_id=test_user.id, email=test_user.email, name=test_user.name)


@pytest.fixture
def auth_headers(test_token: str) -> dict:
    return {"Authorization": f"Bearer {test_token}"}


# ── Test Markers ─────────────────────────────────────────────────

def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "api: HTTP API tests")
    config.addinivalue_line("markers", "auth: Authentication tests")
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "slow: Slow tests")
