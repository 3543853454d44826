"""Shared pytest fixtures for Tandem tests.

Tests run against a throw-away SQLite file per test (via aiosqlite) and an
in-memory message store standing in for MongoDB.
"""
import itertools
import os
import tempfile
import uuid
from datetime import datetime, timezone

# Settings are read at import time by app.database / app.main.
_TMP_DIR = tempfile.mkdtemp(prefix="tandem-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TMP_DIR}/import.db"
os.environ["ENVIRONMENT"] = "test"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["STORAGE_TIMEOUT_SECONDS"] = "20"
os.environ["AVATAR_STORAGE_DIR"] = f"{_TMP_DIR}/avatars"
os.environ["GCS_BUCKET_NAME"] = ""

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import NullPool  # noqa: E402

import app.models  # noqa: E402,F401
from app.database import Base  # noqa: E402
from app.exceptions import StorageUnavailable  # noqa: E402
from app.models.user import User  # noqa: E402
from app.schemas.chat import MessageResponse  # noqa: E402
from app.services.auth_service import hash_password  # noqa: E402

TEST_PASSWORD = "password123"
_TEST_PASSWORD_HASH = hash_password(TEST_PASSWORD)


# ── Database ──────────────────────────────────────────────────────────────


@pytest_asyncio.fixture
async def engine(tmp_path):
    """Fresh SQLite database per test; one connection per session."""
    eng = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'tandem.db'}",
        poolclass=NullPool,
        connect_args={"timeout": 30},
    )
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def make_user(session_factory):
    """Factory inserting a committed user and returning it (detached)."""
    counter = itertools.count()

    async def _make(name: str | None = None, email: str | None = None) -> User:
        n = next(counter)
        async with session_factory() as session:
            user = User(
                email=email or f"user{n}-{uuid.uuid4().hex[:6]}@example.com",
                password_hash=_TEST_PASSWORD_HASH,
                name=name or f"User {n}",
            )
            session.add(user)
            await session.commit()
            return user

    return _make


# ── Message store double ──────────────────────────────────────────────────


class InMemoryMessageStore:
    """Same interface as ``MessageStore``; keeps documents in a list."""

    def __init__(self) -> None:
        self.messages: list[MessageResponse] = []
        self.fail = False
        self._ids = itertools.count(1)

    async def ensure_indexes(self) -> None:
        return None

    async def append(self, match_id, sender_id, receiver_id, content) -> MessageResponse:
        if self.fail:
            raise StorageUnavailable("message_insert failed")
        message = MessageResponse(
            id=f"{next(self._ids):024x}",
            match_id=match_id,
            sender_id=sender_id,
            receiver_id=receiver_id,
            content=content,
            created_at=datetime.now(timezone.utc),
        )
        self.messages.append(message)
        return message

    async def list_for_match(self, match_id) -> list[MessageResponse]:
        if self.fail:
            raise StorageUnavailable("message_list failed")
        return [m for m in self.messages if m.match_id == match_id]


@pytest.fixture
def message_store():
    return InMemoryMessageStore()


@pytest.fixture
def sample_user_id():
    return str(uuid.uuid4())


@pytest.fixture
def sample_user_id_b():
    return str(uuid.uuid4())
