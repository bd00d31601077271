"""Pytest configuration and fixtures."""

import os
from collections.abc import AsyncGenerator, Awaitable, Callable
from datetime import UTC, datetime, timedelta
from typing import Any

# Set test environment before importing app
os.environ["ENVIRONMENT"] = "test"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["REGISTRATION_MODE"] = "email"

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

from sudu.database import get_session
from sudu.main import app
from sudu.models import User
from sudu.services.email import ConsoleEmailBackend, EmailService
from sudu.services.notifications import NotificationChannel, get_notification_channel
from sudu.services.security import hash_password
from sudu.services.store import CredentialStore
from sudu.services.telegram import TelegramClient

TEST_PASSWORD = "secret123"


class RecordingChannel(NotificationChannel):
    """Notification channel that records messages instead of delivering them."""

    def __init__(self) -> None:
        super().__init__(
            email=EmailService(backend=ConsoleEmailBackend()),
            telegram=TelegramClient("test-token"),
        )
        self.emails: list[dict[str, str | None]] = []
        self.telegrams: list[dict[str, Any]] = []
        self.fail_email = False
        self.fail_telegram = False

    async def send_email(
        self, to: str, subject: str, html: str, text: str | None = None
    ) -> bool:
        if self.fail_email:
            return False
        self.emails.append({"to": to, "subject": subject, "html": html, "text": text})
        return True

    async def send_telegram(self, chat_id: int, text: str) -> bool:
        if self.fail_telegram:
            return False
        self.telegrams.append({"chat_id": chat_id, "text": text})
        return True


class FrozenClock:
    """Callable clock for the protocols; time moves only when advanced."""

    def __init__(self, now: datetime | None = None) -> None:
        self.now = now or datetime.now(UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


@pytest_asyncio.fixture
async def test_engine() -> AsyncGenerator[AsyncEngine, None]:
    """Fresh in-memory SQLite database per test."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture
async def session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def store(session: AsyncSession) -> CredentialStore:
    return CredentialStore(session)


@pytest.fixture
def channel() -> RecordingChannel:
    return RecordingChannel()


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
async def client(
    session: AsyncSession, channel: RecordingChannel
) -> AsyncGenerator[AsyncClient, None]:
    """Create a test HTTP client."""

    async def override_get_session():
        yield session

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_notification_channel] = lambda: channel

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def make_user(store: CredentialStore) -> Callable[..., Awaitable[User]]:
    """Factory creating committed users."""

    async def _make_user(
        email: str = "test@example.com",
        name: str = "Test User",
        password: str = TEST_PASSWORD,
        verified: bool = True,
        telegram_chat_id: int | None = None,
        verification_token: str | None = None,
    ) -> User:
        async with store.transaction():
            user = await store.add_user(
                name=name,
                email=email,
                password_hash=hash_password(password),
                verification_token=verification_token,
                telegram_chat_id=telegram_chat_id,
            )
            user.email_verified = verified
        return user

    return _make_user


@pytest.fixture
async def user(make_user) -> User:
    """Create a verified test user without Telegram."""
    return await make_user()


@pytest.fixture
async def linked_user(make_user) -> User:
    """Create a verified test user bound to Telegram chat 1001."""
    return await make_user(email="linked@example.com", name="Linked User", telegram_chat_id=1001)
