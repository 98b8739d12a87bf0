import os

# Configure settings before any taskflow module builds its engine or signer
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-testing-only-do-not-use-in-production")
os.environ.setdefault("DEV_MODE", "true")

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlmodel import select  # noqa: E402
from sqlmodel.ext.asyncio.session import AsyncSession  # noqa: E402

import taskflow.models  # noqa: E402,F401  registers tables
from taskflow.config import Settings  # noqa: E402
from taskflow.core.access_tokens import AccessTokenSigner  # noqa: E402
from taskflow.core.security import get_password_hash  # noqa: E402
from taskflow.database import build_engine, init_db, transaction  # noqa: E402
from taskflow.models.token import AuthToken  # noqa: E402
from taskflow.repositories.user_repo import UserRepository  # noqa: E402
from taskflow.services.session_service import SessionService  # noqa: E402

TEST_PASSWORD = "correct-horse-battery"


@pytest_asyncio.fixture
async def engine(tmp_path):
    """File-backed SQLite database, fresh for every test."""
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'taskflow.db'}")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def test_settings():
    return Settings(
        SECRET_KEY="Test-Secret-Key_for-Automation-Only-987654321!",
        ACCESS_TOKEN_EXPIRE_SECONDS=900,
        REFRESH_TOKEN_EXPIRE_DAYS=7,
        PASSWORD_RESET_TOKEN_EXPIRE_MINUTES=60,
        DEV_MODE=True,
    )


@pytest.fixture
def signer(test_settings):
    return AccessTokenSigner.from_settings(test_settings)


@pytest.fixture
def session_service(session, test_settings, signer):
    return SessionService(session, settings=test_settings, signer=signer)


async def _create_user(session_factory, email: str):
    async with session_factory() as session:
        async with transaction(session):
            return await UserRepository(session).create_user(
                email=email,
                password_hash=get_password_hash(TEST_PASSWORD),
                name=email.split("@")[0]
            )


@pytest_asyncio.fixture
async def user(session_factory):
    return await _create_user(session_factory, "alice@example.com")


@pytest_asyncio.fixture
async def other_user(session_factory):
    return await _create_user(session_factory, "bob@example.com")


@pytest.fixture
def stored_tokens(session_factory):
    """Read every stored token through a separate, short-lived session."""
    async def _read():
        async with session_factory() as session:
            result = await session.exec(select(AuthToken))
            return result.all()
    return _read
