import os
import tempfile

# Settings are read at import time; configure the test environment first
_TEST_ROOT = tempfile.mkdtemp(prefix="backoffice-tests-")
os.environ.setdefault("SECRET_KEY", "test-secret-key-that-is-at-least-32-characters-long")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", f"sqlite+aiosqlite:///{_TEST_ROOT}/test_backoffice.db")
os.environ.setdefault("UPLOAD_DIR", os.path.join(_TEST_ROOT, "uploads"))
os.environ.setdefault("LOG_DIR", os.path.join(_TEST_ROOT, "logs"))
os.environ.setdefault("CSRF_ENABLED", "false")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("WHATSAPP_API_URL", "")

import pytest
from typing import AsyncGenerator, Generator
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import NullPool
from app.config import settings
from app.core.security import create_user_token
from app.database import Base, get_db
from app.models.submission import ServiceType
from app.models.user import UserRole
import app.models  # noqa: F401
from app.services.storage_service import LocalFileStorage
from app.services.submission_service import SubmissionService
from app.services.user_service import UserService

TEST_DATABASE_URL = settings.DATABASE_URL

test_engine = create_async_engine(
    TEST_DATABASE_URL,
    echo=False,
    poolclass=NullPool,
    connect_args={"check_same_thread": False},
)

TestSessionLocal = async_sessionmaker(
    test_engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)

TEST_PASSWORD = "correct-horse-battery"


@pytest.fixture(scope="function")
async def setup_database() -> AsyncGenerator[None, None]:
    """Create all tables for one test and drop them afterwards."""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture(scope="function")
async def db_session(setup_database) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async with TestSessionLocal() as session:
        yield session
        await session.rollback()


@pytest.fixture(scope="function")
def session_factory(setup_database) -> async_sessionmaker:
    """Factory for extra sessions, for tests that need concurrent transactions."""
    return TestSessionLocal


@pytest.fixture(scope="function")
def storage(tmp_path) -> LocalFileStorage:
    return LocalFileStorage(str(tmp_path / "uploads"))


@pytest.fixture(scope="function")
def client() -> Generator:
    """Create a sync test client (doesn't require db_session)."""
    from fastapi.testclient import TestClient
    from app.main import app

    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture(scope="function")
async def async_client(db_session: AsyncSession) -> AsyncGenerator:
    """Create an async test client with database session override."""
    from httpx import AsyncClient, ASGITransport
    from app.main import app

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
async def admin_user(db_session):
    return await UserService.create_user(
        db_session, email="admin@example.com", name="Admin User", password=TEST_PASSWORD, role=UserRole.ADMIN
    )


@pytest.fixture
async def agent_user(db_session):
    return await UserService.create_user(
        db_session, email="agent@example.com", name="Agent User", password=TEST_PASSWORD, role=UserRole.AGENT
    )


@pytest.fixture
async def viewer_user(db_session):
    return await UserService.create_user(
        db_session, email="viewer@example.com", name="Viewer User", password=TEST_PASSWORD, role=UserRole.VIEWER
    )


def auth_headers_for(user) -> dict:
    token = create_user_token(user)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_headers(admin_user) -> dict:
    return auth_headers_for(admin_user)


@pytest.fixture
def agent_headers(agent_user) -> dict:
    return auth_headers_for(agent_user)


@pytest.fixture
def viewer_headers(viewer_user) -> dict:
    return auth_headers_for(viewer_user)


@pytest.fixture
async def submission(db_session):
    """A fresh website submission in pending_validation."""
    return await SubmissionService.create_submission(
        db_session,
        name="Jane Doe",
        phone="0612345678",
        email="Jane@Example.com",
        service=ServiceType.WORK_VISA,
        message="I would like to work in Canada"
    )
