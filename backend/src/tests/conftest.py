"""
Root test configuration and fixtures.

Provides database, session token and app fixtures shared by the unit and
integration tests.
"""

import os
import uuid
from datetime import datetime, timedelta, timezone
from typing import Generator

import jwt
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

# Set test environment
os.environ.setdefault("ENV", "test")

TEST_JWT_SECRET = "test-jwt-secret-with-enough-length-for-hs256"
TEST_ENCRYPTION_KEY = "test-encryption-key-32-chars-long!"
TEST_APP_URL = "https://app.syncboard.test"


@pytest.fixture(scope="session", autouse=True)
def _httpx_app_kwarg_patch():
    """
    Compatibility patch for httpx>=0.28 where Client(app=...) is not supported.

    Starlette's TestClient (used by FastAPI) passes app= into httpx.Client.
    This patch removes the app kwarg to avoid TypeError in environments
    with newer httpx while remaining safe for older versions.
    """
    import httpx

    original_init = httpx.Client.__init__

    def patched_init(self, *args, **kwargs):
        kwargs.pop("app", None)
        return original_init(self, *args, **kwargs)

    httpx.Client.__init__ = patched_init
    try:
        yield
    finally:
        httpx.Client.__init__ = original_init


@pytest.fixture(autouse=True)
def test_env(monkeypatch, tmp_path):
    """
    Deterministic environment for every test.

    Airbyte credentials are removed so clients run in mock mode unless a
    test configures them, and connector definitions are read from an
    empty temporary directory.
    """
    from src.integrations.airbyte.client import invalidate_token_cache

    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("AUTH_JWT_SECRET", TEST_JWT_SECRET)
    monkeypatch.setenv("ENCRYPTION_KEY", TEST_ENCRYPTION_KEY)
    monkeypatch.setenv("APP_URL", TEST_APP_URL)
    monkeypatch.setenv("AIRBYTE_DEFINITIONS_DIR", str(tmp_path / "airbyte_definitions"))
    for name in (
        "AIRBYTE_CLIENT_ID",
        "AIRBYTE_CLIENT_SECRET",
        "AIRBYTE_API_URL",
        "SUPABASE_URL",
        "SUPABASE_DB_PASSWORD",
        "AUTH_JWT_AUDIENCE",
        "AUTH_COOKIE_NAME",
    ):
        monkeypatch.delenv(name, raising=False)

    invalidate_token_cache()
    yield
    invalidate_token_cache()


@pytest.fixture
def db_engine():
    """In-memory SQLite engine with every Syncboard table created."""
    from src.db_base import Base
    import src.models  # noqa: F401

    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)

    yield engine

    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db_session(db_engine) -> Generator[Session, None, None]:
    """Database session on the per-test engine."""
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = SessionLocal()
    yield session
    session.close()


# =============================================================================
# Session tokens and factories
# =============================================================================


@pytest.fixture
def make_session_token():
    """
    Factory for signed session JWTs.

    Usage:
        token = make_session_token("user-1", email="ana@example.com")
    """
    def _make(user_id: str, email: str = None, expires_in: int = 3600, **claims) -> str:
        payload = {
            "sub": user_id,
            "aud": "authenticated",
            "exp": datetime.now(timezone.utc) + timedelta(seconds=expires_in),
            **claims,
        }
        if email:
            payload["email"] = email
        return jwt.encode(payload, TEST_JWT_SECRET, algorithm="HS256")
    return _make


@pytest.fixture
def user_id() -> str:
    return f"user-{uuid.uuid4().hex[:8]}"


@pytest.fixture
def session_ctx(user_id):
    from src.platform.session_context import SessionContext
    return SessionContext(user_id=user_id, email="owner@example.com")


@pytest.fixture
def auth_headers(make_session_token, user_id) -> dict:
    return {"Authorization": f"Bearer {make_session_token(user_id, email='owner@example.com')}"}


@pytest.fixture
def make_project(db_session):
    """Factory that stores a project for a user and returns it."""
    from src.models.project import Project

    def _make(owner_id: str, name: str = "Test Project"):
        project = Project(id=str(uuid.uuid4()), name=name, user_id=owner_id)
        db_session.add(project)
        db_session.commit()
        db_session.refresh(project)
        return project
    return _make


@pytest.fixture
def project(make_project, user_id):
    return make_project(user_id)


# =============================================================================
# Application
# =============================================================================


@pytest.fixture
def test_app(db_session):
    """FastAPI app with the database dependency bound to the test session."""
    from main import app
    from src.database.session import get_db_session

    def override_get_db_session():
        yield db_session

    app.dependency_overrides[get_db_session] = override_get_db_session

    yield app

    app.dependency_overrides.clear()


@pytest.fixture
def client(test_app):
    from fastapi.testclient import TestClient
    return TestClient(test_app)


# =============================================================================
# Markers
# =============================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "security: mark test as security-focused")
    config.addinivalue_line("markers", "slow: mark test as slow-running")
