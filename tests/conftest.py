"""
Pytest fixtures for the test suite.

Data-layer tests use an in-memory SQLite engine and a session that rolls back
after each test, so tests do not affect each other. API tests reuse the same
session through a `get_db` override.
"""
from __future__ import annotations

from datetime import datetime, timedelta
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.db import filters as _filters  # noqa: F401  (register soft-delete filter)


TEST_DB_URL = "sqlite:///:memory:"
REPO_ROOT = Path(__file__).resolve().parents[1]


@pytest.fixture
def engine():
    """Create a fresh in-memory SQLite engine for each test."""
    return create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )


@pytest.fixture
def tables(engine):
    """Create all ORM tables on the test engine."""
    from app.db.base import Base
    import app.models.memorial  # noqa: F401
    import app.models.security  # noqa: F401

    Base.metadata.create_all(bind=engine)
    return engine


@pytest.fixture
def db_session(tables):
    """
    Provide a Session bound to the test DB; roll back after each test.

    The transaction is rolled back so the next test gets a clean state.
    """
    connection = tables.connect()
    transaction = connection.begin()
    TestSession = sessionmaker(
        bind=connection,
        autocommit=False,
        autoflush=False,
        class_=Session,
    )
    session = TestSession()
    yield session
    session.close()
    transaction.rollback()
    connection.close()


# ---- Factories ------------------------------------------------------------------------


@pytest.fixture
def make_user(db_session):
    from app.models.security import User

    def _make(email: str, name: str | None = None, is_active: bool = True, email_verified: bool = False) -> User:
        user = User(email=email, name=name, is_active=is_active, email_verified=email_verified)
        db_session.add(user)
        db_session.commit()
        return user

    return _make


@pytest.fixture
def make_memorial(db_session):
    from app.models.memorial import Memorial

    counter = {"n": 0}

    def _make(owner, is_public: bool = False, status: str = "active", slug: str | None = None) -> Memorial:
        counter["n"] += 1
        memorial = Memorial(
            slug=slug or f"memorial-{counter['n']}",
            title=f"Memorial {counter['n']}",
            full_name="Jane Doe",
            created_by=owner.id,
            is_public=is_public,
            status=status,
        )
        db_session.add(memorial)
        db_session.commit()
        return memorial

    return _make


@pytest.fixture
def add_collaborator(db_session):
    from app.models.memorial import MemorialCollaborator

    def _add(memorial, user, role: str = "contributor") -> MemorialCollaborator:
        row = MemorialCollaborator(memorial_id=memorial.id, user_id=user.id, role=role)
        db_session.add(row)
        db_session.commit()
        return row

    return _add


@pytest.fixture
def make_session_token(db_session):
    from app.models.security import UserSession

    def _make(user, token: str | None = None, expires_in: timedelta = timedelta(days=1)) -> str:
        token = token or f"token-{user.id}"
        db_session.add(UserSession(user_id=user.id, session_token=token, expires_at=datetime.utcnow() + expires_in))
        db_session.commit()
        return token

    return _make


@pytest.fixture
def owner(make_user):
    return make_user("owner@example.com", "Olive Owner")


@pytest.fixture
def visitor(make_user):
    return make_user("visitor@example.com", "Vic Visitor")


@pytest.fixture
def private_memorial(make_memorial, owner):
    return make_memorial(owner, is_public=False)


@pytest.fixture
def public_memorial(make_memorial, owner):
    return make_memorial(owner, is_public=True)


# ---- Engines / app --------------------------------------------------------------------


@pytest.fixture
def permission_engine():
    from app.permissions import PermissionEngine

    return PermissionEngine.from_yaml(REPO_ROOT / "config" / "permissions.yaml")


@pytest.fixture
def api_app(db_session, permission_engine):
    """App with startup state wired by hand and `get_db` bound to the test session."""
    from app.db.session import get_db
    from app.main import create_app
    from app.security.config import load_security_config
    from app.security.rate_limit import InMemoryRateLimiter

    app = create_app()
    app.state.security_config = load_security_config(REPO_ROOT / "config" / "security_config.yaml")
    app.state.permission_engine = permission_engine
    app.state.rate_limiter = InMemoryRateLimiter()

    def _get_db():
        yield db_session

    app.dependency_overrides[get_db] = _get_db
    return app


@pytest.fixture
def client(api_app):
    from fastapi.testclient import TestClient

    return TestClient(api_app)
