"""Shared fixtures: in-memory database, API client, one user per role.

No test talks to the LLM: the shared explanation service is replaced with
one whose client has no API key, so every explanation is fallback text.
"""
import os
import sys
sys.path.insert(0, os.path.dirname(__file__))

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import app.models  # noqa: F401 - register models
from ai.groq_client import GroqClient
from app.api.deps import get_db
from app.core.exceptions import UpstreamUnavailable
from app.core.rate_limiter import rate_limiter, public_rate_limiter
from app.core.security import create_access_token, get_password_hash
from app.db.base import Base
from app.db.session import enable_sqlite_foreign_keys
from app.main import app as fastapi_app
from app.models.enums import Role
from app.models.user import User
from app.services import explanation_service
from app.services.explanation_service import ExplanationService


class FakeLLM:
    """Stands in for GroqClient. Returns `reply`, or raises when reply is None."""

    def __init__(self, reply=None):
        self.reply = reply
        self.calls = []

    def is_available(self):
        return self.reply is not None

    def complete(self, messages, max_tokens=None, max_retries=None):
        self.calls.append(messages)
        if self.reply is None:
            raise UpstreamUnavailable("fake outage")
        return self.reply


@pytest.fixture(autouse=True)
def offline_explanations(monkeypatch):
    service = ExplanationService(client=GroqClient(api_key=""))
    monkeypatch.setattr(explanation_service, "_explanation_service", service)
    return service


@pytest.fixture(autouse=True)
def reset_rate_limits():
    rate_limiter.reset()
    public_rate_limiter.reset()
    yield


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(engine)
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def users(db):
    """One user per role plus a second manufacturer and a pending account."""
    created = {}
    specs = [
        ("manufacturer", Role.MANUFACTURER),
        ("manufacturer2", Role.MANUFACTURER),
        ("distributor", Role.DISTRIBUTOR),
        ("pharmacy", Role.PHARMACY),
        ("consumer", Role.CONSUMER),
        ("admin", Role.ADMIN),
        ("pending", None),
    ]
    for key, role in specs:
        user = User(
            email=f"{key}@meditrack.io",
            hashed_password=get_password_hash("Secret-pass-1"),
            name=key.title(),
            role=role.value if role else None,
        )
        db.add(user)
        created[key] = user
    db.commit()
    for user in created.values():
        db.refresh(user)
    return created


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(subject=user.id)}"}


@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    fastapi_app.dependency_overrides[get_db] = override_get_db
    yield TestClient(fastapi_app)
    fastapi_app.dependency_overrides.clear()
