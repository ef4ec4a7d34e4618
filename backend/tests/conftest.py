"""Shared fixtures: in-memory SQLite database, session factory patched into the jobs, fake clock."""

from __future__ import annotations
import os

# must be set before app.core.config is imported
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret")
os.environ.setdefault("SERVICE_ROLE_KEY", "service-key")
os.environ.setdefault("APP_ENCRYPTION_KEY", "test-encryption-key")
os.environ.setdefault("BACKEND_CORS_ORIGINS", "http://localhost:5173")

import uuid
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

import app.db.session as db_session
from app.db.base import Base
from app.db.model import IntegrationAccount, Profile
from app.orchestration.claims_queue import process_claims_queue
from app.orchestration.ml_sync import auto_sync
from app.services.secret_store import encrypt_credentials


ORG_A = "org-a"
ORG_B = "org-b"


@pytest.fixture()
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,     # one shared in-memory database for every session
        future=True,
    )
    Base.metadata.create_all(eng)
    yield eng
    Base.metadata.drop_all(eng)
    eng.dispose()


@pytest.fixture()
def session_factory(engine, monkeypatch):
    factory = sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)
    monkeypatch.setattr(db_session, "SessionLocal", factory)
    monkeypatch.setattr(auto_sync, "SessionLocal", factory)
    monkeypatch.setattr(process_claims_queue, "SessionLocal", factory)
    return factory


@pytest.fixture()
def db(session_factory) -> Session:
    s = session_factory()
    try:
        yield s
    finally:
        s.close()


class FakeClock:
    """Callable clock returning a settable naive-UTC datetime."""

    def __init__(self, start: Optional[datetime] = None) -> None:
        self.now = start or datetime(2024, 5, 10, 12, 0, 0)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


def make_account(
    db: Session,
    organization_id: Optional[str] = ORG_A,
    *,
    provider: str = "mercadolivre",
    is_active: bool = True,
    seller_id: Optional[str] = None,
    credentials: Optional[Dict[str, Any]] = None,
) -> IntegrationAccount:
    account = IntegrationAccount(
        id=str(uuid.uuid4()),
        organization_id=organization_id,
        provider=provider,
        account_identifier=seller_id or str(uuid.uuid4().int)[:9],
        name="loja",
        is_active=is_active,
        encrypted_credentials=encrypt_credentials(
            credentials or {"access_token": "tok", "refresh_token": "ref", "expires_at": "2099-01-01T00:00:00.000Z"}
        ),
    )
    db.add(account)
    db.commit()
    return account


def make_profile(db: Session, user_id: str, organization_id: Optional[str]) -> Profile:
    profile = Profile(id=user_id, organization_id=organization_id)
    db.add(profile)
    db.commit()
    return profile
