from __future__ import annotations
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, String, Text, Index, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column
from app.db.base import Base


PROVIDER_MERCADOLIVRE = "mercadolivre"
PROVIDER_SHOPEE = "shopee"


"""
  Connected marketplace seller account (one credential set per seller)
  - created by the OAuth completion flow (outside this service)
  - deactivated with is_active=False, never hard-deleted here
"""
class IntegrationAccount(Base):

    __tablename__ = "integration_accounts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    organization_id:    Mapped[Optional[str]] = mapped_column(String(36), index=True)
    provider:           Mapped[str]           = mapped_column(String(32), nullable=False)              # mercadolivre / shopee
    account_identifier: Mapped[Optional[str]] = mapped_column(String(64))                              # external seller id
    name:               Mapped[str]           = mapped_column(String(255), nullable=False, default="")
    is_active:          Mapped[bool]          = mapped_column(Boolean, nullable=False, default=True)

    # Fernet token over JSON {access_token, refresh_token, expires_at, ...}, see services/secret_store.py
    encrypted_credentials: Mapped[Optional[str]] = mapped_column(Text)
    token_status:          Mapped[Optional[str]] = mapped_column(String(32))                           # active / refresh_failed

    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("provider", "account_identifier", name="uq_integration_accounts_provider_identifier"),
        Index("ix_integration_accounts_active_provider", "is_active", "provider"),
    )


"""
  User profile: maps the JWT subject (user id) to its organization
"""
class Profile(Base):

    __tablename__ = "profiles"

    id:              Mapped[str]           = mapped_column(String(36), primary_key=True)   # auth user id (JWT sub)
    organization_id: Mapped[Optional[str]] = mapped_column(String(36), index=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), nullable=False)
