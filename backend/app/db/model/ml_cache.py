from __future__ import annotations
import uuid
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import DateTime, String, Index, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column
from app.db.base import Base, JSONType


"""
  TTL read-through cache of MercadoLibre orders
  - one row per (organization_id, integration_account_id, order_id), written via upsert
  - rows past ttl_expires_at are stale: never served, refetched instead
"""
class MLOrderCache(Base):

    __tablename__ = "ml_orders_cache"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    organization_id:        Mapped[str] = mapped_column(String(36), nullable=False)
    integration_account_id: Mapped[str] = mapped_column(String(36), nullable=False)
    order_id:               Mapped[str] = mapped_column(String(64), nullable=False)

    order_data: Mapped[Dict[str, Any]]           = mapped_column(JSONType, nullable=False)   # raw marketplace payload
    normalized: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSONType)                   # versioned projection

    cached_at:      Mapped[datetime] = mapped_column(DateTime, nullable=False)
    ttl_expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    created_at:     Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("organization_id", "integration_account_id", "order_id", name="uq_ml_orders_cache_key"),
        Index("ix_ml_orders_cache_lookup", "organization_id", "integration_account_id", "ttl_expires_at"),
    )


"""
  TTL read-through cache of MercadoLibre claims (same contract as the orders cache)
"""
class MLClaimCache(Base):

    __tablename__ = "ml_claims_cache"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    organization_id:        Mapped[str] = mapped_column(String(36), nullable=False)
    integration_account_id: Mapped[str] = mapped_column(String(36), nullable=False)
    claim_id:               Mapped[str] = mapped_column(String(64), nullable=False)

    claim_data: Mapped[Dict[str, Any]]           = mapped_column(JSONType, nullable=False)
    normalized: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSONType)

    cached_at:      Mapped[datetime] = mapped_column(DateTime, nullable=False)
    ttl_expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    created_at:     Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("organization_id", "integration_account_id", "claim_id", name="uq_ml_claims_cache_key"),
        Index("ix_ml_claims_cache_lookup", "organization_id", "integration_account_id", "ttl_expires_at"),
    )
