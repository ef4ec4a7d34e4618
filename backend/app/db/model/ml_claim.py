from __future__ import annotations
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional

from sqlalchemy import DateTime, Integer, Numeric, String, Index, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column
from app.db.base import Base, JSONType


"""
  Permanent claims table (normalized fields + full raw payload)
  - written by the claims cache refresh and by the claims queue drain
  - unique per (claim_id, integration_account_id)
"""
class MLClaim(Base):

    __tablename__ = "ml_claims"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    claim_id:               Mapped[str]           = mapped_column(String(64), nullable=False)
    integration_account_id: Mapped[str]           = mapped_column(String(36), nullable=False)
    organization_id:        Mapped[Optional[str]] = mapped_column(String(36), index=True)
    order_id:               Mapped[str]           = mapped_column(String(64), nullable=False, default="")
    return_id:              Mapped[Optional[str]] = mapped_column(String(64))

    status:     Mapped[Optional[str]] = mapped_column(String(64))
    stage:      Mapped[Optional[str]] = mapped_column(String(64))
    claim_type: Mapped[Optional[str]] = mapped_column(String(64))
    reason_id:  Mapped[Optional[str]] = mapped_column(String(64))

    date_created: Mapped[Optional[datetime]] = mapped_column(DateTime)
    date_closed:  Mapped[Optional[datetime]] = mapped_column(DateTime)
    last_updated: Mapped[Optional[datetime]] = mapped_column(DateTime)

    total_amount:  Mapped[Optional[Decimal]] = mapped_column(Numeric(14, 2))
    refund_amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(14, 2))
    currency_id:   Mapped[Optional[str]]     = mapped_column(String(8))

    buyer_id:       Mapped[Optional[str]] = mapped_column(String(64))    # string: marketplace ids overflow JS/JSON ints
    buyer_nickname: Mapped[Optional[str]] = mapped_column(String(255))

    schema_version: Mapped[int]            = mapped_column(Integer, nullable=False, default=1)
    claim_data:     Mapped[Dict[str, Any]] = mapped_column(JSONType, nullable=False)

    last_synced_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    created_at:     Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), nullable=False)
    updated_at:     Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("claim_id", "integration_account_id", name="uq_ml_claims_claim_account"),
        Index("ix_ml_claims_account_created", "integration_account_id", "date_created"),
    )
