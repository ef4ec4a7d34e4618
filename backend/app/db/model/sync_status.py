from __future__ import annotations
from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column
from app.db.base import Base


SYNC_SUCCESS = "success"
SYNC_ERROR = "error"


class _SyncStatusColumns:
    """Columns shared by the orders and claims sync status tables."""

    organization_id:        Mapped[str] = mapped_column(String(36), primary_key=True)
    integration_account_id: Mapped[str] = mapped_column(String(36), primary_key=True)

    last_sync_at:     Mapped[Optional[datetime]] = mapped_column(DateTime)
    last_sync_status: Mapped[Optional[str]]      = mapped_column(String(16))    # success / error
    last_sync_error:  Mapped[Optional[str]]      = mapped_column(Text)
    records_fetched:  Mapped[int]                = mapped_column(Integer, nullable=False, default=0)
    records_cached:   Mapped[int]                = mapped_column(Integer, nullable=False, default=0)
    duration_ms:      Mapped[int]                = mapped_column(Integer, nullable=False, default=0)

    updated_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)


"""
  Orders auto-sync status: one row per (organization_id, integration_account_id),
  rewritten after every attempt, never deleted
"""
class MLSyncStatus(_SyncStatusColumns, Base):

    __tablename__ = "ml_sync_status"


"""
  Claims auto-sync status (same shape as ml_sync_status)
"""
class MLClaimsSyncStatus(_SyncStatusColumns, Base):

    __tablename__ = "ml_claims_sync_status"
