from __future__ import annotations
from datetime import datetime
from typing import Any, Optional, Type

from sqlalchemy.orm import Session

from app.db.model.sync_status import MLSyncStatus, MLClaimsSyncStatus, SYNC_SUCCESS
from app.repository.ml_cache_repo import KIND_ORDERS, KIND_CLAIMS
from app.repository.upsert import dialect_insert


def model_for(kind: str) -> Type[Any]:
    if kind == KIND_ORDERS:
        return MLSyncStatus
    if kind == KIND_CLAIMS:
        return MLClaimsSyncStatus
    raise ValueError(f"unknown sync kind: {kind!r}")


def get_status(db: Session, kind: str, organization_id: str, account_id: str):
    return db.get(model_for(kind), (organization_id, account_id), populate_existing=True)


'''
Record the outcome of one sync attempt (success or error)
  - one row per (organization_id, integration_account_id), rewritten in place
  - last_sync_at only advances on success so a failed window is retried next run
  - does not commit
'''
def upsert_status(
    db: Session,
    kind: str,
    organization_id: str,
    account_id: str,
    *,
    status: str,
    at: datetime,
    error: Optional[str] = None,
    records_fetched: int = 0,
    records_cached: int = 0,
    duration_ms: int = 0,
) -> None:
    model = model_for(kind)
    values = {
        "organization_id": organization_id,
        "integration_account_id": account_id,
        "last_sync_status": status,
        "last_sync_error": (error or None) and error[:2000],
        "records_fetched": records_fetched,
        "records_cached": records_cached,
        "duration_ms": duration_ms,
        "updated_at": at,
    }
    if status == SYNC_SUCCESS:
        values["last_sync_at"] = at

    stmt = dialect_insert(db, model).values(values)
    set_ = {k: getattr(stmt.excluded, k) for k in values if k not in ("organization_id", "integration_account_id")}
    stmt = stmt.on_conflict_do_update(
        index_elements=["organization_id", "integration_account_id"],
        set_=set_,
    )
    db.execute(stmt)
