from __future__ import annotations
import logging, uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple, Type

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from app.db.model.ml_cache import MLOrderCache, MLClaimCache
from app.repository.upsert import chunked, dialect_insert

logger = logging.getLogger(__name__)

KIND_ORDERS = "orders"
KIND_CLAIMS = "claims"


@dataclass(frozen=True)
class CacheTable:
    model: Type[Any]
    id_col: str      # external id column (order_id / claim_id)
    data_col: str    # raw payload column (order_data / claim_data)


_TABLES: Dict[str, CacheTable] = {
    KIND_ORDERS: CacheTable(MLOrderCache, "order_id", "order_data"),
    KIND_CLAIMS: CacheTable(MLClaimCache, "claim_id", "claim_data"),
}


def table_for(kind: str) -> CacheTable:
    try:
        return _TABLES[kind]
    except KeyError:
        raise ValueError(f"unknown cache kind: {kind!r}") from None


# ---------- Query ----------
'''
Unexpired rows for (organization, accounts), newest cached first
  - expired rows are never returned even if the purge has not run yet
'''
def load_fresh(db: Session, kind: str, organization_id: str, account_ids: Sequence[str], now: datetime) -> List[Any]:
    t = table_for(kind)
    m = t.model
    stmt = (
        select(m)
        .where(
            m.organization_id == organization_id,
            m.integration_account_id.in_(list(account_ids)),
            m.ttl_expires_at > now,
        )
        .order_by(m.cached_at.desc())
    )
    return list(db.execute(stmt).scalars().all())


# ---------- Write ----------
def delete_for_account(db: Session, kind: str, organization_id: str, account_id: str) -> int:
    """Forced refresh: drop one account's rows of one organization (nothing else)."""
    m = table_for(kind).model
    res = db.execute(
        delete(m).where(m.organization_id == organization_id, m.integration_account_id == account_id)
    )
    return int(res.rowcount or 0)


'''
Upsert cache rows keyed on (organization_id, integration_account_id, external id)
records: [(external_id, raw_payload, normalized_json), ...]
  - a re-fetch replaces payload, cached_at and ttl_expires_at; never duplicates
  - does not commit
'''
def upsert_entries(
    db: Session,
    kind: str,
    organization_id: str,
    account_id: str,
    records: Sequence[Tuple[str, Dict[str, Any], Optional[Dict[str, Any]]]],
    cached_at: datetime,
    expires_at: datetime,
) -> int:
    if not records:
        return 0
    t = table_for(kind)

    # last occurrence wins when the upstream pages overlap
    by_id: Dict[str, Dict[str, Any]] = {}
    for external_id, raw, normalized in records:
        by_id[external_id] = {
            "id": str(uuid.uuid4()),
            "organization_id": organization_id,
            "integration_account_id": account_id,
            t.id_col: external_id,
            t.data_col: raw,
            "normalized": normalized,
            "cached_at": cached_at,
            "ttl_expires_at": expires_at,
        }
    rows = list(by_id.values())

    total = 0
    for chunk in chunked(rows):
        stmt = dialect_insert(db, t.model).values(chunk)
        stmt = stmt.on_conflict_do_update(
            index_elements=["organization_id", "integration_account_id", t.id_col],
            set_={
                t.data_col: getattr(stmt.excluded, t.data_col),
                "normalized": stmt.excluded.normalized,
                "cached_at": stmt.excluded.cached_at,
                "ttl_expires_at": stmt.excluded.ttl_expires_at,
            },
        )
        db.execute(stmt)
        total += len(chunk)
    return total


def purge_expired(db: Session, kind: str, cutoff: datetime, organization_id: Optional[str] = None) -> int:
    """Delete rows with ttl_expires_at <= cutoff (optionally one organization only); does not commit."""
    m = table_for(kind).model
    stmt = delete(m).where(m.ttl_expires_at <= cutoff)
    if organization_id:
        stmt = stmt.where(m.organization_id == organization_id)
    res = db.execute(stmt)
    return int(res.rowcount or 0)
