from __future__ import annotations
import uuid
from datetime import datetime
from typing import Any, Dict, Optional, Sequence, Tuple

from sqlalchemy.orm import Session

from app.db.model.ml_claim import MLClaim
from app.repository.upsert import chunked, dialect_insert

# normalized fields copied onto ml_claims columns
_CLAIM_COLUMNS = (
    "order_id", "return_id", "status", "stage", "claim_type", "reason_id",
    "date_created", "date_closed", "last_updated",
    "total_amount", "refund_amount", "currency_id",
    "buyer_id", "buyer_nickname", "schema_version",
)


'''
Upsert permanent claims keyed on (claim_id, integration_account_id)
items: [(projection from normalize_claim, raw payload), ...]
  - does not commit
'''
def upsert_claims(
    db: Session,
    organization_id: Optional[str],
    account_id: str,
    items: Sequence[Tuple[Dict[str, Any], Dict[str, Any]]],
    synced_at: datetime,
) -> int:
    rows: Dict[str, Dict[str, Any]] = {}
    for projection, raw in items:
        claim_id = projection.get("claim_id")
        if not claim_id:
            continue
        row = {col: projection.get(col) for col in _CLAIM_COLUMNS}
        row["order_id"] = row["order_id"] or ""
        row.update({
            "id": str(uuid.uuid4()),
            "claim_id": claim_id,
            "integration_account_id": account_id,
            "organization_id": organization_id,
            "claim_data": raw,
            "last_synced_at": synced_at,
        })
        rows[claim_id] = row
    if not rows:
        return 0

    update_cols = _CLAIM_COLUMNS + ("organization_id", "claim_data", "last_synced_at")
    total = 0
    for chunk in chunked(list(rows.values())):
        stmt = dialect_insert(db, MLClaim).values(chunk)
        updates = {col: getattr(stmt.excluded, col) for col in update_cols}
        updates["updated_at"] = synced_at
        stmt = stmt.on_conflict_do_update(
            index_elements=["claim_id", "integration_account_id"],
            set_=updates,
        )
        db.execute(stmt)
        total += len(chunk)
    return total
