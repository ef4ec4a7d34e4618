from __future__ import annotations
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.db.model.integration import IntegrationAccount, Profile, PROVIDER_MERCADOLIVRE


# ---------- Query ----------
def get_account(db: Session, account_id: str) -> Optional[IntegrationAccount]:
    return db.get(IntegrationAccount, account_id)


def get_organization_id(db: Session, user_id: str) -> Optional[str]:
    """JWT sub -> profiles.organization_id (None when the user has no profile/org)."""
    profile = db.get(Profile, user_id)
    return profile.organization_id if profile else None


'''
Active accounts of one provider for the scheduled jobs
  - ordered by id so a capped run is deterministic
'''
def list_active_accounts(db: Session, provider: str = PROVIDER_MERCADOLIVRE, limit: Optional[int] = None) -> List[IntegrationAccount]:
    stmt = (
        select(IntegrationAccount)
        .where(IntegrationAccount.provider == provider, IntegrationAccount.is_active.is_(True))
        .order_by(IntegrationAccount.id.asc())
    )
    if limit:
        stmt = stmt.limit(limit)
    return list(db.execute(stmt).scalars().all())
