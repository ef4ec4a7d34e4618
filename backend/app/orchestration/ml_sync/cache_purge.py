from __future__ import annotations
import logging
from typing import Optional

from celery import shared_task

from app.db.session import session_scope
from app.repository.ml_cache_repo import KIND_ORDERS, KIND_CLAIMS
from app.services.ml_cache_service import MLCacheService

logger = logging.getLogger(__name__)


'''
Drop expired cache rows (orders + claims)
  - expired rows are already never served; this only keeps the tables small
'''
@shared_task(name="app.orchestration.ml_sync.purge_expired_cache")
def purge_expired_cache(organization_id: Optional[str] = None) -> dict:
    service = MLCacheService()
    with session_scope() as db:
        deleted = {kind: service.purge_expired(db, kind, organization_id=organization_id) for kind in (KIND_ORDERS, KIND_CLAIMS)}
    logger.info("cache purge done: %s", deleted)
    return {"success": True, "deleted": deleted}
