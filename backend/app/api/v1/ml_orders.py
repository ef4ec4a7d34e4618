# Unified MercadoLibre orders listing (cache first) -> frontend orders page

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.api.v1.deps import get_cache_service, get_current_organization
from app.api.v1.schemas import UnifiedListRequest, listing_response
from app.db.session import get_db
from app.repository.ml_cache_repo import KIND_ORDERS
from app.services.ml_cache_service import MLCacheService

router = APIRouter(tags=["ml-orders"])


@router.post("/unified-ml-orders")
def unified_ml_orders(
    body: UnifiedListRequest,
    organization_id: str = Depends(get_current_organization),
    db: Session = Depends(get_db),
    service: MLCacheService = Depends(get_cache_service),
) -> dict:
    """
    Orders of the caller's accounts: served from the 15 min cache when fresh, otherwise
    fetched from MercadoLibre (force_refresh drops the cache of those accounts first).
    """
    if not body.integration_account_ids:
        raise HTTPException(status_code=400, detail="integration_account_ids is required")

    result = service.fetch(
        db, KIND_ORDERS, organization_id, body.integration_account_ids,
        date_from=body.date_from, date_to=body.date_to, force_refresh=body.force_refresh,
    )
    return listing_response(result, "orders", body.offset, body.limit)
