# Unified MercadoLibre claims listing (cache first) -> frontend returns/claims page

import uuid
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.api.v1.deps import get_cache_service, get_current_organization
from app.api.v1.schemas import UnifiedListRequest, listing_response
from app.db.session import get_db
from app.repository.ml_cache_repo import KIND_CLAIMS
from app.services.ml_cache_service import MLCacheService

router = APIRouter(tags=["ml-claims"])


def invalid_uuids(values: List[str]) -> List[str]:
    bad = []
    for v in values:
        try:
            uuid.UUID(str(v))
        except ValueError:
            bad.append(v)
    return bad


@router.post("/unified-ml-claims")
def unified_ml_claims(
    body: UnifiedListRequest,
    organization_id: str = Depends(get_current_organization),
    db: Session = Depends(get_db),
    service: MLCacheService = Depends(get_cache_service),
) -> dict:
    if not body.integration_account_ids:
        raise HTTPException(status_code=400, detail="integration_account_ids is required")
    bad = invalid_uuids(body.integration_account_ids)
    if bad:
        raise HTTPException(status_code=400, detail=f"Invalid integration_account_ids: {', '.join(bad)}")

    result = service.fetch(
        db, KIND_CLAIMS, organization_id, body.integration_account_ids,
        date_from=body.date_from, date_to=body.date_to, force_refresh=body.force_refresh,
    )
    return listing_response(result, "claims", body.offset, body.limit)
