# Cron / admin triggers (service token): auto-sync, claims queue drain, failed reset

from typing import Optional

from fastapi import APIRouter, Body, Depends
from sqlalchemy.orm import Session

from app.api.v1.deps import get_cache_service, require_service_token
from app.api.v1.schemas import ResetFailedRequest
from app.db.session import get_db
from app.orchestration.claims_queue.process_claims_queue import drain_claims_queue, reset_failed_claims
from app.orchestration.ml_sync.auto_sync import run_auto_sync
from app.repository.ml_cache_repo import KIND_ORDERS, KIND_CLAIMS
from app.services.ml_cache_service import MLCacheService

router = APIRouter(tags=["ml-sync"], dependencies=[Depends(require_service_token)])


# runs inline; partial success is still 200 (see "status" / "errors" in the body)
@router.post("/ml-orders-auto-sync")
def ml_orders_auto_sync(db: Session = Depends(get_db), service: MLCacheService = Depends(get_cache_service)) -> dict:
    return run_auto_sync(KIND_ORDERS, db=db, service=service)


@router.post("/ml-claims-auto-sync")
def ml_claims_auto_sync(db: Session = Depends(get_db), service: MLCacheService = Depends(get_cache_service)) -> dict:
    return run_auto_sync(KIND_CLAIMS, db=db, service=service)


@router.post("/process-claims-queue")
def process_claims_queue(db: Session = Depends(get_db)) -> dict:
    return drain_claims_queue(db=db)


@router.post("/claims-queue/reset-failed")
def reset_failed(body: Optional[ResetFailedRequest] = Body(None), db: Session = Depends(get_db)) -> dict:
    ids = body.integration_account_ids if body else None
    n = reset_failed_claims(db, ids)
    return {"success": True, "reset": n, "message": f"{n} failed claim(s) moved back to pending"}
