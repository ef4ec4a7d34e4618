"""
Drain of fila_processamento_claims: lease → fetch claim detail → upsert ml_claims → mark.

    pending ──lease──► processing ──ok──► completed
                            │
                            └─fail─► pending (available_at = now + backoff)   attempts left
                                  └► failed (erro_mensagem kept)               attempts exhausted
"""
from __future__ import annotations
import logging, time
from typing import Any, Callable, Dict, Optional, Sequence

from celery import shared_task
from sqlalchemy.orm import Session

from app.core.config import settings
from app.db.session import SessionLocal
from app.db.model.claims_queue import ClaimsQueueItem
from app.db.model.integration import IntegrationAccount
from app.integrations.mercadolivre import MLClaimsAPI, MLHttpClient, MLTokenManager, normalize_claim
from app.repository import claims_queue_repo, integration_repo, ml_claims_repo
from app.utils.clock import now_utc

logger = logging.getLogger(__name__)

# detail_fetcher(db, account, claim_id) -> claim detail payload
DetailFetcher = Callable[[Session, IntegrationAccount, str], Dict[str, Any]]


def fetch_claim_detail(db: Session, account: IntegrationAccount, claim_id: str) -> Dict[str, Any]:
    http = MLHttpClient(token_provider=MLTokenManager(db, account))
    try:
        return MLClaimsAPI(http).get_claim_detail(claim_id)
    finally:
        http.close()


def process_item(db: Session, item: ClaimsQueueItem, fetch_detail: DetailFetcher = fetch_claim_detail) -> None:
    """Process one leased item; any exception means the attempt failed."""
    account = integration_repo.get_account(db, item.integration_account_id)
    if account is None:
        raise LookupError(f"integration account {item.integration_account_id} not found")

    detail = fetch_detail(db, account, item.claim_id)
    projection = normalize_claim(detail)
    if not projection.get("claim_id"):
        projection["claim_id"] = item.claim_id
    ml_claims_repo.upsert_claims(db, account.organization_id, account.id, [(projection, detail)], now_utc())


'''
One drain pass
  - leases at most batch_size items (CLAIMS_QUEUE_BATCH by default)
  - every item is settled (completed / retry / failed) before the next one starts
Returns the run summary (also the HTTP body of the cron endpoint).
'''
def drain_claims_queue(
    batch_size: Optional[int] = None,
    db: Optional[Session] = None,
    fetch_detail: DetailFetcher = fetch_claim_detail,
) -> Dict[str, Any]:
    own_session = db is None
    db = db or SessionLocal()
    started = time.monotonic()
    processed = failed = retried = 0

    try:
        items = claims_queue_repo.lease_items(db, batch_size or settings.CLAIMS_QUEUE_BATCH)
        logger.info("claims queue: leased %s item(s)", len(items))

        for item in items:
            try:
                process_item(db, item, fetch_detail)
                claims_queue_repo.mark_done(db, item)
                processed += 1
            except Exception as e:
                db.rollback()
                logger.warning("claims queue: claim %s (account %s) attempt %s failed: %s",
                               item.claim_id, item.integration_account_id, item.tentativas, e)
                if claims_queue_repo.mark_fail(db, item, e):
                    failed += 1
                else:
                    retried += 1

        if not items:
            status = "empty"
        elif processed == len(items):
            status = "success"
        elif processed == 0:
            status = "failed"
        else:
            status = "partial_success"

        summary = {
            "success": True,
            "status": status,
            "leased": len(items),
            "processed": processed,
            "failed": failed,
            "retried": retried,
            "duration_ms": int((time.monotonic() - started) * 1000),
        }
        logger.info("claims queue drain done: %s", summary)
        return summary
    finally:
        if own_session:
            db.close()


def enqueue_claims(db: Session, account_id: str, claims: Sequence[Dict[str, Any]], priority: int = 0) -> int:
    n = claims_queue_repo.enqueue_claims(db, account_id, claims, priority=priority)
    logger.info("claims queue: %s claim(s) enqueued for account %s", n, account_id)
    return n


def reset_failed_claims(db: Session, account_ids: Optional[Sequence[str]] = None) -> int:
    n = claims_queue_repo.reset_failed(db, account_ids)
    logger.info("claims queue: %s failed item(s) reset to pending (accounts=%s)", n, account_ids or "*")
    return n


# ---------- Celery entry point ----------
@shared_task(name="app.orchestration.claims_queue.process_claims_queue")
def process_claims_queue(batch_size: Optional[int] = None) -> dict:
    return drain_claims_queue(batch_size=batch_size)
