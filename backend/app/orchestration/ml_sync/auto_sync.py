"""
Scheduled incremental sync of MercadoLibre orders / claims.

  active accounts (ordered by id, capped at SYNC_MAX_ACCOUNTS)
      └─ per account, independently:
           window = [last successful sync | now - lookback, now]
           cache layer (non-forced) for that single account and window
           sync status row upserted with the outcome (success or error)

A failing account never stops the run; the summary says which ones failed.
"""
from __future__ import annotations
import logging, time
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

from celery import shared_task
from sqlalchemy.orm import Session

from app.core.config import settings
from app.db.session import SessionLocal
from app.db.model.sync_status import SYNC_SUCCESS, SYNC_ERROR
from app.repository import integration_repo, sync_status_repo
from app.repository.ml_cache_repo import KIND_ORDERS, KIND_CLAIMS
from app.services.ml_cache_service import MLCacheService
from app.utils.clock import now_utc

logger = logging.getLogger(__name__)

RUN_SUCCESS = "success"
RUN_PARTIAL = "partial_success"
RUN_FAILED = "failed"
RUN_NO_ACCOUNTS = "no_accounts"


def lookback_days(kind: str) -> int:
    return settings.ORDERS_LOOKBACK_DAYS if kind == KIND_ORDERS else settings.CLAIMS_LOOKBACK_DAYS


def run_status(total: int, failed: int) -> str:
    if total == 0:
        return RUN_NO_ACCOUNTS
    if failed == 0:
        return RUN_SUCCESS
    if failed == total:
        return RUN_FAILED
    return RUN_PARTIAL


'''
One sync run over every active account
  - db / service / clock can be injected (tests); otherwise a session is opened and closed here
Returns the run summary (also the HTTP body of the cron endpoints).
'''
def run_auto_sync(
    kind: str,
    db: Optional[Session] = None,
    service: Optional[MLCacheService] = None,
    clock: Callable[[], datetime] = now_utc,
    max_accounts: Optional[int] = None,
) -> Dict[str, Any]:
    if kind not in (KIND_ORDERS, KIND_CLAIMS):
        raise ValueError(f"unknown sync kind: {kind!r}")

    own_session = db is None
    db = db or SessionLocal()
    service = service or MLCacheService(clock=clock)
    started = time.monotonic()

    synced = 0
    fetched = 0
    errors: List[Dict[str, str]] = []

    try:
        accounts = integration_repo.list_active_accounts(db, limit=max_accounts or settings.SYNC_MAX_ACCOUNTS)
        logger.info("%s auto-sync: %s active account(s)", kind, len(accounts))

        for account in accounts:
            ok, n, err = _sync_account(db, kind, account, service, clock)
            fetched += n
            if ok:
                synced += 1
            else:
                errors.append({"account_id": account.id, "error": err or "unknown error"})

        status = run_status(len(accounts), len(errors))
        summary = {
            "success": True,
            "status": status,
            "kind": kind,
            "accounts_total": len(accounts),
            "accounts_synced": synced,
            "accounts_failed": len(errors),
            "records_fetched": fetched,
            "duration_ms": int((time.monotonic() - started) * 1000),
            "errors": errors,
        }
        logger.info(
            "%s auto-sync done status=%s synced=%s failed=%s records=%s in %sms",
            kind, status, synced, len(errors), fetched, summary["duration_ms"],
        )
        return summary
    finally:
        if own_session:
            db.close()


def _sync_account(db: Session, kind: str, account, service: MLCacheService, clock) -> tuple[bool, int, Optional[str]]:
    """Sync one account and record its status; returns (ok, records_fetched, error)."""
    t0 = time.monotonic()
    org_id = account.organization_id
    if not org_id:
        logger.warning("%s auto-sync: account %s has no organization, skipped", kind, account.id)
        return False, 0, "account has no organization"

    now = clock()
    fetched = cached = 0
    error: Optional[str] = None
    try:
        status_row = sync_status_repo.get_status(db, kind, org_id, account.id)
        if status_row is not None and status_row.last_sync_at is not None:
            date_from = status_row.last_sync_at
        else:
            date_from = now - timedelta(days=lookback_days(kind))

        result = service.fetch(db, kind, org_id, [account.id], date_from=date_from, date_to=now, force_refresh=False)
        fetched = result.fetched or result.total
        cached = result.cached
        if result.errors:
            error = "; ".join(e["error"] for e in result.errors)
    except Exception as e:
        db.rollback()
        logger.exception("%s auto-sync failed for account %s", kind, account.id)
        error = str(e) or e.__class__.__name__

    duration_ms = int((time.monotonic() - t0) * 1000)
    try:
        sync_status_repo.upsert_status(
            db, kind, org_id, account.id,
            status=SYNC_SUCCESS if error is None else SYNC_ERROR,
            at=now,
            error=error,
            records_fetched=fetched,
            records_cached=cached,
            duration_ms=duration_ms,
        )
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("%s auto-sync: could not record status for account %s", kind, account.id)

    return error is None, fetched, error


# ---------- Celery entry points ----------
@shared_task(name="app.orchestration.ml_sync.ml_orders_auto_sync")
def ml_orders_auto_sync() -> dict:
    return run_auto_sync(KIND_ORDERS)


@shared_task(name="app.orchestration.ml_sync.ml_claims_auto_sync")
def ml_claims_auto_sync() -> dict:
    return run_auto_sync(KIND_CLAIMS)
