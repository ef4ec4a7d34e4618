from __future__ import annotations
import logging, uuid
from datetime import timedelta
from typing import Any, Dict, Iterable, List, Optional, Sequence

from sqlalchemy import and_, or_, select
from sqlalchemy.orm import Session

from app.core.config import settings
from app.db.model.claims_queue import (
    ClaimsQueueItem, QUEUE_PENDING, QUEUE_PROCESSING, QUEUE_COMPLETED, QUEUE_FAILED,
)
from app.utils.backoff import calc_next_delay
from app.utils.clock import now_utc

logger = logging.getLogger(__name__)

LEASE_EXPIRED_MSG = "lease expired after the last attempt"


def lease_items(
    db: Session,
    limit: int,
    lease_sec: Optional[int] = None,
    horizon_sec: Optional[int] = None,
) -> List[ClaimsQueueItem]:
    """
    Claim a batch of runnable items and mark them processing (attempts + 1, lease set).
    Runnable: pending with attempts left whose backoff gate opens before the next scheduled drain
    (available_at <= now + horizon_sec, CRON_CLAIMS_QUEUE_SEC by default), or processing whose lease expired.
    FOR UPDATE SKIP LOCKED keeps concurrent drains off each other's rows (ignored by SQLite).
    """
    now = now_utc()
    lease_sec = lease_sec or settings.CLAIMS_QUEUE_LEASE_SEC
    horizon = now + timedelta(seconds=settings.CRON_CLAIMS_QUEUE_SEC if horizon_sec is None else horizon_sec)
    Q = ClaimsQueueItem

    _fail_exhausted_leases(db, now)

    runnable = or_(
        and_(
            Q.status == QUEUE_PENDING,
            Q.tentativas < Q.max_tentativas,
            or_(Q.available_at.is_(None), Q.available_at <= horizon),
        ),
        and_(
            Q.status == QUEUE_PROCESSING,
            Q.processing_until < now,
            Q.tentativas < Q.max_tentativas,
        ),
    )
    stmt = (
        select(Q)
        .where(runnable)
        .order_by(Q.priority.desc(), Q.criado_em.asc(), Q.id.asc())
        .limit(limit)
        .with_for_update(skip_locked=True)
    )
    items = list(db.execute(stmt).scalars().all())

    # mark processing + lease
    if items:
        until = now + timedelta(seconds=lease_sec)
        for it in items:
            it.status = QUEUE_PROCESSING
            it.tentativas = (it.tentativas or 0) + 1
            it.processing_until = until
            it.atualizado_em = now
    db.commit()
    return items


def _fail_exhausted_leases(db: Session, now) -> int:
    """A processing item whose lease ran out on its last attempt is terminal."""
    Q = ClaimsQueueItem
    n = (
        db.query(Q)
        .filter(Q.status == QUEUE_PROCESSING, Q.processing_until < now, Q.tentativas >= Q.max_tentativas)
        .update(
            {Q.status: QUEUE_FAILED, Q.erro_mensagem: LEASE_EXPIRED_MSG, Q.processing_until: None, Q.atualizado_em: now},
            synchronize_session=False,
        )
    )
    if n:
        logger.warning("claims queue: %s item(s) failed after lease expiry on last attempt", n)
    return n


def mark_done(db: Session, item: ClaimsQueueItem) -> None:
    now = now_utc()
    item.status = QUEUE_COMPLETED
    item.processado_em = now
    item.processing_until = None
    item.erro_mensagem = None
    item.atualizado_em = now
    db.commit()


'''
Failure of the current attempt
  - attempts were already counted at lease time
  - attempts left -> back to pending behind an exponential backoff gate
  - none left -> failed (terminal) with the error message
Returns True when the item became terminal.
'''
def mark_fail(
    db: Session,
    item: ClaimsQueueItem,
    err: Any,
    base_sec: Optional[int] = None,
    max_sec: Optional[int] = None,
) -> bool:
    now = now_utc()
    msg = str(err)
    item.erro_mensagem = msg[:2000] + "…" if len(msg) > 2000 else msg
    item.processing_until = None
    item.atualizado_em = now

    attempts = item.tentativas or 0
    terminal = attempts >= (item.max_tentativas or settings.CLAIMS_QUEUE_MAX_ATTEMPTS)
    if terminal:
        item.status = QUEUE_FAILED
    else:
        delay = calc_next_delay(
            attempts,
            settings.CLAIMS_QUEUE_BACKOFF_BASE_SEC if base_sec is None else base_sec,
            settings.CLAIMS_QUEUE_BACKOFF_MAX_SEC if max_sec is None else max_sec,
        )
        item.status = QUEUE_PENDING
        item.available_at = now + timedelta(seconds=delay)
    db.commit()
    return terminal


'''
Queue claims of one account for detail processing
claims: raw claim dicts (need "id"; "resource_id" becomes order_id)
  - a claim already pending/processing for the account is skipped
Returns the number of rows inserted; commits.
'''
def enqueue_claims(db: Session, account_id: str, claims: Iterable[Dict[str, Any]], priority: int = 0) -> int:
    Q = ClaimsQueueItem
    wanted: Dict[str, Dict[str, Any]] = {}
    for c in claims:
        cid = c.get("id") or c.get("claim_id")
        if cid:
            wanted[str(cid)] = c
    if not wanted:
        return 0

    active = set(
        db.execute(
            select(Q.claim_id).where(
                Q.integration_account_id == account_id,
                Q.claim_id.in_(list(wanted)),
                Q.status.in_([QUEUE_PENDING, QUEUE_PROCESSING]),
            )
        ).scalars().all()
    )

    now = now_utc()
    added = 0
    for cid, claim in wanted.items():
        if cid in active:
            continue
        order_id = claim.get("resource_id") or claim.get("order_id")
        db.add(Q(
            id=str(uuid.uuid4()),
            claim_id=cid,
            order_id=str(order_id) if order_id else None,
            integration_account_id=account_id,
            claim_data=claim,
            priority=priority,
            status=QUEUE_PENDING,
            tentativas=0,
            max_tentativas=settings.CLAIMS_QUEUE_MAX_ATTEMPTS,
            criado_em=now,
            atualizado_em=now,
        ))
        added += 1
    db.commit()
    return added


def reset_failed(db: Session, account_ids: Optional[Sequence[str]] = None) -> int:
    """failed -> pending with attempts and error cleared; returns the row count. Commits."""
    Q = ClaimsQueueItem
    q = db.query(Q).filter(Q.status == QUEUE_FAILED)
    if account_ids:
        q = q.filter(Q.integration_account_id.in_(list(account_ids)))
    n = q.update(
        {Q.status: QUEUE_PENDING, Q.tentativas: 0, Q.erro_mensagem: None,
         Q.available_at: None, Q.processing_until: None, Q.atualizado_em: now_utc()},
        synchronize_session=False,
    )
    db.commit()
    return int(n or 0)
