from __future__ import annotations
from datetime import timedelta
from typing import List

from sqlalchemy import select

from conftest import ORG_A, make_account
from app.db.model.claims_queue import ClaimsQueueItem
from app.db.model.ml_claim import MLClaim
from app.orchestration.claims_queue.process_claims_queue import (
    drain_claims_queue, enqueue_claims, reset_failed_claims,
)
from app.utils.clock import now_utc


class DetailFetcher:
    def __init__(self, fail_times: int = 0):
        self.fail_times = fail_times
        self.calls: List[str] = []

    def __call__(self, db, account, claim_id):
        self.calls.append(claim_id)
        if len(self.calls) <= self.fail_times:
            raise RuntimeError("ML 503")
        return {
            "id": int(claim_id), "resource_id": 9001, "status": "closed", "type": "mediations",
            "players": {"buyer": {"id": 555}},
            "order_data": {"id": 9001, "total_amount": 120.5, "currency_id": "BRL"},
        }


def _item(db):
    return db.execute(select(ClaimsQueueItem)).scalar_one()


def test_empty_queue(db):
    assert drain_claims_queue(db=db, fetch_detail=DetailFetcher())["status"] == "empty"


def test_item_is_processed_into_ml_claims(db):
    acc = make_account(db)
    enqueue_claims(db, acc.id, [{"id": 42, "resource_id": 9001}])
    fetcher = DetailFetcher()

    summary = drain_claims_queue(db=db, fetch_detail=fetcher)

    assert summary["status"] == "success"
    assert summary["processed"] == 1
    assert fetcher.calls == ["42"]
    item = _item(db)
    assert item.status == "completed"
    assert item.tentativas == 1

    claim = db.execute(select(MLClaim)).scalar_one()
    assert claim.claim_id == "42"
    assert claim.order_id == "9001"
    assert claim.organization_id == ORG_A
    assert claim.buyer_id == "555"


def test_failure_is_retried_on_next_drain(db):
    acc = make_account(db)
    enqueue_claims(db, acc.id, [{"id": 7}])
    fetcher = DetailFetcher(fail_times=1)

    first = drain_claims_queue(db=db, fetch_detail=fetcher)
    assert first["status"] == "failed"
    assert first["retried"] == 1
    assert _item(db).status == "pending"
    assert _item(db).erro_mensagem == "ML 503"

    second = drain_claims_queue(db=db, fetch_detail=fetcher)
    assert second["processed"] == 1
    assert _item(db).status == "completed"
    assert _item(db).tentativas == 2


def test_backed_off_item_is_taken_by_the_very_next_drain(db):
    acc = make_account(db)
    enqueue_claims(db, acc.id, [{"id": 8}])
    fetcher = DetailFetcher(fail_times=2)

    drain_claims_queue(db=db, fetch_detail=fetcher)
    gate = _item(db).available_at
    assert gate > now_utc()

    second = drain_claims_queue(db=db, fetch_detail=fetcher)
    assert second["leased"] == 1
    assert second["retried"] == 1
    assert _item(db).available_at - now_utc() > timedelta(seconds=100)

    third = drain_claims_queue(db=db, fetch_detail=fetcher)
    assert third["leased"] == 1
    assert third["processed"] == 1
    assert _item(db).tentativas == 3


def test_item_fails_for_good_after_three_attempts(db):
    acc = make_account(db)
    enqueue_claims(db, acc.id, [{"id": 7}])
    fetcher = DetailFetcher(fail_times=10)

    results = [drain_claims_queue(db=db, fetch_detail=fetcher) for _ in range(4)]

    assert [r["retried"] for r in results[:2]] == [1, 1]
    assert results[2]["failed"] == 1
    assert results[3]["status"] == "empty"
    assert len(fetcher.calls) == 3
    item = _item(db)
    assert item.status == "failed"
    assert item.tentativas == 3

    assert reset_failed_claims(db) == 1
    db.refresh(item)
    assert item.status == "pending" and item.tentativas == 0


def test_missing_account_counts_as_failed_attempt(db):
    enqueue_claims(db, "gone", [{"id": 1}])

    summary = drain_claims_queue(db=db, fetch_detail=DetailFetcher())

    assert summary["retried"] == 1
    assert "not found" in _item(db).erro_mensagem


def test_batch_size_limits_the_lease(db):
    acc = make_account(db)
    enqueue_claims(db, acc.id, [{"id": i} for i in range(1, 6)])

    summary = drain_claims_queue(batch_size=2, db=db, fetch_detail=DetailFetcher())

    assert summary["leased"] == 2
    assert summary["processed"] == 2
