from __future__ import annotations
from datetime import timedelta
from typing import List

from conftest import ORG_A, ORG_B, make_account
from app.db.model.sync_status import MLClaimsSyncStatus, MLSyncStatus
from app.orchestration.ml_sync.auto_sync import run_auto_sync, run_status
from app.repository.ml_cache_repo import KIND_CLAIMS, KIND_ORDERS
from app.services.ml_cache_service import MLCacheService


class RecordingFetcher:
    def __init__(self, broken=()):
        self.broken = set(broken)
        self.calls: List[tuple] = []

    def __call__(self, db, account, kind, date_from, date_to):
        self.calls.append((account.id, date_from, date_to))
        if account.id in self.broken:
            raise RuntimeError("token revoked")
        return [{"id": f"{account.id}-1", "date_created": "2024-05-09T10:00:00.000Z"}]


def _service(fetcher, clock):
    return MLCacheService(fetcher=fetcher, clock=clock, ttl_minutes=15)


def test_run_status():
    assert run_status(0, 0) == "no_accounts"
    assert run_status(3, 0) == "success"
    assert run_status(3, 1) == "partial_success"
    assert run_status(3, 3) == "failed"


def test_first_run_uses_lookback_then_last_successful_sync(db, clock):
    acc = make_account(db)
    fetcher = RecordingFetcher()
    first_now = clock.now

    summary = run_auto_sync(KIND_ORDERS, db=db, service=_service(fetcher, clock), clock=clock)

    assert summary["status"] == "success"
    assert summary["accounts_synced"] == 1
    assert summary["records_fetched"] == 1
    assert fetcher.calls == [(acc.id, first_now - timedelta(days=7), first_now)]

    status = db.get(MLSyncStatus, (ORG_A, acc.id))
    assert status.last_sync_status == "success"
    assert status.last_sync_at == first_now

    clock.advance(minutes=20)
    run_auto_sync(KIND_ORDERS, db=db, service=_service(fetcher, clock), clock=clock)

    assert fetcher.calls[1] == (acc.id, first_now, clock.now)


def test_claims_window_uses_claims_lookback(db, clock):
    make_account(db)
    fetcher = RecordingFetcher()

    run_auto_sync(KIND_CLAIMS, db=db, service=_service(fetcher, clock), clock=clock)

    assert fetcher.calls[0][1] == clock.now - timedelta(days=60)
    assert db.query(MLClaimsSyncStatus).count() == 1
    assert db.query(MLSyncStatus).count() == 0


def test_failing_account_is_isolated_and_recorded(db, clock):
    good = make_account(db)
    bad = make_account(db, organization_id=ORG_B)
    fetcher = RecordingFetcher(broken=[bad.id])

    summary = run_auto_sync(KIND_ORDERS, db=db, service=_service(fetcher, clock), clock=clock)

    assert summary["status"] == "partial_success"
    assert summary["accounts_synced"] == 1
    assert summary["accounts_failed"] == 1
    assert summary["errors"] == [{"account_id": bad.id, "error": "token revoked"}]

    bad_status = db.get(MLSyncStatus, (ORG_B, bad.id))
    assert bad_status.last_sync_status == "error"
    assert bad_status.last_sync_error == "token revoked"
    assert bad_status.last_sync_at is None
    assert db.get(MLSyncStatus, (ORG_A, good.id)).last_sync_status == "success"


def test_failed_sync_keeps_previous_window_start(db, clock):
    acc = make_account(db)
    fetcher = RecordingFetcher()
    first_now = clock.now
    run_auto_sync(KIND_ORDERS, db=db, service=_service(fetcher, clock), clock=clock)

    clock.advance(minutes=20)
    fetcher.broken.add(acc.id)
    run_auto_sync(KIND_ORDERS, db=db, service=_service(fetcher, clock), clock=clock)

    status = db.get(MLSyncStatus, (ORG_A, acc.id), populate_existing=True)
    assert status.last_sync_status == "error"
    assert status.last_sync_at == first_now


def test_inactive_and_other_provider_accounts_are_not_synced(db, clock):
    make_account(db, is_active=False)
    make_account(db, provider="shopee")

    summary = run_auto_sync(KIND_ORDERS, db=db, service=_service(RecordingFetcher(), clock), clock=clock)

    assert summary["status"] == "no_accounts"
    assert summary["accounts_total"] == 0


def test_run_is_capped(db, clock):
    for _ in range(3):
        make_account(db)
    fetcher = RecordingFetcher()

    summary = run_auto_sync(KIND_ORDERS, db=db, service=_service(fetcher, clock), clock=clock, max_accounts=2)

    assert summary["accounts_total"] == 2
    assert len(fetcher.calls) == 2


def test_account_without_organization_fails_alone(db, clock):
    make_account(db, organization_id=None)
    make_account(db)

    summary = run_auto_sync(KIND_ORDERS, db=db, service=_service(RecordingFetcher(), clock), clock=clock)

    assert summary["status"] == "partial_success"
    assert summary["errors"][0]["error"] == "account has no organization"


def test_run_opens_its_own_session(session_factory, clock):
    setup = session_factory()
    make_account(setup)
    setup.close()

    summary = run_auto_sync(KIND_ORDERS, service=_service(RecordingFetcher(), clock), clock=clock)

    assert summary["status"] == "success"
