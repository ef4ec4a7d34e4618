from __future__ import annotations

import pytest
from fastapi.testclient import TestClient
from jose import jwt

from conftest import ORG_A, make_account, make_profile
from app.api.v1.deps import get_cache_service
from app.db.model import ClaimsQueueItem
from app.db.session import get_db
from app.main import app
from app.orchestration.claims_queue.process_claims_queue import enqueue_claims
from app.services.ml_cache_service import MLCacheService

SERVICE_HEADERS = {"Authorization": "Bearer service-key"}


def user_headers(sub: str) -> dict:
    token = jwt.encode({"sub": sub}, "test-secret", algorithm="HS256")
    return {"Authorization": f"Bearer {token}"}


class StaticFetcher:
    def __init__(self, records):
        self.records = records
        self.calls = 0

    def __call__(self, db, account, kind, date_from, date_to):
        self.calls += 1
        return [dict(r) for r in self.records]


@pytest.fixture()
def fetcher():
    return StaticFetcher([
        {"id": n, "status": "paid", "date_created": f"2024-05-0{n}T10:00:00.000Z"} for n in range(1, 6)
    ])


@pytest.fixture()
def client(session_factory, clock, fetcher):
    def _db():
        s = session_factory()
        try:
            yield s
        finally:
            s.close()

    service = MLCacheService(fetcher=fetcher, clock=clock)
    app.dependency_overrides[get_db] = _db
    app.dependency_overrides[get_cache_service] = lambda: service
    try:
        yield TestClient(app, raise_server_exceptions=False)
    finally:
        app.dependency_overrides.clear()


# ---------- unified listings ----------
def test_missing_authorization_is_401(client):
    res = client.post("/api/v1/unified-ml-orders", json={"integration_account_ids": ["x"]})

    assert res.status_code == 401
    assert res.json() == {"success": False, "error": "No authorization header"}


def test_bad_token_is_401(client):
    res = client.post("/api/v1/unified-ml-orders", json={}, headers={"Authorization": "Bearer nope"})

    assert res.status_code == 401
    assert res.json()["error"] == "Invalid or expired token"


def test_user_without_organization_is_400(client, db):
    make_profile(db, "user-1", None)

    res = client.post("/api/v1/unified-ml-orders", json={"integration_account_ids": ["x"]}, headers=user_headers("user-1"))

    assert res.status_code == 400
    assert res.json()["error"] == "User has no organization"


def test_empty_account_list_is_400(client, db):
    make_profile(db, "user-1", ORG_A)

    res = client.post("/api/v1/unified-ml-orders", json={"integration_account_ids": []}, headers=user_headers("user-1"))

    assert res.status_code == 400
    assert res.json()["error"] == "integration_account_ids is required"


def test_orders_listing_then_cache_hit(client, db, fetcher):
    make_profile(db, "user-1", ORG_A)
    acc = make_account(db)
    body = {"integration_account_ids": [acc.id], "offset": 1, "limit": 2}

    first = client.post("/api/v1/unified-ml-orders", json=body, headers=user_headers("user-1"))
    second = client.post("/api/v1/unified-ml-orders", json=body, headers=user_headers("user-1"))

    assert first.status_code == 200
    data = first.json()
    assert data["success"] is True
    assert data["source"] == "ml_api"
    assert data["total"] == 5
    assert [o["id"] for o in data["orders"]] == [4, 3]
    assert data["paging"] == {"total": 5, "offset": 1, "limit": 2}
    assert data["expires_at"] == "2024-05-10T12:15:00.000Z"
    assert "warnings" not in data

    assert second.json()["source"] == "cache"
    assert fetcher.calls == 1


def test_foreign_account_is_reported_as_warning(client, db):
    make_profile(db, "user-1", ORG_A)
    other = make_account(db, organization_id="org-b")

    res = client.post("/api/v1/unified-ml-orders", json={"integration_account_ids": [other.id]}, headers=user_headers("user-1"))

    assert res.status_code == 200
    assert res.json()["orders"] == []
    assert res.json()["warnings"][0]["account_id"] == other.id


def test_claims_rejects_malformed_account_ids(client, db):
    make_profile(db, "user-1", ORG_A)

    res = client.post(
        "/api/v1/unified-ml-claims", json={"integration_account_ids": ["not-a-uuid"]}, headers=user_headers("user-1"),
    )

    assert res.status_code == 400
    assert res.json()["error"] == "Invalid integration_account_ids: not-a-uuid"


def test_claims_listing(client, db):
    make_profile(db, "user-1", ORG_A)
    acc = make_account(db)

    res = client.post("/api/v1/unified-ml-claims", json={"integration_account_ids": [acc.id]}, headers=user_headers("user-1"))

    assert res.status_code == 200
    assert res.json()["total"] == 5
    assert len(res.json()["claims"]) == 5


def test_validation_error_uses_envelope(client, db):
    make_profile(db, "user-1", ORG_A)

    res = client.post(
        "/api/v1/unified-ml-orders", json={"integration_account_ids": ["x"], "limit": 0}, headers=user_headers("user-1"),
    )

    assert res.status_code == 400
    assert res.json()["success"] is False
    assert res.json()["error"].startswith("limit")


def test_untrusted_origin_is_rejected(client):
    res = client.post("/api/v1/unified-ml-orders", json={}, headers={"Origin": "https://evil.example"})

    assert res.status_code == 403


# ---------- cron / admin ----------
def test_cron_routes_require_service_token(client):
    assert client.post("/api/v1/ml-orders-auto-sync").status_code == 401
    assert client.post("/api/v1/ml-orders-auto-sync", headers={"Authorization": "Bearer wrong"}).status_code == 401


def test_auto_sync_route_returns_summary(client, db, fetcher):
    make_account(db)

    res = client.post("/api/v1/ml-orders-auto-sync", headers=SERVICE_HEADERS)

    assert res.status_code == 200
    body = res.json()
    assert body["status"] == "success"
    assert body["accounts_synced"] == 1
    assert body["errors"] == []


def test_claims_auto_sync_without_accounts(client):
    res = client.post("/api/v1/ml-claims-auto-sync", headers=SERVICE_HEADERS)

    assert res.json()["status"] == "no_accounts"


def test_process_queue_route_on_empty_queue(client):
    res = client.post("/api/v1/process-claims-queue", headers=SERVICE_HEADERS)

    assert res.status_code == 200
    assert res.json()["status"] == "empty"
    assert res.json()["processed"] == 0


def test_reset_failed_route(client, db):
    enqueue_claims(db, "acc-1", [{"id": 1}])
    item = db.query(ClaimsQueueItem).one()
    item.status = "failed"
    db.commit()

    res = client.post("/api/v1/claims-queue/reset-failed", headers=SERVICE_HEADERS, json={"integration_account_ids": ["acc-1"]})

    assert res.status_code == 200
    assert res.json()["reset"] == 1


def test_health(client):
    assert client.get("/api/v1/health").json() == {"status": "ok"}
