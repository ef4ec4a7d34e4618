"""Orders/claims high-level APIs over a fake HTTP client (paging, date bounds, enrichment)."""

from __future__ import annotations
from typing import Any, Callable, Dict, List, Optional

import pytest

from app.integrations.mercadolivre.claims_api import MLClaimsAPI
from app.integrations.mercadolivre.errors import MLNotFoundError, MLServerError
from app.integrations.mercadolivre.orders_api import MLOrdersAPI, format_date_bound


class FakeHttp:
    def __init__(self, handler: Callable[[str, Dict[str, Any]], Any]):
        self.handler = handler
        self.calls: List[tuple] = []

    def get_json(self, path: str, params: Optional[Dict[str, Any]] = None, **kwargs) -> Any:
        self.calls.append((path, dict(params or {})))
        return self.handler(path, params or {})


def _orders_pages(total: int):
    def handler(path, params):
        offset = params["offset"]
        n = max(0, min(params["limit"], total - offset))
        return {"results": [{"id": offset + i} for i in range(n)], "paging": {"total": total}}
    return handler


def test_format_date_bound_expands_date_only_values():
    assert format_date_bound("2024-05-01", end_of_day=False) == "2024-05-01T00:00:00.000Z"
    assert format_date_bound("2024-05-01", end_of_day=True) == "2024-05-01T23:59:59.999Z"
    assert format_date_bound("2024-05-01T10:00:00-03:00", end_of_day=True) == "2024-05-01T10:00:00-03:00"
    assert format_date_bound(None, end_of_day=False) is None


def test_search_orders_pages_until_total():
    http = FakeHttp(_orders_pages(120))
    orders = MLOrdersAPI(http, page_size=50, max_pages=10).search_orders("123", "2024-05-01", "2024-05-07")

    assert len(orders) == 120
    assert [c[1]["offset"] for c in http.calls] == [0, 50, 100]
    first = http.calls[0][1]
    assert first["seller"] == "123"
    assert first["order.date_created.from"] == "2024-05-01T00:00:00.000Z"
    assert first["order.date_created.to"] == "2024-05-07T23:59:59.999Z"


def test_search_orders_stops_at_max_pages():
    http = FakeHttp(_orders_pages(10_000))
    orders = MLOrdersAPI(http, page_size=50, max_pages=10).search_orders("123")

    assert len(orders) == 500
    assert len(http.calls) == 10


def test_search_orders_stops_on_empty_page():
    http = FakeHttp(lambda path, params: {"results": [], "paging": {"total": 99}})

    assert MLOrdersAPI(http, page_size=50).search_orders("123") == []
    assert len(http.calls) == 1


def test_search_claims_enriches_reasons_once_per_reason_id():
    def handler(path, params):
        if path.endswith("/claims/search"):
            return {
                "data": [{"id": 1, "reason_id": "PDD1"}, {"id": 2, "reason_id": "PDD1"}, {"id": 3}],
                "paging": {"total": 3},
            }
        if path.endswith("/reasons/PDD1"):
            return {"id": "PDD1", "name": "not as described"}
        raise AssertionError(path)

    http = FakeHttp(handler)
    claims = MLClaimsAPI(http, page_size=50).search_claims("555", "2024-05-01", None, status="opened")

    assert [c["reason"] for c in claims] == [
        {"id": "PDD1", "name": "not as described"},
        {"id": "PDD1", "name": "not as described"},
        None,
    ]
    reason_calls = [c for c in http.calls if "/reasons/" in c[0]]
    assert len(reason_calls) == 1
    search_params = http.calls[0][1]
    assert search_params["seller_id"] == "555"
    assert search_params["status"] == "opened"
    assert search_params["date_from"] == "2024-05-01T00:00:00.000Z"
    assert "date_to" not in search_params


def test_search_claims_reason_failure_is_skipped():
    def handler(path, params):
        if path.endswith("/claims/search"):
            return {"data": [{"id": 1, "reason_id": "X"}], "paging": {"total": 1}}
        raise MLServerError("down")

    claims = MLClaimsAPI(FakeHttp(handler)).search_claims("555")

    assert claims[0]["reason"] is None


def test_claim_detail_collects_sub_resources_best_effort():
    def handler(path, params):
        if path == "/post-purchase/v1/claims/77":
            return {"id": 77, "resource": "order", "resource_id": 9001, "reason_id": None}
        if path == "/orders/9001":
            return {"id": 9001, "total_amount": 150.0}
        if path.endswith("/messages"):
            raise MLServerError("boom")
        if path.endswith("/returns"):
            raise MLNotFoundError("no return")
        raise AssertionError(path)

    detail = MLClaimsAPI(FakeHttp(handler)).get_claim_detail("77")

    assert detail["id"] == 77
    assert detail["order_data"] == {"id": 9001, "total_amount": 150.0}
    assert detail["messages"] == []
    assert detail["returns"] is None


def test_claim_detail_missing_claim_raises_not_found():
    def handler(path, params):
        raise MLNotFoundError(path)

    with pytest.raises(MLNotFoundError):
        MLClaimsAPI(FakeHttp(handler)).get_claim_detail("404")
