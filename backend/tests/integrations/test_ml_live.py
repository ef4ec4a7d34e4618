"""
Live MercadoLibre smoke checks (read only).
Enable with: ML_LIVE_ACCESS_TOKEN=... ML_LIVE_SELLER_ID=... pytest -m integration
"""

from __future__ import annotations
import os

import pytest

from app.integrations.mercadolivre import MLClaimsAPI, MLHttpClient, MLOrdersAPI

pytestmark = pytest.mark.integration

ACCESS_TOKEN = os.getenv("ML_LIVE_ACCESS_TOKEN")
SELLER_ID = os.getenv("ML_LIVE_SELLER_ID")


@pytest.fixture()
def http():
    if not ACCESS_TOKEN or not SELLER_ID:
        pytest.skip("set ML_LIVE_ACCESS_TOKEN and ML_LIVE_SELLER_ID to run live checks")
    client = MLHttpClient(token_provider=lambda force: ACCESS_TOKEN)
    yield client
    client.close()


def test_live_orders_first_page(http):
    orders = MLOrdersAPI(http, page_size=5, max_pages=1).search_orders(SELLER_ID)

    assert isinstance(orders, list)
    assert all("id" in o for o in orders)


def test_live_claims_first_page(http):
    claims = MLClaimsAPI(http, page_size=5, max_pages=1).search_claims(SELLER_ID)

    assert isinstance(claims, list)
    assert all("reason" in c for c in claims)
