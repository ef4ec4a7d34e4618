"""
MercadoLibre orders high-level API
   - /orders/search paged by offset/limit until paging.total, an empty page,
     or ML_ORDERS_MAX_PAGES pages;
   - date-only bounds are widened to the whole day (UTC).
"""
from __future__ import annotations
import logging
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Union

from app.core.config import settings
from app.integrations.mercadolivre.errors import MLPayloadError
from app.integrations.mercadolivre.http_client import MLHttpClient
from app.utils.clock import iso_z

logger = logging.getLogger(__name__)

DateBound = Union[str, date, datetime, None]

ORDERS_SEARCH_PATH = "/orders/search"


class MLOrdersAPI:

    def __init__(self, http: MLHttpClient, page_size: Optional[int] = None, max_pages: Optional[int] = None) -> None:
        self.http = http
        self.page_size = page_size or settings.ML_ORDERS_PAGE_SIZE
        self.max_pages = max_pages or settings.ML_ORDERS_MAX_PAGES


    def search_orders(self, seller_id: str, date_from: DateBound = None, date_to: DateBound = None) -> List[Dict[str, Any]]:
        """All orders of one seller created inside [date_from, date_to]."""
        params: Dict[str, Any] = {"seller": seller_id, "sort": "date_desc", "limit": self.page_size}
        lo = format_date_bound(date_from, end_of_day=False)
        hi = format_date_bound(date_to, end_of_day=True)
        if lo:
            params["order.date_created.from"] = lo
        if hi:
            params["order.date_created.to"] = hi

        orders: List[Dict[str, Any]] = []
        offset = 0
        for page in range(self.max_pages):
            params["offset"] = offset
            payload = self.http.get_json(ORDERS_SEARCH_PATH, params=dict(params))
            if not isinstance(payload, dict):
                raise MLPayloadError(f"orders search: unexpected payload type {type(payload).__name__}")

            results = payload.get("results") or []
            orders.extend(r for r in results if isinstance(r, dict))
            total = int((payload.get("paging") or {}).get("total") or 0)
            offset += len(results)

            if not results or offset >= total:
                break
        else:
            logger.warning("orders search for seller %s stopped at max_pages=%s (%s orders)", seller_id, self.max_pages, len(orders))

        logger.info("orders search seller=%s from=%s to=%s -> %s orders", seller_id, lo, hi, len(orders))
        return orders


'''
Render a date bound the way the search endpoints expect it
  - "2024-05-01" -> "2024-05-01T00:00:00.000Z" (from) / "2024-05-01T23:59:59.999Z" (to)
  - datetime -> ISO with milliseconds + Z
  - any other string is passed through unchanged
'''
def format_date_bound(value: DateBound, end_of_day: bool) -> Optional[str]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return iso_z(value)
    if isinstance(value, date):
        value = value.isoformat()
    text = str(value).strip()
    if len(text) == 10 and text[4] == "-" and text[7] == "-":
        return text + ("T23:59:59.999Z" if end_of_day else "T00:00:00.000Z")
    return text
