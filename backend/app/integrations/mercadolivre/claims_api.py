"""
MercadoLibre claims (post-purchase) high-level API
   - search: /post-purchase/v1/claims/search paged by offset/limit ("data" + "paging"),
     each claim enriched with its reason (one lookup per reason_id per call);
   - detail: the claim plus best-effort order / messages / returns sub-resources.
"""
from __future__ import annotations
import logging
from typing import Any, Dict, List, Optional

from app.core.config import settings
from app.integrations.mercadolivre.errors import MLError, MLNotFoundError, MLPayloadError
from app.integrations.mercadolivre.http_client import MLHttpClient
from app.integrations.mercadolivre.orders_api import DateBound, format_date_bound

logger = logging.getLogger(__name__)

CLAIMS_SEARCH_PATH = "/post-purchase/v1/claims/search"
CLAIM_PATH = "/post-purchase/v1/claims/{claim_id}"
CLAIM_REASON_PATH = "/post-purchase/v1/claims/reasons/{reason_id}"
CLAIM_MESSAGES_PATH = "/post-purchase/v1/claims/{claim_id}/messages"
CLAIM_RETURNS_PATH = "/post-purchase/v2/claims/{claim_id}/returns"
ORDER_PATH = "/orders/{order_id}"


class MLClaimsAPI:

    def __init__(self, http: MLHttpClient, page_size: Optional[int] = None, max_pages: Optional[int] = None) -> None:
        self.http = http
        self.page_size = page_size or settings.ML_CLAIMS_PAGE_SIZE
        self.max_pages = max_pages or settings.ML_CLAIMS_MAX_PAGES


    # ---------- search ----------
    def search_claims(
        self,
        seller_id: str,
        date_from: DateBound = None,
        date_to: DateBound = None,
        status: Optional[str] = None,
        claim_type: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """All claims of one seller in the window; each carries a "reason" key (dict or None)."""
        params: Dict[str, Any] = {"seller_id": seller_id, "limit": self.page_size}
        lo = format_date_bound(date_from, end_of_day=False)
        hi = format_date_bound(date_to, end_of_day=True)
        if lo:
            params["date_from"] = lo
        if hi:
            params["date_to"] = hi
        if status:
            params["status"] = status
        if claim_type:
            params["type"] = claim_type

        claims: List[Dict[str, Any]] = []
        offset = 0
        for page in range(self.max_pages):
            params["offset"] = offset
            payload = self.http.get_json(CLAIMS_SEARCH_PATH, params=dict(params))
            if not isinstance(payload, dict):
                raise MLPayloadError(f"claims search: unexpected payload type {type(payload).__name__}")

            data = payload.get("data") or []
            claims.extend(c for c in data if isinstance(c, dict))
            total = int((payload.get("paging") or {}).get("total") or 0)
            offset += len(data)

            if not data or offset >= total:
                break
        else:
            logger.warning("claims search for seller %s stopped at max_pages=%s (%s claims)", seller_id, self.max_pages, len(claims))

        reasons: Dict[str, Optional[Dict[str, Any]]] = {}
        for claim in claims:
            claim["reason"] = self._reason(claim.get("reason_id"), reasons)

        logger.info("claims search seller=%s from=%s to=%s -> %s claims", seller_id, lo, hi, len(claims))
        return claims


    # ---------- detail ----------
    '''
    Full detail of one claim
      - the claim itself missing -> MLNotFoundError
      - order / messages / returns are best effort: failures are logged, left empty
    '''
    def get_claim_detail(self, claim_id: str) -> Dict[str, Any]:
        claim = self.http.get_json(CLAIM_PATH.format(claim_id=claim_id))
        if not isinstance(claim, dict) or not claim.get("id"):
            raise MLNotFoundError(f"claim {claim_id} not found")

        detail = dict(claim)
        detail["reason"] = self._reason(claim.get("reason_id"), {})

        order_data = None
        if claim.get("resource") in (None, "order") and claim.get("resource_id"):
            order_data = self._optional(ORDER_PATH.format(order_id=claim["resource_id"]), claim_id, "order")
        detail["order_data"] = order_data

        messages = self._optional(CLAIM_MESSAGES_PATH.format(claim_id=claim_id), claim_id, "messages")
        if isinstance(messages, dict):
            messages = messages.get("messages") or messages.get("data") or []
        detail["messages"] = messages if isinstance(messages, list) else []

        detail["returns"] = self._optional(CLAIM_RETURNS_PATH.format(claim_id=claim_id), claim_id, "returns")
        return detail


    # ---------- Helpers ----------
    def _reason(self, reason_id: Any, cache: Dict[str, Optional[Dict[str, Any]]]) -> Optional[Dict[str, Any]]:
        if not reason_id:
            return None
        key = str(reason_id)
        if key not in cache:
            try:
                data = self.http.get_json(CLAIM_REASON_PATH.format(reason_id=key))
                cache[key] = data if isinstance(data, dict) else None
            except MLError as e:
                logger.warning("claim reason %s lookup failed: %s", key, e)
                cache[key] = None
        return cache[key]


    def _optional(self, path: str, claim_id: str, what: str) -> Any:
        try:
            return self.http.get_json(path)
        except MLNotFoundError:
            return None
        except MLError as e:
            logger.warning("claim %s: %s lookup failed: %s", claim_id, what, e)
            return None
