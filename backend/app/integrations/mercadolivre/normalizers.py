"""
Domain mapping (pure functions): MercadoLibre payloads -> stable internal projection.
The projection is stored next to the raw payload; bump NORMALIZED_SCHEMA_VERSION
whenever its shape changes so old rows can be told apart.
"""
from __future__ import annotations
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional

from app.utils.clock import iso_z, to_naive_utc

NORMALIZED_SCHEMA_VERSION = 1
DEFAULT_CURRENCY = "BRL"


"""
ML order -> projection
    - ids rendered as strings (seller/buyer ids do not fit JS numbers)
    - amounts as Decimal, dates as naive UTC datetimes
"""
def normalize_order(raw: Dict[str, Any]) -> Dict[str, Any]:
    buyer = raw.get("buyer") or {}
    shipping = raw.get("shipping") or {}
    items = raw.get("order_items") or []

    return {
        "schema_version": NORMALIZED_SCHEMA_VERSION,
        "order_id": _to_str(raw.get("id")),
        "status": raw.get("status"),
        "status_detail": raw.get("status_detail"),
        "date_created": parse_datetime(raw.get("date_created")),
        "date_closed": parse_datetime(raw.get("date_closed")),
        "last_updated": parse_datetime(raw.get("last_updated")),
        "total_amount": _to_decimal(raw.get("total_amount")),
        "paid_amount": _to_decimal(raw.get("paid_amount")),
        "currency_id": raw.get("currency_id") or DEFAULT_CURRENCY,
        "buyer_id": _to_str(buyer.get("id")),
        "buyer_nickname": buyer.get("nickname"),
        "pack_id": _to_str(raw.get("pack_id")),
        "shipping_id": _to_str(shipping.get("id")),
        "items_count": sum(_to_int(i.get("quantity")) or 0 for i in items if isinstance(i, dict)),
        "tags": list(raw.get("tags") or []),
    }


"""
ML claim (search result or detail) -> projection
    - column names match ml_claims
    - order_id is the claim's resource_id ("" when absent)
    - refund comes from the resolution, the claimed amount from claim_details
"""
def normalize_claim(raw: Dict[str, Any]) -> Dict[str, Any]:
    players = raw.get("players") or {}
    buyer = players.get("buyer") or {}
    details_amount = (raw.get("claim_details") or {}).get("amount") or {}
    resolution = raw.get("resolution") or {}
    order_data = raw.get("order_data") or {}
    reason = raw.get("reason") or {}

    total = _to_decimal(details_amount.get("value"))
    if total is None:
        total = _to_decimal(order_data.get("total_amount"))

    returns = raw.get("returns")
    if isinstance(returns, list):
        returns = returns[0] if returns else None

    return {
        "schema_version": NORMALIZED_SCHEMA_VERSION,
        "claim_id": _to_str(raw.get("id") or raw.get("claim_id")),
        "order_id": _to_str(raw.get("resource_id")) or "",
        "return_id": _to_str(returns.get("id")) if isinstance(returns, dict) else None,
        "status": raw.get("status"),
        "stage": raw.get("stage"),
        "claim_type": raw.get("type"),
        "reason_id": _to_str(raw.get("reason_id")),
        "reason_name": reason.get("name") or reason.get("reason_name"),
        "date_created": parse_datetime(raw.get("date_created")),
        "date_closed": parse_datetime(resolution.get("date_created") or raw.get("date_closed")),
        "last_updated": parse_datetime(raw.get("last_updated")),
        "total_amount": total,
        "refund_amount": _to_decimal((resolution.get("amount") or {}).get("value")),
        "currency_id": details_amount.get("currency_id") or order_data.get("currency_id") or DEFAULT_CURRENCY,
        "buyer_id": _to_str(buyer.get("id")),
        "buyer_nickname": buyer.get("nickname"),
    }


def as_json(projection: Dict[str, Any]) -> Dict[str, Any]:
    """Projection -> JSON-safe dict (Decimal -> str, datetime -> ISO Z) for the `normalized` column."""
    out: Dict[str, Any] = {}
    for key, value in projection.items():
        if isinstance(value, Decimal):
            out[key] = str(value)
        elif isinstance(value, datetime):
            out[key] = iso_z(value)
        else:
            out[key] = value
    return out


def parse_datetime(value: Any) -> Optional[datetime]:
    """ML timestamps ("2024-05-01T10:20:30.000-04:00") -> naive UTC; junk -> None."""
    if not value or not isinstance(value, str):
        return None
    text = value.strip().replace("Z", "+00:00")
    try:
        return to_naive_utc(datetime.fromisoformat(text))
    except ValueError:
        pass
    # older interpreters reject fractional seconds that are not 3 or 6 digits
    head, sep, tail = text.partition(".")
    if sep:
        digits = "".join(ch for ch in tail if ch.isdigit())
        zone = tail[len(digits):]
        try:
            return to_naive_utc(datetime.fromisoformat(f"{head}.{digits[:6].ljust(6, '0')}{zone}"))
        except ValueError:
            return None
    return None


# ---------- Helpers ----------
def _to_str(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value)


def _to_int(value: Any) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _to_decimal(value: Any, q: str = "0.01") -> Optional[Decimal]:
    if value is None or value == "":
        return None
    try:
        return Decimal(str(value)).quantize(Decimal(q))
    except (InvalidOperation, ValueError):
        return None
