# Request bodies + listing envelope shared by the unified orders/claims routes

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from app.services.ml_cache_service import CacheResult
from app.utils.clock import iso_z


class UnifiedListRequest(BaseModel):
    integration_account_ids: List[str] = Field(default_factory=list)
    date_from: Optional[str] = None       # "YYYY-MM-DD" or ISO timestamp
    date_to: Optional[str] = None
    force_refresh: bool = False
    offset: int = Field(0, ge=0)
    limit: int = Field(50, ge=1, le=500)


class ResetFailedRequest(BaseModel):
    integration_account_ids: Optional[List[str]] = None


'''
CacheResult -> response body
  - total is the size before paging; records are already newest first
  - per-account failures are reported under "warnings"
'''
def listing_response(result: CacheResult, key: str, offset: int, limit: int) -> Dict[str, Any]:
    page = result.records[offset:offset + limit]
    body: Dict[str, Any] = {
        "success": True,
        key: page,
        "total": result.total,
        "paging": {"total": result.total, "offset": offset, "limit": limit},
        "source": result.source,
        "cached_at": iso_z(result.cached_at),
        "expires_at": iso_z(result.expires_at),
    }
    if result.errors:
        body["warnings"] = result.errors
    return body
