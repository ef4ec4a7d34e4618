import hmac
from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.security import bearer_value, decode_token
from app.db.session import get_db
from app.repository import integration_repo
from app.services.ml_cache_service import MLCacheService


'''
Caller identity from "Authorization: Bearer <user jwt>"
  - no header -> 401; bad/expired token or no "sub" -> 401
'''
def get_current_user_id(authorization: Optional[str] = Header(None)) -> str:
    if not authorization:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="No authorization header")
    token = bearer_value(authorization)
    payload = decode_token(token) if token else None
    sub = (payload or {}).get("sub")
    if not sub:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or expired token")
    return str(sub)


def get_current_organization(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> str:
    org_id = integration_repo.get_organization_id(db, user_id)
    if not org_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="User has no organization")
    return org_id


'''
Cron/admin routes: bearer must equal SERVICE_ROLE_KEY
  - key not configured -> 500 (refuse rather than run unauthenticated)
'''
def require_service_token(authorization: Optional[str] = Header(None)) -> None:
    if settings.SERVICE_ROLE_KEY is None or not settings.SERVICE_ROLE_KEY.get_secret_value():
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="service role key not configured")
    token = bearer_value(authorization)
    expected = settings.SERVICE_ROLE_KEY.get_secret_value()
    if not token or not hmac.compare_digest(token.encode(), expected.encode()):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid service token")


_cache_service = MLCacheService()


def get_cache_service() -> MLCacheService:
    return _cache_service
