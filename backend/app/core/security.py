from typing import Any, Optional

from jose import jwt, JWTError
from app.core.config import settings


'''
Inbound bearer tokens
  - user tokens are issued by the auth platform (HS256, "sub" = user id)
  - this service only verifies them, it never issues tokens
'''
def decode_token(token: str) -> Optional[dict[str, Any]]:
    options = {"verify_aud": bool(settings.JWT_AUDIENCE)}
    try:
        return jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM],
            audience=settings.JWT_AUDIENCE,
            options=options,
        )
    except JWTError:
        return None


def bearer_value(authorization: Optional[str]) -> Optional[str]:
    """'Bearer abc' -> 'abc'; anything else -> None."""
    if not authorization:
        return None
    scheme, _, value = authorization.partition(" ")
    if scheme.lower() != "bearer" or not value.strip():
        return None
    return value.strip()
