"""
Access-token management for one MercadoLibre account
  - reads credentials from the secret store;
  - refreshes via POST /oauth/token (grant_type=refresh_token) when the token is
    within ML_TOKEN_REFRESH_MARGIN_SEC of expiry, or when forced after a 401;
  - writes refreshed credentials back and keeps integration_accounts.token_status current.
"""
from __future__ import annotations
import logging, requests
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional
from urllib.parse import urljoin

from sqlalchemy.orm import Session

from app.core.config import settings
from app.db.model.integration import IntegrationAccount
from app.integrations.mercadolivre.errors import MLAuthError
from app.services.secret_store import SecretStoreError, load_credentials, store_credentials
from app.utils.clock import now_utc, to_naive_utc, iso_z

logger = logging.getLogger(__name__)

TOKEN_STATUS_ACTIVE = "active"
TOKEN_STATUS_REFRESH_FAILED = "refresh_failed"
DEFAULT_EXPIRES_IN_SEC = 21600  # MercadoLibre access tokens live 6h


class MLTokenManager:
    """Hands out a valid access token for one account; usable as an MLHttpClient token provider."""

    def __init__(
        self,
        db: Session,
        account: IntegrationAccount,
        session: Optional[requests.Session] = None,
        clock: Callable[[], datetime] = now_utc,
    ) -> None:
        self.db = db
        self.account = account
        self._session = session or requests.Session()
        self._clock = clock
        self._credentials: Optional[Dict[str, Any]] = None


    def __call__(self, force: bool = False) -> str:
        return self.get_token(force=force)


    def get_token(self, force: bool = False) -> str:
        creds = self._load()
        access_token = creds.get("access_token")
        if not force and access_token and not self._expiring(creds):
            return access_token

        if not creds.get("refresh_token"):
            if access_token and not force:
                logger.warning("Account %s token near expiry and no refresh_token; using it as is.", self.account.id)
                return access_token
            raise MLAuthError(f"account {self.account.id}: no refresh_token available")

        return self._refresh(creds)


    @property
    def seller_id(self) -> str:
        """External seller id: account_identifier, else the user_id stored with the token."""
        if self.account.account_identifier:
            return str(self.account.account_identifier)
        user_id = self._load().get("user_id")
        if not user_id:
            raise MLAuthError(f"account {self.account.id}: seller id unknown")
        return str(user_id)


    # ---------- Internals ----------
    def _load(self) -> Dict[str, Any]:
        if self._credentials is None:
            try:
                self._credentials = load_credentials(self.account)
            except SecretStoreError as e:
                raise MLAuthError(f"account {self.account.id}: {e}") from e
        return self._credentials


    def _expiring(self, creds: Dict[str, Any]) -> bool:
        expires_at = _parse_expiry(creds.get("expires_at"))
        if expires_at is None:
            return False
        margin = timedelta(seconds=settings.ML_TOKEN_REFRESH_MARGIN_SEC)
        return self._clock() + margin >= expires_at


    def _refresh(self, creds: Dict[str, Any]) -> str:
        url = urljoin(settings.ML_API_BASE_URL.rstrip("/") + "/", "oauth/token")
        secret = settings.ML_CLIENT_SECRET.get_secret_value() if settings.ML_CLIENT_SECRET else ""
        body = {
            "grant_type": "refresh_token",
            "client_id": settings.ML_CLIENT_ID or "",
            "client_secret": secret,
            "refresh_token": creds["refresh_token"],
        }
        headers = {"Accept": "application/json", "Content-Type": "application/x-www-form-urlencoded"}

        try:
            resp = self._session.post(
                url, data=body, headers=headers,
                timeout=(settings.ML_CONNECT_TIMEOUT, settings.ML_READ_TIMEOUT),
            )
            if resp.status_code >= 400:
                raise MLAuthError(f"/oauth/token failed: {resp.status_code} {(resp.text or '')[:300]}")
            data = resp.json()
        except (requests.RequestException, ValueError) as e:
            self._mark(TOKEN_STATUS_REFRESH_FAILED)
            raise MLAuthError(f"/oauth/token error: {e}") from e
        except MLAuthError:
            self._mark(TOKEN_STATUS_REFRESH_FAILED)
            raise

        access_token = data.get("access_token") if isinstance(data, dict) else None
        if not access_token:
            self._mark(TOKEN_STATUS_REFRESH_FAILED)
            raise MLAuthError("/oauth/token response without access_token")

        expires_in = data.get("expires_in") or DEFAULT_EXPIRES_IN_SEC
        new_creds = {
            "access_token": access_token,
            "refresh_token": data.get("refresh_token") or creds["refresh_token"],
            "expires_at": iso_z(self._clock() + timedelta(seconds=float(expires_in))),
        }
        self.account.token_status = TOKEN_STATUS_ACTIVE
        store_credentials(self.db, self.account, new_creds)   # commits token_status too
        self._credentials = {**creds, **new_creds}
        logger.info("ML token refreshed for account %s; expires at %s", self.account.id, new_creds["expires_at"])
        return access_token


    def _mark(self, status: str) -> None:
        self.account.token_status = status
        self.db.add(self.account)
        self.db.commit()
        logger.warning("ML token refresh failed for account %s", self.account.id)


def _parse_expiry(value: Any) -> Optional[datetime]:
    """expires_at may be an ISO string (with or without Z) or epoch seconds."""
    if value in (None, ""):
        return None
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(float(value), tz=timezone.utc).replace(tzinfo=None)
    try:
        return to_naive_utc(datetime.fromisoformat(str(value).replace("Z", "+00:00")))
    except ValueError:
        logger.warning("Unparseable expires_at=%r; treating token as expiring.", value)
        return datetime.min
