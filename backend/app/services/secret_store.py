"""
Per-account credential store.
Credentials (access_token / refresh_token / expires_at ...) are kept as a Fernet
token in integration_accounts.encrypted_credentials; plaintext never touches the DB.
"""
from __future__ import annotations
import base64, hashlib, json, logging
from typing import Any, Dict, Optional

from cryptography.fernet import Fernet, InvalidToken
from sqlalchemy.orm import Session

from app.core.config import settings
from app.db.model.integration import IntegrationAccount

logger = logging.getLogger(__name__)


class SecretStoreError(Exception):
    """Credentials missing, key not configured, or blob cannot be decrypted."""


def _fernet(secret: Optional[str] = None) -> Fernet:
    """Derive a Fernet key (32 bytes, urlsafe base64) from APP_ENCRYPTION_KEY via SHA-256."""
    if secret is None and settings.APP_ENCRYPTION_KEY is not None:
        secret = settings.APP_ENCRYPTION_KEY.get_secret_value()
    if not secret:
        raise SecretStoreError("APP_ENCRYPTION_KEY not configured")
    key = hashlib.sha256(secret.encode()).digest()
    return Fernet(base64.urlsafe_b64encode(key))


def encrypt_credentials(payload: Dict[str, Any], secret: Optional[str] = None) -> str:
    raw = json.dumps(payload, separators=(",", ":"), default=str).encode()
    return _fernet(secret).encrypt(raw).decode()


def decrypt_credentials(token: str, secret: Optional[str] = None) -> Dict[str, Any]:
    if not token:
        raise SecretStoreError("empty credentials blob")
    try:
        raw = _fernet(secret).decrypt(token.encode())
    except InvalidToken as e:
        raise SecretStoreError("credentials blob cannot be decrypted") from e
    data = json.loads(raw)
    if not isinstance(data, dict):
        raise SecretStoreError("credentials blob is not an object")
    return data


# ---------- account level ----------
def load_credentials(account: IntegrationAccount) -> Dict[str, Any]:
    """Decrypted credentials of one account; SecretStoreError when there are none."""
    if not account.encrypted_credentials:
        raise SecretStoreError(f"no credentials stored for account {account.id}")
    return decrypt_credentials(account.encrypted_credentials)


'''
Replace the stored credentials of one account (e.g. after a token refresh)
  - opaque extra keys already stored are preserved unless overwritten
  - commits
'''
def store_credentials(db: Session, account: IntegrationAccount, payload: Dict[str, Any]) -> None:
    merged: Dict[str, Any] = {}
    if account.encrypted_credentials:
        try:
            merged = decrypt_credentials(account.encrypted_credentials)
        except SecretStoreError:
            logger.warning("Stored credentials of account %s unreadable; overwriting.", account.id)
    merged.update(payload)
    account.encrypted_credentials = encrypt_credentials(merged)
    db.add(account)
    db.commit()
