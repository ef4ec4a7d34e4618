import pytest

from conftest import make_account
from app.services.secret_store import (
    SecretStoreError, decrypt_credentials, encrypt_credentials, load_credentials, store_credentials,
)


def test_blob_is_opaque_and_readable_back():
    blob = encrypt_credentials({"access_token": "abc", "refresh_token": "def"})

    assert "abc" not in blob
    assert decrypt_credentials(blob) == {"access_token": "abc", "refresh_token": "def"}


def test_wrong_key_cannot_decrypt():
    blob = encrypt_credentials({"access_token": "abc"}, secret="key-one")

    with pytest.raises(SecretStoreError):
        decrypt_credentials(blob, secret="key-two")


def test_empty_blob_rejected():
    with pytest.raises(SecretStoreError):
        decrypt_credentials("")


def test_store_merges_with_existing_credentials(db):
    account = make_account(db, credentials={"access_token": "a", "refresh_token": "r", "user_id": 9})

    store_credentials(db, account, {"access_token": "b"})
    db.refresh(account)

    assert load_credentials(account) == {"access_token": "b", "refresh_token": "r", "user_id": 9}


def test_account_without_credentials(db):
    account = make_account(db)
    account.encrypted_credentials = None

    with pytest.raises(SecretStoreError):
        load_credentials(account)
