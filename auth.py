"""Credential checking and bearer-token sessions."""

from __future__ import annotations

import hashlib
import hmac
import logging
import secrets
from typing import Optional

from store import JournalStore

logger = logging.getLogger(__name__)

_ITERATIONS = 200_000


def hash_password(password: str, salt: Optional[bytes] = None) -> str:
    salt = salt or secrets.token_bytes(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, _ITERATIONS)
    return f"pbkdf2_sha256${_ITERATIONS}${salt.hex()}${digest.hex()}"


def verify_password(password: str, encoded: str) -> bool:
    try:
        _, iterations, salt_hex, digest_hex = encoded.split("$")
        digest = hashlib.pbkdf2_hmac(
            "sha256", password.encode("utf-8"), bytes.fromhex(salt_hex), int(iterations)
        )
    except ValueError:
        return False
    return hmac.compare_digest(digest.hex(), digest_hex)


class AuthProvider:
    def __init__(self, store: JournalStore) -> None:
        self._store = store

    def register(self, email: str, password: str) -> str:
        """Create a user and return its id; DuplicateUserError if taken."""
        user_id = self._store.create_user(email.strip().lower(), hash_password(password))
        logger.info("Registered user %s", user_id)
        return user_id

    def login(self, email: str, password: str) -> Optional[tuple[str, str]]:
        """Return ``(token, user_id)`` or None when the credentials are wrong."""
        user = self._store.find_user_by_email(email.strip().lower())
        if user is None or not verify_password(password, user["password_hash"]):
            return None
        token = secrets.token_urlsafe(32)
        self._store.create_session(user["id"], token)
        return token, user["id"]

    def logout(self, token: str) -> None:
        self._store.delete_session(token)

    def authenticate(self, authorization: Optional[str]) -> Optional[str]:
        """Resolve an ``Authorization: Bearer`` header to a user id."""
        if not authorization:
            return None
        scheme, _, token = authorization.partition(" ")
        if scheme.lower() != "bearer" or not token.strip():
            return None
        return self._store.user_for_token(token.strip())
