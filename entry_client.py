"""HTTP client for the journal entry service."""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from errors import EntryServiceError
from models import JournalEntry

logger = logging.getLogger(__name__)


def describe_auth_error(exc: EntryServiceError) -> str:
    if exc.status_code == 401:
        return "Invalid email or password."
    if exc.status_code == 409:
        return "An account with this email already exists."
    if exc.status_code == 0:
        return f"Server unavailable: {exc.message}"
    return f"Sign in failed: {exc.message}"


class HttpEntryClient:
    def __init__(
        self,
        base_url: str,
        token: str = "",
        timeout_s: float = 10.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self._token = token
        self._client = httpx.Client(
            base_url=base_url.rstrip("/"),
            timeout=timeout_s,
            transport=transport,
        )

    @property
    def token(self) -> str:
        return self._token

    def close(self) -> None:
        self._client.close()

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    def register(self, email: str, password: str) -> dict:
        return self._request("POST", "/auth/register", json={"email": email, "password": password})

    def login(self, email: str, password: str) -> str:
        data = self._request("POST", "/auth/login", json={"email": email, "password": password})
        self._token = str(data["token"])
        return self._token

    def sign_in(self, email: str, password: str, create_account: bool = False) -> str:
        """Log in, registering first only when the caller asked for a new account."""
        if create_account:
            self.register(email, password)
        return self.login(email, password)

    # ------------------------------------------------------------------
    # Entries
    # ------------------------------------------------------------------

    def list_entries(self) -> list[JournalEntry]:
        data = self._request("GET", "/journal/entries")
        return [JournalEntry.from_dict(item) for item in data]

    def create_entry(self, content: str) -> JournalEntry:
        data = self._request("POST", "/journal/entries", json={"content": content})
        return JournalEntry.from_dict(data)

    def update_entry(self, entry_id: str, content: str) -> JournalEntry:
        data = self._request("PUT", f"/journal/entries/{entry_id}", json={"content": content})
        return JournalEntry.from_dict(data)

    def _request(self, method: str, path: str, json: Optional[dict] = None) -> Any:
        headers = {"Authorization": f"Bearer {self._token}"} if self._token else {}
        try:
            response = self._client.request(method, path, json=json, headers=headers)
        except httpx.HTTPError as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            raise EntryServiceError(0, str(exc)) from exc
        if response.status_code >= 400:
            raise EntryServiceError(response.status_code, self._detail(response))
        return response.json()

    @staticmethod
    def _detail(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.text or response.reason_phrase
        if isinstance(body, dict):
            return str(body.get("detail") or body.get("message") or body)
        return str(body)
