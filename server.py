"""
FastAPI journal entry service: auth and /journal/entries CRUD over SQLite.
"""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from auth import AuthProvider
from config import ServerSettings
from models import JournalEntry
from store import DuplicateUserError, JournalStore

logger = logging.getLogger(__name__)


class Credentials(BaseModel):
    email: str = ""
    password: str = ""


class EntryBody(BaseModel):
    content: Optional[str] = None


class EntryOut(BaseModel):
    id: str
    content: str
    user_id: str
    created_at: str
    updated_at: str

    @classmethod
    def of(cls, entry: JournalEntry) -> "EntryOut":
        return cls(
            id=entry.id,
            content=entry.content,
            user_id=entry.user_id,
            created_at=entry.created_at,
            updated_at=entry.updated_at,
        )


def create_app(store: JournalStore) -> FastAPI:
    app = FastAPI(title="Voice Journal")
    auth = AuthProvider(store)
    app.state.store = store
    app.state.auth = auth

    def current_user(authorization: Optional[str] = Header(default=None)) -> str:
        user_id = auth.authenticate(authorization)
        if user_id is None:
            raise HTTPException(status_code=401, detail="Unauthorized")
        return user_id

    @app.exception_handler(Exception)
    async def internal_error(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("%s %s failed", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})

    @app.get("/health")
    def health() -> dict:
        return {"ok": True}

    # Auth
    @app.post("/auth/register", status_code=201)
    def register(body: Credentials) -> dict:
        if not body.email.strip() or not body.password:
            raise HTTPException(status_code=400, detail="Email and password are required")
        try:
            user_id = auth.register(body.email, body.password)
        except DuplicateUserError:
            raise HTTPException(status_code=409, detail="User already exists")
        return {"id": user_id, "email": body.email.strip().lower()}

    @app.post("/auth/login")
    def login(body: Credentials) -> dict:
        result = auth.login(body.email, body.password)
        if result is None:
            raise HTTPException(status_code=401, detail="Invalid email or password")
        token, user_id = result
        return {"token": token, "user_id": user_id}

    @app.post("/auth/logout")
    def logout(
        authorization: Optional[str] = Header(default=None),
        user_id: str = Depends(current_user),
    ) -> dict:
        auth.logout((authorization or "").partition(" ")[2].strip())
        return {"ok": True}

    # Journal entries
    @app.get("/journal/entries", response_model=list[EntryOut])
    def list_entries(user_id: str = Depends(current_user)) -> list[EntryOut]:
        return [EntryOut.of(e) for e in store.list_entries(user_id)]

    @app.post("/journal/entries", status_code=201, response_model=EntryOut)
    def create_entry(body: EntryBody, user_id: str = Depends(current_user)) -> EntryOut:
        if not body.content or not body.content.strip():
            raise HTTPException(status_code=400, detail="Content is required")
        entry = store.create_entry(user_id, body.content)
        logger.info("User %s created entry %s", user_id, entry.id)
        return EntryOut.of(entry)

    @app.put("/journal/entries/{entry_id}", response_model=EntryOut)
    def update_entry(
        entry_id: str, body: EntryBody, user_id: str = Depends(current_user)
    ) -> EntryOut:
        if not body.content:
            raise HTTPException(status_code=400, detail="Content is required")
        existing = store.get_entry(entry_id)
        if existing is None:
            raise HTTPException(status_code=404, detail="Entry not found")
        if existing.user_id != user_id:
            raise HTTPException(status_code=401, detail="Unauthorized")
        updated = store.update_entry(entry_id, body.content)
        if updated is None:
            raise HTTPException(status_code=404, detail="Entry not found")
        return EntryOut.of(updated)

    return app


def run() -> None:
    import uvicorn

    settings = ServerSettings.from_env()
    logging.basicConfig(level=settings.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    app = create_app(JournalStore(settings.db_path))
    uvicorn.run(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()
