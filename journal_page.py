"""Journal page state: composing buffer, entry list and in-place editing."""

from __future__ import annotations

import logging
from typing import Optional

from errors import EntryServiceError
from interfaces import EntryService
from models import JournalEntry

logger = logging.getLogger(__name__)

EMPTY_CONTENT = "Please enter some content for your journal entry"
SAVE_FAILED = "Failed to save journal entry. Please try again."
LOAD_FAILED = "Failed to load journal entries."
UPDATE_FAILED = "Failed to update journal entry. Please try again."
VOICE_FAILED = "Voice recognition failed. Please try again."


class JournalPage:
    def __init__(self, entries: EntryService) -> None:
        self._entries = entries
        self.content = ""
        self.error = ""
        self.items: list[JournalEntry] = []
        self.editing_id: Optional[str] = None
        self.draft = ""

    # ------------------------------------------------------------------
    # Composing
    # ------------------------------------------------------------------

    def append_transcript(self, text: str) -> None:
        text = text.strip()
        if not text:
            return
        self.content = f"{self.content} {text}" if self.content.strip() else text

    def submit(self) -> Optional[JournalEntry]:
        self.error = ""
        if not self.content.strip():
            self.error = EMPTY_CONTENT
            return None
        try:
            entry = self._entries.create_entry(self.content)
        except EntryServiceError as exc:
            logger.warning("Creating entry failed: %s", exc)
            self.error = SAVE_FAILED
            return None
        self.content = ""
        self.refresh()
        return entry

    def refresh(self) -> None:
        try:
            self.items = self._entries.list_entries()
        except EntryServiceError as exc:
            logger.warning("Listing entries failed: %s", exc)
            self.error = LOAD_FAILED

    def report_voice_error(self, message: str) -> None:
        logger.info("Voice input reported: %s", message)
        self.error = f"{VOICE_FAILED} ({message})" if message else VOICE_FAILED

    # ------------------------------------------------------------------
    # Edit in place
    # ------------------------------------------------------------------

    def begin_edit(self, entry_id: str) -> None:
        entry = self._find(entry_id)
        if entry is None:
            raise KeyError(entry_id)
        self.editing_id = entry.id
        self.draft = entry.content

    def cancel_edit(self) -> None:
        self.editing_id = None
        self.draft = ""

    def save_edit(self) -> Optional[JournalEntry]:
        if self.editing_id is None:
            return None
        self.error = ""
        if not self.draft.strip():
            self.error = EMPTY_CONTENT
            return None
        try:
            updated = self._entries.update_entry(self.editing_id, self.draft)
        except EntryServiceError as exc:
            logger.warning("Updating entry %s failed: %s", self.editing_id, exc)
            self.error = UPDATE_FAILED
            return None
        self.items = [updated if e.id == updated.id else e for e in self.items]
        self.cancel_edit()
        return updated

    def _find(self, entry_id: str) -> Optional[JournalEntry]:
        for entry in self.items:
            if entry.id == entry_id:
                return entry
        return None
