"""Protocol interfaces used across the journal app."""

from __future__ import annotations

from queue import Queue
from typing import Callable, Optional, Protocol

from models import (
    AudioFrame,
    JournalEntry,
    RecognitionErrorEvent,
    RecognitionResultEvent,
)


class RecognitionEngine(Protocol):
    lang: str
    continuous: bool
    interim_results: bool
    max_alternatives: int

    on_start: Optional[Callable[[], None]]
    on_result: Optional[Callable[[RecognitionResultEvent], None]]
    on_error: Optional[Callable[[RecognitionErrorEvent], None]]
    on_end: Optional[Callable[[], None]]

    def start(self) -> None: ...

    def stop(self) -> None: ...

    def abort(self) -> None: ...


EngineFactory = Callable[[], RecognitionEngine]


class CapabilityProvider(Protocol):
    def supports_recognition(self) -> bool: ...

    def is_secure_context(self) -> bool: ...

    def is_local_development(self) -> bool: ...


class Timer(Protocol):
    def start(self) -> None: ...

    def cancel(self) -> None: ...


TimerFactory = Callable[[float, Callable[[], None]], Timer]


class Recorder(Protocol):
    def start(self, audio_queue: Queue[AudioFrame | None]) -> None: ...

    def stop(self) -> None: ...


class EntryService(Protocol):
    def list_entries(self) -> list[JournalEntry]: ...

    def create_entry(self, content: str) -> JournalEntry: ...

    def update_entry(self, entry_id: str, content: str) -> JournalEntry: ...


class ConfigStore(Protocol):
    def get_api_key(self) -> str: ...

    def set_api_key(self, key: str) -> None: ...

    def get_hotkey(self) -> str: ...

    def set_hotkey(self, hotkey: str) -> None: ...

    def get_server_url(self) -> str: ...

    def get_token(self) -> str: ...

    def set_token(self, token: str) -> None: ...
