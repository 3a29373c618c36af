"""Core data models for the journal app."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Sequence


class SessionState(str, Enum):
    IDLE = "IDLE"
    STARTING = "STARTING"
    LISTENING = "LISTENING"
    STOPPING = "STOPPING"
    ERRORING = "ERRORING"


class ControlState(str, Enum):
    DISABLED = "DISABLED"
    IDLE = "IDLE"
    RECORDING = "RECORDING"


class InputDevice(str, Enum):
    MOUSE = "mouse"
    TOUCH = "touch"
    KEYBOARD = "keyboard"


class EngineError(str, Enum):
    """Error codes a speech engine reports through ``on_error``."""

    NETWORK = "network"
    NO_SPEECH = "no-speech"
    AUDIO_CAPTURE = "audio-capture"
    NOT_ALLOWED = "not-allowed"
    ABORTED = "aborted"
    SERVICE_NOT_ALLOWED = "service-not-allowed"
    RECOGNITION_FAILED = "recognition-failed"


@dataclass
class AudioFrame:
    pcm16_bytes: bytes
    sample_rate: int = 16000
    channels: int = 1
    timestamp_ms: int = 0


@dataclass
class RecognitionAlternative:
    transcript: str
    confidence: float = 0.0


@dataclass
class RecognitionResult:
    alternatives: list[RecognitionAlternative] = field(default_factory=list)
    is_final: bool = False

    @property
    def transcript(self) -> str:
        if not self.alternatives:
            return ""
        return self.alternatives[0].transcript


@dataclass
class RecognitionResultEvent:
    results: Sequence[RecognitionResult] = ()


@dataclass
class RecognitionErrorEvent:
    error: str
    message: str = ""


@dataclass
class JournalEntry:
    id: str
    content: str
    user_id: str
    created_at: str
    updated_at: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> "JournalEntry":
        return cls(
            id=str(data["id"]),
            content=str(data.get("content", "")),
            user_id=str(data.get("user_id", "")),
            created_at=str(data.get("created_at", "")),
            updated_at=str(data.get("updated_at") or ""),
        )
