"""Shared error codes, user-facing messages and exception types."""

from __future__ import annotations

UNSUPPORTED = "UNSUPPORTED"
INSECURE_CONTEXT = "INSECURE_CONTEXT"
NETWORK_LOCAL_DEV = "NETWORK_LOCAL_DEV"
NETWORK_ERROR = "NETWORK_ERROR"
NO_MICROPHONE = "NO_MICROPHONE"
PERMISSION_DENIED = "PERMISSION_DENIED"
MICROPHONE_BUSY = "MICROPHONE_BUSY"
START_FAILED = "START_FAILED"
ENGINE_ERROR = "ENGINE_ERROR"

ERROR_MESSAGES = {
    UNSUPPORTED: "Speech recognition is not supported in this environment.",
    INSECURE_CONTEXT: "Speech recognition requires HTTPS. Please use a secure connection.",
    NETWORK_LOCAL_DEV: (
        "Network error: Please use HTTPS or disable web security "
        "for local development."
    ),
    NETWORK_ERROR: "Network error: Please check your internet connection and try again.",
    NO_MICROPHONE: "No microphone was found or microphone is not working.",
    PERMISSION_DENIED: "Microphone permission was denied. Please allow microphone access.",
    MICROPHONE_BUSY: "Cannot access your microphone. Please check if another app is using it.",
    START_FAILED: "Failed to start speech recognition.",
    ENGINE_ERROR: "Speech recognition error: {code}",
}

NETWORK_RETRY_FAILED = "Network error in speech recognition (attempt {attempt}/{max_retries})"


def message_for(code: str, **kwargs: object) -> str:
    template = ERROR_MESSAGES.get(code, ERROR_MESSAGES[START_FAILED])
    return template.format(**kwargs) if kwargs else template


class MicrophoneNotFoundError(OSError):
    """No usable input device is present."""


class MicrophoneNotReadableError(OSError):
    """An input device exists but could not be opened."""


class EntryServiceError(Exception):
    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(f"{status_code}: {message}")
        self.status_code = status_code
        self.message = message
