"""Fakes shared by the speech session and voice input tests."""

from __future__ import annotations

from typing import Callable, Optional

from models import (
    RecognitionAlternative,
    RecognitionErrorEvent,
    RecognitionResult,
    RecognitionResultEvent,
)


class FakeEngine:
    def __init__(self) -> None:
        self.lang = ""
        self.continuous: Optional[bool] = None
        self.interim_results: Optional[bool] = None
        self.max_alternatives = 0
        self.on_start = None
        self.on_result = None
        self.on_error = None
        self.on_end = None
        self.start_calls = 0
        self.stop_calls = 0
        self.abort_calls = 0
        self.start_error: Optional[Exception] = None
        self.stop_error: Optional[Exception] = None

    def start(self) -> None:
        self.start_calls += 1
        if self.start_error is not None:
            raise self.start_error

    def stop(self) -> None:
        self.stop_calls += 1
        if self.stop_error is not None:
            raise self.stop_error

    def abort(self) -> None:
        self.abort_calls += 1

    def emit_start(self) -> None:
        self.on_start()

    def emit_result(self, *slots: tuple[str, bool]) -> None:
        results = [
            RecognitionResult(alternatives=[RecognitionAlternative(text)], is_final=final)
            for text, final in slots
        ]
        self.on_result(RecognitionResultEvent(results=results))

    def emit_error(self, code: str) -> None:
        self.on_error(RecognitionErrorEvent(error=code))

    def emit_end(self) -> None:
        self.on_end()


class FakeEngineFactory:
    def __init__(
        self, error: Optional[Exception] = None, start_error: Optional[Exception] = None
    ) -> None:
        self.engines: list[FakeEngine] = []
        self.error = error
        self.start_error = start_error

    def __call__(self) -> FakeEngine:
        if self.error is not None:
            raise self.error
        engine = FakeEngine()
        engine.start_error = self.start_error
        self.engines.append(engine)
        return engine


class FakeTimer:
    def __init__(self, interval: float, function: Callable[[], None]) -> None:
        self.interval = interval
        self.function = function
        self.started = False
        self.cancelled = False

    def start(self) -> None:
        self.started = True

    def cancel(self) -> None:
        self.cancelled = True

    def fire(self) -> None:
        if not self.cancelled:
            self.function()


class FakeTimers:
    def __init__(self) -> None:
        self.created: list[FakeTimer] = []

    def __call__(self, interval: float, function: Callable[[], None]) -> FakeTimer:
        timer = FakeTimer(interval, function)
        self.created.append(timer)
        return timer


class FakeCapabilities:
    def __init__(self, supported: bool = True, secure: bool = True, local: bool = False) -> None:
        self.supported = supported
        self.secure = secure
        self.local = local

    def supports_recognition(self) -> bool:
        return self.supported

    def is_secure_context(self) -> bool:
        return self.secure

    def is_local_development(self) -> bool:
        return self.local
