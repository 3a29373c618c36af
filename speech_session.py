"""State-machine based speech recognition session management.

``SpeechSessionController`` owns at most one recognition engine at a time and
turns the engine's start/result/error/end callbacks into a small state machine
with bounded network retries. Engine callbacks may arrive on engine worker
threads; every transition runs under one re-entrant lock so they are handled
one at a time, in delivery order.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

from errors import (
    ENGINE_ERROR,
    INSECURE_CONTEXT,
    MICROPHONE_BUSY,
    NETWORK_ERROR,
    NETWORK_LOCAL_DEV,
    NETWORK_RETRY_FAILED,
    NO_MICROPHONE,
    PERMISSION_DENIED,
    START_FAILED,
    UNSUPPORTED,
    MicrophoneNotFoundError,
    MicrophoneNotReadableError,
    message_for,
)
from interfaces import CapabilityProvider, EngineFactory, RecognitionEngine, Timer, TimerFactory
from models import EngineError, RecognitionErrorEvent, RecognitionResultEvent, SessionState

logger = logging.getLogger(__name__)

ResultCallback = Callable[[str], None]
ErrorCallback = Callable[[str, str], None]
DebugCallback = Callable[[str], None]
StateCallback = Callable[[SessionState, SessionState], None]

DEFAULT_LANGUAGE = "en-US"
MAX_RETRIES = 3
RETRY_DELAY_S = 1.0


def _daemon_timer(interval: float, function: Callable[[], None]) -> Timer:
    timer = threading.Timer(interval, function)
    timer.daemon = True
    return timer


def final_transcript(event: RecognitionResultEvent) -> str:
    """Join the first alternative of every final result slot."""
    parts = [result.transcript for result in event.results if result.is_final]
    return " ".join(parts).strip()


def classify_start_error(exc: BaseException) -> str:
    if isinstance(exc, PermissionError):
        return PERMISSION_DENIED
    if isinstance(exc, (MicrophoneNotFoundError, FileNotFoundError)):
        return NO_MICROPHONE
    if isinstance(exc, MicrophoneNotReadableError):
        return MICROPHONE_BUSY
    return START_FAILED


class SpeechSessionController:
    def __init__(
        self,
        engine_factory: Optional[EngineFactory],
        capabilities: CapabilityProvider,
        language: str = DEFAULT_LANGUAGE,
        max_retries: int = MAX_RETRIES,
        retry_delay_s: float = RETRY_DELAY_S,
        timer_factory: TimerFactory = _daemon_timer,
        on_state_change: Optional[StateCallback] = None,
    ) -> None:
        self._engine_factory = engine_factory
        self._capabilities = capabilities
        self._language = language
        self._max_retries = max_retries
        self._retry_delay_s = retry_delay_s
        self._timer_factory = timer_factory
        self._on_state_change = on_state_change

        self._lock = threading.RLock()
        self._state = SessionState.IDLE
        self._engine: Optional[RecognitionEngine] = None
        self._retry_count = 0
        self._retry_timer: Optional[Timer] = None
        self._has_result = False
        # stopped engine still flushing audio it already heard
        self._draining: Optional[RecognitionEngine] = None
        self._draining_on_result: Optional[ResultCallback] = None

        self._on_result: Optional[ResultCallback] = None
        self._on_error: Optional[ErrorCallback] = None
        self._on_debug: Optional[DebugCallback] = None

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def retry_count(self) -> int:
        return self._retry_count

    @property
    def is_active(self) -> bool:
        return self._engine is not None

    @property
    def active_engine(self) -> Optional[RecognitionEngine]:
        return self._engine

    @property
    def retry_pending(self) -> bool:
        return self._retry_timer is not None

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    def start(
        self,
        on_result: ResultCallback,
        on_error: Optional[ErrorCallback] = None,
        on_debug: Optional[DebugCallback] = None,
    ) -> bool:
        with self._lock:
            if not self._capabilities.supports_recognition():
                self._debug("Speech recognition is not supported", on_debug)
                self._call(on_error, UNSUPPORTED, message_for(UNSUPPORTED))
                return False
            if not self._capabilities.is_secure_context():
                self._debug("Refusing to start outside a secure context", on_debug)
                self._call(on_error, INSECURE_CONTEXT, message_for(INSECURE_CONTEXT))
                return False

            if self._engine is not None:
                self._debug("Tearing down previous recognition session", on_debug)
                previous = self._engine
                self._engine = None
                self._teardown(previous, on_debug)
            self._drop_draining(on_debug)
            self._cancel_retry_timer()

            self._on_result = on_result
            self._on_error = on_error
            self._on_debug = on_debug
            self._has_result = False

            engine: Optional[RecognitionEngine] = None
            try:
                if self._engine_factory is None:
                    raise RuntimeError("no speech recognition engine is registered")
                engine = self._engine_factory()
                self._configure(engine)
                self._debug(
                    f"Created recognition session (lang={engine.lang}, "
                    f"continuous={engine.continuous}, interim={engine.interim_results})"
                )
                self._bind(engine)
                self._engine = engine
                self._transition(SessionState.STARTING)
                engine.start()
            except Exception as exc:
                self._debug(f"Error starting speech recognition: {exc!r}")
                self._engine = None
                if engine is not None:
                    self._safe_abort(engine)
                self._transition(SessionState.IDLE)
                code = classify_start_error(exc)
                self._emit_error(code, message_for(code))
                return False

            self._debug("Recording started successfully")
            return True

    def stop(self, on_debug: Optional[DebugCallback] = None) -> None:
        with self._lock:
            self._cancel_retry_timer()
            self._retry_count = 0
            engine = self._engine
            if engine is None:
                return
            self._transition(SessionState.STOPPING)
            try:
                engine.stop()
                self._debug("Stopped speech recognition", on_debug)
            except Exception as exc:
                self._debug(f"Error stopping recognition: {exc!r}", on_debug)
            finally:
                self._engine = None
                self._draining = engine
                self._draining_on_result = self._on_result
                self._transition(SessionState.IDLE)

    # ------------------------------------------------------------------
    # Engine event reactions
    # ------------------------------------------------------------------

    def _bind(self, engine: RecognitionEngine) -> None:
        engine.on_start = lambda: self._handle_start(engine)
        engine.on_result = lambda event: self._handle_result(engine, event)
        engine.on_error = lambda event: self._handle_error(engine, event)
        engine.on_end = lambda: self._handle_end(engine)

    def _handle_start(self, engine: RecognitionEngine) -> None:
        with self._lock:
            if engine is not self._engine:
                return
            self._debug("Speech recognition started")
            self._has_result = False
            self._cancel_retry_timer()
            self._transition(SessionState.LISTENING)

    def _handle_result(self, engine: RecognitionEngine, event: RecognitionResultEvent) -> None:
        with self._lock:
            if engine is self._draining:
                self._handle_drained_result(event)
                return
            if engine is not self._engine or not event.results:
                return
            text = final_transcript(event)
            if not text:
                return
            self._debug(f'Final transcript: "{text}"')
            self._has_result = True
            self._retry_count = 0
            self._call(self._on_result, text)

    def _handle_error(self, engine: RecognitionEngine, event: RecognitionErrorEvent) -> None:
        with self._lock:
            if engine is self._draining:
                self._debug(f"Ignoring {event.error} error after stop")
                return
            if engine is not self._engine:
                return
            code = event.error
            self._debug(f"Speech recognition error: {code}")

            if code == EngineError.NETWORK.value:
                self._handle_network_error(engine)
            elif code == EngineError.NO_SPEECH.value:
                self._debug("No speech detected")
            elif code == EngineError.ABORTED.value:
                self._debug("Speech recognition was aborted")
            elif code == EngineError.AUDIO_CAPTURE.value:
                self._fail(NO_MICROPHONE, message_for(NO_MICROPHONE))
            elif code == EngineError.NOT_ALLOWED.value:
                self._fail(PERMISSION_DENIED, message_for(PERMISSION_DENIED))
            else:
                self._fail(ENGINE_ERROR, message_for(ENGINE_ERROR, code=code))

    def _handle_network_error(self, engine: RecognitionEngine) -> None:
        if self._capabilities.is_local_development():
            self._fail(NETWORK_LOCAL_DEV, message_for(NETWORK_LOCAL_DEV))
            return

        self._retry_count += 1
        self._debug(f"Network error (attempt {self._retry_count}/{self._max_retries})")
        if self._retry_count < self._max_retries:
            self._debug("Waiting before retry...")
            self._schedule_retry(engine, self._retry_count)
            return

        self._retry_count = 0
        self._fail(NETWORK_ERROR, message_for(NETWORK_ERROR))

    def _handle_end(self, engine: RecognitionEngine) -> None:
        with self._lock:
            if engine is self._draining:
                self._draining = None
                self._draining_on_result = None
                self._debug("Stopped recognition session ended")
                return
            if engine is not self._engine:
                return
            self._debug("Speech recognition ended")
            if not self._has_result and self._retry_timer is None:
                self._debug("No results received in this session")

    def _handle_drained_result(self, event: RecognitionResultEvent) -> None:
        text = final_transcript(event)
        if not text:
            return
        self._debug(f'Final transcript after stop: "{text}"')
        self._call(self._draining_on_result, text)

    # ------------------------------------------------------------------
    # Retry
    # ------------------------------------------------------------------

    def _schedule_retry(self, engine: RecognitionEngine, attempt: int) -> None:
        self._cancel_retry_timer()

        def fire() -> None:
            self._retry(engine, attempt, timer)

        timer = self._timer_factory(self._retry_delay_s, fire)
        self._retry_timer = timer
        timer.start()

    def _retry(self, engine: RecognitionEngine, attempt: int, timer: Timer) -> None:
        with self._lock:
            if timer is not self._retry_timer:
                return
            self._retry_timer = None
            if engine is not self._engine:
                return
            self._safe_abort(engine)
            try:
                self._transition(SessionState.STARTING)
                engine.start()
            except Exception as exc:
                self._debug(f"Failed to restart after network error: {exc!r}")
                self._fail(
                    NETWORK_ERROR,
                    NETWORK_RETRY_FAILED.format(attempt=attempt, max_retries=self._max_retries),
                )
                return
            self._debug("Restarted recognition after network error")

    def _cancel_retry_timer(self) -> None:
        timer = self._retry_timer
        self._retry_timer = None
        if timer is not None:
            timer.cancel()

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _configure(self, engine: RecognitionEngine) -> None:
        engine.lang = self._language
        if self._capabilities.is_local_development():
            # Continuous mode is unreliable on loopback hosts.
            engine.continuous = False
            engine.interim_results = False
        else:
            engine.continuous = True
            engine.interim_results = True
        engine.max_alternatives = 1

    def _fail(self, code: str, message: str) -> None:
        engine = self._engine
        self._transition(SessionState.ERRORING)
        self._emit_error(code, message)
        self._cancel_retry_timer()
        if self._engine is engine:
            self._engine = None
        if engine is not None and self._draining is engine:
            self._draining = None
            self._draining_on_result = None
        if engine is not None:
            self._safe_abort(engine)
        if self._engine is None:
            self._transition(SessionState.IDLE)

    def _emit_error(self, code: str, message: str) -> None:
        self._debug(f"Reporting error {code}: {message}")
        self._call(self._on_error, code, message)

    def _teardown(self, engine: RecognitionEngine, on_debug: Optional[DebugCallback]) -> None:
        try:
            engine.stop()
            engine.abort()
        except Exception as exc:
            self._debug(f"Ignoring error during cleanup: {exc!r}", on_debug)

    def _drop_draining(self, on_debug: Optional[DebugCallback] = None) -> None:
        engine = self._draining
        if engine is None:
            return
        self._draining = None
        self._draining_on_result = None
        self._debug("Discarding pending results of the stopped session", on_debug)
        self._safe_abort(engine)

    def _safe_abort(self, engine: RecognitionEngine) -> None:
        try:
            engine.abort()
        except Exception as exc:
            self._debug(f"Ignoring error during abort: {exc!r}")

    def _debug(self, message: str, on_debug: Optional[DebugCallback] = None) -> None:
        logger.debug(message)
        callback = on_debug or self._on_debug
        if callback is None:
            return
        try:
            callback(message)
        except Exception:
            logger.exception("Debug callback failed")

    def _call(self, callback: Optional[Callable[..., None]], *args: str) -> None:
        if callback is None:
            return
        try:
            callback(*args)
        except Exception:
            logger.exception("Speech session callback failed")

    def _transition(self, to_state: SessionState) -> None:
        from_state = self._state
        if from_state == to_state:
            return
        self._state = to_state
        logger.debug("Speech session %s -> %s", from_state.value, to_state.value)
        if self._on_state_change is None:
            return
        try:
            self._on_state_change(from_state, to_state)
        except Exception:
            logger.exception("State change callback failed")
