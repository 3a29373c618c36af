"""Press-and-hold voice input control.

The control is toolkit neutral: a widget forwards its pointer, touch and key
gestures to ``press``/``release``/``leave``/``cancel`` and repaints from
``visual_state`` whenever ``on_change`` fires. Speech callbacks can arrive on
engine threads, so they are handed to ``dispatch`` first; a GUI passes a
function that re-posts onto its own thread.
"""

from __future__ import annotations

import logging
from collections import deque
from datetime import datetime
from typing import Callable, Iterator, Optional

from interfaces import CapabilityProvider
from models import ControlState, InputDevice
from speech_session import SpeechSessionController

logger = logging.getLogger(__name__)

Dispatch = Callable[[Callable[[], None]], None]


def _call_now(fn: Callable[[], None]) -> None:
    fn()


class DebugLog:
    """Append-only, timestamped diagnostic lines, keeping the newest ``limit``."""

    def __init__(self, limit: int = 50) -> None:
        self._lines: deque[str] = deque(maxlen=limit)

    def append(self, message: str) -> None:
        stamp = datetime.now().strftime("%H:%M:%S.%f")[:-3]
        self._lines.append(f"[{stamp}] {message}")

    def lines(self) -> list[str]:
        return list(self._lines)

    def clear(self) -> None:
        self._lines.clear()

    def __len__(self) -> int:
        return len(self._lines)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._lines))


class VoiceInputControl:
    def __init__(
        self,
        controller: SpeechSessionController,
        capabilities: CapabilityProvider,
        microphone_probe: Callable[[], bool],
        on_transcript: Callable[[str], None],
        on_change: Optional[Callable[[], None]] = None,
        on_error: Optional[Callable[[str], None]] = None,
        dispatch: Dispatch = _call_now,
        debug_limit: int = 50,
    ) -> None:
        self._controller = controller
        self._capabilities = capabilities
        self._microphone_probe = microphone_probe
        self._on_transcript = on_transcript
        self._on_change = on_change
        self._on_error = on_error
        self._dispatch = dispatch

        self._mounted = False
        self._microphone_available = False
        self._recording = False
        self.error_text = ""
        self.debug_log = DebugLog(debug_limit)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def mount(self) -> None:
        """Probe the microphone once; later calls reuse the answer."""
        if self._mounted:
            return
        try:
            available = bool(self._microphone_probe())
        except Exception as exc:
            self._debug(f"Microphone check failed: {exc!r}")
            available = False
        self._mounted = True
        self._microphone_available = available
        self._debug(f"Microphone available: {available}")
        self._changed()

    def unmount(self) -> None:
        if self._recording:
            self._end("control unmounted")
        self._mounted = False
        self._microphone_available = False

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def supported(self) -> bool:
        return self._capabilities.supports_recognition()

    @property
    def microphone_available(self) -> bool:
        return self._microphone_available

    @property
    def disabled(self) -> bool:
        return not self.supported or not self._microphone_available

    @property
    def recording(self) -> bool:
        return self._recording

    @property
    def visual_state(self) -> ControlState:
        if self.disabled:
            return ControlState.DISABLED
        if self._recording:
            return ControlState.RECORDING
        return ControlState.IDLE

    # ------------------------------------------------------------------
    # Gestures
    # ------------------------------------------------------------------

    def press(self, device: InputDevice = InputDevice.MOUSE) -> None:
        if self.disabled or self._recording:
            return
        self.error_text = ""
        self._debug(f"{device.value} press: starting recording")
        self._recording = True
        started = self._controller.start(
            on_result=self._handle_result,
            on_error=self._handle_error,
            on_debug=self._handle_debug,
        )
        if not started:
            self._recording = False
        self._changed()

    def release(self, device: InputDevice = InputDevice.MOUSE) -> None:
        self._end(f"{device.value} release")

    def leave(self) -> None:
        self._end("pointer left the control")

    def cancel(self) -> None:
        self._end("touch cancelled")

    def toggle(self) -> None:
        if self._recording:
            self._end("toggle")
        else:
            self.press(InputDevice.MOUSE)

    def _end(self, reason: str) -> None:
        if not self._recording:
            return
        self._debug(f"{reason}: stopping recording")
        self._recording = False
        self._controller.stop(on_debug=self._debug)
        self._changed()

    # ------------------------------------------------------------------
    # Speech callbacks
    # ------------------------------------------------------------------

    def _handle_result(self, text: str) -> None:
        self._dispatch(lambda: self._on_transcript(text))

    def _handle_error(self, code: str, message: str) -> None:
        def apply() -> None:
            logger.warning("Voice input error %s: %s", code, message)
            self.error_text = message
            self._debug(f"Error {code}: {message}")
            if self._recording:
                self._recording = False
                self._controller.stop(on_debug=self._debug)
            if self._on_error is not None:
                self._on_error(message)
            self._changed()

        self._dispatch(apply)

    def _handle_debug(self, message: str) -> None:
        self._dispatch(lambda: self._debug(message))

    def _debug(self, message: str) -> None:
        self.debug_log.append(message)

    def _changed(self) -> None:
        if self._on_change is not None:
            self._on_change()
