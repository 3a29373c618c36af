"""Global push-to-talk key based on pynput."""

from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

from models import InputDevice

try:
    from pynput import keyboard
except Exception:  # pragma: no cover
    keyboard = None  # type: ignore

logger = logging.getLogger(__name__)

GestureCallback = Callable[[InputDevice], None]


class GlobalHotkeyAdapter:
    """Turns holding one key into a single press/release pair.

    Key auto-repeat delivers many presses while the key is held; only the
    first one is forwarded.
    """

    def __init__(self, hotkey_name: str = "Key.alt_r") -> None:
        self._hotkey_name = hotkey_name
        self._listener: Optional[object] = None
        self._pressed = False
        self._lock = threading.Lock()
        self._on_press: Optional[GestureCallback] = None
        self._on_release: Optional[GestureCallback] = None

    @property
    def hotkey_name(self) -> str:
        return self._hotkey_name

    def start(self, on_press: GestureCallback, on_release: GestureCallback) -> None:
        if keyboard is None:
            raise RuntimeError("pynput is not installed")
        self._on_press = on_press
        self._on_release = on_release
        self._listener = keyboard.Listener(on_press=self.handle_press, on_release=self.handle_release)
        self._listener.start()
        logger.info("Push-to-talk key bound to %s", self._hotkey_name)

    def stop(self) -> None:
        listener = self._listener
        if listener is not None:
            listener.stop()
            self._listener = None
        with self._lock:
            self._pressed = False

    def handle_press(self, key: object) -> None:
        if str(key) != self._hotkey_name or self._on_press is None:
            return
        with self._lock:
            if self._pressed:
                return
            self._pressed = True
        self._on_press(InputDevice.KEYBOARD)

    def handle_release(self, key: object) -> None:
        if str(key) != self._hotkey_name or self._on_release is None:
            return
        with self._lock:
            if not self._pressed:
                return
            self._pressed = False
        self._on_release(InputDevice.KEYBOARD)
