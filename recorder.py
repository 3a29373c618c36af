"""Microphone capture and input device enumeration."""

from __future__ import annotations

import logging
import threading
import time
from queue import Empty, Full, Queue
from typing import Any, Optional

from errors import MicrophoneNotFoundError, MicrophoneNotReadableError
from models import AudioFrame

try:
    import numpy as np
except Exception:  # pragma: no cover
    np = None  # type: ignore

try:
    import sounddevice as sd
except Exception:  # pragma: no cover
    sd = None  # type: ignore

logger = logging.getLogger(__name__)


def list_input_devices() -> list[dict]:
    if sd is None:
        raise RuntimeError("sounddevice is not installed")
    devices = sd.query_devices()
    return [dict(d) for d in devices if int(d.get("max_input_channels", 0)) > 0]


def probe_microphone() -> bool:
    """Return True when at least one input device can be enumerated.

    Enumeration failures count as "no microphone" rather than errors.
    """
    try:
        return bool(list_input_devices())
    except Exception as exc:
        logger.info("Microphone enumeration failed: %s", exc)
        return False


def _open_error(exc: Exception) -> OSError:
    low = str(exc).lower()
    if "permission" in low or "not authorized" in low:
        return PermissionError(str(exc))
    if "no default input device" in low or "invalid device" in low or "no device" in low:
        return MicrophoneNotFoundError(str(exc))
    return MicrophoneNotReadableError(str(exc))


class SoundDeviceRecorder:
    def __init__(
        self,
        sample_rate: int = 16000,
        channels: int = 1,
        chunk_ms: int = 100,
        device: Optional[str] = None,
    ) -> None:
        self.sample_rate = sample_rate
        self.channels = channels
        self.chunk_ms = chunk_ms
        self.device = device
        self._stream: Any = None
        self._running = False
        self._lock = threading.Lock()
        self.dropped_chunks = 0
        self._audio_queue: Queue[AudioFrame | None] | None = None

    @property
    def running(self) -> bool:
        return self._running

    def start(self, audio_queue: Queue[AudioFrame | None]) -> None:
        with self._lock:
            if self._running:
                return
            if sd is None:
                raise RuntimeError("sounddevice is not installed")
            self._audio_queue = audio_queue
            blocksize = int(self.sample_rate * (self.chunk_ms / 1000.0))
            try:
                self._stream = sd.InputStream(
                    samplerate=self.sample_rate,
                    channels=self.channels,
                    dtype="int16",
                    blocksize=blocksize,
                    device=self.device,
                    callback=self._on_audio,
                )
                self._stream.start()
            except sd.PortAudioError as exc:
                self._stream = None
                raise _open_error(exc) from exc
            self._running = True

    def stop(self) -> None:
        """Close the stream and end the consumer's queue with a ``None`` sentinel.

        Safe to call repeatedly; every call posts a sentinel so a consumer that
        is still waiting always wakes up.
        """
        with self._lock:
            stream, self._stream = self._stream, None
            self._running = False
            if stream is not None:
                try:
                    stream.stop()
                    stream.close()
                except Exception as exc:
                    logger.warning("Closing input stream failed: %s", exc)
            self._close_queue()

    def _on_audio(self, indata: Any, frames: int, time_info: Any, status: Any) -> None:
        queue = self._audio_queue
        if not self._running or queue is None or np is None:
            return
        if status:
            logger.debug("Input stream status: %s", status)
        frame = AudioFrame(
            pcm16_bytes=np.asarray(indata, dtype=np.int16).tobytes(),
            sample_rate=self.sample_rate,
            channels=self.channels,
            timestamp_ms=int(time.time() * 1000),
        )
        try:
            queue.put_nowait(frame)
        except Full:
            self.dropped_chunks += 1

    def _close_queue(self) -> None:
        queue = self._audio_queue
        if queue is None:
            return
        # a full queue must still receive the sentinel; the oldest frame gives way
        while True:
            try:
                queue.put_nowait(None)
                return
            except Full:
                try:
                    queue.get_nowait()
                    self.dropped_chunks += 1
                except Empty:
                    pass
