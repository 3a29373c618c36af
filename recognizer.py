"""Speech recognition engine backed by DashScope qwen3-asr-flash.

``DashscopeSpeechEngine`` exposes the same surface as a browser recognition
object: ``lang``/``continuous``/``interim_results``/``max_alternatives``
settings, ``on_start``/``on_result``/``on_error``/``on_end`` callbacks and
``start``/``stop``/``abort`` primitives.

Microphone audio is collected on a worker thread. The model takes complete
clips, so in continuous mode the audio is cut into segments of ``segment_s``
seconds and each segment is recognised while dictation goes on; otherwise the
whole utterance is recognised once ``stop()`` is called. Streamed chunks are
reported as interim results, the finished segment as a final one. Each result
event carries the slot of the segment being recognised.
"""

from __future__ import annotations

import base64
import io
import logging
import os
import threading
import time
import wave
from queue import Empty, Queue
from typing import Callable, Optional

from interfaces import Recorder
from models import (
    AudioFrame,
    EngineError,
    RecognitionAlternative,
    RecognitionErrorEvent,
    RecognitionResult,
    RecognitionResultEvent,
)
from recorder import SoundDeviceRecorder

try:
    import dashscope
except Exception:  # pragma: no cover
    dashscope = None  # type: ignore

logger = logging.getLogger(__name__)


def _pcm_to_wav_base64(
    pcm: bytes,
    sample_rate: int = 16000,
    channels: int = 1,
    sample_width: int = 2,
) -> str:
    """Convert raw PCM bytes to a base64-encoded WAV data URI payload."""
    buf = io.BytesIO()
    with wave.open(buf, "wb") as wf:
        wf.setnchannels(channels)
        wf.setsampwidth(sample_width)
        wf.setframerate(sample_rate)
        wf.writeframes(pcm)
    return base64.b64encode(buf.getvalue()).decode("ascii")


def _error_code(exc: Exception) -> str:
    """Map an SDK/network exception to an engine error code."""
    if isinstance(exc, (ConnectionError, TimeoutError)):
        return EngineError.NETWORK.value
    low = str(exc).lower()
    if "401" in low or "403" in low or "auth" in low or "api key" in low:
        return EngineError.SERVICE_NOT_ALLOWED.value
    if "timeout" in low or "timed out" in low or "network" in low or "connection" in low:
        return EngineError.NETWORK.value
    return EngineError.RECOGNITION_FAILED.value


class _Run:
    """One start()..end lifetime of the engine."""

    def __init__(self, queue_maxsize: int) -> None:
        self.audio_queue: Queue[AudioFrame | None] = Queue(maxsize=queue_maxsize)
        self.aborted = threading.Event()
        self.thread: Optional[threading.Thread] = None


class DashscopeSpeechEngine:
    def __init__(
        self,
        api_key: str = "",
        recorder: Optional[Recorder] = None,
        model: str = "qwen3-asr-flash",
        request_timeout_s: float = 10.0,
        segment_s: float = 6.0,
        queue_maxsize: int = 600,
    ) -> None:
        self.lang = "en-US"
        self.continuous = False
        self.interim_results = False
        self.max_alternatives = 1

        self.on_start: Optional[Callable[[], None]] = None
        self.on_result: Optional[Callable[[RecognitionResultEvent], None]] = None
        self.on_error: Optional[Callable[[RecognitionErrorEvent], None]] = None
        self.on_end: Optional[Callable[[], None]] = None

        self._api_key = api_key
        self._recorder = recorder or SoundDeviceRecorder()
        self._model = model
        self._request_timeout_s = request_timeout_s
        self._segment_s = segment_s
        self._queue_maxsize = queue_maxsize
        self._lock = threading.Lock()
        self._run: Optional[_Run] = None

    def start(self) -> None:
        with self._lock:
            run = self._run
            if run is not None and not run.aborted.is_set() and run.thread and run.thread.is_alive():
                raise RuntimeError("recognition has already started")
            run = _Run(self._queue_maxsize)
            self._recorder.start(run.audio_queue)
            run.thread = threading.Thread(target=self._worker, args=(run,), daemon=True)
            self._run = run
            run.thread.start()

    def stop(self) -> None:
        """Stop capturing; audio already heard is still recognised."""
        self._recorder.stop()

    def abort(self) -> None:
        """Stop capturing and drop any pending recognition."""
        with self._lock:
            run = self._run
            if run is not None:
                run.aborted.set()
        self._recorder.stop()

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _worker(self, run: _Run) -> None:
        self._emit(self.on_start)
        heard_any = False
        pcm = bytearray()
        sample_rate = 16000
        channels = 1
        segment_started = time.monotonic()

        while not run.aborted.is_set():
            try:
                frame = run.audio_queue.get(timeout=0.2)
            except Empty:
                frame = AudioFrame(pcm16_bytes=b"")
            if frame is None:
                break
            if frame.pcm16_bytes:
                pcm.extend(frame.pcm16_bytes)
                sample_rate = frame.sample_rate
                channels = frame.channels
            if self.continuous and pcm and time.monotonic() - segment_started >= self._segment_s:
                outcome = self._recognize_segment(run, bytes(pcm), sample_rate, channels)
                if outcome is None:
                    self._finish(run)
                    return
                heard_any = heard_any or outcome
                pcm.clear()
                segment_started = time.monotonic()

        if not run.aborted.is_set() and pcm:
            outcome = self._recognize_segment(run, bytes(pcm), sample_rate, channels)
            if outcome is None:
                self._finish(run)
                return
            heard_any = heard_any or outcome

        if run.aborted.is_set():
            self._emit_error(EngineError.ABORTED.value, "recognition aborted")
        elif not heard_any:
            self._emit_error(EngineError.NO_SPEECH.value, "no speech was detected")
        self._finish(run)

    def _finish(self, run: _Run) -> None:
        if not run.aborted.is_set():
            self._recorder.stop()
        self._emit(self.on_end)

    def _recognize_segment(
        self, run: _Run, pcm: bytes, sample_rate: int, channels: int
    ) -> Optional[bool]:
        """Recognise one clip.

        Returns True when text was recognised, False when the clip was silent
        or the run was aborted, and None after reporting an error.
        """
        if dashscope is None:
            self._emit_error(EngineError.SERVICE_NOT_ALLOWED.value, "dashscope is not installed")
            return None
        api_key = self._api_key or os.getenv("DASHSCOPE_API_KEY", "")
        if not api_key:
            self._emit_error(EngineError.SERVICE_NOT_ALLOWED.value, "No API key configured")
            return None

        wav_base64 = _pcm_to_wav_base64(pcm, sample_rate, channels)
        latest_text = ""
        try:
            response = dashscope.MultiModalConversation.call(
                api_key=api_key,
                model=self._model,
                messages=[
                    {"role": "system", "content": [{"text": ""}]},
                    {"role": "user", "content": [{"audio": f"data:audio/wav;base64,{wav_base64}"}]},
                ],
                result_format="message",
                asr_options={"enable_itn": False, "language": self.lang.split("-")[0]},
                stream=True,
                timeout=self._request_timeout_s,
            )
            for chunk in response:
                if run.aborted.is_set():
                    return False
                self._raise_for_status(chunk)
                text = self._extract_text(chunk)
                if text:
                    latest_text = text
                    if self.interim_results:
                        self._emit_result(text, is_final=False)
        except Exception as exc:
            logger.warning("DashScope recognition failed: %s", exc)
            self._emit_error(_error_code(exc), str(exc))
            return None

        latest_text = latest_text.strip()
        if not latest_text:
            return False
        self._emit_result(latest_text, is_final=True)
        return True

    @staticmethod
    def _raise_for_status(chunk: object) -> None:
        if not isinstance(chunk, dict):
            return
        status = chunk.get("status_code")
        if status in (None, 200):
            return
        raise RuntimeError(f"{status} {chunk.get('code', '')}: {chunk.get('message', '')}".strip())

    @staticmethod
    def _extract_text(chunk: object) -> str:
        """Pull text from a dashscope streaming chunk dict."""
        if not isinstance(chunk, dict):
            return ""
        output = chunk.get("output") or {}
        choices = output.get("choices") or []
        if not choices:
            return ""
        content = (choices[0].get("message") or {}).get("content") or []
        if not content or not isinstance(content[0], dict):
            return ""
        return str(content[0].get("text", ""))

    def _emit_result(self, text: str, is_final: bool) -> None:
        slot = RecognitionResult(
            alternatives=[RecognitionAlternative(transcript=text)],
            is_final=is_final,
        )
        self._emit(self.on_result, RecognitionResultEvent(results=[slot]))

    def _emit_error(self, code: str, message: str) -> None:
        self._emit(self.on_error, RecognitionErrorEvent(error=code, message=message))

    def _emit(self, callback: Optional[Callable[..., None]], *args: object) -> None:
        if callback is None:
            return
        try:
            callback(*args)
        except Exception:
            logger.exception("Speech engine callback failed")
