"""Tests for DashscopeSpeechEngine."""

from __future__ import annotations

import base64
import threading
from queue import Queue
from unittest.mock import MagicMock, patch

import pytest

from capabilities import HostCapabilities, HostEnvironment
from models import AudioFrame, EngineError, RecognitionErrorEvent, RecognitionResultEvent
from recognizer import DashscopeSpeechEngine, _error_code, _pcm_to_wav_base64
from speech_session import SpeechSessionController


# ---------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------

def _make_frame(n_samples: int = 1600) -> AudioFrame:
    return AudioFrame(pcm16_bytes=b"\x01\x00" * n_samples, sample_rate=16000, channels=1)


def _chunk(text: str, status_code: int = 200) -> dict:
    return {
        "status_code": status_code,
        "output": {"choices": [{"message": {"content": [{"text": text}]}}]},
    }


class FakeRecorder:
    """Feeds preloaded frames; stop() closes the stream with the sentinel."""

    def __init__(self, frames: list[AudioFrame] | None = None, close_after: bool = True) -> None:
        self.frames = frames or []
        self.close_after = close_after
        self.start_calls = 0
        self.stop_calls = 0
        self._queue: Queue[AudioFrame | None] | None = None

    def start(self, audio_queue: Queue[AudioFrame | None]) -> None:
        self.start_calls += 1
        self._queue = audio_queue
        for frame in self.frames:
            audio_queue.put(frame)
        if self.close_after:
            audio_queue.put(None)

    def stop(self) -> None:
        self.stop_calls += 1
        if self._queue is not None:
            self._queue.put(None)


class Events:
    def __init__(self, engine: DashscopeSpeechEngine) -> None:
        self.log: list[object] = []
        self.ended = threading.Event()
        self.started = threading.Event()
        engine.on_start = self._start
        engine.on_result = self.log.append
        engine.on_error = self.log.append
        engine.on_end = self.ended.set

    def _start(self) -> None:
        self.log.append("start")
        self.started.set()

    @property
    def results(self) -> list[RecognitionResultEvent]:
        return [e for e in self.log if isinstance(e, RecognitionResultEvent)]

    @property
    def errors(self) -> list[str]:
        return [e.error for e in self.log if isinstance(e, RecognitionErrorEvent)]

    def wait(self) -> None:
        assert self.ended.wait(3.0), "engine never ended"


# ---------------------------------------------------------------
# Helpers under test
# ---------------------------------------------------------------

def test_pcm_to_wav_base64_produces_wav() -> None:
    result = _pcm_to_wav_base64(b"\x00\x00" * 1600, sample_rate=16000, channels=1)
    assert base64.b64decode(result)[:4] == b"RIFF"


@pytest.mark.parametrize(
    "exc, code",
    [
        (ConnectionError("reset by peer"), EngineError.NETWORK.value),
        (TimeoutError(), EngineError.NETWORK.value),
        (RuntimeError("Read timed out"), EngineError.NETWORK.value),
        (RuntimeError("401 InvalidApiKey: Invalid API-key provided."), EngineError.SERVICE_NOT_ALLOWED.value),
        (RuntimeError("400 InvalidParameter: bad audio"), EngineError.RECOGNITION_FAILED.value),
    ],
)
def test_error_code_mapping(exc: Exception, code: str) -> None:
    assert _error_code(exc) == code


# ---------------------------------------------------------------
# Recognition
# ---------------------------------------------------------------

@patch("recognizer.dashscope")
def test_streams_interim_then_final(mock_ds: MagicMock) -> None:
    mock_ds.MultiModalConversation.call.return_value = iter([_chunk("good"), _chunk("good morning")])
    engine = DashscopeSpeechEngine(api_key="k", recorder=FakeRecorder([_make_frame()]))
    engine.interim_results = True
    events = Events(engine)

    engine.start()
    events.wait()

    assert events.log[0] == "start"
    assert [(r.results[0].transcript, r.results[0].is_final) for r in events.results] == [
        ("good", False),
        ("good morning", False),
        ("good morning", True),
    ]
    assert events.errors == []
    kwargs = mock_ds.MultiModalConversation.call.call_args.kwargs
    assert kwargs["api_key"] == "k"
    assert kwargs["asr_options"]["language"] == "en"
    assert kwargs["messages"][1]["content"][0]["audio"].startswith("data:audio/wav;base64,")


@patch("recognizer.dashscope")
def test_interim_results_suppressed_when_disabled(mock_ds: MagicMock) -> None:
    mock_ds.MultiModalConversation.call.return_value = iter([_chunk("one"), _chunk("one two")])
    engine = DashscopeSpeechEngine(api_key="k", recorder=FakeRecorder([_make_frame()]))
    events = Events(engine)

    engine.start()
    events.wait()

    assert [r.results[0].is_final for r in events.results] == [True]


@patch("recognizer.dashscope")
def test_network_failure_reports_network_error(mock_ds: MagicMock) -> None:
    mock_ds.MultiModalConversation.call.side_effect = ConnectionError("connection refused")
    engine = DashscopeSpeechEngine(api_key="k", recorder=FakeRecorder([_make_frame()]))
    events = Events(engine)

    engine.start()
    events.wait()

    assert events.errors == ["network"]
    assert events.results == []


@patch("recognizer.dashscope")
def test_error_status_chunk_is_reported(mock_ds: MagicMock) -> None:
    mock_ds.MultiModalConversation.call.return_value = iter([_chunk("", status_code=401)])
    engine = DashscopeSpeechEngine(api_key="k", recorder=FakeRecorder([_make_frame()]))
    events = Events(engine)

    engine.start()
    events.wait()

    assert events.errors == ["service-not-allowed"]


@patch("recognizer.dashscope")
def test_silence_reports_no_speech(mock_ds: MagicMock) -> None:
    mock_ds.MultiModalConversation.call.return_value = iter([_chunk("")])
    engine = DashscopeSpeechEngine(api_key="k", recorder=FakeRecorder([_make_frame()]))
    events = Events(engine)

    engine.start()
    events.wait()

    assert events.errors == ["no-speech"]


@patch("recognizer.dashscope")
def test_no_audio_skips_the_service(mock_ds: MagicMock) -> None:
    engine = DashscopeSpeechEngine(api_key="k", recorder=FakeRecorder([]))
    events = Events(engine)

    engine.start()
    events.wait()

    mock_ds.MultiModalConversation.call.assert_not_called()
    assert events.errors == ["no-speech"]


@patch("recognizer.dashscope", MagicMock())
@patch.dict("os.environ", {"DASHSCOPE_API_KEY": ""}, clear=False)
def test_missing_api_key_is_not_allowed() -> None:
    engine = DashscopeSpeechEngine(api_key="", recorder=FakeRecorder([_make_frame()]))
    events = Events(engine)

    engine.start()
    events.wait()

    assert events.errors == ["service-not-allowed"]


@patch("recognizer.dashscope", None)
def test_missing_sdk_is_not_allowed() -> None:
    engine = DashscopeSpeechEngine(api_key="k", recorder=FakeRecorder([_make_frame()]))
    events = Events(engine)

    engine.start()
    events.wait()

    assert events.errors == ["service-not-allowed"]


# ---------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------

@patch("recognizer.dashscope")
def test_stop_recognises_what_was_heard(mock_ds: MagicMock) -> None:
    mock_ds.MultiModalConversation.call.return_value = iter([_chunk("held")])
    recorder = FakeRecorder([_make_frame()], close_after=False)
    engine = DashscopeSpeechEngine(api_key="k", recorder=recorder)
    events = Events(engine)

    engine.start()
    assert events.started.wait(3.0)
    engine.stop()
    events.wait()

    assert [r.results[0].transcript for r in events.results] == ["held"]


@patch("recognizer.dashscope")
def test_abort_discards_audio(mock_ds: MagicMock) -> None:
    recorder = FakeRecorder([_make_frame()], close_after=False)
    engine = DashscopeSpeechEngine(api_key="k", recorder=recorder)
    events = Events(engine)

    engine.start()
    assert events.started.wait(3.0)
    engine.abort()
    events.wait()

    mock_ds.MultiModalConversation.call.assert_not_called()
    assert events.errors == ["aborted"]
    assert events.results == []


@patch("recognizer.dashscope")
def test_start_while_running_raises(mock_ds: MagicMock) -> None:
    engine = DashscopeSpeechEngine(api_key="k", recorder=FakeRecorder(close_after=False))
    events = Events(engine)
    engine.start()

    with pytest.raises(RuntimeError, match="already started"):
        engine.start()

    engine.abort()
    events.wait()


def test_recorder_open_failure_propagates_from_start() -> None:
    recorder = MagicMock()
    recorder.start.side_effect = PermissionError("microphone access denied")
    engine = DashscopeSpeechEngine(api_key="k", recorder=recorder)

    with pytest.raises(PermissionError):
        engine.start()


@patch("recognizer.dashscope")
def test_controller_receives_utterance_recognised_on_release(mock_ds: MagicMock) -> None:
    mock_ds.MultiModalConversation.call.return_value = iter([_chunk("held")])
    engines: list[DashscopeSpeechEngine] = []

    def factory() -> DashscopeSpeechEngine:
        engine = DashscopeSpeechEngine(api_key="k", recorder=FakeRecorder([_make_frame()], close_after=False))
        engines.append(engine)
        return engine

    host = HostEnvironment.from_url("http://localhost:8000", speech_recognition=factory)
    controller = SpeechSessionController(factory, HostCapabilities(host))
    results: list[str] = []
    received = threading.Event()

    def on_result(text: str) -> None:
        results.append(text)
        received.set()

    assert controller.start(on_result=on_result) is True
    assert engines[0].continuous is False
    controller.stop()

    assert received.wait(3.0), "utterance was never delivered"
    assert results == ["held"]
