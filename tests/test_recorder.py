"""Tests for SoundDeviceRecorder and microphone probing."""

from __future__ import annotations

from queue import Queue
from unittest.mock import MagicMock, patch

import pytest

import recorder as rec_mod
from errors import MicrophoneNotFoundError, MicrophoneNotReadableError
from models import AudioFrame
from recorder import SoundDeviceRecorder, list_input_devices, probe_microphone


class _FakeNp:
    """Minimal numpy stand-in so recorder._on_audio doesn't bail."""

    int16 = "int16"

    @staticmethod
    def asarray(data, dtype=None):  # noqa: ANN001, ANN205
        return data


class _FakeAudioInput:
    def __init__(self, n_samples: int = 1600) -> None:
        self._data = b"\x00\x00" * n_samples

    def tobytes(self) -> bytes:
        return self._data


class _PortAudioError(Exception):
    pass


# ---------------------------------------------------------------
# Device enumeration
# ---------------------------------------------------------------

@patch("recorder.sd")
def test_list_input_devices_keeps_inputs_only(mock_sd: MagicMock) -> None:
    mock_sd.query_devices.return_value = [
        {"name": "Built-in Mic", "max_input_channels": 1},
        {"name": "Speakers", "max_input_channels": 0},
        {"name": "USB Headset", "max_input_channels": 2},
    ]

    names = [d["name"] for d in list_input_devices()]

    assert names == ["Built-in Mic", "USB Headset"]


@patch("recorder.sd")
def test_probe_microphone(mock_sd: MagicMock) -> None:
    mock_sd.query_devices.return_value = [{"name": "Mic", "max_input_channels": 1}]
    assert probe_microphone() is True

    mock_sd.query_devices.return_value = [{"name": "Speakers", "max_input_channels": 0}]
    assert probe_microphone() is False


@patch("recorder.sd")
def test_probe_failure_counts_as_no_microphone(mock_sd: MagicMock) -> None:
    mock_sd.query_devices.side_effect = RuntimeError("PortAudio not initialized")
    assert probe_microphone() is False


def test_probe_without_sounddevice(monkeypatch) -> None:  # noqa: ANN001
    monkeypatch.setattr(rec_mod, "sd", None)
    assert probe_microphone() is False


# ---------------------------------------------------------------
# Start / stop
# ---------------------------------------------------------------

@patch("recorder.sd")
def test_start_creates_stream_and_stop_emits_sentinel(mock_sd: MagicMock) -> None:
    mock_stream = MagicMock()
    mock_sd.InputStream.return_value = mock_stream

    recorder = SoundDeviceRecorder()
    q: Queue[AudioFrame | None] = Queue()
    recorder.start(q)

    mock_sd.InputStream.assert_called_once()
    assert mock_sd.InputStream.call_args.kwargs["blocksize"] == 1600
    mock_stream.start.assert_called_once()
    assert recorder.running is True

    recorder.stop()
    mock_stream.stop.assert_called_once()
    mock_stream.close.assert_called_once()
    assert recorder.running is False
    assert q.get_nowait() is None


@patch("recorder.sd")
def test_start_and_stop_are_idempotent(mock_sd: MagicMock) -> None:
    mock_sd.InputStream.return_value = MagicMock()

    recorder = SoundDeviceRecorder()
    q: Queue[AudioFrame | None] = Queue()
    recorder.start(q)
    recorder.start(q)
    recorder.stop()
    recorder.stop()

    assert mock_sd.InputStream.call_count == 1
    assert q.get_nowait() is None


@pytest.mark.parametrize(
    "message, expected",
    [
        ("Permission denied by the system", PermissionError),
        ("Error querying device -1: no default input device", MicrophoneNotFoundError),
        ("Invalid device [PaErrorCode -9996]", MicrophoneNotFoundError),
        ("Device unavailable [PaErrorCode -9985]", MicrophoneNotReadableError),
    ],
)
@patch("recorder.sd")
def test_open_failures_are_classified(mock_sd: MagicMock, message: str, expected: type) -> None:
    mock_sd.PortAudioError = _PortAudioError
    mock_sd.InputStream.side_effect = _PortAudioError(message)

    recorder = SoundDeviceRecorder()
    with pytest.raises(expected):
        recorder.start(Queue())

    assert recorder.running is False


def test_start_raises_without_sounddevice(monkeypatch) -> None:  # noqa: ANN001
    monkeypatch.setattr(rec_mod, "sd", None)

    with pytest.raises(RuntimeError, match="sounddevice is not installed"):
        SoundDeviceRecorder().start(Queue())


# ---------------------------------------------------------------
# Audio callback
# ---------------------------------------------------------------

@patch("recorder.np", _FakeNp())
@patch("recorder.sd")
def test_callback_pushes_audio_frames(mock_sd: MagicMock) -> None:
    mock_sd.InputStream.return_value = MagicMock()

    recorder = SoundDeviceRecorder(sample_rate=16000, channels=1, chunk_ms=100)
    q: Queue[AudioFrame | None] = Queue(maxsize=50)
    recorder.start(q)

    recorder._on_audio(_FakeAudioInput(1600), frames=1600, time_info=None, status=None)

    frame = q.get_nowait()
    assert isinstance(frame, AudioFrame)
    assert frame.sample_rate == 16000
    assert len(frame.pcm16_bytes) == 1600 * 2
    recorder.stop()


@patch("recorder.np", _FakeNp())
@patch("recorder.sd")
def test_queue_full_increments_dropped_chunks(mock_sd: MagicMock) -> None:
    mock_sd.InputStream.return_value = MagicMock()

    recorder = SoundDeviceRecorder()
    q: Queue[AudioFrame | None] = Queue(maxsize=1)
    recorder.start(q)

    recorder._on_audio(_FakeAudioInput(), frames=1600, time_info=None, status=None)
    recorder._on_audio(_FakeAudioInput(), frames=1600, time_info=None, status=None)

    assert recorder.dropped_chunks == 1
    recorder.stop()


@patch("recorder.np", _FakeNp())
@patch("recorder.sd")
def test_callback_after_stop_is_noop(mock_sd: MagicMock) -> None:
    mock_sd.InputStream.return_value = MagicMock()

    recorder = SoundDeviceRecorder()
    q: Queue[AudioFrame | None] = Queue()
    recorder.start(q)
    recorder.stop()
    q.get_nowait()

    recorder._on_audio(_FakeAudioInput(), frames=1600, time_info=None, status=None)
    assert q.empty()


@patch("recorder.np", _FakeNp())
@patch("recorder.sd")
def test_full_queue_still_receives_sentinel(mock_sd: MagicMock) -> None:
    mock_sd.InputStream.return_value = MagicMock()

    recorder = SoundDeviceRecorder()
    q: Queue[AudioFrame | None] = Queue(maxsize=1)
    recorder.start(q)
    recorder._on_audio(_FakeAudioInput(), frames=1600, time_info=None, status=None)

    recorder.stop()

    assert q.get_nowait() is None
    assert recorder.dropped_chunks == 1


@patch("recorder.sd")
def test_stream_close_failure_still_stops(mock_sd: MagicMock) -> None:
    stream = MagicMock()
    stream.close.side_effect = RuntimeError("device vanished")
    mock_sd.InputStream.return_value = stream

    recorder = SoundDeviceRecorder()
    q: Queue[AudioFrame | None] = Queue()
    recorder.start(q)
    recorder.stop()

    assert recorder.running is False
    assert q.get_nowait() is None
