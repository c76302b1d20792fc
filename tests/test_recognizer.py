"""Tests for DashscopeRecognizerAdapter."""

from __future__ import annotations

import threading
import time
from typing import Callable
from unittest.mock import MagicMock, patch

import pytest

from models import AudioFrame, StreamingError, StreamingErrorKind, TranscriptEvent
from recognizer import DashscopeRecognizerAdapter


# ---------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------

def _make_frame(n_samples: int = 1600) -> AudioFrame:
    """Generate a silent AudioFrame (all zeros)."""
    return AudioFrame(
        pcm16_bytes=b"\x00\x00" * n_samples,
        sample_rate=16000,
        channels=1,
        timestamp_ms=0,
    )


def _wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> bool:
    deadline = time.time() + timeout
    while time.time() < deadline:
        if predicate():
            return True
        time.sleep(0.02)
    return predicate()


class _FakeResult:
    def __init__(self, sentence: dict) -> None:
        self._sentence = sentence

    def get_sentence(self) -> dict:
        return self._sentence


class _FakeErrorResult:
    def __init__(self, message: str) -> None:
        self.message = message


def _open(adapter: DashscopeRecognizerAdapter, **kwargs):  # noqa: ANN003, ANN202
    events: list[TranscriptEvent] = []
    errors: list[StreamingError] = []
    stream = adapter.open_stream(events.append, errors.append, **kwargs)
    return stream, events, errors


# ---------------------------------------------------------------
# Availability
# ---------------------------------------------------------------

@patch("recognizer.Recognition", MagicMock())
@patch.dict("os.environ", {"DASHSCOPE_API_KEY": ""}, clear=False)
def test_is_available_requires_api_key() -> None:
    assert DashscopeRecognizerAdapter(api_key="").is_available() is False
    assert DashscopeRecognizerAdapter(api_key="sk-test").is_available() is True
    assert DashscopeRecognizerAdapter(api_key=lambda: "sk-later").is_available() is True


@patch("recognizer.Recognition", None)
def test_is_unavailable_without_dashscope() -> None:
    adapter = DashscopeRecognizerAdapter(api_key="sk-test")
    assert adapter.is_available() is False
    assert adapter.supports_local_processing() is False
    with pytest.raises(RuntimeError, match="not installed"):
        _open(adapter)


@patch("recognizer.Recognition", MagicMock())
@patch.dict("os.environ", {"DASHSCOPE_API_KEY": ""}, clear=False)
def test_open_stream_without_api_key_raises() -> None:
    with pytest.raises(RuntimeError, match="No API key"):
        _open(DashscopeRecognizerAdapter(api_key=""))


# ---------------------------------------------------------------
# Streaming audio
# ---------------------------------------------------------------

@patch("recognizer.dashscope", MagicMock())
@patch("recognizer.Recognition")
def test_open_stream_starts_recognition_and_forwards_frames(mock_recognition: MagicMock) -> None:
    recognition = mock_recognition.return_value
    adapter = DashscopeRecognizerAdapter(api_key="sk-test")

    stream, _, _ = _open(adapter)
    frame = _make_frame()
    adapter.feed(stream, frame)

    kwargs = mock_recognition.call_args.kwargs
    assert kwargs["model"] == "paraformer-realtime-v2"
    assert kwargs["format"] == "pcm"
    assert kwargs["sample_rate"] == 16000
    recognition.start.assert_called_once()
    assert _wait_until(lambda: recognition.send_audio_frame.called)
    recognition.send_audio_frame.assert_called_with(frame.pcm16_bytes)

    adapter.close_stream(stream)
    assert _wait_until(lambda: recognition.stop.called)
    assert stream.cancelled is True


@patch("recognizer.dashscope", MagicMock())
@patch("recognizer.Recognition")
def test_feed_after_close_is_ignored(mock_recognition: MagicMock) -> None:
    recognition = mock_recognition.return_value
    adapter = DashscopeRecognizerAdapter(api_key="sk-test")
    stream, _, _ = _open(adapter)
    adapter.close_stream(stream)

    adapter.feed(stream, _make_frame())
    time.sleep(0.1)

    recognition.send_audio_frame.assert_not_called()


@patch("recognizer.dashscope", MagicMock())
@patch("recognizer.Recognition")
def test_full_queue_drops_frames(mock_recognition: MagicMock) -> None:
    release = threading.Event()
    recognition = mock_recognition.return_value
    recognition.send_audio_frame.side_effect = lambda data: release.wait(timeout=2.0)
    adapter = DashscopeRecognizerAdapter(api_key="sk-test", queue_maxsize=1)
    stream, _, _ = _open(adapter)

    for _ in range(3):
        adapter.feed(stream, _make_frame())

    assert stream.dropped_chunks >= 1
    release.set()
    adapter.close_stream(stream)


@patch("recognizer.dashscope", MagicMock())
@patch("recognizer.Recognition")
def test_send_failure_reports_provider_fault(mock_recognition: MagicMock) -> None:
    recognition = mock_recognition.return_value
    recognition.send_audio_frame.side_effect = ConnectionError("socket reset")
    adapter = DashscopeRecognizerAdapter(api_key="sk-test")
    stream, _, errors = _open(adapter)

    adapter.feed(stream, _make_frame())

    assert _wait_until(lambda: len(errors) == 1)
    assert errors[0].kind == StreamingErrorKind.PROVIDER_FAULT
    assert "socket reset" in errors[0].message
    adapter.close_stream(stream)


# ---------------------------------------------------------------
# Recognition callbacks
# ---------------------------------------------------------------

@patch("recognizer.dashscope", MagicMock())
@patch("recognizer.Recognition")
def test_sentences_accumulate_into_full_text(mock_recognition: MagicMock) -> None:
    adapter = DashscopeRecognizerAdapter(api_key="sk-test")
    stream, events, _ = _open(adapter)
    callback = mock_recognition.call_args.kwargs["callback"]

    callback.on_event(_FakeResult({"text": "Hello", "sentence_end": False}))
    callback.on_event(_FakeResult({"text": "Hello world.", "sentence_end": True}))
    callback.on_event(_FakeResult({"text": "How", "sentence_end": False}))
    callback.on_event(_FakeResult({"text": "How are you?", "end_time": 2400}))
    callback.on_complete()

    assert [e.text for e in events] == [
        "Hello",
        "Hello world.",
        "Hello world. How",
        "Hello world. How are you?",
        "Hello world. How are you?",
    ]
    assert [e.is_final for e in events] == [False, False, False, False, True]
    adapter.close_stream(stream)


@patch("recognizer.dashscope", MagicMock())
@patch("recognizer.Recognition")
def test_partial_results_can_be_disabled(mock_recognition: MagicMock) -> None:
    adapter = DashscopeRecognizerAdapter(api_key="sk-test")
    stream, events, _ = _open(adapter, partial_results=False)
    callback = mock_recognition.call_args.kwargs["callback"]

    callback.on_event(_FakeResult({"text": "Hello", "sentence_end": False}))
    callback.on_complete()

    assert events == [TranscriptEvent(text="Hello", is_final=True)]
    adapter.close_stream(stream)


@pytest.mark.parametrize(
    ("message", "kind"),
    [
        ("Request timeout after 23 seconds.", StreamingErrorKind.PROVIDER_TIMEOUT),
        ("NO_VALID_AUDIO_ERROR", StreamingErrorKind.PROVIDER_TIMEOUT),
        ("InternalError: server busy", StreamingErrorKind.PROVIDER_FAULT),
    ],
)
@patch("recognizer.dashscope", MagicMock())
@patch("recognizer.Recognition")
def test_provider_errors_are_classified(mock_recognition: MagicMock, message: str, kind: StreamingErrorKind) -> None:
    adapter = DashscopeRecognizerAdapter(api_key="sk-test")
    stream, _, errors = _open(adapter)
    callback = mock_recognition.call_args.kwargs["callback"]

    callback.on_error(_FakeErrorResult(message))

    assert errors == [StreamingError(kind, message)]
    adapter.close_stream(stream)


@patch("recognizer.dashscope", MagicMock())
@patch("recognizer.Recognition")
def test_callbacks_after_close_are_self_cancelled(mock_recognition: MagicMock) -> None:
    adapter = DashscopeRecognizerAdapter(api_key="sk-test")
    stream, events, errors = _open(adapter)
    callback = mock_recognition.call_args.kwargs["callback"]

    adapter.close_stream(stream)
    callback.on_event(_FakeResult({"text": "late", "sentence_end": False}))
    callback.on_complete()
    callback.on_error(_FakeErrorResult("Request timeout"))

    assert events == []
    assert [e.kind for e in errors] == [StreamingErrorKind.SELF_CANCELLED]


@patch("recognizer.dashscope", MagicMock())
@patch("recognizer.Recognition")
def test_each_stream_gets_its_own_recognition(mock_recognition: MagicMock) -> None:
    adapter = DashscopeRecognizerAdapter(api_key="sk-test")
    first, _, _ = _open(adapter)
    second, _, _ = _open(adapter)

    assert first.stream_id != second.stream_id
    assert mock_recognition.call_count == 2
    adapter.close_stream(first)
    adapter.close_stream(second)


@patch("recognizer.dashscope", MagicMock())
@patch("recognizer.Recognition")
def test_cjk_sentences_join_without_spaces(mock_recognition: MagicMock) -> None:
    adapter = DashscopeRecognizerAdapter(api_key="sk-test")
    stream, events, _ = _open(adapter)
    callback = mock_recognition.call_args.kwargs["callback"]

    callback.on_event(_FakeResult({"text": "你好。", "sentence_end": True}))
    callback.on_event(_FakeResult({"text": "今天天气很好。", "sentence_end": True}))
    callback.on_event(_FakeResult({"text": "OK then.", "sentence_end": True}))

    assert events[-1].text == "你好。今天天气很好。OK then."
    adapter.close_stream(stream)


@patch("recognizer.dashscope", MagicMock())
@patch("recognizer.Recognition")
def test_close_stream_does_not_wait_for_provider_stop(mock_recognition: MagicMock) -> None:
    stopping = threading.Event()
    recognition = mock_recognition.return_value

    def _slow_stop() -> None:
        stopping.set()
        time.sleep(1.0)

    recognition.stop.side_effect = _slow_stop
    adapter = DashscopeRecognizerAdapter(api_key="sk-test")
    stream, _, _ = _open(adapter)

    started = time.monotonic()
    adapter.close_stream(stream)
    elapsed = time.monotonic() - started

    assert elapsed < 0.1
    assert stream.cancelled is True
    assert _wait_until(stopping.is_set)
