"""Streaming ASR adapter using the DashScope realtime recognition API.

Each call to ``open_stream`` starts a ``Recognition`` task backed by its own
worker thread. Audio frames are queued by ``feed`` (never blocking the audio
callback) and the worker forwards them with ``send_audio_frame``. Sentence
results accumulate into the stream's full text, which is reported through
``on_event`` as partial results; the provider completing the task on its own
produces a final event.
"""

from __future__ import annotations

import logging
import os
import threading
from queue import Empty, Full, Queue
from typing import Any, Callable, Optional

from interfaces import StreamErrorCallback, TranscriptCallback
from models import AudioFrame, StreamingError, StreamingErrorKind, TranscriptEvent

try:
    import dashscope
    from dashscope.audio.asr import Recognition, RecognitionCallback
except Exception:  # pragma: no cover
    dashscope = None  # type: ignore
    Recognition = None  # type: ignore
    RecognitionCallback = object  # type: ignore

logger = logging.getLogger(__name__)

ApiKeyProvider = Callable[[], str]


def _is_timeout(message: str) -> bool:
    low = message.lower()
    return "timeout" in low or "timed out" in low or "no_valid_audio" in low


def _is_sentence_end(sentence: dict) -> bool:
    if "sentence_end" in sentence:
        return bool(sentence["sentence_end"])
    return sentence.get("end_time") is not None


def _is_cjk(char: str) -> bool:
    code = ord(char)
    return (
        0x3000 <= code <= 0x30FF
        or 0x3400 <= code <= 0x4DBF
        or 0x4E00 <= code <= 0x9FFF
        or 0xF900 <= code <= 0xFAFF
        or 0xFF00 <= code <= 0xFFEF
    )


def join_sentences(sentences: list[str]) -> str:
    """Join recognized sentences, without a space between CJK sentences."""
    text = ""
    for sentence in sentences:
        sentence = sentence.strip()
        if not sentence:
            continue
        if text and not (_is_cjk(text[-1]) or _is_cjk(sentence[0])):
            text += " "
        text += sentence
    return text


class RecognitionStream:
    """Handle for one open recognition task."""

    def __init__(
        self,
        stream_id: int,
        on_event: TranscriptCallback,
        on_error: StreamErrorCallback,
        queue_maxsize: int,
    ) -> None:
        self.stream_id = stream_id
        self.on_event = on_event
        self.on_error = on_error
        self.audio_queue: Queue[AudioFrame | None] = Queue(maxsize=queue_maxsize)
        self.stop_event = threading.Event()
        self.cancelled = False
        self.dropped_chunks = 0
        self.recognition: Any = None
        self.thread: Optional[threading.Thread] = None
        self._sentences: list[str] = []
        self._current = ""
        self._lock = threading.Lock()

    @property
    def text(self) -> str:
        with self._lock:
            return join_sentences(self._sentences + [self._current])

    def update_sentence(self, text: str, sentence_end: bool) -> str:
        with self._lock:
            if sentence_end:
                self._sentences.append(text)
                self._current = ""
            else:
                self._current = text
            return join_sentences(self._sentences + [self._current])


class _StreamCallback(RecognitionCallback):
    """Routes DashScope callbacks to the stream's event/error channels."""

    def __init__(self, stream: RecognitionStream) -> None:
        self._stream = stream

    def on_open(self) -> None:
        logger.debug("Recognition stream %s opened", self._stream.stream_id)

    def on_close(self) -> None:
        logger.debug("Recognition stream %s closed", self._stream.stream_id)

    def on_event(self, result: Any) -> None:
        stream = self._stream
        if stream.cancelled:
            return
        sentence = result.get_sentence()
        if not isinstance(sentence, dict) or "text" not in sentence:
            return
        text = stream.update_sentence(str(sentence["text"]), _is_sentence_end(sentence))
        stream.on_event(TranscriptEvent(text=text, is_final=False))

    def on_complete(self) -> None:
        stream = self._stream
        if stream.cancelled:
            return
        stream.on_event(TranscriptEvent(text=stream.text, is_final=True))

    def on_error(self, result: Any) -> None:
        stream = self._stream
        message = str(getattr(result, "message", result))
        if stream.cancelled:
            stream.on_error(StreamingError(StreamingErrorKind.SELF_CANCELLED, message))
            return
        kind = StreamingErrorKind.PROVIDER_TIMEOUT if _is_timeout(message) else StreamingErrorKind.PROVIDER_FAULT
        stream.on_error(StreamingError(kind, message))


class DashscopeRecognizerAdapter:
    def __init__(
        self,
        api_key: str | ApiKeyProvider = "",
        model: str = "paraformer-realtime-v2",
        sample_rate: int = 16000,
        queue_maxsize: int = 100,
        language_hints: Optional[list[str]] = None,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._sample_rate = sample_rate
        self._queue_maxsize = queue_maxsize
        self._language_hints = language_hints
        self._next_stream_id = 0

    def is_available(self) -> bool:
        return Recognition is not None and bool(self._resolve_api_key())

    def supports_local_processing(self) -> bool:
        return False

    def open_stream(
        self,
        on_event: TranscriptCallback,
        on_error: StreamErrorCallback,
        *,
        partial_results: bool = True,
        prefer_local: bool = False,
    ) -> RecognitionStream:
        if Recognition is None:
            raise RuntimeError("dashscope is not installed")
        api_key = self._resolve_api_key()
        if not api_key:
            raise RuntimeError("No API key configured")
        if dashscope is not None:
            dashscope.api_key = api_key

        self._next_stream_id += 1
        stream = RecognitionStream(self._next_stream_id, on_event, on_error, self._queue_maxsize)
        if not partial_results:
            stream.on_event = _finals_only(on_event)

        kwargs: dict[str, Any] = {}
        if self._language_hints:
            kwargs["language_hints"] = self._language_hints
        stream.recognition = Recognition(
            model=self._model,
            format="pcm",
            sample_rate=self._sample_rate,
            callback=_StreamCallback(stream),
            **kwargs,
        )
        stream.recognition.start()
        stream.thread = threading.Thread(
            target=self._worker,
            args=(stream,),
            name=f"recognition-{stream.stream_id}",
            daemon=True,
        )
        stream.thread.start()
        return stream

    def close_stream(self, stream: RecognitionStream) -> None:
        """Cancel the stream. The worker stops the provider task on its own thread."""
        stream.cancelled = True
        stream.stop_event.set()
        try:
            stream.audio_queue.put_nowait(None)
        except Full:
            pass

    def feed(self, stream: RecognitionStream, frame: AudioFrame) -> None:
        if stream.stop_event.is_set():
            return
        try:
            stream.audio_queue.put_nowait(frame)
        except Full:
            stream.dropped_chunks += 1

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _worker(self, stream: RecognitionStream) -> None:
        """Forward queued frames to the provider until closed."""
        while not stream.stop_event.is_set():
            try:
                frame = stream.audio_queue.get(timeout=0.2)
            except Empty:
                continue
            if frame is None:  # Sentinel
                break
            try:
                stream.recognition.send_audio_frame(frame.pcm16_bytes)
            except Exception as exc:
                self._report_failure(stream, exc)
                return

        try:
            stream.recognition.stop()
        except Exception as exc:
            self._report_failure(stream, exc)

    def _report_failure(self, stream: RecognitionStream, exc: Exception) -> None:
        message = str(exc)
        if stream.cancelled:
            logger.debug("Recognition stream %s ended after close: %s", stream.stream_id, message)
            stream.on_error(StreamingError(StreamingErrorKind.SELF_CANCELLED, message))
            return
        kind = StreamingErrorKind.PROVIDER_TIMEOUT if _is_timeout(message) else StreamingErrorKind.PROVIDER_FAULT
        stream.on_error(StreamingError(kind, message))

    def _resolve_api_key(self) -> str:
        key = self._api_key() if callable(self._api_key) else self._api_key
        return key or os.getenv("DASHSCOPE_API_KEY", "")


def _finals_only(on_event: TranscriptCallback) -> TranscriptCallback:
    def _forward(event: TranscriptEvent) -> None:
        if event.is_final:
            on_event(event)

    return _forward
