"""Microphone recorder adapter."""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Optional

from errors import CAPTURE_FAILED, NO_INPUT_DEVICE, CaptureError
from interfaces import FrameSink
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


class SoundDeviceRecorder:
    def __init__(
        self,
        sample_rate: int = 16000,
        channels: int = 1,
        chunk_ms: int = 100,
        device: Optional[int] = None,
    ) -> None:
        self.sample_rate = sample_rate
        self.channels = channels
        self.chunk_ms = chunk_ms
        self.device = device
        self._stream: Any = None
        self._running = False
        self._lock = threading.Lock()
        self._frame_sink: Optional[FrameSink] = None

    @property
    def is_running(self) -> bool:
        return self._running

    def start(self, frame_sink: FrameSink) -> None:
        with self._lock:
            if self._running:
                return
            if sd is None:
                raise RuntimeError("sounddevice is not installed")
            self._check_input_device()
            self._frame_sink = frame_sink
            blocksize = int(self.sample_rate * (self.chunk_ms / 1000.0))
            stream = None
            try:
                stream = sd.InputStream(
                    samplerate=self.sample_rate,
                    channels=self.channels,
                    dtype="int16",
                    blocksize=blocksize,
                    device=self.device,
                    callback=self._on_audio,
                )
                stream.start()
            except sd.PortAudioError as exc:
                self._frame_sink = None
                if stream is not None:
                    stream.close()
                raise CaptureError(CAPTURE_FAILED, str(exc)) from exc
            self._stream = stream
            self._running = True

    def stop(self) -> None:
        with self._lock:
            if not self._running:
                return
            self._running = False
            self._frame_sink = None
            if self._stream is not None:
                self._stream.stop()
                self._stream.close()
                self._stream = None

    def _check_input_device(self) -> None:
        try:
            info = sd.query_devices(self.device, kind="input")
        except (sd.PortAudioError, ValueError) as exc:
            raise CaptureError(NO_INPUT_DEVICE, f"No audio input available: {exc}") from exc
        if not info or int(info.get("max_input_channels", 0)) <= 0:
            raise CaptureError(NO_INPUT_DEVICE, "No audio input available. Check your microphone.")

    def _on_audio(self, indata: Any, frames: int, time_info: Any, status: Any) -> None:
        sink = self._frame_sink
        if not self._running or sink is None:
            return
        if np is None:
            return
        payload = np.asarray(indata, dtype=np.int16).tobytes()
        frame = AudioFrame(
            pcm16_bytes=payload,
            sample_rate=self.sample_rate,
            channels=self.channels,
            timestamp_ms=int(time.time() * 1000),
        )
        try:
            sink(frame)
        except Exception:
            logger.exception("Audio frame sink failed")
