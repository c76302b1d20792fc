"""Protocol interfaces used by SessionManager."""

from __future__ import annotations

import threading
from typing import Any, Callable, Optional, Protocol

from models import (
    AudioFrame,
    AuthorizationStatus,
    StreamingError,
    TranscriptEvent,
    TranslationConfiguration,
    TranslationSession,
)

FrameSink = Callable[[AudioFrame], None]
TranscriptCallback = Callable[[TranscriptEvent], None]
StreamErrorCallback = Callable[[StreamingError], None]


class Recorder(Protocol):
    def start(self, frame_sink: FrameSink) -> None: ...

    def stop(self) -> None: ...


class TranscriptionProvider(Protocol):
    def is_available(self) -> bool: ...

    def supports_local_processing(self) -> bool: ...

    def open_stream(
        self,
        on_event: TranscriptCallback,
        on_error: StreamErrorCallback,
        *,
        partial_results: bool = True,
        prefer_local: bool = False,
    ) -> Any: ...

    def close_stream(self, stream: Any) -> None: ...

    def feed(self, stream: Any, frame: AudioFrame) -> None: ...


class LanguageIdentifier(Protocol):
    def detect(self, text: str) -> Optional[str]: ...


class TranslationProvider(Protocol):
    def negotiate_session(self, configuration: TranslationConfiguration) -> TranslationSession: ...

    def translate(
        self,
        session: TranslationSession,
        text: str,
        cancel_token: threading.Event,
    ) -> str: ...


class Authorizer(Protocol):
    def request_authorization(self) -> AuthorizationStatus: ...


class ConfigStore(Protocol):
    def get_api_key(self) -> str: ...

    def set_api_key(self, key: str) -> None: ...

    def get_hotkey(self) -> str: ...

    def set_hotkey(self, hotkey: str) -> None: ...

    def get_target_language(self) -> str: ...

    def set_target_language(self, code: str) -> None: ...
