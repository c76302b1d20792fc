"""Core data models for the app."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class SessionState(str, Enum):
    IDLE = "IDLE"
    AWAITING_AUTHORIZATION = "AWAITING_AUTHORIZATION"
    LISTENING = "LISTENING"
    RESTARTING = "RESTARTING"
    STOPPED = "STOPPED"
    FAILED = "FAILED"


class AuthorizationStatus(str, Enum):
    AUTHORIZED = "authorized"
    DENIED = "denied"
    RESTRICTED = "restricted"
    NOT_DETERMINED = "not_determined"
    UNKNOWN = "unknown"


class StreamingErrorKind(str, Enum):
    SELF_CANCELLED = "self_cancelled"
    PROVIDER_TIMEOUT = "provider_timeout"
    PROVIDER_FAULT = "provider_fault"


@dataclass
class AudioFrame:
    pcm16_bytes: bytes
    sample_rate: int = 16000
    channels: int = 1
    timestamp_ms: int = 0


@dataclass
class TranscriptEvent:
    """Full text of the current recognition stream, not a delta."""

    text: str
    is_final: bool = False


@dataclass
class StreamingError:
    kind: StreamingErrorKind
    message: str = ""


@dataclass(frozen=True)
class TranslationConfiguration:
    source_language: Optional[str]
    target_language: str


@dataclass(frozen=True)
class TranslationSession:
    configuration: TranslationConfiguration
    source_name: str
    target_name: str
    model: str = ""


@dataclass
class PendingTranslationRequest:
    text: str
    generation: int
    cancelled: threading.Event = field(default_factory=threading.Event, compare=False)

    def cancel(self) -> None:
        self.cancelled.set()


@dataclass(frozen=True)
class SessionSnapshot:
    recognized_text: str = ""
    translated_text: str = ""
    detected_language: str = ""
    status_message: str = "Idle"
    error_message: Optional[str] = None
    is_listening: bool = False
    state: SessionState = SessionState.IDLE
    target_language: str = ""
