"""Shared error codes, user-facing messages and exceptions."""

from __future__ import annotations

from models import AuthorizationStatus

AUTH_DENIED = "AUTH_DENIED"
AUTH_RESTRICTED = "AUTH_RESTRICTED"
AUTH_NOT_DETERMINED = "AUTH_NOT_DETERMINED"
AUTH_UNKNOWN = "AUTH_UNKNOWN"

PROVIDER_UNAVAILABLE = "PROVIDER_UNAVAILABLE"
NO_AUDIO_INPUT = "NO_AUDIO_INPUT"
ENGINE_START_FAILURE = "ENGINE_START_FAILURE"

NO_INPUT_DEVICE = "NO_INPUT_DEVICE"
CAPTURE_FAILED = "CAPTURE_FAILED"

NEGOTIATION_FAILED = "NEGOTIATION_FAILED"
TRANSLATE_FAILED = "TRANSLATE_FAILED"

ERROR_MESSAGES = {
    AUTH_DENIED: "Speech recognition access was denied. Check the DashScope API key in the tray menu.",
    AUTH_RESTRICTED: "Speech recognition is restricted on this system: the dashscope SDK is not installed.",
    AUTH_NOT_DETERMINED: "Speech recognition is not authorized yet. Set a DashScope API key in the tray menu.",
    AUTH_UNKNOWN: "Unknown speech recognition authorization status.",
    PROVIDER_UNAVAILABLE: "Speech recognizer is unavailable.",
    NO_AUDIO_INPUT: "No audio input available. Check your microphone.",
    ENGINE_START_FAILURE: "Failed to start speech recognition.",
    NEGOTIATION_FAILED: "Translation is not available for this language pair.",
    TRANSLATE_FAILED: "Translation failed.",
}

STATUS_MESSAGES = {
    AUTH_DENIED: "Permission denied",
    AUTH_RESTRICTED: "Restricted",
    AUTH_NOT_DETERMINED: "Not authorized",
    AUTH_UNKNOWN: "Error",
    PROVIDER_UNAVAILABLE: "Unavailable",
    NO_AUDIO_INPUT: "Audio error",
    ENGINE_START_FAILURE: "Audio error",
    NEGOTIATION_FAILED: "Translation unavailable",
    TRANSLATE_FAILED: "Translation error",
}

AUTHORIZATION_ERRORS = {
    AuthorizationStatus.DENIED: AUTH_DENIED,
    AuthorizationStatus.RESTRICTED: AUTH_RESTRICTED,
    AuthorizationStatus.NOT_DETERMINED: AUTH_NOT_DETERMINED,
    AuthorizationStatus.UNKNOWN: AUTH_UNKNOWN,
}


class CaptureError(Exception):
    def __init__(self, code: str, message: str = "") -> None:
        super().__init__(message or code)
        self.code = code
        self.message = message or code


class TranslationError(Exception):
    def __init__(self, code: str, message: str = "") -> None:
        super().__init__(message or code)
        self.code = code
        self.message = message or code
