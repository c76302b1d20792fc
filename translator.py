"""Text translation adapter using DashScope qwen-mt models."""

from __future__ import annotations

import logging
import os
import threading
from typing import Any, Callable

from errors import NEGOTIATION_FAILED, TRANSLATE_FAILED, TranslationError
from languages import provider_language_name
from models import TranslationConfiguration, TranslationSession

try:
    import dashscope
except Exception:  # pragma: no cover
    dashscope = None  # type: ignore

logger = logging.getLogger(__name__)

ApiKeyProvider = Callable[[], str]


class DashscopeTranslationProvider:
    def __init__(
        self,
        api_key: str | ApiKeyProvider = "",
        model: str = "qwen-mt-turbo",
        request_timeout_s: float = 10.0,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._request_timeout_s = request_timeout_s

    def negotiate_session(self, configuration: TranslationConfiguration) -> TranslationSession:
        """Validate the language pair and return a session bound to it."""
        if dashscope is None:
            raise TranslationError(NEGOTIATION_FAILED, "dashscope is not installed")
        if not self._resolve_api_key():
            raise TranslationError(NEGOTIATION_FAILED, "No API key configured")

        target_name = provider_language_name(configuration.target_language)
        if target_name is None:
            raise TranslationError(
                NEGOTIATION_FAILED,
                f"Unsupported target language: {configuration.target_language}",
            )
        source_name = "auto"
        if configuration.source_language:
            source_name = provider_language_name(configuration.source_language) or "auto"
        if source_name == target_name:
            raise TranslationError(NEGOTIATION_FAILED, "Source and target language are the same")

        logger.info("Negotiated translation session %s -> %s", source_name, target_name)
        return TranslationSession(
            configuration=configuration,
            source_name=source_name,
            target_name=target_name,
            model=self._model,
        )

    def translate(
        self,
        session: TranslationSession,
        text: str,
        cancel_token: threading.Event,
    ) -> str:
        if cancel_token.is_set():
            return ""
        if dashscope is None:
            raise TranslationError(TRANSLATE_FAILED, "dashscope is not installed")

        try:
            response = dashscope.Generation.call(
                api_key=self._resolve_api_key(),
                model=session.model or self._model,
                messages=[{"role": "user", "content": text}],
                result_format="message",
                translation_options={
                    "source_lang": session.source_name,
                    "target_lang": session.target_name,
                },
                timeout=self._request_timeout_s,
            )
        except Exception as exc:
            raise TranslationError(TRANSLATE_FAILED, str(exc)) from exc

        if cancel_token.is_set():
            return ""

        status_code = _get(response, "status_code")
        if status_code is not None and status_code != 200:
            message = _get(response, "message") or f"HTTP {status_code}"
            raise TranslationError(TRANSLATE_FAILED, str(message))

        translated = self._extract_text(response)
        if not translated:
            raise TranslationError(TRANSLATE_FAILED, "Empty translation response")
        return translated

    def _extract_text(self, response: object) -> str:
        """Pull the assistant message out of a Generation response."""
        output = _get(response, "output") or {}
        choices = _get(output, "choices") or []
        if not choices:
            return str(_get(output, "text") or "")
        message = _get(choices[0], "message") or {}
        content = _get(message, "content")
        if isinstance(content, list):
            return "".join(str(_get(part, "text") or "") for part in content)
        return str(content or "")

    def _resolve_api_key(self) -> str:
        key = self._api_key() if callable(self._api_key) else self._api_key
        return key or os.getenv("DASHSCOPE_API_KEY", "")


def _get(obj: Any, key: str) -> Any:
    if isinstance(obj, dict):
        return obj.get(key)
    return getattr(obj, key, None)
