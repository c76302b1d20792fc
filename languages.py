"""Supported target languages and language code normalization."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class SupportedLanguage:
    code: str
    display_name: str


SUPPORTED_LANGUAGES = [
    SupportedLanguage("pt-PT", "Portuguese (Portugal)"),
    SupportedLanguage("pt-BR", "Portuguese (Brazil)"),
    SupportedLanguage("es", "Spanish"),
    SupportedLanguage("fr", "French"),
    SupportedLanguage("de", "German"),
    SupportedLanguage("it", "Italian"),
    SupportedLanguage("ja", "Japanese"),
    SupportedLanguage("ko", "Korean"),
    SupportedLanguage("zh-Hans", "Chinese (Simplified)"),
    SupportedLanguage("zh-Hant", "Chinese (Traditional)"),
    SupportedLanguage("ar", "Arabic"),
    SupportedLanguage("ru", "Russian"),
    SupportedLanguage("hi", "Hindi"),
    SupportedLanguage("pl", "Polish"),
    SupportedLanguage("nl", "Dutch"),
    SupportedLanguage("tr", "Turkish"),
    SupportedLanguage("uk", "Ukrainian"),
    SupportedLanguage("th", "Thai"),
    SupportedLanguage("vi", "Vietnamese"),
    SupportedLanguage("en", "English"),
]

DEFAULT_TARGET_LANGUAGE = "pt-PT"

# Names accepted by the qwen-mt translation_options, keyed by minimal code.
PROVIDER_LANGUAGE_NAMES = {
    "ar": "Arabic",
    "de": "German",
    "en": "English",
    "es": "Spanish",
    "fr": "French",
    "hi": "Hindi",
    "id": "Indonesian",
    "it": "Italian",
    "ja": "Japanese",
    "ko": "Korean",
    "nl": "Dutch",
    "pl": "Polish",
    "pt": "Portuguese",
    "ru": "Russian",
    "th": "Thai",
    "tr": "Turkish",
    "uk": "Ukrainian",
    "vi": "Vietnamese",
    "zh": "Chinese",
    "zh-hant": "Traditional Chinese",
}

_TRADITIONAL_CHINESE_TAGS = {"hant", "tw", "hk", "mo"}


def minimal_language(code: str) -> str:
    """Reduce a language tag to the part that decides "same language".

    The region is dropped (``pt-PT`` and ``pt-BR`` both become ``pt``). The
    script only matters for Chinese, where Traditional stays distinct.
    """
    parts = code.strip().replace("_", "-").lower().split("-")
    base = parts[0]
    if base == "zh" and _TRADITIONAL_CHINESE_TAGS.intersection(parts[1:]):
        return "zh-hant"
    return base


def same_language(first: str, second: str) -> bool:
    if not first or not second:
        return False
    return minimal_language(first) == minimal_language(second)


def provider_language_name(code: Optional[str]) -> Optional[str]:
    if not code:
        return None
    return PROVIDER_LANGUAGE_NAMES.get(minimal_language(code))


def display_name(code: str) -> str:
    for language in SUPPORTED_LANGUAGES:
        if language.code.lower() == code.lower():
            return language.display_name
    return provider_language_name(code) or code
