"""Text language identification based on langdetect."""

from __future__ import annotations

import logging
from typing import Optional

try:
    from langdetect import DetectorFactory, detect
    from langdetect.lang_detect_exception import LangDetectException
except Exception:  # pragma: no cover
    DetectorFactory = None  # type: ignore
    detect = None  # type: ignore
    LangDetectException = Exception  # type: ignore

if DetectorFactory is not None:
    DetectorFactory.seed = 0

logger = logging.getLogger(__name__)


class LangdetectIdentifier:
    """Guess the dominant language of a piece of text.

    langdetect builds a fresh detector for every call, so nothing carries
    over between calls.
    """

    def __init__(self, min_chars: int = 2) -> None:
        self._min_chars = min_chars

    def detect(self, text: str) -> Optional[str]:
        stripped = text.strip()
        if len(stripped) < self._min_chars or detect is None:
            return None
        try:
            return detect(stripped)
        except LangDetectException as exc:
            logger.debug("Language detection gave no result: %s", exc)
            return None
