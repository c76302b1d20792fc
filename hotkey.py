"""Global start/stop hotkey built on pynput.

Two hotkey notations are accepted:

* a single key as pynput prints it, e.g. ``Key.f9`` or ``t``
* a combination in pynput's ``HotKey`` syntax, e.g. ``<ctrl>+<alt>+t``
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Optional

from config import DEFAULT_HOTKEY

try:
    from pynput import keyboard
except Exception:  # pragma: no cover
    keyboard = None  # type: ignore

logger = logging.getLogger(__name__)


def is_combination(hotkey_name: str) -> bool:
    return "+" in hotkey_name or hotkey_name.startswith("<")


def key_name(key: Any) -> str:
    """Name a pynput key the way it is stored in the config file."""
    char = getattr(key, "char", None)
    if char:
        return str(char).lower()
    return str(key)


class GlobalHotkeyAdapter:
    """Calls ``on_toggle`` once per press of the configured hotkey.

    Holding the key down (auto-repeat) does not toggle again.
    """

    def __init__(self, hotkey_name: str = DEFAULT_HOTKEY) -> None:
        name = hotkey_name.strip() or DEFAULT_HOTKEY
        # character keys are matched lowercased, see key_name
        self._hotkey_name = name.lower() if len(name) == 1 else name
        self._listener: Optional[Any] = None
        self._pressed = False
        self._lock = threading.Lock()

    @property
    def hotkey_name(self) -> str:
        return self._hotkey_name

    def start(self, on_toggle: Callable[[], None]) -> None:
        if keyboard is None:
            raise RuntimeError("pynput is not installed")
        self.stop()

        if is_combination(self._hotkey_name):
            listener = self._combination_listener(on_toggle)
        else:
            listener = self._single_key_listener(on_toggle)
        self._listener = listener
        listener.start()
        logger.info("Listening for hotkey %s", self._hotkey_name)

    def stop(self) -> None:
        listener = self._listener
        self._listener = None
        if listener is not None:
            listener.stop()
        with self._lock:
            self._pressed = False

    def _single_key_listener(self, on_toggle: Callable[[], None]) -> Any:
        def _on_press(key: Any) -> None:
            if key_name(key) != self._hotkey_name:
                return
            with self._lock:
                if self._pressed:
                    return
                self._pressed = True
            on_toggle()

        def _on_release(key: Any) -> None:
            if key_name(key) != self._hotkey_name:
                return
            with self._lock:
                self._pressed = False

        return keyboard.Listener(on_press=_on_press, on_release=_on_release)

    def _combination_listener(self, on_toggle: Callable[[], None]) -> Any:
        try:
            keys = keyboard.HotKey.parse(self._hotkey_name)
        except ValueError as exc:
            raise ValueError(f"Invalid hotkey: {self._hotkey_name}") from exc
        hotkey = keyboard.HotKey(keys, on_toggle)
        listener: Any = None

        def _on_press(key: Any) -> None:
            hotkey.press(listener.canonical(key))

        def _on_release(key: Any) -> None:
            hotkey.release(listener.canonical(key))

        listener = keyboard.Listener(on_press=_on_press, on_release=_on_release)
        return listener
