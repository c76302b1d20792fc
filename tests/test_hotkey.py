from __future__ import annotations

from types import SimpleNamespace
from typing import Any, Callable

import pytest

import hotkey as hotkey_mod
from hotkey import GlobalHotkeyAdapter, is_combination, key_name


class _FakeListener:
    instances: list["_FakeListener"] = []

    def __init__(self, on_press: Callable[[Any], None], on_release: Callable[[Any], None]) -> None:
        self.on_press = on_press
        self.on_release = on_release
        self.started = False
        self.stopped = False
        _FakeListener.instances.append(self)

    def start(self) -> None:
        self.started = True

    def stop(self) -> None:
        self.stopped = True

    def canonical(self, key: Any) -> Any:
        return key_name(key)


class _FakeHotKey:
    """Same activation rule as pynput: fires when the last key of the set goes down."""

    def __init__(self, keys: list[str], on_activate: Callable[[], None]) -> None:
        self._keys = set(keys)
        self._state: set[str] = set()
        self._on_activate = on_activate

    @staticmethod
    def parse(spec: str) -> list[str]:
        parts = spec.split("+")
        if any(not part for part in parts):
            raise ValueError(spec)
        return parts

    def press(self, key: str) -> None:
        if key in self._keys and key not in self._state:
            self._state.add(key)
            if self._state == self._keys:
                self._on_activate()

    def release(self, key: str) -> None:
        self._state.discard(key)


@pytest.fixture
def fake_keyboard(monkeypatch: pytest.MonkeyPatch) -> SimpleNamespace:
    _FakeListener.instances = []
    keyboard = SimpleNamespace(Listener=_FakeListener, HotKey=_FakeHotKey)
    monkeypatch.setattr(hotkey_mod, "keyboard", keyboard)
    return keyboard


class _Key:
    def __init__(self, text: str, char: str | None = None) -> None:
        self._text = text
        self.char = char

    def __str__(self) -> str:
        return self._text


F9 = _Key("Key.f9")
F10 = _Key("Key.f10")


def test_key_name_for_special_and_character_keys() -> None:
    assert key_name(F9) == "Key.f9"
    assert key_name(_Key("'T'", char="T")) == "t"


def test_is_combination() -> None:
    assert is_combination("<ctrl>+<alt>+t")
    assert is_combination("<f9>")
    assert not is_combination("Key.f9")


def test_single_key_toggles_once_per_press(fake_keyboard: SimpleNamespace) -> None:
    toggles: list[int] = []
    adapter = GlobalHotkeyAdapter("Key.f9")
    adapter.start(lambda: toggles.append(1))
    listener = _FakeListener.instances[-1]

    assert listener.started
    listener.on_press(F9)
    listener.on_press(F9)  # auto-repeat
    listener.on_press(F10)
    listener.on_release(F9)
    listener.on_press(F9)

    assert len(toggles) == 2
    adapter.stop()
    assert listener.stopped


def test_combination_toggles_when_all_keys_are_down(fake_keyboard: SimpleNamespace) -> None:
    toggles: list[int] = []
    adapter = GlobalHotkeyAdapter("<ctrl>+t")
    adapter.start(lambda: toggles.append(1))
    listener = _FakeListener.instances[-1]
    ctrl = _Key("<ctrl>")
    t_key = _Key("'t'", char="t")

    listener.on_press(t_key)
    assert toggles == []
    listener.on_press(ctrl)
    listener.on_press(ctrl)
    assert len(toggles) == 1

    listener.on_release(ctrl)
    listener.on_press(ctrl)
    assert len(toggles) == 2


def test_invalid_combination_is_rejected(fake_keyboard: SimpleNamespace) -> None:
    adapter = GlobalHotkeyAdapter("<ctrl>++")

    with pytest.raises(ValueError, match="Invalid hotkey"):
        adapter.start(lambda: None)


def test_restart_replaces_listener(fake_keyboard: SimpleNamespace) -> None:
    adapter = GlobalHotkeyAdapter()
    adapter.start(lambda: None)
    adapter.start(lambda: None)

    first, second = _FakeListener.instances
    assert first.stopped
    assert second.started and not second.stopped
    assert adapter.hotkey_name == "Key.f9"


def test_start_without_pynput_raises(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(hotkey_mod, "keyboard", None)

    with pytest.raises(RuntimeError, match="pynput is not installed"):
        GlobalHotkeyAdapter().start(lambda: None)


def test_single_character_hotkey_matches_any_case(fake_keyboard: SimpleNamespace) -> None:
    toggles: list[int] = []
    adapter = GlobalHotkeyAdapter("T")
    adapter.start(lambda: toggles.append(1))
    listener = _FakeListener.instances[-1]

    listener.on_press(_Key("'t'", char="t"))
    listener.on_release(_Key("'t'", char="t"))
    listener.on_press(_Key("'T'", char="T"))

    assert adapter.hotkey_name == "t"
    assert len(toggles) == 2
