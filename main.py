"""Application entrypoint."""

from __future__ import annotations

import logging
import os
import sys

from authorization import ApiKeyAuthorizer
from config import JsonConfigStore
from hotkey import GlobalHotkeyAdapter
from language_id import LangdetectIdentifier
from languages import SUPPORTED_LANGUAGES
from models import SessionSnapshot, SessionState
from overlay import OverlayWindow
from recognizer import DashscopeRecognizerAdapter
from recorder import SoundDeviceRecorder
from session_manager import SessionManager
from translator import DashscopeTranslationProvider

try:
    from PySide6.QtCore import QObject, Signal, QSize
    from PySide6.QtGui import QAction, QActionGroup, QIcon, QPixmap, QPainter, QColor, QBrush
    from PySide6.QtWidgets import QApplication, QInputDialog, QMenu, QMessageBox, QSystemTrayIcon
except Exception as exc:  # pragma: no cover
    raise SystemExit(f"PySide6 is required to run the desktop app: {exc}")

logger = logging.getLogger(__name__)


def _create_icon(color: str = "#888888", size: int = 22) -> QIcon:
    """Generate a simple circular tray icon with the given color."""
    pixmap = QPixmap(QSize(size, size))
    pixmap.fill(QColor(0, 0, 0, 0))  # transparent background
    painter = QPainter(pixmap)
    painter.setRenderHint(QPainter.Antialiasing, True)
    painter.setBrush(QBrush(QColor(color)))
    painter.setPen(QColor(color))
    painter.drawEllipse(2, 2, size - 4, size - 4)
    painter.end()
    return QIcon(pixmap)


ICON_IDLE = "#888888"       # grey
ICON_LISTENING = "#44AA44"  # green
ICON_RESTARTING = "#DDAA00"  # amber
ICON_ERROR = "#FF8800"      # orange

STATE_ICONS = {
    SessionState.LISTENING.value: ICON_LISTENING,
    SessionState.RESTARTING.value: ICON_RESTARTING,
    SessionState.AWAITING_AUTHORIZATION.value: ICON_RESTARTING,
    SessionState.FAILED.value: ICON_ERROR,
}


class UIBridge(QObject):
    snapshot_signal = Signal(object)
    state_signal = Signal(str, str)  # from_state, to_state


class App:
    def __init__(self) -> None:
        self.app = QApplication(sys.argv)
        self.app.setQuitOnLastWindowClosed(False)
        self.config_store = JsonConfigStore()
        self.overlay = OverlayWindow()
        self.ui = UIBridge()
        self.ui.snapshot_signal.connect(self._on_snapshot_ui)
        self.ui.state_signal.connect(self._on_state_change_ui)

        api_key = self.config_store.get_api_key
        self.manager = SessionManager(
            recorder=SoundDeviceRecorder(),
            transcriber=DashscopeRecognizerAdapter(api_key=api_key),
            language_identifier=LangdetectIdentifier(),
            translator=DashscopeTranslationProvider(api_key=api_key),
            authorizer=ApiKeyAuthorizer(api_key=api_key),
            target_language=self.config_store.get_target_language(),
            on_state_change=self._on_state_change,
        )
        self._unsubscribe = self.manager.subscribe(self._on_snapshot)
        self.hotkey = GlobalHotkeyAdapter(hotkey_name=self.config_store.get_hotkey())

        self.tray = QSystemTrayIcon()
        self.tray.setIcon(_create_icon(ICON_IDLE))
        self.tray.setToolTip("Live Translator: Ready")
        self._setup_menu()
        self.tray.show()

    def _setup_menu(self) -> None:
        menu = QMenu()

        self.toggle_action = QAction("Start Translation", menu)
        self.toggle_action.triggered.connect(self.toggle)
        menu.addAction(self.toggle_action)

        language_menu = menu.addMenu("Target Language")
        group = QActionGroup(language_menu)
        group.setExclusive(True)
        current = self.config_store.get_target_language()
        for language in SUPPORTED_LANGUAGES:
            action = QAction(language.display_name, language_menu)
            action.setCheckable(True)
            action.setChecked(language.code == current)
            action.triggered.connect(lambda _checked=False, code=language.code: self._set_target_language(code))
            group.addAction(action)
            language_menu.addAction(action)
        self._language_group = group

        menu.addSeparator()
        api_action = QAction("Set API Key", menu)
        api_action.triggered.connect(self._set_api_key)
        menu.addAction(api_action)

        hotkey_action = QAction("Set Hotkey", menu)
        hotkey_action.triggered.connect(self._set_hotkey)
        menu.addAction(hotkey_action)

        menu.addSeparator()
        quit_action = QAction("Quit", menu)
        quit_action.triggered.connect(self.quit)
        menu.addAction(quit_action)

        self._menu = menu
        self.tray.setContextMenu(menu)

    def _set_api_key(self) -> None:
        value, ok = QInputDialog.getText(None, "API Key", "DashScope API Key")
        if not ok:
            return
        self.config_store.set_api_key(value)
        QMessageBox.information(None, "Saved", "API Key saved. It applies the next time translation starts.")

    def _set_hotkey(self) -> None:
        value, ok = QInputDialog.getText(
            None, "Hotkey", "Use pynput key format, e.g. Key.f9 or <ctrl>+<alt>+t", text=self.hotkey.hotkey_name
        )
        value = value.strip()
        if not ok or not value:
            return
        previous = self.hotkey
        self.hotkey = GlobalHotkeyAdapter(hotkey_name=value)
        try:
            previous.stop()
            self.hotkey.start(on_toggle=self.toggle)
        except Exception as exc:
            logger.warning("Hotkey %s rejected: %s", value, exc)
            self.hotkey = previous
            try:
                previous.start(on_toggle=self.toggle)
            except Exception:
                logger.warning("Previous hotkey could not be restored", exc_info=True)
            QMessageBox.warning(None, "Hotkey", f"Could not use hotkey {value}: {exc}")
            return
        self.config_store.set_hotkey(value)

    def _set_target_language(self, code: str) -> None:
        self.config_store.set_target_language(code)
        self.manager.set_target_language(code)

    def toggle(self) -> None:
        if self.manager.state in (
            SessionState.AWAITING_AUTHORIZATION,
            SessionState.LISTENING,
            SessionState.RESTARTING,
        ):
            self.manager.stop()
        else:
            self.manager.start()

    # ------------------------------------------------------------------
    # Callbacks (session dispatcher thread, re-emitted as Qt signals)
    # ------------------------------------------------------------------

    def _on_state_change(self, from_state: SessionState, to_state: SessionState) -> None:
        self.ui.state_signal.emit(from_state.value, to_state.value)

    def _on_snapshot(self, snapshot: SessionSnapshot) -> None:
        self.ui.snapshot_signal.emit(snapshot)

    # ------------------------------------------------------------------
    # UI thread handlers (safe for Qt)
    # ------------------------------------------------------------------

    def _on_snapshot_ui(self, snapshot: SessionSnapshot) -> None:
        self.tray.setToolTip(f"Live Translator: {snapshot.status_message}")
        if snapshot.state == SessionState.FAILED and snapshot.error_message:
            self.overlay.show_error(snapshot.error_message)
            return
        if snapshot.is_listening:
            self.overlay.show_snapshot(snapshot)

    def _on_state_change_ui(self, from_state: str, to_state: str) -> None:
        self.tray.setIcon(_create_icon(STATE_ICONS.get(to_state, ICON_IDLE)))
        active = to_state in STATE_ICONS and to_state != SessionState.FAILED.value
        self.toggle_action.setText("Stop Translation" if active else "Start Translation")
        if to_state == SessionState.STOPPED.value:
            self.overlay.hide_with_delay(400)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def run(self) -> int:
        try:
            self.hotkey.start(on_toggle=self.toggle)
        except Exception as exc:
            logger.warning("Hotkey disabled: %s", exc)
            self.overlay.show_error(f"Hotkey disabled: {exc}")
        return self.app.exec()

    def quit(self) -> None:
        self.hotkey.stop()
        self._unsubscribe()
        self.manager.close()
        self.app.quit()


def main() -> int:
    logging.basicConfig(
        level=os.getenv("LIVE_TRANSLATOR_LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app = App()
    return app.run()


if __name__ == "__main__":
    raise SystemExit(main())
