"""Overlay window for live recognized/translated text."""

from __future__ import annotations

from languages import display_name
from models import SessionSnapshot

try:
    from PySide6.QtCore import Qt, QTimer
    from PySide6.QtWidgets import QApplication, QLabel, QWidget, QVBoxLayout
except Exception:  # pragma: no cover
    Qt = None  # type: ignore
    QTimer = None  # type: ignore
    QApplication = None  # type: ignore
    QLabel = object  # type: ignore
    QWidget = object  # type: ignore
    QVBoxLayout = object  # type: ignore

_BASE_STYLE = "font-size: 18px; padding: 16px; border-radius: 12px;"
TRANSLATED_STYLE = "color: white; background: rgba(0,0,0,190);" + _BASE_STYLE
RECOGNIZED_STYLE = "color: rgba(255,255,255,150); background: rgba(0,0,0,190);" + _BASE_STYLE
ERROR_STYLE = "color: #FF6B6B; background: rgba(0,0,0,210);" + _BASE_STYLE


def overlay_text(snapshot: SessionSnapshot) -> tuple[str, str]:
    """Pick what the overlay shows for a snapshot, and in which style."""
    if snapshot.translated_text:
        return snapshot.translated_text, TRANSLATED_STYLE
    if snapshot.recognized_text:
        return snapshot.recognized_text, RECOGNIZED_STYLE
    text = "Listening for speech..." if snapshot.is_listening else "Translation ready"
    if snapshot.detected_language:
        text += f"\nDetected: {display_name(snapshot.detected_language)}"
    return text, RECOGNIZED_STYLE


class OverlayWindow(QWidget):
    def __init__(self) -> None:
        if Qt is None:
            raise RuntimeError("PySide6 is not installed")
        super().__init__()
        self.setWindowFlags(
            Qt.WindowStaysOnTopHint | Qt.FramelessWindowHint | Qt.Tool
        )
        self.setAttribute(Qt.WA_TranslucentBackground, True)
        self.setFixedWidth(600)

        self._label = QLabel("")
        self._label.setWordWrap(True)
        self._label.setStyleSheet(TRANSLATED_STYLE)

        layout = QVBoxLayout()
        layout.setContentsMargins(0, 0, 0, 0)
        layout.addWidget(self._label)
        self.setLayout(layout)

        self._hide_timer: QTimer | None = None

    def _center_top(self) -> None:
        """Position the window at the top center of the primary screen."""
        if QApplication is None:
            return
        screen = QApplication.primaryScreen()
        if screen is None:
            return
        geom = screen.availableGeometry()
        self.adjustSize()
        x = geom.x() + (geom.width() - self.width()) // 2
        y = geom.y() + 40  # below menu bar
        self.move(x, y)

    def show_snapshot(self, snapshot: SessionSnapshot) -> None:
        text, style = overlay_text(snapshot)
        self.set_text(text, style)

    def set_text(self, text: str, style: str = TRANSLATED_STYLE) -> None:
        """Update overlay text and show at screen top center."""
        self._cancel_hide_timer()
        self._label.setStyleSheet(style)
        self._label.setText(text)
        self._center_top()
        self.show()

    def hide_with_delay(self, delay_ms: int = 400) -> None:
        self._cancel_hide_timer()
        if QTimer is not None:
            self._hide_timer = QTimer()
            self._hide_timer.setSingleShot(True)
            self._hide_timer.timeout.connect(self.hide)
            self._hide_timer.start(delay_ms)

    def show_error(self, text: str, hide_after_ms: int = 4000) -> None:
        """Show an error message and auto-hide after given ms."""
        self.set_text(f"⚠️ {text}", ERROR_STYLE)
        self.hide_with_delay(hide_after_ms)

    def _cancel_hide_timer(self) -> None:
        if self._hide_timer is not None:
            self._hide_timer.stop()
            self._hide_timer = None
