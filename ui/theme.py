"""Window palette and status colours for the imaging tool."""
from __future__ import annotations

from PySide6.QtGui import QColor, QPalette
from PySide6.QtWidgets import QApplication, QStyleFactory

STATUS_COLORS = {
    "info": "#e6e6e6",
    "success": "#4caf50",
    "warning": "#ffb300",
    "error": "#ef5350",
}

PROGRESS_STYLE = (
    "QProgressBar { border: 1px solid #3c3c3c; border-radius: 3px; text-align: center; height: 22px; }"
    "QProgressBar::chunk { background-color: #007acc; }"
)


def status_style(level: str) -> str:
    return f"color: {STATUS_COLORS.get(level, STATUS_COLORS['info'])}; font-size: 11pt;"


def apply_imaging_theme() -> None:
    app = QApplication.instance()
    if app is None:
        return

    app.setStyle(QStyleFactory.create("Fusion"))

    background = QColor("#1e1e1e")
    surface = QColor(37, 37, 38)
    text = QColor(STATUS_COLORS["info"])
    disabled_text = QColor(120, 120, 120)

    palette = QPalette()
    for role, color in (
        (QPalette.Window, background),
        (QPalette.WindowText, text),
        (QPalette.Base, QColor(16, 16, 16)),
        (QPalette.AlternateBase, surface),
        (QPalette.Text, text),
        (QPalette.Button, surface),
        (QPalette.ButtonText, text),
        (QPalette.Highlight, QColor("#007acc")),
        (QPalette.HighlightedText, QColor("#ffffff")),
    ):
        palette.setColor(role, color)
    for role in (QPalette.Text, QPalette.ButtonText, QPalette.WindowText):
        palette.setColor(QPalette.Disabled, role, disabled_text)
    app.setPalette(palette)
