"""QML UI definition for the timeline canvas."""

from __future__ import annotations

from pathlib import Path

QML_DIR = Path(__file__).with_name("qml_ui")
TIMELINE_QML_PATH = QML_DIR / "TimelineCanvas.qml"


__all__ = [
    "QML_DIR",
    "TIMELINE_QML_PATH",
]
