"""Persisted canvas preferences."""

from __future__ import annotations

from typing import Optional

from PySide6.QtCore import Property, QObject, QSettings, Signal, Slot

from .constants import (
    DEFAULT_CONNECTOR_COLOR,
    DEFAULT_CONNECTOR_STROKE_WIDTH,
    DEFAULT_GRID_SIZE,
)


def _to_bool(value) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


class CanvasSettings(QObject):
    """Grid and connector defaults backed by QSettings."""

    ORGANIZATION = "InfiniteBoard"
    APPLICATION = "InfiniteBoard"

    gridSizeChanged = Signal()
    snapToGridChanged = Signal()
    connectorStyleChanged = Signal()

    def __init__(self, settings: Optional[QSettings] = None, parent: Optional[QObject] = None):
        super().__init__(parent)
        self._settings = settings if settings is not None else QSettings(self.ORGANIZATION, self.APPLICATION)

    def _get_grid_size(self) -> int:
        try:
            value = int(self._settings.value("canvas/gridSize", DEFAULT_GRID_SIZE))
        except (TypeError, ValueError):
            return DEFAULT_GRID_SIZE
        return value if value > 0 else DEFAULT_GRID_SIZE

    @Slot(int)
    def setGridSize(self, size: int) -> None:
        size = max(1, int(size))
        if size != self._get_grid_size():
            self._settings.setValue("canvas/gridSize", size)
            self.gridSizeChanged.emit()

    gridSize = Property(int, _get_grid_size, setGridSize, notify=gridSizeChanged)

    def _get_snap_to_grid(self) -> bool:
        return _to_bool(self._settings.value("canvas/snapToGrid", True))

    @Slot(bool)
    def setSnapToGrid(self, enabled: bool) -> None:
        if bool(enabled) != self._get_snap_to_grid():
            self._settings.setValue("canvas/snapToGrid", bool(enabled))
            self.snapToGridChanged.emit()

    snapToGrid = Property(bool, _get_snap_to_grid, setSnapToGrid, notify=snapToGridChanged)

    def _get_connector_color(self) -> str:
        return str(self._settings.value("connector/color", DEFAULT_CONNECTOR_COLOR))

    @Slot(str)
    def setConnectorColor(self, color: str) -> None:
        if color and color != self._get_connector_color():
            self._settings.setValue("connector/color", color)
            self.connectorStyleChanged.emit()

    connectorColor = Property(str, _get_connector_color, setConnectorColor, notify=connectorStyleChanged)

    def _get_connector_stroke_width(self) -> float:
        try:
            value = float(self._settings.value("connector/strokeWidth", DEFAULT_CONNECTOR_STROKE_WIDTH))
        except (TypeError, ValueError):
            return DEFAULT_CONNECTOR_STROKE_WIDTH
        return value if value > 0 else DEFAULT_CONNECTOR_STROKE_WIDTH

    @Slot(float)
    def setConnectorStrokeWidth(self, width: float) -> None:
        width = max(0.5, min(20.0, float(width)))
        if width != self._get_connector_stroke_width():
            self._settings.setValue("connector/strokeWidth", width)
            self.connectorStyleChanged.emit()

    connectorStrokeWidth = Property(
        float,
        _get_connector_stroke_width,
        setConnectorStrokeWidth,
        notify=connectorStyleChanged,
    )
