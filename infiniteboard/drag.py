"""Pointer drag session for boards, bookmark entries and beads.

The session only tracks where the pointer is. Nothing in the committed
timeline changes until the caller commits the snapshot returned by
:meth:`DragSession.endDrag`.
"""

from __future__ import annotations

from typing import Optional, Tuple

from PySide6.QtCore import Property, QObject, Signal, Slot

from .types import DragKind, DragState, Position


class DragSession(QObject):
    """Single active drag: Idle -> Dragging -> Idle."""

    dragStateChanged = Signal()

    def __init__(self, parent: Optional[QObject] = None):
        super().__init__(parent)
        self._state: Optional[DragState] = None

    @property
    def state(self) -> Optional[DragState]:
        return self._state

    @Slot(str, str, float, float, result=bool)
    @Slot(str, str, float, float, str, result=bool)
    def startDrag(self, kind: str, item_id: str, x: float, y: float, owner_id: str = "") -> bool:
        """Begin dragging ``item_id``; ignored while another drag is active."""
        if self._state is not None or not item_id:
            return False
        try:
            drag_kind = DragKind(kind)
        except ValueError:
            return False
        start = Position(float(x), float(y))
        self._state = DragState(drag_kind, item_id, start, start, owner_id or "")
        self.dragStateChanged.emit()
        return True

    @Slot(float, float, result=bool)
    def updateDrag(self, x: float, y: float) -> bool:
        if self._state is None:
            return False
        current = Position(float(x), float(y))
        if current == self._state.current:
            return True
        self._state = DragState(
            self._state.kind,
            self._state.item_id,
            self._state.start,
            current,
            self._state.owner_id,
        )
        self.dragStateChanged.emit()
        return True

    def endDrag(self) -> Optional[DragState]:
        """Finish the drag and return what was dragged and where to."""
        finished = self._state
        if finished is None:
            return None
        self._state = None
        self.dragStateChanged.emit()
        return finished

    @Slot()
    def cancelDrag(self) -> None:
        if self._state is not None:
            self._state = None
            self.dragStateChanged.emit()

    def offsetFor(self, kind: DragKind, item_id: str) -> Tuple[float, float]:
        """Live (dx, dy) to draw ``item_id`` at; (0, 0) unless it is being dragged."""
        state = self._state
        if state is None or state.kind != kind or state.item_id != item_id:
            return (0.0, 0.0)
        return state.delta

    # --- Properties exposed to QML ------------------------------------------
    @Property(bool, notify=dragStateChanged)
    def isDragging(self) -> bool:
        return self._state is not None

    @Property(str, notify=dragStateChanged)
    def dragType(self) -> str:
        return self._state.kind.value if self._state else ""

    @Property(str, notify=dragStateChanged)
    def dragItemId(self) -> str:
        return self._state.item_id if self._state else ""

    @Property(float, notify=dragStateChanged)
    def dragOffsetX(self) -> float:
        return self._state.delta[0] if self._state else 0.0

    @Property(float, notify=dragStateChanged)
    def dragOffsetY(self) -> float:
        return self._state.delta[1] if self._state else 0.0
