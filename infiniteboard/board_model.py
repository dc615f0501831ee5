"""Qt list model of the boards on a canvas."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from PySide6.QtCore import (
    QAbstractListModel,
    QModelIndex,
    Property,
    Qt,
    Signal,
)

from .routing import DragAndRouteController
from .timeline import TimelineDataController, bookmark_to_qml
from .types import Board, DragKind


class BoardListModel(QAbstractListModel):
    """Rows of boards for QML, drawn at their live drag position."""

    IdRole = Qt.UserRole + 1
    TitleRole = Qt.UserRole + 2
    XRole = Qt.UserRole + 3
    YRole = Qt.UserRole + 4
    CommittedXRole = Qt.UserRole + 5
    CommittedYRole = Qt.UserRole + 6
    BookmarksRole = Qt.UserRole + 7
    BookmarkCountRole = Qt.UserRole + 8
    ConnectorCountRole = Qt.UserRole + 9
    DraggingRole = Qt.UserRole + 10
    ConnectorSourceRole = Qt.UserRole + 11
    ConnectorTargetRole = Qt.UserRole + 12

    countChanged = Signal()

    def __init__(
        self,
        timeline: TimelineDataController,
        routing: DragAndRouteController,
        parent: Optional[Any] = None,
    ):
        super().__init__(parent)
        self._timeline = timeline
        self._routing = routing
        self._boards: List[Board] = list(timeline.timelineData().boards)
        self._dragged_id: str = ""
        timeline.timelineChanged.connect(self._reload)
        routing.drag.dragStateChanged.connect(self._on_drag_changed)
        routing.authoring.connectorEditStateChanged.connect(self._on_authoring_changed)

    def _reload(self) -> None:
        self.beginResetModel()
        self._boards = list(self._timeline.timelineData().boards)
        self.endResetModel()
        self.countChanged.emit()

    def _row_of(self, board_id: str) -> int:
        for row, board in enumerate(self._boards):
            if board.id == board_id:
                return row
        return -1

    def _emit_row(self, board_id: str, roles: List[int]) -> None:
        row = self._row_of(board_id)
        if row >= 0:
            index = self.index(row, 0)
            self.dataChanged.emit(index, index, roles)

    def _on_drag_changed(self) -> None:
        state = self._routing.drag.state
        current = state.item_id if state is not None and state.kind == DragKind.BOARD else ""
        roles = [self.XRole, self.YRole, self.DraggingRole]
        if self._dragged_id and self._dragged_id != current:
            self._emit_row(self._dragged_id, roles)
        self._dragged_id = current
        if current:
            self._emit_row(current, roles)

    def _on_authoring_changed(self) -> None:
        if not self._boards:
            return
        self.dataChanged.emit(
            self.index(0, 0),
            self.index(len(self._boards) - 1, 0),
            [self.ConnectorSourceRole, self.ConnectorTargetRole],
        )

    # --- Qt model overrides -------------------------------------------------
    def rowCount(self, parent: QModelIndex | None = QModelIndex()) -> int:  # type: ignore[override]
        return len(self._boards)

    def data(self, index: QModelIndex, role: int = Qt.DisplayRole):  # type: ignore[override]
        if not index.isValid() or not (0 <= index.row() < len(self._boards)):
            return None

        board = self._boards[index.row()]
        if role == self.IdRole:
            return board.id
        if role in (self.TitleRole, Qt.DisplayRole):
            return board.title
        if role == self.XRole:
            dx, _ = self._routing.drag.offsetFor(DragKind.BOARD, board.id)
            return board.position.x + dx
        if role == self.YRole:
            _, dy = self._routing.drag.offsetFor(DragKind.BOARD, board.id)
            return board.position.y + dy
        if role == self.CommittedXRole:
            return board.position.x
        if role == self.CommittedYRole:
            return board.position.y
        if role == self.BookmarksRole:
            return [bookmark_to_qml(b) for b in self._timeline.getBookmarksByBoard(board.id)]
        if role == self.BookmarkCountRole:
            return len(self._timeline.getBookmarksByBoard(board.id))
        if role == self.ConnectorCountRole:
            return len(self._timeline.getConnectorsByBoard(board.id))
        if role == self.DraggingRole:
            return board.id == self._dragged_id
        if role == self.ConnectorSourceRole:
            return self._routing.authoring.state.source_board_id == board.id
        if role == self.ConnectorTargetRole:
            return self._routing.authoring.state.target_board_id == board.id
        return None

    def roleNames(self) -> Dict[int, bytes]:  # type: ignore[override]
        return {
            self.IdRole: b"boardId",
            self.TitleRole: b"title",
            self.XRole: b"x",
            self.YRole: b"y",
            self.CommittedXRole: b"committedX",
            self.CommittedYRole: b"committedY",
            self.BookmarksRole: b"bookmarks",
            self.BookmarkCountRole: b"bookmarkCount",
            self.ConnectorCountRole: b"connectorCount",
            self.DraggingRole: b"dragging",
            self.ConnectorSourceRole: b"isConnectorSource",
            self.ConnectorTargetRole: b"isConnectorTarget",
        }

    @Property(int, notify=countChanged)
    def count(self) -> int:
        return len(self._boards)
