"""Timeline data controller.

Owns the committed boards, bookmark entries and connectors of one canvas.
Every change is validated against the committed data, sent to the data
service, and applied locally only after the service confirms it.
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Dict, List, Mapping, Optional, Sequence, TypeVar

from PySide6.QtCore import Property, QObject, Signal, Slot

from .errors import TimelineError, ValidationError
from .geometry import board_positions
from .layout import LayoutMixin
from .service import TimelineService
from .types import (
    BOARD_PATCH_FIELDS,
    BOOKMARK_PATCH_FIELDS,
    CONNECTOR_PATCH_FIELDS,
    Board,
    BookmarkEntry,
    ConnectorBead,
    ConnectorString,
    Position,
    TimelineData,
    normalize_patch,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


class TimelineDataController(LayoutMixin, QObject):
    """Authoritative in-memory copy of a canvas, exposed to QML."""

    timelineChanged = Signal()
    loadingChanged = Signal()
    errorChanged = Signal()
    errorOccurred = Signal(str)
    boardDeleted = Signal(str)
    connectorDeleted = Signal(str)

    def __init__(self, service: TimelineService, parent: Optional[QObject] = None):
        super().__init__(parent)
        self._service = service
        self._data = TimelineData()
        self._is_loading = False
        self._error = ""

    # --- Error reporting ----------------------------------------------------
    def _record_error(self, message: str) -> None:
        self._error = message
        self.errorChanged.emit()
        self.errorOccurred.emit(message)

    def _reject(self, message: str) -> ValidationError:
        """Record a validation failure and return the exception to raise."""
        logger.warning("Rejected: %s", message)
        self._record_error(message)
        return ValidationError(message)

    async def _call(self, action: str, call: Awaitable[T]) -> T:
        try:
            return await call
        except TimelineError as exc:
            logger.error("Failed to %s: %s", action, exc)
            self._record_error(f"Failed to {action}: {exc}")
            raise

    def _normalize(self, patch: Mapping[str, Any], allowed: frozenset) -> Dict[str, Any]:
        try:
            return normalize_patch(patch, allowed)
        except ValidationError as exc:
            raise self._reject(str(exc)) from None

    def _commit(self, data: TimelineData) -> None:
        self._data = data
        self.timelineChanged.emit()

    @Slot()
    def clearError(self) -> None:
        if self._error:
            self._error = ""
            self.errorChanged.emit()

    # --- Loading ------------------------------------------------------------
    def _set_loading(self, value: bool) -> None:
        if self._is_loading != value:
            self._is_loading = value
            self.loadingChanged.emit()

    @staticmethod
    def _sanitize(data: TimelineData) -> TimelineData:
        """Drop entries that reference boards which do not exist."""
        board_ids = {board.id for board in data.boards}
        bookmarks = [b for b in data.bookmarks if b.board_id in board_ids]
        connectors = [
            c for c in data.connectors
            if c.from_board_id in board_ids
            and c.to_board_id in board_ids
            and c.from_board_id != c.to_board_id
        ]
        dropped = (len(data.bookmarks) - len(bookmarks)) + (len(data.connectors) - len(connectors))
        if dropped:
            logger.warning("Dropped %d entries referencing missing boards", dropped)
        return TimelineData(list(data.boards), bookmarks, connectors)

    async def loadTimeline(self) -> TimelineData:
        """Replace the local copy with everything the service holds."""
        self._set_loading(True)
        try:
            data = await self._call("load timeline data", self._service.get_all())
        finally:
            self._set_loading(False)
        self._commit(self._sanitize(data))
        self.clearError()
        logger.info(
            "Loaded %d boards, %d bookmarks, %d connectors",
            len(self._data.boards),
            len(self._data.bookmarks),
            len(self._data.connectors),
        )
        return self.timelineData()

    async def refreshData(self) -> TimelineData:
        return await self.loadTimeline()

    # --- Boards -------------------------------------------------------------
    def _require_board(self, board_id: str) -> Board:
        board = self.getBoardById(board_id)
        if board is None:
            raise self._reject(f"Unknown board: {board_id}")
        return board

    async def createBoard(self, title: str, position: Any) -> Board:
        try:
            position = Position.coerce(position)
        except ValidationError as exc:
            raise self._reject(str(exc)) from None
        board = await self._call("create board", self._service.create_board(title, position))
        data = self._data.copy()
        data.boards.append(board)
        self._commit(data)
        return board

    async def updateBoard(self, board_id: str, patch: Mapping[str, Any]) -> Board:
        self._require_board(board_id)
        changes = self._normalize(patch, BOARD_PATCH_FIELDS)
        board = await self._call("update board", self._service.update_board(board_id, changes))
        if self.getBoardById(board_id) is None:
            raise self._reject(f"Board {board_id} was deleted before the update completed")
        data = self._data.copy()
        data.boards = [board if b.id == board_id else b for b in data.boards]
        self._commit(data)
        return board

    async def deleteBoard(self, board_id: str) -> None:
        """Delete a board together with its bookmarks and attached connectors."""
        self._require_board(board_id)
        await self._call("delete board", self._service.delete_board(board_id))
        removed_connectors = [c.id for c in self._data.connectors if c.touches(board_id)]
        self._commit(
            TimelineData(
                boards=[b for b in self._data.boards if b.id != board_id],
                bookmarks=[b for b in self._data.bookmarks if b.board_id != board_id],
                connectors=[c for c in self._data.connectors if not c.touches(board_id)],
            )
        )
        for connector_id in removed_connectors:
            self.connectorDeleted.emit(connector_id)
        self.boardDeleted.emit(board_id)

    # --- Bookmarks ----------------------------------------------------------
    def _require_bookmark(self, bookmark_id: str) -> BookmarkEntry:
        bookmark = self.getBookmarkById(bookmark_id)
        if bookmark is None:
            raise self._reject(f"Unknown bookmark: {bookmark_id}")
        return bookmark

    async def createBookmark(
        self,
        board_id: str,
        title: str,
        url: Optional[str] = None,
        description: Optional[str] = None,
        icon: Optional[str] = None,
    ) -> BookmarkEntry:
        self._require_board(board_id)
        bookmark = await self._call(
            "create bookmark",
            self._service.create_bookmark(board_id, title, url, description, icon),
        )
        if self.getBoardById(board_id) is None:
            raise self._reject(f"Board {board_id} was deleted before the bookmark was created")
        data = self._data.copy()
        data.bookmarks.append(bookmark)
        self._commit(data)
        return bookmark

    async def updateBookmark(self, bookmark_id: str, patch: Mapping[str, Any]) -> BookmarkEntry:
        self._require_bookmark(bookmark_id)
        changes = self._normalize(patch, BOOKMARK_PATCH_FIELDS)
        bookmark = await self._call(
            "update bookmark", self._service.update_bookmark(bookmark_id, changes)
        )
        self._replace_bookmark(bookmark)
        return bookmark

    async def deleteBookmark(self, bookmark_id: str) -> None:
        self._require_bookmark(bookmark_id)
        await self._call("delete bookmark", self._service.delete_bookmark(bookmark_id))
        data = self._data.copy()
        data.bookmarks = [b for b in data.bookmarks if b.id != bookmark_id]
        self._commit(data)

    async def moveBookmark(self, bookmark_id: str, new_board_id: str, new_order: int) -> BookmarkEntry:
        """Move an entry to another board (or position) in one step."""
        self._require_bookmark(bookmark_id)
        self._require_board(new_board_id)
        try:
            order = int(new_order)
        except (TypeError, ValueError):
            raise self._reject(f"Invalid order: {new_order!r}") from None
        bookmark = await self._call(
            "move bookmark",
            self._service.move_bookmark(bookmark_id, new_board_id, order),
        )
        self._replace_bookmark(bookmark)
        return bookmark

    def _replace_bookmark(self, bookmark: BookmarkEntry) -> None:
        if self.getBookmarkById(bookmark.id) is None:
            raise self._reject(f"Bookmark {bookmark.id} was deleted before the change completed")
        if self.getBoardById(bookmark.board_id) is None:
            raise self._reject(f"Board {bookmark.board_id} was deleted before the change completed")
        data = self._data.copy()
        data.bookmarks = [bookmark if b.id == bookmark.id else b for b in data.bookmarks]
        self._commit(data)

    # --- Connectors ---------------------------------------------------------
    def _require_connector(self, connector_id: str) -> ConnectorString:
        connector = self.getConnectorById(connector_id)
        if connector is None:
            raise self._reject(f"Unknown connector: {connector_id}")
        return connector

    def _check_endpoints(self, from_board_id: str, to_board_id: str) -> None:
        if from_board_id == to_board_id:
            raise self._reject("A connector cannot start and end on the same board")
        self._require_board(from_board_id)
        self._require_board(to_board_id)

    async def createConnector(
        self,
        from_board_id: str,
        to_board_id: str,
        beads: Sequence[Any] = (),
        color: Optional[str] = None,
        stroke_width: Optional[float] = None,
    ) -> ConnectorString:
        self._check_endpoints(from_board_id, to_board_id)
        try:
            bead_values = [ConnectorBead.coerce(bead) for bead in beads]
        except ValidationError as exc:
            raise self._reject(str(exc)) from None
        connector = await self._call(
            "create connector",
            self._service.create_connector(
                from_board_id, to_board_id, bead_values, color, stroke_width
            ),
        )
        self._add_connector(connector)
        return connector

    def _add_connector(self, connector: ConnectorString) -> None:
        for board_id in (connector.from_board_id, connector.to_board_id):
            if self.getBoardById(board_id) is None:
                raise self._reject(f"Board {board_id} was deleted before the connector was saved")
        data = self._data.copy()
        data.connectors.append(connector)
        self._commit(data)

    async def updateConnector(self, connector_id: str, patch: Mapping[str, Any]) -> ConnectorString:
        current = self._require_connector(connector_id)
        changes = self._normalize(patch, CONNECTOR_PATCH_FIELDS)
        self._check_endpoints(
            changes.get("from_board_id", current.from_board_id),
            changes.get("to_board_id", current.to_board_id),
        )
        connector = await self._call(
            "update connector", self._service.update_connector(connector_id, changes)
        )
        if self.getConnectorById(connector_id) is None:
            raise self._reject(f"Connector {connector_id} was deleted before the update completed")
        for board_id in (connector.from_board_id, connector.to_board_id):
            if self.getBoardById(board_id) is None:
                raise self._reject(f"Board {board_id} was deleted before the update completed")
        data = self._data.copy()
        data.connectors = [connector if c.id == connector_id else c for c in data.connectors]
        self._commit(data)
        return connector

    async def deleteConnector(self, connector_id: str) -> None:
        self._require_connector(connector_id)
        await self._call("delete connector", self._service.delete_connector(connector_id))
        data = self._data.copy()
        data.connectors = [c for c in data.connectors if c.id != connector_id]
        self._commit(data)
        self.connectorDeleted.emit(connector_id)

    async def moveBead(self, connector_id: str, bead_id: str, position: Any) -> ConnectorString:
        """Commit a dragged bead's final position."""
        connector = self._require_connector(connector_id)
        try:
            position = Position.coerce(position)
        except ValidationError as exc:
            raise self._reject(str(exc)) from None
        if not any(bead.id == bead_id for bead in connector.beads):
            raise self._reject(f"Unknown bead: {bead_id}")
        beads = [
            ConnectorBead(bead.id, position.x, position.y, bead.order) if bead.id == bead_id else bead
            for bead in connector.beads
        ]
        return await self.updateConnector(connector_id, {"beads": beads})

    # --- Queries ------------------------------------------------------------
    def timelineData(self) -> TimelineData:
        """Return a snapshot of the committed aggregate."""
        return self._data.copy()

    def getBoardById(self, board_id: str) -> Optional[Board]:
        for board in self._data.boards:
            if board.id == board_id:
                return board
        return None

    def getBookmarkById(self, bookmark_id: str) -> Optional[BookmarkEntry]:
        for bookmark in self._data.bookmarks:
            if bookmark.id == bookmark_id:
                return bookmark
        return None

    def getConnectorById(self, connector_id: str) -> Optional[ConnectorString]:
        for connector in self._data.connectors:
            if connector.id == connector_id:
                return connector
        return None

    def getBookmarksByBoard(self, board_id: str) -> List[BookmarkEntry]:
        """Return a board's entries in display order."""
        return sorted(
            (b for b in self._data.bookmarks if b.board_id == board_id),
            key=lambda bookmark: bookmark.order,
        )

    def getConnectorsByBoard(self, board_id: str) -> List[ConnectorString]:
        return [c for c in self._data.connectors if c.touches(board_id)]

    def boardPositions(self) -> Dict[str, Position]:
        return board_positions(self._data.boards)

    # --- Properties exposed to QML ------------------------------------------
    @Property(bool, notify=loadingChanged)
    def isLoading(self) -> bool:
        return self._is_loading

    @Property(str, notify=errorChanged)
    def error(self) -> str:
        return self._error

    @Property(int, notify=timelineChanged)
    def boardCount(self) -> int:
        return len(self._data.boards)

    @Property(list, notify=timelineChanged)
    def boards(self) -> List[Dict[str, Any]]:
        return [
            {"id": b.id, "title": b.title, "x": b.position.x, "y": b.position.y}
            for b in self._data.boards
        ]

    @Property(list, notify=timelineChanged)
    def bookmarks(self) -> List[Dict[str, Any]]:
        return [bookmark_to_qml(b) for b in self._data.bookmarks]

    @Property(list, notify=timelineChanged)
    def connectors(self) -> List[Dict[str, Any]]:
        return [
            {
                "id": c.id,
                "fromBoardId": c.from_board_id,
                "toBoardId": c.to_board_id,
                "color": c.color,
                "strokeWidth": c.stroke_width,
                "beads": [bead.to_dict() for bead in c.ordered_beads()],
            }
            for c in self._data.connectors
        ]


def bookmark_to_qml(bookmark: BookmarkEntry) -> Dict[str, Any]:
    return {
        "id": bookmark.id,
        "boardId": bookmark.board_id,
        "title": bookmark.title,
        "url": bookmark.url or "",
        "description": bookmark.description or "",
        "icon": bookmark.icon or "",
        "order": bookmark.order,
    }


