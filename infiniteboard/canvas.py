"""Editor session tying the controllers to the QML canvas.

QML calls the ``request*`` slots, which schedule the matching coroutine on the
running asyncio loop. Python callers and tests await the coroutines directly.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Coroutine, Dict, List, Optional, Sequence, Set

from PySide6.QtCore import Property, QObject, Signal, Slot

from .constants import BOARD_HEIGHT, BOARD_WIDTH, NEAR_PATH_THRESHOLD
from .errors import TimelineError
from .geometry import generate_path, is_near_path, next_board_position, path_to_svg, snap_to_grid
from .routing import DragAndRouteController
from .settings import CanvasSettings
from .timeline import TimelineDataController
from .types import (
    Board,
    BookmarkEntry,
    ConnectorEditMode,
    ConnectorEditPhase,
    ConnectorString,
    DragKind,
    Position,
)

logger = logging.getLogger(__name__)

_STATUS_BY_PHASE = {
    ConnectorEditPhase.SOURCE_PENDING: "Click the board the connector starts from",
    ConnectorEditPhase.TARGET_PENDING: "Click the board the connector ends at",
    ConnectorEditPhase.READY: "Click the canvas to add beads, press Enter to finish",
    ConnectorEditPhase.EDITING: "Editing connector: click the canvas to add beads, press Enter to save",
}


class TimelineCanvas(QObject):
    """Interaction session for one canvas window."""

    pathsChanged = Signal()
    statusChanged = Signal()

    def __init__(
        self,
        timeline: TimelineDataController,
        routing: DragAndRouteController,
        settings: CanvasSettings,
        parent: Optional[QObject] = None,
    ):
        super().__init__(parent)
        self._timeline = timeline
        self._routing = routing
        self._settings = settings
        self._pointer: Optional[Position] = None
        self._pending: Set[asyncio.Future] = set()

        timeline.timelineChanged.connect(self.pathsChanged)
        timeline.errorChanged.connect(self.statusChanged)
        routing.drag.dragStateChanged.connect(self.pathsChanged)
        routing.authoring.connectorEditStateChanged.connect(self.pathsChanged)
        routing.authoring.connectorEditStateChanged.connect(self.statusChanged)
        settings.connectorStyleChanged.connect(self.pathsChanged)

    @property
    def timeline(self) -> TimelineDataController:
        return self._timeline

    @property
    def routing(self) -> DragAndRouteController:
        return self._routing

    @property
    def settings(self) -> CanvasSettings:
        return self._settings

    @Property(QObject, constant=True)
    def timelineController(self) -> QObject:
        return self._timeline

    @Property(QObject, constant=True)
    def routeController(self) -> QObject:
        return self._routing

    @Property(QObject, constant=True)
    def canvasSettings(self) -> QObject:
        return self._settings

    # --- Scheduling ---------------------------------------------------------
    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Future:
        task = asyncio.ensure_future(coro)
        self._pending.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Future) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        # Controllers have already recorded the message for the UI.
        if isinstance(exc, TimelineError):
            logger.info("Canvas action failed: %s", exc)
        elif exc is not None:
            logger.error("Unexpected canvas failure", exc_info=exc)

    async def drain(self) -> None:
        """Wait for every scheduled action to settle."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    # --- Async intents ------------------------------------------------------
    async def load(self) -> None:
        await self._timeline.loadTimeline()

    def _snap(self, position: Position) -> Position:
        if self._settings.snapToGrid:
            return snap_to_grid(position, self._settings.gridSize)
        return position

    async def addBoard(self, title: str = "") -> Board:
        """Create a board in the next free slot of the default layout."""
        count = len(self._timeline.timelineData().boards)
        position = self._snap(next_board_position(count))
        return await self._timeline.createBoard(title or f"Board {count + 1}", position)

    async def commitDrag(self) -> Optional[Any]:
        """End the active drag and persist where the dragged item was dropped."""
        state = self._routing.endDrag()
        if state is None:
            return None
        dx, dy = state.delta
        if state.kind == DragKind.BOARD:
            board = self._timeline.getBoardById(state.item_id)
            if board is None or (dx == 0 and dy == 0):
                return None
            position = self._snap(board.position.offset(dx, dy))
            if position == board.position:
                return None
            return await self._timeline.updateBoard(board.id, {"position": position})
        if state.kind == DragKind.BOOKMARK:
            return await self._drop_bookmark(state.item_id, state.current)
        connector = self._timeline.getConnectorById(state.owner_id)
        if connector is None or (dx == 0 and dy == 0):
            return None
        for bead in connector.beads:
            if bead.id == state.item_id:
                return await self._timeline.moveBead(
                    connector.id, bead.id, bead.position.offset(dx, dy)
                )
        return None

    async def _drop_bookmark(self, bookmark_id: str, point: Position) -> Optional[BookmarkEntry]:
        bookmark = self._timeline.getBookmarkById(bookmark_id)
        target_id = self.boardIdAt(point.x, point.y)
        if bookmark is None or not target_id:
            return None
        siblings = [b for b in self._timeline.getBookmarksByBoard(target_id) if b.id != bookmark_id]
        if target_id == bookmark.board_id and bookmark.order == len(siblings):
            return None
        return await self._timeline.moveBookmark(bookmark_id, target_id, len(siblings))

    async def finishConnector(self) -> Optional[ConnectorString]:
        return await self._routing.finishConnectorEdit(
            color=self._settings.connectorColor,
            stroke_width=self._settings.connectorStrokeWidth,
        )

    async def deleteBoard(self, board_id: str) -> None:
        await self._timeline.deleteBoard(board_id)

    async def renameBoard(self, board_id: str, title: str) -> Optional[Board]:
        board = self._timeline.getBoardById(board_id)
        title = title.strip()
        if board is None or not title or title == board.title:
            return None
        return await self._timeline.updateBoard(board_id, {"title": title})

    async def addBookmark(self, board_id: str, title: str = "", url: str = "") -> BookmarkEntry:
        """Append an entry to the end of a board."""
        count = len(self._timeline.getBookmarksByBoard(board_id))
        return await self._timeline.createBookmark(
            board_id, title.strip() or f"Entry {count + 1}", url=url.strip() or None
        )

    async def updateBookmark(self, bookmark_id: str, title: str, url: str = "") -> BookmarkEntry:
        bookmark = self._timeline.getBookmarkById(bookmark_id)
        title = title.strip() or (bookmark.title if bookmark else "")
        return await self._timeline.updateBookmark(
            bookmark_id, {"title": title, "url": url.strip() or None}
        )

    async def deleteBookmark(self, bookmark_id: str) -> None:
        await self._timeline.deleteBookmark(bookmark_id)

    async def deleteConnector(self, connector_id: str) -> None:
        await self._timeline.deleteConnector(connector_id)

    async def alignHorizontally(self, board_ids: Optional[Sequence[str]] = None) -> List[Board]:
        return await self._timeline.alignBoardsHorizontally(board_ids or None)

    async def alignVertically(self, board_ids: Optional[Sequence[str]] = None) -> List[Board]:
        return await self._timeline.alignBoardsVertically(board_ids or None)

    async def distributeHorizontally(self, board_ids: Optional[Sequence[str]] = None) -> List[Board]:
        return await self._timeline.distributeBoardsHorizontally(board_ids or None)

    async def snapAllToGrid(self) -> List[Board]:
        return await self._timeline.snapBoardsToGrid(self._settings.gridSize)

    # --- Synchronous input --------------------------------------------------
    @Slot(str, result=bool)
    def handleBoardClicked(self, board_id: str) -> bool:
        """Route a board click into connector source/target selection."""
        phase = self._routing.authoring.phase
        if phase == ConnectorEditPhase.SOURCE_PENDING:
            return self._routing.selectSourceBoard(board_id)
        if phase in (ConnectorEditPhase.TARGET_PENDING, ConnectorEditPhase.EDITING):
            return self._routing.selectTargetBoard(board_id)
        return False

    @Slot(float, float, result=str)
    def handleCanvasClicked(self, x: float, y: float) -> str:
        phase = self._routing.authoring.phase
        if phase not in (ConnectorEditPhase.READY, ConnectorEditPhase.EDITING):
            return ""
        return self._routing.addTempBead(x, y)

    @Slot(str, result=bool)
    def handleKey(self, key: str) -> bool:
        if key == "Escape":
            cancelled = self._routing.cancelConnectorEdit()
            if self._routing.dragState is not None:
                self._routing.drag.cancelDrag()
                cancelled = True
            return cancelled
        if key in ("Return", "Enter") and self._routing.authoring.canFinish:
            self._spawn(self.finishConnector())
            return True
        return False

    @Slot(float, float)
    def setPointer(self, x: float, y: float) -> None:
        self._pointer = Position(float(x), float(y))
        if self._routing.authoring.phase == ConnectorEditPhase.TARGET_PENDING:
            self.pathsChanged.emit()

    @Slot(result=bool)
    def beginCreateConnector(self) -> bool:
        return self._routing.startConnectorEdit(ConnectorEditMode.CREATE.value)

    @Slot(str, result=bool)
    def beginEditConnector(self, connector_id: str) -> bool:
        return self._routing.startConnectorEdit(ConnectorEditMode.EDIT.value, connector_id)

    # --- Slots scheduling async intents -------------------------------------
    @Slot()
    @Slot(str)
    def requestAddBoard(self, title: str = "") -> None:
        self._spawn(self.addBoard(title))

    @Slot()
    def requestCommitDrag(self) -> None:
        self._spawn(self.commitDrag())

    @Slot()
    def requestFinishConnector(self) -> None:
        self._spawn(self.finishConnector())

    @Slot(str)
    def requestDeleteBoard(self, board_id: str) -> None:
        self._spawn(self.deleteBoard(board_id))

    @Slot(str)
    def requestDeleteConnector(self, connector_id: str) -> None:
        self._spawn(self.deleteConnector(connector_id))

    @Slot(str, str)
    def requestRenameBoard(self, board_id: str, title: str) -> None:
        self._spawn(self.renameBoard(board_id, title))

    @Slot(str)
    @Slot(str, str)
    @Slot(str, str, str)
    def requestAddBookmark(self, board_id: str, title: str = "", url: str = "") -> None:
        self._spawn(self.addBookmark(board_id, title, url))

    @Slot(str, str)
    @Slot(str, str, str)
    def requestUpdateBookmark(self, bookmark_id: str, title: str, url: str = "") -> None:
        self._spawn(self.updateBookmark(bookmark_id, title, url))

    @Slot(str)
    def requestDeleteBookmark(self, bookmark_id: str) -> None:
        self._spawn(self.deleteBookmark(bookmark_id))

    @Slot(str)
    def requestArrange(self, command: str) -> None:
        actions = {
            "alignHorizontally": self.alignHorizontally,
            "alignVertically": self.alignVertically,
            "distributeHorizontally": self.distributeHorizontally,
            "snapToGrid": self.snapAllToGrid,
        }
        action = actions.get(command)
        if action is None:
            logger.warning("Unknown arrange command: %s", command)
            return
        self._spawn(action())

    # --- Hit testing --------------------------------------------------------
    @Slot(float, float, result=str)
    def boardIdAt(self, x: float, y: float) -> str:
        """Topmost board whose rectangle contains (x, y), or ''."""
        positions = self._routing.boardPositions()
        for board in reversed(self._timeline.timelineData().boards):
            pos = positions.get(board.id)
            if pos is None:
                continue
            if pos.x <= x <= pos.x + BOARD_WIDTH and pos.y <= y <= pos.y + BOARD_HEIGHT:
                return board.id
        return ""

    @Slot(float, float, result=str)
    def connectorIdAt(self, x: float, y: float) -> str:
        point = Position(float(x), float(y))
        positions = self._routing.boardPositions()
        for connector in reversed(self._timeline.timelineData().connectors):
            commands = generate_path(self._routing.displayedConnector(connector), positions)
            if is_near_path(point, commands, NEAR_PATH_THRESHOLD):
                return connector.id
        return ""

    # --- Properties exposed to QML ------------------------------------------
    def _connector_path(self, connector: ConnectorString, positions) -> str:
        state = self._routing.connectorEditState
        if state.mode == ConnectorEditMode.EDIT and state.selected_connector_id == connector.id:
            return path_to_svg(self._routing.previewPath())
        return path_to_svg(generate_path(self._routing.displayedConnector(connector), positions))

    @Property(list, notify=pathsChanged)
    def connectorPaths(self) -> List[Dict[str, Any]]:
        positions = self._routing.boardPositions()
        paths = []
        for connector in self._timeline.timelineData().connectors:
            path = self._connector_path(connector, positions)
            if not path:
                continue
            paths.append(
                {
                    "id": connector.id,
                    "path": path,
                    "color": connector.color,
                    "strokeWidth": connector.stroke_width,
                }
            )
        return paths

    @Property(str, notify=pathsChanged)
    def previewPath(self) -> str:
        if self._routing.connectorEditState.mode != ConnectorEditMode.CREATE:
            return ""
        return path_to_svg(self._routing.previewPath(self._pointer))

    @Property(str, notify=statusChanged)
    def statusMessage(self) -> str:
        if self._timeline.error:
            return self._timeline.error
        return _STATUS_BY_PHASE.get(self._routing.authoring.phase, "")
