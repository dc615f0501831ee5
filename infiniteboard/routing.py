"""Drag-and-route controller.

Composes the drag session and the connector authoring state machine for one
canvas, commits finished connectors through the timeline controller, and
exposes connector path generation to renderers.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Dict, List, Mapping, Optional, Sequence

from PySide6.QtCore import Property, QObject, Signal, Slot

from .authoring import ConnectorAuthoring
from .constants import BOARD_CENTER_OFFSET_X, BOARD_CENTER_OFFSET_Y, NEAR_PATH_THRESHOLD
from .drag import DragSession
from .geometry import generate_path, generate_svg_path, is_near_path
from .timeline import TimelineDataController
from .types import (
    ConnectorEditMode,
    ConnectorEditState,
    ConnectorString,
    DragKind,
    DragState,
    PathCommand,
    Position,
)

logger = logging.getLogger(__name__)

_POINTER_ID = "__pointer__"


class DragAndRouteController(QObject):
    """Transient interaction state of one canvas."""

    connectorCommitted = Signal(str)

    def __init__(self, timeline: TimelineDataController, parent: Optional[QObject] = None):
        super().__init__(parent)
        self._timeline = timeline
        self._drag = DragSession(self)
        self._authoring = ConnectorAuthoring(self)
        timeline.boardDeleted.connect(self._on_board_deleted)
        timeline.connectorDeleted.connect(self._on_connector_deleted)

    @property
    def drag(self) -> DragSession:
        return self._drag

    @property
    def authoring(self) -> ConnectorAuthoring:
        return self._authoring

    @Property(QObject, constant=True)
    def dragSession(self) -> QObject:
        return self._drag

    @Property(QObject, constant=True)
    def connectorEditor(self) -> QObject:
        return self._authoring

    # --- Drag session -------------------------------------------------------
    @property
    def dragState(self) -> Optional[DragState]:
        return self._drag.state

    def startDrag(self, kind, item_id: str, x: float, y: float, owner_id: str = "") -> bool:
        if isinstance(kind, DragKind):
            kind = kind.value
        return self._drag.startDrag(kind, item_id, x, y, owner_id)

    def updateDrag(self, x: float, y: float) -> bool:
        return self._drag.updateDrag(x, y)

    def endDrag(self) -> Optional[DragState]:
        return self._drag.endDrag()

    # --- Connector authoring ------------------------------------------------
    @property
    def connectorEditState(self) -> ConnectorEditState:
        return self._authoring.state

    @Slot(str, result=bool)
    @Slot(str, str, result=bool)
    def startConnectorEdit(self, mode: str, connector_id: str = "") -> bool:
        """Start creating a connector, or editing the persisted ``connector_id``."""
        if isinstance(mode, ConnectorEditMode):
            mode = mode.value
        connector = None
        if mode == ConnectorEditMode.EDIT.value:
            connector = self._timeline.getConnectorById(connector_id)
            if connector is None:
                return False
        return self._authoring.startConnectorEdit(mode, connector)

    @Slot(str, result=bool)
    def selectSourceBoard(self, board_id: str) -> bool:
        if self._timeline.getBoardById(board_id) is None:
            return False
        return self._authoring.selectSourceBoard(board_id)

    @Slot(str, result=bool)
    def selectTargetBoard(self, board_id: str) -> bool:
        if self._timeline.getBoardById(board_id) is None:
            return False
        return self._authoring.selectTargetBoard(board_id)

    @Slot(float, float, result=str)
    def addTempBead(self, x: float, y: float) -> str:
        return self._authoring.addTempBead(x, y)

    @Slot(str, float, float, result=bool)
    def updateTempBead(self, bead_id: str, x: float, y: float) -> bool:
        return self._authoring.updateTempBead(bead_id, x, y)

    @Slot(str, result=bool)
    def removeTempBead(self, bead_id: str) -> bool:
        return self._authoring.removeTempBead(bead_id)

    @Slot(result=bool)
    def cancelConnectorEdit(self) -> bool:
        return self._authoring.cancelConnectorEdit()

    async def finishConnectorEdit(
        self, color: Optional[str] = None, stroke_width: Optional[float] = None
    ) -> Optional[ConnectorString]:
        """Persist the connector being authored.

        ``color`` and ``stroke_width`` style a newly created connector. Returns
        None when there is nothing ready to finish. A failed commit keeps the
        selections so the user can retry or cancel, and re-raises.
        """
        if not self._authoring.beginCommit():
            return None
        state = self._authoring.state
        succeeded = False
        try:
            if state.mode == ConnectorEditMode.CREATE:
                connector = await self._timeline.createConnector(
                    state.source_board_id,
                    state.target_board_id,
                    beads=state.temp_beads,
                    color=color,
                    stroke_width=stroke_width,
                )
            else:
                connector = await self._timeline.updateConnector(
                    state.selected_connector_id,
                    {
                        "from_board_id": state.source_board_id,
                        "to_board_id": state.target_board_id,
                        "beads": state.temp_beads,
                    },
                )
            succeeded = True
        finally:
            self._authoring.endCommit(succeeded)
            if not succeeded:
                self._forget_missing()
        logger.info("Saved connector %s", connector.id)
        self.connectorCommitted.emit(connector.id)
        return connector

    def _forget_missing(self) -> None:
        state = self._authoring.state
        for board_id in (state.source_board_id, state.target_board_id):
            if board_id and self._timeline.getBoardById(board_id) is None:
                self._authoring.forgetBoard(board_id)
        connector_id = state.selected_connector_id
        if connector_id and self._timeline.getConnectorById(connector_id) is None:
            self._authoring.forgetConnector(connector_id)

    def _on_board_deleted(self, board_id: str) -> None:
        state = self._drag.state
        if state is not None and (
            (state.kind == DragKind.BOARD and state.item_id == board_id)
            or (state.kind == DragKind.BOOKMARK and state.owner_id == board_id)
        ):
            self._drag.cancelDrag()
        self._authoring.forgetBoard(board_id)

    def _on_connector_deleted(self, connector_id: str) -> None:
        state = self._drag.state
        if state is not None and state.kind == DragKind.BEAD and state.owner_id == connector_id:
            self._drag.cancelDrag()
        self._authoring.forgetConnector(connector_id)

    # --- Paths --------------------------------------------------------------
    @staticmethod
    def generatePath(
        connector: ConnectorString,
        positions: Mapping[str, Position],
    ) -> List[PathCommand]:
        return generate_path(connector, positions)

    @staticmethod
    def generateSVGPath(connector: ConnectorString, positions: Mapping[str, Position]) -> str:
        return generate_svg_path(connector, positions)

    @staticmethod
    def isNearPath(
        point: Position,
        commands: Sequence[PathCommand],
        threshold: float = NEAR_PATH_THRESHOLD,
    ) -> bool:
        return is_near_path(point, commands, threshold)

    def boardPositions(self, include_drag: bool = True) -> Dict[str, Position]:
        """Board positions for rendering, with a dragged board at its live spot."""
        positions = self._timeline.boardPositions()
        state = self._drag.state
        if include_drag and state is not None and state.kind == DragKind.BOARD:
            committed = positions.get(state.item_id)
            if committed is not None:
                dx, dy = state.delta
                positions[state.item_id] = committed.offset(dx, dy)
        return positions

    def displayedConnector(self, connector: ConnectorString) -> ConnectorString:
        """The connector as it should be drawn, including a live bead drag."""
        state = self._drag.state
        if state is None or state.kind != DragKind.BEAD or state.owner_id != connector.id:
            return connector
        dx, dy = state.delta
        beads = tuple(
            replace(bead, x=bead.x + dx, y=bead.y + dy) if bead.id == state.item_id else bead
            for bead in connector.beads
        )
        return replace(connector, beads=beads)

    def previewPath(self, pointer: Optional[Position] = None) -> List[PathCommand]:
        """Path of the connector being authored; follows ``pointer`` until a target is set."""
        state = self._authoring.state
        if not state.is_editing or state.source_board_id is None:
            return []
        positions = self.boardPositions()
        target_id = state.target_board_id
        if target_id is None:
            if pointer is None:
                return []
            target_id = _POINTER_ID
            positions[target_id] = Position(
                pointer.x - BOARD_CENTER_OFFSET_X,
                pointer.y - BOARD_CENTER_OFFSET_Y,
            )
        draft = ConnectorString(
            id=state.selected_connector_id or "preview",
            from_board_id=state.source_board_id,
            to_board_id=target_id,
            beads=state.temp_beads,
        )
        return generate_path(draft, positions)
