"""Connector authoring state machine.

Creating a connector is a step-by-step flow: pick a source board, pick a
different target board, optionally click routing beads onto the canvas, then
finish or cancel. Editing an existing connector starts with its endpoints and
beads loaded. All selections here are transient; they reach the timeline only
when the routing controller commits them.
"""

from __future__ import annotations

from dataclasses import replace
from itertools import count
from typing import Any, Dict, List, Optional

from PySide6.QtCore import Property, QObject, Signal, Slot

from .constants import TEMP_BEAD_PREFIX
from .types import (
    ConnectorBead,
    ConnectorEditMode,
    ConnectorEditPhase,
    ConnectorEditState,
    ConnectorString,
)


class ConnectorAuthoring(QObject):
    """Tracks source, target and temporary beads of the connector being drawn."""

    connectorEditStateChanged = Signal()

    def __init__(self, parent: Optional[QObject] = None):
        super().__init__(parent)
        self._state = ConnectorEditState()
        self._committing = False
        self._bead_id_source = count(1)

    @property
    def state(self) -> ConnectorEditState:
        return self._state

    @property
    def phase(self) -> ConnectorEditPhase:
        return self._state.phase

    def _set_state(self, state: ConnectorEditState) -> None:
        if state != self._state:
            self._state = state
            self.connectorEditStateChanged.emit()

    def _accepts_input(self) -> bool:
        return self._state.is_editing and not self._committing

    # --- Transitions --------------------------------------------------------
    def startConnectorEdit(self, mode: Any, connector: Optional[ConnectorString] = None) -> bool:
        """Enter create mode, or edit mode for ``connector``."""
        if self._committing or self._state.is_editing:
            return False
        try:
            edit_mode = ConnectorEditMode(mode)
        except ValueError:
            return False
        if edit_mode == ConnectorEditMode.EDIT:
            if connector is None:
                return False
            state = ConnectorEditState(
                mode=edit_mode,
                selected_connector_id=connector.id,
                source_board_id=connector.from_board_id,
                target_board_id=connector.to_board_id,
                temp_beads=tuple(connector.ordered_beads()),
            )
        else:
            state = ConnectorEditState(mode=edit_mode)
        self._set_state(state)
        return True

    @Slot(str, result=bool)
    def selectSourceBoard(self, board_id: str) -> bool:
        """Pick the source board; in create mode this clears the target."""
        if not self._accepts_input() or not board_id:
            return False
        if self.phase == ConnectorEditPhase.EDITING:
            if board_id == self._state.target_board_id:
                return False
            self._set_state(replace(self._state, source_board_id=board_id))
            return True
        self._set_state(replace(self._state, source_board_id=board_id, target_board_id=None))
        return True

    @Slot(str, result=bool)
    def selectTargetBoard(self, board_id: str) -> bool:
        """Pick the target board; a target equal to the source is ignored."""
        if not self._accepts_input() or not board_id:
            return False
        if self.phase not in (ConnectorEditPhase.TARGET_PENDING, ConnectorEditPhase.EDITING):
            return False
        if board_id == self._state.source_board_id:
            return False
        self._set_state(replace(self._state, target_board_id=board_id))
        return True

    def _accepts_beads(self) -> bool:
        return self._accepts_input() and self.phase in (
            ConnectorEditPhase.READY,
            ConnectorEditPhase.EDITING,
        )

    @Slot(float, float, result=str)
    def addTempBead(self, x: float, y: float) -> str:
        """Append a routing bead after the existing ones; returns its id."""
        if not self._accepts_beads():
            return ""
        beads = self._state.temp_beads
        order = max((bead.order for bead in beads), default=-1) + 1
        bead = ConnectorBead(
            id=f"{TEMP_BEAD_PREFIX}{next(self._bead_id_source)}",
            x=float(x),
            y=float(y),
            order=order,
        )
        self._set_state(replace(self._state, temp_beads=beads + (bead,)))
        return bead.id

    @Slot(str, float, float, result=bool)
    def updateTempBead(self, bead_id: str, x: float, y: float) -> bool:
        if not self._accepts_beads():
            return False
        if not any(bead.id == bead_id for bead in self._state.temp_beads):
            return False
        beads = tuple(
            replace(bead, x=float(x), y=float(y)) if bead.id == bead_id else bead
            for bead in self._state.temp_beads
        )
        self._set_state(replace(self._state, temp_beads=beads))
        return True

    @Slot(str, result=bool)
    def removeTempBead(self, bead_id: str) -> bool:
        if not self._accepts_beads():
            return False
        beads = tuple(bead for bead in self._state.temp_beads if bead.id != bead_id)
        if len(beads) == len(self._state.temp_beads):
            return False
        self._set_state(replace(self._state, temp_beads=beads))
        return True

    @Slot(result=bool)
    def cancelConnectorEdit(self) -> bool:
        """Discard every selection and temporary bead."""
        if self._committing or not self._state.is_editing:
            return False
        self.reset()
        return True

    def reset(self) -> None:
        self._set_state(ConnectorEditState())

    # --- Commit bookkeeping -------------------------------------------------
    def beginCommit(self) -> bool:
        if self._committing or not self.canFinish:
            return False
        self._committing = True
        self.connectorEditStateChanged.emit()
        return True

    def endCommit(self, succeeded: bool) -> None:
        self._committing = False
        if succeeded:
            self._state = ConnectorEditState()
        self.connectorEditStateChanged.emit()

    # --- Reactions to timeline changes --------------------------------------
    def forgetBoard(self, board_id: str) -> None:
        """Drop selections that point at a board which no longer exists."""
        state = self._state
        if not state.is_editing or self._committing:
            return
        if board_id not in (state.source_board_id, state.target_board_id):
            return
        if state.mode == ConnectorEditMode.EDIT:
            self.reset()
        elif state.source_board_id == board_id:
            self._set_state(replace(state, source_board_id=None, target_board_id=None))
        else:
            self._set_state(replace(state, target_board_id=None))

    def forgetConnector(self, connector_id: str) -> None:
        if self._committing:
            return
        if self._state.selected_connector_id == connector_id:
            self.reset()

    # --- Properties exposed to QML ------------------------------------------
    @Property(bool, notify=connectorEditStateChanged)
    def isEditing(self) -> bool:
        return self._state.is_editing

    @Property(bool, notify=connectorEditStateChanged)
    def isCommitting(self) -> bool:
        return self._committing

    @Property(str, notify=connectorEditStateChanged)
    def mode(self) -> str:
        return self._state.mode.value if self._state.mode else ""

    @Property(str, notify=connectorEditStateChanged)
    def phaseName(self) -> str:
        return self.phase.value

    @Property(str, notify=connectorEditStateChanged)
    def selectedConnectorId(self) -> str:
        return self._state.selected_connector_id or ""

    @Property(str, notify=connectorEditStateChanged)
    def sourceBoardId(self) -> str:
        return self._state.source_board_id or ""

    @Property(str, notify=connectorEditStateChanged)
    def targetBoardId(self) -> str:
        return self._state.target_board_id or ""

    @Property(list, notify=connectorEditStateChanged)
    def tempBeads(self) -> List[Dict[str, Any]]:
        return [bead.to_dict() for bead in self._state.temp_beads]

    @Property(bool, notify=connectorEditStateChanged)
    def canFinish(self) -> bool:
        state = self._state
        if state.phase == ConnectorEditPhase.READY:
            return True
        return (
            state.phase == ConnectorEditPhase.EDITING
            and state.source_board_id is not None
            and state.target_board_id is not None
            and state.source_board_id != state.target_board_id
        )
