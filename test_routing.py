"""Tests for drag sessions, connector authoring and the routing controller."""

import asyncio

import pytest

from infiniteboard import (
    DragAndRouteController,
    DragKind,
    InMemoryTimelineService,
    PersistenceError,
    Position,
    TimelineDataController,
)
from infiniteboard.authoring import ConnectorAuthoring
from infiniteboard.drag import DragSession
from infiniteboard.types import ConnectorEditMode, ConnectorEditPhase, PathCommandType


def run(coro):
    return asyncio.run(coro)


class RefusingService(InMemoryTimelineService):
    """Fails connector creation until ``refuse`` is cleared."""

    refuse = True

    async def create_connector(self, *args, **kwargs):
        if self.refuse:
            raise PersistenceError("store offline")
        return await super().create_connector(*args, **kwargs)


class TestDragSession:
    def test_drag_lifecycle(self, app):
        session = DragSession()
        changes = []
        session.dragStateChanged.connect(lambda: changes.append(session.isDragging))

        assert session.startDrag("board", "board_1", 210, 160)
        assert session.isDragging
        assert session.updateDrag(260, 190)
        assert (session.dragOffsetX, session.dragOffsetY) == (50, 30)
        assert session.offsetFor(DragKind.BOARD, "board_1") == (50, 30)
        assert session.offsetFor(DragKind.BOARD, "board_2") == (0.0, 0.0)
        assert session.offsetFor(DragKind.BEAD, "board_1") == (0.0, 0.0)

        finished = session.endDrag()
        assert finished.kind == DragKind.BOARD
        assert finished.delta == (50, 30)
        assert session.state is None
        assert changes == [True, True, False]

    def test_one_drag_at_a_time(self, app):
        session = DragSession()
        assert session.startDrag("bookmark", "bookmark_3", 0, 0, "board_1")
        assert not session.startDrag("board", "board_1", 0, 0)
        assert session.state.owner_id == "board_1"

    def test_invalid_requests_are_ignored(self, app):
        session = DragSession()
        assert not session.startDrag("sticker", "x", 0, 0)
        assert not session.startDrag("board", "", 0, 0)
        assert not session.updateDrag(1, 1)
        assert session.endDrag() is None

    def test_cancel(self, app):
        session = DragSession()
        session.startDrag("bead", "bead_1", 0, 0, "connector_1")
        session.cancelDrag()
        assert not session.isDragging
        assert session.dragType == ""


class TestConnectorAuthoring:
    def test_create_flow(self, app):
        authoring = ConnectorAuthoring()
        assert authoring.phase == ConnectorEditPhase.INACTIVE
        assert authoring.startConnectorEdit("create")
        assert authoring.phase == ConnectorEditPhase.SOURCE_PENDING

        assert not authoring.selectTargetBoard("b")
        assert authoring.selectSourceBoard("a")
        assert authoring.phase == ConnectorEditPhase.TARGET_PENDING
        assert authoring.addTempBead(1, 1) == ""

        assert not authoring.selectTargetBoard("a")
        assert authoring.selectTargetBoard("b")
        assert authoring.phase == ConnectorEditPhase.READY
        assert authoring.canFinish

    def test_new_source_clears_target(self, app):
        authoring = ConnectorAuthoring()
        authoring.startConnectorEdit("create")
        authoring.selectSourceBoard("a")
        authoring.selectTargetBoard("b")
        assert authoring.selectSourceBoard("c")
        assert authoring.state.target_board_id is None
        assert authoring.phase == ConnectorEditPhase.TARGET_PENDING

    def test_temp_beads(self, app):
        authoring = ConnectorAuthoring()
        authoring.startConnectorEdit("create")
        authoring.selectSourceBoard("a")
        authoring.selectTargetBoard("b")
        first = authoring.addTempBead(10, 20)
        second = authoring.addTempBead(30, 40)
        assert first.startswith("temp-") and second.startswith("temp-")
        assert [b.order for b in authoring.state.temp_beads] == [0, 1]

        assert authoring.updateTempBead(first, 11, 21)
        assert authoring.state.temp_beads[0].position == Position(11, 21)
        assert authoring.removeTempBead(first)
        assert not authoring.removeTempBead(first)
        assert [b["id"] for b in authoring.tempBeads] == [second]
        assert authoring.addTempBead(0, 0) != second
        assert authoring.state.temp_beads[-1].order == 2

    def test_cancel_discards_everything(self, app):
        authoring = ConnectorAuthoring()
        authoring.startConnectorEdit("create")
        authoring.selectSourceBoard("a")
        assert authoring.cancelConnectorEdit()
        assert authoring.phase == ConnectorEditPhase.INACTIVE
        assert authoring.state.source_board_id is None
        assert not authoring.cancelConnectorEdit()

    def test_unknown_mode(self, app):
        authoring = ConnectorAuthoring()
        assert not authoring.startConnectorEdit("draw")
        assert not authoring.startConnectorEdit("edit")
        assert not authoring.isEditing

    def test_restart_while_editing_is_refused(self, app):
        authoring = ConnectorAuthoring()
        authoring.startConnectorEdit("create")
        authoring.selectSourceBoard("a")
        authoring.selectTargetBoard("b")
        authoring.addTempBead(5, 5)
        before = authoring.state
        assert not authoring.startConnectorEdit("create")
        assert authoring.state == before
        assert authoring.phase == ConnectorEditPhase.READY
        authoring.cancelConnectorEdit()
        assert authoring.startConnectorEdit("create")

    def test_commit_blocks_input(self, app):
        authoring = ConnectorAuthoring()
        authoring.startConnectorEdit("create")
        authoring.selectSourceBoard("a")
        authoring.selectTargetBoard("b")
        assert authoring.beginCommit()
        assert authoring.isCommitting
        assert not authoring.beginCommit()
        assert not authoring.selectSourceBoard("c")
        assert authoring.addTempBead(1, 1) == ""
        assert not authoring.cancelConnectorEdit()
        authoring.endCommit(False)
        assert authoring.phase == ConnectorEditPhase.READY
        assert authoring.beginCommit()
        authoring.endCommit(True)
        assert authoring.phase == ConnectorEditPhase.INACTIVE

    def test_forget_board(self, app):
        authoring = ConnectorAuthoring()
        authoring.startConnectorEdit("create")
        authoring.selectSourceBoard("a")
        authoring.selectTargetBoard("b")
        authoring.forgetBoard("b")
        assert authoring.phase == ConnectorEditPhase.TARGET_PENDING
        authoring.forgetBoard("a")
        assert authoring.phase == ConnectorEditPhase.SOURCE_PENDING


class TestDragAndRouteController:
    def test_drag_overlay_does_not_touch_committed_data(self, routing, timeline):
        routing.startDrag(DragKind.BOARD, "board_1", 210, 160)
        routing.updateDrag(260, 190)
        assert routing.boardPositions()["board_1"] == Position(250, 180)
        assert routing.boardPositions(include_drag=False)["board_1"] == Position(200, 150)
        assert timeline.getBoardById("board_1").position == Position(200, 150)
        state = routing.endDrag()
        assert state.delta == (50, 30)
        assert routing.dragState is None

    def test_create_connector(self, routing, timeline):
        committed = []
        routing.connectorCommitted.connect(committed.append)
        assert routing.startConnectorEdit("create")
        assert not routing.selectSourceBoard("nope")
        assert routing.selectSourceBoard("board_1")
        assert routing.selectTargetBoard("board_2")
        routing.addTempBead(400, 100)

        connector = run(routing.finishConnectorEdit())

        assert connector.from_board_id == "board_1"
        assert connector.to_board_id == "board_2"
        assert len(connector.beads) == 1
        assert not connector.beads[0].id.startswith("temp-")
        assert timeline.getConnectorById(connector.id) == connector
        assert committed == [connector.id]
        assert routing.connectorEditState.phase == ConnectorEditPhase.INACTIVE

    def test_finish_without_target_does_nothing(self, routing, timeline):
        routing.startConnectorEdit("create")
        routing.selectSourceBoard("board_1")
        assert run(routing.finishConnectorEdit()) is None
        assert timeline.timelineData().connectors == []
        assert routing.connectorEditState.phase == ConnectorEditPhase.TARGET_PENDING

    def test_cancel_never_persists(self, routing, timeline):
        routing.startConnectorEdit("create")
        routing.selectSourceBoard("board_1")
        routing.selectTargetBoard("board_2")
        routing.addTempBead(1, 2)
        assert routing.cancelConnectorEdit()
        assert timeline.timelineData().connectors == []
        assert routing.connectorEditState.temp_beads == ()

    def test_edit_existing_connector(self, routing, timeline):
        third = run(timeline.createBoard("Third", (1000, 500)))
        connector = run(timeline.createConnector("board_1", "board_2", beads=[{"x": 5, "y": 5}]))

        assert not routing.startConnectorEdit("edit", "connector_404")
        assert routing.startConnectorEdit(ConnectorEditMode.EDIT, connector.id)
        state = routing.connectorEditState
        assert state.phase == ConnectorEditPhase.EDITING
        assert (state.source_board_id, state.target_board_id) == ("board_1", "board_2")
        assert [b.id for b in state.temp_beads] == [connector.beads[0].id]

        routing.addTempBead(700, 400)
        assert routing.selectTargetBoard(third.id)
        updated = run(routing.finishConnectorEdit())

        assert updated.id == connector.id
        assert updated.to_board_id == third.id
        assert [b.position for b in updated.beads] == [Position(5, 5), Position(700, 400)]
        assert updated.beads[0].id == connector.beads[0].id

    def test_failed_finish_keeps_state(self, app):
        service = RefusingService.sample()
        timeline = TimelineDataController(service)
        run(timeline.loadTimeline())
        routing = DragAndRouteController(timeline)
        routing.startConnectorEdit("create")
        routing.selectSourceBoard("board_1")
        routing.selectTargetBoard("board_2")

        with pytest.raises(PersistenceError):
            run(routing.finishConnectorEdit())
        assert routing.connectorEditState.phase == ConnectorEditPhase.READY
        assert not routing.authoring.isCommitting
        assert timeline.error == "Failed to create connector: store offline"

        service.refuse = False
        assert run(routing.finishConnectorEdit()) is not None
        assert len(timeline.timelineData().connectors) == 1

    def test_input_ignored_while_committing(self, app):
        timeline = TimelineDataController(InMemoryTimelineService.sample(latency=0.01))
        run(timeline.loadTimeline())
        routing = DragAndRouteController(timeline)
        routing.startConnectorEdit("create")
        routing.selectSourceBoard("board_1")
        routing.selectTargetBoard("board_2")

        async def scenario():
            task = asyncio.ensure_future(routing.finishConnectorEdit())
            await asyncio.sleep(0)
            blocked = (
                routing.selectSourceBoard("board_2"),
                routing.cancelConnectorEdit(),
                routing.addTempBead(1, 1),
            )
            return blocked, await task

        blocked, connector = run(scenario())
        assert blocked == (False, False, "")
        assert connector.from_board_id == "board_1"

    def test_deleting_selected_board_clears_selection(self, routing, timeline):
        routing.startConnectorEdit("create")
        routing.selectSourceBoard("board_1")
        run(timeline.deleteBoard("board_1"))
        assert routing.connectorEditState.phase == ConnectorEditPhase.SOURCE_PENDING

    def test_deleting_edited_connector_cancels_edit(self, routing, timeline):
        connector = run(timeline.createConnector("board_1", "board_2"))
        routing.startConnectorEdit("edit", connector.id)
        run(timeline.deleteConnector(connector.id))
        assert not routing.authoring.isEditing

    def test_edit_refused_while_creating(self, routing, timeline):
        connector = run(timeline.createConnector("board_1", "board_2"))
        routing.startConnectorEdit("create")
        routing.selectSourceBoard("board_2")
        assert not routing.startConnectorEdit("edit", connector.id)
        assert routing.connectorEditState.mode == ConnectorEditMode.CREATE
        assert routing.connectorEditState.source_board_id == "board_2"

    def test_deleting_dragged_board_cancels_drag(self, routing, timeline):
        routing.startDrag("board", "board_2", 0, 0)
        run(timeline.deleteBoard("board_2"))
        assert routing.dragState is None

    def test_deleting_owner_board_cancels_bookmark_drag(self, routing, timeline):
        routing.startDrag("bookmark", "bookmark_3", 0, 0, "board_1")
        run(timeline.deleteBoard("board_1"))
        assert routing.dragState is None

    def test_displayed_connector_follows_bead_drag(self, routing, timeline):
        connector = run(timeline.createConnector("board_1", "board_2", beads=[{"x": 5, "y": 5}]))
        bead = connector.beads[0]
        routing.startDrag("bead", bead.id, 5, 5, connector.id)
        routing.updateDrag(15, 25)
        shown = routing.displayedConnector(connector)
        assert shown.beads[0].position == Position(15, 25)
        assert timeline.getConnectorById(connector.id).beads[0].position == Position(5, 5)

    def test_preview_follows_pointer(self, routing):
        routing.startConnectorEdit("create")
        assert routing.previewPath(Position(700, 500)) == []
        routing.selectSourceBoard("board_1")
        commands = routing.previewPath(Position(700, 500))
        assert commands[0].points[0] == Position(360, 350)
        assert commands[-1].kind == PathCommandType.QUAD
        assert commands[-1].end == Position(700, 500)
        assert routing.previewPath() == []

    def test_path_helpers(self, routing, timeline):
        connector = run(timeline.createConnector("board_1", "board_2"))
        positions = timeline.boardPositions()
        assert routing.generateSVGPath(connector, positions) == "M 360 350 Q 560 345 760 500"
        commands = routing.generatePath(connector, positions)
        assert routing.isNearPath(Position(360, 350), commands)
