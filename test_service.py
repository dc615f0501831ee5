"""Tests for the in-memory and JSON file timeline services."""

import asyncio
import json

import pytest

from infiniteboard import (
    InMemoryTimelineService,
    JsonFileTimelineService,
    NotFoundError,
    PersistenceError,
    Position,
    ValidationError,
)
from infiniteboard.types import TimelineData


def run(coro):
    return asyncio.run(coro)


class TestSampleData:
    def test_sample_contents(self, service):
        data = run(service.get_all())
        assert [b.id for b in data.boards] == ["board_1", "board_2"]
        assert [b.title for b in data.boards] == ["Welcome Board", "Ideas & Research"]
        assert data.boards[0].position == Position(200, 150)
        assert {b.board_id for b in data.bookmarks} == {"board_1", "board_2"}
        assert data.connectors == []

    def test_ids_continue_after_seed(self, service):
        board = run(service.create_board("New", Position(0, 0)))
        assert board.id == "board_5"

    def test_get_all_returns_snapshot(self, service):
        data = run(service.get_all())
        data.boards.clear()
        assert len(run(service.get_all()).boards) == 2


class TestBoards:
    def test_create_and_update(self):
        service = InMemoryTimelineService()
        board = run(service.create_board("Plans", {"x": 10, "y": 20}))
        assert board.position == Position(10, 20)
        updated = run(service.update_board(board.id, {"title": "Roadmap"}))
        assert updated.title == "Roadmap"
        assert updated.position == board.position
        assert updated.updated_at >= board.updated_at

    def test_update_missing_board(self, service):
        with pytest.raises(NotFoundError):
            run(service.update_board("nope", {"title": "x"}))

    def test_unknown_patch_field(self, service):
        with pytest.raises(ValidationError):
            run(service.update_board("board_1", {"color": "red"}))

    def test_delete_board_cascades(self, service):
        run(service.create_connector("board_1", "board_2"))
        run(service.delete_board("board_1"))
        data = run(service.get_all())
        assert [b.id for b in data.boards] == ["board_2"]
        assert all(b.board_id != "board_1" for b in data.bookmarks)
        assert data.connectors == []

    def test_delete_missing_board(self, service):
        with pytest.raises(NotFoundError):
            run(service.delete_board("nope"))


class TestBookmarks:
    def test_new_bookmark_is_appended(self, service):
        bookmark = run(service.create_bookmark("board_1", "Docs", url="https://docs.example.com"))
        assert bookmark.order == 1
        assert bookmark.board_id == "board_1"
        assert bookmark.url == "https://docs.example.com"
        assert bookmark.description is None

    def test_bookmark_on_missing_board(self, service):
        with pytest.raises(NotFoundError):
            run(service.create_bookmark("nope", "Docs"))

    def test_move_bookmark(self, service):
        moved = run(service.move_bookmark("bookmark_3", "board_2", 1))
        assert moved.board_id == "board_2"
        assert moved.order == 1

    def test_move_to_missing_board_changes_nothing(self, service):
        with pytest.raises(NotFoundError):
            run(service.move_bookmark("bookmark_3", "nope", 0))
        data = run(service.get_all())
        assert next(b for b in data.bookmarks if b.id == "bookmark_3").board_id == "board_1"

    def test_update_and_delete(self, service):
        updated = run(service.update_bookmark("bookmark_3", {"description": "Start here"}))
        assert updated.description == "Start here"
        run(service.delete_bookmark("bookmark_3"))
        with pytest.raises(NotFoundError):
            run(service.delete_bookmark("bookmark_3"))


class TestConnectors:
    def test_defaults(self, service):
        connector = run(service.create_connector("board_1", "board_2"))
        assert connector.color == "#3b82f6"
        assert connector.stroke_width == 2.0
        assert connector.beads == ()

    def test_self_loop_rejected(self, service):
        with pytest.raises(ValidationError):
            run(service.create_connector("board_1", "board_1"))

    def test_missing_endpoint(self, service):
        with pytest.raises(NotFoundError):
            run(service.create_connector("board_1", "nope"))

    def test_temporary_beads_get_permanent_ids(self, service):
        connector = run(
            service.create_connector(
                "board_1",
                "board_2",
                beads=[
                    {"id": "temp-1", "x": 1, "y": 2, "order": 5},
                    {"id": "temp-2", "x": 3, "y": 4, "order": 2},
                ],
            )
        )
        assert [(b.x, b.order) for b in connector.beads] == [(3, 0), (1, 1)]
        assert all(not b.id.startswith("temp-") for b in connector.beads)
        assert len({b.id for b in connector.beads}) == 2

    def test_update_keeps_existing_bead_ids(self, service):
        connector = run(
            service.create_connector("board_1", "board_2", beads=[{"x": 1, "y": 1}])
        )
        bead_id = connector.beads[0].id
        updated = run(
            service.update_connector(
                connector.id,
                {"beads": [{"id": bead_id, "x": 5, "y": 5, "order": 0}], "color": "#ff0000"},
            )
        )
        assert updated.beads[0].id == bead_id
        assert updated.beads[0].x == 5
        assert updated.color == "#ff0000"

    def test_update_cannot_create_self_loop(self, service):
        connector = run(service.create_connector("board_1", "board_2"))
        with pytest.raises(ValidationError):
            run(service.update_connector(connector.id, {"to_board_id": "board_1"}))

    def test_delete_connector(self, service):
        connector = run(service.create_connector("board_1", "board_2"))
        run(service.delete_connector(connector.id))
        assert run(service.get_all()).connectors == []


class TestLatency:
    def test_calls_suspend(self):
        service = InMemoryTimelineService(latency=0.01)

        async def scenario():
            task = asyncio.ensure_future(service.create_board("Later", Position(0, 0)))
            await asyncio.sleep(0)
            assert not task.done()
            return await task

        assert run(scenario()).title == "Later"


class TestJsonFileService:
    def test_round_trip_through_file(self, tmp_path):
        path = tmp_path / "canvas.json"
        first = JsonFileTimelineService(path)
        board_a = run(first.create_board("A", Position(0, 0)))
        board_b = run(first.create_board("B", Position(500, 100)))
        run(first.create_bookmark(board_a.id, "Link", url="https://example.com", icon="🔗"))
        connector = run(first.create_connector(board_a.id, board_b.id, beads=[{"x": 250, "y": 50}]))

        payload = json.loads(path.read_text(encoding="utf-8"))
        assert payload["version"] == "1.0"
        assert len(payload["boards"]) == 2

        second = JsonFileTimelineService(path)
        data = run(second.get_all())
        assert [b.title for b in data.boards] == ["A", "B"]
        assert data.bookmarks[0].icon == "🔗"
        assert data.connectors[0].id == connector.id
        assert data.connectors[0].beads[0].position == Position(250, 50)

        fresh = run(second.create_board("C", Position(0, 0)))
        existing = {b.id for b in data.boards} | {connector.id, connector.beads[0].id}
        assert fresh.id not in existing

    def test_missing_file_starts_empty(self, tmp_path):
        service = JsonFileTimelineService(tmp_path / "new.json")
        assert run(service.get_all()) == TimelineData()
        assert not service.path.exists()

    def test_corrupt_file(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("not json", encoding="utf-8")
        with pytest.raises(PersistenceError):
            run(JsonFileTimelineService(path).get_all())

    def test_failed_write_rolls_back(self, tmp_path):
        service = JsonFileTimelineService(tmp_path / "missing" / "canvas.json")
        with pytest.raises(PersistenceError):
            run(service.create_board("A", Position(0, 0)))
        assert run(service.get_all()).boards == []
