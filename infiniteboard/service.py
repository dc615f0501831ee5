"""Data-access services for boards, bookmarks and connectors.

The controllers only depend on the :class:`TimelineService` protocol. Two
implementations ship with the package: an in-memory store used for demos and
tests, and a JSON file store for local persistence.
"""

from __future__ import annotations

import asyncio
import json
import logging
from contextlib import contextmanager
from datetime import datetime
from itertools import count
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, Mapping, Optional, Protocol, Sequence, Tuple

from .constants import (
    DEFAULT_CONNECTOR_COLOR,
    DEFAULT_CONNECTOR_STROKE_WIDTH,
    STORE_FORMAT_VERSION,
    TEMP_BEAD_PREFIX,
)
from .errors import NotFoundError, PersistenceError, TimelineError, ValidationError
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
    apply_patch,
    normalize_patch,
)

logger = logging.getLogger(__name__)


class TimelineService(Protocol):
    """Asynchronous CRUD contract for a timeline backing store.

    Unknown identifiers raise :class:`NotFoundError`; any other storage
    failure raises :class:`PersistenceError`.
    """

    async def get_all(self) -> TimelineData:
        ...

    async def create_board(self, title: str, position: Position) -> Board:
        ...

    async def update_board(self, board_id: str, patch: Mapping[str, Any]) -> Board:
        ...

    async def delete_board(self, board_id: str) -> None:
        ...

    async def create_bookmark(
        self,
        board_id: str,
        title: str,
        url: Optional[str] = None,
        description: Optional[str] = None,
        icon: Optional[str] = None,
    ) -> BookmarkEntry:
        ...

    async def update_bookmark(self, bookmark_id: str, patch: Mapping[str, Any]) -> BookmarkEntry:
        ...

    async def delete_bookmark(self, bookmark_id: str) -> None:
        ...

    async def move_bookmark(self, bookmark_id: str, new_board_id: str, new_order: int) -> BookmarkEntry:
        ...

    async def create_connector(
        self,
        from_board_id: str,
        to_board_id: str,
        beads: Sequence[ConnectorBead] = (),
        color: Optional[str] = None,
        stroke_width: Optional[float] = None,
    ) -> ConnectorString:
        ...

    async def update_connector(self, connector_id: str, patch: Mapping[str, Any]) -> ConnectorString:
        ...

    async def delete_connector(self, connector_id: str) -> None:
        ...


def _id_suffix(identifier: str) -> int:
    try:
        return int(identifier.rsplit("_", 1)[1])
    except (IndexError, ValueError):
        return 0


class InMemoryTimelineService:
    """A :class:`TimelineService` that keeps everything in dictionaries.

    ``latency`` suspends every call for that many seconds, which makes the
    asynchronous boundary observable in tests and demos.
    """

    def __init__(self, seed: Optional[TimelineData] = None, latency: float = 0.0) -> None:
        self._latency = latency
        self._boards: Dict[str, Board] = {}
        self._bookmarks: Dict[str, BookmarkEntry] = {}
        self._connectors: Dict[str, ConnectorString] = {}
        self._id_source = count(1)
        if seed is not None:
            self._load(seed)

    @classmethod
    def sample(cls, latency: float = 0.0) -> "InMemoryTimelineService":
        """Return a store seeded with two starter boards."""
        seed = TimelineData(
            boards=[
                Board(id="board_1", title="Welcome Board", position=Position(200.0, 150.0)),
                Board(id="board_2", title="Ideas & Research", position=Position(600.0, 300.0)),
            ],
            bookmarks=[
                BookmarkEntry(
                    id="bookmark_3",
                    board_id="board_1",
                    title="Getting Started",
                    url="https://example.com",
                ),
                BookmarkEntry(
                    id="bookmark_4",
                    board_id="board_2",
                    title="Research Notes",
                    url="https://research.example.com",
                ),
            ],
        )
        return cls(seed=seed, latency=latency)

    def _load(self, data: TimelineData) -> None:
        self._boards = {board.id: board for board in data.boards}
        self._bookmarks = {bookmark.id: bookmark for bookmark in data.bookmarks}
        self._connectors = {connector.id: connector for connector in data.connectors}
        # Resume id generation past anything already stored.
        max_id = 0
        for identifier in list(self._boards) + list(self._bookmarks) + list(self._connectors):
            max_id = max(max_id, _id_suffix(identifier))
        for connector in self._connectors.values():
            for bead in connector.beads:
                max_id = max(max_id, _id_suffix(bead.id))
        self._id_source = count(max_id + 1)

    def _snapshot(self) -> TimelineData:
        return TimelineData(
            boards=list(self._boards.values()),
            bookmarks=list(self._bookmarks.values()),
            connectors=list(self._connectors.values()),
        )

    def _next_id(self, prefix: str) -> str:
        return f"{prefix}_{next(self._id_source)}"

    async def _begin(self) -> None:
        await asyncio.sleep(self._latency)
        self._ensure_loaded()

    def _ensure_loaded(self) -> None:
        """Hook for stores that read their contents lazily."""

    def _commit(self) -> None:
        """Hook called after every mutation; raising rolls the mutation back."""

    @contextmanager
    def _mutation(self) -> Iterator[None]:
        saved: Tuple[Dict[str, Board], Dict[str, BookmarkEntry], Dict[str, ConnectorString]] = (
            dict(self._boards),
            dict(self._bookmarks),
            dict(self._connectors),
        )
        try:
            yield
            self._commit()
        except Exception:
            self._boards, self._bookmarks, self._connectors = saved
            raise

    def _board(self, board_id: str) -> Board:
        try:
            return self._boards[board_id]
        except KeyError:
            raise NotFoundError(f"Board with id {board_id} not found") from None

    def _bookmark(self, bookmark_id: str) -> BookmarkEntry:
        try:
            return self._bookmarks[bookmark_id]
        except KeyError:
            raise NotFoundError(f"Bookmark with id {bookmark_id} not found") from None

    def _connector(self, connector_id: str) -> ConnectorString:
        try:
            return self._connectors[connector_id]
        except KeyError:
            raise NotFoundError(f"Connector with id {connector_id} not found") from None

    def _normalize_beads(self, beads: Iterable[Any]) -> Tuple[ConnectorBead, ...]:
        ordered = sorted((ConnectorBead.coerce(b) for b in beads), key=lambda bead: bead.order)
        normalized = []
        for order, bead in enumerate(ordered):
            bead_id = bead.id
            if not bead_id or bead_id.startswith(TEMP_BEAD_PREFIX):
                bead_id = self._next_id("bead")
            normalized.append(ConnectorBead(id=bead_id, x=bead.x, y=bead.y, order=order))
        return tuple(normalized)

    # --- Reads --------------------------------------------------------------
    async def get_all(self) -> TimelineData:
        await self._begin()
        return self._snapshot()

    # --- Boards -------------------------------------------------------------
    async def create_board(self, title: str, position: Position) -> Board:
        await self._begin()
        now = datetime.now()
        board = Board(
            id=self._next_id("board"),
            title=title,
            position=Position.coerce(position),
            created_at=now,
            updated_at=now,
        )
        with self._mutation():
            self._boards[board.id] = board
        return board

    async def update_board(self, board_id: str, patch: Mapping[str, Any]) -> Board:
        await self._begin()
        changes = normalize_patch(patch, BOARD_PATCH_FIELDS)
        updated = apply_patch(self._board(board_id), changes)
        with self._mutation():
            self._boards[board_id] = updated
        return updated

    async def delete_board(self, board_id: str) -> None:
        await self._begin()
        self._board(board_id)
        with self._mutation():
            del self._boards[board_id]
            self._bookmarks = {
                key: bookmark for key, bookmark in self._bookmarks.items()
                if bookmark.board_id != board_id
            }
            self._connectors = {
                key: connector for key, connector in self._connectors.items()
                if not connector.touches(board_id)
            }

    # --- Bookmarks ----------------------------------------------------------
    async def create_bookmark(
        self,
        board_id: str,
        title: str,
        url: Optional[str] = None,
        description: Optional[str] = None,
        icon: Optional[str] = None,
    ) -> BookmarkEntry:
        await self._begin()
        self._board(board_id)
        order = sum(1 for bookmark in self._bookmarks.values() if bookmark.board_id == board_id)
        now = datetime.now()
        bookmark = BookmarkEntry(
            id=self._next_id("bookmark"),
            board_id=board_id,
            title=title,
            url=url,
            description=description,
            icon=icon,
            order=order,
            created_at=now,
            updated_at=now,
        )
        with self._mutation():
            self._bookmarks[bookmark.id] = bookmark
        return bookmark

    async def update_bookmark(self, bookmark_id: str, patch: Mapping[str, Any]) -> BookmarkEntry:
        await self._begin()
        changes = normalize_patch(patch, BOOKMARK_PATCH_FIELDS)
        updated = apply_patch(self._bookmark(bookmark_id), changes)
        with self._mutation():
            self._bookmarks[bookmark_id] = updated
        return updated

    async def delete_bookmark(self, bookmark_id: str) -> None:
        await self._begin()
        self._bookmark(bookmark_id)
        with self._mutation():
            del self._bookmarks[bookmark_id]

    async def move_bookmark(self, bookmark_id: str, new_board_id: str, new_order: int) -> BookmarkEntry:
        await self._begin()
        bookmark = self._bookmark(bookmark_id)
        self._board(new_board_id)
        moved = apply_patch(bookmark, {"board_id": new_board_id, "order": int(new_order)})
        with self._mutation():
            self._bookmarks[bookmark_id] = moved
        return moved

    # --- Connectors ---------------------------------------------------------
    async def create_connector(
        self,
        from_board_id: str,
        to_board_id: str,
        beads: Sequence[ConnectorBead] = (),
        color: Optional[str] = None,
        stroke_width: Optional[float] = None,
    ) -> ConnectorString:
        await self._begin()
        if from_board_id == to_board_id:
            raise ValidationError("A connector cannot start and end on the same board")
        self._board(from_board_id)
        self._board(to_board_id)
        now = datetime.now()
        connector = ConnectorString(
            id=self._next_id("connector"),
            from_board_id=from_board_id,
            to_board_id=to_board_id,
            beads=self._normalize_beads(beads),
            color=color or DEFAULT_CONNECTOR_COLOR,
            stroke_width=float(stroke_width) if stroke_width is not None else DEFAULT_CONNECTOR_STROKE_WIDTH,
            created_at=now,
            updated_at=now,
        )
        with self._mutation():
            self._connectors[connector.id] = connector
        return connector

    async def update_connector(self, connector_id: str, patch: Mapping[str, Any]) -> ConnectorString:
        await self._begin()
        changes = normalize_patch(patch, CONNECTOR_PATCH_FIELDS)
        current = self._connector(connector_id)
        if "beads" in changes:
            changes["beads"] = self._normalize_beads(changes["beads"])
        updated = apply_patch(current, changes)
        if updated.from_board_id == updated.to_board_id:
            raise ValidationError("A connector cannot start and end on the same board")
        self._board(updated.from_board_id)
        self._board(updated.to_board_id)
        with self._mutation():
            self._connectors[connector_id] = updated
        return updated

    async def delete_connector(self, connector_id: str) -> None:
        await self._begin()
        self._connector(connector_id)
        with self._mutation():
            del self._connectors[connector_id]


class JsonFileTimelineService(InMemoryTimelineService):
    """A :class:`TimelineService` persisted to a single JSON file.

    The file is read on first use and rewritten after every mutation. A failed
    write leaves both the file and the in-memory contents at their last good
    state.
    """

    def __init__(self, path: str | Path, latency: float = 0.0) -> None:
        super().__init__(latency=latency)
        self._path = Path(path)
        self._loaded = False

    @property
    def path(self) -> Path:
        return self._path

    def _ensure_loaded(self) -> None:
        if self._loaded:
            return
        if self._path.exists():
            try:
                payload = json.loads(self._path.read_text(encoding="utf-8"))
                if not isinstance(payload, dict):
                    raise ValueError("store must contain a JSON object")
                self._load(TimelineData.from_dict(payload))
            except (OSError, ValueError, KeyError, TimelineError) as exc:
                raise PersistenceError(f"Failed to read timeline store {self._path}: {exc}") from exc
            logger.info("Loaded timeline store %s", self._path)
        self._loaded = True

    def _commit(self) -> None:
        payload: Dict[str, Any] = {
            "version": STORE_FORMAT_VERSION,
            "saved_at": datetime.now().isoformat(),
        }
        payload.update(self._snapshot().to_dict())
        try:
            self._path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        except OSError as exc:
            raise PersistenceError(f"Failed to write timeline store {self._path}: {exc}") from exc
