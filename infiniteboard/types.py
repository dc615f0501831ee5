"""Data types for the infinite board canvas.

Boards, bookmark entries and connector strings are immutable values. The
timeline controller owns the authoritative copies and replaces them wholesale
when the data service confirms a change.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .constants import DEFAULT_CONNECTOR_COLOR, DEFAULT_CONNECTOR_STROKE_WIDTH
from .errors import ValidationError


def _now() -> datetime:
    return datetime.now()


def _parse_timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str) and value:
        try:
            return datetime.fromisoformat(value)
        except ValueError:
            pass
    return _now()


@dataclass(frozen=True)
class Position:
    """A point on the canvas plane."""

    x: float
    y: float

    @staticmethod
    def coerce(value: Any) -> "Position":
        """Build a Position from a Position, an ``{x, y}`` mapping or a pair."""
        if isinstance(value, Position):
            return value
        try:
            if isinstance(value, Mapping):
                return Position(float(value["x"]), float(value["y"]))
            x, y = value
            return Position(float(x), float(y))
        except (KeyError, TypeError, ValueError) as exc:
            raise ValidationError(f"Invalid position: {value!r}") from exc

    def offset(self, dx: float, dy: float) -> "Position":
        return Position(self.x + dx, self.y + dy)

    def to_dict(self) -> Dict[str, float]:
        return {"x": self.x, "y": self.y}


@dataclass(frozen=True)
class Board:
    """A positioned container node on the canvas."""

    id: str
    title: str
    position: Position
    created_at: datetime = field(default_factory=_now)
    updated_at: datetime = field(default_factory=_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "position": self.position.to_dict(),
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> "Board":
        return Board(
            id=str(data["id"]),
            title=str(data.get("title", "")),
            position=Position.coerce(data.get("position", {"x": 0.0, "y": 0.0})),
            created_at=_parse_timestamp(data.get("created_at")),
            updated_at=_parse_timestamp(data.get("updated_at")),
        )


@dataclass(frozen=True)
class BookmarkEntry:
    """An item displayed inside exactly one board."""

    id: str
    board_id: str
    title: str
    url: Optional[str] = None
    description: Optional[str] = None
    icon: Optional[str] = None
    order: int = 0
    created_at: datetime = field(default_factory=_now)
    updated_at: datetime = field(default_factory=_now)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "board_id": self.board_id,
            "title": self.title,
            "order": self.order,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }
        if self.url is not None:
            data["url"] = self.url
        if self.description is not None:
            data["description"] = self.description
        if self.icon is not None:
            data["icon"] = self.icon
        return data

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> "BookmarkEntry":
        return BookmarkEntry(
            id=str(data["id"]),
            board_id=str(data["board_id"]),
            title=str(data.get("title", "")),
            url=data.get("url"),
            description=data.get("description"),
            icon=data.get("icon"),
            order=int(data.get("order", 0)),
            created_at=_parse_timestamp(data.get("created_at")),
            updated_at=_parse_timestamp(data.get("updated_at")),
        )


@dataclass(frozen=True)
class ConnectorBead:
    """A waypoint a connector is routed through, in absolute canvas coordinates."""

    id: str
    x: float
    y: float
    order: int = 0

    @property
    def position(self) -> Position:
        return Position(self.x, self.y)

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "x": self.x, "y": self.y, "order": self.order}

    @staticmethod
    def coerce(value: Any) -> "ConnectorBead":
        if isinstance(value, ConnectorBead):
            return value
        try:
            return ConnectorBead(
                id=str(value.get("id", "")),
                x=float(value["x"]),
                y=float(value["y"]),
                order=int(value.get("order", 0)),
            )
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            raise ValidationError(f"Invalid bead: {value!r}") from exc


@dataclass(frozen=True)
class ConnectorString:
    """A directed edge between two distinct boards."""

    id: str
    from_board_id: str
    to_board_id: str
    beads: Tuple[ConnectorBead, ...] = ()
    color: str = DEFAULT_CONNECTOR_COLOR
    stroke_width: float = DEFAULT_CONNECTOR_STROKE_WIDTH
    created_at: datetime = field(default_factory=_now)
    updated_at: datetime = field(default_factory=_now)

    def touches(self, board_id: str) -> bool:
        return self.from_board_id == board_id or self.to_board_id == board_id

    def ordered_beads(self) -> List[ConnectorBead]:
        """Return beads ascending by order; ties keep their stored sequence."""
        return sorted(self.beads, key=lambda bead: bead.order)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "from_board_id": self.from_board_id,
            "to_board_id": self.to_board_id,
            "beads": [bead.to_dict() for bead in self.beads],
            "color": self.color,
            "stroke_width": self.stroke_width,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> "ConnectorString":
        return ConnectorString(
            id=str(data["id"]),
            from_board_id=str(data["from_board_id"]),
            to_board_id=str(data["to_board_id"]),
            beads=tuple(ConnectorBead.coerce(b) for b in data.get("beads", [])),
            color=str(data.get("color", DEFAULT_CONNECTOR_COLOR)),
            stroke_width=float(data.get("stroke_width", DEFAULT_CONNECTOR_STROKE_WIDTH)),
            created_at=_parse_timestamp(data.get("created_at")),
            updated_at=_parse_timestamp(data.get("updated_at")),
        )


@dataclass
class TimelineData:
    """The aggregate of everything drawn on one canvas."""

    boards: List[Board] = field(default_factory=list)
    bookmarks: List[BookmarkEntry] = field(default_factory=list)
    connectors: List[ConnectorString] = field(default_factory=list)

    def copy(self) -> "TimelineData":
        return TimelineData(list(self.boards), list(self.bookmarks), list(self.connectors))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "boards": [board.to_dict() for board in self.boards],
            "bookmarks": [bookmark.to_dict() for bookmark in self.bookmarks],
            "connectors": [connector.to_dict() for connector in self.connectors],
        }

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> "TimelineData":
        return TimelineData(
            boards=[Board.from_dict(b) for b in data.get("boards", [])],
            bookmarks=[BookmarkEntry.from_dict(b) for b in data.get("bookmarks", [])],
            connectors=[ConnectorString.from_dict(c) for c in data.get("connectors", [])],
        )


@dataclass(frozen=True)
class BoardMove:
    """A computed position change for one board."""

    board_id: str
    position: Position


class DragKind(Enum):
    """Things that can be dragged on the canvas."""

    BOARD = "board"
    BOOKMARK = "bookmark"
    BEAD = "bead"


@dataclass(frozen=True)
class DragState:
    """Snapshot of an in-progress (or just finished) drag session."""

    kind: DragKind
    item_id: str
    start: Position
    current: Position
    owner_id: str = ""

    @property
    def delta(self) -> Tuple[float, float]:
        return (self.current.x - self.start.x, self.current.y - self.start.y)


class ConnectorEditMode(Enum):
    CREATE = "create"
    EDIT = "edit"


class ConnectorEditPhase(Enum):
    """Where the connector-authoring flow currently is."""

    INACTIVE = "inactive"
    SOURCE_PENDING = "source_pending"
    TARGET_PENDING = "target_pending"
    READY = "ready"
    EDITING = "editing"


@dataclass(frozen=True)
class ConnectorEditState:
    mode: Optional[ConnectorEditMode] = None
    selected_connector_id: Optional[str] = None
    source_board_id: Optional[str] = None
    target_board_id: Optional[str] = None
    temp_beads: Tuple[ConnectorBead, ...] = ()

    @property
    def is_editing(self) -> bool:
        return self.mode is not None

    @property
    def phase(self) -> ConnectorEditPhase:
        if self.mode is None:
            return ConnectorEditPhase.INACTIVE
        if self.mode == ConnectorEditMode.EDIT:
            return ConnectorEditPhase.EDITING
        if self.source_board_id is None:
            return ConnectorEditPhase.SOURCE_PENDING
        if self.target_board_id is None:
            return ConnectorEditPhase.TARGET_PENDING
        return ConnectorEditPhase.READY


class PathCommandType(Enum):
    MOVE = "M"
    QUAD = "Q"
    LINE = "L"


@dataclass(frozen=True)
class PathCommand:
    """One absolute draw command; QUAD carries (control, end)."""

    kind: PathCommandType
    points: Tuple[Position, ...]

    @property
    def end(self) -> Position:
        return self.points[-1]


# --- Patches -----------------------------------------------------------------

BOARD_PATCH_FIELDS = frozenset({"title", "position"})
BOOKMARK_PATCH_FIELDS = frozenset({"title", "url", "description", "icon", "order"})
CONNECTOR_PATCH_FIELDS = frozenset(
    {"from_board_id", "to_board_id", "beads", "color", "stroke_width"}
)


def normalize_patch(patch: Mapping[str, Any], allowed: frozenset) -> Dict[str, Any]:
    """Validate patch keys and coerce values to their model types."""
    unknown = sorted(set(patch) - allowed)
    if unknown:
        raise ValidationError(f"Fields cannot be updated: {', '.join(unknown)}")
    result: Dict[str, Any] = {}
    for key, value in patch.items():
        if key == "position":
            value = Position.coerce(value)
        elif key == "beads":
            try:
                value = tuple(ConnectorBead.coerce(bead) for bead in value)
            except TypeError:
                raise ValidationError(f"Invalid beads: {value!r}") from None
        elif key in ("order", "stroke_width"):
            cast = int if key == "order" else float
            try:
                value = cast(value)
            except (TypeError, ValueError):
                raise ValidationError(f"Invalid {key}: {value!r}") from None
        elif key in ("title", "color", "from_board_id", "to_board_id"):
            value = str(value)
        result[key] = value
    return result


def apply_patch(value: Any, patch: Mapping[str, Any]) -> Any:
    """Return a copy of a model value with patch fields replaced and a new timestamp."""
    names = {f.name for f in fields(value)}
    changes = {key: patch[key] for key in patch if key in names}
    if "updated_at" in names:
        changes["updated_at"] = _now()
    return replace(value, **changes)
