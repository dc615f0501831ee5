"""Infinite canvas of boards, bookmark entries and routed connectors.

Built with PySide6 and QML. Committed data lives in the timeline controller;
drags and connector authoring are transient until they are committed.
"""

from .board_model import BoardListModel
from .canvas import TimelineCanvas
from .errors import NotFoundError, PersistenceError, TimelineError, ValidationError
from .geometry import (
    align_horizontally,
    align_vertically,
    distribute_horizontally,
    generate_path,
    generate_svg_path,
    is_near_path,
    snap_to_grid,
)
from .routing import DragAndRouteController
from .service import InMemoryTimelineService, JsonFileTimelineService, TimelineService
from .settings import CanvasSettings
from .timeline import TimelineDataController
from .types import (
    Board,
    BookmarkEntry,
    ConnectorBead,
    ConnectorEditMode,
    ConnectorEditState,
    ConnectorString,
    DragKind,
    DragState,
    PathCommand,
    Position,
    TimelineData,
)
from .ui import create_timeline_window, main

__all__ = [
    "Board",
    "BoardListModel",
    "BookmarkEntry",
    "CanvasSettings",
    "ConnectorBead",
    "ConnectorEditMode",
    "ConnectorEditState",
    "ConnectorString",
    "DragAndRouteController",
    "DragKind",
    "DragState",
    "InMemoryTimelineService",
    "JsonFileTimelineService",
    "NotFoundError",
    "PathCommand",
    "PersistenceError",
    "Position",
    "TimelineCanvas",
    "TimelineData",
    "TimelineDataController",
    "TimelineError",
    "TimelineService",
    "ValidationError",
    "align_horizontally",
    "align_vertically",
    "create_timeline_window",
    "distribute_horizontally",
    "generate_path",
    "generate_svg_path",
    "is_near_path",
    "main",
    "snap_to_grid",
]
