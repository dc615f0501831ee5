"""Connector routing and board arrangement geometry.

Everything in here is a pure function over model values: nothing is mutated
and nothing is persisted. Callers commit the returned moves themselves.
"""

from __future__ import annotations

import math
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from .constants import (
    BOARD_CENTER_OFFSET_X,
    BOARD_CENTER_OFFSET_Y,
    CONNECTOR_ARC_FACTOR,
    CURVE_FLATTEN_STEPS,
    DISTRIBUTE_SPACING,
    NEAR_PATH_THRESHOLD,
    NEW_BOARD_ORIGIN_X,
    NEW_BOARD_ORIGIN_Y,
    NEW_BOARD_SPACING_X,
    NEW_BOARD_SPACING_Y,
    NEW_BOARDS_PER_ROW,
)
from .types import (
    Board,
    BoardMove,
    ConnectorString,
    PathCommand,
    PathCommandType,
    Position,
)


def board_center(position: Position) -> Position:
    """Return the point connectors attach to for a board at ``position``."""
    return Position(position.x + BOARD_CENTER_OFFSET_X, position.y + BOARD_CENTER_OFFSET_Y)


def midpoint(a: Position, b: Position) -> Position:
    return Position((a.x + b.x) / 2, (a.y + b.y) / 2)


def board_positions(boards: Iterable[Board]) -> Dict[str, Position]:
    """Map board ids to their committed positions."""
    return {board.id: board.position for board in boards}


# --- Connector paths ---------------------------------------------------------
def generate_path(
    connector: ConnectorString,
    positions: Mapping[str, Position],
) -> List[PathCommand]:
    """Build the draw commands for a connector.

    Without beads the path is a single quadratic arc between the two board
    centers, lifted by a fifth of their horizontal distance. With beads the
    path curves into the first bead, runs straight through the following
    ones, and curves out of the last bead into the target.

    Returns an empty list when either endpoint has no known position.
    """
    source = positions.get(connector.from_board_id)
    target = positions.get(connector.to_board_id)
    if source is None or target is None:
        return []

    start = board_center(source)
    end = board_center(target)
    commands = [PathCommand(PathCommandType.MOVE, (start,))]

    beads = connector.ordered_beads()
    if not beads:
        mid = midpoint(start, end)
        lift = abs(end.x - start.x) * CONNECTOR_ARC_FACTOR
        control = Position(mid.x, mid.y - lift)
        commands.append(PathCommand(PathCommandType.QUAD, (control, end)))
        return commands

    first = beads[0].position
    commands.append(PathCommand(PathCommandType.QUAD, (midpoint(start, first), first)))
    for bead in beads[1:]:
        commands.append(PathCommand(PathCommandType.LINE, (bead.position,)))
    last = beads[-1].position
    commands.append(PathCommand(PathCommandType.QUAD, (midpoint(last, end), end)))
    return commands


def _format_number(value: float) -> str:
    value = float(value)
    if value.is_integer():
        return str(int(value))
    return repr(value)


def path_to_svg(commands: Sequence[PathCommand]) -> str:
    """Serialize draw commands as SVG path data (``M x y Q cx cy x y L x y``)."""
    parts: List[str] = []
    for command in commands:
        parts.append(command.kind.value)
        for point in command.points:
            parts.append(_format_number(point.x))
            parts.append(_format_number(point.y))
    return " ".join(parts)


def generate_svg_path(connector: ConnectorString, positions: Mapping[str, Position]) -> str:
    return path_to_svg(generate_path(connector, positions))


def _quad_point(p0: Position, control: Position, p1: Position, t: float) -> Position:
    u = 1.0 - t
    return Position(
        u * u * p0.x + 2 * u * t * control.x + t * t * p1.x,
        u * u * p0.y + 2 * u * t * control.y + t * t * p1.y,
    )


def flatten_path(commands: Sequence[PathCommand], steps: int = CURVE_FLATTEN_STEPS) -> List[Position]:
    """Approximate a path by a polyline; quadratic segments become ``steps`` lines."""
    points: List[Position] = []
    for command in commands:
        if command.kind == PathCommandType.QUAD and points:
            start = points[-1]
            control, end = command.points
            for i in range(1, steps + 1):
                points.append(_quad_point(start, control, end, i / steps))
        else:
            points.append(command.end)
    return points


def _segment_distance(point: Position, a: Position, b: Position) -> float:
    dx = b.x - a.x
    dy = b.y - a.y
    length_sq = dx * dx + dy * dy
    if length_sq == 0:
        return math.hypot(point.x - a.x, point.y - a.y)
    t = ((point.x - a.x) * dx + (point.y - a.y) * dy) / length_sq
    t = max(0.0, min(1.0, t))
    return math.hypot(point.x - (a.x + t * dx), point.y - (a.y + t * dy))


def distance_to_path(point: Position, commands: Sequence[PathCommand]) -> float:
    """Return the shortest distance from ``point`` to the drawn path (inf if empty)."""
    polyline = flatten_path(commands)
    if not polyline:
        return math.inf
    if len(polyline) == 1:
        return math.hypot(point.x - polyline[0].x, point.y - polyline[0].y)
    return min(
        _segment_distance(point, polyline[i], polyline[i + 1])
        for i in range(len(polyline) - 1)
    )


def is_near_path(
    point: Position,
    commands: Sequence[PathCommand],
    threshold: float = NEAR_PATH_THRESHOLD,
) -> bool:
    return distance_to_path(point, commands) <= threshold


# --- Snapping and arrangement ------------------------------------------------
def _snap_axis(value: float, grid_size: float) -> float:
    # Halves round up, matching browser Math.round.
    return float(math.floor(value / grid_size + 0.5) * grid_size)


def snap_to_grid(position: Position, grid_size: float) -> Position:
    """Round each axis to the nearest multiple of ``grid_size``."""
    if grid_size <= 0:
        raise ValueError("grid_size must be positive")
    return Position(_snap_axis(position.x, grid_size), _snap_axis(position.y, grid_size))


def align_horizontally(boards: Sequence[Board]) -> List[BoardMove]:
    """Move every board onto the first board's row (y), keeping x."""
    if len(boards) < 2:
        return []
    reference_y = boards[0].position.y
    return [
        BoardMove(board.id, Position(board.position.x, reference_y))
        for board in boards[1:]
        if board.position.y != reference_y
    ]


def align_vertically(boards: Sequence[Board]) -> List[BoardMove]:
    """Move every board onto the first board's column (x), keeping y."""
    if len(boards) < 2:
        return []
    reference_x = boards[0].position.x
    return [
        BoardMove(board.id, Position(reference_x, board.position.y))
        for board in boards[1:]
        if board.position.x != reference_x
    ]


def distribute_horizontally(
    boards: Sequence[Board],
    spacing: float = DISTRIBUTE_SPACING,
) -> List[BoardMove]:
    """Space boards evenly left to right, starting at the leftmost board."""
    if len(boards) < 2:
        return []
    ordered = sorted(boards, key=lambda board: board.position.x)
    moves: List[BoardMove] = []
    current_x = ordered[0].position.x
    for board in ordered[1:]:
        current_x += spacing
        if board.position.x != current_x:
            moves.append(BoardMove(board.id, Position(current_x, board.position.y)))
    return moves


def snap_boards(boards: Sequence[Board], grid_size: float) -> List[BoardMove]:
    moves: List[BoardMove] = []
    for board in boards:
        snapped = snap_to_grid(board.position, grid_size)
        if snapped != board.position:
            moves.append(BoardMove(board.id, snapped))
    return moves


def next_board_position(board_count: int, grid_size: Optional[float] = None) -> Position:
    """Return where the next new board goes, filling rows of three."""
    row = board_count // NEW_BOARDS_PER_ROW
    col = board_count % NEW_BOARDS_PER_ROW
    position = Position(
        NEW_BOARD_ORIGIN_X + col * NEW_BOARD_SPACING_X,
        NEW_BOARD_ORIGIN_Y + row * NEW_BOARD_SPACING_Y,
    )
    if grid_size:
        position = snap_to_grid(position, grid_size)
    return position
