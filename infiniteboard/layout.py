"""Board arrangement mixin for TimelineDataController.

Moves are computed by the pure functions in :mod:`.geometry` and committed one
board at a time through ``updateBoard``.
"""

from __future__ import annotations

from typing import Awaitable, Callable, List, Optional, Sequence

from .errors import ValidationError
from .geometry import (
    align_horizontally,
    align_vertically,
    distribute_horizontally,
    snap_boards,
)
from .types import Board, BoardMove, TimelineData


class LayoutMixin:
    """Mixin providing align/distribute/snap commands."""

    # Attributes expected from TimelineDataController
    _data: TimelineData
    getBoardById: Callable[[str], Optional[Board]]
    updateBoard: Callable[..., Awaitable[Board]]
    _reject: Callable[[str], ValidationError]

    def _boards_for(self, board_ids: Optional[Sequence[str]]) -> List[Board]:
        """Resolve a selection; None means every board in creation order."""
        if board_ids is None:
            return list(self._data.boards)
        boards = []
        for board_id in board_ids:
            board = self.getBoardById(board_id)
            if board is None:
                raise self._reject(f"Unknown board: {board_id}")
            boards.append(board)
        return boards

    async def _commit_moves(self, moves: List[BoardMove]) -> List[Board]:
        # Stops at the first failure; moves already confirmed stay committed.
        updated = []
        for move in moves:
            updated.append(await self.updateBoard(move.board_id, {"position": move.position}))
        return updated

    async def alignBoardsHorizontally(self, board_ids: Optional[Sequence[str]] = None) -> List[Board]:
        """Put the selected boards on the first board's row."""
        return await self._commit_moves(align_horizontally(self._boards_for(board_ids)))

    async def alignBoardsVertically(self, board_ids: Optional[Sequence[str]] = None) -> List[Board]:
        """Put the selected boards in the first board's column."""
        return await self._commit_moves(align_vertically(self._boards_for(board_ids)))

    async def distributeBoardsHorizontally(
        self,
        board_ids: Optional[Sequence[str]] = None,
    ) -> List[Board]:
        return await self._commit_moves(distribute_horizontally(self._boards_for(board_ids)))

    async def snapBoardsToGrid(
        self,
        grid_size: float,
        board_ids: Optional[Sequence[str]] = None,
    ) -> List[Board]:
        if grid_size <= 0:
            raise self._reject("Grid size must be positive")
        return await self._commit_moves(snap_boards(self._boards_for(board_ids), grid_size))
