from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

from ..net.protocol import (
    BOARD_SIZE,
    END_STATE_O_WON,
    END_STATE_X_WON,
    PLAYER_O,
    PLAYER_X,
    UNKNOWN_LOCATION,
    BoardLayout,
    Command,
    EndGame,
    Event,
    GameError,
    Joined,
    Moved,
    RequestBoardLayout,
    WinningLocation,
)

log = logging.getLogger(__name__)

FULL_GAME_MESSAGE = "Game is full."


class Cell:
    EMPTY = 0
    X = 1
    O = 2


class Phase:
    UNJOINED = "unjoined"
    PLAYING = "playing"
    OBSERVING = "observing"
    GAME_OVER = "game_over"


def cell_for_symbol(symbol: Optional[str]) -> int:
    if symbol == PLAYER_X:
        return Cell.X
    if symbol == PLAYER_O:
        return Cell.O
    return Cell.EMPTY


def symbol_for_cell(cell: int) -> Optional[str]:
    if cell == Cell.X:
        return PLAYER_X
    if cell == Cell.O:
        return PLAYER_O
    return None


def other_symbol(symbol: str) -> str:
    return PLAYER_O if symbol == PLAYER_X else PLAYER_X


@dataclass
class Outcome:
    winner: int  # Cell.X, Cell.O or Cell.EMPTY for a draw
    abandoned: bool
    location: WinningLocation = UNKNOWN_LOCATION


class GameBoard:
    """What a controller knows about the game, rebuilt from the events it receives."""

    def __init__(self, size: int = BOARD_SIZE) -> None:
        self.size = size
        self.grid: List[List[int]] = [[Cell.EMPTY for _ in range(size)] for _ in range(size)]
        self.assigned: int = Cell.EMPTY
        self.phase = Phase.UNJOINED
        self.turn: Optional[str] = None
        self.opponent: Optional[str] = None
        self.outcome: Optional[Outcome] = None
        self.last_error: Optional[str] = None

    @property
    def symbol(self) -> Optional[str]:
        return symbol_for_cell(self.assigned)

    @property
    def my_turn(self) -> bool:
        return self.phase == Phase.PLAYING and self.turn is not None and self.turn == self.symbol

    def clear(self) -> None:
        for row in self.grid:
            for c in range(len(row)):
                row[c] = Cell.EMPTY

    def in_bounds(self, row: int, column: int) -> bool:
        return 0 <= row < self.size and 0 <= column < self.size

    def can_move(self, row: int, column: int) -> bool:
        return self.my_turn and self.in_bounds(row, column) and self.grid[row][column] == Cell.EMPTY

    def reset(self) -> None:
        """Forget the previous game before joining again."""
        self.clear()
        self.assigned = Cell.EMPTY
        self.phase = Phase.UNJOINED
        self.turn = None
        self.opponent = None
        self.outcome = None
        self.last_error = None

    # --------------------------- Events ---------------------------
    def apply(self, event: Event) -> Optional[Command]:
        """Update from one event; returns a follow-up command for the caller to send, if any."""
        if isinstance(event, Joined):
            self._on_joined(event)
        elif isinstance(event, Moved):
            self._on_moved(event)
        elif isinstance(event, EndGame):
            self._on_end(event)
        elif isinstance(event, GameError):
            return self._on_error(event)
        elif isinstance(event, BoardLayout):
            self.update_board(event.board)
        return None

    def _on_joined(self, event: Joined) -> None:
        self.clear()
        self.outcome = None
        self.assigned = cell_for_symbol(event.player)
        self.opponent = event.opponent
        self.turn = PLAYER_X
        if self.assigned == Cell.EMPTY:
            log.warning("Joined with unknown player symbol %r", event.player)
            self.phase = Phase.OBSERVING
        else:
            self.phase = Phase.PLAYING

    def _on_moved(self, event: Moved) -> None:
        cell = cell_for_symbol(event.player)
        if cell == Cell.EMPTY:
            log.warning("Move by unknown player %r ignored", event.player)
            return
        if not self.in_bounds(event.row, event.column):
            log.warning("Move outside the board ignored: (%d, %d)", event.row, event.column)
            return
        self.grid[event.row][event.column] = cell
        self.turn = other_symbol(event.player)

    def _on_end(self, event: EndGame) -> None:
        if event.end_state == END_STATE_X_WON:
            winner = Cell.X
        elif event.end_state == END_STATE_O_WON:
            winner = Cell.O
        elif event.abandoned:
            winner = self.assigned
        else:
            winner = Cell.EMPTY
        self.outcome = Outcome(winner, event.abandoned, event.location)
        self.phase = Phase.GAME_OVER
        self.turn = None

    def _on_error(self, event: GameError) -> Optional[Command]:
        self.last_error = event.message
        if event.message != FULL_GAME_MESSAGE:
            return None
        self.clear()
        self.assigned = Cell.EMPTY
        self.phase = Phase.OBSERVING
        return RequestBoardLayout()

    def update_board(self, board: Sequence[Sequence[int]]) -> None:
        for r in range(self.size):
            for c in range(self.size):
                value = board[r][c]
                self.grid[r][c] = value if value in (Cell.EMPTY, Cell.X, Cell.O) else Cell.EMPTY

    # --------------------------- Display ---------------------------
    def status_text(self) -> str:
        if self.phase == Phase.UNJOINED:
            return "Waiting for player assignment..."
        if self.phase == Phase.OBSERVING:
            return "Game is full. Observing." if self.last_error == FULL_GAME_MESSAGE else "Observing."
        if self.phase == Phase.PLAYING:
            if self.my_turn:
                return f"Your turn ({self.symbol})."
            return f"Player {self.turn}'s turn."
        outcome = self.outcome
        if outcome is None:
            return "Game over."
        if outcome.abandoned:
            if self.assigned == Cell.EMPTY:
                return "The other players abandoned the game."
            return "Your opponent abandoned the game."
        if outcome.winner == Cell.EMPTY:
            return "It's a tie!"
        return f"Player {symbol_for_cell(outcome.winner)} wins!"
