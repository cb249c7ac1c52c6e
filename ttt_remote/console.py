from __future__ import annotations

import os
import sys
import time
from typing import Callable, List, Optional, Tuple

from .game.board import Cell, GameBoard, Phase
from .net.protocol import Event
from .session import GameSession

RESET = "\033[0m"
BOLD = "\033[1m"
DIM = "\033[2m"
RED = "\033[31m"
GREEN = "\033[32m"
BLUE = "\033[34m"


def clear_screen() -> None:
    if os.name == "nt":
        os.system("cls")
    else:
        sys.stdout.write("\033[2J\033[H")
        sys.stdout.flush()


def draw_board(board: GameBoard, color: bool = True) -> str:
    marks = {Cell.EMPTY: ".", Cell.X: "X", Cell.O: "O"}
    colors = {Cell.EMPTY: DIM, Cell.X: BLUE, Cell.O: RED}
    winning = set()
    if board.outcome is not None:
        winning = set(board.outcome.location.cells())
    lines: List[str] = ["   " + " ".join(str(c) for c in range(board.size))]
    for r in range(board.size):
        row_cells: List[str] = [f"{r}  "]
        for c in range(board.size):
            cell = board.grid[r][c]
            ch = marks.get(cell, "?")
            if color:
                style = GREEN + BOLD if (r, c) in winning else colors.get(cell, "")
                ch = style + ch + RESET
            row_cells.append(ch + " ")
        lines.append("".join(row_cells).rstrip())
    return "\n".join(lines)


def parse_move(text: str, size: int) -> Optional[Tuple[int, int]]:
    parts = text.replace(",", " ").split()
    if len(parts) != 2:
        return None
    try:
        row, col = int(parts[0]), int(parts[1])
    except ValueError:
        return None
    if not (0 <= row < size and 0 <= col < size):
        return None
    return row, col


REPLY_TIMEOUT = 5.0


def run_console(
    session: GameSession,
    read: Callable[[str], str] = input,
    color: bool = True,
    reply_timeout: float = REPLY_TIMEOUT,
) -> None:
    board = GameBoard()
    changed = [True]
    # monotonic time of the last unanswered command, None when nothing is pending
    awaiting: List[Optional[float]] = [None]

    def on_event(event: Event) -> None:
        follow_up = board.apply(event)
        if follow_up is not None:
            session.stream.send(follow_up)
        changed[0] = True
        awaiting[0] = None

    session.stream.on_event = on_event
    if not session.start():
        print("Unable to reach the game.")
        return
    try:
        while session.channel is not None and session.channel.is_open:
            session.pump(0.1)
            if changed[0]:
                changed[0] = False
                if color:
                    clear_screen()
                print(f"Player {board.symbol or '-'} vs {board.opponent or '?'}")
                print(draw_board(board, color))
                print(board.status_text())
                if board.last_error:
                    print(f"Error: {board.last_error}")
                    board.last_error = None
            if awaiting[0] is not None and time.monotonic() - awaiting[0] >= reply_timeout:
                print("No answer from the game, refreshing the board.")
                awaiting[0] = None
                session.stream.request_board_layout()
            if board.phase == Phase.GAME_OVER:
                answer = read("Play again? [y/N] ").strip().lower()
                if answer != "y":
                    return
                board.reset()
                changed[0] = True
                session.play_again()
            elif board.my_turn and awaiting[0] is None:
                text = read("Your move (row col), r = refresh, q = quit: ").strip().lower()
                if text == "q":
                    return
                if text == "r":
                    session.stream.request_board_layout()
                    awaiting[0] = time.monotonic()
                    continue
                move = parse_move(text, board.size)
                if move is None:
                    print("Enter a row and column, e.g. 1 2")
                    continue
                session.stream.move(*move)
                # wait for the authority to answer before prompting again
                awaiting[0] = time.monotonic()
        print("Connection to the game was lost.")
    finally:
        session.stop()
