from __future__ import annotations

import time
from typing import Optional, Tuple

import pygame

from .game.board import Cell, GameBoard, Phase
from .net.protocol import BOARD_SIZE, Event, GameError, WinningLocation
from .session import GameSession


# --------------------------- Pygame rendering ---------------------------

WINDOW_BG = (15, 18, 25)
GRID_BG = (23, 28, 38)
GRID_LINE = (50, 58, 72)
TEXT = (230, 235, 245)
SUBTEXT = (155, 165, 185)
CROSS = (60, 130, 200)
NAUGHT = (232, 93, 117)
HOVER = (90, 160, 245)
VICTORY = (90, 200, 120)
DEFEAT = (220, 60, 80)

CELL_SIZE = 120
PANEL_PADDING = 28
TOP_BAR = 84
BOTTOM_BAR = 90


class GuiGame:
    def __init__(self, session: GameSession) -> None:
        pygame.init()
        pygame.display.set_caption("TicTacToe Remote")
        total_width = CELL_SIZE * BOARD_SIZE + PANEL_PADDING * 2
        total_height = TOP_BAR + CELL_SIZE * BOARD_SIZE + BOTTOM_BAR
        self.screen = pygame.display.set_mode((total_width, total_height))
        self.clock = pygame.time.Clock()
        self.font = pygame.font.SysFont("Arial", 22)
        self.font_small = pygame.font.SysFont("Arial", 18)
        self.font_big = pygame.font.SysFont("Arial", 40, bold=True)

        self.session = session
        self.session.stream.on_event = self.on_event
        self.board = GameBoard()
        self.running = True
        self.info_message = ""
        self.message_timer: float = 0.0

    # --------------------------- Events ---------------------------
    def on_event(self, event: Event) -> None:
        follow_up = self.board.apply(event)
        if follow_up is not None:
            self.session.stream.send(follow_up)
        if isinstance(event, GameError):
            self.show_message(event.message, 4.0)

    # --------------------------- Utility ---------------------------
    def show_message(self, text: str, seconds: float = 2.0) -> None:
        self.info_message = text
        self.message_timer = time.time() + seconds

    def get_board_rect(self) -> pygame.Rect:
        return pygame.Rect(PANEL_PADDING, TOP_BAR, CELL_SIZE * BOARD_SIZE, CELL_SIZE * BOARD_SIZE)

    def mouse_to_cell(self, rect: pygame.Rect, pos: Tuple[int, int]) -> Optional[Tuple[int, int]]:
        if not rect.collidepoint(pos):
            return None
        x, y = pos
        col = (x - rect.x) // CELL_SIZE
        row = (y - rect.y) // CELL_SIZE
        if 0 <= row < BOARD_SIZE and 0 <= col < BOARD_SIZE:
            return int(row), int(col)
        return None

    def cell_center(self, rect: pygame.Rect, row: int, col: int) -> Tuple[int, int]:
        return rect.x + col * CELL_SIZE + CELL_SIZE // 2, rect.y + row * CELL_SIZE + CELL_SIZE // 2

    # --------------------------- Draw ---------------------------
    def draw(self) -> None:
        self.screen.fill(WINDOW_BG)
        rect = self.get_board_rect()

        symbol = self.board.symbol
        title = f"You are {symbol}" if symbol else "TicTacToe"
        if self.board.opponent:
            title += f" vs {self.board.opponent}"
        self.draw_title(title, PANEL_PADDING, 24)

        self.draw_board(rect)

        if self.board.my_turn:
            cell = self.mouse_to_cell(rect, pygame.mouse.get_pos())
            if cell and self.board.can_move(*cell):
                r, c = cell
                rx = rect.x + c * CELL_SIZE
                ry = rect.y + r * CELL_SIZE
                pygame.draw.rect(self.screen, HOVER, (rx + 4, ry + 4, CELL_SIZE - 8, CELL_SIZE - 8), 2)

        outcome = self.board.outcome
        if outcome is not None:
            self.draw_winning_line(rect, outcome.location)
            if outcome.abandoned or outcome.winner == Cell.EMPTY:
                color = SUBTEXT
            else:
                color = VICTORY if outcome.winner == self.board.assigned else DEFEAT
            surf = self.font_big.render(self.board.status_text(), True, color)
            self.screen.blit(surf, (self.screen.get_width() // 2 - surf.get_width() // 2, rect.centery - surf.get_height() // 2))

        status_text = self.board.status_text()
        if self.message_timer and time.time() <= self.message_timer:
            status_text = self.info_message
        else:
            self.message_timer = 0
        self.draw_status_bar(status_text)
        pygame.display.flip()

    def draw_title(self, text: str, x: int, y: int) -> None:
        txt = self.font.render(text, True, TEXT)
        self.screen.blit(txt, (x, y))

    def draw_status_bar(self, text: str) -> None:
        y = self.screen.get_height() - BOTTOM_BAR + 16
        if text:
            surf = self.font.render(text, True, SUBTEXT)
            self.screen.blit(surf, (PANEL_PADDING, y))
        if self.board.phase == Phase.GAME_OVER:
            hint = "P: play again   L: refresh board   Esc: leave"
        else:
            hint = "L: refresh board   Esc: leave"
        self.screen.blit(self.font_small.render(hint, True, SUBTEXT), (PANEL_PADDING, y + 34))

    def draw_board(self, rect: pygame.Rect) -> None:
        pygame.draw.rect(self.screen, GRID_BG, rect, border_radius=8)
        for i in range(1, BOARD_SIZE):
            x = rect.x + i * CELL_SIZE
            y = rect.y + i * CELL_SIZE
            pygame.draw.line(self.screen, GRID_LINE, (rect.x, y), (rect.right, y), 3)
            pygame.draw.line(self.screen, GRID_LINE, (x, rect.y), (x, rect.bottom), 3)
        pad = CELL_SIZE // 4
        for r in range(BOARD_SIZE):
            for c in range(BOARD_SIZE):
                cell = self.board.grid[r][c]
                cx, cy = self.cell_center(rect, r, c)
                if cell == Cell.X:
                    pygame.draw.line(self.screen, CROSS, (cx - pad, cy - pad), (cx + pad, cy + pad), 8)
                    pygame.draw.line(self.screen, CROSS, (cx - pad, cy + pad), (cx + pad, cy - pad), 8)
                elif cell == Cell.O:
                    pygame.draw.circle(self.screen, NAUGHT, (cx, cy), pad + 4, 7)

    def draw_winning_line(self, rect: pygame.Rect, location: WinningLocation) -> None:
        cells = location.cells()
        if not cells:
            return
        start = self.cell_center(rect, *cells[0])
        end = self.cell_center(rect, *cells[-1])
        pygame.draw.line(self.screen, VICTORY, start, end, 10)

    # --------------------------- Loop ---------------------------
    def click_move(self, pos: Tuple[int, int]) -> None:
        cell = self.mouse_to_cell(self.get_board_rect(), pos)
        if cell is None:
            return
        if not self.board.my_turn:
            self.show_message("Not your turn.")
            return
        self.session.stream.move(*cell)

    def run(self) -> None:
        if not self.session.start():
            self.show_message("Unable to reach the game.", 3.0)
        while self.running:
            for event in pygame.event.get():
                if event.type == pygame.QUIT:
                    self.running = False
                elif event.type == pygame.MOUSEBUTTONDOWN and event.button == 1:
                    self.click_move(event.pos)
                elif event.type == pygame.KEYDOWN:
                    if event.key == pygame.K_ESCAPE:
                        self.running = False
                    elif event.key == pygame.K_l:
                        self.session.stream.request_board_layout()
                    elif event.key == pygame.K_p and self.board.phase == Phase.GAME_OVER:
                        self.board.reset()
                        self.session.play_again()

            self.session.pump()
            if self.session.started and not self.session.channel.is_open and self.running:
                self.show_message("Connection to the game was lost.", 3600.0)

            self.draw()
            self.clock.tick(60)

        self.session.stop()
        pygame.quit()


# --------------------------- Entrypoints ---------------------------

def run_gui(session: GameSession) -> None:
    game = GuiGame(session)
    game.run()
