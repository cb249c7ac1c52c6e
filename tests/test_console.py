from ttt_remote.console import draw_board, parse_move, run_console
from ttt_remote.game.board import GameBoard
from ttt_remote.net.protocol import EndGame, Joined, Moved, winning_location
from ttt_remote.session import GameSession

from conftest import FakeChannel


def authority(doc):
    if doc["command"] == "join":
        return [{"event": "joined", "player": "X", "opponent": "Bob"}]
    if doc["command"] == "move":
        return [
            {"event": "moved", "player": "X", "row": doc["row"], "column": doc["column"], "game_over": True},
            {"event": "endgame", "end_state": "X-won", "winning_location": 6},
        ]
    return []


def test_parse_move():
    assert parse_move("1 2", 3) == (1, 2)
    assert parse_move("0,0", 3) == (0, 0)
    assert parse_move("3 0", 3) is None
    assert parse_move("a b", 3) is None
    assert parse_move("1", 3) is None


def test_draw_board_plain():
    board = GameBoard()
    board.apply(Joined("X", "Bob"))
    board.apply(Moved("X", 1, 1, False))
    assert draw_board(board, color=False) == "   0 1 2\n0  . . .\n1  . X .\n2  . . ."


def test_draw_board_highlights_winner():
    board = GameBoard()
    board.apply(Moved("X", 0, 0, False))
    board.apply(EndGame("X-won", winning_location(0)))
    assert "\033[32m" in draw_board(board)


def test_console_plays_a_game(capsys):
    channel = FakeChannel(responder=authority)
    session = GameSession("host", player_name="Alice", channel_factory=lambda *a: channel)
    answers = iter(["9 9", "1 1", "n"])
    run_console(session, read=lambda prompt: next(answers), color=False)
    out = capsys.readouterr().out
    assert "Player X wins!" in out
    assert "Enter a row and column" in out
    assert channel.sent == [
        {"command": "join", "name": "Alice"},
        {"command": "move", "row": 1, "column": 1},
        {"command": "leave"},
    ]


def test_console_unreachable(capsys):
    from ttt_remote.net.errors import TransportError

    def factory(*args):
        raise TransportError("refused")

    run_console(GameSession("host", channel_factory=factory), read=lambda prompt: "q", color=False)
    assert "Unable to reach the game." in capsys.readouterr().out


def test_console_refreshes_when_a_move_goes_unanswered(capsys):
    def silent_authority(doc):
        if doc["command"] == "join":
            return [{"event": "joined", "player": "X", "opponent": "Bob"}]
        return []

    channel = FakeChannel(responder=silent_authority)
    session = GameSession("host", channel_factory=lambda *a: channel)
    answers = iter(["0 0", "q"])
    run_console(session, read=lambda prompt: next(answers), color=False, reply_timeout=0.0)
    assert "No answer from the game" in capsys.readouterr().out
    assert [doc["command"] for doc in channel.sent] == ["join", "move", "board_layout_request", "leave"]
