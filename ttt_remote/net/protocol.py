from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple, Union

from .errors import (
    ChannelClosedError,
    DecodeError,
    EncodingError,
    ProtocolError,
    TransportError,
    UnrecognizedMessage,
)

# Game messages are JSON objects exchanged over a channel scoped to GAME_NAMESPACE.
# Commands (controller -> authority) carry a 'command' field:
# - join: { command: 'join', name: str }
# - move: { command: 'move', row: int, column: int }
# - leave: { command: 'leave' }
# - board_layout_request: { command: 'board_layout_request' }
# Events (authority -> controller) carry an 'event' field:
# - joined: { event: 'joined', player: 'X'|'O', opponent: str }
# - moved: { event: 'moved', player: 'X'|'O', row: int, column: int, game_over: bool }
# - endgame: { event: 'endgame', end_state: 'X-won'|'O-won'|'draw'|'abandoned', winning_location: int }
#   (winning_location is absent when abandoned)
# - error: { event: 'error', message: str }
# - board_layout_response: { event: 'board_layout_response', board: [int x 9] }  (row-major)

__all__ = [
    "GAME_NAMESPACE", "PROTO_VERSION", "BOARD_SIZE",
    "PLAYER_X", "PLAYER_O", "PLAYERS",
    "END_STATE_X_WON", "END_STATE_O_WON", "END_STATE_DRAW", "END_STATE_ABANDONED", "END_STATES",
    "Join", "Move", "Leave", "RequestBoardLayout", "Command",
    "Joined", "Moved", "EndGame", "GameError", "BoardLayout", "Event",
    "WinningLocation", "winning_location", "UNKNOWN_LOCATION",
    "encode_command", "decode_command", "decode_event", "GameMessageStream",
    "ProtocolError", "EncodingError", "TransportError", "ChannelClosedError",
    "DecodeError", "UnrecognizedMessage",
]

log = logging.getLogger(__name__)

GAME_NAMESPACE = "com.google.chromecast.demo.tictactoe"
PROTO_VERSION = 1
BOARD_SIZE = 3

PLAYER_X = "X"
PLAYER_O = "O"
PLAYERS = (PLAYER_X, PLAYER_O)

END_STATE_X_WON = "X-won"
END_STATE_O_WON = "O-won"
END_STATE_DRAW = "draw"
END_STATE_ABANDONED = "abandoned"
END_STATES = (END_STATE_X_WON, END_STATE_O_WON, END_STATE_DRAW, END_STATE_ABANDONED)

KEY_COMMAND = "command"
KEY_EVENT = "event"

CMD_JOIN = "join"
CMD_MOVE = "move"
CMD_LEAVE = "leave"
CMD_BOARD_LAYOUT_REQUEST = "board_layout_request"

EVT_JOINED = "joined"
EVT_MOVED = "moved"
EVT_ENDGAME = "endgame"
EVT_ERROR = "error"
EVT_BOARD_LAYOUT_RESPONSE = "board_layout_response"


# --------------------------- Commands ---------------------------

@dataclass(frozen=True)
class Join:
    name: str


@dataclass(frozen=True)
class Move:
    row: int
    column: int


@dataclass(frozen=True)
class Leave:
    pass


@dataclass(frozen=True)
class RequestBoardLayout:
    pass


Command = Union[Join, Move, Leave, RequestBoardLayout]


def encode_command(command: Command) -> Dict[str, Any]:
    if isinstance(command, Join):
        return {KEY_COMMAND: CMD_JOIN, "name": command.name}
    if isinstance(command, Move):
        # no bounds check, the authority rejects illegal moves
        return {KEY_COMMAND: CMD_MOVE, "row": command.row, "column": command.column}
    if isinstance(command, Leave):
        return {KEY_COMMAND: CMD_LEAVE}
    if isinstance(command, RequestBoardLayout):
        return {KEY_COMMAND: CMD_BOARD_LAYOUT_REQUEST}
    raise EncodingError(f"not a command: {command!r}")


def decode_command(doc: Any) -> Command:
    """Decode a command document the way the authority reads it."""
    if not isinstance(doc, dict) or KEY_COMMAND not in doc:
        raise UnrecognizedMessage(f"no command in {doc!r}")
    tag = doc[KEY_COMMAND]
    if tag == CMD_JOIN:
        return Join(_get_str(doc, "name"))
    if tag == CMD_MOVE:
        return Move(_get_int(doc, "row"), _get_int(doc, "column"))
    if tag == CMD_LEAVE:
        return Leave()
    if tag == CMD_BOARD_LAYOUT_REQUEST:
        return RequestBoardLayout()
    raise UnrecognizedMessage(f"unknown command {tag!r}")


# --------------------------- Winning location ---------------------------

@dataclass(frozen=True)
class WinningLocation:
    kind: str  # 'row'|'column'|'diagonal_top_left'|'diagonal_bottom_left'|'unknown'
    index: int = -1

    ROW = "row"
    COLUMN = "column"
    DIAGONAL_TOP_LEFT = "diagonal_top_left"
    DIAGONAL_BOTTOM_LEFT = "diagonal_bottom_left"
    UNKNOWN = "unknown"

    @property
    def code(self) -> int:
        if self.kind == self.ROW:
            return self.index
        if self.kind == self.COLUMN:
            return BOARD_SIZE + self.index
        if self.kind == self.DIAGONAL_TOP_LEFT:
            return 2 * BOARD_SIZE
        if self.kind == self.DIAGONAL_BOTTOM_LEFT:
            return 2 * BOARD_SIZE + 1
        return -1

    @property
    def is_known(self) -> bool:
        return self.kind != self.UNKNOWN

    def cells(self) -> Tuple[Tuple[int, int], ...]:
        """Board cells covered by the winning line, empty when unknown."""
        span = range(BOARD_SIZE)
        if self.kind == self.ROW:
            return tuple((self.index, c) for c in span)
        if self.kind == self.COLUMN:
            return tuple((r, self.index) for r in span)
        if self.kind == self.DIAGONAL_TOP_LEFT:
            return tuple((i, i) for i in span)
        if self.kind == self.DIAGONAL_BOTTOM_LEFT:
            return tuple((BOARD_SIZE - 1 - i, i) for i in span)
        return ()


UNKNOWN_LOCATION = WinningLocation(WinningLocation.UNKNOWN)


def winning_location(code: Any) -> WinningLocation:
    # rows 0..2, columns 3..5, diagonals 6 (top-left) and 7 (bottom-left)
    if not isinstance(code, int) or isinstance(code, bool):
        return UNKNOWN_LOCATION
    if 0 <= code < BOARD_SIZE:
        return WinningLocation(WinningLocation.ROW, code)
    if BOARD_SIZE <= code < 2 * BOARD_SIZE:
        return WinningLocation(WinningLocation.COLUMN, code - BOARD_SIZE)
    if code == 2 * BOARD_SIZE:
        return WinningLocation(WinningLocation.DIAGONAL_TOP_LEFT)
    if code == 2 * BOARD_SIZE + 1:
        return WinningLocation(WinningLocation.DIAGONAL_BOTTOM_LEFT)
    return UNKNOWN_LOCATION


# --------------------------- Events ---------------------------

@dataclass(frozen=True)
class Joined:
    player: str
    opponent: str


@dataclass(frozen=True)
class Moved:
    player: str
    row: int
    column: int
    game_over: bool


@dataclass(frozen=True)
class EndGame:
    end_state: str
    location: WinningLocation = UNKNOWN_LOCATION

    @property
    def abandoned(self) -> bool:
        return self.end_state == END_STATE_ABANDONED


@dataclass(frozen=True)
class GameError:
    message: str


@dataclass(frozen=True)
class BoardLayout:
    board: Tuple[Tuple[int, ...], ...]


Event = Union[Joined, Moved, EndGame, GameError, BoardLayout]


def _get(doc: Dict[str, Any], key: str) -> Any:
    if key not in doc:
        raise DecodeError(f"missing field {key!r}")
    return doc[key]


def _get_str(doc: Dict[str, Any], key: str) -> str:
    value = _get(doc, key)
    if not isinstance(value, str):
        raise DecodeError(f"field {key!r} is not a string: {value!r}")
    return value


def _get_int(doc: Dict[str, Any], key: str) -> int:
    value = _get(doc, key)
    # JSON booleans are not integers on the wire
    if not isinstance(value, int) or isinstance(value, bool):
        raise DecodeError(f"field {key!r} is not an integer: {value!r}")
    return value


def _get_bool(doc: Dict[str, Any], key: str) -> bool:
    value = _get(doc, key)
    if not isinstance(value, bool):
        raise DecodeError(f"field {key!r} is not a boolean: {value!r}")
    return value


def _decode_board(doc: Dict[str, Any], size: int = BOARD_SIZE) -> Tuple[Tuple[int, ...], ...]:
    cells = _get(doc, "board")
    if not isinstance(cells, list) or len(cells) != size * size:
        raise DecodeError(f"board must be a list of {size * size} integers: {cells!r}")
    for value in cells:
        if not isinstance(value, int) or isinstance(value, bool):
            raise DecodeError(f"board cell is not an integer: {value!r}")
    return tuple(tuple(cells[r * size + c] for c in range(size)) for r in range(size))


def decode_event(doc: Any) -> Event:
    if not isinstance(doc, dict) or KEY_EVENT not in doc:
        raise UnrecognizedMessage(f"no event in {doc!r}")
    tag = doc[KEY_EVENT]
    if tag == EVT_JOINED:
        return Joined(_get_str(doc, "player"), _get_str(doc, "opponent"))
    if tag == EVT_MOVED:
        return Moved(
            _get_str(doc, "player"),
            _get_int(doc, "row"),
            _get_int(doc, "column"),
            _get_bool(doc, "game_over"),
        )
    if tag == EVT_ENDGAME:
        end_state = _get_str(doc, "end_state")
        if end_state not in END_STATES:
            raise DecodeError(f"unknown end_state {end_state!r}")
        location = UNKNOWN_LOCATION
        if end_state != END_STATE_ABANDONED:
            location = winning_location(doc.get("winning_location"))
        return EndGame(end_state, location)
    if tag == EVT_ERROR:
        return GameError(_get_str(doc, "message"))
    if tag == EVT_BOARD_LAYOUT_RESPONSE:
        return BoardLayout(_decode_board(doc))
    raise UnrecognizedMessage(f"unknown event {tag!r}")


# --------------------------- Stream ---------------------------

class GameMessageStream:
    """Sends game commands over a channel and turns inbound documents into Events.

    The stream keeps no game state. Every decoded Event is handed to
    ``on_event`` in the order the channel delivers documents. Commands are
    fire-and-forget: encoding, transport and not-attached failures are logged
    and never raised to the caller.
    """

    def __init__(
        self,
        on_event: Callable[[Event], None],
        channel: Optional[Any] = None,
        namespace: str = GAME_NAMESPACE,
    ) -> None:
        self.on_event = on_event
        self.namespace = namespace
        self.channel = None
        if channel is not None:
            self.attach(channel)

    @property
    def attached(self) -> bool:
        return self.channel is not None

    def attach(self, channel: Any) -> None:
        if channel.namespace != self.namespace:
            log.warning("Attaching to channel with namespace %r, expected %r", channel.namespace, self.namespace)
        self.channel = channel
        channel.set_listener(self.on_message_received)

    def detach(self) -> None:
        if self.channel is not None:
            self.channel.set_listener(None)
        self.channel = None

    # --------------------------- Outbound ---------------------------
    def send(self, command: Command) -> None:
        log.debug("send: %r", command)
        if self.channel is None:
            log.error("Message stream is not attached, dropping %r", command)
            return
        try:
            self.channel.send(encode_command(command))
        except EncodingError as e:
            log.error("Cannot encode %r: %s", command, e)
        except ChannelClosedError as e:
            log.error("Channel closed, unable to send %r: %s", command, e)
        except TransportError as e:
            log.error("Unable to send %r: %s", command, e)

    def join(self, name: str) -> None:
        self.send(Join(name))

    def move(self, row: int, column: int) -> None:
        self.send(Move(row, column))

    def leave(self) -> None:
        self.send(Leave())

    def request_board_layout(self) -> None:
        self.send(RequestBoardLayout())

    # --------------------------- Inbound ---------------------------
    def on_message_received(self, document: Any) -> None:
        log.debug("onMessageReceived: %r", document)
        try:
            event = decode_event(document)
        except UnrecognizedMessage as e:
            if isinstance(document, dict) and KEY_EVENT in document:
                log.debug("Ignoring message: %s", e)
            else:
                log.warning("Unknown message: %r", document)
            return
        except DecodeError as e:
            log.warning("Dropping %r message: %s", document.get(KEY_EVENT), e)
            return
        self.on_event(event)
