import argparse
import logging
from typing import List, Optional

from .net.protocol import GAME_NAMESPACE
from .session import DEFAULT_PLAYER_NAME, DEFAULT_PORT, GameSession


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="ttt-remote", description="TicTacToe Remote - control a game shown on another screen")
    parser.add_argument("--address", type=str, required=True, help="Game host IP or address")
    parser.add_argument("--port", type=int, default=DEFAULT_PORT, help="TCP port to connect")
    parser.add_argument("--name", type=str, default=DEFAULT_PLAYER_NAME, help="Player name sent when joining")
    parser.add_argument("--namespace", type=str, default=GAME_NAMESPACE, help="Message channel namespace")
    parser.add_argument("--console", action="store_true", help="Play in the terminal instead of a window")
    parser.add_argument("--log-level", type=str, default="WARNING",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"], help="Diagnostic log level")
    return parser


def main(argv: Optional[List[str]] = None) -> None:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=args.log_level, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")

    session = GameSession(args.address, port=args.port, player_name=args.name, namespace=args.namespace)
    if args.console:
        from .console import run_console
        run_console(session)
    else:
        from .gui import run_gui
        run_gui(session)
