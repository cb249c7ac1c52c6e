from __future__ import annotations

import logging
from typing import Callable, Optional

from .net.channel import SocketChannel, open_channel
from .net.errors import TransportError
from .net.protocol import GAME_NAMESPACE, Event, GameMessageStream

log = logging.getLogger(__name__)

DEFAULT_PORT = 8008
DEFAULT_PLAYER_NAME = "MyName"

ChannelFactory = Callable[[str, int, str], SocketChannel]


class GameSession:
    """One connection to a game authority, from ``start`` to ``stop``.

    Holds the selected device address, the channel and the message stream.
    Nothing here is global; controllers create a session and pass it around.
    """

    def __init__(
        self,
        address: str,
        port: int = DEFAULT_PORT,
        player_name: str = DEFAULT_PLAYER_NAME,
        namespace: str = GAME_NAMESPACE,
        on_event: Optional[Callable[[Event], None]] = None,
        channel_factory: ChannelFactory = open_channel,
    ) -> None:
        self.address = address
        self.port = port
        self.player_name = player_name
        self.namespace = namespace
        self.channel_factory = channel_factory
        self.channel: Optional[SocketChannel] = None
        self.stream = GameMessageStream(on_event or (lambda event: None), namespace=namespace)

    @property
    def started(self) -> bool:
        return self.channel is not None

    def start(self) -> bool:
        if self.channel is not None:
            return True
        try:
            self.channel = self.channel_factory(self.address, self.port, self.namespace)
        except TransportError as e:
            log.error("Failed to open a session with %s:%d: %s", self.address, self.port, e)
            return False
        log.info("Session started with %s:%d", self.address, self.port)
        self.stream.attach(self.channel)
        self.stream.join(self.player_name)
        return True

    def play_again(self) -> None:
        self.stream.join(self.player_name)

    def pump(self, timeout: float = 0.0) -> int:
        if self.channel is None:
            return 0
        return self.channel.pump(timeout)

    def stop(self) -> None:
        if self.channel is None:
            return
        if self.channel.is_open:
            self.stream.leave()
        self.stream.detach()
        self.channel.close()
        self.channel = None
        log.info("Session ended")

    def __enter__(self) -> "GameSession":
        self.start()
        return self

    def __exit__(self, *exc_info) -> None:
        self.stop()
