from __future__ import annotations

import logging
import queue
import socket
import threading
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional

from .errors import ChannelClosedError, TransportError
from .net import decode_frame, open_client, pack_msg, recv_frame, recv_msg, send_msg
from .protocol import GAME_NAMESPACE, PROTO_VERSION

log = logging.getLogger(__name__)

Listener = Callable[[Any], None]


class Channel(ABC):
    """A reliable, ordered, bidirectional channel for whole JSON documents."""

    def __init__(self, namespace: str = GAME_NAMESPACE) -> None:
        self.namespace = namespace
        self.listener: Optional[Listener] = None

    @property
    @abstractmethod
    def is_open(self) -> bool:
        ...

    def set_listener(self, listener: Optional[Listener]) -> None:
        self.listener = listener

    @abstractmethod
    def send(self, document: Dict[str, Any]) -> None:
        ...

    @abstractmethod
    def close(self) -> None:
        ...


def handshake(sock: socket.socket, namespace: str) -> None:
    try:
        send_msg(sock, {"type": "hello", "role": "sender", "namespace": namespace, "proto": PROTO_VERSION})
        hello = recv_msg(sock)
    except (OSError, ValueError) as e:
        raise TransportError(f"handshake failed: {e}") from e
    if not isinstance(hello, dict) or hello.get("type") != "hello" or hello.get("proto") != PROTO_VERSION:
        raise TransportError("protocol mismatch")
    if hello.get("namespace") != namespace:
        raise TransportError(f"namespace mismatch: {hello.get('namespace')!r}")


class SocketChannel(Channel):
    """Channel over a connected TCP socket.

    A background thread reads frames into a queue; ``pump`` hands them to the
    listener on the calling thread, so documents reach the listener one at a
    time and in arrival order.
    """

    def __init__(self, sock: socket.socket, namespace: str = GAME_NAMESPACE) -> None:
        super().__init__(namespace)
        self.sock = sock
        self.recv_queue: "queue.Queue[Any]" = queue.Queue()
        self.stopped = threading.Event()
        self.send_lock = threading.Lock()
        self.recv_thread = threading.Thread(target=self._recv_loop, daemon=True)
        self.recv_thread.start()

    @property
    def is_open(self) -> bool:
        return not self.stopped.is_set()

    def _recv_loop(self) -> None:
        try:
            while not self.stopped.is_set():
                body = recv_frame(self.sock)
                try:
                    document = decode_frame(body)
                except ValueError as e:
                    log.warning("Dropping undecodable frame: %s", e)
                    continue
                self.recv_queue.put(document)
        except OSError as e:
            if not self.stopped.is_set():
                log.info("Channel closed by peer: %s", e)
        except Exception:
            log.exception("Receive loop failed, closing channel")
        finally:
            self.stopped.set()

    def send(self, document: Dict[str, Any]) -> None:
        if self.stopped.is_set():
            raise ChannelClosedError("channel is closed")
        data = pack_msg(document)
        try:
            with self.send_lock:
                self.sock.sendall(data)
        except OSError as e:
            raise TransportError(str(e)) from e

    def try_get(self, timeout: float = 0.0) -> Optional[Any]:
        try:
            return self.recv_queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def pump(self, timeout: float = 0.0) -> int:
        """Deliver queued documents to the listener. Returns how many were delivered."""
        delivered = 0
        msg = self.try_get(timeout)
        while msg is not None:
            if self.listener is not None:
                self.listener(msg)
                delivered += 1
            else:
                log.debug("No listener, dropping %r", msg)
            msg = self.try_get(0.0)
        return delivered

    def close(self) -> None:
        self.stopped.set()
        try:
            self.sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass
        self.sock.close()


def open_channel(host: str, port: int, namespace: str = GAME_NAMESPACE) -> SocketChannel:
    try:
        sock = open_client(host, port)
    except OSError as e:
        raise TransportError(f"cannot connect to {host}:{port}: {e}") from e
    try:
        handshake(sock, namespace)
    except TransportError:
        sock.close()
        raise
    return SocketChannel(sock, namespace)
