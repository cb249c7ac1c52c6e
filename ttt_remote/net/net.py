from __future__ import annotations

import json
import socket
import struct
from typing import Any, Dict

from .errors import EncodingError


# Simple length-prefixed JSON messages over TCP

HEADER_FMT = "!I"
HEADER_SIZE = struct.calcsize(HEADER_FMT)
MAX_MESSAGE_BYTES = 64 * 1024


def pack_msg(payload: Dict[str, Any]) -> bytes:
    try:
        data = json.dumps(payload, separators=(",", ":"), allow_nan=False).encode("utf-8")
    except (TypeError, ValueError) as e:
        raise EncodingError(f"cannot encode {payload!r}: {e}") from e
    return struct.pack(HEADER_FMT, len(data)) + data


def send_msg(sock: socket.socket, payload: Dict[str, Any]) -> None:
    sock.sendall(pack_msg(payload))


def recv_exact(sock: socket.socket, num_bytes: int) -> bytes:
    chunks = []
    remaining = num_bytes
    while remaining > 0:
        chunk = sock.recv(remaining)
        if not chunk:
            raise ConnectionError("socket closed")
        chunks.append(chunk)
        remaining -= len(chunk)
    return b"".join(chunks)


def recv_frame(sock: socket.socket) -> bytes:
    header = recv_exact(sock, HEADER_SIZE)
    (length,) = struct.unpack(HEADER_FMT, header)
    if length > MAX_MESSAGE_BYTES:
        raise ConnectionError(f"frame too large: {length} bytes")
    return recv_exact(sock, length)


def decode_frame(body: bytes) -> Any:
    # the stream stays in sync after a bad body, so callers may skip it
    try:
        return json.loads(body.decode("utf-8"))
    except RecursionError as e:
        raise ValueError(f"JSON nested too deeply: {e}") from e


def recv_msg(sock: socket.socket) -> Any:
    return decode_frame(recv_frame(sock))


def open_client(host: str, port: int, timeout: float = 5.0) -> socket.socket:
    sock = socket.create_connection((host, port), timeout=timeout)
    sock.settimeout(None)
    return sock
