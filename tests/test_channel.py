import logging
import socket
import struct
import threading

import pytest

from ttt_remote.net import channel as channel_module
from ttt_remote.net.channel import Channel, SocketChannel, handshake, open_channel
from ttt_remote.net.errors import ChannelClosedError, EncodingError, TransportError
from ttt_remote.net.net import MAX_MESSAGE_BYTES, pack_msg, recv_msg, send_msg
from ttt_remote.net.protocol import GAME_NAMESPACE, PROTO_VERSION


@pytest.fixture
def pair():
    a, b = socket.socketpair()
    yield a, b
    for s in (a, b):
        try:
            s.close()
        except OSError:
            pass


def test_pack_msg_rejects_unserializable():
    with pytest.raises(EncodingError):
        pack_msg({"command": object()})


def test_pump_delivers_in_order(pair):
    a, b = pair
    channel = SocketChannel(a)
    got = []
    channel.set_listener(got.append)
    send_msg(b, {"event": "error", "message": "one"})
    send_msg(b, {"event": "error", "message": "two"})
    delivered = 0
    while delivered < 2:
        delivered += channel.pump(timeout=2.0)
    assert [d["message"] for d in got] == ["one", "two"]
    channel.close()


def test_send_writes_frames(pair):
    a, b = pair
    channel = SocketChannel(a)
    channel.send({"command": "leave"})
    assert recv_msg(b) == {"command": "leave"}
    channel.close()


def test_peer_close_marks_channel_closed(pair):
    a, b = pair
    channel = SocketChannel(a)
    b.close()
    channel.recv_thread.join(2.0)
    assert not channel.is_open
    with pytest.raises(ChannelClosedError):
        channel.send({"command": "leave"})
    channel.close()


def test_send_after_close(pair):
    a, _b = pair
    channel = SocketChannel(a)
    channel.close()
    with pytest.raises(ChannelClosedError):
        channel.send({"command": "leave"})


def _reply_hello(sock, namespace=GAME_NAMESPACE, proto=PROTO_VERSION):
    hello = recv_msg(sock)
    send_msg(sock, {"type": "hello", "role": "receiver", "namespace": namespace, "proto": proto})
    return hello


def test_handshake(pair):
    a, b = pair
    seen = {}
    t = threading.Thread(target=lambda: seen.update(_reply_hello(b)))
    t.start()
    handshake(a, GAME_NAMESPACE)
    t.join(2.0)
    assert seen == {"type": "hello", "role": "sender", "namespace": GAME_NAMESPACE, "proto": PROTO_VERSION}


def test_handshake_namespace_mismatch(pair):
    a, b = pair
    t = threading.Thread(target=_reply_hello, args=(b, "other.namespace"))
    t.start()
    with pytest.raises(TransportError):
        handshake(a, GAME_NAMESPACE)
    t.join(2.0)


def test_open_channel_against_listener():
    srv = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    srv.bind(("127.0.0.1", 0))
    srv.listen(1)
    port = srv.getsockname()[1]

    def serve():
        conn, _addr = srv.accept()
        with conn:
            _reply_hello(conn)
            assert recv_msg(conn) == {"command": "join", "name": "Alice"}
            send_msg(conn, {"event": "joined", "player": "X", "opponent": "Bob"})
            recv_msg(conn)

    t = threading.Thread(target=serve, daemon=True)
    t.start()
    try:
        channel = open_channel("127.0.0.1", port)
        got = []
        channel.set_listener(got.append)
        channel.send({"command": "join", "name": "Alice"})
        while not got:
            channel.pump(timeout=2.0)
        assert got[0]["event"] == "joined"
        channel.send({"command": "leave"})
        channel.close()
        t.join(2.0)
    finally:
        srv.close()


def test_open_channel_connection_refused():
    srv = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    srv.bind(("127.0.0.1", 0))
    port = srv.getsockname()[1]
    srv.close()
    with pytest.raises(TransportError):
        open_channel("127.0.0.1", port)


def _send_raw(sock, body):
    sock.sendall(struct.pack("!I", len(body)) + body)


def _pump_until(channel, count):
    for _ in range(20):
        if count <= 0:
            break
        count -= channel.pump(timeout=0.5)


def test_bad_frames_are_skipped(pair, caplog):
    a, b = pair
    channel = SocketChannel(a)
    got = []
    channel.set_listener(got.append)
    with caplog.at_level(logging.WARNING):
        _send_raw(b, b"\xff\xfe not json")
        _send_raw(b, b"{not json}")
        _send_raw(b, b"[" * 30000 + b"]" * 30000)
        send_msg(b, {"event": "error", "message": "after"})
        _pump_until(channel, 1)
    assert got == [{"event": "error", "message": "after"}]
    assert channel.is_open
    assert "Dropping undecodable frame" in caplog.text
    channel.close()


def test_oversized_frame_closes_channel(pair):
    a, b = pair
    channel = SocketChannel(a)
    b.sendall(struct.pack("!I", MAX_MESSAGE_BYTES + 1))
    channel.recv_thread.join(2.0)
    assert not channel.is_open
    channel.close()


def test_receive_thread_failure_closes_channel(pair, monkeypatch, caplog):
    a, _b = pair

    def broken(sock):
        raise RuntimeError("boom")

    monkeypatch.setattr(channel_module, "recv_frame", broken)
    with caplog.at_level(logging.ERROR):
        channel = SocketChannel(a)
        channel.recv_thread.join(2.0)
    assert not channel.recv_thread.is_alive()
    assert not channel.is_open
    assert "Receive loop failed" in caplog.text
    with pytest.raises(ChannelClosedError):
        channel.send({"command": "leave"})
    channel.close()


def test_channel_is_abstract():
    with pytest.raises(TypeError):
        Channel()
