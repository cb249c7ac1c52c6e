import logging

from ttt_remote.net.errors import TransportError
from ttt_remote.session import GameSession

from conftest import FakeChannel


def test_start_joins_and_stop_leaves():
    channels = []

    def factory(host, port, namespace):
        channels.append((host, port, namespace))
        return FakeChannel(namespace)

    session = GameSession("10.0.0.5", port=9000, player_name="Alice", channel_factory=factory)
    assert session.start()
    channel = session.channel
    assert channels == [("10.0.0.5", 9000, "com.google.chromecast.demo.tictactoe")]
    assert channel.sent == [{"command": "join", "name": "Alice"}]
    session.play_again()
    session.stop()
    assert channel.sent[-1] == {"command": "leave"}
    assert not channel.open
    assert session.channel is None
    session.stop()


def test_start_failure_is_reported(caplog):
    def factory(host, port, namespace):
        raise TransportError("connection refused")

    session = GameSession("10.0.0.5", channel_factory=factory)
    assert not session.start()
    assert not session.started
    assert "Failed to open a session" in caplog.text
    assert session.pump() == 0


def test_context_manager_and_events():
    received = []
    channel = FakeChannel(responder=lambda doc: [{"event": "joined", "player": "O", "opponent": "Bob"}]
                          if doc["command"] == "join" else [])
    with GameSession("host", on_event=received.append, channel_factory=lambda *a: channel) as session:
        assert session.pump() == 1
    assert received[0].player == "O"
    assert channel.sent[-1] == {"command": "leave"}


def test_stop_skips_leave_when_channel_is_gone():
    channel = FakeChannel()
    session = GameSession("host", channel_factory=lambda *a: channel)
    session.start()
    channel.open = False
    session.stop()
    assert channel.sent == [{"command": "join", "name": "MyName"}]


def test_custom_namespace_reaches_stream(caplog):
    channel = FakeChannel(namespace="org.example.tictactoe")
    session = GameSession("host", namespace="org.example.tictactoe", channel_factory=lambda *a: channel)
    with caplog.at_level(logging.WARNING):
        session.start()
    assert session.stream.namespace == "org.example.tictactoe"
    assert "namespace" not in caplog.text
    session.stop()
