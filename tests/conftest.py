import json

import pytest

from ttt_remote.net.channel import Channel
from ttt_remote.net.errors import ChannelClosedError
from ttt_remote.net.protocol import GAME_NAMESPACE


class FakeChannel(Channel):
    """In-memory channel. ``responder`` maps each sent document to replies queued for ``pump``."""

    def __init__(self, namespace=GAME_NAMESPACE, responder=None, error=None):
        super().__init__(namespace)
        self.sent = []
        self.inbox = []
        self.responder = responder
        self.error = error
        self.open = True

    @property
    def is_open(self):
        return self.open

    def send(self, document):
        if self.error is not None:
            raise self.error
        if not self.open:
            raise ChannelClosedError("closed")
        # what a peer would see after the wire round trip
        self.sent.append(json.loads(json.dumps(document)))
        if self.responder is not None:
            self.inbox.extend(self.responder(document))

    def deliver(self, document):
        self.listener(document)

    def pump(self, timeout=0.0):
        delivered = 0
        while self.inbox and self.listener is not None:
            self.listener(self.inbox.pop(0))
            delivered += 1
        return delivered

    def close(self):
        self.open = False


@pytest.fixture
def channel():
    return FakeChannel()


@pytest.fixture
def received():
    return []
