from __future__ import annotations


class ProtocolError(Exception):
    """Base class for every failure the game message stream can report."""


class EncodingError(ProtocolError):
    """An outbound document could not be serialized."""


class TransportError(ProtocolError):
    """The channel is unavailable or a write failed."""


class ChannelClosedError(TransportError):
    pass


class DecodeError(ProtocolError):
    """A recognized event is missing a field or carries the wrong type."""


class UnrecognizedMessage(ProtocolError):
    """No ``event`` field, or an event tag this client does not know."""
