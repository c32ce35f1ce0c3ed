"""Exceptions raised while decoding and encoding TIO packets."""

from __future__ import annotations


class ProtocolError(Exception):
    """Base class for every failure to decode TIO wire data.

    ``data`` holds the raw bytes that could not be decoded, when known.
    """

    def __init__(self, data: bytes | bytearray | memoryview = b"") -> None:
        self.data = bytes(data)
        super().__init__(self.data)


class NeedMore(ProtocolError):
    """The buffer holds only part of a packet; more bytes are needed."""


class BadName(ProtocolError):
    """A setting name is not valid UTF-8."""


class TextReceived(ProtocolError):
    """A line of plain text arrived where a packet was expected."""

    def __init__(self, text: str) -> None:
        super().__init__(text.encode("utf-8", errors="replace"))
        self.text = text

    def __str__(self) -> str:
        return self.text


class CRC32Mismatch(ProtocolError):
    """The checksum of a framed packet does not match its contents."""


class PacketTooBig(ProtocolError):
    """A framed packet is longer than any valid packet."""


class PacketTooSmall(ProtocolError):
    """A framed packet is shorter than its header says."""


class InvalidPacketType(ProtocolError):
    """The packet type byte is invalid or reserved."""


class PayloadTooBig(ProtocolError):
    """The header announces a payload larger than the protocol allows."""


class RoutingTooBig(ProtocolError):
    """The header announces more routing hops than the protocol allows."""


class PayloadTooSmall(ProtocolError):
    """The payload is shorter than its type requires."""


class InvalidPayload(ProtocolError):
    """The payload is malformed."""


class SerializeError(ValueError):
    """A value cannot be encoded into a TIO packet."""


def too_small(full_data: bytes | bytearray | memoryview) -> PayloadTooSmall:
    """Return the error for a payload too short to decode."""
    return PayloadTooSmall(full_data)