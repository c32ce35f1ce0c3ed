"""TIO packet header, packet types and the enums carried in payloads."""

from __future__ import annotations

import operator
import struct
from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import TypeVar

from .errors import (
    InvalidPacketType,
    NeedMore,
    PayloadTooBig,
    RoutingTooBig,
    SerializeError,
)

PACKET_HEADER_SIZE = 4
MAX_ROUTING_SIZE = 8
MAX_TOTAL_SIZE = 512
MAX_PAYLOAD_SIZE = MAX_TOTAL_SIZE - PACKET_HEADER_SIZE - MAX_ROUTING_SIZE
STREAM0 = 128

_HEADER = struct.Struct("<BBH")

E = TypeVar("E", bound=IntEnum)


def lookup_enum(enum_cls: type[E], value: int) -> E:
    """Return the member of ``enum_cls`` for ``value``.

    Values without a named member map to an ``UNKNOWN_<n>`` pseudo-member
    that keeps the raw value, so unknown codes survive a round trip.
    """
    value = operator.index(value)
    member = enum_cls._value2member_map_.get(value)
    if member is not None:
        return member  # type: ignore[return-value]
    if value < 0:
        raise ValueError(f"negative wire value for {enum_cls.__name__}: {value}")
    pseudo = int.__new__(enum_cls, value)
    pseudo._name_ = f"UNKNOWN_{value}"
    pseudo._value_ = value
    return enum_cls._value2member_map_.setdefault(value, pseudo)  # type: ignore[return-value]


class BufferType(Enum):
    """How the samples of a data type are stored once decoded."""

    FLOAT = "float"
    INT = "int"
    UINT = "uint"


class DataType(IntEnum):
    """Type of a sample column; the high nibble is the size in bytes."""

    UINT8 = 0x10
    INT8 = 0x11
    UINT16 = 0x20
    INT16 = 0x21
    UINT24 = 0x30
    INT24 = 0x31
    UINT32 = 0x40
    INT32 = 0x41
    UINT64 = 0x80
    INT64 = 0x81
    FLOAT32 = 0x42
    FLOAT64 = 0x82

    def size(self) -> int:
        """Size of one value in bytes."""
        return int(self) >> 4

    def buffer_type(self) -> BufferType:
        """Storage kind; unknown types are treated as floating point."""
        if self in _INT_TYPES:
            return BufferType.INT
        if self in _UINT_TYPES:
            return BufferType.UINT
        return BufferType.FLOAT


_INT_TYPES = frozenset(
    {DataType.INT8, DataType.INT16, DataType.INT24, DataType.INT32, DataType.INT64}
)
_UINT_TYPES = frozenset(
    {DataType.UINT8, DataType.UINT16, DataType.UINT24, DataType.UINT32, DataType.UINT64}
)


class LogLevel(IntEnum):
    CRITICAL = 0
    ERROR = 1
    WARNING = 2
    INFO = 3
    DEBUG = 4


class ProxyStatus(IntEnum):
    SENSOR_DISCONNECTED = 0
    SENSOR_RECONNECTED = 1
    FAILED_TO_RECONNECT = 2
    FAILED_TO_CONNECT = 3


class PacketType(IntEnum):
    """Packet type byte. Values above 128 are sample data streams."""

    INVALID = 0
    LOG = 1
    RPC_REQ = 2
    RPC_REP = 3
    RPC_ERROR = 4
    HEARTBEAT = 5
    LEGACY_TIMEBASE_UPDATE = 6
    LEGACY_SOURCE_UPDATE = 7
    LEGACY_STREAM_UPDATE = 8
    RESERVED0 = 9
    RESERVED1 = 10
    METADATA = 11
    SETTINGS = 12
    RESERVED2 = 13
    PROXY_STATUS = 64
    RPC_UPDATE = 65
    LEGACY_STREAM_DATA = 128


_REJECTED_TYPES = frozenset({PacketType.INVALID, PacketType.RESERVED0, PacketType.RESERVED1})


def header_bytes(packet_type: int, routing_size: int, payload_size: int) -> bytes:
    """Encode a packet header."""
    try:
        return _HEADER.pack(int(packet_type), routing_size, payload_size)
    except struct.error as exc:
        raise SerializeError(f"cannot encode header: {exc}") from exc


@dataclass(frozen=True)
class PacketHeader:
    """Decoded four-byte header of a TIO packet."""

    packet_type: PacketType
    routing_size_and_ttl: int
    payload_length: int

    @classmethod
    def deserialize(cls, raw: bytes | bytearray | memoryview) -> PacketHeader:
        """Decode the header at the start of ``raw``.

        Raises NeedMore unless ``raw`` holds the whole packet.
        """
        raw = bytes(raw)
        if not raw:
            raise NeedMore()
        packet_type = lookup_enum(PacketType, raw[0])
        if packet_type in _REJECTED_TYPES:
            raise InvalidPacketType(raw)
        if len(raw) < PACKET_HEADER_SIZE:
            raise NeedMore()
        _, routing_size_and_ttl, payload_length = _HEADER.unpack_from(raw)
        header = cls(packet_type, routing_size_and_ttl, payload_length)
        if header.routing_size() > MAX_ROUTING_SIZE:
            raise RoutingTooBig(raw)
        if payload_length > MAX_PAYLOAD_SIZE:
            raise PayloadTooBig(raw)
        if len(raw) < header.packet_size():
            raise NeedMore()
        return header

    def stream_id(self) -> int | None:
        """Stream number for sample data packets, otherwise None."""
        if self.packet_type >= STREAM0:
            return int(self.packet_type) - STREAM0
        return None

    def ttl(self) -> int:
        return self.routing_size_and_ttl >> 4

    def routing_size(self) -> int:
        return self.routing_size_and_ttl & 0x0F

    def routing_offset(self) -> int:
        return self.payload_offset() + self.payload_size()

    def payload_offset(self) -> int:
        return PACKET_HEADER_SIZE

    def payload_size(self) -> int:
        return self.payload_length

    def packet_size(self) -> int:
        return self.routing_offset() + self.routing_size()