"""TIO packets: payload types, and whole-packet encoding and decoding."""

from __future__ import annotations

import struct
from dataclasses import dataclass, field

from .errors import BadName, InvalidPacketType, InvalidPayload, SerializeError, too_small
from .header import (
    MAX_PAYLOAD_SIZE,
    STREAM0,
    LogLevel,
    PacketHeader,
    PacketType,
    ProxyStatus,
    header_bytes,
    lookup_enum,
)
from .legacy import (
    LegacySourceInfoPayload,
    LegacyStreamDataPayload,
    LegacyStreamInfoPayload,
    LegacyTimebaseInfoPayload,
)
from .meta import MetadataPayload
from .route import DeviceRoute
from .rpc import RpcErrorPayload, RpcMethod, RpcReplyPayload, RpcRequestPayload

BytesLike = bytes | bytearray | memoryview

_RPC_METHOD_TYPE_ID = 0
_RPC_METHOD_TYPE_NAME = 1
_RPC_HASH_SETTING = b"rpc.hash"


def _pack(fmt: str, *values: object) -> bytes:
    try:
        return struct.pack(fmt, *values)
    except struct.error as exc:
        raise SerializeError(f"cannot encode {values}: {exc}") from exc


def _check_size(payload_size: int) -> int:
    if payload_size > MAX_PAYLOAD_SIZE:
        raise SerializeError(f"payload of {payload_size} bytes is too large")
    return payload_size


@dataclass
class GenericPayload:
    """Payload of a packet type that is carried along without being decoded."""

    packet_type: int
    payload: bytes = b""

    @classmethod
    def deserialize(cls, raw: BytesLike, full_data: BytesLike) -> GenericPayload:
        return cls(packet_type=bytes(full_data)[0], payload=bytes(raw))

    def serialize(self) -> bytes:
        payload = bytes(self.payload)
        _check_size(len(payload))
        return header_bytes(self.packet_type, 0, len(payload)) + payload


@dataclass
class LogMessagePayload:
    data: int
    level: LogLevel
    message: str

    @classmethod
    def deserialize(cls, raw: BytesLike, full_data: BytesLike) -> LogMessagePayload:
        raw = bytes(raw)
        if len(raw) < 5:
            raise too_small(full_data)
        return cls(
            data=int.from_bytes(raw[:4], "little"),
            level=lookup_enum(LogLevel, raw[4]),
            message=raw[5:].decode("utf-8", errors="replace"),
        )

    def serialize(self) -> bytes:
        message = self.message.encode("utf-8")
        payload_size = _check_size(len(message) + 5)
        return (
            header_bytes(PacketType.LOG, 0, payload_size)
            + _pack("<IB", self.data, int(self.level))
            + message
        )


@dataclass
class HeartbeatSession:
    """Heartbeat carrying the session id of the sending device."""

    session: int

    def serialize(self) -> bytes:
        return header_bytes(PacketType.HEARTBEAT, 0, 4) + _pack("<I", self.session)


@dataclass
class HeartbeatAny:
    """Heartbeat with arbitrary content."""

    payload: bytes = b""

    def serialize(self) -> bytes:
        payload = bytes(self.payload)
        _check_size(len(payload))
        return header_bytes(PacketType.HEARTBEAT, 0, len(payload)) + payload


def deserialize_heartbeat(raw: BytesLike, full_data: BytesLike) -> HeartbeatSession | HeartbeatAny:
    """Decode a heartbeat; exactly four bytes are a session id."""
    raw = bytes(raw)
    if len(raw) == 4:
        return HeartbeatSession(int.from_bytes(raw, "little"))
    return HeartbeatAny(raw)


@dataclass
class SettingsRpcHash:
    """The ``rpc.hash`` setting: a hash of the device's RPC list."""

    rpc_hash: int

    def serialize(self) -> bytes:
        payload_size = _check_size(2 + len(_RPC_HASH_SETTING) + 4)
        return (
            header_bytes(PacketType.SETTINGS, 0, payload_size)
            + bytes([len(_RPC_HASH_SETTING), 0])
            + _RPC_HASH_SETTING
            + _pack("<I", self.rpc_hash)
        )


@dataclass
class SettingsUnknown:
    """A setting this library does not interpret."""

    name: str
    flags: int = 0
    reply: bytes = b""

    def serialize(self) -> bytes:
        name = self.name.encode("utf-8")
        reply = bytes(self.reply)
        if len(name) > 0xFF:
            raise SerializeError("setting name too long")
        payload_size = _check_size(2 + len(name) + len(reply))
        return (
            header_bytes(PacketType.SETTINGS, 0, payload_size)
            + _pack("<BB", len(name), self.flags)
            + name
            + reply
        )


def deserialize_settings(
    raw: BytesLike, full_data: BytesLike
) -> SettingsRpcHash | SettingsUnknown:
    """Decode a settings payload."""
    raw = bytes(raw)
    if len(raw) < 2:
        raise too_small(full_data)
    name_len, flags = raw[0], raw[1]
    content = raw[2:]
    if len(content) < name_len:
        raise too_small(full_data)
    try:
        name = content[:name_len].decode("utf-8")
    except UnicodeDecodeError as exc:
        raise BadName(full_data) from exc
    reply = content[name_len:]
    if name == _RPC_HASH_SETTING.decode():
        if len(reply) < 4:
            raise too_small(full_data)
        return SettingsRpcHash(int.from_bytes(reply[:4], "little"))
    return SettingsUnknown(name=name, flags=flags, reply=reply)


@dataclass
class StreamDataPayload:
    """Samples of a data stream, starting at ``first_sample_n``."""

    stream_id: int
    first_sample_n: int
    segment_id: int
    data: bytes = b""

    @classmethod
    def deserialize(cls, raw: BytesLike, full_data: BytesLike) -> StreamDataPayload:
        raw = bytes(raw)
        if len(raw) < 5:
            raise too_small(full_data)
        return cls(
            stream_id=bytes(full_data)[0] - STREAM0,
            first_sample_n=int.from_bytes(raw[:3], "little"),
            segment_id=raw[3],
            data=raw[4:],
        )

    def serialize(self) -> bytes:
        if not 1 <= self.stream_id <= 127:
            raise SerializeError(f"invalid stream id: {self.stream_id}")
        if not 0 <= self.first_sample_n < 1 << 24:
            raise SerializeError(f"sample number does not fit in 24 bits: {self.first_sample_n}")
        data = bytes(self.data)
        payload_size = _check_size(4 + len(data))
        return (
            header_bytes(STREAM0 + self.stream_id, 0, payload_size)
            + self.first_sample_n.to_bytes(3, "little")
            + _pack("<B", self.segment_id)
            + data
        )


@dataclass
class ProxyStatusPayload:
    status: ProxyStatus

    @classmethod
    def deserialize(cls, raw: BytesLike, full_data: BytesLike) -> ProxyStatusPayload:
        raw = bytes(raw)
        if not raw:
            raise too_small(full_data)
        return cls(lookup_enum(ProxyStatus, raw[0]))

    def serialize(self) -> bytes:
        return header_bytes(PacketType.PROXY_STATUS, 0, 1) + _pack("<B", int(self.status))


@dataclass
class RpcUpdatePayload:
    """Notice that the value behind an RPC method has changed."""

    method: RpcMethod

    @classmethod
    def deserialize(cls, raw: BytesLike, full_data: BytesLike) -> RpcUpdatePayload:
        raw = bytes(raw)
        if not raw:
            raise too_small(full_data)
        kind = raw[0]
        if kind not in (_RPC_METHOD_TYPE_ID, _RPC_METHOD_TYPE_NAME):
            raise InvalidPayload(full_data)
        if len(raw) < 3:
            raise too_small(full_data)
        value = int.from_bytes(raw[1:3], "little")
        if kind == _RPC_METHOD_TYPE_ID:
            return cls(value)
        if len(raw) < 3 + value:
            raise too_small(full_data)
        return cls(raw[3 : 3 + value].decode("utf-8", errors="replace"))

    def serialize(self) -> bytes:
        if isinstance(self.method, str):
            name = self.method.encode("utf-8")
            body = _pack("<BH", _RPC_METHOD_TYPE_NAME, len(name)) + name
        else:
            body = _pack("<BH", _RPC_METHOD_TYPE_ID, self.method)
        return header_bytes(PacketType.RPC_UPDATE, 0, len(body)) + body


Payload = (
    LogMessagePayload
    | RpcRequestPayload
    | RpcReplyPayload
    | RpcErrorPayload
    | HeartbeatSession
    | HeartbeatAny
    | LegacyTimebaseInfoPayload
    | LegacySourceInfoPayload
    | LegacyStreamInfoPayload
    | LegacyStreamDataPayload
    | MetadataPayload
    | SettingsRpcHash
    | SettingsUnknown
    | StreamDataPayload
    | ProxyStatusPayload
    | RpcUpdatePayload
    | GenericPayload
)

_SERIALIZABLE = (
    LogMessagePayload,
    RpcRequestPayload,
    RpcReplyPayload,
    RpcErrorPayload,
    HeartbeatSession,
    HeartbeatAny,
    MetadataPayload,
    SettingsRpcHash,
    SettingsUnknown,
    LegacyStreamDataPayload,
    StreamDataPayload,
    ProxyStatusPayload,
    RpcUpdatePayload,
    GenericPayload,
)

_REJECTED = frozenset(
    {PacketType.INVALID, PacketType.RESERVED0, PacketType.RESERVED1, PacketType.RESERVED2}
)

_DECODERS = {
    PacketType.LOG: LogMessagePayload.deserialize,
    PacketType.RPC_REQ: RpcRequestPayload.deserialize,
    PacketType.RPC_REP: RpcReplyPayload.deserialize,
    PacketType.RPC_ERROR: RpcErrorPayload.deserialize,
    PacketType.HEARTBEAT: deserialize_heartbeat,
    # Legacy descriptions are only carried along, not decoded.
    PacketType.LEGACY_TIMEBASE_UPDATE: GenericPayload.deserialize,
    PacketType.LEGACY_SOURCE_UPDATE: GenericPayload.deserialize,
    PacketType.LEGACY_STREAM_UPDATE: GenericPayload.deserialize,
    PacketType.LEGACY_STREAM_DATA: LegacyStreamDataPayload.deserialize,
    PacketType.METADATA: MetadataPayload.deserialize,
    PacketType.SETTINGS: deserialize_settings,
    PacketType.PROXY_STATUS: ProxyStatusPayload.deserialize,
    PacketType.RPC_UPDATE: RpcUpdatePayload.deserialize,
}


def deserialize_payload(
    header: PacketHeader, raw_payload: BytesLike, full_data: BytesLike
) -> Payload:
    """Decode the payload of a packet whose header is ``header``."""
    ptype = header.packet_type
    if ptype in _REJECTED:
        raise InvalidPacketType(full_data)
    decoder = _DECODERS.get(ptype)
    if decoder is None:
        if header.stream_id() is not None:
            decoder = StreamDataPayload.deserialize
        else:
            decoder = GenericPayload.deserialize
    return decoder(raw_payload, full_data)


def serialize_payload(payload: Payload) -> bytes:
    """Encode a payload with its header, without routing."""
    if not isinstance(payload, _SERIALIZABLE):
        raise SerializeError(f"cannot encode payload of type {type(payload).__name__}")
    return payload.serialize()


@dataclass
class Packet:
    """A TIO packet: a payload addressed to or from a device in the tree."""

    payload: Payload
    routing: DeviceRoute = field(default_factory=DeviceRoute.root)
    ttl: int = 0

    @classmethod
    def deserialize(cls, raw: BytesLike) -> tuple[Packet, int]:
        """Decode the packet at the start of ``raw``; return it and its length."""
        raw = bytes(raw)
        header = PacketHeader.deserialize(raw)
        length = header.packet_size()
        payload_raw = raw[header.payload_offset() : header.routing_offset()]
        routing_raw = raw[header.routing_offset() : length]
        payload = deserialize_payload(header, payload_raw, raw)
        return cls(payload, DeviceRoute.from_bytes(routing_raw), header.ttl()), length

    def serialize(self) -> bytes:
        return self.routing.serialize(serialize_payload(self.payload))