"""Convenience constructors for common packets and RPC value encoding."""

from __future__ import annotations

import dataclasses
import struct
from dataclasses import dataclass, field
from typing import Any

from .packet import HeartbeatAny, Packet
from .route import DeviceRoute
from .rpc import RpcErrorCode, RpcErrorPayload, RpcRequestPayload

BytesLike = bytes | bytearray | memoryview


def default_proxy_url() -> str:
    """Address of a standalone proxy on this machine."""
    return "tcp://localhost"


@dataclass(frozen=True)
class PacketBuilder:
    """Builds packets addressed to ``routing``."""

    routing: DeviceRoute = field(default_factory=DeviceRoute.root)

    @staticmethod
    def make_rpc_request(name: str, arg: BytesLike, rpc_id: int, routing: DeviceRoute) -> Packet:
        return Packet(
            payload=RpcRequestPayload(id=rpc_id, method=name, arg=bytes(arg)),
            routing=routing,
            ttl=0,
        )

    def rpc_request(self, name: str, arg: BytesLike, rpc_id: int) -> Packet:
        return self.make_rpc_request(name, arg, rpc_id, self.routing)

    @staticmethod
    def make_rpc_error(rpc_id: int, error: RpcErrorCode, routing: DeviceRoute) -> Packet:
        return Packet(
            payload=RpcErrorPayload(id=rpc_id, error=error, extra=b""),
            routing=routing,
            ttl=0,
        )

    def rpc_error(self, rpc_id: int, error: RpcErrorCode) -> Packet:
        return self.make_rpc_error(rpc_id, error, self.routing)

    @staticmethod
    def make_heartbeat(payload: BytesLike) -> Packet:
        return Packet(payload=HeartbeatAny(bytes(payload)), routing=DeviceRoute.root(), ttl=0)

    def heartbeat(self, payload: BytesLike) -> Packet:
        return dataclasses.replace(self.make_heartbeat(payload), routing=self.routing)

    @staticmethod
    def make_empty_heartbeat() -> Packet:
        return PacketBuilder.make_heartbeat(b"")

    def empty_heartbeat(self) -> Packet:
        return dataclasses.replace(self.make_empty_heartbeat(), routing=self.routing)


class RpcTypeError(ValueError):
    """An RPC argument or reply does not match the expected value kind."""


# Value kinds: None (no value), a numeric name below, ``str``, or a tuple of kinds
# where every element but the last has a fixed size.
_NUMERIC = {
    name: struct.Struct("<" + code)
    for name, code in (
        ("u8", "B"),
        ("i8", "b"),
        ("u16", "H"),
        ("i16", "h"),
        ("u32", "I"),
        ("i32", "i"),
        ("u64", "Q"),
        ("i64", "q"),
        ("f32", "f"),
        ("f64", "d"),
    )
}


def _numeric(kind: Any) -> struct.Struct:
    packer = _NUMERIC.get(kind) if isinstance(kind, str) else None
    if packer is None:
        raise TypeError(f"unknown RPC value kind: {kind!r}")
    return packer


def _is_fixed_size(kind: Any) -> bool:
    if kind is None or (isinstance(kind, str) and kind in _NUMERIC):
        return True
    if isinstance(kind, tuple):
        return all(_is_fixed_size(k) for k in kind)
    return False


def to_request(kind: Any, value: Any) -> bytes:
    """Encode ``value`` of the given kind as an RPC argument."""
    if kind is None:
        return b""
    if kind is str:
        if not isinstance(value, str):
            raise RpcTypeError(f"expected a string, got {value!r}")
        return value.encode("utf-8")
    if isinstance(kind, tuple):
        if not isinstance(value, tuple) or len(value) != len(kind):
            raise RpcTypeError(f"expected a tuple of {len(kind)} values, got {value!r}")
        return b"".join(to_request(k, v) for k, v in zip(kind, value))
    packer = _numeric(kind)
    try:
        return packer.pack(value)
    except struct.error as exc:
        raise RpcTypeError(f"cannot encode {value!r} as {kind}") from exc


def from_reply_prefix(kind: Any, reply: BytesLike) -> tuple[Any, bytes]:
    """Decode a value of the given kind from the start of ``reply``; return it and the rest."""
    reply = bytes(reply)
    if kind is None:
        return None, reply
    if kind is str:
        return reply.decode("utf-8", errors="replace"), b""
    if isinstance(kind, tuple):
        if not all(_is_fixed_size(k) for k in kind[:-1]):
            raise TypeError(f"only the last element of {kind!r} may vary in size")
        values = []
        rest = reply
        for element in kind:
            value, rest = from_reply_prefix(element, rest)
            values.append(value)
        return tuple(values), rest
    packer = _numeric(kind)
    if len(reply) < packer.size:
        raise RpcTypeError(f"reply too short for {kind}")
    return packer.unpack_from(reply)[0], reply[packer.size :]


def from_reply(kind: Any, reply: BytesLike) -> Any:
    """Decode a whole reply as a value of the given kind."""
    value, rest = from_reply_prefix(kind, reply)
    if rest:
        raise RpcTypeError(f"{len(rest)} unexpected bytes after {kind!r} value")
    return value