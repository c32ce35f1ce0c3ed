"""Payloads of remote procedure call requests, replies and errors."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from enum import IntEnum

from .errors import InvalidPayload, SerializeError, too_small
from .header import MAX_PAYLOAD_SIZE, PacketType, header_bytes, lookup_enum

BytesLike = bytes | bytearray | memoryview

# An RPC method is either a numeric id or a name.
RpcMethod = int | str

_NAMED_METHOD = 0x8000
_U16 = struct.Struct("<H")


def _u16(value: int) -> bytes:
    try:
        return _U16.pack(int(value))
    except struct.error as exc:
        raise SerializeError(f"value does not fit in 16 bits: {value}") from exc


class RpcErrorCode(IntEnum):
    NO_ERROR = 0
    UNDEFINED = 1
    NOT_FOUND = 2
    MALFORMED_REQUEST = 3
    WRONG_SIZE_ARGS = 4
    INVALID_ARGS = 5
    READ_ONLY = 6
    WRITE_ONLY = 7
    TIMEOUT = 8
    BUSY = 9
    WRONG_DEVICE_STATE = 10
    LOAD_FAILED = 11
    LOAD_RPC_FAILED = 12
    SAVE_FAILED = 13
    SAVE_WRITE_FAILED = 14
    INTERNAL = 15
    OUT_OF_MEMORY = 16
    OUT_OF_RANGE = 17


@dataclass
class RpcRequestPayload:
    """Request to call ``method`` with the encoded argument ``arg``."""

    id: int
    method: RpcMethod
    arg: bytes = b""

    @classmethod
    def deserialize(cls, raw: BytesLike, full_data: BytesLike) -> RpcRequestPayload:
        raw = bytes(raw)
        if len(raw) < 4:
            raise too_small(full_data)
        rpc_id, method = struct.unpack_from("<HH", raw)
        if method & _NAMED_METHOD:
            arg_start = (method & 0x7FFF) + 4
            if arg_start > MAX_PAYLOAD_SIZE:
                raise InvalidPayload(full_data)
            if len(raw) < arg_start:
                raise too_small(full_data)
            name = raw[4:arg_start].decode("utf-8", errors="replace")
            return cls(id=rpc_id, method=name, arg=raw[arg_start:])
        return cls(id=rpc_id, method=method, arg=raw[4:])

    def serialize(self) -> bytes:
        arg = bytes(self.arg)
        if isinstance(self.method, str):
            name = self.method.encode("utf-8")
            payload_size = 4 + len(name) + len(arg)
            if payload_size > MAX_PAYLOAD_SIZE:
                raise SerializeError("RPC request payload too large")
            method_field = _u16(len(name) | _NAMED_METHOD) + name
        else:
            payload_size = 4 + len(arg)
            if payload_size > MAX_PAYLOAD_SIZE:
                raise SerializeError("RPC request payload too large")
            method_field = _u16(self.method)
        return (
            header_bytes(PacketType.RPC_REQ, 0, payload_size)
            + _u16(self.id)
            + method_field
            + arg
        )


@dataclass
class RpcReplyPayload:
    """Successful reply to the request with the same ``id``."""

    id: int
    reply: bytes = b""

    @classmethod
    def deserialize(cls, raw: BytesLike, full_data: BytesLike) -> RpcReplyPayload:
        raw = bytes(raw)
        if len(raw) < 2:
            raise too_small(full_data)
        return cls(id=_U16.unpack_from(raw)[0], reply=raw[2:])

    def serialize(self) -> bytes:
        reply = bytes(self.reply)
        payload_size = 2 + len(reply)
        if payload_size > MAX_PAYLOAD_SIZE:
            raise SerializeError("RPC reply payload too large")
        return header_bytes(PacketType.RPC_REP, 0, payload_size) + _u16(self.id) + reply


@dataclass
class RpcErrorPayload:
    """Failure of the request with the same ``id``."""

    id: int
    error: RpcErrorCode
    extra: bytes = b""

    @classmethod
    def deserialize(cls, raw: BytesLike, full_data: BytesLike) -> RpcErrorPayload:
        raw = bytes(raw)
        if len(raw) < 4:
            raise too_small(full_data)
        rpc_id, code = struct.unpack_from("<HH", raw)
        return cls(id=rpc_id, error=lookup_enum(RpcErrorCode, code), extra=raw[4:])

    def serialize(self) -> bytes:
        extra = bytes(self.extra)
        payload_size = 4 + len(extra)
        if payload_size > MAX_PAYLOAD_SIZE:
            raise SerializeError("RPC error payload too large")
        return (
            header_bytes(PacketType.RPC_ERROR, 0, payload_size)
            + _u16(self.id)
            + _u16(self.error)
            + extra
        )