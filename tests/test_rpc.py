import pytest

from tiowire.errors import InvalidPayload, PayloadTooSmall, SerializeError
from tiowire.rpc import (
    RpcErrorCode,
    RpcErrorPayload,
    RpcReplyPayload,
    RpcRequestPayload,
)


def _roundtrip(cls, payload):
    data = payload.serialize()
    return cls.deserialize(data[4:], data)


def test_named_request_wire_bytes():
    data = RpcRequestPayload(id=7, method="dev.name", arg=b"").serialize()
    assert data == bytes([2, 0, 12, 0, 7, 0, 8, 0x80]) + b"dev.name"


@pytest.mark.parametrize(
    "payload",
    [
        RpcRequestPayload(id=1, method="dev.port.rate", arg=b"\x00\x10"),
        RpcRequestPayload(id=65535, method=42, arg=b"abc"),
        RpcRequestPayload(id=0, method="x", arg=b""),
    ],
)
def test_request_roundtrip(payload):
    assert _roundtrip(RpcRequestPayload, payload) == payload


def test_request_too_small_keeps_full_data():
    with pytest.raises(PayloadTooSmall) as info:
        RpcRequestPayload.deserialize(b"\x01\x02\x03", b"full")
    assert info.value.data == b"full"


def test_request_name_length_beyond_limit_is_invalid():
    raw = b"\x01\x00" + (0x8000 | 600).to_bytes(2, "little")
    with pytest.raises(InvalidPayload):
        RpcRequestPayload.deserialize(raw, raw)


def test_request_name_longer_than_payload():
    raw = b"\x01\x00" + (0x8000 | 10).to_bytes(2, "little") + b"ab"
    with pytest.raises(PayloadTooSmall):
        RpcRequestPayload.deserialize(raw, raw)


def test_request_too_large_to_serialize():
    with pytest.raises(SerializeError):
        RpcRequestPayload(id=1, method="a", arg=b"\x00" * 600).serialize()


def test_reply_roundtrip():
    payload = RpcReplyPayload(id=9, reply=b"hello")
    assert _roundtrip(RpcReplyPayload, payload) == payload


def test_reply_too_small():
    with pytest.raises(PayloadTooSmall):
        RpcReplyPayload.deserialize(b"\x01", b"\x01")


def test_error_roundtrip():
    payload = RpcErrorPayload(id=4, error=RpcErrorCode.TIMEOUT, extra=b"zz")
    assert _roundtrip(RpcErrorPayload, payload) == payload


def test_error_unknown_code_survives_roundtrip():
    raw = b"\x01\x00\x63\x00"
    decoded = RpcErrorPayload.deserialize(raw, raw)
    assert decoded.error == 0x63
    assert decoded.error.name.startswith("UNKNOWN")
    assert decoded.serialize()[4:] == raw


def test_error_too_small():
    with pytest.raises(PayloadTooSmall):
        RpcErrorPayload.deserialize(b"\x01\x00\x02", b"")