import pytest

from tiowire.errors import (
    InvalidPacketType,
    NeedMore,
    PayloadTooBig,
    RoutingTooBig,
)
from tiowire.header import (
    MAX_PAYLOAD_SIZE,
    MAX_ROUTING_SIZE,
    PACKET_HEADER_SIZE,
    STREAM0,
    BufferType,
    DataType,
    LogLevel,
    PacketHeader,
    PacketType,
    ProxyStatus,
    header_bytes,
    lookup_enum,
)


def make_packet(ptype, payload=b"", routing=b"", ttl=0):
    return header_bytes(ptype, (ttl << 4) | len(routing), len(payload)) + payload + routing


def test_data_type_sizes():
    assert DataType.UINT8.size() == 1
    assert DataType.FLOAT64.size() == 8
    assert DataType.INT24.size() == DataType.UINT24.size()


@pytest.mark.parametrize(
    "dtype, expected",
    [
        (DataType.FLOAT32, BufferType.FLOAT),
        (DataType.FLOAT64, BufferType.FLOAT),
        (DataType.INT8, BufferType.INT),
        (DataType.INT64, BufferType.INT),
        (DataType.UINT16, BufferType.UINT),
        (DataType.UINT32, BufferType.UINT),
    ],
)
def test_buffer_type(dtype, expected):
    assert dtype.buffer_type() is expected


def test_lookup_known_member():
    assert lookup_enum(LogLevel, 3) is LogLevel.INFO
    assert lookup_enum(ProxyStatus, 0) is ProxyStatus.SENSOR_DISCONNECTED


def test_lookup_unknown_keeps_value():
    unknown = lookup_enum(DataType, 0x99)
    assert int(unknown) == 0x99
    assert unknown not in list(DataType)
    assert unknown.buffer_type() is BufferType.FLOAT
    assert lookup_enum(DataType, 0x99) is unknown


def test_lookup_negative_rejected():
    with pytest.raises(ValueError):
        lookup_enum(LogLevel, -1)


def test_header_bytes_little_endian():
    raw = header_bytes(PacketType.RPC_REQ, 0, 0x0102)
    assert raw[0] == PacketType.RPC_REQ
    assert raw[2:] == b"\x02\x01"
    assert len(raw) == PACKET_HEADER_SIZE


def test_header_round_trip():
    payload = b"abc"
    routing = bytes([7, 8])
    ttl = 1
    raw = make_packet(PacketType.LOG, payload, routing, ttl)
    hdr = PacketHeader.deserialize(raw)
    assert hdr.packet_type is PacketType.LOG
    assert hdr.ttl() == ttl
    assert hdr.routing_size() == len(routing)
    assert hdr.payload_size() == len(payload)
    assert hdr.payload_offset() == PACKET_HEADER_SIZE
    assert hdr.routing_offset() == PACKET_HEADER_SIZE + len(payload)
    assert hdr.packet_size() == len(raw)
    assert raw[hdr.payload_offset():hdr.routing_offset()] == payload


def test_header_ignores_trailing_bytes():
    raw = make_packet(PacketType.HEARTBEAT, b"xy") + b"extra"
    hdr = PacketHeader.deserialize(raw)
    assert hdr.packet_size() == len(raw) - len(b"extra")


def test_need_more_cases():
    full = make_packet(PacketType.LOG, b"hello")
    for cut in range(len(full)):
        with pytest.raises(NeedMore):
            PacketHeader.deserialize(full[:cut])


@pytest.mark.parametrize(
    "ptype", [PacketType.INVALID, PacketType.RESERVED0, PacketType.RESERVED1]
)
def test_invalid_types_rejected_early(ptype):
    raw = bytes([ptype])
    with pytest.raises(InvalidPacketType) as info:
        PacketHeader.deserialize(raw)
    assert info.value.data == raw


def test_reserved2_passes_header_check():
    hdr = PacketHeader.deserialize(make_packet(PacketType.RESERVED2))
    assert hdr.packet_type is PacketType.RESERVED2


def test_routing_too_big():
    raw = header_bytes(PacketType.LOG, MAX_ROUTING_SIZE + 1, 0)
    with pytest.raises(RoutingTooBig) as info:
        PacketHeader.deserialize(raw)
    assert info.value.data == raw


def test_payload_too_big():
    raw = header_bytes(PacketType.LOG, 0, MAX_PAYLOAD_SIZE + 1)
    with pytest.raises(PayloadTooBig):
        PacketHeader.deserialize(raw)


def test_max_payload_accepted():
    raw = make_packet(PacketType.LOG, bytes(MAX_PAYLOAD_SIZE))
    assert PacketHeader.deserialize(raw).payload_size() == MAX_PAYLOAD_SIZE


def test_stream_ids():
    data = PacketHeader.deserialize(make_packet(STREAM0 + 5, b"1234"))
    assert data.stream_id() == 5
    assert int(data.packet_type) == STREAM0 + 5
    legacy = PacketHeader.deserialize(make_packet(STREAM0, b"1234"))
    assert legacy.packet_type is PacketType.LEGACY_STREAM_DATA
    assert legacy.stream_id() == 0
    assert PacketHeader.deserialize(make_packet(PacketType.LOG)).stream_id() is None