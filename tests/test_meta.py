import pytest

from tiowire.errors import InvalidPayload, PayloadTooSmall, SerializeError
from tiowire.header import MAX_PAYLOAD_SIZE, PACKET_HEADER_SIZE, DataType, PacketType, lookup_enum
from tiowire.meta import (
    ColumnMetadata,
    DeviceMetadata,
    MetadataEpoch,
    MetadataFilter,
    MetadataPayload,
    MetadataType,
    SegmentMetadata,
    StreamMetadata,
    UnknownMetadata,
)
from tiowire.route import DeviceRoute


def _device():
    return DeviceMetadata(
        serial_number="SN-EXAMPLE-0",
        firmware_hash="deadbeef",
        n_streams=2,
        session_id=0x12345678,
        name="VMR",
    )


def _stream():
    return StreamMetadata(
        stream_id=1, name="vector", n_columns=3, n_segments=1, sample_size=12, buf_samples=500
    )


def _segment(flags=0x03):
    return SegmentMetadata(
        stream_id=1,
        segment_id=4,
        flags=flags,
        time_ref_epoch=MetadataEpoch.UNIX,
        time_ref_serial="ref",
        time_ref_session_id=99,
        start_time=1000,
        sampling_rate=200,
        decimation=2,
        filter_cutoff=0.5,
        filter_type=MetadataFilter.FIRST_ORDER_CASCADE_1,
    )


def _column(data_type=DataType.FLOAT32):
    return ColumnMetadata(
        stream_id=1, index=2, data_type=data_type, name="x", units="nT", description="field"
    )


def _round_trip(payload):
    out = payload.serialize()
    return MetadataPayload.deserialize(out[PACKET_HEADER_SIZE:], out)


def test_device_fixed_layout():
    fixed, varlen = _device().serialize(b"", b"")
    assert fixed[0] == 9
    assert fixed[1] == len("VMR")
    assert fixed[2:6] == (0x12345678).to_bytes(4, "little")
    assert varlen == b"VMRSN-EXAMPLE-0deadbeef"


def test_device_round_trip_with_extra_fixed():
    fixed, varlen = _device().serialize(b"\x01\x02", b"")
    assert fixed[0] == len(fixed)
    meta, ufixed, uvarlen = DeviceMetadata.deserialize(fixed + varlen, fixed + varlen)
    assert meta == _device()
    assert ufixed == b"\x01\x02"
    assert uvarlen == b""


def test_device_extended_with_trailing_varlen_rejected():
    fixed, varlen = _device().serialize(b"\x01", b"\xff")
    with pytest.raises(InvalidPayload):
        DeviceMetadata.deserialize(fixed + varlen, fixed + varlen)


def test_device_fixed_too_small():
    raw = bytes([8, 0, 0, 0, 0, 0, 0, 0])
    with pytest.raises(PayloadTooSmall):
        DeviceMetadata.deserialize(raw, raw)


def test_device_string_longer_than_varlen():
    raw = bytes([9, 5, 0, 0, 0, 0, 0, 0, 1]) + b"ab"
    with pytest.raises(InvalidPayload):
        DeviceMetadata.deserialize(raw, raw)


def test_device_name_too_long():
    meta = _device()
    meta.name = "n" * 256
    with pytest.raises(SerializeError):
        meta.serialize(b"", b"")


def test_extra_varlen_without_fixed_rejected():
    with pytest.raises(SerializeError):
        _device().serialize(b"", b"\x00")


def test_stream_round_trip():
    fixed, varlen = _stream().serialize(b"", b"")
    meta, ufixed, uvarlen = StreamMetadata.deserialize(fixed + varlen, fixed + varlen)
    assert meta == _stream()
    assert (ufixed, uvarlen) == (b"", b"")


def test_stream_sample_size_out_of_range():
    meta = _stream()
    meta.sample_size = 0x10000
    with pytest.raises(SerializeError):
        meta.serialize(b"", b"")


def test_segment_flags():
    assert _segment(0x01).valid() and not _segment(0x01).active()
    assert _segment(0x02).active() and not _segment(0x02).valid()


def test_segment_round_trip():
    fixed, varlen = _segment().serialize(b"", b"")
    assert fixed[0] == 27
    meta, _, _ = SegmentMetadata.deserialize(fixed + varlen, fixed + varlen)
    assert meta == _segment()


def test_segment_unknown_epoch_and_filter_survive():
    seg = _segment()
    seg.time_ref_epoch = lookup_enum(MetadataEpoch, 42)
    seg.filter_type = lookup_enum(MetadataFilter, 9)
    fixed, varlen = seg.serialize(b"", b"")
    meta, _, _ = SegmentMetadata.deserialize(fixed + varlen, fixed + varlen)
    assert int(meta.time_ref_epoch) == 42
    assert int(meta.filter_type) == 9


def test_segment_too_small():
    raw = bytes([26]) + bytes(25)
    with pytest.raises(PayloadTooSmall):
        SegmentMetadata.deserialize(raw, raw)


def test_column_round_trip_unknown_data_type():
    col = _column(lookup_enum(DataType, 0x99))
    fixed, varlen = col.serialize(b"", b"")
    assert fixed[0] == 7
    meta, _, _ = ColumnMetadata.deserialize(fixed + varlen, fixed + varlen)
    assert meta == col
    assert int(meta.data_type) == 0x99


@pytest.mark.parametrize("content", [_device(), _stream(), _segment(), _column()])
def test_payload_round_trip(content):
    payload = MetadataPayload(content=content, flags=0x05)
    out = payload.serialize()
    assert out[0] == PacketType.METADATA
    assert out[PACKET_HEADER_SIZE] == content.metadata_type
    back = _round_trip(payload)
    assert back == payload


def test_payload_flags():
    payload = MetadataPayload(content=_stream(), flags=0x05)
    assert payload.periodic()
    assert not payload.update()
    assert payload.last()


def test_payload_unknown_type_round_trip():
    payload = MetadataPayload(
        content=UnknownMetadata(77), flags=0, unknown_fixed=b"\x03\xaa\xbb", unknown_varlen=b"zz"
    )
    back = _round_trip(payload)
    assert back == payload


def test_payload_too_small():
    full = bytes([PacketType.METADATA, 0, 1, 0, MetadataType.DEVICE])
    with pytest.raises(PayloadTooSmall):
        MetadataPayload.deserialize(full[4:], full)


def test_payload_too_large():
    payload = MetadataPayload(
        content=UnknownMetadata(77), unknown_fixed=bytes([2]) + bytes(MAX_PAYLOAD_SIZE)
    )
    with pytest.raises(SerializeError):
        payload.serialize()


def test_make_update_packet():
    pkt = _column().make_update()
    assert pkt.payload.content == _column()
    assert pkt.payload.update()
    assert pkt.routing == DeviceRoute.root()
    assert pkt.ttl == 0


def test_make_update_with_route():
    route = DeviceRoute((3, 1))
    pkt = _device().make_update_with_route(route)
    assert pkt.routing == route
    assert pkt.payload.content == _device()