"""Metadata packets describing devices, streams, segments and columns."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from enum import IntEnum
from typing import ClassVar

from . import vararg
from .errors import InvalidPayload, SerializeError, too_small
from .header import MAX_PAYLOAD_SIZE, DataType, PacketType, header_bytes, lookup_enum
from .route import DeviceRoute

BytesLike = bytes | bytearray | memoryview

SEGMENT_VALID = 0x01
SEGMENT_ACTIVE = 0x02

METADATA_PERIODIC = 0x01
METADATA_UPDATE = 0x02
METADATA_LAST = 0x04

_SEGMENT_NUMBERS = struct.Struct("<IIIIf")


class MetadataEpoch(IntEnum):
    INVALID = 0
    ZERO = 1
    SYSTIME = 2
    UNIX = 3


class MetadataFilter(IntEnum):
    UNFILTERED = 0
    FIRST_ORDER_CASCADE_1 = 1
    FIRST_ORDER_CASCADE_2 = 2


class MetadataType(IntEnum):
    DEVICE = 1
    STREAM = 2
    SEGMENT = 3
    COLUMN = 4


def _bytes(*values: int) -> bytes:
    try:
        return bytes(int(v) for v in values)
    except ValueError as exc:
        raise SerializeError(f"value does not fit in a byte: {values}") from exc


def _pack(fmt: str | struct.Struct, *values: object) -> bytes:
    packer = fmt if isinstance(fmt, struct.Struct) else struct.Struct(fmt)
    try:
        return packer.pack(*values)
    except struct.error as exc:
        raise SerializeError(f"cannot encode {values}: {exc}") from exc


def _update_packet(content: MetadataContent, routing: DeviceRoute):
    from .packet import Packet

    return Packet(
        payload=MetadataPayload(content=content, flags=METADATA_UPDATE),
        routing=routing,
        ttl=0,
    )


@dataclass
class DeviceMetadata:
    metadata_type: ClassVar[MetadataType] = MetadataType.DEVICE

    serial_number: str
    firmware_hash: str
    n_streams: int
    session_id: int
    name: str

    @classmethod
    def deserialize(
        cls, raw: BytesLike, full_data: BytesLike
    ) -> tuple[DeviceMetadata, bytes, bytes]:
        """Decode; also return the unknown fixed and variable extensions."""
        fixed, varlen = vararg.split(raw, full_data)
        if len(fixed) < 9:
            raise too_small(full_data)
        name, varlen = vararg.peel_string(varlen, fixed[1], full_data)
        serial, varlen = vararg.peel_string(varlen, fixed[6], full_data)
        firmware, varlen = vararg.peel_string(varlen, fixed[7], full_data)
        if len(fixed) > 9 and varlen:
            raise InvalidPayload(full_data)
        meta = cls(
            serial_number=serial,
            firmware_hash=firmware,
            n_streams=fixed[8],
            session_id=int.from_bytes(fixed[2:6], "little"),
            name=name,
        )
        return meta, fixed[9:], varlen

    def serialize(self, extra_fixed: BytesLike, extra_varlen: BytesLike) -> tuple[bytes, bytes]:
        varlen = bytearray()
        fixed = bytearray(_bytes(9, vararg.append_string(varlen, self.name)))
        fixed += _pack("<I", self.session_id)
        fixed += _bytes(
            vararg.append_string(varlen, self.serial_number),
            vararg.append_string(varlen, self.firmware_hash),
            vararg.checked_u8_size(self.n_streams),
        )
        return vararg.extend(fixed, varlen, extra_fixed, extra_varlen)

    def make_update_with_route(self, routing: DeviceRoute):
        return _update_packet(self, routing)

    def make_update(self):
        return self.make_update_with_route(DeviceRoute.root())


@dataclass
class StreamMetadata:
    metadata_type: ClassVar[MetadataType] = MetadataType.STREAM

    stream_id: int
    name: str
    n_columns: int
    n_segments: int
    sample_size: int
    buf_samples: int

    @classmethod
    def deserialize(
        cls, raw: BytesLike, full_data: BytesLike
    ) -> tuple[StreamMetadata, bytes, bytes]:
        fixed, varlen = vararg.split(raw, full_data)
        if len(fixed) < 9:
            raise too_small(full_data)
        name, varlen = vararg.peel_string(varlen, fixed[8], full_data)
        if len(fixed) > 9 and varlen:
            raise InvalidPayload(full_data)
        meta = cls(
            stream_id=fixed[1],
            name=name,
            n_columns=fixed[2],
            n_segments=fixed[3],
            sample_size=int.from_bytes(fixed[4:6], "little"),
            buf_samples=int.from_bytes(fixed[6:8], "little"),
        )
        return meta, fixed[9:], varlen

    def serialize(self, extra_fixed: BytesLike, extra_varlen: BytesLike) -> tuple[bytes, bytes]:
        varlen = bytearray()
        fixed = bytearray(
            _bytes(
                9,
                self.stream_id,
                vararg.checked_u8_size(self.n_columns),
                vararg.checked_u8_size(self.n_segments),
            )
        )
        fixed += _pack(
            "<HH",
            vararg.checked_u16_size(self.sample_size),
            vararg.checked_u16_size(self.buf_samples),
        )
        fixed += _bytes(vararg.append_string(varlen, self.name))
        return vararg.extend(fixed, varlen, extra_fixed, extra_varlen)

    def make_update_with_route(self, routing: DeviceRoute):
        return _update_packet(self, routing)

    def make_update(self):
        return self.make_update_with_route(DeviceRoute.root())


@dataclass
class SegmentMetadata:
    metadata_type: ClassVar[MetadataType] = MetadataType.SEGMENT

    stream_id: int
    segment_id: int
    flags: int
    time_ref_epoch: MetadataEpoch
    time_ref_serial: str
    time_ref_session_id: int
    start_time: int
    sampling_rate: int
    decimation: int
    filter_cutoff: float
    filter_type: MetadataFilter

    def valid(self) -> bool:
        return bool(self.flags & SEGMENT_VALID)

    def active(self) -> bool:
        return bool(self.flags & SEGMENT_ACTIVE)

    @classmethod
    def deserialize(
        cls, raw: BytesLike, full_data: BytesLike
    ) -> tuple[SegmentMetadata, bytes, bytes]:
        fixed, varlen = vararg.split(raw, full_data)
        if len(fixed) < 27:
            raise too_small(full_data)
        serial, varlen = vararg.peel_string(varlen, fixed[5], full_data)
        if len(fixed) > 27 and varlen:
            raise InvalidPayload(full_data)
        session, start, rate, decimation, cutoff = _SEGMENT_NUMBERS.unpack_from(fixed, 6)
        meta = cls(
            stream_id=fixed[1],
            segment_id=fixed[2],
            flags=fixed[3],
            time_ref_epoch=lookup_enum(MetadataEpoch, fixed[4]),
            time_ref_serial=serial,
            time_ref_session_id=session,
            start_time=start,
            sampling_rate=rate,
            decimation=decimation,
            filter_cutoff=cutoff,
            filter_type=lookup_enum(MetadataFilter, fixed[26]),
        )
        return meta, fixed[27:], varlen

    def serialize(self, extra_fixed: BytesLike, extra_varlen: BytesLike) -> tuple[bytes, bytes]:
        varlen = bytearray()
        fixed = bytearray(
            _bytes(
                27,
                self.stream_id,
                self.segment_id,
                self.flags,
                self.time_ref_epoch,
                vararg.append_string(varlen, self.time_ref_serial),
            )
        )
        fixed += _pack(
            _SEGMENT_NUMBERS,
            self.time_ref_session_id,
            self.start_time,
            self.sampling_rate,
            self.decimation,
            self.filter_cutoff,
        )
        fixed += _bytes(self.filter_type)
        return vararg.extend(fixed, varlen, extra_fixed, extra_varlen)

    def make_update_with_route(self, routing: DeviceRoute):
        return _update_packet(self, routing)

    def make_update(self):
        return self.make_update_with_route(DeviceRoute.root())


@dataclass
class ColumnMetadata:
    metadata_type: ClassVar[MetadataType] = MetadataType.COLUMN

    stream_id: int
    index: int
    data_type: DataType
    name: str
    units: str
    description: str

    @classmethod
    def deserialize(
        cls, raw: BytesLike, full_data: BytesLike
    ) -> tuple[ColumnMetadata, bytes, bytes]:
        fixed, varlen = vararg.split(raw, full_data)
        if len(fixed) < 7:
            raise too_small(full_data)
        name, varlen = vararg.peel_string(varlen, fixed[4], full_data)
        units, varlen = vararg.peel_string(varlen, fixed[5], full_data)
        description, varlen = vararg.peel_string(varlen, fixed[6], full_data)
        if len(fixed) > 7 and varlen:
            raise InvalidPayload(full_data)
        meta = cls(
            stream_id=fixed[1],
            index=fixed[2],
            data_type=lookup_enum(DataType, fixed[3]),
            name=name,
            units=units,
            description=description,
        )
        return meta, fixed[7:], varlen

    def serialize(self, extra_fixed: BytesLike, extra_varlen: BytesLike) -> tuple[bytes, bytes]:
        varlen = bytearray()
        fixed = _bytes(
            7,
            self.stream_id,
            vararg.checked_u8_size(self.index),
            self.data_type,
            vararg.append_string(varlen, self.name),
            vararg.append_string(varlen, self.units),
            vararg.append_string(varlen, self.description),
        )
        return vararg.extend(fixed, varlen, extra_fixed, extra_varlen)

    def make_update_with_route(self, routing: DeviceRoute):
        return _update_packet(self, routing)

    def make_update(self):
        return self.make_update_with_route(DeviceRoute.root())


@dataclass
class UnknownMetadata:
    """Metadata of a type this library does not know, kept by its type code."""

    metadata_type: int


MetadataContent = DeviceMetadata | StreamMetadata | SegmentMetadata | ColumnMetadata | UnknownMetadata

_KNOWN_CONTENT = {
    MetadataType.DEVICE: DeviceMetadata,
    MetadataType.STREAM: StreamMetadata,
    MetadataType.SEGMENT: SegmentMetadata,
    MetadataType.COLUMN: ColumnMetadata,
}


@dataclass
class MetadataPayload:
    """A metadata packet payload.

    Unknown extensions are carried along so the payload can be re-encoded.
    """

    content: MetadataContent
    flags: int = 0
    unknown_fixed: bytes = b""
    unknown_varlen: bytes = b""

    def periodic(self) -> bool:
        return bool(self.flags & METADATA_PERIODIC)

    def update(self) -> bool:
        return bool(self.flags & METADATA_UPDATE)

    def last(self) -> bool:
        return bool(self.flags & METADATA_LAST)

    @classmethod
    def deserialize(cls, raw: BytesLike, full_data: BytesLike) -> MetadataPayload:
        raw = bytes(raw)
        if len(raw) < 2:
            raise too_small(full_data)
        content_cls = _KNOWN_CONTENT.get(raw[0])
        if content_cls is not None:
            content, ufixed, uvarlen = content_cls.deserialize(raw[2:], full_data)
        else:
            ufixed, uvarlen = vararg.split(raw[2:], full_data)
            content = UnknownMetadata(raw[0])
        return cls(content=content, flags=raw[1], unknown_fixed=ufixed, unknown_varlen=uvarlen)

    def serialize(self) -> bytes:
        if isinstance(self.content, UnknownMetadata):
            fixed, varlen = bytes(self.unknown_fixed), bytes(self.unknown_varlen)
        else:
            fixed, varlen = self.content.serialize(self.unknown_fixed, self.unknown_varlen)
        payload_size = 2 + len(fixed) + len(varlen)
        if payload_size > MAX_PAYLOAD_SIZE:
            raise SerializeError("metadata payload too large")
        return (
            header_bytes(PacketType.METADATA, 0, payload_size)
            + _bytes(self.content.metadata_type, self.flags)
            + fixed
            + varlen
        )