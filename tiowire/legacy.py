"""Payloads of the older, pre-metadata data streaming protocol."""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from enum import IntEnum

from .errors import SerializeError, too_small
from .header import MAX_PAYLOAD_SIZE, DataType, PacketType, header_bytes

BytesLike = bytes | bytearray | memoryview


class LegacyTimebaseSource(IntEnum):
    INVALID = 0
    LOCAL = 1
    GLOBAL = 2


class LegacyTimebaseEpoch(IntEnum):
    INVALID = 0
    START = 1
    SYS_TIME = 2
    UNIX = 3
    GPS = 4


@dataclass
class LegacyTimebaseInfoPayload:
    id: int
    source: LegacyTimebaseSource
    epoch: LegacyTimebaseEpoch
    start_time: int
    period_numerator_us: int
    period_denominator_us: int
    flags: int
    stability: float
    source_id: bytes


@dataclass
class LegacySourceInfoPayload:
    id: int
    timebase_id: int
    period: int
    offset: int
    flags: int
    channels: int
    datatype: DataType
    _fmt: int = field(default=0, repr=False)


@dataclass
class LegacyStreamComponentInfo:
    source_id: int
    flags: int
    period: int
    offset: int


@dataclass
class LegacyStreamInfoPayload:
    id: int
    timebase_id: int
    period: int
    offset: int
    sample_number: int
    flags: int
    components: list[LegacyStreamComponentInfo] = field(default_factory=list)


@dataclass
class LegacyStreamDataPayload:
    """Samples of the legacy stream, tagged with the first sample number."""

    sample_n: int
    data: bytes = b""

    @classmethod
    def deserialize(cls, raw: BytesLike, full_data: BytesLike) -> LegacyStreamDataPayload:
        raw = bytes(raw)
        if len(raw) < 5:
            raise too_small(full_data)
        return cls(sample_n=int.from_bytes(raw[:4], "little"), data=raw[4:])

    def serialize(self) -> bytes:
        payload_size = 4 + len(self.data)
        if payload_size > MAX_PAYLOAD_SIZE:
            raise SerializeError("legacy stream data payload too large")
        try:
            sample = struct.pack("<I", self.sample_n)
        except struct.error as exc:
            raise SerializeError(f"invalid sample number: {self.sample_n}") from exc
        return (
            header_bytes(PacketType.LEGACY_STREAM_DATA, 0, payload_size)
            + sample
            + bytes(self.data)
        )