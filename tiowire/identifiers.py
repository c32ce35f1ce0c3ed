"""Keys naming streams and columns of sample data in a device tree."""

from __future__ import annotations

from dataclasses import dataclass

from .route import DeviceRoute

SampleNumber = int
SessionId = int
SegmentId = int
StreamId = int
ColumnId = int
TimeRefSessionId = int


@dataclass(frozen=True, order=True)
class StreamKey:
    """A data stream of one device."""

    route: DeviceRoute
    stream_id: StreamId

    def device_route(self) -> DeviceRoute:
        """Route of the device producing the stream."""
        return self.route

    def __str__(self) -> str:
        return f"[{self.route}]:{self.stream_id}"


@dataclass(frozen=True, order=True)
class ColumnKey:
    """One column of a data stream of one device."""

    route: DeviceRoute
    stream_id: StreamId
    column_id: ColumnId

    def stream_key(self) -> StreamKey:
        """Key of the stream this column belongs to."""
        return StreamKey(self.route, self.stream_id)

    def device_route(self) -> DeviceRoute:
        """Route of the device producing the column."""
        return self.route

    def __str__(self) -> str:
        return f"[{self.route}]:{self.stream_id}/{self.column_id}"