"""Addresses of devices in a TIO device tree."""

from __future__ import annotations

import re
from collections.abc import Iterable, Iterator
from dataclasses import dataclass

from .errors import SerializeError
from .header import MAX_ROUTING_SIZE, PACKET_HEADER_SIZE

_SEGMENT = re.compile(r"\+?[0-9]+")


@dataclass(frozen=True, order=True)
class DeviceRoute:
    """Path from the root device to a device, one hop per level."""

    hops: tuple[int, ...] = ()

    def __post_init__(self) -> None:
        hops = tuple(self.hops)
        for hop in hops:
            if not 0 <= hop <= 255:
                raise ValueError(f"route hop out of range: {hop}")
        object.__setattr__(self, "hops", hops)

    @classmethod
    def root(cls) -> DeviceRoute:
        """Return the route of the root device."""
        return cls()

    @classmethod
    def from_bytes(cls, data: Iterable[int]) -> DeviceRoute:
        """Build a route from wire bytes, which list hops from the leaf up."""
        raw = bytes(data)
        if len(raw) > MAX_ROUTING_SIZE:
            raise ValueError(f"route longer than {MAX_ROUTING_SIZE} hops")
        return cls(tuple(reversed(raw)))

    @classmethod
    def parse(cls, route_str: str) -> DeviceRoute:
        """Parse a route written as ``/a/b/c``; the leading slash is optional."""
        stripped = route_str[1:] if route_str.startswith("/") else route_str
        if not stripped:
            return cls()
        hops: list[int] = []
        for segment in stripped.split("/"):
            if len(hops) >= MAX_ROUTING_SIZE:
                raise ValueError(f"route longer than {MAX_ROUTING_SIZE} hops")
            if not _SEGMENT.fullmatch(segment) or int(segment) > 255:
                raise ValueError(f"invalid route segment: {segment!r}")
            hops.append(int(segment))
        return cls(tuple(hops))

    def __len__(self) -> int:
        return len(self.hops)

    def __iter__(self) -> Iterator[int]:
        return iter(self.hops)

    def serialize(self, rest_of_packet: bytes | bytearray) -> bytes:
        """Append this route to an encoded header and payload."""
        if len(self.hops) > MAX_ROUTING_SIZE or len(rest_of_packet) < PACKET_HEADER_SIZE:
            raise SerializeError("cannot append route to packet")
        out = bytearray(rest_of_packet)
        out[1] |= len(self.hops)
        out.extend(reversed(self.hops))
        return bytes(out)

    def relative_route(self, other_route: DeviceRoute) -> DeviceRoute:
        """Return ``other_route`` relative to this one.

        Raises ValueError if ``other_route`` is not in the subtree rooted here.
        """
        depth = len(self.hops)
        if depth <= len(other_route.hops) and other_route.hops[:depth] == self.hops:
            return DeviceRoute(other_route.hops[depth:])
        raise ValueError(f"{other_route} is not under {self}")

    def absolute_route(self, other_route: DeviceRoute) -> DeviceRoute:
        """Return the route reached by following ``other_route`` from here."""
        return DeviceRoute(self.hops + other_route.hops)

    def __str__(self) -> str:
        if not self.hops:
            return "/"
        return "".join(f"/{hop}" for hop in self.hops)