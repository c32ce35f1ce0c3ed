"""Port exchanging TIO packets, one per UDP datagram."""

from __future__ import annotations

import socket
from typing import Any

from .errors import NeedMore, PacketTooSmall, ProtocolError, SerializeError
from .iobuf import (
    NotReady,
    ProtocolRecvError,
    RecvIOError,
    SendIOError,
    SerializationFailed,
)
from .packet import Packet

_DATAGRAM_SIZE = 1024
_MAX_SEND_INTERVAL = 0.2


class UdpPort:
    """Each datagram carries exactly one whole packet."""

    def __init__(self, sock: socket.socket) -> None:
        sock.setblocking(False)
        self._sock = sock

    @classmethod
    def connect(cls, address: tuple[Any, ...]) -> UdpPort:
        """Open a socket on an ephemeral port, connected to ``(host, port)``."""
        family, _, _, _, sockaddr = socket.getaddrinfo(
            address[0], address[1], type=socket.SOCK_DGRAM
        )[0]
        sock = socket.socket(family, socket.SOCK_DGRAM)
        try:
            sock.bind(("::", 0) if family == socket.AF_INET6 else ("0.0.0.0", 0))
            sock.connect(sockaddr)
        except OSError:
            sock.close()
            raise
        return cls(sock)

    def recv(self) -> Packet:
        """Return the packet in the next datagram; raise NotReady if none is waiting."""
        try:
            data = self._sock.recv(_DATAGRAM_SIZE)
        except BlockingIOError as exc:
            raise NotReady() from exc
        except OSError as exc:
            raise RecvIOError(exc) from exc
        try:
            packet, parsed = Packet.deserialize(data)
        except NeedMore as exc:
            # A datagram must hold a whole packet.
            raise ProtocolRecvError(PacketTooSmall(data)) from exc
        except ProtocolError as exc:
            raise ProtocolRecvError(exc) from exc
        if parsed != len(data):
            raise RecvIOError(OSError("datagram holds data after the packet"))
        return packet

    def send(self, packet: Packet) -> None:
        """Send a packet in one datagram."""
        try:
            raw = packet.serialize()
        except SerializeError as exc:
            raise SerializationFailed(str(exc)) from exc
        try:
            size = self._sock.send(raw)
        except BlockingIOError as exc:
            raise RuntimeError("unexpected UDP would block") from exc
        except OSError as exc:
            raise SendIOError(exc) from exc
        if size != len(raw):
            raise RuntimeError("unexpected UDP short write")

    def max_send_interval(self) -> float:
        """Longest time, in seconds, to go without sending to keep the link alive."""
        return _MAX_SEND_INTERVAL

    def fileno(self) -> int:
        return self._sock.fileno()

    def close(self) -> None:
        self._sock.close()

    def __enter__(self) -> UdpPort:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()