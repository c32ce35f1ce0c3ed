"""Port exchanging TIO packets over a TCP stream."""

from __future__ import annotations

import errno
import os
import socket
from typing import Any

from .errors import NeedMore, ProtocolError, SerializeError
from .iobuf import (
    IOBuf,
    MustDrain,
    NotReady,
    ProtocolRecvError,
    SendIOError,
    SerializationFailed,
    TxFull,
)
from .packet import Packet

_CONNECT_PENDING = frozenset(
    code
    for code in (
        0,
        errno.EINPROGRESS,
        errno.EWOULDBLOCK,
        errno.EAGAIN,
        getattr(errno, "WSAEWOULDBLOCK", None),
    )
    if code is not None
)

_NOT_CONNECTED = frozenset(
    code
    for code in (errno.ENOTCONN, getattr(errno, "WSAENOTCONN", None))
    if code is not None
)


class TcpPort:
    """Packets travel unmodified on the stream; headers delimit them."""

    def __init__(self, sock: socket.socket) -> None:
        sock.setblocking(False)
        self._sock = sock
        self._rxbuf = IOBuf()
        self._txbuf = IOBuf()

    @classmethod
    def connect(cls, address: tuple[Any, ...]) -> TcpPort:
        """Start a non-blocking connection to ``(host, port)``."""
        family, _, _, _, sockaddr = socket.getaddrinfo(
            address[0], address[1], type=socket.SOCK_STREAM
        )[0]
        sock = socket.socket(family, socket.SOCK_STREAM)
        sock.setblocking(False)
        err = sock.connect_ex(sockaddr)
        if err not in _CONNECT_PENDING:
            sock.close()
            raise OSError(err, os.strerror(err))
        return cls(sock)

    def _recv_buffered(self) -> Packet:
        try:
            packet, size = Packet.deserialize(self._rxbuf.data())
        except NeedMore as exc:
            raise NotReady() from exc
        except ProtocolError as exc:
            raise ProtocolRecvError(exc) from exc
        self._rxbuf.consume(size)
        return packet

    def recv(self) -> Packet:
        """Return the next packet, reading from the socket if needed.

        Raises NotReady if no complete packet is available yet.
        """
        try:
            return self._recv_buffered()
        except NotReady:
            self._rxbuf.refill(self._sock)
        return self._recv_buffered()

    def _buffer(self, data: bytes) -> None:
        if self._txbuf.add_data(data) != len(data):
            raise BufferError("outgoing buffer cannot hold a whole packet")

    def send(self, packet: Packet) -> None:
        """Send a packet whole, or buffer the rest and raise MustDrain."""
        if self.has_data_to_drain():
            raise TxFull()
        try:
            raw = packet.serialize()
        except SerializeError as exc:
            raise SerializationFailed(str(exc)) from exc
        try:
            size = self._sock.send(raw)
        except BlockingIOError as exc:
            self._buffer(raw)
            raise MustDrain() from exc
        except OSError as exc:
            if exc.errno in _NOT_CONNECTED:
                # The handshake has not completed yet.
                self._buffer(raw)
                raise MustDrain() from exc
            raise SendIOError(exc) from exc
        if size != len(raw):
            self._buffer(raw[size:])
            raise MustDrain()

    def drain(self) -> None:
        """Send buffered outgoing data; raise MustDrain if some remains."""
        self._txbuf.drain(self._sock)

    def has_data_to_drain(self) -> bool:
        return not self._txbuf.empty()

    def fileno(self) -> int:
        return self._sock.fileno()

    def close(self) -> None:
        self._sock.close()

    def __enter__(self) -> TcpPort:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()