"""Byte buffer used by stream ports to split traffic into packets, and port errors."""

from __future__ import annotations

from typing import Any

from .errors import ProtocolError

IOBUF_SIZE = 4096


class PortRecvError(Exception):
    """Base class for failures to receive a packet from a port."""


class NotReady(PortRecvError):
    """No complete packet is available yet."""


class PortDisconnected(PortRecvError):
    """The other end of the port has gone away."""


class RecvIOError(PortRecvError):
    """The underlying transport failed while receiving."""

    def __init__(self, error: OSError) -> None:
        super().__init__(error)
        self.error = error


class ProtocolRecvError(PortRecvError):
    """Data arrived but could not be decoded as a packet."""

    def __init__(self, error: ProtocolError) -> None:
        super().__init__(error)
        self.error = error


class PortSendError(Exception):
    """Base class for failures to send a packet through a port."""


class MustDrain(PortSendError):
    """The packet was accepted, but part of it waits in the port's buffer."""


class TxFull(PortSendError):
    """The port's outgoing buffer still holds data; drain it before sending."""


class SendIOError(PortSendError):
    """The underlying transport failed while sending."""

    def __init__(self, error: OSError) -> None:
        super().__init__(error)
        self.error = error


class SerializationFailed(PortSendError):
    """The packet cannot be encoded."""


def _read_into(reader: Any, room: bytearray) -> int | None:
    if hasattr(reader, "recv_into"):
        return reader.recv_into(room)
    return reader.readinto(room)


def _write(writer: Any, data: bytes) -> int | None:
    if hasattr(writer, "send"):
        return writer.send(data)
    return writer.write(data)


class IOBuf:
    """Bounded buffer of pending bytes, filled from a reader or drained to a writer.

    Readers may be sockets (``recv_into``) or binary files (``readinto``);
    writers may be sockets (``send``) or binary files (``write``).
    """

    def __init__(self) -> None:
        self._buf = bytearray()

    def empty(self) -> bool:
        """True if the buffer holds no data."""
        return not self._buf

    def size(self) -> int:
        """Number of bytes held."""
        return len(self._buf)

    def data(self) -> bytes:
        """The bytes held."""
        return bytes(self._buf)

    def consume(self, length: int) -> None:
        """Discard ``length`` bytes from the front."""
        if length < 0 or length > len(self._buf):
            raise ValueError("cannot consume more data than is contained")
        del self._buf[:length]

    def flush(self) -> None:
        """Discard everything."""
        self._buf.clear()

    def refill(self, reader: Any) -> None:
        """Read as much as fits from ``reader``.

        Raises NotReady if the reader would block, PortDisconnected at end of
        stream and RecvIOError on other failures.
        """
        room = bytearray(IOBUF_SIZE - len(self._buf))
        try:
            count = _read_into(reader, room)
        except BlockingIOError as exc:
            raise NotReady() from exc
        except OSError as exc:
            raise RecvIOError(exc) from exc
        if count is None:
            raise NotReady()
        if count == 0:
            raise PortDisconnected()
        self._buf += room[:count]

    def add_data(self, data: bytes | bytearray | memoryview) -> int:
        """Append as much of ``data`` as fits; return how many bytes were appended."""
        data = bytes(data)
        count = min(IOBUF_SIZE - len(self._buf), len(data))
        self._buf += data[:count]
        return count

    def drain(self, writer: Any) -> None:
        """Write as much as possible to ``writer``.

        Raises MustDrain if data remains and SendIOError on failures.
        """
        if not self._buf:
            return
        try:
            written = _write(writer, bytes(self._buf))
        except BlockingIOError as exc:
            raise MustDrain() from exc
        except OSError as exc:
            raise SendIOError(exc) from exc
        if written is None:
            raise MustDrain()
        self.consume(written)
        if self._buf:
            raise MustDrain()