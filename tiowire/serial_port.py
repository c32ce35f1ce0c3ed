"""Port exchanging TIO packets over a serial line.

Each packet is followed by its CRC32 and framed with SLIP. Lines of plain
ASCII text arriving between packets are reported as ``TextReceived``.
"""

from __future__ import annotations

import errno
import re
import sys
import time
import zlib
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import serial

from .errors import (
    CRC32Mismatch,
    NeedMore,
    PacketTooBig,
    PacketTooSmall,
    ProtocolError,
    SerializeError,
    TextReceived,
)
from .header import MAX_TOTAL_SIZE, PACKET_HEADER_SIZE
from .iobuf import (
    IOBuf,
    MustDrain,
    NotReady,
    PortDisconnected,
    ProtocolRecvError,
    RecvIOError,
    SendIOError,
    SerializationFailed,
    TxFull,
)
from .packet import Packet

DEFAULT_RATE = 115200
HOLDOFF_TIME = 0.05
STALE_TIME = 0.2
MAX_SEND_INTERVAL = 0.1

SLIP_END = 0xC0
SLIP_ESC = 0xDB
SLIP_ESC_END = 0xDC
SLIP_ESC_ESC = 0xDD

_CRC_SIZE = 4
_MAX_FRAME = MAX_TOTAL_SIZE + _CRC_SIZE + 1
_RATE = re.compile(r"\+?[0-9]+")
_TEXT_BREAKS = frozenset(b"\n\r")


@dataclass(frozen=True)
class RateInfo:
    """The rate a device starts at, and the rate to negotiate with it."""

    default_bps: int
    target_bps: int


class RateError(Exception):
    """The data rate of the port could not be changed."""


class InvalidRate(RateError):
    """The requested data rate is not supported."""


def _parse_rate(token: str) -> int:
    if not _RATE.fullmatch(token) or int(token) > 0xFFFFFFFF:
        raise ValueError(f"invalid data rate: {token!r}")
    return int(token)


def parse_serial_url(url: str) -> tuple[str, int, int]:
    """Split ``port[:target_rate[:default_rate]]`` into its parts.

    Both rates default to 115200.
    """
    tokens = url.split(":")
    if len(tokens) > 3:
        raise ValueError(f"invalid serial port address: {url!r}")
    port_name = tokens[0]
    target = _parse_rate(tokens[1]) if len(tokens) > 1 else DEFAULT_RATE
    default = _parse_rate(tokens[2]) if len(tokens) > 2 else DEFAULT_RATE
    return port_name, target, default


def slip_encode(raw: bytes | bytearray | memoryview) -> bytes:
    """Append the CRC32 to an encoded packet and frame it with SLIP."""
    raw = bytes(raw)
    body = raw + zlib.crc32(raw).to_bytes(_CRC_SIZE, "little")
    escaped = body.replace(bytes([SLIP_ESC]), bytes([SLIP_ESC, SLIP_ESC_ESC])).replace(
        bytes([SLIP_END]), bytes([SLIP_ESC, SLIP_ESC_END])
    )
    return bytes([SLIP_END]) + escaped + bytes([SLIP_END])


def _is_text(byte: int) -> bool:
    return 0x21 <= byte <= 0x7E or byte in (0x20, 0x09)


class _NonBlockingSerial:
    """Gives a non-blocking serial object the reader and writer shape IOBuf expects."""

    def __init__(self, device: Any) -> None:
        self._device = device

    def readinto(self, buffer: bytearray) -> int | None:
        data = self._device.read(len(buffer))
        if not data:
            return None
        buffer[: len(data)] = data
        return len(data)

    def write(self, data: bytes) -> int | None:
        try:
            return self._device.write(data)
        except serial.SerialTimeoutException:
            return None


class SerialPort:
    """Non-blocking packet port over a serial device."""

    def __init__(
        self,
        device: Any,
        rates: RateInfo,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._device = device
        self._io = _NonBlockingSerial(device)
        self._rates = rates
        self._clock = clock
        self._rxbuf = IOBuf()
        self._txbuf = IOBuf()
        self._startup_time = clock()
        self._last_rx = self._startup_time
        self._first_rx = True

    @classmethod
    def open(cls, url: str) -> SerialPort:
        """Open the port named in ``port[:target_rate[:default_rate]]`` at the default rate."""
        port_name, target, default = parse_serial_url(url)
        device = serial.Serial(port_name, baudrate=default, timeout=0, write_timeout=0)
        return cls(device, RateInfo(default_bps=default, target_bps=target))

    def _recv_buffered(self) -> Packet:
        data = self._rxbuf.data()
        pkt = bytearray()
        escaped = False
        text = True
        consume_to = 0
        for offset, byte in enumerate(data):
            if len(pkt) >= _MAX_FRAME:
                self._rxbuf.consume(offset)
                raise ProtocolRecvError(PacketTooBig(pkt))
            if text and byte in _TEXT_BREAKS:
                if pkt:
                    self._rxbuf.consume(offset + 1)
                    raise ProtocolRecvError(
                        TextReceived(pkt.decode("utf-8", errors="replace"))
                    )
                consume_to = offset + 1
            elif byte == SLIP_END:
                self._rxbuf.consume(offset + 1)
                return self._decode_frame(bytes(pkt))
            else:
                if not _is_text(byte):
                    text = False
                if escaped:
                    pkt.append(SLIP_END if byte == SLIP_ESC_END else SLIP_ESC)
                    escaped = False
                elif byte == SLIP_ESC:
                    escaped = True
                else:
                    pkt.append(byte)
        self._rxbuf.consume(consume_to)
        raise NotReady()

    @staticmethod
    def _decode_frame(pkt: bytes) -> Packet:
        if len(pkt) < PACKET_HEADER_SIZE + _CRC_SIZE:
            raise ProtocolRecvError(PacketTooSmall(pkt))
        body, crc = pkt[:-_CRC_SIZE], pkt[-_CRC_SIZE:]
        if int.from_bytes(crc, "little") != zlib.crc32(body):
            raise ProtocolRecvError(CRC32Mismatch(pkt))
        try:
            packet, size = Packet.deserialize(body)
        except NeedMore as exc:
            raise ProtocolRecvError(PacketTooSmall(pkt)) from exc
        except ProtocolError as exc:
            raise ProtocolRecvError(exc) from exc
        if size != len(body):
            raise RecvIOError(OSError(errno.EINVAL, "frame holds data after the packet"))
        return packet

    def recv(self) -> Packet:
        """Return the next packet, reading from the device if needed.

        Raises NotReady if no complete packet is available yet.
        """
        try:
            return self._recv_buffered()
        except NotReady:
            pass
        now = self._clock()
        # Discard a stale partial frame, e.g. left by a device reset.
        if now - self._last_rx > STALE_TIME:
            self._rxbuf.flush()
        try:
            self._rxbuf.refill(self._io)
        except RecvIOError as exc:
            if sys.platform == "darwin" and exc.error.errno == errno.ENXIO:
                raise PortDisconnected() from exc
            raise
        # The very first data is often stale or corrupt; drop it if it
        # arrives during the startup holdoff.
        if self._first_rx and not self._rxbuf.empty():
            self._first_rx = False
            if self.startup_holdoff():
                self._rxbuf.flush()
                raise NotReady()
        self._last_rx = now
        return self._recv_buffered()

    def _buffer(self, data: bytes) -> None:
        if self._txbuf.add_data(data) != len(data):
            raise BufferError("outgoing buffer cannot hold a whole frame")

    def send(self, packet: Packet) -> None:
        """Send a framed packet whole, or buffer the rest and raise MustDrain."""
        if self.has_data_to_drain():
            raise TxFull()
        try:
            raw = packet.serialize()
        except SerializeError as exc:
            raise SerializationFailed(str(exc)) from exc
        encoded = slip_encode(raw)
        try:
            size = self._device.write(encoded)
        except serial.SerialTimeoutException as exc:
            self._buffer(encoded)
            raise MustDrain() from exc
        except OSError as exc:
            raise SendIOError(exc) from exc
        if size is None:
            self._buffer(encoded)
            raise MustDrain()
        if size != len(encoded):
            self._buffer(encoded[size:])
            raise MustDrain()

    def drain(self) -> None:
        """Send buffered outgoing data; raise MustDrain if some remains."""
        self._txbuf.drain(self._io)

    def has_data_to_drain(self) -> bool:
        return not self._txbuf.empty()

    def set_rate(self, rate: int) -> None:
        """Change the data rate of the port."""
        try:
            self._device.baudrate = rate
        except ValueError as exc:
            raise InvalidRate(f"unsupported data rate: {rate}") from exc
        except OSError as exc:
            raise RateError(f"failed to set data rate {rate}: {exc}") from exc

    def rate_info(self) -> RateInfo:
        return self._rates

    def max_send_interval(self) -> float:
        """Longest time, in seconds, to go without sending to keep the link alive."""
        return MAX_SEND_INTERVAL

    def startup_holdoff(self) -> bool:
        """True while data received is still discarded after opening the port."""
        return self._clock() - self._startup_time < HOLDOFF_TIME

    def close(self) -> None:
        self._device.close()

    def __enter__(self) -> SerialPort:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()