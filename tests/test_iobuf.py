import io

import pytest

from tiowire.iobuf import (
    IOBUF_SIZE,
    IOBuf,
    MustDrain,
    NotReady,
    PortDisconnected,
    RecvIOError,
    SendIOError,
)


class BlockingReader:
    def readinto(self, buf):
        raise BlockingIOError()


class NoneReader:
    def readinto(self, buf):
        return None


class FailingReader:
    def __init__(self, error):
        self.error = error

    def readinto(self, buf):
        raise self.error


class PartialWriter:
    def __init__(self, limit):
        self.limit = limit
        self.written = bytearray()

    def write(self, data):
        chunk = data[: self.limit]
        self.written += chunk
        return len(chunk)


class BlockingWriter:
    def write(self, data):
        raise BlockingIOError()


class FailingWriter:
    def __init__(self, error):
        self.error = error

    def write(self, data):
        raise self.error


def test_new_buffer_is_empty():
    buf = IOBuf()
    assert buf.empty()
    assert buf.size() == 0
    assert buf.data() == b""


def test_add_data_and_consume():
    buf = IOBuf()
    assert buf.add_data(b"hello world") == len(b"hello world")
    assert buf.data() == b"hello world"
    buf.consume(6)
    assert buf.data() == b"world"
    assert buf.size() == len(b"world")


def test_consume_too_much_raises():
    buf = IOBuf()
    buf.add_data(b"abc")
    with pytest.raises(ValueError):
        buf.consume(4)
    assert buf.data() == b"abc"


def test_add_data_stops_at_capacity():
    buf = IOBuf()
    data = bytes(range(256)) * (IOBUF_SIZE // 256 + 1)
    appended = buf.add_data(data)
    assert appended == IOBUF_SIZE
    assert buf.data() == data[:IOBUF_SIZE]
    assert buf.add_data(b"more") == 0


def test_consumed_space_is_reused():
    buf = IOBuf()
    buf.add_data(bytes(IOBUF_SIZE))
    buf.consume(10)
    assert buf.add_data(b"x" * 20) == 10
    assert buf.size() == IOBUF_SIZE


def test_flush_discards_everything():
    buf = IOBuf()
    buf.add_data(b"data")
    buf.flush()
    assert buf.empty()


def test_refill_reads_available_data():
    buf = IOBuf()
    buf.add_data(b"ab")
    buf.refill(io.BytesIO(b"cdef"))
    assert buf.data() == b"abcdef"


def test_refill_at_end_of_stream_is_disconnect():
    buf = IOBuf()
    with pytest.raises(PortDisconnected):
        buf.refill(io.BytesIO(b""))


@pytest.mark.parametrize("reader", [BlockingReader(), NoneReader()])
def test_refill_would_block_is_not_ready(reader):
    buf = IOBuf()
    with pytest.raises(NotReady):
        buf.refill(reader)
    assert buf.empty()


def test_refill_io_failure():
    error = OSError("broken")
    with pytest.raises(RecvIOError) as exc_info:
        IOBuf().refill(FailingReader(error))
    assert exc_info.value.error is error


def test_refill_never_exceeds_capacity():
    buf = IOBuf()
    buf.refill(io.BytesIO(bytes(IOBUF_SIZE * 2)))
    assert buf.size() == IOBUF_SIZE


def test_drain_writes_everything():
    buf = IOBuf()
    buf.add_data(b"payload")
    out = io.BytesIO()
    buf.drain(out)
    assert out.getvalue() == b"payload"
    assert buf.empty()


def test_drain_empty_buffer_writes_nothing():
    out = io.BytesIO()
    IOBuf().drain(out)
    assert out.getvalue() == b""


def test_partial_drain_must_drain_again():
    buf = IOBuf()
    buf.add_data(b"abcdefgh")
    writer = PartialWriter(3)
    with pytest.raises(MustDrain):
        buf.drain(writer)
    assert bytes(writer.written) == b"abcdefgh"[:3]
    assert buf.data() == b"abcdefgh"[3:]
    writer.limit = 100
    buf.drain(writer)
    assert bytes(writer.written) == b"abcdefgh"
    assert buf.empty()


def test_drain_would_block():
    buf = IOBuf()
    buf.add_data(b"abc")
    with pytest.raises(MustDrain):
        buf.drain(BlockingWriter())
    assert buf.data() == b"abc"


def test_drain_io_failure():
    buf = IOBuf()
    buf.add_data(b"abc")
    error = OSError("gone")
    with pytest.raises(SendIOError) as exc_info:
        buf.drain(FailingWriter(error))
    assert exc_info.value.error is error