import io

import pytest

from wshake.buffer import READ_BUFFER_CHUNK_SIZE, ReadBuffer


class _NotReady:
    def read(self, size):
        return None


class _Socketish:
    def __init__(self, data):
        self._data = data

    def recv(self, size):
        out, self._data = self._data[:size], self._data[size:]
        return out


def test_simple_reading():
    source = io.BytesIO(b"Hello World!")
    buffer = ReadBuffer(chunk_size=4096)
    size = buffer.read_from(source)
    assert size == 12
    assert buffer.chunk() == b"Hello World!"


def test_reading_in_chunks():
    source = io.BytesIO(b"Hello World!")
    buf = ReadBuffer(chunk_size=4)

    assert buf.read_from(source) == 4
    assert buf.chunk() == b"Hell"

    buf.advance(2)
    assert buf.chunk() == b"ll"

    assert buf.read_from(source) == 4
    assert buf.chunk() == b"llo Wo"

    assert buf.read_from(source) == 4
    assert buf.chunk() == b"llo World!"


def test_default_chunk_size():
    assert ReadBuffer().chunk_size == READ_BUFFER_CHUNK_SIZE == 4096


def test_end_of_stream_reads_zero():
    buf = ReadBuffer()
    assert buf.read_from(io.BytesIO(b"")) == 0
    assert buf.remaining() == 0


def test_partially_read_data_comes_first():
    buf = ReadBuffer(b"abc", chunk_size=8)
    buf.read_from(io.BytesIO(b"def"))
    assert buf.chunk() == b"abcdef"
    assert len(buf) == 6


def test_into_bytes_drops_consumed_part():
    buf = ReadBuffer(b"Hello World!")
    buf.advance(6)
    assert buf.into_bytes() == b"World!"
    assert buf.remaining() == 0
    assert buf.chunk() == b""


def test_advance_past_end_is_refused():
    buf = ReadBuffer(b"ab")
    with pytest.raises(ValueError):
        buf.advance(3)
    with pytest.raises(ValueError):
        buf.advance(-1)
    assert buf.chunk() == b"ab"


def test_would_block_stream():
    buf = ReadBuffer(b"x")
    with pytest.raises(BlockingIOError):
        buf.read_from(_NotReady())
    assert buf.chunk() == b"x"


def test_reads_from_socket_like_object():
    buf = ReadBuffer(chunk_size=3)
    sock = _Socketish(b"abcdef")
    assert buf.read_from(sock) == 3
    assert buf.read_from(sock) == 3
    assert buf.chunk() == b"abcdef"


def test_invalid_chunk_size():
    with pytest.raises(ValueError):
        ReadBuffer(chunk_size=0)