"""A FIFO byte buffer that is filled from a stream and read like a cursor."""

from __future__ import annotations

import errno
from typing import Any

READ_BUFFER_CHUNK_SIZE = 4096


class ReadBuffer:
    """Bytes read from the network, consumed from the front."""

    def __init__(self, data: bytes = b"", chunk_size: int = READ_BUFFER_CHUNK_SIZE) -> None:
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        self._storage = bytearray(data)
        self._position = 0
        self._chunk_size = chunk_size

    @property
    def chunk_size(self) -> int:
        """The largest number of bytes taken from the stream in one read."""
        return self._chunk_size

    def read_from(self, stream: Any) -> int:
        """Read up to one chunk from ``stream`` and return the number of bytes read.

        Zero means end of stream.  A non-blocking stream that has nothing
        to give raises BlockingIOError.
        """
        self._clean_up()
        read = getattr(stream, "read", None)
        data = read(self._chunk_size) if read is not None else stream.recv(self._chunk_size)
        if data is None:
            raise BlockingIOError(errno.EAGAIN, "read would block")
        self._storage += data
        return len(data)

    def chunk(self) -> bytes:
        """The bytes not yet consumed."""
        return bytes(self._storage[self._position:])

    def remaining(self) -> int:
        """How many bytes have not yet been consumed."""
        return len(self._storage) - self._position

    def __len__(self) -> int:
        return self.remaining()

    def advance(self, count: int) -> None:
        """Consume ``count`` bytes from the front."""
        if count < 0 or count > self.remaining():
            raise ValueError(
                f"cannot advance by {count}: only {self.remaining()} bytes remaining"
            )
        self._position += count

    def into_bytes(self) -> bytes:
        """Take all unconsumed bytes out, leaving the buffer empty."""
        self._clean_up()
        data = bytes(self._storage)
        self._storage.clear()
        return data

    def _clean_up(self) -> None:
        del self._storage[: self._position]
        self._position = 0

    def __repr__(self) -> str:
        return f"ReadBuffer(remaining={self.remaining()}, chunk_size={self._chunk_size})"