"""A state machine that performs one stage of an HTTP handshake: writing or reading."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Tuple, Union

from wshake.buffer import ReadBuffer
from wshake.errors import AttackAttemptError, ProtocolError, ProtocolErrorKind

MAX_BYTES = 65536
"""Largest total size of an incoming handshake."""
MAX_PACKETS = 512
"""Largest number of reads an incoming handshake may take."""
MIN_PACKET_SIZE = 128
"""Smallest average read size tolerated once the check threshold is passed."""
MIN_PACKET_CHECK_THRESHOLD = 64
"""Number of reads after which the average read size is checked."""

Parser = Callable[[bytes], Optional[Tuple[int, Any]]]
"""Parses a complete object from the front of the data, or returns None if more is needed."""

_WOULD_BLOCK = (BlockingIOError, InterruptedError)


@dataclass
class AttackCheck:
    """Counters that reject incoming handshakes that are too large or trickle in."""

    number_of_packets: int = 0
    number_of_bytes: int = 0

    def check_incoming_packet_size(self, size: int) -> None:
        """Account for one successful read of ``size`` bytes; raise if it looks like an attack."""
        self.number_of_packets += 1
        self.number_of_bytes += size

        if self.number_of_bytes > MAX_BYTES:
            raise AttackAttemptError()
        if self.number_of_packets > MAX_PACKETS:
            raise AttackAttemptError()
        if (
            self.number_of_packets > MIN_PACKET_CHECK_THRESHOLD
            and self.number_of_packets * MIN_PACKET_SIZE > self.number_of_bytes
        ):
            raise AttackAttemptError()


@dataclass(frozen=True)
class DoneReading:
    """A complete object was read; ``tail`` holds the bytes that followed it."""

    result: Any
    stream: Any
    tail: bytes


@dataclass(frozen=True)
class DoneWriting:
    """All data was written and flushed."""

    stream: Any


StageResult = Union[DoneReading, DoneWriting]


@dataclass(frozen=True)
class WouldBlock:
    """The round could not progress because the stream would block."""

    machine: "HandshakeMachine"


@dataclass(frozen=True)
class Incomplete:
    """The round made progress but the stage is not finished."""

    machine: "HandshakeMachine"


@dataclass(frozen=True)
class StageFinished:
    """The stage is complete."""

    stage: StageResult


RoundResult = Union[WouldBlock, Incomplete, StageFinished]


@dataclass
class _Reading:
    buffer: ReadBuffer = field(default_factory=ReadBuffer)
    attack_check: AttackCheck = field(default_factory=AttackCheck)


@dataclass
class _Writing:
    data: bytes
    position: int = 0


class _Flushing:
    pass


_FLUSHING = _Flushing()


class HandshakeMachine:
    """Drives reading or writing of a handshake stage over a (possibly non-blocking) stream."""

    def __init__(self, stream: Any, state: Union[_Reading, _Writing, _Flushing]) -> None:
        self._stream = stream
        self._state = state

    @classmethod
    def start_read(cls, stream: Any) -> HandshakeMachine:
        """Start reading data from the peer."""
        return cls(stream, _Reading())

    @classmethod
    def start_write(cls, stream: Any, data: bytes) -> HandshakeMachine:
        """Start writing ``data`` to the peer."""
        data = bytes(data)
        return cls(stream, _Writing(data) if data else _FLUSHING)

    @property
    def stream(self) -> Any:
        """The underlying stream."""
        return self._stream

    def single_round(self, parser: Parser) -> RoundResult:
        """Perform one read, write or flush and report how far the stage got."""
        state = self._state
        if isinstance(state, _Reading):
            return self._read_round(state, parser)
        if isinstance(state, _Writing):
            return self._write_round(state)
        return self._flush_round()

    def _read_round(self, state: _Reading, parser: Parser) -> RoundResult:
        try:
            count = state.buffer.read_from(self._stream)
        except _WOULD_BLOCK:
            return WouldBlock(self)
        if count == 0:
            raise ProtocolError(ProtocolErrorKind.HANDSHAKE_INCOMPLETE)
        state.attack_check.check_incoming_packet_size(count)
        parsed = parser(state.buffer.chunk())
        if parsed is None:
            return Incomplete(self)
        size, obj = parsed
        state.buffer.advance(size)
        return StageFinished(
            DoneReading(result=obj, stream=self._stream, tail=state.buffer.into_bytes())
        )

    def _write_round(self, state: _Writing) -> RoundResult:
        try:
            written = self._send(state.data[state.position:])
        except _WOULD_BLOCK as exc:
            state.position += getattr(exc, "characters_written", 0)
            self._finish_writing_if_done(state)
            return WouldBlock(self)
        if written is None:
            return WouldBlock(self)
        if written <= 0:
            raise OSError("failed to write the whole handshake")
        state.position += written
        self._finish_writing_if_done(state)
        return Incomplete(self)

    def _finish_writing_if_done(self, state: _Writing) -> None:
        if state.position >= len(state.data):
            self._state = _FLUSHING

    def _send(self, data: bytes) -> Optional[int]:
        write = getattr(self._stream, "write", None)
        return write(data) if write is not None else self._stream.send(data)

    def _flush_round(self) -> RoundResult:
        flush = getattr(self._stream, "flush", None)
        if flush is not None:
            try:
                flush()
            except _WOULD_BLOCK:
                return WouldBlock(self)
        return StageFinished(DoneWriting(self._stream))

    def __repr__(self) -> str:
        return f"HandshakeMachine(state={type(self._state).__name__.lstrip('_')})"