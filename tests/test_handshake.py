import io

import pytest

from wshake.errors import ProtocolError, ProtocolErrorKind
from wshake.handshake import (
    Continue,
    Done,
    HandshakeInterrupted,
    MidHandshake,
    derive_accept_key,
)
from wshake.headers import HeaderMap
from wshake.machine import DoneReading, HandshakeMachine


class Duplex:
    def __init__(self, pieces):
        self.pieces = list(pieces)
        self.outgoing = bytearray()
        self.flushes = 0

    def read(self, size):
        if not self.pieces:
            return b""
        piece = self.pieces.pop(0)
        if isinstance(piece, Exception):
            raise piece
        return piece

    def write(self, data):
        self.outgoing += data
        return len(data)

    def flush(self):
        self.flushes += 1


class AckRole:
    incoming_parser = staticmethod(HeaderMap.try_parse)

    def __init__(self):
        self.received = None

    def stage_finished(self, finish):
        if isinstance(finish, DoneReading):
            self.received = finish.result
            return Continue(HandshakeMachine.start_write(finish.stream, b"ACK\r\n"))
        return Done(finish.stream)


class RejectingRole:
    incoming_parser = staticmethod(HeaderMap.try_parse)

    def stage_finished(self, finish):
        raise ProtocolError(ProtocolErrorKind.JUNK_AFTER_REQUEST)


def test_key_conversion():
    assert derive_accept_key(b"dGhlIHNhbXBsZSBub25jZQ==") == "s3pPLMBiTxaQ9kYGzzhZRbK+xOo="


def test_key_conversion_accepts_text():
    assert derive_accept_key("dGhlIHNhbXBsZSBub25jZQ==") == derive_accept_key(
        b"dGhlIHNhbXBsZSBub25jZQ=="
    )


def test_full_handshake_reads_then_writes():
    stream = Duplex([b"Host: foo.com\r\n\r\n"])
    role = AckRole()
    result = MidHandshake(role, HandshakeMachine.start_read(stream)).handshake()
    assert result is stream
    assert role.received.get("Host") == "foo.com"
    assert bytes(stream.outgoing) == b"ACK\r\n"
    assert stream.flushes == 1


def test_interrupted_handshake_resumes():
    stream = Duplex([BlockingIOError(), b"Host: foo.com\r\n\r\n"])
    mid = MidHandshake(AckRole(), HandshakeMachine.start_read(stream))
    with pytest.raises(HandshakeInterrupted) as info:
        mid.handshake()
    assert info.value.mid_handshake is mid
    assert str(info.value) == "Interrupted handshake (WouldBlock)"
    assert info.value.mid_handshake.handshake() is stream
    assert bytes(stream.outgoing) == b"ACK\r\n"


def test_role_failure_propagates():
    mid = MidHandshake(RejectingRole(), HandshakeMachine.start_read(io.BytesIO(b"A: b\r\n\r\n")))
    with pytest.raises(ProtocolError) as info:
        mid.handshake()
    assert info.value.kind is ProtocolErrorKind.JUNK_AFTER_REQUEST


def test_stream_ending_early_fails():
    mid = MidHandshake(AckRole(), HandshakeMachine.start_read(io.BytesIO(b"")))
    with pytest.raises(ProtocolError) as info:
        mid.handshake()
    assert info.value.kind is ProtocolErrorKind.HANDSHAKE_INCOMPLETE