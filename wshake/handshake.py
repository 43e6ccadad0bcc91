"""Generic handshake driver and the accept-key derivation."""

from __future__ import annotations

import base64
import hashlib
from dataclasses import dataclass
from typing import Any

from wshake.machine import HandshakeMachine, Incomplete, WouldBlock

WS_GUID = b"258EAFA5-E914-47DA-95CA-C5AB0DC85B11"
"""The GUID appended to the client key before hashing."""


class HandshakeInterrupted(Exception):
    """The handshake cannot progress until the stream is ready; resume with ``mid_handshake``."""

    def __init__(self, mid_handshake: MidHandshake) -> None:
        self.mid_handshake = mid_handshake
        super().__init__("Interrupted handshake (WouldBlock)")


@dataclass(frozen=True)
class Continue:
    """A stage is done; go on with another machine."""

    machine: HandshakeMachine


@dataclass(frozen=True)
class Done:
    """The handshake is complete."""

    result: Any


@dataclass
class MidHandshake:
    """A handshake in progress.

    ``role`` provides ``incoming_parser`` and ``stage_finished(stage)``,
    the latter returning :class:`Continue` or :class:`Done`.
    """

    role: Any
    machine: HandshakeMachine

    def handshake(self) -> Any:
        """Run the handshake until it finishes or the stream would block.

        Raises HandshakeInterrupted when the stream would block; call
        ``handshake()`` on its ``mid_handshake`` to resume.
        """
        while True:
            outcome = self.machine.single_round(self.role.incoming_parser)
            if isinstance(outcome, WouldBlock):
                self.machine = outcome.machine
                raise HandshakeInterrupted(self)
            if isinstance(outcome, Incomplete):
                self.machine = outcome.machine
                continue
            processed = self.role.stage_finished(outcome.stage)
            if isinstance(processed, Done):
                return processed.result
            self.machine = processed.machine


def derive_accept_key(request_key: bytes | str) -> str:
    """Derive the ``Sec-WebSocket-Accept`` value from a ``Sec-WebSocket-Key`` value."""
    if isinstance(request_key, str):
        request_key = request_key.encode("latin-1")
    digest = hashlib.sha1(bytes(request_key) + WS_GUID).digest()
    return base64.b64encode(digest).decode("ascii")