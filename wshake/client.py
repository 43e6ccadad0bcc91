"""Client side of the WebSocket opening handshake."""

from __future__ import annotations

import base64
import dataclasses
import secrets
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlsplit

from wshake.errors import (
    HttpError,
    HttpFormatError,
    ProtocolError,
    ProtocolErrorKind,
    SubProtocolError,
    UrlError,
    UrlErrorKind,
    Utf8Error,
)
from wshake.handshake import Continue, Done, MidHandshake, derive_accept_key
from wshake.headers import HeaderMap, Request, Response, parse_header_lines
from wshake.machine import DoneReading, DoneWriting, HandshakeMachine

_KEY_HEADER = "Sec-WebSocket-Key"
_WEBSOCKET_HEADERS = ("Host", "Connection", "Upgrade", "Sec-WebSocket-Version", _KEY_HEADER)
_CANONICAL_NAMES = {
    "sec-websocket-protocol": "Sec-WebSocket-Protocol",
    "origin": "Origin",
}
_HTTP_VERSIONS = {b"HTTP/1.0": 0, b"HTTP/1.1": 1}


def _httparse_error(detail: str) -> ProtocolError:
    return ProtocolError(ProtocolErrorKind.HTTPARSE_ERROR, detail)


def _to_str(value: str) -> str:
    """The value as header text; raises Utf8Error unless it is visible ASCII."""
    if all(0x20 <= ord(ch) < 0x7F or ch == "\t" for ch in value):
        return value
    raise Utf8Error()


def _visible_or_none(value: str | None) -> str | None:
    if value is None:
        return None
    try:
        return _to_str(value)
    except Utf8Error:
        return None


def _version_tuple(version: str) -> tuple[int, int]:
    prefix, _, number = version.partition("/")
    major, _, minor = number.partition(".")
    if prefix != "HTTP" or not major.isdigit() or (minor and not minor.isdigit()):
        raise HttpFormatError(f"invalid HTTP version {version!r}")
    return int(major), int(minor or 0)


def _split_status_line(line: bytes) -> tuple[int, int]:
    version, _, rest = line.partition(b" ")
    if version not in _HTTP_VERSIONS:
        raise _httparse_error("invalid HTTP version")
    code = rest[:3]
    if len(code) != 3 or not code.isdigit():
        raise _httparse_error("invalid status")
    reason = rest[3:]
    if reason and not reason.startswith(b" "):
        raise _httparse_error("invalid status")
    if any((byte < 0x20 and byte != 0x09) or byte == 0x7F for byte in reason):
        raise _httparse_error("invalid status")
    return _HTTP_VERSIONS[version], int(code)


def parse_response(data: bytes) -> tuple[int, Response] | None:
    """Parse a response head; None while it is incomplete.

    Returns the number of bytes taken and the response.
    """
    data = bytes(data)
    start = 0
    while True:
        if data.startswith(b"\r\n", start):
            start += 2
        elif data.startswith(b"\n", start):
            start += 1
        else:
            break
    end = data.find(b"\n", start)
    if end < 0:
        return None
    line = data[start:end]
    if line.endswith(b"\r"):
        line = line[:-1]
    minor_version, code = _split_status_line(line)
    parsed = parse_header_lines(data[end + 1:])
    if parsed is None:
        return None
    size, pairs = parsed

    if minor_version < 1:
        raise ProtocolError(ProtocolErrorKind.WRONG_HTTP_VERSION)
    response = Response(status=code, version="HTTP/1.1", headers=HeaderMap(pairs))
    return end + 1 + size, response


def _request_target(request: Request) -> str:
    target = request.path_and_query
    if target is None and urlsplit(request.uri).netloc:
        target = "/"
    if target is None:
        raise UrlError(UrlErrorKind.NO_PATH_OR_QUERY)
    return target


def generate_request(request: Request) -> tuple[bytes, str]:
    """Check ``request`` and format it for the wire.

    Returns the request bytes and the ``Sec-WebSocket-Key`` it carries.
    """
    lines = [f"GET {_request_target(request)} {request.version}"]

    key = request.headers.get(_KEY_HEADER)
    if key is None:
        raise ProtocolError(ProtocolErrorKind.INVALID_HEADER, _KEY_HEADER.lower())
    key = _to_str(key)

    headers = HeaderMap(list(request.headers))
    for header in _WEBSOCKET_HEADERS:
        value = headers.remove(header)
        if value is None:
            raise ProtocolError(ProtocolErrorKind.INVALID_HEADER, header.lower())
        lines.append(f"{header}: {_to_str(value)}")

    for name, value in headers:
        lines.append(f"{_CANONICAL_NAMES.get(name, name)}: {_to_str(value)}")

    return ("\r\n".join(lines) + "\r\n\r\n").encode("ascii"), key


def _extract_subprotocols(request: Request) -> list[str] | None:
    value = request.headers.get("Sec-WebSocket-Protocol")
    if value is None:
        return None
    return [part.strip() for part in _to_str(value).split(",")]


def generate_key() -> str:
    """A random base64 value for the ``Sec-WebSocket-Key`` header (16 bytes decoded)."""
    return base64.b64encode(secrets.token_bytes(16)).decode("ascii")


@dataclass
class VerifyData:
    """What the server's response must match."""

    accept_key: str
    subprotocols: list[str] | None = None

    def verify_response(self, response: Response) -> Response:
        """Return ``response`` if it accepts the upgrade; raise otherwise."""
        if response.status != 101:
            raise HttpError(response)

        headers = response.headers
        upgrade = _visible_or_none(headers.get("Upgrade"))
        if upgrade is None or upgrade.lower() != "websocket":
            raise ProtocolError(ProtocolErrorKind.MISSING_UPGRADE_WEBSOCKET_HEADER)

        connection = _visible_or_none(headers.get("Connection"))
        if connection is None or connection.lower() != "upgrade":
            raise ProtocolError(ProtocolErrorKind.MISSING_CONNECTION_UPGRADE_HEADER)

        if headers.get("Sec-WebSocket-Accept") != self.accept_key:
            raise ProtocolError(ProtocolErrorKind.SEC_WEBSOCKET_ACCEPT_KEY_MISMATCH)

        returned = headers.get("Sec-WebSocket-Protocol")
        if returned is None and self.subprotocols is not None:
            raise ProtocolError(
                ProtocolErrorKind.SEC_WEBSOCKET_SUB_PROTOCOL_ERROR,
                SubProtocolError.NO_SUB_PROTOCOL,
            )
        if returned is not None and self.subprotocols is None:
            raise ProtocolError(
                ProtocolErrorKind.SEC_WEBSOCKET_SUB_PROTOCOL_ERROR,
                SubProtocolError.SERVER_SENT_SUB_PROTOCOL_NONE_REQUESTED,
            )
        if returned is not None and self.subprotocols is not None:
            if _to_str(returned) not in self.subprotocols:
                raise ProtocolError(
                    ProtocolErrorKind.SEC_WEBSOCKET_SUB_PROTOCOL_ERROR,
                    SubProtocolError.INVALID_SUB_PROTOCOL,
                )
        return response


class ClientHandshake:
    """The client role of the opening handshake.

    A finished handshake yields ``(stream, response, tail)``, where ``tail``
    holds any bytes the server sent after its response head.
    """

    incoming_parser = staticmethod(parse_response)

    def __init__(self, verify_data: VerifyData) -> None:
        self.verify_data = verify_data

    @classmethod
    def start(cls, stream: Any, request: Request) -> MidHandshake:
        """Check ``request`` and begin sending it on ``stream``."""
        if request.method != "GET":
            raise ProtocolError(ProtocolErrorKind.WRONG_HTTP_METHOD)
        if _version_tuple(request.version) < (1, 1):
            raise ProtocolError(ProtocolErrorKind.WRONG_HTTP_VERSION)
        if urlsplit(request.uri).scheme.lower() not in ("ws", "wss"):
            raise UrlError(UrlErrorKind.UNSUPPORTED_URL_SCHEME)

        subprotocols = _extract_subprotocols(request)
        data, key = generate_request(request)
        role = cls(VerifyData(accept_key=derive_accept_key(key), subprotocols=subprotocols))
        return MidHandshake(role, HandshakeMachine.start_write(stream, data))

    def stage_finished(self, finish: DoneReading | DoneWriting) -> Continue | Done:
        """Read the response once the request is sent; verify it once it is read."""
        if isinstance(finish, DoneWriting):
            return Continue(HandshakeMachine.start_read(finish.stream))
        try:
            response = self.verify_data.verify_response(finish.result)
        except HttpError as error:
            raise HttpError(dataclasses.replace(error.response, body=finish.tail)) from None
        return Done((finish.stream, response, finish.tail))