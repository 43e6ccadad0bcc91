"""Server side of the WebSocket opening handshake."""

from __future__ import annotations

import dataclasses
import string
from typing import Any, Callable

from wshake.errors import (
    HttpError,
    HttpFormatError,
    ProtocolError,
    ProtocolErrorKind,
    Utf8Error,
)
from wshake.handshake import Continue, Done, MidHandshake, derive_accept_key
from wshake.headers import HeaderMap, Request, Response, parse_header_lines
from wshake.machine import DoneReading, DoneWriting, HandshakeMachine

Callback = Callable[[Request, Response], Response]
"""Inspects the request and returns the response to send.

To reject the connection, raise :class:`HttpError` carrying an unsuccessful response.
"""

_METHOD_CHARS = frozenset((string.ascii_letters + string.digits + "!#$%&'*+-.^_`|~").encode())
_HTTP_VERSIONS = {b"HTTP/1.0": 0, b"HTTP/1.1": 1}


def _httparse_error(detail: str) -> ProtocolError:
    return ProtocolError(ProtocolErrorKind.HTTPARSE_ERROR, detail)


def _is_uri_byte(code: int) -> bool:
    return 0x21 <= code <= 0x7E or code >= 0x80


def _split_request_line(line: bytes) -> tuple[str, bytes, int]:
    parts = line.split(b" ")
    if len(parts) != 3:
        raise _httparse_error("invalid token")
    method, path, version = parts
    if not method or any(code not in _METHOD_CHARS for code in method):
        raise _httparse_error("invalid token")
    if not path or not all(_is_uri_byte(code) for code in path):
        raise _httparse_error("invalid token")
    if version not in _HTTP_VERSIONS:
        raise _httparse_error("invalid HTTP version")
    return method.decode("ascii"), path, _HTTP_VERSIONS[version]


def _parse_uri(path: bytes) -> str:
    if any(code >= 0x80 for code in path):
        raise HttpFormatError("invalid uri character")
    return path.decode("ascii")


def parse_request(data: bytes) -> tuple[int, Request] | None:
    """Parse a request head; None while it is incomplete.

    Returns the number of bytes taken and the request.
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
    method, path, minor_version = _split_request_line(line)
    parsed = parse_header_lines(data[end + 1:])
    if parsed is None:
        return None
    size, pairs = parsed

    if method != "GET":
        raise ProtocolError(ProtocolErrorKind.WRONG_HTTP_METHOD)
    if minor_version < 1:
        raise ProtocolError(ProtocolErrorKind.WRONG_HTTP_VERSION)
    headers = HeaderMap(pairs)
    request = Request(uri=_parse_uri(path), method="GET", version="HTTP/1.1", headers=headers)
    return end + 1 + size, request


def _version_number(version: str) -> tuple[int, int]:
    prefix, _, number = version.partition("/")
    major, _, minor = number.partition(".")
    if prefix != "HTTP" or not major.isdigit() or (minor and not minor.isdigit()):
        raise HttpFormatError(f"invalid HTTP version {version!r}")
    return int(major), int(minor or 0)


def _visible_ascii(value: str | None) -> str | None:
    """The value if it is a valid header string, otherwise None."""
    if value is None:
        return None
    if all(0x20 <= ord(ch) < 0x7F or ch == "\t" for ch in value):
        return value
    return None


def _response_headers(request: Request) -> HeaderMap:
    if request.method != "GET":
        raise ProtocolError(ProtocolErrorKind.WRONG_HTTP_METHOD)
    if _version_number(request.version) < (1, 1):
        raise ProtocolError(ProtocolErrorKind.WRONG_HTTP_VERSION)

    headers = request.headers
    connection = _visible_ascii(headers.get("Connection"))
    if connection is None or not any(
        part.lower() == "upgrade" for part in connection.replace(",", " ").split(" ")
    ):
        raise ProtocolError(ProtocolErrorKind.MISSING_CONNECTION_UPGRADE_HEADER)

    upgrade = _visible_ascii(headers.get("Upgrade"))
    if upgrade is None or upgrade.lower() != "websocket":
        raise ProtocolError(ProtocolErrorKind.MISSING_UPGRADE_WEBSOCKET_HEADER)

    if headers.get("Sec-WebSocket-Version") != "13":
        raise ProtocolError(ProtocolErrorKind.MISSING_SEC_WEBSOCKET_VERSION_HEADER)

    key = headers.get("Sec-WebSocket-Key")
    if key is None:
        raise ProtocolError(ProtocolErrorKind.MISSING_SEC_WEBSOCKET_KEY)

    return HeaderMap(
        [
            ("Connection", "Upgrade"),
            ("Upgrade", "websocket"),
            ("Sec-WebSocket-Accept", derive_accept_key(key.encode("latin-1"))),
        ]
    )


def create_response(request: Request) -> Response:
    """Create the 101 response that accepts ``request``."""
    return create_response_with_body(request, lambda: None)


def create_response_with_body(request: Request, generate_body: Callable[[], Any]) -> Response:
    """Create the 101 response for ``request`` with the body ``generate_body()`` returns."""
    headers = _response_headers(request)
    return Response(status=101, version=request.version, headers=headers, body=generate_body())


def _format_head(response: Response) -> bytes:
    lines = [f"{response.version} {response.status_text}"]
    for name, value in response.headers:
        text = _visible_ascii(value)
        if text is None:
            raise Utf8Error()
        lines.append(f"{name}: {text}")
    return ("\r\n".join(lines) + "\r\n\r\n").encode("ascii")


def write_response(stream: Any, response: Response) -> None:
    """Write the status line and headers of ``response`` to ``stream``."""
    stream.write(_format_head(response))


def _body_bytes(body: Any) -> bytes | None:
    if body is None:
        return None
    if isinstance(body, str):
        return body.encode("utf-8")
    return bytes(body)


def no_callback(request: Request, response: Response) -> Response:
    """Accept every request with the default response."""
    return response


class ServerHandshake:
    """The server role of the opening handshake."""

    incoming_parser = staticmethod(parse_request)

    def __init__(self, callback: Callback | None = None) -> None:
        self._callback = callback
        self._error_response: Response | None = None

    @classmethod
    def start(cls, stream: Any, callback: Callback | None = None) -> MidHandshake:
        """Begin a server handshake on ``stream``.

        ``callback`` sees the request and the prepared response; it may add
        headers or reject the connection by raising HttpError.
        """
        return MidHandshake(cls(callback), HandshakeMachine.start_read(stream))

    def stage_finished(self, finish: DoneReading | DoneWriting) -> Continue | Done:
        """Act on a finished stage: answer the request, or finish after the answer is sent."""
        if isinstance(finish, DoneReading):
            return self._answer(finish)
        if self._error_response is not None:
            error, self._error_response = self._error_response, None
            raise HttpError(dataclasses.replace(error, body=_body_bytes(error.body)))
        return Done(finish.stream)

    def _answer(self, finish: DoneReading) -> Continue:
        if finish.tail:
            raise ProtocolError(ProtocolErrorKind.JUNK_AFTER_REQUEST)

        request = finish.result
        response = create_response(request)
        callback, self._callback = self._callback, None
        if callback is not None:
            try:
                response = callback(request, response)
            except HttpError as rejection:
                return self._reject(finish.stream, rejection.response)

        return Continue(HandshakeMachine.start_write(finish.stream, _format_head(response)))

    def _reject(self, stream: Any, response: Response) -> Continue:
        if response.is_success:
            raise ProtocolError(ProtocolErrorKind.CUSTOM_RESPONSE_SUCCESSFUL)
        self._error_response = response
        output = _format_head(response) + (_body_bytes(response.body) or b"")
        return Continue(HandshakeMachine.start_write(stream, output))