"""Errors raised by the WebSocket handshake and protocol code."""

from __future__ import annotations

import enum
from typing import Any


class WebSocketError(Exception):
    """Base class of every error raised by this package."""


class ConnectionClosedError(WebSocketError):
    """The connection was closed normally; the socket is no longer usable."""

    def __init__(self) -> None:
        super().__init__("Connection closed normally")


class AlreadyClosedError(WebSocketError):
    """An attempt was made to use a connection that is already closed."""

    def __init__(self) -> None:
        super().__init__("Trying to work with closed connection")


class TlsError(WebSocketError):
    """A TLS layer failure."""

    def __init__(self, detail: Any) -> None:
        self.detail = detail
        super().__init__(f"TLS error: {detail}")


class CapacityErrorKind(enum.Enum):
    """The specific cause of a capacity error."""

    TOO_MANY_HEADERS = "Too many headers"
    MESSAGE_TOO_LONG = "Message too long: {size} > {max_size}"


class CapacityError(WebSocketError):
    """A size limit was exceeded while reading or writing."""

    def __init__(
        self,
        kind: CapacityErrorKind,
        size: int | None = None,
        max_size: int | None = None,
    ) -> None:
        if kind is CapacityErrorKind.MESSAGE_TOO_LONG and (size is None or max_size is None):
            raise ValueError("MESSAGE_TOO_LONG needs both size and max_size")
        self.kind = kind
        self.size = size
        self.max_size = max_size
        detail = kind.value.format(size=size, max_size=max_size)
        super().__init__(f"Space limit exceeded: {detail}")


class SubProtocolError(enum.Enum):
    """The specific cause of a subprotocol negotiation failure."""

    SERVER_SENT_SUB_PROTOCOL_NONE_REQUESTED = "Server sent a subprotocol but none was requested"
    INVALID_SUB_PROTOCOL = "Server sent an invalid subprotocol"
    NO_SUB_PROTOCOL = "Server sent no subprotocol"

    def __str__(self) -> str:
        return self.value


class ProtocolErrorKind(enum.Enum):
    """The specific cause of a protocol violation."""

    WRONG_HTTP_METHOD = "Unsupported HTTP method used - only GET is allowed"
    WRONG_HTTP_VERSION = "HTTP version must be 1.1 or higher"
    MISSING_CONNECTION_UPGRADE_HEADER = 'No "Connection: upgrade" header'
    MISSING_UPGRADE_WEBSOCKET_HEADER = 'No "Upgrade: websocket" header'
    MISSING_SEC_WEBSOCKET_VERSION_HEADER = 'No "Sec-WebSocket-Version: 13" header'
    MISSING_SEC_WEBSOCKET_KEY = 'No "Sec-WebSocket-Key" header'
    SEC_WEBSOCKET_ACCEPT_KEY_MISMATCH = 'Key mismatch in "Sec-WebSocket-Accept" header'
    SEC_WEBSOCKET_SUB_PROTOCOL_ERROR = "SubProtocol error: {detail}"
    JUNK_AFTER_REQUEST = "Junk after client request"
    CUSTOM_RESPONSE_SUCCESSFUL = "Custom response must not be successful"
    INVALID_HEADER = "Missing, duplicated or incorrect header {detail}"
    HANDSHAKE_INCOMPLETE = "Handshake not finished"
    HTTPARSE_ERROR = "httparse error: {detail}"
    SEND_AFTER_CLOSING = "Sending after closing is not allowed"
    RECEIVED_AFTER_CLOSING = "Remote sent after having closed"
    NON_ZERO_RESERVED_BITS = "Reserved bits are non-zero"
    UNMASKED_FRAME_FROM_CLIENT = "Received an unmasked frame from client"
    MASKED_FRAME_FROM_SERVER = "Received a masked frame from server"
    FRAGMENTED_CONTROL_FRAME = "Fragmented control frame"
    CONTROL_FRAME_TOO_BIG = "Control frame too big (payload must be 125 bytes or less)"
    UNKNOWN_CONTROL_FRAME_TYPE = "Unknown control frame type: {detail}"
    UNKNOWN_DATA_FRAME_TYPE = "Unknown data frame type: {detail}"
    UNEXPECTED_CONTINUE_FRAME = "Continue frame but nothing to continue"
    EXPECTED_FRAGMENT = "While waiting for more fragments received: {detail}"
    RESET_WITHOUT_CLOSING_HANDSHAKE = "Connection reset without closing handshake"
    INVALID_OPCODE = "Encountered invalid opcode: {detail}"
    INVALID_CLOSE_SEQUENCE = "Invalid close sequence"

    @property
    def needs_detail(self) -> bool:
        """Whether errors of this kind carry an extra value."""
        return "{detail}" in self.value


class ProtocolError(WebSocketError):
    """The peer or the caller violated the WebSocket protocol."""

    def __init__(self, kind: ProtocolErrorKind, detail: Any = None) -> None:
        if kind.needs_detail and detail is None:
            raise ValueError(f"{kind.name} needs a detail value")
        self.kind = kind
        self.detail = detail
        super().__init__(f"WebSocket protocol error: {kind.value.format(detail=detail)}")


class Utf8Error(WebSocketError):
    """Data that must be UTF-8 (or visible ASCII) was not."""

    def __init__(self) -> None:
        super().__init__("UTF-8 encoding error")


class AttackAttemptError(WebSocketError):
    """The peer behaved like an attacker (for example, a trickling handshake)."""

    def __init__(self) -> None:
        super().__init__("Attack attempt detected")


class UrlErrorKind(enum.Enum):
    """The specific cause of a URL error."""

    TLS_FEATURE_NOT_ENABLED = "TLS support not compiled in"
    NO_HOST_NAME = "No host name in the URL"
    UNABLE_TO_CONNECT = "Unable to connect to {detail}"
    UNSUPPORTED_URL_SCHEME = "URL scheme not supported"
    EMPTY_HOST_NAME = "URL contains empty host name"
    NO_PATH_OR_QUERY = "No path/query in URL"

    @property
    def needs_detail(self) -> bool:
        """Whether errors of this kind carry an extra value."""
        return "{detail}" in self.value


class UrlError(WebSocketError):
    """The URL given cannot be used for a WebSocket connection."""

    def __init__(self, kind: UrlErrorKind, detail: Any = None) -> None:
        if kind.needs_detail and detail is None:
            raise ValueError(f"{kind.name} needs a detail value")
        self.kind = kind
        self.detail = detail
        super().__init__(f"URL error: {kind.value.format(detail=detail)}")


class HttpError(WebSocketError):
    """The peer answered with an HTTP response instead of upgrading."""

    def __init__(self, response: Any) -> None:
        self.response = response
        super().__init__(f"HTTP error: {response.status_text}")


class HttpFormatError(WebSocketError):
    """An HTTP element (header name, value, status, URI) was malformed."""

    def __init__(self, detail: Any) -> None:
        self.detail = detail
        super().__init__(f"HTTP format error: {detail}")