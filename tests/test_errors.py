import pytest

from wshake.errors import (
    AlreadyClosedError,
    AttackAttemptError,
    CapacityError,
    CapacityErrorKind,
    ConnectionClosedError,
    HttpError,
    HttpFormatError,
    ProtocolError,
    ProtocolErrorKind,
    SubProtocolError,
    TlsError,
    UrlError,
    UrlErrorKind,
    Utf8Error,
    WebSocketError,
)


class _FakeResponse:
    status = 403
    status_text = "403 Forbidden"


def test_simple_error_messages():
    assert str(ConnectionClosedError()) == "Connection closed normally"
    assert str(AlreadyClosedError()) == "Trying to work with closed connection"
    assert str(Utf8Error()) == "UTF-8 encoding error"
    assert str(AttackAttemptError()) == "Attack attempt detected"


@pytest.mark.parametrize(
    "error",
    [
        ConnectionClosedError(),
        AlreadyClosedError(),
        Utf8Error(),
        AttackAttemptError(),
        TlsError("bad cert"),
        HttpFormatError("invalid HTTP header name"),
        ProtocolError(ProtocolErrorKind.JUNK_AFTER_REQUEST),
        UrlError(UrlErrorKind.NO_HOST_NAME),
        CapacityError(CapacityErrorKind.TOO_MANY_HEADERS),
    ],
)
def test_all_errors_are_catchable_as_base(error):
    with pytest.raises(WebSocketError) as info:
        raise error
    assert info.value is error


def test_protocol_error_without_detail():
    err = ProtocolError(ProtocolErrorKind.JUNK_AFTER_REQUEST)
    assert err.kind is ProtocolErrorKind.JUNK_AFTER_REQUEST
    assert err.detail is None
    assert str(err).startswith("WebSocket protocol error: ")
    assert str(err).endswith("Junk after client request")


def test_protocol_error_with_header_detail():
    err = ProtocolError(ProtocolErrorKind.INVALID_HEADER, "sec-websocket-key")
    assert err.detail == "sec-websocket-key"
    assert str(err).endswith("Missing, duplicated or incorrect header sec-websocket-key")


def test_protocol_error_with_subprotocol_detail():
    err = ProtocolError(
        ProtocolErrorKind.SEC_WEBSOCKET_SUB_PROTOCOL_ERROR, SubProtocolError.NO_SUB_PROTOCOL
    )
    assert err.detail is SubProtocolError.NO_SUB_PROTOCOL
    assert "SubProtocol error: Server sent no subprotocol" in str(err)


def test_protocol_error_requires_detail_when_templated():
    with pytest.raises(ValueError):
        ProtocolError(ProtocolErrorKind.INVALID_OPCODE)


@pytest.mark.parametrize(
    "sub_error, text",
    [
        (SubProtocolError.INVALID_SUB_PROTOCOL, "Server sent an invalid subprotocol"),
        (
            SubProtocolError.SERVER_SENT_SUB_PROTOCOL_NONE_REQUESTED,
            "Server sent a subprotocol but none was requested",
        ),
    ],
)
def test_subprotocol_error_text(sub_error, text):
    err = ProtocolError(ProtocolErrorKind.SEC_WEBSOCKET_SUB_PROTOCOL_ERROR, sub_error)
    assert str(err).endswith("SubProtocol error: " + text)


def test_capacity_error_too_many_headers():
    err = CapacityError(CapacityErrorKind.TOO_MANY_HEADERS)
    assert err.kind is CapacityErrorKind.TOO_MANY_HEADERS
    assert str(err).startswith("Space limit exceeded: ")
    assert str(err).endswith("Too many headers")


def test_capacity_error_message_too_long_keeps_sizes():
    err = CapacityError(CapacityErrorKind.MESSAGE_TOO_LONG, size=70, max_size=64)
    assert (err.size, err.max_size) == (70, 64)
    assert str(err).endswith("70 > 64")


def test_capacity_error_message_too_long_needs_sizes():
    with pytest.raises(ValueError):
        CapacityError(CapacityErrorKind.MESSAGE_TOO_LONG)


def test_url_errors():
    err = UrlError(UrlErrorKind.UNABLE_TO_CONNECT, "ws://localhost:9001")
    assert err.kind is UrlErrorKind.UNABLE_TO_CONNECT
    assert str(err).endswith("Unable to connect to ws://localhost:9001")
    assert str(UrlError(UrlErrorKind.UNSUPPORTED_URL_SCHEME)).endswith("URL scheme not supported")
    with pytest.raises(ValueError):
        UrlError(UrlErrorKind.UNABLE_TO_CONNECT)


def test_http_error_keeps_response():
    response = _FakeResponse()
    err = HttpError(response)
    assert err.response is response
    assert str(err) == "HTTP error: " + response.status_text


def test_tls_and_format_errors_keep_detail():
    tls = TlsError("handshake failed")
    assert tls.detail == "handshake failed"
    assert str(tls).startswith("TLS error: ")
    fmt = HttpFormatError("invalid HTTP header name")
    assert fmt.detail == "invalid HTTP header name"
    assert str(fmt).startswith("HTTP format error: ")