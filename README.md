# wshake

`wshake` performs the WebSocket opening handshake (RFC 6455), on the
server side and on the client side, over a stream you have already
opened. It uses only the standard library.

The stream is read with its `read(n)` method, or `recv(n)` if it has no
`read`. It is written with `write(data)`, or `send(data)` if it has no
`write`. `flush()` is called if the stream has one. A plain connected
`socket.socket` therefore works, in blocking or non-blocking mode.

## Install

```
pip install wshake
```

## Accept key

```python
from wshake.handshake import derive_accept_key

derive_accept_key(b"dGhlIHNhbXBsZSBub25jZQ==")
# 's3pPLMBiTxaQ9kYGzzhZRbK+xOo='
```

## Server side

```python
import socket

from wshake.server import ServerHandshake, no_callback

with socket.create_server(("127.0.0.1", 9002)) as listener:
    conn, _ = listener.accept()
    stream = ServerHandshake.start(conn, no_callback).handshake()
```

`ServerHandshake.start(stream, callback)` returns a `MidHandshake`.
Its `handshake()` method does the following:

1. It reads and parses the request.
2. It checks the request: the `GET` method, HTTP/1.1, `Connection: Upgrade`,
   `Upgrade: websocket`, `Sec-WebSocket-Version: 13` and a
   `Sec-WebSocket-Key`.
3. It writes the `101 Switching Protocols` response.
4. It returns the stream.

Any bytes that follow the request head are rejected with
`ProtocolError` (`JUNK_AFTER_REQUEST`).

The callback is called with the parsed `Request` and the prepared
`Response`, and returns the response to send. It may add headers first.
To refuse the client, raise `HttpError` carrying a non-2xx `Response`:

```python
from wshake.errors import HttpError
from wshake.headers import Response

def callback(request, response):
    if request.path != "/chat":
        raise HttpError(Response(status=403, body="Access denied"))
    response.headers.append("X-Custom", "value")
    return response
```

When a client is refused, the error response and its body are written
to the client. Then `handshake()` raises `HttpError`, whose `response`
holds the body as bytes. A refusal with a 2xx status raises
`ProtocolError` (`CUSTOM_RESPONSE_SUCCESSFUL`).

The same steps are also available as separate functions:

* `parse_request(data)` returns `(size, Request)`, or `None` while the
  head is incomplete.
* `create_response(request)` builds the 101 response.
* `create_response_with_body(request, generate_body)` builds the 101
  response with the body that `generate_body()` returns.
* `write_response(stream, response)` writes the status line and headers
  with `stream.write`.

## Client side

```python
import socket

from wshake.client import ClientHandshake, generate_key
from wshake.headers import HeaderMap, Request

request = Request(
    uri="ws://localhost:9002/socket",
    headers=HeaderMap([
        ("Host", "localhost:9002"),
        ("Connection", "Upgrade"),
        ("Upgrade", "websocket"),
        ("Sec-WebSocket-Version", "13"),
        ("Sec-WebSocket-Key", generate_key()),
        ("Sec-WebSocket-Protocol", "chat, superchat"),
    ]),
)
conn = socket.create_connection(("localhost", 9002))
stream, response, tail = ClientHandshake.start(conn, request).handshake()
```

`ClientHandshake.start(stream, request)` first checks the request. It
needs the `GET` method, HTTP/1.1 or later, and a `ws` or `wss` URI. It
then sends the request.

After that, `handshake()` reads the reply and checks it with
`VerifyData.verify_response`. The checks cover:

* a 101 status; any other status raises `HttpError`, whose response body
  holds the bytes read after the head;
* `Upgrade: websocket` and `Connection: Upgrade`;
* the `Sec-WebSocket-Accept` value;
* the subprotocol, which must be present if one was requested, absent
  if none was, and one of those requested.

The result is the stream, the response, and `tail`, which holds any
bytes the server sent after its response head.

The client module also provides these functions:

* `generate_key()` returns a random `Sec-WebSocket-Key`.
* `generate_request(request)` returns the request bytes and the key.
  The Host, Connection, Upgrade, Sec-WebSocket-Version and
  Sec-WebSocket-Key headers are written first, with those exact
  spellings. Each of them is required.
* `parse_response(data)` parses a response head.

## Non-blocking streams

If the stream would block, `handshake()` raises
`wshake.handshake.HandshakeInterrupted`. When the stream is ready again,
call `handshake()` on its `mid_handshake` attribute to go on:

```python
from wshake.handshake import HandshakeInterrupted

try:
    result = mid.handshake()
except HandshakeInterrupted as pending:
    mid = pending.mid_handshake  # retry later with mid.handshake()
```

## Lower-level pieces

* `wshake.buffer.ReadBuffer` is a FIFO buffer filled from a stream in
  chunks of 4096 bytes by default. It has `read_from`, `chunk`,
  `remaining`, `advance` and `into_bytes`.
* `wshake.headers.HeaderMap` is a case-insensitive, multi-valued header
  map. Header blocks are parsed with `HeaderMap.try_parse` or
  `parse_header_lines`, up to 124 headers. `Request` and `Response` are
  the request and response heads.
* `wshake.machine.HandshakeMachine` drives one stage, reading or
  writing, one round at a time. Its `AttackCheck` rejects a handshake
  with `AttackAttemptError` in any of these cases:
  * it goes over 65536 bytes;
  * it takes more than 512 reads;
  * after 64 reads, the average read is under 128 bytes.

## Errors

Every error derives from `wshake.errors.WebSocketError`:

* `ProtocolError`, `CapacityError` and `UrlError` each carry a `kind`
  enum member (`ProtocolErrorKind`, `CapacityErrorKind`, `UrlErrorKind`)
  and, where it applies, a `detail`. Subprotocol failures use
  `SubProtocolError` as their detail.
* `HttpError` carries the HTTP response.
* `HttpFormatError` is raised for malformed header names or values,
  status codes, versions and URIs.
* `Utf8Error` is raised when a header value is not visible ASCII.
* `AttackAttemptError`.

## What it does not do

`wshake` stops once the opening handshake is done. It does not:

* encode or decode WebSocket frames or messages, or handle ping, pong or
  close;
* open TCP connections or build a request from a URL;
* provide TLS.

To use `wss`, wrap the stream yourself before the handshake, and handle
the WebSocket traffic that follows with your own code.