"""HTTP header maps, requests, responses and header-block parsing."""

from __future__ import annotations

import string
from dataclasses import dataclass, field
from http import HTTPStatus
from typing import Any, Iterable, Iterator, Mapping
from urllib.parse import urlsplit

from wshake.errors import (
    CapacityError,
    CapacityErrorKind,
    HttpFormatError,
    ProtocolError,
    ProtocolErrorKind,
)

MAX_HEADERS = 124
"""Limit for the number of header lines."""

_TOKEN_CHARS = frozenset((string.ascii_letters + string.digits + "!#$%&'*+-.^_`|~").encode())
_TOKEN_TEXT = frozenset(string.ascii_letters + string.digits + "!#$%&'*+-.^_`|~")


def _httparse_error(detail: str) -> ProtocolError:
    return ProtocolError(ProtocolErrorKind.HTTPARSE_ERROR, detail)


def _is_bad_value_byte(code: int) -> bool:
    return (code < 0x20 and code != 0x09) or code == 0x7F


def parse_header_lines(data: bytes) -> tuple[int, list[tuple[str, bytes]]] | None:
    """Parse a header block ended by an empty line.

    Returns ``None`` while the block is incomplete, otherwise the number of
    bytes taken and the (name, value) pairs in order.
    """
    data = bytes(data)
    headers: list[tuple[str, bytes]] = []
    pos = 0
    while True:
        end = data.find(b"\n", pos)
        if end < 0:
            return None
        line = data[pos:end]
        if line.endswith(b"\r"):
            line = line[:-1]
        pos = end + 1
        if not line:
            return pos, headers
        if len(headers) == MAX_HEADERS:
            raise CapacityError(CapacityErrorKind.TOO_MANY_HEADERS)
        name, sep, value = line.partition(b":")
        if not sep or not name or any(code not in _TOKEN_CHARS for code in name):
            raise _httparse_error("invalid header name")
        value = value.strip(b" \t")
        if any(_is_bad_value_byte(code) for code in value):
            raise _httparse_error("invalid header value")
        headers.append((name.decode("ascii"), value))


def _check_name(name: str) -> str:
    if not name or any(ch not in _TOKEN_TEXT for ch in name):
        raise HttpFormatError("invalid HTTP header name")
    return name.lower()


def _check_value(value: str | bytes) -> str:
    if isinstance(value, (bytes, bytearray)):
        value = bytes(value).decode("latin-1")
    if any(_is_bad_value_byte(ord(ch)) for ch in value):
        raise HttpFormatError("failed to parse header value")
    return value


class HeaderMap:
    """A case-insensitive multimap of HTTP headers.

    Names are kept in lower case; iteration yields ``(name, value)`` pairs,
    all values of one name together, names in order of first insertion.
    """

    def __init__(
        self, items: Mapping[str, str] | Iterable[tuple[str, str | bytes]] | None = None
    ) -> None:
        self._entries: dict[str, list[str]] = {}
        if items is None:
            return
        pairs = items.items() if isinstance(items, Mapping) else items
        for name, value in pairs:
            self.append(name, value)

    def append(self, name: str, value: str | bytes) -> None:
        """Add a value for ``name`` after any existing ones."""
        self._entries.setdefault(_check_name(name), []).append(_check_value(value))

    def get(self, name: str) -> str | None:
        """The first value for ``name``, or None."""
        values = self._entries.get(name.lower())
        return values[0] if values else None

    def get_all(self, name: str) -> list[str]:
        """Every value for ``name``, in order."""
        return list(self._entries.get(name.lower(), ()))

    def remove(self, name: str) -> str | None:
        """Remove every value for ``name`` and return the first, or None."""
        values = self._entries.pop(name.lower(), None)
        return values[0] if values else None

    @classmethod
    def try_parse(cls, data: bytes) -> tuple[int, HeaderMap] | None:
        """Parse a header block; None if it is not complete yet."""
        parsed = parse_header_lines(data)
        if parsed is None:
            return None
        size, pairs = parsed
        return size, cls(pairs)

    def __getitem__(self, name: str) -> str:
        value = self.get(name)
        if value is None:
            raise KeyError(name)
        return value

    def __setitem__(self, name: str, value: str | bytes) -> None:
        self._entries[_check_name(name)] = [_check_value(value)]

    def __delitem__(self, name: str) -> None:
        if self.remove(name) is None:
            raise KeyError(name)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.lower() in self._entries

    def __iter__(self) -> Iterator[tuple[str, str]]:
        for name, values in list(self._entries.items()):
            for value in values:
                yield name, value

    def __len__(self) -> int:
        return sum(len(values) for values in self._entries.values())

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, HeaderMap):
            return NotImplemented
        return self._entries == other._entries

    def __repr__(self) -> str:
        return f"HeaderMap({list(self)!r})"


@dataclass
class Request:
    """An HTTP request head."""

    uri: str = "/"
    method: str = "GET"
    version: str = "HTTP/1.1"
    headers: HeaderMap = field(default_factory=HeaderMap)

    @property
    def path(self) -> str:
        """The path part of the URI."""
        return urlsplit(self.uri).path or "/"

    @property
    def query(self) -> str | None:
        """The query part of the URI, if any."""
        return urlsplit(self.uri).query or None

    @property
    def path_and_query(self) -> str | None:
        """What goes on the request line, or None if an absolute URI has none."""
        parts = urlsplit(self.uri)
        if not (parts.scheme or parts.netloc):
            return self.uri or None
        result = parts.path + (f"?{parts.query}" if parts.query else "")
        return result or None


@dataclass
class Response:
    """An HTTP response head with an optional body."""

    status: int = 200
    version: str = "HTTP/1.1"
    headers: HeaderMap = field(default_factory=HeaderMap)
    body: Any = None

    def __post_init__(self) -> None:
        if not 100 <= self.status <= 999:
            raise HttpFormatError("invalid status code")

    @property
    def reason(self) -> str:
        """The canonical reason phrase for the status code."""
        try:
            return HTTPStatus(self.status).phrase
        except ValueError:
            return "<unknown status code>"

    @property
    def status_text(self) -> str:
        """Status code and reason phrase, as on a status line."""
        return f"{self.status} {self.reason}"

    @property
    def is_success(self) -> bool:
        """Whether the status is in the 2xx range."""
        return 200 <= self.status <= 299