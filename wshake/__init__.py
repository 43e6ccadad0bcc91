"""WebSocket opening handshake for clients and servers over caller-supplied streams."""

__version__ = "0.1.0"

__all__ = ["buffer", "client", "errors", "handshake", "headers", "machine", "server"]