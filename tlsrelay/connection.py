"""A socket wrapper that buffers outgoing bytes and can run them through a protocol layer."""

from __future__ import annotations

import abc
import socket
import threading
from dataclasses import dataclass, field
from typing import Any, Optional

STD_BUFFER_SIZE = 64


@dataclass
class ConnectionFlags:
    """State flags the event loop keeps for one connection."""

    want_close: bool = False
    waiting_for_read: bool = False
    waiting_for_write: bool = False
    write_init: bool = True
    write_ready: bool = False
    lock: threading.Lock = field(
        default_factory=threading.Lock, repr=False, compare=False
    )


class ProtocolLayer(abc.ABC):
    """A transformation between wire bytes and application bytes."""

    @abc.abstractmethod
    def receive(self, data: bytes) -> bytes:
        """Take bytes from the wire and return the application bytes they carry."""

    @abc.abstractmethod
    def send(self, data: bytes) -> None:
        """Queue application bytes to be sent on the wire."""

    @abc.abstractmethod
    def handshake(self) -> bool:
        """Advance the handshake; return True once it is complete."""

    @abc.abstractmethod
    def drain(self) -> bytes:
        """Return and forget the wire bytes waiting to be sent."""


class PeerClosed(ConnectionError):
    """Raised when the peer has closed its end of the connection."""


class Connection:
    """One accepted socket with its pending output and optional protocol layer."""

    def __init__(
        self,
        sock: socket.socket,
        address: Any = None,
        layer: Optional[ProtocolLayer] = None,
    ) -> None:
        self._sock = sock
        self.address = address
        self.layer = layer
        self.flags = ConnectionFlags()
        self._pending = bytearray()

    def fileno(self) -> int:
        return self._sock.fileno()

    def read(self) -> bytes:
        """Read one chunk from the socket and return the application bytes in it.

        Raises PeerClosed when the peer has shut the connection down.
        """
        try:
            data = self._sock.recv(STD_BUFFER_SIZE)
        except BlockingIOError:
            return b""
        if not data:
            raise PeerClosed("peer closed the connection")
        if self.layer is None:
            return data
        try:
            return self.layer.receive(data)
        finally:
            self._pending += self.layer.drain()

    def write(self, data: bytes) -> None:
        """Queue application bytes; they are sent by ``flush``."""
        if self.layer is None:
            self._pending += data
            return
        try:
            self.layer.send(data)
        finally:
            self._pending += self.layer.drain()

    def has_pending_writes(self) -> bool:
        return bool(self._pending)

    def flush(self) -> int:
        """Send what is queued; return the number of bytes written."""
        if not self._pending:
            return 0
        try:
            written = self._sock.send(self._pending)
        except BlockingIOError:
            return 0
        del self._pending[:written]
        return written

    def add_layer(self, layer: ProtocolLayer) -> None:
        self.layer = layer

    def close(self) -> None:
        self._sock.close()

    def __enter__(self) -> "Connection":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"Connection(address={self.address!r}, pending={len(self._pending)})"