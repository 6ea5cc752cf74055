"""A TLS endpoint bound to a socket, buffering ciphertext until it is flushed."""

from __future__ import annotations

import logging
import socket
import ssl
from typing import Optional, Union

from tlsrelay.connection import STD_BUFFER_SIZE, PeerClosed
from tlsrelay.ssl_layer import SslMode, SslProtocolLayer

log = logging.getLogger(__name__)


class SslSock:
    """TLS over a socket: decrypts what ``read_handler`` reads, queues what it encrypts."""

    def __init__(
        self,
        sock: socket.socket,
        mode: SslMode = SslMode.CLIENT,
        context: Optional[ssl.SSLContext] = None,
    ) -> None:
        self._sock = sock
        self.mode = mode
        self._layer = SslProtocolLayer(mode, context)
        self._to_send = bytearray()

    def _collect(self) -> None:
        self._to_send += self._layer.drain()

    def fileno(self) -> int:
        return self._sock.fileno()

    def want_write(self) -> bool:
        """True while ciphertext is waiting to be sent."""
        return bool(self._to_send)

    def flush(self) -> int:
        """Send as much queued ciphertext as the socket takes; return the byte count."""
        total = 0
        if self._to_send:
            log.debug("flushing %d bytes from the write buffer", len(self._to_send))
        while self._to_send:
            try:
                written = self._sock.send(self._to_send)
            except BlockingIOError:
                break
            if written <= 0:
                break
            del self._to_send[:written]
            total += written
        return total

    def handshake(self) -> bool:
        """Advance the handshake; True once it is complete."""
        try:
            return self._layer.handshake()
        finally:
            self._collect()

    def handshake_complete(self) -> bool:
        return self._layer.handshake_complete()

    def encrypt_write(self, data: Union[bytes, str]) -> None:
        """Encrypt application data and queue it for ``flush``.

        Raises HandshakeNotFinished before the handshake has completed.
        """
        if isinstance(data, str):
            data = data.encode()
        try:
            self._layer.send(data)
        finally:
            self._collect()

    def read_handler(self) -> bytes:
        """Read one chunk from the socket and return the plaintext it completes.

        Returns b"" while the handshake is in progress or nothing is available;
        raises PeerClosed when the peer has closed the connection and
        HandshakeFailure when the handshake fails.
        """
        try:
            data = self._sock.recv(STD_BUFFER_SIZE)
        except BlockingIOError:
            return b""
        log.debug("read returns %d bytes", len(data))
        if not data:
            raise PeerClosed("peer closed the connection")
        try:
            return self._layer.receive(data)
        finally:
            self._collect()

    def close(self) -> None:
        self._sock.close()

    def __enter__(self) -> "SslSock":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()