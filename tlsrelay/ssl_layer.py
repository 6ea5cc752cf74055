"""A TLS 1.3 protocol layer that works on memory buffers, not sockets."""

from __future__ import annotations

import enum
import ssl
from os import PathLike
from typing import Optional, Union

from tlsrelay.connection import STD_BUFFER_SIZE, ProtocolLayer

_Path = Union[str, "PathLike[str]"]


class SslMode(enum.Enum):
    CLIENT = "client"
    SERVER = "server"


class SslLayerError(Exception):
    """Base class for errors of the TLS layer."""


class ContextError(SslLayerError):
    """The TLS context could not be created or loaded."""


class HandshakeFailure(SslLayerError):
    """The TLS handshake failed."""


class HandshakeNotFinished(SslLayerError):
    """Application data was sent before the handshake completed."""


def create_context(
    certfile: Optional[_Path] = None,
    keyfile: Optional[_Path] = None,
    server_side: bool = True,
) -> ssl.SSLContext:
    """Build a TLS 1.3-only context, loading the certificate and key if both are given."""
    protocol = ssl.PROTOCOL_TLS_SERVER if server_side else ssl.PROTOCOL_TLS_CLIENT
    try:
        context = ssl.SSLContext(protocol)
    except ssl.SSLError as exc:
        raise ContextError(f"cannot create context: {exc}") from exc
    if not server_side:
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
    if certfile is not None and keyfile is not None:
        try:
            context.load_cert_chain(certfile, keyfile)
        except (OSError, ssl.SSLError) as exc:
            raise ContextError(f"cannot load certificate or key: {exc}") from exc
    context.minimum_version = ssl.TLSVersion.TLSv1_3
    context.maximum_version = ssl.TLSVersion.TLSv1_3
    return context


class SslProtocolLayer(ProtocolLayer):
    """TLS endpoint fed with wire bytes through ``receive`` and drained by ``drain``."""

    def __init__(self, mode: SslMode, context: Optional[ssl.SSLContext] = None) -> None:
        self.mode = mode
        server_side = mode is SslMode.SERVER
        if context is None:
            context = create_context(server_side=server_side)
        self._incoming = ssl.MemoryBIO()
        self._outgoing = ssl.MemoryBIO()
        self._obj = context.wrap_bio(
            self._incoming, self._outgoing, server_side=server_side
        )
        self._done = False

    def handshake_complete(self) -> bool:
        return self._done

    def handshake(self) -> bool:
        """Advance the handshake; True once it is complete."""
        if self._done:
            return True
        try:
            self._obj.do_handshake()
        except (ssl.SSLWantReadError, ssl.SSLWantWriteError):
            return False
        except ssl.SSLError as exc:
            raise HandshakeFailure(str(exc)) from exc
        self._done = True
        return True

    def _decrypt(self) -> bytes:
        plain = bytearray()
        while True:
            try:
                chunk = self._obj.read(STD_BUFFER_SIZE)
            except (ssl.SSLWantReadError, ssl.SSLWantWriteError, ssl.SSLZeroReturnError):
                break
            except ssl.SSLError as exc:
                raise SslLayerError(str(exc)) from exc
            if not chunk:
                break
            plain += chunk
        return bytes(plain)

    def receive(self, data: bytes) -> bytes:
        """Feed wire bytes; return any application data they complete."""
        if not data:
            return b""
        self._incoming.write(data)
        if not self._done and not self.handshake():
            return b""
        return self._decrypt()

    def send(self, data: bytes) -> None:
        """Encrypt application bytes; the ciphertext is collected by ``drain``."""
        if not self._done:
            raise HandshakeNotFinished("handshake has not finished")
        view = memoryview(data)
        while view:
            try:
                written = self._obj.write(view)
            except ssl.SSLError as exc:
                raise SslLayerError(str(exc)) from exc
            view = view[written:]

    def drain(self) -> bytes:
        return self._outgoing.read()