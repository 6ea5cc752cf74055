"""Interactive TLS client: sends what arrives on stdin, prints what the server sends."""

from __future__ import annotations

import argparse
import os
import select
import socket
import sys
from typing import IO, Any, List, Optional, Sequence

from tlsrelay.ssl_layer import HandshakeNotFinished, SslLayerError, SslMode, create_context
from tlsrelay.ssl_sock import SslSock

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 55555
_STDIN_CHUNK = 2047


def read_available(stream: Any) -> bytes:
    """Read everything that can be read from ``stream`` without blocking.

    The first read may block; returns b"" at end of file.
    """
    fd = stream.fileno()
    chunks: List[bytes] = []
    while True:
        try:
            chunk = os.read(fd, _STDIN_CHUNK)
        except BlockingIOError:
            break
        if not chunk:
            break
        chunks.append(chunk)
        readable, _, _ = select.select([fd], [], [], 0)
        if not readable:
            break
    return b"".join(chunks)


def run_client(
    host: str = DEFAULT_HOST,
    port: int = DEFAULT_PORT,
    stdin: Optional[Any] = None,
    stdout: Optional[IO[str]] = None,
) -> int:
    """Connect to ``host:port`` over TLS 1.3 and relay until the peer goes away.

    Raises OSError when the connection cannot be made.
    """
    stdin = sys.stdin if stdin is None else stdin
    stdout = sys.stdout if stdout is None else stdout

    with socket.create_connection((host, port)) as raw:
        stdout.write("socket connected\n")
        stdout.flush()
        sock = SslSock(raw, SslMode.CLIENT, create_context(server_side=False))
        sock.handshake()
        sock.flush()

        watch_stdin = True
        while True:
            readers: List[Any] = [raw]
            if watch_stdin and sock.handshake_complete():
                readers.append(stdin)
            writers = [raw] if sock.want_write() else []
            readable, writable, _ = select.select(readers, writers, [])

            if raw in readable:
                try:
                    text = sock.read_handler()
                except (OSError, SslLayerError):
                    break
                if text:
                    stdout.write(
                        f"Message of {len(text)} bytes: {text.decode(errors='replace')}"
                    )
                    stdout.flush()

            if stdin in readable:
                data = read_available(stdin)
                if data:
                    try:
                        sock.encrypt_write(data)
                    except HandshakeNotFinished:
                        pass
                else:
                    watch_stdin = False

            if raw in writable or sock.want_write():
                try:
                    sock.flush()
                except OSError:
                    break
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Interactive TLS 1.3 client.")
    parser.add_argument("--host", default=DEFAULT_HOST)
    parser.add_argument("--port", type=int, default=DEFAULT_PORT)
    args = parser.parse_args(argv)
    try:
        return run_client(args.host, args.port, sys.stdin, sys.stdout)
    except OSError as exc:
        print(f"error in connect(): {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())