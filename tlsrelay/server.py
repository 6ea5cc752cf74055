"""A TLS 1.3 echo server: an event loop hands decrypted messages to a worker pool."""

from __future__ import annotations

import argparse
import logging
import select
import socket
import sys
import threading
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

from tlsrelay.connection import Connection, PeerClosed
from tlsrelay.prio_queue import ConcurrentPriorityQueue
from tlsrelay.ssl_layer import (
    ContextError,
    SslLayerError,
    SslMode,
    SslProtocolLayer,
    create_context,
)
from tlsrelay.thread_pool import ManagedThreadPool

log = logging.getLogger(__name__)

DEFAULT_PORT = 55555
DEFAULT_CERTFILE = "server.crt"
DEFAULT_KEYFILE = "server.key"
POOL_SIZE = 4
LISTEN_BACKLOG = 128
POLL_TIMEOUT = 0.05
_WAKE_CHUNK = 2048


@dataclass(eq=False)
class Request:
    """Application bytes read from one connection, waiting for a worker."""

    connection: Any
    parent: Any
    data: bytes = b""
    prio: int = 1
    hold: int = 1

    def __gt__(self, other: "Request") -> bool:
        return self.prio > other.prio


def handle_request(request: Request) -> None:
    """Echo the request's bytes back on its connection and wake the event loop."""
    if request.data:
        text = request.data.decode(errors="replace")
        sys.stdout.write(f"Message of {len(request.data)} bytes: {text}")
        sys.stdout.flush()
        with request.connection.flags.lock:
            request.connection.write(request.data)
    request.parent.wake_up()


class SecureConnectionManager:
    """Accepts TLS connections and echoes what each client sends."""

    def __init__(
        self,
        port: int = DEFAULT_PORT,
        certfile: Optional[str] = DEFAULT_CERTFILE,
        keyfile: Optional[str] = DEFAULT_KEYFILE,
        host: str = "",
    ) -> None:
        self._context = create_context(certfile, keyfile, server_side=True)

        self._listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            self._listener.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            self._listener.bind((host, port))
            self._listener.listen(LISTEN_BACKLOG)
            self._listener.setblocking(False)
        except OSError:
            self._listener.close()
            raise

        self._wake_reader, self._wake_writer = socket.socketpair()
        self._wake_reader.setblocking(False)
        self._wake_writer.setblocking(False)
        self._wake_lock = threading.Lock()

        self._connections: Dict[int, Connection] = {}
        self._stopping = threading.Event()
        self._idle = threading.Event()
        self._idle.set()
        self._closed = False

        self._queue: ConcurrentPriorityQueue[Request] = ConcurrentPriorityQueue()
        self._pool = ManagedThreadPool(handle_request, self._queue, POOL_SIZE)

    def address(self) -> Tuple[str, int]:
        """The address the server listens on."""
        return self._listener.getsockname()

    def wake_up(self) -> None:
        """Interrupt the event loop's wait so pending writes get flushed."""
        with self._wake_lock:
            if self._closed:
                return
            try:
                self._wake_writer.send(b"a")
            except (BlockingIOError, OSError):
                pass

    def serve_forever(self) -> None:
        """Run the event loop until ``stop`` is called."""
        if self._stopping.is_set():
            return
        self._idle.clear()
        try:
            while not self._stopping.is_set():
                self._poll_once()
        finally:
            self._idle.set()

    def _poll_once(self) -> None:
        connections = list(self._connections.values())
        readers: List[Any] = [self._listener, self._wake_reader, *connections]
        writers = [conn for conn in connections if conn.has_pending_writes()]
        readable, writable, _ = select.select(readers, writers, [], POLL_TIMEOUT)
        if not readable and not writable:
            return

        if self._wake_reader in readable:
            try:
                self._wake_reader.recv(_WAKE_CHUNK)
            except BlockingIOError:
                pass

        if self._listener in readable:
            self._accept()

        to_close: List[Connection] = []
        for conn in connections:
            if conn in readable:
                try:
                    with conn.flags.lock:
                        data = conn.read()
                except (PeerClosed, SslLayerError, OSError) as exc:
                    log.debug("closing %r: %s", conn, exc)
                    to_close.append(conn)
                    continue
                if data:
                    self._queue.push(Request(conn, self, data, prio=1, hold=1))
            if conn in writable or conn.has_pending_writes():
                try:
                    with conn.flags.lock:
                        conn.flush()
                except OSError as exc:
                    log.debug("closing %r: %s", conn, exc)
                    to_close.append(conn)

        for conn in to_close:
            self._drop(conn)

    def _accept(self) -> None:
        try:
            sock, address = self._listener.accept()
        except (BlockingIOError, InterruptedError):
            return
        sock.setblocking(False)
        conn = Connection(sock, address)
        conn.add_layer(SslProtocolLayer(SslMode.SERVER, self._context))
        self._connections[conn.fileno()] = conn

    def _drop(self, conn: Connection) -> None:
        for fd, known in list(self._connections.items()):
            if known is conn:
                del self._connections[fd]
        conn.close()

    def stop(self) -> None:
        """Ask the event loop to return."""
        self._stopping.set()
        self.wake_up()

    def close(self) -> None:
        """Stop the loop and the workers and close every socket."""
        if self._closed:
            return
        self.stop()
        self._idle.wait()
        self._pool.stop()
        self._pool.join()
        with self._wake_lock:
            self._closed = True
        for conn in list(self._connections.values()):
            self._drop(conn)
        self._listener.close()
        self._wake_reader.close()
        self._wake_writer.close()

    def __enter__(self) -> "SecureConnectionManager":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="TLS 1.3 echo server.")
    parser.add_argument("--host", default="")
    parser.add_argument("--port", type=int, default=DEFAULT_PORT)
    parser.add_argument("--cert", default=DEFAULT_CERTFILE)
    parser.add_argument("--key", default=DEFAULT_KEYFILE)
    args = parser.parse_args(argv)
    try:
        manager = SecureConnectionManager(args.port, args.cert, args.key, args.host)
    except (ContextError, OSError) as exc:
        print(f"cannot start server: {exc}", file=sys.stderr)
        return 1
    with manager:
        try:
            manager.serve_forever()
        except KeyboardInterrupt:
            pass
    return 0


if __name__ == "__main__":
    sys.exit(main())