# tlsrelay

tlsrelay is a small TLS 1.3 echo server with a matching command-line client.

The server listens on a TCP port and accepts connections. It runs a TLS
handshake with each peer through an in-memory TLS layer. Each decrypted chunk
goes onto a concurrent priority queue as a `Request`. A pool of four worker
threads takes requests off that queue. For each one, a worker prints
`Message of N bytes: ...` to standard output and echoes the bytes back to the
sender, encrypted.

The client connects to the server and sends what you type on standard input.
It prints every message it receives as `Message of N bytes: ...`.

## Installation

```
pip install .
```

The package needs only the Python standard library.

## Running the server

The server needs a certificate and a private key in PEM format. By default it
looks for `server.crt` and `server.key` in the current directory and listens
on port 55555 on all interfaces:

```
tlsrelay-server
```

Options:

- `--host`: the address to bind to (default: all interfaces)
- `--port`: the port to listen on (default 55555)
- `--cert`: the certificate file (default `server.crt`)
- `--key`: the private key file (default `server.key`)

If the certificate or key cannot be loaded, or the port cannot be bound, the
server prints `cannot start server: ...` and exits with status 1. Press
Ctrl+C to stop it.

## Running the client

```
tlsrelay-client
```

By default the client connects to `127.0.0.1:55555`. Use `--host` and
`--port` to connect somewhere else. After the handshake completes, type a
line and press Enter. The server echoes it back and the client prints it.
The client stops when the server closes the connection. If it cannot connect,
it prints `error in connect(): ...` and exits with status 1.

## Using the building blocks

The modules can also be used on their own:

- `tlsrelay.sema.Semaphore`: a counting semaphore with `wait()`, `signal(n)`
  and a `count` property.
- `tlsrelay.prio_queue.ConcurrentPriorityQueue`: a blocking priority queue.
  Items are ordered with `>`, and the smallest item comes out first. Items
  that compare equal come out in insertion order. The queue offers `push`,
  `push_many`, `pop`, `top`, `empty`, `len()`, `max_size()` and
  `completed()`. `close()` releases every blocked consumer, which then raises
  `QueueClosed`.
- `tlsrelay.thread_pool.ThreadPool`: starts `size` threads that each call
  `target(state)`. `join()` waits for them. Calling it on a pool that is not
  running raises `PoolNotRunning`.
- `tlsrelay.thread_pool.ManagedThreadPool`: worker threads that pop items
  from a `ConcurrentPriorityQueue` and pass each one to a processor function.
  `stop()` closes the queue so the workers finish.
- `tlsrelay.ssl_layer.SslProtocolLayer`: a TLS endpoint that works on bytes,
  not sockets. Feed it wire bytes with `receive()`, encrypt with `send()`,
  and collect outgoing wire bytes with `drain()`. `create_context()` builds a
  context restricted to TLS 1.3. Errors are subclasses of `SslLayerError`:
  `ContextError`, `HandshakeFailure` and `HandshakeNotFinished`.
- `tlsrelay.connection.Connection`: a socket wrapper. It buffers outgoing
  data until `flush()` and can route traffic through a `ProtocolLayer`.
  `read()` raises `PeerClosed` when the peer hangs up.
- `tlsrelay.ssl_sock.SslSock`: a TLS endpoint bound to a socket, in client
  or server mode. The client uses it.
- `tlsrelay.client.run_client` and `read_available`: the client loop and its
  non-blocking stdin reader.
- `tlsrelay.server.SecureConnectionManager`: the select-driven echo server,
  with `serve_forever()`, `stop()`, `close()`, `wake_up()` and `address()`.

```python
from tlsrelay.server import SecureConnectionManager

manager = SecureConnectionManager(55555, "server.crt", "server.key", "0.0.0.0")
try:
    manager.serve_forever()
finally:
    manager.close()
```

## What it does not do

- The client does not verify the server's certificate or host name.
- The server only echoes. There is no way to plug in a different handler
  from the command line.
- Only TLS 1.3 is accepted, and only IPv4 listening is supported.

## Running the tests

```
pip install .[test]
pytest
```