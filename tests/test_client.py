import datetime
import io
import os
import socket
import threading

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID

from tlsrelay.client import main, read_available, run_client
from tlsrelay.ssl_layer import create_context


@pytest.fixture
def server_context(tmp_path):
    private = ec.generate_private_key(ec.SECP256R1())
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, "localhost")])
    now = datetime.datetime.now(datetime.timezone.utc)
    cert = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(private.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - datetime.timedelta(days=1))
        .not_valid_after(now + datetime.timedelta(days=1))
        .sign(private, hashes.SHA256())
    )
    cert_path = tmp_path / "server.crt"
    key_path = tmp_path / "server.key"
    cert_path.write_bytes(cert.public_bytes(serialization.Encoding.PEM))
    key_path.write_bytes(
        private.private_bytes(
            serialization.Encoding.PEM,
            serialization.PrivateFormat.PKCS8,
            serialization.NoEncryption(),
        )
    )
    return create_context(cert_path, key_path, server_side=True)


def _pipe_with(data):
    read_fd, write_fd = os.pipe()
    with open(write_fd, "wb") as writer:
        writer.write(data)
    return open(read_fd, "rb", buffering=0)


def test_read_available_returns_written_bytes():
    with _pipe_with(b"abc") as stream:
        assert read_available(stream) == b"abc"


def test_read_available_collects_more_than_one_chunk():
    payload = bytes(range(256)) * 20
    with _pipe_with(payload) as stream:
        assert read_available(stream) == payload


def test_read_available_at_end_of_file_is_empty():
    with _pipe_with(b"") as stream:
        assert read_available(stream) == b""


def _free_port():
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as probe:
        probe.bind(("127.0.0.1", 0))
        return probe.getsockname()[1]


def test_main_reports_connection_failure():
    assert main(["--host", "127.0.0.1", "--port", str(_free_port())]) == 1


def test_run_client_echo_exchange(server_context):
    listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    listener.bind(("127.0.0.1", 0))
    listener.listen(1)
    port = listener.getsockname()[1]
    received = []

    def serve():
        conn, _ = listener.accept()
        with server_context.wrap_socket(conn, server_side=True) as tls:
            data = tls.recv(1024)
            received.append(data)
            tls.sendall(data)

    server = threading.Thread(target=serve, daemon=True)
    server.start()

    output = io.StringIO()
    result = {}
    with _pipe_with(b"hello\n") as stdin:
        client = threading.Thread(
            target=lambda: result.setdefault(
                "code", run_client("127.0.0.1", port, stdin, output)
            ),
            daemon=True,
        )
        client.start()
        client.join(timeout=20)
        server.join(timeout=20)
    listener.close()

    assert not client.is_alive()
    assert result["code"] == 0
    assert received == [b"hello\n"]
    text = output.getvalue()
    assert text.startswith("socket connected\n")
    assert "Message of 6 bytes: hello\n" in text