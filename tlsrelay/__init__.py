"""TLS 1.3 echo server and client with a priority work queue and managed thread pool."""

__version__ = "0.1.0"