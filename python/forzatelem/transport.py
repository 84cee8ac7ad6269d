"""UDP transport for Forza "Data Out" datagrams."""

from __future__ import annotations

import logging
import socket
from typing import Protocol

logger = logging.getLogger(__name__)

DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 43110
MAX_DATAGRAM = 1500


class TransportError(OSError):
    """Socket bind or receive failure."""


class Transport(Protocol):
    """Datagram source interface."""

    def read(self) -> tuple[bytes, tuple[str, int] | None]: ...
    def close(self) -> None: ...


class UDPTransport:
    """Bound UDP socket handing out one datagram per :meth:`read`."""

    def __init__(self, host: str = DEFAULT_HOST, port: int = DEFAULT_PORT,
                 bufsize: int = MAX_DATAGRAM, timeout: float | None = 1.0):
        self.bufsize = bufsize
        self._sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        try:
            self._sock.bind((host, port))
        except OSError as e:
            self._sock.close()
            raise TransportError(f"cannot bind {host}:{port}: {e}") from e
        self._sock.settimeout(timeout)

    @property
    def address(self) -> tuple[str, int]:
        return self._sock.getsockname()

    def read(self) -> tuple[bytes, tuple[str, int] | None]:
        """Receive one datagram; ``(b"", None)`` if the timeout expires first."""
        try:
            return self._sock.recvfrom(self.bufsize)
        except socket.timeout:
            return b"", None
        except OSError as e:
            raise TransportError(f"error reading UDP data: {e}") from e

    def close(self) -> None:
        self._sock.close()

    def __enter__(self) -> UDPTransport:
        return self

    def __exit__(self, *exc) -> None:
        self.close()


def get_outbound_ip() -> str:
    """Address of the interface used for outbound traffic.

    Connecting a UDP socket sends nothing; the destination does not need to
    exist.
    """
    with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as s:
        try:
            s.connect(("1.2.3.4", 4321))
        except OSError as e:
            logger.warning("no outbound route (%s), assuming loopback", e)
            return "127.0.0.1"
        return s.getsockname()[0]
