"""Per-client connection handling with bounded reads."""

from __future__ import annotations

import socket
from enum import Enum
from typing import Any

from .logging_setup import get_logger


ACK_REPLY = b"I got your message"

log = get_logger("connection")


class ConnectionState(str, Enum):
    LISTENING = "Listening"
    ACCEPTED = "Accepted"
    READING = "Reading"
    RESPONDING = "Responding"
    CLOSED = "Closed"


class ConnectionHandler:
    """Owns one accepted stream socket.

    ``read_message`` waits at most ``read_timeout_s``; a timeout returns
    ``None`` with the connection still open. EOF or an I/O error moves the
    handler to ``CLOSED``.
    """

    def __init__(
        self,
        sock: socket.socket,
        address: Any = None,
        read_timeout_s: float = 0.1,
        recv_size: int = 1810,
    ) -> None:
        self.sock = sock
        self.address = address
        self.read_timeout_s = read_timeout_s
        self.recv_size = recv_size
        self.state = ConnectionState.ACCEPTED
        self.messages = 0
        self.sock.settimeout(read_timeout_s)

    @property
    def closed(self) -> bool:
        return self.state is ConnectionState.CLOSED

    @property
    def peer(self) -> str:
        if isinstance(self.address, tuple) and len(self.address) >= 2:
            return f"{self.address[0]}:{self.address[1]}"
        return str(self.address)

    def read_message(self) -> bytes | None:
        if self.closed:
            return None
        self.state = ConnectionState.READING
        try:
            data = self.sock.recv(self.recv_size)
        except socket.timeout:
            return None
        except OSError as exc:
            log.warning(f"read error from {self.peer}: {exc}", extra={"event": "read_error", "peer": self.peer})
            self.close()
            return None

        if not data:
            log.info(f"client {self.peer} disconnected", extra={"event": "client_eof", "peer": self.peer})
            self.close()
            return None

        self.messages += 1
        self.state = ConnectionState.RESPONDING
        return data

    def acknowledge(self) -> int:
        if self.closed:
            return 0
        try:
            self.sock.sendall(ACK_REPLY)
        except OSError as exc:
            log.warning(f"write error to {self.peer}: {exc}", extra={"event": "write_error", "peer": self.peer})
            self.close()
            return 0
        self.state = ConnectionState.READING
        return len(ACK_REPLY)

    def close(self) -> None:
        if self.state is ConnectionState.CLOSED:
            return
        self.state = ConnectionState.CLOSED
        try:
            self.sock.close()
        except OSError:
            log.debug("socket close failed", exc_info=True)
