"""Owned stream connection to a single peer."""

from __future__ import annotations

import socket
import threading
from typing import Optional

from .addressing import address_order
from .framing import MAX_FRAME_SIZE, encode_frame, recv_frame


class Connection:
    """A connected TCP socket with serialized writes.

    ``initiator`` is the address of the side that dialed.  It is what
    :func:`supersedes` compares when both sides dial each other at once.

    The socket timeout bounds every write.  Reads share it, so a single
    reader sees ``socket.timeout`` while the peer is idle; a frame cut short
    by one is resumed on the next :meth:`recv_frame`.
    """

    def __init__(
        self,
        sock: socket.socket,
        *,
        initiator: str,
        remote_address: str,
        max_frame_size: int = MAX_FRAME_SIZE,
    ) -> None:
        self._sock = sock
        self.initiator = initiator
        self.remote_address = remote_address
        self.max_frame_size = max_frame_size
        self._write_lock = threading.Lock()
        self._close_lock = threading.Lock()
        self._closed = False
        self._pending = bytearray()

    @property
    def closed(self) -> bool:
        return self._closed

    def settimeout(self, timeout: float | None) -> None:
        self._sock.settimeout(timeout)

    def write(self, frame: bytes) -> None:
        """Write an already encoded frame in full."""
        with self._write_lock:
            self._sock.sendall(frame)

    def send_frame(self, payload: bytes) -> None:
        self.write(encode_frame(payload, self.max_frame_size))

    def recv_frame(self) -> Optional[bytes]:
        return recv_frame(self._sock, self.max_frame_size, self._pending)

    def close(self) -> None:
        """Close the socket, waking any thread blocked reading it."""
        with self._close_lock:
            if self._closed:
                return
            self._closed = True
        try:
            self._sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass
        self._sock.close()

    def __repr__(self) -> str:
        state = "closed" if self._closed else "open"
        return f"Connection(remote={self.remote_address}, initiator={self.initiator}, {state})"


def supersedes(new: Connection, current: Connection) -> bool:
    """Return ``True`` if ``new`` should replace ``current`` for one peer.

    A reconnect from the same initiator replaces the old stream.  Between
    two simultaneous dials, the stream dialed by the lower address wins on
    both ends.
    """

    if new.initiator == current.initiator:
        return True
    return address_order(new.initiator) < address_order(current.initiator)


__all__ = ["Connection", "supersedes"]
