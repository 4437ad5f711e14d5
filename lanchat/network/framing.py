"""Length-prefixed framing for chat streams.

Every frame is a 4-byte big-endian payload length followed by the payload.
The first frame on a connection carries the dialer's display name, every
later frame one chat message.
"""

from __future__ import annotations

import socket
import struct
from typing import Optional

HEADER = struct.Struct(">I")
MAX_FRAME_SIZE = 1024 * 1024  # 1MB


class FrameError(ValueError):
    """Raised for frames that violate the size limit."""


def encode_frame(payload: bytes, max_size: int = MAX_FRAME_SIZE) -> bytes:
    if len(payload) > max_size:
        raise FrameError(f"frame of {len(payload)} bytes exceeds limit of {max_size}")
    return HEADER.pack(len(payload)) + payload


def _missing(pending: bytearray, max_size: int) -> int:
    if len(pending) < HEADER.size:
        return HEADER.size - len(pending)
    (length,) = HEADER.unpack_from(pending)
    if length > max_size:
        raise FrameError(f"announced frame of {length} bytes exceeds limit of {max_size}")
    return HEADER.size + length - len(pending)


def recv_frame(
    sock: socket.socket,
    max_size: int = MAX_FRAME_SIZE,
    pending: Optional[bytearray] = None,
) -> Optional[bytes]:
    """Return the next frame payload from ``sock``.

    ``None`` means the peer closed the stream, either cleanly between frames
    or in the middle of one.  Oversized length prefixes raise
    :class:`FrameError` before any payload is read.

    Bytes of an incomplete frame are kept in ``pending``.  When a socket
    timeout interrupts the read, calling again with the same buffer resumes
    the frame.  Nothing past the current frame is ever read.
    """

    buf = bytearray() if pending is None else pending
    while True:
        missing = _missing(buf, max_size)
        if missing == 0:
            payload = bytes(buf[HEADER.size:])
            del buf[:]
            return payload
        chunk = sock.recv(missing)
        if not chunk:
            return None
        buf.extend(chunk)


__all__ = ["HEADER", "MAX_FRAME_SIZE", "FrameError", "encode_frame", "recv_frame"]
