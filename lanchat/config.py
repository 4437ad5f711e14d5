"""Configuration constants for LAN chat nodes."""

from __future__ import annotations

from dataclasses import dataclass

from .network.addressing import parse_address
from .network.framing import MAX_FRAME_SIZE

# Well-known ports.  Every node on a segment must agree on both: the stream
# port is part of the canonical peer key.
DEFAULT_DISCOVERY_PORT = 4545
DEFAULT_STREAM_PORT = 4546

# Timing (seconds)
HEARTBEAT_INTERVAL = 5.0
CONNECT_TIMEOUT = 2.0
HANDSHAKE_TIMEOUT = 5.0
POLL_INTERVAL = 0.5
JOIN_TIMEOUT = 2.0
# Bound on writing one frame to a peer that has stopped reading.
SEND_TIMEOUT = 5.0
# How long a stream the far end closed waits to be replaced by a
# simultaneous dial before the peer counts as gone.
SETTLE_TIMEOUT = 1.0

# Announcements longer than DATAGRAM_SIZE bytes are truncated by the receiver.
DATAGRAM_SIZE = 1024


def _check_port(name: str, value: int) -> None:
    if not isinstance(value, int) or not 0 <= value <= 65535:
        raise ValueError(f"{name} must be an integer in 0..65535, got {value!r}")


@dataclass
class NodeConfig:
    """Startup parameters of a single chat node."""

    local_address: str
    display_name: str
    discovery_port: int = DEFAULT_DISCOVERY_PORT
    stream_port: int = DEFAULT_STREAM_PORT
    heartbeat_interval: float = HEARTBEAT_INTERVAL
    connect_timeout: float = CONNECT_TIMEOUT
    handshake_timeout: float = HANDSHAKE_TIMEOUT
    poll_interval: float = POLL_INTERVAL
    join_timeout: float = JOIN_TIMEOUT
    send_timeout: float = SEND_TIMEOUT
    settle_timeout: float = SETTLE_TIMEOUT
    datagram_size: int = DATAGRAM_SIZE
    max_frame_size: int = MAX_FRAME_SIZE

    def __post_init__(self) -> None:
        self.local_address = parse_address(self.local_address)
        if not self.display_name:
            raise ValueError("display name must not be empty")
        _check_port("discovery_port", self.discovery_port)
        _check_port("stream_port", self.stream_port)
        if self.heartbeat_interval <= 0:
            raise ValueError("heartbeat interval must be positive")
        if self.send_timeout <= 0:
            raise ValueError("send timeout must be positive")


__all__ = [
    "DEFAULT_DISCOVERY_PORT",
    "DEFAULT_STREAM_PORT",
    "HEARTBEAT_INTERVAL",
    "CONNECT_TIMEOUT",
    "HANDSHAKE_TIMEOUT",
    "POLL_INTERVAL",
    "JOIN_TIMEOUT",
    "SEND_TIMEOUT",
    "SETTLE_TIMEOUT",
    "DATAGRAM_SIZE",
    "MAX_FRAME_SIZE",
    "NodeConfig",
]
