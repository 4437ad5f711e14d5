"""Socket-level building blocks for chat nodes."""

from .addressing import compute_broadcast_address, parse_address, peer_key
from .connection import Connection, supersedes
from .framing import FrameError, encode_frame, recv_frame
from .peer import Peer, PeerState

__all__ = [
    "compute_broadcast_address",
    "parse_address",
    "peer_key",
    "Connection",
    "supersedes",
    "FrameError",
    "encode_frame",
    "recv_frame",
    "Peer",
    "PeerState",
]
