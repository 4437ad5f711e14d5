"""Information about peers known to a chat node."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from .connection import Connection


class PeerState(enum.Enum):
    DISCOVERED = "discovered"
    DIALING = "dialing"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"


@dataclass(eq=False)
class Peer:
    """Represents another chat node on the segment."""

    display_name: str
    address: str
    stream_port: int
    connection: Optional[Connection] = field(default=None, repr=False)
    state: PeerState = PeerState.DISCOVERED

    @property
    def key(self) -> tuple[str, int]:
        return self.address, self.stream_port

    @property
    def connected(self) -> bool:
        return self.connection is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "display_name": self.display_name,
            "address": self.address,
            "stream_port": self.stream_port,
            "state": self.state.value,
        }
