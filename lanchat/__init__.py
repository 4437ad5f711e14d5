from .config import NodeConfig
from .node import ChatNode
from .peer_registry import PeerRegistry

__all__ = [
    "NodeConfig",
    "ChatNode",
    "PeerRegistry",
]
