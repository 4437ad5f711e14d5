"""Thread-safe registry of peers keyed by canonical address."""

from __future__ import annotations

import logging
import threading
from typing import Dict, Optional

from .network import Connection, Peer, PeerState, supersedes

logger = logging.getLogger(__name__)

PeerKey = tuple[str, int]


class PeerRegistry:
    """Mapping of ``(address, stream_port)`` to :class:`Peer`.

    Every operation runs under a single lock, so callers never observe a
    half-applied change.  A key maps to at most one record and a record
    holds at most one connection.
    """

    def __init__(self) -> None:
        self._peers: Dict[PeerKey, Peer] = {}
        self._lock = threading.Lock()
        self._closed = False

    def __len__(self) -> int:
        with self._lock:
            return len(self._peers)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._peers

    @property
    def closed(self) -> bool:
        return self._closed

    def add(self, peer: Peer) -> bool:
        """Insert ``peer`` unless its key is already taken."""
        with self._lock:
            if self._closed or peer.key in self._peers:
                return False
            self._peers[peer.key] = peer
            return True

    def get(self, key: PeerKey) -> Optional[Peer]:
        with self._lock:
            return self._peers.get(key)

    def claim_dial(self, key: PeerKey) -> Optional[Peer]:
        """Mark a discovered, unconnected peer as being dialed."""
        with self._lock:
            peer = self._peers.get(key)
            if peer is None or peer.state is not PeerState.DISCOVERED:
                return None
            peer.state = PeerState.DIALING
            return peer

    def release_dial(self, key: PeerKey) -> None:
        """Return a peer whose dial failed to the discovered state."""
        with self._lock:
            peer = self._peers.get(key)
            if peer is not None and peer.state is PeerState.DIALING:
                peer.state = PeerState.DISCOVERED

    def attach(
        self,
        key: PeerKey,
        connection: Connection,
        *,
        display_name: str | None = None,
        create: bool = False,
    ) -> tuple[Optional[Peer], Optional[Connection]]:
        """Attach ``connection`` to the peer stored under ``key``.

        Returns ``(peer, displaced)``.  ``peer`` is ``None`` when the
        connection lost to the one already attached (or the key is unknown
        and ``create`` is false); the caller then owns closing it.
        ``displaced`` is the previously attached connection, if the new one
        replaced it.
        """

        with self._lock:
            if self._closed:
                return None, None
            peer = self._peers.get(key)
            if peer is None:
                if not create:
                    return None, None
                address, stream_port = key
                peer = Peer(
                    display_name or address,
                    address,
                    stream_port,
                    connection=connection,
                    state=PeerState.CONNECTED,
                )
                self._peers[key] = peer
                return peer, None

            current = peer.connection
            if current is not None and not supersedes(connection, current):
                logger.debug("keeping %r, rejecting %r", current, connection)
                return None, None
            peer.connection = connection
            peer.state = PeerState.CONNECTED
            if display_name:
                peer.display_name = display_name
            return peer, current

    def remove(self, key: PeerKey, connection: Connection | None = None) -> Optional[Peer]:
        """Remove and return the peer under ``key``.

        When ``connection`` is given the peer is only removed while that
        connection is still the attached one.
        """

        with self._lock:
            peer = self._peers.get(key)
            if peer is None:
                return None
            if connection is not None and peer.connection is not connection:
                return None
            del self._peers[key]
            peer.state = PeerState.DISCONNECTED
            return peer

    def holds(self, key: PeerKey, connection: Connection) -> bool:
        """``True`` while ``connection`` is the one attached under ``key``."""
        with self._lock:
            peer = self._peers.get(key)
            return peer is not None and peer.connection is connection

    def snapshot(self) -> list[Peer]:
        with self._lock:
            return list(self._peers.values())

    def close(self) -> list[Peer]:
        """Close every contained connection and empty the registry."""
        with self._lock:
            self._closed = True
            peers = list(self._peers.values())
            self._peers.clear()
            connections = []
            for peer in peers:
                peer.state = PeerState.DISCONNECTED
                if peer.connection is not None:
                    connections.append(peer.connection)
        for connection in connections:
            connection.close()
        return peers


__all__ = ["PeerRegistry", "PeerKey"]
