"""Broadcast-based peer discovery for chat nodes."""

from __future__ import annotations

import logging
import socket
from typing import Callable, Optional

from .config import NodeConfig
from .event_log import EventLog
from .network import Peer, compute_broadcast_address, parse_address, peer_key
from .peer_registry import PeerRegistry
from .tasks import TaskGroup

logger = logging.getLogger(__name__)


class DiscoveryBeacon:
    """Announces this node and reacts to announcements from others.

    Announcements are datagrams carrying nothing but the UTF-8 display name.
    The sender address comes from the transport.  Every newly seen address is
    registered and handed to ``dial`` in its own task.
    """

    def __init__(
        self,
        config: NodeConfig,
        registry: PeerRegistry,
        events: EventLog,
        tasks: TaskGroup,
        dial: Callable[[Peer], object],
    ) -> None:
        self.config = config
        self.registry = registry
        self.events = events
        self.tasks = tasks
        self.dial = dial
        self.broadcast_address = compute_broadcast_address(config.local_address)
        self.sock: socket.socket | None = None
        self.sender: socket.socket | None = None

    # sockets -------------------------------------------------------------
    def open(self) -> None:
        """Bind the receiving and sending datagram sockets.

        A socket bound to a unicast address never sees broadcasts, so
        announcements are received on the wildcard address.  Several nodes
        on one host share the discovery port through address reuse.
        Announcements leave from a socket bound to the local address, so
        the sender address others see is ``local_address``.
        """

        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        sender = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            if hasattr(socket, "SO_REUSEPORT"):
                try:
                    sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEPORT, 1)
                except OSError:
                    pass
            sock.bind(("", self.config.discovery_port))
            sock.settimeout(self.config.poll_interval)

            sender.setsockopt(socket.SOL_SOCKET, socket.SO_BROADCAST, 1)
            sender.bind((self.config.local_address, 0))
        except OSError:
            sock.close()
            sender.close()
            raise
        self.sock = sock
        self.sender = sender

    def close(self) -> None:
        sock, self.sock = self.sock, None
        sender, self.sender = self.sender, None
        for s in (sock, sender):
            if s is not None:
                s.close()

    # messaging -----------------------------------------------------------
    def announce(self) -> bool:
        """Broadcast the display name once.  Failures are logged, not raised."""

        payload = self.config.display_name.encode("utf-8")
        try:
            if self.sender is None:
                raise OSError("discovery socket is not open")
            self.sender.sendto(payload, (self.broadcast_address, self.config.discovery_port))
        except OSError as exc:
            self.events.log(f"Error broadcasting presence: {exc}")
            return False
        return True

    def handle_announcement(self, payload: bytes, sender: str) -> Optional[Peer]:
        """Register the announcing peer and dial it if it is not connected.

        Returns the peer a dial was started for, if any.
        """

        username = payload.decode("utf-8", errors="replace")
        address = parse_address(sender)
        if address == self.config.local_address:
            return None

        key = peer_key(address, self.config.stream_port)
        candidate = Peer(username, address, self.config.stream_port)
        if self.registry.add(candidate):
            self.events.log(f"Discovered new peer: {username} ({address})")

        peer = self.registry.claim_dial(key)
        if peer is None:
            return None
        if self.tasks.spawn(self.dial, peer, name=f"dial-{address}") is None:
            self.registry.release_dial(key)
            return None
        return peer

    def listen_loop(self) -> None:
        while not self.tasks.stopping:
            sock = self.sock
            if sock is None:
                break
            try:
                data, addr = sock.recvfrom(self.config.datagram_size)
            except socket.timeout:
                continue
            except OSError as exc:
                if self.tasks.stopping:
                    break
                self.events.log(f"Error receiving announcement: {exc}")
                continue
            try:
                self.handle_announcement(data, addr[0])
            except ValueError as exc:
                logger.debug("ignoring announcement from %s: %s", addr, exc)


__all__ = ["DiscoveryBeacon"]
