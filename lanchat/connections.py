"""Stream connections between chat nodes: accept, dial, pump, teardown."""

from __future__ import annotations

import logging
import socket
import time
from typing import Optional

from .config import NodeConfig
from .event_log import EventLog
from .network import Connection, FrameError, Peer, parse_address, peer_key
from .network.addressing import address_order
from .peer_registry import PeerRegistry
from .tasks import TaskGroup

logger = logging.getLogger(__name__)


class ConnectionManager:
    """Accepts inbound streams, dials discovered peers and pumps messages.

    Both directions end in the registry through :meth:`PeerRegistry.attach`
    and leave it through :meth:`teardown`.
    """

    def __init__(
        self,
        config: NodeConfig,
        registry: PeerRegistry,
        events: EventLog,
        tasks: TaskGroup,
    ) -> None:
        self.config = config
        self.registry = registry
        self.events = events
        self.tasks = tasks
        self.listener: socket.socket | None = None

    # listener ------------------------------------------------------------
    def open(self) -> None:
        server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            server.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            server.bind((self.config.local_address, self.config.stream_port))
            server.listen()
            server.settimeout(self.config.poll_interval)
        except OSError:
            server.close()
            raise
        self.listener = server

    def close(self) -> None:
        server, self.listener = self.listener, None
        if server is not None:
            server.close()

    def accept_loop(self) -> None:
        while not self.tasks.stopping:
            server = self.listener
            if server is None:
                break
            try:
                sock, addr = server.accept()
            except socket.timeout:
                continue
            except OSError as exc:
                if self.tasks.stopping:
                    break
                self.events.log(f"Error accepting connection: {exc}")
                continue
            if self.tasks.spawn(self.handle_inbound, sock, addr, name=f"inbound-{addr[0]}") is None:
                sock.close()

    # handshake -----------------------------------------------------------
    def handle_inbound(self, sock: socket.socket, addr: tuple[str, int]) -> Optional[Peer]:
        """Read the dialer's name and register the connection."""

        address = parse_address(addr[0])
        connection = Connection(
            sock,
            initiator=address,
            remote_address=address,
            max_frame_size=self.config.max_frame_size,
        )
        try:
            connection.settimeout(self.config.handshake_timeout)
            frame = connection.recv_frame()
            connection.settimeout(self.config.send_timeout)
        except (OSError, FrameError) as exc:
            self.events.log(f"Error handling connection from {address}: {exc}")
            connection.close()
            return None
        if not frame:
            connection.close()
            return None

        username = frame.decode("utf-8", errors="replace")
        key = peer_key(address, self.config.stream_port)
        peer, displaced = self.registry.attach(key, connection, display_name=username, create=True)
        if peer is None:
            logger.debug("duplicate connection from %s closed", address)
            connection.close()
            return None
        self._established(peer, connection, displaced)
        return peer

    def dial(self, peer: Peer) -> bool:
        """Open the outbound stream to ``peer`` and send our name."""

        target = (peer.address, self.config.stream_port)
        try:
            sock = socket.create_connection(
                target,
                timeout=self.config.connect_timeout,
                source_address=(self.config.local_address, 0),
            )
        except socket.timeout:
            self.events.log(f"Connection timeout to {peer.display_name} ({peer.address})")
            self.registry.release_dial(peer.key)
            return False
        except OSError as exc:
            self.events.log(f"Error establishing connection to {peer.display_name}: {exc}")
            self.registry.release_dial(peer.key)
            return False

        connection = Connection(
            sock,
            initiator=self.config.local_address,
            remote_address=peer.address,
            max_frame_size=self.config.max_frame_size,
        )
        try:
            connection.settimeout(self.config.send_timeout)
            connection.send_frame(self.config.display_name.encode("utf-8"))
        except (OSError, FrameError) as exc:
            self.events.log(f"Error establishing connection to {peer.display_name}: {exc}")
            connection.close()
            self.registry.release_dial(peer.key)
            return False

        attached, displaced = self.registry.attach(peer.key, connection)
        if attached is None:
            logger.debug("outbound connection to %s superseded", peer.address)
            connection.close()
            self.registry.release_dial(peer.key)
            return False
        self._established(attached, connection, displaced)
        return True

    def _established(self, peer: Peer, connection: Connection, displaced: Connection | None) -> None:
        if displaced is not None:
            logger.debug("replacing %r with %r", displaced, connection)
            displaced.close()
        else:
            self.events.log(f"Peer connected: {peer.display_name} ({peer.address})")
        if self.tasks.spawn(self.read_pump, peer, connection, name=f"pump-{peer.address}") is None:
            self.teardown(peer, connection)

    # pump ----------------------------------------------------------------
    def read_pump(self, peer: Peer, connection: Connection) -> None:
        settle = True
        try:
            while not self.tasks.stopping:
                try:
                    frame = connection.recv_frame()
                except socket.timeout:
                    continue
                if frame is None:
                    break
                if frame:
                    text = frame.decode("utf-8", errors="replace")
                    self.events.log(f"{peer.display_name}: {text}")
        except FrameError as exc:
            settle = False
            logger.debug("bad frame from %s: %s", peer.address, exc)
        except OSError as exc:
            logger.debug("read from %s failed: %s", peer.address, exc)
        finally:
            if settle and self._replaceable(connection):
                self._await_replacement(peer, connection)
            self.teardown(peer, connection)

    def _replaceable(self, connection: Connection) -> bool:
        """Whether a stream dialed by the other side could supersede ``connection``."""
        pair = (self.config.local_address, connection.remote_address)
        return connection.initiator != min(pair, key=address_order)

    def _await_replacement(self, peer: Peer, connection: Connection) -> None:
        # The far end closes the losing stream of a simultaneous dial as soon
        # as it holds the winner, which may not have reached us yet.
        deadline = time.monotonic() + self.config.settle_timeout
        while self.registry.holds(peer.key, connection):
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return
            if self.tasks.wait(min(remaining, self.config.poll_interval)):
                return

    def teardown(self, peer: Peer, connection: Connection) -> bool:
        """Unregister ``peer`` and close ``connection``.

        Only the first caller for a given connection removes the record and
        logs the disconnect.
        """

        removed = self.registry.remove(peer.key, connection)
        connection.close()
        if removed is None:
            return False
        if not self.tasks.stopping:
            self.events.log(f"Peer disconnected: {removed.display_name} ({removed.address})")
        return True


__all__ = ["ConnectionManager"]
