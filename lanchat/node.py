"""Chat node tying discovery, connections and broadcast together."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from .config import NodeConfig
from .connections import ConnectionManager
from .discovery import DiscoveryBeacon
from .dispatcher import BroadcastDispatcher
from .event_log import EventLog, Sink
from .heartbeat import Heartbeat
from .network import Peer
from .peer_registry import PeerRegistry
from .tasks import TaskGroup


class ChatNode:
    """One running chat participant.

    The node owns its registry, sockets and worker threads.  Nothing is
    opened until :meth:`start`; :meth:`stop` closes every socket, empties the
    registry and joins the workers.
    """

    def __init__(self, config: NodeConfig, *, log_sink: Optional[Sink] = None) -> None:
        self.config = config
        self.events = EventLog(log_sink)
        self.registry = PeerRegistry()
        self.tasks = TaskGroup(f"node-{config.local_address}")
        self.connections = ConnectionManager(config, self.registry, self.events, self.tasks)
        self.beacon = DiscoveryBeacon(
            config, self.registry, self.events, self.tasks, self.connections.dial
        )
        self.dispatcher = BroadcastDispatcher(
            self.registry,
            self.events,
            self.connections.teardown,
            max_frame_size=config.max_frame_size,
        )
        self.heartbeat = Heartbeat(config.heartbeat_interval, self.beacon.announce, self.tasks)
        self._started = False
        self._stopped = False
        self.logger = logging.getLogger(self.__class__.__name__)

    @property
    def display_name(self) -> str:
        return self.config.display_name

    @property
    def local_address(self) -> str:
        return self.config.local_address

    @property
    def running(self) -> bool:
        return self._started and not self._stopped

    # lifecycle -----------------------------------------------------------
    def start(self) -> None:
        if self._started:
            raise RuntimeError("node already started")
        self.beacon.open()
        try:
            self.connections.open()
        except OSError:
            self.beacon.close()
            raise
        self._started = True
        self.tasks.spawn(self.beacon.listen_loop, name="discovery")
        self.tasks.spawn(self.connections.accept_loop, name="accept")
        self.tasks.spawn(self.heartbeat.run, name="heartbeat")
        self.beacon.announce()
        self.logger.debug(
            "%s started on %s (discovery %d, stream %d)",
            self.display_name,
            self.local_address,
            self.config.discovery_port,
            self.config.stream_port,
        )

    def stop(self) -> None:
        if self._stopped:
            return
        self._stopped = True
        self.tasks.stop()
        self.beacon.close()
        self.connections.close()
        self.registry.close()
        self.tasks.join(self.config.join_timeout)
        self.logger.debug("%s stopped", self.display_name)

    def __enter__(self) -> "ChatNode":
        self.start()
        return self

    def __exit__(self, *exc: object) -> None:
        self.stop()

    # messaging -----------------------------------------------------------
    def broadcast(self, message: str) -> int:
        return self.dispatcher.broadcast(message)

    def peers(self) -> list[Peer]:
        return self.registry.snapshot()

    def status(self) -> Dict[str, Any]:
        return {
            "display_name": self.display_name,
            "address": self.local_address,
            "discovery_port": self.config.discovery_port,
            "stream_port": self.config.stream_port,
            "running": self.running,
            "peers": [peer.to_dict() for peer in self.peers()],
        }


__all__ = ["ChatNode"]
