"""Fan-out of locally authored messages to every connected peer."""

from __future__ import annotations

import logging
from typing import Callable

from .event_log import EventLog
from .network import Connection, FrameError, Peer, encode_frame
from .peer_registry import PeerRegistry

logger = logging.getLogger(__name__)


class BroadcastDispatcher:
    def __init__(
        self,
        registry: PeerRegistry,
        events: EventLog,
        teardown: Callable[[Peer, Connection], object],
        *,
        max_frame_size: int,
    ) -> None:
        self.registry = registry
        self.events = events
        self.teardown = teardown
        self.max_frame_size = max_frame_size

    def broadcast(self, message: str) -> int:
        """Write ``message`` to every connected peer.

        Returns the number of peers the frame was written to.  Peers whose
        write fails are torn down.
        """

        if not message:
            return 0
        self.events.log(f"You: {message}")
        try:
            frame = encode_frame(message.encode("utf-8"), self.max_frame_size)
        except FrameError as exc:
            self.events.log(f"Error sending message: {exc}")
            return 0

        sent = 0
        for peer in self.registry.snapshot():
            connection = peer.connection
            if connection is None:
                continue
            try:
                connection.write(frame)
            except OSError as exc:
                logger.debug("write to %s failed: %s", peer.address, exc)
                self.teardown(peer, connection)
                continue
            sent += 1
        return sent


__all__ = ["BroadcastDispatcher"]
