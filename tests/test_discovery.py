import socket
import threading

import pytest

from lanchat.config import NodeConfig
from lanchat.discovery import DiscoveryBeacon
from lanchat.event_log import EventLog
from lanchat.heartbeat import Heartbeat
from lanchat.network import PeerState
from lanchat.peer_registry import PeerRegistry
from lanchat.tasks import TaskGroup


class RecordingDial:
    def __init__(self, registry, succeed=False):
        self.registry = registry
        self.succeed = succeed
        self.calls = []
        self._lock = threading.Lock()

    def __call__(self, peer):
        with self._lock:
            self.calls.append(peer.address)
        if not self.succeed:
            self.registry.release_dial(peer.key)


@pytest.fixture
def beacon_parts(sink, free_port):
    config = NodeConfig("127.0.0.1", "Alice", discovery_port=free_port(), stream_port=4546, poll_interval=0.05)
    registry = PeerRegistry()
    tasks = TaskGroup("test")
    dial = RecordingDial(registry)
    beacon = DiscoveryBeacon(config, registry, EventLog(sink), tasks, dial)
    yield beacon, registry, dial, tasks
    tasks.stop()
    beacon.close()
    tasks.join(1.0)


def test_self_announcement_is_discarded(beacon_parts):
    beacon, registry, dial, _ = beacon_parts
    assert beacon.handle_announcement(b"Alice", "127.0.0.1") is None
    assert len(registry) == 0
    assert dial.calls == []


def test_new_peer_registered_and_dialed(beacon_parts, sink, wait_until):
    beacon, registry, dial, _ = beacon_parts
    peer = beacon.handle_announcement("Bób".encode("utf-8"), "10.1.1.7")
    assert peer is not None
    assert peer.key == ("10.1.1.7", 4546)
    assert wait_until(lambda: dial.calls == ["10.1.1.7"])
    assert "Discovered new peer: Bób (10.1.1.7)" in sink.messages()


def test_repeated_announcement_dials_once_while_in_flight(beacon_parts, wait_until):
    beacon, registry, dial, _ = beacon_parts
    release = threading.Event()
    recording = beacon.dial

    def _slow_dial(peer):
        release.wait(2.0)
        recording(peer)

    beacon.dial = _slow_dial
    assert beacon.handle_announcement(b"Bob", "10.1.1.7") is not None
    assert beacon.handle_announcement(b"Bob", "10.1.1.7") is None
    assert registry.get(("10.1.1.7", 4546)).state is PeerState.DIALING
    release.set()
    assert wait_until(lambda: dial.calls == ["10.1.1.7"])
    assert len(registry) == 1


def test_failed_dial_retried_on_next_announcement(beacon_parts, sink, wait_until):
    beacon, registry, dial, _ = beacon_parts
    key = ("10.1.1.7", 4546)
    beacon.handle_announcement(b"Bob", "10.1.1.7")
    assert wait_until(lambda: registry.get(key).state is PeerState.DISCOVERED and len(dial.calls) == 1)

    beacon.handle_announcement(b"Bob", "10.1.1.7")
    assert wait_until(lambda: len(dial.calls) == 2)
    assert sink.count("Discovered new peer: Bob (10.1.1.7)") == 1
    assert len(registry) == 1


def test_announce_without_socket_logs_error(beacon_parts, sink):
    beacon, *_ = beacon_parts
    assert beacon.announce() is False
    assert sink.messages()[0].startswith("Error broadcasting presence:")


def test_announce_failure_is_swallowed(beacon_parts, sink):
    beacon, *_ = beacon_parts

    class BrokenSocket:
        def sendto(self, data, addr):
            raise PermissionError("broadcast not permitted")

    beacon.sender = BrokenSocket()
    assert beacon.announce() is False
    beacon.sender = None
    assert "broadcast not permitted" in sink.messages()[0]


def test_announce_sends_display_name(beacon_parts):
    beacon, registry, *_ = beacon_parts
    beacon.open()
    assert beacon.broadcast_address == "255.255.255.255"
    assert beacon.announce()
    data, addr = beacon.sock.recvfrom(1024)
    assert data == b"Alice"
    assert beacon.handle_announcement(data, addr[0]) is None
    assert len(registry) == 0


def test_broadcast_reaches_every_beacon_on_the_port(beacon_parts, second_loopback, sink):
    beacon, registry, dial, tasks = beacon_parts
    config = NodeConfig(
        second_loopback, "Bob", discovery_port=beacon.config.discovery_port, poll_interval=0.05
    )
    other = DiscoveryBeacon(config, PeerRegistry(), EventLog(sink), tasks, dial)
    beacon.open()
    try:
        other.open()
        assert other.announce()
        for sock in (beacon.sock, other.sock):
            data, addr = sock.recvfrom(1024)
            assert (data, addr[0]) == (b"Bob", second_loopback)
    finally:
        other.close()


def test_listen_loop_discovers_sender(beacon_parts, second_loopback, wait_until):
    beacon, registry, dial, tasks = beacon_parts
    beacon.open()
    tasks.spawn(beacon.listen_loop)

    sender = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    try:
        sender.bind((second_loopback, 0))
        sender.sendto(b"Bob", ("127.0.0.1", beacon.config.discovery_port))
        assert wait_until(lambda: dial.calls == [second_loopback])
    finally:
        sender.close()
    assert registry.get((second_loopback, 4546)).display_name == "Bob"


def test_listen_loop_exits_quietly_on_stop(beacon_parts, sink):
    beacon, registry, dial, tasks = beacon_parts
    beacon.open()
    thread = tasks.spawn(beacon.listen_loop)
    tasks.stop()
    beacon.close()
    thread.join(2.0)
    assert not thread.is_alive()
    assert sink.lines == []


def test_heartbeat_announces_until_stopped(wait_until):
    tasks = TaskGroup("hb")
    calls = []
    heartbeat = Heartbeat(0.01, lambda: calls.append(1), tasks)
    thread = tasks.spawn(heartbeat.run)
    assert wait_until(lambda: len(calls) >= 3)
    tasks.stop()
    thread.join(1.0)
    assert not thread.is_alive()
    assert heartbeat.beats == len(calls)
