import socket
import time

import pytest

from lanchat import ChatNode, NodeConfig

from fakes import LineSink


def pytest_collection_modifyitems(config, items):
    """Automatically add a timeout to tests that open real sockets."""
    keywords = {"node", "connection", "discovery", "integration"}
    for item in items:
        path = str(item.fspath)
        name = item.name
        if any(k in path for k in keywords) or any(k in name for k in keywords):
            item.add_marker(pytest.mark.timeout(10))


def _loopback_available(address: str) -> bool:
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    try:
        sock.bind((address, 0))
    except OSError:
        return False
    finally:
        sock.close()
    return True


@pytest.fixture
def second_loopback() -> str:
    """Second loopback address, skipping where only 127.0.0.1 is bindable."""
    if not _loopback_available("127.0.0.2"):
        pytest.skip("127.0.0.2 is not bindable on this host")
    return "127.0.0.2"


@pytest.fixture
def free_port():
    """Return a callable yielding ports free for both TCP and UDP."""

    def _free_port() -> int:
        while True:
            tcp = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
            tcp.bind(("127.0.0.1", 0))
            port = tcp.getsockname()[1]
            udp = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
            try:
                udp.bind(("127.0.0.1", port))
            except OSError:
                continue
            finally:
                tcp.close()
                udp.close()
            return port

    return _free_port


@pytest.fixture
def sink() -> LineSink:
    return LineSink()


@pytest.fixture
def wait_until():
    def _wait(predicate, timeout: float = 3.0, interval: float = 0.02) -> bool:
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if predicate():
                return True
            time.sleep(interval)
        return predicate()

    return _wait


@pytest.fixture
def make_node(free_port):
    """Factory creating started nodes that stop on teardown.

    Nodes share the stream port.  With ``discover=True`` they also share the
    discovery port and find each other by broadcast; otherwise each gets a
    discovery port of its own and tests drive discovery by hand.
    """
    nodes: list[ChatNode] = []
    ports = {"discovery": free_port(), "stream": free_port()}

    def _make(
        address: str,
        name: str,
        *,
        sink=None,
        start: bool = True,
        discover: bool = False,
        **overrides,
    ) -> ChatNode:
        settings = dict(
            discovery_port=ports["discovery"] if discover else free_port(),
            stream_port=ports["stream"],
            heartbeat_interval=60.0,
            poll_interval=0.05,
            connect_timeout=1.0,
            handshake_timeout=1.0,
            settle_timeout=0.5,
        )
        settings.update(overrides)
        node = ChatNode(NodeConfig(address, name, **settings), log_sink=sink or LineSink())
        nodes.append(node)
        if start:
            node.start()
        return node

    yield _make
    for node in nodes:
        node.stop()
