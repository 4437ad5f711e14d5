import pytest

from lanchat.network import compute_broadcast_address, parse_address, peer_key


@pytest.mark.parametrize("local", ["127.0.0.1", "127.0.0.2", "127.1.2.3"])
def test_loopback_uses_limited_broadcast(local):
    assert compute_broadcast_address(local) == "255.255.255.255"


@pytest.mark.parametrize(
    "local,expected",
    [
        ("192.168.1.23", "192.168.1.255"),
        ("10.0.0.7", "10.0.0.255"),
        ("172.16.4.255", "172.16.4.255"),
    ],
)
def test_last_octet_replaced(local, expected):
    assert compute_broadcast_address(local) == expected


def test_broadcast_address_is_pure():
    assert compute_broadcast_address("192.168.7.9") == compute_broadcast_address("192.168.7.9")


@pytest.mark.parametrize("text", ["not-an-ip", "256.1.1.1", "::1", ""])
def test_parse_address_rejects_invalid(text):
    with pytest.raises(ValueError):
        parse_address(text)


def test_peer_key_is_canonical():
    assert peer_key(" 192.168.1.5", 4546) == ("192.168.1.5", 4546)
    assert peer_key("192.168.1.5", "4546") == peer_key("192.168.1.5", 4546)
