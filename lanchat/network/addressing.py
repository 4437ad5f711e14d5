"""Address helpers for LAN discovery."""

from __future__ import annotations

import ipaddress

LIMITED_BROADCAST = "255.255.255.255"


def parse_address(text: str) -> str:
    """Return the canonical form of IPv4 address ``text``.

    Raises :class:`ValueError` when ``text`` is not an IPv4 address.
    """

    try:
        return str(ipaddress.IPv4Address(str(text).strip()))
    except ipaddress.AddressValueError as exc:
        raise ValueError(f"invalid IPv4 address: {text!r}") from exc


def compute_broadcast_address(local: str) -> str:
    """Return the broadcast address used to announce from ``local``.

    Loopback addresses map to the limited broadcast address.  Anything else
    is assumed to live on a /24 network and gets its last octet set to 255.
    """

    addr = ipaddress.IPv4Address(local)
    if addr.is_loopback:
        return LIMITED_BROADCAST
    octets = addr.packed[:3] + b"\xff"
    return str(ipaddress.IPv4Address(octets))


def peer_key(host: str, stream_port: int) -> tuple[str, int]:
    """Canonical registry key for the peer at ``host``."""

    return parse_address(host), int(stream_port)


def address_order(host: str) -> int:
    return int(ipaddress.IPv4Address(host))


__all__ = [
    "LIMITED_BROADCAST",
    "parse_address",
    "compute_broadcast_address",
    "peer_key",
    "address_order",
]
