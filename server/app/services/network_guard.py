"""Private-network checks applied to webhook hosts before delivery."""
from __future__ import annotations

import ipaddress
import socket
from typing import Callable

PRIVATE_NETWORKS = (
    ipaddress.ip_network("10.0.0.0/8"),
    ipaddress.ip_network("172.16.0.0/12"),
    ipaddress.ip_network("192.168.0.0/16"),
    ipaddress.ip_network("127.0.0.0/8"),
)

Resolver = Callable[[str], list[str]]


def is_private_ip(ip: str) -> bool:
    """Return True when ``ip`` is a literal inside a private or loopback range.

    IPv4-mapped IPv6 literals (``::ffff:10.0.0.1``) are checked as their IPv4
    address; ``::1`` counts as loopback. Anything that is not an IP literal
    returns False.
    """
    try:
        address = ipaddress.ip_address(ip.strip().strip("[]"))
    except ValueError:
        return False

    if isinstance(address, ipaddress.IPv6Address):
        if address.ipv4_mapped is None:
            return address.is_loopback
        address = address.ipv4_mapped

    return any(address in network for network in PRIVATE_NETWORKS)


def resolve_host(host: str) -> list[str]:
    """Resolve a host name to every address it points at.

    Raises:
        OSError: If name resolution fails
    """
    infos = socket.getaddrinfo(host, None, proto=socket.IPPROTO_TCP)
    return sorted({str(info[4][0]) for info in infos})


def find_private_address(host: str, resolver: Resolver = resolve_host) -> str | None:
    """Return the first private address ``host`` resolves to, or None.

    Literal IPs are checked directly without a lookup.
    """
    if is_private_ip(host):
        return host
    try:
        ipaddress.ip_address(host.strip("[]"))
    except ValueError:
        pass
    else:
        return None

    for address in resolver(host):
        if is_private_ip(address):
            return address
    return None
