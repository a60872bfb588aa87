"""Local interface enumeration and low level TCP checks."""

import errno
import ipaddress
import logging
import socket

import psutil

from ..errors import InterfaceError, ScanAbortedError

logger = logging.getLogger(__name__)

# errno values that mean we have too many sockets open locally
_EXHAUSTION_ERRNOS = {errno.EMFILE, errno.ENFILE}

PRIVATE_NETWORKS = [
    ipaddress.IPv4Network("10.0.0.0/8"),
    ipaddress.IPv4Network("172.16.0.0/12"),
    ipaddress.IPv4Network("192.168.0.0/16"),
]


def is_private_ipv4(ip: ipaddress.IPv4Address) -> bool:
    """Whether ``ip`` is in one of the RFC 1918 private ranges."""
    return any(ip in network for network in PRIVATE_NETWORKS)


def get_private_ipv4_interfaces() -> dict[str, str]:
    """
    Find every interface that has a private IPv4 address.

    Returns:
        Mapping of interface name to the CIDR of its first private IPv4
        address, e.g. ``{"eth0": "192.168.1.23/24"}``.

    Raises:
        InterfaceError: If the OS interface table cannot be read.
    """
    try:
        table = psutil.net_if_addrs()
    except OSError as e:
        raise InterfaceError(f"error getting interfaces: {e}") from e

    found: dict[str, str] = {}
    for name, addrs in table.items():
        for addr in addrs:
            if addr.family != socket.AF_INET or not addr.netmask:
                continue
            try:
                ip = ipaddress.IPv4Address(addr.address)
                prefix_len = ipaddress.IPv4Network(f"0.0.0.0/{addr.netmask}").prefixlen
            except ValueError:
                logger.debug("Skipping unparsable address %s on %s", addr.address, name)
                continue
            if ip.is_loopback or not is_private_ipv4(ip):
                continue
            found[name] = f"{ip}/{prefix_len}"
            break
    return found


def network_size(cidr: str) -> int:
    """Number of addresses contained in the network of ``cidr``."""
    return ipaddress.ip_network(cidr, strict=False).num_addresses


def get_ips_on_network(cidr: str) -> list[str]:
    """
    List every address in the network containing ``cidr``.

    The prefix is masked first, so ``192.168.1.23/30`` yields
    ``192.168.1.20`` through ``192.168.1.23``. Network and broadcast
    addresses are included.

    Raises:
        ValueError: If ``cidr`` is not a valid IPv4 prefix.
    """
    try:
        network = ipaddress.IPv4Network(cidr, strict=False)
    except ValueError as e:
        raise ValueError(f"invalid cidr: {cidr!r}: {e}") from e
    return [str(ip) for ip in network]


def is_port_open(address: str, timeout: float) -> bool:
    """
    Check whether a TCP connection to ``host:port`` can be established.

    Refused, unreachable and timed out connections count as closed.

    Raises:
        ScanAbortedError: If the local process has run out of sockets.
    """
    host, _, port = address.rpartition(":")
    try:
        conn = socket.create_connection((host, int(port)), timeout=timeout)
    except OSError as e:
        if e.errno in _EXHAUSTION_ERRNOS:
            raise ScanAbortedError(f"error opening {address!r}: {e}") from e
        return False
    conn.close()
    return True
