"""Tests for interface enumeration and address expansion."""

import errno
import ipaddress
import socket
from types import SimpleNamespace

import pytest

from camscan_cli.discovery import interfaces
from camscan_cli.errors import InterfaceError, ScanAbortedError


def addr(family, address, netmask):
    return SimpleNamespace(family=family, address=address, netmask=netmask, broadcast=None, ptp=None)


class TestPrivateInterfaces:
    def test_picks_first_private_ipv4_address(self, monkeypatch):
        table = {
            "lo": [addr(socket.AF_INET, "127.0.0.1", "255.0.0.0")],
            "eth0": [
                addr(socket.AF_INET6, "fe80::1", "ffff:ffff:ffff:ffff::"),
                addr(socket.AF_INET, "192.168.1.23", "255.255.255.0"),
                addr(socket.AF_INET, "10.0.0.2", "255.0.0.0"),
            ],
            "eth1": [addr(socket.AF_INET, "169.254.10.20", "255.255.0.0")],
            "wan0": [addr(socket.AF_INET, "8.8.4.4", "255.255.255.0")],
            "wlan0": [addr(socket.AF_INET, "10.1.2.3", "255.255.0.0")],
        }
        monkeypatch.setattr(interfaces.psutil, "net_if_addrs", lambda: table)

        assert interfaces.get_private_ipv4_interfaces() == {
            "eth0": "192.168.1.23/24",
            "wlan0": "10.1.2.3/16",
        }

    def test_unreadable_table_is_interface_error(self, monkeypatch):
        def boom():
            raise PermissionError("denied")

        monkeypatch.setattr(interfaces.psutil, "net_if_addrs", boom)

        with pytest.raises(InterfaceError):
            interfaces.get_private_ipv4_interfaces()


class TestIPsOnNetwork:
    @pytest.mark.parametrize("prefix_len", [24, 25, 28, 30, 31, 32])
    def test_size_and_containment(self, prefix_len):
        cidr = f"192.168.7.77/{prefix_len}"
        ips = interfaces.get_ips_on_network(cidr)

        network = ipaddress.ip_network(cidr, strict=False)
        assert len(ips) == 2 ** (32 - prefix_len)
        assert len(set(ips)) == len(ips)
        assert all(ipaddress.ip_address(ip) in network for ip in ips)

    def test_masks_prefix_first(self):
        assert interfaces.get_ips_on_network("192.168.1.23/30") == [
            "192.168.1.20",
            "192.168.1.21",
            "192.168.1.22",
            "192.168.1.23",
        ]

    def test_network_size(self):
        assert interfaces.network_size("10.0.0.5/8") == 2 ** 24
        assert interfaces.network_size("192.168.1.5/24") == 256

    def test_invalid_cidr(self):
        with pytest.raises(ValueError, match="invalid cidr"):
            interfaces.get_ips_on_network("not-a-network")


class TestIsPortOpen:
    def test_open(self, monkeypatch):
        closed = []
        conn = SimpleNamespace(close=lambda: closed.append(True))
        seen = {}

        def connect(address, timeout):
            seen["address"] = address
            seen["timeout"] = timeout
            return conn

        monkeypatch.setattr(interfaces.socket, "create_connection", connect)

        assert interfaces.is_port_open("192.168.1.1:80", 0.05)
        assert seen == {"address": ("192.168.1.1", 80), "timeout": 0.05}
        assert closed == [True]

    @pytest.mark.parametrize(
        "error",
        [ConnectionRefusedError(), socket.timeout(), OSError(errno.EHOSTUNREACH, "unreachable")],
    )
    def test_connection_errors_are_closed(self, monkeypatch, error):
        def connect(address, timeout):
            raise error

        monkeypatch.setattr(interfaces.socket, "create_connection", connect)

        assert interfaces.is_port_open("192.168.1.1:80", 0.05) is False

    def test_too_many_open_files_aborts(self, monkeypatch):
        def connect(address, timeout):
            raise OSError(errno.EMFILE, "Too many open files")

        monkeypatch.setattr(interfaces.socket, "create_connection", connect)

        with pytest.raises(ScanAbortedError):
            interfaces.is_port_open("192.168.1.1:80", 0.05)
