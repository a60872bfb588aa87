"""
Network scanner for discovering ONVIF cameras and encoders.

Candidates come from two places:
- ONVIF WS-Discovery, one interface at a time
- TCP port scanning of every address on small private networks

Each unique candidate is then probed over ONVIF, one at a time.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Optional
from urllib.parse import urlsplit, urlunsplit

import httpx

from ..config import DEFAULT_PORT, DEVICE_SERVICE_PATH
from ..errors import CamScanError, DiscoveryError, NotAnOnvifDevice
from ..ffprobe import probe_rtsp, with_credentials
from ..onvif import Device, OnvifClient, RequestPolicy, Stream
from .interfaces import get_private_ipv4_interfaces
from .portscan import PortScanner
from .wsdiscovery import WSDiscoveryProber

logger = logging.getLogger(__name__)

DEFAULT_PORTS = {"http": 80, "https": 443}


def normalize_endpoint(url: str) -> str:
    """
    Canonical form of a candidate URL.

    Scheme and host are lowercased and a default port is dropped, so
    ``http://10.0.0.5:80/onvif/device_service`` and
    ``http://10.0.0.5/onvif/device_service`` are the same candidate.
    """
    parts = urlsplit(url.strip())
    scheme = parts.scheme.lower()
    host = (parts.hostname or "").lower()
    port = parts.port
    if port is not None and port != DEFAULT_PORTS.get(scheme):
        host = f"{host}:{port}"
    return urlunsplit((scheme, host, parts.path or "/", parts.query, ""))


def device_service_url(address: str) -> str:
    """Default device service URL for a ``host:port`` address."""
    return normalize_endpoint(f"http://{address}{DEVICE_SERVICE_PATH}")


def aggregate_candidates(discovered: Iterable[str], open_ports: Iterable[str]) -> list[str]:
    """
    Merge WS-Discovery endpoints with open ``host:port`` addresses.

    Open ports are turned into device service URLs first. Each candidate
    appears once, in first seen order.
    """
    seen: set[str] = set()
    candidates: list[str] = []
    for url in [*discovered, *(device_service_url(a) for a in open_ports)]:
        candidate = normalize_endpoint(url)
        if candidate in seen:
            continue
        seen.add(candidate)
        candidates.append(candidate)
    return candidates


@dataclass
class DiscoveredDevice:
    """An ONVIF device found on the network."""

    device: Device
    error: str = ""

    @property
    def display_name(self) -> str:
        info = self.device.information
        parts = [p for p in (info.manufacturer, info.model) if p]
        return " ".join(parts) if parts else self.device.address

    def to_dict(self) -> dict[str, Any]:
        payload = self.device.to_dict()
        payload["error"] = self.error
        return payload


class NetworkScanner:
    """
    Scans the local network for ONVIF devices.

    Usage:
        scanner = NetworkScanner(port=80, username="admin", password="secret")
        for found in scanner.scan():
            print(found.display_name, found.device.address)
    """

    def __init__(
        self,
        port: int = DEFAULT_PORT,
        username: str = "",
        password: str = "",
        policy: Optional[RequestPolicy] = None,
        prober: Optional[WSDiscoveryProber] = None,
        port_scanner: Optional[PortScanner] = None,
        http_client: Optional[httpx.Client] = None,
        inspect_stream: Optional[Callable[[str], list[Stream]]] = probe_rtsp,
    ):
        """
        Initialize the scanner.

        Args:
            port: TCP port to scan for.
            username: Camera username, empty for none.
            password: Camera password.
            policy: Request policy handed to every ONVIF client.
            prober: WS-Discovery prober.
            port_scanner: TCP port scanner.
            http_client: HTTP client shared by all ONVIF clients.
            inspect_stream: Describes the streams behind a resolved URI.
                ``None`` skips stream inspection.
        """
        self.port = port
        self.username = username
        self.password = password
        self.policy = policy or RequestPolicy()
        self.prober = prober or WSDiscoveryProber()
        self.port_scanner = port_scanner or PortScanner()
        self._http_client = http_client
        self._inspect_stream = inspect_stream

    def discover(self, ifaces: dict[str, str]) -> list[str]:
        """Run WS-Discovery on each interface in turn."""
        endpoints: list[str] = []
        for iface, cidr in ifaces.items():
            logger.info("Starting ONVIF WS-Discovery on %s", iface)
            try:
                found = self.prober.probe(iface, cidr.split("/", 1)[0])
            except DiscoveryError as e:
                logger.warning("WS-Discovery failed on %s: %s", iface, e)
                continue
            endpoints.extend(found)
            logger.info("ONVIF WS-Discovery complete on %s: %d found", iface, len(found))
        return endpoints

    def find_candidates(
        self,
        ws_discovery: bool = True,
        port_scan: bool = True,
        on_progress: Optional[Callable[[int, int], None]] = None,
        ifaces: Optional[dict[str, str]] = None,
    ) -> list[str]:
        """
        Collect unique candidate device service URLs.

        Raises:
            InterfaceError: If local interfaces cannot be listed.
            ScanAbortedError: If port scanning ran out of sockets.
        """
        if ifaces is None:
            ifaces = get_private_ipv4_interfaces()

        discovered = self.discover(ifaces) if ws_discovery else []

        open_ports: list[str] = []
        if port_scan:
            logger.info("Starting IP scanning on port %d", self.port)
            open_ports = self.port_scanner.scan(ifaces, self.port, on_progress=on_progress)
            logger.info("IP scanning complete on port %d: %d open", self.port, len(open_ports))

        return aggregate_candidates(discovered, open_ports)

    def probe_candidate(self, candidate: str) -> Optional[DiscoveredDevice]:
        """Probe one candidate, returning it if it is an ONVIF device."""
        device = Device(candidate, username=self.username, password=self.password)
        with OnvifClient(device, self.policy, client=self._http_client) as client:
            result = client.probe()

        if not result.valid:
            if isinstance(result.error, NotAnOnvifDevice):
                logger.debug("Not a valid ONVIF device, ignoring %s", candidate)
            else:
                logger.debug("Error probing ONVIF device %s, ignoring: %s", candidate, result.error)
            return None

        if result.error is not None:
            logger.warning("Error probing ONVIF device %s: %s", candidate, result.error)
        return DiscoveredDevice(device=device, error=str(result.error or ""))

    def inspect_profiles(self, device: Device) -> None:
        """Attach stream descriptions to every profile with a URI."""
        if self._inspect_stream is None:
            return
        for profile in device.profiles:
            if not profile.uri:
                continue
            url = with_credentials(profile.uri, device.username, device.password)
            try:
                profile.streams = self._inspect_stream(url)
            except CamScanError as e:
                logger.debug("Unable to open RTSP stream %s: %s", profile.uri, e)
                continue
            logger.info("RTSP stream %s: %s", profile.uri, profile.streams)

    def scan(
        self,
        ws_discovery: bool = True,
        port_scan: bool = True,
        on_progress: Optional[Callable[[int, int], None]] = None,
    ) -> list[DiscoveredDevice]:
        """
        Run a full discovery and probe pass.

        Args:
            ws_discovery: Enable ONVIF WS-Discovery.
            port_scan: Enable TCP port scanning.
            on_progress: Callback for port scan progress (current, total).

        Returns:
            Devices found, including ones that failed a later handshake step.
        """
        candidates = self.find_candidates(
            ws_discovery=ws_discovery, port_scan=port_scan, on_progress=on_progress
        )

        found: list[DiscoveredDevice] = []
        for candidate in candidates:
            discovered = self.probe_candidate(candidate)
            if discovered is None:
                continue
            self.inspect_profiles(discovered.device)

            info = discovered.device.information
            logger.info(
                "ONVIF device found at %s: manufacturer=%s model=%s firmware=%s serial=%s "
                "hardware=%s profiles=%d",
                discovered.device.address,
                info.manufacturer,
                info.model,
                info.firmware_version,
                info.serial_number,
                info.hardware_id,
                len(discovered.device.profiles),
            )
            found.append(discovered)
        return found
