"""Network discovery of ONVIF cameras and encoders."""

from .portscan import PortScanner
from .scanner import DiscoveredDevice, NetworkScanner, aggregate_candidates
from .wsdiscovery import WSDiscoveryProber

__all__ = [
    "DiscoveredDevice",
    "NetworkScanner",
    "PortScanner",
    "WSDiscoveryProber",
    "aggregate_candidates",
]
