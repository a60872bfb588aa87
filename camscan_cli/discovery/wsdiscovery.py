"""
ONVIF WS-Discovery client.

Sends a single multicast Probe on one interface and collects ProbeMatch
replies for a fixed window. Replies are correlated with the probe through
their RelatesTo header and filtered down to network video transmitters.
"""

import logging
import socket
import time
import uuid
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from typing import Callable, Optional
from urllib.parse import urlsplit, urlunsplit

from ..config import (
    DISCOVERY_BUFFER_SIZE,
    DISCOVERY_MULTICAST_GROUP,
    DISCOVERY_MULTICAST_PORT,
    DISCOVERY_MULTICAST_TTL,
    DISCOVERY_WINDOW,
)
from ..errors import DiscoveryError
from ..onvif import soap
from .interfaces import get_private_ipv4_interfaces

logger = logging.getLogger(__name__)

PROBE_ACTION = "http://schemas.xmlsoap.org/ws/2005/04/discovery/Probe"
DISCOVERY_TO = "urn:schemas-xmlsoap-org:ws:2005:04:discovery"
VIDEO_TRANSMITTER_TYPE = "NetworkVideoTransmitter"
FALLBACK_PORT = 80


@dataclass
class ProbeMatch:
    """A single ProbeMatch entry from a discovery reply."""

    endpoint_reference: str = ""
    types: str = ""
    scopes: str = ""
    xaddrs: str = ""

    @property
    def is_video_transmitter(self) -> bool:
        return VIDEO_TRANSMITTER_TYPE in self.types


@dataclass
class ProbeResponse:
    """A parsed ProbeMatches envelope."""

    relates_to: str
    matches: list[ProbeMatch]


def build_probe(message_id: str) -> bytes:
    """Build the Probe envelope for ``message_id`` (a bare UUID string)."""
    header = [
        soap.element(soap.NS_WSA, "Action", PROBE_ACTION),
        soap.element(soap.NS_WSA, "MessageID", f"urn:uuid:{message_id}"),
        soap.element(soap.NS_WSA, "To", DISCOVERY_TO),
    ]
    probe = soap.element(soap.NS_WSD, "Probe")
    soap.sub_element(probe, soap.NS_WSD, "Types")
    soap.sub_element(probe, soap.NS_WSD, "Scopes")
    return soap.build_envelope(probe, header)


def parse_probe_response(data: bytes) -> ProbeResponse:
    """
    Parse a ProbeMatches envelope.

    Raises:
        xml.etree.ElementTree.ParseError: If ``data`` is not XML.
    """
    envelope = soap.parse_envelope(data)
    matches = [
        ProbeMatch(
            endpoint_reference=soap.text_at(match, "EndpointReference", "Address"),
            types=soap.text_at(match, "Types"),
            scopes=soap.text_at(match, "Scopes"),
            xaddrs=soap.text_at(match, "XAddrs"),
        )
        for match in soap.find_all(envelope, "Body", "ProbeMatches", "ProbeMatch")
    ]
    return ProbeResponse(
        relates_to=soap.text_at(envelope, "Header", "RelatesTo"),
        matches=matches,
    )


def _bare_id(value: str) -> str:
    for prefix in ("urn:uuid:", "uuid:"):
        if value.startswith(prefix):
            return value[len(prefix):]
    return value


def is_correlated(relates_to: str, message_id: str, strict: bool = False) -> bool:
    """
    Whether a reply's RelatesTo refers to our probe.

    By default any RelatesTo containing the message id matches, which some
    cameras rely on. ``strict`` requires the ids to be equal once the
    ``urn:uuid:`` prefix is removed.
    """
    if strict:
        return _bare_id(relates_to) == _bare_id(message_id)
    return message_id in relates_to


def correct_endpoint(xaddrs: str, source_ip: str) -> str:
    """
    Replace the host of an advertised service address with ``source_ip``.

    Devices regularly advertise an address they are not reachable on, so
    the address the reply actually came from wins. Only the first of
    several space separated XAddrs is used. The port defaults to 80.

    Raises:
        ValueError: If the XAddrs value is not a usable URL.
    """
    first = xaddrs.split()[0] if xaddrs.strip() else ""
    parts = urlsplit(first)
    if not parts.scheme or not parts.netloc:
        raise ValueError(f"invalid xaddrs: {xaddrs!r}")
    port = parts.port or FALLBACK_PORT
    return urlunsplit((parts.scheme, f"{source_ip}:{port}", parts.path, parts.query, ""))


def match_probe_response(
    data: bytes,
    message_id: str,
    source_ip: str,
    strict: bool = False,
) -> list[str]:
    """
    Extract corrected video transmitter endpoints from one reply.

    Duplicates within the reply are kept.

    Raises:
        xml.etree.ElementTree.ParseError: If ``data`` is not XML.
    """
    response = parse_probe_response(data)
    if not is_correlated(response.relates_to, message_id, strict=strict):
        logger.warning(
            "Discovery response does not match probe %s, ignoring (relates to %r)",
            message_id,
            response.relates_to,
        )
        return []

    endpoints = []
    for match in response.matches:
        if not match.is_video_transmitter:
            continue
        try:
            endpoint = correct_endpoint(match.xaddrs, source_ip)
        except ValueError as e:
            logger.warning("Error parsing xaddrs %r, skipping: %s", match.xaddrs, e)
            continue
        logger.info("Discovered ONVIF video transmitter %s (scopes: %s)", endpoint, match.scopes)
        endpoints.append(endpoint)
    return endpoints


class WSDiscoveryProber:
    """
    Probes one interface at a time for ONVIF video transmitters.

    Usage:
        prober = WSDiscoveryProber()
        for endpoint in prober.probe("eth0"):
            print(endpoint)
    """

    def __init__(
        self,
        window: float = DISCOVERY_WINDOW,
        strict: bool = False,
        socket_factory: Callable[..., socket.socket] = socket.socket,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the prober.

        Args:
            window: Seconds to collect replies for, counted from the send.
            strict: Require exact RelatesTo correlation.
            socket_factory: Creates the UDP socket.
            clock: Monotonic clock used for the read deadline.
        """
        self.window = window
        self.strict = strict
        self._socket_factory = socket_factory
        self._clock = clock

    def _interface_address(self, iface: str) -> str:
        cidr = get_private_ipv4_interfaces().get(iface)
        if not cidr:
            raise DiscoveryError(f"interface {iface!r} has no private IPv4 address")
        return cidr.split("/", 1)[0]

    def probe(self, iface: str, address: Optional[str] = None) -> list[str]:
        """
        Send a Probe on ``iface`` and collect matching endpoints.

        Args:
            iface: Interface name, used for logging and address lookup.
            address: IPv4 address of the interface. Looked up when omitted.

        Returns:
            Corrected endpoint URLs, possibly with duplicates.

        Raises:
            DiscoveryError: If the socket cannot be set up, the probe cannot
                be sent or reading replies fails.
        """
        if address is None:
            address = self._interface_address(iface)

        message_id = str(uuid.uuid4())
        probe = build_probe(message_id)
        group = (DISCOVERY_MULTICAST_GROUP, DISCOVERY_MULTICAST_PORT)

        try:
            sock = self._socket_factory(socket.AF_INET, socket.SOCK_DGRAM, socket.IPPROTO_UDP)
        except OSError as e:
            raise DiscoveryError(f"unable to start discovery listen: {e}") from e

        with sock:
            try:
                sock.bind(("0.0.0.0", 0))
            except OSError as e:
                raise DiscoveryError(f"unable to start discovery listen: {e}") from e

            try:
                membership = socket.inet_aton(DISCOVERY_MULTICAST_GROUP) + socket.inet_aton(address)
                sock.setsockopt(socket.IPPROTO_IP, socket.IP_ADD_MEMBERSHIP, membership)
                sock.setsockopt(socket.IPPROTO_IP, socket.IP_MULTICAST_IF, socket.inet_aton(address))
                sock.setsockopt(socket.IPPROTO_IP, socket.IP_MULTICAST_TTL, DISCOVERY_MULTICAST_TTL)
            except OSError as e:
                raise DiscoveryError(
                    f"interface {iface!r} unable to join multicast group: {e}"
                ) from e

            try:
                sock.sendto(probe, group)
            except OSError as e:
                raise DiscoveryError(
                    f"unable to send discovery probe on interface {iface!r}: {e}"
                ) from e

            deadline = self._clock() + self.window
            logger.debug("Sent discovery probe %s on %s (%s)", message_id, iface, address)

            transmitters: list[str] = []
            while True:
                remaining = deadline - self._clock()
                if remaining <= 0:
                    break
                sock.settimeout(remaining)
                try:
                    data, src = sock.recvfrom(DISCOVERY_BUFFER_SIZE)
                except socket.timeout:
                    break
                except OSError as e:
                    raise DiscoveryError(f"error reading discovery response: {e}") from e

                source_ip = src[0]
                logger.debug("Discovery response from %s: %r", source_ip, data)
                try:
                    transmitters.extend(
                        match_probe_response(data, message_id, source_ip, strict=self.strict)
                    )
                except ET.ParseError as e:
                    logger.warning(
                        "Error parsing discovery response from %s, skipping: %s", source_ip, e
                    )

        return transmitters
