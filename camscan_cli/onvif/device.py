"""ONVIF device client.

Probes a single candidate endpoint: capabilities, clock, identity, media
profiles and their stream URIs, in that order. Every call goes through one
request executor that owns the SOAP envelope, WS-Security header, retries
and response parsing.
"""

import logging
import time
import xml.etree.ElementTree as ET
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

import httpx

from ..config import (
    MAX_RESPONSE_BYTES,
    REQUEST_ATTEMPTS,
    REQUEST_RETRY_DELAY,
    REQUEST_TIMEOUT,
    SOAP_CONTENT_TYPE,
)
from ..errors import NotAnOnvifDevice, OnvifError, OnvifHTTPError, OnvifParseError
from . import soap
from .models import Capabilities, DeviceInformation, MediaProfile, parse_system_date_time

logger = logging.getLogger(__name__)

# Status codes worth another attempt
RETRY_STATUSES = {429, 502, 503, 504}
SNIPPET_LENGTH = 128


@dataclass(frozen=True)
class RequestPolicy:
    """Timeout and retry settings shared by every request to a device."""

    timeout: float = REQUEST_TIMEOUT
    attempts: int = REQUEST_ATTEMPTS
    delay: float = REQUEST_RETRY_DELAY
    max_response_bytes: int = MAX_RESPONSE_BYTES


@dataclass
class Device:
    """An ONVIF device and everything learned about it while probing."""

    address: str
    username: str = ""
    password: str = ""

    # Added to our clock to approximate the device clock. Cameras drift,
    # and digest authentication fails when the timestamps disagree.
    clock_offset: timedelta = field(default_factory=timedelta)

    capabilities: Capabilities = field(default_factory=Capabilities)
    information: DeviceInformation = field(default_factory=DeviceInformation)
    profiles: list[MediaProfile] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Convert the device to a dictionary, leaving out the password."""
        return {
            "address": self.address,
            "username": self.username,
            "clock_offset": self.clock_offset.total_seconds(),
            "capabilities": asdict(self.capabilities),
            "information": asdict(self.information),
            "profiles": [asdict(p) for p in self.profiles],
        }


@dataclass
class ProbeResult:
    """Outcome of probing a candidate.

    ``valid`` means the candidate proved to be an ONVIF device with a media
    service. ``error`` holds whatever stopped the probe, which may be set
    for a valid device that failed a later step.
    """

    valid: bool
    error: Optional[Exception] = None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _capabilities_body() -> ET.Element:
    body = soap.element(soap.NS_TDS, "GetCapabilities")
    soap.sub_element(body, soap.NS_TDS, "Category", "All")
    return body


def _stream_uri_body(token: str) -> ET.Element:
    body = soap.element(soap.NS_TRT, "GetStreamUri")
    setup = soap.sub_element(body, soap.NS_TRT, "StreamSetup")
    soap.sub_element(setup, soap.NS_TT, "Stream", "RTP-Unicast")
    transport = soap.sub_element(setup, soap.NS_TT, "Transport")
    soap.sub_element(transport, soap.NS_TT, "Protocol", "RTSP")
    soap.sub_element(body, soap.NS_TRT, "ProfileToken", token)
    return body


class OnvifClient:
    """
    Client for the ONVIF calls needed to identify a device.

    Usage:
        with OnvifClient(Device("http://192.168.1.10/onvif/device_service")) as client:
            result = client.probe()
            print(result.valid, client.device.information.model)
    """

    def __init__(
        self,
        device: Device,
        policy: Optional[RequestPolicy] = None,
        client: Optional[httpx.Client] = None,
        clock: Callable[[], datetime] = _utcnow,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize the client.

        Args:
            device: Record to populate. Its address is the device service URL.
            policy: Timeout and retry policy. Defaults to 5s, 3 attempts, 1s apart.
            client: HTTP client to use. One is created (and closed) if omitted.
            clock: Returns the current UTC time.
            sleep: Used to wait between retries.
        """
        self.device = device
        self.policy = policy or RequestPolicy()
        self._owns_client = client is None
        self._client = client or httpx.Client()
        self._clock = clock
        self._sleep = sleep

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    # -------------------------------------------------------------------------
    # Request executor
    # -------------------------------------------------------------------------

    def _security_header(self) -> list[ET.Element]:
        if not self.device.username:
            return []
        created = soap.format_created(self._clock() + self.device.clock_offset)
        return [soap.build_security_header(self.device.username, self.device.password, created)]

    def _post(self, url: str, build: Callable[[], bytes], action: str) -> httpx.Response:
        """POST with retries. ``build`` runs once per attempt, giving each a fresh nonce."""
        attempts = max(self.policy.attempts, 1)
        for attempt in range(1, attempts + 1):
            if attempt > 1:
                self._sleep(self.policy.delay)
            try:
                response = self._client.post(
                    url,
                    content=build(),
                    headers={"Content-Type": SOAP_CONTENT_TYPE},
                    timeout=self.policy.timeout,
                )
            except httpx.InvalidURL as e:
                raise OnvifError(f"failed to {action}: invalid URL {url!r}: {e}") from e
            except httpx.RequestError as e:
                logger.debug("ONVIF request to %s failed (attempt %d): %s", url, attempt, e)
                if attempt == attempts:
                    raise OnvifError(f"failed to {action}: request to URL {url!r}: {e}") from e
                continue

            logger.debug(
                "ONVIF request to %s: status %d (attempt %d)", url, response.status_code, attempt
            )
            if response.status_code in RETRY_STATUSES and attempt < attempts:
                continue
            return response

        raise OnvifError(f"failed to {action}: no request made to {url!r}")

    def _request(
        self,
        action: str,
        url: str,
        body: ET.Element,
        response_name: str,
        authenticate: bool = True,
    ) -> ET.Element:
        """
        POST a SOAP request and return the named element from the response body.

        Args:
            action: Description used in error messages, e.g. "get profiles".
            url: Service address to post to.
            body: Request element placed in the envelope body.
            response_name: Local name of the expected response element.
            authenticate: Add a WS-Security header when a username is set.

        Raises:
            OnvifError: On transport failure after all retries.
            OnvifHTTPError: If the device answers with a non-2xx status.
            OnvifParseError: If the response is not the expected envelope.
        """

        def build() -> bytes:
            header = self._security_header() if authenticate else []
            return soap.build_envelope(body, header)

        response = self._post(url, build, action)

        if not response.is_success:
            raise OnvifHTTPError(
                f"failed to {action}: non 200 status {response.status_code} for {url!r}",
                status_code=response.status_code,
                details={"body": response.text[:SNIPPET_LENGTH]},
            )

        content = response.content
        snippet = content[:SNIPPET_LENGTH].decode("utf-8", errors="replace")
        if len(content) > self.policy.max_response_bytes:
            raise OnvifParseError(
                f"failed to {action}: response from {url!r} exceeds "
                f"{self.policy.max_response_bytes} bytes",
                snippet=snippet,
            )
        try:
            envelope = soap.parse_envelope(content)
        except ET.ParseError as e:
            raise OnvifParseError(
                f"failed to {action}: failed to unmarshal response {snippet!r}: {e}",
                snippet=snippet,
            ) from e

        element = soap.find_path(envelope, "Body", response_name)
        if element is None:
            raise OnvifParseError(
                f"failed to {action}: no {response_name} in response {snippet!r}",
                snippet=snippet,
            )
        return element

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    def get_capabilities(self) -> Capabilities:
        response = self._request(
            "get capabilities",
            self.device.address,
            _capabilities_body(),
            "GetCapabilitiesResponse",
            authenticate=False,
        )
        capabilities = Capabilities.from_element(response)
        logger.debug("Got capabilities for %s: %s", self.device.address, capabilities)
        return capabilities

    def get_system_date_and_time(self) -> datetime:
        """Read the device's UTC clock."""
        response = self._request(
            "get system date and time",
            self.device.address,
            soap.element(soap.NS_TDS, "GetSystemDateAndTime"),
            "GetSystemDateAndTimeResponse",
            authenticate=False,
        )
        try:
            device_time = parse_system_date_time(response)
        except ValueError as e:
            raise OnvifParseError(f"failed to get system date and time: {e}") from e

        logger.debug("Got system date and time for %s: %s", self.device.address, device_time)
        return device_time

    def get_device_information(self) -> DeviceInformation:
        response = self._request(
            "get device information",
            self.device.address,
            soap.element(soap.NS_TDS, "GetDeviceInformation"),
            "GetDeviceInformationResponse",
        )
        info = DeviceInformation.from_element(response)
        logger.debug("Got device information for %s: %s", self.device.address, info)
        return info

    def get_stream_uri(self, token: str) -> str:
        """Resolve the RTSP URI of the profile with ``token``."""
        response = self._request(
            f"get stream uri for profile {token!r}",
            self.device.capabilities.media_address,
            _stream_uri_body(token),
            "GetStreamUriResponse",
        )
        return soap.text_at(response, "MediaUri", "Uri")

    def get_profiles(self) -> list[MediaProfile]:
        """
        List media profiles in device order, each with its stream URI.

        A failure resolving any one URI fails the whole call.
        """
        response = self._request(
            "get profiles",
            self.device.capabilities.media_address,
            soap.element(soap.NS_TRT, "GetProfiles"),
            "GetProfilesResponse",
        )

        profiles: list[MediaProfile] = []
        seen: set[str] = set()
        for el in soap.iter_children(response, "Profiles"):
            profile = MediaProfile.from_element(el)
            if profile.token in seen:
                logger.warning(
                    "Duplicate profile token %r on %s, ignoring", profile.token, self.device.address
                )
                continue
            seen.add(profile.token)
            profiles.append(profile)

        for profile in profiles:
            profile.uri = self.get_stream_uri(profile.token)

        logger.debug("Got profiles for %s: %s", self.device.address, profiles)
        return profiles

    def probe(self) -> ProbeResult:
        """
        Run the full handshake against the device.

        Steps run strictly in order and stop at the first failure. The
        clock offset is computed once, right after the capabilities, and
        used by every authenticated request that follows.
        """
        try:
            capabilities = self.get_capabilities()
        except OnvifError as e:
            return ProbeResult(valid=False, error=e)

        # without a media service we have nothing to stream from
        if not capabilities.media_address:
            return ProbeResult(
                valid=False, error=NotAnOnvifDevice("no media address found in capabilities")
            )
        self.device.capabilities = capabilities

        try:
            device_time = self.get_system_date_and_time()
        except OnvifError as e:
            return ProbeResult(valid=True, error=e)
        self.device.clock_offset = device_time - self._clock()

        try:
            self.device.information = self.get_device_information()
        except OnvifError as e:
            logger.error("Failed to get device information from %s: %s", self.device.address, e)
            return ProbeResult(valid=True, error=e)

        try:
            self.device.profiles = self.get_profiles()
        except OnvifError as e:
            return ProbeResult(valid=True, error=e)

        return ProbeResult(valid=True)
