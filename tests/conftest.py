"""Shared fixtures: a scripted ONVIF device behind httpx.MockTransport."""

import base64
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

import httpx
import pytest

from camscan_cli.onvif import soap

LOCAL_NOW = datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)

NAMESPACES = (
    'xmlns:s="http://www.w3.org/2003/05/soap-envelope" '
    'xmlns:tds="http://www.onvif.org/ver10/device/wsdl" '
    'xmlns:trt="http://www.onvif.org/ver10/media/wsdl" '
    'xmlns:tt="http://www.onvif.org/ver10/schema"'
)


def envelope(body: str) -> bytes:
    return (
        f'<?xml version="1.0" encoding="UTF-8"?><s:Envelope {NAMESPACES}>'
        f"<s:Header/><s:Body>{body}</s:Body></s:Envelope>"
    ).encode("utf-8")


def capabilities_response(host: str, media: bool = True, media_address: str = "") -> str:
    media_address = media_address or f"http://{host}/onvif/media_service"
    media_xml = (
        f"<tt:Media><tt:XAddr>{media_address}</tt:XAddr></tt:Media>"
        if media
        else ""
    )
    return (
        "<tds:GetCapabilitiesResponse><tds:Capabilities>"
        "<tt:Events>"
        f"<tt:XAddr>http://{host}/onvif/event_service</tt:XAddr>"
        "<tt:WSSubscriptionPolicySupport>true</tt:WSSubscriptionPolicySupport>"
        "<tt:WSPullPointSupport>true</tt:WSPullPointSupport>"
        "<tt:WSPausableSubscriptionManagerInterfaceSupport>false"
        "</tt:WSPausableSubscriptionManagerInterfaceSupport>"
        "</tt:Events>"
        f"{media_xml}"
        "</tds:Capabilities></tds:GetCapabilitiesResponse>"
    )


TIME_RESPONSE = (
    "<tds:GetSystemDateAndTimeResponse><tds:SystemDateAndTime>"
    "<tt:DateTimeType>NTP</tt:DateTimeType>"
    "<tt:UTCDateTime>"
    "<tt:Time><tt:Hour>12</tt:Hour><tt:Minute>0</tt:Minute><tt:Second>30</tt:Second></tt:Time>"
    "<tt:Date><tt:Year>2024</tt:Year><tt:Month>6</tt:Month><tt:Day>1</tt:Day></tt:Date>"
    "</tt:UTCDateTime>"
    "</tds:SystemDateAndTime></tds:GetSystemDateAndTimeResponse>"
)

INFO_RESPONSE = (
    "<tds:GetDeviceInformationResponse>"
    "<tds:Manufacturer>Amcrest</tds:Manufacturer>"
    "<tds:Model>IP5M-T1179E</tds:Model>"
    "<tds:FirmwareVersion>V2.800.0000000.3.R</tds:FirmwareVersion>"
    "<tds:SerialNumber>AMC0123456789</tds:SerialNumber>"
    "<tds:HardwareID>1.00</tds:HardwareID>"
    "</tds:GetDeviceInformationResponse>"
)

PROFILES_RESPONSE = (
    "<trt:GetProfilesResponse>"
    '<trt:Profiles token="MediaProfile000" fixed="true">'
    "<tt:Name>MainStream</tt:Name>"
    '<tt:VideoSourceConfiguration token="000">'
    '<tt:Bounds x="0" y="0" width="2592" height="1944"/>'
    "</tt:VideoSourceConfiguration>"
    "</trt:Profiles>"
    '<trt:Profiles token="MediaProfile001" fixed="true">'
    "<tt:Name>SubStream</tt:Name>"
    '<tt:VideoSourceConfiguration token="000">'
    '<tt:Bounds x="0" y="0" width="640" height="480"/>'
    "</tt:VideoSourceConfiguration>"
    "</trt:Profiles>"
    "</trt:GetProfilesResponse>"
)


def stream_uri_response(host: str, token: str) -> str:
    return (
        "<trt:GetStreamUriResponse><trt:MediaUri>"
        f"<tt:Uri>rtsp://{host}:554/{token}</tt:Uri>"
        "<tt:InvalidAfterConnect>false</tt:InvalidAfterConnect>"
        "</trt:MediaUri></trt:GetStreamUriResponse>"
    )


@dataclass
class SeenRequest:
    url: str
    action: str
    created: Optional[str]
    digest_ok: Optional[bool]
    token: str = ""


@dataclass
class FakeOnvifDevice:
    """Answers ONVIF requests from a fixed script.

    ``failures`` maps an action name (e.g. ``GetDeviceInformation``) to the
    HTTP status returned for it.
    """

    host: str = "192.168.1.1"
    password: str = "secret"
    media: bool = True
    media_address: str = ""
    profiles_response: str = PROFILES_RESPONSE
    failures: dict[str, int] = field(default_factory=dict)
    requests: list[SeenRequest] = field(default_factory=list)

    def handler(self, request: httpx.Request) -> httpx.Response:
        root = ET.fromstring(request.content)
        body = soap.find_path(root, "Body")
        operation = body[0]
        action = soap.local_name(operation.tag)

        token_el = soap.find_path(root, "Header", "Security", "UsernameToken")
        created = None
        digest_ok = None
        if token_el is not None:
            created = soap.text_at(token_el, "Created")
            nonce = base64.b64decode(soap.text_at(token_el, "Nonce"))
            expected = soap.password_digest(nonce, created, self.password)
            digest_ok = soap.text_at(token_el, "Password") == expected

        token = soap.text_at(operation, "ProfileToken")
        self.requests.append(SeenRequest(str(request.url), action, created, digest_ok, token))

        if action in self.failures:
            return httpx.Response(self.failures[action], content=b"<fault/>")

        if action == "GetCapabilities":
            payload = capabilities_response(
                self.host, media=self.media, media_address=self.media_address
            )
        elif action == "GetSystemDateAndTime":
            payload = TIME_RESPONSE
        elif action == "GetDeviceInformation":
            payload = INFO_RESPONSE
        elif action == "GetProfiles":
            payload = self.profiles_response
        elif action == "GetStreamUri":
            payload = stream_uri_response(self.host, token)
        else:
            return httpx.Response(400, content=b"unknown action")
        return httpx.Response(
            200,
            content=envelope(payload),
            headers={"Content-Type": "application/soap+xml; charset=utf-8"},
        )

    def actions(self) -> list[str]:
        return [r.action for r in self.requests]


@pytest.fixture
def fake_device() -> FakeOnvifDevice:
    return FakeOnvifDevice()


@pytest.fixture
def http_client(fake_device):
    client = httpx.Client(transport=httpx.MockTransport(fake_device.handler))
    yield client
    client.close()
