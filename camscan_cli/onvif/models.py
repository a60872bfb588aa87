"""Data records returned by ONVIF devices."""

import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from . import soap


def _to_int(value: Optional[str]) -> int:
    try:
        return int(value) if value is not None else 0
    except ValueError:
        return 0


def _to_bool(value: str) -> bool:
    return value.strip().lower() == "true"


@dataclass
class Stream:
    """A single media stream as reported by ffprobe."""

    index: int = 0
    codec_type: str = ""
    codec_name: str = ""
    codec_long_name: str = ""
    width: int = 0
    height: int = 0
    frame_rate: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> "Stream":
        """Create a Stream from one entry of ffprobe's ``streams`` list."""
        return cls(
            index=data.get("index", 0),
            codec_type=data.get("codec_type", ""),
            codec_name=data.get("codec_name", ""),
            codec_long_name=data.get("codec_long_name", ""),
            width=data.get("width", 0),
            height=data.get("height", 0),
            frame_rate=data.get("avg_frame_rate", ""),
        )


@dataclass
class EventCapabilities:
    """Event service address and supported subscription styles."""

    address: str = ""
    ws_subscription_policy_support: bool = False
    ws_pull_point_support: bool = False
    ws_pausable_subscription_manager_interface_support: bool = False


@dataclass
class Capabilities:
    """Service addresses a device exposes."""

    media_address: str = ""
    events: EventCapabilities = field(default_factory=EventCapabilities)

    @classmethod
    def from_element(cls, response: ET.Element) -> "Capabilities":
        """Create Capabilities from a ``GetCapabilitiesResponse`` element."""
        caps = soap.find_path(response, "Capabilities")
        events = soap.find_path(caps, "Events")
        return cls(
            media_address=soap.text_at(caps, "Media", "XAddr"),
            events=EventCapabilities(
                address=soap.text_at(events, "XAddr"),
                ws_subscription_policy_support=_to_bool(
                    soap.text_at(events, "WSSubscriptionPolicySupport")
                ),
                ws_pull_point_support=_to_bool(soap.text_at(events, "WSPullPointSupport")),
                ws_pausable_subscription_manager_interface_support=_to_bool(
                    soap.text_at(events, "WSPausableSubscriptionManagerInterfaceSupport")
                ),
            ),
        )


@dataclass
class DeviceInformation:
    """Identity of a device. Values are free form."""

    manufacturer: str = ""
    model: str = ""
    firmware_version: str = ""
    serial_number: str = ""
    hardware_id: str = ""

    @classmethod
    def from_element(cls, response: ET.Element) -> "DeviceInformation":
        """Create DeviceInformation from a ``GetDeviceInformationResponse``."""
        return cls(
            manufacturer=soap.text_at(response, "Manufacturer"),
            model=soap.text_at(response, "Model"),
            firmware_version=soap.text_at(response, "FirmwareVersion"),
            serial_number=soap.text_at(response, "SerialNumber"),
            hardware_id=soap.text_at(response, "HardwareID"),
        )


@dataclass
class MediaProfile:
    """A media profile and the stream URI resolved for it."""

    token: str
    name: str = ""
    width: int = 0
    height: int = 0
    uri: str = ""
    streams: list[Stream] = field(default_factory=list)

    @classmethod
    def from_element(cls, profile: ET.Element) -> "MediaProfile":
        """Create a MediaProfile from a ``Profiles`` element."""
        bounds = soap.find_path(profile, "VideoSourceConfiguration", "Bounds")
        return cls(
            token=profile.get("token", ""),
            name=soap.text_at(profile, "Name"),
            width=_to_int(bounds.get("width")) if bounds is not None else 0,
            height=_to_int(bounds.get("height")) if bounds is not None else 0,
        )


def parse_system_date_time(response: ET.Element) -> datetime:
    """
    Read the UTC clock from a ``GetSystemDateAndTimeResponse``.

    Raises:
        ValueError: If the UTC date or time is missing or out of range.
    """
    utc = soap.find_path(response, "SystemDateAndTime", "UTCDateTime")
    if utc is None:
        raise ValueError("no UTCDateTime in response")

    def part(*names: str) -> int:
        value = soap.text_at(utc, *names)
        if not value:
            raise ValueError(f"missing {'/'.join(names)} in UTCDateTime")
        return int(value)

    return datetime(
        part("Date", "Year"),
        part("Date", "Month"),
        part("Date", "Day"),
        part("Time", "Hour"),
        part("Time", "Minute"),
        part("Time", "Second"),
        tzinfo=timezone.utc,
    )

