"""ONVIF device management client."""

from .device import Device, OnvifClient, ProbeResult, RequestPolicy
from .models import Capabilities, DeviceInformation, MediaProfile, Stream

__all__ = [
    "Capabilities",
    "Device",
    "DeviceInformation",
    "MediaProfile",
    "OnvifClient",
    "ProbeResult",
    "RequestPolicy",
    "Stream",
]
