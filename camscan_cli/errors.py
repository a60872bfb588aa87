"""Exceptions raised by the discovery and probe pipeline."""

from typing import Optional


class CamScanError(Exception):
    """Base class for all Camscan errors."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message)
        self.details = details


class InterfaceError(CamScanError):
    """Raised when the local interface table cannot be read."""


class DiscoveryError(CamScanError):
    """Raised when a WS-Discovery probe cannot be sent on an interface."""


class ScanAbortedError(CamScanError):
    """Raised when port scanning runs out of local resources."""


class OnvifError(CamScanError):
    """Raised when an ONVIF request fails."""


class OnvifHTTPError(OnvifError):
    """Raised when a device answers with a non-success status code."""

    def __init__(self, message: str, status_code: int, details: Optional[dict] = None):
        super().__init__(message, details)
        self.status_code = status_code


class OnvifParseError(OnvifError):
    """Raised when a device response cannot be parsed."""

    def __init__(self, message: str, snippet: str = "", details: Optional[dict] = None):
        super().__init__(message, details)
        self.snippet = snippet


class NotAnOnvifDevice(CamScanError):
    """Raised when a candidate does not expose a media service."""


class StreamProbeError(CamScanError):
    """Raised when ffprobe cannot open or describe a stream."""
