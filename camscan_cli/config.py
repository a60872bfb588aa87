"""Configuration and constants for the Camscan CLI."""

import logging
import os

logger = logging.getLogger(__name__)

# WS-Discovery
DISCOVERY_MULTICAST_GROUP = "239.255.255.250"
DISCOVERY_MULTICAST_PORT = 3702
DISCOVERY_MULTICAST_TTL = 3
DISCOVERY_WINDOW = 3.0  # seconds, measured from when the probe is sent
DISCOVERY_BUFFER_SIZE = 32768

# Port scanning
DEFAULT_PORT = 80
PORT_SCAN_TIMEOUT = 0.05  # seconds per connection attempt
MAX_HOSTS_PER_NETWORK = 256

# ONVIF device management
DEVICE_SERVICE_PATH = "/onvif/device_service"
SOAP_CONTENT_TYPE = "application/soap+xml;charset=utf-8"
REQUEST_TIMEOUT = 5.0
REQUEST_ATTEMPTS = 3
REQUEST_RETRY_DELAY = 1.0
MAX_RESPONSE_BYTES = 1024 * 1024

# Media inspection
FFPROBE_BINARY = "ffprobe"
FFPROBE_TIMEOUT = 15.0

DEFAULT_LOG_LEVEL = "INFO"


def get_port() -> int:
    """Get the target port from environment or default."""
    value = os.getenv("CAMSCAN_PORT")
    if not value:
        return DEFAULT_PORT
    if not value.strip().isdigit():
        logger.warning("Ignoring invalid CAMSCAN_PORT %r, using %d", value, DEFAULT_PORT)
        return DEFAULT_PORT
    return int(value.strip())


def get_username() -> str:
    """Get the camera username from environment (may be empty)."""
    return os.getenv("CAMSCAN_USERNAME", "")


def get_password() -> str:
    """Get the camera password from environment (may be empty)."""
    return os.getenv("CAMSCAN_PASSWORD", "")


def get_log_level() -> str:
    """Get the log level name from environment or default."""
    return os.getenv("CAMSCAN_LOG_LEVEL", DEFAULT_LOG_LEVEL).upper()
