"""Camscan CLI - discover ONVIF cameras on the local network."""

__version__ = "0.1.0"
