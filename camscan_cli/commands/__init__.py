"""CLI commands for Camscan."""

from .discover import discover
from .scan import scan

__all__ = ["discover", "scan"]
