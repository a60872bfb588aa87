"""Stream inspection through ffprobe."""

import json
import logging
import subprocess
from urllib.parse import quote, urlsplit, urlunsplit

from .config import FFPROBE_BINARY, FFPROBE_TIMEOUT
from .errors import StreamProbeError
from .onvif.models import Stream

logger = logging.getLogger(__name__)


def with_credentials(uri: str, username: str, password: str) -> str:
    """Embed ``username`` and ``password`` in a stream URI."""
    if not username:
        return uri
    parts = urlsplit(uri)
    host = parts.hostname or ""
    if ":" in host:
        host = f"[{host}]"
    if parts.port:
        host = f"{host}:{parts.port}"
    userinfo = f"{quote(username, safe='')}:{quote(password, safe='')}"
    return urlunsplit((parts.scheme, f"{userinfo}@{host}", parts.path, parts.query, parts.fragment))


def probe_rtsp(url: str, timeout: float = FFPROBE_TIMEOUT) -> list[Stream]:
    """
    Describe the streams behind ``url`` with ffprobe.

    Raises:
        StreamProbeError: If ffprobe is missing, times out, fails or prints
            something that is not JSON.
    """
    cmd = [
        FFPROBE_BINARY,
        "-v", "quiet",
        "-print_format", "json",
        "-show_format",
        "-show_streams",
        url,
    ]
    try:
        result = subprocess.run(cmd, capture_output=True, text=True, timeout=timeout)
    except FileNotFoundError as e:
        raise StreamProbeError(f"{FFPROBE_BINARY} not installed") from e
    except subprocess.TimeoutExpired as e:
        raise StreamProbeError(f"{FFPROBE_BINARY} timed out after {timeout}s") from e

    if result.returncode != 0:
        raise StreamProbeError(f"{FFPROBE_BINARY} exited with status {result.returncode}")

    logger.debug("ffprobe complete for %s: %s", url, result.stdout)
    try:
        data = json.loads(result.stdout)
    except json.JSONDecodeError as e:
        raise StreamProbeError(f"invalid ffprobe output: {e}") from e

    return [Stream.from_dict(s) for s in data.get("streams", [])]
