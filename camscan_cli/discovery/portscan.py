"""TCP port scanning across local private networks."""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, Optional

from ..config import MAX_HOSTS_PER_NETWORK, PORT_SCAN_TIMEOUT
from ..errors import ScanAbortedError
from .interfaces import get_ips_on_network, is_port_open, network_size

logger = logging.getLogger(__name__)


class PortScanner:
    """
    Finds hosts with a given TCP port open on the local networks.

    Every candidate address gets its own worker, so the whole scan takes
    roughly one connection timeout. Running out of local sockets aborts
    the scan: the remaining attempts are cancelled and the error is raised
    to the caller.

    Usage:
        scanner = PortScanner()
        open_hosts = scanner.scan({"eth0": "192.168.1.10/24"}, 80)
    """

    def __init__(
        self,
        timeout: float = PORT_SCAN_TIMEOUT,
        max_hosts: int = MAX_HOSTS_PER_NETWORK,
        check: Callable[[str, float], bool] = is_port_open,
    ):
        """
        Initialize the scanner.

        Args:
            timeout: Connection timeout in seconds for each attempt.
            max_hosts: Networks with more addresses than this are skipped.
            check: Function testing a single ``host:port``.
        """
        self.timeout = timeout
        self.max_hosts = max_hosts
        self._check = check
        self._lock = threading.Lock()

    def candidates(self, ifaces: dict[str, str], port: int) -> set[str]:
        """Build the deduplicated set of ``host:port`` strings to scan."""
        candidates: set[str] = set()
        for iface, cidr in ifaces.items():
            count = network_size(cidr)
            if count > self.max_hosts:
                logger.info(
                    "Ignoring interface %s (%s) with too many IPs: %d", iface, cidr, count
                )
                continue
            ips = get_ips_on_network(cidr)
            candidates.update(f"{ip}:{port}" for ip in ips)
            logger.info("Scanning %d candidate IPs on interface %s (%s)", len(ips), iface, cidr)
        return candidates

    def _check_one(self, candidate: str, stop: threading.Event, keepers: set[str]) -> None:
        if stop.is_set():
            return
        if self._check(candidate, self.timeout):
            logger.info("Found open port: %s", candidate)
            with self._lock:
                keepers.add(candidate)

    def scan(
        self,
        ifaces: dict[str, str],
        port: int,
        on_progress: Optional[Callable[[int, int], None]] = None,
    ) -> list[str]:
        """
        Scan every address on the given networks for an open port.

        Args:
            ifaces: Mapping of interface name to CIDR.
            port: TCP port to test.
            on_progress: Callback for progress (current, total).

        Returns:
            Open ``host:port`` strings, in no particular order.

        Raises:
            ScanAbortedError: If the process ran out of sockets.
        """
        candidates = self.candidates(ifaces, port)
        if not candidates:
            return []

        keepers: set[str] = set()
        stop = threading.Event()
        failure: Optional[ScanAbortedError] = None
        total = len(candidates)
        completed = 0

        with ThreadPoolExecutor(max_workers=total) as executor:
            futures = {
                executor.submit(self._check_one, candidate, stop, keepers): candidate
                for candidate in candidates
            }

            for future in as_completed(futures):
                completed += 1
                if on_progress:
                    on_progress(completed, total)
                if future.cancelled():
                    continue
                try:
                    future.result()
                except ScanAbortedError as e:
                    logger.error("Error checking port on %s: %s", futures[future], e)
                    if failure is None:
                        failure = e
                        stop.set()
                        for pending in futures:
                            pending.cancel()

        if failure is not None:
            raise failure
        return list(keepers)
