"""Discover command: list candidate devices without probing them."""

import click

from ..config import DEFAULT_PORT, get_port
from ..discovery import NetworkScanner
from ..errors import CamScanError
from ..utils import console, format_json, log_level_option, print_error, print_success, setup_logging


@click.command()
@click.option(
    "--port",
    "-p",
    type=int,
    default=get_port,
    show_default=str(DEFAULT_PORT),
    help="TCP port to scan for",
)
@click.option("--no-discovery", is_flag=True, help="Disable ONVIF WS-Discovery")
@click.option("--no-port-scan", is_flag=True, help="Disable TCP port scanning")
@click.option("--json", "output_json", is_flag=True, help="Output results as JSON")
@log_level_option
def discover(
    port: int,
    no_discovery: bool,
    no_port_scan: bool,
    output_json: bool,
    log_level: str,
) -> None:
    """List candidate ONVIF device service URLs.

    Runs WS-Discovery and the port scan only. Candidates are not contacted
    over ONVIF.

    \b
    Examples:
        camscan-cli discover
        camscan-cli discover --no-port-scan
    """
    setup_logging(log_level)

    scanner = NetworkScanner(port=port, inspect_stream=None)
    try:
        candidates = scanner.find_candidates(
            ws_discovery=not no_discovery, port_scan=not no_port_scan
        )
    except CamScanError as e:
        print_error(f"Discovery failed: {e}")
        raise SystemExit(1)

    if output_json:
        console.print_json(format_json(candidates))
        return

    if not candidates:
        console.print("[yellow]No candidates found.[/yellow]")
        return

    print_success(f"Found {len(candidates)} candidate(s)")
    for candidate in candidates:
        console.print(f"  {candidate}")
