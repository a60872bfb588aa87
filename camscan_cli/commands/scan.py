"""Scan command for finding ONVIF cameras and reading their profiles."""

import click
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn

from ..config import DEFAULT_PORT, get_password, get_port, get_username
from ..discovery import DiscoveredDevice, NetworkScanner
from ..errors import CamScanError
from ..ffprobe import probe_rtsp
from ..utils import (
    console,
    create_table,
    err_console,
    format_json,
    log_level_option,
    print_error,
    setup_logging,
)


def format_device_row(found: DiscoveredDevice) -> tuple:
    """Format a device for table display."""
    device = found.device
    info = device.information
    profiles = ", ".join(
        f"{p.name or p.token} ({p.width}x{p.height})" for p in device.profiles
    )
    return (
        device.address,
        info.manufacturer or "-",
        info.model or "-",
        info.firmware_version or "-",
        info.serial_number or "-",
        profiles or "-",
        found.error or "",
    )


@click.command()
@click.option(
    "--port",
    "-p",
    type=int,
    default=get_port,
    show_default=str(DEFAULT_PORT),
    help="TCP port to scan for ONVIF devices",
)
@click.option("--username", "-u", default=get_username, help="Camera username (optional)")
@click.option("--password", default=get_password, help="Camera password (optional)")
@click.option("--no-discovery", is_flag=True, help="Disable ONVIF WS-Discovery")
@click.option("--no-port-scan", is_flag=True, help="Disable TCP port scanning")
@click.option("--no-ffprobe", is_flag=True, help="Do not inspect streams with ffprobe")
@click.option("--json", "output_json", is_flag=True, help="Output results as JSON")
@log_level_option
def scan(
    port: int,
    username: str,
    password: str,
    no_discovery: bool,
    no_port_scan: bool,
    no_ffprobe: bool,
    output_json: bool,
    log_level: str,
) -> None:
    """Scan the local network for ONVIF cameras.

    Finds candidates with ONVIF WS-Discovery and a TCP port scan, then
    reads identity, media profiles and stream URIs from each device.

    \b
    Examples:
        camscan-cli scan
        camscan-cli scan -u admin --password secret
        camscan-cli scan -p 8080 --json
    """
    setup_logging(log_level)

    scanner = NetworkScanner(
        port=port,
        username=username,
        password=password,
        inspect_stream=None if no_ffprobe else probe_rtsp,
    )

    try:
        if output_json or no_port_scan:
            devices = scanner.scan(ws_discovery=not no_discovery, port_scan=not no_port_scan)
        else:
            with Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                BarColumn(),
                TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
                console=err_console,
                transient=True,
            ) as progress:
                task = progress.add_task("Scanning...", total=100)

                def on_progress(current: int, total: int) -> None:
                    progress.update(task, completed=(current / total) * 100)

                devices = scanner.scan(ws_discovery=not no_discovery, on_progress=on_progress)
    except CamScanError as e:
        print_error(f"Scan failed: {e}")
        raise SystemExit(1)

    if output_json:
        console.print_json(format_json([d.to_dict() for d in devices]))
        return

    if not devices:
        console.print("[yellow]No ONVIF devices found.[/yellow]")
        console.print("\n[dim]Tips:[/dim]")
        console.print("  • Make sure cameras are powered on and on this network")
        console.print("  • Try another port with -p <port>")
        console.print("  • Pass credentials with -u and --password")
        return

    table = create_table(
        f"Found {len(devices)} device(s)",
        [
            ("Address", "cyan"),
            ("Manufacturer", "yellow"),
            ("Model", "green"),
            ("Firmware", "dim"),
            ("Serial", "dim"),
            ("Profiles", "magenta"),
            ("Error", "red"),
        ],
    )
    for found in devices:
        table.add_row(*format_device_row(found))
    console.print(table)

    for found in devices:
        for profile in found.device.profiles:
            if profile.uri:
                console.print(f"  [dim]{found.display_name}[/dim] {profile.name}: {profile.uri}")
