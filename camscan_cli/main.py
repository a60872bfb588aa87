"""Main entry point for the Camscan CLI."""

import click

from . import __version__
from .commands import discover, scan


@click.group()
@click.version_option(version=__version__, prog_name="camscan-cli")
def cli() -> None:
    """Camscan CLI - Find ONVIF cameras on the local network.

    \b
    Commands:
      scan      Find ONVIF devices and read their identity and profiles
      discover  List candidate devices without probing them

    \b
    Examples:
      camscan-cli scan
      camscan-cli scan -u admin --password secret
      camscan-cli discover --json
    """
    pass


# Register commands
cli.add_command(scan)
cli.add_command(discover)


def main() -> None:
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
