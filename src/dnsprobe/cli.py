"""
dnsprobe command line entry point.
"""

import click

from dnsprobe import __version__
from dnsprobe.config import get_config
from dnsprobe.dns.cli import dns
from dnsprobe.logging_config import configure_logging


@click.group()
@click.version_option(__version__, prog_name="dnsprobe")
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.option("--log-file", type=click.Path(dir_okay=False), help="Also write logs to this file")
def main(debug: bool, log_file: str | None):
    """dnsprobe - DNS resolution and propagation checks."""
    configure_logging(debug=debug, log_file=log_file, level=get_config().log_level)


main.add_command(dns)


if __name__ == "__main__":
    main()
