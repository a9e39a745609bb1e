"""CLI entry point for mdns-discovery."""

import asyncio
import sys
from pathlib import Path
from typing import Optional

import click
import structlog

from . import __version__
from .config import Config
from .discovery.discovery_service import MDNSDiscovery
from .server import DiscoveryServer, stdin_lines
from .utils.logging_setup import configure_logging


async def _serve(config: Config) -> None:
    discovery = MDNSDiscovery(config=config.discovery)
    server = DiscoveryServer(discovery, output=sys.stdout)
    await server.run(stdin_lines())


@click.command()
@click.version_option(__version__, "-v", "--version", prog_name="mdns-discovery", message="%(prog)s %(version)s")
@click.option(
    "--config-file", "-c",
    type=click.Path(exists=True, dir_okay=False, resolve_path=True),
    help="Path to a JSON configuration file.",
    envvar="MDNS_DISCOVERY_CONFIG_FILE"
)
@click.option(
    "--log-level", "-l",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], case_sensitive=False),
    default=None,
    help="Override the logging level (e.g., DEBUG, INFO).",
)
@click.option(
    "--log-format",
    type=click.Choice(["console", "json"], case_sensitive=False),
    default=None,
    help="Override logging format.",
)
def cli(config_file: Optional[str], log_level: Optional[str], log_format: Optional[str]) -> None:
    """Discovers network boards via mDNS, speaking the pluggable discovery protocol on stdin/stdout."""
    try:
        if config_file:
            cfg = Config.from_file(Path(config_file))
        else:
            cfg = Config()
    except Exception as e:
        click.echo(f"Error loading configuration: {e}", err=True)
        sys.exit(1)

    if log_level:
        cfg.logging.level = log_level.upper()
    if log_format:
        cfg.logging.format = log_format.lower()
    configure_logging(cfg.logging)

    try:
        asyncio.run(_serve(cfg))
    except KeyboardInterrupt:
        sys.exit(130)
    except Exception as e:
        structlog.get_logger(__name__).exception("Discovery server failed", error=str(e))
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


if __name__ == "__main__":
    cli()
