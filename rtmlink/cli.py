"""Command-line interface for rtmlink."""

import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Optional

import click

from rtmlink import __version__
from rtmlink.config import load_config
from rtmlink.models import Config
from rtmlink.rtm import Gateway, RtmError

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)


def _build_config(config_path: Path, token: Optional[str]) -> Config:
    cfg = load_config(config_path)
    if token:
        cfg = cfg.model_copy(update={"token": token})

    if not cfg.token:
        click.echo("No token configured. Use --token, RTMLINK_TOKEN or config.yaml.", err=True)
        sys.exit(1)

    return cfg


async def _open(cfg: Config) -> Gateway:
    gateway = Gateway.from_config(cfg)
    try:
        await gateway.start()
    except RtmError as e:
        await gateway.close()
        click.echo(f"Failed to connect: {e}", err=True)
        sys.exit(1)
    return gateway


config_option = click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default="config.yaml",
    help="Path to config YAML file",
)
token_option = click.option(
    "--token",
    envvar="RTMLINK_TOKEN",
    help="API token (overrides config file)",
)


@click.group()
@click.version_option(version=__version__)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def cli(verbose: bool):
    """rtmlink - resilient real-time messaging client."""
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)


@cli.command()
@config_option
@token_option
def listen(config_path: Path, token: Optional[str]):
    """Print every inbound message frame as a line of JSON."""
    cfg = _build_config(config_path, token)

    async def run():
        gateway = await _open(cfg)
        try:
            async for frame in gateway:
                click.echo(frame)
        finally:
            await gateway.close()

    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        logger.info("Received interrupt signal, stopping")


@cli.command()
@config_option
@token_option
@click.option("--channel", required=True, help="Channel ID to send to")
@click.option("--text", help="Message text (read from stdin when omitted)")
def say(config_path: Path, token: Optional[str], channel: str, text: Optional[str]):
    """Send a message, splitting it if it is too long."""
    cfg = _build_config(config_path, token)

    if text is None:
        text = click.get_text_stream("stdin").read()

    if not text:
        click.echo("Nothing to send.", err=True)
        sys.exit(1)

    async def run():
        gateway = await _open(cfg)
        try:
            ids = await gateway.write(channel, text)
            await gateway.flush()
        finally:
            await gateway.close()
        return ids

    try:
        ids = asyncio.run(run())
    except RtmError as e:
        click.echo(f"Failed to send: {e}", err=True)
        sys.exit(1)

    click.echo(f"Sent {len(ids)} event(s): {', '.join(str(i) for i in ids)}")


@cli.command()
@config_option
@token_option
@click.option("--json", "as_json", is_flag=True, help="Dump the full state as JSON")
def whoami(config_path: Path, token: Optional[str], as_json: bool):
    """Show the authenticated identity and the size of the directory."""
    cfg = _build_config(config_path, token)

    async def run():
        gateway = await _open(cfg)
        try:
            return gateway.state.snapshot()
        finally:
            await gateway.close()

    snapshot = asyncio.run(run())

    if as_json:
        click.echo(json.dumps(snapshot, indent=2, ensure_ascii=False))
        return

    identity = snapshot["self"] or {}
    click.echo(f"Identity: {identity.get('name')} ({identity.get('id')})")
    click.echo(f"Users: {len(snapshot['users'])}")
    click.echo(f"Channels: {len(snapshot['channels'])}")


if __name__ == "__main__":
    cli()
