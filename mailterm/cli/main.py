"""CLI entry point for the terminal Gmail client."""

import logging
from pathlib import Path

import click
from dotenv import load_dotenv

from mailterm.config import Settings

logger = logging.getLogger(__name__)


@click.group()
@click.option(
    "--env-file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Load settings from this .env file instead of ./.env.",
)
@click.pass_context
def cli(ctx: click.Context, env_file: Path | None) -> None:
    """mailterm — read, search, and send Gmail from the terminal."""
    load_dotenv(env_file)
    settings = Settings.from_env()
    # The terminal belongs to the renderer, so logs go to a file.
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        filename=str(settings.log_file),
        format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
    )
    ctx.obj = settings


# Import and register commands after cli is defined to avoid circular imports.
from mailterm.cli.commands import auth, labels, run  # noqa: E402

cli.add_command(run)
cli.add_command(auth)
cli.add_command(labels)
