"""CLI command implementations — each one authorises first, then talks to Gmail."""

from __future__ import annotations

import asyncio
import logging
from typing import NoReturn

import click
from rich import box
from rich.console import Console
from rich.table import Table

from mailterm.cli.runner import run_session
from mailterm.config import Settings
from mailterm.gmail.auth import Authenticator, AuthError, TokenFileAuthenticator
from mailterm.gmail.client import GmailAPIError
from mailterm.gmail.types import Label
from mailterm.session.state import SessionSnapshot

logger = logging.getLogger(__name__)
console = Console()


def _authenticator(settings: Settings) -> Authenticator:
    return TokenFileAuthenticator(
        settings.credentials_file,
        settings.token_file,
        timeout=float(settings.http_timeout),
    )


def _fail(message: str) -> NoReturn:
    console.print(f"[red]{message}[/red]")
    raise SystemExit(1)


# ── run ──────────────────────────────────────────────────────────────────────


@click.command()
@click.pass_obj
def run(settings: Settings) -> None:
    """Open the interactive mail client."""
    try:
        snapshot = asyncio.run(_run_async(settings))
    except AuthError as exc:
        logger.error("Authentication failed: %s", exc)
        _fail(f"Authentication failed: {exc}")
    if snapshot.fatal_error:
        logger.error("Session ended: %s", snapshot.fatal_error)
        _fail(snapshot.fatal_error)


async def _run_async(settings: Settings) -> SessionSnapshot:
    service = await _authenticator(settings).authorize()
    try:
        return await run_session(service, settings, console)
    finally:
        await service.aclose()


# ── auth ─────────────────────────────────────────────────────────────────────


@click.command()
@click.pass_obj
def auth(settings: Settings) -> None:
    """Authorise with Google and cache the token."""
    try:
        asyncio.run(_auth_async(settings))
    except AuthError as exc:
        logger.error("Authentication failed: %s", exc)
        _fail(f"Authentication failed: {exc}")
    console.print(f"[green]Authorized.[/green] Token saved to {settings.token_file}")


async def _auth_async(settings: Settings) -> None:
    service = await _authenticator(settings).authorize()
    await service.aclose()


# ── labels ───────────────────────────────────────────────────────────────────


@click.command()
@click.pass_obj
def labels(settings: Settings) -> None:
    """List the account's labels (a quick connectivity check)."""
    try:
        rows = asyncio.run(_labels_async(settings))
    except AuthError as exc:
        logger.error("Authentication failed: %s", exc)
        _fail(f"Authentication failed: {exc}")
    except GmailAPIError as exc:
        logger.error("Listing labels failed: %s", exc)
        _fail(f"Gmail error: {exc}")

    if not rows:
        console.print("[yellow]No labels found.[/yellow]")
        return

    table = Table(box=box.ROUNDED, show_header=True, header_style="bold cyan")
    table.add_column("Name")
    table.add_column("ID", style="dim")
    table.add_column("Type", width=8)
    for label in sorted(rows, key=lambda l: (l.type != "system", l.name.lower())):
        table.add_row(label.name, label.id, label.type)
    console.print(table)


async def _labels_async(settings: Settings) -> list[Label]:
    service = await _authenticator(settings).authorize()
    try:
        return await service.list_labels()
    finally:
        await service.aclose()
