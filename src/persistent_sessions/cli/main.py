"""CLI entry point for persistent-sessions.

Invoked as::

    persistent-sessions [OPTIONS] COMMAND [ARGS]...

or, during development::

    python -m persistent_sessions.cli.main

Commands
--------
- version        — Show version information
- provision      — Create the session schema and table if absent
- create         — Create a session under a fresh id
- save           — Insert or replace a session under a given id
- load           — Show a live session
- delete         — Delete a session
- purge-expired  — Delete every expired session once
- reap           — Run the periodic eviction loop

Session ids may start with ``-``; pass ``--`` before such an id, e.g.
``persistent-sessions load -- -Xy...``.
"""
from __future__ import annotations

import asyncio
import json
import sys
from collections.abc import Awaitable, Callable
from datetime import timedelta
from pathlib import Path
from typing import Any, TypeVar

import click
from rich.console import Console
from rich.table import Table

from persistent_sessions.config import StoreSettings, load_settings
from persistent_sessions.errors import SessionStoreError
from persistent_sessions.logging_setup import configure_logging
from persistent_sessions.scheduler import ExpiredRecordReaper
from persistent_sessions.session.identifier import SessionId
from persistent_sessions.session.manager import SessionManager
from persistent_sessions.session.record import SessionRecord
from persistent_sessions.storage.base import AsyncSessionStore
from persistent_sessions.storage.factory import open_store

console = Console()

T = TypeVar("T")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run_with_store(
    ctx: click.Context, action: Callable[[AsyncSessionStore], Awaitable[T]]
) -> T:
    """Open the configured store, run ``action`` against it, and close it.

    Any ``SessionStoreError`` is printed and turned into exit code 1.
    """
    settings: StoreSettings = ctx.obj["settings"]

    async def _main() -> T:
        async with open_store(settings) as store:
            return await action(store)

    try:
        return asyncio.run(_main())
    except SessionStoreError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        sys.exit(1)


def _parse_session_id(value: str) -> SessionId:
    try:
        return SessionId.parse(value)
    except ValueError as exc:
        raise click.BadParameter(str(exc), param_hint="SESSION_ID") from exc


def _parse_data(value: str | None) -> dict[str, Any]:
    if value is None:
        return {}
    try:
        data = json.loads(value)
    except json.JSONDecodeError as exc:
        raise click.BadParameter(f"not valid JSON: {exc}", param_hint="--data") from exc
    if not isinstance(data, dict):
        raise click.BadParameter("must be a JSON object", param_hint="--data")
    return data


def _record_table(record: SessionRecord) -> Table:
    table = Table(title=f"Session {str(record.id)[:8]}", show_lines=True)
    table.add_column("Field", style="bold cyan")
    table.add_column("Value")
    table.add_row("id", str(record.id))
    table.add_row("expiry_date", record.expiry_date.isoformat())
    table.add_row("data", json.dumps(record.data, indent=2, default=repr))
    return table


# ---------------------------------------------------------------------------
# Root group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(package_name="persistent-sessions")
@click.option(
    "--config",
    "config_file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="YAML settings file.",
)
@click.option(
    "--backend",
    type=click.Choice(["postgres", "sqlite", "memory"], case_sensitive=False),
    default=None,
    help="Storage backend (default: postgres).",
)
@click.option("--database-url", default=None, help="Postgres URL (postgres backend).")
@click.option(
    "--sqlite-path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Database file (sqlite backend).",
)
@click.option("--schema", "schema_name", default=None, help="Schema holding the session table.")
@click.option("--table", "table_name", default=None, help="Session table name.")
@click.option("--log-level", default=None, help="Log level, e.g. DEBUG or INFO.")
@click.pass_context
def cli(
    ctx: click.Context,
    config_file: Path | None,
    backend: str | None,
    database_url: str | None,
    sqlite_path: Path | None,
    schema_name: str | None,
    table_name: str | None,
    log_level: str | None,
) -> None:
    """Durable, expiring session records."""
    try:
        settings = load_settings(
            config_file,
            backend=backend.lower() if backend else None,
            database_url=database_url,
            sqlite_path=sqlite_path,
            schema_name=schema_name,
            table_name=table_name,
            log_level=log_level,
        )
        configure_logging(settings.logging_config())
    except (SessionStoreError, ValueError) as exc:
        console.print(f"[red]Configuration error:[/red] {exc}")
        sys.exit(1)
    ctx.ensure_object(dict)
    ctx.obj["settings"] = settings


# ---------------------------------------------------------------------------
# version / provision
# ---------------------------------------------------------------------------


@cli.command(name="version")
def version_command() -> None:
    """Show version information."""
    from persistent_sessions import __version__

    console.print(f"[bold]persistent-sessions[/bold] v{__version__}")


@cli.command(name="provision")
@click.pass_context
def provision_command(ctx: click.Context) -> None:
    """Create the session schema and table if they do not exist."""
    _run_with_store(ctx, lambda store: store.provision())
    console.print("[green]Session storage provisioned.[/green]")


# ---------------------------------------------------------------------------
# create / save / load / delete
# ---------------------------------------------------------------------------


@cli.command(name="create")
@click.option("--data", default=None, help="Payload as a JSON object.")
@click.option(
    "--ttl",
    default=14 * 24 * 3600,
    show_default=True,
    type=click.IntRange(min=1),
    help="Lifetime in seconds.",
)
@click.pass_context
def create_command(ctx: click.Context, data: str | None, ttl: int) -> None:
    """Create a session under a fresh id and print the id."""
    payload = _parse_data(data)

    async def _create(store: AsyncSessionStore) -> SessionRecord:
        manager = SessionManager(store)
        return await manager.create_session(payload, timedelta(seconds=ttl))

    record = _run_with_store(ctx, _create)
    console.print(f"[green]Session created:[/green] {record.id}")


@cli.command(name="save")
@click.argument("session_id")
@click.option("--data", default=None, help="Payload as a JSON object.")
@click.option(
    "--ttl",
    default=14 * 24 * 3600,
    show_default=True,
    type=int,
    help="Lifetime in seconds; zero or negative stores an already expired record.",
)
@click.pass_context
def save_command(ctx: click.Context, session_id: str, data: str | None, ttl: int) -> None:
    """Insert or replace SESSION_ID with the given payload and lifetime."""
    sid = _parse_session_id(session_id)
    record = SessionRecord.new(_parse_data(data), timedelta(seconds=ttl), session_id=sid)
    _run_with_store(ctx, lambda store: store.save(record))
    console.print(f"[green]Session saved:[/green] {record.id}")


@cli.command(name="load")
@click.argument("session_id")
@click.option("--json-output", is_flag=True, help="Output raw JSON instead of a table.")
@click.pass_context
def load_command(ctx: click.Context, session_id: str, json_output: bool) -> None:
    """Show SESSION_ID if it exists and has not expired."""
    sid = _parse_session_id(session_id)
    record = _run_with_store(ctx, lambda store: store.load(sid))
    if record is None:
        console.print(f"[yellow]Session not found or expired:[/yellow] {session_id}")
        sys.exit(1)

    if json_output:
        click.echo(record.model_dump_json())
        return
    console.print(_record_table(record))


@cli.command(name="delete")
@click.argument("session_id")
@click.pass_context
def delete_command(ctx: click.Context, session_id: str) -> None:
    """Delete SESSION_ID.  Deleting an absent session succeeds."""
    sid = _parse_session_id(session_id)
    _run_with_store(ctx, lambda store: store.delete(sid))
    console.print(f"[green]Session deleted:[/green] {session_id}")


# ---------------------------------------------------------------------------
# eviction
# ---------------------------------------------------------------------------


@cli.command(name="purge-expired")
@click.pass_context
def purge_expired_command(ctx: click.Context) -> None:
    """Delete every expired session once."""
    removed = _run_with_store(ctx, lambda store: store.delete_expired())
    console.print(f"[green]Removed {removed} expired session(s).[/green]")


@cli.command(name="reap")
@click.option(
    "--interval",
    default=None,
    type=click.FloatRange(min=0, min_open=True),
    help="Seconds between sweeps (default from settings: 60).",
)
@click.option(
    "--sweeps",
    default=None,
    type=click.IntRange(min=1),
    help="Stop after this many sweeps instead of running until interrupted.",
)
@click.pass_context
def reap_command(ctx: click.Context, interval: float | None, sweeps: int | None) -> None:
    """Run the periodic eviction loop until interrupted."""
    settings: StoreSettings = ctx.obj["settings"]
    period = timedelta(seconds=interval) if interval else settings.eviction_interval()

    async def _reap(store: AsyncSessionStore) -> ExpiredRecordReaper:
        reaper = ExpiredRecordReaper(store, period)
        if sweeps is None:
            await reaper.run()
            return reaper
        for index in range(sweeps):
            if index:
                await asyncio.sleep(period.total_seconds())
            await reaper.sweep_once()
        return reaper

    try:
        reaper = _run_with_store(ctx, _reap)
    except KeyboardInterrupt:
        console.print("[dim]Reaper interrupted.[/dim]")
        return
    console.print(
        f"[green]Completed {reaper.sweeps} sweep(s), "
        f"removed {reaper.removed_total} expired session(s).[/green]"
    )


if __name__ == "__main__":
    cli()
