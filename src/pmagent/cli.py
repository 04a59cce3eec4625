"""CLI entry point for pmagent."""

from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path

import click

from pmagent.agent import get_shared_runner, respond
from pmagent.config import AgentSettings, ConfigError, load_settings
from pmagent.logging import setup_logging
from pmagent.state_store import StateStoreError, TicketStore
from pmagent.tickets import TicketError, TicketLifecycle

config_option = click.option(
    "-c",
    "--config",
    "config_path",
    type=click.Path(exists=True, path_type=Path),
    help="Path to pmagent.yaml (auto-detected if not specified)",
)
verbose_option = click.option(
    "-v",
    "--verbose",
    is_flag=True,
    help="Log to the console at debug level",
)


def _load(config_path: Path | None, verbose: bool) -> AgentSettings:
    setup_logging(level="DEBUG" if verbose else None, console=verbose)
    try:
        return load_settings(config_path)
    except ConfigError as e:
        click.echo(f"Configuration error: {e}", err=True)
        sys.exit(1)


@click.group()
@click.version_option(package_name="pmagent")
def main() -> None:
    """pmagent - Project Manager agent for a codebase and its Kanban board."""
    pass


@main.command()
@click.argument("message")
@config_option
@verbose_option
@click.option("--json", "as_json", is_flag=True, help="Print the full turn result as JSON")
@click.option("--canned", is_flag=True, help="Give the canned reply without calling the model")
def ask(
    message: str, config_path: Path | None, verbose: bool, as_json: bool, canned: bool
) -> None:
    """Run one agent turn for MESSAGE and print the reply."""
    if canned:
        result = respond(message)
        click.echo(json.dumps(result.to_dict(), indent=2) if as_json else result.reply_text)
        return

    settings = _load(config_path, verbose)
    store = TicketStore(settings.db_path) if settings.store_enabled else None
    try:
        try:
            agent_config = settings.to_agent_config(store=store)
        except ConfigError as e:
            click.echo(f"Configuration error: {e}", err=True)
            sys.exit(1)

        runner = get_shared_runner()
        turn = asyncio.run(runner.run(message, agent_config))
    finally:
        if store is not None:
            store.close()

    if as_json:
        click.echo(json.dumps(turn.to_dict(), indent=2, default=str))
    elif turn.ok:
        click.echo(turn.reply)
    if not turn.ok:
        click.echo(f"Agent error ({turn.error_phase}): {turn.error}", err=True)
        sys.exit(1)


@main.command()
@click.argument("column_id")
@config_option
@verbose_option
@click.option("--repo", "repo_full_name", help="Repository scope (default: from settings)")
def tickets(
    column_id: str, config_path: Path | None, verbose: bool, repo_full_name: str | None
) -> None:
    """List tickets in COLUMN_ID (e.g. col-todo)."""
    settings = _load(config_path, verbose)
    if not settings.store_enabled:
        click.echo("Configuration error: PMAGENT_DB_PATH is not set", err=True)
        sys.exit(1)

    store = TicketStore(settings.db_path)
    try:
        lifecycle = TicketLifecycle(store, repo_full_name or settings.repo_full_name)
        listing = lifecycle.list_by_column(column_id)
    except (TicketError, StateStoreError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    finally:
        store.close()

    if not listing.tickets:
        click.echo(f"No tickets in {listing.column_id}")
        return
    for ticket in listing.tickets:
        position = "-" if ticket.kanban_position is None else str(ticket.kanban_position)
        click.echo(f"{position:>3}  {ticket.reference:<12} {ticket.title}")


@main.command()
@config_option
@verbose_option
@click.option("--host", default="127.0.0.1", show_default=True, help="Bind address")
@click.option("--port", default=8000, show_default=True, type=int, help="Bind port")
def serve(config_path: Path | None, verbose: bool, host: str, port: int) -> None:
    """Serve the REST API with uvicorn."""
    import uvicorn  # noqa: PLC0415

    from pmagent.api import create_app  # noqa: PLC0415

    settings = _load(config_path, verbose)
    uvicorn.run(create_app(settings), host=host, port=port)


if __name__ == "__main__":
    main()
