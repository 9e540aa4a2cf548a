"""Codeshell CLI: main entry point and shared utilities."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

import click
from rich.console import Console

from codeshell.config import Settings

console = Console()

# Color per model locality
LOCALITY_STYLES = {
    "local": "green",
    "cloud": "cyan",
}


def get_locality_style(locality: str) -> str:
    """Return Rich style string for a model locality."""
    return LOCALITY_STYLES.get(locality, "white")


def get_cli_settings(ctx: click.Context, persist_index: bool = False) -> Settings:
    """Settings for this invocation.

    Transactions are always mirrored to ``<storage_dir>/transactions.jsonl``
    so the ``transactions`` command can read what earlier commands did.
    """
    settings: Settings = ctx.obj["settings"]
    updates: dict = {}
    if settings.transaction_log_file is None:
        updates["transaction_log_file"] = settings.storage_dir / "transactions.jsonl"
    if persist_index:
        updates["persist_index"] = True
    return settings.model_copy(update=updates) if updates else settings


@asynccontextmanager
async def open_app(settings: Settings, start_models: bool = True) -> AsyncIterator:
    """Yield a started AppContext and shut it down afterwards."""
    from codeshell.context import AppContext

    app = AppContext(settings)
    if start_models:
        await app.start()
    try:
        yield app
    finally:
        await app.shutdown()


def run_async(coro):
    """Run a coroutine to completion from a synchronous click command."""
    return asyncio.run(coro)


@click.group()
@click.option("-v", "--verbose", is_flag=True, default=False, help="Enable debug logging")
@click.option(
    "--storage-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Directory for settings, index database and transaction log (default: .codeshell)",
)
@click.pass_context
def main(ctx: click.Context, verbose: bool, storage_dir: Path | None):
    """Codeshell: AI model routing and code indexing for the editor."""
    from codeshell.core.logging import setup_logging

    setup_logging(verbose)
    settings = Settings(storage_dir=storage_dir) if storage_dir is not None else Settings()
    ctx.ensure_object(dict)
    ctx.obj["settings"] = settings


def cli():
    """Entrypoint that loads .env before running the CLI."""
    from dotenv import load_dotenv

    load_dotenv()
    main()


# Import subcommand modules to register commands
from codeshell.cli.ai_commands import chat, complete, models, set_key, transactions, use  # noqa: E402
from codeshell.cli.index_commands import index, search, semantic, similar  # noqa: E402

# Register commands
main.add_command(models)
main.add_command(use)
main.add_command(chat)
main.add_command(complete)
main.add_command(set_key, name="set-key")
main.add_command(transactions)
main.add_command(index)
main.add_command(search)
main.add_command(semantic)
main.add_command(similar)
