"""Model commands: codeshell models, use, chat, complete, set-key, transactions."""

from __future__ import annotations

import json
import sys
from datetime import datetime

import click
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from codeshell.cli.main import console, get_cli_settings, get_locality_style, open_app, run_async
from codeshell.core.config import PROVIDERS, redact_api_key


@click.command()
@click.pass_context
def models(ctx: click.Context):
    """List configured models and whether they are ready."""

    async def _run():
        async with open_app(get_cli_settings(ctx)) as app:
            current = app.dispatcher.get_current_model()
            table = Table(title="Models")
            table.add_column("", width=1)
            table.add_column("ID", style="bold")
            table.add_column("Name")
            table.add_column("Provider")
            table.add_column("Locality")
            table.add_column("Latency")
            table.add_column("Context", justify="right")
            table.add_column("Status")
            for entry in app.registry.list_all():
                d = entry.descriptor
                status = "[green]ready[/green]" if entry.ready else "[dim]unavailable[/dim]"
                table.add_row(
                    "*" if d.id == current else "",
                    d.id,
                    d.name,
                    d.provider,
                    f"[{get_locality_style(d.locality)}]{d.locality}[/]",
                    d.latency,
                    f"{d.context_window:,}",
                    status,
                )
            console.print(table)
            if current is None:
                console.print("[yellow]No AI models available.[/yellow] Start Ollama or add an API key.")

    run_async(_run())


@click.command()
@click.argument("model_id")
@click.pass_context
def use(ctx: click.Context, model_id: str):
    """Make MODEL_ID the current (primary) model."""

    async def _run():
        async with open_app(get_cli_settings(ctx)) as app:
            return app.dispatcher.switch_model(model_id)

    if not run_async(_run()):
        console.print(f"[red]Error:[/red] Model [bold]{model_id}[/bold] is not registered or not ready.")
        sys.exit(1)
    console.print(f"Current model: [bold]{model_id}[/bold]")


@click.command()
@click.argument("message")
@click.option("--language", default=None, help="Language of the active file")
@click.option("--file", "file_path", default=None, help="Path of the active file")
@click.option("--selection", default=None, help="Selected code to include as context")
@click.pass_context
def chat(ctx: click.Context, message: str, language: str | None, file_path: str | None, selection: str | None):
    """Send MESSAGE to the best available chat model."""
    context = {"language": language, "file_path": file_path, "selection": selection}

    async def _run():
        async with open_app(get_cli_settings(ctx)) as app:
            return await app.dispatcher.dispatch_chat(message, context)

    reply = run_async(_run())
    console.print(Panel(reply, title="Assistant", border_style="blue"))


@click.command()
@click.argument("prompt")
@click.option("--language", default=None, help="Language of the code")
@click.option("--file", "file_path", default=None, help="Path of the active file")
@click.pass_context
def complete(ctx: click.Context, prompt: str, language: str | None, file_path: str | None):
    """Complete the code in PROMPT."""
    context = {"language": language, "file_path": file_path}

    async def _run():
        async with open_app(get_cli_settings(ctx)) as app:
            return await app.dispatcher.dispatch_completion(prompt, context)

    console.print(run_async(_run()), markup=False, highlight=False)


@click.command()
@click.argument("provider", type=click.Choice(list(PROVIDERS)))
@click.argument("api_key")
@click.option("--test/--no-test", default=True, help="Probe the key before saving it")
@click.pass_context
def set_key(ctx: click.Context, provider: str, api_key: str, test: bool):
    """Store API_KEY for PROVIDER and re-register its models."""

    async def _run():
        async with open_app(get_cli_settings(ctx)) as app:
            if test and not await app.dispatcher.test_api_key(provider, api_key):
                return None
            return await app.dispatcher.update_api_key(provider, api_key)

    ready = run_async(_run())
    if ready is None:
        console.print(f"[red]Error:[/red] {provider} rejected key {redact_api_key(api_key)}; not saved.")
        sys.exit(1)
    console.print(f"Saved {provider} key {redact_api_key(api_key)}.")
    if ready:
        console.print(f"Ready: {', '.join(ready)}")


KIND_STYLES = {
    "request": "blue",
    "response": "green",
    "error": "red",
    "info": "dim",
}


@click.command()
@click.option("--clear", is_flag=True, default=False, help="Delete the recorded transactions")
@click.option("--limit", default=20, help="Number of most recent transactions to show")
@click.pass_context
def transactions(ctx: click.Context, clear: bool, limit: int):
    """Show recent dispatch transactions."""
    settings = get_cli_settings(ctx)
    log_file = settings.transaction_log_file

    if clear:
        if log_file is not None and log_file.exists():
            log_file.unlink()
        console.print("Transaction log cleared.")
        return

    if log_file is None or not log_file.exists():
        console.print("[dim]No transactions recorded.[/dim]")
        return

    events = []
    for line in log_file.read_text().splitlines():
        if line.strip():
            try:
                events.append(json.loads(line))
            except json.JSONDecodeError:
                continue

    table = Table(title=f"Transactions ({min(limit, len(events))} of {len(events)})")
    table.add_column("Time")
    table.add_column("Kind")
    table.add_column("Model")
    table.add_column("Operation")
    table.add_column("Latency", justify="right")
    table.add_column("Detail", overflow="ellipsis", max_width=60)
    for event in events[-limit:]:
        kind = event.get("kind", "")
        metadata = event.get("metadata") or {}
        latency = metadata.get("latency")
        detail = event.get("error") or event.get("response") or event.get("prompt") or ""
        table.add_row(
            datetime.fromtimestamp(event.get("timestamp", 0)).strftime("%H:%M:%S"),
            Text(kind, style=KIND_STYLES.get(kind, "white")),
            event.get("model", ""),
            event.get("operation", ""),
            f"{latency}ms" if latency is not None else "",
            Text(detail.replace("\n", " ")),
        )
    console.print(table)
