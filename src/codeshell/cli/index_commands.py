"""Index commands: codeshell index, search, semantic, similar.

These always use the on-disk index under the storage directory so that
separate invocations see the same data.
"""

from __future__ import annotations

import sys
from pathlib import Path

import click
from rich.table import Table

from codeshell.cli.main import console, get_cli_settings, open_app, run_async
from codeshell.index.symbols import detect_language

SKIP_DIRS = frozenset({".git", "node_modules", "__pycache__", ".codeshell", ".venv", "venv", "dist", "build"})


def collect_files(paths: tuple[Path, ...]) -> list[Path]:
    """Expand directories into the source files codeshell can index."""
    files: list[Path] = []
    for path in paths:
        if path.is_dir():
            for candidate in sorted(path.rglob("*")):
                if any(part in SKIP_DIRS for part in candidate.relative_to(path).parts):
                    continue
                if candidate.is_file() and detect_language(str(candidate)) != "text":
                    files.append(candidate)
        else:
            files.append(path)
    return files


def _similarity_table(title: str, results) -> Table:
    table = Table(title=title)
    table.add_column("Score", justify="right")
    table.add_column("Location")
    table.add_column("Content", overflow="ellipsis", max_width=70)
    for r in results:
        first_line = r.content.strip().split("\n", 1)[0]
        table.add_row(f"{r.similarity:.3f}", f"{r.file_path}:{r.start_line}-{r.end_line}", first_line)
    return table


@click.command()
@click.argument("paths", nargs=-1, required=True, type=click.Path(exists=True, path_type=Path))
@click.pass_context
def index(ctx: click.Context, paths: tuple[Path, ...]):
    """Index source files (directories are walked recursively)."""
    files = collect_files(paths)
    if not files:
        console.print("[yellow]No indexable files found.[/yellow]")
        return

    async def _run():
        async with open_app(get_cli_settings(ctx, persist_index=True), start_models=False) as app:
            for path in files:
                app.queue.submit(str(path))
            await app.queue.join()
            return app.queue.completed, list(app.queue.failures), app.embedding_provider.semantic

    completed, failures, semantic = run_async(_run())
    console.print(f"Indexed [bold]{completed}[/bold] of {len(files)} files.")
    for failure in failures:
        console.print(f"  [red]failed[/red] {failure}")
    if not semantic:
        console.print("[yellow]Warning:[/yellow] embeddings are non-semantic hash vectors.")
    if failures:
        sys.exit(1)


@click.command()
@click.argument("query")
@click.option("--limit", default=50, help="Max results to return")
@click.pass_context
def search(ctx: click.Context, query: str, limit: int):
    """Find symbols whose name or signature contains QUERY."""

    async def _run():
        async with open_app(get_cli_settings(ctx, persist_index=True), start_models=False) as app:
            return app.symbols.search(query, limit=limit)

    symbols = run_async(_run())
    if not symbols:
        console.print(f"[dim]No symbols match[/dim] [bold]{query}[/bold]")
        return

    table = Table(title=f"Symbols matching {query!r}")
    table.add_column("Name", style="bold")
    table.add_column("Kind")
    table.add_column("Location")
    table.add_column("Signature", overflow="ellipsis", max_width=60)
    for s in symbols:
        table.add_row(s.name, s.kind, f"{s.file_path}:{s.start_line}", s.signature)
    console.print(table)


@click.command()
@click.argument("query")
@click.option("--limit", default=10, help="Max results to return")
@click.pass_context
def semantic(ctx: click.Context, query: str, limit: int):
    """Rank indexed code chunks by similarity to QUERY."""

    async def _run():
        async with open_app(get_cli_settings(ctx, persist_index=True), start_models=False) as app:
            return await app.embeddings.semantic_search(query, limit)

    results = run_async(_run())
    if not results:
        console.print("[dim]Nothing indexed yet.[/dim] Run [bold]codeshell index[/bold] first.")
        return
    console.print(_similarity_table(f"Semantic matches for {query!r}", results))


@click.command()
@click.argument("file_path")
@click.argument("start_line", type=int)
@click.argument("end_line", type=int)
@click.option("--limit", default=5, help="Max results to return")
@click.pass_context
def similar(ctx: click.Context, file_path: str, start_line: int, end_line: int, limit: int):
    """Find code similar to the chunk at FILE_PATH:START_LINE-END_LINE."""

    async def _run():
        async with open_app(get_cli_settings(ctx, persist_index=True), start_models=False) as app:
            return app.embeddings.find_similar_code(file_path, start_line, end_line, limit)

    results = run_async(_run())
    if not results:
        console.print("[dim]No similar code found.[/dim]")
        return
    console.print(_similarity_table(f"Similar to {file_path}:{start_line}-{end_line}", results))
