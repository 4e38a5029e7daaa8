"""cache commands — inspect the story cache."""

from __future__ import annotations

import click
from rich.console import Console
from rich.table import Table

console = Console()


@click.group("cache")
def cache_cmd():
    """Inspect cached stories."""


@cache_cmd.command("list")
@click.pass_context
def list_cmd(ctx):
    """List the PRs that have a cached story in the configured store."""
    from prstory_cli.cli import _build_store, _load
    from prstory_core.config import cache_path
    from prstory_store.base import StoreError

    config = _load(ctx)
    store = _build_store(config)
    try:
        keys = store.list_keys()
    except StoreError as e:
        raise click.ClickException(str(e))
    finally:
        store.close()

    if not keys:
        console.print("[yellow]No cached stories found.[/yellow]")
        return

    table = Table(title=f"Cached stories — {cache_path(config)}", show_header=True, header_style="bold cyan")
    table.add_column("PR", style="bold")
    for key in keys:
        table.add_row(key)
    console.print(table)
