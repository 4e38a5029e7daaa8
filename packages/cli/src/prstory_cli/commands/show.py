"""show command — print a cached story."""

from __future__ import annotations

import click
from rich.console import Console
from rich.rule import Rule

console = Console()


@click.command("show")
@click.argument("pr_ref")
@click.option("--cache-file", default=None, help="Story cache file. Overrides config file.")
@click.pass_context
def show_cmd(ctx, pr_ref: str, cache_file: str | None):
    """Print the cached story for PR_REF (owner/repo#123 or a PR URL).

    Reads only the configured store; no provider or GitHub call is made.
    """
    from prstory_cli.cli import _build_store, _load
    from prstory_cli.tui.render import render_story
    from prstory_core.errors import StoryValidationError
    from prstory_core.gh.pull_request import parse_pr_reference
    from prstory_core.models import PrRef, Story
    from prstory_store.base import StoreError

    try:
        repo, number = parse_pr_reference(pr_ref)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="PR_REF")
    key = PrRef(repo, number).key

    config = _load(ctx, {"cache_file": cache_file})
    store = _build_store(config)
    try:
        snapshot = store.load(key)
    except StoreError as e:
        raise click.ClickException(str(e))
    finally:
        store.close()

    if snapshot is None:
        console.print(f"[yellow]No cached story for {key}. Run `prstory review {key}` first.[/yellow]")
        ctx.exit(1)

    try:
        story = Story.from_dict(snapshot.get("story"))
    except StoryValidationError as e:
        raise click.ClickException(f"Cached story for {key} is invalid: {e}")

    viewed, total = story.viewed_count(), story.block_count()
    console.print(Rule(f"{key}  ({viewed}/{total} blocks viewed)"))
    console.print(render_story(story))
