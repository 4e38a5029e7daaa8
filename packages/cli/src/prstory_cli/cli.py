"""CLI entry point for prstory.

Commands:
  review   — open the interactive story view for a PR, repo or your repo list
  show     — print a cached story without contacting any provider
  cache    — inspect the story cache
"""

from __future__ import annotations

import logging

import click

from prstory_cli.commands.cache import cache_cmd
from prstory_cli.commands.review import review_cmd
from prstory_cli.commands.show import show_cmd

_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _build_store(config: dict):
    """Instantiate the story cache backend from .prstory.yml settings.

    Store selection:
      store: sqlite → SQLiteStore (every PR, at store_path or .prstory.db)
      (default)     → JsonFileStore (latest story only, at cache_file)

    This factory lives in cli.py so neither prstory_core nor prstory_store
    know about the CLI config format.
    """
    from prstory_core.config import cache_path

    if config.get("store") == "sqlite":
        from prstory_store.base import StoreError
        from prstory_store.sqlite import SQLiteStore

        try:
            return SQLiteStore(db_path=cache_path(config))
        except StoreError as e:
            raise click.ClickException(str(e))

    from prstory_store.file import JsonFileStore

    return JsonFileStore(path=cache_path(config))


def _configure_logging(log_file: str | None, verbose: bool) -> None:
    """Send log records to a file; the terminal belongs to the TUI."""
    level = logging.DEBUG if verbose else logging.INFO
    if log_file:
        handler: logging.Handler = logging.FileHandler(log_file)
    else:
        handler = logging.NullHandler()
    handler.setFormatter(logging.Formatter(_LOG_FORMAT))
    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(level)


def _load(ctx: click.Context, overrides: dict | None = None) -> dict:
    """Load config for a subcommand, reporting bad config as a usage error."""
    from prstory_core.config import load_config
    from prstory_core.errors import ConfigError

    try:
        return load_config(ctx.obj["config_path"], cli_overrides=overrides)
    except ConfigError as e:
        raise click.UsageError(str(e))


@click.group()
@click.version_option(package_name="prstory", prog_name="prstory")
@click.option(
    "--config",
    "config_path",
    default=".prstory.yml",
    show_default=True,
    help="Path to the configuration file.",
    envvar="PRSTORY_CONFIG",
)
@click.pass_context
def main(ctx: click.Context, config_path: str):
    """Read pull requests as a dependency-ordered story in your terminal."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path


main.add_command(review_cmd)
main.add_command(show_cmd)
main.add_command(cache_cmd)
