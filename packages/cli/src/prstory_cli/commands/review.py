"""review command — open the interactive story view."""

from __future__ import annotations

import click

from prstory_core.config import PROVIDERS, cache_path
from prstory_core.gh.pull_request import parse_pr_reference, parse_repo


@click.command("review")
@click.argument("pr_ref", required=False)
@click.option("--repo", "-R", "repo", default=None, help="Repository in owner/name format. Opens its PR picker.")
@click.option(
    "--provider",
    type=click.Choice(PROVIDERS),
    default=None,
    help="Analysis provider. Overrides config file.",
)
@click.option("--model", default=None, help="Provider model id. Overrides config file.")
@click.option(
    "--cache/--no-cache",
    "use_cache",
    default=None,
    help="Load the story from the cache instead of calling the provider.",
)
@click.option("--cache-file", default=None, help="Story cache file. Overrides config file.")
@click.option("--verbose", "-v", is_flag=True, help="Write debug-level logs to the log file.")
@click.pass_context
def review_cmd(
    ctx,
    pr_ref: str | None,
    repo: str | None,
    provider: str | None,
    model: str | None,
    use_cache: bool | None,
    cache_file: str | None,
    verbose: bool,
):
    """Turn a pull request into a navigable story.

    PR_REF is owner/repo#123 or a GitHub pull request URL. Without it, --repo
    opens that repository's PR picker, and with neither you pick a repository
    first.

    \b
    Required environment variables:
      GITHUB_TOKEN         GitHub personal access token (or use gh CLI)
      ANTHROPIC_API_KEY    Required when using --provider anthropic
      OPENAI_API_KEY       Required when using --provider openai
    """
    from prstory_cli.auth import resolve_github_token
    from prstory_cli.cli import _build_store, _configure_logging, _load
    from prstory_cli.tui.app import StoryApp
    from prstory_core.executor import CommandExecutor
    from prstory_core.gh.source import GitHubSource
    from prstory_core.providers import get_analyst
    from prstory_core.session import SessionOptions
    from prstory_core.update import initial_session

    config = _load(
        ctx,
        {"provider": provider, "model": model, "cache": use_cache, "cache_file": cache_file},
    )
    _configure_logging(config.get("log_file"), verbose)

    repo_ref, number = None, None
    try:
        if pr_ref:
            repo_ref, number = parse_pr_reference(pr_ref)
        elif repo:
            repo_ref = parse_repo(repo)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="PR_REF" if pr_ref else "--repo")

    # Resolve token: env var first, then gh CLI session.
    token = resolve_github_token()
    if not token:
        raise click.UsageError(
            "No GitHub token found. Set GITHUB_TOKEN or run `gh auth login` first.\n"
            "Create a token at https://github.com/settings/tokens"
        )
    config["github_token"] = token

    # Cache mode can run without a provider key; regenerating then reports it in the UI.
    if not config["cache"]:
        if config["provider"] == "anthropic" and not config.get("anthropic_api_key"):
            raise click.UsageError("ANTHROPIC_API_KEY environment variable is not set.")
        if config["provider"] == "openai" and not config.get("openai_api_key"):
            raise click.UsageError("OPENAI_API_KEY environment variable is not set.")

    options = SessionOptions(
        use_cache=bool(config["cache"]),
        cache_path=cache_path(config),
        model=config.get("model"),
        page_size=int(config.get("page_size") or 20),
    )
    session, command = initial_session(options, repo_ref, number)

    store = _build_store(config)
    executor = CommandExecutor(
        source=GitHubSource(token),
        analyst_factory=lambda m: get_analyst(config, m),
        store=store,
        timeout=float(config["command_timeout"]),
    )
    try:
        StoryApp(session, command, executor).run()
    finally:
        store.close()
