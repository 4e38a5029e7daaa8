"""Tests for the CLI entry point."""

import logging
import subprocess
from unittest.mock import MagicMock, patch

from click.testing import CliRunner

from prstory_cli.cli import _build_store, _configure_logging, main
from prstory_core import commands as c
from prstory_core.models import RepoRef
from prstory_core.session import LoadingPr, PrPicker, RepoSelector
from prstory_store.base import BaseStore
from prstory_store.file import JsonFileStore
from prstory_store.sqlite import SQLiteStore

from samples import STORY


def _make_config(provider="anthropic", anthropic_key="ant", openai_key=None, cache=False):
    return {
        "provider": provider,
        "model": None,
        "max_diff_chars": 120000,
        "command_timeout": 300,
        "cache": cache,
        "cache_file": ".prstory-cache.json",
        "store": "file",
        "store_path": ".prstory.db",
        "page_size": 20,
        "log_file": None,
        "github_token": None,
        "anthropic_api_key": anthropic_key,
        "openai_api_key": openai_key,
    }


def _patch_common(mocker, config=None, token="tok"):
    """Patch config, token, store and the TUI so review never touches a terminal."""
    cfg = config or _make_config()
    mocker.patch("prstory_core.config.load_config", return_value=cfg)
    mocker.patch("prstory_cli.auth.resolve_github_token", return_value=token)
    mocker.patch("prstory_cli.cli._configure_logging")
    mock_store = MagicMock(spec=BaseStore)
    mocker.patch("prstory_cli.cli._build_store", return_value=mock_store)
    mock_source = mocker.patch("prstory_core.gh.source.GitHubSource")
    mock_app = mocker.patch("prstory_cli.tui.app.StoryApp")
    return cfg, mock_store, mock_source, mock_app


# ---------------------------------------------------------------------------
# review
# ---------------------------------------------------------------------------


class TestReviewValidation:
    def test_missing_github_token(self, mocker):
        _patch_common(mocker, token=None)

        result = CliRunner().invoke(main, ["review", "octo/widgets#1"])
        assert result.exit_code != 0
        assert "GITHUB_TOKEN" in result.output

    def test_missing_anthropic_key(self, mocker):
        _patch_common(mocker, config=_make_config(anthropic_key=None))

        result = CliRunner().invoke(main, ["review", "octo/widgets#1"])
        assert result.exit_code != 0
        assert "ANTHROPIC_API_KEY" in result.output

    def test_missing_openai_key(self, mocker):
        _patch_common(mocker, config=_make_config(provider="openai", anthropic_key=None))

        result = CliRunner().invoke(main, ["review", "octo/widgets#1"])
        assert result.exit_code != 0
        assert "OPENAI_API_KEY" in result.output

    def test_cache_mode_does_not_need_provider_key(self, mocker):
        _, _, _, mock_app = _patch_common(mocker, config=_make_config(anthropic_key=None, cache=True))

        result = CliRunner().invoke(main, ["review", "octo/widgets#1"])
        assert result.exit_code == 0, result.output
        mock_app.return_value.run.assert_called_once()

    def test_invalid_pr_reference(self, mocker):
        _patch_common(mocker)

        result = CliRunner().invoke(main, ["review", "not-a-pr"])
        assert result.exit_code == 2
        assert "Invalid PR reference" in result.output

    def test_invalid_repo(self, mocker):
        _patch_common(mocker)

        result = CliRunner().invoke(main, ["review", "--repo", "widgets"])
        assert result.exit_code == 2
        assert "Invalid repository" in result.output

    def test_unknown_provider_rejected_by_click(self, mocker):
        _patch_common(mocker)

        result = CliRunner().invoke(main, ["review", "--provider", "gemini"])
        assert result.exit_code == 2


class TestReviewWiring:
    def test_pr_reference_loads_pr_directly(self, mocker):
        _, mock_store, mock_source, mock_app = _patch_common(mocker)

        result = CliRunner().invoke(main, ["review", "https://github.com/octo/widgets/pull/42"])

        assert result.exit_code == 0, result.output
        session, command, executor = mock_app.call_args.args
        assert session.state == LoadingPr(RepoRef("octo", "widgets"), 42, session.generation)
        assert command == c.FetchPr(RepoRef("octo", "widgets"), 42)
        assert executor.store is mock_store
        mock_source.assert_called_once_with("tok")
        mock_store.close.assert_called_once()

    def test_repo_opens_picker(self, mocker):
        _, _, _, mock_app = _patch_common(mocker)

        CliRunner().invoke(main, ["review", "--repo", "octo/widgets"])

        session, command, _ = mock_app.call_args.args
        assert isinstance(session.state, PrPicker)
        assert isinstance(command, c.FetchPrList)

    def test_no_arguments_opens_repo_selector(self, mocker):
        _, _, _, mock_app = _patch_common(mocker)

        CliRunner().invoke(main, ["review"])

        session, command, _ = mock_app.call_args.args
        assert isinstance(session.state, RepoSelector)
        assert isinstance(command, c.FetchRepos)

    def test_options_carried_into_session(self, mocker):
        cfg = _make_config(cache=True)
        cfg["model"] = "claude-opus-4"
        cfg["page_size"] = 5
        cfg["cache_file"] = "stories.json"
        _, _, _, mock_app = _patch_common(mocker, config=cfg)

        CliRunner().invoke(main, ["review", "octo/widgets#1"])

        options = mock_app.call_args.args[0].options
        assert options.use_cache is True
        assert options.model == "claude-opus-4"
        assert options.page_size == 5
        assert options.cache_path == "stories.json"

    def test_cli_flags_passed_as_overrides(self, mocker):
        _patch_common(mocker)
        cfg = _make_config(provider="openai", openai_key="k")
        load = mocker.patch("prstory_core.config.load_config", return_value=cfg)

        CliRunner().invoke(
            main, ["review", "octo/widgets#1", "--provider", "openai", "--model", "gpt-4o-mini", "--cache"]
        )

        overrides = load.call_args.kwargs["cli_overrides"]
        assert overrides["provider"] == "openai"
        assert overrides["model"] == "gpt-4o-mini"
        assert overrides["cache"] is True
        assert overrides["cache_file"] is None

    def test_store_closed_when_app_fails(self, mocker):
        _, mock_store, _, mock_app = _patch_common(mocker)
        mock_app.return_value.run.side_effect = RuntimeError("terminal gone")

        result = CliRunner().invoke(main, ["review", "octo/widgets#1"])

        assert result.exit_code != 0
        mock_store.close.assert_called_once()

    def test_bad_config_is_usage_error(self, tmp_path, mocker):
        mocker.patch("prstory_cli.auth.resolve_github_token", return_value="tok")
        cfg = tmp_path / ".prstory.yml"
        cfg.write_text("store: redis\n")

        result = CliRunner().invoke(main, ["--config", str(cfg), "review"])
        assert result.exit_code == 2
        assert "Unknown store" in result.output


# ---------------------------------------------------------------------------
# show / cache
# ---------------------------------------------------------------------------


class TestShowCommand:
    def test_prints_cached_story(self, tmp_path):
        path = str(tmp_path / "cache.json")
        JsonFileStore(path=path).save("octo/widgets#1", {"story": STORY})

        result = CliRunner().invoke(
            main, ["--config", str(tmp_path / "none.yml"), "show", "octo/widgets#1", "--cache-file", path]
        )

        assert result.exit_code == 0, result.output
        assert "octo/widgets#1" in result.output
        assert "(1/1 blocks viewed)" in result.output
        assert "Bounds HTTP retries." in result.output
        assert "+budget = 3" in result.output
        assert "Should it be configurable?" in result.output

    def test_miss_exits_with_one(self, tmp_path):
        path = str(tmp_path / "cache.json")
        JsonFileStore(path=path).save("octo/widgets#1", {"story": STORY})

        result = CliRunner().invoke(
            main, ["--config", str(tmp_path / "none.yml"), "show", "octo/widgets#2", "--cache-file", path]
        )

        assert result.exit_code == 1
        assert "No cached story for octo/widgets#2" in result.output

    def test_invalid_cached_story(self, tmp_path):
        path = str(tmp_path / "cache.json")
        JsonFileStore(path=path).save("octo/widgets#1", {"story": {"summary": 3}})

        result = CliRunner().invoke(
            main, ["--config", str(tmp_path / "none.yml"), "show", "octo/widgets#1", "--cache-file", path]
        )

        assert result.exit_code == 1
        assert "is invalid" in result.output

    def test_corrupt_cache_file(self, tmp_path):
        path = tmp_path / "cache.json"
        path.write_text("{nope")

        result = CliRunner().invoke(
            main, ["--config", str(tmp_path / "none.yml"), "show", "octo/widgets#1", "--cache-file", str(path)]
        )

        assert result.exit_code == 1
        assert "Cannot read story cache" in result.output

    def test_invalid_reference(self, tmp_path):
        result = CliRunner().invoke(main, ["--config", str(tmp_path / "none.yml"), "show", "widgets"])
        assert result.exit_code == 2


class TestCacheListCommand:
    def test_empty_message(self, tmp_path):
        cfg = tmp_path / ".prstory.yml"
        cfg.write_text(f"cache_file: {tmp_path / 'cache.json'}\n")

        result = CliRunner().invoke(main, ["--config", str(cfg), "cache", "list"])
        assert result.exit_code == 0
        assert "No cached stories found." in result.output

    def test_lists_sqlite_keys(self, tmp_path):
        db = tmp_path / "stories.db"
        store = SQLiteStore(db_path=str(db))
        store.save("octo/widgets#1", {"story": STORY})
        store.save("octo/gadgets#9", {"story": STORY})
        store.close()
        cfg = tmp_path / ".prstory.yml"
        cfg.write_text(f"store: sqlite\nstore_path: {db}\n")

        result = CliRunner().invoke(main, ["--config", str(cfg), "cache", "list"])

        assert result.exit_code == 0, result.output
        assert "octo/widgets#1" in result.output
        assert "octo/gadgets#9" in result.output


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class TestBuildStore:
    def test_returns_json_file_store_by_default(self, tmp_path):
        store = _build_store({"store": "file", "cache_file": str(tmp_path / "c.json")})
        assert isinstance(store, JsonFileStore)
        assert str(store.path) == str(tmp_path / "c.json")

    def test_returns_sqlite_store(self, tmp_path):
        store = _build_store({"store": "sqlite", "store_path": str(tmp_path / "s.db")})
        assert isinstance(store, SQLiteStore)
        store.close()


class TestConfigureLogging:
    def test_writes_to_log_file(self, tmp_path):
        log_file = tmp_path / "prstory.log"
        root = logging.getLogger()
        saved_handlers, saved_level = root.handlers[:], root.level
        try:
            _configure_logging(str(log_file), verbose=True)
            logging.getLogger("prstory_core.engine").debug("state change")
            for handler in root.handlers:
                handler.flush()
            assert root.level == logging.DEBUG
            assert "state change" in log_file.read_text()
        finally:
            for handler in root.handlers:
                handler.close()
            root.handlers = saved_handlers
            root.setLevel(saved_level)

    def test_no_log_file_uses_null_handler(self):
        root = logging.getLogger()
        saved_handlers, saved_level = root.handlers[:], root.level
        try:
            _configure_logging(None, verbose=False)
            assert [type(h) for h in root.handlers] == [logging.NullHandler]
            assert root.level == logging.INFO
        finally:
            root.handlers = saved_handlers
            root.setLevel(saved_level)


class TestResolveGithubToken:
    def test_returns_env_var_when_set(self, monkeypatch):
        from prstory_cli.auth import resolve_github_token

        monkeypatch.setenv("GITHUB_TOKEN", "env-token")
        assert resolve_github_token() == "env-token"

    def test_gh_token_env_var(self, monkeypatch):
        from prstory_cli.auth import resolve_github_token

        monkeypatch.delenv("GITHUB_TOKEN", raising=False)
        monkeypatch.setenv("GH_TOKEN", "gh-env-token")
        assert resolve_github_token() == "gh-env-token"

    def test_falls_back_to_gh_cli(self, monkeypatch):
        from prstory_cli.auth import resolve_github_token

        monkeypatch.delenv("GITHUB_TOKEN", raising=False)
        monkeypatch.delenv("GH_TOKEN", raising=False)
        with patch("subprocess.run") as mock_run:
            mock_run.return_value = MagicMock(returncode=0, stdout="gh-token\n")
            result = resolve_github_token()
        assert result == "gh-token"

    def test_returns_none_when_gh_not_installed(self, monkeypatch):
        from prstory_cli.auth import resolve_github_token

        monkeypatch.delenv("GITHUB_TOKEN", raising=False)
        monkeypatch.delenv("GH_TOKEN", raising=False)
        with patch("subprocess.run", side_effect=FileNotFoundError):
            result = resolve_github_token()
        assert result is None

    def test_returns_none_when_gh_times_out(self, monkeypatch):
        from prstory_cli.auth import resolve_github_token

        monkeypatch.delenv("GITHUB_TOKEN", raising=False)
        monkeypatch.delenv("GH_TOKEN", raising=False)
        with patch("subprocess.run", side_effect=subprocess.TimeoutExpired(cmd="gh", timeout=5)):
            result = resolve_github_token()
        assert result is None

    def test_returns_none_when_gh_returns_error(self, monkeypatch):
        from prstory_cli.auth import resolve_github_token

        monkeypatch.delenv("GITHUB_TOKEN", raising=False)
        monkeypatch.delenv("GH_TOKEN", raising=False)
        with patch("subprocess.run") as mock_run:
            mock_run.return_value = MagicMock(returncode=1, stdout="")
            result = resolve_github_token()
        assert result is None
