"""Tests for configuration loading."""

import pytest

from prstory_core.config import DEFAULT_CONFIG, cache_path, load_config
from prstory_core.errors import ConfigError


def test_defaults_applied_when_no_config_file(tmp_path):
    config = load_config(config_path=str(tmp_path / "nonexistent.yml"))
    assert config["provider"] == "anthropic"
    assert config["model"] is None
    assert config["cache"] is False
    assert config["store"] == "file"
    assert config["command_timeout"] == 300


def test_config_file_overrides_defaults(tmp_path):
    cfg = tmp_path / ".prstory.yml"
    cfg.write_text("provider: openai\nmodel: gpt-4o-mini\npage_size: 10\n")
    config = load_config(config_path=str(cfg))
    assert config["provider"] == "openai"
    assert config["model"] == "gpt-4o-mini"
    assert config["page_size"] == 10


def test_empty_config_file_uses_defaults(tmp_path):
    cfg = tmp_path / ".prstory.yml"
    cfg.write_text("")
    assert load_config(config_path=str(cfg))["cache_file"] == DEFAULT_CONFIG["cache_file"]


def test_cli_overrides_config_file(tmp_path):
    cfg = tmp_path / ".prstory.yml"
    cfg.write_text("provider: openai\ncache: false\n")
    config = load_config(config_path=str(cfg), cli_overrides={"provider": "anthropic", "cache": True})
    assert config["provider"] == "anthropic"
    assert config["cache"] is True


def test_none_cli_values_do_not_override(tmp_path):
    cfg = tmp_path / ".prstory.yml"
    cfg.write_text("model: gpt-4o-mini\n")
    config = load_config(config_path=str(cfg), cli_overrides={"model": None})
    assert config["model"] == "gpt-4o-mini"


def test_invalid_yaml_raises_config_error(tmp_path):
    cfg = tmp_path / ".prstory.yml"
    cfg.write_text("provider: [unclosed\n")
    with pytest.raises(ConfigError, match="not valid YAML"):
        load_config(config_path=str(cfg))


def test_non_mapping_raises_config_error(tmp_path):
    cfg = tmp_path / ".prstory.yml"
    cfg.write_text("- just\n- a list\n")
    with pytest.raises(ConfigError, match="must contain a mapping"):
        load_config(config_path=str(cfg))


def test_unknown_provider_raises_config_error(tmp_path):
    with pytest.raises(ConfigError, match="Unknown provider"):
        load_config(config_path=str(tmp_path / "none.yml"), cli_overrides={"provider": "gemini"})


def test_unknown_store_raises_config_error(tmp_path):
    cfg = tmp_path / ".prstory.yml"
    cfg.write_text("store: redis\n")
    with pytest.raises(ConfigError, match="Unknown store"):
        load_config(config_path=str(cfg))


def test_config_error_is_not_recoverable():
    assert ConfigError.recoverable is False


def test_credentials_come_from_environment(tmp_path, monkeypatch):
    monkeypatch.setenv("GITHUB_TOKEN", "ghp_test")
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
    config = load_config(config_path=str(tmp_path / "none.yml"))
    assert config["github_token"] == "ghp_test"
    assert config["openai_api_key"] == "sk-test"
    assert config["anthropic_api_key"] is None


class TestCachePath:
    def test_file_store_uses_cache_file(self):
        assert cache_path({"store": "file", "cache_file": "story.json"}) == "story.json"

    def test_sqlite_store_uses_store_path(self):
        assert cache_path({"store": "sqlite", "store_path": "stories.db", "cache_file": "x.json"}) == "stories.db"

    def test_falls_back_to_defaults(self):
        assert cache_path({}) == ".prstory-cache.json"
        assert cache_path({"store": "sqlite"}) == ".prstory.db"
