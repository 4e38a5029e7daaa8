import os
from pathlib import Path
from typing import Optional

import yaml

from prstory_core.errors import ConfigError

DEFAULT_CONFIG: dict = {
    "provider": "anthropic",
    "model": None,  # None = the provider's default model
    "max_diff_chars": 120000,
    "command_timeout": 300,  # seconds before a running command resolves to a timeout error
    "cache": False,
    "cache_file": ".prstory-cache.json",
    "store": "file",  # "file" keeps one snapshot in cache_file; "sqlite" keeps one per PR
    "store_path": ".prstory.db",
    "page_size": 20,
    "log_file": ".prstory.log",
}

PROVIDERS = ("anthropic", "openai")
STORES = ("file", "sqlite")


def load_config(config_path: str = ".prstory.yml", cli_overrides: Optional[dict] = None) -> dict:
    """
    Load configuration by merging (in order of precedence):
      1. Built-in defaults
      2. .prstory.yml in the current directory
      3. CLI argument overrides
    """
    config = dict(DEFAULT_CONFIG)

    path = Path(config_path)
    if path.exists():
        with open(path) as f:
            try:
                file_config = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigError(f"{config_path} is not valid YAML: {e}")
        if not isinstance(file_config, dict):
            raise ConfigError(f"{config_path} must contain a mapping, got {type(file_config).__name__}")
        config.update(file_config)

    if cli_overrides:
        for key, value in cli_overrides.items():
            if value is not None:
                config[key] = value

    if config["provider"] not in PROVIDERS:
        raise ConfigError(f"Unknown provider {config['provider']!r}. Choose one of: {', '.join(PROVIDERS)}.")
    if config["store"] not in STORES:
        raise ConfigError(f"Unknown store {config['store']!r}. Choose one of: {', '.join(STORES)}.")

    # Resolve credentials from environment variables
    config["github_token"] = os.environ.get("GITHUB_TOKEN")
    config["anthropic_api_key"] = os.environ.get("ANTHROPIC_API_KEY")
    config["openai_api_key"] = os.environ.get("OPENAI_API_KEY")

    return config


def cache_path(config: dict) -> str:
    """Return the location the story cache backend writes to."""
    if config.get("store") == "sqlite":
        return config.get("store_path") or DEFAULT_CONFIG["store_path"]
    return config.get("cache_file") or DEFAULT_CONFIG["cache_file"]
