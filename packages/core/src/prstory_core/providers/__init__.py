from __future__ import annotations

from prstory_core.errors import ConfigError
from prstory_core.providers.anthropic import AnthropicAnalyst
from prstory_core.providers.base import BaseAnalyst
from prstory_core.providers.openai import OpenAIAnalyst


def get_analyst(config: dict, model: str | None = None) -> BaseAnalyst:
    """Build the analyst selected by ``config["provider"]``.

    ``model`` overrides ``config["model"]``; both None means the provider default.
    """
    provider = config.get("provider", "anthropic")
    options = {
        "model": model or config.get("model"),
        "max_diff_chars": config.get("max_diff_chars") or 120000,
    }
    if provider == "anthropic":
        return AnthropicAnalyst(api_key=config.get("anthropic_api_key"), **options)
    if provider == "openai":
        return OpenAIAnalyst(api_key=config.get("openai_api_key"), **options)
    raise ConfigError(f"Unknown provider: {provider!r}. Choose 'anthropic' or 'openai'.")
