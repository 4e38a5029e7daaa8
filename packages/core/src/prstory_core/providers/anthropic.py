from __future__ import annotations

import logging

from prstory_core.errors import AnalysisFailed, ConfigError
from prstory_core.providers.base import BaseAnalyst

logger = logging.getLogger(__name__)

# Prefilled assistant turn; the model continues the JSON object from here.
_PREFILL = "{"


class AnthropicAnalyst(BaseAnalyst):
    MODEL = "claude-sonnet-4-20250514"
    TEMPERATURE = 0.2

    def __init__(self, api_key: str, model: str | None = None, **kwargs):
        super().__init__(model=model, **kwargs)
        if not api_key:
            raise ConfigError("ANTHROPIC_API_KEY environment variable is not set.")
        try:
            from anthropic import Anthropic
        except ImportError:
            raise ConfigError(
                "The 'anthropic' package is required for this provider. "
                "Install it with: pip install 'prstory[anthropic]'"
            )
        self.client = Anthropic(api_key=api_key)

    def _call_api(self, system_prompt: str, user_prompt: str) -> str:
        response = self.client.messages.create(
            model=self.model,
            system=system_prompt,
            messages=[
                {"role": "user", "content": user_prompt},
                {"role": "assistant", "content": _PREFILL},
            ],
            temperature=self.TEMPERATURE,
            max_tokens=self.MAX_TOKENS,
        )
        if response.stop_reason == "max_tokens":
            # A cut-off story is never valid JSON.
            raise AnalysisFailed(f"Story exceeded {self.MAX_TOKENS} output tokens")
        usage = getattr(response, "usage", None)
        if usage is not None:
            logger.debug("Anthropic usage: %s in / %s out", usage.input_tokens, usage.output_tokens)
        text = "".join(getattr(block, "text", "") for block in response.content if block.type == "text")
        return _PREFILL + text
