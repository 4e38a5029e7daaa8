from __future__ import annotations

try:
    from openai import OpenAI as _OpenAI
except ImportError:
    _OpenAI = None  # type: ignore[assignment,misc]

from prstory_core.errors import AnalysisFailed, ConfigError
from prstory_core.providers.base import STORY_SCHEMA, BaseAnalyst


class OpenAIAnalyst(BaseAnalyst):
    MODEL = "gpt-4o"
    TEMPERATURE = 0.2

    def __init__(self, api_key: str, model: str | None = None, **kwargs):
        super().__init__(model=model, **kwargs)
        if not api_key:
            raise ConfigError("OPENAI_API_KEY environment variable is not set.")
        if _OpenAI is None:
            raise ConfigError(
                "The 'openai' package is required for this provider. " "Install it with: pip install 'prstory[openai]'"
            )
        self.client = _OpenAI(api_key=api_key)

    def _call_api(self, system_prompt: str, user_prompt: str) -> str:
        response = self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            temperature=self.TEMPERATURE,
            max_tokens=self.MAX_TOKENS,
            response_format={
                "type": "json_schema",
                "json_schema": {"name": "pr_story", "schema": STORY_SCHEMA, "strict": True},
            },
        )
        message = response.choices[0].message
        refusal = getattr(message, "refusal", None)
        if refusal:
            raise AnalysisFailed(f"Model refused request: {refusal}")
        return message.content or ""
