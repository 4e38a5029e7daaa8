"""Base analyst implementing the Template Method pattern.

All providers share the same analysis algorithm:
    analyze() → _build_system_prompt() + _build_user_prompt()
              → _call_with_retry() → _call_api()   ← only this differs per provider
              → _parse()

Subclasses implement two things only:
  - __init__: validate and store the SDK client
  - _call_api: make one raw API call and return the text response

Prompt construction, JSON parsing, schema validation and retry logic live here
so every provider produces Stories the same way.
"""

from __future__ import annotations

import json
import logging
import re
import time
from abc import ABC, abstractmethod

from prstory_core.errors import AnalysisFailed, StoryValidationError
from prstory_core.models import PrContext, Story, dependency_order_violations

logger = logging.getLogger(__name__)

_MAX_RETRIES = 3
_MAX_TOKENS = 16000
_MAX_DIFF_CHARS = 120000
_HUNK_RANGE = re.compile(r"^@@ -\d+(?:,\d+)? \+\d+(?:,\d+)? @@", re.MULTILINE)

_STRINGS = {"type": "array", "items": {"type": "string"}}

# JSON Schema for the Story. Sent verbatim to providers that support structured
# output and embedded in the prompt for the rest.
STORY_SCHEMA: dict = {
    "type": "object",
    "additionalProperties": False,
    "required": [
        "summary",
        "focus",
        "narrative",
        "data",
        "open_questions",
        "suggested_changes",
        "clarification_questions",
        "followup_issue",
    ],
    "properties": {
        "summary": {"type": "string"},
        "focus": {
            "type": "object",
            "additionalProperties": False,
            "required": ["key_change", "review_these", "skim_these"],
            "properties": {
                "key_change": {"type": "string"},
                "review_these": _STRINGS,
                "skim_these": _STRINGS,
            },
        },
        "narrative": {
            "type": "array",
            "items": {
                "type": "object",
                "additionalProperties": False,
                "required": ["title", "why", "changes", "risks", "tests", "diff_blocks"],
                "properties": {
                    "title": {"type": "string"},
                    "why": {"type": "string"},
                    "changes": _STRINGS,
                    "risks": _STRINGS,
                    "tests": _STRINGS,
                    "diff_blocks": {
                        "type": "array",
                        "items": {
                            "type": "object",
                            "additionalProperties": False,
                            "required": ["label", "role", "significance", "context", "hunks"],
                            "properties": {
                                "label": {"type": "string"},
                                "role": {"type": "string", "enum": ["root", "dependent"]},
                                "significance": {"type": "string", "enum": ["key", "standard", "noise"]},
                                "context": {"type": "string"},
                                "hunks": {
                                    "type": "array",
                                    "items": {
                                        "type": "object",
                                        "additionalProperties": False,
                                        "required": ["header", "lines"],
                                        "properties": {
                                            "header": {"type": "string"},
                                            "lines": {"type": "string"},
                                        },
                                    },
                                },
                            },
                        },
                    },
                },
            },
        },
        "data": {
            "type": "object",
            "additionalProperties": False,
            "required": ["files_touched", "additions", "deletions"],
            "properties": {
                "files_touched": {"type": "number"},
                "additions": {"type": "number"},
                "deletions": {"type": "number"},
            },
        },
        "open_questions": _STRINGS,
        "suggested_changes": {"type": "string"},
        "clarification_questions": {"type": "string"},
        "followup_issue": {"type": "string"},
    },
}


class BaseAnalyst(ABC):
    MAX_RETRIES: int = _MAX_RETRIES
    MAX_TOKENS: int = _MAX_TOKENS
    MODEL: str = ""

    def __init__(self, model: str | None = None, max_diff_chars: int = _MAX_DIFF_CHARS):
        self.model = model or self.MODEL
        self.max_diff_chars = max_diff_chars

    # ------------------------------------------------------------------ #
    # Public interface                                                     #
    # ------------------------------------------------------------------ #

    def analyze(self, pr: PrContext) -> Story:
        """Turn a PR into a Story. Raises AnalysisFailed on any failure."""
        system = self._build_system_prompt()
        user = self._build_user_prompt(pr)
        raw = self._call_with_retry(system, user)
        story = self._parse(raw)
        if len(pr.diff) <= self.max_diff_chars:
            _check_hunk_coverage(pr.diff, story)
        violations = dependency_order_violations(story)
        if violations:
            logger.warning(
                "%s: %d dependent block(s) precede any root block in their feature: %s",
                self.__class__.__name__,
                len(violations),
                violations,
            )
        return story

    # ------------------------------------------------------------------ #
    # Abstract: implement in each provider                                #
    # ------------------------------------------------------------------ #

    @abstractmethod
    def _call_api(self, system_prompt: str, user_prompt: str) -> str:
        """Make a single API call and return the raw text response.

        It should raise on failure; _call_with_retry handles retries and logging.
        """

    # ------------------------------------------------------------------ #
    # Shared implementations                                               #
    # ------------------------------------------------------------------ #

    def _call_with_retry(self, system_prompt: str, user_prompt: str) -> str:
        """Retry _call_api up to MAX_RETRIES times with exponential backoff."""
        for attempt in range(self.MAX_RETRIES):
            try:
                return self._call_api(system_prompt, user_prompt)
            except AnalysisFailed:
                # Raised by _call_api for answers that a retry would only repeat.
                raise
            except Exception as e:
                if attempt == self.MAX_RETRIES - 1:
                    logger.error(
                        "%s API failed after %d attempts: %s",
                        self.__class__.__name__,
                        self.MAX_RETRIES,
                        e,
                    )
                    raise AnalysisFailed(f"{self.__class__.__name__} API failed: {e}") from e
                delay = 2**attempt
                logger.warning(
                    "%s API error (attempt %d/%d): %s. Retrying in %ds...",
                    self.__class__.__name__,
                    attempt + 1,
                    self.MAX_RETRIES,
                    e,
                    delay,
                )
                time.sleep(delay)
        raise AnalysisFailed(f"{self.__class__.__name__} made no attempts")

    def _build_system_prompt(self) -> str:
        return f"""You are a senior staff engineer preparing a pull request for review.
Turn the raw diff into a structured narrative that lets a reviewer understand
the change quickly and thoroughly.

Goals:
- Explain intent, trade-offs and implications, not just what the code does.
- Order by dependency, not by file name. Present the foundational change first,
  even if it appears late in the diff.
- Group related changes into features. One feature may touch many files.
- Surface risks, gaps and assumptions.
- Separate follow-up work that does not belong in this PR.

Diff block roles:
- root: a foundational change other blocks depend on (an interface, a type, a core function).
- dependent: a change that consumes or reacts to a root change, or supports it (config, wiring, cleanup).
Within each feature, every dependent block must come after at least one root block.

Diff block significance (independent of role):
- key: THE important change. Usually 1-3 per PR.
- standard: needs review but is not the centrepiece.
- noise: mechanical changes such as imports, formatting, boilerplate.

Every hunk of the diff must appear in exactly one diff block. Copy hunk headers
and lines verbatim, keeping their +/- prefixes.

Review drafts:
- suggested_changes: numbered, concrete changes to request.
- clarification_questions: numbered questions for the author.
- followup_issue: first line is the issue title, then bullet points.

Respond with **only** a JSON object matching this JSON Schema:
{json.dumps(STORY_SCHEMA)}"""

    def _build_user_prompt(self, pr: PrContext) -> str:
        diff = pr.diff
        if len(diff) > self.max_diff_chars:
            diff = diff[: self.max_diff_chars] + "\n... [diff truncated]"
        body = pr.body.strip() or "No description provided"
        return f"""## PR Context

**Repository:** {pr.owner}/{pr.repo}
**PR Number:** #{pr.number}
**Title:** {pr.title}
**Author:** {pr.author}
**Branch:** {pr.head_branch} → {pr.base_branch}

**Description from author:**
{body}

## Diff

```diff
{diff}
```

Analyze this PR and return the JSON object."""

    def _parse(self, raw: str) -> Story:
        """Parse the model's raw text response into a Story.

        Raises StoryValidationError when the text is not JSON or does not
        satisfy the Story schema.
        """
        cleaned = re.sub(r"^```(?:json)?\s*", "", (raw or "").strip())
        cleaned = re.sub(r"\s*```$", "", cleaned.strip())
        try:
            data = json.loads(cleaned)
        except json.JSONDecodeError as e:
            logger.warning(
                "%s: failed to parse response as JSON: %s",
                self.__class__.__name__,
                (raw or "")[:200],
            )
            raise StoryValidationError(f"response is not valid JSON: {e}") from e
        return Story.from_dict(data)


def _check_hunk_coverage(diff: str, story: Story) -> None:
    """Raise StoryValidationError unless every hunk of ``diff`` is placed in some block."""
    covered = set()
    for feature in story.narrative:
        for block in feature.diff_blocks:
            for hunk in block.hunks:
                covered.update(_HUNK_RANGE.findall(hunk.header.strip()))
    missing = [header for header in dict.fromkeys(_HUNK_RANGE.findall(diff)) if header not in covered]
    if missing:
        raise StoryValidationError(f"story leaves {len(missing)} diff hunk(s) unplaced: {', '.join(missing)}")
