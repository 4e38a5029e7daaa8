"""Domain entities consumed and produced by the review-session engine.

Everything here is a frozen dataclass holding tuples rather than lists, so
values are hashable and compare by content. The update function relies on
that for determinism, and the story cache relies on it for round-trips.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field, replace
from typing import Any

from prstory_core.errors import StoryValidationError


class Role(str, enum.Enum):
    ROOT = "root"
    DEPENDENT = "dependent"


class Significance(str, enum.Enum):
    KEY = "key"
    STANDARD = "standard"
    NOISE = "noise"


class ReviewKind(str, enum.Enum):
    REQUEST_CHANGES = "request_changes"
    CLARIFICATION_QUESTIONS = "clarification_questions"
    FOLLOWUP_ISSUE = "followup_issue"

    @property
    def label(self) -> str:
        return _KIND_LABELS[self]


_KIND_LABELS = {
    ReviewKind.REQUEST_CHANGES: "Request Changes",
    ReviewKind.CLARIFICATION_QUESTIONS: "Clarification Questions",
    ReviewKind.FOLLOWUP_ISSUE: "Follow-up Issue",
}

# Slot order for the 1/2/3 keys and the action panel.
REVIEW_KINDS = (ReviewKind.REQUEST_CHANGES, ReviewKind.CLARIFICATION_QUESTIONS, ReviewKind.FOLLOWUP_ISSUE)


@dataclass(frozen=True)
class RepoRef:
    owner: str
    name: str

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"


@dataclass(frozen=True)
class PrRef:
    repo: RepoRef
    number: int

    @property
    def key(self) -> str:
        """Stable cache key, e.g. ``octo/widgets#12``."""
        return f"{self.repo.full_name}#{self.number}"


@dataclass(frozen=True)
class RepoSummary:
    owner: str
    name: str
    description: str = ""
    is_fork: bool = False
    is_private: bool = False

    @property
    def ref(self) -> RepoRef:
        return RepoRef(self.owner, self.name)


@dataclass(frozen=True)
class PrSummary:
    number: int
    title: str
    author: str = ""
    head_branch: str = ""
    is_draft: bool = False
    review_requested: bool = False
    additions: int = 0
    deletions: int = 0


@dataclass(frozen=True)
class PrContext:
    """Everything fetched for one PR. Immutable once fetched."""

    owner: str
    repo: str
    number: int
    title: str
    body: str = ""
    diff: str = ""
    author: str = ""
    base_branch: str = ""
    head_branch: str = ""
    is_draft: bool = False
    state: str = "open"

    @property
    def ref(self) -> PrRef:
        return PrRef(RepoRef(self.owner, self.repo), self.number)


@dataclass(frozen=True)
class DiffHunk:
    header: str
    lines: str


@dataclass(frozen=True)
class DiffBlock:
    label: str
    role: Role
    significance: Significance
    context: str = ""
    hunks: tuple[DiffHunk, ...] = ()
    viewed: bool = False


@dataclass(frozen=True)
class Feature:
    title: str
    why: str = ""
    changes: tuple[str, ...] = ()
    risks: tuple[str, ...] = ()
    tests: tuple[str, ...] = ()
    diff_blocks: tuple[DiffBlock, ...] = ()

    def progress(self) -> tuple[int, int]:
        """Return ``(viewed, total)`` block counts for this feature."""
        return sum(1 for b in self.diff_blocks if b.viewed), len(self.diff_blocks)


@dataclass(frozen=True)
class Focus:
    key_change: str = ""
    review_these: tuple[str, ...] = ()
    skim_these: tuple[str, ...] = ()


@dataclass(frozen=True)
class DiffStats:
    files_touched: int = 0
    additions: int = 0
    deletions: int = 0


@dataclass(frozen=True)
class Story:
    """The analysis result for one PR.

    ``narrative`` is dependency-ordered by the analysis step and is never
    re-sorted afterwards. A new analysis replaces the Story wholesale; the only
    in-place change is a block's viewed flag, via ``with_block_viewed``.
    """

    summary: str
    focus: Focus = field(default_factory=Focus)
    narrative: tuple[Feature, ...] = ()
    stats: DiffStats = field(default_factory=DiffStats)
    open_questions: tuple[str, ...] = ()
    suggested_changes: str = ""
    clarification_questions: str = ""
    followup_issue: str = ""

    def block_count(self) -> int:
        return sum(len(f.diff_blocks) for f in self.narrative)

    def viewed_count(self) -> int:
        return sum(f.progress()[0] for f in self.narrative)

    def block(self, feature_idx: int, block_idx: int) -> DiffBlock:
        return self.narrative[feature_idx].diff_blocks[block_idx]

    def with_block_viewed(self, feature_idx: int, block_idx: int, viewed: bool) -> Story:
        """Return a copy with one block's viewed flag set; order is untouched."""
        feature = self.narrative[feature_idx]
        target = feature.diff_blocks[block_idx]
        if target.viewed == viewed:
            return self
        blocks = list(feature.diff_blocks)
        blocks[block_idx] = replace(target, viewed=viewed)
        features = list(self.narrative)
        features[feature_idx] = replace(feature, diff_blocks=tuple(blocks))
        return replace(self, narrative=tuple(features))

    def draft_for(self, kind: ReviewKind) -> str:
        if kind is ReviewKind.REQUEST_CHANGES:
            return self.suggested_changes
        if kind is ReviewKind.CLARIFICATION_QUESTIONS:
            return self.clarification_questions
        return self.followup_issue

    # ------------------------------------------------------------------ #
    # Serialization                                                        #
    # ------------------------------------------------------------------ #

    def to_dict(self) -> dict:
        return {
            "summary": self.summary,
            "focus": {
                "key_change": self.focus.key_change,
                "review_these": list(self.focus.review_these),
                "skim_these": list(self.focus.skim_these),
            },
            "narrative": [
                {
                    "title": f.title,
                    "why": f.why,
                    "changes": list(f.changes),
                    "risks": list(f.risks),
                    "tests": list(f.tests),
                    "diff_blocks": [
                        {
                            "label": b.label,
                            "role": b.role.value,
                            "significance": b.significance.value,
                            "context": b.context,
                            "hunks": [{"header": h.header, "lines": h.lines} for h in b.hunks],
                            "viewed": b.viewed,
                        }
                        for b in f.diff_blocks
                    ],
                }
                for f in self.narrative
            ],
            "data": {
                "files_touched": self.stats.files_touched,
                "additions": self.stats.additions,
                "deletions": self.stats.deletions,
            },
            "open_questions": list(self.open_questions),
            "suggested_changes": self.suggested_changes,
            "clarification_questions": self.clarification_questions,
            "followup_issue": self.followup_issue,
        }

    @classmethod
    def from_dict(cls, data: Any) -> Story:
        """Build a Story from provider JSON or a cached snapshot.

        Raises StoryValidationError when the payload does not satisfy the
        schema. Unknown extra keys are ignored.
        """
        obj = _mapping(data, "story")
        focus = _mapping(obj.get("focus", {}), "focus")
        stats = _mapping(obj.get("data", {}), "data")
        return cls(
            summary=_text(obj, "summary", "story"),
            focus=Focus(
                key_change=_text(focus, "key_change", "focus", default=""),
                review_these=_texts(focus, "review_these", "focus"),
                skim_these=_texts(focus, "skim_these", "focus"),
            ),
            narrative=tuple(
                _feature(item, i) for i, item in enumerate(_sequence(obj, "narrative", "story", required=True))
            ),
            stats=DiffStats(
                files_touched=_number(stats, "files_touched"),
                additions=_number(stats, "additions"),
                deletions=_number(stats, "deletions"),
            ),
            open_questions=_texts(obj, "open_questions", "story"),
            suggested_changes=_text(obj, "suggested_changes", "story", default=""),
            clarification_questions=_text(obj, "clarification_questions", "story", default=""),
            followup_issue=_text(obj, "followup_issue", "story", default=""),
        )


@dataclass(frozen=True)
class ReviewAction:
    """One draftable review response. Submission is a one-shot external effect."""

    kind: ReviewKind
    text: str = ""

    def issue_parts(self) -> tuple[str, str]:
        """Split a follow-up draft into ``(title, body)`` on the first line."""
        lines = self.text.splitlines()
        title = lines[0].strip() if lines and lines[0].strip() else "Follow-up work"
        return title, "\n".join(lines[1:]).strip()


def dependency_order_violations(story: Story) -> list[tuple[int, int]]:
    """Return ``(feature, block)`` positions of DEPENDENT blocks with no ROOT before them.

    The analysis step establishes dependency order; this only reports where
    that assumption does not hold. Nothing is reordered or rejected.
    """
    violations = []
    for fi, feature in enumerate(story.narrative):
        seen_root = False
        for bi, block in enumerate(feature.diff_blocks):
            if block.role is Role.ROOT:
                seen_root = True
            elif not seen_root:
                violations.append((fi, bi))
    return violations


# ---------------------------------------------------------------------- #
# Validation helpers                                                       #
# ---------------------------------------------------------------------- #


def _mapping(value: Any, where: str) -> dict:
    if not isinstance(value, dict):
        raise StoryValidationError(f"{where}: expected an object, got {type(value).__name__}")
    return value


def _text(obj: dict, key: str, where: str, default: str | None = None) -> str:
    if key not in obj:
        if default is not None:
            return default
        raise StoryValidationError(f"{where}: missing required field {key!r}")
    value = obj[key]
    if not isinstance(value, str):
        raise StoryValidationError(f"{where}.{key}: expected a string")
    return value


def _sequence(obj: dict, key: str, where: str, required: bool = False) -> list:
    if key not in obj:
        if required:
            raise StoryValidationError(f"{where}: missing required field {key!r}")
        return []
    value = obj[key]
    if not isinstance(value, list):
        raise StoryValidationError(f"{where}.{key}: expected an array")
    return value


def _texts(obj: dict, key: str, where: str) -> tuple[str, ...]:
    items = _sequence(obj, key, where)
    if not all(isinstance(i, str) for i in items):
        raise StoryValidationError(f"{where}.{key}: expected an array of strings")
    return tuple(items)


def _number(obj: dict, key: str) -> int:
    value = obj.get(key, 0)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise StoryValidationError(f"data.{key}: expected a number")
    return int(value)


# Role names some providers use for dependent blocks.
_ROLE_ALIASES = {"downstream": "dependent", "supporting": "dependent"}


def _enum(enum_cls, value: Any, where: str):
    raw = str(value).lower()
    if enum_cls is Role:
        raw = _ROLE_ALIASES.get(raw, raw)
    try:
        return enum_cls(raw)
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise StoryValidationError(f"{where}: {value!r} is not one of {allowed}")


def _feature(item: Any, index: int) -> Feature:
    where = f"narrative[{index}]"
    obj = _mapping(item, where)
    return Feature(
        title=_text(obj, "title", where),
        why=_text(obj, "why", where, default=""),
        changes=_texts(obj, "changes", where),
        risks=_texts(obj, "risks", where),
        tests=_texts(obj, "tests", where),
        diff_blocks=tuple(
            _block(b, f"{where}.diff_blocks[{j}]") for j, b in enumerate(_sequence(obj, "diff_blocks", where))
        ),
    )


def _block(item: Any, where: str) -> DiffBlock:
    obj = _mapping(item, where)
    hunks = []
    for k, h in enumerate(_sequence(obj, "hunks", where)):
        hobj = _mapping(h, f"{where}.hunks[{k}]")
        hunks.append(DiffHunk(header=_text(hobj, "header", where), lines=_text(hobj, "lines", where)))
    viewed = obj.get("viewed", False)
    return DiffBlock(
        label=_text(obj, "label", where),
        role=_enum(Role, obj.get("role"), f"{where}.role"),
        significance=_enum(Significance, obj.get("significance"), f"{where}.significance"),
        context=_text(obj, "context", where, default=""),
        hunks=tuple(hunks),
        viewed=viewed if isinstance(viewed, bool) else False,
    )
