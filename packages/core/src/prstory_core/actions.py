"""Action vocabulary — every event that can enter the engine.

Actions are immutable values. Input actions come from the terminal, semantic
actions come from the keymap (or directly from startup code and tests), and
result actions are produced by the executor, one per completed command.

``Action`` is a closed union: the update function keeps one handler per class
listed here and the test suite checks that none is missing.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from prstory_core.errors import PrStoryError
from prstory_core.models import PrContext, PrSummary, RepoRef, RepoSummary, ReviewAction, ReviewKind, Story

# ---------------------------------------------------------------------- #
# Raw input                                                                #
# ---------------------------------------------------------------------- #


@dataclass(frozen=True)
class KeyPressed:
    key: str
    character: str | None = None


@dataclass(frozen=True)
class Resized:
    width: int
    height: int


# ---------------------------------------------------------------------- #
# Semantic                                                                 #
# ---------------------------------------------------------------------- #


@dataclass(frozen=True)
class Quit:
    pass


@dataclass(frozen=True)
class MoveUp:
    pass


@dataclass(frozen=True)
class MoveDown:
    pass


@dataclass(frozen=True)
class Confirm:
    pass


@dataclass(frozen=True)
class Back:
    pass


@dataclass(frozen=True)
class Refresh:
    pass


@dataclass(frozen=True)
class OpenPicker:
    pass


@dataclass(frozen=True)
class OpenRepoSelector:
    pass


@dataclass(frozen=True)
class SelectRepo:
    repo: RepoRef


@dataclass(frozen=True)
class SelectPr:
    repo: RepoRef
    number: int


@dataclass(frozen=True)
class LoadPr:
    """Load a PR from any state. Used at startup and to retry a failed load."""

    repo: RepoRef
    number: int


@dataclass(frozen=True)
class ScrollDown:
    lines: int = 1


@dataclass(frozen=True)
class ScrollUp:
    lines: int = 1


@dataclass(frozen=True)
class PageDown:
    pass


@dataclass(frozen=True)
class PageUp:
    pass


@dataclass(frozen=True)
class NextBlock:
    pass


@dataclass(frozen=True)
class PrevBlock:
    pass


@dataclass(frozen=True)
class NextFeature:
    pass


@dataclass(frozen=True)
class PrevFeature:
    pass


@dataclass(frozen=True)
class MarkViewed:
    pass


@dataclass(frozen=True)
class UnmarkViewed:
    pass


@dataclass(frozen=True)
class SelectActionSlot:
    kind: ReviewKind


@dataclass(frozen=True)
class StartEditing:
    pass


@dataclass(frozen=True)
class InsertChar:
    char: str


@dataclass(frozen=True)
class DeleteChar:
    pass


@dataclass(frozen=True)
class CursorLeft:
    pass


@dataclass(frozen=True)
class CursorRight:
    pass


@dataclass(frozen=True)
class CancelEditing:
    pass


@dataclass(frozen=True)
class Submit:
    pass


@dataclass(frozen=True)
class Retry:
    pass


@dataclass(frozen=True)
class RegenerateStory:
    pass


@dataclass(frozen=True)
class DismissStatus:
    pass


# ---------------------------------------------------------------------- #
# Results: one per command kind, stamped with the issuing generation       #
# ---------------------------------------------------------------------- #


@dataclass(frozen=True)
class RepoListLoaded:
    generation: int
    repos: tuple[RepoSummary, ...] = ()
    error: PrStoryError | None = None


@dataclass(frozen=True)
class PrListLoaded:
    generation: int
    repo: RepoRef
    prs: tuple[PrSummary, ...] = ()
    error: PrStoryError | None = None


@dataclass(frozen=True)
class PrLoaded:
    generation: int
    pr: PrContext | None = None
    error: PrStoryError | None = None


@dataclass(frozen=True)
class StoryReady:
    generation: int
    story: Story | None = None
    from_cache: bool = False
    error: PrStoryError | None = None


@dataclass(frozen=True)
class ReviewSubmitted:
    generation: int
    review: ReviewAction
    error: PrStoryError | None = None


@dataclass(frozen=True)
class CacheSaved:
    generation: int
    key: str
    error: PrStoryError | None = None


INPUT_ACTIONS = (KeyPressed, Resized)

SEMANTIC_ACTIONS = (
    Quit,
    MoveUp,
    MoveDown,
    Confirm,
    Back,
    Refresh,
    OpenPicker,
    OpenRepoSelector,
    SelectRepo,
    SelectPr,
    LoadPr,
    ScrollDown,
    ScrollUp,
    PageDown,
    PageUp,
    NextBlock,
    PrevBlock,
    NextFeature,
    PrevFeature,
    MarkViewed,
    UnmarkViewed,
    SelectActionSlot,
    StartEditing,
    InsertChar,
    DeleteChar,
    CursorLeft,
    CursorRight,
    CancelEditing,
    Submit,
    Retry,
    RegenerateStory,
    DismissStatus,
)

RESULT_ACTIONS = (RepoListLoaded, PrListLoaded, PrLoaded, StoryReady, ReviewSubmitted, CacheSaved)

ALL_ACTIONS = INPUT_ACTIONS + SEMANTIC_ACTIONS + RESULT_ACTIONS

Action = Union[
    KeyPressed,
    Resized,
    Quit,
    MoveUp,
    MoveDown,
    Confirm,
    Back,
    Refresh,
    OpenPicker,
    OpenRepoSelector,
    SelectRepo,
    SelectPr,
    LoadPr,
    ScrollDown,
    ScrollUp,
    PageDown,
    PageUp,
    NextBlock,
    PrevBlock,
    NextFeature,
    PrevFeature,
    MarkViewed,
    UnmarkViewed,
    SelectActionSlot,
    StartEditing,
    InsertChar,
    DeleteChar,
    CursorLeft,
    CursorRight,
    CancelEditing,
    Submit,
    Retry,
    RegenerateStory,
    DismissStatus,
    RepoListLoaded,
    PrListLoaded,
    PrLoaded,
    StoryReady,
    ReviewSubmitted,
    CacheSaved,
]
