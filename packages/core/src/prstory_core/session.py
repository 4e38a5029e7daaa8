"""Session aggregate and the finite set of interaction states.

Only the update function produces new Sessions. Everything is frozen so a
Session handed to the renderer or kept inside an Error state for resumption
can never change underneath its holder.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Union

from prstory_core.models import (
    REVIEW_KINDS,
    PrContext,
    PrRef,
    PrSummary,
    RepoRef,
    RepoSummary,
    ReviewAction,
    ReviewKind,
    Story,
)

if TYPE_CHECKING:
    from prstory_core.actions import Action


@dataclass(frozen=True)
class SessionOptions:
    """Startup parameters. Seeded once from the CLI, never re-parsed."""

    use_cache: bool = False
    cache_path: str = ".prstory-cache.json"
    model: str | None = None
    page_size: int = 20


@dataclass(frozen=True)
class Cursors:
    """Navigation position inside a Story.

    ``feature`` is None when the story has no features; ``block`` is None when
    the current feature has no diff blocks.
    """

    feature: int | None = None
    block: int | None = None
    scroll: int = 0

    @classmethod
    def start(cls, story: Story) -> Cursors:
        if not story.narrative:
            return cls()
        return cls(feature=0, block=0 if story.narrative[0].diff_blocks else None)


# ---------------------------------------------------------------------- #
# States                                                                   #
# ---------------------------------------------------------------------- #


@dataclass(frozen=True)
class RepoSelector:
    loading: bool = False


@dataclass(frozen=True)
class PrPicker:
    repo: RepoRef
    loading: bool = False


@dataclass(frozen=True)
class LoadingPr:
    repo: RepoRef
    number: int
    generation: int


@dataclass(frozen=True)
class GeneratingStory:
    pr: PrContext
    generation: int
    from_cache: bool = False


@dataclass(frozen=True)
class Viewing:
    pr: PrContext
    story: Story
    cursors: Cursors


@dataclass(frozen=True)
class EditingAction:
    pr: PrContext
    story: Story
    cursors: Cursors
    kind: ReviewKind
    draft_text: str
    cursor_pos: int
    submitting: bool = False


@dataclass(frozen=True)
class Error:
    message: str
    recoverable: bool = True
    retry_action: Action | None = None
    # The state the error interrupted; Retry resumes from here.
    resume: State | None = None


@dataclass(frozen=True)
class Quitting:
    pass


ALL_STATES = (RepoSelector, PrPicker, LoadingPr, GeneratingStory, Viewing, EditingAction, Error, Quitting)

State = Union[RepoSelector, PrPicker, LoadingPr, GeneratingStory, Viewing, EditingAction, Error, Quitting]


def _empty_drafts() -> tuple[ReviewAction, ...]:
    return tuple(ReviewAction(kind) for kind in REVIEW_KINDS)


@dataclass(frozen=True)
class Session:
    state: State = field(default_factory=RepoSelector)
    generation: int = 0
    options: SessionOptions = field(default_factory=SessionOptions)
    repo: RepoRef | None = None
    repos: tuple[RepoSummary, ...] = ()
    repo_cursor: int = 0
    prs: tuple[PrSummary, ...] = ()
    pr_cursor: int = 0
    drafts: tuple[ReviewAction, ...] = field(default_factory=_empty_drafts)
    # Reviews already posted, so an unchanged draft is never sent twice.
    submitted: frozenset[tuple[PrRef, ReviewAction]] = frozenset()
    selected_kind: ReviewKind = ReviewKind.REQUEST_CHANGES
    status: str | None = None
    viewport_height: int = 0

    @property
    def pr(self) -> PrContext | None:
        state = self.state
        if isinstance(state, (Viewing, EditingAction, GeneratingStory)):
            return state.pr
        return None

    @property
    def story(self) -> Story | None:
        state = self.state
        if isinstance(state, (Viewing, EditingAction)):
            return state.story
        return None

    @property
    def cursors(self) -> Cursors | None:
        state = self.state
        if isinstance(state, (Viewing, EditingAction)):
            return state.cursors
        return None

    @property
    def is_terminal(self) -> bool:
        return isinstance(self.state, Quitting)

    def draft(self, kind: ReviewKind) -> ReviewAction:
        for d in self.drafts:
            if d.kind is kind:
                return d
        return ReviewAction(kind)

    def progress(self) -> tuple[int, int]:
        """Return ``(viewed, total)`` diff blocks for the loaded story."""
        story = self.story
        if story is None:
            return 0, 0
        return story.viewed_count(), story.block_count()
