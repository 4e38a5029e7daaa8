"""Command vocabulary — side effects the update function asks for but cannot perform.

Commands carry copies of the data they need (a PrContext, a Story) so the
executor never touches the Session. ``Dispatch`` stamps a command with the
generation that was current when update emitted it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from prstory_core.models import PrContext, PrRef, RepoRef, ReviewAction, Story


@dataclass(frozen=True)
class FetchRepos:
    pass


@dataclass(frozen=True)
class FetchPrList:
    repo: RepoRef


@dataclass(frozen=True)
class FetchPr:
    repo: RepoRef
    number: int


@dataclass(frozen=True)
class GenerateStory:
    pr: PrContext
    model: str | None = None


@dataclass(frozen=True)
class LoadCachedStory:
    pr_ref: PrRef
    path: str


@dataclass(frozen=True)
class SaveCachedStory:
    pr_ref: PrRef
    story: Story
    path: str


@dataclass(frozen=True)
class SubmitReview:
    pr: PrContext
    review: ReviewAction


ALL_COMMANDS = (FetchRepos, FetchPrList, FetchPr, GenerateStory, LoadCachedStory, SaveCachedStory, SubmitReview)

Command = Union[FetchRepos, FetchPrList, FetchPr, GenerateStory, LoadCachedStory, SaveCachedStory, SubmitReview]


@dataclass(frozen=True)
class Dispatch:
    command: Command
    generation: int
