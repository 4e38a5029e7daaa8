"""Command executor: runs side effects off the engine loop.

Every Command runs in a worker thread under a time ceiling and resolves to
exactly one result Action. Failures never escape: they are mapped onto the
error taxonomy and carried inside the Action. A result whose dispatch
generation is no longer current is dropped instead of posted.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Callable, Optional

from prstory_core import actions as a
from prstory_core import commands as c
from prstory_core.errors import (
    AnalysisFailed,
    CacheUnreadable,
    PrStoryError,
    SourceUnavailable,
    SubmissionFailed,
)
from prstory_core.models import Story

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 300.0

# Error kind used when a command fails with something outside the taxonomy.
_ERROR_KINDS = {
    c.FetchRepos: SourceUnavailable,
    c.FetchPrList: SourceUnavailable,
    c.FetchPr: SourceUnavailable,
    c.GenerateStory: AnalysisFailed,
    c.LoadCachedStory: CacheUnreadable,
    c.SaveCachedStory: CacheUnreadable,
    c.SubmitReview: SubmissionFailed,
}


def _failed(command, generation: int, error: PrStoryError):
    """Build the result Action that reports ``error`` for ``command``."""
    if isinstance(command, c.FetchRepos):
        return a.RepoListLoaded(generation, error=error)
    if isinstance(command, c.FetchPrList):
        return a.PrListLoaded(generation, command.repo, error=error)
    if isinstance(command, c.FetchPr):
        return a.PrLoaded(generation, error=error)
    if isinstance(command, c.GenerateStory):
        return a.StoryReady(generation, error=error)
    if isinstance(command, c.LoadCachedStory):
        return a.StoryReady(generation, from_cache=True, error=error)
    if isinstance(command, c.SaveCachedStory):
        return a.CacheSaved(generation, command.pr_ref.key, error=error)
    if isinstance(command, c.SubmitReview):
        return a.ReviewSubmitted(generation, command.review, error=error)
    raise TypeError(f"Unknown command: {type(command).__name__}")


class CommandExecutor:
    """Execute Commands and post their result Actions.

    ``source`` is a PrSource, ``analyst_factory(model)`` returns a BaseAnalyst
    and ``store`` is a story cache backend (or None when caching is off).
    ``post`` and ``current_generation`` are normally bound by the Engine.
    """

    def __init__(
        self,
        source,
        analyst_factory: Callable,
        store=None,
        post: Optional[Callable] = None,
        current_generation: Optional[Callable[[], int]] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self.source = source
        self.analyst_factory = analyst_factory
        self.store = store
        self.timeout = timeout
        self._post = post
        self._current_generation = current_generation
        self._analysts: dict = {}
        self._analysts_lock = threading.Lock()
        self._handlers = {
            c.FetchRepos: self._fetch_repos,
            c.FetchPrList: self._fetch_pr_list,
            c.FetchPr: self._fetch_pr,
            c.GenerateStory: self._generate_story,
            c.LoadCachedStory: self._load_cached_story,
            c.SaveCachedStory: self._save_cached_story,
            c.SubmitReview: self._submit_review,
        }

    def bind(self, post: Callable, current_generation: Callable[[], int]) -> None:
        self._post = post
        self._current_generation = current_generation

    async def run(self, dispatch: c.Dispatch) -> None:
        """Execute one dispatched command and post its result unless stale."""
        result = await self.execute(dispatch.command, dispatch.generation)
        current = self._current_generation() if self._current_generation else dispatch.generation
        if dispatch.generation != current:
            logger.debug(
                "Dropping stale %s result (generation %d, current %d)",
                type(dispatch.command).__name__,
                dispatch.generation,
                current,
            )
            return
        if self._post is not None:
            self._post(result)

    async def execute(self, command, generation: int):
        """Run ``command`` and return its result Action. Never raises."""
        name = type(command).__name__
        handler = self._handlers[type(command)]
        error_kind = _ERROR_KINDS[type(command)]
        logger.debug("Executing %s (generation %d)", name, generation)
        try:
            return await asyncio.wait_for(asyncio.to_thread(handler, command, generation), self.timeout)
        except asyncio.TimeoutError:
            # The worker thread keeps running; its late result is simply never read.
            logger.warning("%s timed out after %ss", name, self.timeout)
            error = error_kind(f"{name} timed out after {self.timeout:g}s")
        except PrStoryError as e:
            logger.warning("%s failed: %s", name, e)
            error = e
        except Exception as e:
            logger.exception("%s failed unexpectedly", name)
            error = error_kind(str(e) or type(e).__name__)
        return _failed(command, generation, error)

    # ------------------------------------------------------------------ #
    # Handlers: run in worker threads                                      #
    # ------------------------------------------------------------------ #

    def _fetch_repos(self, command: c.FetchRepos, generation: int):
        return a.RepoListLoaded(generation, repos=tuple(self.source.list_repos()))

    def _fetch_pr_list(self, command: c.FetchPrList, generation: int):
        return a.PrListLoaded(generation, command.repo, prs=tuple(self.source.list_prs(command.repo)))

    def _fetch_pr(self, command: c.FetchPr, generation: int):
        return a.PrLoaded(generation, pr=self.source.fetch_pr(command.repo, command.number))

    def _analyst(self, model: str | None):
        with self._analysts_lock:
            if model not in self._analysts:
                self._analysts[model] = self.analyst_factory(model)
            return self._analysts[model]

    def _generate_story(self, command: c.GenerateStory, generation: int):
        story = self._analyst(command.model).analyze(command.pr)
        logger.info("Generated story for %s: %d feature(s)", command.pr.ref.key, len(story.narrative))
        return a.StoryReady(generation, story=story)

    def _load_cached_story(self, command: c.LoadCachedStory, generation: int):
        key = command.pr_ref.key
        if self.store is None:
            raise CacheUnreadable(f"No story cache configured at {command.path}")
        snapshot = self.store.load(key)
        if snapshot is None:
            logger.info("Cache miss for %s in %s", key, command.path)
            raise CacheUnreadable(f"No cached story for {key} in {command.path}")
        try:
            story = Story.from_dict(snapshot.get("story"))
        except AnalysisFailed as e:
            raise CacheUnreadable(f"Cached story for {key} is invalid: {e}") from e
        return a.StoryReady(generation, story=story, from_cache=True)

    def _save_cached_story(self, command: c.SaveCachedStory, generation: int):
        key = command.pr_ref.key
        if self.store is None:
            raise CacheUnreadable(f"No story cache configured at {command.path}")
        self.store.save(key, {"pr": key, "story": command.story.to_dict()})
        logger.debug("Cached story for %s in %s", key, command.path)
        return a.CacheSaved(generation, key)

    def _submit_review(self, command: c.SubmitReview, generation: int):
        self.source.submit_review(command.pr, command.review)
        return a.ReviewSubmitted(generation, command.review)
