"""Headless tests for the Textual shell around the engine."""

import asyncio
from unittest.mock import MagicMock

from prstory_cli.tui.app import StoryApp
from prstory_core.executor import CommandExecutor
from prstory_core.models import PrContext, RepoRef, Story
from prstory_core.session import SessionOptions, Viewing
from prstory_core.update import initial_session

from samples import STORY

REPO = RepoRef("octo", "widgets")


def _executor():
    source = MagicMock()
    source.fetch_pr.return_value = PrContext(owner="octo", repo="widgets", number=1, title="Add retry budget")
    analyst = MagicMock()
    analyst.analyze.return_value = Story.from_dict(STORY)
    return CommandExecutor(source=source, analyst_factory=lambda model: analyst, timeout=5.0)


async def _until(pilot, predicate, attempts=200):
    for _ in range(attempts):
        if predicate():
            return
        await pilot.pause(0.01)
    raise AssertionError("condition not reached")


def test_keys_reach_engine_and_quit_exits():
    session, command = initial_session(SessionOptions(cache_path=""), REPO, 1)
    app = StoryApp(session, command, _executor())

    async def scenario():
        async with app.run_test(size=(100, 30)) as pilot:
            await _until(pilot, lambda: isinstance(app.engine.session.state, Viewing))
            assert app.engine.session.viewport_height == 30

            await pilot.press("2")
            await _until(pilot, lambda: app.engine.session.selected_kind.value == "clarification_questions")

            await pilot.press("q")
            await _until(pilot, lambda: app.engine.stopped)

    asyncio.run(scenario())
    assert app.engine.session.is_terminal
