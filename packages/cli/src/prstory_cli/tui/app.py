"""Textual shell around the Engine.

The app owns no review state. It forwards every key press and resize to the
engine as an Action and repaints from whatever Session the engine hands back.
"""

from __future__ import annotations

from textual import events
from textual.app import App, ComposeResult
from textual.widgets import Static

from prstory_cli.tui.render import render_footer, render_session, render_status, render_title
from prstory_core import actions as a
from prstory_core.engine import Engine
from prstory_core.session import Session


class StoryApp(App):
    CSS = """
    #title {
        height: 1;
        background: $primary;
        color: $text;
        padding: 0 1;
    }
    #body {
        height: 1fr;
        padding: 0 1;
    }
    #status {
        height: 1;
        padding: 0 1;
    }
    #footer {
        height: 1;
        background: $panel;
        padding: 0 1;
    }
    """

    # Keys are interpreted by the engine's keymap, not by Textual bindings.
    ENABLE_COMMAND_PALETTE = False

    def __init__(self, session: Session, initial_command, executor):
        super().__init__()
        self.engine = Engine(session, executor, render=self._render)
        self._initial_command = initial_command

    def compose(self) -> ComposeResult:
        yield Static(id="title")
        yield Static(id="body")
        yield Static(id="status")
        yield Static(id="footer")

    def on_mount(self) -> None:
        self.engine.post(a.Resized(self.size.width, self.size.height))
        self.run_worker(self._drive(), exclusive=True)

    async def _drive(self) -> None:
        session = await self.engine.run(self._initial_command)
        self.exit(session)

    def on_key(self, event: events.Key) -> None:
        event.stop()
        event.prevent_default()
        self.engine.post(a.KeyPressed(event.key, event.character))

    def on_resize(self, event: events.Resize) -> None:
        self.engine.post(a.Resized(event.size.width, event.size.height))

    def _render(self, session: Session) -> None:
        self.query_one("#title", Static).update(render_title(session))
        self.query_one("#body", Static).update(render_session(session))
        self.query_one("#status", Static).update(render_status(session))
        self.query_one("#footer", Static).update(render_footer(session))
