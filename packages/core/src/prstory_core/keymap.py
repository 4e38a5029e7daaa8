"""Keyboard surface: translate a key press into exactly one semantic Action.

Translation depends on the state the key arrives in, so the engine performs it
inside ``update`` at the moment the key is dequeued rather than when it is
typed. Keys outside the recognized set translate to None and are ignored.

Key names follow Textual's conventions ("enter", "escape", "shift+tab",
"ctrl+s", ...). Printable keys are matched on the character they produce.
"""

from __future__ import annotations

from prstory_core import actions as a
from prstory_core.models import ReviewKind
from prstory_core.session import (
    EditingAction,
    Error,
    GeneratingStory,
    LoadingPr,
    PrPicker,
    Quitting,
    RepoSelector,
    State,
    Viewing,
)

_REPO_SELECTOR = {
    "q": a.Quit(),
    "escape": a.Quit(),
    "j": a.MoveDown(),
    "down": a.MoveDown(),
    "k": a.MoveUp(),
    "up": a.MoveUp(),
    "r": a.Refresh(),
    "enter": a.Confirm(),
}

_PR_PICKER = {
    "q": a.Quit(),
    "escape": a.Back(),
    "backspace": a.Back(),
    "j": a.MoveDown(),
    "down": a.MoveDown(),
    "k": a.MoveUp(),
    "up": a.MoveUp(),
    "r": a.Refresh(),
    "O": a.OpenRepoSelector(),
    "enter": a.Confirm(),
}

_LOADING = {
    "q": a.Quit(),
    "escape": a.OpenPicker(),
    "o": a.OpenPicker(),
    "O": a.OpenRepoSelector(),
}

_VIEWING = {
    "q": a.Quit(),
    "o": a.OpenPicker(),
    "O": a.OpenRepoSelector(),
    "g": a.RegenerateStory(),
    "j": a.ScrollDown(),
    "down": a.ScrollDown(),
    "k": a.ScrollUp(),
    "up": a.ScrollUp(),
    " ": a.PageDown(),
    "space": a.PageDown(),
    "pagedown": a.PageDown(),
    "ctrl+d": a.PageDown(),
    "b": a.PageUp(),
    "pageup": a.PageUp(),
    "ctrl+u": a.PageUp(),
    "tab": a.NextFeature(),
    "n": a.NextFeature(),
    "shift+tab": a.PrevFeature(),
    "p": a.PrevFeature(),
    "l": a.NextBlock(),
    "right": a.NextBlock(),
    "h": a.PrevBlock(),
    "left": a.PrevBlock(),
    "v": a.MarkViewed(),
    "u": a.UnmarkViewed(),
    "1": a.SelectActionSlot(ReviewKind.REQUEST_CHANGES),
    "2": a.SelectActionSlot(ReviewKind.CLARIFICATION_QUESTIONS),
    "3": a.SelectActionSlot(ReviewKind.FOLLOWUP_ISSUE),
    "enter": a.StartEditing(),
    "escape": a.DismissStatus(),
}

_EDITING = {
    "ctrl+s": a.Submit(),
    "escape": a.CancelEditing(),
    "enter": a.InsertChar("\n"),
    "backspace": a.DeleteChar(),
    "left": a.CursorLeft(),
    "right": a.CursorRight(),
}

_ERROR = {
    "q": a.Quit(),
    "r": a.Retry(),
    "o": a.OpenPicker(),
    "O": a.OpenRepoSelector(),
}


def _table_for(state: State) -> dict:
    if isinstance(state, RepoSelector):
        return _LOADING if state.loading else _REPO_SELECTOR
    if isinstance(state, PrPicker):
        return _LOADING if state.loading else _PR_PICKER
    if isinstance(state, (LoadingPr, GeneratingStory)):
        return _LOADING
    if isinstance(state, Viewing):
        return _VIEWING
    if isinstance(state, EditingAction):
        return _EDITING
    if isinstance(state, Error):
        return _ERROR
    return {}


def _is_printable(character: str | None) -> bool:
    return character is not None and len(character) == 1 and character.isprintable()


def translate(state: State, key: str, character: str | None = None):
    """Return the Action bound to ``key`` in ``state``, or None if unbound."""
    if isinstance(state, Quitting):
        return None
    table = _table_for(state)
    # Named keys first so "enter"/"escape" win over their control characters.
    if key in table:
        return table[key]
    if _is_printable(character):
        if character in table:
            return table[character]
        if isinstance(state, EditingAction):
            return a.InsertChar(character)
    return None


# Footer hints, (keys, description), per state. Rendering concern only.
_HINTS = {
    "loading": [("q", "Quit"), ("o", "PRs"), ("O", "Repos")],
    "repo_selector": [("j/↓", "Down"), ("k/↑", "Up"), ("Enter", "Select"), ("r", "Refresh"), ("q", "Quit")],
    "pr_picker": [
        ("j/↓", "Down"),
        ("k/↑", "Up"),
        ("Enter", "Select"),
        ("Esc", "Back"),
        ("r", "Refresh"),
        ("q", "Quit"),
    ],
    "viewing": [
        ("j/k", "Scroll"),
        ("Space/b", "Page"),
        ("h/l", "Block"),
        ("n/p", "Feature"),
        ("v/u", "Viewed"),
        ("1-3", "Actions"),
        ("Enter", "Edit"),
        ("g", "Regenerate"),
        ("o", "PRs"),
        ("O", "Repos"),
        ("q", "Quit"),
    ],
    "editing": [("Type", "Edit text"), ("Ctrl+S", "Submit"), ("Esc", "Done")],
    "error": [("r", "Retry"), ("o", "PRs"), ("O", "Repos"), ("q", "Quit")],
}


def hints_for(state: State) -> list[tuple[str, str]]:
    if isinstance(state, RepoSelector):
        return _HINTS["loading" if state.loading else "repo_selector"]
    if isinstance(state, PrPicker):
        return _HINTS["loading" if state.loading else "pr_picker"]
    if isinstance(state, Viewing):
        return _HINTS["viewing"]
    if isinstance(state, EditingAction):
        return _HINTS["editing"]
    if isinstance(state, Error):
        if not state.recoverable or state.retry_action is None:
            return [h for h in _HINTS["error"] if h[0] != "r"]
        return _HINTS["error"]
    if isinstance(state, Quitting):
        return []
    return _HINTS["loading"]
