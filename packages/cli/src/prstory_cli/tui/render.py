"""Rich renderables for every session state.

Rendering is a pure function of the Session: the same Session always yields
the same output, and nothing here reads anything else.
"""

from __future__ import annotations

from rich.console import Group, RenderableType
from rich.text import Text

from prstory_core import keymap
from prstory_core.models import REVIEW_KINDS, DiffBlock, Feature, Role, Significance, Story
from prstory_core.session import (
    Cursors,
    EditingAction,
    Error,
    GeneratingStory,
    LoadingPr,
    PrPicker,
    Quitting,
    RepoSelector,
    Session,
    Viewing,
)

# Lines taken by the header, status line and footer around the story body.
_CHROME = 4

_ROLE_STYLE = {Role.ROOT: "bold magenta", Role.DEPENDENT: "cyan"}
_SIGNIFICANCE_STYLE = {Significance.KEY: "bold red", Significance.STANDARD: "yellow", Significance.NOISE: "dim"}


def render_session(session: Session) -> RenderableType:
    """Render the main body for the current state."""
    state = session.state
    if isinstance(state, RepoSelector):
        return _render_repo_selector(session, state)
    if isinstance(state, PrPicker):
        return _render_pr_picker(session, state)
    if isinstance(state, LoadingPr):
        return Text(f"Loading PR #{state.number} from {state.repo.full_name}...", style="bold")
    if isinstance(state, GeneratingStory):
        verb = "Loading cached story" if state.from_cache else "Generating story"
        return Text(f"{verb} for #{state.pr.number}: {state.pr.title}...", style="bold")
    if isinstance(state, Viewing):
        return _render_viewing(session, state)
    if isinstance(state, EditingAction):
        return _render_editing(state)
    if isinstance(state, Error):
        return _render_error(state)
    if isinstance(state, Quitting):
        return Text("Bye.")
    return Text("")


def render_status(session: Session) -> Text:
    return Text(session.status or "", style="bold yellow")


def render_footer(session: Session) -> Text:
    footer = Text()
    for i, (keys, description) in enumerate(keymap.hints_for(session.state)):
        if i:
            footer.append("  ")
        footer.append(keys, style="bold cyan")
        footer.append(f" {description}")
    return footer


def render_title(session: Session) -> Text:
    pr = session.pr
    if pr is not None:
        viewed, total = session.progress()
        suffix = f"  [{viewed}/{total} viewed]" if total else ""
        return Text(f"{pr.owner}/{pr.repo}#{pr.number}: {pr.title}{suffix}", style="bold")
    if session.repo is not None:
        return Text(session.repo.full_name, style="bold")
    return Text("prstory", style="bold")


# ---------------------------------------------------------------------- #
# Lists                                                                    #
# ---------------------------------------------------------------------- #


def _render_repo_selector(session: Session, state: RepoSelector) -> RenderableType:
    if state.loading:
        return Text("Loading repositories...", style="bold")
    if not session.repos:
        return Text("No repositories found. Press r to refresh.", style="yellow")
    lines = [Text("Select a repository", style="bold underline")]
    for i, repo in enumerate(session.repos):
        line = Text("> " if i == session.repo_cursor else "  ")
        line.append(repo.ref.full_name, style="bold reverse" if i == session.repo_cursor else "bold")
        if repo.is_private:
            line.append(" [private]", style="yellow")
        if repo.is_fork:
            line.append(" [fork]", style="dim")
        if repo.description:
            line.append(f"  {repo.description}", style="dim")
        lines.append(line)
    return Group(*lines)


def _render_pr_picker(session: Session, state: PrPicker) -> RenderableType:
    if state.loading:
        return Text(f"Loading open PRs for {state.repo.full_name}...", style="bold")
    if not session.prs:
        return Text(f"No open PRs in {state.repo.full_name}. Press r to refresh.", style="yellow")
    lines = [Text(f"Open PRs in {state.repo.full_name}", style="bold underline")]
    for i, pr in enumerate(session.prs):
        line = Text("> " if i == session.pr_cursor else "  ")
        line.append(f"#{pr.number} {pr.title}", style="bold reverse" if i == session.pr_cursor else "bold")
        if pr.author:
            line.append(f"  @{pr.author}", style="dim")
        line.append(f"  +{pr.additions}", style="green")
        line.append(f"/-{pr.deletions}", style="red")
        if pr.review_requested:
            line.append("  [review requested]", style="bold cyan")
        if pr.is_draft:
            line.append("  [draft]", style="dim")
        lines.append(line)
    return Group(*lines)


# ---------------------------------------------------------------------- #
# Story                                                                    #
# ---------------------------------------------------------------------- #


def _bullets(title: str, items) -> list[Text]:
    if not items:
        return []
    lines = [Text(title, style="bold")]
    lines.extend(Text(f"  • {item}") for item in items)
    return lines


def _diff_lines(block: DiffBlock) -> list[Text]:
    lines = []
    for hunk in block.hunks:
        lines.append(Text(hunk.header, style="bold blue"))
        for raw in hunk.lines.splitlines():
            if raw.startswith("+"):
                lines.append(Text(raw, style="green"))
            elif raw.startswith("-"):
                lines.append(Text(raw, style="red"))
            else:
                lines.append(Text(raw))
    return lines


def block_lines(block: DiffBlock, index: int, current: bool = False) -> list[Text]:
    header = Text("▶ " if current else "  ")
    header.append("✓ " if block.viewed else "○ ", style="green" if block.viewed else "dim")
    header.append(f"[{index + 1}] {block.label}", style="bold underline" if current else "bold")
    header.append(f"  {block.role.value}", style=_ROLE_STYLE[block.role])
    header.append(f"  {block.significance.value}", style=_SIGNIFICANCE_STYLE[block.significance])
    lines = [header]
    if block.context:
        lines.append(Text(f"    {block.context}", style="italic"))
    return lines


def feature_lines(feature: Feature, index: int, total: int) -> list[Text]:
    viewed, blocks = feature.progress()
    heading = Text(f"Feature {index + 1}/{total}: {feature.title}", style="bold magenta")
    heading.append(f"  ({viewed}/{blocks} viewed)", style="dim")
    lines = [heading]
    if feature.why:
        lines.append(Text(feature.why))
    lines.extend(_bullets("Changes", feature.changes))
    lines.extend(_bullets("Risks", feature.risks))
    lines.extend(_bullets("Tests", feature.tests))
    return lines


def story_overview(story: Story) -> list[Text]:
    stats = story.stats
    lines = [Text(story.summary, style="bold")]
    line = Text(f"{stats.files_touched} files  ")
    line.append(f"+{stats.additions}", style="green")
    line.append(" ")
    line.append(f"-{stats.deletions}", style="red")
    lines.append(line)
    if story.focus.key_change:
        lines.append(Text(f"Key change: {story.focus.key_change}", style="bold cyan"))
    lines.extend(_bullets("Review these", story.focus.review_these))
    lines.extend(_bullets("Skim these", story.focus.skim_these))
    return lines


def _story_lines(story: Story, cursors: Cursors) -> list[Text]:
    lines = story_overview(story)
    lines.append(Text(""))
    if cursors.feature is None:
        lines.append(Text("The analysis produced no features.", style="yellow"))
        lines.extend(_bullets("Open questions", story.open_questions))
        return lines
    feature = story.narrative[cursors.feature]
    lines.extend(feature_lines(feature, cursors.feature, len(story.narrative)))
    lines.append(Text(""))
    for i, block in enumerate(feature.diff_blocks):
        lines.extend(block_lines(block, i, current=i == cursors.block))
    if cursors.block is not None:
        lines.append(Text(""))
        lines.extend(_diff_lines(feature.diff_blocks[cursors.block]))
    if cursors.feature == len(story.narrative) - 1:
        lines.append(Text(""))
        lines.extend(_bullets("Open questions", story.open_questions))
    return lines


def _action_bar(session: Session) -> Text:
    bar = Text()
    for i, kind in enumerate(REVIEW_KINDS):
        if i:
            bar.append("  ")
        selected = kind is session.selected_kind
        bar.append(f"[{i + 1}] {kind.label}", style="bold reverse" if selected else "dim")
    return bar


def _render_viewing(session: Session, state: Viewing) -> RenderableType:
    lines = _story_lines(state.story, state.cursors)
    if session.viewport_height > _CHROME:
        visible = session.viewport_height - _CHROME
        top = min(state.cursors.scroll, max(0, len(lines) - visible))
        lines = lines[top : top + visible]
    draft = session.draft(session.selected_kind).text
    preview = draft.splitlines()[0] if draft.strip() else "(empty draft)"
    return Group(*lines, Text(""), _action_bar(session), Text(f"  {preview}", style="dim"))


def _render_editing(state: EditingAction) -> RenderableType:
    text = Text()
    text.append(state.draft_text[: state.cursor_pos])
    text.append(state.draft_text[state.cursor_pos : state.cursor_pos + 1] or " ", style="reverse")
    text.append(state.draft_text[state.cursor_pos + 1 :])
    title = Text(f"{state.kind.label} for #{state.pr.number}", style="bold underline")
    if state.submitting:
        title.append("  submitting...", style="bold yellow")
    return Group(title, Text(""), text)


def _render_error(state: Error) -> RenderableType:
    lines = [Text("Error", style="bold red"), Text(state.message, style="red"), Text("")]
    if state.recoverable and state.retry_action is not None:
        lines.append(Text("Press r to retry, o for the PR list, O for repositories, q to quit."))
    else:
        lines.append(Text("Press o for the PR list, O for repositories, q to quit."))
    return Group(*lines)


def render_story(story: Story) -> RenderableType:
    """Render a whole story at once, every feature and block expanded."""
    lines = story_overview(story)
    for i, feature in enumerate(story.narrative):
        lines.append(Text(""))
        lines.extend(feature_lines(feature, i, len(story.narrative)))
        for j, block in enumerate(feature.diff_blocks):
            lines.extend(block_lines(block, j))
            lines.extend(_diff_lines(block))
    if story.open_questions:
        lines.append(Text(""))
        lines.extend(_bullets("Open questions", story.open_questions))
    return Group(*lines)
