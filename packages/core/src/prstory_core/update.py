"""The update function: ``(Session, Action) -> (Session, Command | None)``.

Pure and total. It performs no I/O, never suspends, never mutates its inputs,
and returns the Session unchanged with no Command for any action that is
irrelevant to the current state. Every transition of the review session is
decided here, including whether an error is recoverable.

Result actions are accepted only when their generation equals the Session's.
The executor already drops stale results before they are queued; the check
is repeated here so the function is correct on its own.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Optional, Tuple

from prstory_core import actions as a
from prstory_core import commands as c
from prstory_core import keymap
from prstory_core.models import REVIEW_KINDS, PrContext, RepoRef, ReviewAction, ReviewKind, Story
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
    SessionOptions,
    Viewing,
)

Result = Tuple[Session, Optional[c.Command]]


def update(session: Session, action) -> Result:
    if session.is_terminal:
        return session, None
    handler = _HANDLERS.get(type(action))
    if handler is None:
        return session, None
    return handler(session, action)


def initial_session(
    options: SessionOptions | None = None,
    repo: RepoRef | None = None,
    number: int | None = None,
) -> Result:
    """Build the starting Session and the Command that seeds it.

    No arguments opens the repo selector, a repo opens its PR picker, and a
    repo plus PR number loads that PR straight away.
    """
    session = Session(options=options or SessionOptions())
    if repo is not None and number is not None:
        return _load_pr(session, repo, number)
    if repo is not None:
        return _open_picker_for(session, repo)
    return _open_repo_selector(session)


# ---------------------------------------------------------------------- #
# Shared transitions                                                       #
# ---------------------------------------------------------------------- #


def _advance(session: Session, **changes) -> Session:
    """Start a new session incarnation; results issued before this are stale."""
    return replace(session, generation=session.generation + 1, **changes)


def _fail(session: Session, message: str, error, retry_action=None) -> Result:
    recoverable = getattr(error, "recoverable", True)
    state = Error(
        message=f"{message}: {error}" if error is not None else message,
        recoverable=recoverable,
        retry_action=retry_action if recoverable else None,
        resume=session.state,
    )
    return replace(session, state=state), None


def _fresh_drafts(story: Story | None = None) -> tuple[ReviewAction, ...]:
    if story is None:
        return tuple(ReviewAction(kind) for kind in REVIEW_KINDS)
    return tuple(ReviewAction(kind, story.draft_for(kind)) for kind in REVIEW_KINDS)


def _with_draft(drafts: tuple[ReviewAction, ...], kind: ReviewKind, text: str) -> tuple[ReviewAction, ...]:
    return tuple(ReviewAction(d.kind, text) if d.kind is kind else d for d in drafts)


def _current_repo(session: Session) -> RepoRef | None:
    if session.repo is not None:
        return session.repo
    state = session.state
    if isinstance(state, (LoadingPr, PrPicker)):
        return state.repo
    pr = session.pr
    if pr is not None:
        return RepoRef(pr.owner, pr.repo)
    return None


def _open_repo_selector(session: Session) -> Result:
    session = _advance(session, state=RepoSelector(loading=True), status=None)
    return session, c.FetchRepos()


def _open_picker_for(session: Session, repo: RepoRef) -> Result:
    session = _advance(session, state=PrPicker(repo, loading=True), repo=repo, prs=(), pr_cursor=0, status=None)
    return session, c.FetchPrList(repo)


def _load_pr(session: Session, repo: RepoRef, number: int) -> Result:
    session = _advance(session, repo=repo, drafts=_fresh_drafts(), status=None)
    session = replace(session, state=LoadingPr(repo, number, session.generation))
    return session, c.FetchPr(repo, number)


def _generate(session: Session, pr: PrContext) -> Result:
    session = _advance(session, status=None)
    session = replace(session, state=GeneratingStory(pr, session.generation))
    return session, c.GenerateStory(pr, session.options.model)


# ---------------------------------------------------------------------- #
# Input                                                                    #
# ---------------------------------------------------------------------- #


def _on_key(session: Session, action: a.KeyPressed) -> Result:
    translated = keymap.translate(session.state, action.key, action.character)
    if translated is None:
        return session, None
    return update(session, translated)


def _on_resized(session: Session, action: a.Resized) -> Result:
    return replace(session, viewport_height=max(0, action.height)), None


# ---------------------------------------------------------------------- #
# Global navigation                                                        #
# ---------------------------------------------------------------------- #


def _on_quit(session: Session, action: a.Quit) -> Result:
    return replace(session, state=Quitting()), None


def _on_open_picker(session: Session, action: a.OpenPicker) -> Result:
    repo = _current_repo(session)
    if repo is None:
        return _open_repo_selector(session)
    return _open_picker_for(session, repo)


def _on_open_repo_selector(session: Session, action: a.OpenRepoSelector) -> Result:
    return _open_repo_selector(session)


def _on_refresh(session: Session, action: a.Refresh) -> Result:
    if isinstance(session.state, RepoSelector):
        return _open_repo_selector(session)
    repo = _current_repo(session)
    if repo is None:
        return _open_repo_selector(session)
    return _open_picker_for(session, repo)


def _on_back(session: Session, action: a.Back) -> Result:
    if not isinstance(session.state, PrPicker):
        return session, None
    if session.repos:
        return _advance(session, state=RepoSelector(), status=None), None
    return replace(session, state=Quitting()), None


def _on_load_pr(session: Session, action: a.LoadPr) -> Result:
    return _load_pr(session, action.repo, action.number)


# ---------------------------------------------------------------------- #
# Selector and picker                                                      #
# ---------------------------------------------------------------------- #


def _on_move(session: Session, delta: int) -> Result:
    state = session.state
    if isinstance(state, RepoSelector) and not state.loading and session.repos:
        cursor = min(max(session.repo_cursor + delta, 0), len(session.repos) - 1)
        return replace(session, repo_cursor=cursor), None
    if isinstance(state, PrPicker) and not state.loading and session.prs:
        cursor = min(max(session.pr_cursor + delta, 0), len(session.prs) - 1)
        return replace(session, pr_cursor=cursor), None
    return session, None


def _on_move_up(session: Session, action: a.MoveUp) -> Result:
    return _on_move(session, -1)


def _on_move_down(session: Session, action: a.MoveDown) -> Result:
    return _on_move(session, 1)


def _on_confirm(session: Session, action: a.Confirm) -> Result:
    state = session.state
    if isinstance(state, RepoSelector) and not state.loading and session.repos:
        return _on_select_repo(session, a.SelectRepo(session.repos[session.repo_cursor].ref))
    if isinstance(state, PrPicker) and not state.loading and session.prs:
        return _on_select_pr(session, a.SelectPr(state.repo, session.prs[session.pr_cursor].number))
    return session, None


def _on_select_repo(session: Session, action: a.SelectRepo) -> Result:
    if not isinstance(session.state, RepoSelector):
        return session, None
    return _open_picker_for(session, action.repo)


def _on_select_pr(session: Session, action: a.SelectPr) -> Result:
    if not isinstance(session.state, PrPicker):
        return session, None
    return _load_pr(session, action.repo, action.number)


# ---------------------------------------------------------------------- #
# Viewing                                                                  #
# ---------------------------------------------------------------------- #


def _with_cursors(session: Session, state: Viewing, cursors: Cursors) -> Result:
    if cursors == state.cursors:
        return session, None
    return replace(session, state=replace(state, cursors=cursors)), None


def _page_size(session: Session) -> int:
    if session.viewport_height > 4:
        return session.viewport_height - 4
    return max(1, session.options.page_size)


def _scroll(session: Session, delta: int) -> Result:
    state = session.state
    if not isinstance(state, Viewing):
        return session, None
    cursors = state.cursors
    return _with_cursors(session, state, replace(cursors, scroll=max(0, cursors.scroll + delta)))


def _on_scroll_down(session: Session, action: a.ScrollDown) -> Result:
    return _scroll(session, action.lines)


def _on_scroll_up(session: Session, action: a.ScrollUp) -> Result:
    return _scroll(session, -action.lines)


def _on_page_down(session: Session, action: a.PageDown) -> Result:
    return _scroll(session, _page_size(session))


def _on_page_up(session: Session, action: a.PageUp) -> Result:
    return _scroll(session, -_page_size(session))


def _on_feature_step(session: Session, delta: int) -> Result:
    state = session.state
    if not isinstance(state, Viewing) or state.cursors.feature is None:
        return session, None
    target = state.cursors.feature + delta
    if not 0 <= target < len(state.story.narrative):
        return session, None
    block = 0 if state.story.narrative[target].diff_blocks else None
    return _with_cursors(session, state, Cursors(feature=target, block=block, scroll=0))


def _on_next_feature(session: Session, action: a.NextFeature) -> Result:
    return _on_feature_step(session, 1)


def _on_prev_feature(session: Session, action: a.PrevFeature) -> Result:
    return _on_feature_step(session, -1)


def _on_block_step(session: Session, delta: int) -> Result:
    state = session.state
    if not isinstance(state, Viewing):
        return session, None
    cursors = state.cursors
    if cursors.feature is None or cursors.block is None:
        return session, None
    target = cursors.block + delta
    if not 0 <= target < len(state.story.narrative[cursors.feature].diff_blocks):
        return session, None
    return _with_cursors(session, state, replace(cursors, block=target))


def _on_next_block(session: Session, action: a.NextBlock) -> Result:
    return _on_block_step(session, 1)


def _on_prev_block(session: Session, action: a.PrevBlock) -> Result:
    return _on_block_step(session, -1)


def _set_viewed(session: Session, viewed: bool) -> Result:
    state = session.state
    if not isinstance(state, Viewing):
        return session, None
    cursors = state.cursors
    if cursors.feature is None or cursors.block is None:
        return session, None
    story = state.story.with_block_viewed(cursors.feature, cursors.block, viewed)
    if story is state.story:
        return session, None
    return replace(session, state=replace(state, story=story)), None


def _on_mark_viewed(session: Session, action: a.MarkViewed) -> Result:
    return _set_viewed(session, True)


def _on_unmark_viewed(session: Session, action: a.UnmarkViewed) -> Result:
    return _set_viewed(session, False)


def _on_select_action_slot(session: Session, action: a.SelectActionSlot) -> Result:
    if not isinstance(session.state, Viewing):
        return session, None
    return replace(session, selected_kind=action.kind), None


def _on_regenerate(session: Session, action: a.RegenerateStory) -> Result:
    state = session.state
    if isinstance(state, (Viewing, GeneratingStory)):
        return _generate(session, state.pr)
    if isinstance(state, EditingAction) and not state.submitting:
        return _generate(session, state.pr)
    return session, None


def _on_dismiss_status(session: Session, action: a.DismissStatus) -> Result:
    if session.status is None:
        return session, None
    return replace(session, status=None), None


# ---------------------------------------------------------------------- #
# Editing                                                                  #
# ---------------------------------------------------------------------- #


def _on_start_editing(session: Session, action: a.StartEditing) -> Result:
    state = session.state
    if not isinstance(state, Viewing):
        return session, None
    kind = session.selected_kind
    text = session.draft(kind).text
    editing = EditingAction(
        pr=state.pr,
        story=state.story,
        cursors=state.cursors,
        kind=kind,
        draft_text=text,
        cursor_pos=len(text),
    )
    return replace(session, state=editing, status=None), None


def _editable(session: Session) -> EditingAction | None:
    state = session.state
    if isinstance(state, EditingAction) and not state.submitting:
        return state
    return None


def _on_insert_char(session: Session, action: a.InsertChar) -> Result:
    state = _editable(session)
    if state is None or not action.char:
        return session, None
    pos = state.cursor_pos
    text = state.draft_text[:pos] + action.char + state.draft_text[pos:]
    return replace(session, state=replace(state, draft_text=text, cursor_pos=pos + len(action.char))), None


def _on_delete_char(session: Session, action: a.DeleteChar) -> Result:
    state = _editable(session)
    if state is None or state.cursor_pos == 0:
        return session, None
    pos = state.cursor_pos
    text = state.draft_text[: pos - 1] + state.draft_text[pos:]
    return replace(session, state=replace(state, draft_text=text, cursor_pos=pos - 1)), None


def _on_cursor_left(session: Session, action: a.CursorLeft) -> Result:
    state = _editable(session)
    if state is None or state.cursor_pos == 0:
        return session, None
    return replace(session, state=replace(state, cursor_pos=state.cursor_pos - 1)), None


def _on_cursor_right(session: Session, action: a.CursorRight) -> Result:
    state = _editable(session)
    if state is None or state.cursor_pos >= len(state.draft_text):
        return session, None
    return replace(session, state=replace(state, cursor_pos=state.cursor_pos + 1)), None


def _on_cancel_editing(session: Session, action: a.CancelEditing) -> Result:
    state = _editable(session)
    if state is None:
        return session, None
    # Leaving the editor keeps what was typed as the committed draft.
    return (
        replace(
            session,
            state=Viewing(state.pr, state.story, state.cursors),
            drafts=_with_draft(session.drafts, state.kind, state.draft_text),
        ),
        None,
    )


def _on_submit(session: Session, action: a.Submit) -> Result:
    state = _editable(session)
    if state is None:
        return session, None
    if not state.draft_text.strip():
        return replace(session, status="Cannot submit empty text"), None
    review = ReviewAction(state.kind, state.draft_text)
    if (state.pr.ref, review) in session.submitted:
        return replace(session, status=f"{state.kind.label} already submitted"), None
    session = replace(
        session,
        state=replace(state, submitting=True),
        drafts=_with_draft(session.drafts, state.kind, state.draft_text),
        status=None,
    )
    return session, c.SubmitReview(state.pr, review)


# ---------------------------------------------------------------------- #
# Errors                                                                   #
# ---------------------------------------------------------------------- #


def _on_retry(session: Session, action: a.Retry) -> Result:
    state = session.state
    if not isinstance(state, Error) or not state.recoverable or state.retry_action is None:
        return session, None
    resumed = _advance(session, state=state.resume or RepoSelector(), status=None)
    return update(resumed, state.retry_action)


# ---------------------------------------------------------------------- #
# Results                                                                  #
# ---------------------------------------------------------------------- #


def _is_stale(session: Session, action) -> bool:
    return action.generation != session.generation


def _on_repo_list_loaded(session: Session, action: a.RepoListLoaded) -> Result:
    if _is_stale(session, action) or not isinstance(session.state, RepoSelector):
        return session, None
    if action.error is not None:
        return _fail(session, "Failed to fetch repo list", action.error, a.Refresh())
    return replace(session, state=RepoSelector(), repos=action.repos, repo_cursor=0), None


def _on_pr_list_loaded(session: Session, action: a.PrListLoaded) -> Result:
    state = session.state
    if _is_stale(session, action) or not isinstance(state, PrPicker) or state.repo != action.repo:
        return session, None
    if action.error is not None:
        return _fail(session, f"Failed to fetch PR list for {action.repo.full_name}", action.error, a.Refresh())
    return replace(session, state=PrPicker(state.repo), prs=action.prs, pr_cursor=0), None


def _on_pr_loaded(session: Session, action: a.PrLoaded) -> Result:
    state = session.state
    if _is_stale(session, action) or not isinstance(state, LoadingPr):
        return session, None
    if action.error is not None or action.pr is None:
        return _fail(
            session,
            f"Failed to load PR #{state.number} from {state.repo.full_name}",
            action.error,
            a.LoadPr(state.repo, state.number),
        )
    pr = action.pr
    options = session.options
    if options.use_cache and options.cache_path:
        session = replace(session, state=GeneratingStory(pr, session.generation, from_cache=True))
        return session, c.LoadCachedStory(pr.ref, options.cache_path)
    session = replace(session, state=GeneratingStory(pr, session.generation))
    return session, c.GenerateStory(pr, options.model)


def _on_story_ready(session: Session, action: a.StoryReady) -> Result:
    state = session.state
    if _is_stale(session, action) or not isinstance(state, GeneratingStory):
        return session, None
    if action.error is not None or action.story is None:
        what = "Failed to load cached story" if state.from_cache else "Failed to generate story"
        return _fail(session, what, action.error, a.RegenerateStory())
    story = action.story
    session = replace(
        session,
        state=Viewing(state.pr, story, Cursors.start(story)),
        drafts=_fresh_drafts(story),
        selected_kind=ReviewKind.REQUEST_CHANGES,
        status="Loaded from cache" if state.from_cache else None,
    )
    if state.from_cache or not session.options.cache_path:
        return session, None
    return session, c.SaveCachedStory(state.pr.ref, story, session.options.cache_path)


def _on_review_submitted(session: Session, action: a.ReviewSubmitted) -> Result:
    state = session.state
    if _is_stale(session, action) or not isinstance(state, EditingAction) or not state.submitting:
        return session, None
    if action.error is not None:
        session = replace(session, state=replace(state, submitting=False))
        return _fail(session, f"Failed to submit {action.review.kind.label}", action.error, a.Submit())
    viewing = Viewing(state.pr, state.story, state.cursors)
    submitted = session.submitted | {(state.pr.ref, action.review)}
    return replace(session, state=viewing, submitted=submitted, status=f"{action.review.kind.label} submitted"), None


def _on_cache_saved(session: Session, action: a.CacheSaved) -> Result:
    if _is_stale(session, action) or action.error is None:
        return session, None
    return replace(session, status=f"Could not save story cache: {action.error}"), None


_HANDLERS = {
    a.KeyPressed: _on_key,
    a.Resized: _on_resized,
    a.Quit: _on_quit,
    a.MoveUp: _on_move_up,
    a.MoveDown: _on_move_down,
    a.Confirm: _on_confirm,
    a.Back: _on_back,
    a.Refresh: _on_refresh,
    a.OpenPicker: _on_open_picker,
    a.OpenRepoSelector: _on_open_repo_selector,
    a.SelectRepo: _on_select_repo,
    a.SelectPr: _on_select_pr,
    a.LoadPr: _on_load_pr,
    a.ScrollDown: _on_scroll_down,
    a.ScrollUp: _on_scroll_up,
    a.PageDown: _on_page_down,
    a.PageUp: _on_page_up,
    a.NextBlock: _on_next_block,
    a.PrevBlock: _on_prev_block,
    a.NextFeature: _on_next_feature,
    a.PrevFeature: _on_prev_feature,
    a.MarkViewed: _on_mark_viewed,
    a.UnmarkViewed: _on_unmark_viewed,
    a.SelectActionSlot: _on_select_action_slot,
    a.StartEditing: _on_start_editing,
    a.InsertChar: _on_insert_char,
    a.DeleteChar: _on_delete_char,
    a.CursorLeft: _on_cursor_left,
    a.CursorRight: _on_cursor_right,
    a.CancelEditing: _on_cancel_editing,
    a.Submit: _on_submit,
    a.Retry: _on_retry,
    a.RegenerateStory: _on_regenerate,
    a.DismissStatus: _on_dismiss_status,
    a.RepoListLoaded: _on_repo_list_loaded,
    a.PrListLoaded: _on_pr_list_loaded,
    a.PrLoaded: _on_pr_loaded,
    a.StoryReady: _on_story_ready,
    a.ReviewSubmitted: _on_review_submitted,
    a.CacheSaved: _on_cache_saved,
}
