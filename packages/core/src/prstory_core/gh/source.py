"""PR/repo source — the engine's only view of the code host.

The engine depends on ``PrSource``, not on GitHub. ``GitHubSource`` fulfils the
contract with PyGithub and translates every GithubException into the engine's
error taxonomy, so callers only ever see SourceUnavailable or SubmissionFailed.
All methods block; the executor runs them in worker threads.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from itertools import islice

from github import GithubException

from prstory_core.errors import SourceUnavailable, SubmissionFailed
from prstory_core.gh.pull_request import (
    build_unified_diff,
    get_client,
    get_diff,
    get_pull,
    get_pull_requests,
    get_repo,
    sort_pr_summaries,
)
from prstory_core.models import PrContext, PrSummary, RepoRef, RepoSummary, ReviewAction, ReviewKind

logger = logging.getLogger(__name__)

_LIST_LIMIT = 50


class PrSource(ABC):
    @abstractmethod
    def list_repos(self) -> list[RepoSummary]:
        """Return repositories the user can review, most recently pushed first."""

    @abstractmethod
    def list_prs(self, repo: RepoRef) -> list[PrSummary]:
        """Return open PRs for a repository in picker order."""

    @abstractmethod
    def fetch_pr(self, repo: RepoRef, number: int) -> PrContext:
        """Return PR metadata and its full unified diff."""

    @abstractmethod
    def submit_review(self, pr: PrContext, review: ReviewAction) -> None:
        """Post a review response. Raises SubmissionFailed."""


def _error_message(e: GithubException) -> str:
    data = e.data if isinstance(e.data, dict) else {}
    return data.get("message") or str(e)


class GitHubSource(PrSource):
    def __init__(self, token: str, client=None):
        self._client = client if client is not None else get_client(token)
        self._login: str | None = None

    def _current_login(self) -> str:
        if self._login is None:
            try:
                self._login = self._client.get_user().login
            except GithubException as e:
                # Only used to flag requested reviews; an unknown user just means no flags.
                logger.warning("Could not resolve the current GitHub user: %s", _error_message(e))
                self._login = ""
        return self._login

    def list_repos(self) -> list[RepoSummary]:
        try:
            repos = self._client.get_user().get_repos(sort="pushed")
            return [
                RepoSummary(
                    owner=r.owner.login,
                    name=r.name,
                    description=r.description or "",
                    is_fork=bool(r.fork),
                    is_private=bool(r.private),
                )
                for r in islice(repos, _LIST_LIMIT)
            ]
        except GithubException as e:
            raise SourceUnavailable(f"Could not list repositories: {_error_message(e)}")

    def list_prs(self, repo: RepoRef) -> list[PrSummary]:
        login = self._current_login()
        try:
            this_repo = get_repo(self._client, repo)
            items = []
            for pr in islice(get_pull_requests(this_repo), _LIST_LIMIT):
                reviewers = {u.login for u in (pr.requested_reviewers or [])}
                items.append(
                    PrSummary(
                        number=pr.number,
                        title=pr.title or "",
                        author=pr.user.login if pr.user else "",
                        head_branch=pr.head.ref,
                        is_draft=bool(pr.draft),
                        review_requested=bool(login) and login in reviewers,
                        additions=pr.additions or 0,
                        deletions=pr.deletions or 0,
                    )
                )
        except GithubException as e:
            raise SourceUnavailable(f"Could not list PRs for {repo.full_name}: {_error_message(e)}")
        return sort_pr_summaries(items)

    def fetch_pr(self, repo: RepoRef, number: int) -> PrContext:
        try:
            this_repo = get_repo(self._client, repo)
            pr = get_pull(this_repo, number)
            diff = build_unified_diff(get_diff(pr))
        except GithubException as e:
            raise SourceUnavailable(f"Could not fetch {repo.full_name}#{number}: {_error_message(e)}")
        logger.info("Fetched %s#%d (%d diff chars)", repo.full_name, number, len(diff))
        return PrContext(
            owner=repo.owner,
            repo=repo.name,
            number=pr.number,
            title=pr.title or "",
            body=pr.body or "",
            diff=diff,
            author=pr.user.login if pr.user else "",
            base_branch=pr.base.ref,
            head_branch=pr.head.ref,
            is_draft=bool(pr.draft),
            state=pr.state or "open",
        )

    def submit_review(self, pr: PrContext, review: ReviewAction) -> None:
        try:
            this_repo = get_repo(self._client, pr.ref.repo)
            this_pr = get_pull(this_repo, pr.number)
            if review.kind is ReviewKind.REQUEST_CHANGES:
                this_pr.create_review(body=review.text, event="REQUEST_CHANGES")
            elif review.kind is ReviewKind.CLARIFICATION_QUESTIONS:
                this_pr.create_issue_comment(review.text)
            else:
                title, body = review.issue_parts()
                issue = this_repo.create_issue(title=title, body=f"{body}\n\nFollow-up from #{pr.number}".strip())
                this_pr.create_issue_comment(f"Follow-up work tracked in #{issue.number}")
        except GithubException as e:
            raise SubmissionFailed(f"{review.kind.label} on {pr.ref.key}: {_error_message(e)}")
        logger.info("Submitted %s on %s", review.kind.value, pr.ref.key)
