from __future__ import annotations

import re

from github import Github

from prstory_core.models import PrSummary, RepoRef

_PR_URL_RE = re.compile(r"github\.com/([^/\s]+)/([^/\s]+)/pull/(\d+)")
_PR_SHORT_RE = re.compile(r"^([^/\s#]+)/([^/\s#]+)#(\d+)$")
_REPO_RE = re.compile(r"^([^/\s#]+)/([^/\s#]+)$")


def get_client(token: str):
    return Github(token)


def get_repo(client, repo: RepoRef):
    return client.get_repo(repo.full_name)


def get_pull(repo, pr_number: int):
    return repo.get_pull(pr_number)


def get_pull_requests(repo, state: str = "open"):
    return repo.get_pulls(state=state)


def get_diff(pr):
    return pr.get_files()


def parse_pr_reference(text: str) -> tuple[RepoRef, int]:
    """Parse ``owner/repo#123`` or ``https://github.com/owner/repo/pull/123``."""
    text = text.strip()
    match = _PR_URL_RE.search(text) or _PR_SHORT_RE.match(text)
    if not match:
        raise ValueError(
            f"Invalid PR reference {text!r}. Use owner/repo#123 or https://github.com/owner/repo/pull/123"
        )
    owner, name, number = match.groups()
    return RepoRef(owner, name), int(number)


def parse_repo(text: str) -> RepoRef:
    """Parse ``owner/repo``."""
    match = _REPO_RE.match(text.strip())
    if not match:
        raise ValueError(f"Invalid repository {text!r}. Use owner/repo")
    return RepoRef(*match.groups())


def build_unified_diff(files) -> str:
    """Rebuild a unified diff from GitHub's per-file patches.

    GitHub returns each file's hunks without the ``diff --git`` and ``---``/``+++``
    headers, so those are reconstructed from the file status. Files without a
    patch (binary or too large) get a one-line placeholder.
    """
    chunks = []
    for f in files:
        new = f.filename
        old = getattr(f, "previous_filename", None) or new
        status = getattr(f, "status", "modified")
        header = [f"diff --git a/{old} b/{new}"]
        header.append("--- /dev/null" if status == "added" else f"--- a/{old}")
        header.append("+++ /dev/null" if status == "removed" else f"+++ b/{new}")
        patch = f.patch
        if not patch:
            chunks.append(f"diff --git a/{old} b/{new}\nBinary files a/{old} and b/{new} differ")
            continue
        chunks.append("\n".join(header) + "\n" + patch.rstrip("\n"))
    return "\n".join(chunks) + ("\n" if chunks else "")


def sort_pr_summaries(items: list[PrSummary]) -> list[PrSummary]:
    """Order PRs for the picker.

    Review requested from the current user first, then other ready PRs, then
    drafts. Ties break on ascending PR number.
    """

    def priority(pr: PrSummary) -> int:
        if pr.is_draft:
            return 2
        return 0 if pr.review_requested else 1

    return sorted(items, key=lambda pr: (priority(pr), pr.number))
