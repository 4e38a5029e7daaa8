"""Tests for GitHub pull request helper functions."""

from unittest.mock import MagicMock

import pytest

from prstory_core.gh.pull_request import build_unified_diff, parse_pr_reference, parse_repo, sort_pr_summaries
from prstory_core.models import PrSummary, RepoRef


def _file(filename, patch="@@ -1 +1 @@\n-old\n+new", status="modified", previous_filename=None):
    f = MagicMock()
    f.filename = filename
    f.patch = patch
    f.status = status
    f.previous_filename = previous_filename
    return f


class TestParsePrReference:
    def test_short_form(self):
        assert parse_pr_reference("octo/widgets#123") == (RepoRef("octo", "widgets"), 123)

    def test_url(self):
        ref = parse_pr_reference("https://github.com/octo/widgets/pull/42")
        assert ref == (RepoRef("octo", "widgets"), 42)

    def test_url_with_trailing_path(self):
        ref = parse_pr_reference("https://github.com/octo/widgets/pull/42/files")
        assert ref == (RepoRef("octo", "widgets"), 42)

    def test_surrounding_whitespace_is_ignored(self):
        assert parse_pr_reference("  octo/widgets#7\n")[1] == 7

    @pytest.mark.parametrize("text", ["octo/widgets", "widgets#12", "octo/widgets#abc", ""])
    def test_invalid(self, text):
        with pytest.raises(ValueError, match="Invalid PR reference"):
            parse_pr_reference(text)


class TestParseRepo:
    def test_owner_and_name(self):
        assert parse_repo("octo/widgets") == RepoRef("octo", "widgets")

    @pytest.mark.parametrize("text", ["widgets", "octo/widgets#1", "a/b/c"])
    def test_invalid(self, text):
        with pytest.raises(ValueError, match="Invalid repository"):
            parse_repo(text)


class TestBuildUnifiedDiff:
    def test_modified_file_gets_headers(self):
        diff = build_unified_diff([_file("src/app.py")])
        assert diff == (
            "diff --git a/src/app.py b/src/app.py\n"
            "--- a/src/app.py\n"
            "+++ b/src/app.py\n"
            "@@ -1 +1 @@\n-old\n+new\n"
        )

    def test_added_file_uses_dev_null_source(self):
        diff = build_unified_diff([_file("new.py", patch="@@ -0,0 +1 @@\n+x", status="added")])
        assert "--- /dev/null\n+++ b/new.py" in diff

    def test_removed_file_uses_dev_null_target(self):
        diff = build_unified_diff([_file("gone.py", patch="@@ -1 +0,0 @@\n-x", status="removed")])
        assert "--- a/gone.py\n+++ /dev/null" in diff

    def test_renamed_file_keeps_old_name(self):
        diff = build_unified_diff([_file("new.py", status="renamed", previous_filename="old.py")])
        assert diff.startswith("diff --git a/old.py b/new.py\n--- a/old.py\n+++ b/new.py")

    def test_binary_file_placeholder(self):
        diff = build_unified_diff([_file("logo.png", patch=None)])
        assert diff == "diff --git a/logo.png b/logo.png\nBinary files a/logo.png and b/logo.png differ\n"

    def test_files_are_kept_in_order(self):
        diff = build_unified_diff([_file("b.py"), _file("a.py")])
        assert diff.index("b/b.py") < diff.index("b/a.py")

    def test_no_files(self):
        assert build_unified_diff([]) == ""


class TestSortPrSummaries:
    def test_review_requested_then_ready_then_drafts(self):
        items = [
            PrSummary(number=1, title="draft", is_draft=True),
            PrSummary(number=9, title="ready"),
            PrSummary(number=5, title="mine", review_requested=True),
            PrSummary(number=3, title="ready too"),
        ]
        assert [pr.number for pr in sort_pr_summaries(items)] == [5, 3, 9, 1]

    def test_requested_draft_is_still_a_draft(self):
        items = [PrSummary(number=1, title="d", is_draft=True, review_requested=True), PrSummary(number=2, title="r")]
        assert [pr.number for pr in sort_pr_summaries(items)] == [2, 1]
