"""Tests for domain entities and story (de)serialization."""

import json

import pytest

from factories import make_story
from prstory_core.errors import StoryValidationError
from prstory_core.models import (
    PrRef,
    RepoRef,
    ReviewAction,
    ReviewKind,
    Role,
    Significance,
    Story,
    dependency_order_violations,
)


def _story_dict(**overrides):
    data = {
        "summary": "Adds caching",
        "focus": {"key_change": "cache.py", "review_these": ["cache.py"], "skim_these": []},
        "narrative": [
            {
                "title": "Cache layer",
                "why": "Avoid refetching",
                "changes": ["new Cache class"],
                "risks": [],
                "tests": [],
                "diff_blocks": [
                    {
                        "label": "cache.py: Cache",
                        "role": "root",
                        "significance": "key",
                        "context": "",
                        "hunks": [{"header": "@@ -0,0 +1,2 @@", "lines": "+class Cache:\n+    pass\n"}],
                    }
                ],
            }
        ],
        "data": {"files_touched": 1, "additions": 2, "deletions": 0},
        "open_questions": [],
        "suggested_changes": "",
        "clarification_questions": "",
        "followup_issue": "",
    }
    data.update(overrides)
    return data


class TestRefs:
    def test_pr_key(self):
        assert PrRef(RepoRef("octo", "widgets"), 12).key == "octo/widgets#12"

    def test_full_name(self):
        assert RepoRef("octo", "widgets").full_name == "octo/widgets"


class TestStoryFromDict:
    def test_parses_valid_payload(self):
        story = Story.from_dict(_story_dict())
        assert story.summary == "Adds caching"
        block = story.block(0, 0)
        assert block.role is Role.ROOT
        assert block.significance is Significance.KEY
        assert block.hunks[0].lines.startswith("+class Cache")
        assert story.stats.additions == 2

    def test_missing_summary_is_rejected(self):
        data = _story_dict()
        del data["summary"]
        with pytest.raises(StoryValidationError, match="summary"):
            Story.from_dict(data)

    def test_missing_narrative_is_rejected(self):
        data = _story_dict()
        del data["narrative"]
        with pytest.raises(StoryValidationError, match="narrative"):
            Story.from_dict(data)

    def test_unknown_role_is_rejected(self):
        data = _story_dict()
        data["narrative"][0]["diff_blocks"][0]["role"] = "sideways"
        with pytest.raises(StoryValidationError, match="role"):
            Story.from_dict(data)

    def test_role_aliases_map_to_dependent(self):
        data = _story_dict()
        data["narrative"][0]["diff_blocks"][0]["role"] = "Downstream"
        assert Story.from_dict(data).block(0, 0).role is Role.DEPENDENT

    def test_non_object_is_rejected(self):
        with pytest.raises(StoryValidationError):
            Story.from_dict(["not", "a", "story"])

    def test_non_string_list_item_is_rejected(self):
        with pytest.raises(StoryValidationError, match="open_questions"):
            Story.from_dict(_story_dict(open_questions=[1, 2]))

    def test_boolean_stat_is_rejected(self):
        with pytest.raises(StoryValidationError, match="additions"):
            Story.from_dict(_story_dict(data={"files_touched": 1, "additions": True, "deletions": 0}))

    def test_extra_keys_are_ignored(self):
        story = Story.from_dict(_story_dict(model="claude"))
        assert story.summary == "Adds caching"


class TestStoryRoundTrip:
    def test_round_trip_through_json_preserves_every_field(self):
        story = make_story(blocks_per_feature=(3, 0, 2), viewed={(0, 1), (2, 0)})
        restored = Story.from_dict(json.loads(json.dumps(story.to_dict())))
        assert restored == story

    def test_serialized_stats_use_data_key(self):
        assert make_story().to_dict()["data"]["files_touched"] == 2


class TestWithBlockViewed:
    def test_returns_same_story_when_unchanged(self):
        story = make_story(viewed={(0, 0)})
        assert story.with_block_viewed(0, 0, True) is story

    def test_only_target_block_changes(self):
        story = make_story()
        updated = story.with_block_viewed(0, 1, True)
        assert updated.viewed_count() == 1
        assert updated.block(0, 1).viewed is True
        assert updated.block(0, 0) == story.block(0, 0)
        assert story.viewed_count() == 0


class TestReviewAction:
    def test_issue_parts_splits_title(self):
        action = ReviewAction(ReviewKind.FOLLOWUP_ISSUE, "Expose metrics\n- count\n- export")
        assert action.issue_parts() == ("Expose metrics", "- count\n- export")

    def test_issue_parts_default_title(self):
        assert ReviewAction(ReviewKind.FOLLOWUP_ISSUE, "\nbody only").issue_parts() == ("Follow-up work", "body only")

    def test_kind_labels(self):
        assert ReviewKind.REQUEST_CHANGES.label == "Request Changes"
        assert ReviewKind.CLARIFICATION_QUESTIONS.label == "Clarification Questions"


class TestDependencyOrder:
    def test_root_first_has_no_violations(self):
        assert dependency_order_violations(make_story(blocks_per_feature=(3, 2))) == []

    def test_dependent_before_root_is_reported(self):
        data = _story_dict()
        blocks = data["narrative"][0]["diff_blocks"]
        blocks.insert(0, dict(blocks[0], label="wiring", role="dependent"))
        assert dependency_order_violations(Story.from_dict(data)) == [(0, 0)]
