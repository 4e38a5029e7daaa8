"""Error taxonomy shared by the engine and its collaborators.

Commands never raise into the engine. The executor catches these (and any
unexpected exception) and carries them inside the result Action, so the
update function is the single place that decides recoverability.
"""

from __future__ import annotations


class PrStoryError(Exception):
    """Base class for every error the engine knows how to present."""

    kind = "error"
    recoverable = True


class SourceUnavailable(PrStoryError):
    """Listing or fetching repos/PRs failed (auth, network, missing PR)."""

    kind = "source_unavailable"


class AnalysisFailed(PrStoryError):
    """The analysis provider failed or returned something that is not a Story."""

    kind = "analysis_failed"


class StoryValidationError(AnalysisFailed):
    """A provider response or cached snapshot violates the Story schema."""

    kind = "validation_error"


class SubmissionFailed(PrStoryError):
    """Posting a review, comment or follow-up issue failed."""

    kind = "submission_failed"


class CacheUnreadable(PrStoryError):
    """Cache mode was requested but no usable snapshot exists for the PR."""

    kind = "cache_unreadable"


class ConfigError(PrStoryError):
    """Configuration is malformed. Not recoverable by retrying."""

    kind = "config_error"
    recoverable = False
