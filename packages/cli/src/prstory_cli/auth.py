"""GitHub token resolution.

Resolution order (stops at first success):
  1. GITHUB_TOKEN, then GH_TOKEN environment variables
  2. `gh auth token` (GitHub CLI session, after `gh auth login`)
"""

from __future__ import annotations

import logging
import os
import subprocess

logger = logging.getLogger(__name__)

_ENV_VARS = ("GITHUB_TOKEN", "GH_TOKEN")
_GH_TIMEOUT = 5


def _token_from_gh() -> str | None:
    try:
        result = subprocess.run(
            ["gh", "auth", "token"],
            capture_output=True,
            text=True,
            timeout=_GH_TIMEOUT,
        )
    except (FileNotFoundError, subprocess.TimeoutExpired) as e:
        logger.debug("gh CLI unavailable for token lookup: %s", e)
        return None
    if result.returncode != 0:
        logger.debug("gh auth token exited with %d", result.returncode)
        return None
    return result.stdout.strip() or None


def resolve_github_token() -> str | None:
    """Return a GitHub token, or None if no source provides one.

    Never raises; callers turn None into a UsageError.
    """
    for name in _ENV_VARS:
        token = os.environ.get(name)
        if token:
            logger.debug("Using GitHub token from %s.", name)
            return token
    token = _token_from_gh()
    if token:
        logger.debug("Resolved GitHub token via gh CLI session.")
    return token
