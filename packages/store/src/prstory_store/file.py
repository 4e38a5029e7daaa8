"""JsonFileStore — a single story snapshot in one JSON file.

The file holds the most recently generated story only. Loading a key that
does not match the stored snapshot is a miss, so switching PRs never serves
another PR's story.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path

from prstory_store.base import BaseStore, StoreError

logger = logging.getLogger(__name__)


class JsonFileStore(BaseStore):
    def __init__(self, path: str = ".prstory-cache.json"):
        self.path = Path(path)

    def save(self, key: str, snapshot: dict) -> None:
        payload = dict(snapshot, pr=key)
        directory = self.path.parent if str(self.path.parent) else Path(".")
        directory.mkdir(parents=True, exist_ok=True)
        # Write-then-rename so a crash never leaves a half-written cache.
        fd, tmp = tempfile.mkstemp(dir=directory, prefix=self.path.name, suffix=".tmp")
        try:
            with os.fdopen(fd, "w") as f:
                json.dump(payload, f, indent=2)
            os.replace(tmp, self.path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise
        logger.debug("Saved story snapshot for %s to %s", key, self.path)

    def load(self, key: str) -> dict | None:
        snapshot = self._read()
        if snapshot is None:
            return None
        if snapshot.get("pr") != key:
            logger.info("Cache file %s holds %s, not %s", self.path, snapshot.get("pr"), key)
            return None
        return snapshot

    def list_keys(self) -> list[str]:
        snapshot = self._read()
        if snapshot is None or not snapshot.get("pr"):
            return []
        return [snapshot["pr"]]

    def _read(self) -> dict | None:
        if not self.path.exists():
            return None
        try:
            with open(self.path) as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise StoreError(f"Cannot read story cache {self.path}: {e}") from e
        if not isinstance(data, dict):
            raise StoreError(f"Story cache {self.path} must contain a JSON object")
        return data
