"""Abstract story cache interface.

A backend persists Story snapshots keyed by PR (``owner/repo#123``). The
engine depends on BaseStore, not on a concrete backend, and treats both a
missing key and a StoreError as an unreadable cache.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class StoreError(Exception):
    """The backing file exists but cannot be read or parsed."""


class BaseStore(ABC):
    """Pluggable persistence layer for generated stories.

    Snapshots are plain JSON-compatible dicts; the store never interprets
    their contents beyond the key they are saved under.
    """

    @abstractmethod
    def save(self, key: str, snapshot: dict) -> None:
        """Persist ``snapshot`` under ``key``, replacing any previous one."""

    @abstractmethod
    def load(self, key: str) -> dict | None:
        """Return the snapshot saved under ``key``, or None if there is none.

        Raises StoreError when the underlying data is corrupt.
        """

    @abstractmethod
    def list_keys(self) -> list[str]:
        """Return the keys that currently have a snapshot."""

    def close(self) -> None:
        """Release the backend's connection, if it holds one. No-op by default."""
