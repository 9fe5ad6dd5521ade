"""Holder of the most recently published snapshot."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .models import Snapshot


@dataclass(frozen=True)
class CacheEntry:
    """A published snapshot and whether the last refresh cycle succeeded."""

    snapshot: Snapshot
    up: bool


class SnapshotCache:
    """Single-writer store read concurrently by scrape handlers.

    The current entry is replaced with one attribute assignment, so readers
    always observe either the previous or the new entry as a whole.
    """

    def __init__(self, snapshot: Optional[Snapshot] = None) -> None:
        self._entry = CacheEntry(snapshot=snapshot or Snapshot.empty(), up=False)

    def read(self) -> CacheEntry:
        return self._entry

    def publish(self, snapshot: Snapshot) -> None:
        """Replace the served snapshot after a successful cycle."""
        self._entry = CacheEntry(snapshot=snapshot, up=True)

    def mark_failed(self) -> None:
        """Record a failed cycle; the previous snapshot keeps being served."""
        self._entry = CacheEntry(snapshot=self._entry.snapshot, up=False)
