"""In-memory index of cached content keyed by remaining cache duration."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    """Cache metadata of one stored content directory."""

    path: str
    max_age: int
    age: int
    last_modified: str
    content_length: int


class CacheManager:
    """Thread-safe map of remaining cache duration to the entries that have it."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._stale: dict[int, list[CacheEntry]] = {}
        self._total = 0

    def push_entry(self, remaining: int, entry: CacheEntry) -> None:
        """Add an entry, replacing any entry for the same path in that bucket."""
        with self._lock:
            bucket = self._stale.setdefault(remaining, [])
            kept = [item for item in bucket if item.path != entry.path]
            self._total -= len(bucket) - len(kept)
            kept.append(entry)
            self._stale[remaining] = kept
            self._total += 1

    def pop_first_entry(self, remaining: int) -> Optional[CacheEntry]:
        """Remove and return the oldest entry of a bucket, or None if it is empty."""
        with self._lock:
            bucket = self._stale.get(remaining)
            if not bucket:
                self._stale.pop(remaining, None)
                return None
            entry = bucket.pop(0)
            if not bucket:
                del self._stale[remaining]
            self._total -= 1
            return entry

    def durations(self) -> list[int]:
        """All remaining durations present, stalest first."""
        with self._lock:
            return sorted(self._stale)

    @property
    def total_contents(self) -> int:
        with self._lock:
            return self._total

    def __len__(self) -> int:
        return self.total_contents

    def update_content(
        self, max_age: int, age: int, last_modified: str, content_length: int, path: str
    ) -> None:
        """Index content under its remaining cache duration."""
        entry = CacheEntry(path, max_age, age, last_modified, content_length)
        self.push_entry(max_age - age, entry)
        self.log_state()

    def log_state(self) -> None:
        if not logger.isEnabledFor(logging.DEBUG):
            return
        with self._lock:
            snapshot = {key: list(value) for key, value in self._stale.items()}
            keys = sorted(snapshot)
        logger.debug("Stale content map: %s", snapshot)
        logger.debug("Remaining cache durations (%d): %s", len(keys), keys)