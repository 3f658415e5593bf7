"""Evict the stalest cached content when the datastore's disk runs full."""

from __future__ import annotations

import json
import logging
import os
import shutil
import threading
import time
from typing import Any, Optional

from .cache_manager import CacheManager
from .common import (
    DEFAULT_EVICTOR_INTERVAL,
    DEFAULT_FILE_DELETION_LIMIT,
    DEFAULT_REFRESH_INTERVAL,
    DISK_THRESHOLD,
    Headers,
    record_disk_usage_metrics,
    record_storage_metrics,
)
from .disk import DiskUsageProbe
from .writer import _elapsed_ms, _http_unix_time, validate_cache_headers

logger = logging.getLogger(__name__)

_METADATA_SUFFIX = "_metadata.json"
_REQUIRED_HEADERS = ("Last-Modified", "Age", "Cache-Control")


def delete_empty_parent_dirs(directory: str, datastore: str) -> None:
    """Remove ``directory`` and its ancestors while they are empty, stopping at the datastore."""
    stop = os.path.normpath(datastore)
    current = os.path.normpath(directory)
    while current != stop:
        try:
            if os.listdir(current):
                return
            os.rmdir(current)
        except FileNotFoundError:
            return
        except OSError as exc:
            logger.error("Failed to delete empty parent directory %s: %s", current, exc)
            return
        parent = os.path.dirname(current)
        if not parent or parent == current:
            return
        current = parent


def _load_metadata(path: str) -> Headers:
    with open(path, "rb") as handle:
        raw = handle.read()
    data = json.loads(raw)
    if data is None:
        return Headers()
    try:
        return Headers.from_dict(data)
    except TypeError as exc:
        raise ValueError(f"metadata {path} is not a header map") from exc


def load_cached_content(datastore: str, cache_manager: CacheManager) -> int:
    """Index every stored content item of the datastore; returns how many were loaded."""

    def _on_error(exc: OSError) -> None:
        logger.error("Failed to walk datastore: %s", exc)
        raise exc

    count = 0
    for root, dirs, files in os.walk(datastore, onerror=_on_error):
        dirs.sort()
        for name in sorted(files):
            path = os.path.join(root, name)
            if _METADATA_SUFFIX not in path:
                continue
            try:
                headers = _load_metadata(path)
            except OSError as exc:
                logger.error("Failed to read metadata %s: %s", path, exc)
                raise
            except ValueError as exc:
                logger.error("Failed to load metadata %s: %s", path, exc)
                raise
            if any(header not in headers for header in _REQUIRED_HEADERS):
                logger.error("Datastore got corrupted; the evictor will behave abnormally")
                raise ValueError("CDNDATASTORE directory got corrupted")
            info = validate_cache_headers(headers)
            cache_manager.update_content(
                info.max_age, info.age, info.last_modified, info.content_length, os.path.dirname(path)
            )
            count += 1
    logger.info("Loaded content metadata of %d items", count)
    return count


def delete_stale_content(
    limit: int, datastore: str, cache_manager: CacheManager, observer: Any = None
) -> int:
    """Delete up to ``limit`` items with the least remaining cache duration; returns the count."""
    start = time.monotonic()
    deleted = 0
    bytes_deleted = 0
    try:
        for duration in cache_manager.durations():
            if deleted >= limit:
                break
            while deleted < limit:
                entry = cache_manager.pop_first_entry(duration)
                if entry is None:
                    break
                if not os.path.exists(entry.path):
                    logger.debug("Directory %s already deleted by the invalidator", entry.path)
                    continue
                shutil.rmtree(entry.path, ignore_errors=True)
                delete_empty_parent_dirs(os.path.dirname(entry.path), datastore)
                bytes_deleted += entry.content_length
                deleted += 1
                logger.info("Deleted directory %s", entry.path)
        return deleted
    finally:
        elapsed = _elapsed_ms(start)
        record_storage_metrics(None, "", "delete", elapsed, bytes_deleted, observer)
        logger.info(
            "Eviction took %d ms: %d deleted, %d bytes", elapsed, deleted, bytes_deleted
        )


def refresh_stale_content(cache_manager: CacheManager) -> None:
    """Recompute the remaining duration of every indexed item, dropping items gone from disk."""
    logger.debug("Total contents: %d", cache_manager.total_contents)
    for duration in cache_manager.durations():
        entries = []
        while (entry := cache_manager.pop_first_entry(duration)) is not None:
            entries.append(entry)
        for entry in entries:
            if not os.path.exists(entry.path):
                continue
            age = entry.age + int(time.time()) - _http_unix_time(entry.last_modified)
            cache_manager.update_content(
                entry.max_age, age, entry.last_modified, entry.content_length, entry.path
            )
    cache_manager.log_state()
    logger.debug("Completed one full scan of remaining cache durations")


class CacheEvictor:
    """Watches disk usage and evicts stale content when it passes the threshold."""

    def __init__(
        self,
        datastore: str,
        cache_manager: CacheManager,
        observer: Any = None,
        probe: Optional[Any] = None,
        interval: float = DEFAULT_EVICTOR_INTERVAL,
        refresh_interval: float = DEFAULT_REFRESH_INTERVAL,
        deletion_limit: int = DEFAULT_FILE_DELETION_LIMIT,
    ) -> None:
        self.datastore = datastore
        self.cache_manager = cache_manager
        self.observer = observer
        self.probe = probe if probe is not None else DiskUsageProbe()
        self.interval = interval
        self.refresh_interval = refresh_interval
        self.deletion_limit = deletion_limit
        self._last_refresh = time.monotonic()

    def run_once(self) -> int:
        """Check disk usage once, evicting or refreshing as needed; returns the usage."""
        usage = self.probe.usage(self.datastore)
        if usage > DISK_THRESHOLD:
            logger.info("Disk usage %d exceeds threshold %d", usage, DISK_THRESHOLD)
            delete_stale_content(
                self.deletion_limit, self.datastore, self.cache_manager, self.observer
            )
        else:
            now = time.monotonic()
            if now - self._last_refresh > self.refresh_interval:
                logger.debug("Starting stale content map refresh")
                refresh_stale_content(self.cache_manager)
                self._last_refresh = now
        record_disk_usage_metrics(usage, self.cache_manager.total_contents, self.observer)
        return usage

    def run(self, stop_event: threading.Event) -> None:
        """Check every ``interval`` seconds until ``stop_event`` is set."""
        logger.info("Cache evictor starting")
        while not stop_event.wait(self.interval):
            self.run_once()
        logger.info("Cache evictor exiting")