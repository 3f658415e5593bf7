"""Delete stored content by exact path or by name pattern."""

from __future__ import annotations

import logging
import os
import shutil
import stat
import time
from typing import Any, Optional

from .common import (
    StorageError,
    StorageRequest,
    StorageResponse,
    content_paths,
    record_storage_metrics,
)
from .writer import _elapsed_ms, _parse_url

logger = logging.getLogger(__name__)


def directory_size(path: str) -> int:
    """Total size in bytes of the files below ``path``."""
    total = 0

    def _on_error(exc: OSError) -> None:
        logger.error("Failed to walk directory: %s", exc)

    for root, dirs, files in os.walk(path, onerror=_on_error):
        names = files + [name for name in dirs if os.path.islink(os.path.join(root, name))]
        for name in names:
            try:
                total += os.lstat(os.path.join(root, name)).st_size
            except OSError as exc:
                logger.error("Failed to stat %s: %s", name, exc)
    return total


def _remove_all(path: str) -> None:
    if os.path.isdir(path) and not os.path.islink(path):
        shutil.rmtree(path)
    else:
        os.remove(path)


def _delete_matching(path: str, pattern: str) -> int:
    try:
        info = os.lstat(path)
    except FileNotFoundError:
        return 0
    if not stat.S_ISDIR(info.st_mode):
        return 0
    if pattern in path:
        size = directory_size(path)
        shutil.rmtree(path)
        return size
    try:
        names = sorted(os.listdir(path))
    except FileNotFoundError:
        return 0
    return sum(_delete_matching(os.path.join(path, name), pattern) for name in names)


def delete_matching_directories(content_dir: str) -> int:
    """Delete every directory beside ``content_dir`` whose path holds its name; returns bytes freed."""
    pattern = os.path.basename(content_dir)
    root = os.path.dirname(content_dir) or "."
    return _delete_matching(root, pattern)


def invalidate(request: StorageRequest, datastore: str, observer: Any = None) -> StorageResponse:
    """Remove the content a URL names, or everything matching its last segment."""
    start = time.monotonic()
    metrics_url: Optional[str] = None
    host = request.host
    bytes_deleted = 0
    try:
        parsed = _parse_url(request.url)
        metrics_url = request.url
        host = host or parsed.netloc
        logger.info("Received %s request for %s", request.method, request.url)

        content_dir = content_paths(datastore, request.url, request.host).directory
        if os.path.exists(content_dir):
            bytes_deleted = directory_size(content_dir)
            logger.info("Deleting directories by exact match")
            try:
                _remove_all(content_dir)
            except OSError as exc:
                logger.error("Failed to delete directory %s: %s", content_dir, exc)
                raise StorageError("Content directory deletion failed", 500) from exc
        else:
            logger.info("Deleting directories by pattern match")
            try:
                bytes_deleted = delete_matching_directories(content_dir)
            except OSError as exc:
                logger.error("Failed to walk directory: %s", exc)
                raise StorageError("Directory deletion failed", 500) from exc

        logger.info("Deleted %s (%d bytes)", content_dir, bytes_deleted)
        return StorageResponse(status_code=200)
    finally:
        elapsed = _elapsed_ms(start)
        record_storage_metrics(metrics_url, host, "delete", elapsed, bytes_deleted, observer)
        logger.info("Invalidation of %s took %d ms", request.url, elapsed)