"""Serve stored content and its metadata from the datastore."""

from __future__ import annotations

import json
import logging
import time
from pathlib import Path
from typing import Any, Optional

from .common import (
    Headers,
    StorageError,
    StorageRequest,
    StorageResponse,
    content_paths,
    record_storage_metrics,
)
from .writer import _atoi, _elapsed_ms, _http_unix_time, _parse_url

logger = logging.getLogger(__name__)


def read_metadata(path: str) -> Headers:
    """Load the stored headers of a content item."""
    try:
        raw = Path(path).read_bytes()
    except FileNotFoundError as exc:
        logger.info("Content metadata not found: %s", path)
        raise StorageError("Content Not Found", 404) from exc
    except OSError as exc:
        logger.error("Failed to open metadata file %s: %s", path, exc)
        raise StorageError("File Read Error", 500) from exc
    try:
        data = json.loads(raw)
        return Headers() if data is None else Headers.from_dict(data)
    except (ValueError, TypeError) as exc:
        logger.error("Failed to parse metadata %s: %s", path, exc)
        raise StorageError("File Parse Error", 500) from exc


def refresh_age(headers: Headers) -> Optional[int]:
    """Add the time since Last-Modified to Age; returns the new age, or None."""
    last_modified = headers.get("Last-Modified")
    age_header = headers.get("Age")
    if not last_modified or not age_header:
        logger.error("Stored metadata lacks Age or Last-Modified; the datastore may be corrupted")
        return None
    age = _atoi(age_header) or 0
    age += int(time.time()) - _http_unix_time(last_modified)
    headers.set("Age", str(age))
    return age


def read(request: StorageRequest, datastore: str, observer: Any = None) -> StorageResponse:
    """Answer a GET or HEAD; the response body of a GET is an open file to close."""
    start = time.monotonic()
    metrics_url: Optional[str] = None
    host = request.host
    bytes_read = 0
    try:
        parsed = _parse_url(request.url)
        metrics_url = request.url
        host = host or parsed.netloc
        logger.info("Received %s request for %s (host %s)", request.method, request.url, host)

        paths = content_paths(datastore, request.url, request.host)
        headers = read_metadata(paths.metadata_file)
        refresh_age(headers)

        if request.method == "HEAD":
            return StorageResponse(status_code=200, headers=headers)

        try:
            body = open(paths.content_file, "rb")
        except FileNotFoundError as exc:
            logger.error("Content file not found: %s", paths.content_file)
            raise StorageError("Content Not Found", 404) from exc
        except OSError as exc:
            logger.error("Failed to open content file %s: %s", paths.content_file, exc)
            raise StorageError("File Read Error", 500) from exc

        length = headers.get("Content-Length")
        if length:
            bytes_read = _atoi(length) or 0
        else:
            logger.error("Metadata lacks Content-Length for %s", paths.content_file)
        logger.info("Read %s (%d bytes)", request.url, bytes_read)
        return StorageResponse(status_code=200, headers=headers, body=body)
    finally:
        elapsed = _elapsed_ms(start)
        record_storage_metrics(metrics_url, host, "read", elapsed, bytes_read, observer)
        logger.info("Read of %s took %d ms", request.url, elapsed)