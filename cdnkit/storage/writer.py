"""Store content and its cache metadata in the datastore."""

from __future__ import annotations

import errno
import json
import logging
import os
import re
import shutil
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from email.utils import format_datetime, parsedate_to_datetime
from typing import Any, BinaryIO, Optional
from urllib.parse import SplitResult, urlsplit

from .cache_manager import CacheManager
from .common import (
    Headers,
    StorageError,
    StorageRequest,
    StorageResponse,
    content_paths,
    record_storage_metrics,
)

logger = logging.getLogger(__name__)

# Unix time of the zero timestamp an unparsable HTTP date falls back to.
_ZERO_TIME_UNIX = -62135596800
_INTEGER = re.compile(r"[+-]?[0-9]+")
_CHUNK_SIZE = 64 * 1024


@dataclass(frozen=True)
class CacheInfo:
    """Cache figures taken from a request's headers."""

    max_age: int
    age: int
    last_modified: str
    content_length: int


def _atoi(value: str) -> Optional[int]:
    if _INTEGER.fullmatch(value):
        return int(value)
    return None


def _http_unix_time(value: str) -> int:
    """Seconds since the epoch of an HTTP date, or the zero time if it cannot be parsed."""
    try:
        parsed = parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError):
        return _ZERO_TIME_UNIX
    if parsed is None:
        return _ZERO_TIME_UNIX
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return int(parsed.timestamp())


def _http_date(moment: datetime) -> str:
    return format_datetime(moment.astimezone(timezone.utc), usegmt=True)


def _parse_url(url: str) -> SplitResult:
    try:
        return urlsplit(url)
    except ValueError as exc:
        logger.error("Failed to parse request URL %r: %s", url, exc)
        raise StorageError("Bad Request URL", 400) from exc


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)


def validate_cache_headers(headers: Headers) -> CacheInfo:
    """Read max-age, age, last-modified and length, filling in missing headers."""
    cache_control = headers.get("Cache-Control")
    if not cache_control:
        headers.set("Cache-Control", "max-age=0")
        max_age = 0
    else:
        value = cache_control[len("max-age="):] if cache_control.startswith("max-age=") else cache_control
        max_age = _atoi(value)
        if max_age is None:
            logger.error("Failed to convert max-age %r to int", cache_control)
            max_age = 0

    last_modified = headers.get("Last-Modified")
    if not last_modified:
        last_modified = _http_date(datetime.now(timezone.utc))
        headers.set("Last-Modified", last_modified)

    age_header = headers.get("Age")
    if not age_header:
        headers.set("Age", "0")
        age = 0
    else:
        age = _atoi(age_header)
        if age is None:
            logger.error("Failed to convert age %r to int", age_header)
            age = 0
    age += int(time.time()) - _http_unix_time(last_modified)

    length_header = headers.get("Content-Length")
    content_length = 0
    if length_header:
        parsed_length = _atoi(length_header)
        if parsed_length is None:
            logger.error("Failed to convert content length %r to int", length_header)
        else:
            content_length = parsed_length

    return CacheInfo(max_age, age, last_modified, content_length)


def _disk_error(exc: OSError, message: str) -> StorageError:
    if exc.errno == errno.ENOSPC:
        return StorageError("Insufficient Storage", 507)
    return StorageError(message, 500)


def _create_content_directory(directory: str) -> None:
    """Create a fresh content directory, discarding any previous content."""
    shutil.rmtree(directory, ignore_errors=True)
    try:
        os.makedirs(directory, exist_ok=True)
    except OSError as exc:
        logger.error("Failed to create content directory %s: %s", directory, exc)
        raise _disk_error(exc, "Directory Creation Failed") from exc


def _create_file(path: str, payload: Optional[BinaryIO], data: bytes = b"") -> int:
    """Write ``data`` or the whole payload to ``path``; returns payload bytes copied."""
    try:
        handle = open(path, "wb")
    except OSError as exc:
        logger.error("Failed to create file %s: %s", path, exc)
        raise _disk_error(exc, "Content File Creation Failed") from exc
    try:
        with handle:
            if payload is None:
                handle.write(data)
                return 0
            copied = 0
            while chunk := payload.read(_CHUNK_SIZE):
                handle.write(chunk)
                copied += len(chunk)
            return copied
    except OSError as exc:
        logger.error("Failed to write file %s: %s", path, exc)
        raise _disk_error(exc, "Content File Writing Failed") from exc


def write(
    request: StorageRequest,
    datastore: str,
    cache_manager: Optional[CacheManager] = None,
    observer: Any = None,
) -> StorageResponse:
    """Store a request's body and headers; raises StorageError when it cannot."""
    start = time.monotonic()
    metrics_url: Optional[str] = None
    host = request.host
    stored = 0
    try:
        parsed = _parse_url(request.url)
        metrics_url = request.url
        host = host or parsed.netloc
        logger.info("Received %s request for %s (host %s)", request.method, request.url, host)

        if request.body is None:
            logger.error("No payload data for %s", request.url)
            raise StorageError("No Payload", 400)

        paths = content_paths(datastore, request.url, request.host)
        info = validate_cache_headers(request.headers)

        _create_content_directory(paths.directory)
        metadata = json.dumps(request.headers.to_dict(), separators=(",", ":")).encode()
        _create_file(paths.metadata_file, None, metadata)
        stored = _create_file(paths.content_file, request.body)
        logger.info("Stored %s (%d bytes)", request.url, stored)

        if cache_manager is not None:
            cache_manager.update_content(
                info.max_age, info.age, info.last_modified, info.content_length, paths.directory
            )
        return StorageResponse(status_code=201)
    finally:
        elapsed = _elapsed_ms(start)
        record_storage_metrics(metrics_url, host, "write", elapsed, stored, observer)
        logger.info("Write of %s took %d ms", request.url, elapsed)