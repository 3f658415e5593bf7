"""Shared storage types: headers, requests, responses, paths and metrics."""

from __future__ import annotations

import logging
import os
import posixpath
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, BinaryIO, Iterator, NamedTuple, Optional
from urllib.parse import urlsplit

logger = logging.getLogger(__name__)

DISK_THRESHOLD = 80
DEFAULT_FILE_DELETION_LIMIT = 4
DEFAULT_EVICTOR_INTERVAL = 30
DEFAULT_REFRESH_INTERVAL = 30

_TOKEN_CHARS = frozenset(
    "!#$%&'*+-.^_`|~0123456789"
    "abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ"
)


def _canonical(name: str) -> str:
    if not name or any(ch not in _TOKEN_CHARS for ch in name):
        return name
    return "-".join(part[:1].upper() + part[1:].lower() for part in name.split("-"))


class Headers:
    """Case-insensitive, multi-valued HTTP header map."""

    def __init__(self, data: Optional[Mapping[str, Any]] = None) -> None:
        self._values: dict[str, list[str]] = {}
        for name, value in (data or {}).items():
            if isinstance(value, (list, tuple)):
                for item in value:
                    self.add(name, item)
            else:
                self.set(name, value)

    def get(self, name: str, default: str = "") -> str:
        values = self._values.get(_canonical(name))
        return values[0] if values else default

    def set(self, name: str, value: Any) -> None:
        self._values[_canonical(name)] = [str(value)]

    def add(self, name: str, value: Any) -> None:
        self._values.setdefault(_canonical(name), []).append(str(value))

    def __delitem__(self, name: str) -> None:
        self._values.pop(_canonical(name), None)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and _canonical(name) in self._values

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Headers):
            return NotImplemented
        return self._values == other._values

    def __repr__(self) -> str:
        return f"Headers({self._values!r})"

    def to_dict(self) -> dict[str, list[str]]:
        return {name: list(self._values[name]) for name in sorted(self._values)}

    @classmethod
    def from_dict(cls, data: Any) -> "Headers":
        if not isinstance(data, Mapping):
            raise TypeError(f"expected a JSON object, got {type(data).__name__}")
        headers = cls()
        for name, values in data.items():
            if values is None:
                values = []
            if not isinstance(values, list) or not all(isinstance(v, str) for v in values):
                raise ValueError(f"header {name!r} must be a list of strings")
            headers._values[_canonical(name)] = list(values)
        return headers


@dataclass
class StorageRequest:
    """A request to the storage layer."""

    method: str
    url: str
    host: str = ""
    headers: Headers = field(default_factory=Headers)
    body: Optional[BinaryIO] = None


@dataclass
class StorageResponse:
    """The storage layer's answer; ``body`` is an open file for reads."""

    status_code: int = 0
    status: str = ""
    headers: Headers = field(default_factory=Headers)
    body: Optional[BinaryIO] = None

    def close(self) -> None:
        if self.body is not None:
            self.body.close()

    def __enter__(self) -> "StorageResponse":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


class StorageError(Exception):
    """A storage request that could not be served."""

    def __init__(self, message: str, status_code: int) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass
class StorageEvent:
    timestamp: datetime
    url: str
    operation: str
    response_time: int
    num_bytes: int


@dataclass
class StorageDiskMetricsEvent:
    timestamp: datetime
    disk_usage: int
    total_contents: int


class ContentPaths(NamedTuple):
    directory: str
    metadata_file: str
    content_file: str


def _hostname(netloc: str) -> str:
    hostport = netloc.rpartition("@")[2]
    if hostport.startswith("["):
        return hostport[1:].partition("]")[0]
    return hostport.partition(":")[0]


def _base(path: str) -> str:
    if not path:
        return "."
    stripped = path.rstrip("/")
    if not stripped:
        return "/"
    return posixpath.basename(stripped)


def content_paths(datastore: str, url: str, host: str = "") -> ContentPaths:
    """Directory, metadata file and content file of a URL under the datastore."""
    parsed = urlsplit(url)
    if not host:
        host = _hostname(parsed.netloc)
    url_path = parsed.path
    parts = [datastore, host] + [part for part in url_path.split("/") if part]
    directory = os.path.normpath(os.path.join(*parts))
    base = _base(url_path)
    return ContentPaths(
        directory,
        os.path.join(directory, base + "_metadata.json"),
        os.path.join(directory, base + ".bin"),
    )


def record_storage_metrics(
    url: Optional[str],
    host: str,
    operation: str,
    time_taken: int,
    num_bytes: int,
    observer: Any = None,
) -> StorageEvent:
    """Build a storage event and hand it to the observer, if any."""
    if url is not None:
        request_url = "http://" + host + "/" + urlsplit(url).path
    else:
        request_url = "CacheEvictor"
    event = StorageEvent(
        timestamp=datetime.now().astimezone(),
        url=request_url,
        operation=operation,
        response_time=int(time_taken),
        num_bytes=num_bytes,
    )
    if observer is not None:
        observer.record_event_storage(event)
    return event


def record_disk_usage_metrics(
    disk_usage: int, total_contents: int, observer: Any = None
) -> StorageDiskMetricsEvent:
    """Build a disk metrics event and hand it to the observer, if any."""
    event = StorageDiskMetricsEvent(
        timestamp=datetime.now().astimezone(),
        disk_usage=disk_usage,
        total_contents=total_contents,
    )
    if observer is not None:
        observer.record_event_storage_disk_metrics(event)
    return event