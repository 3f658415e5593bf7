import json
import os

import pytest

from cdnkit.storage.common import (
    Headers,
    StorageError,
    StorageResponse,
    content_paths,
    record_disk_usage_metrics,
    record_storage_metrics,
)


class _Observer:
    def __init__(self):
        self.storage = []
        self.disk = []

    def record_event_storage(self, event):
        self.storage.append(event)

    def record_event_storage_disk_metrics(self, event):
        self.disk.append(event)


def test_headers_case_insensitive():
    headers = Headers()
    headers.set("cache-control", "max-age=3600")
    assert headers.get("Cache-Control") == "max-age=3600"
    assert "CACHE-CONTROL" in headers
    assert list(headers) == ["Cache-Control"]


def test_headers_get_default():
    assert Headers().get("Age") == ""
    assert Headers().get("Age", "0") == "0"


def test_headers_add_keeps_all_values():
    headers = Headers()
    headers.add("X-Test", "a")
    headers.add("x-test", "b")
    assert headers.to_dict() == {"X-Test": ["a", "b"]}
    assert headers.get("X-Test") == "a"


def test_headers_round_trip_json():
    headers = Headers({"Content-Type": "application/octet", "Age": "60"})
    restored = Headers.from_dict(json.loads(json.dumps(headers.to_dict())))
    assert restored == headers


def test_headers_from_dict_rejects_bad_values():
    with pytest.raises(ValueError):
        Headers.from_dict({"Age": "60"})
    with pytest.raises(TypeError):
        Headers.from_dict(["Age"])


def test_content_paths_from_url():
    paths = content_paths("cdn", "http://abc.com/sample1")
    directory = os.path.join("cdn", "abc.com", "sample1")
    assert paths.directory == directory
    assert paths.metadata_file == os.path.join(directory, "sample1_metadata.json")
    assert paths.content_file == os.path.join(directory, "sample1.bin")


def test_content_paths_host_override():
    paths = content_paths("store", "http://localhost:8080/sample1", "abc.com")
    assert paths.directory == os.path.join("store", "abc.com", "sample1")


def test_content_paths_strips_port():
    paths = content_paths("store", "http://abc.com:8080/DS_Set1/sample0")
    assert paths.directory == os.path.join("store", "abc.com", "DS_Set1", "sample0")


def test_storage_metrics_go_to_observer():
    observer = _Observer()
    event = record_storage_metrics("http://abc.com/sample1", "abc.com", "read", 15, 200, observer)
    assert observer.storage == [event]
    assert event.url == "http://abc.com//sample1"
    assert event.num_bytes == 200


def test_storage_metrics_without_url_are_from_evictor():
    event = record_storage_metrics(None, "", "delete", 10, 200, None)
    assert event.url == "CacheEvictor"
    assert event.operation == "delete"


def test_disk_metrics_go_to_observer():
    observer = _Observer()
    event = record_disk_usage_metrics(50, 200, observer)
    assert observer.disk == [event]
    assert (event.disk_usage, event.total_contents) == (50, 200)


def test_response_close_closes_body(tmp_path):
    target = tmp_path / "body.bin"
    target.write_bytes(b"x")
    handle = open(target, "rb")
    with StorageResponse(status_code=200, body=handle):
        pass
    assert handle.closed


def test_storage_error_carries_status():
    error = StorageError("PUT method not supported", 405)
    assert error.status_code == 405
    assert str(error) == "PUT method not supported"