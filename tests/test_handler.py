import io
import json
import os
from datetime import datetime, timezone
from email.utils import format_datetime

import pytest

from cdnkit.storage.common import Headers, StorageError, StorageRequest
from cdnkit.storage.handler import StorageHandler, open_storage

DATA = b"Hi, Welcome to CDN project"


def _post(url, body=DATA):
    headers = Headers(
        {
            "Content-Type": "application/octet",
            "Content-Length": "10",
            "Cache-Control": "max-age=3600",
            "Age": "60",
            "Last-Modified": format_datetime(datetime.now(timezone.utc), usegmt=True),
        }
    )
    stream = io.BytesIO(body) if body is not None else None
    return StorageRequest("POST", url, headers=headers, body=stream)


@pytest.fixture
def datastore(tmp_path):
    path = tmp_path / "cdn"
    path.mkdir()
    return str(path)


def test_post_then_get_returns_body(datastore):
    handler = StorageHandler(datastore)
    assert handler.do(_post("http://abc.com/sample1")).status_code == 201
    with handler.do(StorageRequest("GET", "http://abc.com/sample1")) as response:
        assert response.status_code == 200
        assert response.body.read() == DATA
        assert response.headers.get("Cache-Control") == "max-age=3600"


def test_post_indexes_content(datastore):
    handler = StorageHandler(datastore)
    handler.do(_post("http://abc.com/sample1"))
    handler.do(_post("http://def.com/sample2"))
    assert handler.cache_manager.total_contents == 2


def test_post_without_payload_is_bad_request(datastore):
    handler = StorageHandler(datastore)
    with pytest.raises(StorageError) as info:
        handler.do(_post("http://abc.com/sample1", body=None))
    assert info.value.status_code == 400


def test_head_uses_request_host(datastore):
    handler = StorageHandler(datastore)
    handler.do(_post("http://abc.com/sample1"))
    response = handler.do(StorageRequest("HEAD", "http://localhost:8080/sample1", host="abc.com"))
    assert response.status_code == 200
    assert response.body is None


def test_head_missing_metadata_is_not_found(datastore):
    handler = StorageHandler(datastore)
    with pytest.raises(StorageError) as info:
        handler.do(StorageRequest("HEAD", "http://DS1/sample1"))
    assert info.value.status_code == 404


def test_get_missing_content_file_is_not_found(datastore):
    handler = StorageHandler(datastore)
    handler.do(_post("http://abc.com/sample1"))
    os.remove(os.path.join(datastore, "abc.com", "sample1", "sample1.bin"))
    with pytest.raises(StorageError) as info:
        handler.do(StorageRequest("GET", "http://abc.com/sample1"))
    assert info.value.status_code == 404


def test_get_missing_metadata_is_not_found(datastore):
    handler = StorageHandler(datastore)
    handler.do(_post("http://def.com/sample2"))
    os.remove(os.path.join(datastore, "def.com", "sample2", "sample2_metadata.json"))
    with pytest.raises(StorageError) as info:
        handler.do(StorageRequest("GET", "http://def.com/sample2"))
    assert info.value.status_code == 404


def test_unsupported_method(datastore):
    handler = StorageHandler(datastore)
    with pytest.raises(StorageError) as info:
        handler.do(StorageRequest("PUT", "http://abc.com/sample1"))
    assert info.value.status_code == 405


def test_none_request_is_bad_request(datastore):
    handler = StorageHandler(datastore)
    with pytest.raises(StorageError) as info:
        handler.do(None)
    assert info.value.status_code == 400


def test_delete_removes_content(datastore):
    handler = StorageHandler(datastore)
    handler.do(_post("http://abc.com/DS_Set1/sample0"))
    assert handler.do(StorageRequest("DELETE", "http://abc.com/DS_Set1")).status_code == 200
    assert not os.path.exists(os.path.join(datastore, "abc.com", "DS_Set1"))
    with pytest.raises(StorageError) as info:
        handler.do(StorageRequest("GET", "http://abc.com/DS_Set1/sample0"))
    assert info.value.status_code == 404


def test_open_storage_creates_directory_and_stops(tmp_path):
    cdn_dir = str(tmp_path / "new" / "cdn")
    handler = open_storage(cdn_dir)
    try:
        assert os.path.isdir(cdn_dir)
        assert handler.running
    finally:
        handler.close()
    assert not handler.running


def test_open_storage_loads_existing_content(datastore):
    first = StorageHandler(datastore)
    first.do(_post("http://abc.com/sample1"))
    first.do(_post("http://def.com/sample2"))
    with open_storage(datastore) as handler:
        assert handler.cache_manager.total_contents == 2
        with handler.do(StorageRequest("GET", "http://def.com/sample2")) as response:
            assert response.body.read() == DATA


def test_open_storage_rejects_corrupted_datastore(datastore):
    directory = os.path.join(datastore, "abc.com", "sample1")
    os.makedirs(directory)
    with open(os.path.join(directory, "sample1_metadata.json"), "w") as handle:
        json.dump({"Cache-Control": ["max-age=0"]}, handle)
    with pytest.raises(ValueError):
        open_storage(datastore)