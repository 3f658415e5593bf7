import io
import os
from datetime import datetime, timedelta, timezone
from email.utils import format_datetime

import pytest

from cdnkit.storage.cache_manager import CacheManager
from cdnkit.storage.common import Headers, StorageError, StorageRequest
from cdnkit.storage.reader import read, read_metadata, refresh_age
from cdnkit.storage.writer import write

DATA = b"Hi, Welcome to CDN project"


def _http_time(offset_seconds=0):
    moment = datetime.now(timezone.utc) - timedelta(seconds=offset_seconds)
    return format_datetime(moment, usegmt=True)


def _post(url):
    headers = Headers(
        {
            "Content-Type": "application/octet",
            "Content-Length": "10",
            "Cache-Control": "max-age=3600",
            "Age": "60",
            "Last-Modified": _http_time(),
        }
    )
    return StorageRequest("POST", url, headers=headers, body=io.BytesIO(DATA))


class _Recorder:
    def __init__(self):
        self.events = []

    def record_event_storage(self, event):
        self.events.append(event)


@pytest.fixture
def datastore(tmp_path):
    path = str(tmp_path / "cdn")
    os.makedirs(path)
    manager = CacheManager()
    write(_post("http://abc.com/sample1"), path, manager)
    write(_post("http://def.com/sample2"), path, manager)
    return path


def test_head_with_host_override(datastore):
    request = StorageRequest("HEAD", "http://localhost:8080/sample1", host="abc.com")
    response = read(request, datastore)
    assert response.status_code == 200
    assert response.body is None
    assert response.headers.get("Cache-Control") == "max-age=3600"


def test_head_missing_metadata_is_not_found(datastore):
    with pytest.raises(StorageError) as info:
        read(StorageRequest("HEAD", "http://DS1/sample1"), datastore)
    assert info.value.status_code == 404


def test_get_returns_content(datastore):
    with read(StorageRequest("GET", "http://abc.com/sample1"), datastore) as response:
        assert response.status_code == 200
        assert response.body.read() == DATA
        assert 60 <= int(response.headers.get("Age")) <= 62


def test_get_missing_content_file_is_not_found(datastore):
    os.remove(os.path.join(datastore, "abc.com", "sample1", "sample1.bin"))
    with pytest.raises(StorageError) as info:
        read(StorageRequest("GET", "http://abc.com/sample1"), datastore)
    assert info.value.status_code == 404


def test_get_missing_metadata_is_not_found(datastore):
    os.remove(os.path.join(datastore, "def.com", "sample2", "sample2_metadata.json"))
    with pytest.raises(StorageError) as info:
        read(StorageRequest("GET", "http://def.com/sample2"), datastore)
    assert info.value.status_code == 404


def test_get_nothing_stored_is_not_found(datastore):
    with pytest.raises(StorageError) as info:
        read(StorageRequest("GET", "http://DS1/sample1"), datastore)
    assert info.value.status_code == 404


def test_get_records_metrics(datastore):
    recorder = _Recorder()
    with read(StorageRequest("GET", "http://abc.com/sample1"), datastore, recorder):
        pass
    assert len(recorder.events) == 1
    assert recorder.events[0].operation == "read"
    assert recorder.events[0].num_bytes == 10


def test_refresh_age_adds_elapsed_time():
    headers = Headers({"Age": "5", "Last-Modified": _http_time(100)})
    age = refresh_age(headers)
    assert 105 <= age <= 107
    assert headers.get("Age") == str(age)


def test_refresh_age_without_last_modified_leaves_headers():
    headers = Headers({"Cache-Control": "max-age=10"})
    assert refresh_age(headers) is None
    assert "Age" not in headers


def test_read_metadata_round_trip(tmp_path):
    path = tmp_path / "m.json"
    path.write_text('{"Age": ["7"], "Cache-Control": ["max-age=9"]}')
    headers = read_metadata(str(path))
    assert headers.get("Age") == "7"
    assert headers.get("Cache-Control") == "max-age=9"


def test_read_metadata_null_is_empty(tmp_path):
    path = tmp_path / "m.json"
    path.write_text("null")
    assert len(read_metadata(str(path))) == 0


def test_read_metadata_corrupt_is_internal_error(tmp_path):
    path = tmp_path / "m.json"
    path.write_text("{not json")
    with pytest.raises(StorageError) as info:
        read_metadata(str(path))
    assert info.value.status_code == 500


def test_read_metadata_missing_is_not_found(tmp_path):
    with pytest.raises(StorageError) as info:
        read_metadata(str(tmp_path / "absent.json"))
    assert info.value.status_code == 404