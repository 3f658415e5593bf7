import pytest

from cdnkit.static_server import create_app, dynamic_response


@pytest.fixture
def static_dir(tmp_path):
    (tmp_path / "hello.txt").write_bytes(b"hello static")
    sub = tmp_path / "sub"
    sub.mkdir()
    (sub / "index.html").write_bytes(b"<p>sub index</p>")
    return tmp_path


@pytest.fixture
def client(static_dir):
    return create_app(str(static_dir)).test_client()


def test_dynamic_response_all_fields():
    status, headers, body = dynamic_response("/dyna/404/5/60/7")
    assert status == 404
    assert headers == {
        "Content-Type": "text/plain",
        "Cache-Control": "max-age=60",
        "Age": "7",
    }
    assert body == b"====="


def test_dynamic_response_prefix_only_is_ok():
    assert dynamic_response("/dyna") == (200, {}, b"")


def test_dynamic_response_unparsable_status_defaults_to_ok():
    assert dynamic_response("/dyna/abc/3") == (200, {"Content-Type": "text/plain"}, b"===")


def test_dynamic_response_status_only():
    assert dynamic_response("/dyna/201") == (201, {}, b"")


def test_dynamic_response_negative_length_gives_empty_body():
    status, _, body = dynamic_response("/dyna/200/-4")
    assert status == 200
    assert body == b""


def test_dynamic_response_invalid_status_raises():
    with pytest.raises(ValueError):
        dynamic_response("/dyna/42")


def test_app_dyna_sets_headers_and_body(client):
    response = client.get("/dyna/203/4/120/9")
    assert response.status_code == 203
    assert response.data == b"===="
    assert response.headers["Content-Type"] == "text/plain"
    assert response.headers["Cache-Control"] == "max-age=120"
    assert response.headers["Age"] == "9"


def test_app_dyna_without_length_has_no_content_type(client):
    response = client.get("/dyna/200")
    assert response.status_code == 200
    assert response.data == b""
    assert "Content-Type" not in response.headers


def test_app_dyna_invalid_status_is_server_error(client):
    assert client.get("/dyna/42").status_code == 500


def test_app_rejects_other_methods(client):
    assert client.post("/dyna/200").status_code == 405
    assert client.delete("/static/hello.txt").status_code == 405


def test_app_serves_static_file(client):
    response = client.get("/static/hello.txt")
    assert response.status_code == 200
    assert response.data == b"hello static"


def test_app_missing_static_file(client):
    response = client.get("/static/missing.txt")
    assert response.status_code == 404
    assert response.data == b"404 page not found\n"


def test_app_unknown_path_not_found(client):
    assert client.get("/elsewhere").status_code == 404


def test_app_static_directory_redirects_to_slash(client):
    response = client.get("/static")
    assert response.status_code == 301
    assert response.headers["Location"].endswith("/static/")


def test_app_static_directory_listing(client):
    response = client.get("/static/")
    assert response.status_code == 200
    assert b"hello.txt" in response.data
    assert b"sub/" in response.data


def test_app_static_index_served_for_directory(client):
    response = client.get("/static/sub/")
    assert response.status_code == 200
    assert response.data == b"<p>sub index</p>"


def test_app_index_html_redirects_to_directory(client):
    response = client.get("/static/sub/index.html")
    assert response.status_code == 301
    assert response.headers["Location"] == "./"


def test_app_unclean_path_redirects(client):
    response = client.get("/dyna//200")
    assert response.status_code == 301
    assert response.headers["Location"].endswith("/dyna/200")