import io
import json

import pytest

from cdnkit.config import CacheNode, DeliveryService, RewriteRule
from cdnkit.server.in_memory_config import InMemoryConfig, NotFoundError


def _service(name="service1", client="http://client1.com", origin="http://origin1.com"):
    return DeliveryService(name=name, client_url=client, origin_url=origin)


def _node(name="edge1", ip="127.0.0.1"):
    return CacheNode(name=name, ip=ip, port=8080, node_type="Edge", parent_ip="127.0.0.1", parent_port=8081)


def test_empty_config_has_no_names():
    config = InMemoryConfig()
    assert config.ds_names() == (0, [])
    assert config.cn_names() == (0, [])


def test_add_ds_bumps_version_and_keeps_order():
    config = InMemoryConfig()
    config.add_ds(_service("service1"))
    before, _ = config.ds_names()
    config.add_ds(_service("service2"))
    version, names = config.ds_names()
    assert version == before + 1
    assert names == ["service1", "service2"]


def test_get_ds_returns_copy():
    config = InMemoryConfig()
    config.add_ds(_service())
    found = config.get_ds("service1")
    assert found.client_url == "http://client1.com"
    found.client_url = "changed"
    assert config.get_ds("service1").client_url == "http://client1.com"


def test_get_missing_ds_raises():
    with pytest.raises(NotFoundError, match="delivery service not found"):
        InMemoryConfig().get_ds("nope")


def test_update_ds_replaces_and_bumps_version():
    config = InMemoryConfig()
    config.add_ds(_service())
    before, _ = config.ds_names()
    config.update_ds(_service(client="http://client1-updated.com", origin="http://origin1-updated.com"))
    version, _ = config.ds_names()
    assert version == before + 1
    ds = config.get_ds("service1")
    assert ds.client_url == "http://client1-updated.com"
    assert ds.origin_url == "http://origin1-updated.com"


def test_update_missing_ds_raises_and_keeps_version():
    config = InMemoryConfig()
    config.add_ds(_service())
    before = config.ds_names()
    with pytest.raises(NotFoundError):
        config.update_ds(_service("other"))
    assert config.ds_names() == before


def test_delete_ds():
    config = InMemoryConfig()
    config.add_ds(_service("service1"))
    config.add_ds(_service("service2"))
    before, _ = config.ds_names()
    config.delete_ds("service1")
    version, names = config.ds_names()
    assert version == before + 1
    assert names == ["service2"]
    with pytest.raises(NotFoundError):
        config.delete_ds("service1")


def test_cache_node_crud():
    config = InMemoryConfig()
    config.add_cn(_node("edge1"))
    config.add_cn(_node("edge2", "10.0.0.2"))
    assert config.cn_names()[1] == ["edge1", "edge2"]
    assert config.get_cn("edge2").ip == "10.0.0.2"

    config.update_cn(_node("edge2", "10.0.0.3"))
    assert config.get_cn("edge2").ip == "10.0.0.3"

    before, _ = config.cn_names()
    config.delete_cn("edge1")
    version, names = config.cn_names()
    assert version == before + 1
    assert names == ["edge2"]


def test_missing_cache_node_raises():
    config = InMemoryConfig()
    with pytest.raises(NotFoundError, match="cache node not found"):
        config.get_cn("x")
    with pytest.raises(NotFoundError):
        config.update_cn(_node("x"))
    with pytest.raises(NotFoundError):
        config.delete_cn("x")


def test_ds_round_trip_through_json():
    config = InMemoryConfig()
    service = _service()
    service.rewrite_rules = [RewriteRule("Host", 1, "example.com")]
    config.add_ds(service)
    stream = io.StringIO()
    config.save_ds_to(stream)

    data = json.loads(stream.getvalue())
    assert data["serviceList"][0]["clientURL"] == "http://client1.com"

    other = InMemoryConfig()
    other.read_ds_from(io.StringIO(stream.getvalue()))
    assert other.ds_names() == config.ds_names()
    assert other.get_ds("service1") == service


def test_cn_round_trip_through_json():
    config = InMemoryConfig()
    config.add_cn(_node())
    stream = io.StringIO()
    config.save_cn_to(stream)
    assert stream.getvalue().endswith("\n")

    other = InMemoryConfig()
    other.read_cn_from(io.StringIO(stream.getvalue()))
    assert other.cn_names() == config.cn_names()
    assert other.get_cn("edge1") == _node()


def test_read_invalid_json_raises():
    with pytest.raises(ValueError):
        InMemoryConfig().read_ds_from(io.StringIO("{not json"))