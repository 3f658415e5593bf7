"""Configuration records shared by the config server and the cache nodes."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Optional

CACHE_NODE_MID = "Mid"
CACHE_NODE_EDGE = "Edge"


class HeaderRewriteOp(IntEnum):
    """Operation a rewrite rule applies to an HTTP header."""

    ADD = 0
    OVERWRITE = 1
    DELETE = 2


def _mapping(data: Any) -> Mapping:
    if not isinstance(data, Mapping):
        raise TypeError(f"expected a JSON object, got {type(data).__name__}")
    return data


def _field(data: Mapping, key: str, default: Any = None) -> Any:
    """Look a key up the way a JSON decoder matching names case-insensitively would."""
    if key in data:
        return data[key]
    lowered = key.lower()
    for name, value in data.items():
        if isinstance(name, str) and name.lower() == lowered:
            return value
    return default


def _int(data: Mapping, key: str) -> int:
    value = _field(data, key)
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"field {key!r} must be an integer, got {value!r}")
    return value


def _str(data: Mapping, key: str) -> str:
    value = _field(data, key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValueError(f"field {key!r} must be a string, got {value!r}")
    return value


def _list(data: Mapping, key: str) -> list:
    value = _field(data, key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValueError(f"field {key!r} must be a list, got {value!r}")
    return value


@dataclass
class RewriteRule:
    """Rule for rewriting one HTTP header."""

    header_name: str = ""
    operation: int = HeaderRewriteOp.ADD
    value: str = ""

    def to_dict(self) -> dict:
        return {
            "headerName": self.header_name,
            "operation": int(self.operation),
            "value": self.value,
        }

    @classmethod
    def from_dict(cls, data: Any) -> "RewriteRule":
        data = _mapping(data)
        return cls(
            header_name=_str(data, "headerName"),
            operation=_int(data, "operation"),
            value=_str(data, "value"),
        )


@dataclass
class DeliveryService:
    """One delivery service: client URL mapped to an origin URL."""

    name: str = ""
    client_url: str = ""
    origin_url: str = ""
    rewrite_rules: list[RewriteRule] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "clientURL": self.client_url,
            "originURL": self.origin_url,
            "rewriteRules": [rule.to_dict() for rule in self.rewrite_rules],
        }

    @classmethod
    def from_dict(cls, data: Any) -> "DeliveryService":
        data = _mapping(data)
        return cls(
            name=_str(data, "name"),
            client_url=_str(data, "clientURL"),
            origin_url=_str(data, "originURL"),
            rewrite_rules=[
                RewriteRule.from_dict(rule) if rule is not None else RewriteRule()
                for rule in _list(data, "rewriteRules")
            ],
        )


@dataclass
class CacheNode:
    """One cache node and where its upstream lives."""

    name: str = ""
    ip: str = ""
    port: int = 0
    node_type: str = ""
    parent_ip: str = ""
    parent_port: int = 0
    mgmt_port: int = 0
    prom_port: int = 0

    def to_dict(self) -> dict:
        result = {
            "name": self.name,
            "ip": self.ip,
            "port": self.port,
            "type": self.node_type,
            "parentIP": self.parent_ip,
            "parentPort": self.parent_port,
        }
        if self.mgmt_port:
            result["mgmtPort"] = self.mgmt_port
        if self.prom_port:
            result["promPort"] = self.prom_port
        return result

    @classmethod
    def from_dict(cls, data: Any) -> "CacheNode":
        data = _mapping(data)
        return cls(
            name=_str(data, "name"),
            ip=_str(data, "ip"),
            port=_int(data, "port"),
            node_type=_str(data, "type"),
            parent_ip=_str(data, "parentIP"),
            parent_port=_int(data, "parentPort"),
            mgmt_port=_int(data, "mgmtPort"),
            prom_port=_int(data, "promPort"),
        )


@dataclass
class CacheNodes:
    """Versioned list of cache nodes."""

    version: int = 0
    node_list: list[CacheNode] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "version": self.version,
            "nodeList": [node.to_dict() for node in self.node_list],
        }

    @classmethod
    def from_dict(cls, data: Any) -> "CacheNodes":
        data = _mapping(data)
        return cls(
            version=_int(data, "version"),
            node_list=[
                CacheNode.from_dict(node) if node is not None else CacheNode()
                for node in _list(data, "nodeList")
            ],
        )


@dataclass
class DeliveryServices:
    """Versioned list of delivery services."""

    version: int = 0
    service_list: list[DeliveryService] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "version": self.version,
            "serviceList": [service.to_dict() for service in self.service_list],
        }

    @classmethod
    def from_dict(cls, data: Any) -> "DeliveryServices":
        data = _mapping(data)
        return cls(
            version=_int(data, "version"),
            service_list=[
                DeliveryService.from_dict(service) if service is not None else DeliveryService()
                for service in _list(data, "serviceList")
            ],
        )


@dataclass
class Config:
    """Configuration of one cache node: its own details and its delivery services."""

    service_list: list[Optional[DeliveryService]] = field(default_factory=list)
    node: Optional[CacheNode] = None

    def to_dict(self) -> dict:
        return {
            "serviceList": [
                service.to_dict() if service is not None else None
                for service in self.service_list
            ],
            "node": self.node.to_dict() if self.node is not None else None,
        }

    @classmethod
    def from_dict(cls, data: Any) -> "Config":
        data = _mapping(data)
        node = _field(data, "node")
        return cls(
            service_list=[
                DeliveryService.from_dict(service) if service is not None else None
                for service in _list(data, "serviceList")
            ],
            node=CacheNode.from_dict(node) if node is not None else None,
        )