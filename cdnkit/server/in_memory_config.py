"""Thread-safe in-memory store of delivery services and cache nodes."""

from __future__ import annotations

import copy
import json
import threading
from typing import Any, Optional, TextIO

from ..config import CacheNode, CacheNodes, DeliveryService, DeliveryServices


class NotFoundError(LookupError):
    """A delivery service or cache node with the given name does not exist."""


def _dump(data: Any, stream: TextIO) -> None:
    json.dump(data, stream, indent=2, ensure_ascii=False)
    stream.write("\n")


def _load(stream: TextIO) -> Any:
    return json.load(stream)


class InMemoryConfig:
    """Versioned delivery services and cache nodes; every change bumps the version."""

    def __init__(
        self,
        delivery_services: Optional[DeliveryServices] = None,
        cache_nodes: Optional[CacheNodes] = None,
    ) -> None:
        self._ds_lock = threading.RLock()
        self._cn_lock = threading.RLock()
        self._ds = delivery_services if delivery_services is not None else DeliveryServices()
        self._cn = cache_nodes if cache_nodes is not None else CacheNodes()

    def save_ds_to(self, stream: TextIO) -> None:
        """Write the delivery services to ``stream`` as indented JSON."""
        with self._ds_lock:
            data = self._ds.to_dict()
        _dump(data, stream)

    def save_cn_to(self, stream: TextIO) -> None:
        """Write the cache nodes to ``stream`` as indented JSON."""
        with self._cn_lock:
            data = self._cn.to_dict()
        _dump(data, stream)

    def read_ds_from(self, stream: TextIO) -> None:
        """Replace the delivery services with those read from ``stream``."""
        data = _load(stream)
        if data is None:
            return
        services = DeliveryServices.from_dict(data)
        with self._ds_lock:
            self._ds = services

    def read_cn_from(self, stream: TextIO) -> None:
        """Replace the cache nodes with those read from ``stream``."""
        data = _load(stream)
        if data is None:
            return
        nodes = CacheNodes.from_dict(data)
        with self._cn_lock:
            self._cn = nodes

    def ds_names(self) -> tuple[int, list[str]]:
        """Version and names of all delivery services."""
        with self._ds_lock:
            return self._ds.version, [ds.name for ds in self._ds.service_list]

    def cn_names(self) -> tuple[int, list[str]]:
        """Version and names of all cache nodes."""
        with self._cn_lock:
            return self._cn.version, [cn.name for cn in self._cn.node_list]

    def get_ds(self, name: str) -> DeliveryService:
        """A copy of the named delivery service."""
        with self._ds_lock:
            for ds in self._ds.service_list:
                if ds.name == name:
                    return copy.deepcopy(ds)
        raise NotFoundError("delivery service not found")

    def get_cn(self, name: str) -> CacheNode:
        """A copy of the named cache node."""
        with self._cn_lock:
            for cn in self._cn.node_list:
                if cn.name == name:
                    return copy.deepcopy(cn)
        raise NotFoundError("cache node not found")

    def add_ds(self, service: DeliveryService) -> None:
        with self._ds_lock:
            self._ds.service_list.append(copy.deepcopy(service))
            self._ds.version += 1

    def update_ds(self, service: DeliveryService) -> None:
        with self._ds_lock:
            for idx, ds in enumerate(self._ds.service_list):
                if ds.name == service.name:
                    self._ds.service_list[idx] = copy.deepcopy(service)
                    self._ds.version += 1
                    return
        raise NotFoundError("delivery service not found")

    def delete_ds(self, name: str) -> None:
        with self._ds_lock:
            for idx, ds in enumerate(self._ds.service_list):
                if ds.name == name:
                    del self._ds.service_list[idx]
                    self._ds.version += 1
                    return
        raise NotFoundError("delivery service not found")

    def add_cn(self, node: CacheNode) -> None:
        with self._cn_lock:
            self._cn.node_list.append(copy.deepcopy(node))
            self._cn.version += 1

    def update_cn(self, node: CacheNode) -> None:
        with self._cn_lock:
            for idx, cn in enumerate(self._cn.node_list):
                if cn.name == node.name:
                    self._cn.node_list[idx] = copy.deepcopy(node)
                    self._cn.version += 1
                    return
        raise NotFoundError("cache node not found")

    def delete_cn(self, name: str) -> None:
        with self._cn_lock:
            for idx, cn in enumerate(self._cn.node_list):
                if cn.name == name:
                    del self._cn.node_list[idx]
                    self._cn.version += 1
                    return
        raise NotFoundError("cache node not found")