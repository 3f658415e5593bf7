"""HTTP API for managing delivery services, cache nodes and invalidations."""

from __future__ import annotations

import json
import logging
import random
import time
from typing import Any, Callable, Optional

from flask import Flask, Response, request

from ..config import CacheNode, DeliveryService, HeaderRewriteOp
from .cache_commander import NOT_PRESENT, CacheCommander
from .config_saver import ConfigSaver
from .in_memory_config import InMemoryConfig, NotFoundError

logger = logging.getLogger(__name__)

_NOT_INITIALIZED = "Internal error: InMemConfig not initialized"
_JSON_WHITESPACE = " \t\r\n"


def generate_unique_id() -> str:
    """An id made of the current time in nanoseconds and a random number."""
    return f"{time.time_ns()}-{random.getrandbits(63)}"


def _error(message: str, status: int) -> Response:
    response = Response(message + "\n", status=status)
    response.headers["Content-Type"] = "text/plain; charset=utf-8"
    response.headers["X-Content-Type-Options"] = "nosniff"
    return response


def _text(message: str) -> Response:
    response = Response(message, status=200)
    response.headers["Content-Type"] = "text/plain; charset=utf-8"
    return response


def _json(data: Any) -> Response:
    body = json.dumps(data, separators=(",", ":"), ensure_ascii=False) + "\n"
    response = Response(body, status=200)
    response.headers["Content-Type"] = "application/json"
    return response


def _decode_body(raw: bytes) -> Any:
    """Decode the first JSON value of a request body."""
    text = raw.decode("utf-8").lstrip(_JSON_WHITESPACE)
    if not text:
        raise ValueError("empty request body")
    value, _ = json.JSONDecoder().raw_decode(text)
    return value


def _decode_service(raw: bytes) -> DeliveryService:
    value = _decode_body(raw)
    return DeliveryService() if value is None else DeliveryService.from_dict(value)


def _decode_node(raw: bytes) -> CacheNode:
    value = _decode_body(raw)
    return CacheNode() if value is None else CacheNode.from_dict(value)


def _notify(callback: Optional[Callable[..., Any]], *args: Any) -> None:
    if callback is None:
        return
    try:
        callback(*args)
    except Exception as exc:  # pushing to nodes is best effort; the change is already stored
        logger.error("Failed to push configuration update: %s", exc)


def create_app(
    config: Optional[InMemoryConfig],
    saver: Optional[ConfigSaver] = None,
    commander: Optional[CacheCommander] = None,
    on_ds_change: Optional[Callable[[], Any]] = None,
    on_cn_change: Optional[Callable[[str], Any]] = None,
) -> Flask:
    """Build the API application.

    ``on_ds_change()`` runs after every delivery service change and
    ``on_cn_change(name)`` after every cache node change.
    """
    app = Flask(__name__)

    def save_ds() -> None:
        if saver is not None:
            saver.save_ds()

    def save_cn() -> None:
        if saver is not None:
            saver.save_cn()

    logger.info("Added /ds")

    @app.get("/ds")
    def delivery_services_get():
        if config is None:
            return _error(_NOT_INITIALIZED, 500)
        version, names = config.ds_names()
        return _json({"version": version, "serviceList": names})

    @app.post("/ds")
    def delivery_services_post():
        try:
            service = _decode_service(request.get_data())
        except (ValueError, TypeError):
            return _error("Invalid input", 400)
        if not service.name or not service.client_url or not service.origin_url:
            return _error("Missing required fields", 400)
        for rule in service.rewrite_rules:
            if (
                not rule.header_name
                or rule.operation < HeaderRewriteOp.ADD
                or rule.operation > HeaderRewriteOp.DELETE
            ):
                return _error("Invalid rewrite rule", 400)
        if config is None:
            return _error(_NOT_INITIALIZED, 500)
        try:
            config.get_ds(service.name)
        except NotFoundError:
            pass
        else:
            return _error("Delivery service already exists", 409)
        config.add_ds(service)
        save_ds()
        _notify(on_ds_change)
        return _text("Delivery service added")

    @app.get("/ds/<name>")
    def delivery_service_get(name: str):
        if config is None:
            return _error(_NOT_INITIALIZED, 500)
        logger.info("Handling GET request for service %s", name)
        try:
            service = config.get_ds(name)
        except NotFoundError:
            return _error("Not Found", 404)
        return _json(service.to_dict())

    @app.put("/ds/<name>")
    def delivery_service_put(name: str):
        if config is None:
            return _error(_NOT_INITIALIZED, 500)
        logger.info("Handling PUT request for service %s", name)
        try:
            service = _decode_service(request.get_data())
        except (ValueError, TypeError):
            return _error("Invalid input", 400)
        if service.name != name:
            return _error("Name in the URL does not match the name in the body", 400)
        try:
            config.update_ds(service)
        except NotFoundError:
            return _error("Not Found", 404)
        save_ds()
        _notify(on_ds_change)
        return _text("Delivery service updated")

    @app.delete("/ds/<name>")
    def delivery_service_delete(name: str):
        if config is None:
            return _error(_NOT_INITIALIZED, 500)
        logger.info("Handling DELETE request for service %s", name)
        try:
            config.delete_ds(name)
        except NotFoundError:
            return _error("Not Found", 404)
        save_ds()
        _notify(on_ds_change)
        return _text("Delivery service deleted")

    logger.info("Added /cn")

    @app.get("/cn")
    def cache_nodes_get():
        if config is None:
            return _error(_NOT_INITIALIZED, 500)
        version, names = config.cn_names()
        return _json({"version": version, "NodeList": names})

    @app.post("/cn")
    def cache_nodes_post():
        raw = request.get_data()
        logger.info("CN Post request: %s", raw.decode("utf-8", "replace"))
        try:
            node = _decode_node(raw)
        except (ValueError, TypeError) as exc:
            logger.error("CN Post: error decoding request: %s", exc)
            return _error("Invalid input", 400)
        if not node.name or not node.ip or node.port == 0 or not node.node_type:
            logger.error("CN Post: missing required fields in %s", node)
            return _error("Missing required fields", 400)
        if config is None:
            logger.error("CN Post: in-memory config not available")
            return _error(_NOT_INITIALIZED, 500)
        try:
            config.get_cn(node.name)
        except NotFoundError:
            pass
        else:
            logger.error("CN Post: cache node already exists")
            return _error("Cache node already exists", 409)
        config.add_cn(node)
        save_cn()
        _notify(on_cn_change, node.name)
        return _text("CacheNode service added")

    @app.get("/cn/<name>")
    def cache_node_get(name: str):
        if config is None:
            return _error(_NOT_INITIALIZED, 500)
        logger.info("Handling request for cache node %s", name)
        try:
            node = config.get_cn(name)
        except NotFoundError:
            return _error("Not Found", 404)
        return _json(node.to_dict())

    @app.put("/cn/<name>")
    def cache_node_put(name: str):
        if config is None:
            return _error(_NOT_INITIALIZED, 500)
        logger.info("Handling request for cache node %s", name)
        try:
            node = _decode_node(request.get_data())
        except (ValueError, TypeError):
            return _error("Invalid input", 400)
        if node.name != name:
            return _error("Name in the URL does not match the name in the body", 400)
        try:
            config.update_cn(node)
        except NotFoundError:
            return _error("Not Found", 404)
        save_cn()
        _notify(on_cn_change, name)
        return _text("Cache Node updated")

    @app.delete("/cn/<name>")
    def cache_node_delete(name: str):
        if config is None:
            return _error(_NOT_INITIALIZED, 500)
        logger.info("Handling request for cache node %s", name)
        try:
            config.delete_cn(name)
        except NotFoundError:
            return _error("Not Found", 404)
        save_cn()
        _notify(on_cn_change, name)
        return _text("Cache Node deleted")

    logger.info("Added /invalidate")

    @app.get("/invalidate/<pattern>")
    def invalidate(pattern: str):
        invalidation_id = generate_unique_id()
        if commander is not None:
            commander.execute_invalidate_request(invalidation_id, pattern)
        response = _text("Invalidation request received with ID: " + invalidation_id)
        response.headers["Location"] = "/invalidateStatus/" + invalidation_id
        return response

    logger.info("Added /invalidateStatus")

    @app.get("/invalidateStatus/<uid>")
    def invalidate_status(uid: str):
        status = commander.status(uid) if commander is not None else NOT_PRESENT
        return _text('{ "status" : ' + status + " }")

    return app