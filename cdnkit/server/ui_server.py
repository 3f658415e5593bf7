"""Serve the configuration UI's static files under /ui."""

from __future__ import annotations

import html
import logging
import os
from typing import Optional
from urllib.parse import quote

from flask import Flask, Response, redirect, request, send_file

logger = logging.getLogger(__name__)

_INDEX = "index.html"


def _not_found() -> Response:
    response = Response("404 page not found\n", status=404)
    response.headers["Content-Type"] = "text/plain; charset=utf-8"
    response.headers["X-Content-Type-Options"] = "nosniff"
    return response


def _listing(directory: str) -> Response:
    lines = ["<!doctype html>", '<meta name="viewport" content="width=device-width">', "<pre>"]
    for name in sorted(os.listdir(directory)):
        if os.path.isdir(os.path.join(directory, name)):
            name += "/"
        lines.append(f'<a href="{html.escape(quote(name))}">{html.escape(name)}</a>')
    lines.append("</pre>")
    response = Response("\n".join(lines) + "\n", status=200)
    response.headers["Content-Type"] = "text/html; charset=utf-8"
    return response


def register_ui(app: Flask, directory: str) -> None:
    """Serve the files of ``directory`` for GET requests below /ui."""
    root = os.path.realpath(directory)

    def resolve(subpath: str) -> Optional[str]:
        parts = [part for part in subpath.split("/") if part]
        target = os.path.realpath(os.path.join(root, *parts))
        if os.path.commonpath([root, target]) != root:
            return None
        return target

    def serve(subpath: str):
        logger.info("ui Serve %s", request.full_path.rstrip("?"))
        path = request.path
        if subpath == _INDEX or subpath.endswith("/" + _INDEX):
            return redirect(path[: -len(_INDEX)], code=301)
        target = resolve(subpath)
        if target is None or not os.path.exists(target):
            return _not_found()
        if os.path.isdir(target):
            if not path.endswith("/"):
                return redirect(path + "/", code=301)
            index = os.path.join(target, _INDEX)
            if os.path.isfile(index):
                return send_file(index)
            return _listing(target)
        if path.endswith("/"):
            return redirect(path.rstrip("/"), code=301)
        return send_file(target)

    def serve_root():
        return serve("")

    def serve_path(subpath: str):
        return serve(subpath)

    app.add_url_rule("/ui", endpoint="ui_bare", view_func=serve_root, methods=["GET"])
    app.add_url_rule("/ui/", endpoint="ui_root", view_func=serve_root, methods=["GET"])
    app.add_url_rule(
        "/ui/<path:subpath>", endpoint="ui_path", view_func=serve_path, methods=["GET"]
    )
    logger.info("Added /ui")