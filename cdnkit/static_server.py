"""Test origin server: static files plus responses shaped by the request path."""

from __future__ import annotations

import argparse
import logging
import os
import posixpath
import re
import time
import threading
from typing import Optional, Sequence

from flask import Flask, Response, redirect, request, send_file

from .server.ui_server import _listing, _not_found

logger = logging.getLogger(__name__)

PORTS = (32001, 32002)
DEFAULT_STATIC_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "static")

_STATIC_PREFIX = "/static"
_DYNA_PREFIX = "/dyna"
_INDEX = "index.html"
_INTEGER = re.compile(r"[+-]?[0-9]+")
_METHODS = ["GET", "HEAD", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"]


def _atoi(text: str) -> int:
    """Integer value of ``text``, or 0 if it is not a plain integer."""
    return int(text) if _INTEGER.fullmatch(text) else 0


def dynamic_response(path: str) -> tuple[int, dict[str, str], bytes]:
    """Status, headers and body described by a path of the form /dyna/<status>/<length>/<max-age>/<age>.

    Every segment is optional. A missing or unparsable status means 200; the body
    is ``length`` equals signs. Raises ValueError for a status outside 100..999.
    """
    parts = path.split("/")
    logger.info("Dyna Parts %s", ",".join(parts))
    fields = parts[2:]
    headers: dict[str, str] = {}

    status = _atoi(fields[0]) if fields else 200
    length = 0
    if len(fields) > 1:
        length = _atoi(fields[1])
        headers["Content-Type"] = "text/plain"
    if len(fields) > 2:
        headers["Cache-Control"] = f"max-age={fields[2]}"
    if len(fields) > 3:
        headers["Age"] = fields[3]

    if status == 0:
        status = 200
    if status < 100 or status > 999:
        raise ValueError(f"invalid response status code {status}")
    return status, headers, b"=" * max(length, 0)


def _clean_path(path: str) -> str:
    """Canonical form of a URL path: no dot segments or repeated slashes."""
    if not path:
        return "/"
    if not path.startswith("/"):
        path = "/" + path
    cleaned = "/" + posixpath.normpath(path).lstrip("/")
    if path.endswith("/") and cleaned != "/":
        cleaned += "/"
    return cleaned


def _dyna_view(path: str) -> Response:
    try:
        status, headers, body = dynamic_response(path)
    except ValueError as exc:
        logger.error("Cannot answer %s: %s", path, exc)
        return Response(status=500)
    response = Response(body, status=status)
    del response.headers["Content-Type"]
    for name, value in headers.items():
        response.headers[name] = value
    if "Content-Type" not in headers and body:
        response.headers["Content-Type"] = "text/plain; charset=utf-8"
    return response


def _static_view(static_dir: str, path: str):
    if path.endswith("/" + _INDEX):
        return redirect("./", code=301)
    name = path[len(_STATIC_PREFIX):]
    if name and not name.startswith("/"):
        return _not_found()
    root = os.path.realpath(static_dir)
    target = os.path.realpath(os.path.join(root, *[part for part in name.split("/") if part]))
    if os.path.commonpath([root, target]) != root or not os.path.exists(target):
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


def create_app(static_dir: Optional[str] = None) -> Flask:
    """Build the server: files of ``static_dir`` under /static and shaped responses under /dyna."""
    directory = static_dir if static_dir is not None else DEFAULT_STATIC_DIR
    app = Flask(__name__, static_folder=None)
    app.url_map.merge_slashes = False

    def dispatch(rest: str = ""):
        logger.info("Request host=%s url=%s", request.host, request.full_path.rstrip("?"))
        path = request.path
        cleaned = _clean_path(path)
        if cleaned != path:
            query = request.query_string.decode("latin-1")
            return redirect(cleaned + ("?" + query if query else ""), code=301)
        if path.startswith(_STATIC_PREFIX):
            handler = _static_view
            args = (directory, path)
        elif path.startswith(_DYNA_PREFIX):
            handler = _dyna_view
            args = (path,)
        else:
            return _not_found()
        if request.method != "GET":
            return Response(status=405)
        return handler(*args)

    app.add_url_rule("/", endpoint="dispatch", view_func=dispatch, methods=_METHODS)
    app.add_url_rule("/<path:rest>", endpoint="dispatch", view_func=dispatch, methods=_METHODS)
    return app


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Serve the static server on its ports until interrupted."""
    logging.basicConfig(level=logging.INFO)
    parser = argparse.ArgumentParser(description="Static test origin server")
    parser.add_argument(
        "--static-dir", dest="static_dir", default=None,
        help="Directory served under /static",
    )
    parser.add_argument(
        "--port", dest="ports", type=int, action="append", default=None,
        help="Port to listen on (repeatable)",
    )
    args = parser.parse_args(argv)
    app = create_app(args.static_dir)

    for port in args.ports or PORTS:
        logger.info("Listening Static Server on %s", port)
        threading.Thread(
            target=app.run,
            kwargs={"host": "0.0.0.0", "port": port, "use_reloader": False, "threaded": True},
            name=f"static-server-{port}",
            daemon=True,
        ).start()
    logger.info("press ctrl+c to stop")
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        pass
    finally:
        logger.info("Exiting...")
    return 0