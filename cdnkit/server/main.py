"""Command that starts the configuration server."""

from __future__ import annotations

import argparse
import logging
import os
from typing import Optional, Sequence

from flask import Flask

from ..config import CacheNode
from .api_server import create_app
from .cache_commander import CacheCommander
from .config_saver import ConfigSaver
from .in_memory_config import InMemoryConfig
from .ui_server import register_ui

logger = logging.getLogger(__name__)

DEFAULT_API_PORT = 8080
SAVE_DIR = "."
DEFAULT_UI_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "ui")


def _port(text: str) -> int:
    try:
        value = int(text)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid port {text!r}") from exc
    if value < 0:
        raise argparse.ArgumentTypeError(f"invalid port {text!r}")
    return value


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """Parse the command line: API port, save directory and UI directory."""
    parser = argparse.ArgumentParser(description="CDN configuration server")
    parser.add_argument(
        "-apiport", "--apiport", dest="api_port", type=_port, default=DEFAULT_API_PORT,
        help="API Server port",
    )
    parser.add_argument(
        "-dir", "--dir", dest="directory", default=SAVE_DIR,
        help="Directory to persist config files",
    )
    parser.add_argument(
        "-uidir", "--uidir", dest="ui_dir", default=None,
        help="Directory holding the UI's static files",
    )
    args = parser.parse_args(argv)
    logger.info("Flags: apiPort=%s directory=%s", args.api_port, args.directory)
    return args


def _no_management_client(node: CacheNode, pattern: str, uid: str, timeout: float):
    raise ConnectionError(
        f"no management client available for cache node {node.name!r} ({node.ip}:{node.mgmt_port})"
    )


def build_app(directory: str, ui_dir: Optional[str] = None) -> Flask:
    """Load the saved configuration from ``directory`` and build the server application."""
    config = InMemoryConfig()
    saver = ConfigSaver(config, directory)
    commander = CacheCommander(config, _no_management_client, saver=saver)
    app = create_app(config, saver, commander)
    register_ui(app, ui_dir if ui_dir is not None else DEFAULT_UI_DIR)
    app.extensions["cdnkit"] = {"config": config, "saver": saver, "commander": commander}
    return app


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the configuration server until interrupted."""
    logging.basicConfig(level=logging.INFO)
    args = parse_args(argv)
    app = build_app(args.directory, args.ui_dir)
    parts = app.extensions["cdnkit"]
    status = 0
    logger.info("Server is running on port %s", args.api_port)
    try:
        app.run(host="0.0.0.0", port=args.api_port)
    except KeyboardInterrupt:
        logger.info("Interrupted")
    except OSError as exc:
        logger.error("Server failed: %s", exc)
        status = 1
    finally:
        logger.info("Waiting for all to terminate")
        parts["saver"].join()
        parts["commander"].join()
        logger.info("Config server exit.")
    return status