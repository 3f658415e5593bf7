"""Persist the in-memory configuration to JSON files in a directory."""

from __future__ import annotations

import logging
import os
import threading
from typing import Callable, TextIO

from .in_memory_config import InMemoryConfig

logger = logging.getLogger(__name__)

DS_FILE_NAME = "deliveryServices.json"
CN_FILE_NAME = "cacheNodes.json"


class ConfigSaver:
    """Saves delivery services and cache nodes in the background and loads them back."""

    def __init__(self, config: InMemoryConfig, directory: str = ".", load: bool = True) -> None:
        self.config = config
        self.directory = directory
        self._lock = threading.Lock()
        self._threads: list[threading.Thread] = []
        if load:
            for loader, name in ((self.load_ds, DS_FILE_NAME), (self.load_cn, CN_FILE_NAME)):
                try:
                    loader()
                except (OSError, ValueError, TypeError) as exc:
                    logger.info("Could not load %s: %s", name, exc)

    @property
    def ds_path(self) -> str:
        return os.path.join(self.directory, DS_FILE_NAME)

    @property
    def cn_path(self) -> str:
        return os.path.join(self.directory, CN_FILE_NAME)

    def _save(self, path: str, name: str, dump: Callable[[TextIO], None]) -> threading.Thread:
        def _work() -> None:
            try:
                handle = open(path, "w", encoding="utf-8")
            except OSError as exc:
                logger.error("Error creating file %s: %s", name, exc)
                return
            try:
                with handle:
                    dump(handle)
            except (OSError, ValueError, TypeError) as exc:
                logger.error("Error writing to file %s: %s", name, exc)
                return
            logger.info("Configuration saved to %s", name)

        thread = threading.Thread(target=_work, name=f"save-{name}")
        with self._lock:
            self._threads.append(thread)
        thread.start()
        return thread

    def save_ds(self) -> threading.Thread:
        """Start writing the delivery services to their file."""
        return self._save(self.ds_path, DS_FILE_NAME, self.config.save_ds_to)

    def save_cn(self) -> threading.Thread:
        """Start writing the cache nodes to their file."""
        return self._save(self.cn_path, CN_FILE_NAME, self.config.save_cn_to)

    def load_ds(self) -> None:
        """Load delivery services from their file into the config."""
        with open(self.ds_path, encoding="utf-8") as handle:
            self.config.read_ds_from(handle)

    def load_cn(self) -> None:
        """Load cache nodes from their file into the config."""
        with open(self.cn_path, encoding="utf-8") as handle:
            self.config.read_cn_from(handle)

    def join(self) -> None:
        """Wait until every pending save has finished."""
        with self._lock:
            threads, self._threads = self._threads, []
        for thread in threads:
            thread.join()