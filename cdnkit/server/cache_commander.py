"""Send invalidation requests to every cache node and track their status."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Optional

from ..config import CacheNode
from .config_saver import ConfigSaver
from .in_memory_config import InMemoryConfig, NotFoundError

logger = logging.getLogger(__name__)

IN_PROGRESS = "InProgress"
COMPLETED = "Completed"
NOT_PRESENT = "Not Present"
DEFAULT_TIMEOUT = 30.0


@dataclass(frozen=True)
class InvalidationResult:
    """A cache node's answer to an invalidation request."""

    success: bool
    message: str = ""


NodeInvalidator = Callable[[CacheNode, str, str, float], Any]


class CacheCommander:
    """Runs invalidation requests against all configured cache nodes in the background.

    ``invalidate_node(node, pattern, uid, timeout)`` contacts one node and returns an
    object with ``success`` and ``message``; an exception counts as a failed request.
    """

    def __init__(
        self,
        config: Optional[InMemoryConfig],
        invalidate_node: NodeInvalidator,
        saver: Optional[ConfigSaver] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self.config = config
        self.invalidate_node = invalidate_node
        self.timeout = timeout
        self._status_lock = threading.RLock()
        self._statuses: dict[str, str] = {}
        self._threads_lock = threading.Lock()
        self._threads: list[threading.Thread] = []
        if saver is not None:
            self._load(saver.load_ds, "delivery services")
            self._load(saver.load_cn, "cache nodes")

    @staticmethod
    def _load(loader: Callable[[], None], what: str) -> None:
        logger.info("Loading %s from file...", what)
        try:
            loader()
        except (OSError, ValueError, TypeError) as exc:
            logger.error("Error loading %s: %s", what, exc)
        else:
            logger.info("%s loaded successfully", what.capitalize())

    def _update_status(self, uid: str, status: str) -> None:
        with self._status_lock:
            logger.info("Updating status of %s to %s", uid, status)
            self._statuses[uid] = status

    def _invalidate_on(self, name: str, uid: str, pattern: str) -> None:
        logger.info("Processing cache node %s for invalidation %s", name, uid)
        try:
            node = self.config.get_cn(name)
        except NotFoundError as exc:
            logger.error("Cache node %s not found (%s): %s", name, uid, exc)
            return
        try:
            result = self.invalidate_node(node, pattern, uid, self.timeout)
        except Exception as exc:  # a failing node must not stop the others
            logger.error("Failed to invalidate cache on node %s (%s): %s", name, uid, exc)
            return
        if not result.success:
            logger.error("Cache invalidation failed on node %s (%s): %s", name, uid, result.message)
            return
        logger.info("Cache invalidation successful on node %s (%s): %s", name, uid, result.message)

    def _process(self, uid: str, pattern: str) -> None:
        logger.info("Invalidation request %s started", uid)
        try:
            _, names = self.config.cn_names()
            workers = [
                threading.Thread(target=self._invalidate_on, args=(name, uid, pattern))
                for name in names
            ]
            for worker in workers:
                worker.start()
            for worker in workers:
                worker.join()
        finally:
            logger.info("Invalidation request %s completed on all nodes", uid)
            self._update_status(uid, COMPLETED)

    def execute_invalidate_request(self, uid: str, pattern: str) -> None:
        """Start invalidating ``pattern`` on every cache node under the id ``uid``."""
        if self.config is None:
            logger.error("Cache store not initialized")
            return
        self._update_status(uid, IN_PROGRESS)
        thread = threading.Thread(target=self._process, args=(uid, pattern), name=f"invalidate-{uid}")
        with self._threads_lock:
            self._threads.append(thread)
        thread.start()

    def status(self, uid: str) -> str:
        """Status of an invalidation request, or "Not Present" if it is unknown."""
        with self._status_lock:
            status = self._statuses.get(uid)
        if status is None:
            return NOT_PRESENT
        logger.info("Checking status of %s: %s", uid, status)
        return status

    def join(self) -> None:
        """Wait for all running invalidation requests to finish."""
        with self._threads_lock:
            threads, self._threads = self._threads, []
        for thread in threads:
            thread.join()