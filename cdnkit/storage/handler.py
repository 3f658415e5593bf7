"""Entry point of the storage layer: dispatches requests and runs the evictor."""

from __future__ import annotations

import logging
import os
import threading
from typing import Any, Optional

from .cache_manager import CacheManager
from .common import StorageError, StorageRequest, StorageResponse
from .evictor import CacheEvictor, load_cached_content
from .invalidator import invalidate
from .reader import read
from .writer import write

logger = logging.getLogger(__name__)


class StorageHandler:
    """Serves storage requests against one datastore directory."""

    def __init__(
        self,
        datastore: str,
        cache_manager: Optional[CacheManager] = None,
        observer: Any = None,
        evictor: Optional[CacheEvictor] = None,
    ) -> None:
        self.datastore = datastore
        self.cache_manager = cache_manager if cache_manager is not None else CacheManager()
        self.observer = observer
        self.evictor = evictor
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        if evictor is not None:
            self._thread = threading.Thread(
                target=evictor.run, args=(self._stop,), name="cache-evictor", daemon=True
            )
            self._thread.start()

    @property
    def running(self) -> bool:
        """Whether the evictor thread is alive."""
        return self._thread is not None and self._thread.is_alive()

    def do(self, request: Optional[StorageRequest]) -> StorageResponse:
        """Serve a request; raises StorageError when it cannot be served."""
        if request is None:
            logger.error("Storage request is None")
            raise StorageError("http.request is nil", 400)
        method = request.method
        if method in ("GET", "HEAD"):
            return read(request, self.datastore, self.observer)
        if method == "POST":
            return write(request, self.datastore, self.cache_manager, self.observer)
        if method == "DELETE":
            return invalidate(request, self.datastore, self.observer)
        logger.error("Method not supported: %s", method)
        raise StorageError(f"{method} method not supported", 405)

    def close(self) -> None:
        """Stop the evictor and wait for it to finish."""
        self._stop.set()
        if self._thread is not None:
            self._thread.join()

    def __enter__(self) -> "StorageHandler":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


def open_storage(cdn_dir: str, observer: Any = None) -> StorageHandler:
    """Create the datastore, index its content and start the evictor."""
    logger.info("Initializing storage in %s", cdn_dir)
    try:
        os.makedirs(cdn_dir, mode=0o755, exist_ok=True)
    except OSError as exc:
        logger.error("Failed to create datastore directory %s: %s", cdn_dir, exc)
        raise
    manager = CacheManager()
    load_cached_content(cdn_dir, manager)
    evictor = CacheEvictor(cdn_dir, manager, observer)
    return StorageHandler(cdn_dir, manager, observer, evictor)