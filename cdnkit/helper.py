"""Small helpers: a tee-ing reader, interrupt handling and request URLs."""

from __future__ import annotations

import logging
import signal
import threading
from typing import Any, BinaryIO

logger = logging.getLogger(__name__)


class _Pipe:
    """In-memory pipe; reads block until data arrives or the writer closes."""

    def __init__(self) -> None:
        self._buffer = bytearray()
        self._closed = False
        self._cond = threading.Condition()

    def write(self, data: bytes) -> int:
        with self._cond:
            if self._closed:
                raise ValueError("write to closed pipe")
            self._buffer.extend(data)
            self._cond.notify_all()
        return len(data)

    def close_writer(self) -> None:
        with self._cond:
            self._closed = True
            self._cond.notify_all()

    @property
    def closed(self) -> bool:
        with self._cond:
            return self._closed

    def read(self, size: int = -1) -> bytes:
        with self._cond:
            if size is None or size < 0:
                self._cond.wait_for(lambda: self._closed)
                data = bytes(self._buffer)
                self._buffer.clear()
                return data
            if size == 0:
                return b""
            self._cond.wait_for(lambda: self._buffer or self._closed)
            data = bytes(self._buffer[:size])
            del self._buffer[:size]
            return data


class DupReader:
    """Reads from a stream and copies every byte read into ``dup``."""

    def __init__(self, original: BinaryIO) -> None:
        self._original = original
        self.dup = _Pipe()

    def read(self, size: int = -1) -> bytes:
        try:
            data = self._original.read(size)
        except OSError as exc:
            logger.warning("Error reading from original stream: %s", exc)
            raise
        if data and not self.dup.closed:
            self.dup.write(data)
        read_to_end = size is None or size < 0
        if (read_to_end or (not data and size != 0)) and not self.dup.closed:
            self.dup.close_writer()
        return data

    def close(self) -> None:
        self.dup.close_writer()
        self._original.close()

    def __enter__(self) -> "DupReader":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


def install_interrupt_handler(stop_event: threading.Event):
    """Set ``stop_event`` on SIGINT; returns the handler that was replaced."""

    def _on_interrupt(signum, frame):
        logger.info("Received signal %s. Aborting.", signum)
        stop_event.set()

    logger.info("Registering for interrupt signal")
    return signal.signal(signal.SIGINT, _on_interrupt)


def request_url(request: Any) -> str:
    """Return the URL of a request as a string."""
    return str(request.url)