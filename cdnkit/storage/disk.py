"""Disk usage of the datastore, with a switch to simulate a full disk."""

from __future__ import annotations

import logging
import math
import os
import shutil
import threading

logger = logging.getLogger(__name__)

SIMULATE_DISK_FULL = "SimulateDiskFull"
_SIMULATED_HIGH = 85
_SIMULATED_NORMAL = 80


def get_default_cdn_directory() -> str:
    """Directory under the working directory that holds cached content."""
    if os.name == "nt":
        return os.path.join(os.getcwd(), "cdn")
    return "cdn"


def _measure(base_dir: str) -> int:
    try:
        usage = shutil.disk_usage(base_dir)
    except OSError as exc:
        logger.info("Failed to fetch disk usage: %s", exc)
        return 0
    used, free = usage.used, usage.free
    if used + free <= 0:
        return 0
    if os.name == "nt":
        return int(used / (used + free) * 100)
    return math.ceil(used * 100 / (used + free))


class DiskUsageProbe:
    """Reports disk usage in percent; can pretend the disk is nearly full."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._simulator = 0

    def simulate_high_usage(self) -> None:
        with self._lock:
            self._simulator = 1

    def usage(self, base_dir: str) -> int:
        marker = os.path.join(base_dir, SIMULATE_DISK_FULL)
        with self._lock:
            if os.path.lexists(marker):
                if os.path.isdir(marker) and not os.path.islink(marker):
                    shutil.rmtree(marker, ignore_errors=True)
                else:
                    try:
                        os.remove(marker)
                    except OSError:
                        pass
                self._simulator = 1

            if self._simulator == 0:
                disk_usage = _measure(base_dir)
            elif self._simulator == 1:
                disk_usage = _SIMULATED_HIGH
                self._simulator += 1
            else:
                disk_usage = _SIMULATED_NORMAL
                self._simulator = 0
        logger.debug("Disk usage: %d", disk_usage)
        return disk_usage