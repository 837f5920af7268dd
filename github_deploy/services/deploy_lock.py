"""Deploy Lock — at most one in-flight deploy per repository and branch."""

from __future__ import annotations

import logging
import threading

logger = logging.getLogger(__name__)


class DeployLock:
    """Set of deploy keys currently running.

    Owned by the application instance; acquisition never waits.
    """

    def __init__(self) -> None:
        self._running: set[str] = set()
        self._lock = threading.Lock()

    def try_acquire(self, key: str) -> bool:
        with self._lock:
            if key in self._running:
                return False
            self._running.add(key)
            return True

    def release(self, key: str) -> None:
        with self._lock:
            self._running.discard(key)

    def running(self) -> list[str]:
        with self._lock:
            return sorted(self._running)

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._running

    def __len__(self) -> int:
        with self._lock:
            return len(self._running)
