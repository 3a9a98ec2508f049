"""
Run locks for Arrest Lead.

One pipeline run per county at a time. Acquisition waits a bounded
time and then gives up; there is no queueing.
"""

import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Dict, Iterator

from arrestlead.log import get_logger
from arrestlead.model import LockContention

logger = get_logger(__name__)


class RunLock(ABC):
    """
    Mutual exclusion keyed by scope (the county name).
    """

    @abstractmethod
    def try_acquire(self, scope: str, timeout: float) -> bool:
        """Wait up to timeout seconds for the scope; True when acquired."""

    @abstractmethod
    def release(self, scope: str) -> None:
        """Release a scope held by this lock."""


class LocalRunLock(RunLock):
    """
    In-process run lock, one threading.Lock per scope.
    """

    def __init__(self):
        self._locks: Dict[str, threading.Lock] = {}
        self._guard = threading.Lock()

    def _lock_for(self, scope: str) -> threading.Lock:
        with self._guard:
            if scope not in self._locks:
                self._locks[scope] = threading.Lock()
            return self._locks[scope]

    def try_acquire(self, scope: str, timeout: float) -> bool:
        lock = self._lock_for(scope)
        if timeout <= 0:
            return lock.acquire(blocking=False)
        return lock.acquire(timeout=timeout)

    def release(self, scope: str) -> None:
        lock = self._lock_for(scope)
        if lock.locked():
            lock.release()


@contextmanager
def hold(run_lock: RunLock, scope: str, timeout: float) -> Iterator[None]:
    """
    Hold a run lock for the duration of a block.

    Args:
        run_lock: Lock implementation
        scope: Scope to lock
        timeout: Seconds to wait

    Raises:
        LockContention: If the scope is still held after the wait
    """
    if not run_lock.try_acquire(scope, timeout):
        raise LockContention(f"Another run holds the lock for {scope}")
    logger.debug(f"Acquired run lock for {scope}")
    try:
        yield
    finally:
        run_lock.release(scope)
        logger.debug(f"Released run lock for {scope}")
