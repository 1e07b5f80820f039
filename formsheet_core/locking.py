"""
Exclusive Lock - Bounded-wait mutex guarding the shared tabular store

A single coarse lock serializes every read-last-row / write-next-row sequence.
Within one process a ``threading.Lock`` is used; stores backed by a file also
take a ``filelock.FileLock`` so several server processes can share the file.
Both are acquired under the same deadline and released on every exit path.
"""

import logging
import threading
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional, Union

from filelock import FileLock, Timeout

from .errors import LockTimeoutError

logger = logging.getLogger(__name__)


class ExclusiveLock:
    """
    Process-wide (and optionally cross-process) exclusive lock.

    Example:
        lock = ExclusiveLock(Path("reponses.xlsx.lock"))
        with lock.hold(timeout=30):
            ...
    """

    def __init__(self, lock_path: Optional[Union[str, Path]] = None):
        self._thread_lock = threading.Lock()
        self._file_lock: Optional[FileLock] = None
        self.lock_path = Path(lock_path) if lock_path else None
        if self.lock_path is not None:
            self.lock_path.parent.mkdir(parents=True, exist_ok=True)
            self._file_lock = FileLock(str(self.lock_path))

    @property
    def locked(self) -> bool:
        return self._thread_lock.locked()

    def acquire(self, timeout: float) -> None:
        """
        Acquire the lock, waiting at most ``timeout`` seconds.

        Raises:
            LockTimeoutError: if the lock could not be acquired in time
        """
        deadline = time.monotonic() + timeout

        if not self._thread_lock.acquire(timeout=timeout):
            logger.warning(f"Store lock not acquired within {timeout:.1f}s")
            raise LockTimeoutError()

        if self._file_lock is None:
            return

        remaining = max(0.0, deadline - time.monotonic())
        try:
            self._file_lock.acquire(timeout=remaining)
        except Timeout:
            self._thread_lock.release()
            logger.warning(f"File lock {self.lock_path} not acquired within {timeout:.1f}s")
            raise LockTimeoutError()

    def release(self) -> None:
        """Release the lock (file lock first, then the in-process lock)."""
        try:
            if self._file_lock is not None and self._file_lock.is_locked:
                self._file_lock.release()
        finally:
            self._thread_lock.release()

    @contextmanager
    def hold(self, timeout: float) -> Iterator[None]:
        """Scoped acquisition: the lock is released however the block exits."""
        self.acquire(timeout)
        try:
            yield
        finally:
            self.release()
