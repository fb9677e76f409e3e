"""Process-external mutual exclusion for registry transactions.

This module implements a single pessimistic file lock using the filelock
library. Every nosleep invocation holds it for the whole of its registry
transaction so concurrent invocations never interleave.
"""

from dataclasses import dataclass, field
from pathlib import Path
from datetime import datetime, timezone
from typing import Callable, Optional
from contextlib import contextmanager
import os
import logging

from filelock import FileLock, Timeout as FilelockTimeout

from nosleep.config import FIRST_WAIT_SECONDS, MIN_MAX_WAIT, NoSleepConfig
from nosleep.errors import LockError, LockTimeout

logger = logging.getLogger(__name__)

# Interval between non-blocking attempts while waiting.
POLL_INTERVAL = 0.05


@dataclass
class SessionLock:
    """The lock serializing all registry mutations.

    Acquisition is two-phase: a short first wait, then, after ``on_wait`` has
    been told the lock is busy, a second wait for the rest of ``max_wait``.

    Attributes:
        lock_file: Path to the lock file
        max_wait: Total seconds to wait for the lock
        on_wait: Called once when the first phase expires
        acquired_at: ISO timestamp when lock was acquired
        owner_pid: Process ID that owns the lock
    """

    lock_file: Path
    max_wait: float
    on_wait: Optional[Callable[[], None]] = None
    acquired_at: Optional[str] = field(default=None, init=False)
    owner_pid: Optional[int] = field(default=None, init=False)

    def __post_init__(self):
        """Validate the wait budget leaves room for the second phase."""
        if self.max_wait <= MIN_MAX_WAIT:
            raise ValueError(f"max_wait must exceed {MIN_MAX_WAIT} seconds")

    @classmethod
    def from_config(
        cls,
        config: NoSleepConfig,
        on_wait: Optional[Callable[[], None]] = None,
    ) -> "SessionLock":
        return cls(lock_file=config.lock_file, max_wait=config.max_wait, on_wait=on_wait)

    def is_lock_active(self) -> bool:
        """Check if the lock is currently held by some process.

        Returns:
            True if lock is currently held, False otherwise
        """
        if not self.lock_file.exists():
            return False

        try:
            lock = FileLock(self.lock_file)
            with lock.acquire(timeout=0, poll_interval=POLL_INTERVAL):
                return False
        except FilelockTimeout:
            return True

    def _attempt(self, lock: FileLock, timeout: float) -> bool:
        try:
            lock.acquire(timeout=timeout, poll_interval=POLL_INTERVAL)
        except FilelockTimeout:
            return False
        except OSError as e:
            raise LockError(f"Cannot open lock file {self.lock_file}: {e}") from e
        return True

    @contextmanager
    def acquire(self):
        """Acquire the lock, holding it for the duration of the block.

        The lock is released when the block exits. Callers that write to the
        registry must make those writes durable inside the block.

        Raises:
            LockTimeout: If the lock cannot be acquired within ``max_wait``
            LockError: If the lock file cannot be opened or created

        Example:
            >>> lock = SessionLock(Path("/tmp/nosleep.lock"), max_wait=5.0)
            >>> with lock.acquire():
            ...     # Exclusive access to the session registry
            ...     pass
        """
        lock = FileLock(self.lock_file)

        if not self._attempt(lock, FIRST_WAIT_SECONDS):
            logger.debug(f"Lock {self.lock_file} busy after {FIRST_WAIT_SECONDS}s, waiting longer")
            if self.on_wait is not None:
                self.on_wait()
            if not self._attempt(lock, self.max_wait - FIRST_WAIT_SECONDS):
                raise LockTimeout(
                    f"Could not acquire {self.lock_file} within {self.max_wait:g}s. "
                    f"Another nosleep process may be hung; "
                    f"check for it or increase max_wait."
                )

        self.acquired_at = datetime.now(timezone.utc).isoformat()
        self.owner_pid = os.getpid()
        logger.debug(f"Lock acquired: {self.lock_file} (PID: {self.owner_pid})")

        try:
            yield self
        finally:
            lock.release()
            logger.debug(f"Lock released: {self.lock_file}")
