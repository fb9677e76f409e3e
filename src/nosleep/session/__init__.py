"""Session bookkeeping: lock, registry, liveness and cleanup."""

from .locking import SessionLock
from .registry import SessionRegistry, DirectoryRegistry, MemoryRegistry
from .liveness import is_alive
from .cleanup import cleanup

__all__ = [
    "SessionLock",
    "SessionRegistry",
    "DirectoryRegistry",
    "MemoryRegistry",
    "is_alive",
    "cleanup",
]
