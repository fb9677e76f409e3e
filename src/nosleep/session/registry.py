"""Session registry: the set of session markers currently registered.

A session is registered by a zero-byte marker named after its PID. The
registry is an explicit set abstraction so the filesystem store can be
swapped for an in-memory one in tests.
"""

import errno
import os
import re
import stat
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Iterator, Set

from nosleep.errors import RegistryError

logger = logging.getLogger(__name__)

# Never follow a symlink at the marker path; never block on a FIFO
_MARKER_FLAGS = os.O_WRONLY | os.O_CREAT | os.O_NOFOLLOW | os.O_NONBLOCK

# Canonical decimal PIDs only: no sign, no leading zeros
_SESSION_NAME = re.compile(r"[1-9][0-9]*")


def validate_session_id(session_id: int) -> int:
    """Return ``session_id`` if it is a positive integer PID.

    Raises:
        ValueError: If the identifier is not a positive integer
    """
    if isinstance(session_id, bool) or not isinstance(session_id, int) or session_id <= 0:
        raise ValueError(f"Session id must be a positive integer, got {session_id!r}")
    return session_id


class SessionRegistry(ABC):
    """Set of registered session identifiers."""

    @abstractmethod
    def ensure(self) -> None:
        """Create the backing store if absent. Idempotent."""

    @abstractmethod
    def add(self, session_id: int) -> None:
        """Register ``session_id``. Registering an existing id is not an error."""

    @abstractmethod
    def remove(self, session_id: int) -> bool:
        """Deregister ``session_id``.

        Returns:
            True if the marker existed, False otherwise

        Raises:
            OSError: If the marker exists but cannot be removed
        """

    @abstractmethod
    def list(self) -> Iterator[int]:
        """Lazily iterate over the registered session ids (one-shot)."""

    def sync(self) -> None:
        """Make pending mutations durable."""

    def __contains__(self, session_id: int) -> bool:
        return any(sid == session_id for sid in self.list())


class DirectoryRegistry(SessionRegistry):
    """Registry stored as marker files in a directory."""

    def __init__(self, path: Path):
        """
        Initialize directory registry.

        Args:
            path: Directory holding one marker file per session
        """
        self.path = Path(path)

    def __repr__(self) -> str:
        return f"DirectoryRegistry({str(self.path)!r})"

    def marker(self, session_id: int) -> Path:
        """Filesystem path of the marker for ``session_id``."""
        return self.path / str(validate_session_id(session_id))

    def ensure(self) -> None:
        self.path.mkdir(parents=True, exist_ok=True)

    def add(self, session_id: int) -> None:
        """Create the marker for ``session_id`` as a plain file.

        A symlink at the marker path is replaced, never followed.

        Raises:
            RegistryError: If the marker path holds something that is not a
                plain file (a directory, a FIFO) or cannot be created
        """
        marker = self.marker(session_id)
        try:
            fd = os.open(marker, _MARKER_FLAGS, 0o644)
        except OSError as e:
            if e.errno != errno.ELOOP:
                raise RegistryError(f"Cannot create session marker {marker}: {e}") from e
            logger.warning(f"Replacing symlink at session marker {marker}")
            try:
                marker.unlink()
                fd = os.open(marker, _MARKER_FLAGS | os.O_EXCL, 0o644)
            except OSError as e:
                raise RegistryError(f"Cannot create session marker {marker}: {e}") from e

        try:
            if not stat.S_ISREG(os.fstat(fd).st_mode):
                raise RegistryError(f"Session marker {marker} is not a regular file")
        finally:
            os.close(fd)
        logger.debug(f"Added marker {marker}")

    def remove(self, session_id: int) -> bool:
        marker = self.marker(session_id)
        try:
            marker.unlink()
        except FileNotFoundError:
            return False
        logger.debug(f"Removed marker {marker}")
        return True

    def list(self) -> Iterator[int]:
        with os.scandir(self.path) as entries:
            for entry in entries:
                if not _SESSION_NAME.fullmatch(entry.name):
                    continue
                if not entry.is_file(follow_symlinks=False):
                    logger.debug(f"Ignoring non-file registry entry {entry.path}")
                    continue
                yield int(entry.name)

    def sync(self) -> None:
        """fsync the registry directory so created and removed markers persist."""
        fd = os.open(self.path, os.O_RDONLY)
        try:
            os.fsync(fd)
        finally:
            os.close(fd)


class MemoryRegistry(SessionRegistry):
    """Registry kept in memory, for tests and dry runs."""

    def __init__(self, session_ids=()):
        self.sessions: Set[int] = {validate_session_id(sid) for sid in session_ids}

    def __repr__(self) -> str:
        return f"MemoryRegistry({sorted(self.sessions)!r})"

    def ensure(self) -> None:
        pass

    def add(self, session_id: int) -> None:
        self.sessions.add(validate_session_id(session_id))

    def remove(self, session_id: int) -> bool:
        session_id = validate_session_id(session_id)
        if session_id not in self.sessions:
            return False
        self.sessions.discard(session_id)
        return True

    def list(self) -> Iterator[int]:
        # Snapshot so removals during iteration are safe
        return iter(sorted(self.sessions))
