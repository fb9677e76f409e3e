"""Session controller: one registry transaction per invocation."""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Tuple

from nosleep.power import PowerController
from nosleep.session.cleanup import cleanup
from nosleep.session.liveness import is_alive as default_is_alive
from nosleep.session.locking import SessionLock
from nosleep.session.registry import SessionRegistry, validate_session_id

logger = logging.getLogger(__name__)


class SessionMode(str, Enum):
    """Operation performed by an invocation. Exactly one per invocation."""

    START = "start"
    END = "end"
    CLEANUP = "cleanup"
    ONLY_THIS = "only-this"


@dataclass
class SessionOutcome:
    """Result of one controller transaction."""

    mode: SessionMode
    session_id: int
    live_sessions: bool
    sleep_disabled: bool = False
    sleep_restored: bool = False


class SessionController:
    """
    Coordinates the shared sleep setting across sessions.

    Every mode runs as a single transaction under the session lock. The
    registry is synced before the lock is released.

    ``power`` may be None when only CLEANUP runs or sessions are listed.
    """

    def __init__(
        self,
        lock: SessionLock,
        registry: SessionRegistry,
        power: Optional[PowerController],
        is_alive: Callable[[int], bool] = default_is_alive,
    ):
        self.lock = lock
        self.registry = registry
        self.power = power
        self.is_alive = is_alive

    def run(self, mode: SessionMode, session_id: int) -> SessionOutcome:
        """
        Run ``mode`` for ``session_id`` as one locked transaction.

        Args:
            mode: Operation to perform
            session_id: PID identifying the calling session

        Returns:
            SessionOutcome describing what happened

        Raises:
            LockTimeout: If the lock cannot be acquired in time
            LockError: If the lock file cannot be opened
        """
        mode = SessionMode(mode)
        validate_session_id(session_id)
        if self.power is None and mode is not SessionMode.CLEANUP:
            raise ValueError(f"{mode.value} requires a power controller")

        with self.lock.acquire():
            try:
                outcome = self._dispatch(mode, session_id)
            except BaseException:
                # Persist partial progress, but never mask the original error
                try:
                    self.registry.sync()
                except OSError as e:
                    logger.warning(f"Failed to sync session registry: {e}")
                raise
            self.registry.sync()
            return outcome

    def _dispatch(self, mode: SessionMode, session_id: int) -> SessionOutcome:
        if mode is SessionMode.START:
            return self._start(session_id, mode)
        if mode is SessionMode.END:
            return self._end(session_id)
        if mode is SessionMode.CLEANUP:
            live = self._cleanup(delete_all=False)
            return SessionOutcome(mode, session_id, live_sessions=live)
        if mode is SessionMode.ONLY_THIS:
            self._cleanup(delete_all=True)
            return self._start(session_id, mode)
        raise ValueError(f"Unknown mode: {mode}")

    def _cleanup(self, delete_all: bool) -> bool:
        return cleanup(self.registry, delete_all=delete_all, is_alive=self.is_alive)

    def _start(self, session_id: int, mode: SessionMode) -> SessionOutcome:
        self.registry.add(session_id)
        logger.info(f"Registered session {session_id}")
        self.power.disable_sleep()
        live = self._cleanup(delete_all=False)
        return SessionOutcome(mode, session_id, live_sessions=live, sleep_disabled=True)

    def _end(self, session_id: int) -> SessionOutcome:
        try:
            if self.registry.remove(session_id):
                logger.info(f"Deregistered session {session_id}")
            else:
                logger.warning(f"Session {session_id} was not registered")
        except OSError as e:
            logger.warning(f"Failed to deregister session {session_id}: {e}")

        live = self._cleanup(delete_all=False)
        if live:
            return SessionOutcome(SessionMode.END, session_id, live_sessions=True)

        logger.info("No live sessions remain, restoring sleep defaults")
        self.power.restore_defaults()
        return SessionOutcome(SessionMode.END, session_id, live_sessions=False, sleep_restored=True)

    def sessions(self) -> List[Tuple[int, bool]]:
        """
        Snapshot the registry under the lock without modifying it.

        Returns:
            Sorted list of (session_id, alive) tuples
        """
        with self.lock.acquire():
            return sorted((sid, self.is_alive(sid)) for sid in self.registry.list())
