"""Removal of stale session markers."""

import logging
from typing import Callable

from nosleep.session.liveness import is_alive as default_is_alive
from nosleep.session.registry import SessionRegistry

logger = logging.getLogger(__name__)


def cleanup(
    registry: SessionRegistry,
    delete_all: bool = False,
    is_alive: Callable[[int], bool] = default_is_alive,
) -> bool:
    """
    Prune the registry and report whether any live session remains.

    Every registered session is examined. With ``delete_all`` its marker is
    removed unconditionally; otherwise it is removed only when its process is
    dead. Removal failures are logged and the enumeration continues.

    Args:
        registry: Session registry to prune (caller holds the lock)
        delete_all: Remove every marker regardless of liveness
        is_alive: Liveness probe

    Returns:
        True if at least one live session remains, False otherwise
    """
    live_remaining = False

    for session_id in registry.list():
        if not delete_all and is_alive(session_id):
            live_remaining = True
            continue

        try:
            registry.remove(session_id)
            logger.info(f"Removed session {session_id}")
        except OSError as e:
            logger.warning(f"Failed to remove session {session_id}: {e}")
            # A marker we could not delete still counts if its owner is running
            if is_alive(session_id):
                live_remaining = True

    return live_remaining
