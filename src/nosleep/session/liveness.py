"""Process liveness probe for registered sessions."""

import os


def is_alive(session_id: int) -> bool:
    """
    Check whether the process owning a session is alive.

    Sends signal 0, which performs the existence and permission checks
    without delivering anything.

    A process owned by another user (permission denied) is reported as not
    alive, and a PID recycled by an unrelated process is reported as alive.
    Both are known limitations of PID-keyed sessions.

    Args:
        session_id: Process ID to check

    Returns:
        True if the process exists and can be signalled, False otherwise
    """
    # 0 and negative PIDs address process groups
    if session_id <= 0:
        return False

    try:
        os.kill(session_id, 0)
        return True
    except ProcessLookupError:
        return False
    except PermissionError:
        return False
    except OSError:
        # Other OS error (treat as not running)
        return False
