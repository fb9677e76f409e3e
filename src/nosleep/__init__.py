"""
nosleep: keep the machine awake while any registered session is alive.

Sessions (typically login shells, keyed by PID) register when they start and
deregister when they end. Sleep is disabled while any registered session is
alive and restored when the last one goes away. There is no daemon: state
lives in a lock file and a directory of per-session markers.

Architecture:
- config.py: Configuration loading and state directory setup
- session/: Lock, session registry, liveness probe and cleanup
- controller.py: Locked start/end/cleanup transactions
- power.py: Platform power-management commands
- cli/: Typer command-line interface
"""

__all__ = ["NoSleepConfig", "SessionController", "SessionMode"]

from .config import NoSleepConfig
from .controller import SessionController, SessionMode
