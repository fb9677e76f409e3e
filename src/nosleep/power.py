"""Machine power-setting control.

The controller only decides *when* sleep is disabled or restored; the actual
work is delegated to a ``PowerController``. The default implementation runs
the platform's power-management commands (``pmset`` on macOS, ``systemctl``
on Linux).
"""

import logging
import os
import platform
import shutil
import subprocess
from typing import List, Optional, Protocol

from nosleep.config import NoSleepConfig
from nosleep.errors import PowerControlError

logger = logging.getLogger(__name__)

SLEEP_TARGETS = ["sleep.target", "suspend.target", "hibernate.target", "hybrid-sleep.target"]


class PowerController(Protocol):
    """Capability to change the machine's sleep setting."""

    def disable_sleep(self) -> None:
        ...

    def restore_defaults(self) -> None:
        ...


def platform_commands(system: str, default_sleep_minutes: int):
    """
    Default (disable, restore) command lines for an operating system.

    Args:
        system: ``platform.system()`` value
        default_sleep_minutes: Idle sleep timer restored on macOS

    Returns:
        Tuple of (disable_commands, restore_commands)

    Raises:
        PowerControlError: If the platform has no known power commands
    """
    if system == "Darwin":
        return (
            [
                ["pmset", "-a", "disablesleep", "1"],
                ["pmset", "-a", "sleep", "0"],
            ],
            [
                ["pmset", "-a", "disablesleep", "0"],
                ["pmset", "-a", "sleep", str(default_sleep_minutes)],
            ],
        )
    if system == "Linux":
        return (
            [["systemctl", "mask", "--runtime", *SLEEP_TARGETS]],
            [["systemctl", "unmask", "--runtime", *SLEEP_TARGETS]],
        )
    raise PowerControlError(
        f"Unsupported platform: {system or 'unknown'}. "
        "Set disable_commands and restore_commands in the config file."
    )


class CommandPowerController:
    """Runs external commands to disable and restore sleep.

    Command exit status is not fatal: a failing command is logged as a warning
    and the transaction carries on.
    """

    def __init__(
        self,
        disable_commands: List[List[str]],
        restore_commands: List[List[str]],
        use_sudo: bool = False,
    ):
        self.disable_commands = disable_commands
        self.restore_commands = restore_commands
        self.use_sudo = use_sudo

    @classmethod
    def from_config(cls, config: NoSleepConfig, system: Optional[str] = None) -> "CommandPowerController":
        """Build a controller from configured or platform-default commands."""
        disable_commands = config.disable_commands
        restore_commands = config.restore_commands
        if disable_commands is None or restore_commands is None:
            default_disable, default_restore = platform_commands(
                system if system is not None else platform.system(),
                config.default_sleep_minutes,
            )
            disable_commands = disable_commands if disable_commands is not None else default_disable
            restore_commands = restore_commands if restore_commands is not None else default_restore

        use_sudo = config.use_sudo and hasattr(os, "geteuid") and os.geteuid() != 0
        return cls(disable_commands, restore_commands, use_sudo=use_sudo)

    def _argv(self, command: List[str]) -> List[str]:
        return ["sudo", *command] if self.use_sudo else list(command)

    def check_available(self) -> None:
        """
        Verify every required executable is on PATH.

        Raises:
            PowerControlError: If an executable is missing
        """
        executables = [command[0] for command in self.disable_commands + self.restore_commands]
        if self.use_sudo:
            executables.insert(0, "sudo")
        for executable in executables:
            if shutil.which(executable) is None:
                raise PowerControlError(f"Required command not found: {executable}")

    def _run(self, commands: List[List[str]]) -> None:
        for command in commands:
            argv = self._argv(command)
            logger.info(f"Running: {' '.join(argv)}")
            try:
                result = subprocess.run(argv, capture_output=True, text=True)
            except OSError as e:
                logger.warning(f"Could not run {argv[0]}: {e}")
                continue
            if result.returncode != 0:
                logger.warning(
                    f"{' '.join(argv)} exited with status {result.returncode}: "
                    f"{result.stderr.strip()}"
                )

    def disable_sleep(self) -> None:
        self._run(self.disable_commands)

    def restore_defaults(self) -> None:
        self._run(self.restore_commands)
