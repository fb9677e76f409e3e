"""
nosleep configuration.

Handles loading of the optional YAML configuration file and environment
overrides, and the creation of the shared state directory that holds the lock
file and the session registry.
"""

import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

import yaml

from nosleep.errors import ConfigError

# Phase one of lock acquisition always waits this long before notifying the user.
FIRST_WAIT_SECONDS = 1.0

# max_wait must leave a positive budget for the second acquisition phase.
MIN_MAX_WAIT = 1.000001

DEFAULT_MAX_WAIT = 5.0
DEFAULT_SLEEP_MINUTES = 10

LOCK_FILE_NAME = "nosleep.lock"
REGISTRY_DIR_NAME = "sessions"


def default_state_dir() -> Path:
    """Per-user scratch directory shared by every invocation."""
    uid = os.getuid() if hasattr(os, "getuid") else 0
    return Path(tempfile.gettempdir()) / f"nosleep-{uid}"


def default_config_file() -> Path:
    return Path.home() / ".config" / "nosleep" / "config.yaml"


@dataclass
class NoSleepConfig:
    """
    nosleep configuration.

    Attributes:
        state_dir: Directory holding the lock file and the session registry
        max_wait: Total seconds to wait for the lock (default: 5.0)
        use_sudo: Prefix power commands with sudo when not running as root
        default_sleep_minutes: Idle sleep timer restored on macOS when the last
            session ends (default: 10)
        disable_commands: Command lines that disable sleep (platform default if None)
        restore_commands: Command lines that restore sleep (platform default if None)
    """

    state_dir: Path = field(default_factory=default_state_dir)
    max_wait: float = DEFAULT_MAX_WAIT
    use_sudo: bool = True
    default_sleep_minutes: int = DEFAULT_SLEEP_MINUTES
    disable_commands: Optional[List[List[str]]] = None
    restore_commands: Optional[List[List[str]]] = None

    def __post_init__(self):
        """Validate constraints and normalize paths."""
        self.state_dir = Path(self.state_dir).expanduser()

        try:
            self.max_wait = float(self.max_wait)
        except (TypeError, ValueError):
            raise ConfigError(f"max_wait must be a number, got {self.max_wait!r}")
        if self.max_wait <= MIN_MAX_WAIT:
            raise ConfigError(
                f"max_wait must exceed {MIN_MAX_WAIT} seconds (got {self.max_wait})"
            )

        self.use_sudo = _parse_bool("use_sudo", self.use_sudo)

        if not isinstance(self.default_sleep_minutes, int) or self.default_sleep_minutes < 0:
            raise ConfigError(
                f"default_sleep_minutes must be a non-negative integer "
                f"(got {self.default_sleep_minutes!r})"
            )

        self.disable_commands = _validate_commands("disable_commands", self.disable_commands)
        self.restore_commands = _validate_commands("restore_commands", self.restore_commands)

    @property
    def lock_file(self) -> Path:
        return self.state_dir / LOCK_FILE_NAME

    @property
    def registry_dir(self) -> Path:
        return self.state_dir / REGISTRY_DIR_NAME

    @classmethod
    def load(cls, config_file: Optional[Path] = None) -> "NoSleepConfig":
        """
        Load configuration from a YAML file and the environment.

        The file is taken from ``config_file``, else ``$NOSLEEP_CONFIG``, else
        ``~/.config/nosleep/config.yaml``. A missing file means defaults, unless
        it was named explicitly. Environment variables override file values.

        Args:
            config_file: Explicit path to a YAML configuration file

        Returns:
            NoSleepConfig instance with loaded/default values

        Raises:
            ConfigError: If the file or an environment value is invalid
        """
        explicit = config_file is not None or "NOSLEEP_CONFIG" in os.environ
        if config_file is None:
            config_file = Path(os.environ.get("NOSLEEP_CONFIG", default_config_file()))
        config_file = Path(config_file).expanduser()

        config_dict = {}

        if config_file.exists():
            try:
                with open(config_file) as f:
                    config_dict = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigError(f"Invalid config file {config_file}: {e}") from e
            except OSError as e:
                raise ConfigError(f"Cannot read config file {config_file}: {e}") from e
            if not isinstance(config_dict, dict):
                raise ConfigError(f"Invalid config file {config_file}: expected a mapping")
        elif explicit:
            raise ConfigError(f"Config file not found: {config_file}")

        # Environment variables override config file
        if "NOSLEEP_STATE_DIR" in os.environ:
            config_dict["state_dir"] = os.environ["NOSLEEP_STATE_DIR"]

        if "NOSLEEP_MAX_WAIT" in os.environ:
            try:
                config_dict["max_wait"] = float(os.environ["NOSLEEP_MAX_WAIT"])
            except ValueError:
                raise ConfigError(
                    f"Invalid NOSLEEP_MAX_WAIT: {os.environ['NOSLEEP_MAX_WAIT']}. "
                    "Must be a number."
                )

        if "NOSLEEP_USE_SUDO" in os.environ:
            config_dict["use_sudo"] = os.environ["NOSLEEP_USE_SUDO"].lower() in ("true", "1", "yes")

        return cls(**{k: v for k, v in config_dict.items() if k in cls.__annotations__})

    def ensure_paths(self) -> None:
        """
        Create the state directory and the registry directory if absent.

        Safe to call repeatedly.

        Raises:
            OSError: If a directory cannot be created
        """
        self.state_dir.mkdir(mode=0o700, parents=True, exist_ok=True)
        self.registry_dir.mkdir(parents=True, exist_ok=True)


def _parse_bool(name: str, value) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("true", "1", "yes", "on"):
            return True
        if lowered in ("false", "0", "no", "off"):
            return False
    raise ConfigError(f"{name} must be a boolean, got {value!r}")


def _validate_commands(name: str, commands) -> Optional[List[List[str]]]:
    if commands is None:
        return None
    if not isinstance(commands, list) or not all(
        isinstance(cmd, list) and cmd and all(isinstance(arg, str) for arg in cmd)
        for cmd in commands
    ):
        raise ConfigError(f"{name} must be a list of non-empty argument lists")
    return commands
