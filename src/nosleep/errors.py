"""Exception hierarchy for nosleep."""


class NoSleepError(Exception):
    """Base class for fatal nosleep errors."""
    pass


class ConfigError(NoSleepError, ValueError):
    """Raised when configuration is missing, malformed or violates a constraint."""
    pass


class LockError(NoSleepError):
    """Raised when the lock file cannot be opened or created."""
    pass


class LockTimeout(LockError):
    """Raised when lock acquisition times out."""
    pass


class PowerControlError(NoSleepError):
    """Raised when the power-management tooling is unavailable on this host."""
    pass


class RegistryError(NoSleepError):
    """Raised when a session marker cannot be created as a plain file."""
    pass
