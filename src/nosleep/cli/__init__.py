"""nosleep command-line interface."""

from .commands.session import app

__all__ = ["app"]
