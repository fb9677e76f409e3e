"""nosleep session commands."""

import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from nosleep.config import NoSleepConfig
from nosleep.controller import SessionController, SessionMode
from nosleep.errors import ConfigError, LockTimeout, NoSleepError, RegistryError
from nosleep.power import CommandPowerController
from nosleep.session.locking import SessionLock
from nosleep.session.registry import DirectoryRegistry

app = typer.Typer(help="Keep the machine awake while any registered session is alive")
console = Console()
err_console = Console(stderr=True)

logger = logging.getLogger(__name__)

LOG_LEVELS = [logging.WARNING, logging.INFO, logging.DEBUG]


def _configure_logging(verbose: int):
    level = LOG_LEVELS[min(verbose, len(LOG_LEVELS) - 1)]
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")
    logging.getLogger("nosleep").setLevel(level)


def _notify_waiting():
    err_console.print("[yellow]Another nosleep process holds the lock, waiting...[/yellow]")


def _select_mode(start: bool, end: bool, cleanup: bool, only_this: bool) -> SessionMode:
    """Map the mode flags to a SessionMode; exactly one must be set."""
    selected = [
        mode
        for mode, flag in (
            (SessionMode.START, start),
            (SessionMode.END, end),
            (SessionMode.CLEANUP, cleanup),
            (SessionMode.ONLY_THIS, only_this),
        )
        if flag
    ]
    if len(selected) != 1:
        raise typer.BadParameter(
            "Specify exactly one of --start, --end, --cleanup or --only-this"
        )
    return selected[0]


def _build_controller(config: NoSleepConfig, needs_power: bool) -> SessionController:
    """
    Prepare state paths and wire up the controller.

    Raises:
        OSError: If the state directories cannot be created
        PowerControlError: If power tooling is required but unavailable
    """
    config.ensure_paths()
    registry = DirectoryRegistry(config.registry_dir)
    registry.ensure()

    # Cleanup and status never touch the power setting
    power = None
    if needs_power:
        power = CommandPowerController.from_config(config)
        power.check_available()

    lock = SessionLock.from_config(config, on_wait=_notify_waiting)
    return SessionController(lock, registry, power)


@app.command()
def session(
    session_id: int = typer.Argument(..., help="PID of the session (usually the shell's $$)"),
    start: bool = typer.Option(False, "--start", "-s", help="Register the session and disable sleep"),
    end: bool = typer.Option(False, "--end", "-e", help="Deregister the session; restore sleep if none remain"),
    cleanup: bool = typer.Option(False, "--cleanup", "-c", help="Remove markers of dead sessions only"),
    only_this: bool = typer.Option(
        False, "--only-this", "-o", help="Drop every other session, then register this one"
    ),
    verbose: int = typer.Option(0, "--verbose", "-v", count=True, help="Increase log verbosity"),
    config_file: Optional[Path] = typer.Option(None, "--config-file", help="YAML configuration file"),
):
    """
    Start, end or clean up a keep-awake session.

    Examples:
        # From a shell login hook
        nosleep session --start $$

        # From the matching logout hook
        nosleep session --end $$

        # Recover after a crash left stale sessions behind
        nosleep session --only-this $$
    """
    mode = _select_mode(start, end, cleanup, only_this)
    if session_id <= 0:
        raise typer.BadParameter("session id must be a positive PID", param_hint="SESSION_ID")

    _configure_logging(verbose)

    try:
        config = NoSleepConfig.load(config_file)
        controller = _build_controller(config, needs_power=mode is not SessionMode.CLEANUP)
        outcome = controller.run(mode, session_id)
    except ConfigError as e:
        err_console.print(f"[red]Configuration error:[/red] {escape(str(e))}")
        raise typer.Exit(1)
    except LockTimeout as e:
        err_console.print(f"[red]Timed out waiting for lock:[/red] {escape(str(e))}")
        raise typer.Exit(1)
    except RegistryError as e:
        err_console.print(f"[red]Session registry error:[/red] {escape(str(e))}")
        raise typer.Exit(1)
    except NoSleepError as e:
        err_console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1)
    except OSError as e:
        err_console.print(f"[red]Cannot prepare state directory:[/red] {escape(str(e))}")
        raise typer.Exit(1)

    logger.info(
        f"{outcome.mode.value} {outcome.session_id}: "
        f"live sessions remain: {'yes' if outcome.live_sessions else 'no'}"
    )


@app.command()
def status(
    verbose: int = typer.Option(0, "--verbose", "-v", count=True, help="Increase log verbosity"),
    config_file: Optional[Path] = typer.Option(None, "--config-file", help="YAML configuration file"),
):
    """
    Show registered sessions and whether sleep is being held off.

    Read-only: never changes the registry or the power setting.

    Examples:
        nosleep status
    """
    _configure_logging(verbose)

    try:
        config = NoSleepConfig.load(config_file)
        controller = _build_controller(config, needs_power=False)
        sessions = controller.sessions()
    except ConfigError as e:
        err_console.print(f"[red]Configuration error:[/red] {escape(str(e))}")
        raise typer.Exit(1)
    except NoSleepError as e:
        err_console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1)
    except OSError as e:
        err_console.print(f"[red]Cannot prepare state directory:[/red] {escape(str(e))}")
        raise typer.Exit(1)

    table = Table(title="nosleep sessions")
    table.add_column("PID", style="cyan")
    table.add_column("Status")

    for session_id, alive in sessions:
        table.add_row(str(session_id), "[green]alive[/green]" if alive else "[red]dead[/red]")

    console.print(table)

    live = sum(1 for _, alive in sessions if alive)
    console.print(f"Live sessions: {live}")
    console.print(f"Registry: {config.registry_dir}")
