"""Shared fixtures for nosleep tests."""

import subprocess
import sys

import pytest

from nosleep.config import NoSleepConfig


class RecordingPower:
    """PowerController that records calls instead of touching the machine."""

    def __init__(self):
        self.calls = []

    def disable_sleep(self):
        self.calls.append("disable_sleep")

    def restore_defaults(self):
        self.calls.append("restore_defaults")


@pytest.fixture
def power():
    return RecordingPower()


@pytest.fixture
def config(tmp_path):
    """Configuration rooted in a private temporary state directory."""
    config = NoSleepConfig(state_dir=tmp_path / "state", max_wait=1.5, use_sudo=False)
    config.ensure_paths()
    return config


@pytest.fixture
def dead_pid():
    """PID of a process that has already exited and been reaped."""
    proc = subprocess.Popen([sys.executable, "-c", "pass"])
    proc.wait()
    return proc.pid


@pytest.fixture
def live_pid():
    """PID of a helper process that stays alive for the duration of the test."""
    proc = subprocess.Popen([sys.executable, "-c", "import time; time.sleep(60)"])
    try:
        yield proc.pid
    finally:
        proc.kill()
        proc.wait()


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    """Keep user configuration and environment out of the tests."""
    for name in ("NOSLEEP_CONFIG", "NOSLEEP_STATE_DIR", "NOSLEEP_MAX_WAIT", "NOSLEEP_USE_SUDO"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
