"""Tests for the session lock."""

import multiprocessing
import os
import time

import pytest
from filelock import FileLock

from nosleep.errors import LockError, LockTimeout
from nosleep.session.locking import SessionLock


def _hold_lock(lock_file, acquired, hold_seconds):
    lock = FileLock(lock_file)
    with lock:
        acquired.set()
        time.sleep(hold_seconds)


def test_lock_creation(tmp_path):
    """Test basic SessionLock creation."""
    lock = SessionLock(tmp_path / "nosleep.lock", max_wait=5.0)

    assert lock.lock_file == tmp_path / "nosleep.lock"
    assert lock.max_wait == 5.0
    assert lock.acquired_at is None
    assert lock.owner_pid is None


@pytest.mark.parametrize("max_wait", [0, 1.0, 1.000001])
def test_max_wait_must_exceed_first_phase(tmp_path, max_wait):
    with pytest.raises(ValueError, match="max_wait must exceed"):
        SessionLock(tmp_path / "nosleep.lock", max_wait=max_wait)


def test_from_config(config):
    lock = SessionLock.from_config(config)

    assert lock.lock_file == config.lock_file
    assert lock.max_wait == config.max_wait


def test_lock_acquisition_succeeds(tmp_path):
    """Test successful lock acquisition creates the lock file."""
    lock = SessionLock(tmp_path / "nosleep.lock", max_wait=2.0)

    with lock.acquire():
        assert lock.acquired_at is not None
        assert lock.owner_pid == os.getpid()
        assert lock.lock_file.exists()


def test_lock_release_on_exit(tmp_path):
    lock = SessionLock(tmp_path / "nosleep.lock", max_wait=2.0)

    with lock.acquire():
        assert lock.lock_file.exists()

    # Lock file may still exist but should be free
    assert not lock.is_lock_active()


def test_lock_release_on_exception(tmp_path):
    """Test that lock is released even if exception occurs."""
    lock = SessionLock(tmp_path / "nosleep.lock", max_wait=2.0)

    with pytest.raises(RuntimeError):
        with lock.acquire():
            raise RuntimeError("boom")

    assert not lock.is_lock_active()


def test_is_lock_active_while_held(tmp_path):
    holder = SessionLock(tmp_path / "nosleep.lock", max_wait=2.0)
    observer = SessionLock(tmp_path / "nosleep.lock", max_wait=2.0)

    assert not observer.is_lock_active()
    with holder.acquire():
        assert observer.is_lock_active()
    assert not observer.is_lock_active()


def test_timeout_after_both_phases(tmp_path):
    """Second acquisition times out after max_wait and notifies once."""
    notices = []
    holder = SessionLock(tmp_path / "nosleep.lock", max_wait=2.0)
    waiter = SessionLock(tmp_path / "nosleep.lock", max_wait=1.3, on_wait=lambda: notices.append(1))

    with holder.acquire():
        start = time.monotonic()
        with pytest.raises(LockTimeout, match="Could not acquire"):
            with waiter.acquire():
                pytest.fail("lock should not have been granted")
        elapsed = time.monotonic() - start

    assert notices == [1]
    assert 1.2 <= elapsed < 3.0
    assert waiter.owner_pid is None


def test_no_notice_when_lock_is_free(tmp_path):
    notices = []
    lock = SessionLock(tmp_path / "nosleep.lock", max_wait=2.0, on_wait=lambda: notices.append(1))

    with lock.acquire():
        pass

    assert notices == []


def test_lock_is_usable_after_timeout(tmp_path):
    """A timed-out attempt leaves no half-acquired lock behind."""
    holder = SessionLock(tmp_path / "nosleep.lock", max_wait=2.0)
    waiter = SessionLock(tmp_path / "nosleep.lock", max_wait=1.1)

    with holder.acquire():
        with pytest.raises(LockTimeout):
            with waiter.acquire():
                pass

    with waiter.acquire():
        assert waiter.owner_pid == os.getpid()


def test_second_phase_acquires_when_holder_releases(tmp_path):
    """Lock released by another process during the second phase is granted."""
    lock_file = tmp_path / "nosleep.lock"
    ctx = multiprocessing.get_context("fork")
    acquired = ctx.Event()
    proc = ctx.Process(target=_hold_lock, args=(str(lock_file), acquired, 1.5))
    proc.start()
    try:
        assert acquired.wait(10)

        notices = []
        waiter = SessionLock(lock_file, max_wait=5.0, on_wait=lambda: notices.append(1))
        with waiter.acquire():
            assert waiter.owner_pid == os.getpid()

        assert notices == [1]
    finally:
        proc.join(10)


def test_unwritable_lock_location_raises_lock_error(tmp_path):
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("")
    lock = SessionLock(blocker / "nosleep.lock", max_wait=2.0)

    with pytest.raises(LockError):
        with lock.acquire():
            pass
