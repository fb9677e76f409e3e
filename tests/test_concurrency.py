"""Concurrent invocations in separate processes against one registry."""

import multiprocessing

from nosleep.config import NoSleepConfig
from nosleep.controller import SessionController, SessionMode
from nosleep.session.locking import SessionLock
from nosleep.session.registry import DirectoryRegistry

WORKERS = 12
SESSIONS_PER_WORKER = 5


class NullPower:
    def disable_sleep(self):
        pass

    def restore_defaults(self):
        pass


def _always_alive(session_id):
    return True


def _worker(state_dir, first_id):
    config = NoSleepConfig(state_dir=state_dir, max_wait=30.0, use_sudo=False)
    controller = SessionController(
        SessionLock.from_config(config),
        DirectoryRegistry(config.registry_dir),
        NullPower(),
        is_alive=_always_alive,
    )
    for session_id in range(first_id, first_id + SESSIONS_PER_WORKER):
        controller.run(SessionMode.START, session_id)
        if session_id % 2 == 0:
            controller.run(SessionMode.END, session_id)


def test_concurrent_start_end_on_disjoint_ids(config):
    ctx = multiprocessing.get_context("fork")
    first_ids = [1000 + i * SESSIONS_PER_WORKER for i in range(WORKERS)]
    procs = [ctx.Process(target=_worker, args=(str(config.state_dir), first)) for first in first_ids]

    for proc in procs:
        proc.start()
    for proc in procs:
        proc.join(60)

    assert [proc.exitcode for proc in procs] == [0] * WORKERS

    started = {sid for first in first_ids for sid in range(first, first + SESSIONS_PER_WORKER)}
    expected = {sid for sid in started if sid % 2 != 0}
    assert set(DirectoryRegistry(config.registry_dir).list()) == expected
