"""Exclusive ownership of a store root via fcntl.flock.

One invocation holds ``<root>/store.lock`` from start to finish and
writes its pid into the file, so a waiting invocation can say whom it
is waiting for. flock dies with the file descriptor: a crashed holder
never leaves a stale lock, only a stale pid.

NOT reentrant: a second acquire in the same process opens a new
descriptor and waits on the first until it times out.
"""

from __future__ import annotations

import errno
import fcntl
import logging
import os
import time
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import IO

logger = logging.getLogger("archiver")

# Another invocation holding the store longer than this is treated as stuck.
DEFAULT_LOCK_TIMEOUT = 10.0

_POLL_INTERVAL = 0.05


class LockTimeout(OSError):
    """The store lock was not released within the timeout."""

    def __init__(self, lock_path: Path, timeout: float, holder: int | None = None):
        held_by = f" (held by pid {holder})" if holder else ""
        super().__init__(
            f"Store lock {lock_path}{held_by} was not released within {timeout:.1f}s. "
            f"Wait for the other archiver invocation to finish, or check that it is not stuck."
        )
        self.lock_path = lock_path
        self.timeout = timeout
        self.holder = holder


def _try_lock(fp: IO[str]) -> bool:
    try:
        fcntl.flock(fp, fcntl.LOCK_EX | fcntl.LOCK_NB)
    except OSError as exc:
        if exc.errno in (errno.EWOULDBLOCK, errno.EAGAIN):
            return False
        raise
    return True


def _read_holder(fp: IO[str]) -> int | None:
    fp.seek(0)
    text = fp.read().strip()
    return int(text) if text.isdigit() else None


@contextmanager
def store_lock(lock_path: Path, timeout: float = DEFAULT_LOCK_TIMEOUT) -> Iterator[Path]:
    """Hold an exclusive flock on *lock_path* for the duration of the block.

    Args:
        lock_path: The lock file itself; created if missing.
        timeout: Maximum seconds to wait (0 = one non-blocking attempt).

    Raises:
        LockTimeout: If the lock is not acquired within *timeout* seconds.
    """
    lock_path.parent.mkdir(parents=True, exist_ok=True)
    # a+ so a waiter never truncates the holder's pid
    fp = open(lock_path, "a+", encoding="utf-8")  # noqa: SIM115
    try:
        deadline = time.monotonic() + timeout
        while not _try_lock(fp):
            if time.monotonic() >= deadline:
                holder = _read_holder(fp)
                logger.warning("Gave up waiting for %s (holder pid %s)", lock_path, holder)
                raise LockTimeout(lock_path, timeout, holder)
            time.sleep(_POLL_INTERVAL)

        fp.seek(0)
        fp.truncate()
        fp.write(f"{os.getpid()}\n")
        fp.flush()
        logger.debug("Store lock acquired: %s", lock_path)
        try:
            yield lock_path
        finally:
            fcntl.flock(fp, fcntl.LOCK_UN)
            logger.debug("Store lock released: %s", lock_path)
    finally:
        fp.close()
