"""Tests for archiver.filelock — exclusive store lock."""

from __future__ import annotations

import fcntl
import os
from pathlib import Path

import pytest

from archiver.filelock import LockTimeout, store_lock


def test_creates_lock_file_with_pid(tmp_path: Path) -> None:
    lock_path = tmp_path / "store" / "store.lock"
    with store_lock(lock_path) as held:
        assert held == lock_path
        assert lock_path.read_text().strip() == str(os.getpid())


def test_released_on_exception(tmp_path: Path) -> None:
    lock_path = tmp_path / "store.lock"
    with pytest.raises(ValueError):
        with store_lock(lock_path):
            raise ValueError("boom")

    with store_lock(lock_path, timeout=0):
        pass


def test_sequential_acquires(tmp_path: Path) -> None:
    lock_path = tmp_path / "store.lock"
    for _ in range(3):
        with store_lock(lock_path, timeout=0):
            pass


def test_timeout_names_holder(tmp_path: Path) -> None:
    """A second holder (simulated with a raw flock) makes the acquire time out."""
    lock_path = tmp_path / "store.lock"
    lock_path.write_text("4242\n")
    blocker = open(lock_path, "r")
    fcntl.flock(blocker, fcntl.LOCK_EX | fcntl.LOCK_NB)
    try:
        with pytest.raises(LockTimeout) as exc_info:
            with store_lock(lock_path, timeout=0.15):
                pass  # pragma: no cover
    finally:
        fcntl.flock(blocker, fcntl.LOCK_UN)
        blocker.close()

    assert exc_info.value.holder == 4242
    assert "4242" in str(exc_info.value)
    assert lock_path.read_text() == "4242\n"


def test_timeout_zero_is_single_attempt(tmp_path: Path) -> None:
    lock_path = tmp_path / "store.lock"
    lock_path.touch()
    blocker = open(lock_path, "r")
    fcntl.flock(blocker, fcntl.LOCK_EX | fcntl.LOCK_NB)
    try:
        with pytest.raises(LockTimeout) as exc_info:
            with store_lock(lock_path, timeout=0):
                pass  # pragma: no cover
    finally:
        fcntl.flock(blocker, fcntl.LOCK_UN)
        blocker.close()
    assert exc_info.value.holder is None


def test_lock_timeout_is_os_error() -> None:
    assert issubclass(LockTimeout, OSError)
