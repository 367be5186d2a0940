"""Filesystem helpers shared by the services."""

from __future__ import annotations

import logging
import os
import stat
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from pathlib import Path

from archiver.models import is_number

logger = logging.getLogger(__name__)


def safe_lstat(path: Path) -> os.stat_result | None:
    """lstat that returns None for a missing path (other errors propagate)."""
    try:
        return os.lstat(path)
    except FileNotFoundError:
        return None


def lexists(path: Path) -> bool:
    """True if anything (including a dangling symlink) is at *path*."""
    return safe_lstat(path) is not None


def is_real_dir(path: Path) -> bool:
    """A directory that is not a symlink."""
    st = safe_lstat(path)
    return st is not None and stat.S_ISDIR(st.st_mode)


def canonical(path: Path) -> Path:
    """Resolve symlinks where possible; fall back to the absolute path."""
    try:
        return Path(os.path.realpath(path))
    except OSError:
        return Path(os.path.abspath(path))


def is_sub_path(parent: Path, child: Path) -> bool:
    """True if *child* lies strictly below *parent*."""
    parent, child = Path(os.path.abspath(parent)), Path(os.path.abspath(child))
    return parent != child and parent in child.parents


def is_parent_or_same(candidate: Path, target: Path) -> bool:
    return Path(os.path.abspath(candidate)) == Path(os.path.abspath(target)) or is_sub_path(
        candidate, target
    )


def numeric_children(directory: Path) -> list[int]:
    """Sorted integer names of the entries in *directory* (any type)."""
    if not directory.is_dir():
        return []
    return sorted(int(p.name) for p in directory.iterdir() if is_number(p.name))


@contextmanager
def compensating(undo: Callable[[], object], what: str = "") -> Iterator[None]:
    """Run the block; if it raises, run *undo* and re-raise the original error.

    A failing *undo* is logged, never raised over the original error.
    """
    try:
        yield
    except BaseException:
        try:
            undo()
        except OSError as exc:
            logger.warning("Rollback of %s failed: %s", what or "operation", exc)
        raise


@contextmanager
def created_dir(path: Path) -> Iterator[Path]:
    """Create *path* (parent must exist); remove it again if the block raises."""
    path.mkdir()
    with compensating(path.rmdir, what=f"mkdir {path}"):
        yield path
