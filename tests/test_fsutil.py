"""Tests for archiver.fsutil — path predicates and the compensating-action helper."""

from pathlib import Path

import pytest

from archiver.fsutil import (
    compensating,
    created_dir,
    is_parent_or_same,
    is_real_dir,
    is_sub_path,
    lexists,
    numeric_children,
)


class TestPredicates:
    def test_lexists_sees_dangling_symlink(self, tmp_path: Path):
        link = tmp_path / "dangling"
        link.symlink_to(tmp_path / "missing")
        assert lexists(link)
        assert not link.exists()

    def test_is_real_dir(self, tmp_path: Path):
        real = tmp_path / "d"
        real.mkdir()
        link = tmp_path / "l"
        link.symlink_to(real)
        assert is_real_dir(real)
        assert not is_real_dir(link)
        assert not is_real_dir(tmp_path / "none")

    def test_sub_path(self, tmp_path: Path):
        assert is_sub_path(tmp_path, tmp_path / "a" / "b")
        assert not is_sub_path(tmp_path, tmp_path)
        assert not is_sub_path(tmp_path / "a", tmp_path / "ab")

    def test_parent_or_same(self, tmp_path: Path):
        assert is_parent_or_same(tmp_path, tmp_path)
        assert is_parent_or_same(tmp_path, tmp_path / "x")
        assert not is_parent_or_same(tmp_path / "x", tmp_path)

    def test_numeric_children(self, tmp_path: Path):
        for name in ("10", "2", "notes"):
            (tmp_path / name).mkdir()
        (tmp_path / "7").write_text("")
        assert numeric_children(tmp_path) == [2, 7, 10]
        assert numeric_children(tmp_path / "missing") == []


class TestCompensating:
    def test_undo_runs_on_failure(self):
        undone = []
        with pytest.raises(RuntimeError):
            with compensating(lambda: undone.append(True)):
                raise RuntimeError("mutation failed")
        assert undone == [True]

    def test_undo_skipped_on_success(self):
        undone = []
        with compensating(lambda: undone.append(True)):
            pass
        assert undone == []

    def test_failing_undo_keeps_original_error(self):
        def bad_undo():
            raise OSError("undo failed")

        with pytest.raises(RuntimeError, match="original"):
            with compensating(bad_undo):
                raise RuntimeError("original")

    def test_created_dir_removed_on_failure(self, tmp_path: Path):
        target = tmp_path / "slot"
        with pytest.raises(OSError):
            with created_dir(target):
                assert target.is_dir()
                raise OSError("rename failed")
        assert not target.exists()

    def test_created_dir_kept_on_success(self, tmp_path: Path):
        with created_dir(tmp_path / "slot") as path:
            (path / "obj").write_text("x")
        assert (tmp_path / "slot" / "obj").exists()

    def test_created_dir_refuses_existing(self, tmp_path: Path):
        (tmp_path / "slot").mkdir()
        with pytest.raises(FileExistsError):
            with created_dir(tmp_path / "slot"):
                pass  # pragma: no cover
