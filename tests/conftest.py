"""Shared test fixtures for archiver."""

from pathlib import Path

import pytest

from archiver.context import ArchiverContext, create_context
from archiver.paths import ROOT_ENV
from archiver.store import MetadataStore


@pytest.fixture(autouse=True)
def _isolated_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Never touch the real ~/.archiver, whatever a test forgets to pass."""
    monkeypatch.setenv(ROOT_ENV, str(tmp_path / "default-home"))
    monkeypatch.delenv("ARV_CWD_HANDOFF_FILE", raising=False)


@pytest.fixture
def store_root(tmp_path: Path) -> Path:
    return tmp_path / "store"


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    """A working tree to archive things out of."""
    ws = tmp_path / "work"
    ws.mkdir()
    return ws


@pytest.fixture
def ctx(store_root: Path) -> ArchiverContext:
    """An initialised store with every service wired."""
    return create_context(store_root)


@pytest.fixture
def store(ctx: ArchiverContext) -> MetadataStore:
    return ctx.store


@pytest.fixture
def make_file(workspace: Path):
    def _make(name: str, content: str = "data") -> Path:
        path = workspace / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        return path

    return _make


@pytest.fixture
def make_dir(workspace: Path):
    def _make(name: str, files: dict[str, str] | None = None) -> Path:
        path = workspace / name
        path.mkdir(parents=True)
        for rel, content in (files or {}).items():
            (path / rel).parent.mkdir(parents=True, exist_ok=True)
            (path / rel).write_text(content, encoding="utf-8")
        return path

    return _make
