"""Canonical on-disk layout of an archiver store.

Single source of truth for file and directory names.
All code should go through StoreLayout rather than hard-coding names.

Layout:
  <root>/config.jsonc            config document
  <root>/auto-incr.jsonc         id counters
  <root>/list.jsonl              archive entries, one per line
  <root>/vaults.jsonl            vault records, one per line
  <root>/logs/<YYYY>.jsonl       audit records, one file per year
  <root>/vaults/<vid>/<aid>/<item>
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

DOT_DIR = ".archiver"
ROOT_ENV = "ARCHIVER_HOME"

CONFIG_FILE = "config.jsonc"
AUTO_INCR_FILE = "auto-incr.jsonc"
LIST_FILE = "list.jsonl"
VAULTS_FILE = "vaults.jsonl"
LOGS_DIR = "logs"
VAULTS_DIR = "vaults"
LOCK_FILE = "store.lock"
LOG_SUFFIX = ".jsonl"


def home_dir() -> Path:
    """Return the store root: $ARCHIVER_HOME if set, else ~/.archiver/."""
    override = os.environ.get(ROOT_ENV, "").strip()
    if override:
        return Path(override).expanduser()
    return Path.home() / DOT_DIR


@dataclass(frozen=True)
class StoreLayout:
    """Every path of one store, derived from its root."""

    root: Path

    @property
    def config_file(self) -> Path:
        return self.root / CONFIG_FILE

    @property
    def auto_incr_file(self) -> Path:
        return self.root / AUTO_INCR_FILE

    @property
    def list_file(self) -> Path:
        return self.root / LIST_FILE

    @property
    def vaults_file(self) -> Path:
        return self.root / VAULTS_FILE

    @property
    def logs_dir(self) -> Path:
        return self.root / LOGS_DIR

    @property
    def vaults_dir(self) -> Path:
        return self.root / VAULTS_DIR

    @property
    def lock_file(self) -> Path:
        """Held for the whole of one invocation; not part of the checked layout."""
        return self.root / LOCK_FILE

    def log_file(self, period: str) -> Path:
        """Return logs/<period>.jsonl (period is YYYY)."""
        return self.logs_dir / f"{period}{LOG_SUFFIX}"

    def log_files(self) -> list[Path]:
        """Yearly audit log files present on disk, oldest first."""
        if not self.logs_dir.is_dir():
            return []
        return sorted(
            p
            for p in self.logs_dir.glob(f"*{LOG_SUFFIX}")
            if p.is_file() and len(p.stem) == 4 and p.stem.isascii() and p.stem.isdigit()
        )

    def required_dirs(self) -> list[Path]:
        return [self.root, self.logs_dir, self.vaults_dir]

    def required_files(self) -> list[Path]:
        return [self.config_file, self.auto_incr_file, self.list_file, self.vaults_file]
