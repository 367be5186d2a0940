"""One store plus every service bound to it, for a single invocation.

Usage::

    with open_context() as ctx:
        ctx.archive.put(["notes.txt"])

open_context() holds the store lock until the block exits, so two
invocations never interleave counter allocation or record-set rewrites.
"""

from __future__ import annotations

import logging
import logging.handlers
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import TextIO

from archiver.archive import ArchiveService, CdTarget
from archiver.audit import AuditLogger
from archiver.cd import emit_cd_target, write_cwd_handoff
from archiver.check import CheckService
from archiver.config_service import ConfigService
from archiver.filelock import DEFAULT_LOCK_TIMEOUT
from archiver.log_reader import LogReader
from archiver.store import MetadataStore
from archiver.vault import VaultService

VERSION = "0.4.0"

LOG_FORMAT = "%(asctime)s [%(process)d] %(levelname)s %(name)s: %(message)s"

logger = logging.getLogger("archiver")

# ---------------------------------------------------------------------------
# Diagnostic logging: stderr always, file handler on request
# ---------------------------------------------------------------------------

_stderr_handler: logging.Handler | None = None
_file_handler: logging.Handler | None = None


def configure_logging(log_file: Path | None = None, verbose: bool = False) -> logging.Logger:
    """Attach handlers to the ``archiver`` logger (idempotent).

    Stderr gets WARNING and above, or everything with *verbose*. A
    rotating file handler is added the first time *log_file* is given.
    """
    global _stderr_handler, _file_handler
    logger.setLevel(logging.DEBUG)

    if _stderr_handler is None:
        _stderr_handler = logging.StreamHandler(sys.stderr)
        _stderr_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%H:%M:%S"))
        logger.addHandler(_stderr_handler)
    _stderr_handler.setLevel(logging.DEBUG if verbose else logging.WARNING)

    if log_file is not None and _file_handler is None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        fh = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=2_000_000,
            backupCount=3,
            encoding="utf-8",
        )
        fh.setLevel(logging.DEBUG)
        fh.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(fh)
        _file_handler = fh
        logger.info("archiver %s: diagnostics attached to %s", VERSION, log_file)
    return logger


# ---------------------------------------------------------------------------
# Context
# ---------------------------------------------------------------------------


@dataclass
class ArchiverContext:
    store: MetadataStore
    audit: AuditLogger
    config: ConfigService
    archive: ArchiveService
    vaults: VaultService
    check: CheckService
    logs: LogReader

    @property
    def root(self) -> Path:
        return self.store.root

    def enter_slot(
        self, target: str, print_only: bool = False, stream: TextIO | None = None
    ) -> CdTarget:
        """Resolve a cd *target* and hand its slot to the outer shell.

        With *print_only* the bare path is written to *stream*. Otherwise the
        path goes to $ARV_CWD_HANDOFF_FILE when that is set, or a marker line
        is written to *stream*.
        """
        resolved = self.archive.resolve_cd_target(target)
        if print_only or not write_cwd_handoff(resolved.slot_path):
            emit_cd_target(resolved.slot_path, print_only=print_only, stream=stream)
        logger.debug("cd %s -> %s", target, resolved.slot_path)
        return resolved


def create_context(root: Path | str | None = None) -> ArchiverContext:
    """Initialise the store at *root* (or the default root) and wire the services."""
    store = MetadataStore(root)
    store.init()
    audit = AuditLogger(store)
    config = ConfigService(store)
    return ArchiverContext(
        store=store,
        audit=audit,
        config=config,
        archive=ArchiveService(store, audit),
        vaults=VaultService(store, audit, config),
        check=CheckService(store),
        logs=LogReader(store),
    )


@contextmanager
def open_context(
    root: Path | str | None = None,
    lock_timeout: float = DEFAULT_LOCK_TIMEOUT,
) -> Iterator[ArchiverContext]:
    """Lock the store root, initialise it, and yield a ready context.

    Raises:
        LockTimeout: Another invocation holds the store.
    """
    store_root = MetadataStore(root).root
    store_root.mkdir(parents=True, exist_ok=True)
    with MetadataStore(store_root).lock(timeout=lock_timeout):
        ctx = create_context(store_root)
        logger.debug("Opened store at %s", ctx.root)
        yield ctx
