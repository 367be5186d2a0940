"""Read side of the audit log: everything, the tail, a month range, one record."""

from __future__ import annotations

from dataclasses import dataclass

from archiver.jsonfiles import read_jsonl
from archiver.models import ArchiveEntry, LogEntry, Vault
from archiver.parse import LogRange
from archiver.store import MetadataStore

DEFAULT_TAIL = 15


@dataclass
class LogDetail:
    """A log record with the archive entry and vault it points at, if any."""

    log: LogEntry
    archive: ArchiveEntry | None = None
    vault: Vault | None = None


class LogReader:
    def __init__(self, store: MetadataStore):
        self.store = store

    def load_all(self) -> list[LogEntry]:
        """Every record of every period file, sorted by id."""
        logs: list[LogEntry] = []
        for path in self.store.layout.log_files():
            for row in read_jsonl(path):
                entry = LogEntry.from_dict(row)
                if entry is not None:
                    logs.append(entry)
        logs.sort(key=lambda e: e.id)
        return logs

    def tail(self, n: int = DEFAULT_TAIL) -> list[LogEntry]:
        if n <= 0:
            return []
        return self.load_all()[-n:]

    def by_range(self, log_range: LogRange) -> list[LogEntry]:
        return [e for e in self.load_all() if log_range.contains(e.period)]

    def get(self, log_id: int) -> LogDetail | None:
        log = next((e for e in self.load_all() if e.id == log_id), None)
        if log is None:
            return None
        detail = LogDetail(log=log)
        if log.archive_id is not None:
            detail.archive = self.store.find_entry(log.archive_id)
        if log.vault_id is not None:
            detail.vault = next(
                (v for v in self.store.get_vaults(include_removed=True) if v.id == log.vault_id),
                None,
            )
        return detail
