"""Audit logger: append-only record of every significant operation.

Writes to <root>/logs/<YYYY>.jsonl, one record per line. Ids come from
the ``logId`` counter. The logger never reads history; see log_reader
for the read side.

A failed append raises AuditWriteError. Callers must let it propagate:
the audit log is the only durable record of who changed what.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime

from archiver.errors import AuditWriteError
from archiver.jsonfiles import append_jsonl
from archiver.models import (
    CounterName,
    LogEntry,
    LogLevel,
    Operation,
    format_timestamp,
    period_of,
)
from archiver.store import MetadataStore


class AuditLogger:
    def __init__(self, store: MetadataStore, clock: Callable[[], datetime] = datetime.now):
        self.store = store
        self._clock = clock

    def log(
        self,
        level: LogLevel,
        operation: Operation,
        message: str,
        *,
        archive_id: int | None = None,
        vault_id: int | None = None,
    ) -> LogEntry:
        """Append one record and return it."""
        now = self._clock()
        path = self.store.layout.log_file(period_of(now))
        try:
            log_id = self.store.next_id(CounterName.LOG)
            entry = LogEntry(
                id=log_id,
                opered_at=format_timestamp(now),
                level=level,
                oper=operation,
                message=message,
                archive_id=archive_id,
                vault_id=vault_id,
            )
            append_jsonl(path, entry.to_dict())
        except OSError as exc:
            raise AuditWriteError(path, str(exc)) from exc
        return entry

    def info(self, operation: Operation, message: str, **links: int | None) -> LogEntry:
        return self.log(LogLevel.INFO, operation, message, **links)

    def error(self, operation: Operation, message: str, **links: int | None) -> LogEntry:
        return self.log(LogLevel.ERROR, operation, message, **links)
