"""Consistency check: compare metadata against what is on disk.

Read-only. Each check appends CheckIssues to one report; nothing is
repaired. Issues carry a stable code so scripts can match on them.
Only Error-level issues make the check fail (see ``exit_code``).
"""

from __future__ import annotations

import stat
from collections import Counter as _Tally
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from archiver.fsutil import is_real_dir, lexists, safe_lstat
from archiver.jsonfiles import read_jsonl
from archiver.models import (
    DEFAULT_VAULT_ID,
    ArchiveEntry,
    ArchiveStatus,
    IssueLevel,
    LogEntry,
    Vault,
    is_number,
)
from archiver.store import MetadataStore

# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------


@dataclass
class CheckIssue:
    level: IssueLevel
    code: str  # e.g. ORPHAN_ARCHIVE_OBJECT
    message: str


@dataclass
class CheckReport:
    issues: list[CheckIssue] = field(default_factory=list)
    info: list[str] = field(default_factory=list)

    @property
    def errors(self) -> list[CheckIssue]:
        return [i for i in self.issues if i.level is IssueLevel.ERROR]

    @property
    def warnings(self) -> list[CheckIssue]:
        return [i for i in self.issues if i.level is IssueLevel.WARN]

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

    @property
    def exit_code(self) -> int:
        """1 if any Error-level issue was found; warnings never fail the check."""
        return 1 if self.has_errors else 0

    def codes(self) -> list[str]:
        return [i.code for i in self.issues]

    def summary(self) -> dict[str, Any]:
        return {
            "ok": not self.has_errors,
            "errors": len(self.errors),
            "warnings": len(self.warnings),
            "issues": [
                {"level": i.level.value, "code": i.code, "message": i.message}
                for i in self.issues
            ],
            "info": list(self.info),
        }

    def error(self, code: str, message: str) -> None:
        self.issues.append(CheckIssue(IssueLevel.ERROR, code, message))

    def warn(self, code: str, message: str) -> None:
        self.issues.append(CheckIssue(IssueLevel.WARN, code, message))


def _duplicates(values: Iterable[Any]) -> list[Any]:
    return sorted(v for v, n in _Tally(values).items() if n > 1)


def _is_dir(st) -> bool:
    return stat.S_ISDIR(st.st_mode)


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


class CheckService:
    def __init__(self, store: MetadataStore):
        self.store = store

    def run(self) -> CheckReport:
        """Run every check in order and return the combined report."""
        report = CheckReport()
        self._check_required_paths(report)

        # always read fresh: the check must see what is on disk now
        config = self.store.load_config(force_refresh=True)
        counters = self.store.load_counters(force_refresh=True)
        entries = self.store.load_archive_entries(force_refresh=True)
        self.store.load_vaults(force_refresh=True)
        vaults = self.store.get_vaults(include_removed=True)

        self._check_current_vault(report, config.current_vault_id, vaults)
        self._check_archive_ids(report, entries, counters.archive_id)
        self._check_vault_ids(report, vaults, counters.vault_id)
        self._check_entries(report, entries, vaults)
        self._check_vault_tree(report, entries, vaults)
        self._check_vault_dirs(report, vaults)
        log_count = self._check_logs(report, counters.log_id)

        report.info.append(f"Checked {len(entries)} archive entries.")
        report.info.append(f"Checked {len(vaults)} vault definitions (including default).")
        report.info.append(f"Checked {log_count} log records.")
        return report

    # -- (a) layout ---------------------------------------------------------

    def _check_required_paths(self, report: CheckReport) -> None:
        layout = self.store.layout
        required = [
            *layout.required_dirs(),
            *layout.required_files(),
            self.store.vault_dir(DEFAULT_VAULT_ID),
        ]
        for path in required:
            if not path.exists():
                report.error("MISSING_PATH", f"Missing required path: {path}")

    # -- (b) config ---------------------------------------------------------

    def _check_current_vault(self, report: CheckReport, current: int, vaults: list[Vault]) -> None:
        if not any(v.id == current and v.is_active for v in vaults):
            report.error(
                "INVALID_CURRENT_VAULT",
                f"currentVaultId={current} is not an existing active vault.",
            )

    # -- (c) ids and counters -----------------------------------------------

    def _check_archive_ids(
        self, report: CheckReport, entries: list[ArchiveEntry], counter: int
    ) -> None:
        ids = [e.id for e in entries]
        dups = _duplicates(ids)
        if dups:
            report.error(
                "DUPLICATE_ARCHIVE_ID",
                f"Duplicated archive ids: {', '.join(map(str, dups))}",
            )
        highest = max(ids, default=0)
        if counter < highest:
            report.error(
                "ARCHIVE_AUTO_INCR_TOO_SMALL",
                f"archiveId counter is {counter} but the highest archive id is {highest}.",
            )

    def _check_vault_ids(self, report: CheckReport, vaults: list[Vault], counter: int) -> None:
        user_vaults = [v for v in vaults if v.id != DEFAULT_VAULT_ID]
        ids = [v.id for v in user_vaults]
        dups = _duplicates(ids)
        if dups:
            report.error("DUPLICATE_VAULT_ID", f"Duplicated vault ids: {', '.join(map(str, dups))}")

        names = _duplicates(v.name for v in user_vaults)
        if names:
            report.error("DUPLICATE_VAULT_NAME", f"Duplicated vault names: {', '.join(names)}")

        highest = max(ids, default=0)
        if counter < highest:
            report.error(
                "VAULT_AUTO_INCR_TOO_SMALL",
                f"vaultId counter is {counter} but the highest vault id is {highest}.",
            )

    # -- (d) entries vs filesystem ------------------------------------------

    def _check_entries(
        self, report: CheckReport, entries: list[ArchiveEntry], vaults: list[Vault]
    ) -> None:
        known = {v.id for v in vaults}
        for entry in entries:
            if entry.vault_id not in known:
                report.error(
                    "UNKNOWN_VAULT_REFERENCE",
                    f"Archive id {entry.id} references unknown vault id {entry.vault_id}.",
                )
                continue
            if entry.status is ArchiveStatus.ARCHIVED:
                self._check_archived(report, entry)
            else:
                self._check_restored(report, entry)

    def _check_archived(self, report: CheckReport, entry: ArchiveEntry) -> None:
        slot = self.store.slot_path(entry.vault_id, entry.id)
        location = self.store.resolve_storage_location(entry)
        if location is None:
            report.error(
                "MISSING_ARCHIVE_OBJECT",
                f"Archive id {entry.id} is archived but its object is missing: {slot}",
            )
        else:
            st = safe_lstat(location.object_path)
            if st is not None and _is_dir(st) != entry.is_directory:
                report.error(
                    "TYPE_MISMATCH_ARCHIVED",
                    f"Archive id {entry.id} type mismatch "
                    f"(expected dir={entry.is_directory}, actual dir={_is_dir(st)}).",
                )

        if lexists(entry.restore_path):
            report.warn(
                "RESTORE_TARGET_ALREADY_EXISTS",
                f"Archive id {entry.id} cannot be restored while {entry.restore_path} exists.",
            )

    def _check_restored(self, report: CheckReport, entry: ArchiveEntry) -> None:
        slot = self.store.slot_path(entry.vault_id, entry.id)
        if lexists(slot):
            report.warn(
                "RESTORED_BUT_ARCHIVE_EXISTS",
                f"Archive id {entry.id} is restored but its slot still exists: {slot}",
            )

        st = safe_lstat(entry.restore_path)
        if st is None:
            report.warn(
                "RESTORED_TARGET_MISSING",
                f"Archive id {entry.id} is restored but {entry.restore_path} does not exist.",
            )
        elif _is_dir(st) != entry.is_directory:
            report.warn(
                "TYPE_MISMATCH_RESTORED",
                f"Restored path type mismatch for archive id {entry.id} "
                f"(expected dir={entry.is_directory}, actual dir={_is_dir(st)}).",
            )

    # -- (e) vaults tree walk -----------------------------------------------

    def _check_vault_tree(
        self, report: CheckReport, entries: list[ArchiveEntry], vaults: list[Vault]
    ) -> None:
        vaults_dir = self.store.layout.vaults_dir
        if not vaults_dir.is_dir():
            return
        known = {v.id for v in vaults}
        archived = {(e.vault_id, e.id) for e in entries if e.status is ArchiveStatus.ARCHIVED}

        for vault_path in sorted(vaults_dir.iterdir()):
            if not is_real_dir(vault_path):
                continue
            if not is_number(vault_path.name):
                report.warn(
                    "NON_NUMERIC_VAULT_DIR",
                    f"Unexpected non-numeric vault directory: {vault_path}",
                )
                continue
            vault_id = int(vault_path.name)
            if vault_id not in known:
                report.warn(
                    "ORPHAN_VAULT_DIR",
                    f"Vault directory has no metadata: {vault_path}",
                )
            self._check_slots(report, vault_id, vault_path, archived)

    def _check_slots(
        self,
        report: CheckReport,
        vault_id: int,
        vault_path: Path,
        archived: set[tuple[int, int]],
    ) -> None:
        for child in sorted(vault_path.iterdir()):
            if not is_number(child.name):
                report.warn(
                    "NON_NUMERIC_ARCHIVE_OBJECT",
                    f"Vault {vault_id} contains an unexpected object: {child.name}",
                )
                continue
            archive_id = int(child.name)
            if not is_real_dir(child):
                report.error(
                    "INVALID_ARCHIVE_SLOT",
                    f"Slot {vault_id}/{archive_id} is not a directory: {child}",
                )
            if (vault_id, archive_id) not in archived:
                report.warn(
                    "ORPHAN_ARCHIVE_OBJECT",
                    f"Slot {vault_id}/{archive_id} exists on disk but no archived entry uses it.",
                )

    # -- (f) active vault dirs ----------------------------------------------

    def _check_vault_dirs(self, report: CheckReport, vaults: list[Vault]) -> None:
        for vault in vaults:
            if not vault.is_active:
                continue
            path = self.store.vault_dir(vault.id)
            if not path.is_dir():
                report.error(
                    "MISSING_VAULT_DIR",
                    f"Vault {vault.display} is active but its directory is missing: {path}",
                )

    # -- (g) logs -----------------------------------------------------------

    def _check_logs(self, report: CheckReport, counter: int) -> int:
        ids: list[int] = []
        for path in self.store.layout.log_files():
            for row in read_jsonl(path):
                entry = LogEntry.from_dict(row)
                if entry is not None:
                    ids.append(entry.id)

        dups = _duplicates(ids)
        if dups:
            report.error("DUPLICATE_LOG_ID", f"Duplicated log ids: {', '.join(map(str, dups))}")
        highest = max(ids, default=0)
        if counter < highest:
            report.error(
                "LOG_AUTO_INCR_TOO_SMALL",
                f"logId counter is {counter} but the highest log id is {highest}.",
            )
        return len(ids)
