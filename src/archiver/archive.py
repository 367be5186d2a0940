"""Archive service: put, restore, move, and cd resolution over archive entries.

Batch operations process items one at a time so id allocation and
entry-set mutation never interleave. Per-item failures become failed
BatchItems and the rest of the batch carries on; whole-batch
preconditions are checked before anything on disk changes.

Slot layout: <root>/vaults/<vaultId>/<archiveId>/<item>
"""

from __future__ import annotations

import logging
import os
import stat
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from archiver.audit import AuditLogger
from archiver.config_service import ConfigService
from archiver.errors import (
    ArchiveAlreadyInVault,
    ArchiverError,
    ArchiveNotArchived,
    ArchiveNotFound,
    DuplicateInput,
    EmptyBatch,
    PathInsideStore,
    PathNotFound,
    RestoreTargetExists,
    SlotMissing,
    SlotOccupied,
    VaultMismatch,
    VaultNotFound,
    VaultRemoved,
)
from archiver.fsutil import (
    canonical,
    compensating,
    created_dir,
    is_parent_or_same,
    is_sub_path,
    lexists,
    safe_lstat,
)
from archiver.models import (
    ArchiveEntry,
    ArchiveStatus,
    CounterName,
    Operation,
    OperationSource,
    Vault,
    format_timestamp,
)
from archiver.parse import parse_cd_target
from archiver.store import MetadataStore, StorageLocation

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------


@dataclass
class BatchItem:
    """Outcome for one input of a batch call."""

    input: str
    success: bool
    message: str
    id: int | None = None


@dataclass
class BatchResult:
    ok: list[BatchItem] = field(default_factory=list)
    failed: list[BatchItem] = field(default_factory=list)

    def summary(self) -> dict[str, Any]:
        return {
            "ok": len(self.ok),
            "failed": len(self.failed),
            "items": [
                {"input": i.input, "id": i.id, "success": i.success, "message": i.message}
                for i in [*self.ok, *self.failed]
            ],
        }


@dataclass(frozen=True)
class CdTarget:
    vault: Vault
    archive_id: int
    slot_path: Path


@dataclass
class DecoratedEntry:
    """An entry plus display fields for listings."""

    entry: ArchiveEntry
    vault_name: str
    display_path: str


@dataclass
class _PreparedItem:
    input: str
    resolved: Path
    canonical: Path
    is_directory: bool


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


class ArchiveService:
    def __init__(self, store: MetadataStore, audit: AuditLogger):
        self.store = store
        self.audit = audit

    # -- put ----------------------------------------------------------------

    def put(
        self,
        items: list[str],
        vault: str | int | None = None,
        message: str = "",
        remark: str = "",
        source: OperationSource = OperationSource.USER,
    ) -> BatchResult:
        """Move each path into a fresh slot of the target vault.

        Raises (before touching anything):
            EmptyBatch, VaultNotFound, VaultRemoved, PathNotFound,
            PathInsideStore, DuplicateInput, SlotOccupied.
        """
        if not items:
            raise EmptyBatch("item")

        target = self._resolve_target_vault(vault)
        self.store.ensure_vault_dir(target.id)

        prepared = self._prevalidate_put_items(items)
        self._prevalidate_put_slots(target.id, len(prepared))

        result = BatchResult()
        for item in prepared:
            archive_id = self.store.next_id(CounterName.ARCHIVE)
            slot = self.store.slot_path(target.id, archive_id)
            entry = ArchiveEntry(
                id=archive_id,
                vault_id=target.id,
                item=item.resolved.name,
                directory=str(item.resolved.parent),
                status=ArchiveStatus.ARCHIVED,
                is_directory=item.is_directory,
                archived_at=format_timestamp(),
                message=message,
                remark=remark,
            )
            oper = Operation(
                main="put",
                args=[item.input],
                opts={"vault": vault if vault is not None else target.id},
                source=source,
            )

            try:
                if lexists(slot):
                    raise SlotOccupied(slot)
                with created_dir(slot):
                    os.rename(item.resolved, slot / entry.item)
            except (ArchiverError, OSError) as exc:
                logger.warning("put %s failed: %s", item.input, exc)
                self.audit.error(
                    oper, f"Failed to archive {item.input}: {exc}", vault_id=target.id
                )
                result.failed.append(BatchItem(item.input, False, str(exc), archive_id))
                continue

            self.store.append_archive_entry(entry)
            self.audit.info(
                oper, f"Archived {item.input}", archive_id=archive_id, vault_id=target.id
            )
            result.ok.append(
                BatchItem(item.input, True, f"Archived to vault {target.display}", archive_id)
            )
        return result

    def _resolve_target_vault(self, ref: str | int | None) -> Vault:
        vault = self.store.resolve_vault(ref, include_removed=True, fallback_to_current=True)
        if vault is None:
            raise VaultNotFound(
                ref if ref not in (None, "") else self.store.load_config().current_vault_id
            )
        if not vault.is_active:
            raise VaultRemoved(vault.name)
        return vault

    def _prevalidate_put_items(self, items: list[str]) -> list[_PreparedItem]:
        root = canonical(self.store.root)
        seen: set[Path] = set()
        prepared: list[_PreparedItem] = []
        for raw in items:
            resolved = Path(os.path.abspath(raw))
            st = safe_lstat(resolved)
            if st is None:
                raise PathNotFound(raw)
            canon = canonical(resolved)
            if is_parent_or_same(canon, root) or is_sub_path(root, canon):
                raise PathInsideStore(raw, self.store.root)
            if canon in seen:
                raise DuplicateInput(raw)
            seen.add(canon)
            prepared.append(
                _PreparedItem(
                    input=raw,
                    resolved=resolved,
                    canonical=canon,
                    is_directory=stat.S_ISDIR(st.st_mode),
                )
            )
        return prepared

    def _prevalidate_put_slots(self, vault_id: int, count: int) -> None:
        """Refuse to start if any slot this batch will allocate already exists."""
        last = self.store.load_counters().archive_id
        for offset in range(1, count + 1):
            predicted = self.store.slot_path(vault_id, last + offset)
            if lexists(predicted):
                raise SlotOccupied(predicted)

    # -- restore ------------------------------------------------------------

    def restore(self, ids: list[int]) -> BatchResult:
        """Move archived objects back to where they came from.

        Every id must exist and be Archived, or nothing happens. The entry
        set is written once at the end.
        """
        if not ids:
            raise EmptyBatch("id")

        entries = self.store.load_archive_entries()
        by_id = self._validate_ids(ids, entries, action="restore")

        result = BatchResult()
        try:
            for archive_id in ids:
                entry = by_id[archive_id]
                oper = Operation(main="restore", args=[str(archive_id)])
                target = entry.restore_path

                try:
                    location = self.store.resolve_storage_location(entry)
                    if location is None:
                        raise SlotMissing(self.store.slot_path(entry.vault_id, entry.id))
                    if lexists(target):
                        raise RestoreTargetExists(target)
                    target.parent.mkdir(parents=True, exist_ok=True)
                    os.rename(location.object_path, target)
                except (ArchiverError, OSError) as exc:
                    logger.warning("restore %d failed: %s", archive_id, exc)
                    self.audit.error(
                        oper,
                        f"Failed to restore {archive_id}: {exc}",
                        archive_id=archive_id,
                        vault_id=entry.vault_id,
                    )
                    result.failed.append(BatchItem(str(archive_id), False, str(exc), archive_id))
                    continue

                entry.status = ArchiveStatus.RESTORED
                self._discard_slot(location)
                self.audit.info(
                    oper,
                    f"Restored {archive_id} to {target}",
                    archive_id=archive_id,
                    vault_id=entry.vault_id,
                )
                result.ok.append(
                    BatchItem(str(archive_id), True, f"Restored to {target}", archive_id)
                )
        finally:
            self.store.save_archive_entries(entries)
        return result

    @staticmethod
    def _discard_slot(location: StorageLocation) -> None:
        """Remove the emptied slot; a leftover is reported by the check."""
        try:
            location.slot_path.rmdir()
        except FileNotFoundError:
            pass
        except OSError as exc:
            logger.warning("Slot %s left behind after restore: %s", location.slot_path, exc)

    def _validate_ids(
        self, ids: list[int], entries: list[ArchiveEntry], action: str
    ) -> dict[int, ArchiveEntry]:
        by_id = {e.id: e for e in entries}
        seen: set[int] = set()
        for archive_id in ids:
            if archive_id in seen:
                raise DuplicateInput(str(archive_id))
            seen.add(archive_id)
            entry = by_id.get(archive_id)
            if entry is None:
                raise ArchiveNotFound(archive_id)
            if not entry.is_archived:
                raise ArchiveNotArchived(archive_id, action)
        return by_id

    # -- move ---------------------------------------------------------------

    def move(self, ids: list[int], to_vault: str | int) -> BatchResult:
        """Relocate whole slots to another vault, keeping their ids."""
        if not ids:
            raise EmptyBatch("id")

        target = self.store.resolve_vault(to_vault, include_removed=True, fallback_to_current=False)
        if target is None:
            raise VaultNotFound(to_vault)
        if not target.is_active:
            raise VaultRemoved(target.name)

        entries = self.store.load_archive_entries()
        by_id = self._validate_ids(ids, entries, action="move")
        locations: dict[int, StorageLocation] = {}
        for archive_id in ids:
            entry = by_id[archive_id]
            if entry.vault_id == target.id:
                raise ArchiveAlreadyInVault(archive_id, target.name)
            location = self.store.resolve_storage_location(entry)
            if location is None:
                raise SlotMissing(self.store.slot_path(entry.vault_id, entry.id))
            destination = self.store.slot_path(target.id, archive_id)
            if lexists(destination):
                raise SlotOccupied(destination)
            locations[archive_id] = location

        self.store.ensure_vault_dir(target.id)
        result = BatchResult()
        changed = False
        try:
            for archive_id in ids:
                entry = by_id[archive_id]
                source = locations[archive_id].slot_path
                destination = self.store.slot_path(target.id, archive_id)
                from_vault = entry.vault_id
                oper = Operation(main="move", args=[str(archive_id)], opts={"to": target.id})

                try:
                    os.rename(source, destination)
                except OSError as exc:
                    logger.warning("move %d failed: %s", archive_id, exc)
                    self.audit.error(
                        oper,
                        f"Failed to move {archive_id}: {exc}",
                        archive_id=archive_id,
                        vault_id=from_vault,
                    )
                    result.failed.append(BatchItem(str(archive_id), False, str(exc), archive_id))
                    continue

                # metadata only follows the slot once the move is on record
                with compensating(
                    lambda s=source, d=destination: os.rename(d, s), what=f"move {archive_id}"
                ):
                    self.audit.info(
                        oper,
                        f"Moved {archive_id} from vault {from_vault} to vault {target.id}",
                        archive_id=archive_id,
                        vault_id=target.id,
                    )
                entry.vault_id = target.id
                changed = True
                result.ok.append(
                    BatchItem(str(archive_id), True, f"Moved to vault {target.display}", archive_id)
                )
        finally:
            if changed:
                self.store.save_archive_entries(entries)
        return result

    # -- cd -----------------------------------------------------------------

    def resolve_cd_target(self, target: str) -> CdTarget:
        """Resolve ``<id>`` or ``<vault>/<id>`` to the slot of an Archived entry."""
        vault_ref, archive_id = parse_cd_target(target)

        entry = self.store.find_entry(archive_id)
        if entry is None:
            raise ArchiveNotFound(archive_id)
        if not entry.is_archived:
            raise ArchiveNotArchived(archive_id, "cd")

        if vault_ref is not None:
            requested = self.store.resolve_vault(
                vault_ref, include_removed=True, fallback_to_current=False
            )
            if requested is None:
                raise VaultNotFound(vault_ref)
            if requested.id != entry.vault_id:
                raise VaultMismatch(archive_id, entry.vault_id, requested.id)

        vault = self.store.resolve_vault(
            entry.vault_id, include_removed=True, fallback_to_current=False
        )
        if vault is None:
            raise VaultNotFound(entry.vault_id)

        location = self.store.resolve_storage_location(entry)
        if location is None:
            raise SlotMissing(self.store.slot_path(entry.vault_id, entry.id))

        self.audit.info(
            Operation(main="cd", args=[target]),
            f"Resolved {target} to {location.slot_path}",
            archive_id=archive_id,
            vault_id=vault.id,
        )
        return CdTarget(vault=vault, archive_id=archive_id, slot_path=location.slot_path)

    # -- listing ------------------------------------------------------------

    def list_entries(
        self,
        restored: bool = False,
        include_all: bool = False,
        vault: str | int | None = None,
    ) -> list[ArchiveEntry]:
        """Archived entries by default.

        *restored* lists restored ones instead; *include_all* lists both.
        """
        entries = list(self.store.load_archive_entries())
        if not include_all:
            wanted = ArchiveStatus.RESTORED if restored else ArchiveStatus.ARCHIVED
            entries = [e for e in entries if e.status is wanted]
        if vault is not None:
            found = self.store.resolve_vault(vault, include_removed=True, fallback_to_current=False)
            if found is None:
                raise VaultNotFound(vault)
            entries = [e for e in entries if e.vault_id == found.id]
        return sorted(entries, key=lambda e: e.id)

    def decorate_entries(self, entries: list[ArchiveEntry]) -> list[DecoratedEntry]:
        vaults = {v.id: v for v in self.store.get_vaults(include_removed=True)}
        aliases = self.store.load_config().alias_map
        decorated = []
        for entry in entries:
            vault = vaults.get(entry.vault_id)
            decorated.append(
                DecoratedEntry(
                    entry=entry,
                    vault_name=vault.display if vault else f"<unknown vault {entry.vault_id}>",
                    display_path=ConfigService.render_path_with_alias(entry.restore_path, aliases),
                )
            )
        return decorated
