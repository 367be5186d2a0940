"""Vault lifecycle: create, remove, recover, rename, use, list.

Removing a vault first relocates every Archived slot it holds into the
default vault (same archive id, new parent directory). The vault is
flipped to Removed only once all relocations are done, so an entry
never points at a removed vault.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field

from archiver.audit import AuditLogger
from archiver.config_service import ConfigService
from archiver.errors import (
    DefaultVaultProtected,
    RemovedVaultExists,
    SlotMissing,
    SlotOccupied,
    ValidationError,
    VaultAlreadyRemoved,
    VaultExists,
    VaultNameReserved,
    VaultNotFound,
    VaultNotRemoved,
    VaultNotValid,
    VaultRemoved,
)
from archiver.fsutil import compensating, lexists, numeric_children
from archiver.models import (
    DEFAULT_VAULT_ID,
    DEFAULT_VAULT_NAME,
    CounterName,
    Operation,
    OperationSource,
    Vault,
    VaultStatus,
    format_timestamp,
    is_number,
)
from archiver.store import MetadataStore, StorageLocation

logger = logging.getLogger(__name__)


@dataclass
class VaultCreateResult:
    vault: Vault
    recovered: bool = False


@dataclass
class VaultRemoveResult:
    vault: Vault
    moved_archive_ids: list[int] = field(default_factory=list)


def _validate_name(name: str) -> str:
    name = name.strip()
    if not name:
        raise ValidationError("vault name cannot be empty")
    if name == DEFAULT_VAULT_NAME:
        raise VaultNameReserved(name)
    return name


def _vault_op(sub: str, *args: str, **opts: object) -> Operation:
    return Operation(main="vault", sub=sub, args=list(args), opts=dict(opts))


class VaultService:
    def __init__(self, store: MetadataStore, audit: AuditLogger, config_service: ConfigService):
        self.store = store
        self.audit = audit
        self.config = config_service

    # -- create / recover ---------------------------------------------------

    def create(
        self,
        name: str,
        remark: str = "",
        activate: bool = False,
        recover_removed: bool = False,
    ) -> VaultCreateResult:
        """Create a vault, or reactivate a removed one of the same name.

        Raises RemovedVaultExists when a removed vault holds *name* and
        *recover_removed* is not set, so the caller can offer recovery.
        """
        name = _validate_name(name)
        vaults = self.store.load_vaults()
        if any(v.is_active and v.name == name for v in vaults):
            raise VaultExists(name)

        removed = sorted(
            (v for v in vaults if v.status is VaultStatus.REMOVED and v.name == name),
            key=lambda v: -v.id,
        )
        if removed:
            if not recover_removed:
                raise RemovedVaultExists(name, removed[0].id)
            vault = self._reactivate(removed[0])
            recovered = True
        else:
            vault = Vault(
                id=self.store.next_id(CounterName.VAULT),
                name=name,
                remark=remark,
                created_at=format_timestamp(),
                status=VaultStatus.VALID,
            )
            self.store.ensure_vault_dir(vault.id)
            self.store.save_vaults([*vaults, vault])
            self.audit.info(
                _vault_op("create", name), f"Created vault {vault.display}", vault_id=vault.id
            )
            recovered = False

        if activate:
            self._set_current(vault)
        return VaultCreateResult(vault=vault, recovered=recovered)

    def recover(self, ref: str | int) -> Vault:
        """Removed -> Valid, recreating the vault directory if needed."""
        vault = self._find_removed(ref)
        return self._reactivate(vault)

    def _find_removed(self, ref: str | int) -> Vault:
        vaults = self.store.load_vaults()
        text = str(ref).strip()
        if is_number(text):
            matches = [v for v in vaults if v.id == int(text)]
        else:
            matches = [v for v in vaults if v.name == text]
            removed = [v for v in matches if v.status is VaultStatus.REMOVED]
            matches = removed or matches
        if not matches:
            if text == DEFAULT_VAULT_NAME or text == str(DEFAULT_VAULT_ID):
                raise VaultNotRemoved(DEFAULT_VAULT_NAME)
            raise VaultNotFound(ref)
        vault = max(matches, key=lambda v: v.id)
        if vault.status is not VaultStatus.REMOVED:
            raise VaultNotRemoved(vault.name)
        return vault

    def _reactivate(self, vault: Vault) -> Vault:
        vaults = self.store.load_vaults()
        if any(v.is_active and v.name == vault.name for v in vaults):
            raise VaultExists(vault.name)
        for v in vaults:
            if v.id == vault.id:
                v.status = VaultStatus.VALID
                vault = v
        self.store.ensure_vault_dir(vault.id)
        self.store.save_vaults(vaults)
        self.audit.info(
            _vault_op("recover", vault.name), f"Recovered vault {vault.display}", vault_id=vault.id
        )
        return vault

    # -- remove -------------------------------------------------------------

    def remove(self, ref: str | int) -> VaultRemoveResult:
        vault = self.store.resolve_vault(ref, include_removed=True, fallback_to_current=False)
        if vault is None:
            raise VaultNotFound(ref)
        if vault.id == DEFAULT_VAULT_ID or vault.status is VaultStatus.PROTECTED:
            raise DefaultVaultProtected()
        if vault.status is VaultStatus.REMOVED:
            raise VaultAlreadyRemoved(vault.name)

        entries = self.store.load_archive_entries()
        members = [e for e in entries if e.is_archived and e.vault_id == vault.id]

        # validate the whole set before the first rename
        locations: dict[int, StorageLocation] = {}
        for entry in members:
            location = self.store.resolve_storage_location(entry)
            if location is None:
                raise SlotMissing(self.store.slot_path(entry.vault_id, entry.id))
            destination = self.store.slot_path(DEFAULT_VAULT_ID, entry.id)
            if lexists(destination):
                raise SlotOccupied(destination)
            locations[entry.id] = location

        self.store.ensure_vault_dir(DEFAULT_VAULT_ID)
        moved: list[int] = []
        try:
            for entry in members:
                source = locations[entry.id].slot_path
                destination = self.store.slot_path(DEFAULT_VAULT_ID, entry.id)
                os.rename(source, destination)
                with compensating(
                    lambda s=source, d=destination: os.rename(d, s), what=f"relocate {entry.id}"
                ):
                    self.audit.info(
                        Operation(
                            main="move",
                            args=[str(entry.id)],
                            opts={"to": DEFAULT_VAULT_ID},
                            source=OperationSource.SYSTEM,
                        ),
                        f"Relocated {entry.id} from removed vault {vault.display} "
                        f"to the default vault",
                        archive_id=entry.id,
                        vault_id=DEFAULT_VAULT_ID,
                    )
                entry.vault_id = DEFAULT_VAULT_ID
                moved.append(entry.id)
        finally:
            if moved:
                self.store.save_archive_entries(entries)

        vaults = self.store.load_vaults()
        for v in vaults:
            if v.id == vault.id:
                v.status = VaultStatus.REMOVED
                vault = v
        self.store.save_vaults(vaults)

        if self.store.load_config().current_vault_id == vault.id:
            self.config.set_current_vault(DEFAULT_VAULT_ID)
            logger.info("Current vault reset to the default vault")

        self.audit.info(
            _vault_op("remove", vault.name),
            f"Removed vault {vault.display}; relocated {len(moved)} archive(s)",
            vault_id=vault.id,
        )
        return VaultRemoveResult(vault=vault, moved_archive_ids=moved)

    # -- rename / use -------------------------------------------------------

    def rename(self, ref: str | int, new_name: str) -> Vault:
        vault = self.store.resolve_vault(ref, include_removed=True, fallback_to_current=False)
        if vault is None:
            raise VaultNotFound(ref)
        if vault.status is not VaultStatus.VALID:
            raise VaultNotValid(vault.name, vault.status.value)
        new_name = _validate_name(new_name)
        if new_name == vault.name:
            raise ValidationError(f"vault is already named '{new_name}'")

        vaults = self.store.load_vaults()
        for other in vaults:
            if other.id == vault.id or other.name != new_name:
                continue
            if other.is_active:
                raise VaultExists(new_name)
            raise RemovedVaultExists(new_name, other.id)

        old_name = vault.name
        for v in vaults:
            if v.id == vault.id:
                v.name = new_name
                vault = v
        self.store.save_vaults(vaults)
        self.audit.info(
            _vault_op("rename", old_name, new_name),
            f"Renamed vault {old_name} to {new_name}",
            vault_id=vault.id,
        )
        return vault

    def use(self, ref: str | int) -> Vault:
        """Make *ref* the vault put targets by default."""
        vault = self.store.resolve_vault(ref, include_removed=True, fallback_to_current=False)
        if vault is None:
            raise VaultNotFound(ref)
        if not vault.is_active:
            raise VaultRemoved(vault.name)
        self._set_current(vault)
        return vault

    def _set_current(self, vault: Vault) -> None:
        self.config.set_current_vault(vault.id)
        self.audit.info(
            _vault_op("use", vault.name), f"Current vault is now {vault.display}", vault_id=vault.id
        )

    # -- read side ----------------------------------------------------------

    def list(self, include_removed: bool = False) -> list[Vault]:
        """Default vault first, then user vaults by id."""
        return self.store.get_vaults(include_removed=include_removed)

    def list_archived_ids_in_vault(self, vault_id: int) -> list[int]:
        """Slot names physically present under the vault directory."""
        return numeric_children(self.store.vault_dir(vault_id))

    @staticmethod
    def display(vault: Vault) -> str:
        return vault.display
