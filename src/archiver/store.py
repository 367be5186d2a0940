"""Metadata store: the four persisted record sets and the slot layout.

Owns the in-memory cache of config, counters, archive entries and
vaults. Every mutation goes through load → mutate → save on this object;
no other component keeps a long-lived copy. ``force_refresh=True``
bypasses the cache and re-reads the file.

The default vault (id 0) is never written to vaults.jsonl; it is
prepended by get_vaults() and always resolvable.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path

from archiver.filelock import DEFAULT_LOCK_TIMEOUT, store_lock
from archiver.fsutil import is_real_dir, lexists
from archiver.jsonfiles import append_jsonl, read_jsonc, read_jsonl, write_jsonc, write_jsonl
from archiver.models import (
    DEFAULT_VAULT_ID,
    ArchiveEntry,
    Config,
    CounterName,
    Counters,
    Vault,
    VaultStatus,
    default_vault,
    is_number,
)
from archiver.paths import StoreLayout, home_dir

logger = logging.getLogger(__name__)

_CONFIG_HEADER = """\
archiver configuration
currentVaultId: vault that put targets when no vault is given (0 = default vault)
updateCheck: "on" | "off"
aliasMap: display aliases, alias -> absolute path
vaultItemSeparator: separator used when printing <vault><sep><item>
style: "on" | "off" (colored output)"""

_COUNTERS_HEADER = """\
archiver id counters: last issued id per record set.
Never lower these by hand: ids must stay unique."""


@dataclass(frozen=True)
class StorageLocation:
    """Physical location of an archived object."""

    slot_path: Path
    object_path: Path


class MetadataStore:
    """Cached access to one store root."""

    def __init__(self, root: Path | str | None = None):
        self.layout = StoreLayout(Path(root) if root is not None else home_dir())
        self._config: Config | None = None
        self._counters: Counters | None = None
        self._entries: list[ArchiveEntry] | None = None
        self._vaults: list[Vault] | None = None

    @property
    def root(self) -> Path:
        return self.layout.root

    # -- lifecycle ----------------------------------------------------------

    def init(self) -> None:
        """Create directories and seed files; safe to call repeatedly.

        Resets the current-vault pointer to the default vault when it
        refers to a vault whose directory is gone.
        """
        for directory in self.layout.required_dirs():
            directory.mkdir(parents=True, exist_ok=True)
        self.ensure_vault_dir(DEFAULT_VAULT_ID)

        if not self.layout.config_file.exists():
            write_jsonc(self.layout.config_file, Config().to_dict(), _CONFIG_HEADER)
        if not self.layout.auto_incr_file.exists():
            write_jsonc(self.layout.auto_incr_file, Counters().to_dict(), _COUNTERS_HEADER)
        for path in (self.layout.list_file, self.layout.vaults_file):
            if not path.exists():
                path.touch()

        config = self.load_config()
        if config.current_vault_id == DEFAULT_VAULT_ID:
            return
        if not self.vault_dir(config.current_vault_id).is_dir():
            logger.warning(
                "Current vault %d has no directory; falling back to the default vault",
                config.current_vault_id,
            )
            config.current_vault_id = DEFAULT_VAULT_ID
            self.save_config(config)

    @contextmanager
    def lock(self, timeout: float = DEFAULT_LOCK_TIMEOUT) -> Iterator[None]:
        """Exclusive ownership of this store root (not reentrant)."""
        with store_lock(self.layout.lock_file, timeout=timeout):
            yield

    # -- config -------------------------------------------------------------

    def load_config(self, force_refresh: bool = False) -> Config:
        if self._config is None or force_refresh:
            self._config = Config.from_dict(read_jsonc(self.layout.config_file))
        return self._config

    def save_config(self, config: Config) -> None:
        self._config = Config.from_dict(config.to_dict())
        write_jsonc(self.layout.config_file, self._config.to_dict(), _CONFIG_HEADER)

    # -- counters -----------------------------------------------------------

    def load_counters(self, force_refresh: bool = False) -> Counters:
        if self._counters is None or force_refresh:
            self._counters = Counters.from_dict(read_jsonc(self.layout.auto_incr_file))
        return self._counters

    def save_counters(self, counters: Counters) -> None:
        self._counters = Counters.from_dict(counters.to_dict())
        write_jsonc(self.layout.auto_incr_file, self._counters.to_dict(), _COUNTERS_HEADER)

    def next_id(self, counter: CounterName) -> int:
        """Increment *counter*, persist it, and return the new value.

        The counter hits disk before the caller writes the record it
        seeds, so a crash can only waste an id, never reuse one.
        """
        counters = self.load_counters()
        value = counters.get(counter) + 1
        counters.set(counter, value)
        self.save_counters(counters)
        logger.debug("Allocated %s=%d", counter.value, value)
        return value

    # -- archive entries ----------------------------------------------------

    def load_archive_entries(self, force_refresh: bool = False) -> list[ArchiveEntry]:
        if self._entries is None or force_refresh:
            parsed = (ArchiveEntry.from_dict(row) for row in read_jsonl(self.layout.list_file))
            self._entries = sorted((e for e in parsed if e is not None), key=lambda e: e.id)
            logger.debug("Loaded %d archive entries", len(self._entries))
        return self._entries

    def save_archive_entries(self, entries: list[ArchiveEntry]) -> None:
        self._entries = sorted(entries, key=lambda e: e.id)
        write_jsonl(self.layout.list_file, [e.to_dict() for e in self._entries])

    def append_archive_entry(self, entry: ArchiveEntry) -> None:
        entries = self.load_archive_entries()
        append_jsonl(self.layout.list_file, entry.to_dict())
        entries.append(entry)
        entries.sort(key=lambda e: e.id)

    def find_entry(self, archive_id: int) -> ArchiveEntry | None:
        for entry in self.load_archive_entries():
            if entry.id == archive_id:
                return entry
        return None

    # -- vaults -------------------------------------------------------------

    def load_vaults(self, force_refresh: bool = False) -> list[Vault]:
        """User-created vaults only (id > 0), sorted by id."""
        if self._vaults is None or force_refresh:
            parsed = (Vault.from_dict(row) for row in read_jsonl(self.layout.vaults_file))
            self._vaults = sorted((v for v in parsed if v is not None), key=lambda v: v.id)
        return self._vaults

    def save_vaults(self, vaults: list[Vault]) -> None:
        self._vaults = sorted((v for v in vaults if v.id > DEFAULT_VAULT_ID), key=lambda v: v.id)
        write_jsonl(self.layout.vaults_file, [v.to_dict() for v in self._vaults])

    def get_vaults(self, include_removed: bool = False, with_default: bool = True) -> list[Vault]:
        vaults = [
            v for v in self.load_vaults() if include_removed or v.status is not VaultStatus.REMOVED
        ]
        return [default_vault(), *vaults] if with_default else vaults

    def resolve_vault(
        self,
        ref: str | int | None = None,
        *,
        include_removed: bool = False,
        fallback_to_current: bool = True,
    ) -> Vault | None:
        """Find a vault by id, digit string, or name.

        With no *ref* and ``fallback_to_current``, the config's current
        vault is used. Names prefer an active vault over a removed one.
        Removed vaults resolve only with ``include_removed``.
        """
        if (ref is None or ref == "") and fallback_to_current:
            ref = self.load_config().current_vault_id
        if ref is None or ref == "":
            return None

        vaults = self.get_vaults(include_removed=True)
        if isinstance(ref, int) and not isinstance(ref, bool):
            matches = [v for v in vaults if v.id == ref]
        elif isinstance(ref, str) and is_number(ref.strip()):
            matches = [v for v in vaults if v.id == int(ref.strip())]
        else:
            matches = [v for v in vaults if v.name == ref]
        matches.sort(key=lambda v: (not v.is_active, -v.id))

        if not matches:
            return None
        found = matches[0]
        if found.status is VaultStatus.REMOVED and not include_removed:
            return None
        return found

    # -- physical layout ----------------------------------------------------

    def vault_dir(self, vault_id: int) -> Path:
        return self.layout.vaults_dir / str(vault_id)

    def ensure_vault_dir(self, vault_id: int) -> Path:
        path = self.vault_dir(vault_id)
        path.mkdir(parents=True, exist_ok=True)
        return path

    def slot_path(self, vault_id: int, archive_id: int) -> Path:
        return self.vault_dir(vault_id) / str(archive_id)

    def slot_object_path(self, vault_id: int, archive_id: int, item: str) -> Path:
        return self.slot_path(vault_id, archive_id) / item

    def resolve_storage_location(self, entry: ArchiveEntry) -> StorageLocation | None:
        """Slot and object path of *entry*, or None if absent or malformed.

        A slot is well-formed when it is a real directory (not a symlink)
        that contains an object named after the entry's item.
        """
        slot = self.slot_path(entry.vault_id, entry.id)
        if entry.item in ("", ".", "..") or "/" in entry.item or not is_real_dir(slot):
            return None
        obj = slot / entry.item
        if not lexists(obj):
            return None
        return StorageLocation(slot_path=slot, object_path=obj)
