"""Exception hierarchy for the archiver.

Every error message includes: what happened, and what to do next.
Structured attributes are kept on the instance so callers (and tests)
can act on the failure without parsing the message.
"""

from __future__ import annotations

from pathlib import Path


class ArchiverError(Exception):
    """Base class for all archiver errors."""


# ---------------------------------------------------------------------------
# Validation: bad input shape, raised before any mutation
# ---------------------------------------------------------------------------


class ValidationError(ArchiverError):
    """Input failed a shape or range check."""

    def __init__(self, detail: str, hint: str = ""):
        msg = f"Invalid input: {detail}."
        if hint:
            msg += f" {hint}"
        super().__init__(msg)
        self.detail = detail
        self.hint = hint


class EmptyBatch(ValidationError):
    """A batch operation was called with nothing to do."""

    def __init__(self, what: str):
        super().__init__(f"at least one {what} is required", hint=f"Pass one or more {what}s.")
        self.what = what


class PathNotFound(ValidationError):
    """A path given to put does not exist."""

    def __init__(self, path: str):
        super().__init__(
            f"path '{path}' does not exist",
            hint="Check the spelling or run from the directory that contains it.",
        )
        self.path = path


class PathInsideStore(ValidationError):
    """A path is, contains, or lives inside the store root."""

    def __init__(self, path: str, root: Path):
        super().__init__(
            f"path '{path}' overlaps the archiver store at {root}",
            hint="The store cannot archive itself or anything inside it.",
        )
        self.path = path
        self.root = root


class DuplicateInput(ValidationError):
    """The same path or id was given twice in one call."""

    def __init__(self, value: str):
        super().__init__(f"'{value}' was given more than once", hint="Remove the duplicate.")
        self.value = value


# ---------------------------------------------------------------------------
# Archive state conflicts
# ---------------------------------------------------------------------------


class ArchiveNotFound(ArchiverError):
    """No archive entry carries this id."""

    def __init__(self, archive_id: int):
        super().__init__(
            f"Archive id {archive_id} does not exist. "
            f"List archived entries to see the ids in use."
        )
        self.archive_id = archive_id


class ArchiveNotArchived(ArchiverError):
    """The entry exists but has already been restored."""

    def __init__(self, archive_id: int, action: str):
        super().__init__(
            f"Archive id {archive_id} is already restored and cannot be used for {action}. "
            f"Only entries with status Archived have a slot."
        )
        self.archive_id = archive_id
        self.action = action


class ArchiveAlreadyInVault(ArchiverError):
    """Move target is the vault the entry already lives in."""

    def __init__(self, archive_id: int, vault_name: str):
        super().__init__(
            f"Archive id {archive_id} is already in vault '{vault_name}'. "
            f"Choose a different destination vault."
        )
        self.archive_id = archive_id
        self.vault_name = vault_name


class SlotOccupied(ArchiverError):
    """A slot path that should be free already exists on disk."""

    def __init__(self, path: Path):
        super().__init__(
            f"Slot {path} already exists on disk. "
            f"Run the consistency check and remove or re-register the stray directory."
        )
        self.path = path


class SlotMissing(ArchiverError):
    """An Archived entry has no valid slot on disk."""

    def __init__(self, path: Path):
        super().__init__(
            f"Archived object is missing or its slot is malformed: {path}. "
            f"Run the consistency check for details."
        )
        self.path = path


class RestoreTargetExists(ArchiverError):
    """Something already occupies the original location."""

    def __init__(self, path: Path):
        super().__init__(
            f"Restore target {path} already exists. "
            f"Move or rename it first; restore never overwrites."
        )
        self.path = path


# ---------------------------------------------------------------------------
# Vault state conflicts
# ---------------------------------------------------------------------------


class VaultNotFound(ArchiverError):
    """No vault matches the given id or name."""

    def __init__(self, ref: str | int):
        super().__init__(f"Vault not found: {ref}. List vaults to see valid names and ids.")
        self.ref = ref


class VaultRemoved(ArchiverError):
    """The vault exists but is removed and cannot be used."""

    def __init__(self, name: str):
        super().__init__(f"Vault '{name}' is removed. Recover it before using it.")
        self.name = name


class VaultExists(ArchiverError):
    """An active vault already holds this name."""

    def __init__(self, name: str):
        super().__init__(f"Vault '{name}' already exists. Pick another name.")
        self.name = name


class RemovedVaultExists(ArchiverError):
    """A removed vault holds this name; recovery is possible."""

    def __init__(self, name: str, vault_id: int):
        super().__init__(
            f"A removed vault named '{name}' exists (id {vault_id}). "
            f"Recover it, or create again with recovery enabled."
        )
        self.name = name
        self.vault_id = vault_id


class VaultNameReserved(ArchiverError):
    """The name of the default vault cannot be reused."""

    def __init__(self, name: str):
        super().__init__(f"Vault name '{name}' is reserved for the default vault.")
        self.name = name


class DefaultVaultProtected(ArchiverError):
    """The default vault can never be removed."""

    def __init__(self):
        super().__init__("The default vault is protected and cannot be removed.")


class VaultAlreadyRemoved(ArchiverError):
    def __init__(self, name: str):
        super().__init__(f"Vault '{name}' is already removed.")
        self.name = name


class VaultNotRemoved(ArchiverError):
    def __init__(self, name: str):
        super().__init__(f"Vault '{name}' is not removed; nothing to recover.")
        self.name = name


class VaultNotValid(ArchiverError):
    """Operation requires a Valid (user-created, active) vault."""

    def __init__(self, name: str, status: str):
        super().__init__(f"Vault '{name}' is {status}; only Valid vaults can be changed.")
        self.name = name
        self.status = status


# ---------------------------------------------------------------------------
# cd targets
# ---------------------------------------------------------------------------


class InvalidCdTarget(ValidationError):
    """cd target does not match <id> or <vault>/<id>."""

    def __init__(self, target: str, reason: str):
        super().__init__(
            f"cd target '{target}' {reason}",
            hint="Use <archiveId> or <vault>/<archiveId>.",
        )
        self.target = target
        self.reason = reason


class VaultMismatch(ArchiverError):
    """The vault named in a cd target is not the vault holding the id."""

    def __init__(self, archive_id: int, actual_vault_id: int, requested_vault_id: int):
        super().__init__(
            f"Archive id {archive_id} belongs to vault {actual_vault_id}, "
            f"not vault {requested_vault_id}. Drop the vault prefix or use the right one."
        )
        self.archive_id = archive_id
        self.actual_vault_id = actual_vault_id
        self.requested_vault_id = requested_vault_id


# ---------------------------------------------------------------------------
# Storage
# ---------------------------------------------------------------------------


class MetadataParseError(ArchiverError):
    """A metadata document could not be parsed."""

    def __init__(self, path: Path, detail: str):
        super().__init__(
            f"Failed to parse '{path}': {detail}. "
            f"Fix the syntax by hand or restore it from a backup. The file was not modified."
        )
        self.path = path
        self.detail = detail


class AuditWriteError(ArchiverError):
    """An audit record could not be appended. Never swallowed."""

    def __init__(self, path: Path, detail: str):
        super().__init__(
            f"Could not append audit record to {path}: {detail}. "
            f"Check permissions and free space on the store volume."
        )
        self.path = path
        self.detail = detail
