"""Record types persisted by the store.

On disk every record is a flat JSON object with camelCase keys.
``from_dict`` never raises on bad field values: out-of-range or
wrong-typed fields are replaced with defaults so a hand-edited file
degrades instead of crashing. Only records without a usable id are
rejected (``None``).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any

# ---------------------------------------------------------------------------
# Closed enumerations
# ---------------------------------------------------------------------------


class ArchiveStatus(str, Enum):
    ARCHIVED = "Archived"
    RESTORED = "Restored"


class VaultStatus(str, Enum):
    VALID = "Valid"
    REMOVED = "Removed"
    PROTECTED = "Protected"


class LogLevel(str, Enum):
    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"
    FATAL = "FATAL"


class IssueLevel(str, Enum):
    ERROR = "Error"
    WARN = "Warn"


class OperationSource(str, Enum):
    USER = "u"
    SYSTEM = "s"


class CounterName(str, Enum):
    ARCHIVE = "archiveId"
    VAULT = "vaultId"
    LOG = "logId"


# ---------------------------------------------------------------------------
# Field coercion
# ---------------------------------------------------------------------------


def _int(value: Any, default: int, minimum: int = 0) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        return default
    return value if value >= minimum else default


def _id(value: Any) -> int | None:
    """Accept ints and digit strings; anything else is no id."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and is_number(value.strip()):
        return int(value.strip())
    return None


def _str(value: Any, default: str = "") -> str:
    if value is None:
        return default
    return value if isinstance(value, str) else str(value)


def is_number(text: str) -> bool:
    """ASCII digits only (no signs, no other scripts)."""
    return bool(text) and text.isascii() and text.isdigit()


def _enum(enum_cls: type[Enum], value: Any, default: Enum) -> Any:
    try:
        return enum_cls(value)
    except ValueError:
        return default


# ---------------------------------------------------------------------------
# Timestamps
# ---------------------------------------------------------------------------

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def format_timestamp(when: datetime | None = None) -> str:
    """Local time as ``YYYY-MM-DD HH:MM:SS``."""
    return (when or datetime.now()).strftime(TIMESTAMP_FORMAT)


def period_of(when: datetime | None = None) -> str:
    """Log period (``YYYY``) a record written at *when* belongs to."""
    return (when or datetime.now()).strftime("%Y")


def period_of_stamp(stamp: str) -> str:
    """Extract the ``YYYYMM`` month of a stored timestamp; '' if it has none."""
    digits = "".join(ch for ch in stamp if ch.isascii() and ch.isdigit())
    return digits[:6] if len(digits) >= 6 else ""


# ---------------------------------------------------------------------------
# Archive entries
# ---------------------------------------------------------------------------


@dataclass
class ArchiveEntry:
    """One archived (or since restored) file or directory."""

    id: int
    vault_id: int
    item: str
    directory: str
    status: ArchiveStatus = ArchiveStatus.ARCHIVED
    is_directory: bool = False
    archived_at: str = ""
    message: str = ""
    remark: str = ""

    @property
    def restore_path(self) -> Path:
        """Where restore puts the object back."""
        return Path(self.directory) / self.item

    @property
    def is_archived(self) -> bool:
        return self.status is ArchiveStatus.ARCHIVED

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "vaultId": self.vault_id,
            "item": self.item,
            "directory": self.directory,
            "status": self.status.value,
            "isDirectory": self.is_directory,
            "archivedAt": self.archived_at,
            "message": self.message,
            "remark": self.remark,
        }

    @classmethod
    def from_dict(cls, data: Any) -> ArchiveEntry | None:
        if not isinstance(data, dict):
            return None
        entry_id = _id(data.get("id"))
        if entry_id is None or entry_id <= 0:
            return None
        vault_id = _id(data.get("vaultId"))
        return cls(
            id=entry_id,
            vault_id=vault_id if vault_id is not None and vault_id >= 0 else 0,
            item=_str(data.get("item")),
            directory=_str(data.get("directory")),
            status=_enum(ArchiveStatus, data.get("status"), ArchiveStatus.ARCHIVED),
            is_directory=data.get("isDirectory") in (True, 1),
            archived_at=_str(data.get("archivedAt")),
            message=_str(data.get("message")),
            remark=_str(data.get("remark")),
        )


# ---------------------------------------------------------------------------
# Vaults
# ---------------------------------------------------------------------------

DEFAULT_VAULT_ID = 0
DEFAULT_VAULT_NAME = "@"


@dataclass
class Vault:
    id: int
    name: str
    remark: str = ""
    created_at: str = ""
    status: VaultStatus = VaultStatus.VALID

    @property
    def is_active(self) -> bool:
        """Valid or Protected; may receive archives."""
        return self.status is not VaultStatus.REMOVED

    @property
    def display(self) -> str:
        return f"{self.name}({self.id})"

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "remark": self.remark,
            "createdAt": self.created_at,
            "status": self.status.value,
        }

    @classmethod
    def from_dict(cls, data: Any) -> Vault | None:
        """Parse a vaults.jsonl row. The default vault is never stored."""
        if not isinstance(data, dict):
            return None
        vault_id = _id(data.get("id"))
        if vault_id is None or vault_id <= DEFAULT_VAULT_ID:
            return None
        status = _enum(VaultStatus, data.get("status"), VaultStatus.VALID)
        if status is VaultStatus.PROTECTED:
            # Protected is exclusive to the default vault
            status = VaultStatus.VALID
        return cls(
            id=vault_id,
            name=_str(data.get("name")),
            remark=_str(data.get("remark")),
            created_at=_str(data.get("createdAt")),
            status=status,
        )


def default_vault() -> Vault:
    """A fresh copy of the implicit default vault."""
    return Vault(
        id=DEFAULT_VAULT_ID,
        name=DEFAULT_VAULT_NAME,
        remark="Default vault",
        created_at="system",
        status=VaultStatus.PROTECTED,
    )


# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------

_ON_OFF = ("on", "off")


@dataclass
class Config:
    current_vault_id: int = DEFAULT_VAULT_ID
    update_check: str = "on"
    last_update_check: str = ""
    alias_map: dict[str, str] = field(default_factory=dict)
    vault_item_separator: str = "::"
    style: str = "on"

    def to_dict(self) -> dict[str, Any]:
        return {
            "currentVaultId": self.current_vault_id,
            "updateCheck": self.update_check,
            "lastUpdateCheck": self.last_update_check,
            "aliasMap": dict(self.alias_map),
            "vaultItemSeparator": self.vault_item_separator,
            "style": self.style,
        }

    @classmethod
    def from_dict(cls, data: Any) -> Config:
        if not isinstance(data, dict):
            return cls()
        defaults = cls()
        raw_aliases = data.get("aliasMap")
        aliases = (
            {str(k): str(v) for k, v in raw_aliases.items() if isinstance(v, str)}
            if isinstance(raw_aliases, dict)
            else {}
        )
        separator = data.get("vaultItemSeparator")
        return cls(
            current_vault_id=_int(data.get("currentVaultId"), defaults.current_vault_id),
            update_check=data.get("updateCheck") if data.get("updateCheck") in _ON_OFF else "on",
            last_update_check=_str(data.get("lastUpdateCheck")),
            alias_map=aliases,
            vault_item_separator=(
                separator
                if isinstance(separator, str) and separator
                else defaults.vault_item_separator
            ),
            style=data.get("style") if data.get("style") in _ON_OFF else "on",
        )


# ---------------------------------------------------------------------------
# Counters
# ---------------------------------------------------------------------------


@dataclass
class Counters:
    archive_id: int = 0
    vault_id: int = 0
    log_id: int = 0

    _ATTRS = {
        CounterName.ARCHIVE: "archive_id",
        CounterName.VAULT: "vault_id",
        CounterName.LOG: "log_id",
    }

    def get(self, name: CounterName) -> int:
        return getattr(self, self._ATTRS[name])

    def set(self, name: CounterName, value: int) -> None:
        setattr(self, self._ATTRS[name], value)

    def to_dict(self) -> dict[str, Any]:
        return {name.value: self.get(name) for name in CounterName}

    @classmethod
    def from_dict(cls, data: Any) -> Counters:
        if not isinstance(data, dict):
            return cls()
        counters = cls()
        for name in CounterName:
            counters.set(name, _int(data.get(name.value), 0))
        return counters


# ---------------------------------------------------------------------------
# Audit log
# ---------------------------------------------------------------------------


@dataclass
class Operation:
    """What was invoked: command, sub-action, arguments, options, source."""

    main: str
    sub: str = ""
    args: list[str] = field(default_factory=list)
    opts: dict[str, Any] = field(default_factory=dict)
    source: OperationSource = OperationSource.USER

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"main": self.main}
        if self.sub:
            data["sub"] = self.sub
        if self.args:
            data["args"] = list(self.args)
        if self.opts:
            data["opts"] = dict(self.opts)
        data["source"] = self.source.value
        return data

    @classmethod
    def from_dict(cls, data: Any) -> Operation:
        if not isinstance(data, dict):
            return cls(main="unknown")
        args = data.get("args")
        opts = data.get("opts")
        return cls(
            main=_str(data.get("main"), "unknown") or "unknown",
            sub=_str(data.get("sub")),
            args=[str(a) for a in args] if isinstance(args, list) else [],
            opts=dict(opts) if isinstance(opts, dict) else {},
            source=_enum(OperationSource, data.get("source"), OperationSource.USER),
        )


@dataclass
class LogEntry:
    id: int
    opered_at: str
    level: LogLevel
    oper: Operation
    message: str
    archive_id: int | None = None
    vault_id: int | None = None

    @property
    def period(self) -> str:
        return period_of_stamp(self.opered_at)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "operedAt": self.opered_at,
            "level": self.level.value,
            "oper": self.oper.to_dict(),
            "message": self.message,
        }
        if self.archive_id is not None:
            data["archiveId"] = self.archive_id
        if self.vault_id is not None:
            data["vaultId"] = self.vault_id
        return data

    @classmethod
    def from_dict(cls, data: Any) -> LogEntry | None:
        if not isinstance(data, dict):
            return None
        log_id = _id(data.get("id"))
        if log_id is None:
            return None
        return cls(
            id=log_id,
            opered_at=_str(data.get("operedAt")),
            level=_enum(LogLevel, data.get("level"), LogLevel.INFO),
            oper=Operation.from_dict(data.get("oper")),
            message=_str(data.get("message")),
            archive_id=_id(data.get("archiveId")),
            vault_id=_id(data.get("vaultId")),
        )
