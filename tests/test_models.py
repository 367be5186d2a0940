"""Tests for archiver.models — record (de)serialisation and sanitising."""

from datetime import datetime

import pytest

from archiver.models import (
    ArchiveEntry,
    ArchiveStatus,
    Config,
    CounterName,
    Counters,
    LogEntry,
    LogLevel,
    Operation,
    OperationSource,
    Vault,
    VaultStatus,
    default_vault,
    format_timestamp,
    is_number,
    period_of,
    period_of_stamp,
)


class TestArchiveEntry:
    def test_camel_case_keys(self):
        entry = ArchiveEntry(id=1, vault_id=2, item="a.txt", directory="/w", is_directory=True)
        data = entry.to_dict()
        assert data["vaultId"] == 2
        assert data["isDirectory"] is True
        assert data["status"] == "Archived"
        assert ArchiveEntry.from_dict(data) == entry

    @pytest.mark.parametrize("raw", [None, [], {"id": 0}, {"id": "abc"}, {"id": True}, {}])
    def test_rejects_unusable_id(self, raw):
        assert ArchiveEntry.from_dict(raw) is None

    def test_restore_path(self):
        entry = ArchiveEntry(id=1, vault_id=0, item="a.txt", directory="/home/u/work")
        assert str(entry.restore_path) == "/home/u/work/a.txt"

    def test_status_enum(self):
        entry = ArchiveEntry.from_dict({"id": 1, "status": "Restored"})
        assert entry.status is ArchiveStatus.RESTORED
        assert not entry.is_archived


class TestVault:
    def test_protected_reserved_for_default(self):
        vault = Vault.from_dict({"id": 3, "name": "x", "status": "Protected"})
        assert vault.status is VaultStatus.VALID

    def test_default_vault_rows_dropped(self):
        assert Vault.from_dict({"id": 0, "name": "@"}) is None

    def test_default_vault(self):
        vault = default_vault()
        assert (vault.id, vault.name, vault.status) == (0, "@", VaultStatus.PROTECTED)
        assert vault.is_active
        assert vault.display == "@(0)"

    def test_removed_is_not_active(self):
        assert not Vault(id=1, name="x", status=VaultStatus.REMOVED).is_active


class TestConfig:
    def test_defaults(self):
        assert Config.from_dict(None) == Config()
        assert Config().to_dict()["vaultItemSeparator"] == "::"

    def test_invalid_values_replaced(self):
        config = Config.from_dict(
            {
                "currentVaultId": -4,
                "updateCheck": "sometimes",
                "aliasMap": {"w": "/work", "bad": 3},
                "vaultItemSeparator": "",
                "style": "off",
            }
        )
        assert config.current_vault_id == 0
        assert config.update_check == "on"
        assert config.alias_map == {"w": "/work"}
        assert config.vault_item_separator == "::"
        assert config.style == "off"


class TestCounters:
    def test_get_set(self):
        counters = Counters()
        counters.set(CounterName.LOG, 9)
        assert counters.get(CounterName.LOG) == 9
        assert counters.to_dict() == {"archiveId": 0, "vaultId": 0, "logId": 9}

    def test_negative_ignored(self):
        assert Counters.from_dict({"archiveId": -1, "vaultId": "2"}).to_dict() == {
            "archiveId": 0,
            "vaultId": 0,
            "logId": 0,
        }


class TestLogEntry:
    def test_operation_omits_empty_parts(self):
        assert Operation(main="put").to_dict() == {"main": "put", "source": "u"}

    def test_round_trip_with_links(self):
        entry = LogEntry(
            id=3,
            opered_at="2026-10-16 09:30:00",
            level=LogLevel.ERROR,
            oper=Operation(main="vault", sub="remove", args=["docs"], source=OperationSource.SYSTEM),
            message="m",
            archive_id=5,
        )
        data = entry.to_dict()
        assert "vaultId" not in data
        assert LogEntry.from_dict(data) == entry
        assert entry.period == "202610"

    def test_unknown_operation(self):
        entry = LogEntry.from_dict({"id": 1, "oper": "garbage", "level": "LOUD"})
        assert entry.oper.main == "unknown"
        assert entry.level is LogLevel.INFO


class TestHelpers:
    def test_timestamps(self):
        when = datetime(2026, 3, 4, 5, 6, 7)
        assert format_timestamp(when) == "2026-03-04 05:06:07"
        assert period_of(when) == "2026"
        assert period_of_stamp("2026-03-04 05:06:07") == "202603"
        assert period_of_stamp("n/a") == ""

    @pytest.mark.parametrize(
        ("text", "expected"),
        [("12", True), ("0", True), ("", False), ("-1", False), ("1.5", False), ("١٢", False)],
    )
    def test_is_number(self, text, expected):
        assert is_number(text) is expected
