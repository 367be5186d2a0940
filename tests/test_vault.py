"""Tests for archiver.vault — vault lifecycle and relocation on remove."""

from __future__ import annotations

import pytest

from archiver.errors import (
    DefaultVaultProtected,
    RemovedVaultExists,
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
from archiver.models import ArchiveStatus, OperationSource, VaultStatus


class TestCreate:
    def test_allocates_id_and_directory(self, ctx, store):
        result = ctx.vaults.create("docs", remark="papers")
        assert result.vault.id == 1
        assert result.recovered is False
        assert store.vault_dir(1).is_dir()

        [saved] = store.load_vaults(force_refresh=True)
        assert saved.name == "docs"
        assert saved.remark == "papers"
        assert saved.status is VaultStatus.VALID

    def test_ids_increase(self, ctx):
        a = ctx.vaults.create("a").vault
        b = ctx.vaults.create("b").vault
        assert b.id == a.id + 1

    def test_activate(self, ctx, store):
        vault = ctx.vaults.create("docs", activate=True).vault
        assert store.load_config(force_refresh=True).current_vault_id == vault.id

    def test_without_activate_keeps_current(self, ctx, store):
        ctx.vaults.create("docs")
        assert store.load_config().current_vault_id == 0

    @pytest.mark.parametrize("name", ["", "   "])
    def test_invalid_names(self, ctx, name):
        with pytest.raises(ValidationError):
            ctx.vaults.create(name)

    def test_digit_name_allowed(self, ctx, store):
        vault = ctx.vaults.create("2024").vault
        assert vault.name == "2024"
        assert store.vault_dir(vault.id).is_dir()
        assert [v.name for v in store.load_vaults(force_refresh=True)] == ["2024"]

    def test_reserved_name(self, ctx):
        with pytest.raises(VaultNameReserved):
            ctx.vaults.create("@")

    def test_duplicate_active_name(self, ctx):
        ctx.vaults.create("docs")
        with pytest.raises(VaultExists):
            ctx.vaults.create("docs")

    def test_removed_name_signals_recovery(self, ctx):
        old = ctx.vaults.create("docs").vault
        ctx.vaults.remove("docs")
        with pytest.raises(RemovedVaultExists) as exc_info:
            ctx.vaults.create("docs")
        assert exc_info.value.vault_id == old.id

    def test_removed_name_recovered_with_flag(self, ctx, store):
        old = ctx.vaults.create("docs").vault
        ctx.vaults.remove("docs")
        result = ctx.vaults.create("docs", recover_removed=True)
        assert result.recovered is True
        assert result.vault.id == old.id
        assert result.vault.status is VaultStatus.VALID
        assert store.load_counters().vault_id == old.id

    def test_audit_record(self, ctx):
        vault = ctx.vaults.create("docs").vault
        log = ctx.logs.load_all()[-1]
        assert (log.oper.main, log.oper.sub) == ("vault", "create")
        assert log.vault_id == vault.id


class TestRemove:
    def test_relocates_archived_entries(self, ctx, store, make_file):
        vault = ctx.vaults.create("docs").vault
        put = ctx.archive.put([str(make_file("a.txt")), str(make_file("b.txt"))], vault="docs")
        ids = [i.id for i in put.ok]

        result = ctx.vaults.remove("docs")

        assert result.moved_archive_ids == ids
        assert result.vault.status is VaultStatus.REMOVED
        for aid in ids:
            assert not store.slot_path(vault.id, aid).exists()
            assert store.slot_path(0, aid).is_dir()
        entries = store.load_archive_entries(force_refresh=True)
        assert {e.vault_id for e in entries} == {0}
        assert store.load_vaults(force_refresh=True)[0].status is VaultStatus.REMOVED

    def test_relocations_logged_as_system(self, ctx, make_file):
        ctx.vaults.create("docs")
        aid = ctx.archive.put([str(make_file("a.txt"))], vault="docs").ok[0].id
        ctx.vaults.remove("docs")
        relocation = [log for log in ctx.logs.load_all() if log.archive_id == aid][-1]
        assert relocation.oper.source is OperationSource.SYSTEM

    def test_restored_entries_untouched(self, ctx, store, make_file):
        vault = ctx.vaults.create("docs").vault
        aid = ctx.archive.put([str(make_file("a.txt"))], vault="docs").ok[0].id
        ctx.archive.restore([aid])

        result = ctx.vaults.remove("docs")

        assert result.moved_archive_ids == []
        entry = store.find_entry(aid)
        assert entry.vault_id == vault.id
        assert entry.status is ArchiveStatus.RESTORED

    @pytest.mark.parametrize("ref", ["@", 0, "0"])
    def test_default_vault_protected(self, ctx, ref):
        with pytest.raises(DefaultVaultProtected):
            ctx.vaults.remove(ref)

    def test_twice(self, ctx):
        ctx.vaults.create("docs")
        ctx.vaults.remove("docs")
        with pytest.raises(VaultAlreadyRemoved):
            ctx.vaults.remove("docs")

    def test_unknown(self, ctx):
        with pytest.raises(VaultNotFound):
            ctx.vaults.remove("nope")

    def test_resets_current_vault(self, ctx, store):
        ctx.vaults.create("docs", activate=True)
        ctx.vaults.remove("docs")
        assert store.load_config(force_refresh=True).current_vault_id == 0

    def test_occupied_default_slot_aborts(self, ctx, store, make_file):
        vault = ctx.vaults.create("docs").vault
        aid = ctx.archive.put([str(make_file("a.txt"))], vault="docs").ok[0].id
        store.slot_path(0, aid).mkdir()

        with pytest.raises(SlotOccupied):
            ctx.vaults.remove("docs")

        assert store.slot_object_path(vault.id, aid, "a.txt").exists()
        assert store.find_entry(aid).vault_id == vault.id
        assert store.resolve_vault("docs").is_active


class TestRecover:
    def test_recover_by_name(self, ctx, store):
        vault = ctx.vaults.create("docs").vault
        ctx.vaults.remove("docs")
        recovered = ctx.vaults.recover("docs")
        assert recovered.id == vault.id
        assert recovered.status is VaultStatus.VALID

    def test_recreates_directory(self, ctx, store):
        vault = ctx.vaults.create("docs").vault
        ctx.vaults.remove("docs")
        store.vault_dir(vault.id).rmdir()
        ctx.vaults.recover(vault.id)
        assert store.vault_dir(vault.id).is_dir()

    def test_not_removed(self, ctx):
        ctx.vaults.create("docs")
        with pytest.raises(VaultNotRemoved):
            ctx.vaults.recover("docs")

    def test_default_vault(self, ctx):
        with pytest.raises(VaultNotRemoved):
            ctx.vaults.recover("@")

    def test_unknown(self, ctx):
        with pytest.raises(VaultNotFound):
            ctx.vaults.recover("nope")


class TestRename:
    def test_rename(self, ctx, store):
        vault = ctx.vaults.create("docs").vault
        renamed = ctx.vaults.rename("docs", "papers")
        assert renamed.id == vault.id
        assert store.resolve_vault("papers").id == vault.id
        assert store.resolve_vault("docs") is None

    def test_collision_with_active(self, ctx):
        ctx.vaults.create("docs")
        ctx.vaults.create("papers")
        with pytest.raises(VaultExists):
            ctx.vaults.rename("docs", "papers")

    def test_collision_with_removed(self, ctx):
        ctx.vaults.create("docs")
        ctx.vaults.create("papers")
        ctx.vaults.remove("papers")
        with pytest.raises(RemovedVaultExists):
            ctx.vaults.rename("docs", "papers")

    def test_removed_vault(self, ctx):
        ctx.vaults.create("docs")
        ctx.vaults.remove("docs")
        with pytest.raises(VaultNotValid):
            ctx.vaults.rename("docs", "papers")

    def test_default_vault(self, ctx):
        with pytest.raises(VaultNotValid):
            ctx.vaults.rename("@", "home")

    def test_reserved_target(self, ctx):
        ctx.vaults.create("docs")
        with pytest.raises(VaultNameReserved):
            ctx.vaults.rename("docs", "@")


class TestUse:
    def test_sets_current(self, ctx, store):
        vault = ctx.vaults.create("docs").vault
        ctx.vaults.use("docs")
        assert store.load_config(force_refresh=True).current_vault_id == vault.id
        ctx.vaults.use("@")
        assert store.load_config(force_refresh=True).current_vault_id == 0

    def test_removed(self, ctx):
        ctx.vaults.create("docs")
        ctx.vaults.remove("docs")
        with pytest.raises(VaultRemoved):
            ctx.vaults.use("docs")

    def test_unknown(self, ctx):
        with pytest.raises(VaultNotFound):
            ctx.vaults.use(7)


class TestReadSide:
    def test_list_starts_with_default(self, ctx):
        ctx.vaults.create("docs")
        ctx.vaults.create("old")
        ctx.vaults.remove("old")
        assert [v.name for v in ctx.vaults.list()] == ["@", "docs"]
        assert [v.name for v in ctx.vaults.list(include_removed=True)] == ["@", "docs", "old"]

    def test_archived_ids_on_disk(self, ctx, store, make_file):
        ids = [i.id for i in ctx.archive.put([str(make_file("a")), str(make_file("b"))]).ok]
        (store.vault_dir(0) / "notes").mkdir()
        assert ctx.vaults.list_archived_ids_in_vault(0) == ids

    def test_display(self, ctx):
        vault = ctx.vaults.create("docs").vault
        assert ctx.vaults.display(vault) == f"docs({vault.id})"
