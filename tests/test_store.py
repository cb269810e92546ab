"""
Tests for the vault store — records, index, tombstones and the unlock counter.
"""

from __future__ import annotations

import json
import threading

import pytest

from lockvault.errors import StoreError, VaultNotFound
from lockvault.store import KIND_DRAFT, KIND_SUPERSEDED, KIND_VAULT, VaultStore

ID_A = "aa" * 32
ID_B = "bb" * 32
ID_C = "cc" * 32


def _record(vault_id, status="bound", created_at=1, **extra):
    record = {"id": vault_id, "status": status, "network": "testnet", "created_at": created_at}
    record.update(extra)
    return record


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------

class TestRecords:

    def test_put_and_get_vault(self, tmp_store):
        tmp_store.put_vault(_record(ID_A))
        assert tmp_store.get_vault(ID_A)["status"] == "bound"
        assert tmp_store.kind_of(ID_A) == KIND_VAULT

    def test_put_and_get_draft(self, tmp_store):
        tmp_store.put_draft(_record(ID_A, status="draft"))
        assert tmp_store.get_draft(ID_A)["status"] == "draft"
        assert tmp_store.kind_of(ID_A) == KIND_DRAFT
        with pytest.raises(VaultNotFound, match="Vault not found"):
            tmp_store.get_vault(ID_A)

    def test_remove_draft(self, tmp_store):
        tmp_store.put_draft(_record(ID_A, status="draft"))
        tmp_store.remove_draft(ID_A)
        assert tmp_store.kind_of(ID_A) is None
        with pytest.raises(VaultNotFound, match="Draft not found"):
            tmp_store.get_draft(ID_A)

    def test_unknown(self, tmp_store):
        assert tmp_store.kind_of(ID_A) is None
        with pytest.raises(VaultNotFound):
            tmp_store.get_vault(ID_A)

    def test_duplicate_id_rejected(self, tmp_store):
        tmp_store.put_vault(_record(ID_A))
        with pytest.raises(StoreError, match="already used"):
            tmp_store.put_vault(_record(ID_A))
        with pytest.raises(StoreError, match="already used"):
            tmp_store.put_draft(_record(ID_A))

    @pytest.mark.parametrize("vault_id", ["../../etc/passwd", "AB" * 32, "ab"])
    def test_invalid_id(self, tmp_store, vault_id):
        with pytest.raises(ValueError, match="Invalid vault id"):
            tmp_store.get_vault(vault_id)

    def test_update_vault(self, tmp_store):
        tmp_store.put_vault(_record(ID_A))
        updated = tmp_store.update_vault(ID_A, status="active", selected_amount=7_000)
        assert updated["status"] == "active"
        assert tmp_store.get_vault(ID_A)["selected_amount"] == 7_000
        index = json.loads(tmp_store.index_path.read_text())
        assert index[ID_A]["status"] == "active"

    def test_records_are_private(self, tmp_store):
        tmp_store.put_vault(_record(ID_A))
        mode = (tmp_store.vaults_dir / f"{ID_A}.json").stat().st_mode & 0o777
        assert mode == 0o600

    def test_no_temp_files_left(self, tmp_store):
        tmp_store.put_vault(_record(ID_A))
        tmp_store.update_vault(ID_A, status="active")
        assert not list(tmp_store.root.rglob("*.tmp"))

    def test_list_sorted_oldest_first(self, tmp_store):
        tmp_store.put_vault(_record(ID_B, created_at=5))
        tmp_store.put_vault(_record(ID_A, created_at=9))
        tmp_store.put_draft(_record(ID_C, status="draft", created_at=1))
        assert [r["id"] for r in tmp_store.list_records()] == [ID_B, ID_A]
        assert [r["id"] for r in tmp_store.list_records(include_drafts=True)] == [ID_C, ID_B, ID_A]

    def test_list_empty(self, tmp_store):
        assert tmp_store.list_records() == []


# ---------------------------------------------------------------------------
# Bind / supersede
# ---------------------------------------------------------------------------

class TestTransitions:

    def test_bind_draft(self, tmp_store):
        tmp_store.put_draft(_record(ID_A, status="draft"))
        tmp_store.bind_draft(ID_A, _record(ID_B))
        assert tmp_store.kind_of(ID_A) is None
        assert tmp_store.kind_of(ID_B) == KIND_VAULT
        assert not (tmp_store.drafts_dir / f"{ID_A}.json").exists()

    def test_bind_missing_draft(self, tmp_store):
        with pytest.raises(VaultNotFound):
            tmp_store.bind_draft(ID_A, _record(ID_B))

    def test_bind_to_taken_id(self, tmp_store):
        tmp_store.put_vault(_record(ID_B))
        tmp_store.put_draft(_record(ID_A, status="draft"))
        with pytest.raises(StoreError):
            tmp_store.bind_draft(ID_A, _record(ID_B))
        assert tmp_store.kind_of(ID_A) == KIND_DRAFT

    def test_supersede_leaves_tombstone(self, tmp_store):
        tmp_store.put_vault(_record(ID_A, unlock_count=2))
        tmp_store.supersede(ID_A, _record(ID_B, unlock_count=2))
        assert tmp_store.kind_of(ID_A) == KIND_SUPERSEDED
        assert tmp_store.superseded_by(ID_A) == ID_B
        assert tmp_store.get_unlock_count(ID_B) == 2
        with pytest.raises(VaultNotFound):
            tmp_store.get_vault(ID_A)
        assert [r["id"] for r in tmp_store.list_records()] == [ID_B]

    def test_superseded_id_never_reused(self, tmp_store):
        tmp_store.put_vault(_record(ID_A))
        tmp_store.supersede(ID_A, _record(ID_B))
        with pytest.raises(StoreError, match="superseded"):
            tmp_store.put_vault(_record(ID_A))

    def test_superseded_by_unknown(self, tmp_store):
        assert tmp_store.superseded_by(ID_A) is None


# ---------------------------------------------------------------------------
# Unlock counter
# ---------------------------------------------------------------------------

class TestUnlockCounter:

    def test_increment_below_limit(self, tmp_store):
        tmp_store.put_vault(_record(ID_A))
        assert tmp_store.increment_unlock_count_if_below_limit(ID_A, 2)
        assert tmp_store.increment_unlock_count_if_below_limit(ID_A, 2)
        assert not tmp_store.increment_unlock_count_if_below_limit(ID_A, 2)
        assert tmp_store.get_unlock_count(ID_A) == 2

    def test_unlimited(self, tmp_store):
        tmp_store.put_vault(_record(ID_A))
        for _ in range(5):
            assert tmp_store.increment_unlock_count_if_below_limit(ID_A, None)
        assert tmp_store.get_unlock_count(ID_A) == 5

    def test_concurrent_increments(self, tmp_store):
        tmp_store.put_vault(_record(ID_A))
        wins = []

        def worker():
            if tmp_store.increment_unlock_count_if_below_limit(ID_A, 4):
                wins.append(1)

        threads = [threading.Thread(target=worker) for _ in range(12)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert len(wins) == 4
        assert tmp_store.get_unlock_count(ID_A) == 4


# ---------------------------------------------------------------------------
# Corruption and configuration
# ---------------------------------------------------------------------------

class TestCorruption:

    def test_corrupt_index(self, tmp_store):
        tmp_store.root.mkdir(parents=True)
        tmp_store.index_path.write_text("{not json")
        with pytest.raises(StoreError, match="Corrupt store index"):
            tmp_store.kind_of(ID_A)

    def test_index_not_object(self, tmp_store):
        tmp_store.root.mkdir(parents=True)
        tmp_store.index_path.write_text("[]")
        with pytest.raises(StoreError, match="not an object"):
            tmp_store.list_records()

    def test_record_id_mismatch(self, tmp_store):
        tmp_store.put_vault(_record(ID_A))
        path = tmp_store.vaults_dir / f"{ID_A}.json"
        path.write_text(json.dumps(_record(ID_B)))
        with pytest.raises(StoreError, match="id mismatch"):
            tmp_store.get_vault(ID_A)

    def test_from_env(self, monkeypatch, tmp_path):
        monkeypatch.setenv("LOCK_HOME", str(tmp_path / "home"))
        store = VaultStore.from_env()
        assert store.root == tmp_path / "home"
        assert store.index_path == tmp_path / "home" / "index.json"
