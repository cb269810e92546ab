"""
Vault store — local JSON persistence for drafts, bound vaults and unlock counters.

Storage layout:
    ~/.lock/drafts/<vault_id>.json   — draft records (provisional id)
    ~/.lock/vaults/<vault_id>.json   — bound/active/terminal vault records
    ~/.lock/index.json               — id -> {kind, status, updated_at, superseded_by}

Records are plain dicts (see lockvault.vault.Vault.to_dict). All writes are
atomic (temp file + os.replace). A threading.Lock serializes every
read-modify-write, which makes increment_unlock_count_if_below_limit the
single atomic point for the unlock counter inside one process.

Ids are never reused: an id that was superseded by a rebind stays in the
index as a tombstone, and put_vault refuses it.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Protocol

from lockvault import DEFAULT_HOME
from lockvault.errors import StoreError, VaultNotFound
from lockvault.identity import validate_vault_id
from lockvault.metadata import now_ms

logger = logging.getLogger(__name__)

KIND_DRAFT = "draft"
KIND_VAULT = "vault"
KIND_SUPERSEDED = "superseded"


class UnlockCounter(Protocol):
    """Storage collaborator for the unlock counter."""

    def get_unlock_count(self, vault_id: str) -> int: ...

    def increment_unlock_count_if_below_limit(self, vault_id: str, limit: int | None) -> bool: ...


def _write_json_atomic(path: Path, data: Any, prefix: str) -> None:
    """Write JSON to path via temp file + os.replace in the same directory."""
    path.parent.mkdir(parents=True, exist_ok=True)
    content = json.dumps(data, indent=2, sort_keys=True)
    fd, tmp_path = tempfile.mkstemp(dir=str(path.parent), suffix=".tmp", prefix=prefix)
    try:
        os.write(fd, content.encode("utf-8"))
        os.fsync(fd)
        os.close(fd)
        os.chmod(tmp_path, 0o600)
        os.replace(tmp_path, str(path))
    except Exception:
        try:
            os.close(fd)
        except OSError:
            pass
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise


class VaultStore:
    """File-based vault store.

    Usage:
        store = VaultStore()
        store.put_draft(record)
        store.put_vault(bound_record)
        store.remove_draft(record["id"])
        ok = store.increment_unlock_count_if_below_limit(vault_id, limit=3)
    """

    def __init__(self, root: str | Path | None = None) -> None:
        self.root = Path(root) if root else DEFAULT_HOME
        self.vaults_dir = self.root / "vaults"
        self.drafts_dir = self.root / "drafts"
        self.index_path = self.root / "index.json"
        self._lock = threading.Lock()

    @classmethod
    def from_env(cls) -> VaultStore:
        """Store rooted at LOCK_HOME (default ~/.lock)."""
        return cls(os.environ.get("LOCK_HOME") or None)

    # -- index -------------------------------------------------------------

    def _read_index(self) -> dict[str, dict[str, Any]]:
        """Read the JSON index. Returns empty dict if missing."""
        if not self.index_path.is_file():
            return {}
        try:
            index = json.loads(self.index_path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as e:
            raise StoreError(f"Corrupt store index {self.index_path}: {e}") from e
        if not isinstance(index, dict):
            raise StoreError(f"Corrupt store index {self.index_path}: not an object")
        return index

    def _write_index(self, index: dict[str, dict[str, Any]]) -> None:
        _write_json_atomic(self.index_path, index, ".index_")

    def _index_entry(self, record: dict[str, Any], kind: str) -> dict[str, Any]:
        return {
            "kind": kind,
            "status": record.get("status", ""),
            "network": record.get("network", ""),
            "updated_at": record.get("updated_at", now_ms()),
        }

    # -- record files --------------------------------------------------------

    def _path(self, kind: str, vault_id: str) -> Path:
        validate_vault_id(vault_id)
        base = self.drafts_dir if kind == KIND_DRAFT else self.vaults_dir
        return base / f"{vault_id}.json"

    def _read_record(self, kind: str, vault_id: str) -> dict[str, Any]:
        path = self._path(kind, vault_id)
        if not path.is_file():
            raise VaultNotFound(f"{kind.capitalize()} not found: {vault_id}")
        try:
            record = json.loads(path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as e:
            raise StoreError(f"Corrupt {kind} record {vault_id}: {e}") from e
        if not isinstance(record, dict) or record.get("id") != vault_id:
            raise StoreError(f"Corrupt {kind} record {vault_id}: id mismatch")
        return record

    def _write_record(self, kind: str, record: dict[str, Any]) -> None:
        path = self._path(kind, record["id"])
        _write_json_atomic(path, record, f".{kind}_")
        logger.debug("Wrote %s record %s", kind, record["id"][:16])

    def _check_fresh_id(self, index: dict[str, dict[str, Any]], vault_id: str) -> None:
        entry = index.get(vault_id)
        if entry is not None:
            raise StoreError(
                f"Vault id {vault_id} already used ({entry.get('kind', 'unknown')})"
            )

    # -- drafts --------------------------------------------------------------

    def put_draft(self, record: dict[str, Any]) -> None:
        """Store a new draft record. Raises StoreError if the id is taken."""
        with self._lock:
            index = self._read_index()
            self._check_fresh_id(index, record["id"])
            self._write_record(KIND_DRAFT, record)
            index[record["id"]] = self._index_entry(record, KIND_DRAFT)
            self._write_index(index)

    def get_draft(self, vault_id: str) -> dict[str, Any]:
        with self._lock:
            return self._read_record(KIND_DRAFT, vault_id)

    def remove_draft(self, vault_id: str) -> None:
        with self._lock:
            path = self._path(KIND_DRAFT, vault_id)
            if not path.is_file():
                raise VaultNotFound(f"Draft not found: {vault_id}")
            path.unlink()
            index = self._read_index()
            index.pop(vault_id, None)
            self._write_index(index)

    # -- vaults --------------------------------------------------------------

    def put_vault(self, record: dict[str, Any]) -> None:
        """Store a new bound vault record. Raises StoreError if the id was ever used."""
        with self._lock:
            index = self._read_index()
            self._check_fresh_id(index, record["id"])
            self._write_record(KIND_VAULT, record)
            index[record["id"]] = self._index_entry(record, KIND_VAULT)
            self._write_index(index)

    def bind_draft(self, draft_id: str, record: dict[str, Any]) -> None:
        """Replace a draft with its bound vault record in one locked step."""
        with self._lock:
            index = self._read_index()
            draft_path = self._path(KIND_DRAFT, draft_id)
            if not draft_path.is_file():
                raise VaultNotFound(f"Draft not found: {draft_id}")
            self._check_fresh_id(
                {k: v for k, v in index.items() if k != draft_id}, record["id"]
            )
            self._write_record(KIND_VAULT, record)
            draft_path.unlink()
            index.pop(draft_id, None)
            index[record["id"]] = self._index_entry(record, KIND_VAULT)
            self._write_index(index)

    def get_vault(self, vault_id: str) -> dict[str, Any]:
        with self._lock:
            return self._read_record(KIND_VAULT, vault_id)

    def update_vault(self, vault_id: str, **changes: Any) -> dict[str, Any]:
        """Apply field changes to a vault record. Returns the updated record."""
        with self._lock:
            record = self._read_record(KIND_VAULT, vault_id)
            record.update(changes)
            record["updated_at"] = now_ms()
            self._write_record(KIND_VAULT, record)
            index = self._read_index()
            index[vault_id] = self._index_entry(record, KIND_VAULT)
            self._write_index(index)
            return record

    def supersede(self, old_id: str, new_record: dict[str, Any]) -> None:
        """Replace vault old_id with new_record; old_id becomes a tombstone."""
        with self._lock:
            index = self._read_index()
            old_path = self._path(KIND_VAULT, old_id)
            if not old_path.is_file():
                raise VaultNotFound(f"Vault not found: {old_id}")
            self._check_fresh_id(index, new_record["id"])
            self._write_record(KIND_VAULT, new_record)
            old_path.unlink()
            index[old_id] = {
                "kind": KIND_SUPERSEDED,
                "superseded_by": new_record["id"],
                "updated_at": now_ms(),
            }
            index[new_record["id"]] = self._index_entry(new_record, KIND_VAULT)
            self._write_index(index)

    def superseded_by(self, vault_id: str) -> str | None:
        """Id that replaced vault_id on rebind, or None."""
        with self._lock:
            entry = self._read_index().get(vault_id, {})
            return entry.get("superseded_by")

    def kind_of(self, vault_id: str) -> str | None:
        """"draft", "vault", "superseded" or None for an unknown id."""
        with self._lock:
            entry = self._read_index().get(vault_id)
            return entry.get("kind") if entry else None

    def list_records(self, include_drafts: bool = False) -> list[dict[str, Any]]:
        """All vault records (optionally drafts too), oldest first."""
        with self._lock:
            index = self._read_index()
            kinds = {KIND_VAULT, KIND_DRAFT} if include_drafts else {KIND_VAULT}
            records = [
                self._read_record(entry["kind"], vault_id)
                for vault_id, entry in index.items()
                if entry.get("kind") in kinds
            ]
        records.sort(key=lambda r: (r.get("created_at", 0), r["id"]))
        return records

    # -- unlock counter ------------------------------------------------------

    def get_unlock_count(self, vault_id: str) -> int:
        with self._lock:
            return int(self._read_record(KIND_VAULT, vault_id).get("unlock_count", 0))

    def increment_unlock_count_if_below_limit(self, vault_id: str, limit: int | None) -> bool:
        """Atomically increment the unlock counter unless it has reached limit.

        Returns True if the counter was incremented.
        """
        with self._lock:
            record = self._read_record(KIND_VAULT, vault_id)
            count = int(record.get("unlock_count", 0))
            if limit is not None and count >= limit:
                return False
            record["unlock_count"] = count + 1
            record["updated_at"] = now_ms()
            self._write_record(KIND_VAULT, record)
            return True
