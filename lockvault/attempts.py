"""
Append-only, hash-chained log of unseal attempts.

Each entry includes:
    - vault_id, txid, valid, errors, timestamp
    - prev_hash: hash of the previous entry (chain linkage)
    - entry_hash: SHA-256(prev_hash | vault_id | txid | valid | errors | timestamp)

One log per store (~/.lock/attempts.json) covering every vault, so the
chain also orders attempts across vaults. Persisted with atomic writes
(temp file + os.replace); appends are serialized by a threading.Lock.
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
import tempfile
import threading
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from pathlib import Path

from lockvault.errors import StoreError

logger = logging.getLogger(__name__)

_GENESIS_HASH = "0" * 64  # Hash chain starts with zeros


@dataclass
class AttemptEntry:
    """A single unseal attempt."""

    sequence: int
    vault_id: str
    txid: str
    valid: bool
    errors: list[str]
    timestamp: str
    prev_hash: str
    entry_hash: str

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: dict) -> AttemptEntry:
        return cls(**d)


def _compute_entry_hash(
    prev_hash: str,
    vault_id: str,
    txid: str,
    valid: bool,
    errors: list[str],
    timestamp: str,
) -> str:
    payload = "|".join([
        prev_hash,
        vault_id,
        txid,
        "1" if valid else "0",
        json.dumps(errors, separators=(",", ":")),
        timestamp,
    ])
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


class AttemptLog:
    """Hash-chained attempt log persisted at path.

    Usage:
        log = AttemptLog(Path("~/.lock/attempts.json").expanduser())
        log.record(vault_id, txid, valid=False, errors=["vault_time_locked"])
        assert log.verify_chain()
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._lock = threading.Lock()
        self._entries: list[AttemptEntry] = []
        self._load()

    def _load(self) -> None:
        if not self.path.is_file():
            return
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
            self._entries = [AttemptEntry.from_dict(e) for e in raw]
        except (json.JSONDecodeError, KeyError, TypeError, OSError) as e:
            raise StoreError(f"Corrupt attempt log {self.path}: {e}") from e

    def _save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        data = json.dumps([e.to_dict() for e in self._entries], indent=2, sort_keys=True)
        fd, tmp_path = tempfile.mkstemp(
            dir=str(self.path.parent), suffix=".tmp", prefix=".attempts_"
        )
        try:
            os.write(fd, data.encode("utf-8"))
            os.fsync(fd)
            os.close(fd)
            os.replace(tmp_path, str(self.path))
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

    def record(
        self,
        vault_id: str,
        txid: str,
        valid: bool,
        errors: list[str] | None = None,
    ) -> AttemptEntry:
        """Append an attempt. Returns the new entry."""
        errors = list(errors or [])
        with self._lock:
            prev_hash = self._entries[-1].entry_hash if self._entries else _GENESIS_HASH
            timestamp = datetime.now(timezone.utc).isoformat()
            entry = AttemptEntry(
                sequence=len(self._entries),
                vault_id=vault_id,
                txid=txid,
                valid=valid,
                errors=errors,
                timestamp=timestamp,
                prev_hash=prev_hash,
                entry_hash=_compute_entry_hash(
                    prev_hash, vault_id, txid, valid, errors, timestamp
                ),
            )
            self._entries.append(entry)
            self._save()
        logger.debug("Recorded attempt #%d for vault %s", entry.sequence, vault_id[:16])
        return entry

    def verify_chain(self) -> bool:
        """Verify the entire hash chain. Fail-closed."""
        with self._lock:
            prev = _GENESIS_HASH
            for i, entry in enumerate(self._entries):
                if entry.sequence != i or entry.prev_hash != prev:
                    return False
                expected = _compute_entry_hash(
                    entry.prev_hash,
                    entry.vault_id,
                    entry.txid,
                    entry.valid,
                    entry.errors,
                    entry.timestamp,
                )
                if entry.entry_hash != expected:
                    return False
                prev = entry.entry_hash
            return True

    def for_vault(self, vault_id: str) -> list[AttemptEntry]:
        with self._lock:
            return [e for e in self._entries if e.vault_id == vault_id]

    @property
    def entries(self) -> list[AttemptEntry]:
        """Return a copy of all entries."""
        with self._lock:
            return list(self._entries)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
