"""
Vault identity — one canonical id per (SEAL, metadata, binding txid).

    vault_id = hex(SHA-256(seal_bytes || canonical_metadata_bytes || txid_bytes_LE))

txid_bytes_LE is the 32-byte transaction hash in internal (little-endian)
byte order, i.e. the RPC display hex reversed. Any change to any input
yields a new identity; ids are recomputed on bind/rebind, never mutated.
"""

from __future__ import annotations

import hashlib
import re

from lockvault import VAULT_ID_LENGTH
from lockvault.metadata import VaultMetadata

# Strict hex patterns (exactly 64 lowercase hex chars, SHA-256 and txids alike)
_HEX64_RE = re.compile(rf"^[0-9a-f]{{{VAULT_ID_LENGTH}}}$")

# Drafts hash against an all-zero txid until a binding transaction confirms.
PLACEHOLDER_TXID = "0" * 64


def validate_vault_id(vault_id: str) -> None:
    """Validate vault id format. Prevents path traversal via ids."""
    if not isinstance(vault_id, str) or not _HEX64_RE.match(vault_id):
        raise ValueError(
            f"Invalid vault id: must be 64 lowercase hex chars, got {vault_id!r}"
        )


def validate_txid(txid: str) -> None:
    if not isinstance(txid, str) or not _HEX64_RE.match(txid):
        raise ValueError(
            f"Invalid txid: must be 64 lowercase hex chars, got {txid!r}"
        )


def txid_to_le_bytes(txid: str) -> bytes:
    """Display-order txid hex -> 32 bytes in internal little-endian order."""
    validate_txid(txid)
    return bytes.fromhex(txid)[::-1]


def compute_vault_id(seal_bytes: bytes, metadata_bytes: bytes, txid_le: bytes) -> str:
    """Raw identity hash over already-canonical inputs."""
    if len(txid_le) != 32:
        raise ValueError("txid must be 32 bytes")
    h = hashlib.sha256()
    h.update(seal_bytes)
    h.update(metadata_bytes)
    h.update(txid_le)
    return h.hexdigest()


def vault_id_for(seal_bytes: bytes, metadata: VaultMetadata, txid: str | None = None) -> str:
    """Vault id for a SEAL and its metadata.

    Uses metadata.txid unless txid is given explicitly; with neither, the
    provisional all-zero txid is used (draft identity only).
    """
    txid = txid or metadata.txid or PLACEHOLDER_TXID
    return compute_vault_id(seal_bytes, metadata.canonical_bytes(), txid_to_le_bytes(txid))
