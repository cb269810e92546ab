"""
SealFile — in-memory representation of a .seal container.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass

from lockvault._seal.spec import MAGIC, FORMAT_VERSION


@dataclass(frozen=True)
class SealFile:
    """An immutable SEAL container.

    Attributes:
        encryption_algo: AEAD algorithm wire name.
        nonce: 12-byte AEAD nonce.
        ciphertext: Encrypted payload (without tag).
        integrity_tag: 16-byte AEAD tag.
        metadata_hint: Optional plaintext hint (e.g. MIME type).
        version: Container format version.
        magic: Always b"SEAL".
    """

    encryption_algo: str
    nonce: bytes
    ciphertext: bytes
    integrity_tag: bytes
    metadata_hint: str | None = None
    version: int = FORMAT_VERSION
    magic: bytes = MAGIC

    @property
    def ciphertext_len(self) -> int:
        return len(self.ciphertext)

    def to_bytes(self) -> bytes:
        from lockvault._seal.writer import SealWriter
        return SealWriter.serialize(self)

    @classmethod
    def from_bytes(cls, data: bytes) -> SealFile:
        from lockvault._seal.reader import SealReader
        return SealReader.parse(data)

    def compute_hash(self) -> bytes:
        """SHA-256 over the full encoded container (the KDF salt)."""
        return hashlib.sha256(self.to_bytes()).digest()

    def write(self, path: str, mode: int = 0o644) -> int:
        from lockvault._seal.writer import SealWriter
        return SealWriter.write(self, path, mode)
