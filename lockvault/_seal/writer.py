"""
Writer — serializes SealFile containers to bytes.

Single pass: every field has a known width once the algorithm name and
hint are encoded, so no offset fix-up is needed.
"""

from __future__ import annotations

import io
import os
import tempfile
from typing import TYPE_CHECKING

from lockvault._seal.spec import (
    MAGIC, NONCE_SIZE, TAG_SIZE, MAX_HINT_LENGTH,
    SUPPORTED_ALGORITHMS, SUPPORTED_FORMAT_VERSIONS,
    U8, U16, U32,
)
from lockvault.errors import MalformedSeal

if TYPE_CHECKING:
    from lockvault._seal.document import SealFile


class SealWriter:

    @staticmethod
    def serialize(seal: SealFile) -> bytes:
        """Serialize a SealFile to bytes. Pure — does not mutate the input."""
        if seal.magic != MAGIC:
            raise MalformedSeal(f"Invalid magic: {seal.magic!r}")
        if seal.version not in SUPPORTED_FORMAT_VERSIONS:
            raise MalformedSeal(f"Unsupported SEAL version: {seal.version}")
        if seal.encryption_algo not in SUPPORTED_ALGORITHMS:
            raise MalformedSeal(
                f"Unsupported encryption algorithm: {seal.encryption_algo!r}"
            )
        if len(seal.nonce) != NONCE_SIZE:
            raise MalformedSeal(f"Nonce must be {NONCE_SIZE} bytes")
        if len(seal.integrity_tag) != TAG_SIZE:
            raise MalformedSeal(f"Integrity tag must be {TAG_SIZE} bytes")
        if len(seal.ciphertext) > 0xFFFFFFFF:
            raise MalformedSeal("Ciphertext exceeds u32 length field")

        algo = seal.encryption_algo.encode("ascii")

        out = io.BytesIO()
        out.write(MAGIC)
        out.write(U8.pack(seal.version))
        out.write(U8.pack(len(algo)))
        out.write(algo)
        out.write(seal.nonce)
        out.write(U32.pack(len(seal.ciphertext)))
        out.write(seal.ciphertext)
        out.write(seal.integrity_tag)

        if seal.metadata_hint is not None:
            hint = seal.metadata_hint.encode("utf-8")
            if len(hint) > MAX_HINT_LENGTH:
                raise MalformedSeal(
                    f"metadata_hint exceeds {MAX_HINT_LENGTH} bytes"
                )
            out.write(U16.pack(len(hint)))
            out.write(hint)

        return out.getvalue()

    @staticmethod
    def write(seal: SealFile, path: str, mode: int = 0o644) -> int:
        """Write a SealFile to disk atomically. Returns bytes written."""
        data = SealWriter.serialize(seal)
        dir_name = os.path.dirname(os.path.abspath(path)) or "."
        fd, tmp_path = tempfile.mkstemp(dir=dir_name, suffix=".seal.tmp")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            os.chmod(tmp_path, mode)
            os.replace(tmp_path, path)
        except Exception:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise
        return len(data)
