"""
SEAL container codec — canonical binary encoding of the encrypted payload.

Format: "SEAL" magic, u8 version, length-prefixed algorithm name, 12-byte
nonce, u32 LE ciphertext length, ciphertext, 16-byte tag, optional u16
length-prefixed UTF-8 hint. See lockvault._seal.spec for the full layout.
"""

from __future__ import annotations

from typing import Any

from lockvault._seal.spec import MAGIC, FORMAT_VERSION, SUPPORTED_ALGORITHMS
from lockvault._seal.document import SealFile
from lockvault._seal.writer import SealWriter
from lockvault._seal.reader import SealReader


def encode(payload: Any, hint: str | None = None) -> bytes:
    """Encode an AEAD output (algorithm, nonce, ciphertext, tag) as .seal bytes."""
    return SealWriter.serialize(seal_from_aead(payload, hint))


def decode(data: bytes) -> SealFile:
    """Decode .seal bytes. Raises MalformedSeal on any format violation."""
    return SealReader.parse(data)


def seal_from_aead(payload: Any, hint: str | None = None) -> SealFile:
    return SealFile(
        encryption_algo=payload.algorithm,
        nonce=payload.nonce,
        ciphertext=payload.ciphertext,
        integrity_tag=payload.tag,
        metadata_hint=hint,
    )


__all__ = [
    "MAGIC",
    "FORMAT_VERSION",
    "SUPPORTED_ALGORITHMS",
    "SealFile",
    "SealWriter",
    "SealReader",
    "encode",
    "decode",
    "seal_from_aead",
]
