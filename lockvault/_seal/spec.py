"""
SEAL Container Format v1.

Layout (all multi-byte integers little-endian):
    magic            4 bytes   b"SEAL"
    version          u8        format version (1)
    algo_len         u8        length of the algorithm name
    encryption_algo  algo_len  ASCII algorithm name ("AES-256-GCM" | "ChaCha20-Poly1305")
    nonce            12 bytes  AEAD nonce
    ciphertext_len   u32       byte length of ciphertext
    ciphertext       ciphertext_len bytes
    integrity_tag    16 bytes  AEAD authentication tag
    [hint_len        u16       optional trailer, present only if bytes remain
     metadata_hint   hint_len  UTF-8 hint (e.g. a MIME type)]

Strictness:
    - Unknown magic, version or algorithm is rejected (no downgrade paths)
    - ciphertext_len must match the bytes actually present
    - Trailing bytes after the hint are rejected, never ignored
"""

import struct

from lockvault import (
    SEAL_MAGIC,
    SEAL_VERSION,
    SEAL_NONCE_SIZE,
    SEAL_TAG_SIZE,
    MAX_SEAL_SIZE,
    ALGO_AES_256_GCM,
    ALGO_CHACHA20_POLY1305,
)

MAGIC = SEAL_MAGIC
FORMAT_VERSION = SEAL_VERSION

# Reject unknown versions to prevent downgrade attacks
SUPPORTED_FORMAT_VERSIONS = frozenset({1})

SUPPORTED_ALGORITHMS = frozenset({ALGO_AES_256_GCM, ALGO_CHACHA20_POLY1305})

NONCE_SIZE = SEAL_NONCE_SIZE
TAG_SIZE = SEAL_TAG_SIZE
MAX_SIZE = MAX_SEAL_SIZE
MAX_HINT_LENGTH = 0xFFFF

# Fixed-width fields
U8 = struct.Struct("<B")
U16 = struct.Struct("<H")
U32 = struct.Struct("<I")

# magic + version + algo_len (the algorithm name itself is variable)
FIXED_PREFIX_SIZE = len(MAGIC) + U8.size + U8.size

# Smallest valid file: AES-256-GCM name, empty ciphertext, no hint
MIN_SIZE = (
    FIXED_PREFIX_SIZE + len(ALGO_AES_256_GCM) + NONCE_SIZE + U32.size + TAG_SIZE
)
