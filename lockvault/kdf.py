"""
Key derivation — stateless HKDF-SHA256 keys from an ECDH secret and the SEAL hash.

    payload key  = HKDF(IKM = ECDH(priv, peer_pub),
                        salt = SHA-256(seal_bytes),
                        info = "LOCK-PROTOCOL-V1", L = 32)

    metadata key = HKDF(IKM = ECDH(priv, peer_pub) || SHA-256(seal_bytes),
                        salt = "LOCK-METADATA",
                        info = "metadata-encryption-v1", L = 32)

Neither derivation needs a Bitcoin transaction, so a SEAL can be created
before anything exists on-chain. ECDH is symmetric: the creator
(creator_priv, unlocker_pub) and the unlocker (unlocker_priv, creator_pub)
arrive at the same keys.
"""

from __future__ import annotations

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from lockvault import (
    HKDF_METADATA_INFO,
    HKDF_METADATA_SALT,
    HKDF_PAYLOAD_INFO,
    KEY_SIZE,
)
from lockvault.crypto import ecdh, sha256


def hkdf_sha256(ikm: bytes, salt: bytes, info: bytes, length: int = KEY_SIZE) -> bytes:
    """RFC 5869 HKDF with SHA-256."""
    return HKDF(
        algorithm=hashes.SHA256(),
        length=length,
        salt=salt,
        info=info,
    ).derive(ikm)


def seal_hash(seal_bytes: bytes) -> bytes:
    """SHA-256 over the full .seal byte contents."""
    return sha256(seal_bytes)


def derive_payload_key(private_key: bytes, peer_public_key: bytes, seal_bytes: bytes) -> bytes:
    """Derive the 32-byte payload key for a SEAL.

    Args:
        private_key: Own 32-byte secp256k1 private key.
        peer_public_key: The other party's compressed public key.
        seal_bytes: Complete encoded .seal container.
    """
    shared = ecdh(private_key, peer_public_key)
    return hkdf_sha256(shared, seal_hash(seal_bytes), HKDF_PAYLOAD_INFO)


def derive_metadata_key(private_key: bytes, peer_public_key: bytes, seal_bytes: bytes) -> bytes:
    """Derive the 32-byte metadata encryption key for a SEAL."""
    shared = ecdh(private_key, peer_public_key)
    return hkdf_sha256(shared + seal_hash(seal_bytes), HKDF_METADATA_SALT, HKDF_METADATA_INFO)


def derive_keys(private_key: bytes, peer_public_key: bytes, seal_bytes: bytes) -> tuple[bytes, bytes]:
    """Return (payload_key, metadata_key) with a single ECDH."""
    shared = ecdh(private_key, peer_public_key)
    digest = seal_hash(seal_bytes)
    return (
        hkdf_sha256(shared, digest, HKDF_PAYLOAD_INFO),
        hkdf_sha256(shared + digest, HKDF_METADATA_SALT, HKDF_METADATA_INFO),
    )
