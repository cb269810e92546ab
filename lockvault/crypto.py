"""
Cryptographic primitives for the LOCK engine.

- AEAD: AES-256-GCM (required) and ChaCha20-Poly1305, fresh 12-byte nonce per call
- Hashing: SHA-256, HMAC-SHA256 with constant-time verification
- secp256k1: key generation, ECDH (shared secret = X coordinate), ECDSA-SHA256

All primitives come from the `cryptography` package. Nonces are drawn from
os.urandom on every encrypt call; reusing a nonce under one key is a caller
bug this layer cannot detect.
"""

from __future__ import annotations

import hashlib
import hmac
import os
from dataclasses import dataclass

from cryptography.exceptions import InvalidSignature as _InvalidSignature
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.ciphers.aead import AESGCM, ChaCha20Poly1305
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat

from lockvault import (
    ALGO_AES_256_GCM,
    ALGO_CHACHA20_POLY1305,
    DEFAULT_ENCRYPTION_ALGORITHM,
    KEY_SIZE,
    SEAL_NONCE_SIZE,
    SEAL_TAG_SIZE,
)
from lockvault.errors import AuthenticationFailed, CryptoError

_AEAD_CLASSES = {
    ALGO_AES_256_GCM: AESGCM,
    ALGO_CHACHA20_POLY1305: ChaCha20Poly1305,
}

_CURVE = ec.SECP256K1()

PRIVATE_KEY_SIZE = 32
PUBLIC_KEY_SIZE = 33  # compressed SEC1 point


@dataclass(frozen=True)
class AEADOutput:
    """Result of an AEAD encryption.

    Attributes:
        algorithm: AEAD algorithm wire name.
        nonce: The 12-byte nonce used for encryption.
        ciphertext: Encrypted data, WITHOUT the tag.
        tag: The 16-byte authentication tag.
    """

    algorithm: str
    nonce: bytes
    ciphertext: bytes
    tag: bytes

    def to_bytes(self) -> bytes:
        """Serialize to bytes: nonce(12) + ciphertext + tag(16)."""
        return self.nonce + self.ciphertext + self.tag

    @classmethod
    def from_bytes(cls, data: bytes, algorithm: str = DEFAULT_ENCRYPTION_ALGORITHM) -> AEADOutput:
        """Deserialize from bytes produced by to_bytes()."""
        if len(data) < SEAL_NONCE_SIZE + SEAL_TAG_SIZE:
            raise CryptoError("AEAD payload too short")
        return cls(
            algorithm=algorithm,
            nonce=data[:SEAL_NONCE_SIZE],
            ciphertext=data[SEAL_NONCE_SIZE:-SEAL_TAG_SIZE],
            tag=data[-SEAL_TAG_SIZE:],
        )


def _cipher(algorithm: str, key: bytes):
    cls = _AEAD_CLASSES.get(algorithm)
    if cls is None:
        raise CryptoError(f"Unsupported encryption algorithm: {algorithm!r}")
    if len(key) != KEY_SIZE:
        raise CryptoError(f"Key must be {KEY_SIZE} bytes, got {len(key)}")
    return cls(key)


def generate_key() -> bytes:
    """Random 32-byte symmetric key."""
    return os.urandom(KEY_SIZE)


def encrypt(
    plaintext: bytes,
    key: bytes,
    algorithm: str = DEFAULT_ENCRYPTION_ALGORITHM,
    associated_data: bytes | None = None,
) -> AEADOutput:
    """Encrypt with a raw 32-byte key.

    Args:
        plaintext: Data to encrypt.
        key: 32-byte symmetric key.
        algorithm: "AES-256-GCM" or "ChaCha20-Poly1305".
        associated_data: Optional data authenticated but not encrypted.

    Returns:
        AEADOutput with a freshly generated nonce.

    Raises:
        CryptoError: Unsupported algorithm or bad key length.
    """
    cipher = _cipher(algorithm, key)
    nonce = os.urandom(SEAL_NONCE_SIZE)
    sealed = cipher.encrypt(nonce, plaintext, associated_data)
    return AEADOutput(
        algorithm=algorithm,
        nonce=nonce,
        ciphertext=sealed[:-SEAL_TAG_SIZE],
        tag=sealed[-SEAL_TAG_SIZE:],
    )


def decrypt(
    payload: AEADOutput,
    key: bytes,
    associated_data: bytes | None = None,
) -> bytes:
    """Decrypt and authenticate an AEAD payload.

    Raises:
        CryptoError: Unsupported algorithm or bad key length.
        AuthenticationFailed: Tag mismatch (wrong key or tampered data).
            No partial plaintext is ever returned.
    """
    cipher = _cipher(payload.algorithm, key)
    if len(payload.nonce) != SEAL_NONCE_SIZE or len(payload.tag) != SEAL_TAG_SIZE:
        raise AuthenticationFailed("Malformed nonce or tag")
    try:
        return cipher.decrypt(
            payload.nonce, payload.ciphertext + payload.tag, associated_data
        )
    except InvalidTag:
        raise AuthenticationFailed(
            "Decryption failed — wrong key or tampered ciphertext"
        ) from None


def sha256(data: bytes) -> bytes:
    return hashlib.sha256(data).digest()


def hmac_sha256(key: bytes, data: bytes) -> bytes:
    return hmac.new(key, data, hashlib.sha256).digest()


def verify_hmac(key: bytes, data: bytes, expected: bytes) -> bool:
    """Constant-time HMAC-SHA256 verification."""
    return constant_time_equal(hmac_sha256(key, data), expected)


def constant_time_equal(a: bytes, b: bytes) -> bool:
    return hmac.compare_digest(a, b)


# ---------------------------------------------------------------------------
# secp256k1
# ---------------------------------------------------------------------------

def _load_private_key(private_key: bytes) -> ec.EllipticCurvePrivateKey:
    if len(private_key) != PRIVATE_KEY_SIZE:
        raise CryptoError(f"Private key must be {PRIVATE_KEY_SIZE} bytes")
    try:
        return ec.derive_private_key(int.from_bytes(private_key, "big"), _CURVE)
    except ValueError as e:
        raise CryptoError(f"Invalid secp256k1 private key: {e}") from e


def _load_public_key(public_key: bytes) -> ec.EllipticCurvePublicKey:
    try:
        return ec.EllipticCurvePublicKey.from_encoded_point(_CURVE, bytes(public_key))
    except ValueError as e:
        raise CryptoError(f"Invalid secp256k1 public key: {e}") from e


def generate_private_key() -> bytes:
    """Generate a random secp256k1 private key (32 bytes, big-endian scalar)."""
    key = ec.generate_private_key(_CURVE)
    return key.private_numbers().private_value.to_bytes(PRIVATE_KEY_SIZE, "big")


def public_key_from_private(private_key: bytes) -> bytes:
    """Derive the 33-byte compressed public key."""
    key = _load_private_key(private_key)
    return key.public_key().public_bytes(Encoding.X962, PublicFormat.CompressedPoint)


def compress_public_key(public_key: bytes) -> bytes:
    """Normalize a compressed or uncompressed SEC1 point to compressed form."""
    key = _load_public_key(public_key)
    return key.public_bytes(Encoding.X962, PublicFormat.CompressedPoint)


def ecdh(private_key: bytes, peer_public_key: bytes) -> bytes:
    """ECDH over secp256k1. Returns the 32-byte X coordinate of the shared point.

    Symmetric: ecdh(a, B) == ecdh(b, A).
    """
    key = _load_private_key(private_key)
    peer = _load_public_key(peer_public_key)
    return key.exchange(ec.ECDH(), peer)


def sign(private_key: bytes, message: bytes) -> bytes:
    """ECDSA-SHA256 signature over message. Returns DER bytes."""
    key = _load_private_key(private_key)
    return key.sign(message, ec.ECDSA(hashes.SHA256()))


def verify_signature(public_key: bytes, message: bytes, signature: bytes) -> bool:
    """Verify an ECDSA-SHA256 DER signature.

    Fail-closed: returns False for a bad signature, a malformed key or a
    malformed signature encoding.
    """
    try:
        key = _load_public_key(public_key)
        key.verify(signature, message, ec.ECDSA(hashes.SHA256()))
        return True
    except (CryptoError, _InvalidSignature, ValueError):
        return False
