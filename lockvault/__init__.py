"""
LOCK vault engine — Bitcoin-transaction-gated access to encrypted payloads.

Architecture:
    SEAL (binary):  "SEAL" + version + algo + nonce + len + ciphertext + tag [+ hint]
    Keys:           HKDF-SHA256 over secp256k1 ECDH, salted with SHA-256(SEAL)
    Identity:       vault_id = SHA-256(seal || canonical(metadata) || txid LE)
    Access:         Proof-of-Access checklist over a confirmed Bitcoin transaction
    Local state:    ~/.lock/{vaults,drafts}/<vault_id>.json, index.json, attempts.json
"""

from pathlib import Path

__version__ = "0.1.0"

PROTOCOL_VERSION = "1.1"

# SEAL container constants
SEAL_MAGIC = b"SEAL"
SEAL_VERSION = 1
SEAL_EXTENSION = ".seal"
SEAL_NONCE_SIZE = 12  # 96-bit AEAD nonce
SEAL_TAG_SIZE = 16  # 128-bit AEAD tag
MAX_SEAL_SIZE = 100 * 1024 * 1024  # 100 MiB

# Encryption algorithms (wire names)
ALGO_AES_256_GCM = "AES-256-GCM"
ALGO_CHACHA20_POLY1305 = "ChaCha20-Poly1305"
DEFAULT_ENCRYPTION_ALGORITHM = ALGO_AES_256_GCM
KEY_SIZE = 32  # AES-256 / ChaCha20

# Key derivation labels
HKDF_PAYLOAD_INFO = b"LOCK-PROTOCOL-V1"
HKDF_METADATA_SALT = b"LOCK-METADATA"
HKDF_METADATA_INFO = b"metadata-encryption-v1"
REBIND_DOMAIN = b"LOCK-REBIND-V1"

# Amount and rule bounds (satoshis / block heights)
SATOSHIS_PER_BTC = 100_000_000
MIN_UNLOCK_AMOUNT = 1000
MAX_UNLOCK_AMOUNT = 21_000_000 * SATOSHIS_PER_BTC
MAX_UNLOCK_LIMIT = 1_000_000
MAX_TIME_LOCK = 1_000_000
DUST_THRESHOLD = 546
MIN_TRANSACTION_FEE = 1000
MIN_CONFIRMATIONS = 1

# Networks
NETWORKS = ("mainnet", "testnet", "signet", "regtest")
DEFAULT_NETWORK = "testnet"

# Local store
DEFAULT_HOME = Path.home() / ".lock"
VAULT_ID_LENGTH = 64  # SHA-256 hex
