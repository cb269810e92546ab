"""
Exception taxonomy for the LOCK engine.

Codec and crypto errors (MalformedSeal, CryptoError, AuthenticationFailed)
are terminal: they propagate immediately and abort whatever operation
raised them. Proof-of-Access rule failures are NOT exceptions — they are
collected as ErrorKind values in a ProofOfAccessResult (see lockvault.poa).
"""

from __future__ import annotations


class LockError(Exception):
    """Base class for all LOCK engine errors."""


class MalformedSeal(LockError, ValueError):
    """A .seal byte string does not follow the container format."""


class CryptoError(LockError):
    """Encryption, key handling or signature primitive failed."""


class AuthenticationFailed(CryptoError):
    """AEAD tag mismatch. Always terminal, never retried."""


class InvalidMetadata(LockError, ValueError):
    """Vault metadata failed shape validation.

    Attributes:
        issues: Every violated field as (field, reason) pairs, in check order.
    """

    def __init__(self, issues: list[tuple[str, str]]) -> None:
        self.issues = list(issues)
        summary = "; ".join(f"{field}: {reason}" for field, reason in self.issues)
        super().__init__(f"Invalid metadata: {summary}")

    @property
    def fields(self) -> list[str]:
        return [field for field, _ in self.issues]


class TransactionNotConfirmed(LockError):
    """Binding transaction has no confirmations yet."""


class InvalidSignature(LockError):
    """Rebind authorization signature is missing, malformed or unauthorized."""


class VaultNotFound(LockError, KeyError):
    """No vault (or draft) with the requested id."""

    def __str__(self) -> str:
        return Exception.__str__(self)


class VaultStateError(LockError):
    """Operation is not allowed in the vault's current lifecycle state."""


class StoreError(LockError):
    """Error in vault store operations."""


class BitcoinRPCError(LockError):
    """Error communicating with or returned by Bitcoin JSON-RPC."""
