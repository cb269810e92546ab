"""
Vault lifecycle — seal, bind, unseal and rebind encrypted payloads.

States:
    draft ──bind──► bound ──unseal──► active ──unseal (limit reached)──► exhausted
                      │                 │
                      └────expire───────┴──────────► expired

    rebind keeps the status and unlock_count and moves the vault to a new id.

Key handling:
    content key K  (random)  encrypts the payload inside the SEAL
    payload key    HKDF(ECDH, SHA-256(SEAL))   wraps K  -> key_envelope
    metadata key   HKDF(ECDH || SHA-256(SEAL)) encrypts metadata when
                   visibility == "encrypted"

The unseal path holds a per-vault lock across validate -> decrypt ->
increment, and decrypts before incrementing so a failed decryption never
consumes an unlock.
"""

from __future__ import annotations

import logging
import random
import threading
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Any

from lockvault import (
    DEFAULT_ENCRYPTION_ALGORITHM,
    DEFAULT_NETWORK,
    MIN_CONFIRMATIONS,
    NETWORKS,
    REBIND_DOMAIN,
)
from lockvault import _seal
from lockvault.address import addresses_for_public_key
from lockvault.attempts import AttemptEntry, AttemptLog
from lockvault.crypto import (
    AEADOutput,
    compress_public_key,
    decrypt,
    encrypt,
    generate_key,
    public_key_from_private,
    sign,
    verify_signature,
)
from lockvault.errors import (
    AuthenticationFailed,
    CryptoError,
    InvalidMetadata,
    InvalidSignature,
    TransactionNotConfirmed,
    VaultNotFound,
    VaultStateError,
)
from lockvault.identity import txid_to_le_bytes, validate_txid, vault_id_for
from lockvault.kdf import derive_metadata_key, derive_payload_key
from lockvault.metadata import (
    RangeAmount,
    VaultMetadata,
    Visibility,
    check_metadata,
    now_ms,
    plan_amount,
    select_range_amount,
)
from lockvault.poa import ErrorKind, ProofOfAccessResult, ProofOfAccessValidator
from lockvault.store import KIND_DRAFT, KIND_SUPERSEDED, KIND_VAULT, VaultStore
from lockvault.transaction import TransactionFacts

logger = logging.getLogger(__name__)


class VaultStatus(str, Enum):
    DRAFT = "draft"
    BOUND = "bound"
    ACTIVE = "active"
    EXPIRED = "expired"
    EXHAUSTED = "exhausted"


# Valid state transitions
_TRANSITIONS: dict[VaultStatus, set[VaultStatus]] = {
    VaultStatus.DRAFT: {VaultStatus.BOUND},
    VaultStatus.BOUND: {VaultStatus.ACTIVE, VaultStatus.EXHAUSTED, VaultStatus.EXPIRED},
    VaultStatus.ACTIVE: {VaultStatus.ACTIVE, VaultStatus.EXHAUSTED, VaultStatus.EXPIRED},
    # Terminal states: expired and exhausted have no outgoing transitions
    VaultStatus.EXPIRED: set(),
    VaultStatus.EXHAUSTED: set(),
}

# States in which a vault still accepts unseal / rebind / amount selection
_LIVE_STATES = {VaultStatus.BOUND, VaultStatus.ACTIVE}


def _check_transition(current: VaultStatus, new: VaultStatus) -> None:
    if new not in _TRANSITIONS[current]:
        raise VaultStateError(
            f"Cannot transition from {current.value!r} to {new.value!r}"
        )


@dataclass
class Vault:
    """A vault record.

    metadata is populated for plaintext-visibility vaults and for vaults
    opened with a private key; encrypted metadata lives in sealed_metadata.
    """

    id: str
    seal: bytes
    network: str
    creator_pubkey: bytes
    unlocker_pubkey: bytes
    key_envelope: bytes
    status: VaultStatus
    visibility: Visibility
    metadata: VaultMetadata | None = None
    sealed_metadata: bytes | None = None
    unlock_count: int = 0
    selected_amount: int | None = None
    binding_inputs: tuple[str, ...] = ()
    created_at: int = field(default_factory=now_ms)
    updated_at: int = field(default_factory=now_ms)

    @property
    def algorithm(self) -> str:
        return _seal.decode(self.seal).encryption_algo

    @property
    def is_terminal(self) -> bool:
        return self.status in (VaultStatus.EXPIRED, VaultStatus.EXHAUSTED)

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "id": self.id,
            "seal": self.seal.hex(),
            "network": self.network,
            "creator_pubkey": self.creator_pubkey.hex(),
            "unlocker_pubkey": self.unlocker_pubkey.hex(),
            "key_envelope": self.key_envelope.hex(),
            "status": self.status.value,
            "visibility": self.visibility.value,
            "unlock_count": self.unlock_count,
            "selected_amount": self.selected_amount,
            "binding_inputs": list(self.binding_inputs),
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }
        if self.visibility is Visibility.PLAINTEXT and self.metadata is not None:
            d["metadata"] = self.metadata.to_dict()
        if self.sealed_metadata is not None:
            d["sealed_metadata"] = self.sealed_metadata.hex()
        return d

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Vault:
        metadata = data.get("metadata")
        sealed = data.get("sealed_metadata")
        return cls(
            id=data["id"],
            seal=bytes.fromhex(data["seal"]),
            network=data.get("network", DEFAULT_NETWORK),
            creator_pubkey=bytes.fromhex(data["creator_pubkey"]),
            unlocker_pubkey=bytes.fromhex(data["unlocker_pubkey"]),
            key_envelope=bytes.fromhex(data["key_envelope"]),
            status=VaultStatus(data["status"]),
            visibility=Visibility(data.get("visibility", Visibility.ENCRYPTED.value)),
            metadata=VaultMetadata.from_dict(metadata) if metadata else None,
            sealed_metadata=bytes.fromhex(sealed) if sealed else None,
            unlock_count=int(data.get("unlock_count", 0)),
            selected_amount=data.get("selected_amount"),
            binding_inputs=tuple(data.get("binding_inputs", ())),
            created_at=int(data.get("created_at", 0)),
            updated_at=int(data.get("updated_at", 0)),
        )


@dataclass(frozen=True)
class UnsealResult:
    """Outcome of an unseal call. plaintext is set only when result.valid."""

    vault_id: str
    result: ProofOfAccessResult
    plaintext: bytes | None = None
    unlock_count: int = 0
    status: VaultStatus | None = None

    @property
    def ok(self) -> bool:
        return self.result.valid and self.plaintext is not None


@dataclass(frozen=True)
class RebindAuthorization:
    """ECDSA signature by a currently authorized wallet key over rebind_message()."""

    public_key: bytes
    signature: bytes

    def to_dict(self) -> dict[str, str]:
        return {"public_key": self.public_key.hex(), "signature": self.signature.hex()}

    @classmethod
    def from_dict(cls, data: dict[str, str]) -> RebindAuthorization:
        return cls(
            public_key=bytes.fromhex(data["public_key"]),
            signature=bytes.fromhex(data["signature"]),
        )


def rebind_message(vault_id: str, new_txid: str) -> bytes:
    """Signed message for a rebind: domain || vault_id bytes || new txid LE."""
    return REBIND_DOMAIN + bytes.fromhex(vault_id) + txid_to_le_bytes(new_txid)


def sign_rebind(vault_id: str, new_txid: str, private_key: bytes) -> RebindAuthorization:
    """Produce a RebindAuthorization with a wallet's private key."""
    return RebindAuthorization(
        public_key=public_key_from_private(private_key),
        signature=sign(private_key, rebind_message(vault_id, new_txid)),
    )


def _peer_key(vault: Vault, private_key: bytes) -> bytes:
    """The other party's public key for ECDH, given one party's private key."""
    own = public_key_from_private(private_key)
    return vault.unlocker_pubkey if own == vault.creator_pubkey else vault.creator_pubkey


def _require_key(private_key: bytes | None, action: str) -> bytes:
    if private_key is None:
        raise CryptoError(f"A private key is required to {action} encrypted metadata")
    return private_key


class VaultLifecycle:
    """Seal/bind/unseal/rebind operations over a VaultStore.

    Usage:
        lock = VaultLifecycle(VaultStore(tmp), network="testnet")
        draft = lock.seal(b"secret", metadata, creator_priv, unlocker_pub)
        vault = lock.bind(draft.id, binding_tx, private_key=creator_priv)
        out = lock.unseal(vault.id, unlock_tx, height, private_key=unlocker_priv)
    """

    def __init__(
        self,
        store: VaultStore,
        network: str = DEFAULT_NETWORK,
        attempts: AttemptLog | None = None,
        min_confirmations: int = MIN_CONFIRMATIONS,
    ) -> None:
        if network not in NETWORKS:
            raise ValueError(f"Unknown network: {network!r}")
        self.store = store
        self.network = network
        self.attempt_log = attempts or AttemptLog(Path(store.root) / "attempts.json")
        self.validator = ProofOfAccessValidator(min_confirmations)
        self.min_confirmations = min_confirmations
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _vault_lock(self, vault_id: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(vault_id)
            if lock is None:
                lock = self._locks[vault_id] = threading.Lock()
            return lock

    # -- metadata at rest ----------------------------------------------------

    def _seal_metadata(
        self, vault: Vault, metadata: VaultMetadata, private_key: bytes | None
    ) -> bytes | None:
        """Encrypt metadata for storage, or None for plaintext visibility."""
        if metadata.visibility is Visibility.PLAINTEXT:
            return None
        key = _require_key(private_key, "store")
        metadata_key = derive_metadata_key(key, _peer_key(vault, key), vault.seal)
        return encrypt(metadata.canonical_bytes(), metadata_key, vault.algorithm).to_bytes()

    def open_metadata(self, vault: Vault, private_key: bytes | None = None) -> VaultMetadata:
        """Return a vault's metadata, decrypting it when needed.

        Raises:
            CryptoError: Encrypted metadata and no private key.
            AuthenticationFailed: Wrong key or tampered SEAL / metadata.
        """
        if vault.metadata is not None:
            return vault.metadata
        key = _require_key(private_key, "read")
        if vault.sealed_metadata is None:
            raise VaultStateError(f"Vault {vault.id} has no metadata")
        metadata_key = derive_metadata_key(key, _peer_key(vault, key), vault.seal)
        blob = AEADOutput.from_bytes(vault.sealed_metadata, vault.algorithm)
        return VaultMetadata.from_json(decrypt(blob, metadata_key))

    def _open_payload(self, vault: Vault, private_key: bytes) -> bytes:
        payload_key = derive_payload_key(private_key, _peer_key(vault, private_key), vault.seal)
        seal = _seal.decode(vault.seal)
        envelope = AEADOutput.from_bytes(vault.key_envelope, seal.encryption_algo)
        content_key = decrypt(envelope, payload_key)
        return decrypt(
            AEADOutput(
                algorithm=seal.encryption_algo,
                nonce=seal.nonce,
                ciphertext=seal.ciphertext,
                tag=seal.integrity_tag,
            ),
            content_key,
        )

    # -- lookups ---------------------------------------------------------------

    def get(self, vault_id: str) -> Vault:
        """Fetch a vault or draft by id.

        Raises:
            VaultNotFound: Unknown id, or an id superseded by a rebind.
        """
        kind = self.store.kind_of(vault_id)
        if kind == KIND_DRAFT:
            return Vault.from_dict(self.store.get_draft(vault_id))
        if kind == KIND_VAULT:
            return Vault.from_dict(self.store.get_vault(vault_id))
        if kind == KIND_SUPERSEDED:
            raise VaultNotFound(
                f"Vault {vault_id} was rebound to {self.store.superseded_by(vault_id)}"
            )
        raise VaultNotFound(f"Vault not found: {vault_id}")

    def _get_bound(self, vault_id: str) -> Vault:
        vault = self.get(vault_id)
        if vault.status is VaultStatus.DRAFT:
            raise VaultStateError(f"Vault {vault_id} is a draft; bind it first")
        return vault

    def list_vaults(
        self,
        wallet: str | None = None,
        status: VaultStatus | str | None = None,
        limit: int | None = None,
        offset: int = 0,
        include_drafts: bool = False,
    ) -> list[Vault]:
        """List vaults, oldest first.

        Args:
            wallet: Keep vaults this address may unlock (plaintext metadata)
                or that it funded (binding inputs).
            status: Keep only vaults in this status.
            limit: Maximum number of vaults to return.
            offset: Number of matching vaults to skip.
            include_drafts: Also list unbound drafts.
        """
        if status is not None:
            status = VaultStatus(status)
        vaults = [Vault.from_dict(r) for r in self.store.list_records(include_drafts)]
        if status is not None:
            vaults = [v for v in vaults if v.status is status]
        if wallet is not None:
            vaults = [
                v for v in vaults
                if wallet in v.binding_inputs
                or (v.metadata is not None and not v.metadata.authorized_wallet.is_any
                    and v.metadata.authorized_wallet.permits(wallet))
            ]
        vaults = vaults[offset:]
        return vaults if limit is None else vaults[:limit]

    def attempts(self, vault_id: str) -> list[AttemptEntry]:
        return self.attempt_log.for_vault(vault_id)

    # -- seal --------------------------------------------------------------------

    def seal(
        self,
        payload: bytes,
        metadata: VaultMetadata,
        private_key: bytes,
        peer_public_key: bytes,
        *,
        algorithm: str = DEFAULT_ENCRYPTION_ALGORITHM,
        hint: str | None = None,
    ) -> Vault:
        """Encrypt payload into a new draft vault.

        Args:
            payload: Plaintext to protect.
            metadata: Unlock rules; txid must be unset.
            private_key: Creator's 32-byte secp256k1 private key.
            peer_public_key: Unlocker's public key.
            algorithm: AEAD algorithm for the SEAL.
            hint: Optional public, unencrypted hint stored in the SEAL.

        Returns:
            The stored draft Vault (metadata populated).

        Raises:
            InvalidMetadata: Listing every violated field.
            CryptoError: Bad key material or algorithm.
        """
        check_metadata(metadata, self.network)
        if metadata.txid is not None:
            raise InvalidMetadata([("txid", "is set by bind, not at seal time")])

        content_key = generate_key()
        seal_bytes = _seal.encode(encrypt(payload, content_key, algorithm), hint)
        peer = compress_public_key(peer_public_key)
        payload_key = derive_payload_key(private_key, peer, seal_bytes)

        vault = Vault(
            id=vault_id_for(seal_bytes, metadata),
            seal=seal_bytes,
            network=self.network,
            creator_pubkey=public_key_from_private(private_key),
            unlocker_pubkey=peer,
            key_envelope=encrypt(content_key, payload_key, algorithm).to_bytes(),
            status=VaultStatus.DRAFT,
            visibility=metadata.visibility,
            metadata=metadata,
        )
        vault.sealed_metadata = self._seal_metadata(vault, metadata, private_key)
        self.store.put_draft(vault.to_dict())
        logger.info("Sealed draft vault %s (%d bytes SEAL)", vault.id[:16], len(seal_bytes))
        return vault

    # -- bind ----------------------------------------------------------------------

    def _require_confirmed(self, tx: TransactionFacts) -> None:
        if tx.confirmations < self.min_confirmations:
            raise TransactionNotConfirmed(
                f"Transaction {tx.txid} has {tx.confirmations} confirmations, "
                f"{self.min_confirmations} required"
            )

    def bind(
        self,
        draft_id: str,
        transaction: TransactionFacts,
        private_key: bytes | None = None,
    ) -> Vault:
        """Bind a draft to a confirmed transaction; the vault gets its final id.

        Raises:
            TransactionNotConfirmed: Fewer than min_confirmations.
            VaultNotFound: Unknown draft id.
            CryptoError: Encrypted metadata and no private key.
        """
        validate_txid(transaction.txid)
        self._require_confirmed(transaction)
        draft = self.get(draft_id)
        if draft.status is not VaultStatus.DRAFT:
            raise VaultStateError(f"Vault {draft_id} is already bound")
        _check_transition(draft.status, VaultStatus.BOUND)

        metadata = self.open_metadata(draft, private_key).with_txid(transaction.txid)
        vault = replace(
            draft,
            id=vault_id_for(draft.seal, metadata),
            status=VaultStatus.BOUND,
            metadata=metadata,
            binding_inputs=tuple(transaction.input_addresses),
            updated_at=now_ms(),
        )
        vault.sealed_metadata = self._seal_metadata(vault, metadata, private_key)
        self.store.bind_draft(draft_id, vault.to_dict())
        logger.info(
            "Bound vault %s to tx %s (draft %s)",
            vault.id[:16], transaction.txid[:16], draft_id[:16],
        )
        return vault

    # -- range selection -----------------------------------------------------------

    def select_unlock_amount(
        self,
        vault_id: str,
        private_key: bytes | None = None,
        rng: random.Random | None = None,
    ) -> int:
        """Fix the unlock amount of a Range condition (once; idempotent).

        Raises:
            VaultStateError: Vault is not live or has no range condition.
        """
        with self._vault_lock(vault_id):
            vault = self._get_bound(vault_id)
            if vault.status not in _LIVE_STATES:
                raise VaultStateError(f"Vault {vault_id} is {vault.status.value}")
            condition = self.open_metadata(vault, private_key).amount_condition
            if not isinstance(condition, RangeAmount):
                raise VaultStateError(
                    f"Vault {vault_id} has a {condition.type!r} amount condition, not a range"
                )
            if vault.selected_amount is not None:
                return vault.selected_amount
            selected = select_range_amount(condition, rng).selected_amount
            self.store.update_vault(vault_id, selected_amount=selected)
            logger.info("Selected unlock amount for vault %s", vault_id[:16])
            return selected

    def plan_amount(
        self,
        vault_id: str,
        private_key: bytes | None = None,
        rng: random.Random | None = None,
    ) -> int:
        """Satoshis an unlock transaction must spend for this vault."""
        vault = self._get_bound(vault_id)
        condition = self._effective_metadata(vault, private_key).amount_condition
        if isinstance(condition, RangeAmount) and condition.selected_amount is None:
            return self.select_unlock_amount(vault_id, private_key, rng)
        amount, _ = plan_amount(condition, rng)
        return amount

    def _effective_metadata(self, vault: Vault, private_key: bytes | None) -> VaultMetadata:
        """Metadata with the recorded range selection applied."""
        metadata = self.open_metadata(vault, private_key)
        condition = metadata.amount_condition
        if (
            isinstance(condition, RangeAmount)
            and condition.selected_amount is None
            and vault.selected_amount is not None
        ):
            metadata = replace(
                metadata, amount_condition=condition.with_selection(vault.selected_amount)
            )
        return metadata

    # -- unseal ----------------------------------------------------------------------

    def unseal(
        self,
        vault_id: str,
        transaction: TransactionFacts,
        current_block_height: int,
        private_key: bytes,
    ) -> UnsealResult:
        """Validate a Proof-of-Access transaction and decrypt the payload.

        On success the unlock counter is incremented and the plaintext is
        returned. On a failed check the result lists every failure and the
        vault is left unchanged.

        Raises:
            VaultNotFound: Unknown id.
            VaultStateError: Vault is a draft or expired.
            AuthenticationFailed: Checks passed but the SEAL failed to
                decrypt (wrong key or tampering). No plaintext, no unlock used.
        """
        with self._vault_lock(vault_id):
            vault = self._get_bound(vault_id)
            if vault.status is VaultStatus.EXPIRED:
                raise VaultStateError(f"Vault {vault_id} has expired")
            metadata = self._effective_metadata(vault, private_key)
            prior = self.store.get_unlock_count(vault_id)
            result = self.validator.validate(transaction, metadata, current_block_height, prior)

            if not result.valid:
                self._record_attempt(vault_id, transaction, result)
                logger.warning(
                    "Rejected unseal of vault %s with tx %s: %s",
                    vault_id[:16], transaction.txid[:16],
                    ", ".join(e.value for e in result.errors),
                )
                return UnsealResult(vault_id, result, unlock_count=prior, status=vault.status)

            try:
                plaintext = self._open_payload(vault, private_key)
            except AuthenticationFailed:
                self.attempt_log.record(
                    vault_id, transaction.txid, False, [ErrorKind.DECRYPTION_FAILED.value]
                )
                logger.warning("SEAL of vault %s failed authentication", vault_id[:16])
                raise

            if not self.store.increment_unlock_count_if_below_limit(
                vault_id, metadata.unlock_limit
            ):
                # Counter moved under us (another process sharing the store)
                result = ProofOfAccessResult(
                    valid=False,
                    errors=(ErrorKind.UNLOCK_LIMIT_EXCEEDED,),
                    messages=("Unlock limit reached",),
                )
                self._record_attempt(vault_id, transaction, result)
                return UnsealResult(vault_id, result, unlock_count=prior, status=vault.status)

            count = prior + 1
            limit = metadata.unlock_limit
            new_status = (
                VaultStatus.EXHAUSTED if limit is not None and count >= limit
                else VaultStatus.ACTIVE
            )
            _check_transition(vault.status, new_status)
            self.store.update_vault(vault_id, status=new_status.value)
            self._record_attempt(vault_id, transaction, result)
            logger.info(
                "Unsealed vault %s (%d/%s)%s",
                vault_id[:16], count, limit if limit is not None else "unlimited",
                ", now exhausted" if new_status is VaultStatus.EXHAUSTED else "",
            )
            return UnsealResult(vault_id, result, plaintext, count, new_status)

    def _record_attempt(
        self, vault_id: str, tx: TransactionFacts, result: ProofOfAccessResult
    ) -> None:
        self.attempt_log.record(
            vault_id, tx.txid, result.valid, [e.value for e in result.errors]
        )

    # -- rebind ------------------------------------------------------------------------

    def rebind(
        self,
        vault_id: str,
        new_transaction: TransactionFacts,
        authorization: RebindAuthorization,
        private_key: bytes | None = None,
    ) -> Vault:
        """Move a vault to a new binding transaction.

        The signer must control an authorized wallet (for an "ANY" wallet,
        an input address of the current binding transaction). The new vault
        keeps the status and unlock count; the old id is retired for good.

        Raises:
            TransactionNotConfirmed: New transaction is unconfirmed.
            InvalidSignature: Bad signature or unauthorized signer.
            VaultStateError: Vault is a draft or terminal.
        """
        validate_txid(new_transaction.txid)
        with self._vault_lock(vault_id):
            vault = self._get_bound(vault_id)
            if vault.status not in _LIVE_STATES:
                raise VaultStateError(f"Vault {vault_id} is {vault.status.value}")
            self._require_confirmed(new_transaction)

            message = rebind_message(vault_id, new_transaction.txid)
            if not verify_signature(authorization.public_key, message, authorization.signature):
                raise InvalidSignature("Rebind signature does not verify")

            metadata = self.open_metadata(vault, private_key)
            signer = addresses_for_public_key(
                compress_public_key(authorization.public_key), vault.network
            )
            wallet = metadata.authorized_wallet
            if wallet.is_any:
                authorized = any(addr in vault.binding_inputs for addr in signer)
            else:
                authorized = any(wallet.permits(addr) for addr in signer)
            if not authorized:
                raise InvalidSignature("Rebind signer is not an authorized wallet")

            new_metadata = metadata.with_txid(new_transaction.txid)
            new_id = vault_id_for(vault.seal, new_metadata)
            if new_id == vault_id:
                raise VaultStateError(f"Vault {vault_id} is already bound to this transaction")

            new_vault = replace(
                vault,
                id=new_id,
                metadata=new_metadata,
                unlock_count=self.store.get_unlock_count(vault_id),
                # A new binding picks its own amount
                selected_amount=None,
                binding_inputs=tuple(new_transaction.input_addresses),
                updated_at=now_ms(),
            )
            new_vault.sealed_metadata = self._seal_metadata(new_vault, new_metadata, private_key)
            self.store.supersede(vault_id, new_vault.to_dict())
            # Old id is a tombstone from here on, drop its lock
            with self._locks_guard:
                self._locks.pop(vault_id, None)
            logger.info(
                "Rebound vault %s -> %s (tx %s)",
                vault_id[:16], new_id[:16], new_transaction.txid[:16],
            )
            return new_vault

    # -- expire ------------------------------------------------------------------------

    def expire(self, vault_id: str) -> Vault:
        """Move a bound or active vault to the terminal expired state."""
        with self._vault_lock(vault_id):
            vault = self._get_bound(vault_id)
            _check_transition(vault.status, VaultStatus.EXPIRED)
            record = self.store.update_vault(vault_id, status=VaultStatus.EXPIRED.value)
            logger.info("Expired vault %s", vault_id[:16])
            return Vault.from_dict(record)
