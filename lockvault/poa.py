"""
Proof-of-Access — decide whether a Bitcoin transaction satisfies a vault's rules.

    TransactionFacts ─┐
    VaultMetadata ────┤    1. confirmed and not replaceable
    block height ─────┼──► 2. signed by an authorized wallet      ──► ProofOfAccessResult
    unlock count ─────┘    3. pays the required recipient              (valid, errors, messages)
                           4. spends the required amount
                           5. time-lock reached
                           6. unlock limit not exhausted
                           7. SEAL decrypts (optional, only if 1-6 pass)

Every check runs; failures accumulate so the caller sees the full list.
The validator is pure: no I/O, no clock other than the result timestamp,
no mutation. It is safe to call from many threads at once.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

from lockvault import MIN_CONFIRMATIONS
from lockvault.errors import AuthenticationFailed
from lockvault.metadata import (
    AnyAmount,
    FixedAmount,
    RangeAmount,
    RecipientWallet,
    VaultMetadata,
    now_ms,
)
from lockvault.transaction import TransactionFacts

logger = logging.getLogger(__name__)


class ErrorKind(str, Enum):
    TRANSACTION_NOT_CONFIRMED = "transaction_not_confirmed"
    UNAUTHORIZED_WALLET = "unauthorized_wallet"
    RECIPIENT_MISMATCH = "recipient_mismatch"
    AMOUNT_CONDITION_UNSATISFIED = "amount_condition_unsatisfied"
    VAULT_TIME_LOCKED = "vault_time_locked"
    UNLOCK_LIMIT_EXCEEDED = "unlock_limit_exceeded"
    INVALID_METADATA = "invalid_metadata"
    DECRYPTION_FAILED = "decryption_failed"


@dataclass(frozen=True)
class ProofOfAccessResult:
    valid: bool
    errors: tuple[ErrorKind, ...] = ()
    messages: tuple[str, ...] = ()
    timestamp: int = field(default_factory=now_ms)

    def has(self, kind: ErrorKind) -> bool:
        return kind in self.errors

    def to_dict(self) -> dict[str, Any]:
        return {
            "valid": self.valid,
            "errors": [e.value for e in self.errors],
            "messages": list(self.messages),
            "timestamp": self.timestamp,
        }


# ---------------------------------------------------------------------------
# Amount accounting
# ---------------------------------------------------------------------------

def change_flags(tx: TransactionFacts, recipient: RecipientWallet) -> list[bool]:
    """Classify each output of tx as change (True) or payment (False).

    Outputs with an explicit is_change flag keep it. Unflagged outputs that
    pay one of the transaction's own input addresses are inferred:
      - literal recipient: such an output is change unless it pays the recipient
      - Self recipient: the first such output is the payment, later ones change
    Outputs to any other address are payments.
    """
    inputs = set(tx.input_addresses)
    flags: list[bool] = []
    self_payment_seen = False
    for out in tx.outputs:
        if out.is_change is not None:
            is_change = out.is_change
        elif out.address not in inputs:
            is_change = False
        elif recipient.is_self:
            is_change = self_payment_seen
        else:
            is_change = out.address != recipient.address
        if recipient.is_self and not is_change and out.address in inputs:
            self_payment_seen = True
        flags.append(is_change)
    return flags


def amount_spent(tx: TransactionFacts, recipient: RecipientWallet) -> int:
    """Value actually transferred: inputs - change - fee.

    fee = inputs - outputs, so this reduces to the sum of non-change outputs
    and is independent of input values the node could not resolve.
    """
    flags = change_flags(tx, recipient)
    return sum(out.value for out, is_change in zip(tx.outputs, flags) if not is_change)


# ---------------------------------------------------------------------------
# Validator
# ---------------------------------------------------------------------------

class ProofOfAccessValidator:
    """Runs the Proof-of-Access checks for one transaction against one vault.

    Usage:
        validator = ProofOfAccessValidator(min_confirmations=1)
        result = validator.validate(tx, metadata, height, unlock_count)
        if not result.valid:
            print(result.messages)
    """

    def __init__(self, min_confirmations: int = MIN_CONFIRMATIONS) -> None:
        if min_confirmations < 1:
            raise ValueError("min_confirmations must be at least 1")
        self.min_confirmations = min_confirmations

    def validate(
        self,
        tx: TransactionFacts,
        metadata: VaultMetadata,
        current_block_height: int,
        prior_unlock_count: int,
        decrypt: Callable[[], Any] | None = None,
    ) -> ProofOfAccessResult:
        """Validate tx against metadata.

        Args:
            tx: Resolved transaction facts.
            metadata: The vault's unlock rules.
            current_block_height: Chain tip height for the time-lock check.
            prior_unlock_count: Successful unseals recorded so far.
            decrypt: Optional zero-argument callable that opens the SEAL.
                Invoked only when every other check passes; its plaintext
                is discarded.

        Returns:
            ProofOfAccessResult listing every failed check.
        """
        failures: list[tuple[ErrorKind, str]] = []

        self._check_confirmations(tx, failures)
        self._check_authorized_wallet(tx, metadata, failures)
        self._check_recipient(tx, metadata, failures)
        self._check_amount(tx, metadata, failures)
        self._check_time_lock(metadata, current_block_height, failures)
        self._check_unlock_limit(metadata, prior_unlock_count, failures)

        if not failures and decrypt is not None:
            try:
                decrypt()
            except AuthenticationFailed:
                failures.append((
                    ErrorKind.DECRYPTION_FAILED,
                    "SEAL integrity check failed: wrong key or tampered ciphertext",
                ))

        result = ProofOfAccessResult(
            valid=not failures,
            errors=tuple(kind for kind, _ in failures),
            messages=tuple(msg for _, msg in failures),
        )
        logger.debug(
            "PoA for tx %s: valid=%s errors=%s",
            tx.txid[:16], result.valid, [e.value for e in result.errors],
        )
        return result

    def _check_confirmations(self, tx, failures) -> None:
        if tx.confirmations < self.min_confirmations:
            failures.append((
                ErrorKind.TRANSACTION_NOT_CONFIRMED,
                f"Transaction has {tx.confirmations} confirmations, "
                f"{self.min_confirmations} required",
            ))
        elif tx.replaceable:
            failures.append((
                ErrorKind.TRANSACTION_NOT_CONFIRMED,
                "Transaction is still replaceable (RBF)",
            ))

    def _check_authorized_wallet(self, tx, metadata, failures) -> None:
        wallet = metadata.authorized_wallet
        if wallet.is_any:
            return
        if not any(wallet.permits(addr) for addr in tx.input_addresses):
            failures.append((
                ErrorKind.UNAUTHORIZED_WALLET,
                "No transaction input is signed by an authorized wallet",
            ))

    def _check_recipient(self, tx, metadata, failures) -> None:
        recipient = metadata.recipient_wallet
        if recipient.is_any:
            failures.append((
                ErrorKind.INVALID_METADATA,
                "recipient_wallet cannot be 'ANY'",
            ))
            return
        if recipient.is_self:
            inputs = set(tx.input_addresses)
            ok = any(out.address in inputs for out in tx.outputs)
            expected = "one of the input addresses"
        else:
            ok = any(out.address == recipient.address for out in tx.outputs)
            expected = recipient.address
        if not ok:
            failures.append((
                ErrorKind.RECIPIENT_MISMATCH,
                f"No output pays {expected}",
            ))

    def _check_amount(self, tx, metadata, failures) -> None:
        if metadata.recipient_wallet.is_any:
            # Change classification needs a well-formed recipient
            return
        condition = metadata.amount_condition
        spent = amount_spent(tx, metadata.recipient_wallet)

        if isinstance(condition, FixedAmount):
            if spent != condition.amount:
                failures.append((
                    ErrorKind.AMOUNT_CONDITION_UNSATISFIED,
                    f"Spent {spent} sats, vault requires exactly {condition.amount}",
                ))
        elif isinstance(condition, RangeAmount):
            if condition.selected_amount is None:
                failures.append((
                    ErrorKind.AMOUNT_CONDITION_UNSATISFIED,
                    "Range condition has no selected amount; "
                    "select one before building the unlock transaction",
                ))
            elif spent != condition.selected_amount:
                failures.append((
                    ErrorKind.AMOUNT_CONDITION_UNSATISFIED,
                    f"Spent {spent} sats, vault requires exactly "
                    f"{condition.selected_amount} (selected from "
                    f"[{condition.min}, {condition.max}])",
                ))
        elif isinstance(condition, AnyAmount):
            if spent <= 0:
                failures.append((
                    ErrorKind.AMOUNT_CONDITION_UNSATISFIED,
                    "Transaction spends nothing",
                ))

    def _check_time_lock(self, metadata, current_block_height, failures) -> None:
        if metadata.time_lock is not None and current_block_height < metadata.time_lock:
            failures.append((
                ErrorKind.VAULT_TIME_LOCKED,
                f"Vault is locked until block {metadata.time_lock} "
                f"(current height {current_block_height})",
            ))

    def _check_unlock_limit(self, metadata, prior_unlock_count, failures) -> None:
        limit = metadata.unlock_limit
        if limit is not None and prior_unlock_count >= limit:
            failures.append((
                ErrorKind.UNLOCK_LIMIT_EXCEEDED,
                f"Vault already unlocked {prior_unlock_count}/{limit} times",
            ))


def validate_proof_of_access(
    tx: TransactionFacts,
    metadata: VaultMetadata,
    current_block_height: int,
    prior_unlock_count: int,
    *,
    min_confirmations: int = MIN_CONFIRMATIONS,
    decrypt: Callable[[], Any] | None = None,
) -> ProofOfAccessResult:
    """Convenience wrapper around ProofOfAccessValidator.validate."""
    return ProofOfAccessValidator(min_confirmations).validate(
        tx, metadata, current_block_height, prior_unlock_count, decrypt=decrypt,
    )
