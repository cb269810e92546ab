"""
Vault metadata — the unlock rules a Proof-of-Access transaction must satisfy.

Wire JSON (encrypted at rest unless visibility == "plaintext"):
    authorized_wallet   "ANY" | "<address>" | ["<address>", ...]
    amount_condition    {"type": "fixed", "amount": n}
                        {"type": "range", "min": a, "max": b[, "selected_amount": n]}
                        {"type": "any"}
    recipient_wallet    "self" | "<address>"
    time_lock           block height (optional)
    unlock_limit        positive integer (optional)
    visibility          "encrypted" | "plaintext"
    txid                binding transaction id (set by bind/rebind)
    created_at          unix milliseconds
    version             protocol version string
    description         free text (optional)

Canonical bytes (used for the vault id): UTF-8 JSON, sorted keys, no
whitespace, absent optional fields omitted.
"""

from __future__ import annotations

import json
import random
import re
import secrets
import time
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Union

from lockvault import (
    DUST_THRESHOLD,
    MAX_TIME_LOCK,
    MAX_UNLOCK_AMOUNT,
    MAX_UNLOCK_LIMIT,
    MIN_TRANSACTION_FEE,
    MIN_UNLOCK_AMOUNT,
    PROTOCOL_VERSION,
)
from lockvault.address import is_valid_address
from lockvault.errors import InvalidMetadata

ANY = "ANY"
SELF = "self"

_TXID_RE = re.compile(r"^[0-9a-f]{64}$")


def now_ms() -> int:
    return int(time.time() * 1000)


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


class Visibility(str, Enum):
    ENCRYPTED = "encrypted"
    PLAINTEXT = "plaintext"


# ---------------------------------------------------------------------------
# authorized_wallet: Any | One(address) | Many(addresses)
# ---------------------------------------------------------------------------

class WalletScope(str, Enum):
    ANY = "any"
    ONE = "one"
    MANY = "many"


@dataclass(frozen=True)
class AuthorizedWallet:
    """Which wallets may produce a Proof-of-Access transaction.

    "At least one of" semantics: any listed address signing an input passes.
    """

    scope: WalletScope
    addresses: tuple[str, ...] = ()

    @classmethod
    def any(cls) -> AuthorizedWallet:
        return cls(WalletScope.ANY)

    @classmethod
    def one(cls, address: str) -> AuthorizedWallet:
        return cls(WalletScope.ONE, (address,))

    @classmethod
    def many(cls, addresses: list[str] | tuple[str, ...]) -> AuthorizedWallet:
        return cls(WalletScope.MANY, tuple(addresses))

    @property
    def is_any(self) -> bool:
        return self.scope is WalletScope.ANY

    def permits(self, address: str) -> bool:
        return self.is_any or address in self.addresses

    def to_json(self) -> str | list[str]:
        if self.scope is WalletScope.ANY:
            return ANY
        if self.scope is WalletScope.ONE:
            return self.addresses[0]
        return list(self.addresses)

    @classmethod
    def from_json(cls, value: Any) -> AuthorizedWallet:
        if value == ANY:
            return cls.any()
        if isinstance(value, str):
            return cls.one(value)
        if isinstance(value, (list, tuple)):
            return cls.many([str(v) for v in value])
        raise InvalidMetadata([("authorized_wallet", f"unsupported value {value!r}")])


# ---------------------------------------------------------------------------
# amount_condition: Fixed | Range | Any
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class FixedAmount:
    amount: int
    type: str = field(default="fixed", init=False)

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "amount": self.amount}


@dataclass(frozen=True)
class RangeAmount:
    """Range condition.

    The range is only used to pick a target once, at PSBT-generation time.
    After that, validation is an exact match against selected_amount.
    """

    min: int
    max: int
    selected_amount: int | None = None
    type: str = field(default="range", init=False)

    def with_selection(self, amount: int) -> RangeAmount:
        return replace(self, selected_amount=amount)

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"type": self.type, "min": self.min, "max": self.max}
        if self.selected_amount is not None:
            d["selected_amount"] = self.selected_amount
        return d


@dataclass(frozen=True)
class AnyAmount:
    type: str = field(default="any", init=False)

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type}


AmountCondition = Union[FixedAmount, RangeAmount, AnyAmount]


def amount_condition_from_dict(data: Any) -> AmountCondition:
    if not isinstance(data, dict) or "type" not in data:
        raise InvalidMetadata([("amount_condition.type", "is required")])
    kind = data["type"]
    if kind == "fixed":
        return FixedAmount(amount=data.get("amount"))
    if kind == "range":
        return RangeAmount(
            min=data.get("min"),
            max=data.get("max"),
            selected_amount=data.get("selected_amount"),
        )
    if kind == "any":
        return AnyAmount()
    raise InvalidMetadata([("amount_condition.type", f"unknown type {kind!r}")])


def select_range_amount(condition: RangeAmount, rng: random.Random | None = None) -> RangeAmount:
    """Pick the PSBT target for a range condition (once). Returns the updated condition.

    A condition that already carries a selection is returned unchanged.
    """
    if condition.selected_amount is not None:
        return condition
    rng = rng or secrets.SystemRandom()
    return condition.with_selection(rng.randint(condition.min, condition.max))


def plan_amount(condition: AmountCondition, rng: random.Random | None = None) -> tuple[int, AmountCondition]:
    """Amount a PSBT must spend to satisfy a condition.

    Returns (amount, condition) where the condition carries the range
    selection when one was made.
    """
    if isinstance(condition, FixedAmount):
        return condition.amount, condition
    if isinstance(condition, RangeAmount):
        selected = select_range_amount(condition, rng)
        return selected.selected_amount, selected
    return DUST_THRESHOLD + MIN_TRANSACTION_FEE, condition


# ---------------------------------------------------------------------------
# recipient_wallet: Self | Address
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RecipientWallet:
    """Where the unlock transaction must send funds. address=None means Self."""

    address: str | None = None

    @property
    def is_self(self) -> bool:
        return self.address is None

    @property
    def is_any(self) -> bool:
        # "ANY" is only meaningful for authorized_wallet; here it is a schema error
        return self.address == ANY

    def to_json(self) -> str:
        return SELF if self.address is None else self.address

    @classmethod
    def from_json(cls, value: Any) -> RecipientWallet:
        if value is None or value == SELF:
            return cls(None)
        return cls(str(value))


# ---------------------------------------------------------------------------
# VaultMetadata
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class VaultMetadata:
    authorized_wallet: AuthorizedWallet
    amount_condition: AmountCondition
    recipient_wallet: RecipientWallet = field(default_factory=RecipientWallet)
    time_lock: int | None = None
    unlock_limit: int | None = None
    visibility: Visibility = Visibility.ENCRYPTED
    txid: str | None = None
    created_at: int = field(default_factory=now_ms)
    version: str = PROTOCOL_VERSION
    description: str | None = None

    def with_txid(self, txid: str) -> VaultMetadata:
        return replace(self, txid=txid)

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "authorized_wallet": self.authorized_wallet.to_json(),
            "amount_condition": self.amount_condition.to_dict(),
            "recipient_wallet": self.recipient_wallet.to_json(),
            "visibility": self.visibility.value,
            "created_at": self.created_at,
            "version": self.version,
        }
        if self.time_lock is not None:
            d["time_lock"] = self.time_lock
        if self.unlock_limit is not None:
            d["unlock_limit"] = self.unlock_limit
        if self.txid is not None:
            d["txid"] = self.txid
        if self.description is not None:
            d["description"] = self.description
        return d

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> VaultMetadata:
        if not isinstance(data, dict):
            raise InvalidMetadata([("metadata", "must be a JSON object")])
        if "authorized_wallet" not in data:
            raise InvalidMetadata([("authorized_wallet", "is required")])
        if "amount_condition" not in data:
            raise InvalidMetadata([("amount_condition.type", "is required")])
        visibility = data.get("visibility", data.get("metadata_visibility", "encrypted"))
        try:
            vis = Visibility(visibility)
        except ValueError:
            raise InvalidMetadata([("visibility", f"unknown value {visibility!r}")]) from None
        return cls(
            authorized_wallet=AuthorizedWallet.from_json(data["authorized_wallet"]),
            amount_condition=amount_condition_from_dict(data["amount_condition"]),
            recipient_wallet=RecipientWallet.from_json(data.get("recipient_wallet")),
            time_lock=data.get("time_lock"),
            unlock_limit=data.get("unlock_limit"),
            visibility=vis,
            txid=data.get("txid"),
            created_at=data.get("created_at", 0),
            version=data.get("version", PROTOCOL_VERSION),
            description=data.get("description"),
        )

    def canonical_bytes(self) -> bytes:
        return canonical_json(self.to_dict())

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), sort_keys=True)

    @classmethod
    def from_json(cls, s: str | bytes) -> VaultMetadata:
        try:
            data = json.loads(s)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise InvalidMetadata([("metadata", f"not valid JSON: {e}")]) from e
        return cls.from_dict(data)


def canonical_json(data: Any) -> bytes:
    """Deterministic JSON: sorted keys, no incidental whitespace, UTF-8."""
    return json.dumps(
        data, sort_keys=True, separators=(",", ":"), ensure_ascii=False
    ).encode("utf-8")


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

def _valid_amount(value: Any) -> bool:
    return _is_int(value) and MIN_UNLOCK_AMOUNT <= value <= MAX_UNLOCK_AMOUNT


def _amount_issues(condition: AmountCondition) -> list[tuple[str, str]]:
    issues: list[tuple[str, str]] = []
    if isinstance(condition, FixedAmount):
        if condition.amount is None:
            issues.append(("amount_condition.amount", "is required for fixed condition"))
        elif not _valid_amount(condition.amount):
            issues.append((
                "amount_condition.amount",
                f"must be an integer in [{MIN_UNLOCK_AMOUNT}, {MAX_UNLOCK_AMOUNT}], "
                f"got {condition.amount!r}",
            ))
    elif isinstance(condition, RangeAmount):
        if condition.min is None or condition.max is None:
            issues.append(("amount_condition.min", "min and max are required for range condition"))
            return issues
        if not _valid_amount(condition.min):
            issues.append(("amount_condition.min", f"invalid amount {condition.min!r}"))
        if not _valid_amount(condition.max):
            issues.append(("amount_condition.max", f"invalid amount {condition.max!r}"))
        if _is_int(condition.min) and _is_int(condition.max) and condition.min >= condition.max:
            issues.append(("amount_condition.min", "must be less than max"))
        sel = condition.selected_amount
        if sel is not None and not (
            _is_int(sel) and _is_int(condition.min) and _is_int(condition.max)
            and condition.min <= sel <= condition.max
        ):
            issues.append(("amount_condition.selected_amount", f"{sel!r} is outside [min, max]"))
    return issues


def validate_metadata(metadata: VaultMetadata, network: str | None = None) -> list[tuple[str, str]]:
    """Shape-check metadata. Returns every violated field as (field, reason)."""
    issues: list[tuple[str, str]] = []

    wallet = metadata.authorized_wallet
    if not wallet.is_any:
        if not wallet.addresses:
            issues.append(("authorized_wallet", "at least one address is required"))
        for addr in wallet.addresses:
            if not is_valid_address(addr, network):
                issues.append(("authorized_wallet", f"invalid Bitcoin address {addr!r}"))

    issues.extend(_amount_issues(metadata.amount_condition))

    recipient = metadata.recipient_wallet
    if recipient.is_any:
        issues.append(("recipient_wallet", "'ANY' is only valid for authorized_wallet"))
    elif not recipient.is_self and not is_valid_address(recipient.address, network):
        issues.append(("recipient_wallet", f"invalid Bitcoin address {recipient.address!r}"))

    if metadata.time_lock is not None:
        if not _is_int(metadata.time_lock) or metadata.time_lock < 0:
            issues.append(("time_lock", "must be a non-negative integer"))
        elif metadata.time_lock > MAX_TIME_LOCK:
            issues.append(("time_lock", f"cannot exceed {MAX_TIME_LOCK}"))

    if metadata.unlock_limit is not None:
        if not _is_int(metadata.unlock_limit) or metadata.unlock_limit < 1:
            issues.append(("unlock_limit", "must be a positive integer"))
        elif metadata.unlock_limit > MAX_UNLOCK_LIMIT:
            issues.append(("unlock_limit", f"cannot exceed {MAX_UNLOCK_LIMIT}"))

    if not _is_int(metadata.created_at) or metadata.created_at <= 0:
        issues.append(("created_at", "must be a positive unix-millisecond timestamp"))

    if metadata.txid is not None and not (
        isinstance(metadata.txid, str) and _TXID_RE.match(metadata.txid)
    ):
        issues.append(("txid", "must be 64 lowercase hex chars"))

    return issues


def check_metadata(metadata: VaultMetadata, network: str | None = None) -> None:
    """Raise InvalidMetadata listing every violated field, or return None."""
    issues = validate_metadata(metadata, network)
    if issues:
        raise InvalidMetadata(issues)
