"""
Shared fixtures: real secp256k1 key pairs, their testnet addresses, a temp
vault store and a builder for TransactionFacts.
"""

from __future__ import annotations

from dataclasses import dataclass
from unittest.mock import MagicMock

import pytest

from lockvault.address import p2wpkh_address
from lockvault.crypto import generate_private_key, public_key_from_private
from lockvault.store import VaultStore
from lockvault.transaction import BitcoinRPC, TransactionFacts, TxInput, TxOutput
from lockvault.vault import VaultLifecycle

NETWORK = "testnet"


@dataclass(frozen=True)
class Party:
    private_key: bytes
    public_key: bytes
    address: str


def make_party() -> Party:
    priv = generate_private_key()
    pub = public_key_from_private(priv)
    return Party(priv, pub, p2wpkh_address(pub, NETWORK))


def make_tx(
    txid: str = "ab" * 32,
    inputs: list[tuple[str, int]] | None = None,
    outputs: list[tuple] | None = None,
    confirmations: int = 1,
    replaceable: bool = False,
) -> TransactionFacts:
    """TransactionFacts from (address, value) inputs and (address, value[, is_change]) outputs."""
    return TransactionFacts(
        txid=txid,
        inputs=tuple(TxInput(addr, value) for addr, value in (inputs or [])),
        outputs=tuple(TxOutput(*out) for out in (outputs or [])),
        confirmations=confirmations,
        replaceable=replaceable,
    )


@pytest.fixture
def creator():
    return make_party()


@pytest.fixture
def unlocker():
    return make_party()


@pytest.fixture
def outsider():
    return make_party()


@pytest.fixture
def tmp_store(tmp_path):
    """VaultStore rooted in a temp directory."""
    return VaultStore(root=tmp_path / "lock")


@pytest.fixture
def lifecycle(tmp_store):
    return VaultLifecycle(tmp_store, network=NETWORK)


@pytest.fixture
def mock_rpc():
    """A mock BitcoinRPC that simulates a testnet node."""
    rpc = MagicMock(spec=BitcoinRPC)
    rpc.url = "http://127.0.0.1:18332"
    rpc.network = NETWORK
    rpc.get_network.return_value = NETWORK
    return rpc
