"""
Tests for vault identity hashing.
"""

from __future__ import annotations

import hashlib

import pytest

from lockvault import VAULT_ID_LENGTH
from lockvault.identity import (
    PLACEHOLDER_TXID,
    compute_vault_id,
    txid_to_le_bytes,
    validate_vault_id,
    vault_id_for,
)
from lockvault.metadata import AnyAmount, AuthorizedWallet, FixedAmount, VaultMetadata

TXID = "00112233445566778899aabbccddeeff00112233445566778899aabbccddeeff"


@pytest.fixture
def metadata():
    return VaultMetadata(
        authorized_wallet=AuthorizedWallet.any(),
        amount_condition=AnyAmount(),
        created_at=1_700_000_000_000,
    )


class TestVaultId:

    def test_txid_little_endian(self):
        le = txid_to_le_bytes(TXID)
        assert le == bytes.fromhex(TXID)[::-1]
        assert le[0] == 0xFF

    def test_construction(self, metadata):
        seal = b"SEAL-bytes"
        expected = hashlib.sha256(
            seal + metadata.canonical_bytes() + bytes.fromhex(TXID)[::-1]
        ).hexdigest()
        assert vault_id_for(seal, metadata, TXID) == expected

    def test_fixed_vector(self):
        vid = compute_vault_id(b"", b"{}", bytes(32))
        assert vid == hashlib.sha256(b"{}" + bytes(32)).hexdigest()
        assert len(vid) == 64

    def test_deterministic(self, metadata):
        assert vault_id_for(b"s", metadata, TXID) == vault_id_for(b"s", metadata, TXID)

    def test_metadata_txid_used(self, metadata):
        bound = metadata.with_txid(TXID)
        assert vault_id_for(b"s", bound) == vault_id_for(b"s", bound, TXID)

    def test_placeholder_for_drafts(self, metadata):
        assert vault_id_for(b"s", metadata) == compute_vault_id(
            b"s", metadata.canonical_bytes(), bytes(32)
        )
        assert PLACEHOLDER_TXID == "0" * 64

    def test_every_input_matters(self, metadata):
        base = vault_id_for(b"s", metadata, TXID)
        assert vault_id_for(b"t", metadata, TXID) != base
        assert vault_id_for(b"s", metadata.with_txid(TXID), TXID) != base
        assert vault_id_for(b"s", metadata, "ff" * 32) != base

    @pytest.mark.parametrize("txid", ["", "ab", "AB" * 32, "zz" * 32])
    def test_invalid_txid(self, txid):
        with pytest.raises(ValueError, match="Invalid txid"):
            txid_to_le_bytes(txid)

    def test_txid_bytes_length(self):
        with pytest.raises(ValueError, match="32 bytes"):
            compute_vault_id(b"", b"", b"\x00" * 31)

    def test_validate_vault_id_length(self, metadata):
        vault_id = vault_id_for(b"s", metadata)
        assert len(vault_id) == VAULT_ID_LENGTH
        validate_vault_id(vault_id)

    @pytest.mark.parametrize("vault_id", ["../etc/passwd", "A" * 64, "a" * 63, None])
    def test_validate_vault_id(self, vault_id):
        with pytest.raises(ValueError, match="Invalid vault id"):
            validate_vault_id(vault_id)


class TestKnownVector:
    """Canonical metadata bytes and vault id for a fully populated record."""

    SEAL = bytes.fromhex(
        "5345414c010b4145532d3235362d47434d000102030405060708090a0b"
        "04000000deadbeef11111111111111111111111111111111"
    )
    CANONICAL = (
        '{"amount_condition":{"amount":10000,"type":"fixed"},'
        '"authorized_wallet":"bc1qw508d6qejxtdg4y5r3zarvary0c5xw7kv8f3t4",'
        '"created_at":1700000000000,'
        '"recipient_wallet":"self",'
        '"time_lock":850000,'
        '"txid":"00112233445566778899aabbccddeeff00112233445566778899aabbccddeeff",'
        '"unlock_limit":3,'
        '"version":"1.1",'
        '"visibility":"encrypted"}'
    )
    VAULT_ID = "848b9086bb7fc0a903cf82385d6dce1685d1f375dfbd70084b3dcf8f2f5c6d69"

    @pytest.fixture
    def bound(self):
        return VaultMetadata(
            authorized_wallet=AuthorizedWallet.one("bc1qw508d6qejxtdg4y5r3zarvary0c5xw7kv8f3t4"),
            amount_condition=FixedAmount(10_000),
            time_lock=850_000,
            unlock_limit=3,
            txid=TXID,
            created_at=1_700_000_000_000,
        )

    def test_canonical_bytes(self, bound):
        assert bound.canonical_bytes() == self.CANONICAL.encode("utf-8")

    def test_vault_id(self, bound):
        assert vault_id_for(self.SEAL, bound) == self.VAULT_ID

    def test_vault_id_from_literal_inputs(self):
        txid_le = bytes.fromhex(
            "ffeeddccbbaa99887766554433221100ffeeddccbbaa99887766554433221100"
        )
        assert compute_vault_id(self.SEAL, self.CANONICAL.encode(), txid_le) == self.VAULT_ID
