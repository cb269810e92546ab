"""
Tests for Bitcoin address validation and derivation from signing keys.
"""

from __future__ import annotations

import pytest

from lockvault.address import (
    addresses_for_public_key,
    derive_input_address,
    hash160,
    is_valid_address,
    p2pkh_address,
    p2sh_p2wpkh_address,
    p2wpkh_address,
    p2wpkh_redeem_script,
)
from lockvault.crypto import public_key_from_private

# Public key of private key 1 (the generator point), compressed
G = bytes.fromhex("0279be667ef9dcbbac55a06295ce870b07029bfcdb2dce28d959f2815b16f81798")


class TestDerivation:

    def test_hash160_generator(self):
        assert hash160(G).hex() == "751e76e8199196d454941c45d1b3a323f1433bd6"

    def test_p2wpkh_mainnet(self):
        assert p2wpkh_address(G, "mainnet") == "bc1qw508d6qejxtdg4y5r3zarvary0c5xw7kv8f3t4"

    def test_p2wpkh_testnet(self):
        assert p2wpkh_address(G, "testnet") == "tb1qw508d6qejxtdg4y5r3zarvary0c5xw7kxpjzsx"

    def test_p2pkh_mainnet(self):
        assert p2pkh_address(G, "mainnet") == "1BgGZ9tcN4rm9KBzDn7KprQz87SZ26SAMH"

    def test_p2sh_p2wpkh_mainnet(self):
        assert p2wpkh_redeem_script(G).hex() == "0014751e76e8199196d454941c45d1b3a323f1433bd6"
        assert p2sh_p2wpkh_address(G, "mainnet") == "3JvL6Ymt8MVWiCNHC7oWU6nLeHNJKLZGLN"

    def test_p2sh_p2wpkh_testnet(self):
        addr = p2sh_p2wpkh_address(G, "testnet")
        assert addr == "2NAUYAHhujozruyzpsFRP63mbrdaU5wnEpN"
        assert is_valid_address(addr, "testnet")
        assert not is_valid_address(addr, "mainnet")

    def test_regtest_hrp(self):
        assert p2wpkh_address(G, "regtest").startswith("bcrt1q")

    def test_unknown_network(self):
        with pytest.raises(ValueError, match="Unknown network"):
            p2wpkh_address(G, "litecoin")

    def test_p2wpkh_requires_compressed(self):
        with pytest.raises(ValueError, match="33-byte"):
            p2wpkh_address(b"\x04" + b"\x00" * 64, "testnet")

    def test_addresses_for_public_key(self):
        addrs = addresses_for_public_key(G, "mainnet")
        assert addrs == (
            "bc1qw508d6qejxtdg4y5r3zarvary0c5xw7kv8f3t4",
            "3JvL6Ymt8MVWiCNHC7oWU6nLeHNJKLZGLN",
            "1BgGZ9tcN4rm9KBzDn7KprQz87SZ26SAMH",
        )


class TestValidation:

    @pytest.mark.parametrize("address,network", [
        ("bc1qw508d6qejxtdg4y5r3zarvary0c5xw7kv8f3t4", "mainnet"),
        ("tb1qw508d6qejxtdg4y5r3zarvary0c5xw7kxpjzsx", "testnet"),
        ("1BgGZ9tcN4rm9KBzDn7KprQz87SZ26SAMH", "mainnet"),
        ("3J98t1WpEZ73CNmQviecrnyiWrnqRhWNLy", "mainnet"),
        ("bc1p5cyxnuxmeuwuvkwfem96lqzszd02n6xdcjrs20cac6yqjjwudpxqkedrcr", "mainnet"),
    ])
    def test_valid(self, address, network):
        assert is_valid_address(address, network)
        assert is_valid_address(address)

    def test_wrong_network(self):
        assert not is_valid_address("bc1qw508d6qejxtdg4y5r3zarvary0c5xw7kv8f3t4", "testnet")
        assert not is_valid_address("1BgGZ9tcN4rm9KBzDn7KprQz87SZ26SAMH", "testnet")

    @pytest.mark.parametrize("address", [
        "",
        "ANY",
        "not-an-address",
        "bc1qw508d6qejxtdg4y5r3zarvary0c5xw7kv8f3t5",  # checksum
        "1BgGZ9tcN4rm9KBzDn7KprQz87SZ26SAMh",  # checksum
        "bc1pshort",
    ])
    def test_invalid(self, address):
        assert not is_valid_address(address)

    def test_non_string(self):
        assert not is_valid_address(None)
        assert not is_valid_address(12345)

    def test_generated_key_addresses_valid(self):
        pub = public_key_from_private(b"\x07" * 32)
        for addr in addresses_for_public_key(pub, "testnet"):
            assert is_valid_address(addr, "testnet")


class TestInputAddress:

    SIG = "30" + "44" + "00" * 68 + "01"  # placeholder DER-ish signature, 71 bytes

    def test_p2wpkh_witness(self):
        addr = derive_input_address("", [self.SIG, G.hex()], "mainnet")
        assert addr == "bc1qw508d6qejxtdg4y5r3zarvary0c5xw7kv8f3t4"

    def test_p2pkh_script_sig(self):
        sig = bytes.fromhex(self.SIG)
        script = bytes([len(sig)]) + sig + bytes([len(G)]) + G
        assert derive_input_address(script.hex(), [], "mainnet") == (
            "1BgGZ9tcN4rm9KBzDn7KprQz87SZ26SAMH"
        )

    def test_network_follows_argument(self):
        addr = derive_input_address("", [self.SIG, G.hex()], "testnet")
        assert addr == "tb1qw508d6qejxtdg4y5r3zarvary0c5xw7kxpjzsx"

    def test_taproot_keypath_has_no_key(self):
        # Single 64-byte Schnorr signature in the witness
        assert derive_input_address("", ["ab" * 64], "mainnet") is None

    def test_multisig_witness(self):
        assert derive_input_address("", ["", self.SIG, self.SIG, "52ae"], "mainnet") is None

    def test_non_push_script_sig(self):
        assert derive_input_address("76a9", [], "mainnet") is None

    def test_truncated_push(self):
        assert derive_input_address("4701", [], "mainnet") is None

    def test_bad_hex(self):
        assert derive_input_address("zz", None, "mainnet") is None
        assert derive_input_address("", [self.SIG, "zz"], "mainnet") is None

    def test_p2sh_p2wpkh_input(self):
        redeem = p2wpkh_redeem_script(G)
        script_sig = (bytes([len(redeem)]) + redeem).hex()
        addr = derive_input_address(script_sig, [self.SIG, G.hex()], "mainnet")
        assert addr == "3JvL6Ymt8MVWiCNHC7oWU6nLeHNJKLZGLN"

    def test_p2sh_p2wpkh_input_testnet(self):
        redeem = p2wpkh_redeem_script(G)
        script_sig = (bytes([len(redeem)]) + redeem).hex()
        addr = derive_input_address(script_sig, [self.SIG, G.hex()], "testnet")
        assert addr == "2NAUYAHhujozruyzpsFRP63mbrdaU5wnEpN"

    def test_p2sh_redeem_script_for_other_key(self):
        other = public_key_from_private(b"\x07" * 32)
        redeem = p2wpkh_redeem_script(other)
        script_sig = (bytes([len(redeem)]) + redeem).hex()
        assert derive_input_address(script_sig, [self.SIG, G.hex()], "mainnet") is None

    def test_witness_with_unexpected_script_sig(self):
        sig = bytes.fromhex(self.SIG)
        script_sig = (bytes([len(sig)]) + sig).hex()
        assert derive_input_address(script_sig, [self.SIG, G.hex()], "mainnet") is None
