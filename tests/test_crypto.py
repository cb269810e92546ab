"""
Tests for crypto primitives and key derivation.

TestAEAD       — roundtrip, tampering, wrong key, bad key sizes
TestHashing    — SHA-256, HMAC, constant-time comparison
TestSecp256k1  — key generation, ECDH symmetry, ECDSA sign/verify
TestKDF        — determinism, symmetry, domain separation, sensitivity
"""

from __future__ import annotations

import hashlib
import hmac

import pytest

from lockvault.crypto import (
    AEADOutput,
    compress_public_key,
    constant_time_equal,
    decrypt,
    ecdh,
    encrypt,
    generate_key,
    generate_private_key,
    hmac_sha256,
    public_key_from_private,
    sha256,
    sign,
    verify_hmac,
    verify_signature,
)
from lockvault.errors import AuthenticationFailed, CryptoError
from lockvault.kdf import derive_keys, derive_metadata_key, derive_payload_key, hkdf_sha256


@pytest.fixture(params=["AES-256-GCM", "ChaCha20-Poly1305"])
def algorithm(request):
    return request.param


class TestAEAD:

    def test_roundtrip(self, algorithm):
        key = generate_key()
        out = encrypt(b"attack at dawn", key, algorithm)
        assert out.algorithm == algorithm
        assert len(out.nonce) == 12
        assert len(out.tag) == 16
        assert len(out.ciphertext) == len(b"attack at dawn")
        assert decrypt(out, key) == b"attack at dawn"

    def test_fresh_nonce_per_call(self):
        key = generate_key()
        a = encrypt(b"same", key)
        b = encrypt(b"same", key)
        assert a.nonce != b.nonce
        assert a.ciphertext != b.ciphertext

    def test_wrong_key(self, algorithm):
        out = encrypt(b"secret", generate_key(), algorithm)
        with pytest.raises(AuthenticationFailed):
            decrypt(out, generate_key())

    def test_tampered_ciphertext(self, algorithm):
        key = generate_key()
        out = encrypt(b"secret data", key, algorithm)
        flipped = bytes([out.ciphertext[0] ^ 0x01]) + out.ciphertext[1:]
        with pytest.raises(AuthenticationFailed):
            decrypt(AEADOutput(algorithm, out.nonce, flipped, out.tag), key)

    def test_tampered_tag(self):
        key = generate_key()
        out = encrypt(b"secret", key)
        bad_tag = bytes(16)
        with pytest.raises(AuthenticationFailed):
            decrypt(AEADOutput(out.algorithm, out.nonce, out.ciphertext, bad_tag), key)

    def test_associated_data_bound(self):
        key = generate_key()
        out = encrypt(b"secret", key, associated_data=b"ctx-1")
        assert decrypt(out, key, associated_data=b"ctx-1") == b"secret"
        with pytest.raises(AuthenticationFailed):
            decrypt(out, key, associated_data=b"ctx-2")

    @pytest.mark.parametrize("size", [0, 16, 31, 33])
    def test_bad_key_size(self, size):
        with pytest.raises(CryptoError, match="32 bytes"):
            encrypt(b"x", b"\x00" * size)

    def test_unsupported_algorithm(self):
        with pytest.raises(CryptoError, match="Unsupported"):
            encrypt(b"x", generate_key(), "AES-128-CBC")

    def test_authentication_failed_is_crypto_error(self):
        assert issubclass(AuthenticationFailed, CryptoError)

    def test_bytes_roundtrip(self):
        key = generate_key()
        out = encrypt(b"envelope", key)
        again = AEADOutput.from_bytes(out.to_bytes())
        assert decrypt(again, key) == b"envelope"

    def test_from_bytes_too_short(self):
        with pytest.raises(CryptoError):
            AEADOutput.from_bytes(b"\x00" * 10)


class TestHashing:

    def test_sha256(self):
        assert sha256(b"abc") == hashlib.sha256(b"abc").digest()

    def test_hmac(self):
        expected = hmac.new(b"k", b"msg", hashlib.sha256).digest()
        assert hmac_sha256(b"k", b"msg") == expected
        assert verify_hmac(b"k", b"msg", expected)
        assert not verify_hmac(b"k", b"msg", bytes(32))

    def test_constant_time_equal(self):
        assert constant_time_equal(b"abc", b"abc")
        assert not constant_time_equal(b"abc", b"abd")
        assert not constant_time_equal(b"abc", b"ab")


class TestSecp256k1:

    def test_key_sizes(self):
        priv = generate_private_key()
        pub = public_key_from_private(priv)
        assert len(priv) == 32
        assert len(pub) == 33
        assert pub[0] in (2, 3)

    def test_ecdh_symmetric(self):
        a, b = generate_private_key(), generate_private_key()
        shared_ab = ecdh(a, public_key_from_private(b))
        shared_ba = ecdh(b, public_key_from_private(a))
        assert shared_ab == shared_ba
        assert len(shared_ab) == 32

    def test_ecdh_differs_per_peer(self):
        a, b, c = (generate_private_key() for _ in range(3))
        assert ecdh(a, public_key_from_private(b)) != ecdh(a, public_key_from_private(c))

    def test_known_private_key_one(self):
        # Generator point G, compressed
        pub = public_key_from_private((1).to_bytes(32, "big"))
        assert pub.hex() == (
            "0279be667ef9dcbbac55a06295ce870b07029bfcdb2dce28d959f2815b16f81798"
        )

    def test_invalid_private_key(self):
        with pytest.raises(CryptoError):
            public_key_from_private(bytes(32))
        with pytest.raises(CryptoError):
            public_key_from_private(b"\x01" * 31)

    def test_invalid_public_key(self):
        with pytest.raises(CryptoError):
            ecdh(generate_private_key(), b"\x02" + b"\xff" * 32)

    def test_compress_public_key_idempotent(self):
        pub = public_key_from_private(generate_private_key())
        assert compress_public_key(pub) == pub

    def test_sign_verify(self):
        priv = generate_private_key()
        pub = public_key_from_private(priv)
        sig = sign(priv, b"message")
        assert verify_signature(pub, b"message", sig)
        assert not verify_signature(pub, b"other message", sig)

    def test_verify_fails_closed(self):
        pub = public_key_from_private(generate_private_key())
        assert not verify_signature(pub, b"m", b"not a der signature")
        assert not verify_signature(b"garbage", b"m", b"sig")


class TestKDF:

    @pytest.fixture
    def keys(self):
        a, b = generate_private_key(), generate_private_key()
        return a, public_key_from_private(a), b, public_key_from_private(b)

    def test_deterministic(self, keys):
        a, _, _, pub_b = keys
        seal = b"SEAL\x01example"
        assert derive_payload_key(a, pub_b, seal) == derive_payload_key(a, pub_b, seal)
        assert derive_metadata_key(a, pub_b, seal) == derive_metadata_key(a, pub_b, seal)

    def test_both_parties_derive_same_keys(self, keys):
        a, pub_a, b, pub_b = keys
        seal = b"SEAL\x01example"
        assert derive_keys(a, pub_b, seal) == derive_keys(b, pub_a, seal)

    def test_payload_and_metadata_keys_independent(self, keys):
        a, _, _, pub_b = keys
        payload_key, metadata_key = derive_keys(a, pub_b, b"seal")
        assert payload_key != metadata_key
        assert len(payload_key) == len(metadata_key) == 32

    def test_derive_keys_matches_individual(self, keys):
        a, _, _, pub_b = keys
        assert derive_keys(a, pub_b, b"s") == (
            derive_payload_key(a, pub_b, b"s"),
            derive_metadata_key(a, pub_b, b"s"),
        )

    def test_any_seal_change_changes_keys(self, keys):
        a, _, _, pub_b = keys
        assert derive_payload_key(a, pub_b, b"seal-1") != derive_payload_key(a, pub_b, b"seal-2")
        assert derive_metadata_key(a, pub_b, b"seal-1") != derive_metadata_key(a, pub_b, b"seal-2")

    def test_peer_change_changes_keys(self, keys):
        a, _, _, pub_b = keys
        other = public_key_from_private(generate_private_key())
        assert derive_payload_key(a, pub_b, b"s") != derive_payload_key(a, other, b"s")

    def test_payload_key_construction(self, keys):
        from lockvault.kdf import seal_hash
        a, _, _, pub_b = keys
        expected = hkdf_sha256(ecdh(a, pub_b), seal_hash(b"s"), b"LOCK-PROTOCOL-V1")
        assert derive_payload_key(a, pub_b, b"s") == expected

    def test_hkdf_rfc5869_case_1(self):
        ikm = bytes.fromhex("0b" * 22)
        salt = bytes.fromhex("000102030405060708090a0b0c")
        info = bytes.fromhex("f0f1f2f3f4f5f6f7f8f9")
        okm = hkdf_sha256(ikm, salt, info, length=42)
        assert okm.hex() == (
            "3cb25f25faacd57a90434f64d0362f2a2d2d0a90cf1a5a4c5db02d56ecc4c5bf"
            "34007208d5b887185865"
        )


class TestFixedVectors:
    """Known-answer values for two fixed scalars and a fixed SEAL container.

    Computed independently of this package, so a change to the ECDH output
    format, the HKDF salt/info labels or the IKM ordering breaks these.
    """

    PRIV_1 = (1).to_bytes(32, "big")
    PRIV_2 = (2).to_bytes(32, "big")
    PUB_1 = bytes.fromhex("0279be667ef9dcbbac55a06295ce870b07029bfcdb2dce28d959f2815b16f81798")
    PUB_2 = bytes.fromhex("02c6047f9441ed7d6d3045406e95c07cd85c778e4b8cef3ca7abac09b95c709ee5")
    SEAL = bytes.fromhex(
        "5345414c010b4145532d3235362d47434d"  # "SEAL" v1, "AES-256-GCM"
        "000102030405060708090a0b"  # nonce
        "04000000deadbeef"  # ciphertext
        "11111111111111111111111111111111"  # tag
    )
    SEAL_HASH = "81a02fbdb54c58caa11f9b7a2cdf383a2af512c3d922ed4ab767c5f01a7eb7db"
    SHARED = "c6047f9441ed7d6d3045406e95c07cd85c778e4b8cef3ca7abac09b95c709ee5"
    PAYLOAD_KEY = "f7e4c8ceea91a97a79b7747718bbd9878f80b5bbcb323e49c1eefcc7b5d21e21"
    METADATA_KEY = "d68de2e06bd008fa1a80cd101d67ad06e19f4d3003141fa73d861ee35a5b8b55"

    def test_public_keys(self):
        assert public_key_from_private(self.PRIV_1) == self.PUB_1
        assert public_key_from_private(self.PRIV_2) == self.PUB_2

    def test_shared_secret_is_x_coordinate(self):
        assert ecdh(self.PRIV_1, self.PUB_2).hex() == self.SHARED
        assert ecdh(self.PRIV_2, self.PUB_1).hex() == self.SHARED

    def test_seal_hash(self):
        from lockvault.kdf import seal_hash
        assert seal_hash(self.SEAL).hex() == self.SEAL_HASH

    def test_payload_key(self):
        assert derive_payload_key(self.PRIV_1, self.PUB_2, self.SEAL).hex() == self.PAYLOAD_KEY
        assert derive_payload_key(self.PRIV_2, self.PUB_1, self.SEAL).hex() == self.PAYLOAD_KEY

    def test_metadata_key(self):
        assert derive_metadata_key(self.PRIV_1, self.PUB_2, self.SEAL).hex() == self.METADATA_KEY
        assert derive_metadata_key(self.PRIV_2, self.PUB_1, self.SEAL).hex() == self.METADATA_KEY

    def test_metadata_key_rfc5869_steps(self):
        # Extract then a single Expand block, with literal labels
        ikm = bytes.fromhex(self.SHARED + self.SEAL_HASH)
        prk = hmac.new(b"LOCK-METADATA", ikm, hashlib.sha256).digest()
        okm = hmac.new(prk, b"metadata-encryption-v1\x01", hashlib.sha256).digest()
        assert okm.hex() == self.METADATA_KEY

    def test_derive_keys(self):
        assert derive_keys(self.PRIV_1, self.PUB_2, self.SEAL) == (
            bytes.fromhex(self.PAYLOAD_KEY),
            bytes.fromhex(self.METADATA_KEY),
        )
