"""
Bitcoin address handling — format validation and derivation from signing keys.

Supported encodings:
    P2PKH / P2SH   base58check, version byte per network
    P2WPKH / P2WSH bech32 witness v0 (BIP-173)
    P2TR           bech32m witness v1 — shape check only (see is_valid_address)

The PoA validator never trusts who *bound* a vault: the authorized-wallet
check uses the address derived from each input's own signing key
(scriptSig or witness), encoded for the vault's network.
"""

from __future__ import annotations

import hashlib
import re

import base58
import bech32
from Crypto.Hash import RIPEMD160

from lockvault import NETWORKS

# network -> (p2pkh version, p2sh version, bech32 hrp)
NETWORK_PARAMS: dict[str, tuple[int, int, str]] = {
    "mainnet": (0x00, 0x05, "bc"),
    "testnet": (0x6F, 0xC4, "tb"),
    "signet": (0x6F, 0xC4, "tb"),
    "regtest": (0x6F, 0xC4, "bcrt"),
}

_BECH32_CHARSET = "qpzry9x8gf2tvdw0s3jn54khce6mua7l"
_TAPROOT_RE = {
    hrp: re.compile(rf"^{hrp}1p[{_BECH32_CHARSET}]{{58}}$")
    for hrp in ("bc", "tb", "bcrt")
}

# Script opcodes used when walking scriptSig pushes
_OP_PUSHDATA1 = 0x4C
_OP_PUSHDATA2 = 0x4D
_OP_PUSHDATA4 = 0x4E


def _params(network: str) -> tuple[int, int, str]:
    if network not in NETWORK_PARAMS:
        raise ValueError(
            f"Unknown network: {network!r} (expected one of {', '.join(NETWORKS)})"
        )
    return NETWORK_PARAMS[network]


def hash160(data: bytes) -> bytes:
    """RIPEMD-160(SHA-256(data))."""
    return RIPEMD160.new(hashlib.sha256(data).digest()).digest()


def p2pkh_address(public_key: bytes, network: str) -> str:
    p2pkh, _, _ = _params(network)
    return base58.b58encode_check(bytes([p2pkh]) + hash160(public_key)).decode("ascii")


def p2wpkh_address(public_key: bytes, network: str) -> str:
    if len(public_key) != 33:
        raise ValueError("P2WPKH requires a 33-byte compressed public key")
    _, _, hrp = _params(network)
    return bech32.encode(hrp, 0, list(hash160(public_key)))


def p2sh_address(redeem_script: bytes, network: str) -> str:
    _, p2sh, _ = _params(network)
    return base58.b58encode_check(bytes([p2sh]) + hash160(redeem_script)).decode("ascii")


def p2wpkh_redeem_script(public_key: bytes) -> bytes:
    """OP_0 <hash160(pubkey)>, the redeem script of a nested-SegWit input."""
    return b"\x00\x14" + hash160(public_key)


def p2sh_p2wpkh_address(public_key: bytes, network: str) -> str:
    if len(public_key) != 33:
        raise ValueError("P2SH-P2WPKH requires a 33-byte compressed public key")
    return p2sh_address(p2wpkh_redeem_script(public_key), network)


def addresses_for_public_key(public_key: bytes, network: str) -> tuple[str, ...]:
    """All single-key addresses a public key can sign for on a network."""
    if len(public_key) != 33:
        return (p2pkh_address(public_key, network),)
    return (
        p2wpkh_address(public_key, network),
        p2sh_p2wpkh_address(public_key, network),
        p2pkh_address(public_key, network),
    )


def is_valid_address(address: str, network: str | None = None) -> bool:
    """Check an address decodes correctly for the given network (or any network).

    bech32 (BIP-173) addresses are checksum-verified. The `bech32` package
    does not implement the bech32m checksum, so taproot (witness v1)
    addresses are accepted on charset and length alone.
    """
    if not isinstance(address, str) or not address:
        return False
    networks = [network] if network else list(NETWORK_PARAMS)
    for net in networks:
        p2pkh, p2sh, hrp = _params(net)
        if address.lower().startswith(hrp + "1"):
            witver, prog = bech32.decode(hrp, address.lower())
            if witver == 0 and prog is not None:
                return True
            if _TAPROOT_RE[hrp].match(address.lower()):
                return True
            continue
        try:
            raw = base58.b58decode_check(address)
        except ValueError:
            continue
        if len(raw) == 21 and raw[0] in (p2pkh, p2sh):
            return True
    return False


def _script_pushes(script: bytes) -> list[bytes]:
    """Data pushes of a push-only script (scriptSig). Raises ValueError otherwise."""
    pushes: list[bytes] = []
    i = 0
    while i < len(script):
        op = script[i]
        i += 1
        if 0x01 <= op <= 0x4B:
            n = op
        elif op == _OP_PUSHDATA1:
            n = script[i]
            i += 1
        elif op == _OP_PUSHDATA2:
            n = int.from_bytes(script[i:i + 2], "little")
            i += 2
        elif op == _OP_PUSHDATA4:
            n = int.from_bytes(script[i:i + 4], "little")
            i += 4
        elif op == 0x00:
            pushes.append(b"")
            continue
        else:
            raise ValueError(f"Non-push opcode 0x{op:02x} in scriptSig")
        if i + n > len(script):
            raise ValueError("Truncated push in scriptSig")
        pushes.append(script[i:i + n])
        i += n
    return pushes


def _is_pubkey(data: bytes) -> bool:
    return (len(data) == 33 and data[0] in (2, 3)) or (len(data) == 65 and data[0] == 4)


def derive_input_address(
    script_sig_hex: str,
    witness: list[str] | None,
    network: str,
) -> str | None:
    """Address of the key that signed an input, or None if not single-key.

    P2WPKH:      witness = [signature, pubkey], empty scriptSig -> bech32 v0
    P2SH-P2WPKH: witness = [signature, pubkey],
                 scriptSig = <0014 hash160(pubkey)>             -> base58 P2SH
    P2PKH:       scriptSig = <signature> <pubkey>               -> base58 P2PKH
    """
    try:
        pushes = _script_pushes(bytes.fromhex(script_sig_hex or ""))
    except (ValueError, IndexError):
        return None

    if witness and len(witness) == 2:
        try:
            pubkey = bytes.fromhex(witness[1])
        except ValueError:
            return None
        if len(pubkey) != 33 or not _is_pubkey(pubkey):
            return None
        if not pushes:
            return p2wpkh_address(pubkey, network)
        if pushes == [p2wpkh_redeem_script(pubkey)]:
            return p2sh_p2wpkh_address(pubkey, network)
        return None

    if len(pushes) == 2 and _is_pubkey(pushes[1]):
        return p2pkh_address(pushes[1], network)
    return None
