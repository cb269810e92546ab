"""
LOCK CLI — seal payloads into vaults that open only on Bitcoin Proof-of-Access.

Commands:
  lock keygen        - Generate a secp256k1 key pair and its addresses
  lock seal          - Encrypt a file into a new draft vault
  lock bind          - Bind a draft to a confirmed transaction (final vault id)
  lock unseal        - Validate an unlock transaction and decrypt the payload
  lock sign-rebind   - Sign a rebind authorization with a wallet key
  lock rebind        - Move a vault to a new binding transaction
  lock select-amount - Fix the unlock amount for a range condition
  lock inspect       - Show the header fields of a .seal file
  lock list          - List vaults in the local store
  lock show          - Show one vault
  lock attempts      - Show the unseal attempt log for a vault
  lock vault-id      - Compute a vault id from a .seal file and metadata
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from pathlib import Path


def _add_rpc_args(parser: argparse.ArgumentParser) -> None:
    """Add common Bitcoin RPC flags to a subparser.

    SECURITY: RPC password is NOT accepted via CLI args (visible in ps/proc).
    Use --rpc-cookie for Bitcoin Core cookie auth, or set BITCOIN_RPC_PASS env var.
    """
    parser.add_argument("--rpc-url", help="Bitcoin RPC URL (or set BITCOIN_RPC_URL)")
    parser.add_argument("--rpc-user", help="Bitcoin RPC username (or set BITCOIN_RPC_USER)")
    parser.add_argument(
        "--rpc-cookie",
        help="Path to Bitcoin Core .cookie file for cookie auth",
    )


def _add_key_arg(parser: argparse.ArgumentParser, required: bool, help_text: str) -> None:
    parser.add_argument("-k", "--key", required=required, help=help_text)


def _fail(message: str) -> None:
    print(f"Error: {message}", file=sys.stderr)
    sys.exit(1)


def _read_cookie_file(cookie_path: str) -> tuple[str, str]:
    """Read Bitcoin Core cookie file. Returns (user, password)."""
    path = Path(cookie_path)
    if not path.is_file():
        _fail(f"Cookie file not found: {cookie_path}")
    content = path.read_text().strip()
    if ":" not in content:
        _fail(f"Invalid cookie file format: {cookie_path}")
    user, password = content.split(":", 1)
    return user, password


def _network(args: argparse.Namespace) -> str:
    from lockvault import DEFAULT_NETWORK

    return getattr(args, "network", None) or os.environ.get("LOCK_NETWORK", DEFAULT_NETWORK)


def _get_rpc(args: argparse.Namespace):
    """Build a BitcoinRPC from CLI flags, cookie auth, or env vars.

    Priority: --rpc-cookie > env vars > --rpc-user
    """
    from lockvault.transaction import BitcoinRPC

    url = getattr(args, "rpc_url", None) or os.environ.get("BITCOIN_RPC_URL", "")
    if not url:
        _fail("No Bitcoin RPC URL. Use --rpc-url or set BITCOIN_RPC_URL.")

    # Cookie auth takes priority (most secure)
    cookie_path = getattr(args, "rpc_cookie", None)
    if cookie_path:
        user, password = _read_cookie_file(cookie_path)
        return BitcoinRPC(url, user, password, network=_network(args))

    # Fall back to env vars (password never from CLI args)
    user = getattr(args, "rpc_user", None) or os.environ.get("BITCOIN_RPC_USER", "")
    password = os.environ.get("BITCOIN_RPC_PASS", "")
    return BitcoinRPC(url, user, password, network=_network(args))


def _get_lifecycle(args: argparse.Namespace):
    from lockvault.store import VaultStore
    from lockvault.vault import VaultLifecycle

    home = getattr(args, "home", None) or os.environ.get("LOCK_HOME") or None
    return VaultLifecycle(VaultStore(home), network=_network(args))


def _read_key(path: str | None) -> bytes | None:
    """Read a hex-encoded private key file."""
    if path is None:
        return None
    key_path = Path(path)
    if not key_path.is_file():
        _fail(f"Key file not found: {path}")
    try:
        key = bytes.fromhex(key_path.read_text().strip())
    except ValueError:
        _fail(f"Key file is not hex: {path}")
    if len(key) != 32:
        _fail(f"Key file must hold a 32-byte private key: {path}")
    return key


def _read_metadata(path: str):
    from lockvault.metadata import VaultMetadata

    meta_path = Path(path)
    if not meta_path.is_file():
        _fail(f"Metadata file not found: {path}")
    return VaultMetadata.from_json(meta_path.read_text(encoding="utf-8"))


def _safe_output(output: str) -> str:
    if ".." in Path(output).parts:
        _fail("Output path must not contain '..' (path traversal)")
    return output


def cmd_keygen(args: argparse.Namespace) -> None:
    """Generate a secp256k1 key pair; print public key and addresses."""
    from lockvault.address import addresses_for_public_key
    from lockvault.crypto import generate_private_key, public_key_from_private

    network = _network(args)
    priv = generate_private_key()
    pub = public_key_from_private(priv)

    if args.output:
        out = Path(_safe_output(args.output))
        out.write_text(priv.hex() + "\n")
        os.chmod(out, 0o600)
        print(f"Private key written to {out}")
    else:
        print(f"private key: {priv.hex()}")
    print(f"public key:  {pub.hex()}")
    for addr in addresses_for_public_key(pub, network):
        print(f"address:     {addr} ({network})")


def cmd_seal(args: argparse.Namespace) -> None:
    """Encrypt a file into a new draft vault."""
    from lockvault import SEAL_EXTENSION
    from lockvault.errors import LockError

    from lockvault._seal import decode

    lock = _get_lifecycle(args)
    try:
        metadata = _read_metadata(args.metadata)
        payload = Path(args.path).read_bytes()
        vault = lock.seal(
            payload,
            metadata,
            _read_key(args.key),
            bytes.fromhex(args.peer),
            algorithm=args.algorithm,
            hint=args.hint,
        )
    except (LockError, ValueError, OSError) as e:
        _fail(str(e))

    print(f"Sealed {args.path} into draft vault")
    print(f"  draft id: {vault.id}")
    if args.output:
        out = Path(_safe_output(args.output))
        if not out.suffix:
            out = out.with_suffix(SEAL_EXTENSION)
        nbytes = decode(vault.seal).write(str(out))
        print(f"  seal:     {out} ({nbytes} bytes)")
    print(f"  next:     lock bind {vault.id} <txid>")


def cmd_bind(args: argparse.Namespace) -> None:
    """Bind a draft to a confirmed transaction."""
    from lockvault.errors import LockError

    lock = _get_lifecycle(args)
    rpc = _get_rpc(args)
    try:
        tx = rpc.get_transaction(args.txid)
        vault = lock.bind(args.draft_id, tx, private_key=_read_key(args.key))
    except (LockError, ValueError) as e:
        _fail(str(e))

    print(f"Bound vault to tx {args.txid[:16]}...")
    print(f"  vault id: {vault.id}")
    print(f"  status:   {vault.status.value}")


def cmd_unseal(args: argparse.Namespace) -> None:
    """Validate an unlock transaction and decrypt the payload."""
    from lockvault.errors import LockError

    lock = _get_lifecycle(args)
    rpc = _get_rpc(args)
    try:
        tx = rpc.get_transaction(args.txid)
        height = rpc.current_block_height()
        outcome = lock.unseal(args.vault_id, tx, height, private_key=_read_key(args.key))
    except (LockError, ValueError) as e:
        _fail(str(e))

    if not outcome.ok:
        print(f"FAIL: Proof-of-Access rejected for vault {args.vault_id[:16]}...", file=sys.stderr)
        for kind, message in zip(outcome.result.errors, outcome.result.messages):
            print(f"  {kind.value}: {message}", file=sys.stderr)
        sys.exit(1)

    summary = f"unlocks: {outcome.unlock_count}  status: {outcome.status.value}"
    if args.output:
        output = _safe_output(args.output)
        Path(output).write_bytes(outcome.plaintext)
        print(f"Unsealed vault -> {output} ({len(outcome.plaintext)} bytes)")
        print(f"  {summary}")
    else:
        # Plaintext goes to stdout untouched; status to stderr
        sys.stdout.buffer.write(outcome.plaintext)
        sys.stdout.flush()
        print(summary, file=sys.stderr)


def cmd_sign_rebind(args: argparse.Namespace) -> None:
    """Sign a rebind authorization with an authorized wallet's key."""
    from lockvault.errors import LockError
    from lockvault.vault import sign_rebind

    try:
        auth = sign_rebind(args.vault_id, args.txid, _read_key(args.key))
    except (LockError, ValueError) as e:
        _fail(str(e))

    content = json.dumps(auth.to_dict(), indent=2)
    if args.output:
        Path(_safe_output(args.output)).write_text(content + "\n")
        print(f"Rebind authorization written to {args.output}")
    else:
        print(content)


def cmd_rebind(args: argparse.Namespace) -> None:
    """Move a vault to a new binding transaction."""
    from lockvault.errors import LockError
    from lockvault.vault import RebindAuthorization

    auth_path = Path(args.auth)
    if not auth_path.is_file():
        _fail(f"Authorization file not found: {args.auth}")
    try:
        auth = RebindAuthorization.from_dict(json.loads(auth_path.read_text()))
    except (json.JSONDecodeError, KeyError, ValueError) as e:
        _fail(f"Invalid authorization file: {e}")

    lock = _get_lifecycle(args)
    rpc = _get_rpc(args)
    try:
        tx = rpc.get_transaction(args.txid)
        vault = lock.rebind(args.vault_id, tx, auth, private_key=_read_key(args.key))
    except (LockError, ValueError) as e:
        _fail(str(e))

    print(f"Rebound vault {args.vault_id[:16]}...")
    print(f"  new id:  {vault.id}")
    print(f"  unlocks: {vault.unlock_count}")


def cmd_select_amount(args: argparse.Namespace) -> None:
    """Fix (or show) the satoshi amount an unlock transaction must spend."""
    from lockvault.errors import LockError

    lock = _get_lifecycle(args)
    try:
        amount = lock.plan_amount(args.vault_id, private_key=_read_key(args.key))
    except (LockError, ValueError) as e:
        _fail(str(e))
    print(f"Unlock amount for {args.vault_id[:16]}...: {amount} sats")


def cmd_inspect(args: argparse.Namespace) -> None:
    """Show the header fields of a .seal file."""
    from lockvault._seal.reader import SealReader
    from lockvault.errors import MalformedSeal

    try:
        seal = SealReader.read(args.path)
    except (MalformedSeal, OSError) as e:
        _fail(str(e))

    print(f"SEAL: {args.path}")
    print(f"  version:    {seal.version}")
    print(f"  algorithm:  {seal.encryption_algo}")
    print(f"  nonce:      {seal.nonce.hex()}")
    print(f"  ciphertext: {seal.ciphertext_len} bytes")
    print(f"  tag:        {seal.integrity_tag.hex()}")
    print(f"  sha256:     {seal.compute_hash().hex()}")
    if seal.metadata_hint is not None:
        print(f"  hint:       {seal.metadata_hint}")


def cmd_list(args: argparse.Namespace) -> None:
    """List vaults in the local store."""
    from lockvault.errors import LockError

    lock = _get_lifecycle(args)
    try:
        vaults = lock.list_vaults(
            wallet=args.wallet,
            status=args.status,
            limit=args.limit,
            offset=args.offset,
            include_drafts=args.drafts,
        )
    except (LockError, ValueError) as e:
        _fail(str(e))

    if not vaults:
        print("No vaults.")
        return

    print(f"Vaults: {len(vaults)}\n")
    for vault in vaults:
        line = f"  {vault.id[:16]}...  {vault.status.value:<9}  unlocks={vault.unlock_count}"
        if vault.metadata is not None and vault.metadata.txid:
            line += f"  tx={vault.metadata.txid[:12]}..."
        line += f"  {vault.visibility.value}"
        print(line)


def cmd_show(args: argparse.Namespace) -> None:
    """Show one vault (metadata decrypted when --key is given)."""
    from lockvault.errors import LockError

    lock = _get_lifecycle(args)
    try:
        vault = lock.get(args.vault_id)
        metadata = None
        if vault.metadata is not None or args.key:
            metadata = lock.open_metadata(vault, _read_key(args.key))
    except (LockError, ValueError) as e:
        _fail(str(e))

    print(f"Vault {vault.id}")
    print(f"  status:     {vault.status.value}")
    print(f"  network:    {vault.network}")
    print(f"  unlocks:    {vault.unlock_count}")
    print(f"  visibility: {vault.visibility.value}")
    print(f"  creator:    {vault.creator_pubkey.hex()}")
    print(f"  unlocker:   {vault.unlocker_pubkey.hex()}")
    if vault.selected_amount is not None:
        print(f"  selected:   {vault.selected_amount} sats")
    if metadata is not None:
        print("  metadata:")
        for line in json.dumps(metadata.to_dict(), indent=2, sort_keys=True).splitlines():
            print(f"    {line}")
    else:
        print("  metadata:   (encrypted; pass --key to decrypt)")


def cmd_attempts(args: argparse.Namespace) -> None:
    """Show the unseal attempt log for a vault."""
    lock = _get_lifecycle(args)
    entries = lock.attempts(args.vault_id)

    if args.verify:
        if lock.attempt_log.verify_chain():
            print(f"OK: attempt log chain verified ({len(lock.attempt_log)} entries)")
        else:
            print("FAIL: attempt log chain is broken", file=sys.stderr)
            sys.exit(1)

    if not entries:
        print("No attempts recorded.")
        return

    print(f"Attempts for {args.vault_id[:16]}...: {len(entries)}\n")
    for entry in entries:
        verdict = "OK  " if entry.valid else "FAIL"
        line = f"  #{entry.sequence:<4} {verdict} tx={entry.txid[:12]}...  {entry.timestamp[:19]}"
        if entry.errors:
            line += f"  {', '.join(entry.errors)}"
        print(line)


def cmd_vault_id(args: argparse.Namespace) -> None:
    """Compute a vault id from a .seal file, metadata JSON and optional txid."""
    from lockvault._seal.reader import SealReader
    from lockvault.errors import LockError
    from lockvault.identity import vault_id_for

    try:
        seal_bytes = Path(args.path).read_bytes()
        SealReader.parse(seal_bytes)
        metadata = _read_metadata(args.metadata)
        print(vault_id_for(seal_bytes, metadata, args.txid))
    except (LockError, ValueError, OSError) as e:
        _fail(str(e))


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="lock",
        description="LOCK — encrypted vaults unlocked by Bitcoin Proof-of-Access.",
    )
    from lockvault import ALGO_AES_256_GCM, ALGO_CHACHA20_POLY1305, NETWORKS, __version__

    parser.add_argument("--version", action="version", version=f"lock {__version__}")
    parser.add_argument("--home", help="Store directory (or set LOCK_HOME; default ~/.lock)")
    parser.add_argument(
        "--network", choices=NETWORKS, help="Bitcoin network (or set LOCK_NETWORK; default testnet)"
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command")

    # keygen
    p_keygen = sub.add_parser("keygen", help="Generate a secp256k1 key pair")
    p_keygen.add_argument("-o", "--output", help="Write the private key (hex) to this file")

    # seal
    p_seal = sub.add_parser("seal", help="Encrypt a file into a new draft vault")
    p_seal.add_argument("path", help="File to seal")
    p_seal.add_argument("-m", "--metadata", required=True, help="Metadata JSON file")
    _add_key_arg(p_seal, True, "Creator private key file (hex)")
    p_seal.add_argument("--peer", required=True, help="Unlocker public key (hex)")
    p_seal.add_argument(
        "--algorithm",
        choices=(ALGO_AES_256_GCM, ALGO_CHACHA20_POLY1305),
        default=ALGO_AES_256_GCM,
        help="AEAD algorithm (default: AES-256-GCM)",
    )
    p_seal.add_argument("--hint", help="Public hint stored unencrypted in the SEAL")
    p_seal.add_argument(
        "-o", "--output", help="Also write the .seal file here (.seal added if no suffix)"
    )

    # bind
    p_bind = sub.add_parser("bind", help="Bind a draft to a confirmed transaction")
    p_bind.add_argument("draft_id", help="Draft vault id")
    p_bind.add_argument("txid", help="Binding transaction id")
    _add_key_arg(p_bind, False, "Private key file (needed for encrypted metadata)")
    _add_rpc_args(p_bind)

    # unseal
    p_unseal = sub.add_parser("unseal", help="Validate an unlock transaction and decrypt")
    p_unseal.add_argument("vault_id", help="Vault id")
    p_unseal.add_argument("txid", help="Unlock (Proof-of-Access) transaction id")
    _add_key_arg(p_unseal, True, "Unlocker private key file (hex)")
    p_unseal.add_argument("-o", "--output", help="Write plaintext to this file")
    _add_rpc_args(p_unseal)

    # sign-rebind
    p_sr = sub.add_parser("sign-rebind", help="Sign a rebind authorization")
    p_sr.add_argument("vault_id", help="Current vault id")
    p_sr.add_argument("txid", help="New binding transaction id")
    _add_key_arg(p_sr, True, "Authorized wallet private key file (hex)")
    p_sr.add_argument("-o", "--output", help="Write authorization JSON to this file")

    # rebind
    p_rebind = sub.add_parser("rebind", help="Move a vault to a new binding transaction")
    p_rebind.add_argument("vault_id", help="Current vault id")
    p_rebind.add_argument("txid", help="New binding transaction id")
    p_rebind.add_argument("--auth", required=True, help="Authorization JSON from sign-rebind")
    _add_key_arg(p_rebind, False, "Private key file (needed for encrypted metadata)")
    _add_rpc_args(p_rebind)

    # select-amount
    p_sel = sub.add_parser("select-amount", help="Fix the unlock amount for a vault")
    p_sel.add_argument("vault_id", help="Vault id")
    _add_key_arg(p_sel, False, "Private key file (needed for encrypted metadata)")

    # inspect
    p_inspect = sub.add_parser("inspect", help="Show header fields of a .seal file")
    p_inspect.add_argument("path", help="Path to .seal file")

    # list
    p_list = sub.add_parser("list", help="List vaults in the local store")
    p_list.add_argument("--wallet", help="Only vaults involving this address")
    p_list.add_argument(
        "--status", choices=("draft", "bound", "active", "expired", "exhausted")
    )
    p_list.add_argument("--limit", type=int, help="Maximum number of vaults")
    p_list.add_argument("--offset", type=int, default=0, help="Skip this many vaults")
    p_list.add_argument("--drafts", action="store_true", help="Include drafts")

    # show
    p_show = sub.add_parser("show", help="Show one vault")
    p_show.add_argument("vault_id", help="Vault id")
    _add_key_arg(p_show, False, "Private key file to decrypt metadata")

    # attempts
    p_att = sub.add_parser("attempts", help="Show unseal attempts for a vault")
    p_att.add_argument("vault_id", help="Vault id")
    p_att.add_argument("--verify", action="store_true", help="Verify the log hash chain")

    # vault-id
    p_vid = sub.add_parser("vault-id", help="Compute a vault id")
    p_vid.add_argument("path", help="Path to .seal file")
    p_vid.add_argument("-m", "--metadata", required=True, help="Metadata JSON file")
    p_vid.add_argument("--txid", help="Binding txid (default: metadata txid or all zeros)")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if not args.command:
        print("LOCK — Bitcoin Proof-of-Access vaults")
        print()
        print("Usage:")
        print("  lock keygen -o unlocker.key")
        print("  lock seal secret.txt -m rules.json -k creator.key --peer <pubkey>")
        print("  lock bind <draft-id> <txid> -k creator.key --rpc-url ...")
        print("  lock select-amount <vault-id>")
        print("  lock unseal <vault-id> <txid> -k unlocker.key -o secret.txt --rpc-url ...")
        print("  lock sign-rebind <vault-id> <new-txid> -k wallet.key -o auth.json")
        print("  lock rebind <vault-id> <new-txid> --auth auth.json --rpc-url ...")
        print("  lock inspect file.seal")
        print("  lock list [--status active] [--wallet <address>]")
        print("  lock show <vault-id> [-k key]")
        print("  lock attempts <vault-id> [--verify]")
        print("  lock vault-id file.seal -m rules.json [--txid <txid>]")
        print()
        print("Run 'lock <command> --help' for details on any command.")
        sys.exit(0)

    commands = {
        "keygen": cmd_keygen,
        "seal": cmd_seal,
        "bind": cmd_bind,
        "unseal": cmd_unseal,
        "sign-rebind": cmd_sign_rebind,
        "rebind": cmd_rebind,
        "select-amount": cmd_select_amount,
        "inspect": cmd_inspect,
        "list": cmd_list,
        "show": cmd_show,
        "attempts": cmd_attempts,
        "vault-id": cmd_vault_id,
    }
    commands[args.command](args)


if __name__ == "__main__":
    main()
