"""
Bitcoin transaction facts and the JSON-RPC collaborator that produces them.

The validator consumes TransactionFacts and never performs I/O. Resolving
confirmations, prevout values and signer addresses is the job of a
TransactionSource; BitcoinRPC is the reference implementation against a
Bitcoin Core node (uses stdlib urllib.request, like any plain JSON-RPC call).

Input addresses are derived from each input's own signing key (scriptSig /
witness) for the configured network, falling back to the prevout
scriptPubKey address for script types without a single signing key.
"""

from __future__ import annotations

import json
import logging
import os
import urllib.error
import urllib.request
from base64 import b64encode
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Protocol

from lockvault import DEFAULT_NETWORK, SATOSHIS_PER_BTC
from lockvault.address import derive_input_address
from lockvault.errors import BitcoinRPCError

logger = logging.getLogger(__name__)

# BIP-125: any input sequence below this signals replaceability
_RBF_SEQUENCE_THRESHOLD = 0xFFFFFFFE


@dataclass(frozen=True)
class TxInput:
    address: str
    value: int
    script_sig: str = ""
    witness: tuple[str, ...] = ()


@dataclass(frozen=True)
class TxOutput:
    """A transaction output. is_change=None means "not known" (inferred by the validator)."""

    address: str
    value: int
    is_change: bool | None = None


@dataclass(frozen=True)
class TransactionFacts:
    """Everything the Proof-of-Access validator needs to know about a transaction."""

    txid: str
    inputs: tuple[TxInput, ...] = ()
    outputs: tuple[TxOutput, ...] = ()
    confirmations: int = 0
    replaceable: bool = False
    block_height: int | None = None

    @property
    def input_addresses(self) -> list[str]:
        return [i.address for i in self.inputs if i.address]

    @property
    def total_in(self) -> int:
        return sum(i.value for i in self.inputs)

    @property
    def total_out(self) -> int:
        return sum(o.value for o in self.outputs)

    @property
    def fee(self) -> int:
        return self.total_in - self.total_out

    def to_dict(self) -> dict[str, Any]:
        return {
            "txid": self.txid,
            "inputs": [
                {"address": i.address, "value": i.value} for i in self.inputs
            ],
            "outputs": [
                {"address": o.address, "value": o.value, "is_change": o.is_change}
                for o in self.outputs
            ],
            "confirmations": self.confirmations,
            "replaceable": self.replaceable,
            "block_height": self.block_height,
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> TransactionFacts:
        return cls(
            txid=d["txid"],
            inputs=tuple(
                TxInput(
                    address=i.get("address", ""),
                    value=int(i.get("value", 0)),
                    script_sig=i.get("script_sig", ""),
                    witness=tuple(i.get("witness") or ()),
                )
                for i in d.get("inputs", [])
            ),
            outputs=tuple(
                TxOutput(
                    address=o.get("address", ""),
                    value=int(o.get("value", 0)),
                    is_change=o.get("is_change"),
                )
                for o in d.get("outputs", [])
            ),
            confirmations=int(d.get("confirmations", 0)),
            replaceable=bool(d.get("replaceable", False)),
            block_height=d.get("block_height"),
        )


class TransactionSource(Protocol):
    """Bitcoin-layer collaborator consumed by the vault lifecycle and CLI."""

    def get_transaction(self, txid: str) -> TransactionFacts: ...

    def current_block_height(self) -> int: ...


def btc_to_sats(value: Any) -> int:
    """Convert an RPC BTC amount (Decimal/str/float) to integer satoshis."""
    return int((Decimal(str(value)) * SATOSHIS_PER_BTC).to_integral_value())


class BitcoinRPC:
    """Minimal Bitcoin JSON-RPC client using stdlib urllib.

    Usage:
        rpc = BitcoinRPC.from_env()
        facts = rpc.get_transaction(txid)
        height = rpc.current_block_height()
    """

    def __init__(
        self,
        url: str,
        user: str = "",
        password: str = "",
        network: str = DEFAULT_NETWORK,
        timeout: float = 30,
    ) -> None:
        if not url:
            raise ValueError("Bitcoin RPC URL cannot be empty")
        self.url = url
        self.network = network
        self.timeout = timeout
        self._user = user
        self._password = password
        self._id_counter = 0

    @classmethod
    def from_env(cls) -> BitcoinRPC:
        """Create RPC client from environment variables.

        Reads:
            BITCOIN_RPC_URL  — e.g. http://127.0.0.1:18332
            BITCOIN_RPC_USER — RPC username
            BITCOIN_RPC_PASS — RPC password
            LOCK_NETWORK     — network for address derivation (default testnet)
        """
        url = os.environ.get("BITCOIN_RPC_URL", "")
        user = os.environ.get("BITCOIN_RPC_USER", "")
        password = os.environ.get("BITCOIN_RPC_PASS", "")
        network = os.environ.get("LOCK_NETWORK", DEFAULT_NETWORK)
        if not url:
            raise BitcoinRPCError(
                "BITCOIN_RPC_URL not set. "
                "Set it to your Bitcoin node's RPC endpoint "
                "(e.g. http://127.0.0.1:18332 for testnet)."
            )
        return cls(url, user, password, network=network)

    def call(self, method: str, *params: Any) -> Any:
        """Execute a JSON-RPC call. Returns the 'result' field.

        Raises BitcoinRPCError on transport or RPC-level errors.
        """
        self._id_counter += 1
        payload = json.dumps({
            "jsonrpc": "1.0",
            "id": self._id_counter,
            "method": method,
            "params": list(params),
        }).encode()

        req = urllib.request.Request(
            self.url,
            data=payload,
            headers={"Content-Type": "application/json"},
            method="POST",
        )
        if self._user or self._password:
            creds = b64encode(f"{self._user}:{self._password}".encode()).decode()
            req.add_header("Authorization", f"Basic {creds}")

        try:
            with urllib.request.urlopen(req, timeout=self.timeout) as resp:
                body = json.loads(resp.read().decode(), parse_float=Decimal)
        except urllib.error.HTTPError as e:
            # Bitcoin Core returns errors as HTTP 500 with JSON body
            try:
                body = json.loads(e.read().decode(), parse_float=Decimal)
            except ValueError:
                raise BitcoinRPCError(f"HTTP {e.code}: {e.reason}") from e
        except urllib.error.URLError as e:
            raise BitcoinRPCError(f"Connection failed: {e.reason}") from e
        except (OSError, ValueError) as e:
            raise BitcoinRPCError(f"RPC call failed: {e}") from e

        if body.get("error"):
            err = body["error"]
            msg = err.get("message", str(err)) if isinstance(err, dict) else str(err)
            raise BitcoinRPCError(f"RPC error: {msg}")

        return body.get("result")

    def get_network(self) -> str:
        """Detect which network the node is running on."""
        info = self.call("getblockchaininfo")
        chain = info.get("chain", "")
        network_map = {
            "main": "mainnet",
            "test": "testnet",
            "testnet4": "testnet",
            "signet": "signet",
            "regtest": "regtest",
        }
        return network_map.get(chain, chain)

    def current_block_height(self) -> int:
        return int(self.call("getblockcount"))

    def _prevout(self, vin: dict[str, Any]) -> dict[str, Any]:
        """Prevout for an input: inline (verbosity 2) or via a second lookup."""
        prevout = vin.get("prevout")
        if prevout:
            return prevout
        prev_tx = self.call("getrawtransaction", vin["txid"], True)
        return prev_tx["vout"][vin["vout"]]

    def get_transaction(self, txid: str) -> TransactionFacts:
        """Resolve a transaction into TransactionFacts.

        Raises BitcoinRPCError if the node cannot find or decode it.
        """
        tx = self.call("getrawtransaction", txid, 2)
        if not isinstance(tx, dict):
            raise BitcoinRPCError(f"Unexpected getrawtransaction result for {txid}")

        inputs: list[TxInput] = []
        signals_rbf = False
        for vin in tx.get("vin", []):
            if "coinbase" in vin:
                continue
            if vin.get("sequence", 0xFFFFFFFF) < _RBF_SEQUENCE_THRESHOLD:
                signals_rbf = True
            prevout = self._prevout(vin)
            script_sig = vin.get("scriptSig", {}).get("hex", "")
            witness = list(vin.get("txinwitness", []))
            address = derive_input_address(script_sig, witness, self.network)
            if address is None:
                address = _script_address(prevout.get("scriptPubKey", {}))
            inputs.append(TxInput(
                address=address,
                value=btc_to_sats(prevout.get("value", 0)),
                script_sig=script_sig,
                witness=tuple(witness),
            ))

        outputs = [
            TxOutput(
                address=_script_address(vout.get("scriptPubKey", {})),
                value=btc_to_sats(vout.get("value", 0)),
            )
            for vout in tx.get("vout", [])
        ]

        confirmations = int(tx.get("confirmations", 0) or 0)
        block_height = None
        if tx.get("blockhash"):
            header = self.call("getblockheader", tx["blockhash"])
            block_height = int(header["height"])

        facts = TransactionFacts(
            txid=tx.get("txid", txid),
            inputs=tuple(inputs),
            outputs=tuple(outputs),
            confirmations=confirmations,
            # Only unconfirmed transactions can still be replaced
            replaceable=signals_rbf and confirmations == 0,
            block_height=block_height,
        )
        logger.debug(
            "Resolved tx %s: %d inputs, %d outputs, %d confirmations",
            txid[:16], len(inputs), len(outputs), confirmations,
        )
        return facts


def _script_address(script_pub_key: dict[str, Any]) -> str:
    if script_pub_key.get("address"):
        return script_pub_key["address"]
    addresses = script_pub_key.get("addresses") or []
    return addresses[0] if addresses else ""
