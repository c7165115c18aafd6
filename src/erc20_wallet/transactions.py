"""
Transaction Builder and Signer

Assembles legacy (EIP-155) transactions for ERC20 transfers and signs them
in-process with ``eth_account``. The chain id is folded into the signature's
``v`` value, so a signed transaction is only valid on the chain it was built
for.

Gas pricing is pluggable through ``GasPolicy``:

+------------------+-----------------------------------------------+
| Policy           | Behavior                                      |
+==================+===============================================+
| NodeGasPolicy    | gas limit 100 000, price from ``eth_gasPrice``|
+------------------+-----------------------------------------------+
| FixedGasPolicy   | caller-supplied limit and price, no RPC       |
+------------------+-----------------------------------------------+

Nonces are fetched with ``eth_getTransactionCount(sender, "pending")`` right
before each build and never cached. Two concurrent sends from the same key
can therefore pick the same nonce; callers must serialize them.
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional, Tuple, Union

from eth_account import Account
from eth_utils import to_bytes, to_hex

from .abi import to_address
from .config import DEFAULT_GAS_LIMIT
from .exceptions import MalformedKeyError, SigningError
from .rpc import RpcClient
from .schemas import SignedTransaction, UnsignedTransaction

logger = logging.getLogger(__name__)

#: Order of the secp256k1 group; valid private keys lie in [1, N-1].
SECP256K1_N: int = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141


def parse_private_key(private_key: Union[str, bytes]) -> bytes:
    """
    Parse a hex (with or without ``0x``) or raw private key into 32 bytes.

    Raises:
        MalformedKeyError: If the key is not 32 bytes or not a valid secp256k1 scalar.
    """
    if isinstance(private_key, (bytes, bytearray)):
        raw = bytes(private_key)
    elif isinstance(private_key, str):
        text = private_key.strip()
        body = text[2:] if text[:2].lower() == "0x" else text
        if len(body) != 64:
            raise MalformedKeyError(f"Private key must be 64 hex characters, got {len(body)}")
        try:
            raw = to_bytes(hexstr=body)
        except ValueError as exc:
            raise MalformedKeyError("Private key is not valid hex") from exc
    else:
        raise MalformedKeyError(f"Private key must be str or bytes, got {type(private_key).__name__}")

    if len(raw) != 32:
        raise MalformedKeyError(f"Private key must be 32 bytes, got {len(raw)}")
    if not 0 < int.from_bytes(raw, "big") < SECP256K1_N:
        raise MalformedKeyError("Private key is not a valid secp256k1 scalar")
    return raw


def derive_address(private_key: Union[str, bytes]) -> str:
    """Return the checksummed address controlled by ``private_key``."""
    try:
        return Account.from_key(parse_private_key(private_key)).address
    except ValueError as exc:
        raise MalformedKeyError(f"Cannot derive address: {exc}") from exc


class GasPolicy(ABC):
    """Decides the gas limit and gas price of a transaction."""

    @abstractmethod
    def resolve(self, rpc: RpcClient) -> Tuple[int, int]:
        """Return ``(gas_limit, gas_price)``."""


class FixedGasPolicy(GasPolicy):
    """Constant gas limit and price; makes builds fully reproducible."""

    def __init__(self, gas_limit: int = DEFAULT_GAS_LIMIT, gas_price: int = 1_000_000_000):
        if gas_limit <= 0 or gas_price < 0:
            raise ValueError("gas_limit must be positive and gas_price non-negative")
        self.gas_limit = gas_limit
        self.gas_price = gas_price

    def resolve(self, rpc: RpcClient) -> Tuple[int, int]:
        return self.gas_limit, self.gas_price


class NodeGasPolicy(GasPolicy):
    """Fixed gas limit; gas price as reported by the node's ``eth_gasPrice``."""

    def __init__(self, gas_limit: int = DEFAULT_GAS_LIMIT):
        if gas_limit <= 0:
            raise ValueError("gas_limit must be positive")
        self.gas_limit = gas_limit

    def resolve(self, rpc: RpcClient) -> Tuple[int, int]:
        return self.gas_limit, rpc.gas_price()


class TransactionBuilder:
    """
    Builds and signs ERC20 transfer transactions.

    Attributes:
        rpc: Adapter used for nonce and gas price lookups
        gas_policy: Source of gas limit and gas price

    Example::

        builder = TransactionBuilder(rpc, FixedGasPolicy(100_000, 10**9))
        tx = builder.build(sender, contract, "0xa9059cbb...", chain_id=1)
        signed = builder.sign(tx, private_key)
        rpc.send_raw_transaction(signed.raw_transaction)
    """

    def __init__(self, rpc: RpcClient, gas_policy: Optional[GasPolicy] = None):
        self.rpc = rpc
        self.gas_policy = gas_policy or NodeGasPolicy()

    def build(
        self,
        sender: str,
        to: str,
        data: Union[str, bytes],
        chain_id: int,
        nonce: Optional[int] = None,
    ) -> UnsignedTransaction:
        """
        Assemble an unsigned transaction.

        Args:
            sender: Address whose nonce is used.
            to: Destination, normally the token contract.
            data: Encoded call data.
            chain_id: EIP-155 chain id.
            nonce: Explicit nonce; fetched from the node when omitted.

        Raises:
            RpcError: If the nonce or gas price lookup fails.
        """
        sender = to_address(sender)
        if nonce is None:
            nonce = self.rpc.get_transaction_count(sender, "pending")
        gas, gas_price = self.gas_policy.resolve(self.rpc)
        logger.debug(f"Building transaction from {sender}: nonce={nonce} gas={gas} gas_price={gas_price}")
        return UnsignedTransaction(
            sender=sender,
            to=to_address(to),
            nonce=nonce,
            value=0,
            data=data if isinstance(data, str) else to_hex(data),
            gas=gas,
            gas_price=gas_price,
            chain_id=chain_id,
        )

    @staticmethod
    def sign(tx: UnsignedTransaction, private_key: Union[str, bytes]) -> SignedTransaction:
        """
        Sign ``tx`` and serialize it for broadcast.

        Raises:
            MalformedKeyError: If the key is malformed.
            SigningError: If the key does not belong to ``tx.sender`` or the
                signer rejects the transaction.
        """
        key = parse_private_key(private_key)
        try:
            account = Account.from_key(key)
        except ValueError as exc:
            raise MalformedKeyError(f"Invalid private key: {exc}") from exc

        if account.address.lower() != tx.sender.lower():
            raise SigningError(
                f"Private key controls {account.address}, not the transaction sender {tx.sender}"
            )

        try:
            signed = account.sign_transaction(tx.to_signable())
        except (TypeError, ValueError) as exc:
            raise SigningError(f"Failed to sign transaction: {exc}") from exc

        return SignedTransaction(
            raw_transaction=to_hex(signed.raw_transaction),
            tx_hash=to_hex(signed.hash),
            nonce=tx.nonce,
        )
