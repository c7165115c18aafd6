"""
ERC20 Wallet Facade

One wallet talks to one ERC20 contract on one chain through one JSON-RPC
endpoint. It exposes three operations:

    - ``balance(address)``: token balance via ``eth_call`` / ``balanceOf``
    - ``pay(private_key, to, amount)``: sign and broadcast ``transfer``
    - ``accept(addresses, callback)``: block and deliver incoming transfers

Errors are never retried or swallowed here: ``RpcError``, ``DecodeError``,
``InvalidArgument`` and ``SigningError`` reach the caller unchanged.

Dependencies:
    - httpx (through ``RpcClient``): JSON-RPC transport
    - eth_account (through ``TransactionBuilder``): signing
    - pydantic: immutable ``WalletConfig`` and result models
"""

import logging
import threading
from typing import Any, Dict, Iterable, Optional, Union

import httpx
from eth_utils import to_hex
from pydantic import ValidationError

from .abi import decode_balance, encode_balance_of, encode_transfer, to_address
from .config import (
    DEFAULT_CHAIN_ID,
    DEFAULT_CONTRACT,
    DEFAULT_MAX_BLOCK_RANGE,
    DEFAULT_POLL_INTERVAL,
    DEFAULT_REQUEST_TIMEOUT,
    get_chain_id_from_env,
    get_contract_from_env,
    get_poll_interval_from_env,
    get_rpc_url_from_env,
)
from .endpoints import EndpointPool
from .exceptions import ConfigurationError
from .rpc import RpcClient
from .schemas import TransactionReceiptHandle, WalletConfig
from .transactions import GasPolicy, TransactionBuilder, derive_address
from .watcher import TransferCallback, TransferWatcher, WatchHandle

DEFAULT_LOGGER = logging.getLogger("erc20_wallet")

#: A logger that discards everything; pass it to silence a wallet.
NULL_LOGGER = logging.getLogger("erc20_wallet.null")
NULL_LOGGER.addHandler(logging.NullHandler())
NULL_LOGGER.propagate = False


class Wallet:
    """
    ERC20 wallet bound to a single contract and chain.

    ``balance`` and ``pay`` may be called from several threads at once; each
    call is an independent RPC round trip. Concurrent ``pay`` calls that use
    the same private key race on the nonce and must be serialized by the
    caller.

    Attributes:
        config: Immutable ``WalletConfig``
        rpc: JSON-RPC adapter shared by all operations
        builder: Transaction builder/signer

    Example:
        wallet = Wallet(rpc_url="http://localhost:8545", chain_id=4242, contract=token)
        wallet.balance(alice)
        handle = wallet.pay(bob_key, alice, 42_000)
        print(handle.tx_hash)
    """

    def __init__(
        self,
        rpc_url: str,
        chain_id: int = DEFAULT_CHAIN_ID,
        contract: str = DEFAULT_CONTRACT,
        logger: Optional[logging.Logger] = None,
        gas_policy: Optional[GasPolicy] = None,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        client: Optional[httpx.Client] = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        max_block_range: int = DEFAULT_MAX_BLOCK_RANGE,
    ):
        try:
            self.config = WalletConfig(
                rpc_url=rpc_url,
                chain_id=chain_id,
                contract=to_address(contract),
                logger=logger or DEFAULT_LOGGER,
            )
        except ValidationError as exc:
            raise ConfigurationError(f"Invalid wallet configuration: {exc}") from exc

        if poll_interval <= 0:
            raise ConfigurationError(f"poll_interval must be positive, got {poll_interval}")
        if max_block_range < 1:
            raise ConfigurationError(f"max_block_range must be at least 1, got {max_block_range}")

        self.poll_interval = poll_interval
        self.max_block_range = max_block_range
        self.rpc = RpcClient(rpc_url, timeout=timeout, client=client, logger=self.config.logger)
        self.builder = TransactionBuilder(self.rpc, gas_policy)

    @classmethod
    def from_pool(cls, pool: EndpointPool, **kwargs) -> "Wallet":
        """Create a wallet on one endpoint picked from ``pool``."""
        return cls(pool.pick(), **kwargs)

    @classmethod
    def from_env(cls, **kwargs) -> "Wallet":
        """
        Create a wallet from ``ERC20_RPC_URL``, ``ERC20_CHAIN_ID``,
        ``ERC20_CONTRACT`` and ``ERC20_POLL_INTERVAL``.

        Raises:
            ConfigurationError: If ``ERC20_RPC_URL`` is missing or a value is invalid.
        """
        settings = {
            "chain_id": get_chain_id_from_env(),
            "contract": get_contract_from_env(),
            "poll_interval": get_poll_interval_from_env(),
        }
        settings.update(kwargs)
        return cls(get_rpc_url_from_env(), **settings)

    @property
    def contract(self) -> str:
        return self.config.contract

    @property
    def chain_id(self) -> int:
        return self.config.chain_id

    @property
    def log(self) -> logging.Logger:
        return self.config.logger

    def balance(self, address: str) -> int:
        """
        Token balance of ``address`` in the smallest unit.

        Addresses that never touched the contract have a balance of ``0``.

        Raises:
            InvalidArgument: If the address is malformed.
            RpcError: If the endpoint is unreachable or rejects the request.
            DecodeError: If the contract returns something other than one word.
        """
        holder = to_address(address)
        result = self.rpc.eth_call(self.contract, to_hex(encode_balance_of(holder)))
        if result in ("", "0x"):
            self.log.debug(f"Empty balanceOf result for {holder}, treating as zero")
            return 0
        amount = decode_balance(result)
        self.log.debug(f"Balance of {holder} is {amount}")
        return amount

    def pay(self, private_key: Union[str, bytes], to: str, amount: int) -> TransactionReceiptHandle:
        """
        Send ``amount`` tokens from the key's address to ``to``.

        The transaction is broadcast but not awaited; poll ``receipt()`` for
        finality.

        Raises:
            InvalidArgument: If ``to`` is malformed or ``amount`` is negative.
            MalformedKeyError: If the private key is malformed.
            SigningError: If signing fails.
            RpcError: If the nonce lookup, gas lookup or broadcast fails.
        """
        recipient = to_address(to)
        data = encode_transfer(recipient, amount)
        sender = derive_address(private_key)

        tx = self.builder.build(sender, self.contract, data, self.chain_id)
        signed = self.builder.sign(tx, private_key)
        tx_hash = self.rpc.send_raw_transaction(signed.raw_transaction) or signed.tx_hash

        self.log.info(
            f"Sent {amount} tokens from {sender} to {recipient} "
            f"(nonce={tx.nonce}, gas_price={tx.gas_price}): {tx_hash}"
        )
        return TransactionReceiptHandle(
            tx_hash=tx_hash,
            sender=sender,
            recipient=recipient,
            amount=amount,
            nonce=tx.nonce,
            chain_id=self.chain_id,
        )

    def receipt(self, tx_hash: str) -> Optional[Dict[str, Any]]:
        """Receipt of a payment, or ``None`` while it is not yet mined."""
        return self.rpc.get_transaction_receipt(tx_hash)

    def watcher(
        self,
        addresses: Iterable[str],
        callback: TransferCallback,
        stop: Optional[threading.Event] = None,
        poll_interval: Optional[float] = None,
    ) -> TransferWatcher:
        """Build, without starting, a watcher bound to this wallet's contract."""
        return TransferWatcher(
            self.rpc,
            self.contract,
            addresses,
            callback,
            poll_interval=self.poll_interval if poll_interval is None else poll_interval,
            max_block_range=self.max_block_range,
            stop=stop,
            log=self.log,
        )

    def accept(
        self,
        addresses: Iterable[str],
        callback: TransferCallback,
        stop: Optional[threading.Event] = None,
        poll_interval: Optional[float] = None,
    ) -> None:
        """
        Deliver incoming transfers to ``callback`` until ``stop`` is set.

        Blocks the calling thread. Callbacks receive a ``TransferEvent`` and
        run in (block number, log index) order. Without a ``stop`` event the
        loop only ends on failure; use ``accept_in_background`` to get a
        handle that can stop it.

        Raises:
            InvalidArgument: If an address is malformed or the set is empty.
            RpcError: If a poll fails; this ends the loop.
        """
        self.watcher(addresses, callback, stop=stop, poll_interval=poll_interval).run()

    def accept_in_background(
        self,
        addresses: Iterable[str],
        callback: TransferCallback,
        poll_interval: Optional[float] = None,
    ) -> WatchHandle:
        """Run ``accept`` on a daemon thread and return a handle to stop and join it."""
        return WatchHandle(self.watcher(addresses, callback, poll_interval=poll_interval)).start()

    def close(self) -> None:
        self.rpc.close()

    def __enter__(self) -> "Wallet":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
