"""
Schema Models for the ERC20 Wallet

Pydantic models shared by the codec, the transaction signer, the watcher
and the wallet facade.

Core Classes:
    - CanonicalModel: Pydantic base model serializing by field alias
    - WalletConfig: Immutable wallet configuration (endpoint, chain, contract, logger)
    - UnsignedTransaction: Legacy (EIP-155) transaction fields before signing
    - SignedTransaction: Serialized, signed transaction ready for broadcast
    - TransactionReceiptHandle: What ``Wallet.pay`` hands back to the caller
    - TransferEvent: A decoded ERC20 ``Transfer`` log

Dependencies:
    - pydantic: For data validation and serialization
"""

import logging
from typing import Any, Dict

from pydantic import BaseModel, ConfigDict, Field


class CanonicalModel(BaseModel):
    """
    Pydantic base model shared by every wallet record.

    Fields may be populated by name or alias; dumps use the alias, so
    ``sender`` is written as ``"from"``.

    Example:
        class MyModel(CanonicalModel):
            sender: str = Field(..., alias="from")

        MyModel(sender="0xabc").to_dict()
        # {"from": "0xabc"}
    """

    model_config = ConfigDict(populate_by_name=True)

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert model to dictionary representation, using field aliases.

        Returns:
            Dict[str, Any]: Dictionary with all model fields.
        """
        return self.model_dump(by_alias=True)


class WalletConfig(CanonicalModel):
    """
    Immutable wallet configuration.

    Constructed once when a ``Wallet`` is created; any later assignment
    raises a validation error.

    Attributes:
        rpc_url: JSON-RPC endpoint URL
        chain_id: EIP-155 chain id used when signing
        contract: Checksummed ERC20 contract address
        logger: Logger receiving the wallet's messages (excluded from dumps)
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True, populate_by_name=True)

    rpc_url: str = Field(..., min_length=1, description="JSON-RPC endpoint URL")
    chain_id: int = Field(..., ge=1, description="EIP-155 chain id")
    contract: str = Field(..., description="ERC20 contract address (checksummed)")
    logger: logging.Logger = Field(..., exclude=True, description="Logger handle")


class UnsignedTransaction(CanonicalModel):
    """
    Legacy EIP-155 transaction, built fresh for every payment.

    ``value`` is always zero for token transfers: the token amount travels
    inside ``data``.
    """

    sender: str = Field(..., description="Address derived from the signing key")
    to: str = Field(..., description="Destination (the token contract)")
    nonce: int = Field(..., ge=0, description="Sender-scoped transaction counter")
    value: int = Field(default=0, ge=0, description="Native coin value in wei")
    data: str = Field(..., description="0x-prefixed call data")
    gas: int = Field(..., gt=0, description="Gas limit")
    gas_price: int = Field(..., ge=0, description="Gas price in wei")
    chain_id: int = Field(..., ge=1, description="EIP-155 chain id")

    def to_signable(self) -> Dict[str, Any]:
        """Return the field dict ``eth_account`` expects for signing."""
        return {
            "nonce": self.nonce,
            "to": self.to,
            "value": self.value,
            "data": self.data,
            "gas": self.gas,
            "gasPrice": self.gas_price,
            "chainId": self.chain_id,
        }


class SignedTransaction(CanonicalModel):
    """Serialized signed transaction, ready for ``eth_sendRawTransaction``."""

    raw_transaction: str = Field(..., description="0x-prefixed RLP-encoded signed transaction")
    tx_hash: str = Field(..., description="0x-prefixed keccak-256 of the raw transaction")
    nonce: int = Field(..., ge=0)


class TransactionReceiptHandle(CanonicalModel):
    """
    Handle returned by ``Wallet.pay``.

    The payment is broadcast but not necessarily mined; use
    ``Wallet.receipt(handle.tx_hash)`` to poll for finality.
    """

    tx_hash: str = Field(..., description="Hash returned by the node")
    sender: str = Field(..., alias="from", description="Paying address")
    recipient: str = Field(..., description="Token recipient")
    amount: int = Field(..., ge=0, description="Amount in the token's smallest unit")
    nonce: int = Field(..., ge=0)
    chain_id: int = Field(..., ge=1)


class TransferEvent(CanonicalModel):
    """
    Decoded ERC20 ``Transfer(address indexed from, address indexed to, uint256 value)`` log.

    This is the record handed to ``Wallet.accept`` callbacks. ``address`` is
    the recipient matched from the set of addresses of interest.

    Example::

        def on_transfer(event: TransferEvent) -> None:
            print(event.amount, event.sender, event.address)
    """

    sender: str = Field(..., alias="from", description="Checksummed sender address")
    address: str = Field(..., description="Checksummed recipient address")
    amount: int = Field(..., ge=0, description="Amount in the token's smallest unit")
    block_number: int = Field(..., ge=0)
    log_index: int = Field(..., ge=0)
    tx_hash: str = Field(..., description="Hash of the transaction that emitted the log")

    @property
    def ordering_key(self):
        """Sort key that matches on-chain order."""
        return (self.block_number, self.log_index)
