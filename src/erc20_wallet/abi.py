"""
ERC20 Address / ABI Codec

Encodes the two ERC20 calls the wallet makes (``balanceOf`` and
``transfer``) and decodes their return values and ``Transfer`` event logs.
All functions are pure: no RPC calls and no key material.

Usage:
    from erc20_wallet.abi import encode_balance_of, decode_balance

    data = encode_balance_of("0xEB2fE8872A6f1eDb70a2632EA1f869AB131532f6")
    # send `data` through eth_call, then:
    amount = decode_balance(result)
"""

from typing import Any, Dict, List, Mapping, Union

from eth_abi import decode, encode
from eth_abi.exceptions import DecodingError, EncodingError
from eth_utils import (
    function_signature_to_4byte_selector,
    is_hex_address,
    to_bytes,
    to_hex,
)
from web3 import Web3

from .exceptions import DecodeError, InvalidArgument
from .schemas import TransferEvent

BALANCE_OF_SIGNATURE = "balanceOf(address)"
TRANSFER_SIGNATURE = "transfer(address,uint256)"
TRANSFER_EVENT_SIGNATURE = "Transfer(address,address,uint256)"

BALANCE_OF_SELECTOR: bytes = function_signature_to_4byte_selector(BALANCE_OF_SIGNATURE)
TRANSFER_SELECTOR: bytes = function_signature_to_4byte_selector(TRANSFER_SIGNATURE)

#: keccak-256 of the Transfer event signature (topic 0 of every Transfer log).
TRANSFER_TOPIC: str = to_hex(Web3.keccak(text=TRANSFER_EVENT_SIGNATURE))

MAX_UINT256: int = 2**256 - 1

_WORD = 32


def to_address(value: Any) -> str:
    """
    Validate an address and return it in checksum casing.

    Equality is case-insensitive, so a mixed-case input whose casing is not
    a valid EIP-55 checksum is still accepted.

    Raises:
        InvalidArgument: If ``value`` is not ``0x`` followed by 40 hex characters.
    """
    # is_hex_address also accepts a bare 40-hex string
    if not isinstance(value, str) or value[:2].lower() != "0x" or not is_hex_address(value):
        raise InvalidArgument(f"Malformed address: {value!r}")
    return Web3.to_checksum_address(value.lower())


def address_topic(address: str) -> str:
    """Return the 32-byte topic form of an address (left-padded with zeros)."""
    raw = to_bytes(hexstr=to_address(address))
    return to_hex(raw.rjust(_WORD, b"\x00"))


def _to_bytes(data: Union[bytes, str], what: str) -> bytes:
    if isinstance(data, (bytes, bytearray)):
        return bytes(data)
    if isinstance(data, str):
        try:
            return to_bytes(hexstr=data)
        except ValueError as exc:
            raise DecodeError(f"{what} is not valid hex: {data!r}") from exc
    raise DecodeError(f"{what} must be bytes or a hex string, got {type(data).__name__}")


def _to_int(value: Any, what: str) -> int:
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value, 16)
        except ValueError as exc:
            raise DecodeError(f"{what} is not a hex quantity: {value!r}") from exc
    raise DecodeError(f"{what} is missing or has type {type(value).__name__}")


def _check_amount(amount: Any) -> int:
    # bool is an int subclass but never a meaningful amount
    if not isinstance(amount, int) or isinstance(amount, bool):
        raise InvalidArgument(f"Amount must be an integer, got {type(amount).__name__}")
    if amount < 0:
        raise InvalidArgument(f"Amount must be non-negative, got {amount}")
    if amount > MAX_UINT256:
        raise InvalidArgument("Amount does not fit in uint256")
    return amount


def encode_balance_of(address: str) -> bytes:
    """
    Encode a ``balanceOf(address)`` call.

    Returns:
        bytes: 4-byte selector followed by the address as one 32-byte word.
    """
    return BALANCE_OF_SELECTOR + encode(["address"], [to_address(address)])


def decode_balance(data: Union[bytes, str]) -> int:
    """
    Decode the ``uint256`` returned by ``balanceOf``.

    Raises:
        DecodeError: If the payload is not exactly one 32-byte word.
    """
    raw = _to_bytes(data, "balanceOf result")
    if len(raw) != _WORD:
        raise DecodeError(f"balanceOf result must be {_WORD} bytes, got {len(raw)}")
    (balance,) = decode(["uint256"], raw)
    return balance


def encode_transfer(address: str, amount: int) -> bytes:
    """
    Encode a ``transfer(address,uint256)`` call.

    Raises:
        InvalidArgument: If the address is malformed or the amount is negative,
            not an integer, or larger than ``2**256 - 1``.
    """
    recipient = to_address(address)
    value = _check_amount(amount)
    try:
        return TRANSFER_SELECTOR + encode(["address", "uint256"], [recipient, value])
    except EncodingError as exc:
        raise InvalidArgument(f"Cannot encode transfer: {exc}") from exc


def _topic_to_address(topic: Any, what: str) -> str:
    raw = _to_bytes(topic, what)
    if len(raw) != _WORD or any(raw[:12]):
        raise DecodeError(f"{what} is not a left-padded address: {topic!r}")
    return Web3.to_checksum_address(to_hex(raw[12:]))


def decode_transfer_event(log: Mapping[str, Any]) -> TransferEvent:
    """
    Decode an ``eth_getLogs`` entry into a ``TransferEvent``.

    Args:
        log: JSON-RPC log object with ``topics``, ``data``, ``blockNumber``,
            ``logIndex`` and ``transactionHash``.

    Raises:
        DecodeError: If the topic count, topic 0 or data length does not match
            the ``Transfer(address,address,uint256)`` event.
    """
    topics = log.get("topics")
    if not isinstance(topics, list) or len(topics) != 3:
        count = len(topics) if isinstance(topics, list) else None
        raise DecodeError(f"Transfer log must have 3 topics, got {count}")
    if str(topics[0]).lower() != TRANSFER_TOPIC:
        raise DecodeError(f"Log topic {topics[0]} is not the Transfer event")

    data = _to_bytes(log.get("data", "0x"), "Transfer data")
    if len(data) != _WORD:
        raise DecodeError(f"Transfer data must be {_WORD} bytes, got {len(data)}")
    try:
        (amount,) = decode(["uint256"], data)
    except DecodingError as exc:
        raise DecodeError(f"Cannot decode Transfer amount: {exc}") from exc

    return TransferEvent(
        sender=_topic_to_address(topics[1], "Transfer 'from' topic"),
        address=_topic_to_address(topics[2], "Transfer 'to' topic"),
        amount=amount,
        block_number=_to_int(log.get("blockNumber"), "blockNumber"),
        log_index=_to_int(log.get("logIndex"), "logIndex"),
        tx_hash=str(log.get("transactionHash", "")),
    )


def get_erc20_abi() -> List[Dict[str, Any]]:
    """
    Get the ABI fragments this package speaks.

    Returns:
        List[Dict[str, Any]]: ``balanceOf``, ``transfer`` and the ``Transfer`` event.

    Example:
        abi = get_erc20_abi()
        # Use with web3.py: web3.eth.contract(address=token_address, abi=abi)
    """
    return [
        {
            "name": "balanceOf",
            "type": "function",
            "stateMutability": "view",
            "inputs": [{"name": "account", "type": "address"}],
            "outputs": [{"name": "", "type": "uint256"}],
        },
        {
            "name": "transfer",
            "type": "function",
            "stateMutability": "nonpayable",
            "inputs": [
                {"name": "to", "type": "address"},
                {"name": "amount", "type": "uint256"},
            ],
            "outputs": [{"name": "", "type": "bool"}],
        },
        {
            "name": "Transfer",
            "type": "event",
            "anonymous": False,
            "inputs": [
                {"name": "from", "type": "address", "indexed": True},
                {"name": "to", "type": "address", "indexed": True},
                {"name": "value", "type": "uint256", "indexed": False},
            ],
        },
    ]
