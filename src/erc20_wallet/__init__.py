from .wallet import Wallet, NULL_LOGGER
from .schemas import (
    CanonicalModel,
    WalletConfig,
    UnsignedTransaction,
    SignedTransaction,
    TransactionReceiptHandle,
    TransferEvent,
)
from .abi import (
    TRANSFER_TOPIC,
    to_address,
    encode_balance_of,
    decode_balance,
    encode_transfer,
    decode_transfer_event,
    get_erc20_abi,
)
from .rpc import RpcClient
from .transactions import (
    TransactionBuilder,
    GasPolicy,
    FixedGasPolicy,
    NodeGasPolicy,
    derive_address,
)
from .watcher import TransferWatcher, WatchHandle, WatcherState
from .endpoints import EndpointPool, mainnet_pool, sepolia_pool
from .exceptions import (
    WalletError,
    RpcError,
    DecodeError,
    InvalidArgument,
    SigningError,
    MalformedKeyError,
    ConfigurationError,
)

__all__ = [
    "Wallet",
    "NULL_LOGGER",
    "CanonicalModel",
    "WalletConfig",
    "UnsignedTransaction",
    "SignedTransaction",
    "TransactionReceiptHandle",
    "TransferEvent",
    "TRANSFER_TOPIC",
    "to_address",
    "encode_balance_of",
    "decode_balance",
    "encode_transfer",
    "decode_transfer_event",
    "get_erc20_abi",
    "RpcClient",
    "TransactionBuilder",
    "GasPolicy",
    "FixedGasPolicy",
    "NodeGasPolicy",
    "derive_address",
    "TransferWatcher",
    "WatchHandle",
    "WatcherState",
    "EndpointPool",
    "mainnet_pool",
    "sepolia_pool",
    "WalletError",
    "RpcError",
    "DecodeError",
    "InvalidArgument",
    "SigningError",
    "MalformedKeyError",
    "ConfigurationError",
]
