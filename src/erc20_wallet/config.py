"""
Wallet Configuration Management

Provides defaults and environment-aware configuration for the ERC20 wallet.
A ``.env`` file in the working directory is loaded on import.

Environment Variables:
    - ERC20_RPC_URL: JSON-RPC endpoint used by ``Wallet.from_env``
    - ERC20_CHAIN_ID: EIP-155 chain id (defaults to 1)
    - ERC20_CONTRACT: ERC20 contract address (defaults to USDT on mainnet)
    - ERC20_POLL_INTERVAL: Seconds between watcher polls
    - INFURA_KEY, GETBLOCK_KEY, GETBLOCK_SEPOLIA_KEY: provider API keys
"""

import os
from typing import Mapping, Optional

import dotenv

from .exceptions import ConfigurationError

dotenv.load_dotenv()

#: Tether USD on Ethereum mainnet.
DEFAULT_CONTRACT: str = "0xdAC17F958D2ee523a2206206994597C13D831ec7"

DEFAULT_CHAIN_ID: int = 1

#: Gas limit of every transfer transaction. ERC20 transfers cost ~35-65k gas.
DEFAULT_GAS_LIMIT: int = 100_000

#: Seconds the watcher sleeps when no new block has been produced.
DEFAULT_POLL_INTERVAL: float = 2.0

DEFAULT_REQUEST_TIMEOUT: float = 60.0

#: Largest block span requested in one ``eth_getLogs`` call.
DEFAULT_MAX_BLOCK_RANGE: int = 1000


def require_env(name: str, env: Optional[Mapping[str, str]] = None) -> str:
    """
    Read a mandatory environment variable.

    Raises:
        ConfigurationError: If the variable is unset or blank.
    """
    source = os.environ if env is None else env
    value = source.get(name)
    if value is None or not value.strip():
        raise ConfigurationError(f"The {name} environment variable is not set")
    return value.strip()


def get_rpc_url_from_env() -> str:
    """Return ``ERC20_RPC_URL``, failing fast when it is missing."""
    return require_env("ERC20_RPC_URL")


def get_chain_id_from_env() -> int:
    """Return ``ERC20_CHAIN_ID`` as an int, or ``DEFAULT_CHAIN_ID``."""
    raw = os.getenv("ERC20_CHAIN_ID")
    if not raw:
        return DEFAULT_CHAIN_ID
    try:
        chain_id = int(raw, 0)
    except ValueError as exc:
        raise ConfigurationError(f"ERC20_CHAIN_ID is not an integer: {raw!r}") from exc
    if chain_id <= 0:
        raise ConfigurationError(f"ERC20_CHAIN_ID must be positive, got {chain_id}")
    return chain_id


def get_contract_from_env() -> str:
    """Return ``ERC20_CONTRACT`` or ``DEFAULT_CONTRACT``."""
    return os.getenv("ERC20_CONTRACT") or DEFAULT_CONTRACT


def get_poll_interval_from_env() -> float:
    """Return ``ERC20_POLL_INTERVAL`` in seconds, or ``DEFAULT_POLL_INTERVAL``."""
    raw = os.getenv("ERC20_POLL_INTERVAL")
    if not raw:
        return DEFAULT_POLL_INTERVAL
    try:
        interval = float(raw)
    except ValueError as exc:
        raise ConfigurationError(f"ERC20_POLL_INTERVAL is not a number: {raw!r}") from exc
    if interval <= 0:
        raise ConfigurationError(f"ERC20_POLL_INTERVAL must be positive, got {interval}")
    return interval
