"""
Exception and Error Definitions Module

Defines the exception hierarchy for ERC20 balance queries, payments and
transfer watching. All exceptions inherit from WalletError for unified
exception handling.

Exception Hierarchy:
    WalletError (root)
    ├── RpcError
    ├── DecodeError
    ├── InvalidArgument
    │   └── MalformedKeyError
    ├── SigningError
    │   └── MalformedKeyError
    └── ConfigurationError
"""

from typing import Optional


class WalletError(Exception):
    """
    Root exception class for all project-specific exceptions.

    All custom exceptions inherit from this class so callers can catch
    every wallet failure with a single ``except WalletError``.
    """
    pass


class RpcError(WalletError):
    """
    Raised when a JSON-RPC call fails.

    This includes scenarios such as:
    - Connection refused or DNS failure
    - Request timeout
    - Non-2xx HTTP status (e.g. an invalid API key yields 401)
    - Malformed JSON in the response body
    - A JSON-RPC ``error`` object in the response

    Attributes:
        method: RPC method that was called (e.g., 'eth_call')
        cause: Underlying exception or JSON-RPC error payload
    """

    def __init__(self, method: str, cause: object, message: Optional[str] = None):
        self.method = method
        self.cause = cause
        super().__init__(message or f"RPC call {method} failed: {cause}")


class DecodeError(WalletError):
    """
    Raised when on-chain data does not have the expected shape.

    This includes scenarios such as:
    - A ``balanceOf`` return payload that is not exactly one 32-byte word
    - A log whose topics or data do not match the ``Transfer`` event
    """
    pass


class InvalidArgument(WalletError, ValueError):
    """
    Raised when a caller passes a malformed value.

    This includes scenarios such as:
    - An address that is not 0x + 40 hex characters
    - A negative or non-integer amount
    - A malformed private key
    """
    pass


class SigningError(WalletError):
    """
    Raised when transaction signing fails.

    This includes scenarios such as:
    - Private key is not exactly 32 bytes
    - Private key is not a valid secp256k1 scalar
    - The signer rejects the transaction fields
    """
    pass


class MalformedKeyError(SigningError, InvalidArgument):
    """
    Raised when a private key cannot be parsed.

    It is both a signing failure and an invalid argument, so callers may
    catch either.
    """
    pass


class ConfigurationError(WalletError):
    """
    Raised when configuration is missing or invalid.

    This includes scenarios such as:
    - Missing required environment variables (RPC keys)
    - Invalid chain id or poll interval values
    - An empty endpoint pool
    """
    pass
