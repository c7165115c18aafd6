"""
JSON-RPC Client Adapter

Thin synchronous wrapper over an ``httpx.Client`` that frames Ethereum
JSON-RPC 2.0 requests and unwraps their responses.

Every failure (network, timeout, HTTP status, malformed JSON, JSON-RPC
error object) surfaces as a single ``RpcError`` carrying the method name and
the underlying cause. The adapter never retries; retry policy belongs to the
caller.

Dependencies:
    - httpx: HTTP transport (thread-safe, connection pooling)
"""

import itertools
import logging
from typing import Any, Dict, List, Optional

import httpx

from .config import DEFAULT_REQUEST_TIMEOUT
from .exceptions import RpcError


def _quantity(value: Any, method: str) -> int:
    try:
        return int(value, 16) if isinstance(value, str) else int(value)
    except (TypeError, ValueError) as exc:
        raise RpcError(method, exc, f"RPC call {method} returned a non-quantity result: {value!r}") from exc


class RpcClient:
    """
    Ethereum JSON-RPC client.

    The underlying ``httpx.Client`` is safe to share between threads, so one
    ``RpcClient`` may serve ``balance``, ``pay`` and ``accept`` concurrently.

    Attributes:
        url: JSON-RPC endpoint
        timeout: Per-request timeout in seconds

    Example:
        with RpcClient("http://localhost:8545") as rpc:
            head = rpc.block_number()
    """

    def __init__(
        self,
        url: str,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        client: Optional[httpx.Client] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.url = url
        self.timeout = timeout
        self._owns_client = client is None
        self._client = client if client is not None else httpx.Client(timeout=timeout)
        self._log = logger or logging.getLogger(__name__)
        self._ids = itertools.count(1)

    def call(self, method: str, params: Optional[List[Any]] = None) -> Any:
        """
        Send one JSON-RPC request and return its ``result``.

        Args:
            method: JSON-RPC method name, e.g. ``"eth_call"``.
            params: Positional parameters (defaults to ``[]``).

        Returns:
            Any: The decoded ``result`` member (may be ``None``).

        Raises:
            RpcError: On any transport, HTTP, JSON or JSON-RPC failure.
        """
        payload = {
            "jsonrpc": "2.0",
            "method": method,
            "params": params if params is not None else [],
            "id": next(self._ids),
        }
        self._log.debug(f"RPC -> {method} (id={payload['id']})")

        try:
            response = self._client.post(self.url, json=payload, timeout=self.timeout)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise RpcError(
                method,
                exc,
                f"RPC call {method} failed with HTTP {exc.response.status_code}: "
                f"{exc.response.text[:100]}",
            ) from exc
        except httpx.HTTPError as exc:
            raise RpcError(method, exc, f"RPC call {method} failed: network error: {exc}") from exc

        try:
            data = response.json()
        except ValueError as exc:
            raise RpcError(
                method,
                exc,
                f"RPC call {method} returned malformed JSON. "
                f"Content-Type: {response.headers.get('Content-Type')}",
            ) from exc

        if not isinstance(data, dict):
            raise RpcError(method, data, f"RPC call {method} returned a non-object response")
        if data.get("error") is not None:
            error = data["error"]
            detail = error.get("message", error) if isinstance(error, dict) else error
            raise RpcError(method, error, f"RPC call {method} returned an error: {detail}")
        if "result" not in data:
            raise RpcError(method, data, f"RPC call {method} returned neither result nor error")
        return data["result"]

    # ------------------------------------------------------------------
    # Typed helpers
    # ------------------------------------------------------------------

    def block_number(self) -> int:
        return _quantity(self.call("eth_blockNumber"), "eth_blockNumber")

    def chain_id(self) -> int:
        return _quantity(self.call("eth_chainId"), "eth_chainId")

    def gas_price(self) -> int:
        return _quantity(self.call("eth_gasPrice"), "eth_gasPrice")

    def get_transaction_count(self, address: str, block: str = "pending") -> int:
        """Nonce of ``address``; ``"pending"`` counts transactions in the mempool too."""
        return _quantity(
            self.call("eth_getTransactionCount", [address, block]),
            "eth_getTransactionCount",
        )

    def eth_call(self, to: str, data: str, block: str = "latest") -> str:
        """Simulate a contract call and return the raw 0x-hex result."""
        result = self.call("eth_call", [{"to": to, "data": data}, block])
        if not isinstance(result, str):
            raise RpcError("eth_call", result, f"eth_call returned a non-string result: {result!r}")
        return result

    def get_logs(self, log_filter: Dict[str, Any]) -> List[Dict[str, Any]]:
        result = self.call("eth_getLogs", [log_filter])
        if not isinstance(result, list):
            raise RpcError("eth_getLogs", result, f"eth_getLogs returned a non-list result: {result!r}")
        return result

    def send_raw_transaction(self, raw_transaction: str) -> Optional[str]:
        """Broadcast a signed transaction and return the hash reported by the node (or ``None``)."""
        result = self.call("eth_sendRawTransaction", [raw_transaction])
        if result is not None and not isinstance(result, str):
            raise RpcError(
                "eth_sendRawTransaction",
                result,
                f"eth_sendRawTransaction returned a non-string hash: {result!r}",
            )
        return result

    def get_transaction_receipt(self, tx_hash: str) -> Optional[Dict[str, Any]]:
        """Receipt of a mined transaction, or ``None`` while it is pending."""
        return self.call("eth_getTransactionReceipt", [tx_hash])

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        """Close the HTTP client if this adapter created it."""
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> "RpcClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
