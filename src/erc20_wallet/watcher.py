"""
Incoming Transfer Watcher

Polls ``eth_getLogs`` for ERC20 ``Transfer`` events sent to a set of
addresses and hands each one to a callback, strictly in on-chain order.

State machine::

    STARTING -> POLLING -> (IDLE | DELIVERING) -> POLLING -> ... -> STOPPED
                                                             \\-> FAILED

- STARTING:   the current head block becomes ``last_scanned_block``.
- POLLING:    fetch the head; with no new block go IDLE, otherwise scan
              ``(last_scanned_block, head]``.
- IDLE:       wait ``poll_interval`` seconds on the stop event.
- DELIVERING: sort logs by (block number, log index), decode, invoke the
              callback for recipients of interest, advance the cursor.
- STOPPED:    reached only when the stop event is set.
- FAILED:     any RPC, decode or callback error; the exception is re-raised.

Polling and delivery run sequentially on one thread, which is what
guarantees the ordering. The watcher owns its ``WatchState``; nothing else
reads or writes it.
"""

import logging
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional

from eth_utils import to_hex

from .abi import TRANSFER_TOPIC, address_topic, decode_transfer_event, to_address
from .config import DEFAULT_MAX_BLOCK_RANGE, DEFAULT_POLL_INTERVAL
from .exceptions import InvalidArgument
from .rpc import RpcClient
from .schemas import TransferEvent

logger = logging.getLogger(__name__)

TransferCallback = Callable[[TransferEvent], Any]


class WatcherState(str, Enum):
    STARTING = "starting"
    POLLING = "polling"
    IDLE = "idle"
    DELIVERING = "delivering"
    STOPPED = "stopped"
    FAILED = "failed"


@dataclass
class WatchState:
    """Addresses of interest (lowercase -> checksum) and the scan cursor."""

    addresses: Dict[str, str] = field(default_factory=dict)
    last_scanned_block: Optional[int] = None


class TransferWatcher:
    """
    Delivers incoming ERC20 transfers for a fixed set of addresses.

    Attributes:
        rpc: JSON-RPC adapter
        contract: Checksummed token contract address
        callback: Called once per matching ``TransferEvent``
        poll_interval: Seconds to wait when there is no new block
        max_block_range: Largest block span per ``eth_getLogs`` request
        stop_event: Setting it ends ``run()`` at the next check

    Example::

        stop = threading.Event()
        watcher = TransferWatcher(rpc, contract, [me], inbox.put, stop=stop)
        threading.Thread(target=watcher.run, daemon=True).start()
        ...
        stop.set()
    """

    def __init__(
        self,
        rpc: RpcClient,
        contract: str,
        addresses: Iterable[str],
        callback: TransferCallback,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        max_block_range: int = DEFAULT_MAX_BLOCK_RANGE,
        stop: Optional[threading.Event] = None,
        log: Optional[logging.Logger] = None,
    ):
        if isinstance(addresses, str):
            addresses = [addresses]
        interest = {}
        for address in addresses:
            checksum = to_address(address)
            interest[checksum.lower()] = checksum
        if not interest:
            raise InvalidArgument("At least one address of interest is required")
        if poll_interval <= 0:
            raise InvalidArgument(f"poll_interval must be positive, got {poll_interval}")
        if max_block_range < 1:
            raise InvalidArgument(f"max_block_range must be at least 1, got {max_block_range}")
        if not callable(callback):
            raise InvalidArgument("callback must be callable")

        self.rpc = rpc
        self.contract = to_address(contract)
        self.callback = callback
        self.poll_interval = poll_interval
        self.max_block_range = max_block_range
        self.stop_event = stop if stop is not None else threading.Event()
        self.state = WatcherState.STARTING
        self._watch = WatchState(addresses=interest)
        self._log = log or logger
        self._recipient_topics = [address_topic(a) for a in interest.values()]

    @property
    def last_scanned_block(self) -> Optional[int]:
        return self._watch.last_scanned_block

    def stop(self) -> None:
        """Ask the loop to exit; honored at the next poll or during the idle wait."""
        self.stop_event.set()

    def run(self) -> None:
        """
        Run the watch loop on the calling thread until stopped.

        Raises:
            RpcError: If a poll fails; the loop ends in state FAILED.
            DecodeError: If the node returns a log that is not a Transfer.
            Exception: Whatever the callback raises.
        """
        try:
            self.state = WatcherState.STARTING
            self._watch.last_scanned_block = self.rpc.block_number()
            self._log.info(
                f"Watching {len(self._watch.addresses)} address(es) on {self.contract} "
                f"from block {self._watch.last_scanned_block}"
            )
            while not self.stop_event.is_set():
                self.state = WatcherState.POLLING
                head = self.rpc.block_number()
                if head <= self._watch.last_scanned_block:
                    self.state = WatcherState.IDLE
                    self.stop_event.wait(self.poll_interval)
                    continue
                self._scan(self._watch.last_scanned_block + 1, head)
        except Exception as exc:
            self.state = WatcherState.FAILED
            self._log.error(f"Transfer watcher failed at block {self._watch.last_scanned_block}: {exc}")
            raise
        self.state = WatcherState.STOPPED
        self._log.info(f"Transfer watcher stopped at block {self._watch.last_scanned_block}")

    def _scan(self, first: int, head: int) -> None:
        for start in range(first, head + 1, self.max_block_range):
            if self.stop_event.is_set():
                return
            end = min(start + self.max_block_range - 1, head)
            logs = self.rpc.get_logs(self._filter(start, end))
            self.state = WatcherState.DELIVERING
            self._deliver(logs)
            self._watch.last_scanned_block = end

    def _filter(self, start: int, end: int) -> Dict[str, Any]:
        return {
            "address": self.contract,
            "fromBlock": to_hex(start),
            "toBlock": to_hex(end),
            "topics": [TRANSFER_TOPIC, None, self._recipient_topics],
        }

    def _deliver(self, logs: List[Dict[str, Any]]) -> None:
        events = [decode_transfer_event(entry) for entry in logs if not entry.get("removed")]
        events.sort(key=lambda e: e.ordering_key)
        for event in events:
            # nodes may ignore the topic filter; match again locally
            if event.address.lower() not in self._watch.addresses:
                continue
            self._log.info(
                f"Transfer of {event.amount} from {event.sender} to {event.address} "
                f"in block {event.block_number} (tx {event.tx_hash})"
            )
            self.callback(event)


class WatchHandle:
    """
    A ``TransferWatcher`` running on its own daemon thread.

    A terminal failure is kept in ``error`` and re-raised by ``result()``.

    Example::

        handle = wallet.accept_in_background([me], inbox.put)
        ...
        handle.stop()
        handle.join(timeout=30)
    """

    def __init__(self, watcher: TransferWatcher, name: str = "erc20-transfer-watcher"):
        self.watcher = watcher
        self.error: Optional[BaseException] = None
        self._thread = threading.Thread(target=self._run, name=name, daemon=True)

    def start(self) -> "WatchHandle":
        self._thread.start()
        return self

    def _run(self) -> None:
        try:
            self.watcher.run()
        except Exception as exc:
            self.error = exc

    @property
    def running(self) -> bool:
        return self._thread.is_alive()

    @property
    def state(self) -> WatcherState:
        return self.watcher.state

    def stop(self) -> None:
        self.watcher.stop()

    def join(self, timeout: Optional[float] = None) -> bool:
        """Wait for the thread; return ``True`` when it has exited."""
        self._thread.join(timeout)
        return not self._thread.is_alive()

    def result(self, timeout: Optional[float] = None) -> None:
        """
        Wait for the watcher to end and re-raise its terminal error, if any.

        Raises:
            TimeoutError: If the thread is still running after ``timeout``.
        """
        if not self.join(timeout):
            raise TimeoutError("Transfer watcher is still running")
        if self.error is not None:
            raise self.error
