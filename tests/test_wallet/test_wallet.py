"""
Wallet Facade Test Suite

End-to-end tests for balance and pay against the in-memory FakeChain.

Usage:
    pytest tests/test_wallet/test_wallet.py -v
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from unittest.mock import MagicMock, patch

import pytest
from pydantic import ValidationError

from test_mocks import (
    ABSENT_ADDRESS,
    JEFF,
    JEFF_ADDRESS,
    JEFF_FUNDED_BALANCE,
    MOCK_CHAIN_ID,
    MOCK_CONTRACT,
    MOCK_RPC_URL,
    STRANGER_ADDRESS,
    WALTER,
    WALTER_ADDRESS,
    FakeChain,
)

from erc20_wallet import (
    ConfigurationError,
    DecodeError,
    EndpointPool,
    InvalidArgument,
    MalformedKeyError,
    NULL_LOGGER,
    RpcError,
    SigningError,
    TransactionReceiptHandle,
    Wallet,
)


@pytest.fixture
def chain():
    return FakeChain()


@pytest.fixture
def wallet(chain):
    with chain.wallet() as wallet:
        yield wallet


class TestBalance:
    """Wallet.balance"""

    def test_funded_address(self, wallet):
        assert wallet.balance(JEFF_ADDRESS) == JEFF_FUNDED_BALANCE

    def test_lowercase_address(self, wallet):
        assert wallet.balance(JEFF_ADDRESS.lower()) == JEFF_FUNDED_BALANCE

    def test_unknown_address_is_zero(self, wallet):
        assert wallet.balance(ABSENT_ADDRESS) == 0

    def test_balance_is_an_eth_call(self, chain, wallet):
        wallet.balance(WALTER_ADDRESS)
        assert chain.methods() == ["eth_call"]
        call, block = chain.requests[0]["params"]
        assert call["to"] == MOCK_CONTRACT
        assert call["data"].startswith("0x70a08231")
        assert block == "latest"

    def test_contract_without_code_reads_as_zero(self, chain):
        with chain.wallet(contract=STRANGER_ADDRESS) as wallet:
            assert wallet.balance(JEFF_ADDRESS) == 0

    def test_rejected_api_key(self, chain, wallet):
        chain.reject_all = True
        with pytest.raises(RpcError) as exc_info:
            wallet.balance(JEFF_ADDRESS)
        assert exc_info.value.method == "eth_call"

    def test_malformed_address(self, chain, wallet):
        with pytest.raises(InvalidArgument):
            wallet.balance("0xnot-an-address")
        assert chain.requests == []

    def test_concurrent_reads(self, wallet):
        addresses = [JEFF_ADDRESS, WALTER_ADDRESS, ABSENT_ADDRESS] * 10
        with ThreadPoolExecutor(max_workers=8) as pool:
            balances = list(pool.map(wallet.balance, addresses))
        assert balances == [JEFF_FUNDED_BALANCE, 0, 0] * 10


class TestPay:
    """Wallet.pay"""

    def test_transfer_moves_exact_amount(self, chain, wallet):
        handle = wallet.pay(JEFF, WALTER_ADDRESS, 42_000)

        assert isinstance(handle, TransactionReceiptHandle)
        assert handle.sender == JEFF_ADDRESS
        assert handle.recipient == WALTER_ADDRESS
        assert handle.amount == 42_000
        assert handle.chain_id == MOCK_CHAIN_ID
        assert wallet.balance(JEFF_ADDRESS) == JEFF_FUNDED_BALANCE - 42_000
        assert wallet.balance(WALTER_ADDRESS) == 42_000

    def test_round_trip(self, wallet):
        wallet.pay(JEFF, WALTER_ADDRESS, 100_000)
        wallet.pay(WALTER, JEFF_ADDRESS, 100_000)
        assert wallet.balance(JEFF_ADDRESS) == JEFF_FUNDED_BALANCE
        assert wallet.balance(WALTER_ADDRESS) == 0

    def test_nonce_increments(self, wallet):
        first = wallet.pay(JEFF, WALTER_ADDRESS, 1)
        second = wallet.pay("0x" + JEFF, WALTER_ADDRESS, 1)
        assert (first.nonce, second.nonce) == (0, 1)
        assert first.tx_hash != second.tx_hash

    def test_request_sequence(self, chain, wallet):
        wallet.pay(JEFF, WALTER_ADDRESS, 5)
        assert chain.methods() == ["eth_getTransactionCount", "eth_sendRawTransaction"]

    def test_node_gas_policy(self, chain):
        with chain.wallet(gas_policy=None) as wallet:
            wallet.pay(JEFF, WALTER_ADDRESS, 5)
        assert chain.methods() == ["eth_getTransactionCount", "eth_gasPrice", "eth_sendRawTransaction"]

    def test_zero_amount(self, wallet):
        handle = wallet.pay(JEFF, WALTER_ADDRESS, 0)
        assert handle.amount == 0
        assert wallet.balance(JEFF_ADDRESS) == JEFF_FUNDED_BALANCE

    def test_receipt(self, chain, wallet):
        handle = wallet.pay(JEFF, WALTER_ADDRESS, 10)
        receipt = wallet.receipt(handle.tx_hash)
        assert receipt["status"] == "0x1"
        assert int(receipt["blockNumber"], 16) == chain.head

    def test_receipt_pending(self):
        chain = FakeChain(auto_mine=False)
        with chain.wallet() as wallet:
            handle = wallet.pay(JEFF, WALTER_ADDRESS, 10)
            assert wallet.receipt(handle.tx_hash) is None
            chain.mine()
            assert wallet.receipt(handle.tx_hash)["status"] == "0x1"

    def test_handle_serializes_sender_as_from(self, wallet):
        record = wallet.pay(JEFF, WALTER_ADDRESS, 1).to_dict()
        assert record["from"] == JEFF_ADDRESS
        assert "sender" not in record

    @pytest.mark.parametrize("amount", [-1, 1.5, "10"])
    def test_bad_amount_sends_nothing(self, chain, wallet, amount):
        with pytest.raises(InvalidArgument):
            wallet.pay(JEFF, WALTER_ADDRESS, amount)
        assert chain.requests == []

    def test_bad_recipient_sends_nothing(self, chain, wallet):
        with pytest.raises(InvalidArgument):
            wallet.pay(JEFF, "0x1234", 1)
        assert chain.requests == []

    def test_unprefixed_recipient_sends_nothing(self, chain, wallet):
        with pytest.raises(InvalidArgument):
            wallet.pay(JEFF, WALTER_ADDRESS[2:], 5)
        assert chain.requests == []
        assert chain.balance_of(WALTER_ADDRESS) == 0

    def test_bad_key_sends_nothing(self, chain, wallet):
        with pytest.raises(MalformedKeyError):
            wallet.pay("0xdeadbeef", WALTER_ADDRESS, 1)
        with pytest.raises(SigningError):
            wallet.pay("", WALTER_ADDRESS, 1)
        assert chain.requests == []

    def test_broadcast_error(self, chain, wallet):
        chain.errors["eth_sendRawTransaction"] = {"code": -32000, "message": "insufficient funds for gas"}
        with pytest.raises(RpcError, match="insufficient funds") as exc_info:
            wallet.pay(JEFF, WALTER_ADDRESS, 1)
        assert exc_info.value.method == "eth_sendRawTransaction"

    def test_wrong_chain_is_rejected_by_node(self, chain):
        with chain.wallet(chain_id=1) as wallet:
            with pytest.raises(RpcError, match="invalid chain id"):
                wallet.pay(JEFF, WALTER_ADDRESS, 1)
        assert chain.balance_of(WALTER_ADDRESS) == 0

    def test_overdraft_fails_on_chain(self, chain, wallet):
        handle = wallet.pay(WALTER, JEFF_ADDRESS, 1)
        assert wallet.receipt(handle.tx_hash)["status"] == "0x0"
        assert wallet.balance(JEFF_ADDRESS) == JEFF_FUNDED_BALANCE


class TestConfiguration:
    """Construction and immutable configuration."""

    def test_config_is_frozen(self, wallet):
        assert wallet.config.chain_id == MOCK_CHAIN_ID
        with pytest.raises(ValidationError):
            wallet.config.chain_id = 1

    def test_logger_is_not_serialized(self, wallet):
        assert wallet.log is NULL_LOGGER
        assert "logger" not in wallet.config.to_dict()

    def test_contract_is_checksummed(self, chain):
        with chain.wallet(contract=MOCK_CONTRACT.lower()) as wallet:
            assert wallet.contract == MOCK_CONTRACT

    def test_default_logger(self):
        wallet = Wallet(MOCK_RPC_URL, chain_id=MOCK_CHAIN_ID, contract=MOCK_CONTRACT)
        assert wallet.log is logging.getLogger("erc20_wallet")
        wallet.close()

    @pytest.mark.parametrize("kwargs", [{"chain_id": 0}, {"chain_id": -5}])
    def test_invalid_chain_id(self, kwargs):
        with pytest.raises(ConfigurationError):
            Wallet(MOCK_RPC_URL, contract=MOCK_CONTRACT, **kwargs)

    def test_empty_url(self):
        with pytest.raises(ConfigurationError):
            Wallet("", chain_id=MOCK_CHAIN_ID, contract=MOCK_CONTRACT)

    @pytest.mark.parametrize("kwargs", [
        {"poll_interval": 0},
        {"poll_interval": -0.5},
        {"max_block_range": 0},
    ])
    def test_invalid_watch_settings(self, kwargs):
        with pytest.raises(ConfigurationError):
            Wallet(MOCK_RPC_URL, chain_id=MOCK_CHAIN_ID, contract=MOCK_CONTRACT, **kwargs)

    def test_invalid_contract(self):
        with pytest.raises(InvalidArgument):
            Wallet(MOCK_RPC_URL, chain_id=MOCK_CHAIN_ID, contract="0x12")

    def test_from_pool(self, chain):
        pool = EndpointPool([MOCK_RPC_URL], strategy="round_robin")
        wallet = Wallet.from_pool(pool, chain_id=MOCK_CHAIN_ID, contract=MOCK_CONTRACT, client=chain.client())
        assert wallet.config.rpc_url == MOCK_RPC_URL
        assert wallet.balance(JEFF_ADDRESS) == JEFF_FUNDED_BALANCE

    def test_from_env(self, chain, monkeypatch):
        monkeypatch.setenv("ERC20_RPC_URL", MOCK_RPC_URL)
        monkeypatch.setenv("ERC20_CHAIN_ID", str(MOCK_CHAIN_ID))
        monkeypatch.setenv("ERC20_CONTRACT", MOCK_CONTRACT)
        monkeypatch.setenv("ERC20_POLL_INTERVAL", "0.5")

        wallet = Wallet.from_env(client=chain.client())

        assert wallet.chain_id == MOCK_CHAIN_ID
        assert wallet.contract == MOCK_CONTRACT
        assert wallet.poll_interval == 0.5
        assert wallet.balance(JEFF_ADDRESS) == JEFF_FUNDED_BALANCE

    def test_from_env_requires_url(self, monkeypatch):
        monkeypatch.delenv("ERC20_RPC_URL", raising=False)
        with pytest.raises(ConfigurationError, match="ERC20_RPC_URL"):
            Wallet.from_env()

    @pytest.mark.parametrize("name, value", [
        ("ERC20_CHAIN_ID", "mainnet"),
        ("ERC20_CHAIN_ID", "0"),
        ("ERC20_POLL_INTERVAL", "soon"),
        ("ERC20_POLL_INTERVAL", "-1"),
    ])
    def test_from_env_rejects_bad_values(self, monkeypatch, name, value):
        monkeypatch.setenv("ERC20_RPC_URL", MOCK_RPC_URL)
        monkeypatch.setenv(name, value)
        with pytest.raises(ConfigurationError, match=name):
            Wallet.from_env()


class TestCollaborators:
    """Wallet wiring checked with mocks."""

    def test_pay_falls_back_to_local_hash(self, wallet):
        with patch.object(wallet.rpc, "send_raw_transaction", return_value=None) as send:
            handle = wallet.pay(JEFF, WALTER_ADDRESS, 1)
        send.assert_called_once()
        assert handle.tx_hash.startswith("0x") and len(handle.tx_hash) == 66

    def test_pay_logs_without_key_material(self, chain):
        log = MagicMock(spec=logging.Logger)
        with chain.wallet(logger=log) as wallet:
            handle = wallet.pay(JEFF, WALTER_ADDRESS, 77)

        log.info.assert_called_once()
        message = log.info.call_args[0][0]
        assert handle.tx_hash in message
        assert "77" in message
        assert JEFF not in message

    def test_balance_decode_error_propagates(self, wallet):
        with patch.object(wallet.rpc, "eth_call", return_value="0x" + "00" * 31):
            with pytest.raises(DecodeError):
                wallet.balance(JEFF_ADDRESS)

    def test_accept_runs_watcher_on_calling_thread(self, wallet):
        watcher = MagicMock()
        with patch.object(Wallet, "watcher", return_value=watcher) as factory:
            wallet.accept([WALTER_ADDRESS], print)
        factory.assert_called_once_with([WALTER_ADDRESS], print, stop=None, poll_interval=None)
        watcher.run.assert_called_once_with()

    def test_non_string_broadcast_hash_is_rpc_error(self, chain, wallet):
        chain._eth_sendRawTransaction = lambda raw: 12345
        with pytest.raises(RpcError, match="non-string hash"):
            wallet.pay(JEFF, WALTER_ADDRESS, 1)
