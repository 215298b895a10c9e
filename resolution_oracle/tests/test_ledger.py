"""Unit tests for the UMA ledger client and ContractUtility."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from resolution_oracle.src.ContractUtility import NETWORKS, ContractUtility
from resolution_oracle.src.ledger import DEFAULT_ORACLE_ADDRESS, LedgerError, UmaLedgerClient

REQUESTER = "0x1111111111111111111111111111111111111111"
IDENTIFIER = b"\x01" * 32
TX_HASH = b"\xab" * 32


def make_client(status: int = 1, error: Exception | None = None, account: str | None = REQUESTER):
    w3 = MagicMock()
    w3.eth.default_account = account
    w3.eth.wait_for_transaction_receipt = AsyncMock(return_value={"status": status, "blockNumber": 7})
    functions = w3.eth.contract.return_value.functions
    for name in ("requestPrice", "proposePrice", "disputePrice", "settle"):
        transact = AsyncMock(side_effect=error) if error is not None else AsyncMock(return_value=TX_HASH)
        getattr(functions, name).return_value.transact = transact
    return UmaLedgerClient(w3, DEFAULT_ORACLE_ADDRESS), functions


class TestUmaLedgerClient:
    """Test OptimisticOracleV2 transaction submission."""

    def test_request_price(self) -> None:
        """requestPrice should pass identifier, time, data, currency and reward."""
        client, functions = make_client()
        currency = "0x2791bca1f2de4661ed88a30c99a7a9449aa84174"
        receipt = asyncio.run(client.request_price(IDENTIFIER, 100, b"{}", currency, 10))

        assert receipt.success is True
        assert receipt.tx_hash == "0x" + "ab" * 32
        assert receipt.block_number == 7
        args = functions.requestPrice.call_args.args
        assert args[:3] == (IDENTIFIER, 100, b"{}")
        assert args[3] == "0x2791Bca1f2de4661ED88A30C99A7a9449Aa84174"
        assert args[4] == 10

    def test_propose_uses_requester(self) -> None:
        """proposePrice should be addressed to the signing requester."""
        client, functions = make_client()
        asyncio.run(client.propose_price(IDENTIFIER, 100, b"{}", 10**18))

        assert functions.proposePrice.call_args.args == (REQUESTER, IDENTIFIER, 100, b"{}", 10**18)

    def test_dispute_and_settle(self) -> None:
        """disputePrice and settle should use the requester-first signature."""
        client, functions = make_client()
        asyncio.run(client.dispute_price(IDENTIFIER, 100, b"{}"))
        asyncio.run(client.settle(IDENTIFIER, 100, b"{}"))

        assert functions.disputePrice.call_args.args == (REQUESTER, IDENTIFIER, 100, b"{}")
        assert functions.settle.call_args.args == (REQUESTER, IDENTIFIER, 100, b"{}")

    def test_reverted_transaction(self) -> None:
        """A receipt with status 0 should be unsuccessful."""
        client, _ = make_client(status=0)
        receipt = asyncio.run(client.settle(IDENTIFIER, 100, b"{}"))
        assert receipt.success is False

    def test_submission_failure(self) -> None:
        """Transport errors should raise LedgerError."""
        client, _ = make_client(error=ValueError("nonce too low"))
        with pytest.raises(LedgerError, match="nonce too low"):
            asyncio.run(client.settle(IDENTIFIER, 100, b"{}"))

    def test_missing_account(self) -> None:
        """Transactions need a configured signing account."""
        client, _ = make_client(account=None)
        with pytest.raises(LedgerError, match="No signing account"):
            asyncio.run(client.settle(IDENTIFIER, 100, b"{}"))


class TestContractUtility:
    """Test web3 setup and ABI loading."""

    def test_get_contract(self) -> None:
        """Bundled ABIs should load by name."""
        names = {entry.get("name") for entry in ContractUtility.get_contract("AggregatorV3Interface")}
        assert {"latestRoundData", "decimals"} <= names

        names = {entry.get("name") for entry in ContractUtility.get_contract("OptimisticOracleV2")}
        assert {"requestPrice", "proposePrice", "disputePrice", "settle"} <= names

    def test_network_rpc(self, monkeypatch) -> None:
        """Known networks should map to their RPC URL."""
        monkeypatch.delenv("RPC_URL", raising=False)
        assert ContractUtility("polygon").network == NETWORKS["polygon"]

    def test_rpc_url_override(self, monkeypatch) -> None:
        """RPC_URL should override the network default."""
        monkeypatch.setenv("RPC_URL", "http://rpc.internal:8545")
        assert ContractUtility("polygon").network == "http://rpc.internal:8545"

    def test_signing_account(self, monkeypatch) -> None:
        """A private key should configure the default account."""
        monkeypatch.delenv("RPC_URL", raising=False)
        utility = ContractUtility("localnet", "0x" + "11" * 32)

        assert utility.account is not None
        assert utility.w3.eth.default_account == utility.account.address
