"""Tests for the command-line entry point."""

import json
import time
from decimal import Decimal

import pytest

from resolution_oracle import main as cli
from resolution_oracle.src.ledger import DEFAULT_ORACLE_ADDRESS
from resolution_oracle.src.ResolutionGateway import OracleType, ResolutionGateway


def run_cli(monkeypatch, capsys, *argv: str) -> tuple[int, dict]:
    monkeypatch.setattr("sys.argv", ["resolution-oracle", *argv])
    with pytest.raises(SystemExit) as exc_info:
        cli.main()
    return exc_info.value.code, json.loads(capsys.readouterr().out)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch) -> None:
    for name in ("NETWORK", "RPC_URL", "FEED_SOURCE", "NODE_ENV", "PRIVATE_KEY", "UMA_DEFAULT_REWARD"):
        monkeypatch.delenv(name, raising=False)


class TestParser:
    """Test argument defaults."""

    def test_defaults(self) -> None:
        """Defaults should target Chainlink on Polygon."""
        args = cli.build_parser().parse_args(["feeds"])

        assert args.network == "polygon"
        assert args.source == "chainlink"
        assert args.fetch_timeout == 10.0
        assert args.uma_oracle_address == DEFAULT_ORACLE_ADDRESS

    def test_env_defaults(self, monkeypatch) -> None:
        """Environment variables should provide defaults."""
        monkeypatch.setenv("FEED_SOURCE", "coinbase")
        monkeypatch.setenv("UMA_DEFAULT_REWARD", "5000000")
        args = cli.build_parser().parse_args(["feeds"])

        assert args.source == "coinbase"
        assert args.uma_reward == 5_000_000

    def test_catalog_for(self) -> None:
        """Coinbase has its own catalog; Chainlink uses the network catalog."""
        assert cli.catalog_for("coinbase", "polygon") == "coinbase"
        assert cli.catalog_for("chainlink", "polygon") == "polygon"


class TestCommands:
    """Test commands that need no network access."""

    def test_feeds(self, monkeypatch, capsys) -> None:
        """feeds should print the catalog in a success envelope."""
        code, body = run_cli(monkeypatch, capsys, "feeds")

        assert code == 0
        assert body["status"] == "SUCCESS"
        assert [feed["symbol"] for feed in body["data"]][:2] == ["ETH/USD", "BTC/USD"]

    def test_uma_info(self, monkeypatch, capsys) -> None:
        """uma-info should describe the oracle deployment."""
        code, body = run_cli(monkeypatch, capsys, "uma-info")

        assert code == 0
        assert body["data"]["network"] == "Polygon"
        assert body["data"]["oracle_address"] == DEFAULT_ORACLE_ADDRESS

    def test_resolve_goes_through_gateway(self, monkeypatch, capsys, reader, eth_feed) -> None:
        """resolve should dispatch a price-feed request through the gateway."""
        reader.set_round(eth_feed, 5_100 * 10**8, int(time.time()))
        monkeypatch.setattr(cli, "get_reader", lambda name, **kwargs: reader)
        dispatched = []
        resolve = ResolutionGateway.resolve

        async def spy(self, market_id, oracle_type, params=None):
            dispatched.append((market_id, oracle_type, dict(params)))
            return await resolve(self, market_id, oracle_type, params)

        monkeypatch.setattr(ResolutionGateway, "resolve", spy)
        code, body = run_cli(monkeypatch, capsys, "resolve", "m1", "ETH/USD", "5000", "above")

        assert code == 0
        assert body["data"]["outcome"] == "YES"
        assert Decimal(body["data"]["final_price"]) == Decimal("5100")
        assert dispatched == [
            (
                "m1",
                OracleType.PRICE_FEED,
                {
                    "symbol": "ETH/USD",
                    "target_price": "5000",
                    "comparison_type": "above",
                    "resolution_time": None,
                },
            )
        ]

    def test_unknown_symbol(self, monkeypatch, capsys) -> None:
        """Errors should print an error envelope and exit 1."""
        code, body = run_cli(monkeypatch, capsys, "price", "DOGE/USD")

        assert code == 1
        assert body["status"] == "ERROR"
        assert body["error"]["code"] == "FEED_NOT_FOUND"
        assert len(body["error"]["traceId"]) == 8
