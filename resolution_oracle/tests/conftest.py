"""Shared fakes and fixtures for the resolution core tests."""

import asyncio

import pytest

from resolution_oracle.src.FeedRegistry import FeedRegistry
from resolution_oracle.src.OptimisticOracleCoordinator import OptimisticOracleCoordinator
from resolution_oracle.src.PriceFeedOracle import PriceFeedOracle
from resolution_oracle.src.PriceMarketResolver import PriceMarketResolver
from resolution_oracle.src.ResolutionGateway import ResolutionGateway
from resolution_oracle.src.ledger import LedgerClient, LedgerReceipt
from resolution_oracle.src.readers import BaseFeedReader, FeedReaderError, RoundData

NOW = 1_700_000_000


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, now: float = NOW) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeFeedReader(BaseFeedReader):
    """Feed reader serving configured rounds or errors per feed id."""

    name = "fake"

    def __init__(self) -> None:
        super().__init__()
        self.rounds: dict[str, RoundData | Exception] = {}
        self.calls: list[str] = []
        self.delay = 0.0

    def set_round(
        self,
        feed_id: str,
        answer: int,
        updated_at: int,
        decimals: int = 8,
        round_id: int = 1,
    ) -> None:
        self.rounds[feed_id] = RoundData(
            answer=answer, decimals=decimals, updated_at=updated_at, round_id=round_id
        )

    def set_error(self, feed_id: str, error: Exception | None = None) -> None:
        self.rounds[feed_id] = error or FeedReaderError(f"feed {feed_id} unavailable")

    async def latest_round(self, feed_id: str) -> RoundData:
        self.calls.append(feed_id)
        if self.delay:
            await asyncio.sleep(self.delay)
        result = self.rounds.get(feed_id)
        if result is None:
            raise FeedReaderError(f"no round configured for {feed_id}")
        if isinstance(result, Exception):
            raise result
        return result


class FakeLedger(LedgerClient):
    """Ledger recording calls and returning configurable receipts."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, tuple]] = []
        self.success = True
        self.error: Exception | None = None
        self.delay = 0.0

    async def _record(self, action: str, *args) -> LedgerReceipt:
        self.calls.append((action, args))
        tx_hash, success, error = f"0x{len(self.calls):064x}", self.success, self.error
        if self.delay:
            await asyncio.sleep(self.delay)
        if error is not None:
            raise error
        return LedgerReceipt(tx_hash=tx_hash, success=success)

    async def request_price(self, identifier, timestamp, ancillary_data, currency, reward):
        return await self._record("request", identifier, timestamp, ancillary_data, currency, reward)

    async def propose_price(self, identifier, timestamp, ancillary_data, proposed_price):
        return await self._record("propose", identifier, timestamp, ancillary_data, proposed_price)

    async def dispute_price(self, identifier, timestamp, ancillary_data):
        return await self._record("dispute", identifier, timestamp, ancillary_data)

    async def settle(self, identifier, timestamp, ancillary_data):
        return await self._record("settle", identifier, timestamp, ancillary_data)

    def actions(self) -> list[str]:
        return [action for action, _ in self.calls]


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def registry() -> FeedRegistry:
    return FeedRegistry.from_catalog("polygon")


@pytest.fixture
def reader() -> FakeFeedReader:
    return FakeFeedReader()


@pytest.fixture
def eth_feed(registry: FeedRegistry) -> str:
    return registry.lookup("ETH/USD").feed_id


@pytest.fixture
def oracle(registry: FeedRegistry, reader: FakeFeedReader, clock: FakeClock) -> PriceFeedOracle:
    return PriceFeedOracle(registry, reader, clock=clock, timeout=0.5)


@pytest.fixture
def resolver(oracle: PriceFeedOracle) -> PriceMarketResolver:
    return PriceMarketResolver(oracle)


@pytest.fixture
def ledger() -> FakeLedger:
    return FakeLedger()


@pytest.fixture
def coordinator(ledger: FakeLedger, clock: FakeClock) -> OptimisticOracleCoordinator:
    return OptimisticOracleCoordinator(ledger, clock=clock, timeout=0.5)


@pytest.fixture
def gateway(
    resolver: PriceMarketResolver, coordinator: OptimisticOracleCoordinator
) -> ResolutionGateway:
    return ResolutionGateway(resolver, coordinator)
