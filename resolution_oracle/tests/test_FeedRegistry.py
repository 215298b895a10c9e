"""Unit tests for FeedRegistry."""

import pytest

from resolution_oracle.src.errors import FeedNotFoundError
from resolution_oracle.src.FeedRegistry import (
    DEFAULT_HEARTBEAT_SECONDS,
    FEED_CATALOGS,
    STABLECOIN_HEARTBEAT_SECONDS,
    FeedDescriptor,
    FeedRegistry,
    build_catalog,
    default_heartbeat,
)


class TestFeedRegistryLookup:
    """Test symbol lookups."""

    def test_lookup_known_symbol(self) -> None:
        """Known symbols should resolve to their descriptor."""
        registry = FeedRegistry.from_catalog("polygon")
        feed = registry.lookup("ETH/USD")

        assert feed.symbol == "ETH/USD"
        assert feed.feed_id == "0xF9680D99D6C9589e2a93a78A04A279e509205945"
        assert feed.decimals == 8
        assert feed.heartbeat_seconds == DEFAULT_HEARTBEAT_SECONDS

    def test_lookup_is_case_insensitive(self) -> None:
        """Lookups should normalize case and whitespace."""
        registry = FeedRegistry.from_catalog("polygon")
        assert registry.lookup(" btc/usd ").symbol == "BTC/USD"
        assert "matic/usd" in registry

    def test_lookup_unknown_symbol(self) -> None:
        """Unknown symbols should raise FeedNotFoundError."""
        registry = FeedRegistry.from_catalog("polygon")
        with pytest.raises(FeedNotFoundError) as exc_info:
            registry.lookup("DOGE/USD")

        assert exc_info.value.symbol == "DOGE/USD"
        assert exc_info.value.response_code.http_status == 404
        assert "DOGE/USD" not in registry


class TestFeedRegistryCatalogs:
    """Test compiled-in catalogs."""

    @pytest.mark.parametrize("name", sorted(FEED_CATALOGS))
    def test_catalog_is_valid(self, name: str) -> None:
        """Every catalog should be non-empty, unique and have positive heartbeats."""
        feeds = FeedRegistry.from_catalog(name).list_all()

        assert feeds
        symbols = [f.symbol for f in feeds]
        assert len(symbols) == len(set(symbols))
        assert all(f.heartbeat_seconds > 0 for f in feeds)

    def test_list_all_preserves_catalog_order(self) -> None:
        """list_all should follow catalog order."""
        registry = FeedRegistry.from_catalog("polygon")
        assert registry.symbols() == [entry[0] for entry in FEED_CATALOGS["polygon"]]
        assert len(registry) == len(FEED_CATALOGS["polygon"])

    def test_stablecoin_heartbeat_default(self) -> None:
        """Stablecoins without an override should get the long heartbeat."""
        registry = FeedRegistry.from_catalog("polygon")
        assert registry.lookup("USDC/USD").heartbeat_seconds == STABLECOIN_HEARTBEAT_SECONDS

    def test_explicit_heartbeat_override(self) -> None:
        """Catalog overrides should win over the default heartbeat."""
        registry = FeedRegistry.from_catalog("coinbase")
        assert registry.lookup("ETH/USD").heartbeat_seconds == 300
        assert registry.lookup("USDT/USD").heartbeat_seconds == STABLECOIN_HEARTBEAT_SECONDS

    def test_default_heartbeat(self) -> None:
        """Default heartbeat depends on the base asset."""
        assert default_heartbeat("ETH/USD") == DEFAULT_HEARTBEAT_SECONDS
        assert default_heartbeat("DAI/USD") == STABLECOIN_HEARTBEAT_SECONDS

    def test_unknown_catalog(self) -> None:
        """Unknown catalog names should raise ValueError."""
        with pytest.raises(ValueError, match="Unknown feed catalog"):
            build_catalog("solana")


class TestFeedRegistryValidation:
    """Test construction invariants."""

    def test_duplicate_symbols_rejected(self) -> None:
        """Duplicate symbols should raise ValueError."""
        feeds = [
            FeedDescriptor("ETH/USD", "0x1", 8, 3600),
            FeedDescriptor("eth/usd", "0x2", 8, 3600),
        ]
        with pytest.raises(ValueError, match="Duplicate feed symbol"):
            FeedRegistry(feeds)

    def test_non_positive_heartbeat_rejected(self) -> None:
        """Zero heartbeat should raise ValueError."""
        with pytest.raises(ValueError, match="must be positive"):
            FeedRegistry([FeedDescriptor("ETH/USD", "0x1", 8, 0)])

    def test_negative_decimals_rejected(self) -> None:
        """Negative decimals should raise ValueError."""
        with pytest.raises(ValueError, match="must not be negative"):
            FeedRegistry([FeedDescriptor("ETH/USD", "0x1", -1, 3600)])
