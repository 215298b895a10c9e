"""FeedRegistry: Static catalog of known price feeds.

Maps a trading symbol to its feed identity (contract address or product id),
decimal precision and heartbeat. Catalogs are compiled in per source and are
read-only after construction, so a registry may be shared across tasks
without synchronization.

.. code-block:: python

    >>> registry = FeedRegistry.from_catalog("polygon")
    >>> registry.lookup("eth/usd").heartbeat_seconds
    3600
    >>> registry.lookup("USDC/USD").heartbeat_seconds
    86400
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from .errors import FeedNotFoundError

# Maximum expected interval between feed updates.
DEFAULT_HEARTBEAT_SECONDS = 3600
STABLECOIN_HEARTBEAT_SECONDS = 86400

STABLECOINS = frozenset({"USDC", "USDT", "DAI"})


@dataclass(frozen=True)
class FeedDescriptor:
    """A known price feed.

    :ivar symbol: Trading symbol in "BASE/QUOTE" form (upper case).
    :ivar feed_id: Feed contract address or provider product id.
    :ivar decimals: Decimal precision of the feed answer.
    :ivar heartbeat_seconds: Maximum accepted observation age.
    :ivar network: Network or provider hosting the feed.
    """

    symbol: str
    feed_id: str
    decimals: int
    heartbeat_seconds: int
    network: str = "polygon"


def normalize_symbol(symbol: str) -> str:
    """Normalize a symbol for lookup ("eth/usd " -> "ETH/USD")."""
    return symbol.strip().upper()


def default_heartbeat(symbol: str) -> int:
    """Heartbeat for a symbol configured without an explicit override.

    :param symbol: Normalized symbol.
    :returns: Stablecoin heartbeat for stablecoin bases, general default otherwise.
    """
    base = symbol.split("/")[0]
    if base in STABLECOINS:
        return STABLECOIN_HEARTBEAT_SECONDS
    return DEFAULT_HEARTBEAT_SECONDS


# (symbol, feed_id, decimals, heartbeat override or None)
_CatalogEntry = tuple[str, str, int, int | None]

FEED_CATALOGS: dict[str, tuple[_CatalogEntry, ...]] = {
    # Chainlink aggregators on Polygon PoS.
    "polygon": (
        ("ETH/USD", "0xF9680D99D6C9589e2a93a78A04A279e509205945", 8, None),
        ("BTC/USD", "0xc907E116054Ad103354f2D350FD2514433D57F6f", 8, None),
        ("MATIC/USD", "0xAB594600376Ec9fD91F8e885dADF0CE036862dE0", 8, None),
        ("USDC/USD", "0xfE4A8cc5b5B2366C1B58Bea3858e81843581b2F7", 8, None),
    ),
    # Coinbase Exchange products; ticks are trade-driven so heartbeats are short.
    "coinbase": (
        ("ETH/USD", "ETH-USD", 2, 300),
        ("BTC/USD", "BTC-USD", 2, 300),
        ("POL/USD", "POL-USD", 4, 300),
        ("USDT/USD", "USDT-USD", 5, None),
    ),
}


def build_catalog(name: str) -> list[FeedDescriptor]:
    """Build descriptors for a compiled-in catalog.

    :param name: Catalog name (e.g., "polygon", "coinbase").
    :returns: Descriptors in catalog order.
    :raises ValueError: If the catalog is unknown.
    """
    if name not in FEED_CATALOGS:
        available = ", ".join(sorted(FEED_CATALOGS))
        raise ValueError(f"Unknown feed catalog '{name}'. Available: {available}")

    descriptors = []
    for symbol, feed_id, decimals, heartbeat in FEED_CATALOGS[name]:
        descriptors.append(
            FeedDescriptor(
                symbol=symbol,
                feed_id=feed_id,
                decimals=decimals,
                heartbeat_seconds=heartbeat or default_heartbeat(symbol),
                network=name,
            )
        )
    return descriptors


class FeedRegistry:
    """Read-only symbol to feed lookup.

    :ivar name: Catalog name, if built from one.
    """

    def __init__(self, descriptors: Iterable[FeedDescriptor], name: str = "") -> None:
        """Initialize the registry.

        :param descriptors: Feed descriptors in catalog order.
        :param name: Optional catalog name.
        :raises ValueError: On duplicate symbols or invalid heartbeat/decimals.
        """
        self.name = name
        self._feeds: dict[str, FeedDescriptor] = {}
        for descriptor in descriptors:
            symbol = normalize_symbol(descriptor.symbol)
            if symbol in self._feeds:
                raise ValueError(f"Duplicate feed symbol: {symbol}")
            if descriptor.heartbeat_seconds <= 0:
                raise ValueError(f"Heartbeat for {symbol} must be positive")
            if descriptor.decimals < 0:
                raise ValueError(f"Decimals for {symbol} must not be negative")
            self._feeds[symbol] = descriptor

    @classmethod
    def from_catalog(cls, name: str) -> FeedRegistry:
        return cls(build_catalog(name), name=name)

    def lookup(self, symbol: str) -> FeedDescriptor:
        """Look up the feed for a symbol.

        :param symbol: Trading symbol, case-insensitive.
        :returns: Matching FeedDescriptor.
        :raises FeedNotFoundError: If no feed is configured for the symbol.
        """
        descriptor = self._feeds.get(normalize_symbol(symbol))
        if descriptor is None:
            raise FeedNotFoundError(symbol)
        return descriptor

    def list_all(self) -> list[FeedDescriptor]:
        """Return all descriptors in catalog order."""
        return list(self._feeds.values())

    def symbols(self) -> list[str]:
        return list(self._feeds)

    def __contains__(self, symbol: object) -> bool:
        return isinstance(symbol, str) and normalize_symbol(symbol) in self._feeds

    def __len__(self) -> int:
        return len(self._feeds)
