"""PriceFeedOracle: Staleness-aware price reads and comparison primitives.

Every read produces a fresh :class:`PriceObservation` that carries its own
staleness verdict. Staleness is data, not an error, for plain reads; the
comparison primitives (:meth:`PriceFeedOracle.validate_price_for_market` and
:meth:`PriceFeedOracle.check_price_bounds`) back binding decisions and raise
:class:`StaleDataError` instead.

Prices are exact decimals built from the feed's integer answer:

.. code-block:: python

    >>> price_from_answer(200000000000, 8)
    Decimal('2000.00000000')
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Callable

from .errors import (
    ExternalServiceError,
    ExternalServiceTimeoutError,
    StaleDataError,
    ValidationError,
)
from .FeedRegistry import FeedDescriptor, FeedRegistry
from .readers import BaseFeedReader, FeedReaderError, RoundData

logger = logging.getLogger(__name__)


class ComparisonType(str, Enum):
    """Direction of a threshold condition."""

    ABOVE = "above"
    BELOW = "below"

    @classmethod
    def parse(cls, value: ComparisonType | str) -> ComparisonType:
        """Parse a comparison type case-insensitively.

        :raises ValidationError: For anything other than above/below.
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValidationError(
                f"Invalid comparison type {value!r}, expected 'above' or 'below'",
                {"comparisonType": value},
            ) from None


@dataclass(frozen=True)
class PriceObservation:
    """Point-in-time snapshot of a feed. Never persisted.

    :ivar symbol: Feed symbol.
    :ivar price: Exact decimal price.
    :ivar decimals: Decimals of the raw feed answer.
    :ivar round_id: Feed round identifier.
    :ivar observed_at: Unix timestamp of the feed update.
    :ivar feed_id: Feed address or product id.
    :ivar is_stale: True if ``staleness_seconds > heartbeat_seconds``.
    :ivar staleness_seconds: Age of the update at read time.
    :ivar heartbeat_seconds: Maximum accepted age for this feed.
    """

    symbol: str
    price: Decimal
    decimals: int
    round_id: int
    observed_at: int
    feed_id: str
    is_stale: bool
    staleness_seconds: int
    heartbeat_seconds: int


@dataclass(frozen=True)
class PriceValidation:
    """Result of checking a threshold condition against a fresh price."""

    symbol: str
    current_price: Decimal
    target_price: Decimal
    comparison_type: ComparisonType
    condition_met: bool
    updated_at: int


@dataclass(frozen=True)
class PriceBounds:
    """Result of an inclusive bounds check against a fresh price."""

    symbol: str
    current_price: Decimal
    min_price: Decimal
    max_price: Decimal
    within_bounds: bool
    updated_at: int


def price_from_answer(answer: int, decimals: int) -> Decimal:
    """Scale an integer feed answer to an exact decimal price."""
    return Decimal(answer).scaleb(-decimals)


def parse_price(value: Any, field: str = "price") -> Decimal:
    """Parse a caller-supplied price into a finite, non-negative Decimal.

    Floats are converted through ``str`` so that ``0.1`` means ``Decimal("0.1")``.

    :param value: Decimal, int, str or float.
    :param field: Field name used in error messages.
    :returns: Parsed Decimal.
    :raises ValidationError: If the value is missing, malformed, non-finite or negative.
    """
    if value is None or isinstance(value, bool):
        raise ValidationError(f"{field} is required", {"field": field})
    try:
        price = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field} is not a valid number: {value!r}", {"field": field}) from None
    if not price.is_finite() or price < 0:
        raise ValidationError(f"{field} must be a finite, non-negative number", {"field": field})
    return price


class PriceFeedOracle:
    """Reads feeds listed in a FeedRegistry and evaluates price conditions.

    :ivar registry: Feed catalog.
    :ivar reader: Feed reader collaborator.
    :ivar clock: Callable returning the current Unix time.
    :ivar timeout: Timeout for each reader call in seconds.
    :ivar cache_ttl: Upper bound on round caching in seconds (0 disables).
    """

    DEFAULT_TIMEOUT = 10.0

    def __init__(
        self,
        registry: FeedRegistry,
        reader: BaseFeedReader,
        clock: Callable[[], float] = time.time,
        timeout: float = DEFAULT_TIMEOUT,
        cache_ttl: float = 0.0,
    ) -> None:
        """Initialize the oracle.

        :param registry: Feed catalog.
        :param reader: Feed reader used for latest-round reads.
        :param clock: Current time source (default: time.time).
        :param timeout: Reader call timeout in seconds (default: 10.0).
        :param cache_ttl: Round cache TTL; each entry is additionally capped
            at the feed heartbeat (default: 0, disabled).
        """
        self.registry = registry
        self.reader = reader
        self.clock = clock
        self.timeout = timeout
        self.cache_ttl = cache_ttl
        # symbol -> (fetched_at, round)
        self._cache: dict[str, tuple[float, RoundData]] = {}

    async def _read_round(self, feed: FeedDescriptor) -> RoundData:
        """Read the latest round, honoring the cache and timeout.

        :raises ExternalServiceTimeoutError: If the reader exceeds the timeout.
        :raises ExternalServiceError: If the reader fails or returns a bad round.
        """
        ttl = min(self.cache_ttl, feed.heartbeat_seconds)
        if ttl > 0:
            cached = self._cache.get(feed.symbol)
            if cached is not None and self.clock() - cached[0] < ttl:
                return cached[1]

        try:
            round_data = await asyncio.wait_for(
                self.reader.latest_round(feed.feed_id), timeout=self.timeout
            )
        except asyncio.TimeoutError:
            logger.warning(f"{feed.symbol}: feed read timed out after {self.timeout}s")
            raise ExternalServiceTimeoutError(
                f"Timed out reading {feed.symbol} feed after {self.timeout}s",
                {"symbol": feed.symbol, "feedId": feed.feed_id},
            ) from None
        except FeedReaderError as e:
            logger.warning(f"{feed.symbol}: feed read failed: {e}")
            raise ExternalServiceError(
                f"Failed to read {feed.symbol} feed: {e}",
                {"symbol": feed.symbol, "feedId": feed.feed_id},
            ) from e

        if round_data.answer <= 0 or round_data.updated_at <= 0:
            logger.warning(f"{feed.symbol}: feed returned invalid round {round_data}")
            raise ExternalServiceError(
                f"Feed for {feed.symbol} returned an invalid round",
                {"symbol": feed.symbol, "roundId": round_data.round_id},
            )

        if ttl > 0:
            self._cache[feed.symbol] = (self.clock(), round_data)
        return round_data

    async def get_price(self, symbol: str) -> PriceObservation:
        """Fetch the latest observation for a symbol.

        Never raises on staleness; the verdict is carried in the result.

        :param symbol: Trading symbol (case-insensitive).
        :returns: Fresh PriceObservation.
        :raises FeedNotFoundError: If the symbol is not in the registry.
        :raises ExternalServiceError: If the feed read fails or times out.
        """
        feed = self.registry.lookup(symbol)
        round_data = await self._read_round(feed)

        now = int(self.clock())
        staleness = now - round_data.updated_at
        observation = PriceObservation(
            symbol=feed.symbol,
            price=price_from_answer(round_data.answer, round_data.decimals),
            decimals=round_data.decimals,
            round_id=round_data.round_id,
            observed_at=round_data.updated_at,
            feed_id=feed.feed_id,
            is_stale=staleness > feed.heartbeat_seconds,
            staleness_seconds=staleness,
            heartbeat_seconds=feed.heartbeat_seconds,
        )
        logger.debug(
            f"{feed.symbol}: {observation.price} (round {observation.round_id}, "
            f"{staleness}s old, stale={observation.is_stale})"
        )
        return observation

    async def _get_fresh_price(self, symbol: str) -> PriceObservation:
        observation = await self.get_price(symbol)
        if observation.is_stale:
            logger.warning(
                f"{observation.symbol}: stale price rejected "
                f"({observation.staleness_seconds}s > {observation.heartbeat_seconds}s)"
            )
            raise StaleDataError(
                observation.symbol,
                observation.staleness_seconds,
                observation.heartbeat_seconds,
            )
        return observation

    async def validate_price_for_market(
        self,
        symbol: str,
        target_price: Decimal | str | int,
        comparison_type: ComparisonType | str,
    ) -> PriceValidation:
        """Check a threshold condition against the current price.

        ABOVE holds when ``current > target``, BELOW when ``current < target``;
        both compare exact decimals.

        :param symbol: Trading symbol.
        :param target_price: Threshold price.
        :param comparison_type: "above" or "below".
        :returns: PriceValidation with ``condition_met``.
        :raises ValidationError: On a malformed target or comparison type.
        :raises FeedNotFoundError: If the symbol is not in the registry.
        :raises StaleDataError: If the observation is stale.
        :raises ExternalServiceError: If the feed read fails or times out.
        """
        target = parse_price(target_price, "targetPrice")
        comparison = ComparisonType.parse(comparison_type)
        observation = await self._get_fresh_price(symbol)

        if comparison is ComparisonType.ABOVE:
            condition_met = observation.price > target
        else:
            condition_met = observation.price < target

        return PriceValidation(
            symbol=observation.symbol,
            current_price=observation.price,
            target_price=target,
            comparison_type=comparison,
            condition_met=condition_met,
            updated_at=observation.observed_at,
        )

    async def check_price_bounds(
        self,
        symbol: str,
        min_price: Decimal | str | int,
        max_price: Decimal | str | int,
    ) -> PriceBounds:
        """Check ``min_price <= current <= max_price`` against a fresh price.

        :param symbol: Trading symbol.
        :param min_price: Inclusive lower bound.
        :param max_price: Inclusive upper bound.
        :returns: PriceBounds with ``within_bounds``.
        :raises ValidationError: If bounds are malformed or ``min_price > max_price``.
        :raises FeedNotFoundError: If the symbol is not in the registry.
        :raises StaleDataError: If the observation is stale.
        :raises ExternalServiceError: If the feed read fails or times out.
        """
        low = parse_price(min_price, "minPrice")
        high = parse_price(max_price, "maxPrice")
        if low > high:
            raise ValidationError(
                "minPrice must not exceed maxPrice",
                {"minPrice": str(low), "maxPrice": str(high)},
            )
        observation = await self._get_fresh_price(symbol)

        return PriceBounds(
            symbol=observation.symbol,
            current_price=observation.price,
            min_price=low,
            max_price=high,
            within_bounds=low <= observation.price <= high,
            updated_at=observation.observed_at,
        )

    def get_available_feeds(self) -> list[FeedDescriptor]:
        """Return every feed known to the registry, in catalog order."""
        return self.registry.list_all()
