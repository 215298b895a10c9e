"""PriceMarketResolver: YES/NO resolution of price-threshold markets.

Stateless per call. The decision runs in a fixed order:

    1. Time gate: before ``resolution_time`` the market is UNRESOLVED and no
       feed is consulted.
    2. Staleness gate: a stale observation makes the market UNRESOLVED.
    3. Decision: YES if the condition holds, NO otherwise. ``resolved_at`` is
       the observation time, not the time of the call.

The two gates are policy outcomes and are returned, never raised. Transient
feed failures propagate as ExternalServiceError.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Callable

from .errors import StaleDataError, ValidationError
from .PriceFeedOracle import ComparisonType, PriceFeedOracle, parse_price

logger = logging.getLogger(__name__)

REASON_TIME_NOT_REACHED = "resolution time not reached"
REASON_STALE_DATA = "stale data"
REASON_CONDITION_MET = "condition met"
REASON_CONDITION_NOT_MET = "condition not met"


class Outcome(str, Enum):
    YES = "YES"
    NO = "NO"
    UNRESOLVED = "UNRESOLVED"


@dataclass(frozen=True)
class ResolutionCondition:
    """Resolution condition supplied with each resolution attempt.

    :ivar market_id: Market being resolved.
    :ivar symbol: Feed symbol.
    :ivar target_price: Threshold price.
    :ivar comparison_type: ABOVE or BELOW.
    :ivar resolution_time: Optional Unix time before which no decision is made.
    """

    market_id: str
    symbol: str
    target_price: Decimal
    comparison_type: ComparisonType
    resolution_time: int | None = None

    @classmethod
    def parse(
        cls,
        market_id: str,
        symbol: str,
        target_price: Decimal | str | int,
        comparison_type: ComparisonType | str,
        resolution_time: int | None = None,
    ) -> ResolutionCondition:
        """Build a condition from raw caller input.

        :raises ValidationError: On missing or malformed fields.
        """
        if not market_id or not str(market_id).strip():
            raise ValidationError("marketId is required", {"field": "marketId"})
        if not symbol or not str(symbol).strip():
            raise ValidationError("symbol is required", {"field": "symbol"})
        if resolution_time is not None and (
            isinstance(resolution_time, bool) or not isinstance(resolution_time, int)
        ):
            raise ValidationError(
                "resolutionTime must be an integer Unix timestamp",
                {"field": "resolutionTime"},
            )
        return cls(
            market_id=str(market_id).strip(),
            symbol=str(symbol).strip(),
            target_price=parse_price(target_price, "targetPrice"),
            comparison_type=ComparisonType.parse(comparison_type),
            resolution_time=resolution_time,
        )


@dataclass(frozen=True)
class ResolutionOutcome:
    """Terminal result of one resolution attempt.

    ``resolved`` is False exactly when ``outcome`` is UNRESOLVED.
    """

    market_id: str
    resolved: bool
    outcome: Outcome
    symbol: str
    final_price: Decimal | None
    target_price: Decimal
    comparison_type: ComparisonType
    resolved_at: int | None
    reason: str

    def __post_init__(self) -> None:
        if self.resolved == (self.outcome is Outcome.UNRESOLVED):
            raise ValueError(
                f"Inconsistent resolution: resolved={self.resolved}, outcome={self.outcome.value}"
            )


class PriceMarketResolver:
    """Applies price-feed observations to market resolution conditions.

    :ivar oracle: Price feed oracle.
    :ivar clock: Callable returning the current Unix time.
    """

    def __init__(self, oracle: PriceFeedOracle, clock: Callable[[], float] | None = None) -> None:
        """Initialize the resolver.

        :param oracle: Price feed oracle used for the staleness-gated check.
        :param clock: Current time source (default: the oracle's clock).
        """
        self.oracle = oracle
        self.clock = clock or oracle.clock

    def _unresolved(self, condition: ResolutionCondition, symbol: str, reason: str) -> ResolutionOutcome:
        return ResolutionOutcome(
            market_id=condition.market_id,
            resolved=False,
            outcome=Outcome.UNRESOLVED,
            symbol=symbol,
            final_price=None,
            target_price=condition.target_price,
            comparison_type=condition.comparison_type,
            resolved_at=None,
            reason=reason,
        )

    async def resolve(self, condition: ResolutionCondition) -> ResolutionOutcome:
        """Resolve a market against a parsed condition.

        :param condition: Resolution condition.
        :returns: ResolutionOutcome (UNRESOLVED when a gate blocks the decision).
        :raises FeedNotFoundError: If the symbol is not in the registry.
        :raises ExternalServiceError: If the feed read fails or times out.
        """
        feed = self.oracle.registry.lookup(condition.symbol)

        now = int(self.clock())
        if condition.resolution_time is not None and now < condition.resolution_time:
            logger.info(
                f"Market {condition.market_id}: {REASON_TIME_NOT_REACHED} "
                f"({condition.resolution_time - now}s remaining)"
            )
            return self._unresolved(condition, feed.symbol, REASON_TIME_NOT_REACHED)

        try:
            validation = await self.oracle.validate_price_for_market(
                feed.symbol, condition.target_price, condition.comparison_type
            )
        except StaleDataError as e:
            logger.info(f"Market {condition.market_id}: {REASON_STALE_DATA} ({e.message})")
            return self._unresolved(condition, feed.symbol, REASON_STALE_DATA)

        outcome = Outcome.YES if validation.condition_met else Outcome.NO
        logger.info(
            f"Market {condition.market_id} resolved {outcome.value}: {feed.symbol} "
            f"{validation.current_price} {condition.comparison_type.value} "
            f"{condition.target_price}"
        )
        return ResolutionOutcome(
            market_id=condition.market_id,
            resolved=True,
            outcome=outcome,
            symbol=feed.symbol,
            final_price=validation.current_price,
            target_price=condition.target_price,
            comparison_type=condition.comparison_type,
            resolved_at=validation.updated_at,
            reason=REASON_CONDITION_MET if validation.condition_met else REASON_CONDITION_NOT_MET,
        )

    async def resolve_market(
        self,
        market_id: str,
        symbol: str,
        target_price: Decimal | str | int,
        comparison_type: ComparisonType | str,
        resolution_time: int | None = None,
    ) -> ResolutionOutcome:
        """Resolve a market from raw caller input.

        :param market_id: Market identifier.
        :param symbol: Feed symbol.
        :param target_price: Threshold price.
        :param comparison_type: "above" or "below".
        :param resolution_time: Optional Unix time gate.
        :returns: ResolutionOutcome.
        :raises ValidationError: On malformed input.
        :raises FeedNotFoundError: If the symbol is not in the registry.
        :raises ExternalServiceError: If the feed read fails or times out.
        """
        condition = ResolutionCondition.parse(
            market_id, symbol, target_price, comparison_type, resolution_time
        )
        return await self.resolve(condition)
