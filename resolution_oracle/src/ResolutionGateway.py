"""ResolutionGateway: Dispatches resolution requests by oracle type.

The gateway holds no logic of its own. Price-feed requests go to the
PriceMarketResolver and optimistic requests go to the
OptimisticOracleCoordinator.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Mapping

from .errors import UnsupportedOracleTypeError, ValidationError
from .OptimisticOracleCoordinator import OptimisticOracleCoordinator, OracleRequest
from .PriceMarketResolver import PriceMarketResolver, ResolutionOutcome

logger = logging.getLogger(__name__)


class OracleType(str, Enum):
    PRICE_FEED = "price_feed"
    OPTIMISTIC = "optimistic"

    @classmethod
    def parse(cls, value: OracleType | str) -> OracleType:
        """Parse an oracle type tag.

        Accepts member names and values in any case, plus the
        provider tags "chainlink" and "uma".

        :raises UnsupportedOracleTypeError: For any other tag.
        """
        if isinstance(value, cls):
            return value
        tag = str(value).strip().lower() if value is not None else ""
        if tag in _ALIASES:
            return _ALIASES[tag]
        try:
            return cls(tag)
        except ValueError:
            raise UnsupportedOracleTypeError(value) from None


_ALIASES = {
    "chainlink": OracleType.PRICE_FEED,
    "uma": OracleType.OPTIMISTIC,
}

OPTIMISTIC_ACTIONS = ("request", "propose", "dispute", "settle", "status")


def _require(params: Mapping[str, Any], name: str) -> Any:
    value = params.get(name)
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValidationError(f"{name} is required", {"field": name})
    return value


class ResolutionGateway:
    """Single entry point for market resolution.

    :ivar resolver: Price-feed market resolver.
    :ivar coordinator: Optimistic oracle coordinator.
    """

    def __init__(self, resolver: PriceMarketResolver, coordinator: OptimisticOracleCoordinator) -> None:
        self.resolver = resolver
        self.coordinator = coordinator

    async def resolve(
        self,
        market_id: str,
        oracle_type: OracleType | str,
        params: Mapping[str, Any] | None = None,
    ) -> ResolutionOutcome | OracleRequest:
        """Route a resolution request to the matching oracle.

        Price-feed params: ``symbol``, ``target_price``, ``comparison_type``
        and optionally ``resolution_time``.

        Optimistic params: ``action`` (request, propose, dispute, settle or
        status; default settle) plus that action's arguments: ``question`` and
        ``resolution_time`` for request, ``outcome`` and ``evidence`` for
        propose, ``reason`` for dispute, ``arbitration_price`` for settle.

        :param market_id: Market identifier.
        :param oracle_type: OracleType or tag string.
        :param params: Oracle-specific parameters.
        :returns: ResolutionOutcome for price feeds, OracleRequest for optimistic.
        :raises UnsupportedOracleTypeError: For an unknown oracle type.
        :raises ValidationError: If a required parameter is missing.
        """
        kind = OracleType.parse(oracle_type)
        params = params or {}
        logger.debug(f"Market {market_id}: dispatching to {kind.value}")

        if kind is OracleType.PRICE_FEED:
            return await self.resolver.resolve_market(
                market_id,
                _require(params, "symbol"),
                _require(params, "target_price"),
                _require(params, "comparison_type"),
                params.get("resolution_time"),
            )

        action = str(params.get("action") or "settle").strip().lower()
        if action == "request":
            return await self.coordinator.request_market_resolution(
                market_id, _require(params, "question"), _require(params, "resolution_time")
            )
        if action == "propose":
            return await self.coordinator.propose_market_outcome(
                market_id, _require(params, "outcome"), params.get("evidence")
            )
        if action == "dispute":
            return await self.coordinator.dispute_market_outcome(
                market_id, _require(params, "reason")
            )
        if action == "settle":
            return await self.coordinator.settle_market(market_id, params.get("arbitration_price"))
        if action == "status":
            return self.coordinator.get_request(market_id)

        raise ValidationError(
            f"Unknown action {action!r}, expected one of {', '.join(OPTIMISTIC_ACTIONS)}",
            {"field": "action", "value": action},
        )
