"""
Prediction Market Resolution Oracle - Core Module

This module resolves prediction markets through two oracle paths:
- FeedRegistry: Compiled-in catalog of price feeds and heartbeats
- PriceFeedOracle: Staleness-aware price reads and threshold checks
- PriceMarketResolver: Time- and staleness-gated YES/NO resolution
- OptimisticOracleCoordinator: Request/propose/dispute/settle state machine
- ResolutionGateway: Dispatch by oracle type
- readers: Feed reader implementations
- ledger: Ledger clients for the optimistic path
"""

from .ApiResponse import ApiResponse, handle_error
from .FeedRegistry import FEED_CATALOGS, FeedDescriptor, FeedRegistry
from .OptimisticOracleCoordinator import (
    OptimisticOracleCoordinator,
    OracleInfo,
    OracleRequest,
    RequestState,
)
from .PriceFeedOracle import (
    ComparisonType,
    PriceBounds,
    PriceFeedOracle,
    PriceObservation,
    PriceValidation,
)
from .PriceMarketResolver import (
    Outcome,
    PriceMarketResolver,
    ResolutionCondition,
    ResolutionOutcome,
)
from .ResolutionGateway import OracleType, ResolutionGateway

__all__ = [
    "ApiResponse",
    "ComparisonType",
    "FEED_CATALOGS",
    "FeedDescriptor",
    "FeedRegistry",
    "OptimisticOracleCoordinator",
    "OracleInfo",
    "OracleRequest",
    "OracleType",
    "Outcome",
    "PriceBounds",
    "PriceFeedOracle",
    "PriceMarketResolver",
    "PriceObservation",
    "PriceValidation",
    "RequestState",
    "ResolutionCondition",
    "ResolutionGateway",
    "ResolutionOutcome",
    "handle_error",
]
