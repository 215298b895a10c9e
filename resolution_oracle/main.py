#!/usr/bin/env python3
"""Prediction Market Resolution Oracle.

Reads price feeds, checks market conditions and resolves price-threshold
markets. Results are printed as the JSON response envelope.

Configure via CLI flags or environment variables; run with --help for details.
"""

import argparse
import asyncio
import json
import logging
import os
import sys
from typing import Any

from .src.ApiResponse import ApiResponse, handle_error
from .src.ContractUtility import ContractUtility
from .src.FeedRegistry import FEED_CATALOGS, FeedRegistry
from .src.OptimisticOracleCoordinator import (
    DEFAULT_CURRENCY,
    DEFAULT_REWARD,
    OptimisticOracleCoordinator,
)
from .src.PriceFeedOracle import PriceFeedOracle
from .src.PriceMarketResolver import PriceMarketResolver
from .src.ResolutionGateway import OracleType, ResolutionGateway
from .src.ledger import DEFAULT_ORACLE_ADDRESS, UmaLedgerClient
from .src.readers import BaseFeedReader, get_available_readers, get_reader

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Build the CLI parser. Environment variables provide the defaults."""
    available_sources = get_available_readers()

    parser = argparse.ArgumentParser(
        description="Prediction Market Resolution Oracle",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
Available feed sources:
  {', '.join(available_sources)}

Examples:
  # List feeds on Polygon
  python -m resolution_oracle.main feeds

  # Resolve "ETH above 1800" using Coinbase as the feed source
  python -m resolution_oracle.main --source coinbase \\
      resolve m1 ETH/USD 1800 above

Environment variables (CLI args take precedence):
  NETWORK, RPC_URL, FEED_SOURCE, FETCH_TIMEOUT, CACHE_TTL, NODE_ENV,
  UMA_ORACLE_ADDRESS, UMA_CURRENCY, UMA_DEFAULT_REWARD, PRIVATE_KEY
""",
    )

    parser.add_argument(
        "--network",
        type=str,
        help="Network to read feeds from (polygon, polygon-amoy, localnet)",
        default=os.environ.get("NETWORK") or "polygon",
    )

    parser.add_argument(
        "--source",
        type=str,
        help=f"Feed source. Available: {', '.join(available_sources)}",
        default=os.environ.get("FEED_SOURCE") or "chainlink",
    )

    parser.add_argument(
        "--fetch-timeout",
        dest="fetch_timeout",
        type=float,
        help="Timeout for individual feed reads in seconds (default: 10.0)",
        default=float(os.environ.get("FETCH_TIMEOUT") or "10.0"),
    )

    parser.add_argument(
        "--cache-ttl",
        dest="cache_ttl",
        type=float,
        help="Round cache TTL in seconds, capped at the feed heartbeat (default: 0, disabled)",
        default=float(os.environ.get("CACHE_TTL") or "0"),
    )

    parser.add_argument(
        "--node-env",
        dest="node_env",
        type=str,
        help="Runtime environment; 'production' hides external error details",
        default=os.environ.get("NODE_ENV") or "development",
    )

    parser.add_argument(
        "--uma-oracle-address",
        dest="uma_oracle_address",
        type=str,
        help="UMA optimistic oracle contract address",
        default=os.environ.get("UMA_ORACLE_ADDRESS") or DEFAULT_ORACLE_ADDRESS,
    )

    parser.add_argument(
        "--uma-currency",
        dest="uma_currency",
        type=str,
        help="Bond and reward currency address (default: USDC on Polygon)",
        default=os.environ.get("UMA_CURRENCY") or DEFAULT_CURRENCY,
    )

    parser.add_argument(
        "--uma-reward",
        dest="uma_reward",
        type=int,
        help="Reward per request in currency base units (default: 10 USDC)",
        default=int(os.environ.get("UMA_DEFAULT_REWARD") or DEFAULT_REWARD),
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose (DEBUG) logging",
    )

    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("feeds", help="List available price feeds")

    price = commands.add_parser("price", help="Read the latest price of a feed")
    price.add_argument("symbol", help="Trading symbol (e.g., ETH/USD)")

    validate = commands.add_parser("validate", help="Check a price condition")
    validate.add_argument("symbol")
    validate.add_argument("target_price")
    validate.add_argument("comparison_type", choices=["above", "below"])

    bounds = commands.add_parser("bounds", help="Check the price against inclusive bounds")
    bounds.add_argument("symbol")
    bounds.add_argument("min_price")
    bounds.add_argument("max_price")

    resolve = commands.add_parser("resolve", help="Resolve a price-threshold market")
    resolve.add_argument("market_id")
    resolve.add_argument("symbol")
    resolve.add_argument("target_price")
    resolve.add_argument("comparison_type", choices=["above", "below"])
    resolve.add_argument(
        "--resolution-time",
        dest="resolution_time",
        type=int,
        help="Unix time before which the market stays unresolved",
        default=None,
    )

    commands.add_parser("uma-info", help="Describe the optimistic oracle deployment")

    return parser


def catalog_for(source: str, network: str) -> str:
    """Pick the feed catalog matching a source and network."""
    if source in FEED_CATALOGS:
        return source
    return network


async def run_command(args: argparse.Namespace) -> Any:
    """Construct the components a command needs and run it.

    :param args: Parsed CLI arguments.
    :returns: Command result (serialized by ApiResponse).
    """
    utility = ContractUtility(args.network, os.environ.get("PRIVATE_KEY"))
    coordinator = OptimisticOracleCoordinator(
        ledger=UmaLedgerClient(utility.w3, args.uma_oracle_address),
        oracle_address=args.uma_oracle_address,
        currency=args.uma_currency,
        reward=args.uma_reward,
    )

    if args.command == "uma-info":
        return coordinator.get_optimistic_oracle_info()

    registry = FeedRegistry.from_catalog(catalog_for(args.source, args.network))
    reader_kwargs: dict[str, Any] = {"timeout": args.fetch_timeout}
    if args.source == "chainlink":
        reader_kwargs["w3"] = utility.w3
    reader = get_reader(args.source, **reader_kwargs)
    oracle = PriceFeedOracle(
        registry,
        reader,
        timeout=args.fetch_timeout,
        cache_ttl=args.cache_ttl,
    )

    try:
        if args.command == "feeds":
            return oracle.get_available_feeds()
        if args.command == "price":
            return await oracle.get_price(args.symbol)
        if args.command == "validate":
            return await oracle.validate_price_for_market(
                args.symbol, args.target_price, args.comparison_type
            )
        if args.command == "bounds":
            return await oracle.check_price_bounds(args.symbol, args.min_price, args.max_price)
        if args.command == "resolve":
            gateway = ResolutionGateway(PriceMarketResolver(oracle), coordinator)
            return await gateway.resolve(
                args.market_id,
                OracleType.PRICE_FEED,
                {
                    "symbol": args.symbol,
                    "target_price": args.target_price,
                    "comparison_type": args.comparison_type,
                    "resolution_time": args.resolution_time,
                },
            )
        raise ValueError(f"Unknown command {args.command}")
    finally:
        await reader.close()
        await BaseFeedReader.close_shared_client()


def main() -> None:
    """Main entry point for the resolution oracle CLI."""
    parser = build_parser()
    args = parser.parse_args()

    # Configure logging level
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    # Validate arguments
    if args.source not in get_available_readers():
        parser.error(
            f"Unknown source: {args.source}. Available: {', '.join(get_available_readers())}"
        )

    if catalog_for(args.source, args.network) not in FEED_CATALOGS and args.command != "uma-info":
        parser.error(f"No feed catalog for network {args.network}")

    if args.fetch_timeout <= 0:
        parser.error("--fetch-timeout must be positive")

    if args.cache_ttl < 0:
        parser.error("--cache-ttl must not be negative")

    debug = args.node_env != "production"
    logger.debug(f"Network: {args.network}, source: {args.source}, command: {args.command}")

    try:
        result = asyncio.run(run_command(args))
        response = ApiResponse.success(result)
        exit_code = 0
    except KeyboardInterrupt:
        logger.info("Shutting down...")
        sys.exit(130)
    except Exception as e:
        _status, response = handle_error(e, debug=debug)
        exit_code = 1

    print(json.dumps(response.to_dict(), indent=2))
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
