"""
Feed readers for price sources.

Usage:
    from resolution_oracle.src.readers import get_reader, get_available_readers

    available = get_available_readers()
    # ['chainlink', 'coinbase']

    reader = get_reader("chainlink", network="polygon")
    round_data = await reader.latest_round("0xF9680D99D6C9589e2a93a78A04A279e509205945")
"""

from .base import (
    READER_REGISTRY,
    BaseFeedReader,
    FeedReaderError,
    FeedReaderHTTPError,
    RoundData,
    get_available_readers,
    get_reader,
    register_reader,
)

# Import all reader implementations to trigger registration
from .chainlink import ChainlinkFeedReader
from .coinbase import CoinbaseFeedReader

__all__ = [
    "BaseFeedReader",
    "FeedReaderError",
    "FeedReaderHTTPError",
    "RoundData",
    "register_reader",
    "get_reader",
    "get_available_readers",
    "READER_REGISTRY",
    "ChainlinkFeedReader",
    "CoinbaseFeedReader",
]
