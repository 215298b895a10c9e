"""Coinbase Exchange ticker reader.

Endpoint: https://api.exchange.coinbase.com/products/{BASE}-{QUOTE}/ticker
Rate Limit: High (no key required)

The ticker is trade-driven: ``trade_id`` is used as the round id, ``time``
(last trade) as the update time, and the number of fractional digits in the
``price`` string as the decimal precision, so no rounding is introduced.
"""

import logging
from datetime import datetime
from decimal import Decimal, InvalidOperation

from .base import BaseFeedReader, FeedReaderError, RoundData, register_reader

logger = logging.getLogger(__name__)


def parse_ticker(feed_id: str, data: dict) -> RoundData:
    """Convert a Coinbase ticker payload into RoundData.

    :param feed_id: Product id the ticker belongs to (for messages).
    :param data: Decoded JSON ticker.
    :returns: RoundData with exact integer answer.
    :raises FeedReaderError: If the payload is incomplete or malformed.
    """
    try:
        price = Decimal(str(data["price"]))
        updated = datetime.fromisoformat(str(data["time"]).replace("Z", "+00:00"))
        round_id = int(data["trade_id"])
    except (KeyError, ValueError, TypeError, InvalidOperation) as e:
        raise FeedReaderError(f"Malformed ticker for {feed_id}: {e}") from e

    if not price.is_finite():
        raise FeedReaderError(f"Non-finite price for {feed_id}: {data['price']}")

    decimals = max(0, -price.as_tuple().exponent)
    return RoundData(
        answer=int(price.scaleb(decimals)),
        decimals=decimals,
        updated_at=int(updated.timestamp()),
        round_id=round_id,
    )


@register_reader
class CoinbaseFeedReader(BaseFeedReader):
    """Reader for the Coinbase Exchange public ticker.

    Feed ids are Coinbase product ids such as "ETH-USD".
    """

    name = "coinbase"
    BASE_URL = "https://api.exchange.coinbase.com"

    async def latest_round(self, feed_id: str) -> RoundData:
        url = f"{self.BASE_URL}/products/{feed_id.upper()}/ticker"
        response = await self._get(url)
        try:
            data = response.json()
        except ValueError as e:
            raise FeedReaderError(f"Invalid JSON from coinbase for {feed_id}: {e}") from e

        round_data = parse_ticker(feed_id, data)
        logger.debug(f"[coinbase] {feed_id}: {round_data}")
        return round_data
